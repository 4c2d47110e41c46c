class InspectionError(Exception):
    """Base class for every failure raised by the report core."""


class ValidationError(InspectionError):
    """A required field is missing; raised before any request is sent."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


class StorageError(InspectionError):
    """Write or read failure against the active backend."""


class ExportError(InspectionError):
    """Rasterization, slicing or PDF generation failed."""


class CameraAccessError(InspectionError):
    """The capture widget could not reach the camera or the picked file."""
