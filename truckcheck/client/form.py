import logging
import uuid
from datetime import date
from typing import Callable, Dict, List, Optional

from ..constants import SIGNATURE_ROLES
from ..errors import CameraAccessError
from ..schemas.reports import DamagePoint, ReportCreate

logger = logging.getLogger(__name__)

CAMERA_ERROR = "تعذر الوصول إلى الكاميرا. يرجى التحقق من الأذونات"


class ReportForm:
    """Everything the driver has entered so far. Nothing here talks to the network."""

    def __init__(self):
        self.reset()

    def reset(self):
        self.driver_name = ""
        self.truck_number = ""
        self.date = date.today().isoformat()
        self.damage_points: List[DamagePoint] = []
        self.inspection_values: Dict[int, bool] = {}
        self.tool_values: Dict[int, int] = {}
        self.tool_images: Dict[int, List[str]] = {}
        self.signatures: Dict[str, str] = {field: "" for field, _ in SIGNATURE_ROLES}

    # --- DAMAGE MAP ---
    def add_damage_point(self, x: float, y: float, severity: str = "medium", description: str = "") -> DamagePoint:
        """Pin a point at percent offsets of the truck diagram."""
        point = DamagePoint(
            id=uuid.uuid4().hex[:9],
            x=min(100.0, max(0.0, x)), y=min(100.0, max(0.0, y)),
            description=description, severity=severity,
        )
        self.damage_points.append(point)
        return point

    def update_damage_point(self, point_id: str, **changes) -> Optional[DamagePoint]:
        for i, point in enumerate(self.damage_points):
            if point.id == point_id:
                self.damage_points[i] = point.model_copy(update=changes)
                return self.damage_points[i]
        return None

    def remove_damage_point(self, point_id: str):
        self.damage_points = [p for p in self.damage_points if p.id != point_id]

    # --- CHECKLIST & INVENTORY ---
    def set_inspection(self, item_id: int, ok: bool):
        self.inspection_values[item_id] = bool(ok)

    def set_tool_count(self, item_id: int, count: int):
        self.tool_values[item_id] = max(0, int(count))

    def attach_tool_images(self, item_id: int, capture: Callable[[], List[str]]) -> Optional[str]:
        """Append what the capture widget yields. Returns a user message when the camera is unavailable."""
        try:
            images = capture()
        except CameraAccessError as e:
            logger.warning("Capture for tool %s failed: %s", item_id, e)
            return CAMERA_ERROR
        if images:
            self.tool_images[item_id] = self.tool_images.get(item_id, []) + list(images)
        return None

    def remove_tool_image(self, item_id: int, index: int):
        images = self.tool_images.get(item_id, [])
        if 0 <= index < len(images):
            del images[index]

    # --- SIGNATURES ---
    def set_signature(self, field: str, data: str):
        if field not in self.signatures:
            raise KeyError(f"unknown signature slot: {field}")
        self.signatures[field] = data or ""

    @property
    def driver_signature(self) -> str:
        return self.signatures["driver_signature"]

    def to_report(self) -> ReportCreate:
        return ReportCreate(
            driver_name=self.driver_name,
            truck_number=self.truck_number,
            date=self.date,
            damage_points=self.damage_points,
            inspection_values=self.inspection_values,
            tool_values=self.tool_values,
            tool_images=self.tool_images,
            **self.signatures,
        )

    def to_payload(self) -> dict:
        return self.to_report().model_dump(mode="json", by_alias=True)
