import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..database import Backend
from ..errors import StorageError
from ..schemas.reports import Report, ReportCreate

logger = logging.getLogger(__name__)


class ReportStore:
    """Backend-agnostic persistence for reports.

    Schema creation may fail at boot (networked database unreachable). The
    store then stays degraded: each operation retries the schema once and
    raises StorageError while the backend is still unavailable.
    """

    def __init__(self, backend: Backend):
        self.backend = backend
        self.ready = False

    @property
    def kind(self) -> str:
        return self.backend.kind

    def init(self) -> bool:
        try:
            self.backend.init()
        except (SQLAlchemyError, OSError) as e:
            logger.error("Schema initialization failed on %s backend: %s", self.kind, e)
            self.ready = False
            return False
        logger.info("%s backend initialized", self.kind)
        self.ready = True
        return True

    def _ensure_ready(self):
        if not self.ready and not self.init():
            raise StorageError(f"{self.kind} backend unavailable")

    def create_report(self, report: ReportCreate) -> int:
        self._ensure_ready()
        try:
            report_id = self.backend.create_report(report)
        except (SQLAlchemyError, OSError) as e:
            logger.exception("Failed to save report for truck %s", report.truck_number)
            raise StorageError("Failed to save report") from e
        logger.info("Report %s saved (truck %s)", report_id, report.truck_number)
        return report_id

    def list_reports(self) -> List[Report]:
        self._ensure_ready()
        try:
            return self.backend.list_reports()
        except (SQLAlchemyError, OSError) as e:
            logger.exception("Failed to fetch reports")
            raise StorageError("Failed to fetch reports") from e

    def get_report(self, report_id: int) -> Optional[Report]:
        self._ensure_ready()
        try:
            return self.backend.get_report(report_id)
        except (SQLAlchemyError, OSError) as e:
            logger.exception("Failed to fetch report %s", report_id)
            raise StorageError("Failed to fetch report") from e

    def close(self):
        self.backend.dispose()
