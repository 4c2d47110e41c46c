import logging
import os
from typing import Optional

import httpx

from ..errors import ExportError, StorageError
from ..schemas.reports import Report
from ..services.pdf import ReportExporter, report_filename
from .api import ReportsClient

logger = logging.getLogger(__name__)

EXPORT_FAILED = "فشل في تصدير ملف PDF. يرجى التأكد من اتصال الإنترنت والمحاولة مرة أخرى."
REPORT_NOT_FOUND = "التقرير غير موجود"


def failure_message(reason: str) -> str:
    return f"{EXPORT_FAILED} ({reason})" if reason else EXPORT_FAILED


class ExportTrigger:
    """The "download PDF" button: disabled while an export runs, saves the file on success.

    `trigger()` renders locally, `trigger_by_id()` first fetches the report
    from the API, and `download()` saves the PDF the server renders.
    """

    def __init__(self, exporter: ReportExporter, output_dir: str = ".", client: Optional[ReportsClient] = None):
        self.exporter = exporter
        self.output_dir = output_dir
        self.client = client
        self.message: Optional[str] = None
        self.downloading = False

    @property
    def enabled(self) -> bool:
        return not self.exporter.busy and not self.downloading

    def _save(self, filename: str, data: bytes) -> str:
        os.makedirs(self.output_dir, exist_ok=True)
        path = os.path.join(self.output_dir, filename)
        with open(path, "wb") as f:
            f.write(data)
        logger.info("Saved %s", path)
        return path

    async def trigger(self, report: Report, dark: bool = False) -> Optional[str]:
        """Returns the saved file path, or None when disabled or failed."""
        if not self.enabled:
            return None
        self.message = None
        try:
            result = await self.exporter.export(report, dark=dark)
        except ExportError as e:
            logger.error("Export of report %s failed: %s", report.id, e)
            self.message = failure_message(str(e))
            return None
        if result is None:
            return None
        return self._save(result.filename, result.buffer.getvalue())

    async def _fetch(self, report_id: int) -> Optional[Report]:
        try:
            report = await self.client.get_report(report_id)
        except (StorageError, httpx.HTTPError) as e:
            logger.error("Could not fetch report %s: %s", report_id, e)
            self.message = failure_message(str(e))
            return None
        if report is None:
            self.message = REPORT_NOT_FOUND
        return report

    async def trigger_by_id(self, report_id: int, dark: bool = False) -> Optional[str]:
        if not self.enabled:
            return None
        self.message = None
        report = await self._fetch(report_id)
        return await self.trigger(report, dark=dark) if report else None

    async def download(self, report_id: int) -> Optional[str]:
        """Save the server-rendered PDF of a stored report."""
        if not self.enabled:
            return None
        self.message = None
        self.downloading = True
        try:
            report = await self._fetch(report_id)
            if report is None:
                return None
            try:
                data = await self.client.download_pdf(report_id)
            except httpx.HTTPError as e:
                logger.error("PDF download of report %s failed: %s", report_id, e)
                self.message = failure_message(str(e))
                return None
            return self._save(report_filename(report), data)
        finally:
            self.downloading = False
