import logging
from typing import List, Optional

import httpx

from ..errors import StorageError, ValidationError
from ..schemas.reports import Report
from .api import ReportsClient
from .form import ReportForm

logger = logging.getLogger(__name__)

# --- USER MESSAGES ---
MISSING_IDENTITY = "يرجى إدخال اسم السائق ورقم المركبة"
MISSING_SIGNATURE = "يرجى إضافة توقيع السائق"
SAVE_FAILED = "فشل في حفظ التقرير: "
UNKNOWN_ERROR = "خطأ غير معروف"
CONNECTION_ERROR = "حدث خطأ أثناء الاتصال بالخادم"
TIMEOUT_ERROR = "انتهت مهلة الاتصال بالخادم. يرجى المحاولة مرة أخرى"
SAVED = "تم حفظ التقرير بنجاح"


def validate_form(form: ReportForm):
    """Identity first, then the driver's signature."""
    if not form.driver_name.strip() or not form.truck_number.strip():
        raise ValidationError("identity", MISSING_IDENTITY)
    if not form.driver_signature:
        raise ValidationError("signature", MISSING_SIGNATURE)


class SubmissionFlow:
    """
    Drives one inspection from form to backend.

    `submit()` is guarded by an in-flight flag: a second call while one is
    pending does nothing. Failures keep the form as it was so the driver can retry.
    """

    def __init__(self, client: ReportsClient, form: Optional[ReportForm] = None):
        self.client = client
        self.form = form or ReportForm()
        self.submitting = False
        self.submitted = False
        self.report_id: Optional[int] = None
        self.message: Optional[str] = None
        self.reports: List[Report] = []

    async def submit(self) -> Optional[int]:
        if self.submitting:
            logger.debug("Submit ignored, a submission is already in flight")
            return None

        try:
            validate_form(self.form)
        except ValidationError as e:
            self.message = e.message
            return None

        self.submitting = True
        self.message = None
        try:
            report_id = await self.client.create_report(self.form.to_payload())
        except StorageError as e:
            logger.error("Backend rejected report: %s", e)
            self.message = SAVE_FAILED + (str(e) or UNKNOWN_ERROR)
            return None
        except httpx.TimeoutException:
            logger.warning("Report submission timed out")
            self.message = TIMEOUT_ERROR
            return None
        except httpx.HTTPError as e:
            logger.error("Report submission failed: %s", e)
            self.message = CONNECTION_ERROR
            return None
        finally:
            self.submitting = False

        self.submitted = True
        self.report_id = report_id
        self.message = SAVED
        logger.info("Report %s saved for truck %s", report_id, self.form.truck_number)
        await self.refresh_reports()
        return report_id

    async def refresh_reports(self) -> List[Report]:
        """Reload the cached listing. A failure keeps the previous listing."""
        try:
            self.reports = await self.client.list_reports()
        except (StorageError, httpx.HTTPError) as e:
            logger.warning("Could not refresh reports: %s", e)
        return self.reports

    def reset(self):
        """Start a new inventory."""
        self.form.reset()
        self.submitted = False
        self.report_id = None
        self.message = None
