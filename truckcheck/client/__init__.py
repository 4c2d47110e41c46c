from .api import ReportsClient
from .export import ExportTrigger
from .form import ReportForm
from .submission import SubmissionFlow
