from .reports import DamagePoint, ErrorOut, Report, ReportCreate, ReportCreated
