import os
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

# --- CONFIGURATION ---
DEFAULT_PORT = 3000
DEFAULT_SQLITE_PATH = "reports.db"


class Settings:
    """Process configuration, read once from the environment."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        port: int = DEFAULT_PORT,
        sqlite_path: str = DEFAULT_SQLITE_PATH,
        font_path: Optional[str] = None,
        truck_image_path: Optional[str] = None,
        request_timeout: float = 30.0,
        export_timeout: float = 60.0,
        export_settle_delay: float = 1.0,
        log_level: str = "INFO",
    ):
        self.database_url = database_url or None
        self.port = port
        self.sqlite_path = sqlite_path
        self.font_path = font_path or None
        self.truck_image_path = truck_image_path or None
        self.request_timeout = request_timeout
        self.export_timeout = export_timeout
        self.export_settle_delay = export_settle_delay
        self.log_level = log_level

    @classmethod
    def from_env(cls):
        return cls(
            database_url=os.getenv("DATABASE_URL"),
            port=int(os.getenv("PORT") or DEFAULT_PORT),
            sqlite_path=os.getenv("SQLITE_PATH", DEFAULT_SQLITE_PATH),
            font_path=os.getenv("REPORT_FONT_PATH"),
            truck_image_path=os.getenv("TRUCK_IMAGE_PATH"),
            request_timeout=float(os.getenv("REQUEST_TIMEOUT", "30")),
            export_timeout=float(os.getenv("EXPORT_TIMEOUT", "60")),
            export_settle_delay=float(os.getenv("EXPORT_SETTLE_DELAY", "1.0")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


_settings: Optional[Settings] = None

def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
