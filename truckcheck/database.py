import logging
from typing import List, Optional

from sqlalchemy import MetaData, create_engine, event, select
from sqlalchemy.engine import Engine

from .config import Settings
from .models.reports import (
    LOWERCASE_COLUMNS, MIXED_CASE_COLUMNS, ColumnMap,
    build_reports_table, decode_from_storage, encode_for_storage,
)
from .schemas.reports import Report, ReportCreate

logger = logging.getLogger(__name__)


class Backend:
    """One persistence technology for the `reports` table.

    Subclasses only declare `kind` and `columns`; the SQL is the same
    SQLAlchemy Core statements rendered against each backend's table.
    """
    kind: str = ""
    columns: ColumnMap

    def __init__(self, engine: Engine):
        self.engine = engine
        self.metadata = MetaData()
        self.table = build_reports_table(self.metadata, self.columns)

    def init(self):
        self.metadata.create_all(self.engine, checkfirst=True)

    def create_report(self, report: ReportCreate) -> int:
        values = encode_for_storage(report, self)
        with self.engine.begin() as conn:
            result = conn.execute(self.table.insert().values(values))
            return int(result.inserted_primary_key[0])

    def list_reports(self) -> List[Report]:
        col = self.table.c
        stmt = select(self.table).order_by(
            col[self.columns.to_column("created_at")].desc(),
            col[self.columns.to_column("id")].desc(),
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [decode_from_storage(row, self) for row in rows]

    def get_report(self, report_id: int) -> Optional[Report]:
        stmt = select(self.table).where(self.table.c[self.columns.to_column("id")] == report_id)
        with self.engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        return decode_from_storage(row, self) if row else None

    def dispose(self):
        self.engine.dispose()


class SqliteBackend(Backend):
    kind = "sqlite"
    columns = MIXED_CASE_COLUMNS

    @classmethod
    def from_path(cls, path: str):
        engine = create_engine(f"sqlite:///{path}", connect_args={"check_same_thread": False})

        @event.listens_for(engine, "connect")
        def _set_wal(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

        return cls(engine)


class PostgresBackend(Backend):
    kind = "postgres"
    columns = LOWERCASE_COLUMNS

    @classmethod
    def from_url(cls, url: str):
        return cls(create_engine(
            normalize_database_url(url),
            pool_pre_ping=True,  # Survives dropped connections between requests
            pool_timeout=30,
        ))


def normalize_database_url(url: str) -> str:
    # Hosting platforms hand out "postgres://", SQLAlchemy wants "postgresql://"
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def select_backend(settings: Settings) -> Backend:
    """Networked backend when a connection string is configured, embedded file otherwise."""
    if settings.database_url:
        logger.info("DATABASE_URL provided, using PostgreSQL backend")
        return PostgresBackend.from_url(settings.database_url)
    logger.info("DATABASE_URL not set, using SQLite at %s", settings.sqlite_path)
    return SqliteBackend.from_path(settings.sqlite_path)
