import pytest
from sqlalchemy import create_engine, text

from truckcheck.database import SqliteBackend, select_backend, PostgresBackend
from truckcheck.config import Settings
from truckcheck.errors import StorageError
from truckcheck.services.store import ReportStore


def test_list_is_newest_first(store, sample_report):
    first = store.create_report(sample_report)
    second = store.create_report(sample_report.model_copy(update={"truck_number": "XYZ-9"}))
    third = store.create_report(sample_report)

    assert [r.id for r in store.list_reports()] == [third, second, first]


def test_created_at_orders_before_id(store, sample_report):
    older = store.create_report(sample_report)
    newer = store.create_report(sample_report)
    with store.backend.engine.begin() as conn:
        conn.execute(text('UPDATE reports SET "createdAt" = :ts WHERE id = :id'),
                     {"ts": "2030-01-01 00:00:00", "id": older})
    assert [r.id for r in store.list_reports()] == [older, newer]


def test_get_missing_report_returns_none(store):
    assert store.get_report(999) is None


def test_malformed_row_does_not_abort_listing(store, sample_report):
    good = store.create_report(sample_report)
    bad = store.create_report(sample_report)
    with store.backend.engine.begin() as conn:
        conn.execute(text('UPDATE reports SET "inspectionValues" = :v WHERE id = :id'), {"v": "{oops", "id": bad})

    reports = {r.id: r for r in store.list_reports()}
    assert reports[bad].inspection_values == "{oops"
    assert reports[good].inspection_values == {1: True, 2: False}


def test_unavailable_backend_degrades_then_recovers(tmp_path, sample_report):
    missing_dir = tmp_path / "later"
    store = ReportStore(SqliteBackend.from_path(str(missing_dir / "reports.db")))

    assert store.init() is False
    assert store.ready is False
    with pytest.raises(StorageError):
        store.create_report(sample_report)
    with pytest.raises(StorageError):
        store.list_reports()

    missing_dir.mkdir()
    report_id = store.create_report(sample_report)
    assert store.ready is True
    assert store.get_report(report_id).truck_number == "ABC-123"
    store.close()


def test_driver_errors_become_storage_errors(store, sample_report):
    with store.backend.engine.begin() as conn:
        conn.execute(text("DROP TABLE reports"))
    with pytest.raises(StorageError, match="Failed to fetch reports"):
        store.list_reports()
    with pytest.raises(StorageError, match="Failed to save report"):
        store.create_report(sample_report)


def test_select_backend(tmp_path):
    embedded = select_backend(Settings(sqlite_path=str(tmp_path / "r.db")))
    assert isinstance(embedded, SqliteBackend)
    assert embedded.kind == "sqlite"
    embedded.dispose()

    networked = select_backend(Settings(database_url="postgres://user:pw@localhost:5432/trucks"))
    assert isinstance(networked, PostgresBackend)
    assert networked.engine.url.drivername == "postgresql"
    networked.dispose()


def test_sqlite_uses_wal(sqlite_backend):
    with sqlite_backend.engine.connect() as conn:
        assert conn.execute(text("PRAGMA journal_mode")).scalar() == "wal"
