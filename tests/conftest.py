import base64
from io import BytesIO

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import create_engine

from truckcheck.config import Settings
from truckcheck.database import PostgresBackend, SqliteBackend
from truckcheck.main import create_app
from truckcheck.schemas.reports import DamagePoint, ReportCreate
from truckcheck.services.store import ReportStore


def png_data_uri(size=(40, 20), color=(200, 30, 30, 255)) -> str:
    buf = BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode()


@pytest.fixture
def settings(tmp_path):
    return Settings(sqlite_path=str(tmp_path / "reports.db"), export_settle_delay=0, export_timeout=60)


@pytest.fixture
def sqlite_backend(tmp_path):
    backend = SqliteBackend.from_path(str(tmp_path / "reports.db"))
    yield backend
    backend.dispose()


@pytest.fixture
def lowercase_backend(tmp_path):
    # Same Core statements as on PostgreSQL, rendered against a file-backed SQLite engine
    backend = PostgresBackend(create_engine(f"sqlite:///{tmp_path / 'pg.db'}"))
    yield backend
    backend.dispose()


@pytest.fixture(params=["sqlite", "postgres"])
def backend(request):
    name = "sqlite_backend" if request.param == "sqlite" else "lowercase_backend"
    return request.getfixturevalue(name)


@pytest.fixture
def store(sqlite_backend):
    store = ReportStore(sqlite_backend)
    assert store.init()
    return store


@pytest.fixture
def client(settings, store):
    with TestClient(create_app(settings, store)) as c:
        yield c


@pytest.fixture
def sample_report():
    return ReportCreate(
        driver_name="أحمد",
        truck_number="ABC-123",
        date="2024-05-01",
        damage_points=[DamagePoint(id="p1", x=10, y=20, description="خدش", severity="high")],
        inspection_values={1: True, 2: False},
        tool_values={1: 2, 5: 0},
        tool_images={1: [png_data_uri()]},
        driver_signature=png_data_uri((60, 20), (0, 0, 0, 255)),
    )
