from fastapi.testclient import TestClient

from truckcheck.main import create_app
from truckcheck.services.store import ReportStore
from truckcheck.database import SqliteBackend

from conftest import png_data_uri


def payload(**overrides):
    body = {
        "driverName": "سالم",
        "truckNumber": "AB/12*34",
        "date": "2024-06-02",
        "damagePoints": [{"id": "d1", "x": 55.5, "y": 40, "description": "كسر في المرآة", "severity": "low"}],
        "inspectionValues": {"1": True, "3": False},
        "toolValues": {"2": 1},
        "toolImages": {},
        "driverSignature": png_data_uri(),
    }
    body.update(overrides)
    return body


def test_root_reports_backend(client):
    res = client.get("/")
    assert res.status_code == 200
    assert res.json()["backend"] == "sqlite"


def test_create_then_list(client):
    res = client.post("/api/reports", json=payload())
    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    report_id = body["id"]

    listed = client.get("/api/reports").json()
    assert [r["id"] for r in listed] == [report_id]
    report = listed[0]
    assert report["driverName"] == "سالم"
    assert report["damagePoints"][0]["x"] == 55.5
    assert report["inspectionValues"] == {"1": True, "3": False}
    assert report["createdAt"]


def test_get_single_report_and_404(client):
    report_id = client.post("/api/reports", json=payload()).json()["id"]
    assert client.get(f"/api/reports/{report_id}").json()["truckNumber"] == "AB/12*34"

    res = client.get("/api/reports/4242")
    assert res.status_code == 404


def test_missing_required_field_is_rejected(client):
    body = payload()
    del body["driverName"]
    assert client.post("/api/reports", json=body).status_code == 422


def test_storage_failure_answers_500(settings, tmp_path):
    store = ReportStore(SqliteBackend.from_path(str(tmp_path / "missing" / "reports.db")))
    with TestClient(create_app(settings, store)) as c:
        res = c.post("/api/reports", json=payload())
        assert res.status_code == 500
        assert res.json()["success"] is False
        assert res.json()["error"]

        res = c.get("/api/reports")
        assert res.status_code == 500
        assert res.json() == {"success": False, "error": "sqlite backend unavailable"}


def test_pdf_download(client):
    report_id = client.post("/api/reports", json=payload()).json()["id"]
    res = client.get(f"/api/reports/{report_id}/pdf")
    assert res.status_code == 200
    assert res.headers["content-type"] == "application/pdf"
    assert res.content.startswith(b"%PDF")
    assert "report-AB1234-2024-06-02.pdf" in res.headers["content-disposition"]


def test_pdf_of_missing_report_is_404(client):
    assert client.get("/api/reports/77/pdf").status_code == 404


def test_first_report_round_trip(client):
    body = {
        "driverName": "Ali", "truckNumber": "99", "date": "2024-01-01",
        "damagePoints": [], "inspectionValues": {"1": True}, "toolValues": {"1": 2}, "toolImages": {},
        "driverSignature": "data:image/png;base64,AAAA",
    }
    assert client.post("/api/reports", json=body).json() == {"success": True, "id": 1}

    listed = client.get("/api/reports").json()
    assert len(listed) == 1
    assert listed[0]["id"] == 1
    assert listed[0]["truckNumber"] == "99"
    assert listed[0]["inspectionValues"] == {"1": True}


def test_outage_surfaces_message_and_keeps_form(settings, tmp_path):
    import asyncio

    import httpx

    from truckcheck.client.api import ReportsClient
    from truckcheck.client.submission import SAVE_FAILED, SubmissionFlow

    store = ReportStore(SqliteBackend.from_path(str(tmp_path / "offline" / "reports.db")))
    app = create_app(settings, store)
    flow = SubmissionFlow(ReportsClient("http://test", transport=httpx.ASGITransport(app=app)))
    flow.form.driver_name = "Ali"
    flow.form.truck_number = "99"
    flow.form.set_signature("driver_signature", "data:image/png;base64,AAAA")

    assert asyncio.run(flow.submit()) is None
    assert flow.message.startswith(SAVE_FAILED)
    assert flow.submitted is False
    assert (flow.form.driver_name, flow.form.truck_number) == ("Ali", "99")


def test_pdf_route_reads_store_off_the_event_loop(client, store, monkeypatch):
    import asyncio

    report_id = client.post("/api/reports", json=payload()).json()["id"]
    real_get = store.get_report
    loops = []

    def recording_get(report_id):
        try:
            asyncio.get_running_loop()
            loops.append(True)
        except RuntimeError:
            loops.append(False)
        return real_get(report_id)

    monkeypatch.setattr(store, "get_report", recording_get)
    assert client.get(f"/api/reports/{report_id}/pdf").status_code == 200
    assert loops == [False]
