import asyncio
import json

import httpx
import pytest

from truckcheck.client.api import ReportsClient
from truckcheck.client.form import CAMERA_ERROR, ReportForm
from truckcheck.client.submission import (
    CONNECTION_ERROR, MISSING_IDENTITY, MISSING_SIGNATURE, SAVED, TIMEOUT_ERROR, SubmissionFlow,
)
from truckcheck.errors import CameraAccessError

STORED = {
    "id": 7, "driverName": "علي", "truckNumber": "T-1", "date": "2024-01-01",
    "damagePoints": [], "inspectionValues": {"1": True}, "toolValues": {}, "toolImages": {},
    "driverSignature": "data:image/png;base64,AAAA", "createdAt": "2024-01-01T08:00:00",
}


class Backend:
    """Records requests and answers like the reports API."""

    def __init__(self, post_status=200, post_body=None, delay=0.0):
        self.requests = []
        self.post_status = post_status
        self.post_body = post_body if post_body is not None else {"success": True, "id": 7}
        self.delay = delay

    async def __call__(self, request: httpx.Request):
        self.requests.append(request)
        if request.method == "POST":
            if self.delay:
                await asyncio.sleep(self.delay)
            return httpx.Response(self.post_status, json=self.post_body)
        return httpx.Response(200, json=[STORED])

    @property
    def posts(self):
        return [r for r in self.requests if r.method == "POST"]


def filled_form():
    form = ReportForm()
    form.driver_name = "علي"
    form.truck_number = "T-1"
    form.set_signature("driver_signature", "data:image/png;base64,AAAA")
    form.set_inspection(1, True)
    return form


def flow_for(backend, form=None):
    client = ReportsClient("http://test", transport=httpx.MockTransport(backend))
    return SubmissionFlow(client, form)


def test_missing_identity_sends_nothing():
    backend = Backend()
    form = filled_form()
    form.truck_number = "  "
    flow = flow_for(backend, form)

    assert asyncio.run(flow.submit()) is None
    assert flow.message == MISSING_IDENTITY
    assert backend.requests == []


def test_missing_signature_sends_nothing():
    backend = Backend()
    form = filled_form()
    form.set_signature("driver_signature", "")
    flow = flow_for(backend, form)

    asyncio.run(flow.submit())
    assert flow.message == MISSING_SIGNATURE
    assert backend.requests == []


def test_success_refreshes_listing():
    backend = Backend()
    flow = flow_for(backend, filled_form())

    assert asyncio.run(flow.submit()) == 7
    assert flow.submitted is True
    assert flow.message == SAVED
    assert [r.id for r in flow.reports] == [7]
    assert flow.reports[0].inspection_values == {1: True}
    assert [r.method for r in backend.requests] == ["POST", "GET"]

    sent = json.loads(backend.posts[0].content)
    assert sent["driverName"] == "علي"
    assert sent["inspectionValues"] == {"1": True}


def test_concurrent_submit_posts_once():
    backend = Backend(delay=0.05)
    flow = flow_for(backend, filled_form())

    async def double_click():
        return await asyncio.gather(flow.submit(), flow.submit())

    results = asyncio.run(double_click())
    assert sorted(results, key=str) == [7, None]
    assert len(backend.posts) == 1


def test_backend_failure_keeps_form():
    backend = Backend(post_status=500, post_body={"success": False, "error": "Failed to save report"})
    form = filled_form()
    form.add_damage_point(12, 34, severity="high")
    flow = flow_for(backend, form)

    assert asyncio.run(flow.submit()) is None
    assert flow.submitted is False
    assert flow.message.endswith("Failed to save report")
    assert flow.form.driver_name == "علي"
    assert len(flow.form.damage_points) == 1
    assert flow.submitting is False


def test_unknown_backend_error_uses_generic_text():
    backend = Backend(post_status=200, post_body={"success": False})
    flow = flow_for(backend, filled_form())
    asyncio.run(flow.submit())
    assert flow.message.endswith("خطأ غير معروف")


@pytest.mark.parametrize("exc, message", [
    (httpx.ReadTimeout("slow"), TIMEOUT_ERROR),
    (httpx.ConnectError("refused"), CONNECTION_ERROR),
])
def test_transport_failures(exc, message):
    def handler(request):
        raise exc

    flow = flow_for(handler, filled_form())
    assert asyncio.run(flow.submit()) is None
    assert flow.message == message
    assert flow.submitting is False


def test_reset_starts_new_inventory():
    flow = flow_for(Backend(), filled_form())
    asyncio.run(flow.submit())
    flow.reset()
    assert flow.submitted is False
    assert flow.form.driver_name == ""
    assert flow.form.driver_signature == ""
    assert flow.form.inspection_values == {}


def test_damage_points_clamped_and_editable():
    form = ReportForm()
    point = form.add_damage_point(120, -5)
    assert (point.x, point.y) == (100.0, 0.0)

    form.update_damage_point(point.id, description="صدمة", severity="low")
    assert form.damage_points[0].severity == "low"
    form.remove_damage_point(point.id)
    assert form.damage_points == []


def test_camera_failure_keeps_existing_images():
    form = ReportForm()
    assert form.attach_tool_images(3, lambda: ["data:image/png;base64,A"]) is None

    def broken_camera():
        raise CameraAccessError("permission denied")

    assert form.attach_tool_images(3, broken_camera) == CAMERA_ERROR
    assert form.tool_images == {3: ["data:image/png;base64,A"]}


def test_unknown_signature_slot():
    with pytest.raises(KeyError):
        ReportForm().set_signature("mechanic_signature", "x")


def test_client_timeout_from_settings():
    from truckcheck.config import Settings

    client = ReportsClient.from_settings("http://test", Settings(request_timeout=12.5))
    assert client._client.timeout.read == 12.5
    asyncio.run(client.aclose())
