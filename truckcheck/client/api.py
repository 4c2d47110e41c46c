from typing import List, Optional

import httpx
from pydantic import TypeAdapter

from ..config import Settings, get_settings
from ..errors import StorageError
from ..schemas.reports import Report

_REPORT_LIST = TypeAdapter(List[Report])


class ReportsClient:
    """Async client for the reports API.

    Backend failures reported as `{success: false, error}` raise StorageError
    carrying the backend's reason; transport problems (including timeouts)
    surface as httpx exceptions.
    """

    def __init__(self, base_url: str, timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    @classmethod
    def from_settings(cls, base_url: str, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        return cls(base_url, timeout=settings.request_timeout)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    @staticmethod
    def _error_reason(response: httpx.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return None
        return body.get("error") if isinstance(body, dict) else None

    async def create_report(self, payload: dict) -> int:
        response = await self._client.post("/api/reports", json=payload)
        if response.status_code != 200:
            raise StorageError(self._error_reason(response) or "")
        body = response.json()
        if not body.get("success"):
            raise StorageError(body.get("error") or "")
        return int(body["id"])

    async def list_reports(self) -> List[Report]:
        response = await self._client.get("/api/reports")
        if response.status_code != 200:
            raise StorageError(self._error_reason(response) or f"HTTP {response.status_code}")
        return _REPORT_LIST.validate_python(response.json())

    async def get_report(self, report_id: int) -> Optional[Report]:
        response = await self._client.get(f"/api/reports/{report_id}")
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise StorageError(self._error_reason(response) or f"HTTP {response.status_code}")
        return Report.model_validate(response.json())

    async def download_pdf(self, report_id: int) -> bytes:
        response = await self._client.get(f"/api/reports/{report_id}/pdf")
        response.raise_for_status()
        return response.content
