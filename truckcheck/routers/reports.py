import logging
from typing import List
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, StreamingResponse

from ..errors import ExportError, StorageError
from ..schemas.reports import ErrorOut, Report, ReportCreate, ReportCreated
from ..services.pdf import ReportExporter
from ..services.store import ReportStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reports", tags=["Reports"])


def get_store(request: Request) -> ReportStore:
    return request.app.state.store


def storage_failure(e: StorageError) -> JSONResponse:
    return JSONResponse(status_code=500, content=ErrorOut(error=str(e)).model_dump())


# ==========================
# 1. SAVE A REPORT
# ==========================
@router.post("", response_model=ReportCreated, responses={500: {"model": ErrorOut}})
def create_report(report: ReportCreate, store: ReportStore = Depends(get_store)):
    try:
        report_id = store.create_report(report)
    except StorageError as e:
        return storage_failure(e)
    return ReportCreated(id=report_id)


# ==========================
# 2. LIST (newest first)
# ==========================
@router.get("", response_model=List[Report], responses={500: {"model": ErrorOut}})
def read_reports(store: ReportStore = Depends(get_store)):
    try:
        return store.list_reports()
    except StorageError as e:
        return storage_failure(e)


# ==========================
# 3. SINGLE REPORT
# ==========================
@router.get("/{report_id}", response_model=Report, responses={500: {"model": ErrorOut}})
def read_report(report_id: int, store: ReportStore = Depends(get_store)):
    try:
        report = store.get_report(report_id)
    except StorageError as e:
        return storage_failure(e)
    if not report: raise HTTPException(404, "Report not found")
    return report


# ==========================
# 4. PDF EXPORT
# ==========================
@router.get("/{report_id}/pdf")
async def download_report_pdf(report_id: int, request: Request, store: ReportStore = Depends(get_store)):
    try:
        report = await run_in_threadpool(store.get_report, report_id)
    except StorageError as e:
        return storage_failure(e)
    if not report: raise HTTPException(404, "Report not found")

    exporter = ReportExporter(request.app.state.settings)
    try:
        result = await exporter.export(report)
    except ExportError as e:
        logger.error("PDF export of report %s failed: %s", report_id, e)
        return JSONResponse(status_code=500, content=ErrorOut(error=str(e)).model_dump())

    # Arabic truck numbers need the RFC 5987 form
    disposition = f"attachment; filename*=UTF-8''{quote(result.filename)}"
    return StreamingResponse(result.buffer, media_type="application/pdf", headers={"Content-Disposition": disposition})
