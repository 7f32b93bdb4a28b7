"""Analysis API — drawing upload, validation and analysis dispatch."""
import asyncio
import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel

from app.api.deps import get_analysis_service, get_store
from app.models.findings import AnalysisOutcome
from app.services.analysis_service import AnalysisService
from app.services.errors import ReportNotFoundError, UploadValidationError
from app.services.file_intake import DrawingUpload, intake_data_url, intake_upload
from app.services.report_session import ReportSession
from app.services.report_store import ReportStore

logger = logging.getLogger("sbc-ingestion")

router = APIRouter(prefix="/api/analysis", tags=["Drawing Analysis"])


class DataUrlUpload(BaseModel):
    file_name: str = "drawing"
    data_url: str                       # "data:image/png;base64,...."


async def _intake(file: UploadFile) -> DrawingUpload:
    data = await file.read()
    try:
        return intake_upload(file.filename or "drawing", file.content_type, data)
    except UploadValidationError as e:
        logger.info(f"Upload rejected: {e}")
        raise HTTPException(status_code=e.status_code, detail=str(e))


async def _analyze(session: ReportSession, upload: DrawingUpload, service: AnalysisService) -> dict:
    outcome: AnalysisOutcome = await session.analyze(upload, service)
    logger.info(f"[{session.report_id}] Analysis outcome for '{upload.file_name}': {outcome.kind}")
    return {
        "report_id": session.report_id,
        "kind": outcome.kind,
        "reason": outcome.reason,
        "report": (
            outcome.report.model_dump(mode="json", by_alias=True, exclude={"image_base64"})
            if outcome.report else None
        ),
    }


async def _analyze_new(upload: DrawingUpload, report_store: ReportStore, service: AnalysisService) -> dict:
    session = report_store.new_report_session()
    try:
        return await _analyze(session, upload, service)
    except asyncio.CancelledError:
        # Client went away before a report existed; nothing else references the session
        report_store.discard(session.report_id)
        raise


@router.post("/upload")
async def upload_drawing(
    file: UploadFile = File(...),
    report_store: ReportStore = Depends(get_store),
    service: AnalysisService = Depends(get_analysis_service),
):
    """
    Validate and analyse a drawing image (JPEG/PNG/WEBP).
    Provider failures still return 200 with kind="degraded" and the fallback report.
    """
    upload = await _intake(file)
    return await _analyze_new(upload, report_store, service)


@router.post("/upload-data-url")
async def upload_drawing_data_url(
    req: DataUrlUpload,
    report_store: ReportStore = Depends(get_store),
    service: AnalysisService = Depends(get_analysis_service),
):
    """Same as /upload for a browser FileReader data URL sent as JSON."""
    try:
        upload = intake_data_url(req.file_name, req.data_url)
    except UploadValidationError as e:
        logger.info(f"Data URL upload rejected: {e}")
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return await _analyze_new(upload, report_store, service)


@router.post("/{report_id}/reanalyze")
async def reanalyze_drawing(
    report_id: str,
    file: UploadFile = File(...),
    report_store: ReportStore = Depends(get_store),
    service: AnalysisService = Depends(get_analysis_service),
):
    """
    Replace the report of an existing session with a new analysis.
    An in-flight analysis for the same session is cancelled and returns kind="failed".
    """
    try:
        session = report_store.get_report_session(report_id, require_report=False)
    except ReportNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    upload = await _intake(file)
    return await _analyze(session, upload, service)
