"""FastAPI dependency injection — store, services and session lookup."""
from fastapi import Depends, HTTPException, status

from app.services.analysis_service import AnalysisService
from app.services.errors import ChatSessionNotFoundError, ReportNotFoundError
from app.services.llm_client import LLMClient
from app.services.report_engine import ReportEngine
from app.services.report_session import ReportSession
from app.services.report_store import ReportStore, store


def get_store() -> ReportStore:
    return store


def get_llm_client() -> LLMClient:
    return LLMClient()


def get_analysis_service(client: LLMClient = Depends(get_llm_client)) -> AnalysisService:
    return AnalysisService(client)


def get_report_engine() -> ReportEngine:
    return ReportEngine()


def get_report_session(
    report_id: str,
    report_store: ReportStore = Depends(get_store),
) -> ReportSession:
    try:
        return report_store.get_report_session(report_id)
    except ReportNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


def get_chat_session(session_id: str, report_store: ReportStore = Depends(get_store)):
    try:
        return report_store.get_chat(session_id)
    except ChatSessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
