"""
Report Routes — findings view, drawing layers and PDF export for one report.

GET   /api/reports/{report_id}                     — the immutable report
GET   /api/reports/{report_id}/view                — filtered/sorted/grouped list + overlay
PATCH /api/reports/{report_id}/view                — update filters, search, sort, selection
POST  /api/reports/{report_id}/layers/...          — layer visibility (category names may contain "/")
GET   /api/reports/{report_id}/export              — export dialog state
POST  /api/reports/{report_id}/export/submit       — generate the PDF
GET   /api/reports/{report_id}/export/download     — fetch the last generated PDF
"""
import logging
import os
from dataclasses import asdict
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse
from pydantic import BaseModel

from app.api.deps import get_llm_client, get_report_engine, get_report_session, get_store
from app.config import STATUS_FILTER_OPTIONS
from app.models.findings import ComplianceFinding, ComplianceStatus
from app.services import export_builder
from app.services.chat_service import ChatSession, consult_prompt
from app.services.errors import ChatSessionNotFoundError
from app.services.export_builder import ExportSelection
from app.services.findings_pipeline import SortKey
from app.services.layer_manager import LayerState
from app.services.llm_client import LLMClient
from app.services.overlay_mapper import OverlayView
from app.services.report_engine import ReportEngine
from app.services.report_session import SUPERSEDED, ReportSession, SessionView, ViewState
from app.services.report_store import ReportStore

router = APIRouter(prefix="/api/reports", tags=["Reports"])
logger = logging.getLogger("sbc-report-routes")


class ViewUpdateRequest(BaseModel):
    status_filter: Optional[str] = None           # "ALL" or a ComplianceStatus
    search: Optional[str] = None
    sort_key: Optional[SortKey] = None
    drawing_search: Optional[str] = None
    active_id: Optional[str] = None
    hovered_id: Optional[str] = None
    clear_active: bool = False
    clear_hovered: bool = False


class ExportUpdateRequest(BaseModel):
    orientation: Optional[Literal["portrait", "landscape"]] = None
    include_summary: Optional[bool] = None
    include_charts: Optional[bool] = None
    include_bounding_boxes: Optional[bool] = None


# ── Serializers ───────────────────────────────────────────────────────────────

def _finding(f: ComplianceFinding) -> dict:
    return f.model_dump(mode="json", by_alias=True)


def _layers(layers: LayerState, menu: list[dict]) -> dict:
    return {
        "show_base": layers.show_base,
        "hidden": sorted(layers.hidden),
        "menu": menu,
    }


def _overlay(overlay: OverlayView) -> dict:
    return {
        "regions": [asdict(r) for r in overlay.regions],
        "tooltip": asdict(overlay.tooltip) if overlay.tooltip else None,
        "aspect_ratio": overlay.aspect_ratio,
        "zones_visible": overlay.zones_visible,
    }


def _view_state(vs: ViewState) -> dict:
    status = vs.status_filter
    return {
        "status_filter": status.value if isinstance(status, ComplianceStatus) else status,
        "search": vs.search,
        "sort_key": SortKey(vs.sort_key).value,
        "drawing_search": vs.drawing_search,
        "active_id": vs.active_id,
        "hovered_id": vs.hovered_id,
    }


def _view(view: SessionView) -> dict:
    grouped = view.findings.grouped
    return {
        "state": _view_state(view.view_state),
        "filter_options": [{"id": i, "label": label} for i, label in STATUS_FILTER_OPTIONS],
        "count": len(view.findings.findings),
        "is_empty": view.findings.is_empty,
        "findings": [_finding(f) for f in view.findings.findings],
        "groups": {cat: [f.id for f in items] for cat, items in grouped.groups.items()},
        "nav": grouped.nav(),
        "overlay": _overlay(view.overlay),
        "layers": _layers(view.layers, view.layer_menu),
        "stats": view.stats,
        "chart": view.chart,
    }


def _export_state(session: ReportSession) -> dict:
    sel = session.export_selection
    last = session.last_export
    return {
        "options": asdict(sel.options),
        "categories": list(sel.categories),
        "all_categories": list(sel.known_categories),
        "statuses": [s.value for s in sel.statuses],
        "is_exporting": session.is_exporting,
        "last_export": {"ok": last.ok, "message": last.message} if last else None,
    }


# ── Report + view ─────────────────────────────────────────────────────────────

@router.get("/{report_id}")
async def get_report(report_id: str, session: ReportSession = Depends(get_report_session)):
    return {
        "report_id": report_id,
        "kind": session.last_outcome.kind if session.last_outcome else "ok",
        "report": session.report.model_dump(mode="json", by_alias=True),
    }


@router.get("/{report_id}/view")
async def get_view(
    report_id: str,
    status_filter: Optional[str] = None,
    search: Optional[str] = None,
    sort_key: Optional[SortKey] = None,
    drawing_search: Optional[str] = None,
    session: ReportSession = Depends(get_report_session),
):
    """
    Derived view for the session state. Query parameters override the stored
    state for this request only.
    """
    overrides = {
        k: v for k, v in {
            "status_filter": status_filter,
            "search": search,
            "sort_key": sort_key,
            "drawing_search": drawing_search,
        }.items() if v is not None
    }
    try:
        state = ViewState(**{**asdict(session.view_state), **overrides})
        return _view(session.view(state))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.patch("/{report_id}/view")
async def update_view(
    report_id: str,
    req: ViewUpdateRequest,
    session: ReportSession = Depends(get_report_session),
):
    changes = req.model_dump(exclude_none=True, exclude={"clear_active", "clear_hovered"})
    if req.clear_active:
        changes["active_id"] = None
    if req.clear_hovered:
        changes["hovered_id"] = None
    try:
        session.update_view(**changes)
        return _view(session.view())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# ── Layers ────────────────────────────────────────────────────────────────────

@router.post("/{report_id}/layers/base/toggle")
async def toggle_base_layer(report_id: str, session: ReportSession = Depends(get_report_session)):
    session.toggle_base()
    view = session.view()
    return _layers(view.layers, view.layer_menu)


@router.post("/{report_id}/layers/reset")
async def reset_layers(report_id: str, session: ReportSession = Depends(get_report_session)):
    session.reset_layers()
    view = session.view()
    return _layers(view.layers, view.layer_menu)


@router.post("/{report_id}/layers/categories/{category:path}/toggle")
async def toggle_layer(
    report_id: str,
    category: str,
    session: ReportSession = Depends(get_report_session),
):
    """
    Unknown categories are accepted and leave the layer state unchanged.
    The name may contain "/"; "base" is an ordinary category here.
    """
    session.toggle_layer(category)
    view = session.view()
    return _layers(view.layers, view.layer_menu)


# ── Export ────────────────────────────────────────────────────────────────────

@router.get("/{report_id}/export")
async def get_export(report_id: str, session: ReportSession = Depends(get_report_session)):
    return _export_state(session)


@router.patch("/{report_id}/export")
async def update_export(
    report_id: str,
    req: ExportUpdateRequest,
    session: ReportSession = Depends(get_report_session),
):
    sel: ExportSelection = session.export_selection
    if req.orientation is not None:
        sel = export_builder.set_orientation(sel, req.orientation)
    for name in export_builder.BOOLEAN_OPTIONS:
        wanted = getattr(req, name)
        if wanted is not None and wanted != getattr(sel.options, name):
            sel = export_builder.toggle_option(sel, name)
    session.update_export(sel)
    return _export_state(session)


@router.post("/{report_id}/export/categories/select-all")
async def select_all_export_categories(report_id: str, session: ReportSession = Depends(get_report_session)):
    session.update_export(export_builder.select_all_categories(session.export_selection))
    return _export_state(session)


@router.post("/{report_id}/export/categories/deselect-all")
async def deselect_all_export_categories(report_id: str, session: ReportSession = Depends(get_report_session)):
    session.update_export(export_builder.deselect_all(session.export_selection))
    return _export_state(session)


@router.post("/{report_id}/export/categories/toggle-all")
async def toggle_all_export_categories(report_id: str, session: ReportSession = Depends(get_report_session)):
    session.update_export(export_builder.toggle_all_categories(session.export_selection))
    return _export_state(session)


@router.post("/{report_id}/export/categories/{category:path}/toggle")
async def toggle_export_category(
    report_id: str,
    category: str,
    session: ReportSession = Depends(get_report_session),
):
    session.update_export(export_builder.toggle_category(session.export_selection, category))
    return _export_state(session)


@router.post("/{report_id}/export/statuses/{status}/toggle")
async def toggle_export_status(
    report_id: str,
    status: ComplianceStatus,
    session: ReportSession = Depends(get_report_session),
):
    session.update_export(export_builder.toggle_status(session.export_selection, status))
    return _export_state(session)


@router.post("/{report_id}/export/submit")
async def submit_export(
    report_id: str,
    session: ReportSession = Depends(get_report_session),
    engine: ReportEngine = Depends(get_report_engine),
):
    result = await session.export(engine)
    if not result.ok and result.message != SUPERSEDED:
        raise HTTPException(status_code=502, detail=result.message)
    return {"ok": result.ok, "message": result.message}


@router.get("/{report_id}/export/download")
async def download_export(report_id: str, session: ReportSession = Depends(get_report_session)):
    last = session.last_export
    if not last or not last.ok or not last.path or not os.path.exists(last.path):
        raise HTTPException(status_code=404, detail="No generated PDF for this report")
    stem = os.path.splitext(session.report.file_name or "drawing")[0]
    return FileResponse(last.path, media_type="application/pdf", filename=f"{stem}_compliance.pdf")


# ── Consult ───────────────────────────────────────────────────────────────────

class ConsultRequest(BaseModel):
    session_id: Optional[str] = None    # continue an existing chat; new chat when omitted


@router.post("/{report_id}/findings/{finding_id}/consult")
async def consult_finding(
    report_id: str,
    finding_id: str,
    req: Optional[ConsultRequest] = None,
    session: ReportSession = Depends(get_report_session),
    report_store: ReportStore = Depends(get_store),
    client: LLMClient = Depends(get_llm_client),
):
    """Seed the consultant chat with a question about one finding."""
    finding = session.report.find(finding_id)
    if finding is None:
        raise HTTPException(status_code=404, detail=f"Finding '{finding_id}' not found in report {report_id}")

    if req and req.session_id:
        try:
            chat = report_store.get_chat(req.session_id)
        except ChatSessionNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
    else:
        chat = ChatSession(client)
        report_store.put_chat(chat)

    logger.info(f"[{report_id}] Consult on finding {finding_id} in chat {chat.session_id}")
    reply = await chat.send(consult_prompt(finding))
    return {
        "session_id": chat.session_id,
        "reply": reply.model_dump(mode="json") if reply else None,
        "messages": [m.model_dump(mode="json") for m in chat.messages],
    }
