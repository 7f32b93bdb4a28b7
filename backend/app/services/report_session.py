"""
Report session — the single owner of one report's transient view state.

Holds the current Report plus filters, search text, sort key, layer state,
drawing search, active/hovered ids and the export selection. Derived views are
recomputed from that state on demand. A new analysis replaces the Report and
resets all view state.

Analysis and export requests are cancellable: starting a new one cancels the
in-flight one, and a generation counter drops late results from a superseded
request.
"""
from __future__ import annotations

import asyncio
import logging
import os
import uuid
from dataclasses import dataclass, field, replace
from typing import Optional

from app.config import EXPORT_DELAY_SECONDS
from app.models.findings import AnalysisOutcome, AnalysisReport, ComplianceStatus
from app.services import export_builder, layer_manager
from app.services.analysis_service import AnalysisService
from app.services.export_builder import ExportResult, ExportSelection
from app.services.file_intake import DrawingUpload
from app.services.findings_pipeline import (
    ALL,
    FindingsView,
    SortKey,
    StatusFilter,
    breakdown_chart,
    process_findings,
    status_breakdown,
)
from app.services.layer_manager import LayerState
from app.services.overlay_mapper import OverlayView, build_overlay
from app.services.report_engine import ReportEngine

logger = logging.getLogger("sbc-session")

SUPERSEDED = "superseded"


def _remove_pdf(path: Optional[str]) -> None:
    if path and os.path.exists(path):
        os.remove(path)
        logger.info(f"Removed export file {path}")


@dataclass(frozen=True)
class ViewState:
    status_filter: StatusFilter = ALL
    search: str = ""
    sort_key: SortKey = SortKey.SEVERITY
    drawing_search: str = ""
    active_id: Optional[str] = None
    hovered_id: Optional[str] = None


@dataclass
class SessionView:
    findings: FindingsView
    overlay: OverlayView
    layers: LayerState
    layer_menu: list[dict]
    stats: dict[str, int]
    chart: list[dict]
    view_state: ViewState


@dataclass
class ReportSession:
    report_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    report: Optional[AnalysisReport] = None
    image_size: Optional[tuple[int, int]] = None
    view_state: ViewState = field(default_factory=ViewState)
    layers: LayerState = field(default_factory=LayerState)
    export_selection: ExportSelection = field(default_factory=ExportSelection)
    last_outcome: Optional[AnalysisOutcome] = None
    last_export: Optional[ExportResult] = None
    is_analyzing: bool = False
    is_exporting: bool = False

    _generation: int = 0
    _analysis_task: Optional[asyncio.Task] = field(default=None, repr=False)
    _export_task: Optional[asyncio.Task] = field(default=None, repr=False)

    # ── Report lifecycle ──────────────────────────────────────────────────────

    def load_report(self, report: AnalysisReport, image_size: Optional[tuple[int, int]] = None):
        """Replace the report and discard all view state scoped to the old one."""
        categories = report.all_categories()
        self.report = report
        self.image_size = image_size
        self.view_state = ViewState()
        self.layers = layer_manager.initial_state(categories)
        self.export_selection = export_builder.initial_selection(categories)
        self._replace_export(None)

    async def analyze(self, upload: DrawingUpload, service: AnalysisService) -> AnalysisOutcome:
        """
        Run an analysis for ``upload``. A newer call cancels this one; if this
        call is superseded its result is dropped and a failed outcome returned.
        """
        self._generation += 1
        generation = self._generation
        if self._analysis_task and not self._analysis_task.done():
            logger.info(f"[{self.report_id}] Cancelling superseded analysis")
            self._analysis_task.cancel()

        task = asyncio.ensure_future(
            service.analyze_drawing_image(upload.image_base64, upload.file_name, upload.mime_type)
        )
        self._analysis_task = task
        self.is_analyzing = True
        try:
            outcome = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                return AnalysisOutcome.failed(SUPERSEDED)
            raise
        finally:
            if generation == self._generation:
                self.is_analyzing = False

        if generation != self._generation:
            logger.info(f"[{self.report_id}] Dropping late analysis result for '{upload.file_name}'")
            return AnalysisOutcome.failed(SUPERSEDED)

        self.last_outcome = outcome
        if outcome.report is not None:
            self.load_report(outcome.report, upload.image_size)
        return outcome

    # ── View state ────────────────────────────────────────────────────────────

    def update_view(self, **changes) -> ViewState:
        if changes.get("sort_key") is not None:
            changes["sort_key"] = SortKey(changes["sort_key"])
        if changes.get("status_filter") is not None and not isinstance(changes["status_filter"], ComplianceStatus):
            status = str(changes["status_filter"]).upper()
            changes["status_filter"] = ALL if status == ALL else ComplianceStatus(status)
        self.view_state = replace(self.view_state, **changes)
        return self.view_state

    def select_finding(self, finding_id: Optional[str]) -> ViewState:
        return self.update_view(active_id=finding_id)

    def hover_finding(self, finding_id: Optional[str]) -> ViewState:
        return self.update_view(hovered_id=finding_id)

    def toggle_layer(self, category: str) -> LayerState:
        self.layers = layer_manager.toggle_layer(self.layers, category)
        return self.layers

    def toggle_base(self) -> LayerState:
        self.layers = layer_manager.toggle_base(self.layers)
        return self.layers

    def reset_layers(self) -> LayerState:
        self.layers = layer_manager.reset(self.layers)
        return self.layers

    def view(self, state: Optional[ViewState] = None) -> SessionView:
        """Recompute every derived view from the report and ``state``."""
        if self.report is None:
            raise LookupError("No report loaded")
        vs = state or self.view_state
        processed = process_findings(self.report.findings, vs.status_filter, vs.search, vs.sort_key)
        overlay = build_overlay(
            processed.findings,
            hidden=self.layers.hidden,
            drawing_search=vs.drawing_search,
            active_id=vs.active_id,
            hovered_id=vs.hovered_id,
            image_size=self.image_size,
        )
        return SessionView(
            findings=processed,
            overlay=overlay,
            layers=self.layers,
            layer_menu=layer_manager.layer_menu(self.layers, self.report.findings),
            stats=status_breakdown(self.report.findings),
            chart=breakdown_chart(self.report.findings),
            view_state=vs,
        )

    # ── Export ────────────────────────────────────────────────────────────────

    def update_export(self, selection: ExportSelection) -> ExportSelection:
        self.export_selection = selection
        return selection

    async def export(
        self,
        engine: Optional[ReportEngine] = None,
        delay: float = EXPORT_DELAY_SECONDS,
    ) -> ExportResult:
        """Generate the PDF for the current selection; a newer export cancels this one."""
        if self.report is None:
            raise LookupError("No report loaded")
        if self._export_task and not self._export_task.done():
            logger.info(f"[{self.report_id}] Cancelling superseded export")
            self._export_task.cancel()

        package = export_builder.build_package(self.report, self.export_selection)
        task = asyncio.ensure_future(
            export_builder.submit_export(package, engine or ReportEngine(), uuid.uuid4().hex, delay=delay)
        )
        self._export_task = task
        self.is_exporting = True
        try:
            result = await task
        except asyncio.CancelledError:
            if self._export_task is not task:
                return ExportResult(ok=False, message=SUPERSEDED)
            raise
        finally:
            if self._export_task is task:
                self.is_exporting = False

        if self._export_task is not task:
            _remove_pdf(result.path)
            return ExportResult(ok=False, message=SUPERSEDED)
        self._replace_export(result)
        return result

    def _replace_export(self, result: Optional[ExportResult]) -> None:
        """Only the latest export keeps its file on disk."""
        old = self.last_export
        if old is not None and (result is None or old.path != result.path):
            _remove_pdf(old.path)
        self.last_export = result

    # ── Teardown ──────────────────────────────────────────────────────────────

    def close(self) -> None:
        """Cancel in-flight work and delete the generated PDF. Called on eviction."""
        for task in (self._analysis_task, self._export_task):
            if task is not None and not task.done():
                task.cancel()
        self._replace_export(None)
