"""
Export selection — options and category/status selection for the PDF export.

The selection is independent of the on-screen filters: it reads the whole
report and picks findings by the categories and statuses chosen in the export
dialog. State is immutable; each operation returns a new ExportSelection.
"""
from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field, replace
from typing import Iterable, Literal, Optional, Protocol

from app.config import DOWNLOAD_DIR, EXPORT_DELAY_SECONDS, ORIENTATIONS
from app.models.findings import AnalysisReport, ComplianceFinding, ComplianceStatus

logger = logging.getLogger("sbc-export")

Orientation = Literal["portrait", "landscape"]

BOOLEAN_OPTIONS = ("include_summary", "include_charts", "include_bounding_boxes")


@dataclass(frozen=True)
class ExportOptions:
    orientation: Orientation = "portrait"
    include_summary: bool = True
    include_charts: bool = True
    include_bounding_boxes: bool = False


@dataclass(frozen=True)
class ExportSelection:
    options: ExportOptions = field(default_factory=ExportOptions)
    categories: tuple[str, ...] = ()
    statuses: tuple[ComplianceStatus, ...] = tuple(ComplianceStatus)
    known_categories: tuple[str, ...] = ()


def initial_selection(categories: Iterable[str]) -> ExportSelection:
    known = tuple(sorted(set(categories)))
    return ExportSelection(categories=known, known_categories=known)


def set_orientation(selection: ExportSelection, orientation: str) -> ExportSelection:
    if orientation not in ORIENTATIONS:
        raise ValueError(f"orientation must be one of {ORIENTATIONS}, got '{orientation}'")
    return replace(selection, options=replace(selection.options, orientation=orientation))


def toggle_option(selection: ExportSelection, name: str) -> ExportSelection:
    if name not in BOOLEAN_OPTIONS:
        raise ValueError(f"Unknown export option '{name}'")
    current = getattr(selection.options, name)
    return replace(selection, options=replace(selection.options, **{name: not current}))


def toggle_category(selection: ExportSelection, category: str) -> ExportSelection:
    """Unknown category names leave the selection unchanged."""
    if category not in selection.known_categories:
        return selection
    if category in selection.categories:
        return replace(selection, categories=tuple(c for c in selection.categories if c != category))
    return replace(selection, categories=selection.categories + (category,))


def select_all_categories(selection: ExportSelection) -> ExportSelection:
    return replace(selection, categories=selection.known_categories)


def deselect_all(selection: ExportSelection) -> ExportSelection:
    return replace(selection, categories=())


def toggle_all_categories(selection: ExportSelection) -> ExportSelection:
    """Select All / Deselect All button: deselects only when everything is already selected."""
    if set(selection.categories) >= set(selection.known_categories):
        return deselect_all(selection)
    return select_all_categories(selection)


def toggle_status(selection: ExportSelection, status: ComplianceStatus) -> ExportSelection:
    status = ComplianceStatus(status)
    if status in selection.statuses:
        return replace(selection, statuses=tuple(s for s in selection.statuses if s != status))
    return replace(selection, statuses=selection.statuses + (status,))


# ── Package ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ExportPackage:
    report: AnalysisReport
    findings: list[ComplianceFinding]
    options: ExportOptions
    categories: tuple[str, ...]

    @property
    def file_name(self) -> str:
        return self.report.file_name


def build_package(report: AnalysisReport, selection: ExportSelection) -> ExportPackage:
    """Findings of the selected categories and statuses, in report order."""
    categories = set(selection.categories)
    statuses = set(selection.statuses)
    subset = [
        f for f in report.findings
        if f.category_name in categories and f.status in statuses
    ]
    return ExportPackage(
        report=report,
        findings=subset,
        options=selection.options,
        categories=tuple(c for c in selection.known_categories if c in categories),
    )


# ── Submit ────────────────────────────────────────────────────────────────────

class DocumentGenerator(Protocol):
    def render_pdf(self, package: ExportPackage, path: str) -> str: ...


@dataclass(frozen=True)
class ExportResult:
    ok: bool
    message: str
    path: Optional[str] = None


def success_message(package: ExportPackage) -> str:
    opts = package.options
    includes = ""
    if opts.include_summary:
        includes += "Summary, "
    if opts.include_charts:
        includes += "Charts, "
    return (
        f"PDF Report ({opts.orientation}) generated successfully!\n"
        f"Includes: {includes}{len(package.categories)} Categories."
    )


async def submit_export(
    package: ExportPackage,
    generator: DocumentGenerator,
    export_id: str,
    delay: float = EXPORT_DELAY_SECONDS,
    download_dir: str = DOWNLOAD_DIR,
) -> ExportResult:
    """
    Hand the package to the document generator after the simulated delay.

    Generator failures are returned as ok=False (no automatic retry). The PDF
    is rendered in a worker thread; the package is immutable so nothing is
    shared mutably with it.
    """
    if delay > 0:
        await asyncio.sleep(delay)

    os.makedirs(download_dir, exist_ok=True)
    path = os.path.join(download_dir, f"Compliance_{export_id[:8]}.pdf")
    try:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, generator.render_pdf, package, path)
    except Exception as e:
        logger.error(f"Export {export_id} failed: {e}")
        return ExportResult(ok=False, message=f"PDF generation failed: {e}")

    logger.info(
        f"Export {export_id} written to {path}: {len(package.findings)} findings, "
        f"{len(package.categories)} categories, {package.options.orientation}"
    )
    return ExportResult(ok=True, message=success_message(package), path=path)
