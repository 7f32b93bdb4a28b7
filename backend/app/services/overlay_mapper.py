"""
Spatial overlay mapper.

Maps findings with a bounding box onto percent-based rectangles over the
analysed drawing. Geometry is expressed in percent of the image's intrinsic
size (SVG viewBox 0 0 100 100), so it scales with any rendered size.

Box format: [ymin, xmin, ymax, xmax], each normalized to [0, 1].
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import AbstractSet, Literal, Optional, Sequence

from app.config import (
    DEFAULT_STATUS_COLOR,
    FILL_OPACITY_ACTIVE,
    FILL_OPACITY_HOVERED,
    FOCUS_RING_PAD_PCT,
    STATUS_COLORS,
    STROKE_WIDTH_DEFAULT,
    STROKE_WIDTH_EMPHASIS,
    TOOLTIP_OFFSET_PX,
    TOOLTIP_TOP_BAND_PCT,
)
from app.models.findings import ComplianceFinding
from app.services.findings_pipeline import matches_search

_PCT_DIGITS = 6


@dataclass(frozen=True)
class BoundingBox:
    ymin: float
    xmin: float
    ymax: float
    xmax: float


def valid_box(raw: Optional[Sequence[float]]) -> Optional[BoundingBox]:
    """
    Parse a raw box. Returns None when it is missing or violates
    0 <= min < max <= 1 on either axis.
    """
    if raw is None or len(raw) != 4:
        return None
    try:
        ymin, xmin, ymax, xmax = (float(v) for v in raw)
    except (TypeError, ValueError):
        return None
    if not all(math.isfinite(v) and 0.0 <= v <= 1.0 for v in (ymin, xmin, ymax, xmax)):
        return None
    if ymin >= ymax or xmin >= xmax:
        return None
    return BoundingBox(ymin=ymin, xmin=xmin, ymax=ymax, xmax=xmax)


def _pct(value: float) -> float:
    return round(value * 100, _PCT_DIGITS)


@dataclass(frozen=True)
class Rect:
    left: float
    top: float
    width: float
    height: float


def to_rect(box: BoundingBox) -> Rect:
    return Rect(
        left=_pct(box.xmin),
        top=_pct(box.ymin),
        width=_pct(box.xmax - box.xmin),
        height=_pct(box.ymax - box.ymin),
    )


def status_color(status: str) -> str:
    return STATUS_COLORS.get(status, DEFAULT_STATUS_COLOR)


@dataclass(frozen=True)
class OverlayRegion:
    finding_id: str
    category: str
    status: str
    rect: Rect
    color: str
    active: bool = False
    hovered: bool = False
    stroke_width: float = STROKE_WIDTH_DEFAULT
    fill_opacity: float = 0.0
    focus_ring: Optional[Rect] = None         # dashed ring around the active box


@dataclass(frozen=True)
class Tooltip:
    finding_id: str
    left: float
    top: float
    placement: Literal["above", "below"]
    offset_px: int
    description: str
    status: str


@dataclass(frozen=True)
class OverlayView:
    regions: list[OverlayRegion]
    tooltip: Optional[Tooltip] = None
    aspect_ratio: Optional[float] = None      # intrinsic width / height when known

    @property
    def zones_visible(self) -> int:
        return len(self.regions)


def visible_overlay_set(
    findings: Sequence[ComplianceFinding],
    hidden: AbstractSet[str] = frozenset(),
    drawing_search: str = "",
) -> list[ComplianceFinding]:
    """
    Findings that get a box on the drawing: a valid box, a visible layer and,
    when a drawing search is set, a text match. Order follows the input.
    """
    term = drawing_search.strip() if drawing_search else ""
    return [
        f for f in findings
        if valid_box(f.bounding_box) is not None
        and f.category_name not in hidden
        and (not term or matches_search(f, term))
    ]


def _region(finding: ComplianceFinding, active: bool, hovered: bool) -> OverlayRegion:
    rect = to_rect(valid_box(finding.bounding_box))
    if active:
        stroke, fill = STROKE_WIDTH_EMPHASIS, FILL_OPACITY_ACTIVE
        ring = Rect(
            left=round(rect.left - FOCUS_RING_PAD_PCT, _PCT_DIGITS),
            top=round(rect.top - FOCUS_RING_PAD_PCT, _PCT_DIGITS),
            width=round(rect.width + 2 * FOCUS_RING_PAD_PCT, _PCT_DIGITS),
            height=round(rect.height + 2 * FOCUS_RING_PAD_PCT, _PCT_DIGITS),
        )
    elif hovered:
        stroke, fill, ring = STROKE_WIDTH_EMPHASIS, FILL_OPACITY_HOVERED, None
    else:
        stroke, fill, ring = STROKE_WIDTH_DEFAULT, 0.0, None

    return OverlayRegion(
        finding_id=finding.id,
        category=finding.category_name,
        status=finding.status.value,
        rect=rect,
        color=status_color(finding.status.value),
        active=active,
        hovered=hovered,
        stroke_width=stroke,
        fill_opacity=fill,
        focus_ring=ring,
    )


def place_tooltip(finding: ComplianceFinding) -> Optional[Tooltip]:
    """Anchor at the box's top-left; flip below when it starts near the top edge."""
    box = valid_box(finding.bounding_box)
    if box is None:
        return None
    top = _pct(box.ymin)
    return Tooltip(
        finding_id=finding.id,
        left=_pct(box.xmin),
        top=top,
        placement="below" if top < TOOLTIP_TOP_BAND_PCT else "above",
        offset_px=TOOLTIP_OFFSET_PX,
        description=finding.description,
        status=finding.status.value,
    )


def build_overlay(
    findings: Sequence[ComplianceFinding],
    hidden: AbstractSet[str] = frozenset(),
    drawing_search: str = "",
    active_id: Optional[str] = None,
    hovered_id: Optional[str] = None,
    image_size: Optional[tuple[int, int]] = None,
) -> OverlayView:
    """
    Build the overlay for the filtered+sorted findings.

    Active and hovered ids only change emphasis, never membership. The single
    tooltip follows the active finding, or the hovered one when nothing
    visible is active.
    """
    members = visible_overlay_set(findings, hidden, drawing_search)
    regions = [_region(f, f.id == active_id, f.id == hovered_id) for f in members]

    tooltip = None
    for target in (active_id, hovered_id):
        if target is None:
            continue
        finding = next((f for f in members if f.id == target), None)
        if finding is not None:
            tooltip = place_tooltip(finding)
            break

    aspect = None
    if image_size and image_size[1]:
        aspect = round(image_size[0] / image_size[1], _PCT_DIGITS)

    return OverlayView(regions=regions, tooltip=tooltip, aspect_ratio=aspect)
