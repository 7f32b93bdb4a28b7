"""
Findings pipeline — Filter → Sort → Group.

Drives the findings list and the contents navigation of the report view.
Every function here is pure: inputs are never mutated and a new list is
returned, so the view can be recomputed from raw state on every change.
"""
from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Sequence, Union

from app.config import DEFAULT_CATEGORY, SEVERITY_RANK
from app.models.findings import ComplianceFinding, ComplianceStatus

ALL = "ALL"

StatusFilter = Union[ComplianceStatus, str]


class SortKey(str, Enum):
    SEVERITY = "SEVERITY"
    REFERENCE = "REFERENCE"
    CATEGORY = "CATEGORY"


# ── Filter & Search ───────────────────────────────────────────────────────────

def matches_search(finding: ComplianceFinding, term: str) -> bool:
    """Case-insensitive substring match on description, reference or category."""
    needle = term.lower()
    return (
        needle in finding.description.lower()
        or needle in finding.reference.lower()
        or needle in finding.category.lower()
    )


def filter_findings(
    findings: Sequence[ComplianceFinding],
    status_filter: StatusFilter = ALL,
    search: str = "",
) -> list[ComplianceFinding]:
    """
    Narrow findings by status and free-text search.

    Both steps are plain predicates, so the result is the intersection of the
    two and keeps the input's relative order.
    """
    result = list(findings)

    status = _coerce_status(status_filter)
    if status is not None:
        result = [f for f in result if f.status == status]

    term = search.strip() if search else ""
    if term:
        result = [f for f in result if matches_search(f, term)]

    return result


def _coerce_status(status_filter: StatusFilter) -> Optional[ComplianceStatus]:
    if isinstance(status_filter, ComplianceStatus):
        return status_filter
    if not status_filter or str(status_filter).upper() == ALL:
        return None
    return ComplianceStatus(str(status_filter).upper())


# ── Sort ──────────────────────────────────────────────────────────────────────

def _fold_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _reference_key(finding: ComplianceFinding):
    # Accents fold away so "Égress" collates with "Egress"; ties keep a fixed order.
    ref = finding.reference
    return (_fold_accents(ref).casefold(), ref.casefold(), ref)


def sort_findings(
    findings: Sequence[ComplianceFinding],
    sort_key: Union[SortKey, str] = SortKey.SEVERITY,
) -> list[ComplianceFinding]:
    """
    Return a new list ordered by ``sort_key``.

    sorted() is stable, so equal-rank findings keep their input order.
    """
    key = SortKey(sort_key)
    if key == SortKey.SEVERITY:
        return sorted(findings, key=lambda f: SEVERITY_RANK[f.status.value])
    if key == SortKey.REFERENCE:
        return sorted(findings, key=_reference_key)
    return sorted(findings, key=lambda f: f.category_name)


# ── Group ─────────────────────────────────────────────────────────────────────

@dataclass
class CategoryGroups:
    groups: dict[str, list[ComplianceFinding]] = field(default_factory=dict)
    categories: list[str] = field(default_factory=list)   # alphabetical, for nav

    def nav(self) -> list[dict]:
        """Contents navigation entries: label, anchor id and finding count."""
        return [
            {
                "category": cat,
                "anchor": section_anchor(cat),
                "count": len(self.groups[cat]),
            }
            for cat in self.categories
        ]


def group_by_category(findings: Iterable[ComplianceFinding]) -> CategoryGroups:
    """Bucket findings by category, preserving order inside each bucket."""
    groups: dict[str, list[ComplianceFinding]] = {}
    for finding in findings:
        groups.setdefault(finding.category_name, []).append(finding)
    return CategoryGroups(groups=groups, categories=sorted(groups))


def section_anchor(category: str) -> str:
    return "cat-" + re.sub(r"\s+", "-", category or DEFAULT_CATEGORY)


# ── Stats ─────────────────────────────────────────────────────────────────────

def status_breakdown(findings: Iterable[ComplianceFinding]) -> dict[str, int]:
    """Count findings per status over the whole report (unfiltered)."""
    counts = {s.value: 0 for s in ComplianceStatus}
    for f in findings:
        counts[f.status.value] += 1
    return counts


def breakdown_chart(findings: Iterable[ComplianceFinding]) -> list[dict]:
    """Pie chart slices for the report header (clarifications are not charted)."""
    counts = status_breakdown(findings)
    return [
        {"name": "Pass", "value": counts["PASS"], "color": "#22c55e"},
        {"name": "Fail", "value": counts["FAIL"], "color": "#ef4444"},
        {"name": "Warning", "value": counts["WARNING"], "color": "#f59e0b"},
    ]


@dataclass
class FindingsView:
    findings: list[ComplianceFinding]
    grouped: CategoryGroups

    @property
    def is_empty(self) -> bool:
        return not self.findings


def process_findings(
    findings: Sequence[ComplianceFinding],
    status_filter: StatusFilter = ALL,
    search: str = "",
    sort_key: Union[SortKey, str] = SortKey.SEVERITY,
) -> FindingsView:
    """Run the full Filter → Sort → Group chain."""
    processed = sort_findings(filter_findings(findings, status_filter, search), sort_key)
    return FindingsView(findings=processed, grouped=group_by_category(processed))
