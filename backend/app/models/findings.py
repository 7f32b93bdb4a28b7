"""
Compliance finding and report models.

A Report is the immutable result of one drawing analysis. Findings are frozen
once produced; the wire format (what the analysis provider returns and what the
frontend consumes) is camelCase, Python attributes are snake_case.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from app.config import DEFAULT_CATEGORY


class ComplianceStatus(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    WARNING = "WARNING"
    NEEDS_CLARIFICATION = "NEEDS_CLARIFICATION"


class _WireModel(BaseModel):
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "frozen": True,
    }


class ComplianceFinding(_WireModel):
    """One compliance observation on the analysed drawing."""
    id: str
    category: str = ""                        # e.g. "Fire Safety", "Accessibility"
    description: str = ""
    reference: str = ""                       # e.g. "SBC 201 - 10.4.1"
    status: ComplianceStatus
    recommendation: str = ""
    location: Optional[str] = None            # e.g. "Sheet A-101, Grid 4-F"
    # [ymin, xmin, ymax, xmax] normalized 0-1. Kept as received; the overlay
    # mapper decides whether it is usable.
    bounding_box: Optional[list[Any]] = None

    @field_validator("category", "description", "reference", "recommendation", mode="before")
    @classmethod
    def _null_text_to_empty(cls, v):
        return "" if v is None else v

    @property
    def category_name(self) -> str:
        return self.category or DEFAULT_CATEGORY


class AnalysisReport(_WireModel):
    overall_score: float = Field(..., ge=0, le=100)
    summary: str = ""
    file_name: str = ""
    scan_date: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    findings: list[ComplianceFinding] = Field(default_factory=list)
    image_base64: Optional[str] = None        # display only, never parsed

    def all_categories(self) -> list[str]:
        """Unique category names (empty → General), sorted."""
        return sorted({f.category_name for f in self.findings})

    def find(self, finding_id: str) -> Optional[ComplianceFinding]:
        for f in self.findings:
            if f.id == finding_id:
                return f
        return None


class AnalysisOutcome(BaseModel):
    """
    Tagged result of an analysis request.

    ok       — provider returned a valid report
    degraded — provider failed; report is the synthetic fallback
    failed   — no report (request superseded or cancelled)
    """
    kind: Literal["ok", "degraded", "failed"]
    report: Optional[AnalysisReport] = None
    reason: Optional[str] = None

    @classmethod
    def ok(cls, report: AnalysisReport) -> "AnalysisOutcome":
        return cls(kind="ok", report=report)

    @classmethod
    def degraded(cls, report: AnalysisReport, reason: str) -> "AnalysisOutcome":
        return cls(kind="degraded", report=report, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> "AnalysisOutcome":
        return cls(kind="failed", reason=reason)


class ChatMessage(BaseModel):
    id: str
    role: Literal["user", "model"]
    text: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
