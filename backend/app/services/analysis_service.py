"""
Analysis provider — sends a drawing image to the vision LLM and turns the JSON
answer into an AnalysisReport.

Any provider failure (transport error, empty answer, invalid JSON, schema
mismatch) is converted here into the degraded-mode report so the UI always
receives a usable Report. Callers can tell the two apart via
AnalysisOutcome.kind.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError

from app.models.findings import AnalysisOutcome, AnalysisReport, ComplianceFinding, ComplianceStatus
from app.services.errors import ProviderError
from app.services.llm_client import LLMClient, get_system_prompt

logger = logging.getLogger("sbc-analysis")

ANALYSIS_PROMPT = (
    "Analyze this engineering drawing for Saudi Building Code compliance. "
    "Focus on fire safety, egress, dimensions, and room labeling. "
    "Return a detailed JSON report matching this schema:\n"
)

# Structured output contract sent with the prompt
RESPONSE_SCHEMA: dict = {
    "type": "object",
    "properties": {
        "overallScore": {"type": "number", "description": "A score from 0 to 100 based on compliance."},
        "summary": {"type": "string", "description": "Executive summary of the compliance scan."},
        "findings": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string"},
                    "category": {"type": "string"},
                    "description": {"type": "string"},
                    "reference": {"type": "string", "description": "The specific SBC code reference."},
                    "status": {"type": "string", "enum": [s.value for s in ComplianceStatus]},
                    "recommendation": {"type": "string"},
                    "location": {"type": "string", "description": "Approximate location on drawing."},
                    "boundingBox": {
                        "type": "array",
                        "items": {"type": "number"},
                        "description": "Bounding box [ymin, xmin, ymax, xmax] in normalized 0-1 coordinates.",
                    },
                },
                "required": ["id", "category", "description", "status", "recommendation"],
            },
        },
    },
    "required": ["overallScore", "summary", "findings"],
}

DEGRADED_SUMMARY = "Error processing analysis. Please ensure valid API Key and image format."
DEGRADED_BOX = [0.1, 0.1, 0.9, 0.9]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def degraded_report(file_name: str, image_base64: Optional[str] = None) -> AnalysisReport:
    """Synthetic report substituted when the analysis provider fails."""
    return AnalysisReport(
        overall_score=0,
        summary=DEGRADED_SUMMARY,
        scan_date=_now_iso(),
        file_name=file_name,
        image_base64=image_base64,
        findings=[
            ComplianceFinding(
                id="err-1",
                category="System",
                description="Could not complete AI analysis.",
                reference="N/A",
                status=ComplianceStatus.FAIL,
                recommendation="Try uploading a clearer image or check connection.",
                bounding_box=list(DEGRADED_BOX),
            )
        ],
    )


def _strip_fences(text: str) -> str:
    """Some models wrap JSON in ```json fences despite json_mode."""
    t = text.strip()
    if t.startswith("```"):
        t = t.split("\n", 1)[1] if "\n" in t else ""
        if t.rstrip().endswith("```"):
            t = t.rstrip()[:-3]
    return t.strip()


def parse_report(
    raw_text: str,
    file_name: str,
    image_base64: Optional[str] = None,
) -> AnalysisReport:
    """Validate the provider's JSON and stamp scan metadata. Raises ProviderError."""
    if not raw_text or not raw_text.strip():
        raise ProviderError("No data returned from analysis provider")
    try:
        data = json.loads(_strip_fences(raw_text))
    except json.JSONDecodeError as e:
        raise ProviderError(f"Provider returned invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ProviderError("Provider returned a non-object payload")

    try:
        return AnalysisReport.model_validate({
            **data,
            "scanDate": _now_iso(),
            "fileName": file_name,
            "imageBase64": image_base64,
        })
    except ValidationError as e:
        raise ProviderError(f"Provider payload failed validation: {e.error_count()} error(s)") from e


class AnalysisService:

    def __init__(self, client: Optional[LLMClient] = None):
        self.client = client or LLMClient()

    async def analyze_drawing_image(
        self,
        image_base64: str,
        file_name: str,
        mime_type: str = "image/jpeg",
    ) -> AnalysisOutcome:
        """
        Run one analysis. Never raises for provider problems; returns a
        degraded outcome instead. asyncio.CancelledError still propagates so a
        superseding request can cancel this one.
        """
        try:
            raw = await self.client.vision(
                [image_base64],
                ANALYSIS_PROMPT + json.dumps(RESPONSE_SCHEMA),
                system_prompt=get_system_prompt("analyst"),
                mime_type=mime_type,
                json_mode=True,
            )
            report = parse_report(raw, file_name, image_base64)
        except Exception as e:
            logger.error(f"Analysis failed for '{file_name}': {e}", exc_info=True)
            return AnalysisOutcome.degraded(degraded_report(file_name, image_base64), reason=str(e))

        logger.info(
            f"Analysis complete for '{file_name}': score={report.overall_score}, "
            f"findings={len(report.findings)}"
        )
        return AnalysisOutcome.ok(report)
