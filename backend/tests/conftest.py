"""
conftest.py — Shared pytest fixtures for the SBC compliance viewer backend.

No network or LLM provider is touched: the analysis and chat services are
driven through FakeLLMClient, which returns canned text or raises.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``app.*`` imports resolve correctly regardless of where pytest is invoked.
"""

import base64
import io
import os
import sys

import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any app imports occur.
# app.config reads the environment at import time, so test settings go first.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("EXPORT_DELAY_SECONDS", "0")
os.environ.setdefault("LOG_FORMAT", "text")


# ---------------------------------------------------------------------------
# Fake provider
# ---------------------------------------------------------------------------

class FakeLLMClient:
    """
    Stand-in for LLMClient. ``replies`` are returned in order; an Exception
    instance in the list is raised instead. Every call is recorded.
    """

    def __init__(self, *replies):
        self.replies = list(replies)
        self.chat_calls = []
        self.vision_calls = []

    def _next(self):
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def chat(self, messages, **kwargs):
        self.chat_calls.append(messages)
        return self._next()

    async def vision(self, images_base64, prompt, system_prompt=None, mime_type="image/jpeg", json_mode=False):
        self.vision_calls.append(
            {"images": images_base64, "prompt": prompt, "system_prompt": system_prompt,
             "mime_type": mime_type, "json_mode": json_mode}
        )
        return self._next()


@pytest.fixture
def fake_llm():
    """Factory: fake_llm("reply 1", RuntimeError("down"), ...)."""
    return FakeLLMClient


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------

def make_finding(fid, category="Fire Safety", status="FAIL", box=None, **kw):
    from app.models.findings import ComplianceFinding
    return ComplianceFinding(
        id=fid,
        category=category,
        description=kw.pop("description", f"Finding {fid}"),
        reference=kw.pop("reference", "SBC 201"),
        status=status,
        recommendation=kw.pop("recommendation", "Fix it."),
        bounding_box=box,
        **kw,
    )


@pytest.fixture
def finding_factory():
    return make_finding


@pytest.fixture
def sample_findings():
    """
    Five findings across three categories, mixed statuses, one without a box
    and one with an uncategorised (empty) category.
    """
    return [
        make_finding("f1", "Fire Safety", "PASS", [0.1, 0.2, 0.3, 0.6],
                     description="Sprinkler coverage adequate", reference="SBC 801 - 903.3"),
        make_finding("f2", "Egress", "FAIL", [0.5, 0.5, 0.7, 0.9],
                     description="Dead-end corridor exceeds 6m", reference="SBC 201 - 1020.4"),
        make_finding("f3", "Fire Safety", "WARNING", None,
                     description="Fire door rating not labelled", reference="SBC 801 - 716.5"),
        make_finding("f4", "", "NEEDS_CLARIFICATION", [0.05, 0.05, 0.2, 0.2],
                     description="Room label illegible", reference="SBC 201 - 107.2"),
        make_finding("f5", "Egress", "FAIL", [0.6, 0.1, 0.8, 0.3],
                     description="Exit door width below 900mm", reference="SBC 201 - 1010.1"),
    ]


@pytest.fixture
def sample_report(sample_findings):
    from app.models.findings import AnalysisReport
    return AnalysisReport(
        overall_score=72,
        summary="Drawing is largely compliant; egress issues need attention.",
        file_name="plan-a101.png",
        findings=sample_findings,
    )


@pytest.fixture
def provider_payload():
    """Raw JSON text as the vision model would return it (camelCase wire format)."""
    import json
    return json.dumps({
        "overallScore": 85,
        "summary": "Minor issues found.",
        "findings": [
            {
                "id": "1",
                "category": "Egress",
                "description": "Corridor width 1100mm",
                "reference": "SBC 201 - 1020.2",
                "status": "PASS",
                "recommendation": "None.",
                "location": "Grid B-3",
                "boundingBox": [0.1, 0.2, 0.3, 0.6],
            },
            {
                "id": "2",
                "category": "Accessibility",
                "description": "Ramp slope exceeds 1:12",
                "reference": "SBC 201 - 1012.2",
                "status": "FAIL",
                "recommendation": "Lengthen the ramp.",
            },
        ],
    })


@pytest.fixture(scope="session")
def png_bytes():
    """A real 40x20 PNG, so Pillow and reportlab can read it."""
    from PIL import Image
    buf = io.BytesIO()
    Image.new("RGB", (40, 20), (255, 255, 255)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture(scope="session")
def png_base64(png_bytes):
    return base64.b64encode(png_bytes).decode("ascii")
