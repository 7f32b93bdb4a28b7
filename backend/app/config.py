"""
Compliance viewer configuration — single source of truth for model routing,
status ranks, intake limits, overlay geometry and export defaults.

Import from here in services and routes rather than hardcoding values.
"""
from __future__ import annotations

import os

# ── LLM routing ───────────────────────────────────────────────────────────────
LLM_PRIMARY_MODEL: str = os.getenv("LLM_PRIMARY_MODEL", "gemini/gemini-2.5-flash")
LLM_FALLBACK_MODEL: str = os.getenv("LLM_FALLBACK_MODEL", "groq/llama-3.2-90b-vision-preview")
LLM_TEMPERATURE: float = float(os.getenv("LLM_TEMPERATURE", "0.1"))
LLM_MAX_TOKENS: int = int(os.getenv("LLM_MAX_TOKENS", "8192"))


# ── Findings ──────────────────────────────────────────────────────────────────

DEFAULT_CATEGORY: str = "General"

# Lower rank = more severe. Drives the SEVERITY sort.
SEVERITY_RANK: dict[str, int] = {
    "FAIL":                0,
    "WARNING":             1,
    "NEEDS_CLARIFICATION": 2,
    "PASS":                3,
}

# Status filter chips shown above the findings list
STATUS_FILTER_OPTIONS: list[tuple[str, str]] = [
    ("ALL", "All"),
    ("FAIL", "Fail"),
    ("WARNING", "Warning"),
    ("PASS", "Pass"),
]


# ── Overlay ───────────────────────────────────────────────────────────────────

STATUS_COLORS: dict[str, str] = {
    "PASS": "#22c55e",
    "FAIL": "#ef4444",
}
DEFAULT_STATUS_COLOR: str = "#f59e0b"

# Boxes starting within the top band get their tooltip rendered below the anchor
TOOLTIP_TOP_BAND_PCT: float = 15.0
TOOLTIP_OFFSET_PX: int = 10

# Focus ring drawn around the active box, in percent of the image
FOCUS_RING_PAD_PCT: float = 1.0

STROKE_WIDTH_DEFAULT: float = 0.5
STROKE_WIDTH_EMPHASIS: float = 1.0
FILL_OPACITY_ACTIVE: float = 0.2
FILL_OPACITY_HOVERED: float = 0.1


# ── File intake ───────────────────────────────────────────────────────────────

ACCEPTED_MEDIA_TYPES: frozenset[str] = frozenset({"image/jpeg", "image/png", "image/webp"})
MAX_UPLOAD_BYTES: int = int(os.getenv("MAX_UPLOAD_BYTES", str(20 * 1024 * 1024)))


# ── Export ────────────────────────────────────────────────────────────────────

EXPORT_DELAY_SECONDS: float = float(os.getenv("EXPORT_DELAY_SECONDS", "1.5"))
DOWNLOAD_DIR: str = os.getenv("DOWNLOAD_DIR", "/tmp/downloads")
ORIENTATIONS: tuple[str, ...] = ("portrait", "landscape")


# ── Session store ─────────────────────────────────────────────────────────────

# Idle sessions (reports and chats) are evicted after this many seconds
SESSION_TTL_SECONDS: float = float(os.getenv("SESSION_TTL_SECONDS", "3600"))
# Least recently used report sessions are evicted beyond this count
MAX_REPORT_SESSIONS: int = int(os.getenv("MAX_REPORT_SESSIONS", "100"))
MAX_CHAT_SESSIONS: int = int(os.getenv("MAX_CHAT_SESSIONS", "500"))


# ── Service ───────────────────────────────────────────────────────────────────

APP_VERSION: str = "1.0.0"
CORS_ORIGINS: list[str] = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
    if o.strip()
]
RATE_LIMIT_ENABLED: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() != "false"
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT: str = os.getenv("LOG_FORMAT", "json").lower()
