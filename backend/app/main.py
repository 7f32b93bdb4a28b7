"""
SBC Compliance Viewer API
FastAPI backend: drawing upload → AI compliance analysis (Gemini primary,
Groq fallback via litellm) → filterable findings view, drawing overlay,
consultant chat and PDF export.
"""
import logging
import os
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv

# .env must be loaded before app.config reads the environment
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import (
    APP_VERSION,
    CORS_ORIGINS,
    DOWNLOAD_DIR,
    LLM_FALLBACK_MODEL,
    LLM_PRIMARY_MODEL,
    LOG_FORMAT,
    LOG_LEVEL,
    RATE_LIMIT_ENABLED,
)
from app.services.logging_config import setup_logging
from app.services.middleware import (
    RateLimitMiddleware,
    RequestTimingMiddleware,
    SecurityHeadersMiddleware,
)
from app.services.report_store import store

setup_logging(level=LOG_LEVEL, json_output=LOG_FORMAT != "text")
logger = logging.getLogger("sbc-api")

_PROCESS_START = time.monotonic()

for var in ["GEMINI_API_KEY", "GROQ_API_KEY"]:
    if not os.getenv(var):
        logger.info(f"Optional env var not set: {var}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    os.makedirs(DOWNLOAD_DIR, exist_ok=True)
    logger.info(f"Compliance viewer starting (primary={LLM_PRIMARY_MODEL}, fallback={LLM_FALLBACK_MODEL})")
    yield
    store.clear()
    logger.info("Compliance viewer stopped; in-memory sessions cleared.")


app = FastAPI(
    title="SBC Compliance Viewer API",
    version=APP_VERSION,
    description="AI-assisted Saudi Building Code compliance review of architectural drawings",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "X-Requested-With"],
)
app.add_middleware(SecurityHeadersMiddleware)
if RATE_LIMIT_ENABLED:
    app.add_middleware(RateLimitMiddleware)
# Outermost, so timing wraps every other middleware
app.add_middleware(RequestTimingMiddleware)

from app.api.analysis_routes import router as analysis_router
from app.api.chat_routes import router as chat_router
from app.api.report_routes import router as report_router

app.include_router(analysis_router)
app.include_router(report_router)
app.include_router(chat_router)


@app.get("/health")
async def health_check():
    return {
        "status": "active",
        "version": APP_VERSION,
        "uptime_seconds": round(time.monotonic() - _PROCESS_START, 1),
        "llm_primary": LLM_PRIMARY_MODEL,
        "llm_fallback": LLM_FALLBACK_MODEL,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)
