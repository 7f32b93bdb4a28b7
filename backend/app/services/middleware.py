"""HTTP middleware: request timing/tracing, security headers and rate limiting."""
import collections
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = logging.getLogger("sbc-api.middleware")

SKIP_LOG_PATHS = {"/health"}


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """
    Middleware that:
    - Assigns a unique X-Request-ID (uuid4) to every request/response.
    - Adds the end-to-end duration in milliseconds as X-Process-Time.
    - Emits a structured log line for every request (except /health).
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = str(uuid.uuid4())
        start_time = time.perf_counter()
        request.state.request_id = request_id

        response: Response = await call_next(request)

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(duration_ms)

        if request.url.path not in SKIP_LOG_PATHS:
            logger.info(
                "request completed",
                extra={
                    "http_method": request.method,
                    "http_path": request.url.path,
                    "http_status": response.status_code,
                    "request_id": request_id,
                    "duration_ms": duration_ms,
                },
            )

        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds standard security headers to every response."""
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    In-memory sliding-window rate limiter, per client IP.
    Buckets:
      - drawing uploads / re-analysis : UPLOAD_LIMIT req/min
      - chat messages                 : CHAT_LIMIT req/min
      - everything else               : GENERAL_LIMIT req/min
    """
    UPLOAD_LIMIT = 10
    CHAT_LIMIT = 30
    GENERAL_LIMIT = 120
    WINDOW_SECONDS = 60

    def __init__(self, app):
        super().__init__(app)
        self._windows: dict = collections.defaultdict(collections.deque)

    def _bucket(self, path: str) -> tuple[str, int]:
        if path.startswith("/api/analysis/"):
            return "analysis", self.UPLOAD_LIMIT
        if path.startswith("/api/chat/") and path.endswith("/messages"):
            return "chat", self.CHAT_LIMIT
        return "general", self.GENERAL_LIMIT

    async def dispatch(self, request: Request, call_next):
        ip = request.client.host if request.client else "unknown"
        name, limit = self._bucket(request.url.path)
        now = time.monotonic()
        window = self._windows[f"{ip}:{name}"]
        while window and now - window[0] > self.WINDOW_SECONDS:
            window.popleft()
        if len(window) >= limit:
            logger.warning(f"Rate limit hit for {ip} on bucket '{name}'")
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many requests. Please slow down."},
                headers={"Retry-After": str(self.WINDOW_SECONDS)},
            )
        window.append(now)
        return await call_next(request)
