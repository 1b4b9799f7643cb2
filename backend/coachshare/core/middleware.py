"""Middleware: request ID injection, response timing, access logging."""

import hashlib
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("coachshare.access")

SLOW_REQUEST_MS = 1000.0


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Reuse the caller's X-Request-ID or mint one, and echo it back."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class AccessLogMiddleware(BaseHTTPMiddleware):
    """One log line per request; slow requests and server errors log at WARNING."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.monotonic()
        response = await call_next(request)
        elapsed_ms = round((time.monotonic() - start) * 1000, 1)
        response.headers["X-Response-Time"] = f"{elapsed_ms}ms"

        request_id = getattr(request.state, "request_id", "-")
        user_id_raw = getattr(request.state, "user_id", None)
        user_id = _hash_user_id(user_id_raw) if user_id_raw else "-"

        level = logging.INFO
        if response.status_code >= 500 or elapsed_ms >= SLOW_REQUEST_MS:
            level = logging.WARNING

        logger.log(
            level,
            "request_id=%s user=%s method=%s path=%s status=%d elapsed_ms=%.1f",
            request_id,
            user_id,
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response


def _hash_user_id(uid: str) -> str:
    """First 12 hex chars of SHA-256, so logs never carry raw user ids."""
    return hashlib.sha256(str(uid).encode()).hexdigest()[:12]
