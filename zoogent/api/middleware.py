"""
Request latency middleware.

Logs method/path/status/elapsed_ms for every request, records Prometheus
observations, and tags responses with ``X-Response-Time-Ms`` and
``X-Request-Id``.

Pure ASGI middleware (not BaseHTTPMiddleware) so /chat/stream events are
not buffered.
"""

from __future__ import annotations

import time
import uuid

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from zoogent.api.metrics import observe_duration, record_request
from zoogent.config import get_logger

logger = get_logger(__name__)

# Paths excluded from per-request logging (still measured by Prometheus)
_QUIET_PATHS = {"/metrics", "/health"}

# Raw paths map onto a fixed label set to bound metric cardinality
_KNOWN_ROUTES = {
    "/health": "/health",
    "/chat": "/chat",
    "/chat/stream": "/chat/stream",
    "/products/introduce": "/products/introduce",
    "/metrics": "/metrics",
}


def _normalize_path(path: str) -> str:
    """Map a raw URL path to a known route label, or 'unknown'."""
    clean = path.rstrip("/") or "/"
    return _KNOWN_ROUTES.get(clean, "unknown")


def _incoming_request_id(scope: Scope) -> str | None:
    for name, value in scope.get("headers", []):
        if name == b"x-request-id":
            return value.decode("latin-1")[:64] or None
    return None


class LatencyMiddleware:
    """Measure and log every HTTP request without buffering the body."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        path = _normalize_path(scope["path"])
        method = scope["method"]
        start = time.perf_counter()
        request_id = _incoming_request_id(scope) or uuid.uuid4().hex[:12]
        status = 500  # until http.response.start is seen

        async def send_wrapper(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
                # For SSE this is time-to-first-byte; the histogram below
                # records the full stream duration.
                elapsed_ms = (time.perf_counter() - start) * 1000
                headers = list(message.get("headers", []))
                headers.append((b"x-response-time-ms", f"{elapsed_ms:.1f}".encode()))
                headers.append((b"x-request-id", request_id.encode()))
                message = {**message, "headers": headers}
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            logger.exception("%s %s [%s] failed", method, path, request_id)
            raise
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            record_request(path, method, status)
            observe_duration(path, elapsed_ms)
            if path not in _QUIET_PATHS:
                logger.info(
                    "%s %s %d %.1fms [%s]",
                    method,
                    path,
                    status,
                    elapsed_ms,
                    request_id,
                )
