"""
API route definitions.

Endpoints:
    GET  /health               Configuration health check
    POST /chat                 Run one shopping turn
    POST /chat/stream          SSE: stage progress, then the turn result
    POST /products/introduce   Advertising copy for one listing
    GET  /metrics              Prometheus metrics
"""

from __future__ import annotations

import asyncio
import json
import os
from typing import AsyncIterator

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse, StreamingResponse
from pydantic import BaseModel, Field

from zoogent.api.metrics import metrics_response
from zoogent.config import get_logger
from zoogent.core.errors import (
    ModelInvocationError,
    NoResultsError,
    SearchBackendError,
    ZooGentError,
)
from zoogent.core.models import PipelineStage, SearchResultItem, TurnResult
from zoogent.services.advertising import introduce_product
from zoogent.services.pipeline import ProgressCallback

# End-to-end budget for one turn. A turn makes up to ~10 sequential agent
# calls, so this sits well above LLM_CALL_TIMEOUT.
CHAT_TIMEOUT_SECONDS = float(os.getenv("CHAT_TIMEOUT_SECONDS", "120.0"))

logger = get_logger(__name__)

router = APIRouter()


@router.get("/", include_in_schema=False)
async def root():
    return RedirectResponse(url="/docs")


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class ChatRequest(BaseModel):
    """Request body for /chat and /chat/stream."""

    message: str = Field(
        ..., min_length=1, max_length=1000, description="What the user is looking for"
    )
    session_id: str | None = Field(
        None, max_length=64, description="Conversation to continue (created if unknown)"
    )
    prior_message: str | None = Field(
        None,
        max_length=1000,
        description="Previous message; overrides the session's own history",
    )


class ProductItem(BaseModel):
    title: str = Field(..., min_length=1)
    link: str = ""
    snippet: str = ""
    image: str | None = None
    domain: str = ""


class IntroduceRequest(BaseModel):
    """Request body for /products/introduce."""

    request: str = Field(..., min_length=1, max_length=1000)
    product: ProductItem


class IntroduceResponse(BaseModel):
    introduction: str


class HealthResponse(BaseModel):
    """Health check response with component status."""

    status: str
    llm_configured: bool
    search_configured: bool


class ErrorResponse(BaseModel):
    """Structured error response (not stack traces)."""

    error: str
    query: str
    stage: int | None = None


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _error_response(
    status_code: int, error_msg: str, query: str, stage: int | None = None
) -> JSONResponse:
    """Build a standardized JSON error response."""
    return JSONResponse(
        status_code=status_code,
        content={"error": error_msg, "query": query, "stage": stage},
    )


def _is_timeout(exc: BaseException) -> bool:
    if isinstance(exc, ModelInvocationError):
        return exc.is_timeout
    return isinstance(exc.__cause__, TimeoutError)


def status_for_error(exc: ZooGentError) -> int:
    """Map a pipeline error to an HTTP status."""
    if _is_timeout(exc):
        return 504
    if isinstance(exc, (SearchBackendError, NoResultsError)):
        return 502
    return 500


def error_payload(exc: ZooGentError, query: str) -> dict:
    # The request on the error is the classified one; its text is the user's
    original = exc.request.text if exc.request is not None else query
    return {
        "error": str(exc),
        "query": original,
        "stage": int(exc.stage) if exc.stage is not None else None,
    }


async def _run_turn(
    app,
    body: ChatRequest,
    on_progress: ProgressCallback | None = None,
) -> tuple[str | None, TurnResult]:
    """Run one turn through the session store, or directly without one.

    ``prior_message`` overrides the session's history for this turn but the
    turn is still recorded in the session.
    """
    if app.state.sessions is None:
        result = await app.state.orchestrator.run(
            body.message, body.prior_message, on_progress
        )
        return body.session_id, result

    session = app.state.sessions.get(body.session_id)
    result = await session.submit(body.message, on_progress, body.prior_message)
    return session.session_id, result


def _response_body(session_id: str | None, result: TurnResult) -> dict:
    payload = result.to_dict()
    payload["sessionId"] = session_id
    return payload


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    """Deployment health probe.

    Reports configuration, not reachability: probing the LLM or the search
    API would cost quota on every check.
    """
    app = request.app
    llm_ok = getattr(app.state, "invoker", None) is not None
    backend = getattr(app.state, "search_backend", None)
    search_ok = bool(getattr(backend, "is_configured", backend is not None))

    if llm_ok and search_ok:
        status = "healthy"
    elif llm_ok or search_ok:
        status = "degraded"
    else:
        status = "unhealthy"
    return {"status": status, "llm_configured": llm_ok, "search_configured": search_ok}


# ---------------------------------------------------------------------------
# Chat (non-streaming)
# ---------------------------------------------------------------------------


@router.post(
    "/chat",
    responses={
        500: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
        504: {"model": ErrorResponse},
    },
)
async def chat(request: Request, body: ChatRequest):
    """Run one shopping turn and return ranked products plus summaries."""
    app = request.app
    q = body.message

    if getattr(app.state, "orchestrator", None) is None:
        return _error_response(503, "Shopping pipeline unavailable", q)

    try:
        session_id, result = await asyncio.wait_for(
            _run_turn(app, body), timeout=CHAT_TIMEOUT_SECONDS
        )
    except asyncio.TimeoutError:
        logger.warning("Turn timeout for message: %s", q)
        return _error_response(
            504, f"Request timeout ({CHAT_TIMEOUT_SECONDS:.0f}s)", q
        )
    except ZooGentError as exc:
        status = status_for_error(exc)
        logger.warning("Turn failed (%d): %s", status, exc)
        return JSONResponse(status_code=status, content=error_payload(exc, q))
    except Exception:
        logger.exception("Chat failed for message: %s", q)
        return _error_response(500, "Internal server error", q)

    return _response_body(session_id, result)


# ---------------------------------------------------------------------------
# Chat (SSE streaming)
# ---------------------------------------------------------------------------


def _sse_event(event: str, data: str) -> str:
    """Format a single SSE event."""
    return f"event: {event}\ndata: {data}\n\n"


_DONE = object()


async def _stream_chat(body: ChatRequest, app) -> AsyncIterator[str]:
    """Yield a ``stage`` event as each stage starts, then ``result`` or ``error``."""
    if getattr(app.state, "orchestrator", None) is None:
        yield _sse_event(
            "error",
            json.dumps({"error": "Shopping pipeline unavailable", "query": body.message}),
        )
        return

    queue: asyncio.Queue = asyncio.Queue()

    def on_progress(stage: PipelineStage) -> None:
        queue.put_nowait(stage)

    async def turn():
        try:
            return await asyncio.wait_for(
                _run_turn(app, body, on_progress), timeout=CHAT_TIMEOUT_SECONDS
            )
        finally:
            queue.put_nowait(_DONE)

    task = asyncio.create_task(turn())
    try:
        while (item := await queue.get()) is not _DONE:
            yield _sse_event(
                "stage", json.dumps({"stage": int(item), "name": item.name.lower()})
            )

        try:
            session_id, result = await task
        except asyncio.TimeoutError:
            logger.warning("Streaming turn timeout for message: %s", body.message)
            yield _sse_event(
                "error",
                json.dumps(
                    {
                        "error": f"Request timeout ({CHAT_TIMEOUT_SECONDS:.0f}s)",
                        "query": body.message,
                        "stage": None,
                    }
                ),
            )
            return
        except ZooGentError as exc:
            logger.warning("Streaming turn failed: %s", exc)
            yield _sse_event("error", json.dumps(error_payload(exc, body.message)))
            return
        except Exception:
            logger.exception("Streaming turn crashed")
            yield _sse_event(
                "error",
                json.dumps({"error": "Internal server error", "query": body.message}),
            )
            return

        yield _sse_event("result", json.dumps(_response_body(session_id, result)))
    finally:
        if not task.done():
            task.cancel()


@router.post("/chat/stream")
async def chat_stream(request: Request, body: ChatRequest):
    """Stream stage progress for one turn via SSE, ending with the result."""
    return StreamingResponse(
        _stream_chat(body, request.app),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


# ---------------------------------------------------------------------------
# Product introduction
# ---------------------------------------------------------------------------


@router.post(
    "/products/introduce",
    response_model=IntroduceResponse,
    responses={503: {"model": ErrorResponse}},
)
async def introduce(request: Request, body: IntroduceRequest):
    """Write a short introduction for one listing, tailored to the request."""
    invoker = getattr(request.app.state, "invoker", None)
    if invoker is None:
        return _error_response(503, "LLM service unavailable", body.request)

    item = SearchResultItem.from_dict(body.product.model_dump())
    introduction = await introduce_product(invoker, body.request, item)
    return {"introduction": introduction}


# ---------------------------------------------------------------------------
# Prometheus metrics
# ---------------------------------------------------------------------------


@router.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    body, content_type = metrics_response()
    return Response(content=body, media_type=content_type)
