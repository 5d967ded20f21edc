"""
FastAPI application factory.

Creates the app with lifespan-managed singletons (LLM invoker, search
backend, pipeline orchestrator, session store) so clients are built once
at startup and shared across requests.
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from zoogent.api.middleware import LatencyMiddleware
from zoogent.api.routes import router
from zoogent.config import get_logger

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",")]

logger = get_logger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    """Initialize shared resources at startup, release at shutdown."""
    logger.info("Starting ZooGent API...")

    from zoogent.config import (
        ANTHROPIC_API_KEY,
        GOOGLE_SEARCH_API_KEY,
        GOOGLE_SEARCH_CX,
        LLM_PROVIDER,
        OPENAI_API_KEY,
    )

    # Validate credentials early; the app still starts so /health can report
    if LLM_PROVIDER == "anthropic" and not ANTHROPIC_API_KEY:
        logger.warning("LLM_PROVIDER=anthropic but ANTHROPIC_API_KEY is not set")
    elif LLM_PROVIDER == "openai" and not OPENAI_API_KEY:
        logger.warning("LLM_PROVIDER=openai but OPENAI_API_KEY is not set")
    if not (GOOGLE_SEARCH_API_KEY and GOOGLE_SEARCH_CX):
        logger.warning(
            "GOOGLE_SEARCH_API_KEY / GOOGLE_SEARCH_CX not set -- searches will fail"
        )

    from zoogent.adapters.search import get_search_backend
    from zoogent.services.invoker import AgentInvoker
    from zoogent.services.pipeline import PipelineOrchestrator
    from zoogent.services.search import DomainSearchService
    from zoogent.services.session import SessionStore

    try:
        app.state.invoker = AgentInvoker()
        logger.info("Agent invoker ready (%s)", app.state.invoker.model)
    except Exception:
        logger.exception("Failed to initialize LLM client -- /chat will return 503")
        app.state.invoker = None

    app.state.search_backend = get_search_backend()

    if app.state.invoker is not None:
        app.state.orchestrator = PipelineOrchestrator(
            invoker=app.state.invoker,
            search=DomainSearchService(app.state.search_backend),
        )
        app.state.sessions = SessionStore(app.state.orchestrator)
    else:
        app.state.orchestrator = None
        app.state.sessions = None

    logger.info("ZooGent API ready")
    yield
    if app.state.sessions is not None:
        app.state.sessions.clear()
    logger.info("ZooGent API shutting down")


def create_app() -> FastAPI:
    """Application factory."""
    app = FastAPI(
        title="ZooGent",
        description="Conversational shopping assistant API",
        version="0.1.0",
        lifespan=_lifespan,
    )
    app.add_middleware(LatencyMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app
