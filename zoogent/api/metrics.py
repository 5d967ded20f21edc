"""
Prometheus metrics with graceful degradation.

If ``prometheus-client`` is not installed, all metric operations become no-ops
so the application can run without the optional dependency.
"""

from __future__ import annotations

from zoogent.config import get_logger

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# Lazy-init: import prometheus_client only if available
# ---------------------------------------------------------------------------

try:
    from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

    REQUEST_COUNT = Counter(
        "zoogent_requests_total",
        "Total HTTP requests",
        ["endpoint", "method", "status"],
    )

    REQUEST_DURATION = Histogram(
        "zoogent_request_duration_ms",
        "Request latency in milliseconds",
        ["endpoint"],
        buckets=(10, 50, 100, 250, 500, 1000, 2500, 5000, 10000, 20000, 40000, 60000),
    )

    LLM_DURATION = Histogram(
        "zoogent_llm_call_duration_seconds",
        "Latency of one agent invocation",
        ["role"],
        buckets=(0.25, 0.5, 1, 2, 4, 8, 15, 20, 30),
    )

    STAGE_FALLBACKS = Counter(
        "zoogent_stage_fallbacks_total",
        "Pipeline steps that degraded instead of failing the turn",
        ["step", "mode"],  # mode: fallback, fail_open
    )

    TURN_OUTCOMES = Counter(
        "zoogent_turns_total",
        "Completed pipeline turns by outcome",
        ["outcome"],  # ok, or the error class name
    )

    _PROMETHEUS_AVAILABLE = True

except ImportError:
    _PROMETHEUS_AVAILABLE = False
    logger.info("prometheus-client not installed; metrics disabled")


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------

def record_request(endpoint: str, method: str, status: int) -> None:
    """Increment the request counter."""
    if _PROMETHEUS_AVAILABLE:
        REQUEST_COUNT.labels(endpoint=endpoint, method=method, status=str(status)).inc()


def observe_duration(endpoint: str, duration_ms: float) -> None:
    """Record request duration."""
    if _PROMETHEUS_AVAILABLE:
        REQUEST_DURATION.labels(endpoint=endpoint).observe(duration_ms)


def observe_llm_duration(role: str, duration_s: float) -> None:
    if _PROMETHEUS_AVAILABLE:
        LLM_DURATION.labels(role=role).observe(duration_s)


def record_stage_fallback(step: str, mode: str) -> None:
    """Count a degraded step. ``mode`` is ``fallback`` or ``fail_open``."""
    if _PROMETHEUS_AVAILABLE:
        STAGE_FALLBACKS.labels(step=step, mode=mode).inc()


def record_turn(outcome: str) -> None:
    if _PROMETHEUS_AVAILABLE:
        TURN_OUTCOMES.labels(outcome=outcome).inc()


def prometheus_available() -> bool:
    """Return True if prometheus-client is importable."""
    return _PROMETHEUS_AVAILABLE


def metrics_response() -> tuple[bytes, str]:
    """Return (body, content_type) for the /metrics endpoint."""
    if not _PROMETHEUS_AVAILABLE:
        return b"# prometheus-client not installed\n", "text/plain"
    return generate_latest(), CONTENT_TYPE_LATEST
