"""
ZooGent configuration module.

Central configuration for the shopping assistant pipeline.
Loads settings from environment variables with sensible defaults.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    """Read a comma-separated env var into a tuple, falling back to default."""
    raw = os.getenv(name)
    if not raw:
        return default
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ---------------------------------------------------------------------------
# External API Keys
# ---------------------------------------------------------------------------

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
GOOGLE_SEARCH_API_KEY = os.getenv("GOOGLE_SEARCH_API_KEY")
GOOGLE_SEARCH_CX = os.getenv("GOOGLE_SEARCH_CX")


# ---------------------------------------------------------------------------
# LLM Settings
# ---------------------------------------------------------------------------

PROVIDER_ANTHROPIC = "anthropic"
PROVIDER_OPENAI = "openai"

LLM_PROVIDER = os.getenv("LLM_PROVIDER", PROVIDER_ANTHROPIC)

# Model selection
ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-3-5-haiku-latest")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

# Generation settings
LLM_TEMPERATURE = 0.2  # Near-deterministic agents
LLM_MAX_TOKENS = 1024  # Ranking echoes full product objects back
LLM_TIMEOUT = 60.0  # SDK-level socket timeout
LLM_MAX_RETRIES = 0  # Retries are a pipeline policy, not a transport one

# Per-call budget enforced by the invoker (timeout counts as failure)
LLM_CALL_TIMEOUT = float(os.getenv("LLM_CALL_TIMEOUT", "20.0"))


# ---------------------------------------------------------------------------
# Web Search
# ---------------------------------------------------------------------------

GOOGLE_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"
SEARCH_TIMEOUT = float(os.getenv("SEARCH_TIMEOUT", "15.0"))
SEARCH_MAX_RESULTS = 10  # Custom Search API hard limit per request

FORUM_DOMAINS = _env_list(
    "FORUM_DOMAINS",
    (
        "reddit.com/r/malaysia",
        "facebook.com",
        "quora.com",
        "forum.lowyat.net",
    ),
)

MARKETPLACE_B2C_DOMAINS = _env_list(
    "MARKETPLACE_B2C_DOMAINS",
    (
        "amazon.com",
        "shopee.com.my",
        "lazada.com.my",
    ),
)

MARKETPLACE_B2B_DOMAINS = _env_list(
    "MARKETPLACE_B2B_DOMAINS",
    (
        "alibaba.com",
        "made-in-china.com",
        "globalsources.com",
    ),
)


# ---------------------------------------------------------------------------
# Pipeline Settings
# ---------------------------------------------------------------------------

RESULTS_PER_DOMAIN = int(os.getenv("RESULTS_PER_DOMAIN", "2"))
MAX_CANDIDATES = 20  # Distinct marketplace listings kept per turn
CONCLUSION_TOP_N = 20  # Listings shown to the closing-message agent
RECOMMEND_MAX_ATTEMPTS = 3  # Recommendation generation retry bound
MAX_SUB_QUERIES = 5
EXPAND_QUERIES = _env_bool("EXPAND_QUERIES", True)
PIPELINE_VARIANT = os.getenv("PIPELINE_VARIANT", "direct_rank")


def default_domain_config():
    """Build the immutable domain lists injected into the orchestrator."""
    from zoogent.core.models import DomainConfig

    return DomainConfig(
        forum=FORUM_DOMAINS,
        marketplace_b2c=MARKETPLACE_B2C_DOMAINS,
        marketplace_b2b=MARKETPLACE_B2B_DOMAINS,
    )


def default_pipeline_settings():
    """Build pipeline settings from the environment-derived constants."""
    from zoogent.core.models import PipelineSettings, PipelineVariant

    return PipelineSettings(
        results_per_domain=RESULTS_PER_DOMAIN,
        max_candidates=MAX_CANDIDATES,
        conclusion_top_n=CONCLUSION_TOP_N,
        recommend_max_attempts=RECOMMEND_MAX_ATTEMPTS,
        max_sub_queries=MAX_SUB_QUERIES,
        expand_queries=EXPAND_QUERIES,
        variant=PipelineVariant(PIPELINE_VARIANT),
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

from zoogent.config.logging import (  # noqa: E402
    get_logger,
    configure_logging,
    log_banner,
    log_section,
    log_kv,
    LOG_LEVEL,
    LOG_FORMAT,
)


# ---------------------------------------------------------------------------
# All exports
# ---------------------------------------------------------------------------

__all__ = [
    # API keys
    "ANTHROPIC_API_KEY",
    "OPENAI_API_KEY",
    "GOOGLE_SEARCH_API_KEY",
    "GOOGLE_SEARCH_CX",
    # LLM
    "PROVIDER_ANTHROPIC",
    "PROVIDER_OPENAI",
    "LLM_PROVIDER",
    "ANTHROPIC_MODEL",
    "OPENAI_MODEL",
    "LLM_TEMPERATURE",
    "LLM_MAX_TOKENS",
    "LLM_TIMEOUT",
    "LLM_MAX_RETRIES",
    "LLM_CALL_TIMEOUT",
    # Search
    "GOOGLE_SEARCH_URL",
    "SEARCH_TIMEOUT",
    "SEARCH_MAX_RESULTS",
    "FORUM_DOMAINS",
    "MARKETPLACE_B2C_DOMAINS",
    "MARKETPLACE_B2B_DOMAINS",
    # Pipeline
    "RESULTS_PER_DOMAIN",
    "MAX_CANDIDATES",
    "CONCLUSION_TOP_N",
    "RECOMMEND_MAX_ATTEMPTS",
    "MAX_SUB_QUERIES",
    "EXPAND_QUERIES",
    "PIPELINE_VARIANT",
    "default_domain_config",
    "default_pipeline_settings",
    # Logging
    "get_logger",
    "configure_logging",
    "log_banner",
    "log_section",
    "log_kv",
    "LOG_LEVEL",
    "LOG_FORMAT",
]
