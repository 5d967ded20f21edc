"""
ZooGent: Conversational Shopping Assistant

Turns a free-text product request into a ranked, deduplicated list of
marketplace listings plus a forum summary, through a chain of LLM agent
calls interleaved with domain-scoped web searches.

Architecture:
    zoogent.core       - Pure domain logic (models, prompts, parsing, policy)
    zoogent.adapters   - External service wrappers (LLM, web search)
    zoogent.services   - Orchestration layer (invoker, search, ranking, pipeline)
    zoogent.api        - Thin FastAPI layer
    zoogent.config     - Configuration settings
"""

__version__ = "0.1.0"

# Expose key public API for convenience imports
from zoogent.core import (
    # Models
    SearchResultItem,
    TurnResult,
    UserRequest,
    UserType,
    PipelineStage,
    # Errors
    ZooGentError,
)

from zoogent.services import (
    AgentInvoker,
    ConversationSession,
    PipelineOrchestrator,
    introduce_product,
    run_pipeline,
)

__all__ = [
    # Version
    "__version__",
    # Models
    "SearchResultItem",
    "TurnResult",
    "UserRequest",
    "UserType",
    "PipelineStage",
    "ZooGentError",
    # Services
    "AgentInvoker",
    "ConversationSession",
    "PipelineOrchestrator",
    "introduce_product",
    "run_pipeline",
]
