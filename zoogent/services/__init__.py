"""
ZooGent services layer.

Orchestration logic that coordinates between core domain logic and adapters:
agent invocation, domain-scoped search, relevance ranking, the turn
pipeline, conversation sessions and product introductions.
"""

# Agent invocation
from zoogent.services.invoker import AgentInvoker

# Search
from zoogent.services.search import DomainSearchService

# Ranking
from zoogent.services.ranking import RelevanceRanker

# Pipeline
from zoogent.services.pipeline import (
    PipelineOrchestrator,
    ProgressCallback,
    run_pipeline,
)

# Sessions
from zoogent.services.session import (
    ConversationSession,
    SessionStore,
    Turn,
)

# Advertising
from zoogent.services.advertising import introduce_product

__all__ = [
    "AgentInvoker",
    "DomainSearchService",
    "RelevanceRanker",
    "PipelineOrchestrator",
    "ProgressCallback",
    "run_pipeline",
    "ConversationSession",
    "SessionStore",
    "Turn",
    "introduce_product",
]
