"""
ZooGent adapters layer.

External service wrappers that implement the interfaces expected by the
service layer: hosted LLM clients and the web search backend.
"""

# LLM clients
from zoogent.adapters.llm import (
    AnthropicClient,
    LLMClient,
    OpenAIClient,
    get_llm_client,
)

# Web search
from zoogent.adapters.search import (
    GoogleCustomSearchClient,
    SearchBackend,
    get_search_backend,
)

__all__ = [
    # LLM
    "LLMClient",
    "AnthropicClient",
    "OpenAIClient",
    "get_llm_client",
    # Search
    "SearchBackend",
    "GoogleCustomSearchClient",
    "get_search_backend",
]
