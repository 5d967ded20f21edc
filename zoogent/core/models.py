"""
Core domain models for the ZooGent shopping pipeline.

All dataclasses are consolidated here for:
- Single source of truth for type definitions
- Easy imports across modules
- Clear domain model documentation

Models are organized by domain area.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from typing import Any, Union


# ============================================================================
# REQUEST MODELS
# ============================================================================


class UserType(str, Enum):
    """Requester classification; drives marketplace lists and prompt framing."""

    B2C = "B2C"
    B2B = "B2B"

    @property
    def label(self) -> str:
        if self is UserType.B2B:
            return "B2B (business buyer looking for suppliers, bulk or wholesale)"
        return "B2C (individual consumer buying for personal use)"


@dataclass(frozen=True)
class UserRequest:
    """
    One user turn's request.

    ``prior_text`` carries the previous turn's message so follow-ups
    ("cheaper ones?") can be resolved; agents are stateless otherwise.
    """

    text: str
    prior_text: str | None = None
    user_type: UserType = UserType.B2C

    def with_user_type(self, user_type: UserType) -> UserRequest:
        return replace(self, user_type=user_type)


# ============================================================================
# AGENT MODELS
# ============================================================================


class OutputKind(str, Enum):
    """Shape an agent role is instructed to answer in."""

    TEXT = "text"
    LIST = "list"
    JSON = "json"


class AgentRole(str, Enum):
    """Every role-specific LLM invocation the pipeline makes."""

    CLASSIFY_INTENT = "classify_intent"
    REWRITE_QUERY = "rewrite_query"
    EXPAND_QUERY = "expand_query"
    SUMMARIZE_FORUM = "summarize_forum"
    RECOMMEND_PRODUCTS = "recommend_products"
    RECOMMEND_PRODUCTS_REQUEST_ONLY = "recommend_products_request_only"
    FILTER_RELEVANCE = "filter_relevance"
    RANK_PRODUCTS = "rank_products"
    MATCH_PRODUCTS = "match_products"
    ADVERTISE_PRODUCT = "advertise_product"
    CONCLUDE = "conclude"


@dataclass(frozen=True)
class AgentInstruction:
    """Fixed system text for a role plus the output kind it promises."""

    role: AgentRole
    system_text: str
    output_kind: OutputKind


@dataclass(frozen=True)
class TextResult:
    """Free-text agent output (already trimmed)."""

    text: str
    kind: OutputKind = field(default=OutputKind.TEXT, init=False)

    @property
    def is_empty(self) -> bool:
        return not self.text


@dataclass(frozen=True)
class ListResult:
    """Ordered remainders of ``N. item`` lines."""

    items: list[str]
    kind: OutputKind = field(default=OutputKind.LIST, init=False)

    @property
    def is_empty(self) -> bool:
        return not self.items


@dataclass(frozen=True)
class JsonResult:
    """Parsed JSON object; ``data`` is None when the model said nothing."""

    data: dict[str, Any] | None
    kind: OutputKind = field(default=OutputKind.JSON, init=False)

    @property
    def is_empty(self) -> bool:
        return self.data is None


AgentResult = Union[TextResult, ListResult, JsonResult]


# ============================================================================
# SEARCH MODELS
# ============================================================================


_WHITESPACE = re.compile(r"\s+")


def normalize_title(title: str) -> str:
    """Dedup key for a listing title: casefolded, whitespace collapsed."""
    return _WHITESPACE.sub(" ", (title or "").casefold()).strip()


@dataclass(frozen=True)
class SearchResultItem:
    """
    One normalized web search hit, tagged with the domain it was searched on.

    Produced by the search service and read-only downstream; ranking
    reorders these, it never edits them.
    """

    title: str
    link: str
    snippet: str = ""
    domain: str = ""
    image: str | None = None

    @property
    def title_key(self) -> str:
        return normalize_title(self.title)

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "link": self.link,
            "snippet": self.snippet,
            "image": self.image,
            "domain": self.domain,
        }

    def to_prompt_dict(self) -> dict[str, str]:
        """Compact projection used where prompt size matters."""
        return {"title": self.title, "snippet": self.snippet}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SearchResultItem:
        return cls(
            title=str(data.get("title") or ""),
            link=str(data.get("link") or ""),
            snippet=str(data.get("snippet") or ""),
            domain=str(data.get("domain") or ""),
            image=data.get("image") or data.get("imageUrl") or None,
        )


# ============================================================================
# CONFIGURATION MODELS
# ============================================================================


class PipelineVariant(str, Enum):
    """How stage 4 turns research into a ranked list."""

    DIRECT_RANK = "direct_rank"
    RECOMMEND_THEN_RANK = "recommend_then_rank"


@dataclass(frozen=True)
class DomainConfig:
    """Allowed search domains, injected into the orchestrator at construction."""

    forum: tuple[str, ...]
    marketplace_b2c: tuple[str, ...]
    marketplace_b2b: tuple[str, ...]

    def marketplace_for(self, user_type: UserType) -> tuple[str, ...]:
        if user_type is UserType.B2B:
            return self.marketplace_b2b
        return self.marketplace_b2c


@dataclass(frozen=True)
class PipelineSettings:
    """Tunables for one orchestrator instance."""

    results_per_domain: int = 2
    max_candidates: int = 20
    conclusion_top_n: int = 20
    recommend_max_attempts: int = 3
    max_sub_queries: int = 5
    expand_queries: bool = True
    variant: PipelineVariant = PipelineVariant.DIRECT_RANK


# ============================================================================
# PIPELINE MODELS
# ============================================================================


class PipelineStage(IntEnum):
    """Externally observable progress index of a turn."""

    CLASSIFY = 1
    REWRITE = 2
    RESEARCH = 3
    RANK = 4
    CONCLUDE = 5
    DELIVER = 6


@dataclass
class PipelineRun:
    """
    Scratch state of one turn.

    Created on submit, discarded once the TurnResult is built. Owned by a
    single coroutine so it needs no locking.
    """

    request: UserRequest
    stage: PipelineStage = PipelineStage.CLASSIFY
    search_query: str = ""
    sub_queries: list[str] = field(default_factory=list)
    forum_results: list[SearchResultItem] = field(default_factory=list)
    forum_summary: str = ""
    candidates: list[SearchResultItem] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    ranked: list[SearchResultItem] = field(default_factory=list)
    summary: str = ""
    fallbacks: list[str] = field(default_factory=list)

    def to_result(self) -> TurnResult:
        return TurnResult(
            summary=self.summary,
            search_query=self.search_query,
            user_type=self.request.user_type,
            forum_summary=self.forum_summary,
            forum_results=list(self.forum_results),
            ranked_products=list(self.ranked),
            recommendations=list(self.recommendations),
            stage_reached=self.stage,
            fallbacks=list(self.fallbacks),
        )


@dataclass
class TurnResult:
    """Delivered output of one turn, ready for an API response."""

    summary: str
    search_query: str
    user_type: UserType
    forum_summary: str
    forum_results: list[SearchResultItem]
    ranked_products: list[SearchResultItem]
    recommendations: list[str] = field(default_factory=list)
    stage_reached: PipelineStage = PipelineStage.DELIVER
    fallbacks: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "searchQuery": self.search_query,
            "userType": self.user_type.value,
            "forumInfo": {
                "summary": self.forum_summary,
                "results": [item.to_dict() for item in self.forum_results],
            },
            "rankedProducts": [item.to_dict() for item in self.ranked_products],
            "recommendations": list(self.recommendations),
            "stageReached": int(self.stage_reached),
            "fallbacks": list(self.fallbacks),
        }
