"""
LLM-backed relevance filtering and ranking.

Under the default STAGE_POLICIES both operations fail open: when the
model errors, times out, or answers with nothing usable, the caller
gets its input back unchanged. A bad ranking agent should cost ordering
quality, never products.

Guarantees regardless of what the model says:
- filter() returns a subsequence of its input, in input order
- rank() returns a permutation of its input
- rank_names() returns a permutation of its input names
"""

from __future__ import annotations

from typing import Any

from zoogent.api.metrics import record_stage_fallback
from zoogent.config import get_logger
from zoogent.core.candidates import index_items
from zoogent.core.errors import MalformedModelOutputError, ModelInvocationError
from zoogent.core.models import AgentRole, JsonResult, SearchResultItem, UserType, normalize_title
from zoogent.core.parsing import decode_ranked_entries, decode_relevant_indices
from zoogent.core.policy import PolicyStep, get_policy, resolve_failure
from zoogent.core.prompts import (
    build_filter_content,
    build_match_content,
    build_rank_content,
)
from zoogent.services.invoker import AgentInvoker

logger = get_logger(__name__)


def _recover(step: PolicyStep, error: BaseException | str, unchanged: list) -> list:
    """Apply the step's failure policy; fail-open steps get ``unchanged`` back."""
    value = resolve_failure(step, error, unchanged)
    mode = get_policy(step).on_failure.value
    logger.warning(
        "Ranking step degraded: %s", error, extra={"stage": step.value, "mode": mode}
    )
    record_stage_fallback(step.value, mode)
    return list(value)


def _match_position(
    entry: Any,
    by_link: dict[str, int],
    by_title: dict[str, int],
) -> int | None:
    """Map one echoed entry (object or bare title) back to an input position."""
    if isinstance(entry, dict):
        link = entry.get("link")
        if isinstance(link, str) and link in by_link:
            return by_link[link]
        title = entry.get("title")
    elif isinstance(entry, str):
        title = entry
    else:
        return None
    if isinstance(title, str):
        return by_title.get(normalize_title(title))
    return None


def apply_ordering(items: list, positions: list[int]) -> list:
    """Reorder by ``positions`` (first mention wins), then append the rest."""
    seen: set[int] = set()
    ordered = []
    for position in positions:
        if position in seen:
            continue
        seen.add(position)
        ordered.append(items[position])
    ordered.extend(item for i, item in enumerate(items) if i not in seen)
    return ordered


class RelevanceRanker:
    """Filter and rank candidate listings with the relevance and match agents."""

    def __init__(self, invoker: AgentInvoker):
        self.invoker = invoker

    async def _ask(self, role: AgentRole, content: str) -> JsonResult:
        result = await self.invoker.run(role, content)
        if not isinstance(result, JsonResult):
            raise MalformedModelOutputError(f"{role.value} is not a json role")
        return result

    async def filter(
        self,
        query: str,
        items: list[SearchResultItem],
        user_type: UserType,
    ) -> list[SearchResultItem]:
        """
        Keep the items the model judges relevant, in original order.

        Indices are deduplicated and out-of-range ones ignored. An answer
        that selects nothing valid is treated as unusable and the input is
        returned unchanged.
        """
        if not items:
            return []

        try:
            result = await self._ask(
                AgentRole.FILTER_RELEVANCE,
                build_filter_content(query, items, user_type),
            )
            indices = decode_relevant_indices(result)
        except (ModelInvocationError, MalformedModelOutputError) as exc:
            return _recover(PolicyStep.FILTER, exc, items)

        keep = {i for i in indices if 0 <= i < len(items)}
        if not keep:
            return _recover(PolicyStep.FILTER, "no valid indices selected", items)

        logger.info("Relevance filter kept %d/%d", len(keep), len(items))
        return [item for i, item in enumerate(items) if i in keep]

    async def rank(
        self,
        query: str,
        items: list[SearchResultItem],
        user_type: UserType,
    ) -> list[SearchResultItem]:
        """
        Order items most suitable first.

        The model echoes listing objects back; each is matched to an input
        item by link, then by normalized title. Unknown entries are ignored
        and items the model omitted are appended in original order.
        """
        if len(items) < 2:
            return list(items)

        try:
            result = await self._ask(
                AgentRole.RANK_PRODUCTS,
                build_rank_content(query, items, user_type),
            )
            entries = decode_ranked_entries(result)
        except (ModelInvocationError, MalformedModelOutputError) as exc:
            return _recover(PolicyStep.RANK, exc, items)

        by_link, by_title = index_items(items)
        positions = [
            position
            for position in (_match_position(e, by_link, by_title) for e in entries)
            if position is not None
        ]
        if not positions:
            return _recover(PolicyStep.RANK, "no recognizable entries in ranking", items)

        unknown = len(entries) - len(positions)
        if unknown:
            logger.info("Ignored %d unrecognized ranking entries", unknown)
        return apply_ordering(items, positions)

    async def rank_names(
        self,
        query: str,
        names: list[str],
        user_type: UserType,
    ) -> list[str]:
        """Order recommended product names with the match agent."""
        if len(names) < 2:
            return list(names)

        try:
            result = await self._ask(
                AgentRole.MATCH_PRODUCTS,
                build_match_content(query, names, user_type),
            )
            entries = decode_ranked_entries(result)
        except (ModelInvocationError, MalformedModelOutputError) as exc:
            return _recover(PolicyStep.RANK, exc, names)

        by_title: dict[str, int] = {}
        for position, name in enumerate(names):
            by_title.setdefault(normalize_title(name), position)
        positions = [
            by_title[normalize_title(e)]
            for e in entries
            if isinstance(e, str) and normalize_title(e) in by_title
        ]
        if not positions:
            return _recover(PolicyStep.RANK, "no recognizable names in ranking", names)
        return apply_ordering(names, positions)
