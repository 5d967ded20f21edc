"""
Per-stage failure policy.

Every fallible step of a turn has exactly one entry here. The orchestrator
looks the step up instead of hard-coding its own try/except behavior, so
the table below is the single place to read how a turn degrades.

    fallback     substitute a fixed value and continue
    fail_open    return the step's input unchanged and continue
    fail_closed  abort the turn with the error
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from zoogent.core.errors import ZooGentError


class FailureMode(str, Enum):
    FALLBACK = "fallback"
    FAIL_OPEN = "fail_open"
    FAIL_CLOSED = "fail_closed"


class PolicyStep(str, Enum):
    """Fallible steps inside a turn (finer grained than PipelineStage)."""

    CLASSIFY = "classify"
    REWRITE = "rewrite"
    EXPAND = "expand"
    FORUM = "forum"
    MARKETPLACE_SEARCH = "marketplace_search"
    FILTER = "filter"
    RANK = "rank"
    RECOMMEND = "recommend"
    CONCLUDE = "conclude"


@dataclass(frozen=True)
class StagePolicy:
    step: PolicyStep
    on_failure: FailureMode
    max_attempts: int = 1
    fallback: str | None = None


FALLBACK_FORUM_SUMMARY = "No summary available."
NO_FORUM_RESULTS_SUMMARY = "No forum results found."
FALLBACK_CONCLUSION = "Here are your personalized product recommendations:"


STAGE_POLICIES: Mapping[PolicyStep, StagePolicy] = MappingProxyType(
    {
        PolicyStep.CLASSIFY: StagePolicy(PolicyStep.CLASSIFY, FailureMode.FALLBACK),
        PolicyStep.REWRITE: StagePolicy(PolicyStep.REWRITE, FailureMode.FALLBACK),
        PolicyStep.EXPAND: StagePolicy(PolicyStep.EXPAND, FailureMode.FALLBACK),
        PolicyStep.FORUM: StagePolicy(
            PolicyStep.FORUM, FailureMode.FALLBACK, fallback=FALLBACK_FORUM_SUMMARY
        ),
        PolicyStep.MARKETPLACE_SEARCH: StagePolicy(
            PolicyStep.MARKETPLACE_SEARCH, FailureMode.FAIL_CLOSED
        ),
        PolicyStep.FILTER: StagePolicy(PolicyStep.FILTER, FailureMode.FAIL_OPEN),
        PolicyStep.RANK: StagePolicy(PolicyStep.RANK, FailureMode.FAIL_OPEN),
        PolicyStep.RECOMMEND: StagePolicy(
            PolicyStep.RECOMMEND, FailureMode.FALLBACK, max_attempts=3
        ),
        PolicyStep.CONCLUDE: StagePolicy(
            PolicyStep.CONCLUDE, FailureMode.FALLBACK, fallback=FALLBACK_CONCLUSION
        ),
    }
)


def get_policy(step: PolicyStep | str) -> StagePolicy:
    return STAGE_POLICIES[PolicyStep(step)]


def resolve_failure(step: PolicyStep | str, error: BaseException | str, default: Any) -> Any:
    """
    Value a turn continues with after ``step`` failed.

    ``default`` is what the caller would use without a table entry: the
    step's own input for fail-open steps, the stage's safe value otherwise.
    A fallback step with a fixed ``fallback`` text returns that text instead.

    Raises:
        The original error (or ZooGentError for a reason string) when the
        step fails closed.
    """
    policy = get_policy(step)
    if policy.on_failure is FailureMode.FAIL_CLOSED:
        if isinstance(error, BaseException):
            raise error
        raise ZooGentError(f"{policy.step.value} failed: {error}")
    if policy.on_failure is FailureMode.FALLBACK and policy.fallback is not None:
        return policy.fallback
    return default


__all__ = [
    "FailureMode",
    "PolicyStep",
    "StagePolicy",
    "STAGE_POLICIES",
    "get_policy",
    "resolve_failure",
    "FALLBACK_FORUM_SUMMARY",
    "NO_FORUM_RESULTS_SUMMARY",
    "FALLBACK_CONCLUSION",
]
