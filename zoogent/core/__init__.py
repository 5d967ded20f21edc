"""
ZooGent core domain layer.

Pure domain logic with no external service dependencies.
Contains models, errors, prompts, output parsing, candidate assembly and
the per-stage failure policy.
"""

# Models (all dataclasses)
from zoogent.core.models import (
    # Requests
    UserRequest,
    UserType,
    # Agents
    AgentInstruction,
    AgentResult,
    AgentRole,
    JsonResult,
    ListResult,
    OutputKind,
    TextResult,
    # Search
    SearchResultItem,
    normalize_title,
    # Configuration
    DomainConfig,
    PipelineSettings,
    PipelineVariant,
    # Pipeline
    PipelineRun,
    PipelineStage,
    TurnResult,
)

# Errors
from zoogent.core.errors import (
    MalformedModelOutputError,
    ModelInvocationError,
    NoResultsError,
    SearchBackendError,
    ZooGentError,
)

# Candidates
from zoogent.core.candidates import (
    dedupe_by_title,
    index_items,
    merge_candidates,
)

# Parsing
from zoogent.core.parsing import (
    decode_introduction,
    decode_ranked_entries,
    decode_relevant_indices,
    decode_user_type,
    extract,
    extract_json,
    extract_list,
    extract_text,
)

# Policy
from zoogent.core.policy import (
    STAGE_POLICIES,
    FailureMode,
    PolicyStep,
    StagePolicy,
    get_policy,
    resolve_failure,
)

# Prompts
from zoogent.core.prompts import (
    AGENT_INSTRUCTIONS,
    get_instruction,
)

__all__ = [
    # Models
    "UserRequest",
    "UserType",
    "AgentInstruction",
    "AgentResult",
    "AgentRole",
    "JsonResult",
    "ListResult",
    "OutputKind",
    "TextResult",
    "SearchResultItem",
    "normalize_title",
    "DomainConfig",
    "PipelineSettings",
    "PipelineVariant",
    "PipelineRun",
    "PipelineStage",
    "TurnResult",
    # Errors
    "ZooGentError",
    "ModelInvocationError",
    "MalformedModelOutputError",
    "SearchBackendError",
    "NoResultsError",
    # Candidates
    "dedupe_by_title",
    "merge_candidates",
    "index_items",
    # Parsing
    "extract",
    "extract_text",
    "extract_list",
    "extract_json",
    "decode_user_type",
    "decode_relevant_indices",
    "decode_ranked_entries",
    "decode_introduction",
    # Policy
    "FailureMode",
    "PolicyStep",
    "StagePolicy",
    "STAGE_POLICIES",
    "get_policy",
    "resolve_failure",
    # Prompts
    "AGENT_INSTRUCTIONS",
    "get_instruction",
]
