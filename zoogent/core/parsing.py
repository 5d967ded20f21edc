"""
Output extraction for agent responses.

Models are asked for plain text, a numbered list, or a JSON object, but
they often wrap answers in chatter or markdown fences. Extraction is
deliberately tolerant on location (scan lines, find the brace span) and
strict on content (a JSON span that does not parse is an error, never a
partial result).

Per-role JSON shapes are validated with pydantic so callers receive typed
values or a MalformedModelOutputError, nothing in between.
"""

from __future__ import annotations

import json
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from zoogent.core.errors import MalformedModelOutputError
from zoogent.core.models import (
    AgentResult,
    JsonResult,
    ListResult,
    OutputKind,
    TextResult,
    UserType,
)

_LIST_LINE = re.compile(r"^\s*\d+\.\s*(.+)$", re.MULTILINE)


# ---------------------------------------------------------------------------
# Raw extraction
# ---------------------------------------------------------------------------


def extract_text(raw: str | None) -> TextResult:
    return TextResult(text=(raw or "").strip())


def extract_list(raw: str | None) -> ListResult:
    """Ordered remainders of every ``N. item`` line; [] when none match."""
    items = [match.strip() for match in _LIST_LINE.findall(raw or "")]
    return ListResult(items=[item for item in items if item])


def extract_json(raw: str | None) -> JsonResult:
    """
    Parse the span from the first '{' to the last '}'.

    Blank input yields JsonResult(data=None). Non-blank input without a
    brace span, with an unparsable span, or whose span is not an object
    raises MalformedModelOutputError.
    """
    text = (raw or "").strip()
    if not text:
        return JsonResult(data=None)

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        raise MalformedModelOutputError(
            "No JSON object found in model output", raw_text=text
        )

    try:
        data = json.loads(text[start : end + 1])
    except json.JSONDecodeError as exc:
        raise MalformedModelOutputError(
            f"Unparsable JSON in model output: {exc.msg}", raw_text=text
        ) from exc

    if not isinstance(data, dict):
        raise MalformedModelOutputError(
            "Model output JSON is not an object", raw_text=text
        )
    return JsonResult(data=data)


_EXTRACTORS = {
    OutputKind.TEXT: extract_text,
    OutputKind.LIST: extract_list,
    OutputKind.JSON: extract_json,
}


def extract(kind: OutputKind | str, raw: str | None) -> AgentResult:
    """Dispatch to the extractor for an output kind."""
    return _EXTRACTORS[OutputKind(kind)](raw)


# ---------------------------------------------------------------------------
# Shape decoders
# ---------------------------------------------------------------------------


class _UserTypeShape(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_type: str = Field(alias="userType")


class _RelevantIndicesShape(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    relevant_indices: list[Any] = Field(alias="relevantIndices")


class _RankedProductsShape(BaseModel):
    products: list[Any]


class _IntroductionShape(BaseModel):
    introduction: str


def _validate(shape: type[BaseModel], result: JsonResult) -> BaseModel:
    if result.data is None:
        raise MalformedModelOutputError("Model returned no output")
    try:
        return shape.model_validate(result.data)
    except ValidationError as exc:
        raise MalformedModelOutputError(
            f"Unexpected {shape.__name__.strip('_')} payload: "
            f"{exc.error_count()} validation error(s)",
            raw_text=json.dumps(result.data, default=str),
        ) from exc


def decode_user_type(result: JsonResult) -> UserType:
    """``{"userType": ...}`` to UserType; unknown labels mean B2C."""
    shape = _validate(_UserTypeShape, result)
    label = shape.user_type.strip().upper()
    if label == UserType.B2B.value:
        return UserType.B2B
    return UserType.B2C


def decode_relevant_indices(result: JsonResult) -> list[int]:
    """
    ``{"relevantIndices": [...]}`` to a list of ints in model order.

    Entries that are not integers (or integral strings) are dropped here;
    range checks belong to the caller, which knows the candidate count.
    """
    shape = _validate(_RelevantIndicesShape, result)
    indices = []
    for value in shape.relevant_indices:
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            indices.append(value)
        elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
            indices.append(int(value.strip()))
    return indices


def decode_ranked_entries(result: JsonResult) -> list[Any]:
    """``{"products": [...]}`` to the raw entries (objects or names)."""
    return list(_validate(_RankedProductsShape, result).products)


def decode_introduction(result: JsonResult) -> str:
    return _validate(_IntroductionShape, result).introduction.strip()
