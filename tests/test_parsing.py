"""Tests for zoogent.core.parsing: output extraction and shape decoders."""

import pytest

from zoogent.core.errors import MalformedModelOutputError
from zoogent.core.models import JsonResult, ListResult, OutputKind, TextResult, UserType
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


class TestExtractText:
    def test_trims_whitespace(self):
        assert extract_text("  best running earbuds 2024 \n").text == "best running earbuds 2024"

    def test_blank_and_none_are_empty(self):
        assert extract_text("   ").is_empty
        assert extract_text(None).text == ""


class TestExtractList:
    def test_numbered_lines_in_order(self):
        raw = "1. Sony WF-1000XM5\n2. Apple AirPods Pro 2\n3.Jabra Elite 8 Active"
        assert extract_list(raw).items == [
            "Sony WF-1000XM5",
            "Apple AirPods Pro 2",
            "Jabra Elite 8 Active",
        ]

    def test_ignores_chatter_around_list(self):
        raw = "Here are my picks:\n\n  1. Anker Soundcore A40\n  2. Shokz OpenRun Pro\nHope this helps!"
        assert extract_list(raw).items == ["Anker Soundcore A40", "Shokz OpenRun Pro"]

    def test_no_ordinal_lines_returns_empty(self):
        result = extract_list("- Sony\n- Bose\nNothing numbered here")
        assert isinstance(result, ListResult)
        assert result.items == []

    def test_blank_input_returns_empty(self):
        assert extract_list("").items == []

    def test_multi_digit_ordinals(self):
        raw = "\n".join(f"{i}. item {i}" for i in range(1, 12))
        assert extract_list(raw).items[-1] == "item 11"


class TestExtractJson:
    def test_plain_object(self):
        assert extract_json('{"userType": "B2B"}').data == {"userType": "B2B"}

    def test_object_inside_code_fence(self):
        raw = 'Sure!\n```json\n{"relevantIndices": [0, 2]}\n```'
        assert extract_json(raw).data == {"relevantIndices": [0, 2]}

    def test_nested_braces_use_outer_span(self):
        raw = 'prefix {"products": [{"title": "A"}, {"title": "B"}]} suffix'
        assert extract_json(raw).data["products"][1]["title"] == "B"

    def test_no_braces_raises(self):
        with pytest.raises(MalformedModelOutputError):
            extract_json("I could not decide, sorry.")

    def test_unparsable_span_raises(self):
        with pytest.raises(MalformedModelOutputError) as exc_info:
            extract_json('{"products": [1, 2,}')
        assert exc_info.value.raw_text.startswith("{")

    def test_two_objects_in_one_answer_raises(self):
        with pytest.raises(MalformedModelOutputError):
            extract_json('{"a": 1} and {"b": 2}')

    def test_blank_input_is_no_result(self):
        result = extract_json("  \n")
        assert result.data is None
        assert result.is_empty


class TestExtractDispatch:
    def test_dispatch_by_kind(self):
        assert isinstance(extract(OutputKind.TEXT, "x"), TextResult)
        assert isinstance(extract(OutputKind.LIST, "1. x"), ListResult)
        assert isinstance(extract("json", "{}"), JsonResult)


class TestDecoders:
    def test_user_type_case_insensitive(self):
        assert decode_user_type(JsonResult({"userType": "b2b"})) is UserType.B2B
        assert decode_user_type(JsonResult({"userType": " B2C "})) is UserType.B2C

    def test_unknown_user_type_defaults_b2c(self):
        assert decode_user_type(JsonResult({"userType": "enterprise"})) is UserType.B2C

    def test_missing_key_raises(self):
        with pytest.raises(MalformedModelOutputError):
            decode_user_type(JsonResult({"type": "B2B"}))

    def test_no_result_raises(self):
        with pytest.raises(MalformedModelOutputError):
            decode_user_type(JsonResult(None))

    def test_relevant_indices_coerces_and_drops(self):
        result = JsonResult({"relevantIndices": [2, "0", True, "x", 1.5, -1]})
        assert decode_relevant_indices(result) == [2, 0, -1]

    def test_relevant_indices_wrong_type_raises(self):
        with pytest.raises(MalformedModelOutputError):
            decode_relevant_indices(JsonResult({"relevantIndices": "0,1"}))

    def test_ranked_entries_passthrough(self):
        entries = [{"title": "A"}, "B"]
        assert decode_ranked_entries(JsonResult({"products": entries})) == entries

    def test_introduction_trimmed(self):
        result = JsonResult({"introduction": "  Great for runners.  "})
        assert decode_introduction(result) == "Great for runners."
