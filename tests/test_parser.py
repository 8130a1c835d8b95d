"""
Unit tests for src/completion_client/parser.py.

Covers:
- validate_envelope: each failure kind in check order, success with usage,
  opportunistic decoding of JSON answers.
- analyze_response: non-raising summaries.
- extract_structured: direct decode, code fences, embedded JSON in prose,
  balanced-brace recovery, and inputs with nothing to recover.
"""

from __future__ import annotations

import json
import time

import pytest

from src.completion_client.errors import (
    EmptyResponseError,
    MalformedEnvelopeError,
    MissingChoicesError,
    MissingContentError,
    UpstreamError,
)
from src.completion_client.parser import (
    analyze_response,
    extract_structured,
    extract_structured_from_text,
    strip_code_fences,
    validate_envelope,
)

from conftest import make_envelope


# ---------------------------------------------------------------------------
# validate_envelope: failures
# ---------------------------------------------------------------------------

class TestValidateEnvelopeFailures:

    @pytest.mark.parametrize("raw", [None, "", "   ", b""])
    def test_empty_response(self, raw):
        with pytest.raises(EmptyResponseError):
            validate_envelope(raw)

    def test_not_json(self):
        with pytest.raises(MalformedEnvelopeError):
            validate_envelope("<html>Bad Gateway</html>")

    def test_json_array_is_malformed(self):
        with pytest.raises(MalformedEnvelopeError):
            validate_envelope("[1, 2]")

    def test_error_field(self):
        raw = json.dumps({"error": {"code": "invalid_app", "message": "unknown app_code"}})
        with pytest.raises(UpstreamError) as exc_info:
            validate_envelope(raw)
        assert exc_info.value.code == "invalid_app"
        assert exc_info.value.message == "unknown app_code"

    def test_error_field_checked_before_choices(self):
        raw = json.dumps({"error": {"code": 500}, "choices": []})
        with pytest.raises(UpstreamError) as exc_info:
            validate_envelope(raw)
        assert exc_info.value.message == "unknown error"

    def test_empty_error_object_still_fails(self):
        raw = json.dumps({"error": {}, "choices": [{"message": {"content": "ok"}}]})
        with pytest.raises(UpstreamError) as exc_info:
            validate_envelope(raw)
        assert exc_info.value.code == "unknown"

    def test_null_error_ignored(self):
        raw = json.dumps({"error": None, "choices": [{"message": {"content": "ok"}}]})
        assert validate_envelope(raw).content == "ok"

    def test_missing_choices(self):
        with pytest.raises(MissingChoicesError):
            validate_envelope(json.dumps({"id": "x"}))

    def test_empty_choices(self):
        with pytest.raises(MissingChoicesError):
            validate_envelope(json.dumps({"choices": []}))

    def test_choices_not_a_list(self):
        with pytest.raises(MissingChoicesError):
            validate_envelope(json.dumps({"choices": {"message": {}}}))

    def test_missing_message(self):
        with pytest.raises(MissingContentError):
            validate_envelope(json.dumps({"choices": [{"index": 0}]}))

    def test_empty_content(self):
        with pytest.raises(MissingContentError):
            validate_envelope(json.dumps({"choices": [{"message": {"content": ""}}]}))


# ---------------------------------------------------------------------------
# validate_envelope: success
# ---------------------------------------------------------------------------

class TestValidateEnvelopeSuccess:

    def test_plain_text_answer(self):
        result = validate_envelope(make_envelope("Stage III colon cancer."))
        assert result.content == "Stage III colon cancer."
        assert result.content_object is None
        assert result.usage is None

    def test_usage_kept(self):
        usage = {"prompt_tokens": 12, "completion_tokens": 30}
        assert validate_envelope(make_envelope("ok", usage=usage)).usage == usage

    def test_json_answer_decoded(self):
        answer = json.dumps({"age": "62", "gender": "male"})
        result = validate_envelope(make_envelope(answer))
        assert result.content == answer
        assert result.content_object == {"age": "62", "gender": "male"}

    def test_bytes_accepted(self):
        assert validate_envelope(make_envelope("hi").encode("utf-8")).content == "hi"


class TestAnalyzeResponse:

    def test_valid(self):
        summary = analyze_response(make_envelope('{"a": 1}'))
        assert summary["valid"] is True
        assert summary["contentObject"] == {"a": 1}

    def test_upstream_error_details(self):
        summary = analyze_response(json.dumps({"error": {"code": 401, "message": "bad key"}}))
        assert summary["valid"] is False
        assert summary["errorType"] == "api_error"
        assert summary["code"] == 401
        assert summary["message"] == "bad key"

    def test_format_error(self):
        summary = analyze_response(json.dumps({"choices": []}))
        assert summary == {
            "valid": False,
            "error": summary["error"],
            "errorType": "missing_choices",
        }


# ---------------------------------------------------------------------------
# extract_structured
# ---------------------------------------------------------------------------

class TestExtractStructured:

    def test_embedded_in_prose(self):
        assert extract_structured('Here is the result: {"a":1} thanks') == {"a": 1}

    def test_no_json(self):
        assert extract_structured("no json here") is None

    @pytest.mark.parametrize("text", [None, ""])
    def test_empty_input(self, text):
        assert extract_structured(text) is None

    def test_direct_json(self):
        assert extract_structured('{"treatmentPlan": "surgery"}') == {"treatmentPlan": "surgery"}

    def test_direct_array(self):
        assert extract_structured("[1, 2, 3]") == [1, 2, 3]

    def test_scalar_json_not_structured(self):
        assert extract_structured("42") is None

    def test_code_fence_stripped(self):
        text = '```json\n{"age": "62"}\n```'
        assert extract_structured(text) == {"age": "62"}

    def test_nested_object_in_prose(self):
        text = 'Result:\n{"labTests": {"CBC": "normal"}, "age": "62"}\nDone.'
        assert extract_structured(text) == {"labTests": {"CBC": "normal"}, "age": "62"}

    def test_braces_in_trailing_prose_recovered_by_scan(self):
        # Greedy span runs to the last "}" and fails; the balanced scan wins.
        text = 'Answer {"a": 1} and a stray note {not json}'
        assert extract_structured(text) == {"a": 1}

    def test_brace_inside_string_literal(self):
        text = 'See {"note": "use } carefully", "ok": true} end {oops'
        assert extract_structured(text) == {"note": "use } carefully", "ok": True}

    def test_unbalanced_braces(self):
        assert extract_structured("broken { json here") is None

    def test_large_unbalanced_input(self):
        started = time.perf_counter()
        assert extract_structured("{" * 50000 + "x}") is None
        assert extract_structured("{" * 50000) is None
        assert time.perf_counter() - started < 2.0

    def test_object_after_unclosed_brace(self):
        assert extract_structured('{ unclosed {"a": 1} trailing') == {"a": 1}

    def test_first_object_by_position_wins(self):
        text = 'pre {"outer": {"inner": 1}} mid {"later": 2} {bad}'
        assert extract_structured(text) == {"outer": {"inner": 1}}

    def test_collaborator_alias(self):
        assert extract_structured_from_text('x {"b": 2} y') == {"b": 2}


def test_strip_code_fences_without_fence():
    assert strip_code_fences('  {"a": 1} ') == '{"a": 1}'
