"""Tests for full-response parsing."""

import json

import pytest

from llm_editor_bridge.llm.models import EndpointKind
from llm_editor_bridge.llm.parser import (
    PARSE_FAILURE_PREFIX,
    extract_error_message,
    is_parse_failure,
    parse_response,
)


def test_openai_content(make_profile):
    body = json.dumps({"choices": [{"message": {"role": "assistant", "content": "chat"}}]})
    assert parse_response(body, make_profile()) == "chat"


def test_openai_reasoning_removed(make_profile):
    body = json.dumps({"choices": [{"message": {"content": "<think>hmm</think>Answer"}}]})
    assert parse_response(body, make_profile()) == "Answer"


def test_openai_reasoning_kept_when_requested(make_profile):
    body = json.dumps({"choices": [{"message": {"content": "<think>hmm</think>Answer"}}]})
    assert parse_response(body, make_profile(show_reasoning=True)) == "<think>hmm</think>Answer"


def test_openai_missing_choices(make_profile):
    result = parse_response(json.dumps({"id": "x"}), make_profile())
    assert is_parse_failure(result)
    assert "choices" in result


def test_invalid_json(make_profile):
    result = parse_response("<html>Bad gateway</html>", make_profile())
    assert result.startswith(PARSE_FAILURE_PREFIX)
    assert result.endswith("]")


def test_claude_joins_text_blocks(make_profile):
    body = json.dumps({
        "content": [
            {"type": "text", "text": "Hello "},
            {"type": "tool_use", "id": "t1"},
            {"type": "text", "text": "world"},
        ]
    })
    assert parse_response(body, make_profile(EndpointKind.CLAUDE)) == "Hello world"


def test_claude_without_text(make_profile):
    body = json.dumps({"content": []})
    assert is_parse_failure(parse_response(body, make_profile(EndpointKind.CLAUDE)))


def test_ollama_single_object(make_profile):
    body = json.dumps({"model": "llama3", "response": "Bonjour", "done": True})
    assert parse_response(body, make_profile(EndpointKind.OLLAMA)) == "Bonjour"


def test_ollama_ndjson_uses_last_object(make_profile):
    body = (
        '{"response": "partial", "done": false}\n'
        '{"response": "final", "done": true}\n'
    )
    assert parse_response(body, make_profile(EndpointKind.OLLAMA)) == "final"


def test_ollama_error(make_profile):
    body = json.dumps({"error": "model 'x' not found"})
    result = parse_response(body, make_profile(EndpointKind.OLLAMA))
    assert is_parse_failure(result)
    assert "Ollama error: model 'x' not found" in result


@pytest.mark.parametrize(
    "field",
    ["text", "completion", "output", "generated_text"],
)
def test_simple_fields(make_profile, field):
    body = json.dumps({field: "value"})
    assert parse_response(body, make_profile(EndpointKind.SIMPLE)) == "value"


def test_simple_field_priority(make_profile):
    body = json.dumps({"output": "second", "text": "first"})
    assert parse_response(body, make_profile(EndpointKind.SIMPLE)) == "first"


def test_simple_unrecognized(make_profile):
    result = parse_response(json.dumps({"answer": "x"}), make_profile(EndpointKind.SIMPLE))
    assert is_parse_failure(result)


class TestExtractErrorMessage:
    def test_nested_message(self):
        body = json.dumps({"error": {"message": "Invalid API key", "type": "auth"}})
        assert extract_error_message(body) == "Invalid API key"

    def test_string_error(self):
        assert extract_error_message(json.dumps({"error": "boom"})) == "boom"

    def test_not_json(self):
        assert extract_error_message("Service Unavailable") is None

    def test_empty(self):
        assert extract_error_message("") is None
