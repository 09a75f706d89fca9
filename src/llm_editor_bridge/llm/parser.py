"""Extract answer text from complete (non-streamed) response bodies.

Parsers fail closed: any problem produces a diagnostic string starting with
PARSE_FAILURE_PREFIX instead of an exception, so a bad body never aborts the
ask on its own. Callers must check is_parse_failure() before treating the
result as model output.
"""

import json
from typing import Any

import structlog

from llm_editor_bridge.llm.models import EndpointKind, EndpointProfile
from llm_editor_bridge.llm.thinking import filter_thinking

logger = structlog.get_logger()

PARSE_FAILURE_PREFIX = "[Failed to parse response: "

_SIMPLE_FIELDS = ("text", "completion", "output", "generated_text")
_RAW_PREVIEW = 200


class _ShapeError(Exception):
    """Body parsed as JSON but lacks the expected fields."""


def is_parse_failure(text: str) -> bool:
    return text.startswith(PARSE_FAILURE_PREFIX)


def _failure(reason: str) -> str:
    return f"{PARSE_FAILURE_PREFIX}{reason}]"


def _preview(body: str) -> str:
    if len(body) > _RAW_PREVIEW:
        return body[:_RAW_PREVIEW] + "..."
    return body


def _as_text(value: Any, field: str) -> str:
    if not isinstance(value, str):
        raise _ShapeError(f"'{field}' is not a string")
    return value


def _parse_openai(data: Any) -> str:
    choices = data.get("choices") if isinstance(data, dict) else None
    if not isinstance(choices, list) or not choices:
        raise _ShapeError("no 'choices' array in OpenAI response")
    try:
        content = choices[0]["message"]["content"]
    except (KeyError, TypeError):
        raise _ShapeError("no 'choices[0].message.content' in OpenAI response") from None
    return _as_text(content, "content")


def _parse_simple(data: Any) -> str:
    if isinstance(data, dict):
        for field in _SIMPLE_FIELDS:
            if field in data:
                return _as_text(data[field], field)
    raise _ShapeError(
        "no recognized field in simple response; expected 'text', 'completion', "
        "'output' or 'generated_text'"
    )


def _parse_claude(data: Any) -> str:
    content = data.get("content") if isinstance(data, dict) else None
    if not isinstance(content, list):
        raise _ShapeError("no 'content' array in Claude response")
    texts = [
        part["text"]
        for part in content
        if isinstance(part, dict) and part.get("type") == "text" and isinstance(part.get("text"), str)
    ]
    if not texts:
        raise _ShapeError("no text content in Claude response")
    return "".join(texts)


def _last_json_object(body: str) -> Any:
    """Last complete JSON object of a newline-delimited body."""
    for line in reversed(body.splitlines()):
        line = line.strip()
        if not line:
            continue
        try:
            return json.loads(line)
        except json.JSONDecodeError:
            continue
    raise _ShapeError("no complete JSON object in streamed Ollama response")


def _parse_ollama(body: str) -> str:
    stripped = body.strip()
    if not stripped:
        raise _ShapeError("empty Ollama response")

    if "\n" in stripped:
        data = _last_json_object(stripped)
    else:
        data = json.loads(stripped)

    if not isinstance(data, dict):
        raise _ShapeError("Ollama response is not a JSON object")
    if "response" in data:
        return _as_text(data["response"], "response")
    if "error" in data:
        raise _ShapeError(f"Ollama error: {data['error']}")
    raise _ShapeError(f"no 'response' field in Ollama response. Raw JSON: {_preview(body)}")


def parse_response(body: str, profile: EndpointProfile) -> str:
    """Extract the answer from a full response body and apply the reasoning filter."""
    kind = profile.kind
    try:
        match kind:
            case EndpointKind.OLLAMA:
                text = _parse_ollama(body)
            case EndpointKind.CLAUDE:
                text = _parse_claude(json.loads(body))
            case EndpointKind.SIMPLE:
                text = _parse_simple(json.loads(body))
            case EndpointKind.OPENAI:
                text = _parse_openai(json.loads(body))
    except json.JSONDecodeError as e:
        logger.warning("response_parse_failed", kind=kind.value, reason="invalid_json", error=str(e))
        return _failure(f"invalid JSON from {kind.value} endpoint ({e})")
    except _ShapeError as e:
        logger.warning("response_parse_failed", kind=kind.value, reason=str(e))
        return _failure(str(e))

    return filter_thinking(text, profile.show_reasoning)


def extract_error_message(body: str) -> str | None:
    """Best-effort error text from a JSON error body.

    Handles {"error": {"message": ...}} (OpenAI, Claude) and {"error": "..."} (Ollama).
    """
    if not body:
        return None
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    error = data.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    if isinstance(error, str):
        return error
    return None
