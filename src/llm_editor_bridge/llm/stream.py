"""Extract text fragments from raw streaming chunks.

A chunk is whatever the transport delivered in one read. It may hold one bare
JSON object, several SSE ``data:`` lines, several newline-delimited JSON
objects, or plain text. A JSON object cut off at the end of a chunk is dropped
for that chunk only; nothing is carried over to the next one.
"""

import json
from typing import Any

import structlog

from llm_editor_bridge.llm.models import EndpointKind, ExtractedFragment

logger = structlog.get_logger()

DONE_SENTINEL = "[DONE]"
COMPLETION_MARKER = "data: [DONE]"
_LITERAL_MAX_BYTES = 100
_SSE_PREFIXES = ("data:", "event:", "id:", "retry:", ":")


def is_completion_marker(chunk: str) -> bool:
    """True for ``data: [DONE]`` with or without a trailing line ending."""
    return chunk.startswith(COMPLETION_MARKER)


def _openai_delta(event: Any) -> str | None:
    try:
        content = event["choices"][0]["delta"]["content"]
    except (KeyError, IndexError, TypeError):
        return None
    return content if isinstance(content, str) else None


def _claude_delta(event: Any) -> str | None:
    if not isinstance(event, dict) or event.get("type") != "content_block_delta":
        return None
    delta = event.get("delta")
    if isinstance(delta, dict) and isinstance(delta.get("text"), str):
        return delta["text"]
    return None


def _ollama_response(event: Any) -> str | None:
    if isinstance(event, dict) and isinstance(event.get("response"), str):
        return event["response"]
    return None


def _sniff(event: Any) -> str | None:
    """Dispatch on the object's shape, whatever the configured backend."""
    for extract in (_openai_delta, _ollama_response, _claude_delta):
        text = extract(event)
        if text is not None:
            return text
    return None


def _sse_events(chunk: str) -> list[Any]:
    """Decoded JSON payloads of the ``data:`` lines in a chunk."""
    events = []
    for line in chunk.splitlines():
        line = line.strip()
        if not line.startswith("data:"):
            continue
        payload = line[len("data:"):].strip()
        if not payload or DONE_SENTINEL in payload:
            continue
        try:
            events.append(json.loads(payload))
        except json.JSONDecodeError:
            logger.debug("stream_line_unparsable", preview=payload[:50])
    return events


def _ndjson_events(chunk: str) -> list[Any]:
    events = []
    for line in chunk.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            events.append(json.loads(line))
        except json.JSONDecodeError:
            logger.debug("stream_line_unparsable", preview=line[:50])
    return events


def _parse_by_kind(chunk: str, kind: EndpointKind) -> list[str]:
    match kind:
        case EndpointKind.OLLAMA:
            texts = []
            for event in _ndjson_events(chunk):
                # {"done": true, ...} closes the stream and carries no text
                text = _ollama_response(event)
                if text:
                    texts.append(text)
            return texts
        case EndpointKind.CLAUDE:
            return [t for t in map(_claude_delta, _sse_events(chunk)) if t]
        case EndpointKind.OPENAI | EndpointKind.SIMPLE:
            texts = [t for t in map(_openai_delta, _sse_events(chunk)) if t]
            # joined into one fragment per chunk
            return ["".join(texts)] if texts else []


def _is_framed(chunk: str) -> bool:
    """Chunk carries SSE or JSON framing, so it is never literal answer text."""
    stripped = chunk.lstrip()
    return stripped.startswith(_SSE_PREFIXES) or stripped.startswith("{")


def extract_fragments(chunk: str, kind: EndpointKind) -> list[ExtractedFragment]:
    """Turn one raw chunk into zero or more text fragments, in order."""
    if not chunk:
        return []

    texts: list[str]
    try:
        event = json.loads(chunk)
    except json.JSONDecodeError:
        texts = _parse_by_kind(chunk, kind)
    else:
        text = _sniff(event)
        texts = [text] if text else []

    if (
        not texts
        and (chunk.strip() or kind is EndpointKind.SIMPLE)
        and len(chunk.encode("utf-8")) < _LITERAL_MAX_BYTES
        and not is_completion_marker(chunk)
        and not _is_framed(chunk)
    ):
        # bare-text backends
        texts = [chunk]

    return [ExtractedFragment(text=t) for t in texts]
