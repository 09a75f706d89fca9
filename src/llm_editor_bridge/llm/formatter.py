"""Build request bodies, URLs and headers for each backend kind."""

import json
from typing import Any

from llm_editor_bridge.llm.models import EndpointKind, EndpointProfile, SamplingParams

# Hosts and ports of OpenAI-compatible local servers that expect a /v1 prefix
_V1_HINTS = (
    "localhost:1234",  # LM Studio
    "localhost:8000",  # vLLM
    "localhost:8080",  # LocalAI
    "litellm",
    "fastchat",
    "localai",
)
_OLLAMA_PORT = "11434"


def _differs(value: float | None, neutral: float) -> bool:
    return value is not None and value != neutral


def _sampling_fields(kind: EndpointKind, params: SamplingParams) -> dict[str, Any]:
    """Map sampling params to the backend's field names, dropping neutral values."""
    fields: dict[str, Any] = {}
    if _differs(params.temperature, 1.0):
        fields["temperature"] = params.temperature
    if params.max_tokens is not None and params.max_tokens > 0:
        fields["num_predict" if kind is EndpointKind.OLLAMA else "max_tokens"] = params.max_tokens
    if _differs(params.top_p, 1.0):
        fields["top_p"] = params.top_p

    match kind:
        case EndpointKind.OPENAI | EndpointKind.SIMPLE:
            if _differs(params.frequency_penalty, 0.0):
                fields["frequency_penalty"] = params.frequency_penalty
            if _differs(params.presence_penalty, 0.0):
                fields["presence_penalty"] = params.presence_penalty
        case EndpointKind.OLLAMA:
            # Ollama has no frequency penalty; repeat_penalty is its closest knob
            if _differs(params.frequency_penalty, 0.0):
                fields["repeat_penalty"] = 1.0 + params.frequency_penalty
        case EndpointKind.CLAUDE:
            pass
    return fields


def build_request_payload(
    profile: EndpointProfile,
    user_prompt: str,
    system_prompt: str,
    params: SamplingParams,
) -> dict[str, Any]:
    """Build the request body as a dict for the profile's backend kind."""
    kind = profile.kind
    payload: dict[str, Any] = {"model": params.model}

    match kind:
        case EndpointKind.OPENAI | EndpointKind.SIMPLE:
            messages = []
            if system_prompt:
                messages.append({"role": "system", "content": system_prompt})
            messages.append({"role": "user", "content": user_prompt})
            payload["messages"] = messages
        case EndpointKind.CLAUDE:
            payload["messages"] = [{"role": "user", "content": user_prompt}]
            if system_prompt:
                payload["system"] = system_prompt
        case EndpointKind.OLLAMA:
            payload["prompt"] = user_prompt
            if system_prompt:
                payload["system"] = system_prompt

    payload.update(_sampling_fields(kind, params))

    if profile.streaming:
        payload["stream"] = True
    elif kind is EndpointKind.OLLAMA:
        # Ollama streams unless told otherwise
        payload["stream"] = False
    return payload


def format_request(
    profile: EndpointProfile,
    user_prompt: str,
    system_prompt: str,
    params: SamplingParams,
) -> str:
    """Serialize the request body for the profile's backend.

    Never raises for well-typed inputs. Text is emitted as UTF-8, not
    ASCII-escaped, so prompts round-trip unchanged through any JSON decoder.
    """
    payload = build_request_payload(profile, user_prompt, system_prompt, params)
    return json.dumps(payload, ensure_ascii=False)


def build_api_url(base_url: str, route: str) -> str:
    """Join base URL and route, leaving URLs that already carry the route alone."""
    url = base_url
    if url and not url.endswith("/"):
        url += "/"

    if not route:
        return url
    if route not in url:
        return url + route.lstrip("/")
    if url.endswith(route + "/"):
        url = url[:-1]
    return url


def normalize_base_url(base_url: str) -> str:
    """Add /v1/ for well-known OpenAI-compatible local servers, else ensure a trailing slash."""
    lowered = base_url.lower()
    needs_v1 = (
        any(hint in lowered for hint in _V1_HINTS)
        and "/v1" not in lowered
        and _OLLAMA_PORT not in lowered
    )
    if needs_v1:
        return base_url.rstrip("/") + "/v1/"
    if base_url and not base_url.endswith("/"):
        return base_url + "/"
    return base_url


def build_headers(profile: EndpointProfile, streaming: bool | None = None) -> dict[str, str]:
    """HTTP headers for the profile: auth scheme differs between Claude and the rest."""
    streaming = profile.streaming if streaming is None else streaming
    headers = {"Content-Type": "application/json"}

    if streaming and profile.kind in (EndpointKind.OPENAI, EndpointKind.OLLAMA):
        headers["Accept"] = "text/event-stream"

    match profile.kind:
        case EndpointKind.CLAUDE:
            headers["x-api-key"] = profile.api_key
            headers["anthropic-version"] = profile.anthropic_version
        case EndpointKind.OPENAI | EndpointKind.OLLAMA | EndpointKind.SIMPLE:
            headers["Authorization"] = f"Bearer {profile.api_key}"
    return headers
