"""LLM request, parsing, transport and orchestration module."""

from llm_editor_bridge.llm.models import (
    AskOutcome,
    Cancelled,
    ChatRequest,
    EndpointKind,
    EndpointProfile,
    ExtractedFragment,
    Failure,
    FailureKind,
    SamplingParams,
    Success,
)
from llm_editor_bridge.llm.orchestrator import AskHandle, AskInProgressError, CompletionOrchestrator
from llm_editor_bridge.llm.transport import HttpTransport

__all__ = [
    "AskHandle",
    "AskInProgressError",
    "AskOutcome",
    "Cancelled",
    "ChatRequest",
    "CompletionOrchestrator",
    "EndpointKind",
    "EndpointProfile",
    "ExtractedFragment",
    "Failure",
    "FailureKind",
    "HttpTransport",
    "SamplingParams",
    "Success",
]
