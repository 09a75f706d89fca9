"""Data models shared by the request, parsing and transport layers."""

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class EndpointKind(str, Enum):
    """Wire protocol family spoken by a backend."""

    OPENAI = "openai"
    CLAUDE = "claude"
    OLLAMA = "ollama"
    SIMPLE = "simple"

    @classmethod
    def parse(cls, value: str | None) -> "EndpointKind":
        """Map a configured response type to a kind. Unknown or empty means OpenAI."""
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.OPENAI


class EndpointProfile(BaseModel):
    """Identifies one backend and its quirks. Read-only for the whole ask."""

    model_config = ConfigDict(frozen=True)

    kind: EndpointKind = EndpointKind.OPENAI
    base_url: str = Field(..., description="Base URL, e.g. https://api.openai.com/v1/")
    route_path: str = Field("chat/completions", description="Route appended to base_url")
    streaming: bool = False
    show_reasoning: bool = False
    api_key: str = ""
    proxy_url: str = Field("", description="Proxy URL. Empty or '0' means direct connection.")
    anthropic_version: str = "2023-06-01"

    @property
    def url(self) -> str:
        from llm_editor_bridge.llm.formatter import build_api_url

        return build_api_url(self.base_url, self.route_path)


class SamplingParams(BaseModel):
    """Sampling parameters. Unset or neutral values never reach the wire."""

    model_config = ConfigDict(frozen=True)

    model: str
    temperature: float | None = None
    top_p: float | None = None
    max_tokens: int | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None


class ChatRequest(BaseModel):
    """One ask: prompt, instructions, parameters and target backend."""

    model_config = ConfigDict(frozen=True)

    user_prompt: str
    system_prompt: str = ""
    params: SamplingParams
    profile: EndpointProfile


@dataclass(slots=True)
class ExtractedFragment:
    """A unit of streamed text pulled out of one network chunk."""

    text: str


class FailureKind(str, Enum):
    EMPTY_INPUT = "empty_input"
    NETWORK = "network"
    HTTP_STATUS = "http_status"
    PARSE_ERROR = "parse_error"
    INTERNAL = "internal"


@dataclass(slots=True, frozen=True)
class Success:
    inserted_length: int


@dataclass(slots=True, frozen=True)
class Failure:
    kind: FailureKind
    message: str


@dataclass(slots=True, frozen=True)
class Cancelled:
    pass


AskOutcome = Success | Failure | Cancelled
