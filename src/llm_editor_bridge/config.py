"""Application configuration using Pydantic settings."""

import structlog
from pydantic import Field, PrivateAttr
from pydantic_settings import BaseSettings, SettingsConfigDict

from llm_editor_bridge.llm.formatter import normalize_base_url
from llm_editor_bridge.llm.models import EndpointKind, EndpointProfile, SamplingParams
from llm_editor_bridge.llm.prompts import PromptChooser, PromptLibrary

logger = structlog.get_logger()

PLACEHOLDER_API_KEY = "ENTER_YOUR_API_KEY_HERE"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Endpoint
    api_url: str = Field(
        "https://api.openai.com/v1/", alias="LLM_API_URL",
        description="Base URL of the LLM API. Well-known local OpenAI-compatible servers get /v1/ appended.",
    )
    route_chat_completions: str = Field(
        "chat/completions", alias="LLM_ROUTE_CHAT_COMPLETIONS",
        description="Route appended to the base URL (chat/completions, messages, api/generate).",
    )
    response_type: str = Field(
        "openai", alias="LLM_RESPONSE_TYPE",
        description="Backend wire format: openai, claude, ollama or simple. Unknown values fall back to openai.",
    )
    secret_key: str = Field(
        PLACEHOLDER_API_KEY, alias="LLM_SECRET_KEY",
        description="API key. Sent as a Bearer token, or as x-api-key for Claude. Blank for local Ollama.",
    )
    proxy_url: str = Field(
        "", alias="LLM_PROXY_URL",
        description="HTTP proxy URL. Empty or '0' = direct connection.",
    )
    anthropic_version: str = Field(
        "2023-06-01", alias="LLM_ANTHROPIC_VERSION",
        description="Value of the anthropic-version header for Claude endpoints.",
    )
    timeout: float | None = Field(
        None, alias="LLM_TIMEOUT",
        description="Total request timeout in seconds. Unset = no timeout.",
    )

    # Sampling
    model: str = Field(
        "gpt-4o-mini", alias="LLM_MODEL",
        description="Model name sent with every request.",
    )
    temperature: float = Field(
        0.7, alias="LLM_TEMPERATURE",
        description="Sampling temperature. 1.0 is omitted from requests.",
    )
    max_tokens: int = Field(
        0, alias="LLM_MAX_TOKENS",
        description="Maximum tokens to generate. 0 or less = server default.",
    )
    top_p: float = Field(
        0.8, alias="LLM_TOP_P",
        description="Nucleus sampling. 1.0 is omitted from requests.",
    )
    frequency_penalty: float = Field(
        0.0, alias="LLM_FREQUENCY_PENALTY",
        description="Frequency penalty. 0 is omitted; mapped to repeat_penalty for Ollama.",
    )
    presence_penalty: float = Field(
        0.0, alias="LLM_PRESENCE_PENALTY",
        description="Presence penalty. 0 is omitted; not sent to Claude or Ollama.",
    )

    # Behaviour
    streaming: bool = Field(
        True, alias="LLM_STREAMING",
        description="Stream the answer into the editor as it is generated.",
    )
    show_reasoning: bool = Field(
        False, alias="LLM_SHOW_REASONING",
        description="Keep <think>...</think> reasoning sections in the output.",
    )
    keep_question: bool = Field(
        True, alias="LLM_KEEP_QUESTION",
        description="Keep the selected question and append the answer after it.",
    )
    verbose_errors: bool = Field(
        False, alias="LLM_VERBOSE_ERRORS",
        description="Include the raw response body in HTTP error messages.",
    )

    # System prompts
    instructions: str = Field(
        "", alias="LLM_INSTRUCTIONS",
        description="Default system prompt, used when the instructions file has no prompts.",
    )
    instructions_file: str = Field(
        "", alias="LLM_INSTRUCTIONS_FILE",
        description="Path to a [Prompt:Name] text file or a YAML prompt file. Empty = no file.",
    )

    # Logging
    log_level: str = Field(
        "INFO", alias="LOG_LEVEL",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, or CRITICAL.",
    )
    log_file: str = Field(
        "", alias="LOG_FILE",
        description="Path to log file for file-based logging with rotation. Empty = console only.",
    )
    log_file_max_bytes: int = Field(
        10_485_760, alias="LOG_FILE_MAX_BYTES",
        description="Max size in bytes per log file before rotation. Default: 10 MB.",
    )
    log_file_backup_count: int = Field(
        5, alias="LOG_FILE_BACKUP_COUNT",
        description="Number of rotated backup log files to keep.",
    )

    _prompt_library: PromptLibrary | None = PrivateAttr(None)

    @property
    def endpoint_kind(self) -> EndpointKind:
        return EndpointKind.parse(self.response_type)

    @property
    def api_key_configured(self) -> bool:
        return bool(self.secret_key) and self.secret_key != PLACEHOLDER_API_KEY

    def current_profile(self) -> EndpointProfile:
        """Endpoint profile for the next ask."""
        kind = self.endpoint_kind
        if not self.api_key_configured and kind is not EndpointKind.OLLAMA:
            logger.warning("api_key_not_configured", response_type=kind.value)

        base_url = normalize_base_url(self.api_url)
        if base_url.rstrip("/") != self.api_url.rstrip("/"):
            logger.info("api_url_normalized", original=self.api_url, normalized=base_url)

        return EndpointProfile(
            kind=kind,
            base_url=base_url,
            route_path=self.route_chat_completions,
            streaming=self.streaming,
            show_reasoning=self.show_reasoning,
            api_key=self.secret_key if self.api_key_configured else "",
            proxy_url=self.proxy_url,
            anthropic_version=self.anthropic_version,
        )

    def current_params(self) -> SamplingParams:
        return SamplingParams(
            model=self.model,
            temperature=self.temperature,
            top_p=self.top_p,
            max_tokens=self.max_tokens,
            frequency_penalty=self.frequency_penalty,
            presence_penalty=self.presence_penalty,
        )

    def prompt_library(self) -> PromptLibrary:
        """Prompt library for the instructions file, kept so the last choice survives between asks."""
        if self._prompt_library is None:
            if self.instructions_file:
                self._prompt_library = PromptLibrary.from_file(self.instructions_file)
            else:
                self._prompt_library = PromptLibrary()
        return self._prompt_library

    def system_prompt(
        self,
        chooser: PromptChooser | None = None,
        library: PromptLibrary | None = None,
    ) -> str:
        """System prompt for the next ask; may ask the chooser to pick a named prompt.

        Raises PromptSelectionCancelled when the chooser is dismissed.
        """
        library = library if library is not None else self.prompt_library()
        return library.resolve(self.instructions, chooser)


def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
