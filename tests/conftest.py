"""Pytest fixtures for llm-editor-bridge tests."""

import os
from unittest.mock import patch

import pytest

from llm_editor_bridge.config import Settings
from llm_editor_bridge.llm.models import EndpointKind, EndpointProfile, SamplingParams


@pytest.fixture
def mock_env_vars():
    """Mock environment variables for testing."""
    env_vars = {
        "LLM_API_URL": "https://api.openai.com/v1/",
        "LLM_ROUTE_CHAT_COMPLETIONS": "chat/completions",
        "LLM_RESPONSE_TYPE": "openai",
        "LLM_SECRET_KEY": "sk-test-key",
        "LLM_MODEL": "gpt-4o-mini",
        "LLM_STREAMING": "0",
        "LOG_LEVEL": "DEBUG",
    }
    with patch.dict(os.environ, env_vars, clear=False):
        yield env_vars


@pytest.fixture
def settings(mock_env_vars) -> Settings:
    """Create Settings instance with mocked environment."""
    return Settings(_env_file=None)


@pytest.fixture
def make_profile():
    """Factory for endpoint profiles with test defaults."""

    def _make(kind: EndpointKind = EndpointKind.OPENAI, **overrides) -> EndpointProfile:
        values = {
            "kind": kind,
            "base_url": "http://llm.test/v1/",
            "route_path": "chat/completions",
            "api_key": "sk-test-key",
        }
        values.update(overrides)
        return EndpointProfile(**values)

    return _make


@pytest.fixture
def params() -> SamplingParams:
    return SamplingParams(model="test-model")
