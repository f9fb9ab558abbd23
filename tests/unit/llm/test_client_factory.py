# tests/unit/llm/test_client_factory.py — v2
"""Tests for llm/client_factory.py — provider registry."""

from __future__ import annotations

import pytest

from deepthink.llm.adapters.anthropic_adapter import AnthropicAdapter
from deepthink.llm.adapters.openai_adapter import OpenAIAdapter
from deepthink.llm.client_factory import (
    UnsupportedProviderError,
    create_default_client,
    create_llm_client,
)


class TestCreateLLMClient:
    def test_openai_from_settings(self, settings):
        client = create_default_client(settings)
        assert isinstance(client, OpenAIAdapter)
        assert client.provider_name == "openai"
        assert client.model_name == settings.llm_model

    def test_anthropic(self, settings):
        client = create_llm_client("anthropic", "claude-test", settings)
        assert isinstance(client, AnthropicAdapter)
        assert client.model_name == "claude-test"

    def test_unknown_provider(self):
        with pytest.raises(UnsupportedProviderError, match="Available"):
            create_llm_client("nope", "m")

