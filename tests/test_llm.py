"""Tests for the LLM subsystem: provider factory, model classes and adapters."""

import os
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from magicrelease.config.models import LLMSettings
from magicrelease.errors import ConfigError
from magicrelease.llm import create_llm_provider, LLMConfig, LLMResponse, TokenUsage
from magicrelease.llm.claude import ClaudeProvider
from magicrelease.llm.openai_adapter import AzureOpenAIProvider, OpenAIProvider


# ---------------------------------------------------------------------------
# Model smoke tests
# ---------------------------------------------------------------------------


class TestLLMModels:
    def test_llm_response(self):
        resp = LLMResponse(
            content="Fixed",
            usage=TokenUsage(input_tokens=10, output_tokens=1),
            model="test-model",
        )
        assert resp.content == "Fixed"
        assert resp.usage.output_tokens == 1

    def test_llm_config_defaults(self):
        cfg = LLMConfig(provider="openai", model="gpt-4o-mini")
        assert cfg.max_tokens == 150
        assert cfg.temperature == 0.1
        assert cfg.api_key is None


# ---------------------------------------------------------------------------
# create_llm_provider
# ---------------------------------------------------------------------------


class TestCreateLLMProvider:
    def test_none_provider(self):
        assert create_llm_provider(LLMSettings(provider="none")) is None

    @patch.dict(os.environ, {"OPENAI_API_KEY": "sk-test"})
    def test_creates_openai_provider(self):
        provider = create_llm_provider(LLMSettings())
        assert isinstance(provider, OpenAIProvider)
        assert provider.config.api_key == "sk-test"
        assert provider.config.model == "gpt-4o-mini"

    @patch.dict(os.environ, {"ANTHROPIC_API_KEY": "test-key-123"})
    def test_creates_claude_provider(self):
        settings = LLMSettings(
            provider="anthropic",
            model="claude-3-5-haiku-latest",
            api_key_env="ANTHROPIC_API_KEY",
        )
        assert isinstance(create_llm_provider(settings), ClaudeProvider)

    @patch.dict(os.environ, {"AZURE_OPENAI_API_KEY": "az"})
    def test_creates_azure_provider(self):
        settings = LLMSettings(
            provider="azure",
            model="my-deployment",
            api_key_env="AZURE_OPENAI_API_KEY",
            base_url="https://acme.openai.azure.com",
        )
        provider = create_llm_provider(settings)
        assert isinstance(provider, AzureOpenAIProvider)
        assert provider.name == "azure"

    @patch.dict(os.environ, {"AZURE_OPENAI_API_KEY": "az"})
    def test_azure_requires_endpoint(self):
        settings = LLMSettings(provider="azure", api_key_env="AZURE_OPENAI_API_KEY")
        with pytest.raises(ConfigError, match="base_url"):
            create_llm_provider(settings)

    @patch.dict(os.environ, {}, clear=True)
    def test_missing_api_key_raises(self):
        with pytest.raises(ConfigError, match="Missing API key"):
            create_llm_provider(LLMSettings(api_key_env="NONEXISTENT_KEY_VAR"))

    @patch.dict(os.environ, {"MY_KEY": "abc"})
    def test_settings_bridged(self):
        settings = LLMSettings(
            api_key_env="MY_KEY", max_tokens=99, temperature=0.5, timeout=5, max_retries=0
        )
        cfg = create_llm_provider(settings).config
        assert (cfg.api_key, cfg.max_tokens, cfg.temperature, cfg.timeout, cfg.max_retries) == (
            "abc",
            99,
            0.5,
            5,
            0,
        )


# ---------------------------------------------------------------------------
# Adapters with mocked SDK clients
# ---------------------------------------------------------------------------


class TestClaudeGenerate:
    async def test_generate_returns_response(self):
        provider = ClaudeProvider(LLMConfig(provider="anthropic", model="claude-test", api_key="k"))
        message = MagicMock()
        message.content = [MagicMock(text="Security")]
        message.usage.input_tokens = 12
        message.usage.output_tokens = 1
        message.model = "claude-test"

        with patch.object(provider._client.messages, "create", AsyncMock(return_value=message)) as create:
            result = await provider.generate("sys", "usr")

        assert result.content == "Security"
        assert result.usage.input_tokens == 12
        kwargs = create.call_args.kwargs
        assert kwargs["max_tokens"] == 150
        assert kwargs["system"] == "sys"
        assert kwargs["messages"] == [{"role": "user", "content": "usr"}]


class TestOpenAIGenerate:
    async def test_generate_returns_response(self):
        provider = OpenAIProvider(LLMConfig(provider="openai", model="gpt-test", api_key="k"))
        response = MagicMock()
        response.choices = [MagicMock()]
        response.choices[0].message.content = "Fixed"
        response.usage.prompt_tokens = 20
        response.usage.completion_tokens = 1
        response.model = "gpt-test"

        with patch.object(
            provider._client.chat.completions, "create", AsyncMock(return_value=response)
        ) as create:
            result = await provider.generate("sys", "usr", max_tokens=10)

        assert result.content == "Fixed"
        assert result.usage.output_tokens == 1
        assert create.call_args.kwargs["max_tokens"] == 10
        assert create.call_args.kwargs["messages"][0] == {"role": "system", "content": "sys"}

    async def test_none_content_becomes_empty(self):
        provider = OpenAIProvider(LLMConfig(provider="openai", model="gpt-test", api_key="k"))
        response = MagicMock()
        response.choices = [MagicMock()]
        response.choices[0].message.content = None
        response.usage = None
        response.model = "gpt-test"

        with patch.object(provider._client.chat.completions, "create", AsyncMock(return_value=response)):
            result = await provider.generate("sys", "usr")

        assert result.content == ""
        assert result.usage.input_tokens == 0
