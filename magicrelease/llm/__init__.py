"""LLM provider abstraction layer."""

import logging
import os

from magicrelease.config.models import LLMSettings
from magicrelease.errors import ConfigError
from magicrelease.llm.base import LLMProvider
from magicrelease.llm.claude import ClaudeProvider
from magicrelease.llm.models import LLMConfig, LLMError, LLMResponse, TokenUsage
from magicrelease.llm.openai_adapter import AzureOpenAIProvider, OpenAIProvider

logger = logging.getLogger(__name__)

_PROVIDER_MAP: dict[str, type[LLMProvider]] = {
    "anthropic": ClaudeProvider,
    "openai": OpenAIProvider,
    "azure": AzureOpenAIProvider,
}


def create_llm_provider(settings: LLMSettings) -> LLMProvider | None:
    """Create an LLM provider from app-level settings.

    Returns None when the provider is ``"none"``. Resolves the API key from
    the env var named in ``settings.api_key_env``.
    """
    if settings.provider == "none":
        return None
    cls = _PROVIDER_MAP.get(settings.provider)
    if cls is None:
        raise ConfigError(
            f"Unsupported LLM provider: {settings.provider!r}. "
            f"Supported: {', '.join(_PROVIDER_MAP)}, none"
        )
    api_key = os.environ.get(settings.api_key_env)
    if not api_key:
        raise ConfigError(
            f"Missing API key: set environment variable {settings.api_key_env!r}",
            {"api_key_env": settings.api_key_env},
        )
    if settings.provider == "azure" and not settings.base_url:
        raise ConfigError("Azure OpenAI requires llm.base_url (the resource endpoint)")

    llm_config = LLMConfig(
        provider=settings.provider,
        model=settings.model,
        max_tokens=settings.max_tokens,
        temperature=settings.temperature,
        timeout=settings.timeout,
        max_retries=settings.max_retries,
        api_key=api_key,
        base_url=settings.base_url,
        api_version=settings.api_version,
    )
    logger.debug("Using %s provider with model %s", settings.provider, settings.model)
    return cls(llm_config)


__all__ = [
    "AzureOpenAIProvider",
    "ClaudeProvider",
    "LLMConfig",
    "LLMError",
    "LLMProvider",
    "LLMResponse",
    "OpenAIProvider",
    "TokenUsage",
    "create_llm_provider",
]
