"""OpenAI and Azure OpenAI adapters."""

from __future__ import annotations

from collections.abc import AsyncIterator

from openai import APIError, AsyncAzureOpenAI, AsyncOpenAI, RateLimitError

from magicrelease.llm.base import LLMProvider
from magicrelease.llm.models import LLMConfig, LLMError, LLMResponse, TokenUsage

DEFAULT_AZURE_API_VERSION = "2024-06-01"


class OpenAIProvider(LLMProvider):
    """OpenAI adapter using the async SDK."""

    def __init__(self, config: LLMConfig) -> None:
        super().__init__(config)
        self._client = self._make_client(config)

    def _make_client(self, config: LLMConfig) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )

    def _messages(self, system: str, user: str) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]

    async def generate(
        self,
        system: str,
        user: str,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        try:
            response = await self._client.chat.completions.create(
                model=self.config.model,
                max_tokens=max_tokens or self.config.max_tokens,
                temperature=self.config.temperature,
                messages=self._messages(system, user),
            )
        except APIError as e:
            raise LLMError(
                self.name, "generate", e, retryable=isinstance(e, RateLimitError)
            ) from e
        choice = response.choices[0]
        usage = response.usage
        return LLMResponse(
            content=choice.message.content or "",
            usage=TokenUsage(
                input_tokens=usage.prompt_tokens if usage else 0,
                output_tokens=usage.completion_tokens if usage else 0,
            ),
            model=response.model,
        )

    async def generate_stream(
        self,
        system: str,
        user: str,
        max_tokens: int | None = None,
    ) -> AsyncIterator[str]:
        try:
            stream = await self._client.chat.completions.create(
                model=self.config.model,
                max_tokens=max_tokens or self.config.max_tokens,
                temperature=self.config.temperature,
                messages=self._messages(system, user),
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                if delta.content:
                    yield delta.content
        except APIError as e:
            raise LLMError(
                self.name, "generate_stream", e, retryable=isinstance(e, RateLimitError)
            ) from e


class AzureOpenAIProvider(OpenAIProvider):
    """Azure OpenAI deployment. ``model`` is the deployment name."""

    def _make_client(self, config: LLMConfig) -> AsyncAzureOpenAI:
        return AsyncAzureOpenAI(
            api_key=config.api_key,
            azure_endpoint=config.base_url,
            api_version=config.api_version or DEFAULT_AZURE_API_VERSION,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )
