"""Anthropic Claude adapter."""

from __future__ import annotations

from collections.abc import AsyncIterator

from anthropic import APIError, AsyncAnthropic, RateLimitError

from magicrelease.llm.base import LLMProvider
from magicrelease.llm.models import LLMConfig, LLMError, LLMResponse, TokenUsage


class ClaudeProvider(LLMProvider):
    """Claude adapter using the Anthropic async SDK."""

    def __init__(self, config: LLMConfig) -> None:
        super().__init__(config)
        self._client = AsyncAnthropic(
            api_key=config.api_key,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )

    async def generate(
        self,
        system: str,
        user: str,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        try:
            message = await self._client.messages.create(
                model=self.config.model,
                max_tokens=max_tokens or self.config.max_tokens,
                temperature=self.config.temperature,
                system=system,
                messages=[{"role": "user", "content": user}],
            )
        except APIError as e:
            raise LLMError(
                "anthropic", "generate", e, retryable=isinstance(e, RateLimitError)
            ) from e
        text = "".join(block.text for block in message.content if hasattr(block, "text"))
        return LLMResponse(
            content=text,
            usage=TokenUsage(
                input_tokens=message.usage.input_tokens,
                output_tokens=message.usage.output_tokens,
            ),
            model=message.model,
        )

    async def generate_stream(
        self,
        system: str,
        user: str,
        max_tokens: int | None = None,
    ) -> AsyncIterator[str]:
        try:
            async with self._client.messages.stream(
                model=self.config.model,
                max_tokens=max_tokens or self.config.max_tokens,
                temperature=self.config.temperature,
                system=system,
                messages=[{"role": "user", "content": user}],
            ) as stream:
                async for text in stream.text_stream:
                    yield text
        except APIError as e:
            raise LLMError(
                "anthropic", "generate_stream", e, retryable=isinstance(e, RateLimitError)
            ) from e
