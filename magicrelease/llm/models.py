"""Pydantic models for the LLM subsystem."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class LLMError(Exception):
    """A provider SDK call failed. ``retryable`` is set for rate limits."""

    def __init__(
        self, provider: str, operation: str, cause: Exception, retryable: bool = False
    ) -> None:
        self.provider = provider
        self.operation = operation
        self.retryable = retryable
        super().__init__(f"{provider} {operation} failed: {cause}")
        self.__cause__ = cause


class LLMConfig(BaseModel):
    """Resolved provider settings, API key included."""

    provider: Literal["anthropic", "openai", "azure"]
    model: str
    max_tokens: int = 150
    temperature: float = 0.1
    timeout: float = 30
    max_retries: int = 2
    api_key: str | None = None
    base_url: str | None = None
    api_version: str | None = None


class TokenUsage(BaseModel):
    input_tokens: int
    output_tokens: int


class LLMResponse(BaseModel):
    content: str
    usage: TokenUsage
    model: str
