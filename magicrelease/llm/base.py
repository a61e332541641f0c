"""Abstract LLM interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from magicrelease.llm.models import LLMConfig, LLMResponse


class LLMProvider(ABC):
    """Provider-agnostic chat interface.

    Categorization only needs short one-shot replies; streaming is kept for
    the longer release summaries.
    """

    def __init__(self, config: LLMConfig) -> None:
        self.config = config

    @property
    def name(self) -> str:
        return self.config.provider

    @abstractmethod
    async def generate(
        self,
        system: str,
        user: str,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Generate a complete response (one-shot)."""
        ...

    @abstractmethod
    async def generate_stream(
        self,
        system: str,
        user: str,
        max_tokens: int | None = None,
    ) -> AsyncIterator[str]:
        """Yield response text chunks as they arrive."""
        ...
