"""Optional LLM refinement of commit categories."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from magicrelease.changelog.models import Category
from magicrelease.errors import CategorizationError
from magicrelease.git.models import ParsedCommit
from magicrelease.llm.base import LLMProvider

logger = logging.getLogger(__name__)

CATEGORIZE_SYSTEM_PROMPT = (
    "You are a commit categorization expert. Categorize the following commit into one of "
    "these categories: Added, Changed, Deprecated, Removed, Fixed, Security. "
    "Respond with only the category name."
)

SUMMARY_SYSTEM_PROMPT = (
    "You are a release manager. Create a concise, engaging summary of the release based on "
    "the changelog. Focus on the most important changes and their impact for users."
)

SUMMARY_FALLBACK = "Release summary generation failed."


@runtime_checkable
class CategorizationOracle(Protocol):
    """Anything that can map a change description to a category."""

    async def categorize(self, description: str, context: str | None = None) -> Category: ...


def build_categorize_prompt(description: str, context: str | None = None) -> str:
    prompt = f"Categorize this commit: {description}"
    if context:
        prompt += f"\n\nProject context: {context}"
    return prompt


class LLMCategorizer:
    """CategorizationOracle backed by an LLMProvider."""

    def __init__(self, llm: LLMProvider) -> None:
        self.llm = llm

    async def categorize(self, description: str, context: str | None = None) -> Category:
        response = await self.llm.generate(
            system=CATEGORIZE_SYSTEM_PROMPT,
            user=build_categorize_prompt(description, context),
        )
        answer = response.content.strip()
        if not answer:
            raise CategorizationError("Empty categorization reply", {"description": description})
        # Models sometimes add a sentence; the label is expected on the first line.
        first_line = answer.splitlines()[0]
        try:
            return Category.parse(first_line)
        except ValueError as e:
            raise CategorizationError(
                f"Unrecognized category {answer!r}", {"description": description}
            ) from e

    async def summarize_release(self, markdown: str) -> str:
        """Free-form prose summary of a changelog excerpt."""
        try:
            response = await self.llm.generate(
                system=SUMMARY_SYSTEM_PROMPT,
                user=f"Create a release summary for this changelog:\n\n{markdown}",
                max_tokens=max(self.llm.config.max_tokens, 500),
            )
        except Exception as e:
            logger.warning("Failed to generate release summary: %s", e)
            return SUMMARY_FALLBACK
        return response.content.strip() or SUMMARY_FALLBACK


async def refine_categories(
    parsed: Sequence[ParsedCommit],
    oracle: CategorizationOracle,
    max_concurrency: int = 4,
    context: str | None = None,
) -> list[ParsedCommit]:
    """Ask the oracle about every commit, at most ``max_concurrency`` at a time.

    Output order matches input order. A commit whose call fails in any way
    keeps its deterministic category.
    """
    semaphore = asyncio.Semaphore(max_concurrency)

    async def refine(item: ParsedCommit) -> ParsedCommit:
        async with semaphore:
            try:
                category = await oracle.categorize(item.description, context)
                if not isinstance(category, Category):
                    category = Category.parse(str(category))
            except Exception as e:
                logger.warning(
                    "Categorization failed for %s, keeping %s: %s",
                    item.commit.short_hash,
                    item.category.value,
                    e,
                )
                return item
        if category != item.category:
            logger.debug(
                "Recategorized %s: %s -> %s", item.commit.short_hash, item.category, category
            )
            return item.model_copy(update={"category": category})
        return item

    return list(await asyncio.gather(*(refine(p) for p in parsed)))
