"""Structured model of a Keep a Changelog document."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

UNRELEASED = "Unreleased"


class Category(StrEnum):
    """The six Keep a Changelog sections. Declaration order is output order."""

    ADDED = "Added"
    CHANGED = "Changed"
    DEPRECATED = "Deprecated"
    REMOVED = "Removed"
    FIXED = "Fixed"
    SECURITY = "Security"

    @classmethod
    def parse(cls, label: str) -> Category:
        """Map a free-form label onto a category, or raise ValueError."""
        cleaned = label.strip().strip("`*_#.:\"'[]").strip().lower()
        for member in cls:
            if member.value.lower() == cleaned:
                return member
        raise ValueError(f"Not a changelog category: {label!r}")


class Change(BaseModel):
    """One bullet line of a changelog section.

    ``description`` is stored verbatim, including a trailing reference group
    such as ``([`abc1234`], [#12])``. Everything else is derived from it so
    that parsing and serializing can never disagree.
    """

    model_config = ConfigDict(frozen=True)

    description: str
    scope: str | None = None

    @property
    def text(self) -> str:
        return split_references(self.description)[0]

    @property
    def commits(self) -> list[str]:
        return [ref[2:-2] for ref in split_references(self.description)[1] if ref.startswith("[`")]

    @property
    def pr(self) -> int | None:
        numbers = self._numbers()
        return numbers[0] if numbers else None

    @property
    def issues(self) -> list[str]:
        return [str(n) for n in self._numbers()[1:]]

    def _numbers(self) -> list[int]:
        return [int(ref[2:-1]) for ref in split_references(self.description)[1] if ref.startswith("[#")]


class ChangelogEntry(BaseModel):
    """A version block: header plus its per-category change lists."""

    version: str
    date: str | None = None
    sections: dict[Category, list[Change]] = Field(default_factory=dict)

    @field_validator("sections")
    @classmethod
    def _canonical_order(cls, value: dict[Category, list[Change]]) -> dict[Category, list[Change]]:
        return {cat: list(value[cat]) for cat in Category if value.get(cat)}

    @property
    def is_unreleased(self) -> bool:
        return self.version.lower() == UNRELEASED.lower()

    def has_changes(self) -> bool:
        return any(self.sections.values())


class ChangelogDocument(BaseModel):
    """Parsed changelog: free text before the first entry, then entries newest-first."""

    preamble: str = ""
    entries: list[ChangelogEntry] = Field(default_factory=list)

    @property
    def unreleased(self) -> ChangelogEntry | None:
        return next((e for e in self.entries if e.is_unreleased), None)

    def versions(self) -> list[str]:
        return [e.version for e in self.entries]


# ---------------------------------------------------------------------------
# Reference groups
# ---------------------------------------------------------------------------


def _is_hex(value: str) -> bool:
    return bool(value) and all(c in "0123456789abcdef" for c in value)


def _is_reference(token: str) -> bool:
    """True for ``[`abc1234`]`` commit tokens and ``[#12]`` number tokens."""
    if token.startswith("[`") and token.endswith("`]"):
        inner = token[2:-2]
        return 7 <= len(inner) <= 40 and _is_hex(inner)
    if token.startswith("[#") and token.endswith("]"):
        return token[2:-1].isdigit()
    return False


def split_references(description: str) -> tuple[str, list[str]]:
    """Split ``"Fix login ([`abc1234`], [#3])"`` into text and reference tokens.

    Only a final parenthesised group made entirely of reference tokens
    counts; anything else is ordinary text.
    """
    stripped = description.rstrip()
    if not stripped.endswith(")"):
        return description, []
    start = stripped.rfind(" (")
    if start == -1:
        if not stripped.startswith("("):
            return description, []
        start = -1
    group = stripped[start + 2 : -1]
    tokens = [t.strip() for t in group.split(",")]
    if not tokens or not all(_is_reference(t) for t in tokens):
        return description, []
    return stripped[: max(start, 0)].rstrip(), tokens


def format_references(commits: list[str], numbers: list[int]) -> str:
    """Render a reference group, or an empty string when there is nothing to cite."""
    tokens = [f"[`{h}`]" for h in commits] + [f"[#{n}]" for n in numbers]
    return f"({', '.join(tokens)})" if tokens else ""
