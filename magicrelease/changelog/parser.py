"""Changelog parser: line tokenizer plus a three-state grammar.

Recognised lines:
    ## [<label>] [- <date>]      version header
    ### <Category>               section header (six canonical names only)
    - <text>                     change line
Blank lines and HTML comments are skipped; everything else is prose.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum, auto

from magicrelease.changelog.models import (
    UNRELEASED,
    Category,
    Change,
    ChangelogDocument,
    ChangelogEntry,
)

logger = logging.getLogger(__name__)

_COMMIT_REF = re.compile(r"\[`([0-9a-f]{7,40})`\]")


class TokenKind(Enum):
    VERSION_HEADER = auto()
    SECTION_HEADER = auto()
    CHANGE = auto()
    HEADING = auto()
    BLANK = auto()
    COMMENT = auto()
    TEXT = auto()


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    line_no: int
    raw: str
    label: str = ""
    date: str | None = None
    category: Category | None = None
    text: str = ""


class _State(Enum):
    NONE = auto()
    IN_ENTRY = auto()
    IN_SECTION = auto()


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------


def parse_version_header(line: str) -> tuple[str, str | None] | None:
    """Return (label, date) for ``## [label] - date`` lines, else None."""
    stripped = line.strip()
    if not stripped.startswith("##") or stripped.startswith("###"):
        return None
    rest = stripped[2:].lstrip()
    if not rest.startswith("["):
        return None
    close = rest.find("]")
    if close <= 1:
        return None
    label = rest[1:close].strip()
    tail = rest[close + 1 :].strip()
    date: str | None = None
    if tail.startswith("-"):
        date = tail[1:].strip() or None
    return label, date


def _section_category(line: str) -> Category | None:
    stripped = line.strip()
    if not stripped.startswith("### "):
        return None
    name = stripped[4:].strip()
    for member in Category:
        if member.value == name:
            return member
    return None


def tokenize(markdown: str) -> Iterator[Token]:
    """Yield one token per line (multi-line comments yield one token per line)."""
    in_comment = False
    for line_no, raw in enumerate(markdown.splitlines()):
        stripped = raw.strip()

        if in_comment:
            if "-->" in stripped:
                in_comment = False
            yield Token(TokenKind.COMMENT, line_no, raw)
            continue
        if stripped.startswith("<!--"):
            in_comment = "-->" not in stripped[4:]
            yield Token(TokenKind.COMMENT, line_no, raw)
            continue
        if not stripped:
            yield Token(TokenKind.BLANK, line_no, raw)
            continue

        header = parse_version_header(stripped)
        if header is not None:
            label, date = header
            yield Token(TokenKind.VERSION_HEADER, line_no, raw, label=label, date=date)
            continue

        category = _section_category(stripped)
        if category is not None:
            yield Token(TokenKind.SECTION_HEADER, line_no, raw, category=category)
            continue

        if stripped.startswith("#"):
            yield Token(TokenKind.HEADING, line_no, raw, text=stripped)
            continue

        if stripped.startswith("- ") and stripped[2:].strip():
            yield Token(TokenKind.CHANGE, line_no, raw, text=stripped[2:].strip())
            continue

        yield Token(TokenKind.TEXT, line_no, raw)


# ---------------------------------------------------------------------------
# Grammar
# ---------------------------------------------------------------------------


def parse_change(text: str) -> Change:
    """Build a Change from the text after ``- ``, splitting off a ``**scope**:`` prefix."""
    if text.startswith("**"):
        close = text.find("**", 2)
        if close > 2 and text[close + 2 :].startswith(":"):
            scope = text[2:close].strip()
            description = text[close + 3 :].strip()
            if scope and description:
                return Change(description=description, scope=scope)
    return Change(description=text)


class _EntryBuilder:
    def __init__(self, label: str, date: str | None) -> None:
        self.label = label
        self.date = date
        self.sections: dict[Category, list[Change]] = {}

    def build(self) -> ChangelogEntry:
        return ChangelogEntry(version=self.label, date=self.date, sections=self.sections)


def parse(markdown: str) -> ChangelogDocument:
    """Parse changelog markdown into a ChangelogDocument."""
    entries: list[ChangelogEntry] = []
    preamble_lines: list[str] = []
    state = _State.NONE
    entry: _EntryBuilder | None = None
    section: Category | None = None
    seen_entry = False

    def close_entry() -> None:
        nonlocal entry
        if entry is not None:
            entries.append(entry.build())
            entry = None

    for token in tokenize(markdown):
        if not seen_entry and token.kind is not TokenKind.VERSION_HEADER:
            preamble_lines.append(token.raw)

        if token.kind in (TokenKind.BLANK, TokenKind.COMMENT, TokenKind.TEXT):
            continue

        if token.kind is TokenKind.VERSION_HEADER:
            close_entry()
            seen_entry = True
            entry = _EntryBuilder(token.label, token.date)
            section = None
            state = _State.IN_ENTRY
            logger.debug("Found version: %s", token.label)
        elif token.kind is TokenKind.SECTION_HEADER:
            if state is _State.NONE or entry is None:
                continue
            section = token.category
            entry.sections.setdefault(section, [])
            state = _State.IN_SECTION
        elif token.kind is TokenKind.HEADING:
            if token.text.startswith("###"):
                # Unknown subsection: prose, but it ends the open section.
                if state is _State.IN_SECTION:
                    section = None
                    state = _State.IN_ENTRY
            else:
                close_entry()
                section = None
                state = _State.NONE
        elif token.kind is TokenKind.CHANGE:
            if state is _State.IN_SECTION and entry is not None and section is not None:
                entry.sections[section].append(parse_change(token.text))

    close_entry()
    preamble = "\n".join(preamble_lines)
    if preamble:
        preamble += "\n"
    logger.debug("Parsed %d changelog entries", len(entries))
    return ChangelogDocument(preamble=preamble, entries=entries)


# ---------------------------------------------------------------------------
# Scanners
# ---------------------------------------------------------------------------


def extract_versions(markdown: str) -> set[str]:
    """All entry labels in the document, Unreleased included."""
    return {
        t.label for t in tokenize(markdown) if t.kind is TokenKind.VERSION_HEADER
    }


def get_latest_version(markdown: str) -> str | None:
    """First non-Unreleased label, assuming newest-first ordering."""
    for token in tokenize(markdown):
        if token.kind is TokenKind.VERSION_HEADER and token.label.lower() != UNRELEASED.lower():
            return token.label
    return None


def has_unreleased_section(markdown: str) -> bool:
    return any(
        t.kind is TokenKind.VERSION_HEADER and t.label.lower() == UNRELEASED.lower()
        for t in tokenize(markdown)
    )


def documented_commit_hashes(markdown: str) -> set[str]:
    """Every ``[`<hash>`]`` reference anywhere in the text."""
    return set(_COMMIT_REF.findall(markdown))
