"""Raw-text edits scoped to the Unreleased block.

These work on line ranges of the original markdown so that everything
outside the Unreleased block comes back byte-for-byte.
"""

from __future__ import annotations

import logging
import re

from magicrelease.changelog.models import UNRELEASED, Category, Change
from magicrelease.changelog.parser import TokenKind, tokenize
from magicrelease.changelog.serializer import format_change

logger = logging.getLogger(__name__)

_LINK_DEFINITION = re.compile(r"^\s{0,3}\[[^\]]+\]:\s*\S+")


def _is_block_end(kind: TokenKind, raw: str) -> bool:
    stripped = raw.strip()
    if kind is TokenKind.VERSION_HEADER:
        return True
    if kind is TokenKind.HEADING and not stripped.startswith("###"):
        return True
    return kind is TokenKind.TEXT and bool(_LINK_DEFINITION.match(raw))


def find_unreleased_block(markdown: str) -> tuple[int, int] | None:
    """Line range ``[start, end)`` of the Unreleased block, or None."""
    start: int | None = None
    for token in tokenize(markdown):
        if start is None:
            if token.kind is TokenKind.VERSION_HEADER and token.label.lower() == UNRELEASED.lower():
                start = token.line_no
            continue
        if _is_block_end(token.kind, token.raw):
            return start, token.line_no
    if start is None:
        return None
    return start, len(markdown.splitlines())


def _is_blank(line: str) -> bool:
    return not line.strip()


def extract_unreleased_raw(markdown: str) -> str | None:
    """The Unreleased block exactly as written, or None when absent."""
    span = find_unreleased_block(markdown)
    if span is None:
        return None
    lines = markdown.splitlines(keepends=True)
    return "".join(lines[span[0] : span[1]])


def convert_unreleased_to_version(markdown: str, version: str, date: str) -> str:
    """Rewrite only the Unreleased header line as ``## [version] - date``."""
    span = find_unreleased_block(markdown)
    if span is None:
        logger.debug("No Unreleased section to convert")
        return markdown
    lines = markdown.splitlines(keepends=True)
    header = lines[span[0]]
    ending = header[len(header.rstrip("\r\n")) :]
    lines[span[0]] = f"## [{version}] - {date}{ending}"
    return "".join(lines)


def remove_unreleased_section(markdown: str) -> str:
    """Drop the Unreleased block, leaving at most one blank line at the seam."""
    span = find_unreleased_block(markdown)
    if span is None:
        return markdown
    lines = markdown.splitlines(keepends=True)
    before, after = lines[: span[0]], lines[span[1] :]
    if not after:
        while before and _is_blank(before[-1]):
            before.pop()
        if before and not before[-1].endswith("\n"):
            before[-1] += "\n"
        return "".join(before)
    while after and _is_blank(after[0]) and (not before or _is_blank(before[-1])):
        after.pop(0)
    return "".join(before + after)


def replace_unreleased_section(markdown: str, block: str) -> str:
    """Swap the Unreleased block for ``block``, or insert it when missing.

    Without an existing block, ``block`` goes before the first version entry,
    or after the preamble when the document has no entries yet.
    """
    if not block.endswith("\n"):
        block += "\n"
    lines = markdown.splitlines(keepends=True)
    span = find_unreleased_block(markdown)

    if span is not None:
        before, after = lines[: span[0]], lines[span[1] :]
        separator = "\n" if after and not _is_blank(block.splitlines()[-1]) else ""
        return "".join(before) + block + separator + "".join(after)

    first_entry = next(
        (t.line_no for t in tokenize(markdown) if t.kind is TokenKind.VERSION_HEADER),
        None,
    )
    if first_entry is not None:
        return "".join(lines[:first_entry]) + block + "\n" + "".join(lines[first_entry:])

    head = markdown
    if head and not head.endswith("\n"):
        head += "\n"
    if head and not head.endswith("\n\n"):
        head += "\n"
    return head + block


def _append_newline(lines: list[str], index: int) -> None:
    if index == len(lines) and lines and not lines[-1].endswith("\n"):
        lines[-1] += "\n"


def _insert_into_block(markdown: str, category: Category, new_lines: list[str]) -> str:
    start, end = find_unreleased_block(markdown)
    lines = markdown.splitlines(keepends=True)
    tokens = [t for t in tokenize(markdown) if start < t.line_no < end]
    order = list(Category)

    header = next(
        (t for t in tokens if t.kind is TokenKind.SECTION_HEADER and t.category is category),
        None,
    )
    if header is not None:
        run_end = next(
            (
                t.line_no
                for t in tokens
                if t.line_no > header.line_no
                and t.kind in (TokenKind.SECTION_HEADER, TokenKind.HEADING)
            ),
            end,
        )
        index = header.line_no + 1
        for t in tokens:
            if header.line_no < t.line_no < run_end and t.kind is not TokenKind.BLANK:
                index = t.line_no + 1
        _append_newline(lines, index)
        lines[index:index] = new_lines
        return "".join(lines)

    section = [f"### {category.value}\n", *new_lines]
    later = next(
        (
            t
            for t in tokens
            if t.kind is TokenKind.SECTION_HEADER
            and order.index(t.category) > order.index(category)
        ),
        None,
    )
    if later is not None:
        lines[later.line_no : later.line_no] = section + ["\n"]
        return "".join(lines)

    index = start + 1
    for t in tokens:
        if t.kind is not TokenKind.BLANK:
            index = t.line_no + 1
    _append_newline(lines, index)
    if index < len(lines) and not _is_blank(lines[index]):
        section.append("\n")
    lines[index:index] = ["\n", *section]
    return "".join(lines)


def insert_unreleased_changes(markdown: str, changes: dict[Category, list[Change]]) -> str:
    """Add change lines to the existing Unreleased block, keeping its text.

    Each category's lines go after the last line of its ``### <Category>``
    run. A missing category gets a new section placed before the next
    canonical section present, or at the end of the block. Comments, prose
    and unknown subsections in the block are left as written.
    """
    if find_unreleased_block(markdown) is None:
        raise ValueError("markdown has no Unreleased block")
    for category in Category:
        items = changes.get(category)
        if not items:
            continue
        new_lines = [format_change(c) + "\n" for c in items]
        markdown = _insert_into_block(markdown, category, new_lines)
    return markdown
