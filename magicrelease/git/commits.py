"""Conventional-commit classification.

Headers look like ``<type>[(<scope>)][!]: <description>``. Anything that
does not fit is kept as type ``other`` and lands in *Changed*.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass

from magicrelease.changelog.models import Category

from .models import Commit, ParsedCommit

logger = logging.getLogger(__name__)

BREAKING_MARKER = "BREAKING CHANGE"
OTHER_TYPE = "other"

_ISSUE_RE = re.compile(r"(?<![\w&])#(\d+)\b")
_PR_RES = (
    re.compile(r"\(#(\d+)\)\s*$"),
    re.compile(r"\bPR #(\d+)\b", re.IGNORECASE),
    re.compile(r"\bPull Request #(\d+)\b", re.IGNORECASE),
)

# Prefix match on the lowercased type, checked after the exact feat/fix cases.
_PREFIX_CATEGORIES = (
    ("remov", Category.REMOVED),
    ("deprecat", Category.DEPRECATED),
    ("security", Category.SECURITY),
)


@dataclass(frozen=True)
class Header:
    type: str
    scope: str | None
    bang: bool
    description: str


def _is_type_char(c: str) -> bool:
    return c.isascii() and (c.isalnum() or c in "_-")


def parse_header(subject: str) -> Header | None:
    """Tokenize a conventional header, or return None if it does not conform."""
    text = subject.strip()
    pos = 0
    while pos < len(text) and _is_type_char(text[pos]):
        pos += 1
    if pos == 0:
        return None
    type_ = text[:pos]

    scope = None
    if text.startswith("(", pos):
        close = text.find(")", pos + 1)
        if close == -1:
            return None
        scope = text[pos + 1 : close]
        if not scope.strip():
            return None
        pos = close + 1

    bang = text.startswith("!", pos)
    if bang:
        pos += 1

    if not text.startswith(": ", pos):
        return None
    description = text[pos + 2 :].strip()
    if not description:
        return None
    return Header(type=type_, scope=scope.strip() if scope else None, bang=bang, description=description)


def category_for_type(commit_type: str) -> Category:
    """Deterministic category table."""
    lowered = commit_type.lower()
    if lowered == "feat":
        return Category.ADDED
    if lowered == "fix":
        return Category.FIXED
    for prefix, category in _PREFIX_CATEGORIES:
        if lowered.startswith(prefix):
            return category
    return Category.CHANGED


def extract_pr(subject: str, body: str = "") -> int | None:
    for pattern in _PR_RES:
        for text in (subject, body):
            m = pattern.search(text)
            if m:
                return int(m.group(1))
    return None


def extract_issues(subject: str, body: str = "", exclude: int | None = None) -> tuple[str, ...]:
    """Issue numbers referenced as ``#N``, in order of appearance, minus the PR number."""
    seen: list[str] = []
    for m in _ISSUE_RE.finditer(f"{subject}\n{body}"):
        number = m.group(1)
        if exclude is not None and int(number) == exclude:
            continue
        if number not in seen:
            seen.append(number)
    return tuple(seen)


def parse_commit(commit: Commit) -> ParsedCommit:
    header = parse_header(commit.subject)
    pr = extract_pr(commit.subject, commit.body)
    issues = extract_issues(commit.subject, commit.body, exclude=pr)

    if header is None:
        # Never breaking: a BREAKING CHANGE body only counts under a conventional header.
        return ParsedCommit(
            commit=commit,
            type=OTHER_TYPE,
            description=commit.subject.strip(),
            category=Category.CHANGED,
            issues=issues,
            pr=pr,
        )

    breaking = header.bang or BREAKING_MARKER in commit.body
    parsed = ParsedCommit(
        commit=commit,
        type=header.type,
        scope=header.scope,
        breaking=breaking,
        description=header.description,
        category=category_for_type(header.type),
        issues=issues,
        pr=pr,
    )
    logger.debug("Parsed %s as %s -> %s", commit.short_hash, parsed.type, parsed.category)
    return parsed


def parse_commits(commits: Iterable[Commit]) -> dict[Category, list[ParsedCommit]]:
    """Classify and group commits. Only non-empty groups appear; input order is kept."""
    return group_by_category(parse_commit(c) for c in commits)


def group_by_category(parsed: Iterable[ParsedCommit]) -> dict[Category, list[ParsedCommit]]:
    groups: dict[Category, list[ParsedCommit]] = {}
    for p in parsed:
        groups.setdefault(p.category, []).append(p)
    return {cat: groups[cat] for cat in Category if cat in groups}


def summarize(commits: Iterable[Commit]) -> str:
    """One-line count per category, e.g. ``Added: 2 commit(s), Fixed: 1 commit(s)``."""
    groups = parse_commits(commits)
    if not groups:
        return "No commits"
    return ", ".join(f"{cat.value}: {len(items)} commit(s)" for cat, items in groups.items())


def commit_types(parsed: Iterable[ParsedCommit]) -> list[str]:
    """Types for version planning; breaking commits are marked with a trailing ``!``."""
    return [f"{p.type}!" if p.breaking else p.type for p in parsed]
