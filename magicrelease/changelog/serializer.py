"""Render changelog entries back to Keep a Changelog markdown."""

from __future__ import annotations

from magicrelease.changelog.models import Change, ChangelogEntry

PREAMBLE = """\
# Changelog

All notable changes to this project will be documented in this file.

The format is based on [Keep a Changelog](https://keepachangelog.com/en/1.0.0/), \
and this project adheres to [Semantic Versioning](https://semver.org/spec/v2.0.0.html).
"""


def render_preamble() -> str:
    """Title plus the Keep a Changelog / SemVer attribution paragraph."""
    return PREAMBLE


def format_change(change: Change) -> str:
    if change.scope:
        return f"- **{change.scope}**: {change.description}"
    return f"- {change.description}"


def format_header(entry: ChangelogEntry) -> str:
    if entry.is_unreleased or not entry.date:
        return f"## [{entry.version}]"
    return f"## [{entry.version}] - {entry.date}"


def serialize_entry(entry: ChangelogEntry) -> str:
    """One entry block, terminated by a newline."""
    blocks = [format_header(entry)]
    for category, changes in entry.sections.items():
        lines = [f"### {category.value}"]
        lines.extend(format_change(c) for c in changes)
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks) + "\n"


def serialize_entries(entries: list[ChangelogEntry]) -> str:
    """Entries separated by one blank line."""
    return "\n".join(serialize_entry(e) for e in entries)
