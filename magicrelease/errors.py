"""Exception hierarchy for magicrelease."""

from __future__ import annotations

from typing import Any


class MagicReleaseError(Exception):
    """Base error. Carries a stable code and optional context for callers."""

    code = "MAGIC_RELEASE_ERROR"

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.context = context or {}


class ConfigError(MagicReleaseError, ValueError):
    """Missing or invalid configuration. Raised before any git or network work."""

    code = "CONFIG_ERROR"


class GitError(MagicReleaseError):
    """A git command failed for a reason other than an unknown reference."""

    code = "GIT_ERROR"

    def __init__(self, message: str, command: list[str] | None = None, stderr: str = "") -> None:
        super().__init__(message, {"command": command or [], "stderr": stderr})
        self.command = command or []
        self.stderr = stderr


class ChangelogError(MagicReleaseError):
    code = "CHANGELOG_ERROR"


class CategorizationError(MagicReleaseError):
    """The categorization backend answered with something that is not a category."""

    code = "CATEGORIZATION_ERROR"
