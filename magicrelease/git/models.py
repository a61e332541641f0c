"""Pydantic models for git data."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from magicrelease.changelog.models import Category


class Signature(BaseModel):
    """Author or committer of a commit."""

    model_config = ConfigDict(frozen=True)

    name: str
    email: str = ""
    date: datetime


class Commit(BaseModel):
    """A single commit as read from the repository."""

    model_config = ConfigDict(frozen=True)

    hash: str = Field(description="Full object name")
    subject: str
    body: str = ""
    author: Signature
    committer: Signature

    @property
    def short_hash(self) -> str:
        return self.hash[:7]


class ParsedCommit(BaseModel):
    """A commit classified by its conventional-commit header."""

    model_config = ConfigDict(frozen=True)

    commit: Commit
    type: str
    scope: str | None = None
    breaking: bool = False
    description: str
    category: Category
    issues: tuple[str, ...] = ()
    pr: int | None = None

    @property
    def hash(self) -> str:
        return self.commit.hash


class GitTag(BaseModel):
    """A tag as listed by git, before any version interpretation."""

    name: str
    date: datetime | None = None
    subject: str = ""


class Tag(GitTag):
    """A tag whose name carries a semantic version."""

    version: str
    is_pre_release: bool = False


class VersionPlan(BaseModel):
    """Suggested next release."""

    is_first_release: bool
    next_version: str
    release_type: str
    current_version: str | None = None
