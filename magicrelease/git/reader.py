"""RepositoryReader: the only component that talks to git."""

from __future__ import annotations

import logging
import subprocess
from datetime import datetime
from pathlib import Path

from magicrelease.errors import GitError

from .models import Commit, GitTag, Signature

logger = logging.getLogger(__name__)

_FIELD = "\x1f"
_RECORD = "\x1e"
_LOG_FORMAT = "%x1f".join(["%H", "%s", "%b", "%an", "%ae", "%aI", "%cn", "%ce", "%cI"]) + "%x1e"
_TAG_FORMAT = "%(refname:short)%1f%(creatordate:iso-strict)%1f%(subject)"

# stderr fragments meaning "nothing to read here" rather than a real failure
_EMPTY_MARKERS = (
    "unknown revision",
    "bad revision",
    "ambiguous argument",
    "does not have any commits yet",
    "not a git repository",
    "bad default revision",
)


def _parse_date(value: str) -> datetime | None:
    value = value.strip()
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


class RepositoryReader:
    """Reads commits and tags by shelling out to ``git`` in ``cwd``.

    Nothing is cached; every call reflects the repository as it is now.
    """

    def __init__(self, cwd: str | Path = ".", git: str = "git", timeout: int = 60) -> None:
        self.cwd = Path(cwd)
        self.git = git
        self.timeout = timeout

    def _run(self, args: list[str]) -> subprocess.CompletedProcess[str]:
        cmd = [self.git, *args]
        logger.debug("git %s", " ".join(args))
        try:
            return subprocess.run(
                cmd,
                cwd=self.cwd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            if not self.cwd.is_dir():
                raise GitError(f"Not a directory: {self.cwd}", cmd) from e
            raise GitError(f"git executable not found: {self.git}", cmd) from e
        except subprocess.TimeoutExpired as e:
            raise GitError(f"git timed out after {self.timeout}s", cmd) from e
        except NotADirectoryError as e:
            raise GitError(f"Not a directory: {self.cwd}", cmd) from e

    # -- commits -----------------------------------------------------------

    def commits_between(self, from_ref: str | None = None, to_ref: str = "HEAD") -> list[Commit]:
        """Commits reachable from ``to_ref`` but not ``from_ref``, newest first."""
        rev_range = f"{from_ref}..{to_ref}" if from_ref else to_ref
        args = ["log", f"--format={_LOG_FORMAT}", rev_range, "--"]
        result = self._run(args)

        if result.returncode != 0:
            stderr = result.stderr.strip()
            if any(marker in stderr.lower() for marker in _EMPTY_MARKERS):
                logger.debug("No commits for %s: %s", rev_range, stderr)
                return []
            raise GitError(f"git log failed: {stderr}", [self.git, *args], stderr)

        commits = [self._parse_record(r) for r in result.stdout.split(_RECORD)]
        commits = [c for c in commits if c is not None]
        logger.debug("Read %d commits for %s", len(commits), rev_range)
        return commits

    @staticmethod
    def _parse_record(record: str) -> Commit | None:
        record = record.lstrip("\n")
        if not record.strip():
            return None
        fields = record.split(_FIELD)
        if len(fields) != 9:
            logger.warning("Skipping malformed git log record (%d fields)", len(fields))
            return None
        sha, subject, body, an, ae, ad, cn, ce, cd = fields
        author_date = _parse_date(ad) or datetime.fromtimestamp(0)
        return Commit(
            hash=sha.strip(),
            subject=subject.strip(),
            body=body.strip(),
            author=Signature(name=an, email=ae, date=author_date),
            committer=Signature(name=cn, email=ce, date=_parse_date(cd) or author_date),
        )

    def has_commits(self) -> bool:
        return self._run(["rev-parse", "--verify", "--quiet", "HEAD"]).returncode == 0

    # -- tags and refs -----------------------------------------------------

    def all_tags(self) -> list[GitTag]:
        """All tags, newest creation date first. Empty on any failure."""
        try:
            result = self._run(
                ["for-each-ref", "--sort=-creatordate", f"--format={_TAG_FORMAT}", "refs/tags"]
            )
        except GitError as e:
            logger.warning("Could not list tags: %s", e)
            return []
        if result.returncode != 0:
            logger.debug("git for-each-ref failed: %s", result.stderr.strip())
            return []

        tags = []
        for line in result.stdout.splitlines():
            if not line.strip():
                continue
            name, _, rest = line.partition(_FIELD)
            date, _, subject = rest.partition(_FIELD)
            tags.append(GitTag(name=name, date=_parse_date(date), subject=subject))
        return tags

    def reference_exists(self, ref: str) -> bool:
        try:
            result = self._run(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"])
        except GitError:
            return False
        return result.returncode == 0

    def current_branch(self) -> str:
        """Checked-out branch name, or ``"HEAD"`` when detached or unknown."""
        try:
            result = self._run(["branch", "--show-current"])
        except GitError:
            return "HEAD"
        name = result.stdout.strip()
        return name if result.returncode == 0 and name else "HEAD"

    def remote_url(self, remote: str = "origin") -> str | None:
        try:
            result = self._run(["remote", "get-url", remote])
        except GitError:
            return None
        url = result.stdout.strip()
        return url if result.returncode == 0 and url else None
