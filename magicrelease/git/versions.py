"""Semantic-version handling for tags and next-release planning."""

from __future__ import annotations

import functools
import logging
import re
from collections.abc import Iterable

from .models import GitTag, Tag, VersionPlan

logger = logging.getLogger(__name__)

TAG_PREFIXES = ("release-", "version-", "v", "V")
FIRST_VERSION = "1.0.0"

_IDENT = r"[0-9A-Za-z-]+"
_SEMVER_RE = re.compile(
    rf"^(?P<major>\d+)\.(?P<minor>\d+)\.(?P<patch>\d+)"
    rf"(?:-(?P<pre>{_IDENT}(?:\.{_IDENT})*))?"
    rf"(?:\+(?P<build>{_IDENT}(?:\.{_IDENT})*))?$"
)


def extract_version(tag_name: str) -> str | None:
    """Strip a known tag prefix and return the semver remainder, if any."""
    name = tag_name.strip()
    for prefix in TAG_PREFIXES:
        if name.startswith(prefix) and _SEMVER_RE.match(name[len(prefix) :]):
            return name[len(prefix) :]
    return name if _SEMVER_RE.match(name) else None


def is_pre_release(version: str) -> bool:
    m = _SEMVER_RE.match(version)
    return bool(m and m.group("pre"))


def format_tag_name(version: str, prefix: str = "v") -> str:
    return f"{prefix}{version}"


def convert_tag(git_tag: GitTag) -> Tag | None:
    version = extract_version(git_tag.name)
    if version is None:
        return None
    return Tag(
        name=git_tag.name,
        date=git_tag.date,
        subject=git_tag.subject,
        version=version,
        is_pre_release=is_pre_release(version),
    )


# ---------------------------------------------------------------------------
# Precedence
# ---------------------------------------------------------------------------


def _core(version: str) -> tuple[int, int, int]:
    m = _SEMVER_RE.match(version)
    if not m:
        raise ValueError(f"Not a semantic version: {version!r}")
    return int(m.group("major")), int(m.group("minor")), int(m.group("patch"))


def _compare_identifiers(a: str, b: str) -> int:
    if a.isdigit() and b.isdigit():
        return (int(a) > int(b)) - (int(a) < int(b))
    if a.isdigit():
        return -1
    if b.isdigit():
        return 1
    return (a > b) - (a < b)


def compare_versions(a: str, b: str) -> int:
    """Semver precedence: negative if a < b, zero if equal, positive if a > b.

    Build metadata is ignored. A pre-release sorts below its release.
    """
    core_a, core_b = _core(a), _core(b)
    if core_a != core_b:
        return -1 if core_a < core_b else 1

    pre_a = _SEMVER_RE.match(a).group("pre")
    pre_b = _SEMVER_RE.match(b).group("pre")
    if pre_a == pre_b:
        return 0
    if pre_a is None:
        return 1
    if pre_b is None:
        return -1

    ids_a, ids_b = pre_a.split("."), pre_b.split(".")
    for x, y in zip(ids_a, ids_b):
        result = _compare_identifiers(x, y)
        if result:
            return result
    return (len(ids_a) > len(ids_b)) - (len(ids_a) < len(ids_b))


def version_tags(git_tags: Iterable[GitTag]) -> list[Tag]:
    """Tags carrying a version, highest precedence first."""
    tags = [t for t in (convert_tag(g) for g in git_tags) if t is not None]
    return sorted(tags, key=functools.cmp_to_key(lambda x, y: compare_versions(y.version, x.version)))


def latest_release_tag(tags: Iterable[Tag], include_pre_releases: bool = False) -> Tag | None:
    candidates = [t for t in tags if include_pre_releases or not t.is_pre_release]
    if not candidates:
        return None
    return max(candidates, key=functools.cmp_to_key(lambda x, y: compare_versions(x.version, y.version)))


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


def release_type_for(commit_types: Iterable[str]) -> str:
    types = list(commit_types)
    if any(t.endswith("!") or "BREAKING" in t for t in types):
        return "major"
    if any(t.rstrip("!").lower() == "feat" for t in types):
        return "minor"
    return "patch"


def bump_version(version: str, release_type: str) -> str:
    """Increment ``version``; pre-release and build suffixes are dropped."""
    major, minor, patch = _core(version)
    if release_type == "major":
        return f"{major + 1}.0.0"
    if release_type == "minor":
        return f"{major}.{minor + 1}.0"
    return f"{major}.{minor}.{patch + 1}"


def suggest_next_version(
    existing_tags: Iterable[Tag],
    commit_types: Iterable[str],
    include_pre_releases: bool = False,
) -> VersionPlan:
    """Plan the next release from existing tags and pending commit types.

    The first release is always 1.0.0 regardless of what the commits say.
    """
    tags = list(existing_tags)
    if not tags:
        return VersionPlan(is_first_release=True, next_version=FIRST_VERSION, release_type="major")

    current = latest_release_tag(tags, include_pre_releases)
    if current is None:
        # only pre-releases so far
        current = latest_release_tag(tags, include_pre_releases=True)

    release_type = release_type_for(commit_types)
    next_version = bump_version(current.version, release_type)
    logger.debug("Next version %s -> %s (%s)", current.version, next_version, release_type)
    return VersionPlan(
        is_first_release=False,
        next_version=next_version,
        release_type=release_type,
        current_version=current.version,
    )
