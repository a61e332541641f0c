from .commits import parse_commit, parse_commits, summarize
from .models import Commit, GitTag, ParsedCommit, Signature, Tag, VersionPlan
from .reader import RepositoryReader
from .versions import (
    compare_versions,
    convert_tag,
    extract_version,
    format_tag_name,
    is_pre_release,
    latest_release_tag,
    suggest_next_version,
    version_tags,
)

__all__ = [
    "Commit",
    "GitTag",
    "ParsedCommit",
    "RepositoryReader",
    "Signature",
    "Tag",
    "VersionPlan",
    "compare_versions",
    "convert_tag",
    "extract_version",
    "format_tag_name",
    "is_pre_release",
    "latest_release_tag",
    "parse_commit",
    "parse_commits",
    "suggest_next_version",
    "summarize",
]
