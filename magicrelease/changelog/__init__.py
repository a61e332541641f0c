from .editor import (
    convert_unreleased_to_version,
    extract_unreleased_raw,
    insert_unreleased_changes,
    remove_unreleased_section,
    replace_unreleased_section,
)
from .models import UNRELEASED, Category, Change, ChangelogDocument, ChangelogEntry
from .parser import (
    documented_commit_hashes,
    extract_versions,
    get_latest_version,
    has_unreleased_section,
    parse,
)
from .serializer import render_preamble, serialize_entries
from .writer import ChangelogWriter

__all__ = [
    "Category",
    "Change",
    "ChangelogDocument",
    "ChangelogEntry",
    "ChangelogWriter",
    "UNRELEASED",
    "convert_unreleased_to_version",
    "documented_commit_hashes",
    "extract_unreleased_raw",
    "extract_versions",
    "insert_unreleased_changes",
    "get_latest_version",
    "has_unreleased_section",
    "parse",
    "remove_unreleased_section",
    "render_preamble",
    "replace_unreleased_section",
    "serialize_entries",
]
