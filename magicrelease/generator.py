"""MagicRelease orchestrator: git history in, Keep a Changelog text out."""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import date as date_type
from pathlib import Path

from magicrelease.categorizer import CategorizationOracle, LLMCategorizer, refine_categories
from magicrelease.changelog.editor import (
    convert_unreleased_to_version,
    find_unreleased_block,
    insert_unreleased_changes,
    replace_unreleased_section,
)
from magicrelease.changelog.models import UNRELEASED, Change, ChangelogEntry, format_references
from magicrelease.changelog.parser import documented_commit_hashes, parse
from magicrelease.changelog.serializer import render_preamble, serialize_entries
from magicrelease.changelog.writer import ChangelogWriter
from magicrelease.config.models import MagicReleaseConfig
from magicrelease.errors import ChangelogError
from magicrelease.git.commits import commit_types, group_by_category, parse_commit
from magicrelease.git.models import Commit, ParsedCommit, Tag, VersionPlan
from magicrelease.git.reader import RepositoryReader
from magicrelease.git.versions import (
    format_tag_name,
    latest_release_tag,
    suggest_next_version,
    version_tags,
)
from magicrelease.llm import create_llm_provider

logger = logging.getLogger(__name__)

_PR_SUFFIX = re.compile(r"\s*\(#(\d+)\)$")


def present_description(text: str) -> str:
    """Capitalize the first letter and drop one trailing period."""
    text = text.strip()
    if text.endswith("."):
        text = text[:-1].rstrip()
    return text[:1].upper() + text[1:]


def is_documented(commit_hash: str, documented: set[str]) -> bool:
    """True if ``commit_hash`` matches a recorded reference (either may be abbreviated)."""
    return any(commit_hash.startswith(h) or h.startswith(commit_hash) for h in documented)


class MagicRelease:
    """Coordinates reader, classifier, oracle and changelog editing.

    Pipeline:
        resolve range -> fetch -> filter documented -> classify -> refine
        -> compose Unreleased -> integrate -> emit
    """

    def __init__(
        self,
        config: MagicReleaseConfig,
        cwd: str | Path = ".",
        reader: RepositoryReader | None = None,
        oracle: CategorizationOracle | None = None,
    ) -> None:
        self.config = config
        self.cwd = Path(cwd)
        self.reader = reader or RepositoryReader(self.cwd)
        self.writer = ChangelogWriter(config.changelog)
        if oracle is None:
            llm = create_llm_provider(config.llm)
            oracle = LLMCategorizer(llm) if llm is not None else None
        self.oracle = oracle
        logger.debug(
            "MagicRelease initialized (cwd=%s, provider=%s)",
            self.cwd,
            config.llm.provider if self.oracle is not None else "none",
        )

    @property
    def changelog_path(self) -> Path:
        return self.cwd / self.config.changelog.filename

    def read_existing(self) -> str | None:
        """Current changelog text, or None when the file is missing or blank."""
        path = self.changelog_path
        if not path.is_file():
            return None
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ChangelogError(f"Failed to read {path}: {e}", {"path": str(path)}) from e
        return text if text.strip() else None

    # -- range -------------------------------------------------------------

    def _version_tags(self) -> list[Tag]:
        return version_tags(self.reader.all_tags())

    def resolve_range(self, from_ref: str | None = None, to_ref: str | None = None) -> tuple[str | None, str]:
        """Explicit refs win; otherwise latest release tag up to HEAD."""
        if from_ref is None:
            latest = latest_release_tag(
                self._version_tags(), self.config.rules.include_pre_releases
            )
            from_ref = latest.name if latest else None
        return from_ref, to_ref or "HEAD"

    # -- generate ----------------------------------------------------------

    async def generate(
        self,
        from_ref: str | None = None,
        to_ref: str | None = None,
        dry_run: bool = False,
        use_ai: bool = True,
    ) -> str:
        """Run the pipeline and return the full changelog text.

        Steps:
            1. Resolve the commit range
            2. Fetch commits
            3. Drop commits already referenced in the changelog
            4. Classify, then refine through the oracle
            5. Compose the Unreleased entry
            6. Integrate into the existing document
            7. Write (unless dry-run)
        """
        # 1. Resolve range
        start, end = self.resolve_range(from_ref, to_ref)
        logger.info("Generating changelog for %s..%s", start or "beginning", end)

        # 2. Fetch
        commits = self.reader.commits_between(start, end)

        # 3. Filter for idempotence
        existing = self.read_existing()
        new_commits = self._undocumented(commits, existing)
        logger.info("%d commits in range, %d not yet documented", len(commits), len(new_commits))

        if not new_commits or len(new_commits) < self.config.rules.min_commits_for_update:
            logger.info("Nothing new to add")
            if existing is not None:
                return existing
            return self._emit(render_preamble(), dry_run)

        # 4. Classify and refine
        parsed = [parse_commit(c) for c in new_commits]
        if use_ai and self.oracle is not None:
            parsed = await refine_categories(
                parsed,
                self.oracle,
                self.config.llm.max_concurrency,
                context=self.project_context(),
            )

        # 5. Compose
        entry = self.compose_unreleased(parsed)

        # 6. Integrate
        if existing is not None and find_unreleased_block(existing) is not None:
            document = insert_unreleased_changes(existing, entry.sections)
        else:
            block = serialize_entries([entry])
            document = replace_unreleased_section(existing or render_preamble(), block)

        # 7. Emit
        return self._emit(document, dry_run)

    def generate_sync(self, *args, **kwargs) -> str:
        """Blocking wrapper around :meth:`generate`."""
        return asyncio.run(self.generate(*args, **kwargs))

    def _undocumented(self, commits: list[Commit], existing: str | None) -> list[Commit]:
        if not existing:
            return commits
        documented = documented_commit_hashes(existing)
        kept = [c for c in commits if not is_documented(c.hash, documented)]
        if len(kept) != len(commits):
            logger.debug("Skipping %d already documented commits", len(commits) - len(kept))
        return kept

    def compose_unreleased(self, parsed: list[ParsedCommit]) -> ChangelogEntry:
        """Unreleased entry holding only the new changes, grouped by category."""
        sections = {
            category: [self.to_change(p) for p in items]
            for category, items in group_by_category(parsed).items()
        }
        return ChangelogEntry(version=UNRELEASED, sections=sections)

    def project_context(self) -> str | None:
        """Repository URL of the configured remote, passed to the oracle."""
        url = self.reader.remote_url(self.config.git.remote)
        return f"repository {url}" if url else None

    def to_change(self, item: ParsedCommit) -> Change:
        settings = self.config.changelog
        text = item.description
        numbers: list[int] = []
        if settings.include_pr_links and item.pr is not None:
            numbers.append(item.pr)
            m = _PR_SUFFIX.search(text)
            if m and int(m.group(1)) == item.pr:
                text = text[: m.start()]
        if settings.include_issue_links:
            numbers.extend(int(i) for i in item.issues)

        description = present_description(text)
        refs = format_references([item.commit.short_hash], numbers)
        return Change(description=f"{description} {refs}", scope=item.scope)

    def _emit(self, text: str, dry_run: bool) -> str:
        if dry_run:
            logger.info("Dry run: %s not written", self.changelog_path)
        else:
            self.writer.write(self.changelog_path, text)
        return text

    # -- releases ----------------------------------------------------------

    def tag_name(self, version: str) -> str:
        """Git tag for ``version`` using the configured prefix."""
        return format_tag_name(version, self.config.git.tag_prefix)

    def plan_next_version(self, from_ref: str | None = None) -> VersionPlan:
        """Suggest the next version from the commits pending since ``from_ref``."""
        tags = self._version_tags()
        start, end = self.resolve_range(from_ref)
        parsed = [parse_commit(c) for c in self.reader.commits_between(start, end)]
        return suggest_next_version(
            tags, commit_types(parsed), self.config.rules.include_pre_releases
        )

    def release(
        self,
        version: str | None = None,
        date: str | None = None,
        dry_run: bool = False,
    ) -> str:
        """Turn the Unreleased block into a dated version entry."""
        existing = self.read_existing()
        if existing is None or parse(existing).unreleased is None:
            raise ChangelogError(
                f"No Unreleased section in {self.changelog_path}",
                {"path": str(self.changelog_path)},
            )
        version = version or self.plan_next_version().next_version
        date = date or date_type.today().isoformat()
        logger.info("Releasing %s (%s), tag %s", version, date, self.tag_name(version))
        document = convert_unreleased_to_version(existing, version, date)
        return self._emit(document, dry_run)
