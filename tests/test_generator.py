"""End-to-end and orchestration tests for MagicRelease."""

import os
from unittest.mock import MagicMock, patch

import pytest

from magicrelease.changelog.models import Category
from magicrelease.changelog.parser import parse
from magicrelease.changelog.serializer import render_preamble
from magicrelease.config.models import (
    ChangelogSettings,
    GitSettings,
    LLMSettings,
    MagicReleaseConfig,
    RulesSettings,
)
from magicrelease.errors import ChangelogError, ConfigError
from magicrelease.generator import MagicRelease, is_documented, present_description
from magicrelease.git.models import GitTag
from magicrelease.git.reader import RepositoryReader

from conftest import make_commit


def _mock_reader(commits, tags=()):
    reader = MagicMock(spec=RepositoryReader)
    reader.commits_between.return_value = list(commits)
    reader.all_tags.return_value = list(tags)
    reader.remote_url.return_value = None
    return reader


class AlwaysOracle:
    def __init__(self, category=None, error=None):
        self.category = category
        self.error = error

    async def categorize(self, description, context=None):
        if self.error:
            raise self.error
        return self.category


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("add auth", "Add auth"),
            ("add auth.", "Add auth"),
            ("add auth..", "Add auth."),
            ("Already fine", "Already fine"),
            ("éclair support", "Éclair support"),
        ],
    )
    def test_present_description(self, raw, expected):
        assert present_description(raw) == expected

    def test_is_documented_prefix_both_ways(self):
        assert is_documented("abc1234ffff", {"abc1234"})
        assert is_documented("abc1234", {"abc1234ffff"})
        assert not is_documented("abc1235", {"abc1234"})


# ---------------------------------------------------------------------------
# Real repository scenarios
# ---------------------------------------------------------------------------


class TestEndToEnd:
    async def test_fresh_repository(self, git_repo, sample_config):
        init = git_repo.commit("chore: init")
        auth = git_repo.commit("feat: add auth")
        bug = git_repo.commit("fix: resolve bug")

        text = await MagicRelease(sample_config, cwd=git_repo.path).generate()

        assert text == (
            render_preamble()
            + "\n## [Unreleased]\n\n"
            + f"### Added\n- Add auth ([`{auth[:7]}`])\n\n"
            + f"### Changed\n- Init ([`{init[:7]}`])\n\n"
            + f"### Fixed\n- Resolve bug ([`{bug[:7]}`])\n"
        )
        assert (git_repo.path / "CHANGELOG.md").read_text() == text
        doc = parse(text)
        assert doc.versions() == ["Unreleased"]

    async def test_tag_excludes_earlier_commits(self, git_repo, sample_config):
        git_repo.commit("chore: init")
        git_repo.tag("v0.1.0")
        git_repo.commit("feat: add auth")
        git_repo.commit("fix: resolve bug")

        text = await MagicRelease(sample_config, cwd=git_repo.path).generate()

        sections = parse(text).unreleased.sections
        assert list(sections) == [Category.ADDED, Category.FIXED]
        assert all(len(v) == 1 for v in sections.values())

    async def test_second_run_is_byte_identical(self, git_repo, sample_config):
        git_repo.commit("feat: add auth")
        mr = MagicRelease(sample_config, cwd=git_repo.path)
        first = await mr.generate()
        path = git_repo.path / "CHANGELOG.md"
        before = path.read_bytes()

        second = await mr.generate()

        assert second == first
        assert path.read_bytes() == before

    async def test_new_commits_append_after_existing(self, git_repo, sample_config):
        first_sha = git_repo.commit("feat: first")
        mr = MagicRelease(sample_config, cwd=git_repo.path)
        await mr.generate()
        second_sha = git_repo.commit("feat: second")

        text = await mr.generate()

        added = parse(text).unreleased.sections[Category.ADDED]
        assert [c.commits for c in added] == [[first_sha[:7]], [second_sha[:7]]]
        assert text.count("## [Unreleased]") == 1

    async def test_existing_history_preserved(self, git_repo, sample_config):
        existing = (
            "# Changelog\n\nHand-written   intro.\n\n"
            "## [0.1.0] - 2023-12-24\n\n### Added\n-  Odd   spacing stays\n"
        )
        (git_repo.path / "CHANGELOG.md").write_text(existing)
        git_repo.commit("fix: crash")

        text = await MagicRelease(sample_config, cwd=git_repo.path).generate()

        assert text.startswith("# Changelog\n\nHand-written   intro.\n\n## [Unreleased]\n")
        assert text.endswith("\n## [0.1.0] - 2023-12-24\n\n### Added\n-  Odd   spacing stays\n")

    async def test_empty_repository_gets_preamble(self, git_repo, sample_config):
        text = await MagicRelease(sample_config, cwd=git_repo.path).generate()
        assert text == render_preamble()
        assert (git_repo.path / "CHANGELOG.md").read_text() == render_preamble()

    async def test_dry_run_writes_nothing(self, git_repo, sample_config):
        git_repo.commit("feat: add auth")
        text = await MagicRelease(sample_config, cwd=git_repo.path).generate(dry_run=True)
        assert "### Added" in text
        assert not (git_repo.path / "CHANGELOG.md").exists()

    def test_release_and_plan(self, git_repo, sample_config):
        git_repo.commit("feat: add auth")
        mr = MagicRelease(sample_config, cwd=git_repo.path)
        mr.generate_sync()

        plan = mr.plan_next_version()
        assert plan.is_first_release is True
        assert plan.next_version == "1.0.0"

        text = mr.release(date="2024-05-01")
        assert "## [1.0.0] - 2024-05-01" in text
        assert "## [Unreleased]" not in text
        assert parse(text).entries[0].sections[Category.ADDED][0].text == "Add auth"

    def test_plan_after_tag(self, git_repo, sample_config):
        git_repo.commit("feat: add auth")
        git_repo.tag("v1.0.0")
        git_repo.commit("feat: add billing")
        plan = MagicRelease(sample_config, cwd=git_repo.path).plan_next_version()
        assert (plan.current_version, plan.next_version, plan.release_type) == ("1.0.0", "1.1.0", "minor")


# ---------------------------------------------------------------------------
# Mocked reader
# ---------------------------------------------------------------------------


class TestIdempotenceFilter:
    async def test_documented_commit_excluded(self, tmp_path, sample_config):
        existing = render_preamble() + "\n## [Unreleased]\n\n### Added\n- Old thing ([`abc1234`])\n"
        (tmp_path / "CHANGELOG.md").write_text(existing)
        old = make_commit("feat: old thing", sha="abc1234" + "0" * 33)
        new = make_commit("fix: new thing", sha="def5678" + "0" * 33)

        mr = MagicRelease(sample_config, cwd=tmp_path, reader=_mock_reader([new, old]))
        text = await mr.generate()

        entry = parse(text).unreleased
        assert [c.text for c in entry.sections[Category.ADDED]] == ["Old thing"]
        assert [c.text for c in entry.sections[Category.FIXED]] == ["New thing"]
        assert text.count("abc1234") == 1

    async def test_unreleased_notes_survive(self, tmp_path, sample_config):
        existing = render_preamble() + (
            "\n## [Unreleased]\n"
            "\n"
            "<!-- keep this note -->\n"
            "Prose about the upcoming release.\n"
            "\n"
            "### Added\n"
            "- Old thing ([`abc1234`])\n"
            "  continued explanation line\n"
            "\n"
            "### Notes\n"
            "Migration guide lives in docs/upgrade.md.\n"
            "\n"
            "## [1.0.0] - 2024-01-01\n"
            "\n"
            "### Fixed\n"
            "- Older bug\n"
        )
        (tmp_path / "CHANGELOG.md").write_text(existing)
        new = make_commit("fix: new thing", sha="def5678" + "0" * 33)

        mr = MagicRelease(sample_config, cwd=tmp_path, reader=_mock_reader([new]))
        text = await mr.generate()

        for kept in (
            "<!-- keep this note -->\n",
            "Prose about the upcoming release.\n",
            "- Old thing ([`abc1234`])\n  continued explanation line\n",
            "### Notes\nMigration guide lives in docs/upgrade.md.\n",
        ):
            assert kept in text
        assert "### Fixed\n- New thing ([`def5678`])\n\n## [1.0.0]" in text
        assert text.endswith("## [1.0.0] - 2024-01-01\n\n### Fixed\n- Older bug\n")
        assert (tmp_path / "CHANGELOG.md").read_text() == text

    async def test_everything_documented_returns_existing(self, tmp_path, sample_config):
        existing = "# Changelog\n\n## [Unreleased]\n### Added\n- X ([`abc1234`])\n"
        (tmp_path / "CHANGELOG.md").write_text(existing)
        commit = make_commit("feat: x", sha="abc1234" + "f" * 33)
        mr = MagicRelease(sample_config, cwd=tmp_path, reader=_mock_reader([commit]))
        assert await mr.generate() == existing

    async def test_min_commits_threshold(self, tmp_path):
        config = MagicReleaseConfig(
            llm=LLMSettings(provider="none"), rules=RulesSettings(min_commits_for_update=3)
        )
        (tmp_path / "CHANGELOG.md").write_text("# Changelog\n")
        reader = _mock_reader([make_commit("feat: a"), make_commit("feat: b")])
        assert await MagicRelease(config, cwd=tmp_path, reader=reader).generate() == "# Changelog\n"

    async def test_blank_file_treated_as_missing(self, tmp_path, sample_config):
        (tmp_path / "CHANGELOG.md").write_text("\n\n")
        reader = _mock_reader([make_commit("feat: a")])
        text = await MagicRelease(sample_config, cwd=tmp_path, reader=reader).generate()
        assert text.startswith(render_preamble())


class TestRangeResolution:
    def test_latest_release_tag_used(self, tmp_path, sample_config):
        tags = [GitTag(name="v1.0.0"), GitTag(name="v1.1.0"), GitTag(name="v2.0.0-rc.1")]
        reader = _mock_reader([], tags)
        mr = MagicRelease(sample_config, cwd=tmp_path, reader=reader)
        assert mr.resolve_range() == ("v1.1.0", "HEAD")

    def test_pre_releases_when_enabled(self, tmp_path):
        config = MagicReleaseConfig(
            llm=LLMSettings(provider="none"), rules=RulesSettings(include_pre_releases=True)
        )
        reader = _mock_reader([], [GitTag(name="v1.1.0"), GitTag(name="v2.0.0-rc.1")])
        assert MagicRelease(config, cwd=tmp_path, reader=reader).resolve_range() == ("v2.0.0-rc.1", "HEAD")

    def test_explicit_refs_win(self, tmp_path, sample_config):
        reader = _mock_reader([], [GitTag(name="v1.0.0")])
        mr = MagicRelease(sample_config, cwd=tmp_path, reader=reader)
        assert mr.resolve_range("abc", "def") == ("abc", "def")

    async def test_generate_passes_range(self, tmp_path, sample_config):
        reader = _mock_reader([])
        await MagicRelease(sample_config, cwd=tmp_path, reader=reader).generate(
            from_ref="v1.0.0", to_ref="main", dry_run=True
        )
        reader.commits_between.assert_called_once_with("v1.0.0", "main")


class TestComposition:
    async def test_references_and_scope(self, tmp_path, sample_config):
        commit = make_commit("feat(auth): add login. (#12)", "Closes #7")
        mr = MagicRelease(sample_config, cwd=tmp_path, reader=_mock_reader([commit]))
        text = await mr.generate(dry_run=True)
        assert f"- **auth**: Add login ([`{commit.short_hash}`], [#12], [#7])" in text

    async def test_links_disabled(self, tmp_path):
        config = MagicReleaseConfig(
            llm=LLMSettings(provider="none"),
            changelog=ChangelogSettings(include_pr_links=False, include_issue_links=False),
        )
        commit = make_commit("fix: crash (#12)", "Closes #7")
        mr = MagicRelease(config, cwd=tmp_path, reader=_mock_reader([commit]))
        text = await mr.generate(dry_run=True)
        assert f"- Crash (#12) ([`{commit.short_hash}`])" in text

    async def test_custom_filename(self, tmp_path):
        config = MagicReleaseConfig(
            llm=LLMSettings(provider="none"), changelog=ChangelogSettings(filename="HISTORY.md")
        )
        mr = MagicRelease(config, cwd=tmp_path, reader=_mock_reader([make_commit("feat: a")]))
        await mr.generate()
        assert (tmp_path / "HISTORY.md").exists()


class TestOracleIntegration:
    async def test_oracle_recategorizes(self, tmp_path, sample_config):
        reader = _mock_reader([make_commit("chore: bump openssl")])
        mr = MagicRelease(sample_config, cwd=tmp_path, reader=reader, oracle=AlwaysOracle(Category.SECURITY))
        text = await mr.generate(dry_run=True)
        assert list(parse(text).unreleased.sections) == [Category.SECURITY]

    async def test_use_ai_false_skips_oracle(self, tmp_path, sample_config):
        reader = _mock_reader([make_commit("chore: bump openssl")])
        mr = MagicRelease(sample_config, cwd=tmp_path, reader=reader, oracle=AlwaysOracle(Category.SECURITY))
        text = await mr.generate(dry_run=True, use_ai=False)
        assert list(parse(text).unreleased.sections) == [Category.CHANGED]

    async def test_oracle_outage_degrades(self, tmp_path, sample_config):
        reader = _mock_reader([make_commit("feat: a"), make_commit("fix: b"), make_commit("docs: c")])
        mr = MagicRelease(
            sample_config, cwd=tmp_path, reader=reader, oracle=AlwaysOracle(error=ConnectionError("down"))
        )
        text = await mr.generate(dry_run=True)
        assert list(parse(text).unreleased.sections) == [Category.ADDED, Category.CHANGED, Category.FIXED]

    async def test_remote_url_sent_as_context(self, tmp_path):
        config = MagicReleaseConfig(llm=LLMSettings(provider="none"), git=GitSettings(remote="upstream"))
        reader = _mock_reader([make_commit("chore: bump openssl")])
        reader.remote_url.return_value = "git@example.com:acme/app.git"
        seen = []

        class RecordingOracle:
            async def categorize(self, description, context=None):
                seen.append(context)
                return Category.SECURITY

        mr = MagicRelease(config, cwd=tmp_path, reader=reader, oracle=RecordingOracle())
        await mr.generate(dry_run=True)
        reader.remote_url.assert_called_once_with("upstream")
        assert seen == ["repository git@example.com:acme/app.git"]

    async def test_no_remote_no_context(self, tmp_path, sample_config):
        seen = []

        class RecordingOracle:
            async def categorize(self, description, context=None):
                seen.append(context)
                return Category.ADDED

        reader = _mock_reader([make_commit("feat: a")])
        await MagicRelease(sample_config, cwd=tmp_path, reader=reader, oracle=RecordingOracle()).generate(
            dry_run=True
        )
        assert seen == [None]


class TestConstruction:
    @patch.dict(os.environ, {}, clear=True)
    def test_missing_key_fails_before_git(self, tmp_path):
        reader = _mock_reader([])
        with pytest.raises(ConfigError):
            MagicRelease(MagicReleaseConfig(), cwd=tmp_path, reader=reader)
        reader.commits_between.assert_not_called()
        reader.all_tags.assert_not_called()

    @patch.dict(os.environ, {}, clear=True)
    def test_injected_oracle_skips_provider(self, tmp_path):
        mr = MagicRelease(MagicReleaseConfig(), cwd=tmp_path, reader=_mock_reader([]), oracle=AlwaysOracle())
        assert isinstance(mr.oracle, AlwaysOracle)

    @patch.dict(os.environ, {"OPENAI_API_KEY": "sk-test"})
    def test_configured_provider_becomes_oracle(self, tmp_path):
        from magicrelease.categorizer import LLMCategorizer

        mr = MagicRelease(MagicReleaseConfig(), cwd=tmp_path, reader=_mock_reader([]))
        assert isinstance(mr.oracle, LLMCategorizer)


class TestRelease:
    def test_no_unreleased_raises(self, tmp_path, sample_config):
        (tmp_path / "CHANGELOG.md").write_text("# Changelog\n\n## [1.0.0] - 2024-01-01\n")
        mr = MagicRelease(sample_config, cwd=tmp_path, reader=_mock_reader([]))
        with pytest.raises(ChangelogError, match="No Unreleased"):
            mr.release("1.1.0")

    def test_missing_file_raises(self, tmp_path, sample_config):
        mr = MagicRelease(sample_config, cwd=tmp_path, reader=_mock_reader([]))
        with pytest.raises(ChangelogError):
            mr.release("1.0.0")

    def test_explicit_version_dry_run(self, tmp_path, sample_config):
        original = "# Changelog\n\n## [Unreleased]\n\n### Fixed\n- Bug\n"
        (tmp_path / "CHANGELOG.md").write_text(original)
        mr = MagicRelease(sample_config, cwd=tmp_path, reader=_mock_reader([]))
        text = mr.release("2.0.0", date="2024-06-01", dry_run=True)
        assert text == original.replace("## [Unreleased]", "## [2.0.0] - 2024-06-01")
        assert (tmp_path / "CHANGELOG.md").read_text() == original

    def test_suggested_version(self, tmp_path, sample_config):
        (tmp_path / "CHANGELOG.md").write_text("## [Unreleased]\n### Fixed\n- Bug\n")
        reader = _mock_reader([make_commit("fix: bug")], [GitTag(name="v1.4.2")])
        text = MagicRelease(sample_config, cwd=tmp_path, reader=reader).release(date="2024-06-01")
        assert text.startswith("## [1.4.3] - 2024-06-01\n")

    def test_tag_name_uses_prefix(self, tmp_path):
        config = MagicReleaseConfig(llm=LLMSettings(provider="none"), git=GitSettings(tag_prefix="release-"))
        mr = MagicRelease(config, cwd=tmp_path, reader=_mock_reader([]))
        assert mr.tag_name("1.2.0") == "release-1.2.0"

    def test_tag_name_default_prefix(self, tmp_path, sample_config):
        assert MagicRelease(sample_config, cwd=tmp_path, reader=_mock_reader([])).tag_name("2.0.0") == "v2.0.0"
