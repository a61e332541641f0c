"""Shared test fixtures for magicrelease."""

import hashlib
import shutil
import subprocess
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from magicrelease.config.models import LLMSettings, MagicReleaseConfig
from magicrelease.git.models import Commit, Signature
from magicrelease.llm.base import LLMProvider
from magicrelease.llm.models import LLMConfig as LLMRuntimeConfig, LLMResponse, TokenUsage

_SIG = Signature(
    name="Ada Lovelace",
    email="ada@example.com",
    date=datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc),
)


def make_commit(subject: str, body: str = "", sha: str | None = None) -> Commit:
    """Build a Commit with a deterministic fake hash derived from the subject."""
    if sha is None:
        sha = hashlib.sha1(subject.encode()).hexdigest()
    return Commit(hash=sha, subject=subject, body=body, author=_SIG, committer=_SIG)


@pytest.fixture
def sample_config():
    """Defaults with LLM refinement switched off."""
    return MagicReleaseConfig(llm=LLMSettings(provider="none"))


@pytest.fixture
def mock_llm_provider():
    provider = MagicMock(spec=LLMProvider)
    provider.config = LLMRuntimeConfig(provider="openai", model="test-model")
    provider.generate = AsyncMock(
        return_value=LLMResponse(
            content="Added",
            usage=TokenUsage(input_tokens=40, output_tokens=1),
            model="test-model",
        )
    )

    async def _fake_stream(*args, **kwargs):
        for chunk in ["Big ", "release."]:
            yield chunk

    provider.generate_stream = MagicMock(side_effect=_fake_stream)
    return provider


# ---------------------------------------------------------------------------
# Real git repositories
# ---------------------------------------------------------------------------


class GitRepo:
    """Throwaway repository driven through the git binary."""

    def __init__(self, path):
        self.path = path
        self.git("init", "-q")
        self.git("config", "user.name", "Test User")
        self.git("config", "user.email", "test@example.com")
        self.git("config", "commit.gpgsign", "false")
        self.git("config", "tag.gpgsign", "false")

    def git(self, *args: str) -> str:
        result = subprocess.run(
            ["git", *args],
            cwd=self.path,
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout.strip()

    def commit(self, subject: str, body: str = "") -> str:
        message = f"{subject}\n\n{body}" if body else subject
        self.git("commit", "-q", "--allow-empty", "-m", message)
        return self.git("rev-parse", "HEAD")

    def tag(self, name: str) -> None:
        self.git("tag", name)


@pytest.fixture
def git_repo(tmp_path):
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    repo_dir = tmp_path / "repo"
    repo_dir.mkdir()
    return GitRepo(repo_dir)
