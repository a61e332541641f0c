from pydantic import BaseModel, Field
from typing import Literal


class LLMSettings(BaseModel):
    provider: Literal["openai", "anthropic", "azure", "none"] = "openai"
    model: str = "gpt-4o-mini"
    api_key_env: str = "OPENAI_API_KEY"
    max_tokens: int = Field(default=150, gt=0)
    temperature: float = Field(default=0.1, ge=0, le=2)
    timeout: int = Field(default=30, gt=0)
    max_retries: int = Field(default=2, ge=0)
    base_url: str | None = None
    api_version: str | None = None
    max_concurrency: int = Field(default=4, gt=0)


class ChangelogSettings(BaseModel):
    filename: str = "CHANGELOG.md"
    include_pr_links: bool = True
    include_issue_links: bool = True
    backup: bool = False


class GitSettings(BaseModel):
    tag_prefix: str = "v"
    remote: str = "origin"


class RulesSettings(BaseModel):
    include_pre_releases: bool = False
    min_commits_for_update: int = Field(default=1, ge=0)


class MagicReleaseConfig(BaseModel):
    llm: LLMSettings = Field(default_factory=LLMSettings)
    changelog: ChangelogSettings = Field(default_factory=ChangelogSettings)
    git: GitSettings = Field(default_factory=GitSettings)
    rules: RulesSettings = Field(default_factory=RulesSettings)
    log_level: Literal["debug", "info", "warn", "error"] = "info"
