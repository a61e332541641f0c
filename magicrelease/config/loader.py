"""Locate and read magicrelease.yaml.

Files are searched in order: the ``--config`` path, ``./magicrelease.yaml``,
then ``~/.magicrelease/config.yaml``. The first non-empty one wins and no
merging happens across files. ``${NAME}`` inside string values is replaced
with the environment variable (empty when unset).
"""

import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from magicrelease.errors import ConfigError

from .models import MagicReleaseConfig

PROJECT_CONFIG = Path("magicrelease.yaml")
USER_CONFIG = Path(".magicrelease") / "config.yaml"

_ENV_REF = re.compile(r"\$\{(\w+)\}")


def _candidate_paths(cli_path: str | None) -> list[Path]:
    paths = [PROJECT_CONFIG, Path.home() / USER_CONFIG]
    if cli_path:
        explicit = Path(cli_path)
        if not explicit.exists():
            raise ConfigError(f"Config file not found: {cli_path}", {"path": cli_path})
        paths.insert(0, explicit)
    return paths


def _read_yaml(path: Path) -> dict | None:
    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}", {"path": str(path)}) from e
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ConfigError(f"Invalid config in {path}: expected a mapping", {"path": str(path)})
    return raw


def load_config(cli_path: str | None = None) -> MagicReleaseConfig:
    """Build the settings from the first config file found, or defaults."""
    for path in _candidate_paths(cli_path):
        if not path.is_file():
            continue
        raw = _read_yaml(path)
        if raw is None:
            continue
        try:
            return MagicReleaseConfig(**_substitute_env(raw))
        except ValidationError as e:
            raise ConfigError(f"Invalid config in {path}: {e}", {"path": str(path)}) from e
    return MagicReleaseConfig()


def _substitute_env(value: object) -> object:
    if isinstance(value, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _substitute_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute_env(v) for v in value]
    return value


# Written by `magicr config init`; every key shows its default.
DEFAULT_CONFIG_TEMPLATE = """\
# magicrelease.yaml

# LLM categorization (set provider to "none" for deterministic output only)
llm:
  provider: "openai"           # openai | anthropic | azure | none
  model: "gpt-4o-mini"
  api_key_env: "OPENAI_API_KEY"
  max_tokens: 150
  temperature: 0.1
  timeout: 30
  max_retries: 2
  max_concurrency: 4
  # base_url: "https://my-resource.openai.azure.com"   # azure only
  # api_version: "2024-06-01"                          # azure only

# Changelog file
changelog:
  filename: "CHANGELOG.md"
  include_pr_links: true
  include_issue_links: true
  backup: false

# Git
git:
  tag_prefix: "v"
  remote: "origin"

# Generation rules
rules:
  include_pre_releases: false
  min_commits_for_update: 1

# Logging
log_level: "info"              # debug | info | warn | error
"""
