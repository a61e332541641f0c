from .loader import DEFAULT_CONFIG_TEMPLATE, load_config
from .models import (
    ChangelogSettings,
    GitSettings,
    LLMSettings,
    MagicReleaseConfig,
    RulesSettings,
)

__all__ = [
    "ChangelogSettings",
    "DEFAULT_CONFIG_TEMPLATE",
    "GitSettings",
    "LLMSettings",
    "MagicReleaseConfig",
    "RulesSettings",
    "load_config",
]
