"""Configuration module for agent-desktop.

Provides configuration loading with support for:
- Global config (~/.agent-desktop/config.yml)
- Environment variable expansion and AGENT_DESKTOP_* overrides
"""

from agent_desktop.config.models import (
    AgentDesktopConfig,
    DownloadConfig,
    ReleaseConfig,
    SymlinkConfig,
)
from agent_desktop.config.loader import ConfigError, find_global_config, load_config
from agent_desktop.config.validation import validate_config, ConfigValidationWarning

__all__ = [
    "AgentDesktopConfig",
    "DownloadConfig",
    "ReleaseConfig",
    "SymlinkConfig",
    "ConfigError",
    "load_config",
    "find_global_config",
    "validate_config",
    "ConfigValidationWarning",
]
