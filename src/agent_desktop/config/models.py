"""Configuration data models for agent-desktop.

Defines typed configuration classes for the optional
``~/.agent-desktop/config.yml`` file and the environment overrides applied on
top of it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from agent_desktop.bootstrap.download import (
    DEFAULT_MAX_REDIRECTS,
    DEFAULT_RETRIES,
    DEFAULT_TIMEOUT,
)
from agent_desktop.bootstrap.symlink import DEFAULT_BIN_DIR_COMMAND, DEFAULT_ENTRY_NAME

DEFAULT_REPOSITORY = "lahfir/agent-desktop"
DEFAULT_BASE_URL = "https://github.com"


@dataclass
class ReleaseConfig:
    """Where release archives are published."""

    repository: str = DEFAULT_REPOSITORY
    base_url: str = DEFAULT_BASE_URL
    version: Optional[str] = None  # None = installed package version

    @property
    def project_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.repository}"

    @property
    def releases_url(self) -> str:
        return f"{self.project_url}/releases"


@dataclass
class DownloadConfig:
    """Download behaviour."""

    timeout: float = DEFAULT_TIMEOUT  # Seconds per attempt
    retries: int = DEFAULT_RETRIES
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    proxy: Optional[str] = None  # Informational; urllib reads proxy env vars


@dataclass
class SymlinkConfig:
    """Global entry point optimization."""

    enabled: bool = True
    entry_name: str = DEFAULT_ENTRY_NAME
    bin_dir_command: List[str] = field(default_factory=lambda: list(DEFAULT_BIN_DIR_COMMAND))


@dataclass
class AgentDesktopConfig:
    """Complete agent-desktop configuration.

    Example config.yml:
        release:
          repository: lahfir/agent-desktop
        download:
          timeout: 120
          retries: 5
        symlink:
          enabled: false
    """

    skip_download: bool = False
    binary_path: Optional[Path] = None  # Pre-built binary installed verbatim
    bin_dir: Optional[Path] = None  # None = package bin directory
    release: ReleaseConfig = field(default_factory=ReleaseConfig)
    download: DownloadConfig = field(default_factory=DownloadConfig)
    symlink: SymlinkConfig = field(default_factory=SymlinkConfig)

    # Metadata (not from YAML, set by loader)
    _config_sources: List[str] = field(default_factory=list, repr=False)
