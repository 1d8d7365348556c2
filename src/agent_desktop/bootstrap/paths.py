"""Path management for the installed native binary.

The canonical binary lives in a version-independent ``bin/`` directory. By
default that is the ``bin`` directory inside the installed package, which is
removed together with the package on uninstall.

Directory structure:
    <bin_dir>/
        agent-desktop-darwin-arm64     - installed native binary
        agent-desktop-v<ver>-<triple>.tar.gz  - transient archive (staging)
        checksums.txt                  - transient manifest (staging)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

# Default directory name under user home for configuration
DEFAULT_HOME_DIR_NAME = ".agent-desktop"

# Environment variable to override the home directory
AGENT_DESKTOP_HOME_ENV = "AGENT_DESKTOP_HOME"

# Environment variable to override the binary directory
BIN_DIR_ENV = "AGENT_DESKTOP_BIN_DIR"

PACKAGE_DIR = Path(__file__).resolve().parent.parent


def get_agent_desktop_home(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Get the agent-desktop home directory path.

    Resolution order:
    1. AGENT_DESKTOP_HOME environment variable (if set)
    2. ~/.agent-desktop (default)

    Returns:
        Path to the agent-desktop home directory.
    """
    env = os.environ if environ is None else environ
    env_home = env.get(AGENT_DESKTOP_HOME_ENV)
    if env_home:
        return Path(env_home)
    return Path.home() / DEFAULT_HOME_DIR_NAME


def default_bin_dir() -> Path:
    """Directory that holds the native binary when nothing overrides it."""
    return PACKAGE_DIR / "bin"


@dataclass(frozen=True)
class AgentDesktopPaths:
    """Paths used by the installer and the launcher."""

    bin_dir: Path

    @classmethod
    def default(cls) -> "AgentDesktopPaths":
        """Create paths rooted at the package's own bin directory."""
        return cls(default_bin_dir())

    @classmethod
    def from_bin_dir(cls, bin_dir: Optional[Path]) -> "AgentDesktopPaths":
        """Create paths for a configured bin directory, or the default one."""
        return cls(bin_dir) if bin_dir else cls.default()

    @property
    def staging_dir(self) -> Path:
        """Directory where archives are downloaded and extracted.

        Staging shares the bin directory so that the final rename onto the
        canonical path never crosses a filesystem boundary.
        """
        return self.bin_dir

    def binary_path(self, asset_name: str) -> Path:
        """Canonical path of the installed binary.

        Args:
            asset_name: Canonical per-platform file name.

        Returns:
            Path inside the bin directory.
        """
        return self.bin_dir / asset_name

    def staging_path(self, filename: str) -> Path:
        return self.staging_dir / filename

    def ensure_directories(self) -> None:
        """Create the bin and staging directories if they don't exist."""
        for directory in (self.bin_dir, self.staging_dir):
            directory.mkdir(parents=True, exist_ok=True)
