"""Global entry point optimization.

pipx exposes console scripts by symlinking them into a shared bin directory
(``PIPX_BIN_DIR``). That entry normally points at the Python launcher script,
which costs an interpreter start-up on every call. After a successful install
the entry can point straight at the native binary instead.

Only an entry that is already a symbolic link is replaced. Regular files are
left alone because they were not created by a symlinking install.
"""

from __future__ import annotations

import os
import subprocess
import sys
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Sequence

from agent_desktop.core.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_ENTRY_NAME = "agent-desktop"
DEFAULT_BIN_DIR_COMMAND = ("pipx", "environment", "--value", "PIPX_BIN_DIR")
QUERY_TIMEOUT = 30

Runner = Callable[..., "subprocess.CompletedProcess[str]"]


class OptimizeOutcome(str, Enum):
    """Result of a symlink optimization attempt."""

    DISABLED = "disabled"
    NO_GLOBAL_BIN = "no_global_bin"
    NOT_A_SYMLINK = "not_a_symlink"
    ALREADY_OPTIMIZED = "already_optimized"
    OPTIMIZED = "optimized"
    FAILED = "failed"


def query_global_bin_dir(
    command: Sequence[str] = DEFAULT_BIN_DIR_COMMAND,
    runner: Runner = subprocess.run,
) -> Optional[Path]:
    """Ask the package manager for its global binary directory.

    Returns:
        The directory, or None if the query fails for any reason (tool not
        installed, not a global install, non-zero exit, empty output).
    """
    if not command:
        return None
    try:
        result = runner(
            list(command),
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=QUERY_TIMEOUT,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as e:
        LOGGER.debug(f"Global bin directory query failed: {e}")
        return None

    if result.returncode != 0:
        LOGGER.debug(f"Global bin directory query exited with {result.returncode}")
        return None

    output = (result.stdout or "").strip()
    if not output:
        return None
    return Path(output.splitlines()[-1].strip())


class SymlinkOptimizer:
    """Point the global entry point symlink directly at the native binary."""

    def __init__(
        self,
        binary_path: Path,
        entry_name: str = DEFAULT_ENTRY_NAME,
        bin_dir_command: Sequence[str] = DEFAULT_BIN_DIR_COMMAND,
        enabled: bool = True,
        runner: Runner = subprocess.run,
        platform: str = sys.platform,
    ) -> None:
        self.binary_path = binary_path
        self.entry_name = entry_name
        self.bin_dir_command = tuple(bin_dir_command)
        self.enabled = enabled
        self._runner = runner
        self._platform = platform

    def optimize(self) -> OptimizeOutcome:
        """Replace the global entry symlink. Never raises."""
        if not self.enabled or self._platform == "win32":
            return OptimizeOutcome.DISABLED

        bin_dir = query_global_bin_dir(self.bin_dir_command, runner=self._runner)
        if bin_dir is None:
            return OptimizeOutcome.NO_GLOBAL_BIN

        entry = bin_dir / self.entry_name
        try:
            is_link = entry.is_symlink()
        except OSError:
            is_link = False
        if not is_link:
            LOGGER.debug(f"{entry} is not a symlink, leaving it untouched")
            return OptimizeOutcome.NOT_A_SYMLINK

        target = self.binary_path.resolve()
        try:
            if Path(os.readlink(entry)) == target:
                return OptimizeOutcome.ALREADY_OPTIMIZED
        except OSError as e:
            LOGGER.debug(f"Could not read symlink {entry}: {e}")

        try:
            self._replace_link(entry, target)
        except OSError as e:
            LOGGER.warning(f"Could not optimize symlink: {e}")
            LOGGER.warning("CLI will work via the Python launcher (slightly slower startup)")
            return OptimizeOutcome.FAILED

        LOGGER.info("Optimized: symlink points to native binary (zero overhead)")
        return OptimizeOutcome.OPTIMIZED

    @staticmethod
    def _replace_link(entry: Path, target: Path) -> None:
        # Rename a fresh link over the old one so the entry never disappears.
        tmp_link = entry.with_name(f".{entry.name}.{os.getpid()}.tmp")
        tmp_link.unlink(missing_ok=True)
        try:
            os.symlink(target, tmp_link)
            os.replace(tmp_link, entry)
        except OSError:
            try:
                tmp_link.unlink(missing_ok=True)
            except OSError:
                LOGGER.debug(f"Could not remove temporary link {tmp_link}")
            raise
