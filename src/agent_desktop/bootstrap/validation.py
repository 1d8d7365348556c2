"""Binary validation for agent-desktop.

Checks that the native binary is present and executable and, where possible,
repairs a missing executable bit.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path

from agent_desktop.core.errors import BinaryPermissionError
from agent_desktop.core.logging import get_logger

LOGGER = get_logger(__name__)

EXECUTABLE_MODE = 0o755


class ToolStatus(str, Enum):
    """Status of a tool binary."""

    PRESENT = "present"
    MISSING = "missing"
    NOT_EXECUTABLE = "not_executable"


def validate_binary(path: Path) -> ToolStatus:
    """Validate a single binary file.

    Args:
        path: Path to the binary file.

    Returns:
        ToolStatus indicating whether the binary is present and executable.
    """
    if not path.is_file():
        return ToolStatus.MISSING

    # Check if executable
    if not os.access(path, os.X_OK):
        return ToolStatus.NOT_EXECUTABLE

    return ToolStatus.PRESENT


def make_executable(path: Path) -> None:
    """Set ``0o755`` on the binary.

    Raises:
        BinaryPermissionError: If the mode cannot be changed.
    """
    try:
        path.chmod(EXECUTABLE_MODE)
    except OSError as e:
        raise BinaryPermissionError(
            f"Cannot make binary executable: {e.strerror or e}",
            path=path,
        ) from e
    LOGGER.debug(f"Set mode {oct(EXECUTABLE_MODE)} on {path}")
