"""
Bootstrap module for agent-desktop native binary management.

This module handles:
- Platform detection and release target resolution
- Binary directory management
- Download, checksum verification and installation of the native binary
- Global entry point symlink optimization
"""

from agent_desktop.bootstrap.platform import (
    PlatformKey,
    TargetSpec,
    get_platform_key,
    resolve_target,
)
from agent_desktop.bootstrap.paths import AgentDesktopPaths, get_agent_desktop_home
from agent_desktop.bootstrap.validation import ToolStatus, validate_binary

__all__ = [
    "PlatformKey",
    "TargetSpec",
    "get_platform_key",
    "resolve_target",
    "AgentDesktopPaths",
    "get_agent_desktop_home",
    "ToolStatus",
    "validate_binary",
]
