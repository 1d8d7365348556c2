"""Exception hierarchy for agent-desktop.

Install-time errors are caught by the installer and turned into logged,
non-fatal outcomes. Launch-time errors are reported on stderr and turned into
a non-zero exit code.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional


class AgentDesktopError(Exception):
    """Base class for all agent-desktop errors."""


class UnsupportedReason(str, Enum):
    """Why a platform could not be resolved to a release target."""

    OS_NOT_SUPPORTED = "os_not_supported"
    UNKNOWN_ARCHITECTURE = "unknown_architecture"


class UnsupportedPlatformError(AgentDesktopError):
    """No release target exists for the host platform."""

    def __init__(self, platform_key: str, reason: UnsupportedReason) -> None:
        self.platform_key = platform_key
        self.reason = reason
        if reason is UnsupportedReason.OS_NOT_SUPPORTED:
            message = f"Operating system not yet supported: {platform_key}"
        else:
            message = f"Unsupported architecture: {platform_key}"
        super().__init__(message)


class MissingBinaryError(AgentDesktopError):
    """Platform is supported but the native binary is not installed."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Native binary not found: {path}")


class BinaryPermissionError(AgentDesktopError):
    """The executable bit could not be set on the native binary."""

    def __init__(self, message: str, path: Optional[Path] = None) -> None:
        self.path = path
        super().__init__(message)


class DownloadError(AgentDesktopError):
    """Base class for download failures."""

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        self.url = url
        super().__init__(message)


class DownloadTimeoutError(DownloadError):
    """The download did not complete within the allotted time."""


class HttpStatusError(DownloadError):
    """The server answered with a non-200 terminal status."""

    def __init__(self, status: int, url: str) -> None:
        self.status = status
        super().__init__(f"HTTP {status} downloading {url}", url=url)


class NetworkError(DownloadError):
    """Connection-level failure (DNS, refused connection, reset, ...)."""


class TooManyRedirectsError(DownloadError):
    """The redirect chain exceeded the configured hop limit."""


class ChecksumMismatchError(AgentDesktopError):
    """Downloaded content does not match the published digest."""

    def __init__(self, path: Path, expected: str, actual: str) -> None:
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Checksum mismatch for {path.name}: expected {expected}, got {actual}"
        )


class ExtractionError(AgentDesktopError):
    """The release archive is malformed or does not contain the binary."""
