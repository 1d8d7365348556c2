"""Platform detection and release target resolution.

Maps the host operating system and CPU architecture onto the Rust target
triple used for release archives and onto the canonical file name of the
installed binary. The installer and the launcher both go through
:func:`resolve_target` so they always agree on the file name.
"""

from __future__ import annotations

import platform as _platform
import sys
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from agent_desktop.core.errors import UnsupportedPlatformError, UnsupportedReason

# Platform key -> Rust target triple of the release archive
TARGET_MAP: Dict[str, str] = {
    "darwin-arm64": "aarch64-apple-darwin",
    "darwin-x64": "x86_64-apple-darwin",
    "linux-x64": "x86_64-unknown-linux-gnu",
    "linux-arm64": "aarch64-unknown-linux-gnu",
    "win32-x64": "x86_64-pc-windows-msvc",
}

# Platform key -> canonical name of the installed binary
BINARY_NAME_MAP: Dict[str, str] = {
    "darwin-arm64": "agent-desktop-darwin-arm64",
    "darwin-x64": "agent-desktop-darwin-x64",
    "linux-x64": "agent-desktop-linux-x64",
    "linux-arm64": "agent-desktop-linux-arm64",
    "win32-x64": "agent-desktop-win32-x64.exe",
}

# Operating systems with published binaries. Linux and Windows keep their
# table entries but stay disabled until their releases ship.
SUPPORTED_OS: Sequence[str] = ("darwin",)

_OS_ALIASES = {
    "darwin": "darwin",
    "macos": "darwin",
    "linux": "linux",
    "win32": "win32",
    "windows": "win32",
    "cygwin": "win32",
}

_ARCH_ALIASES = {
    "arm64": "arm64",
    "aarch64": "arm64",
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
}


@dataclass(frozen=True)
class PlatformKey:
    """Host operating system and CPU architecture."""

    os: str
    arch: str

    @property
    def key(self) -> str:
        return f"{self.os}-{self.arch}"

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class TargetSpec:
    """Release target for a supported platform."""

    platform: PlatformKey
    target: str
    asset_name: str


def normalize_os(name: str) -> str:
    """Normalize an OS name to the identifiers used by the release tables."""
    lowered = name.lower()
    if lowered.startswith("linux"):
        return "linux"
    return _OS_ALIASES.get(lowered, lowered)


def normalize_arch(machine: str) -> str:
    """Normalize a machine name to ``arm64``/``x64``.

    Unknown values are returned lower-cased so that resolution fails with an
    unsupported-architecture error instead of guessing.
    """
    lowered = machine.lower()
    return _ARCH_ALIASES.get(lowered, lowered)


def get_platform_key(
    os_name: Optional[str] = None,
    machine: Optional[str] = None,
) -> PlatformKey:
    """Get the platform key of the running host.

    Args:
        os_name: Override for ``sys.platform``.
        machine: Override for ``platform.machine()``.

    Returns:
        Normalized PlatformKey.
    """
    return PlatformKey(
        os=normalize_os(os_name if os_name is not None else sys.platform),
        arch=normalize_arch(machine if machine is not None else _platform.machine()),
    )


def resolve_target(
    os_name: str,
    arch: str,
    supported_os: Sequence[str] = SUPPORTED_OS,
) -> TargetSpec:
    """Resolve a platform to its release target and binary name.

    The operating system is checked first so that users on a platform whose
    release has not shipped yet get a roadmap message instead of an
    architecture error.

    Args:
        os_name: Normalized OS identifier (``darwin``, ``linux``, ``win32``).
        arch: Normalized architecture identifier (``arm64``, ``x64``).
        supported_os: Operating systems currently enabled.

    Returns:
        TargetSpec for the platform.

    Raises:
        UnsupportedPlatformError: If the platform has no release target.
    """
    platform_key = PlatformKey(os_name, arch)

    if os_name not in supported_os:
        raise UnsupportedPlatformError(platform_key.key, UnsupportedReason.OS_NOT_SUPPORTED)

    target = TARGET_MAP.get(platform_key.key)
    asset_name = BINARY_NAME_MAP.get(platform_key.key)
    if not target or not asset_name:
        raise UnsupportedPlatformError(platform_key.key, UnsupportedReason.UNKNOWN_ARCHITECTURE)

    return TargetSpec(platform=platform_key, target=target, asset_name=asset_name)


def supported_platform_keys(supported_os: Sequence[str] = SUPPORTED_OS) -> List[str]:
    """List the platform keys that currently resolve."""
    return [
        key for key in TARGET_MAP
        if key.split("-", 1)[0] in supported_os and key in BINARY_NAME_MAP
    ]


OS_DISPLAY_NAMES: Dict[str, str] = {
    "darwin": "macOS",
    "linux": "Linux",
    "win32": "Windows",
}

ARCH_DISPLAY_NAMES: Dict[str, str] = {
    "arm64": "ARM64",
    "x64": "x64",
}


def describe_supported(supported_os: Sequence[str] = SUPPORTED_OS) -> str:
    """Human readable list of supported platforms, e.g. ``macOS (ARM64, x64)``."""
    parts = []
    for os_name in supported_os:
        archs = [
            ARCH_DISPLAY_NAMES.get(key.split("-", 1)[1], key.split("-", 1)[1])
            for key in supported_platform_keys((os_name,))
        ]
        parts.append(f"{OS_DISPLAY_NAMES.get(os_name, os_name)} ({', '.join(archs)})")
    return ", ".join(parts)


def unsupported_os_names(supported_os: Sequence[str] = SUPPORTED_OS) -> List[str]:
    """Display names of operating systems present in the tables but disabled."""
    names = []
    for key in TARGET_MAP:
        os_name = key.split("-", 1)[0]
        display = OS_DISPLAY_NAMES.get(os_name, os_name)
        if os_name not in supported_os and display not in names:
            names.append(display)
    return names
