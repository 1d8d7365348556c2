"""Version of the native binary to install.

The binary is released in lockstep with this package, so its version is the
installed distribution's version. ``AGENT_DESKTOP_VERSION`` (resolved by the
config loader) can pin a different release.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

DISTRIBUTION_NAME = "agent-desktop"


def get_package_version() -> str:
    """Get the installed agent-desktop version.

    Returns:
        Version string, treated as opaque by the install pipeline.
    """
    try:
        return version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        # Fallback for source checkouts that have not built metadata.
        from agent_desktop import __version__

        return __version__
