"""Argument parser for the ``agent-desktop-install`` command."""

from __future__ import annotations

import argparse
from pathlib import Path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agent-desktop-install",
        description=(
            "Download, verify and install the agent-desktop native binary "
            "for this platform."
        ),
        epilog=(
            "Environment: AGENT_DESKTOP_SKIP_DOWNLOAD=1 skips the download, "
            "AGENT_DESKTOP_BINARY_PATH installs a local binary instead, "
            "AGENT_DESKTOP_BIN_DIR changes the install directory."
        ),
    )

    parser.add_argument(
        "--version",
        action="store_true",
        help="Show agent-desktop version and exit.",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        type=Path,
        default=None,
        help="Path to a config file (default: ~/.agent-desktop/config.yml).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose (info-level) logging.",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Reduce logging output to errors only.",
    )

    return parser
