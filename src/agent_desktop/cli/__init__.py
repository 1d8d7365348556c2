"""agent-desktop installer CLI package.

This package provides the ``agent-desktop-install`` command.
"""

from __future__ import annotations

from typing import Iterable, Optional

from agent_desktop.cli.runner import CLIRunner, get_version
from agent_desktop.cli.arguments import build_parser
from agent_desktop.cli.exit_codes import (
    EXIT_SUCCESS,
    EXIT_FAILURE,
    EXIT_INVALID_USAGE,
)


def main(argv: Optional[Iterable[str]] = None) -> int:
    """CLI entrypoint.

    Returns an exit code suitable for use as a console script.

    Args:
        argv: Command-line arguments (defaults to sys.argv).

    Returns:
        Exit code.
    """
    runner = CLIRunner()
    return runner.run(argv)


__all__ = [
    "main",
    "build_parser",
    "get_version",
    "CLIRunner",
    "EXIT_SUCCESS",
    "EXIT_FAILURE",
    "EXIT_INVALID_USAGE",
]


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
