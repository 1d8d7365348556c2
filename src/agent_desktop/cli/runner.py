"""Runner for the ``agent-desktop-install`` command."""

from __future__ import annotations

import sys
from typing import Iterable, Mapping, Optional

from agent_desktop.bootstrap.installer import Installer, InstallResult
from agent_desktop.bootstrap.versions import get_package_version
from agent_desktop.cli.arguments import build_parser
from agent_desktop.cli.exit_codes import EXIT_INVALID_USAGE, EXIT_SUCCESS
from agent_desktop.config.loader import ConfigError, load_config
from agent_desktop.core.logging import configure_logging, get_logger

LOGGER = get_logger(__name__)


def get_version() -> str:
    return get_package_version()


class CLIRunner:
    """Parse arguments, load configuration and run the installer."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None) -> None:
        self._environ = environ
        self.last_result: Optional[InstallResult] = None

    def run(self, argv: Optional[Iterable[str]] = None) -> int:
        parser = build_parser()
        args = parser.parse_args(list(argv) if argv is not None else None)

        if args.version:
            sys.stdout.write(f"{get_version()}\n")
            return EXIT_SUCCESS

        configure_logging(debug=args.debug, verbose=args.verbose, quiet=args.quiet)

        try:
            config = load_config(config_path=args.config, environ=self._environ)
        except ConfigError as e:
            LOGGER.error(str(e))
            return EXIT_INVALID_USAGE

        try:
            self.last_result = Installer(config).run()
        except Exception as e:
            # Installation problems must never fail the package install.
            LOGGER.error(f"Postinstall error: {e}")
            LOGGER.debug("Postinstall traceback", exc_info=True)
            return EXIT_SUCCESS

        LOGGER.debug(f"Install outcome: {self.last_result.outcome.value}")
        return EXIT_SUCCESS
