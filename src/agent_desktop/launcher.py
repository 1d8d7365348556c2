"""Launcher for the agent-desktop native binary.

Console-script entry point that runs on every invocation. It locates the
installed binary, makes sure it is executable and runs it with the caller's
arguments and standard streams, exiting with the binary's exit code. The
launcher has no network dependency.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional, Sequence

from agent_desktop.bootstrap.paths import BIN_DIR_ENV, AgentDesktopPaths
from agent_desktop.bootstrap.platform import (
    SUPPORTED_OS,
    PlatformKey,
    describe_supported,
    get_platform_key,
    resolve_target,
    unsupported_os_names,
)
from agent_desktop.bootstrap.validation import ToolStatus, make_executable, validate_binary
from agent_desktop.cli.exit_codes import EXIT_FAILURE, EXIT_SUCCESS
from agent_desktop.config.loader import ConfigError, load_config
from agent_desktop.config.models import DEFAULT_BASE_URL, DEFAULT_REPOSITORY
from agent_desktop.core.errors import (
    BinaryPermissionError,
    MissingBinaryError,
    UnsupportedPlatformError,
)
from agent_desktop.core.logging import configure_logging, get_logger

LOGGER = get_logger(__name__)

PROJECT_URL = f"{DEFAULT_BASE_URL}/{DEFAULT_REPOSITORY}"


class Launcher:
    """Run the installed native binary as a child process.

    Args:
        paths: Location of the installed binary.
        platform: Host platform; detected when omitted.
        supported_os: Operating systems with published binaries.
        popen: ``subprocess.Popen`` compatible factory.
    """

    def __init__(
        self,
        paths: Optional[AgentDesktopPaths] = None,
        platform: Optional[PlatformKey] = None,
        supported_os: Sequence[str] = SUPPORTED_OS,
        popen: Callable[..., Any] = subprocess.Popen,
    ) -> None:
        self.paths = paths or AgentDesktopPaths.default()
        self.platform = platform or get_platform_key()
        self.supported_os = supported_os
        self._popen = popen

    def resolve_binary(self) -> Path:
        """Locate the installed binary and make sure it can be executed.

        Raises:
            UnsupportedPlatformError: No release exists for this platform.
            MissingBinaryError: The binary was never installed.
            BinaryPermissionError: The executable bit cannot be set.
        """
        spec = resolve_target(self.platform.os, self.platform.arch, self.supported_os)
        binary_path = self.paths.binary_path(spec.asset_name)

        status = validate_binary(binary_path)
        if status is ToolStatus.MISSING:
            raise MissingBinaryError(binary_path)
        if status is ToolStatus.NOT_EXECUTABLE and self.platform.os != "win32":
            make_executable(binary_path)
        return binary_path

    def launch(self, argv: Sequence[str]) -> int:
        """Run the binary with ``argv`` and return its exit code.

        Returns:
            The child's exit code, 0 if it was terminated by a signal, or 1
            if the binary could not be located or started.
        """
        try:
            binary_path = self.resolve_binary()
        except UnsupportedPlatformError as e:
            self._report_unsupported(e)
            return EXIT_FAILURE
        except MissingBinaryError as e:
            self._report_missing(e.path)
            return EXIT_FAILURE
        except BinaryPermissionError as e:
            LOGGER.error(f"Error: {e}")
            LOGGER.error(f"Try running: chmod +x {e.path}")
            return EXIT_FAILURE

        try:
            process = self._popen([str(binary_path), *argv])
        except OSError as e:
            LOGGER.error(f"Error executing binary: {e.strerror or e}")
            return EXIT_FAILURE

        return self._wait(process)

    @staticmethod
    def _wait(process: Any) -> int:
        while True:
            try:
                returncode = process.wait()
                break
            except KeyboardInterrupt:
                # The child got the same SIGINT; let it decide how to exit.
                continue
        if returncode is None or returncode < 0:
            return EXIT_SUCCESS
        return int(returncode)

    def _report_unsupported(self, error: UnsupportedPlatformError) -> None:
        LOGGER.error(f"Error: Unsupported platform: {error.platform_key}")
        LOGGER.error(f"agent-desktop currently supports: {describe_supported(self.supported_os)}")
        upcoming = unsupported_os_names(self.supported_os)
        if upcoming:
            LOGGER.error(f"{' and '.join(upcoming)} support is coming in a future release.")
        LOGGER.error(f"See: {PROJECT_URL}")

    def _report_missing(self, binary_path: Path) -> None:
        LOGGER.error(f"Error: Native binary not found for {self.platform}")
        LOGGER.error(f"Expected: {binary_path}")
        LOGGER.error("")
        LOGGER.error("Try installing it:")
        LOGGER.error("  agent-desktop-install")
        LOGGER.error("")
        LOGGER.error("Or reinstall the package:")
        LOGGER.error("  pipx reinstall agent-desktop")
        LOGGER.error("  pip install --force-reinstall agent-desktop")
        LOGGER.error("")
        LOGGER.error("Or download directly from:")
        LOGGER.error(f"  {PROJECT_URL}/releases")


def paths_from_environment(environ: Optional[Mapping[str, str]] = None) -> AgentDesktopPaths:
    """Build launcher paths from the same configuration the installer reads.

    An unreadable config file falls back to AGENT_DESKTOP_BIN_DIR and the
    default location; the launcher has no flags to report it through.
    """
    env = os.environ if environ is None else environ
    try:
        config = load_config(environ=env)
    except (ConfigError, OSError) as e:
        LOGGER.warning(f"Ignoring config: {e}")
        bin_dir = env.get(BIN_DIR_ENV)
        return AgentDesktopPaths.from_bin_dir(Path(bin_dir).expanduser() if bin_dir else None)
    return AgentDesktopPaths.from_bin_dir(config.bin_dir)


def main(argv: Optional[List[str]] = None) -> int:
    """Console-script entry point. Forwards every argument to the binary."""
    configure_logging(default_level=logging.WARNING)
    args = sys.argv[1:] if argv is None else list(argv)
    launcher = Launcher(paths=paths_from_environment())
    return launcher.launch(args)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
