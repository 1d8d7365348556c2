"""Native binary installer.

Runs once after the package is installed and walks through these steps:

    skip flag -> platform resolution -> local override -> already installed?
    -> download archive -> download checksums (optional) -> verify (optional)
    -> extract -> relocate -> set permissions -> clean up -> optimize symlink

Failures never abort the surrounding package installation. They are logged
together with manual recovery instructions and reported as an outcome, with
one exception: a checksum mismatch purges the downloaded artifacts and stops
before anything is installed.
"""

from __future__ import annotations

import os
import shutil
import tarfile
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence

from agent_desktop.bootstrap.checksum import (
    file_sha256,
    find_expected_digest,
    read_manifest,
    verify_checksum,
)
from agent_desktop.bootstrap.download import (
    Downloader,
    download_with_retry,
    temporary_path,
)
from agent_desktop.bootstrap.paths import AgentDesktopPaths
from agent_desktop.bootstrap.platform import (
    SUPPORTED_OS,
    PlatformKey,
    TargetSpec,
    describe_supported,
    get_platform_key,
    resolve_target,
    unsupported_os_names,
)
from agent_desktop.bootstrap.symlink import SymlinkOptimizer
from agent_desktop.bootstrap.validation import make_executable
from agent_desktop.bootstrap.versions import get_package_version
from agent_desktop.config.models import AgentDesktopConfig, ReleaseConfig
from agent_desktop.core.errors import (
    AgentDesktopError,
    BinaryPermissionError,
    ChecksumMismatchError,
    DownloadError,
    ExtractionError,
    UnsupportedPlatformError,
    UnsupportedReason,
)
from agent_desktop.core.logging import get_logger

LOGGER = get_logger(__name__)

# Name of the binary inside release archives
ARCHIVE_BINARY_NAME = "agent-desktop"
MANIFEST_NAME = "checksums.txt"

OptimizerFactory = Callable[[Path], SymlinkOptimizer]


class InstallOutcome(str, Enum):
    """Terminal state of an installer run."""

    SKIPPED = "skipped"
    UNSUPPORTED_PLATFORM = "unsupported_platform"
    OVERRIDE = "override"
    ALREADY_INSTALLED = "already_installed"
    INSTALLED = "installed"
    CHECKSUM_MISMATCH = "checksum_mismatch"
    FAILED = "failed"


@dataclass(frozen=True)
class InstallResult:
    """Outcome of an installer run."""

    outcome: InstallOutcome
    binary_path: Optional[Path] = None
    message: str = ""

    @property
    def binary_installed(self) -> bool:
        return self.outcome in (
            InstallOutcome.OVERRIDE,
            InstallOutcome.ALREADY_INSTALLED,
            InstallOutcome.INSTALLED,
        )


@dataclass(frozen=True)
class ReleaseAsset:
    """Release archive and checksum manifest for one version and target."""

    version: str
    target: str
    archive_name: str
    archive_url: str
    manifest_url: str
    archive_path: Path
    manifest_path: Path

    @classmethod
    def for_target(
        cls,
        release: ReleaseConfig,
        version: str,
        target: str,
        staging_dir: Path,
    ) -> "ReleaseAsset":
        """Build download locations for a release.

        Example: version ``2.3.0``, target ``aarch64-apple-darwin`` gives
        ``.../releases/download/v2.3.0/agent-desktop-v2.3.0-aarch64-apple-darwin.tar.gz``.
        """
        archive_name = f"agent-desktop-v{version}-{target}.tar.gz"
        download_base = f"{release.project_url}/releases/download/v{version}"
        return cls(
            version=version,
            target=target,
            archive_name=archive_name,
            archive_url=f"{download_base}/{archive_name}",
            manifest_url=f"{download_base}/{MANIFEST_NAME}",
            archive_path=staging_dir / archive_name,
            manifest_path=staging_dir / MANIFEST_NAME,
        )


def extract_binary(archive_path: Path, dest_dir: Path, member_name: str) -> Path:
    """Extract the binary entry of a release archive into ``dest_dir``.

    Only a regular file whose base name is ``member_name`` is extracted, at any
    depth inside the archive. Every member path is checked against path
    traversal before anything is written.

    Args:
        archive_path: Path to the ``.tar.gz`` archive.
        dest_dir: Staging directory.
        member_name: Base name of the binary inside the archive.

    Returns:
        Path of the extracted file (``dest_dir / member_name``).

    Raises:
        ExtractionError: If the archive is unreadable, unsafe or lacks the binary.
    """
    dest_root = dest_dir.resolve()
    extracted = dest_dir / member_name
    tmp_path = temporary_path(extracted)

    try:
        with tarfile.open(archive_path, "r:gz") as tar:
            members = tar.getmembers()
            for tar_member in members:
                member_path = (dest_root / tar_member.name).resolve()
                if not member_path.is_relative_to(dest_root):
                    raise ExtractionError(f"Path traversal detected: {tar_member.name}")

            binary_member = next(
                (m for m in members if m.isfile() and Path(m.name).name == member_name),
                None,
            )
            if binary_member is None:
                raise ExtractionError(
                    f"{member_name} not found in archive {archive_path.name}"
                )

            source = tar.extractfile(binary_member)
            if source is None:
                raise ExtractionError(f"Cannot read {binary_member.name} from archive")
            with source, open(tmp_path, "wb") as f:
                shutil.copyfileobj(source, f)
    except (tarfile.TarError, EOFError) as e:
        tmp_path.unlink(missing_ok=True)
        raise ExtractionError(f"Invalid archive {archive_path.name}: {e}") from e
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise

    os.replace(tmp_path, extracted)
    return extracted


def relocate_binary(extracted: Path, binary_path: Path) -> Path:
    """Rename the extracted binary onto its canonical per-platform name."""
    if extracted != binary_path:
        os.replace(extracted, binary_path)
    return binary_path


def _remove_files(paths: Iterable[Path]) -> None:
    for path in paths:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            LOGGER.debug(f"Could not remove {path}: {e}")


class Installer:
    """Download, verify and install the native binary.

    Args:
        config: Loaded configuration (environment overrides already applied).
        platform: Host platform; detected when omitted.
        paths: Install locations; derived from config when omitted.
        downloader: Downloader used for every fetch.
        optimizer_factory: Builds the symlink optimizer for the binary path.
        sleep: Sleep function used for retry backoff.
        version: Release version; defaults to config or package version.
        supported_os: Operating systems with published binaries.
    """

    def __init__(
        self,
        config: AgentDesktopConfig,
        platform: Optional[PlatformKey] = None,
        paths: Optional[AgentDesktopPaths] = None,
        downloader: Optional[Downloader] = None,
        optimizer_factory: Optional[OptimizerFactory] = None,
        sleep: Callable[[float], None] = time.sleep,
        version: Optional[str] = None,
        supported_os: Sequence[str] = SUPPORTED_OS,
    ) -> None:
        self.config = config
        self.platform = platform or get_platform_key()
        self.paths = paths or AgentDesktopPaths.from_bin_dir(config.bin_dir)
        self.version = version or config.release.version or get_package_version()
        self.downloader = downloader or Downloader(
            timeout=config.download.timeout,
            max_redirects=config.download.max_redirects,
            user_agent=f"agent-desktop/{self.version}",
            proxy=config.download.proxy,
        )
        self._optimizer_factory = optimizer_factory or self._default_optimizer
        self._sleep = sleep
        self._supported_os = supported_os

    def _default_optimizer(self, binary_path: Path) -> SymlinkOptimizer:
        symlink = self.config.symlink
        return SymlinkOptimizer(
            binary_path,
            entry_name=symlink.entry_name,
            bin_dir_command=symlink.bin_dir_command,
            enabled=symlink.enabled,
        )

    @property
    def _is_windows(self) -> bool:
        return self.platform.os == "win32"

    def run(self) -> InstallResult:
        """Run the install pipeline. Never raises for expected failures."""
        if self.config.skip_download:
            LOGGER.info("Skipping binary download (AGENT_DESKTOP_SKIP_DOWNLOAD is set)")
            return InstallResult(InstallOutcome.SKIPPED, message="download skipped")

        try:
            spec = resolve_target(self.platform.os, self.platform.arch, self._supported_os)
        except UnsupportedPlatformError as e:
            self._report_unsupported(e)
            return InstallResult(InstallOutcome.UNSUPPORTED_PLATFORM, message=str(e))

        binary_path = self.paths.binary_path(spec.asset_name)

        if self.config.binary_path is not None:
            result = self._install_override(self.config.binary_path, binary_path)
            if result is not None:
                return result

        if binary_path.is_file():
            self._set_permissions(binary_path)
            LOGGER.info(f"Native binary ready: {spec.asset_name}")
            self._optimize(binary_path)
            return InstallResult(InstallOutcome.ALREADY_INSTALLED, binary_path)

        return self._download_and_install(spec, binary_path)

    def _report_unsupported(self, error: UnsupportedPlatformError) -> None:
        project_url = self.config.release.project_url
        if error.reason is UnsupportedReason.OS_NOT_SUPPORTED:
            LOGGER.warning(f"agent-desktop currently supports {describe_supported(self._supported_os)} only.")
            upcoming = unsupported_os_names(self._supported_os)
            if upcoming:
                LOGGER.warning(f"{' and '.join(upcoming)} support is coming in a future release.")
        else:
            LOGGER.warning(f"Unsupported architecture: {error.platform_key}")
            LOGGER.warning(f"Supported platforms: {describe_supported(self._supported_os)}")
        LOGGER.warning(f"See: {project_url}")

    def _install_override(self, source: Path, binary_path: Path) -> Optional[InstallResult]:
        """Install a pre-built binary verbatim. Returns None to fall through."""
        if not source.is_file():
            LOGGER.warning(f"AGENT_DESKTOP_BINARY_PATH not found: {source}")
            return None

        tmp_path = temporary_path(binary_path)
        try:
            self.paths.ensure_directories()
            shutil.copyfile(source, tmp_path)
            os.replace(tmp_path, binary_path)
            if not self._is_windows:
                make_executable(binary_path)
        except (OSError, BinaryPermissionError) as e:
            _remove_files([tmp_path])
            LOGGER.warning(f"Failed to copy from AGENT_DESKTOP_BINARY_PATH: {e}")
            return None

        LOGGER.info(f"Using binary from AGENT_DESKTOP_BINARY_PATH: {source}")
        self._optimize(binary_path)
        return InstallResult(InstallOutcome.OVERRIDE, binary_path)

    def _download_and_install(self, spec: TargetSpec, binary_path: Path) -> InstallResult:
        asset = ReleaseAsset.for_target(
            self.config.release, self.version, spec.target, self.paths.staging_dir
        )
        extracted = self.paths.staging_path(
            ARCHIVE_BINARY_NAME + (".exe" if self._is_windows else "")
        )

        LOGGER.info(f"Downloading native binary for {spec.platform}...")
        try:
            self.paths.ensure_directories()
            self._download(asset.archive_url, asset.archive_path)
            LOGGER.info(f"Downloaded: {asset.archive_name}")

            self._verify(asset)

            extracted = extract_binary(asset.archive_path, self.paths.staging_dir, extracted.name)
            relocate_binary(extracted, binary_path)
            self._set_permissions(binary_path)
            _remove_files([asset.archive_path])
        except ChecksumMismatchError as e:
            LOGGER.debug(str(e))
            _remove_files([asset.archive_path, asset.manifest_path])
            LOGGER.warning("WARNING: Checksum verification failed. Binary may be corrupted.")
            LOGGER.warning("Try reinstalling: pip install --force-reinstall agent-desktop")
            return InstallResult(InstallOutcome.CHECKSUM_MISMATCH, message=str(e))
        except (AgentDesktopError, OSError, ValueError) as e:
            self._report_failure(e, asset, binary_path)
            _remove_files([
                asset.archive_path,
                temporary_path(asset.archive_path),
                asset.manifest_path,
                temporary_path(asset.manifest_path),
                extracted,
                temporary_path(extracted),
            ])
            return InstallResult(InstallOutcome.FAILED, message=str(e))

        LOGGER.info(f"Installed native binary: {spec.asset_name}")
        self._optimize(binary_path)
        return InstallResult(InstallOutcome.INSTALLED, binary_path)

    def _download(self, url: str, dest: Path) -> Path:
        return download_with_retry(
            self.downloader,
            url,
            dest,
            retries=self.config.download.retries,
            sleep=self._sleep,
        )

    def _verify(self, asset: ReleaseAsset) -> None:
        """Check the archive against the release manifest.

        Verification is skipped with a warning when the manifest cannot be
        fetched or does not list the archive.

        Raises:
            ChecksumMismatchError: If the manifest lists a different digest.
        """
        try:
            self._download(asset.manifest_url, asset.manifest_path)
            expected = find_expected_digest(read_manifest(asset.manifest_path), asset.archive_name)
        except (DownloadError, OSError, UnicodeDecodeError, ValueError) as e:
            LOGGER.warning(f"Could not verify checksum: {e}")
            _remove_files([asset.manifest_path])
            return

        if expected is None:
            LOGGER.warning(
                f"No checksum listed for {asset.archive_name}; integrity not verified"
            )
            _remove_files([asset.manifest_path])
            return

        if not verify_checksum(asset.archive_path, expected):
            raise ChecksumMismatchError(asset.archive_path, expected, file_sha256(asset.archive_path))

        LOGGER.info("Checksum verified")
        _remove_files([asset.manifest_path])

    def _set_permissions(self, binary_path: Path) -> None:
        if self._is_windows:
            return
        try:
            make_executable(binary_path)
        except BinaryPermissionError as e:
            LOGGER.warning(f"{e}. Run: chmod +x {binary_path}")

    def _optimize(self, binary_path: Path) -> None:
        self._optimizer_factory(binary_path).optimize()

    def _report_failure(self, error: Exception, asset: ReleaseAsset, binary_path: Path) -> None:
        LOGGER.error(f"Could not download native binary: {error}")
        LOGGER.error("")
        LOGGER.error("You can download manually from:")
        LOGGER.error(f"  {asset.archive_url}")
        LOGGER.error("")
        LOGGER.error(f"Then place the binary at: {binary_path}")
