"""Unit tests for agent_desktop.bootstrap.installer."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Dict, Optional
from unittest.mock import MagicMock

import pytest

from agent_desktop.bootstrap.download import Downloader
from agent_desktop.bootstrap.installer import (
    InstallOutcome,
    Installer,
    ReleaseAsset,
    extract_binary,
)
from agent_desktop.bootstrap.paths import AgentDesktopPaths
from agent_desktop.bootstrap.platform import PlatformKey
from agent_desktop.config.models import AgentDesktopConfig, ReleaseConfig
from agent_desktop.core.errors import ExtractionError
from tests.conftest import FakeOpener, FakeResponse, make_tarball, sha256_hex

VERSION = "2.3.0"
ASSET_NAME = "agent-desktop-darwin-arm64"
ARCHIVE_NAME = "agent-desktop-v2.3.0-aarch64-apple-darwin.tar.gz"
DOWNLOAD_BASE = "https://github.com/lahfir/agent-desktop/releases/download/v2.3.0"
ARCHIVE_URL = f"{DOWNLOAD_BASE}/{ARCHIVE_NAME}"
MANIFEST_URL = f"{DOWNLOAD_BASE}/checksums.txt"

NATIVE = b"\x7fELF native agent-desktop binary"


def _routes(archive: bytes, manifest: Optional[str]) -> Dict[str, object]:
    routes: Dict[str, object] = {ARCHIVE_URL: lambda: FakeResponse(archive, chunk_size=1024)}
    if manifest is not None:
        routes[MANIFEST_URL] = lambda: FakeResponse(manifest.encode(), chunk_size=1024)
    return routes


def _manifest_for(archive: bytes) -> str:
    return (
        "0000000000000000000000000000000000000000000000000000000000000000  "
        "agent-desktop-v2.3.0-x86_64-apple-darwin.tar.gz\n"
        f"{sha256_hex(archive)}  {ARCHIVE_NAME}\n"
    )


class Harness:
    """Installer wired to fakes."""

    def __init__(
        self,
        bin_dir: Path,
        routes: Optional[Dict[str, object]] = None,
        config: Optional[AgentDesktopConfig] = None,
        platform: PlatformKey = PlatformKey("darwin", "arm64"),
    ) -> None:
        self.opener = FakeOpener(routes or {})
        self.optimizer = MagicMock()
        self.sleep = MagicMock()
        self.bin_dir = bin_dir
        self.installer = Installer(
            config or AgentDesktopConfig(),
            platform=platform,
            paths=AgentDesktopPaths(bin_dir),
            downloader=Downloader(opener=self.opener),
            optimizer_factory=lambda path: self.optimizer,
            sleep=self.sleep,
            version=VERSION,
        )

    @property
    def binary(self) -> Path:
        return self.bin_dir / ASSET_NAME

    def contents(self):
        return sorted(p.name for p in self.bin_dir.iterdir()) if self.bin_dir.exists() else []


class TestReleaseAsset:
    """Tests for ReleaseAsset.for_target."""

    def test_download_locations(self, tmp_path: Path) -> None:
        asset = ReleaseAsset.for_target(ReleaseConfig(), VERSION, "aarch64-apple-darwin", tmp_path)

        assert asset.archive_name == ARCHIVE_NAME
        assert asset.archive_url == ARCHIVE_URL
        assert asset.archive_url.endswith("agent-desktop-v2.3.0-aarch64-apple-darwin.tar.gz")
        assert asset.manifest_url == MANIFEST_URL
        assert asset.archive_path == tmp_path / ARCHIVE_NAME
        assert asset.manifest_path == tmp_path / "checksums.txt"

    def test_custom_repository(self, tmp_path: Path) -> None:
        release = ReleaseConfig(repository="acme/fork", base_url="https://github.example.com/")
        asset = ReleaseAsset.for_target(release, "1.0.0", "x86_64-apple-darwin", tmp_path)

        assert asset.archive_url == (
            "https://github.example.com/acme/fork/releases/download/v1.0.0/"
            "agent-desktop-v1.0.0-x86_64-apple-darwin.tar.gz"
        )


class TestExtractBinary:
    """Tests for extract_binary."""

    def test_extracts_top_level_binary(self, tmp_path: Path) -> None:
        archive = tmp_path / "a.tar.gz"
        archive.write_bytes(make_tarball({"agent-desktop": NATIVE, "README.md": b"docs"}))

        extracted = extract_binary(archive, tmp_path, "agent-desktop")

        assert extracted == tmp_path / "agent-desktop"
        assert extracted.read_bytes() == NATIVE
        assert not (tmp_path / "README.md").exists()

    def test_extracts_nested_binary(self, tmp_path: Path) -> None:
        archive = tmp_path / "a.tar.gz"
        archive.write_bytes(make_tarball({"agent-desktop-v2.3.0/agent-desktop": NATIVE}))

        extracted = extract_binary(archive, tmp_path, "agent-desktop")

        assert extracted.read_bytes() == NATIVE
        assert not (tmp_path / "agent-desktop-v2.3.0").exists()

    def test_missing_binary(self, tmp_path: Path) -> None:
        archive = tmp_path / "a.tar.gz"
        archive.write_bytes(make_tarball({"other": b"x"}))

        with pytest.raises(ExtractionError, match="not found"):
            extract_binary(archive, tmp_path, "agent-desktop")

    def test_path_traversal(self, tmp_path: Path) -> None:
        staging = tmp_path / "staging"
        staging.mkdir()
        archive = tmp_path / "a.tar.gz"
        archive.write_bytes(make_tarball({"../evil": b"x", "agent-desktop": NATIVE}))

        with pytest.raises(ExtractionError, match="Path traversal"):
            extract_binary(archive, staging, "agent-desktop")

        assert not (tmp_path / "evil").exists()
        assert list(staging.iterdir()) == []

    def test_corrupt_archive(self, tmp_path: Path) -> None:
        archive = tmp_path / "a.tar.gz"
        archive.write_bytes(b"this is not a tarball")

        with pytest.raises(ExtractionError, match="Invalid archive"):
            extract_binary(archive, tmp_path, "agent-desktop")


class TestInstallerDownload:
    """Tests for the download path of Installer.run."""

    def test_installs_verified_binary(self, bin_dir: Path) -> None:
        archive = make_tarball({"agent-desktop": NATIVE})
        harness = Harness(bin_dir, _routes(archive, _manifest_for(archive)))

        result = harness.installer.run()

        assert result.outcome is InstallOutcome.INSTALLED
        assert result.binary_path == harness.binary
        assert result.binary_installed
        assert harness.binary.read_bytes() == NATIVE
        assert harness.contents() == [ASSET_NAME]
        assert harness.opener.requests == [ARCHIVE_URL, MANIFEST_URL]
        harness.optimizer.optimize.assert_called_once_with()
        harness.sleep.assert_not_called()

    def test_verification_is_reported_once(self, bin_dir: Path, caplog) -> None:
        archive = make_tarball({"agent-desktop": NATIVE})
        harness = Harness(bin_dir, _routes(archive, _manifest_for(archive)))

        with caplog.at_level(logging.DEBUG, logger="agent_desktop"):
            harness.installer.run()

        verified = [r for r in caplog.records if "Checksum verified" in r.getMessage()]
        assert len(verified) == 1
        assert not (bin_dir / "checksums.txt").exists()

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_binary_is_executable(self, bin_dir: Path) -> None:
        archive = make_tarball({"agent-desktop": NATIVE})
        harness = Harness(bin_dir, _routes(archive, _manifest_for(archive)))

        harness.installer.run()

        assert harness.binary.stat().st_mode & 0o777 == 0o755
        assert os.access(harness.binary, os.X_OK)

    def test_creates_missing_bin_dir(self, tmp_path: Path) -> None:
        archive = make_tarball({"agent-desktop": NATIVE})
        harness = Harness(tmp_path / "not" / "yet" / "there", _routes(archive, _manifest_for(archive)))

        assert harness.installer.run().outcome is InstallOutcome.INSTALLED
        assert harness.binary.exists()

    def test_missing_manifest_skips_verification(self, bin_dir: Path, caplog) -> None:
        archive = make_tarball({"agent-desktop": NATIVE})
        harness = Harness(bin_dir, _routes(archive, manifest=None))

        with caplog.at_level(logging.WARNING, logger="agent_desktop"):
            result = harness.installer.run()

        assert result.outcome is InstallOutcome.INSTALLED
        assert harness.contents() == [ASSET_NAME]
        assert "Could not verify checksum" in caplog.text

    def test_manifest_without_entry_skips_verification(self, bin_dir: Path, caplog) -> None:
        archive = make_tarball({"agent-desktop": NATIVE})
        manifest = f"{sha256_hex(b'other')}  {ARCHIVE_NAME}.sig\n"
        harness = Harness(bin_dir, _routes(archive, manifest))

        with caplog.at_level(logging.WARNING, logger="agent_desktop"):
            result = harness.installer.run()

        assert result.outcome is InstallOutcome.INSTALLED
        assert harness.contents() == [ASSET_NAME]
        assert "integrity not verified" in caplog.text

    def test_checksum_mismatch_installs_nothing(self, bin_dir: Path, caplog) -> None:
        archive = make_tarball({"agent-desktop": NATIVE})
        tampered_manifest = f"{sha256_hex(b'something else')}  {ARCHIVE_NAME}\n"
        harness = Harness(bin_dir, _routes(archive, tampered_manifest))

        with caplog.at_level(logging.WARNING, logger="agent_desktop"):
            result = harness.installer.run()

        assert result.outcome is InstallOutcome.CHECKSUM_MISMATCH
        assert not result.binary_installed
        assert harness.contents() == []
        assert "Checksum verification failed" in caplog.text
        harness.optimizer.optimize.assert_not_called()

    def test_archive_download_failure(self, bin_dir: Path, caplog) -> None:
        harness = Harness(bin_dir, routes={})

        with caplog.at_level(logging.INFO, logger="agent_desktop"):
            result = harness.installer.run()

        assert result.outcome is InstallOutcome.FAILED
        assert "HTTP 404" in result.message
        assert harness.opener.requests == [ARCHIVE_URL] * 3
        assert [c.args[0] for c in harness.sleep.call_args_list] == [2, 4]
        assert harness.contents() == []
        assert ARCHIVE_URL in caplog.text
        assert f"Then place the binary at: {harness.binary}" in caplog.text
        harness.optimizer.optimize.assert_not_called()

    def test_interrupted_download_leaves_nothing(self, bin_dir: Path) -> None:
        routes = {ARCHIVE_URL: lambda: FakeResponse(b"0123456789" * 10, fail_after=3)}
        harness = Harness(bin_dir, routes)

        result = harness.installer.run()

        assert result.outcome is InstallOutcome.FAILED
        assert harness.contents() == []

    def test_archive_without_binary(self, bin_dir: Path) -> None:
        archive = make_tarball({"README.md": b"nothing to see"})
        harness = Harness(bin_dir, _routes(archive, _manifest_for(archive)))

        result = harness.installer.run()

        assert result.outcome is InstallOutcome.FAILED
        assert harness.contents() == []

    def test_relocates_nested_binary(self, bin_dir: Path) -> None:
        archive = make_tarball({"dist/agent-desktop": NATIVE})
        harness = Harness(bin_dir, _routes(archive, _manifest_for(archive)))

        assert harness.installer.run().outcome is InstallOutcome.INSTALLED
        assert harness.contents() == [ASSET_NAME]


class TestInstallerShortCircuits:
    """Tests for the early exits of Installer.run."""

    def test_already_installed_is_idempotent(self, bin_dir: Path) -> None:
        existing = bin_dir / ASSET_NAME
        existing.write_bytes(b"already here")
        existing.chmod(0o600)
        harness = Harness(bin_dir, routes={})

        result = harness.installer.run()

        assert result.outcome is InstallOutcome.ALREADY_INSTALLED
        assert harness.opener.requests == []
        assert existing.read_bytes() == b"already here"
        if sys.platform != "win32":
            assert existing.stat().st_mode & 0o777 == 0o755
        harness.optimizer.optimize.assert_called_once_with()

    def test_second_run_does_not_download(self, bin_dir: Path) -> None:
        archive = make_tarball({"agent-desktop": NATIVE})
        harness = Harness(bin_dir, _routes(archive, _manifest_for(archive)))

        assert harness.installer.run().outcome is InstallOutcome.INSTALLED
        requests_after_first_run = list(harness.opener.requests)

        assert harness.installer.run().outcome is InstallOutcome.ALREADY_INSTALLED
        assert harness.opener.requests == requests_after_first_run
        assert harness.binary.read_bytes() == NATIVE

    def test_skip_download(self, bin_dir: Path) -> None:
        harness = Harness(bin_dir, routes={}, config=AgentDesktopConfig(skip_download=True))

        result = harness.installer.run()

        assert result.outcome is InstallOutcome.SKIPPED
        assert harness.opener.requests == []
        assert harness.contents() == []
        harness.optimizer.optimize.assert_not_called()

    def test_unsupported_os(self, bin_dir: Path, caplog) -> None:
        harness = Harness(bin_dir, routes={}, platform=PlatformKey("linux", "x64"))

        with caplog.at_level(logging.INFO, logger="agent_desktop"):
            result = harness.installer.run()

        assert result.outcome is InstallOutcome.UNSUPPORTED_PLATFORM
        assert harness.opener.requests == []
        assert "currently supports macOS (ARM64, x64) only" in caplog.text
        assert "Linux and Windows support is coming" in caplog.text

    def test_unsupported_architecture(self, bin_dir: Path, caplog) -> None:
        harness = Harness(bin_dir, routes={}, platform=PlatformKey("darwin", "ia32"))

        with caplog.at_level(logging.INFO, logger="agent_desktop"):
            result = harness.installer.run()

        assert result.outcome is InstallOutcome.UNSUPPORTED_PLATFORM
        assert "Unsupported architecture: darwin-ia32" in caplog.text

    def test_override_binary(self, bin_dir: Path, tmp_path: Path) -> None:
        prebuilt = tmp_path / "prebuilt"
        prebuilt.write_bytes(b"locally built")
        harness = Harness(bin_dir, routes={}, config=AgentDesktopConfig(binary_path=prebuilt))

        result = harness.installer.run()

        assert result.outcome is InstallOutcome.OVERRIDE
        assert harness.binary.read_bytes() == b"locally built"
        assert harness.opener.requests == []
        assert harness.contents() == [ASSET_NAME]
        if sys.platform != "win32":
            assert os.access(harness.binary, os.X_OK)
        harness.optimizer.optimize.assert_called_once_with()

    def test_override_replaces_existing_binary(self, bin_dir: Path, tmp_path: Path) -> None:
        (bin_dir / ASSET_NAME).write_bytes(b"old")
        prebuilt = tmp_path / "prebuilt"
        prebuilt.write_bytes(b"new")
        harness = Harness(bin_dir, routes={}, config=AgentDesktopConfig(binary_path=prebuilt))

        assert harness.installer.run().outcome is InstallOutcome.OVERRIDE
        assert harness.binary.read_bytes() == b"new"

    def test_missing_override_falls_back_to_download(self, bin_dir: Path, tmp_path: Path, caplog) -> None:
        archive = make_tarball({"agent-desktop": NATIVE})
        config = AgentDesktopConfig(binary_path=tmp_path / "does-not-exist")
        harness = Harness(bin_dir, _routes(archive, _manifest_for(archive)), config=config)

        with caplog.at_level(logging.WARNING, logger="agent_desktop"):
            result = harness.installer.run()

        assert result.outcome is InstallOutcome.INSTALLED
        assert "AGENT_DESKTOP_BINARY_PATH not found" in caplog.text
