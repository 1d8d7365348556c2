"""Shared fixtures for agent-desktop tests.

Nothing here touches the network: downloads go through FakeOpener, which
serves canned responses keyed by URL.
"""

from __future__ import annotations

import hashlib
import io
import logging
import tarfile
import urllib.error
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import pytest

from agent_desktop.bootstrap.platform import PlatformKey
from agent_desktop.core.logging import ROOT_LOGGER_NAME


class FakeResponse:
    """Minimal stand-in for an ``http.client.HTTPResponse``."""

    def __init__(
        self,
        body: bytes = b"",
        status: int = 200,
        headers: Optional[Dict[str, str]] = None,
        fail_after: Optional[int] = None,
        chunk_size: int = 4,
    ) -> None:
        self.status = status
        self.headers = headers or {}
        self._body = io.BytesIO(body)
        self._fail_after = fail_after
        self._chunk_size = chunk_size
        self._reads = 0
        self.closed = False

    def read(self, size: int = -1) -> bytes:
        if self._fail_after is not None and self._reads >= self._fail_after:
            raise ConnectionResetError("connection reset by peer")
        self._reads += 1
        return self._body.read(min(size, self._chunk_size) if size > 0 else self._chunk_size)

    def close(self) -> None:
        self.closed = True


Served = Union[FakeResponse, Exception, Callable[[], FakeResponse]]


class FakeOpener:
    """urllib-style opener serving canned responses per URL."""

    def __init__(self, routes: Optional[Dict[str, Served]] = None) -> None:
        self.routes: Dict[str, Served] = dict(routes or {})
        self.requests: List[str] = []
        self.timeouts: List[float] = []

    def open(self, request, timeout=None):
        url = request.full_url
        self.requests.append(url)
        self.timeouts.append(timeout)
        served = self.routes.get(url)
        if served is None:
            raise urllib.error.HTTPError(url, 404, "Not Found", {}, None)
        if isinstance(served, Exception):
            raise served
        if callable(served):
            served = served()
        if served.status >= 300:
            raise urllib.error.HTTPError(url, served.status, "status", served.headers, None)
        return served


def make_tarball(members: Dict[str, bytes]) -> bytes:
    """Build an in-memory ``.tar.gz`` with the given file members."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, content in members.items():
            info = tarfile.TarInfo(name=name)
            info.size = len(content)
            info.mode = 0o755
            tar.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


@pytest.fixture
def darwin_arm64() -> PlatformKey:
    return PlatformKey("darwin", "arm64")


@pytest.fixture
def bin_dir(tmp_path: Path) -> Path:
    path = tmp_path / "bin"
    path.mkdir()
    return path


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo configure_logging() so caplog sees records in every test."""
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
