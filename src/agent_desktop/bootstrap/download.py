"""HTTPS download helpers for release artifacts.

Downloads stream into a ``<dest>.tmp`` sibling and are renamed onto the final
path only after the body was received completely, so an interrupted download
never leaves a plausible-looking file at ``dest``.

Redirects are followed manually so the hop count can be bounded; urllib's
own redirect handling is disabled.
"""

from __future__ import annotations

import http.client
import os
import socket
import time
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any, Callable, Optional
from urllib.parse import urljoin, urlparse

from agent_desktop.core.errors import (
    DownloadError,
    DownloadTimeoutError,
    HttpStatusError,
    NetworkError,
    TooManyRedirectsError,
)
from agent_desktop.core.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_TIMEOUT = 60.0
DEFAULT_MAX_REDIRECTS = 5
DEFAULT_RETRIES = 3
CHUNK_SIZE = 64 * 1024

REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})
ALLOWED_SCHEMES = frozenset({"https"})

_TIMEOUT_ERRORS = (socket.timeout, TimeoutError)


class _NoRedirectHandler(urllib.request.HTTPRedirectHandler):
    """Surface redirects as HTTPError so the Downloader can follow them."""

    def redirect_request(self, req, fp, code, msg, headers, newurl):  # type: ignore[override]
        return None


def build_opener() -> urllib.request.OpenerDirector:
    """Build a urllib opener with redirects disabled.

    Proxy environment variables are still honoured by urllib's default
    ProxyHandler.
    """
    return urllib.request.build_opener(_NoRedirectHandler())


def validate_url(url: str) -> None:
    """Reject anything but HTTPS URLs.

    Raises:
        ValueError: If the URL scheme is not allowed.
    """
    parsed = urlparse(url)
    if parsed.scheme not in ALLOWED_SCHEMES or not parsed.netloc:
        raise ValueError(f"Invalid download URL: {url}")


def temporary_path(dest: Path) -> Path:
    """Sibling path a download is streamed into before the final rename."""
    return dest.with_name(dest.name + ".tmp")


def _status_of(response: Any) -> int:
    status = getattr(response, "status", None)
    if status is None:
        status = response.getcode()
    return int(status)


def _content_length(response: Any) -> Optional[int]:
    """Declared body size, or None when the server did not send a usable one."""
    value = response.headers.get("Content-Length")
    try:
        length = int(value)
    except (TypeError, ValueError):
        return None
    return length if length >= 0 else None


class Downloader:
    """Fetch a URL to a local file.

    Args:
        timeout: Wall-clock budget in seconds for one fetch, redirects included.
            The budget is checked between reads and the socket timeout is
            set to what remains when each request opens, so a read that
            stalls just before the deadline can overrun it by up to one
            socket timeout.
        max_redirects: Maximum number of redirect hops to follow.
        user_agent: Value of the User-Agent header.
        opener: urllib-compatible opener (``open(request, timeout=...)``).
        proxy: Proxy URL in effect, used for logging only.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        user_agent: str = "agent-desktop",
        opener: Optional[Any] = None,
        proxy: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.user_agent = user_agent
        self.proxy = proxy
        self._opener = opener if opener is not None else build_opener()
        self._clock = clock

    def fetch(self, url: str, dest: Path) -> Path:
        """Download ``url`` to ``dest``.

        Args:
            url: HTTPS URL to download.
            dest: Final destination path.

        Returns:
            The destination path.

        Raises:
            ValueError: If a URL in the redirect chain is not HTTPS.
            DownloadTimeoutError: If the wall-clock budget is exhausted.
            HttpStatusError: On a non-200 terminal response.
            TooManyRedirectsError: If more than ``max_redirects`` hops occur.
            NetworkError: On connection-level failures.
        """
        dest = Path(dest)
        tmp_path = temporary_path(dest)
        deadline = self._clock() + self.timeout

        if self.proxy:
            LOGGER.info(f"Using proxy: {self.proxy}")

        current_url = url
        try:
            for _ in range(self.max_redirects + 1):
                response = self._open(current_url, deadline)
                status = _status_of(response)

                if status in REDIRECT_STATUSES:
                    location = response.headers.get("Location")
                    response.close()
                    if not location:
                        raise HttpStatusError(status, current_url)
                    next_url = urljoin(current_url, location)
                    LOGGER.debug(f"Redirected ({status}) to {next_url}")
                    current_url = next_url
                    continue

                if status != 200:
                    response.close()
                    raise HttpStatusError(status, current_url)

                try:
                    self._stream_to_file(response, tmp_path, deadline, current_url)
                finally:
                    response.close()

                os.replace(tmp_path, dest)
                return dest

            raise TooManyRedirectsError(
                f"Too many redirects (>{self.max_redirects}) downloading {url}",
                url=url,
            )
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

    def _remaining(self, deadline: float, url: str) -> float:
        remaining = deadline - self._clock()
        if remaining <= 0:
            raise DownloadTimeoutError(
                f"Download timed out after {self.timeout:g}s: {url}", url=url
            )
        return remaining

    def _open(self, url: str, deadline: float) -> Any:
        validate_url(url)
        request = urllib.request.Request(url, headers={"User-Agent": self.user_agent})
        timeout = self._remaining(deadline, url)
        try:
            return self._opener.open(request, timeout=timeout)  # nosec B310
        except urllib.error.HTTPError as e:
            # Redirects and error statuses arrive here; both carry headers.
            return e
        except urllib.error.URLError as e:
            if isinstance(e.reason, _TIMEOUT_ERRORS):
                raise DownloadTimeoutError(
                    f"Download timed out after {self.timeout:g}s: {url}", url=url
                ) from e
            raise NetworkError(f"Network error downloading {url}: {e.reason}", url=url) from e
        except _TIMEOUT_ERRORS as e:
            raise DownloadTimeoutError(
                f"Download timed out after {self.timeout:g}s: {url}", url=url
            ) from e
        except OSError as e:
            raise NetworkError(f"Network error downloading {url}: {e}", url=url) from e

    def _stream_to_file(self, response: Any, tmp_path: Path, deadline: float, url: str) -> None:
        expected = _content_length(response)
        received = 0
        tmp_path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, "wb") as f:
            while True:
                self._remaining(deadline, url)
                try:
                    chunk = response.read(CHUNK_SIZE)
                except _TIMEOUT_ERRORS as e:
                    raise DownloadTimeoutError(
                        f"Download timed out after {self.timeout:g}s: {url}", url=url
                    ) from e
                except (OSError, http.client.HTTPException) as e:
                    raise NetworkError(f"Connection lost downloading {url}: {e}", url=url) from e
                if not chunk:
                    break
                f.write(chunk)
                received += len(chunk)

        # http.client ends the stream quietly when the peer closes early.
        if expected is not None and received < expected:
            raise NetworkError(
                f"Connection closed after {received} of {expected} bytes downloading {url}",
                url=url,
            )


def retry_delay(attempt: int) -> int:
    """Backoff in seconds after a failed ``attempt`` (1-based): 2, 4, 8, ..."""
    return 2 ** attempt


def download_with_retry(
    downloader: Downloader,
    url: str,
    dest: Path,
    retries: int = DEFAULT_RETRIES,
    sleep: Callable[[float], None] = time.sleep,
) -> Path:
    """Fetch with a fixed retry budget and exponential backoff.

    Only download errors are retried. The backoff is applied between
    attempts and never after the last one; the last attempt's error
    propagates unchanged.

    Args:
        downloader: Downloader performing each attempt.
        url: URL to fetch.
        dest: Destination path.
        retries: Total number of attempts.
        sleep: Sleep function, injectable for tests.

    Returns:
        The destination path.
    """
    attempts = max(1, retries)
    for attempt in range(1, attempts + 1):
        try:
            return downloader.fetch(url, dest)
        except DownloadError as e:
            if attempt == attempts:
                raise
            delay = retry_delay(attempt)
            LOGGER.info(f"Download failed (attempt {attempt}/{attempts}): {e}")
            LOGGER.info(f"Retrying in {delay}s...")
            sleep(delay)
    raise AssertionError("unreachable")  # pragma: no cover
