"""HTTP helpers for metadata and asset downloads.

Thin wrapper over urllib with the retry policy the installer needs:
- GET requests retry transient failures a fixed number of times with a
  fixed delay, then fail.
- Existence probes (HEAD) treat "not found" as a valid answer, never as a
  failure to retry.
"""

from __future__ import annotations

import time
from typing import Callable, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import urlparse
from urllib.request import Request, urlopen

from nocturne_installer.core.errors import DownloadError
from nocturne_installer.core.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 2.0
DEFAULT_PROBE_ATTEMPTS = 2
DEFAULT_TIMEOUT = 30.0

USER_AGENT = "nocturne-installer"

# CDNs answer 403 for missing objects when listing is disabled
NOT_FOUND_STATUSES = frozenset({403, 404, 410})

_LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})


def validate_url(url: str) -> None:
    """Only allow https, plus plain http to the local machine."""
    parsed = urlparse(url)
    if parsed.scheme == "https" and parsed.netloc:
        return
    if parsed.scheme == "http" and parsed.hostname in _LOCAL_HOSTS:
        return
    raise ValueError(f"Invalid download URL: {url}")


def secure_urlopen(url: str, method: str = "GET", timeout: float = DEFAULT_TIMEOUT):
    """Open ``url`` after validating its scheme."""
    validate_url(url)
    request = Request(url, method=method, headers={"User-Agent": USER_AGENT})
    return urlopen(request, timeout=timeout)  # nosec B310


# Client errors that are still worth retrying
RETRYABLE_CLIENT_STATUSES = frozenset({408, 429})


def _is_permanent(error: Exception) -> bool:
    if not isinstance(error, HTTPError):
        return False
    return 400 <= error.code < 500 and error.code not in RETRYABLE_CLIENT_STATUSES


class Fetcher:
    """Performs the installer's network requests.

    Args:
        retry_attempts: Attempts for GET requests before giving up.
        retry_delay: Seconds to wait between attempts.
        probe_attempts: Attempts for existence probes.
        timeout: Per-request timeout in seconds.
        opener: Callable with the signature of :func:`secure_urlopen`.
        sleep: Sleep function, injectable for tests.
    """

    def __init__(
        self,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        probe_attempts: int = DEFAULT_PROBE_ATTEMPTS,
        timeout: float = DEFAULT_TIMEOUT,
        opener: Callable[..., object] = secure_urlopen,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._retry_attempts = max(1, retry_attempts)
        self._retry_delay = retry_delay
        self._probe_attempts = max(1, probe_attempts)
        self._timeout = timeout
        self._opener = opener
        self._sleep = sleep

    def get_bytes(self, url: str) -> bytes:
        """Download ``url`` and return the body.

        Raises:
            DownloadError: On an unusable URL, a client error (4xx other than
                408 and 429) or after all attempts fail.
        """
        last_error: Optional[Exception] = None
        for attempt in range(1, self._retry_attempts + 1):
            try:
                with self._opener(url, method="GET", timeout=self._timeout) as response:
                    return response.read()
            except (ValueError, UnicodeError) as e:
                raise DownloadError(f"invalid download URL {url!r}: {e}", url) from e
            except HTTPError as e:
                last_error = e
                if _is_permanent(e):
                    raise DownloadError(
                        f"failed to download {url}: HTTP {e.code}", url, status=e.code
                    ) from e
            except (URLError, OSError) as e:
                last_error = e

            LOGGER.debug(
                f"Attempt {attempt}/{self._retry_attempts} for {url} failed: {last_error}"
            )
            if attempt < self._retry_attempts:
                self._sleep(self._retry_delay)

        status = last_error.code if isinstance(last_error, HTTPError) else None
        raise DownloadError(
            f"failed to download {url} after {self._retry_attempts} attempts: {last_error}",
            url,
            status=status,
        )

    def exists(self, url: str) -> bool:
        """Probe whether ``url`` exists with a HEAD request.

        A not-found answer returns False immediately. Transient failures are
        retried up to ``probe_attempts`` times and then count as missing.
        """
        last_error: Optional[Exception] = None
        for attempt in range(1, self._probe_attempts + 1):
            try:
                with self._opener(url, method="HEAD", timeout=self._timeout):
                    return True
            except (ValueError, UnicodeError) as e:
                raise DownloadError(f"invalid download URL {url!r}: {e}", url) from e
            except HTTPError as e:
                if e.code in NOT_FOUND_STATUSES:
                    LOGGER.debug(f"Not found: {url} (HTTP {e.code})")
                    return False
                last_error = e
            except (URLError, OSError) as e:
                last_error = e

            if attempt < self._probe_attempts:
                self._sleep(self._retry_delay)

        LOGGER.warning(f"Could not check {url}: {last_error}; treating as missing")
        return False
