"""HTTPS fetcher for files hosted on GitHub raw content."""

from __future__ import annotations

import logging
import ssl
import time
from collections.abc import Callable
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from plum import __version__
from plum.config.parser import parse_json, parse_marketplace_manifest
from plum.config.schemas import MarketplaceManifest
from plum.marketplace.base import Fetcher, FetchError, ResponseTooLargeError

logger = logging.getLogger(__name__)

GITHUB_RAW_BASE = "https://raw.githubusercontent.com"
DEFAULT_BRANCH = "main"
MAX_RETRIES = 3


def split_repo_ref(repo: str) -> tuple[str, str]:
    """Split ``owner/repo#ref`` into the repository and branch/tag.

    The ref defaults to ``main``.
    """
    repo_part, sep, ref = repo.partition("#")
    return repo_part, (ref if sep and ref else DEFAULT_BRANCH)


def github_raw_base(repo: str, raw_base: str = GITHUB_RAW_BASE) -> str:
    """Base URL for raw files of a GitHub repository (``owner/repo[#ref]``)."""
    repo_part, ref = split_repo_ref(repo)
    return f"{raw_base.rstrip('/')}/{repo_part.strip('/')}/{quote(ref, safe='')}/"


class HttpsFetcher(Fetcher):
    """Fetches files relative to an HTTPS base URL.

    Every request has a timeout and reads at most ``max_bytes`` of the
    response body.
    """

    DEFAULT_TIMEOUT = 30  # seconds
    DEFAULT_MAX_BYTES = 10 * 1024 * 1024

    def __init__(
        self,
        base_url: str,
        timeout: float | None = None,
        max_bytes: int | None = None,
        headers: dict[str, str] | None = None,
    ):
        """Initialize the fetcher.

        Args:
            base_url: URL that relative paths are appended to
            timeout: Per-request timeout in seconds (default: 30)
            max_bytes: Maximum response body size (default: 10 MiB)
            headers: Extra request headers
        """
        self._base_url = base_url.rstrip("/") + "/"
        self._timeout = timeout or self.DEFAULT_TIMEOUT
        self._max_bytes = max_bytes or self.DEFAULT_MAX_BYTES
        self._headers = {"User-Agent": f"plum/{__version__}"}
        self._headers.update(headers or {})
        self._ssl_context = ssl.create_default_context()

    @property
    def location(self) -> str:
        return self._base_url

    def url_for(self, relative_path: str) -> str:
        return self._base_url + quote(relative_path.lstrip("/"), safe="/-_.~")

    def fetch(self, relative_path: str) -> bytes:
        return self._make_request(self.url_for(relative_path))

    def _make_request(self, url: str) -> bytes:
        """Perform a bounded GET request.

        Raises:
            FetchError: On HTTP errors, connection failures and timeouts
            ResponseTooLargeError: If the body exceeds max_bytes
        """
        logger.debug("GET %s", url)
        try:
            request = Request(url, method="GET")
            for key, value in self._headers.items():
                request.add_header(key, value)

            with urlopen(request, timeout=self._timeout, context=self._ssl_context) as response:
                result: bytes = response.read(self._max_bytes + 1)
        except HTTPError as e:
            logger.debug("HTTP error %d: %s for %s", e.code, e.reason, url)
            raise FetchError(f"HTTP {e.code}: {e.reason} for {url}", url=url, status_code=e.code) from e
        except URLError as e:
            logger.debug("Failed to connect to %s: %s", url, e.reason)
            raise FetchError(f"Failed to connect to {url}: {e.reason}", url=url) from e
        except TimeoutError as e:
            raise FetchError(f"Request timed out for {url}", url=url) from e
        except OSError as e:
            raise FetchError(f"Failed to read {url}: {e}", url=url) from e

        if len(result) > self._max_bytes:
            raise ResponseTooLargeError(
                f"Response from {url} exceeded {self._max_bytes} bytes", url=url
            )
        logger.debug("Received %d bytes from %s", len(result), url)
        return result


def fetch_marketplace_manifest(
    repo: str,
    timeout: float | None = None,
    max_bytes: int | None = None,
    raw_base: str = GITHUB_RAW_BASE,
    retries: int = MAX_RETRIES,
    sleep: Callable[[float], None] = time.sleep,
) -> MarketplaceManifest:
    """Fetch ``.claude-plugin/marketplace.json`` from a GitHub repository.

    Network failures, 5xx and 429 responses are retried with exponential
    backoff (1s, 2s, ...). Other HTTP errors fail immediately.

    Args:
        repo: ``owner/repo`` optionally followed by ``#ref``
        timeout: Per-request timeout in seconds
        max_bytes: Maximum response size
        raw_base: Raw content host
        retries: Total number of attempts
        sleep: Sleep function (replaced in tests)

    Returns:
        Parsed marketplace manifest

    Raises:
        FetchError: If every attempt failed or the response is not valid JSON
        ConfigError: If the JSON is not a valid marketplace manifest
    """
    fetcher = HttpsFetcher(github_raw_base(repo, raw_base), timeout=timeout, max_bytes=max_bytes)
    last_error: FetchError | None = None

    for attempt in range(retries):
        try:
            body = fetcher.fetch(".claude-plugin/marketplace.json")
            break
        except FetchError as e:
            last_error = e
            if not e.retryable:
                raise
            if attempt < retries - 1:
                backoff = float(2**attempt)
                logger.info("Fetching %s failed (%s), retrying in %.0fs", repo, e, backoff)
                sleep(backoff)
    else:
        raise FetchError(
            f"failed after {retries} attempts: {last_error}",
            url=last_error.url if last_error else None,
            status_code=last_error.status_code if last_error else None,
        )

    try:
        data = parse_json(body)
    except ValueError as e:
        raise FetchError(f"Invalid marketplace.json from {repo}: {e}", url=fetcher.location) from e
    return parse_marketplace_manifest(data, repo)
