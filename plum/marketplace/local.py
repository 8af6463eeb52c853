"""Fetcher over a marketplace checkout on the local filesystem."""

import logging
from pathlib import Path

from plum.marketplace.base import Fetcher, FetchError, ResponseTooLargeError
from plum.utils.filesystem import UnsafePathError, resolve_within

logger = logging.getLogger(__name__)


class LocalFetcher(Fetcher):
    """Reads files below a local directory.

    Used when Claude Code has already cloned a marketplace (its
    ``installLocation`` in known_marketplaces.json).
    """

    DEFAULT_MAX_BYTES = 10 * 1024 * 1024

    def __init__(self, root: Path, max_bytes: int | None = None):
        self.root = root
        self._max_bytes = max_bytes or self.DEFAULT_MAX_BYTES

    @property
    def location(self) -> str:
        return str(self.root)

    def fetch(self, relative_path: str) -> bytes:
        try:
            path = resolve_within(self.root, relative_path)
        except UnsafePathError as e:
            raise FetchError(str(e), url=relative_path) from e

        logger.debug("Reading %s", path)
        try:
            size = path.stat().st_size
            if size > self._max_bytes:
                raise ResponseTooLargeError(
                    f"{path} is {size} bytes (max {self._max_bytes})", url=str(path)
                )
            return path.read_bytes()
        except FileNotFoundError as e:
            raise FetchError(f"File not found: {path}", url=str(path), status_code=404) from e
        except IsADirectoryError as e:
            raise FetchError(f"Not a file: {path}", url=str(path)) from e
        except OSError as e:
            raise FetchError(f"Cannot read {path}: {e}", url=str(path)) from e
