"""Abstract file fetcher used to pull plugin and marketplace files."""

from abc import ABC, abstractmethod


class FetchError(Exception):
    """A single fetch failed."""

    def __init__(self, message: str, url: str | None = None, status_code: int | None = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """Whether trying again might succeed (network errors, 5xx and 429)."""
        if self.status_code is None:
            return True
        return self.status_code >= 500 or self.status_code == 429


class ResponseTooLargeError(FetchError):
    """A fetched payload exceeded the per-response size limit."""

    @property
    def retryable(self) -> bool:
        return False


class Fetcher(ABC):
    """Fetches files relative to a base location (a URL or a directory).

    Implementations must bound both the time spent and the bytes returned
    for a single fetch.
    """

    @property
    @abstractmethod
    def location(self) -> str:
        """Human-readable base location, for messages."""
        ...

    @abstractmethod
    def fetch(self, relative_path: str) -> bytes:
        """Fetch one file.

        Args:
            relative_path: Path relative to the base location, using '/'

        Returns:
            The file contents

        Raises:
            FetchError: If the file cannot be retrieved
        """
        ...
