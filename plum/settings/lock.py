"""Advisory per-file locks.

A lock for ``<path>`` lives at ``<path>.lock``. Two strategies implement the
same interface and are chosen by platform at runtime:

- :class:`FlockStrategy` holds a kernel ``flock`` on the lock file (Unix).
- :class:`ExclusiveCreateStrategy` treats successful exclusive creation of the
  lock file as ownership (Windows). A lock file older than the timeout is
  considered abandoned and removed.

Both are advisory: they only exclude other processes that lock the same way.
"""

from __future__ import annotations

import logging
import os
import time
from abc import ABC, abstractmethod
from pathlib import Path

from plum.settings.errors import LockTimeoutError
from plum.utils.platform import has_advisory_locks

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
DEFAULT_POLL_INTERVAL = 0.05

LOCK_SUFFIX = ".lock"
LOCK_FILE_MODE = 0o600
LOCK_DIR_MODE = 0o755


def lock_path_for(path: Path) -> Path:
    return path.with_name(path.name + LOCK_SUFFIX)


class LockStrategy(ABC):
    """How a lock file is taken and given back."""

    @abstractmethod
    def try_acquire(self, lock_path: Path, stale_after: float) -> int | None:
        """Make one non-blocking attempt to take the lock.

        Args:
            lock_path: The ``.lock`` file
            stale_after: Age in seconds after which a held lock may be
                considered abandoned (strategies without staleness ignore it)

        Returns:
            An open file descriptor representing ownership, or None if the
            lock is currently held elsewhere
        """
        ...

    @abstractmethod
    def release(self, lock_path: Path, fd: int) -> None:
        """Give back a lock obtained from try_acquire."""
        ...


class FlockStrategy(LockStrategy):
    """Kernel advisory lock via ``flock(LOCK_EX | LOCK_NB)``.

    The lock file itself is left in place; the kernel drops the lock if the
    process dies.
    """

    def try_acquire(self, lock_path: Path, stale_after: float) -> int | None:
        import fcntl

        fd = os.open(lock_path, os.O_CREAT | os.O_RDWR, LOCK_FILE_MODE)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            os.close(fd)
            return None
        except OSError:
            os.close(fd)
            raise
        return fd

    def release(self, lock_path: Path, fd: int) -> None:
        import fcntl

        try:
            fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)


class ExclusiveCreateStrategy(LockStrategy):
    """Lock by exclusively creating the lock file.

    Nothing releases the lock if the owner crashes, so a lock file older than
    ``stale_after`` is removed and the attempt repeated on the next poll.
    """

    def try_acquire(self, lock_path: Path, stale_after: float) -> int | None:
        try:
            return os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_RDWR, LOCK_FILE_MODE)
        except FileExistsError:
            pass

        try:
            age = time.time() - lock_path.stat().st_mtime
        except FileNotFoundError:
            return None
        if age > stale_after:
            logger.warning("Removing stale lock %s (%.1fs old)", lock_path, age)
            try:
                lock_path.unlink()
            except FileNotFoundError:
                pass
        return None

    def release(self, lock_path: Path, fd: int) -> None:
        try:
            os.close(fd)
        finally:
            lock_path.unlink(missing_ok=True)


def default_strategy() -> LockStrategy:
    """Pick the lock strategy for the running platform."""
    if has_advisory_locks():
        return FlockStrategy()
    return ExclusiveCreateStrategy()


class FileLock:
    """Exclusive lock on one target file, with bounded waiting.

    Usage::

        with FileLock(settings_path):
            ...  # read, modify and atomically rewrite settings_path
    """

    def __init__(
        self,
        path: Path,
        timeout: float = DEFAULT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        strategy: LockStrategy | None = None,
    ):
        """Initialize the lock.

        Args:
            path: File being protected (not the lock file itself)
            timeout: Seconds to wait before giving up
            poll_interval: Seconds between acquisition attempts
            strategy: Locking strategy (defaults to the platform's)
        """
        self.path = path
        self.lock_path = lock_path_for(path)
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.strategy = strategy or default_strategy()
        self._fd: int | None = None

    @property
    def is_locked(self) -> bool:
        return self._fd is not None

    def acquire(self) -> FileLock:
        """Block until the lock is held or the timeout passes.

        Raises:
            LockTimeoutError: If the lock is still held elsewhere at the deadline
            RuntimeError: If this instance already holds the lock
        """
        if self._fd is not None:
            raise RuntimeError(f"lock on {self.path} is already held by this FileLock")

        self.lock_path.parent.mkdir(mode=LOCK_DIR_MODE, parents=True, exist_ok=True)
        deadline = time.monotonic() + self.timeout
        waited = False
        while True:
            fd = self.strategy.try_acquire(self.lock_path, self.timeout)
            if fd is not None:
                self._fd = fd
                logger.debug("Acquired lock %s", self.lock_path)
                return self
            if time.monotonic() >= deadline:
                raise LockTimeoutError(self.path, self.timeout)
            if not waited:
                logger.info("Waiting for lock on %s", self.path)
                waited = True
            time.sleep(self.poll_interval)

    def release(self) -> None:
        """Release the lock. Releasing an unheld lock is a no-op."""
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        self.strategy.release(self.lock_path, fd)
        logger.debug("Released lock %s", self.lock_path)

    def __enter__(self) -> FileLock:
        return self.acquire()

    def __exit__(self, *exc_info: object) -> None:
        self.release()

