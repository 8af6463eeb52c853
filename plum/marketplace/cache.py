"""TTL cache of marketplace manifests fetched from GitHub.

Cache structure:
    cache_dir/
        <marketplace-name>.json   # {"manifest": {...}, "fetchedAt": ..., "source": ...}
"""

from __future__ import annotations

import logging
import re
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from plum.config.parser import ConfigError, dump_json, load_json
from plum.config.schemas import MarketplaceManifest
from plum.settings.write import atomic_write

logger = logging.getLogger(__name__)

MAX_MARKETPLACE_NAME_LENGTH = 100
_NAME_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")


class InvalidMarketplaceNameError(ValueError):
    """Marketplace name is unsafe to use as a file name."""


def validate_marketplace_name(name: str) -> str:
    """Check that a marketplace name is safe for filesystem use.

    Raises:
        InvalidMarketplaceNameError: If the name is empty, too long, contains
            '..' or a path separator, or has characters outside [A-Za-z0-9._-]
    """
    if not name:
        raise InvalidMarketplaceNameError("marketplace name cannot be empty")
    if ".." in name:
        raise InvalidMarketplaceNameError(f"marketplace name contains path traversal: {name!r}")
    if "/" in name or "\\" in name:
        raise InvalidMarketplaceNameError(f"marketplace name contains path separator: {name!r}")
    if not _NAME_PATTERN.match(name):
        raise InvalidMarketplaceNameError(f"marketplace name contains invalid characters: {name!r}")
    if len(name) > MAX_MARKETPLACE_NAME_LENGTH:
        raise InvalidMarketplaceNameError(
            f"marketplace name too long (max {MAX_MARKETPLACE_NAME_LENGTH} characters): {len(name)}"
        )
    return name


class MarketplaceCache:
    """File-based cache of marketplace manifests with a time-to-live."""

    DEFAULT_TTL_SECONDS = 86400  # 24 hours

    def __init__(self, cache_dir: Path, ttl_seconds: int | None = None):
        """Initialize the cache.

        Args:
            cache_dir: Directory holding one JSON file per marketplace
            ttl_seconds: Time-to-live in seconds (default: 24 hours)
        """
        self._cache_dir = cache_dir
        self._ttl_seconds = ttl_seconds or self.DEFAULT_TTL_SECONDS

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def _entry_path(self, name: str) -> Path:
        return self._cache_dir / f"{validate_marketplace_name(name)}.json"

    def get(self, name: str) -> MarketplaceManifest | None:
        """Get a cached manifest.

        Returns:
            The manifest if a fresh entry exists, None on a miss, an expired
            entry or an unreadable cache file
        """
        path = self._entry_path(name)
        try:
            entry = load_json(path)
        except FileNotFoundError:
            logger.debug("Cache miss for marketplace %s", name)
            return None
        except ConfigError as e:
            logger.debug("Ignoring unreadable cache entry %s: %s", path, e)
            return None

        if not isinstance(entry, dict) or "manifest" not in entry:
            return None
        fetched_at = entry.get("fetchedAt")
        if not isinstance(fetched_at, (int, float)) or time.time() - fetched_at >= self._ttl_seconds:
            logger.debug("Cache entry expired for marketplace %s", name)
            return None

        try:
            manifest = MarketplaceManifest.model_validate(entry["manifest"])
        except ValidationError as e:
            logger.debug("Ignoring invalid cache entry %s: %s", path, e)
            return None
        logger.debug("Cache hit for marketplace %s", name)
        return manifest

    def put(self, name: str, manifest: MarketplaceManifest, source: str = "") -> Path:
        """Store a manifest, replacing any previous entry.

        Returns:
            Path of the cache file
        """
        path = self._entry_path(name)
        self._cache_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
        entry: dict[str, Any] = {
            "manifest": manifest.model_dump(mode="json", by_alias=True, exclude_none=True),
            "fetchedAt": time.time(),
            "fetchedAtIso": datetime.now(timezone.utc).isoformat(),
            "source": source or name,
        }
        atomic_write(path, dump_json(entry), mode=0o600)
        logger.debug("Cached marketplace %s at %s", name, path)
        return path

    def clear(self, name: str | None = None) -> int:
        """Remove one entry, or every entry when name is None.

        Returns:
            Number of entries removed
        """
        if name is not None:
            path = self._entry_path(name)
            if path.exists():
                path.unlink()
                return 1
            return 0

        if not self._cache_dir.exists():
            return 0
        removed = 0
        for path in self._cache_dir.glob("*.json"):
            path.unlink()
            removed += 1
        return removed
