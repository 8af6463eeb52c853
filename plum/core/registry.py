"""The installed-plugins registry (installed_plugins_v2.json).

The registry records where each installed plugin's files live, per scope.
It is shared by all scopes and is rewritten under its own lock with the same
load-fresh and atomic-write protocol as settings files. It is operational
state that can be regenerated, so no backup is taken.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from plum.config.parser import ConfigError, dump_json, load_json
from plum.config.schemas import InstalledPlugins, PluginInstall
from plum.settings.document import validate_plugin_identity
from plum.settings.lock import DEFAULT_POLL_INTERVAL, DEFAULT_TIMEOUT, FileLock, LockStrategy
from plum.settings.write import atomic_write

logger = logging.getLogger(__name__)


class RegistryError(ConfigError):
    """The registry file exists but cannot be used."""


def utc_timestamp(now: datetime | None = None) -> str:
    """RFC 3339 UTC timestamp, e.g. ``2026-01-02T03:04:05Z``."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class InstalledPluginsRegistry:
    """Reads and mutates installed_plugins_v2.json."""

    def __init__(
        self,
        path: Path,
        lock_timeout: float = DEFAULT_TIMEOUT,
        lock_poll_interval: float = DEFAULT_POLL_INTERVAL,
        lock_strategy: LockStrategy | None = None,
    ):
        self.path = path
        self.lock_timeout = lock_timeout
        self.lock_poll_interval = lock_poll_interval
        self.lock_strategy = lock_strategy

    def load(self) -> InstalledPlugins:
        """Load the registry.

        Returns:
            The registry, or an empty version 2 registry if the file is absent

        Raises:
            RegistryError: If the file is present but malformed
        """
        try:
            data = load_json(self.path)
        except FileNotFoundError:
            return InstalledPlugins()
        except ConfigError as e:
            raise RegistryError(str(e), self.path) from e

        try:
            return InstalledPlugins.model_validate(data)
        except ValidationError as e:
            raise RegistryError(f"Invalid plugin registry {self.path}: {e}", self.path) from e

    def get_installs(self, full_name: str) -> list[PluginInstall]:
        return list(self.load().plugins.get(full_name, []))

    def _mutate(self, change: Callable[[InstalledPlugins], bool]) -> bool:
        lock = FileLock(
            self.path,
            timeout=self.lock_timeout,
            poll_interval=self.lock_poll_interval,
            strategy=self.lock_strategy,
        )
        with lock:
            registry = self.load()
            if not change(registry):
                return False
            atomic_write(self.path, dump_json(registry.to_json()))
        return True

    def upsert_install(self, full_name: str, install: PluginInstall) -> PluginInstall:
        """Record an installation, replacing any record for the same scope.

        A replaced record keeps its original ``installedAt``.

        Args:
            full_name: Plugin identity (``name@marketplace``)
            install: The new record

        Returns:
            The record as stored

        Raises:
            InvalidPluginNameError: If full_name is malformed
            LockTimeoutError: If the registry lock could not be acquired
            RegistryError: If the current registry is malformed
        """
        validate_plugin_identity(full_name)
        stored: list[PluginInstall] = []

        def change(registry: InstalledPlugins) -> bool:
            installs = registry.plugins.setdefault(full_name, [])
            record = install.model_copy()
            for i, existing in enumerate(installs):
                if existing.scope == record.scope:
                    if existing.installed_at:
                        record.installed_at = existing.installed_at
                    installs[i] = record
                    break
            else:
                installs.append(record)
            stored.append(record)
            return True

        self._mutate(change)
        logger.info("Registered %s (%s) at %s", full_name, install.scope, install.install_path)
        return stored[0]

    def remove_install(self, full_name: str, scope: str) -> bool:
        """Drop one scope's record; the entry goes away with its last record.

        Returns:
            True if a record was removed
        """

        def change(registry: InstalledPlugins) -> bool:
            installs = registry.plugins.get(full_name)
            if not installs:
                return False
            remaining = [i for i in installs if i.scope != scope]
            if len(remaining) == len(installs):
                return False
            if remaining:
                registry.plugins[full_name] = remaining
            else:
                del registry.plugins[full_name]
            return True

        return self._mutate(change)

    def remove(self, full_name: str) -> bool:
        """Delete a plugin's whole registry entry.

        Returns:
            True if the plugin was registered
        """

        def change(registry: InstalledPlugins) -> bool:
            return registry.plugins.pop(full_name, None) is not None

        removed = self._mutate(change)
        if removed:
            logger.info("Removed %s from plugin registry", full_name)
        return removed
