"""Locked, load-fresh mutation of scope settings files.

Every mutation follows the same protocol:

1. refuse the managed scope before touching the filesystem
2. validate arguments
3. resolve the scope's file and take its lock
4. back up the file the first time Plum modifies it
5. reload the file from disk, apply the change, and atomically rewrite it
6. release the lock

A document loaded earlier is never written back; the change is always
re-applied to the current file contents.
"""

import logging
import os
from collections.abc import Callable
from pathlib import Path

from plum.config.parser import ConfigError
from plum.config.schemas import ExtraMarketplace
from plum.settings.backup import ensure_backup
from plum.settings.document import SettingsDocument, validate_plugin_identity
from plum.settings.lock import DEFAULT_POLL_INTERVAL, DEFAULT_TIMEOUT, FileLock, LockStrategy
from plum.settings.scopes import Scope, ScopeResolver, parse_scope, require_writable
from plum.settings.write import atomic_write

logger = logging.getLogger(__name__)

ProjectPath = str | os.PathLike[str] | None


class SettingsStore:
    """Reads and mutates scope settings files."""

    def __init__(
        self,
        resolver: ScopeResolver,
        lock_timeout: float = DEFAULT_TIMEOUT,
        lock_poll_interval: float = DEFAULT_POLL_INTERVAL,
        lock_strategy: LockStrategy | None = None,
    ):
        self.resolver = resolver
        self.lock_timeout = lock_timeout
        self.lock_poll_interval = lock_poll_interval
        self.lock_strategy = lock_strategy

    def path_for(self, scope: Scope | str, project_path: ProjectPath = None) -> Path:
        return self.resolver.resolve(scope, project_path)

    def load(self, scope: Scope | str, project_path: ProjectPath = None) -> SettingsDocument:
        """Load a scope's settings without locking."""
        return SettingsDocument.load(self.path_for(scope, project_path))

    def lock(self, path: Path) -> FileLock:
        return FileLock(
            path,
            timeout=self.lock_timeout,
            poll_interval=self.lock_poll_interval,
            strategy=self.lock_strategy,
        )

    def mutate(
        self,
        scope: Scope | str,
        project_path: ProjectPath,
        change: Callable[[SettingsDocument], bool],
    ) -> bool:
        """Apply ``change`` to the current contents of a scope's file.

        Args:
            scope: Target scope (must be writable)
            project_path: Project directory for project/local scopes
            change: Mutates the document and returns whether it changed

        Returns:
            True if the file was rewritten

        Raises:
            ManagedReadOnlyError: If scope is managed
            LockTimeoutError: If the file lock could not be acquired
            ConfigError: If the current file is malformed or over the limits
        """
        scope = parse_scope(scope)
        require_writable(scope)
        path = self.path_for(scope, project_path)

        with self.lock(path):
            ensure_backup(path)
            doc = SettingsDocument.load(path)
            if not change(doc):
                logger.debug("No change to %s", path)
                return False
            atomic_write(path, doc.serialize())
        logger.info("Updated %s settings at %s", scope, path)
        return True

    def set_plugin_enabled(
        self, full_name: str, enabled: bool, scope: Scope | str, project_path: ProjectPath = None
    ) -> bool:
        """Enable or disable a plugin in one scope."""
        require_writable(parse_scope(scope))
        validate_plugin_identity(full_name)
        return self.mutate(scope, project_path, lambda doc: doc.set_plugin_enabled(full_name, enabled))

    def remove_plugin(self, full_name: str, scope: Scope | str, project_path: ProjectPath = None) -> bool:
        """Remove a plugin's entry from one scope.

        Returns:
            True if the scope mentioned the plugin
        """
        require_writable(parse_scope(scope))
        validate_plugin_identity(full_name)
        return self.mutate(scope, project_path, lambda doc: doc.remove_plugin(full_name))

    def add_marketplace(
        self,
        name: str,
        entry: ExtraMarketplace,
        scope: Scope | str,
        project_path: ProjectPath = None,
    ) -> bool:
        """Add or replace an extra marketplace in one scope."""
        require_writable(parse_scope(scope))
        if not name:
            raise ConfigError("marketplace name cannot be empty")
        return self.mutate(scope, project_path, lambda doc: doc.add_marketplace(name, entry))

    def remove_marketplace(self, name: str, scope: Scope | str, project_path: ProjectPath = None) -> bool:
        """Remove an extra marketplace from one scope.

        Returns:
            True if the scope had the marketplace
        """
        return self.mutate(scope, project_path, lambda doc: doc.remove_marketplace(name))
