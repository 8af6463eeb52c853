"""Plugin removal.

Removing a plugin drops it from one scope (or from every writable scope
that mentions it) together with that scope's registry record. Once no
scope mentions the plugin any more, its whole registry entry and, unless
asked to keep it, its cache directory are deleted as well.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from plum.config.parser import ConfigError
from plum.config.paths import plugin_cache_dir
from plum.config.schemas import PlumConfig
from plum.core.registry import InstalledPluginsRegistry
from plum.settings.document import SettingsDocument, split_plugin_identity
from plum.settings.errors import LockTimeoutError
from plum.settings.merge import MergeEngine
from plum.settings.scopes import WRITABLE_SCOPES, Scope, parse_scope, require_writable
from plum.settings.store import ProjectPath, SettingsStore
from plum.utils.filesystem import UnsafePathError, remove_directory

logger = logging.getLogger(__name__)


@dataclass
class RemoveResult:
    """Outcome of removing one plugin."""

    full_name: str
    removed_scopes: list[Scope] = field(default_factory=list)
    cache_deleted: bool = False
    unregistered: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def removed(self) -> bool:
        return bool(self.removed_scopes)


class PluginRemover:
    """Removes plugins from scopes and cleans up after the last one."""

    def __init__(
        self,
        config: PlumConfig,
        store: SettingsStore,
        merge: MergeEngine,
        registry: InstalledPluginsRegistry,
    ):
        self.config = config
        self.store = store
        self.merge = merge
        self.registry = registry

    def remove(
        self,
        full_name: str,
        scope: Scope | str = Scope.USER,
        project_path: ProjectPath = None,
        all_scopes: bool = False,
        keep_cache: bool = False,
    ) -> RemoveResult:
        """Remove a plugin.

        Args:
            full_name: Plugin identity
            scope: Scope to remove from (ignored with all_scopes)
            project_path: Project directory for project/local scopes
            all_scopes: Remove from every writable scope that mentions it
            keep_cache: Keep the cached plugin files

        Returns:
            What was removed, with warnings for failed cleanup steps

        Raises:
            InvalidPluginNameError: If full_name is malformed
            ManagedReadOnlyError: If scope is managed
            ConfigError: If a scope file could not be updated
        """
        split_plugin_identity(full_name)
        result = RemoveResult(full_name)

        if all_scopes:
            targets = self._scopes_with(full_name, project_path)
        else:
            target = parse_scope(scope)
            require_writable(target)
            targets = [target]

        failures: list[str] = []
        for target in targets:
            try:
                removed = self.store.remove_plugin(full_name, target, project_path)
            except (ConfigError, LockTimeoutError, OSError) as e:
                if not all_scopes:
                    raise
                failures.append(f"{target}: {e}")
                continue
            if removed:
                result.removed_scopes.append(target)
                logger.info("Removed %s from %s scope", full_name, target)
            self._unregister_scope(full_name, target, result)

        if failures:
            raise ConfigError("removal failed in some scopes:\n  " + "\n  ".join(failures))

        if self.merge.get_plugin_state(full_name, project_path) is None:
            self._cleanup(full_name, keep_cache, result)
        return result

    def _scopes_with(self, full_name: str, project_path: ProjectPath) -> list[Scope]:
        scopes = []
        for scope in WRITABLE_SCOPES:
            path = self.store.path_for(scope, project_path)
            try:
                doc = SettingsDocument.load(path)
            except ConfigError as e:
                logger.warning("Cannot read %s settings: %s", scope, e)
                scopes.append(scope)
                continue
            if doc.plugin_enabled(full_name) is not None:
                scopes.append(scope)
        return scopes

    def _unregister_scope(self, full_name: str, scope: Scope, result: RemoveResult) -> None:
        try:
            self.registry.remove_install(full_name, scope.value)
        except (ConfigError, LockTimeoutError, OSError) as e:
            message = f"failed to update install registry: {e}"
            logger.warning(message)
            result.warnings.append(message)

    def _cleanup(self, full_name: str, keep_cache: bool, result: RemoveResult) -> None:
        try:
            result.unregistered = self.registry.remove(full_name)
        except (ConfigError, LockTimeoutError, OSError) as e:
            message = f"failed to update install registry: {e}"
            logger.warning(message)
            result.warnings.append(message)

        if keep_cache:
            return
        name, marketplace = split_plugin_identity(full_name)
        try:
            cache_dir: Path = plugin_cache_dir(self.config.plugin_cache_root, marketplace, name)
            result.cache_deleted = remove_directory(cache_dir)
        except (UnsafePathError, OSError) as e:
            message = f"failed to delete cache: {e}"
            logger.warning(message)
            result.warnings.append(message)
        else:
            if result.cache_deleted:
                logger.info("Deleted cached files for %s", full_name)
