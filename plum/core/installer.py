"""Plugin installation pipeline.

Each requested plugin goes through five stages:

    Locate -> Validate -> Fetch -> Register -> Enable

Locate and Validate touch nothing on disk. Fetch downloads the plugin's
manifest and its declared command and hook files into
``<config>/plugins/cache/<marketplace>/<plugin>``. Register records the
install in the plugin registry and Enable turns the plugin on in the target
scope, each under its own file lock. No lock is held while downloading.

A failure in any stage aborts that plugin only; other plugins requested in
the same call are still installed. Partial downloads are left in the cache.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from plum.config.parser import ConfigError, parse_json
from plum.config.paths import plugin_cache_dir
from plum.config.schemas import PluginInstall, PluginManifest, PlumConfig
from plum.core.catalog import CatalogPlugin, PluginCatalog
from plum.core.errors import (
    DownloadLimitError,
    InstallError,
    NotInstallableError,
    UnsafePluginPathError,
)
from plum.core.registry import InstalledPluginsRegistry, utc_timestamp
from plum.marketplace.base import Fetcher, FetchError
from plum.marketplace.https import HttpsFetcher, github_raw_base
from plum.marketplace.local import LocalFetcher
from plum.settings.document import split_plugin_identity
from plum.settings.errors import InvalidPluginNameError, LockTimeoutError
from plum.settings.scopes import Scope, normalize_project_path, parse_scope, require_writable
from plum.settings.store import ProjectPath, SettingsStore
from plum.utils.filesystem import UnsafePathError, ensure_directory, resolve_within, write_file

logger = logging.getLogger("plum.installer")

MANIFEST_PATH = ".claude-plugin/plugin.json"
COMMAND_FILE_MODE = 0o644
HOOK_FILE_MODE = 0o755

FetcherFactory = Callable[[CatalogPlugin], Fetcher]


@dataclass
class InstallResult:
    """Result of installing one plugin."""

    plugin_name: str
    version: str
    success: bool
    message: str = ""
    warnings: list[str] = field(default_factory=list)
    install_path: Path | None = None


@dataclass
class InstallSummary:
    """Summary of an installation operation."""

    results: list[InstallResult] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def all_successful(self) -> bool:
        return all(r.success for r in self.results)


def parse_plugin_arg(arg: str) -> tuple[str, str | None]:
    """Split ``name`` or ``name@marketplace`` into its parts.

    Raises:
        InvalidPluginNameError: If either part is empty or there is more
            than one ``@``
    """
    if "@" not in arg:
        if not arg:
            raise InvalidPluginNameError(arg)
        return arg, None
    return split_plugin_identity(arg)


class _DownloadBudget:
    """Cumulative byte budget for one plugin's files."""

    def __init__(self, plugin_name: str, limit: int):
        self.plugin_name = plugin_name
        self.limit = limit
        self.used = 0

    def charge(self, size: int) -> None:
        self.used += size
        if self.used > self.limit:
            raise DownloadLimitError(self.plugin_name, self.limit)


class PluginInstaller:
    """Installs plugins from the catalog into a scope."""

    def __init__(
        self,
        config: PlumConfig,
        catalog: PluginCatalog,
        store: SettingsStore,
        registry: InstalledPluginsRegistry,
        fetcher_factory: FetcherFactory | None = None,
    ):
        """Initialize the installer.

        Args:
            config: Runtime configuration
            catalog: Source of plugin records
            store: Settings store used to enable installed plugins
            registry: Installed-plugins registry
            fetcher_factory: Builds the fetcher for a plugin's files
                (defaults to the marketplace checkout, else GitHub)
        """
        self.config = config
        self.catalog = catalog
        self.store = store
        self.registry = registry
        self._fetcher_factory = fetcher_factory or self.default_fetcher

    def install(
        self,
        plugin_args: list[str],
        scope: Scope | str = Scope.USER,
        project_path: ProjectPath = None,
    ) -> InstallSummary:
        """Install plugins.

        Args:
            plugin_args: ``name`` or ``name@marketplace`` for each plugin
            scope: Scope to enable the plugins in
            project_path: Project directory for project/local scopes

        Returns:
            One result per argument

        Raises:
            InvalidScopeError: If the scope is unknown
            ManagedReadOnlyError: If the scope is managed
        """
        scope = parse_scope(scope)
        require_writable(scope)

        summary = InstallSummary()
        for arg in plugin_args:
            summary.results.append(self._install_one(arg, scope, project_path))
        return summary

    def _install_one(self, arg: str, scope: Scope, project_path: ProjectPath) -> InstallResult:
        warnings: list[str] = []
        try:
            plugin = self.locate(arg, project_path)
            self.validate(plugin)
            install_path, manifest = self.fetch(plugin, warnings)
            version = plugin.version or manifest.version
            self.register(plugin, version, install_path, scope, project_path)
            self.enable(plugin, scope, project_path)
        except (InstallError, ConfigError, LockTimeoutError, OSError) as e:
            logger.debug("Install of %s failed: %s", arg, e)
            return InstallResult(arg, "", False, str(e), warnings)

        logger.info("Installed %s %s into %s scope", plugin.full_name, version, scope)
        return InstallResult(
            plugin.full_name,
            version,
            True,
            f"Installed {plugin.full_name} ({scope} scope)",
            warnings,
            install_path,
        )

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    def locate(self, arg: str, project_path: ProjectPath = None) -> CatalogPlugin:
        """Find the catalog entry for an argument.

        Raises:
            InvalidPluginNameError: If the argument is malformed
            PluginNotFoundError: If nothing matches
            AmbiguousPluginError: If several marketplaces match
        """
        name, marketplace = parse_plugin_arg(arg)
        plugin = self.catalog.find(name, marketplace, project_path)
        logger.debug("Located %s (version %s)", plugin.full_name, plugin.version or "unknown")
        return plugin

    def validate(self, plugin: CatalogPlugin) -> None:
        """Raise NotInstallableError unless the catalog allows installing."""
        if not plugin.installable:
            raise NotInstallableError(plugin.full_name, plugin.installability_reason)

    def fetch(self, plugin: CatalogPlugin, warnings: list[str]) -> tuple[Path, PluginManifest]:
        """Download a plugin's files into its cache directory.

        Every declared file path is checked before anything besides the
        manifest is written. A command or hook that fails to download is
        skipped with a warning appended to ``warnings``.

        Returns:
            The cache directory and the parsed plugin manifest

        Raises:
            UnsafePluginPathError: If a name or declared path would escape
                the cache directory
            DownloadLimitError: If the files exceed the cumulative budget
            InstallError: If the manifest itself cannot be downloaded
        """
        try:
            cache_dir = plugin_cache_dir(self.config.plugin_cache_root, plugin.marketplace, plugin.name)
        except UnsafePathError as e:
            raise UnsafePluginPathError(str(e), plugin.full_name) from e

        fetcher = self._fetcher_factory(plugin)
        budget = _DownloadBudget(plugin.full_name, self.config.max_plugin_download_bytes)
        ensure_directory(cache_dir)
        logger.debug("Fetching %s from %s into %s", plugin.full_name, fetcher.location, cache_dir)

        try:
            manifest_data = fetcher.fetch(MANIFEST_PATH)
        except FetchError as e:
            raise InstallError(f"failed to download plugin.json: {e}", plugin.full_name) from e
        budget.charge(len(manifest_data))
        manifest = self._parse_manifest(plugin, manifest_data, warnings)

        targets: list[tuple[str, Path, int, str]] = []
        for kind, files, mode in (
            ("command", manifest.commands, COMMAND_FILE_MODE),
            ("hook", manifest.hooks, HOOK_FILE_MODE),
        ):
            for relative in files:
                try:
                    targets.append((relative, resolve_within(cache_dir, relative), mode, kind))
                except UnsafePathError as e:
                    raise UnsafePluginPathError(
                        f"unsafe {kind} path in {plugin.full_name}: {e}", plugin.full_name
                    ) from e

        write_file(cache_dir / MANIFEST_PATH, manifest_data, COMMAND_FILE_MODE)

        for relative, target, mode, kind in targets:
            try:
                data = fetcher.fetch(relative)
            except FetchError as e:
                message = f"failed to download {kind} {relative}: {e}"
                logger.warning(message)
                warnings.append(message)
                continue
            budget.charge(len(data))
            write_file(target, data, mode)
            logger.debug("Wrote %s (%d bytes)", target, len(data))

        return cache_dir, manifest

    def register(
        self,
        plugin: CatalogPlugin,
        version: str,
        install_path: Path,
        scope: Scope,
        project_path: ProjectPath,
    ) -> PluginInstall:
        """Record the install in the registry under its lock."""
        now = utc_timestamp()
        record = PluginInstall(
            scope=scope.value,
            install_path=str(install_path),
            version=version,
            installed_at=now,
            last_updated=now,
            git_commit_sha="",
            is_local=False,
            project_path=(
                str(normalize_project_path(project_path))
                if scope in (Scope.PROJECT, Scope.LOCAL)
                else None
            ),
        )
        return self.registry.upsert_install(plugin.full_name, record)

    def enable(self, plugin: CatalogPlugin, scope: Scope, project_path: ProjectPath) -> None:
        """Enable the plugin in the target scope under its lock."""
        self.store.set_plugin_enabled(plugin.full_name, True, scope, project_path)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def default_fetcher(self, plugin: CatalogPlugin) -> Fetcher:
        """Read from the marketplace checkout when it has the plugin, else GitHub."""
        if plugin.marketplace_root is not None:
            local_dir = plugin.marketplace_root / plugin.source_path
            if local_dir.is_dir():
                return LocalFetcher(local_dir, max_bytes=self.config.max_response_bytes)
        if not plugin.marketplace_repo:
            raise NotInstallableError(plugin.full_name, "plugin files not found in marketplace")
        base = github_raw_base(plugin.marketplace_repo) + plugin.source_path
        return HttpsFetcher(
            base, timeout=self.config.http_timeout, max_bytes=self.config.max_response_bytes
        )

    @staticmethod
    def _parse_manifest(plugin: CatalogPlugin, data: bytes, warnings: list[str]) -> PluginManifest:
        try:
            return PluginManifest.model_validate(parse_json(data))
        except (ValueError, ValidationError) as e:
            message = f"failed to parse plugin.json for {plugin.full_name}: {e}"
            logger.warning(message)
            warnings.append(message)
            return PluginManifest()
