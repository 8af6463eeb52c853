"""Plugin catalog aggregated from all configured marketplaces.

Sources, in order:

1. Marketplaces Claude Code has cloned locally (known_marketplaces.json),
   read from their ``installLocation``.
2. ``extraKnownMarketplaces`` from the merged settings scopes, fetched from
   GitHub through the manifest cache.

A marketplace that cannot be read is skipped with a warning. A plugin name
listed twice in one marketplace keeps its first entry. When two marketplaces
publish the same plugin name, ``duplicate_policy`` decides: ``first-wins``
hides later ones from unqualified lookups, ``keep-all`` keeps every entry so
that an unqualified lookup reports the ambiguity.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from plum.config.parser import ConfigError, load_known_marketplaces, load_marketplace_manifest
from plum.config.schemas import (
    DuplicatePolicy,
    MarketplaceManifest,
    MarketplacePlugin,
    MarketplaceSource,
    PlumConfig,
)
from plum.core.errors import AmbiguousPluginError, PluginNotFoundError
from plum.marketplace.base import FetchError
from plum.marketplace.cache import InvalidMarketplaceNameError, MarketplaceCache
from plum.marketplace.https import fetch_marketplace_manifest
from plum.marketplace.source import InvalidSourceError, derive_source, is_github_repo
from plum.settings.merge import MergeEngine
from plum.settings.store import ProjectPath

logger = logging.getLogger(__name__)

ManifestFetcher = Callable[[str], MarketplaceManifest]

REASON_EXTERNAL = "external repository (requires manual installation)"
REASON_LSP = "LSP plugin (built into Claude Code)"
REASON_NO_SOURCE = "marketplace has no local copy or GitHub repository"


@dataclass
class CatalogMarketplace:
    """A marketplace whose manifest has been read."""

    name: str
    manifest: MarketplaceManifest
    repo: str | None = None
    root: Path | None = None


@dataclass
class CatalogPlugin:
    """A plugin offered by a marketplace."""

    name: str
    marketplace: str
    version: str = ""
    description: str = ""
    source: str | dict[str, Any] = ""
    marketplace_repo: str | None = None
    marketplace_root: Path | None = None
    has_lsp_servers: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.name}@{self.marketplace}"

    @property
    def is_external_url(self) -> bool:
        return isinstance(self.source, dict)

    @property
    def installability_reason(self) -> str:
        """Why the plugin cannot be installed, or '' if it can."""
        if self.is_external_url:
            return REASON_EXTERNAL
        if self.has_lsp_servers:
            return REASON_LSP
        if self.marketplace_root is None and not self.marketplace_repo:
            return REASON_NO_SOURCE
        return ""

    @property
    def installable(self) -> bool:
        return not self.installability_reason

    @property
    def source_path(self) -> str:
        """Plugin directory relative to the marketplace root."""
        path = self.source if isinstance(self.source, str) else ""
        path = path.removeprefix("./").strip("/")
        if not path or path == ".":
            return f"plugins/{self.name}"
        return path

    @classmethod
    def from_marketplace(cls, entry: MarketplacePlugin, marketplace: CatalogMarketplace) -> CatalogPlugin:
        return cls(
            name=entry.name,
            marketplace=marketplace.name,
            version=entry.version,
            description=entry.description,
            source=entry.source,
            marketplace_repo=marketplace.repo,
            marketplace_root=marketplace.root,
            has_lsp_servers=entry.has_lsp_servers,
        )


def github_repo_for(source: MarketplaceSource) -> str | None:
    """The ``owner/repo[#ref]`` a marketplace source points at, if on GitHub."""
    if source.source == "github" and source.repo:
        return source.repo
    url = source.repo or (source.model_extra or {}).get("url")
    if isinstance(url, str) and is_github_repo(url):
        try:
            return derive_source(url)
        except InvalidSourceError:
            return None
    return None


class PluginCatalog:
    """Lazily loaded view of every plugin in every marketplace."""

    def __init__(
        self,
        config: PlumConfig,
        merge: MergeEngine,
        cache: MarketplaceCache | None = None,
        fetch_manifest: ManifestFetcher | None = None,
        duplicate_policy: DuplicatePolicy | None = None,
    ):
        """Initialize the catalog.

        Args:
            config: Runtime configuration
            merge: Merged settings view (for extraKnownMarketplaces)
            cache: Manifest cache for remote marketplaces
            fetch_manifest: Fetches a remote manifest given ``owner/repo``
            duplicate_policy: Overrides config.duplicate_policy
        """
        self.config = config
        self.merge = merge
        self.cache = cache if cache is not None else MarketplaceCache(config.cache_dir)
        self._fetch_manifest = fetch_manifest or self._default_fetch
        self.duplicate_policy = duplicate_policy or config.duplicate_policy
        self.warnings: list[str] = []
        self._marketplaces: list[CatalogMarketplace] | None = None
        self._project_path: ProjectPath = None

    def _default_fetch(self, repo: str) -> MarketplaceManifest:
        return fetch_marketplace_manifest(
            repo, timeout=self.config.http_timeout, max_bytes=self.config.max_response_bytes
        )

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    # -------------------------------------------------------------------------
    # Marketplaces
    # -------------------------------------------------------------------------

    def marketplaces(self, project_path: ProjectPath = None) -> list[CatalogMarketplace]:
        """Get every readable marketplace, local ones first."""
        if self._marketplaces is not None and self._project_path == project_path:
            return self._marketplaces

        result: list[CatalogMarketplace] = []
        seen: set[str] = set()

        for name, entry in load_known_marketplaces(self.config.known_marketplaces_path).items():
            seen.add(name)
            root = Path(entry.install_location) if entry.install_location else None
            if root is None:
                self._warn(f"marketplace '{name}' has no install location, skipping")
                continue
            try:
                manifest = load_marketplace_manifest(root)
            except (FileNotFoundError, ConfigError) as e:
                self._warn(f"cannot read marketplace '{name}': {e}")
                continue
            result.append(
                CatalogMarketplace(name, manifest, repo=github_repo_for(entry.source), root=root)
            )

        for name, extra in self.merge.all_marketplaces(project_path).items():
            if name in seen:
                continue
            seen.add(name)
            repo = github_repo_for(extra.source)
            if repo is None:
                self._warn(f"marketplace '{name}' is not a GitHub repository, skipping")
                continue
            manifest = self._remote_manifest(name, repo)
            if manifest is not None:
                result.append(CatalogMarketplace(name, manifest, repo=repo))

        self._marketplaces = result
        self._project_path = project_path
        return result

    def _remote_manifest(self, name: str, repo: str) -> MarketplaceManifest | None:
        try:
            cached = self.cache.get(name)
        except InvalidMarketplaceNameError as e:
            self._warn(f"skipping marketplace: {e}")
            return None
        if cached is not None:
            return cached

        try:
            manifest = self._fetch_manifest(repo)
        except (FetchError, ConfigError) as e:
            self._warn(f"cannot fetch marketplace '{name}' from {repo}: {e}")
            return None
        try:
            self.cache.put(name, manifest, source=repo)
        except OSError as e:
            logger.debug("Could not cache marketplace %s: %s", name, e)
        return manifest

    # -------------------------------------------------------------------------
    # Plugins
    # -------------------------------------------------------------------------

    def all_plugins(self, project_path: ProjectPath = None) -> list[CatalogPlugin]:
        """Every plugin of every marketplace, deduplicated within a marketplace only."""
        plugins: list[CatalogPlugin] = []
        for marketplace in self.marketplaces(project_path):
            names: set[str] = set()
            for entry in marketplace.manifest.plugins:
                if entry.name in names:
                    continue
                names.add(entry.name)
                plugins.append(CatalogPlugin.from_marketplace(entry, marketplace))
        return plugins

    def plugins(self, project_path: ProjectPath = None) -> list[CatalogPlugin]:
        """Plugins visible to unqualified lookups under the duplicate policy."""
        plugins = self.all_plugins(project_path)
        if self.duplicate_policy == "keep-all":
            return plugins

        owners: dict[str, str] = {}
        visible: list[CatalogPlugin] = []
        for plugin in plugins:
            owner = owners.setdefault(plugin.name, plugin.marketplace)
            if owner != plugin.marketplace:
                logger.debug(
                    "Hiding %s: name already provided by marketplace %s", plugin.full_name, owner
                )
                continue
            visible.append(plugin)
        return visible

    def find(
        self,
        name: str,
        marketplace: str | None = None,
        project_path: ProjectPath = None,
        command: str = "install",
    ) -> CatalogPlugin:
        """Locate exactly one plugin.

        Args:
            name: Plugin name
            marketplace: Restrict the search to one marketplace
            project_path: Project directory for settings lookups
            command: Command name used in the ambiguity hint

        Raises:
            PluginNotFoundError: If nothing matches
            AmbiguousPluginError: If several marketplaces match an
                unqualified name
        """
        if marketplace:
            candidates = self.all_plugins(project_path)
            matches = [p for p in candidates if p.name == name and p.marketplace == marketplace]
        else:
            matches = [p for p in self.plugins(project_path) if p.name == name]

        if not matches:
            raise PluginNotFoundError(name, marketplace)
        if len(matches) > 1:
            raise AmbiguousPluginError(name, [p.full_name for p in matches], command)
        return matches[0]

    def latest_versions(self, project_path: ProjectPath = None) -> dict[str, str]:
        """Map of plugin identity to the version its marketplace offers."""
        return {p.full_name: p.version for p in self.all_plugins(project_path)}
