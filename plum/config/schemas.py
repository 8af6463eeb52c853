"""Pydantic schemas for Plum's configuration files.

This module defines the data models for:
- extraKnownMarketplaces entries inside settings.json
- installed_plugins_v2.json (plugin registry)
- known_marketplaces.json (marketplaces cloned by Claude Code)
- .claude-plugin/marketplace.json (marketplace catalog manifest)
- .claude-plugin/plugin.json (plugin manifest)
- PlumConfig (per-invocation runtime configuration)
"""

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# =============================================================================
# Common Types
# =============================================================================

ScopeName = Literal["managed", "user", "project", "local"]
DuplicatePolicy = Literal["first-wins", "keep-all"]

REGISTRY_VERSION = 2


# =============================================================================
# Settings File Models
# =============================================================================


class MarketplaceSource(BaseModel):
    """Where a marketplace lives, e.g. ``{"source": "github", "repo": "owner/repo"}``.

    Unknown keys are kept so sources written by other tools round-trip.
    """

    model_config = ConfigDict(extra="allow")

    source: str
    repo: str | None = None


class ExtraMarketplace(BaseModel):
    """An entry of ``extraKnownMarketplaces`` in a settings file."""

    model_config = ConfigDict(extra="allow")

    source: MarketplaceSource

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_unset=True)


# =============================================================================
# Registry Models
# =============================================================================


class PluginInstall(BaseModel):
    """One installation of a plugin into one scope."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    scope: str
    install_path: str = Field(alias="installPath")
    version: str = ""
    installed_at: str = Field(default="", alias="installedAt")
    last_updated: str = Field(default="", alias="lastUpdated")
    git_commit_sha: str = Field(default="", alias="gitCommitSha")
    is_local: bool = Field(default=False, alias="isLocal")
    project_path: str | None = Field(default=None, alias="projectPath")

    @field_validator("version", "installed_at", "last_updated", "git_commit_sha", mode="before")
    @classmethod
    def coerce_null_string(cls, v: Any) -> Any:
        """Read a null string field as empty."""
        return "" if v is None else v

    def to_json(self) -> dict[str, Any]:
        exclude = {"project_path"} if self.project_path is None else set()
        return self.model_dump(mode="json", by_alias=True, exclude=exclude)


class InstalledPlugins(BaseModel):
    """The installed_plugins_v2.json registry."""

    model_config = ConfigDict(extra="allow")

    version: int = REGISTRY_VERSION
    plugins: dict[str, list[PluginInstall]] = Field(default_factory=dict)

    def to_json(self) -> dict[str, Any]:
        data = self.model_dump(mode="json", by_alias=True, exclude={"plugins"})
        data["plugins"] = {
            name: [install.to_json() for install in installs]
            for name, installs in self.plugins.items()
        }
        return data


# =============================================================================
# Marketplace Models
# =============================================================================


class KnownMarketplaceEntry(BaseModel):
    """An entry of Claude Code's known_marketplaces.json."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    source: MarketplaceSource
    install_location: str = Field(default="", alias="installLocation")
    last_updated: str = Field(default="", alias="lastUpdated")


class Author(BaseModel):
    """Plugin or marketplace author."""

    model_config = ConfigDict(extra="allow")

    name: str = ""
    email: str = ""
    url: str = ""
    company: str = ""


class MarketplaceMetadata(BaseModel):
    """Marketplace-level metadata block."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    description: str = ""
    version: str = ""
    plugin_root: str = Field(default="", alias="pluginRoot")


class MarketplacePlugin(BaseModel):
    """A plugin listed in a marketplace manifest.

    ``source`` is usually a path relative to the marketplace root
    (``./plugins/foo``). An object source such as
    ``{"source": "url", "url": "https://..."}`` points at an external
    repository that cannot be installed from the marketplace.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str
    source: str | dict[str, Any] = ""
    description: str = ""
    version: str = ""
    author: Author = Field(default_factory=Author)
    category: str = ""
    homepage: str = ""
    repository: str = ""
    license: str = ""
    tags: list[str] = Field(default_factory=list)
    strict: bool = False
    lsp_servers: dict[str, Any] | None = Field(default=None, alias="lspServers")

    @field_validator("author", mode="before")
    @classmethod
    def coerce_author(cls, v: Any) -> Any:
        """Accept a bare author name string."""
        if isinstance(v, str):
            return {"name": v}
        if v is None:
            return {}
        return v

    @property
    def is_external_url(self) -> bool:
        return isinstance(self.source, dict)

    @property
    def has_lsp_servers(self) -> bool:
        return bool(self.lsp_servers)


class MarketplaceManifest(BaseModel):
    """A marketplace's .claude-plugin/marketplace.json."""

    model_config = ConfigDict(extra="allow")

    name: str = ""
    owner: Author = Field(default_factory=Author)
    metadata: MarketplaceMetadata = Field(default_factory=MarketplaceMetadata)
    plugins: list[MarketplacePlugin] = Field(default_factory=list)


class PluginManifest(BaseModel):
    """A plugin's .claude-plugin/plugin.json as far as installation needs it."""

    model_config = ConfigDict(extra="allow")

    name: str = ""
    version: str = ""
    description: str = ""
    commands: list[str] = Field(default_factory=list)
    hooks: list[str] = Field(default_factory=list)

    @field_validator("commands", "hooks", mode="before")
    @classmethod
    def coerce_file_list(cls, v: Any) -> Any:
        """Accept a single path or a missing list."""
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v


# =============================================================================
# Runtime Configuration
# =============================================================================


class PlumConfig(BaseModel):
    """Runtime configuration for one Plum invocation.

    Built once (see ``plum.config.parser.load_config``) and passed to every
    component explicitly.
    """

    model_config = ConfigDict(frozen=True)

    config_dir: Path
    cache_dir: Path
    project_path: str | None = None
    managed_settings_path: Path | None = None
    lock_timeout: float = 10.0
    lock_poll_interval: float = 0.05
    http_timeout: float = 30.0
    max_response_bytes: int = 10 * 1024 * 1024
    max_plugin_download_bytes: int = 50 * 1024 * 1024
    duplicate_policy: DuplicatePolicy = "first-wins"

    @property
    def plugins_dir(self) -> Path:
        return self.config_dir / "plugins"

    @property
    def installed_plugins_path(self) -> Path:
        return self.plugins_dir / "installed_plugins_v2.json"

    @property
    def known_marketplaces_path(self) -> Path:
        return self.plugins_dir / "known_marketplaces.json"

    @property
    def plugin_cache_root(self) -> Path:
        return self.plugins_dir / "cache"
