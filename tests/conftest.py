"""Shared fixtures for Plum tests."""

import json
import shutil
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

from plum.config.parser import load_config
from plum.config.schemas import PlumConfig
from plum.core.catalog import PluginCatalog
from plum.core.registry import InstalledPluginsRegistry
from plum.marketplace.cache import MarketplaceCache
from plum.settings.merge import MergeEngine
from plum.settings.scopes import ScopeResolver
from plum.settings.store import SettingsStore


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory."""
    path = Path(tempfile.mkdtemp(prefix="plum_test_"))
    yield path
    if path.exists():
        shutil.rmtree(path)


@pytest.fixture(autouse=True)
def isolated_environment(temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep every test away from the real ~/.claude and /etc/claude-code."""
    monkeypatch.setenv("CLAUDE_CONFIG_DIR", str(temp_dir / "claude"))
    monkeypatch.setattr(
        "plum.config.paths.managed_settings_path",
        lambda env=None: temp_dir / "managed" / "settings.json",
    )


@pytest.fixture
def config_dir(temp_dir: Path) -> Path:
    """Claude configuration directory."""
    path = temp_dir / "claude"
    path.mkdir(exist_ok=True)
    return path


@pytest.fixture
def project_dir(temp_dir: Path) -> Path:
    """A project directory for project/local scopes."""
    path = temp_dir / "project"
    path.mkdir()
    return path


@pytest.fixture
def plum_config(config_dir: Path, temp_dir: Path) -> PlumConfig:
    """Runtime configuration pointing at the temporary directories."""
    return load_config(
        config_dir=config_dir,
        cache_dir=temp_dir / "plum-cache",
        managed_settings_path=temp_dir / "managed" / "settings.json",
        lock_timeout=2.0,
    )


@pytest.fixture
def resolver(plum_config: PlumConfig) -> ScopeResolver:
    return ScopeResolver(plum_config.config_dir, plum_config.managed_settings_path)


@pytest.fixture
def store(resolver: ScopeResolver, plum_config: PlumConfig) -> SettingsStore:
    return SettingsStore(resolver, lock_timeout=plum_config.lock_timeout)


@pytest.fixture
def merge(resolver: ScopeResolver) -> MergeEngine:
    return MergeEngine(resolver)


@pytest.fixture
def registry(plum_config: PlumConfig) -> InstalledPluginsRegistry:
    return InstalledPluginsRegistry(plum_config.installed_plugins_path, lock_timeout=2.0)


def write_json(path: Path, data: object) -> Path:
    """Write JSON test data, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n")
    return path


def read_json(path: Path) -> object:
    return json.loads(path.read_text())


def make_marketplace(root: Path, name: str, plugins: dict[str, dict]) -> Path:
    """Create a local marketplace checkout.

    Args:
        root: Directory to create the marketplace in
        name: Marketplace name
        plugins: Plugin name -> {"version", "commands": {path: text}, "hooks": {path: text}}

    Returns:
        The marketplace root
    """
    market_root = root / name
    entries = []
    for plugin_name, spec in plugins.items():
        plugin_dir = market_root / "plugins" / plugin_name
        commands = spec.get("commands", {})
        hooks = spec.get("hooks", {})
        manifest = {
            "name": plugin_name,
            "version": spec.get("version", "1.0.0"),
            "description": f"{plugin_name} plugin",
            "commands": list(commands),
            "hooks": list(hooks),
        }
        write_json(plugin_dir / ".claude-plugin" / "plugin.json", manifest)
        for rel, text in {**commands, **hooks}.items():
            target = plugin_dir / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text)
        entry = {
            "name": plugin_name,
            "source": f"./plugins/{plugin_name}",
            "version": spec.get("version", "1.0.0"),
            "description": f"{plugin_name} plugin",
        }
        entry.update(spec.get("entry", {}))
        entries.append(entry)

    write_json(
        market_root / ".claude-plugin" / "marketplace.json",
        {"name": name, "owner": {"name": "Test"}, "plugins": entries},
    )
    return market_root


@pytest.fixture
def marketplaces(temp_dir: Path, plum_config: PlumConfig) -> dict[str, Path]:
    """Two local marketplaces registered in known_marketplaces.json.

    ``alpha`` offers ``formatter`` and ``shared``; ``beta`` offers
    ``linter`` and ``shared``.
    """
    checkout_root = temp_dir / "marketplaces"
    alpha = make_marketplace(
        checkout_root,
        "alpha",
        {
            "formatter": {
                "version": "1.2.0",
                "commands": {"commands/format.md": "# Format\n"},
                "hooks": {"hooks/pre-save.sh": "#!/bin/sh\necho pre-save\n"},
            },
            "shared": {"version": "1.0.0"},
        },
    )
    beta = make_marketplace(
        checkout_root,
        "beta",
        {
            "linter": {"version": "0.3.0", "commands": {"commands/lint.md": "# Lint\n"}},
            "shared": {"version": "2.0.0"},
        },
    )
    write_json(
        plum_config.known_marketplaces_path,
        {
            "alpha": {
                "source": {"source": "github", "repo": "example/alpha"},
                "installLocation": str(alpha),
                "lastUpdated": "2026-01-01T00:00:00Z",
            },
            "beta": {
                "source": {"source": "github", "repo": "example/beta"},
                "installLocation": str(beta),
                "lastUpdated": "2026-01-01T00:00:00Z",
            },
        },
    )
    return {"alpha": alpha, "beta": beta}


@pytest.fixture
def catalog(plum_config: PlumConfig, merge: MergeEngine) -> PluginCatalog:
    """Catalog that never goes to the network."""

    def no_network(repo: str):
        raise AssertionError(f"unexpected fetch of {repo}")

    return PluginCatalog(
        plum_config, merge, MarketplaceCache(plum_config.cache_dir), fetch_manifest=no_network
    )
