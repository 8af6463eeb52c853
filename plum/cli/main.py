"""Main CLI application for Plum."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from plum import __version__
from plum.config.parser import ConfigError, load_config, load_known_marketplaces
from plum.config.schemas import PlumConfig
from plum.core.catalog import PluginCatalog, github_repo_for
from plum.core.errors import InstallError
from plum.core.installer import InstallSummary, PluginInstaller
from plum.core.registry import InstalledPluginsRegistry
from plum.core.remover import PluginRemover
from plum.core.resolver import resolve_plugin_full_name
from plum.core.updater import PluginUpdater
from plum.marketplace.cache import InvalidMarketplaceNameError, MarketplaceCache
from plum.marketplace.source import InvalidSourceError, parse_marketplace_arg
from plum.settings.errors import LockTimeoutError, ManagedReadOnlyError
from plum.settings.merge import MergeEngine, filter_by_scope, filter_disabled, filter_enabled
from plum.settings.scopes import ScopeResolver, parse_scope
from plum.settings.store import SettingsStore

# Create the main Typer app
app = typer.Typer(
    name="plum",
    help="Manage Claude Code plugins and marketplaces across settings scopes",
    add_completion=False,
    no_args_is_help=True,
)
marketplace_app = typer.Typer(help="Manage marketplaces", no_args_is_help=True)
app.add_typer(marketplace_app, name="marketplace")

console = Console()
error_console = Console(stderr=True)

# Set up logger for the plum package
logger = logging.getLogger("plum")

# Errors reported to the user as a single line and exit code 1
PLUM_ERRORS = (
    ConfigError,
    ManagedReadOnlyError,
    LockTimeoutError,
    InstallError,
    InvalidSourceError,
    InvalidMarketplaceNameError,
    OSError,
)

ScopeOption = Annotated[
    str,
    typer.Option("--scope", "-s", help="Target scope (user, project, local)"),
]
ProjectOption = Annotated[
    str | None,
    typer.Option("--project", help="Project path (default: current directory)"),
]


def setup_logging(verbosity: int) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbosity: 0=WARNING, 1=INFO, 2+=DEBUG (3+ also shows source paths)
    """
    if verbosity == 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logger.setLevel(level)

    # Only add handler if not already configured
    if not logger.handlers:
        handler = RichHandler(
            console=error_console,
            show_time=verbosity >= 2,
            show_path=verbosity >= 3,
            rich_tracebacks=True,
        )
        handler.setLevel(level)
        logger.addHandler(handler)
    else:
        for h in logger.handlers:
            h.setLevel(level)


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    error_console.print(f"[red]Error:[/red] {message}", highlight=False)


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}", highlight=False)


def print_warning(message: str) -> None:
    """Print a warning message."""
    error_console.print(f"[yellow]⚠[/yellow] {message}", highlight=False)


@dataclass
class Services:
    """Components wired for one invocation."""

    config: PlumConfig
    resolver: ScopeResolver
    store: SettingsStore
    merge: MergeEngine
    registry: InstalledPluginsRegistry

    @classmethod
    def from_config(cls, config: PlumConfig) -> "Services":
        resolver = ScopeResolver(config.config_dir, config.managed_settings_path)
        return cls(
            config=config,
            resolver=resolver,
            store=SettingsStore(resolver, config.lock_timeout, config.lock_poll_interval),
            merge=MergeEngine(resolver),
            registry=InstalledPluginsRegistry(
                config.installed_plugins_path, config.lock_timeout, config.lock_poll_interval
            ),
        )

    def catalog(self) -> PluginCatalog:
        return PluginCatalog(self.config, self.merge, MarketplaceCache(self.config.cache_dir))

    def installer(self, catalog: PluginCatalog | None = None) -> PluginInstaller:
        return PluginInstaller(self.config, catalog or self.catalog(), self.store, self.registry)


def get_services(ctx: typer.Context, project: str | None = None) -> Services:
    """Build the components for this invocation from the callback's config."""
    config: PlumConfig = ctx.obj
    if project is not None:
        config = config.model_copy(update={"project_path": project})
    return Services.from_config(config)


@app.callback()
def callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            count=True,
            help="Increase verbosity (-v info, -vv debug, -vvv debug with paths)",
        ),
    ] = 0,
    config_dir: Annotated[
        Path | None,
        typer.Option(
            "--config-dir",
            help="Claude configuration directory (default: $CLAUDE_CONFIG_DIR or ~/.claude)",
        ),
    ] = None,
    duplicate_policy: Annotated[
        str,
        typer.Option(
            "--duplicates",
            help="How to treat a plugin name published by several marketplaces "
            "(first-wins, keep-all)",
        ),
    ] = "first-wins",
) -> None:
    """Plum - plugin manager for Claude Code."""
    setup_logging(verbose)
    try:
        ctx.obj = load_config(config_dir=config_dir, duplicate_policy=duplicate_policy)
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(1) from e


@app.command()
def version() -> None:
    """Show the Plum version."""
    console.print(f"plum {__version__}")


def _print_install_summary(summary: InstallSummary) -> None:
    for result in summary.results:
        if result.success:
            print_success(result.message)
            for warning in result.warnings:
                print_warning(f"  {warning}")
        else:
            print_error(f"Failed to install {result.plugin_name}: {result.message}")


@app.command()
def install(
    ctx: typer.Context,
    plugins: Annotated[
        list[str],
        typer.Argument(help="Plugins to install ('plugin-name' or 'plugin-name@marketplace')"),
    ],
    scope: ScopeOption = "user",
    project: ProjectOption = None,
) -> None:
    """Install plugins from configured marketplaces.

    Downloads each plugin into the plugin cache, records it in the install
    registry and enables it in the target scope.
    """
    services = get_services(ctx, project)
    try:
        summary = services.installer().install(plugins, scope, services.config.project_path)
    except PLUM_ERRORS as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    _print_install_summary(summary)
    if not summary.all_successful:
        raise typer.Exit(1)


@app.command()
def remove(
    ctx: typer.Context,
    plugin: Annotated[str, typer.Argument(help="Plugin to remove")],
    scope: ScopeOption = "user",
    project: ProjectOption = None,
    all_scopes: Annotated[
        bool,
        typer.Option("--all", help="Remove from all writable scopes"),
    ] = False,
    keep_cache: Annotated[
        bool,
        typer.Option("--keep-cache", help="Keep cached plugin files"),
    ] = False,
) -> None:
    """Remove a plugin from a scope.

    Once no scope references the plugin, its cached files and registry entry
    are deleted too.
    """
    services = get_services(ctx, project)
    project_path = services.config.project_path
    try:
        full_name = resolve_plugin_full_name(
            plugin, services.registry, services.merge, project_path, command="remove"
        )
        remover = PluginRemover(services.config, services.store, services.merge, services.registry)
        result = remover.remove(
            full_name, scope, project_path, all_scopes=all_scopes, keep_cache=keep_cache
        )
    except PLUM_ERRORS as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    for removed_scope in result.removed_scopes:
        print_success(f"Removed {full_name} from {removed_scope} scope")
    if not result.removed:
        where = "any writable scope" if all_scopes else f"{scope} scope"
        console.print(f"Plugin {full_name} was not found in {where}")
    if result.cache_deleted:
        console.print("Deleted cached plugin files")
    for warning in result.warnings:
        print_warning(warning)


def _set_enabled(ctx: typer.Context, plugin: str, enabled: bool, scope: str, project: str | None) -> None:
    services = get_services(ctx, project)
    project_path = services.config.project_path
    command = "enable" if enabled else "disable"
    try:
        target = parse_scope(scope)
        full_name = resolve_plugin_full_name(
            plugin, services.registry, services.merge, project_path, command=command
        )
        services.store.set_plugin_enabled(full_name, enabled, target, project_path)
    except PLUM_ERRORS as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    print_success(f"{'Enabled' if enabled else 'Disabled'} {full_name} in {target} scope")


@app.command()
def enable(
    ctx: typer.Context,
    plugin: Annotated[str, typer.Argument(help="Plugin to enable")],
    scope: ScopeOption = "user",
    project: ProjectOption = None,
) -> None:
    """Enable a plugin in a scope."""
    _set_enabled(ctx, plugin, True, scope, project)


@app.command()
def disable(
    ctx: typer.Context,
    plugin: Annotated[str, typer.Argument(help="Plugin to disable")],
    scope: ScopeOption = "user",
    project: ProjectOption = None,
) -> None:
    """Disable a plugin in a scope.

    The plugin stays installed; a disabled entry in a higher-precedence
    scope overrides an enabled one below it.
    """
    _set_enabled(ctx, plugin, False, scope, project)


@app.command()
def update(
    ctx: typer.Context,
    plugins: Annotated[
        list[str] | None,
        typer.Argument(help="Plugins to update (default: all)"),
    ] = None,
    scope: Annotated[
        str | None,
        typer.Option("--scope", "-s", help="Only update plugins in this scope"),
    ] = None,
    project: ProjectOption = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Check for updates without installing"),
    ] = False,
) -> None:
    """Update plugins to the latest marketplace versions."""
    services = get_services(ctx, project)
    project_path = services.config.project_path
    try:
        full_names = None
        if plugins:
            full_names = [
                resolve_plugin_full_name(p, services.registry, services.merge, project_path, "update")
                for p in plugins
            ]
        catalog = services.catalog()
        updater = PluginUpdater(catalog, services.registry, services.merge, services.installer(catalog))
        report = updater.update(full_names, scope, project_path, dry_run=dry_run)
    except PLUM_ERRORS as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    for warning in report.warnings:
        print_warning(warning)
    if not report.updates:
        console.print("All plugins are up to date")
        return

    console.print(f"Found {len(report.updates)} update(s):")
    for u in report.updates:
        current = u.current_version or "(not installed)"
        console.print(f"  {u.full_name}: {current} → {u.latest_version}", highlight=False)

    if dry_run:
        console.print("\nRun without --dry-run to install updates")
        return

    _print_install_summary(InstallSummary(report.results))
    if report.failure_count:
        raise typer.Exit(1)


@app.command("list")
def list_plugins(
    ctx: typer.Context,
    scope: Annotated[
        str | None,
        typer.Option("--scope", "-s", help="Only show plugins decided by this scope"),
    ] = None,
    enabled: Annotated[bool, typer.Option("--enabled", help="Only show enabled plugins")] = False,
    disabled: Annotated[bool, typer.Option("--disabled", help="Only show disabled plugins")] = False,
    as_json: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
    project: ProjectOption = None,
) -> None:
    """List plugins and their effective state across scopes."""
    services = get_services(ctx, project)
    project_path = services.config.project_path
    try:
        states = services.merge.merged_states(project_path)
        if scope:
            states = filter_by_scope(states, parse_scope(scope))
        if enabled:
            states = filter_enabled(states)
        if disabled:
            states = filter_disabled(states)
        installed = services.registry.load().plugins
    except PLUM_ERRORS as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    rows = []
    for state in states:
        installs = installed.get(state.full_name, [])
        rows.append(
            {
                "name": state.full_name,
                "enabled": state.enabled,
                "scope": state.scope.value,
                "version": installs[0].version if installs else "",
                "installed": bool(installs),
            }
        )

    if as_json:
        typer.echo(json.dumps(rows, indent=2))
        return

    if not rows:
        console.print("No plugins configured")
        return

    table = Table(title="Plugins")
    table.add_column("Plugin", style="cyan")
    table.add_column("State")
    table.add_column("Scope", style="dim")
    table.add_column("Version", style="green")
    for row in rows:
        state_text = "[green]enabled[/green]" if row["enabled"] else "[yellow]disabled[/yellow]"
        table.add_row(row["name"], state_text, row["scope"], row["version"] or "-")
    console.print(table)


@marketplace_app.command("add")
def marketplace_add(
    ctx: typer.Context,
    repo: Annotated[str, typer.Argument(help="GitHub repository (owner/repo or owner/repo#ref)")],
    scope: ScopeOption = "user",
    project: ProjectOption = None,
) -> None:
    """Add a GitHub marketplace to a scope's extraKnownMarketplaces."""
    services = get_services(ctx, project)
    try:
        name, entry = parse_marketplace_arg(repo)
        services.store.add_marketplace(name, entry, scope, services.config.project_path)
    except PLUM_ERRORS as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    print_success(f"Added marketplace '{name}' ({entry.source.repo}) to {scope} scope")


@marketplace_app.command("remove")
def marketplace_remove(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Marketplace name")],
    scope: ScopeOption = "user",
    project: ProjectOption = None,
) -> None:
    """Remove a marketplace from a scope's extraKnownMarketplaces.

    Plugins installed from the marketplace are left alone.
    """
    services = get_services(ctx, project)
    try:
        removed = services.store.remove_marketplace(name, scope, services.config.project_path)
    except PLUM_ERRORS as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    if not removed:
        print_error(f"marketplace '{name}' not found in {scope} scope")
        raise typer.Exit(1)
    print_success(f"Removed marketplace '{name}' from {scope} scope")


@marketplace_app.command("list")
def marketplace_list(
    ctx: typer.Context,
    project: ProjectOption = None,
) -> None:
    """List known and configured marketplaces."""
    services = get_services(ctx, project)
    try:
        known = load_known_marketplaces(services.config.known_marketplaces_path)
        extra = services.merge.all_marketplaces(services.config.project_path)
    except PLUM_ERRORS as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    if not known and not extra:
        console.print("No marketplaces configured")
        return

    table = Table(title="Marketplaces")
    table.add_column("Name", style="cyan")
    table.add_column("Source")
    table.add_column("Origin", style="dim")
    for name, entry in known.items():
        table.add_row(name, github_repo_for(entry.source) or entry.source.source, "known")
    for name, marketplace in extra.items():
        if name in known:
            continue
        table.add_row(name, github_repo_for(marketplace.source) or marketplace.source.source, "settings")
    console.print(table)


@marketplace_app.command("refresh")
def marketplace_refresh(
    ctx: typer.Context,
    name: Annotated[
        str | None,
        typer.Argument(help="Marketplace to refresh (default: all)"),
    ] = None,
) -> None:
    """Clear cached marketplace manifests so they are fetched again."""
    config: PlumConfig = ctx.obj
    try:
        count = MarketplaceCache(config.cache_dir).clear(name)
    except PLUM_ERRORS as e:
        print_error(str(e))
        raise typer.Exit(1) from e
    print_success(f"Cleared {count} cached marketplace(s)")


if __name__ == "__main__":
    app()
