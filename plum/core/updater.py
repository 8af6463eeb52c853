"""Plugin updates.

An update reinstalls a plugin when its marketplace offers a newer version
than the registry records, into the scope the registry recorded for it.
"""

import logging
from dataclasses import dataclass, field

from plum.core.catalog import PluginCatalog
from plum.core.installer import InstallResult, PluginInstaller
from plum.core.registry import InstalledPluginsRegistry
from plum.settings.errors import InvalidScopeError, ManagedReadOnlyError
from plum.settings.merge import MergeEngine, filter_by_scope
from plum.settings.scopes import Scope, parse_scope, require_writable
from plum.settings.store import ProjectPath
from plum.utils.version import is_newer_version

logger = logging.getLogger(__name__)


@dataclass
class AvailableUpdate:
    """A plugin with a newer version available."""

    full_name: str
    current_version: str
    latest_version: str
    scope: Scope


@dataclass
class UpdateReport:
    """Result of an update run."""

    updates: list[AvailableUpdate] = field(default_factory=list)
    results: list[InstallResult] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if not r.success)


class PluginUpdater:
    """Finds and applies plugin updates."""

    def __init__(
        self,
        catalog: PluginCatalog,
        registry: InstalledPluginsRegistry,
        merge: MergeEngine,
        installer: PluginInstaller,
    ):
        self.catalog = catalog
        self.registry = registry
        self.merge = merge
        self.installer = installer

    def check(
        self,
        full_names: list[str] | None = None,
        scope: Scope | str | None = None,
        project_path: ProjectPath = None,
    ) -> UpdateReport:
        """Find available updates.

        Args:
            full_names: Plugins to check (default: every plugin in settings)
            scope: Only check plugins whose effective scope is this one
            project_path: Project directory for project/local scopes

        Returns:
            A report listing available updates
        """
        report = UpdateReport()
        if full_names is None:
            states = self.merge.merged_states(project_path)
            if scope is not None:
                states = filter_by_scope(states, parse_scope(scope))
            full_names = [s.full_name for s in states]

        installed = self.registry.load().plugins
        latest = self.catalog.latest_versions(project_path)

        for full_name in full_names:
            installs = installed.get(full_name, [])
            current = installs[0].version if installs else ""
            if full_name not in latest:
                message = f"{full_name} not found in any marketplace"
                logger.warning(message)
                report.warnings.append(message)
                continue

            candidate = latest[full_name]
            if current and not is_newer_version(candidate, current):
                logger.debug("%s is up to date (%s)", full_name, current)
                continue

            target = Scope.USER
            if installs:
                try:
                    target = parse_scope(installs[0].scope)
                except InvalidScopeError:
                    logger.debug("Unknown scope %r recorded for %s", installs[0].scope, full_name)
            report.updates.append(AvailableUpdate(full_name, current, candidate, target))
        return report

    def update(
        self,
        full_names: list[str] | None = None,
        scope: Scope | str | None = None,
        project_path: ProjectPath = None,
        dry_run: bool = False,
    ) -> UpdateReport:
        """Check for updates and install them unless dry_run.

        A failed update is recorded in the report and does not stop the
        remaining ones.
        """
        report = self.check(full_names, scope, project_path)
        if dry_run:
            return report

        for update in report.updates:
            try:
                require_writable(update.scope)
            except ManagedReadOnlyError as e:
                report.results.append(InstallResult(update.full_name, "", False, str(e)))
                continue
            logger.info("Updating %s to %s", update.full_name, update.latest_version)
            summary = self.installer.install([update.full_name], update.scope, project_path)
            report.results.extend(summary.results)
        return report
