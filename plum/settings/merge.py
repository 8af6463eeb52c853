"""Effective plugin and marketplace configuration across all scopes.

Scopes are walked from highest to lowest precedence
(managed, local, project, user). The first scope that mentions a key decides
its value, even when that value is ``false``. Scopes whose file cannot be
read are skipped. Nothing here takes a lock: every file is only ever
replaced atomically, so a read sees either the old or the new contents.
"""

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from plum.config.parser import ConfigError
from plum.config.schemas import ExtraMarketplace
from plum.settings.document import SettingsDocument
from plum.settings.scopes import ALL_SCOPES, Scope, ScopeResolver
from plum.settings.store import ProjectPath

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PluginState:
    """A plugin's effective enablement and the scope that decided it."""

    full_name: str
    enabled: bool
    scope: Scope

    @property
    def name(self) -> str:
        return self.full_name.partition("@")[0]

    @property
    def marketplace(self) -> str:
        return self.full_name.partition("@")[2]


class MergeEngine:
    """Read-only, precedence-resolved view of all scopes."""

    def __init__(self, resolver: ScopeResolver):
        self.resolver = resolver

    def _documents(self, project_path: ProjectPath) -> Iterator[tuple[Scope, SettingsDocument]]:
        for scope in ALL_SCOPES:
            path = self.resolver.resolve(scope, project_path)
            try:
                doc = SettingsDocument.load(path)
            except (ConfigError, OSError) as e:
                logger.warning("Skipping %s settings (%s): %s", scope, path, e)
                continue
            yield scope, doc

    def merged_states(self, project_path: ProjectPath = None) -> list[PluginState]:
        """Get every plugin mentioned in any scope with its effective state.

        Results are ordered by the scope that decided them (highest first),
        then by first appearance within that scope's file.
        """
        seen: set[str] = set()
        states: list[PluginState] = []
        for scope, doc in self._documents(project_path):
            for full_name, enabled in doc.enabled_plugins.items():
                if full_name in seen:
                    continue
                seen.add(full_name)
                states.append(PluginState(full_name, enabled, scope))
        return states

    def get_plugin_state(self, full_name: str, project_path: ProjectPath = None) -> PluginState | None:
        """Get one plugin's effective state, or None if no scope mentions it."""
        for scope, doc in self._documents(project_path):
            enabled = doc.plugin_enabled(full_name)
            if enabled is not None:
                return PluginState(full_name, enabled, scope)
        return None

    def all_marketplaces(self, project_path: ProjectPath = None) -> dict[str, ExtraMarketplace]:
        """Get extra marketplaces from all scopes, higher precedence first."""
        marketplaces: dict[str, ExtraMarketplace] = {}
        for _scope, doc in self._documents(project_path):
            for name, entry in doc.extra_known_marketplaces.items():
                marketplaces.setdefault(name, entry)
        return marketplaces


def filter_by_scope(states: Iterable[PluginState], scope: Scope) -> list[PluginState]:
    return [s for s in states if s.scope is scope]


def filter_enabled(states: Iterable[PluginState]) -> list[PluginState]:
    return [s for s in states if s.enabled]


def filter_disabled(states: Iterable[PluginState]) -> list[PluginState]:
    return [s for s in states if not s.enabled]
