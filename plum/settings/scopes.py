"""Settings scopes and their file locations.

Precedence, highest first: managed > local > project > user. The managed
scope is written by administrators and is never modified by Plum.
"""

import os
from enum import Enum
from pathlib import Path

from plum.config import paths
from plum.settings.errors import InvalidScopeError, ManagedReadOnlyError


class Scope(str, Enum):
    """A settings layer."""

    MANAGED = "managed"
    USER = "user"
    PROJECT = "project"
    LOCAL = "local"

    def __str__(self) -> str:
        return self.value


# Highest precedence first
ALL_SCOPES: tuple[Scope, ...] = (Scope.MANAGED, Scope.LOCAL, Scope.PROJECT, Scope.USER)

WRITABLE_SCOPES: tuple[Scope, ...] = (Scope.LOCAL, Scope.PROJECT, Scope.USER)


def parse_scope(value: str | Scope) -> Scope:
    """Parse a scope name.

    Raises:
        InvalidScopeError: If the value is not a known scope
    """
    if isinstance(value, Scope):
        return value
    try:
        return Scope(value.strip().lower())
    except ValueError:
        raise InvalidScopeError(value) from None


def normalize_project_path(project_path: str | os.PathLike[str] | None) -> Path:
    """Resolve a project path to an absolute, normalized path.

    An empty or missing value means the current working directory.
    """
    if not project_path:
        return Path(os.getcwd())
    return Path(os.path.normpath(os.path.abspath(project_path)))


def is_writable(scope: Scope) -> bool:
    return scope is not Scope.MANAGED


def require_writable(scope: Scope) -> None:
    """Raise ManagedReadOnlyError for the managed scope."""
    if not is_writable(scope):
        raise ManagedReadOnlyError()


class ScopeResolver:
    """Maps scopes to settings file paths.

    The resolver only computes paths; it never touches the filesystem.
    """

    def __init__(self, config_dir: Path, managed_path: Path | None = None):
        """Initialize the resolver.

        Args:
            config_dir: Claude configuration directory holding user settings
            managed_path: Override for the platform managed settings path
        """
        self.config_dir = config_dir
        self._managed_path = managed_path

    @property
    def managed_path(self) -> Path:
        return self._managed_path or paths.managed_settings_path()

    def resolve(self, scope: Scope | str, project_path: str | os.PathLike[str] | None = None) -> Path:
        """Get the settings file for a scope.

        Args:
            scope: Scope to resolve
            project_path: Project directory for project/local scopes
                (defaults to the current working directory)

        Returns:
            Absolute settings file path

        Raises:
            InvalidScopeError: If the scope is unknown
        """
        scope = parse_scope(scope)
        if scope is Scope.MANAGED:
            return self.managed_path
        if scope is Scope.USER:
            return self.config_dir / "settings.json"

        project_dir = normalize_project_path(project_path) / ".claude"
        if scope is Scope.PROJECT:
            return project_dir / "settings.json"
        return project_dir / "settings.local.json"

    def is_writable(self, scope: Scope | str) -> bool:
        return is_writable(parse_scope(scope))
