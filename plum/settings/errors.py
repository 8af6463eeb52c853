"""Errors raised by the settings layer."""

from pathlib import Path

from plum.config.parser import ConfigError


class InvalidScopeError(ConfigError):
    """Scope string is not one of managed, user, project or local."""

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"invalid scope '{value}': must be managed, user, project, or local")


class InvalidPluginNameError(ConfigError):
    """Plugin identity is not of the form ``name@marketplace``."""

    def __init__(self, full_name: str, path: Path | None = None):
        self.full_name = full_name
        super().__init__(
            f"invalid plugin name '{full_name}': expected plugin@marketplace", path
        )


class MalformedSettingsError(ConfigError):
    """A settings file exists but does not have the expected structure."""


class SettingsLimitError(ConfigError):
    """A settings file exceeds the size or entry-count limits."""


class ManagedReadOnlyError(Exception):
    """Attempted to modify the administrator-managed scope."""

    def __init__(self) -> None:
        super().__init__("managed scope is read-only")


class LockTimeoutError(TimeoutError):
    """Could not acquire a file lock before the deadline."""

    def __init__(self, path: Path, timeout: float):
        self.path = path
        self.timeout = timeout
        super().__init__(f"timeout waiting for lock on {path} after {timeout:g}s")
