"""The per-scope settings.json document.

Plum manages two top-level keys of a settings file:

- ``enabledPlugins``: ``{"plugin@marketplace": true | false}``
- ``extraKnownMarketplaces``: ``{"name": {"source": {"source": ..., "repo": ...}}}``

Every other top-level key (``permissions``, ``hooks``, ``model`` and anything
added by future Claude Code versions) is kept in an opaque bag and written
back unchanged, in its original position. The managed key names are reserved:
a bag entry stored under one of them is never written, so the managed maps
always win a collision.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from plum.config.parser import ConfigError, dump_json, parse_json
from plum.config.schemas import ExtraMarketplace
from plum.settings.errors import InvalidPluginNameError, MalformedSettingsError, SettingsLimitError

logger = logging.getLogger(__name__)

ENABLED_PLUGINS_KEY = "enabledPlugins"
EXTRA_MARKETPLACES_KEY = "extraKnownMarketplaces"
MANAGED_KEYS = frozenset({ENABLED_PLUGINS_KEY, EXTRA_MARKETPLACES_KEY})

MAX_SETTINGS_FILE_SIZE = 10 * 1024 * 1024
MAX_PLUGIN_ENTRIES = 10_000
MAX_MARKETPLACE_ENTRIES = 1_000


def split_plugin_identity(full_name: str) -> tuple[str, str]:
    """Split ``name@marketplace`` into its parts.

    Raises:
        InvalidPluginNameError: Unless there is exactly one ``@`` with a
            non-empty name on each side
    """
    name, sep, marketplace = full_name.partition("@")
    if not sep or not name or not marketplace or "@" in marketplace:
        raise InvalidPluginNameError(full_name)
    return name, marketplace


def validate_plugin_identity(full_name: str) -> str:
    split_plugin_identity(full_name)
    return full_name


@dataclass
class SettingsDocument:
    """In-memory model of one scope's settings file."""

    enabled_plugins: dict[str, bool] = field(default_factory=dict)
    extra_known_marketplaces: dict[str, ExtraMarketplace] = field(default_factory=dict)
    unmanaged_fields: dict[str, Any] = field(default_factory=dict)
    path: Path | None = None
    _key_order: list[str] = field(default_factory=list, repr=False)

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    @classmethod
    def load(cls, path: Path) -> SettingsDocument:
        """Load a settings file.

        A missing file yields an empty document.

        Raises:
            SettingsLimitError: If the file exceeds the size or entry limits
            MalformedSettingsError: If the file is not a valid settings object
            ConfigError: If the file cannot be read
        """
        try:
            size = path.stat().st_size
        except FileNotFoundError:
            return cls(path=path)
        except OSError as e:
            raise ConfigError(f"Cannot read {path}: {e}", path) from e

        if size > MAX_SETTINGS_FILE_SIZE:
            raise SettingsLimitError(
                f"settings file too large: {size} bytes (max {MAX_SETTINGS_FILE_SIZE})", path
            )

        try:
            data = path.read_bytes()
        except OSError as e:
            raise ConfigError(f"Cannot read {path}: {e}", path) from e
        return cls.parse(data, path)

    @classmethod
    def parse(cls, data: bytes | str, path: Path | None = None) -> SettingsDocument:
        """Parse settings JSON.

        Raises:
            SettingsLimitError: If the payload exceeds the size or entry limits
            MalformedSettingsError: If the payload is not a valid settings object
        """
        if len(data) > MAX_SETTINGS_FILE_SIZE:
            raise SettingsLimitError(
                f"settings file too large: {len(data)} bytes (max {MAX_SETTINGS_FILE_SIZE})", path
            )
        where = path or "settings"

        if isinstance(data, bytes):
            try:
                data = data.decode("utf-8-sig")
            except UnicodeDecodeError as e:
                raise MalformedSettingsError(f"Invalid UTF-8 in {where}: {e}", path) from e
        if not data.strip():
            return cls(path=path)

        try:
            raw = parse_json(data)
        except ValueError as e:
            raise MalformedSettingsError(f"Invalid JSON in {where}: {e}", path) from e
        if not isinstance(raw, dict):
            raise MalformedSettingsError(f"{where} must contain a JSON object", path)

        doc = cls(path=path, _key_order=list(raw))
        for key, value in raw.items():
            if key == ENABLED_PLUGINS_KEY:
                doc.enabled_plugins = _parse_enabled_plugins(value, path)
            elif key == EXTRA_MARKETPLACES_KEY:
                doc.extra_known_marketplaces = _parse_marketplaces(value, path)
            else:
                doc.unmanaged_fields[key] = value
        return doc

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_json(self) -> dict[str, Any]:
        """Build the JSON object to write.

        Keys keep their original positions; keys added since loading follow.
        Empty managed maps are omitted.
        """
        managed: dict[str, Any] = {}
        if self.enabled_plugins:
            managed[ENABLED_PLUGINS_KEY] = dict(self.enabled_plugins)
        if self.extra_known_marketplaces:
            managed[EXTRA_MARKETPLACES_KEY] = {
                name: entry.to_json() for name, entry in self.extra_known_marketplaces.items()
            }

        result: dict[str, Any] = {}
        for key in [*self._key_order, *managed, *self.unmanaged_fields]:
            if key in result:
                continue
            if key in MANAGED_KEYS:
                if key in managed:
                    result[key] = managed[key]
            elif key in self.unmanaged_fields:
                result[key] = self.unmanaged_fields[key]
        return result

    def serialize(self) -> bytes:
        """Serialize to JSON bytes (without the trailing newline)."""
        return dump_json(self.to_json())

    # -------------------------------------------------------------------------
    # In-memory mutation
    # -------------------------------------------------------------------------

    def set_plugin_enabled(self, full_name: str, enabled: bool) -> bool:
        """Record a plugin's enabled flag.

        Returns:
            True if the document changed

        Raises:
            InvalidPluginNameError: If full_name is not ``name@marketplace``
            SettingsLimitError: If adding the entry would exceed the limit
        """
        validate_plugin_identity(full_name)
        current = self.enabled_plugins.get(full_name)
        if current is not None and current == enabled:
            return False
        if current is None and len(self.enabled_plugins) >= MAX_PLUGIN_ENTRIES:
            raise SettingsLimitError(
                f"too many enabled plugins: cannot exceed {MAX_PLUGIN_ENTRIES}", self.path
            )
        self.enabled_plugins[full_name] = bool(enabled)
        return True

    def remove_plugin(self, full_name: str) -> bool:
        """Forget a plugin in this scope. Returns True if it was present."""
        validate_plugin_identity(full_name)
        return self.enabled_plugins.pop(full_name, None) is not None

    def add_marketplace(self, name: str, entry: ExtraMarketplace) -> bool:
        """Add or replace an extra marketplace.

        Returns:
            True if the document changed

        Raises:
            ConfigError: If the name is empty
            SettingsLimitError: If adding the entry would exceed the limit
        """
        if not name:
            raise ConfigError("marketplace name cannot be empty", self.path)
        existing = self.extra_known_marketplaces.get(name)
        if existing is not None and existing.to_json() == entry.to_json():
            return False
        if existing is None and len(self.extra_known_marketplaces) >= MAX_MARKETPLACE_ENTRIES:
            raise SettingsLimitError(
                f"too many marketplaces: cannot exceed {MAX_MARKETPLACE_ENTRIES}", self.path
            )
        self.extra_known_marketplaces[name] = entry
        return True

    def remove_marketplace(self, name: str) -> bool:
        """Remove an extra marketplace. Returns True if it was present."""
        return self.extra_known_marketplaces.pop(name, None) is not None

    def plugin_enabled(self, full_name: str) -> bool | None:
        """This scope's opinion on a plugin, or None if it has none."""
        return self.enabled_plugins.get(full_name)


def _parse_enabled_plugins(value: Any, path: Path | None) -> dict[str, bool]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise MalformedSettingsError(f"{ENABLED_PLUGINS_KEY} must be an object", path)
    if len(value) > MAX_PLUGIN_ENTRIES:
        raise SettingsLimitError(
            f"too many enabled plugins: {len(value)} (max {MAX_PLUGIN_ENTRIES})", path
        )

    plugins: dict[str, bool] = {}
    for key, enabled in value.items():
        try:
            validate_plugin_identity(key)
        except InvalidPluginNameError as e:
            raise MalformedSettingsError(f"invalid plugin key in {ENABLED_PLUGINS_KEY}: {e}", path) from e
        if not isinstance(enabled, bool):
            raise MalformedSettingsError(
                f"{ENABLED_PLUGINS_KEY}['{key}'] must be true or false, got {enabled!r}", path
            )
        plugins[key] = enabled
    return plugins


def _parse_marketplaces(value: Any, path: Path | None) -> dict[str, ExtraMarketplace]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise MalformedSettingsError(f"{EXTRA_MARKETPLACES_KEY} must be an object", path)
    if len(value) > MAX_MARKETPLACE_ENTRIES:
        raise SettingsLimitError(
            f"too many marketplaces: {len(value)} (max {MAX_MARKETPLACE_ENTRIES})", path
        )

    marketplaces: dict[str, ExtraMarketplace] = {}
    for name, entry in value.items():
        try:
            marketplaces[name] = ExtraMarketplace.model_validate(entry)
        except ValidationError as e:
            raise MalformedSettingsError(
                f"invalid {EXTRA_MARKETPLACES_KEY} entry '{name}': {e}", path
            ) from e
    return marketplaces
