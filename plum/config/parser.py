"""Configuration file parsing utilities."""

import json
import logging
import math
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from plum.config.paths import claude_config_dir, plum_cache_dir
from plum.config.schemas import KnownMarketplaceEntry, MarketplaceManifest, PlumConfig

logger = logging.getLogger(__name__)

MAX_JSON_FILE_SIZE = 10 * 1024 * 1024


class ConfigError(Exception):
    """Error loading or parsing configuration."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


def _finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"number out of range: {text}")
    return value


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def parse_json(text: str | bytes) -> Any:
    """Parse strict JSON.

    Numbers that only fit as infinity and the NaN/Infinity literals are
    rejected so nothing non-finite can be written back out.

    Raises:
        ValueError: If the text is not valid JSON
    """
    return json.loads(text, parse_float=_finite_float, parse_constant=_reject_constant)


def load_json(path: Path, max_size: int = MAX_JSON_FILE_SIZE) -> Any:
    """Load and parse a JSON file, refusing oversized input.

    Args:
        path: Path to the JSON file
        max_size: Maximum accepted file size in bytes

    Returns:
        Parsed JSON value

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigError: If the file is too large or cannot be read or parsed
    """
    try:
        size = path.stat().st_size
    except FileNotFoundError:
        raise
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}", path) from e
    if size > max_size:
        raise ConfigError(f"File too large: {path} is {size} bytes (max {max_size})", path)

    try:
        with open(path, encoding="utf-8") as f:
            return parse_json(f.read())
    except UnicodeDecodeError as e:
        raise ConfigError(f"Invalid UTF-8 in {path}: {e}", path) from e
    except ValueError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}", path) from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}", path) from e


def dump_json(data: Any) -> bytes:
    """Serialize data the way Plum writes every JSON file.

    The trailing newline is added by the atomic writer, not here.
    """
    return json.dumps(data, indent=2, ensure_ascii=False, allow_nan=False).encode("utf-8")


def load_known_marketplaces(path: Path) -> dict[str, KnownMarketplaceEntry]:
    """Load Claude Code's known_marketplaces.json.

    Args:
        path: Path to known_marketplaces.json

    Returns:
        Mapping of marketplace name to entry (empty if the file is absent)

    Raises:
        ConfigError: If the file is malformed
    """
    try:
        data = load_json(path)
    except FileNotFoundError:
        logger.debug("No known marketplaces at %s", path)
        return {}

    if not isinstance(data, dict):
        raise ConfigError(f"Known marketplaces must be a JSON object: {path}", path)

    entries: dict[str, KnownMarketplaceEntry] = {}
    for name, raw in data.items():
        try:
            entries[name] = KnownMarketplaceEntry.model_validate(raw)
        except ValidationError as e:
            raise ConfigError(f"Invalid marketplace entry '{name}' in {path}: {e}", path) from e
    return entries


def parse_marketplace_manifest(data: Any, origin: str) -> MarketplaceManifest:
    """Validate raw marketplace.json data.

    Args:
        data: Parsed JSON
        origin: Path or URL the data came from, for error messages

    Raises:
        ConfigError: If the data is not a valid marketplace manifest
    """
    try:
        return MarketplaceManifest.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid marketplace manifest from {origin}: {e}") from e


def load_marketplace_manifest(marketplace_root: Path) -> MarketplaceManifest:
    """Load ``<marketplace_root>/.claude-plugin/marketplace.json``.

    Raises:
        FileNotFoundError: If the manifest does not exist
        ConfigError: If it cannot be parsed
    """
    manifest_path = marketplace_root / ".claude-plugin" / "marketplace.json"
    return parse_marketplace_manifest(load_json(manifest_path), str(manifest_path))


def load_config(
    config_dir: Path | None = None,
    project_path: str | None = None,
    env: dict[str, str] | None = None,
    **overrides: Any,
) -> PlumConfig:
    """Build the runtime configuration for one invocation.

    Args:
        config_dir: Explicit Claude configuration directory
        project_path: Project directory for project/local scopes
        env: Environment mapping to use instead of os.environ
        **overrides: Any other PlumConfig field

    Returns:
        PlumConfig instance

    Raises:
        ConfigError: If an override has an invalid value
    """
    try:
        config = PlumConfig(
            config_dir=config_dir or claude_config_dir(env),
            cache_dir=overrides.pop("cache_dir", None) or plum_cache_dir(env),
            project_path=project_path,
            **overrides,
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
    logger.debug("Using config directory %s", config.config_dir)
    return config
