"""Per-platform locations of Claude Code and Plum files."""

from pathlib import Path

from plum.utils.filesystem import validate_path_component
from plum.utils.platform import get_env, get_home_directory, is_windows

CONFIG_DIR_ENV = "CLAUDE_CONFIG_DIR"

UNIX_MANAGED_SETTINGS = Path("/etc/claude-code/settings.json")


def claude_config_dir(env: dict[str, str] | None = None) -> Path:
    """Get Claude Code's root configuration directory.

    Resolution order: ``$CLAUDE_CONFIG_DIR``, then ``%APPDATA%\\ClaudeCode`` on
    Windows, then ``~/.claude``.

    Args:
        env: Environment mapping to use instead of os.environ

    Returns:
        Absolute configuration directory path
    """
    override = get_env(CONFIG_DIR_ENV, env=env)
    if override:
        return Path(override).expanduser().absolute()

    if is_windows():
        app_data = get_env("APPDATA", env=env)
        if app_data:
            return Path(app_data) / "ClaudeCode"

    return get_home_directory() / ".claude"


def managed_settings_path(env: dict[str, str] | None = None) -> Path:
    """Get the administrator-managed settings file for this platform."""
    if is_windows():
        program_data = get_env("PROGRAMDATA", "C:\\ProgramData", env=env)
        return Path(program_data) / "ClaudeCode" / "settings.json"
    return UNIX_MANAGED_SETTINGS


def plum_cache_dir(env: dict[str, str] | None = None) -> Path:
    """Get the directory where Plum caches fetched marketplace manifests."""
    override = get_env(CONFIG_DIR_ENV, env=env)
    if override:
        return Path(override).expanduser().absolute() / "plum" / "cache" / "marketplaces"
    return get_home_directory() / ".plum" / "cache" / "marketplaces"


def plugin_cache_dir(cache_root: Path, marketplace: str, plugin: str) -> Path:
    """Get the cache directory for one plugin's files.

    Args:
        cache_root: ``<config>/plugins/cache``
        marketplace: Marketplace name
        plugin: Plugin name

    Returns:
        ``<cache_root>/<marketplace>/<plugin>``

    Raises:
        UnsafePathError: If either name is not a safe single path component
    """
    validate_path_component(marketplace, "marketplace name")
    validate_path_component(plugin, "plugin name")
    return cache_root / marketplace / plugin
