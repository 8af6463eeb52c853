"""Platform and OS detection utilities."""

import os
import platform
from pathlib import Path
from typing import Literal

PlatformOS = Literal["windows", "linux", "macos"]


def get_os() -> PlatformOS:
    """Get the current operating system.

    Returns:
        One of: "windows", "linux", "macos"
    """
    system = platform.system().lower()
    if system == "darwin":
        return "macos"
    elif system == "windows":
        return "windows"
    else:
        return "linux"


def is_windows() -> bool:
    """Check if the current OS is Windows."""
    return get_os() == "windows"


def has_advisory_locks() -> bool:
    """Check if the kernel offers flock-style advisory locks.

    Returns:
        True on Unix-like systems, False on Windows
    """
    return not is_windows()


def get_home_directory() -> Path:
    """Get the user's home directory."""
    return Path(os.path.expanduser("~"))


def get_env(name: str, default: str | None = None, env: dict[str, str] | None = None) -> str | None:
    """Get an environment variable.

    Args:
        name: Environment variable name
        default: Default value if not set or empty
        env: Mapping to read from instead of os.environ

    Returns:
        Environment variable value or default
    """
    source = os.environ if env is None else env
    value = source.get(name)
    return value if value else default
