"""Filesystem utilities for Plum."""

import os
import shutil
from pathlib import Path, PurePosixPath, PureWindowsPath


class UnsafePathError(ValueError):
    """A path would escape its containing directory."""


def ensure_directory(path: Path, mode: int = 0o755) -> Path:
    """Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists
        mode: Permission bits for newly created directories

    Returns:
        The directory path
    """
    path.mkdir(mode=mode, parents=True, exist_ok=True)
    return path


def remove_directory(path: Path) -> bool:
    """Remove a directory and its contents.

    Args:
        path: Directory path to remove

    Returns:
        True if the directory was removed, False if it didn't exist
    """
    if not path.exists():
        return False
    shutil.rmtree(path)
    return True


def validate_path_component(value: str, what: str = "name") -> str:
    """Check that a value can be used as a single directory name.

    Args:
        value: Candidate path component (a marketplace or plugin name)
        what: Label used in error messages

    Returns:
        The unchanged value

    Raises:
        UnsafePathError: If the value is empty, contains a separator or '..',
            or is '.'
    """
    if not value:
        raise UnsafePathError(f"{what} cannot be empty")
    if ".." in value:
        raise UnsafePathError(f"{what} cannot contain '..': {value}")
    if "/" in value or "\\" in value:
        raise UnsafePathError(f"{what} cannot contain path separators: {value}")
    if value == ".":
        raise UnsafePathError(f"{what} cannot be '.'")
    return value


def resolve_within(base: Path, relative: str) -> Path:
    """Join a relative path onto a base directory, refusing traversal.

    Absolute paths (POSIX or Windows style) and any '..' segment are
    rejected outright, and the resolved result must still live under
    ``base``.

    Args:
        base: Directory the result must stay inside
        relative: Relative path declared by untrusted input

    Returns:
        The joined path

    Raises:
        UnsafePathError: If the path is absolute, has a '..' segment or
            resolves outside ``base``
    """
    if not relative:
        raise UnsafePathError("file path cannot be empty")
    if PurePosixPath(relative).is_absolute() or PureWindowsPath(relative).is_absolute():
        raise UnsafePathError(f"absolute paths not allowed: {relative}")
    parts = relative.replace("\\", "/").split("/")
    if ".." in parts:
        raise UnsafePathError(f"path traversal not allowed: {relative}")

    target = base / Path(*[p for p in parts if p and p != "."])
    base_resolved = os.path.realpath(base)
    target_resolved = os.path.realpath(target)
    if os.path.commonpath([base_resolved, target_resolved]) != base_resolved:
        raise UnsafePathError(f"path escapes cache directory: {relative}")
    return target


def write_file(path: Path, data: bytes, mode: int = 0o644) -> Path:
    """Write bytes to a file with explicit permissions.

    Args:
        path: Destination file
        data: Content to write
        mode: Permission bits applied after writing

    Returns:
        The file path
    """
    ensure_directory(path.parent)
    path.write_bytes(data)
    os.chmod(path, mode)
    return path
