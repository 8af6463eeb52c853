"""One-time backups of user-authored settings files."""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".backup-plum"
BACKUP_MODE = 0o600


def backup_path(path: Path) -> Path:
    return path.with_name(path.name + BACKUP_SUFFIX)


def ensure_backup(path: Path) -> Path | None:
    """Copy ``path`` to ``<path>.backup-plum`` unless a backup already exists.

    The backup captures the file as it was before Plum first modified it and
    is never overwritten afterwards.

    Args:
        path: Settings file about to be modified

    Returns:
        The backup path if one was created by this call, None otherwise

    Raises:
        OSError: If the file exists but the backup cannot be written
    """
    if not path.exists():
        return None

    backup = backup_path(path)
    data = path.read_bytes()
    try:
        fd = os.open(backup, os.O_WRONLY | os.O_CREAT | os.O_EXCL, BACKUP_MODE)
    except FileExistsError:
        return None

    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
    except OSError:
        backup.unlink(missing_ok=True)
        raise
    logger.info("Backed up %s to %s", path, backup)
    return backup
