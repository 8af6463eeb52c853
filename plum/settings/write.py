"""Atomic file replacement.

Every settings and registry write goes through :func:`atomic_write`: the
payload is written to a temporary file beside the destination, flushed to
disk, and renamed over the destination. Readers therefore see either the old
file or the new one, never a partial write.
"""

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

FILE_MODE = 0o644
DIR_MODE = 0o755


def atomic_rename(src: Path, dest: Path) -> None:
    """Rename ``src`` over ``dest``.

    ``os.replace`` is atomic on POSIX and on NTFS. Where replacing an existing
    file fails (some Windows filesystems, files held open by scanners), the
    destination is removed and the rename retried; between those two steps
    ``dest`` briefly does not exist.

    Raises:
        OSError: If the retried rename also fails
    """
    try:
        os.replace(src, dest)
        return
    except OSError as first_error:
        logger.debug("Rename onto %s failed (%s), removing destination and retrying", dest, first_error)

    try:
        os.remove(dest)
    except FileNotFoundError:
        pass
    os.replace(src, dest)


def atomic_write(path: Path, data: bytes, mode: int = FILE_MODE) -> None:
    """Atomically replace ``path`` with ``data`` plus a trailing newline.

    Args:
        path: Destination file; its parent directory is created if missing
        data: Payload without trailing newline
        mode: Permission bits for the written file

    Raises:
        OSError: If the file cannot be written or renamed. The destination is
            left untouched in that case.
    """
    path.parent.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.stem}-", suffix=".tmp", dir=path.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.write(b"\n")
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_path, mode)
        atomic_rename(tmp_path, path)
        logger.debug("Wrote %s (%d bytes)", path, len(data) + 1)
    finally:
        if tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError as e:
                logger.warning("Could not remove temporary file %s: %s", tmp_path, e)
