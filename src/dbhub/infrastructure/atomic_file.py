"""Atomic replacement and timestamped backups of small text files."""

from __future__ import annotations

import os
import shutil
import tempfile
from datetime import UTC, datetime
from pathlib import Path


def atomic_write_text(path: Path, content: str, mode: int | None = None) -> None:
    """Replace ``path`` with ``content`` so readers never see a partial file.

    The content is written to a temp file in the same directory, flushed
    and fsynced, given its final permissions, then renamed over ``path``.
    If any step before the rename fails, the temp file is removed and the
    previous file stays in place.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        if mode is not None:
            os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise

    _fsync_directory(path.parent)


def _fsync_directory(directory: Path) -> None:
    dir_fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(dir_fd)
    finally:
        os.close(dir_fd)


def backup_file(path: Path, backup_dir: Path, now: datetime | None = None) -> Path | None:
    """Copy ``path`` into ``backup_dir`` under a timestamped name.

    Returns:
        The backup path, or None when ``path`` does not exist yet
    """
    if not path.exists():
        return None

    stamp = (now or datetime.now(UTC)).strftime("%Y%m%d%H%M%S.%f")
    backup_dir.mkdir(parents=True, exist_ok=True)
    target = backup_dir / f"{path.name}.{stamp}.bak"
    shutil.copy2(path, target)
    return target
