"""The credential cache file on disk.

Writes follow one sequence: SyncBackup copy, temp file, fsync, chmod,
atomic rename. A failure anywhere before the rename leaves the previous
cache in place. Writers serialize on ``<cache>.lock``.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path

from dbhub.credentials.domain.userlist import QuarantinedLine, Userlist
from dbhub.infrastructure.atomic_file import atomic_write_text, backup_file
from dbhub.infrastructure.locking import FileLock
from dbhub.infrastructure.retry import RetryPolicy
from dbhub.shared_kernel.exceptions import SyncFailureError

QUARANTINE_FILE_MODE = 0o600


def _sync_error(message: str, error: Exception) -> SyncFailureError:
    return SyncFailureError(message, error=str(error))


class UserlistFile:
    """Reads and atomically replaces the pooler's userlist."""

    def __init__(
        self,
        path: Path,
        backup_dir: Path,
        file_mode: int = 0o640,
        lock_timeout_seconds: float = 30.0,
        retry_policy: RetryPolicy | None = None,
    ):
        self._path = path
        self._backup_dir = backup_dir
        self._file_mode = file_mode
        self._lock_timeout = lock_timeout_seconds
        self._retry = retry_policy or RetryPolicy()

    @property
    def path(self) -> Path:
        return self._path

    def lock(self) -> FileLock:
        """Writer lock; waiting is bounded and ends in SyncFailureError."""
        return FileLock(
            self._path.with_name(self._path.name + ".lock"),
            timeout_seconds=self._lock_timeout,
            busy_error=SyncFailureError,
        )

    def read(self) -> Userlist:
        """Parse the current cache; a missing file reads as empty."""

        def read_text() -> str:
            try:
                return self._path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return ""

        text = self._retry.call(
            f"read {self._path.name}",
            read_text,
            retry_on=(OSError,),
            error_factory=_sync_error,
        )
        return Userlist.parse(text)

    def replace(self, content: str) -> Path | None:
        """Back up the current cache, then atomically write ``content``.

        Returns:
            The SyncBackup path, or None if there was no previous file
        """

        def write() -> Path | None:
            backup = backup_file(self._path, self._backup_dir)
            atomic_write_text(self._path, content, self._file_mode)
            return backup

        return self._retry.call(
            f"write {self._path.name}",
            write,
            retry_on=(OSError,),
            error_factory=_sync_error,
        )

    def restore(self, backup_path: Path | None) -> None:
        """Put the cache back to the SyncBackup taken by ``replace``.

        Without a backup there was no previous cache, so the file is removed.
        """

        def write() -> None:
            if backup_path is None:
                self._path.unlink(missing_ok=True)
            else:
                atomic_write_text(
                    self._path, backup_path.read_text(encoding="utf-8"), self._file_mode
                )

        self._retry.call(
            f"restore {self._path.name}",
            write,
            retry_on=(OSError,),
            error_factory=_sync_error,
        )

    def write_quarantine(
        self, lines: Sequence[QuarantinedLine], backup_path: Path | None
    ) -> Path:
        """Store quarantined lines next to the SyncBackup of the same write."""
        if backup_path is not None:
            target = backup_path.with_suffix(".quarantine")
        else:
            stamp = datetime.now(UTC).strftime("%Y%m%d%H%M%S.%f")
            target = self._backup_dir / f"{self._path.name}.{stamp}.quarantine"

        content = f"# quarantined from {self._path}\n" + "".join(
            f"# line {line.lineno}: {line.reason}\n{line.raw}\n" for line in lines
        )
        self._retry.call(
            f"write {target.name}",
            lambda: atomic_write_text(target, content, QUARANTINE_FILE_MODE),
            retry_on=(OSError,),
            error_factory=_sync_error,
        )
        return target
