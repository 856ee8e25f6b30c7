"""Advisory file locks.

``FileLock`` wraps ``fcntl.flock`` on a dedicated lock file. Each acquire
opens its own file description, so two threads of one process exclude each
other exactly like two separate CLI invocations do. Waiting is bounded:
the lock is polled without blocking until ``timeout_seconds`` elapses.
"""

from __future__ import annotations

import fcntl
import os
import time
from pathlib import Path
from typing import Callable

from dbhub.shared_kernel.exceptions import DbhubError, TenantBusyError


class FileLock:
    """Exclusive, non-reentrant lock on ``path``."""

    def __init__(
        self,
        path: Path,
        timeout_seconds: float,
        poll_interval_seconds: float = 0.05,
        busy_error: type[DbhubError] = TenantBusyError,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._path = path
        self._timeout = timeout_seconds
        self._poll_interval = poll_interval_seconds
        self._busy_error = busy_error
        self._sleep = sleep
        self._clock = clock
        self._fd: int | None = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        """Acquire the lock or raise ``busy_error`` after the timeout."""
        if self._fd is not None:
            raise RuntimeError(f"Lock already held: {self._path}")

        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self._path, os.O_RDWR | os.O_CREAT, 0o600)
        deadline = self._clock() + self._timeout
        while True:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                self._fd = fd
                return
            except BlockingIOError:
                if self._clock() >= deadline:
                    os.close(fd)
                    raise self._busy_error(
                        f"Timed out after {self._timeout}s waiting for lock",
                        lock_path=str(self._path),
                    )
                self._sleep(self._poll_interval)

    def release(self) -> None:
        """Release the lock if held."""
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)

    def __enter__(self) -> FileLock:
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class TenantLocks:
    """Per-tenant mutual exclusion for lifecycle operations.

    Operations on the same tenant id serialize; different ids use
    different lock files and run in parallel.
    """

    def __init__(self, lock_dir: Path, timeout_seconds: float):
        self._lock_dir = lock_dir
        self._timeout = timeout_seconds

    def hold(self, tenant_id: str) -> FileLock:
        """Return an (unacquired) lock for ``tenant_id``, usable with ``with``."""
        return FileLock(
            self._lock_dir / f"tenant-{tenant_id}.lock",
            timeout_seconds=self._timeout,
        )
