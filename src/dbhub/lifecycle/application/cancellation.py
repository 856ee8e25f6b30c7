"""Cooperative cancellation for long-running teardowns."""

from __future__ import annotations

import threading

from dbhub.shared_kernel.exceptions import TeardownInterruptedError


class CancellationToken:
    """Flag checked between dependency-walk steps.

    ``cancel`` may be called from a signal handler or another thread.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str | None = None

    def cancel(self, reason: str = "cancelled") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, tenant_id: str) -> None:
        """Raise TeardownInterruptedError if cancellation was requested."""
        if self._event.is_set():
            raise TeardownInterruptedError(
                f"Teardown of {tenant_id} interrupted ({self._reason}); "
                "run destroy-tenant again to resume",
                tenant_id=tenant_id,
                reason=self._reason,
            )
