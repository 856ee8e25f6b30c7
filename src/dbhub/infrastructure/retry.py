"""Bounded retry with exponential backoff for external calls.

Every call to the primary store, the pooler control surface and the
registry/cache files goes through ``RetryPolicy.call`` so that no
operation blocks indefinitely: after ``max_attempts`` the last error is
wrapped in the caller's typed error.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

from dbhub.infrastructure.observability.probes import DefaultRetryProbe, RetryProbe
from dbhub.shared_kernel.exceptions import DbhubError

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Retry budget for one class of external calls.

    Attributes:
        max_attempts: Total attempts including the first one
        backoff_seconds: Delay before the second attempt; doubles afterwards
        max_backoff_seconds: Upper bound for a single delay
        sleep: Sleep function (injectable for tests)
        probe: Observability probe
    """

    max_attempts: int = 3
    backoff_seconds: float = 0.5
    max_backoff_seconds: float = 10.0
    sleep: Callable[[float], None] = time.sleep
    probe: RetryProbe = field(default_factory=DefaultRetryProbe)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    def delay_for(self, attempt: int) -> float:
        """Backoff before the attempt following ``attempt`` (1-based)."""
        return min(self.backoff_seconds * (2 ** (attempt - 1)), self.max_backoff_seconds)

    def call(
        self,
        operation: str,
        fn: Callable[[], T],
        *,
        retry_on: tuple[type[BaseException], ...],
        error_factory: Callable[[str, Exception], DbhubError],
    ) -> T:
        """Call ``fn`` until it succeeds or the budget is spent.

        Only exceptions listed in ``retry_on`` are retried; anything else
        propagates immediately. When every attempt fails, the last error is
        wrapped with ``error_factory(message, last_error)``.

        Args:
            operation: Name used in log events and the final error message
            fn: Zero-argument callable performing the external call
            retry_on: Exception types considered transient
            error_factory: Builds the typed error raised on exhaustion

        Returns:
            Whatever ``fn`` returns
        """
        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return fn()
            except retry_on as e:  # type: ignore[misc]
                last_error = e
                self.probe.attempt_failed(
                    operation=operation,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    error=e,
                )
                if attempt < self.max_attempts:
                    self.sleep(self.delay_for(attempt))

        assert last_error is not None
        self.probe.retries_exhausted(
            operation=operation, attempts=self.max_attempts, error=last_error
        )
        error = error_factory(
            f"{operation} failed after {self.max_attempts} attempts: {last_error}",
            last_error,
        )
        raise error from last_error
