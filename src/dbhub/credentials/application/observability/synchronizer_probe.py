"""Domain probe for the Credential Synchronizer."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from dbhub.shared_kernel.observability_context import ObservationContext


class SynchronizerProbe(Protocol):
    """Domain probe for credential cache synchronization."""

    def resync_completed(
        self, added: int, updated: int, removed: int, unchanged: int, written: bool
    ) -> None:
        """Record the outcome of a full resync."""
        ...

    def entry_synced(self, username: str, action: str, outcome: str) -> None:
        """Record the outcome of a single-entity update."""
        ...

    def cache_written(self, path: str, backup_path: str | None) -> None:
        """Record that the cache file was replaced."""
        ...

    def cache_restored(self, path: str, backup_path: str | None) -> None:
        """Record that the previous cache was put back after a failed signal."""
        ...

    def pooler_signalled(self, action: str) -> None:
        """Record that the pooler was told to pick up the new cache."""
        ...

    def pooler_signal_skipped(self) -> None:
        """Record that signalling the pooler was skipped on request."""
        ...

    def entry_repaired(self, lineno: int, username: str) -> None:
        """Record that a damaged cache line was rewritten."""
        ...

    def entry_quarantined(self, lineno: int, reason: str) -> None:
        """Record that a cache line was set aside."""
        ...

    def with_context(self, context: ObservationContext) -> SynchronizerProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultSynchronizerProbe:
    """Default implementation of SynchronizerProbe using structlog."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        """Get context metadata as kwargs for logging."""
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(self, context: ObservationContext) -> DefaultSynchronizerProbe:
        """Create a new probe with observation context bound."""
        return DefaultSynchronizerProbe(logger=self._logger, context=context)

    def resync_completed(
        self, added: int, updated: int, removed: int, unchanged: int, written: bool
    ) -> None:
        """Record the outcome of a full resync."""
        self._logger.info(
            "credential_resync_completed",
            added=added,
            updated=updated,
            removed=removed,
            unchanged=unchanged,
            written=written,
            **self._get_context_kwargs(),
        )

    def entry_synced(self, username: str, action: str, outcome: str) -> None:
        """Record the outcome of a single-entity update."""
        self._logger.info(
            "credential_entry_synced",
            username=username,
            action=action,
            outcome=outcome,
            **self._get_context_kwargs(),
        )

    def cache_written(self, path: str, backup_path: str | None) -> None:
        """Record that the cache file was replaced."""
        self._logger.info(
            "credential_cache_written",
            path=path,
            backup_path=backup_path,
            **self._get_context_kwargs(),
        )

    def pooler_signalled(self, action: str) -> None:
        """Record that the pooler was told to pick up the new cache."""
        self._logger.info(
            "pooler_signalled",
            action=action,
            **self._get_context_kwargs(),
        )

    def pooler_signal_skipped(self) -> None:
        """Record that signalling the pooler was skipped on request."""
        self._logger.info(
            "pooler_signal_skipped",
            **self._get_context_kwargs(),
        )

    def entry_repaired(self, lineno: int, username: str) -> None:
        """Record that a damaged cache line was rewritten."""
        self._logger.warning(
            "credential_entry_repaired",
            lineno=lineno,
            username=username,
            **self._get_context_kwargs(),
        )

    def entry_quarantined(self, lineno: int, reason: str) -> None:
        """Record that a cache line was set aside."""
        self._logger.warning(
            "credential_entry_quarantined",
            lineno=lineno,
            reason=reason,
            **self._get_context_kwargs(),
        )

    def cache_restored(self, path: str, backup_path: str | None) -> None:
        """Record that the previous cache was put back after a failed signal."""
        self._logger.error(
            "credential_cache_restored",
            path=path,
            backup_path=backup_path,
            **self._get_context_kwargs(),
        )
