"""Domain probe for Access Gate decisions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from dbhub.shared_kernel.observability_context import ObservationContext


class AccessGateProbe(Protocol):
    """Domain probe for access gate evaluations."""

    def access_allowed(
        self, database: str, declared_identity: str | None, reason: str
    ) -> None:
        """Record that a connection attempt was allowed."""
        ...

    def access_rejected(
        self, database: str, declared_identity: str | None, reason: str
    ) -> None:
        """Record that a connection attempt was rejected."""
        ...

    def registry_unavailable(self, database: str, error: str) -> None:
        """Record that the gate failed closed because the registry was unreadable."""
        ...

    def with_context(self, context: ObservationContext) -> AccessGateProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultAccessGateProbe:
    """Default implementation of AccessGateProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultAccessGateProbe:
        """Create a new probe with observation context bound."""
        return DefaultAccessGateProbe(logger=self._logger, context=context)

    def access_allowed(
        self, database: str, declared_identity: str | None, reason: str
    ) -> None:
        """Record that a connection attempt was allowed."""
        self._logger.debug(
            "access_allowed",
            database=database,
            declared_identity=declared_identity,
            reason=reason,
            **self._get_context_kwargs(),
        )

    def access_rejected(
        self, database: str, declared_identity: str | None, reason: str
    ) -> None:
        """Record that a connection attempt was rejected."""
        self._logger.warning(
            "access_rejected",
            database=database,
            declared_identity=declared_identity,
            reason=reason,
            **self._get_context_kwargs(),
        )

    def registry_unavailable(self, database: str, error: str) -> None:
        """Record that the gate failed closed because the registry was unreadable."""
        self._logger.error(
            "access_gate_registry_unavailable",
            database=database,
            error=error,
            **self._get_context_kwargs(),
        )
