"""Domain probe for Tenant Registry operations.

Following Domain-Oriented Observability patterns, this probe captures
domain-significant events related to tenant registry persistence.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from dbhub.shared_kernel.observability_context import ObservationContext


class RegistryProbe(Protocol):
    """Domain probe for tenant registry operations."""

    def tenant_saved(self, tenant_id: str, subdomain: str, status: str) -> None:
        """Record that a tenant record was written."""
        ...

    def tenant_deleted(self, tenant_id: str) -> None:
        """Record that a tenant record was removed."""
        ...

    def tenant_not_found(self, tenant_id: str) -> None:
        """Record that a tenant lookup found nothing."""
        ...

    def duplicate_identity(self, tenant_id: str, conflicting_tenant_id: str) -> None:
        """Record that a write collided with another live tenant."""
        ...

    def registry_unavailable(self, path: str, error: str) -> None:
        """Record that the registry could not be read or was ambiguous."""
        ...

    def with_context(self, context: ObservationContext) -> RegistryProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultRegistryProbe:
    """Default implementation of RegistryProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultRegistryProbe:
        """Create a new probe with observation context bound."""
        return DefaultRegistryProbe(logger=self._logger, context=context)

    def tenant_saved(self, tenant_id: str, subdomain: str, status: str) -> None:
        """Record that a tenant record was written."""
        self._logger.info(
            "tenant_saved",
            tenant_id=tenant_id,
            subdomain=subdomain,
            status=status,
            **self._get_context_kwargs(),
        )

    def tenant_deleted(self, tenant_id: str) -> None:
        """Record that a tenant record was removed."""
        self._logger.info(
            "tenant_deleted",
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def tenant_not_found(self, tenant_id: str) -> None:
        """Record that a tenant lookup found nothing."""
        self._logger.debug(
            "tenant_not_found",
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def duplicate_identity(self, tenant_id: str, conflicting_tenant_id: str) -> None:
        """Record that a write collided with another live tenant."""
        self._logger.warning(
            "duplicate_tenant_identity",
            tenant_id=tenant_id,
            conflicting_tenant_id=conflicting_tenant_id,
            **self._get_context_kwargs(),
        )

    def registry_unavailable(self, path: str, error: str) -> None:
        """Record that the registry could not be read or was ambiguous."""
        self._logger.error(
            "registry_unavailable",
            path=path,
            error=error,
            **self._get_context_kwargs(),
        )
