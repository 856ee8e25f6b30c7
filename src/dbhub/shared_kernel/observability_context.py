"""Observation context for domain-oriented observability.

Observation contexts collect and manage contextual metadata for instrumentation,
following the Domain Oriented Observability pattern.

See: https://martinfowler.com/articles/domain-oriented-observability.html
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ObservationContext:
    """Immutable context containing metadata for observability.

    Attributes:
        operation_id: Unique identifier for the current CLI invocation.
        operation: Name of the operation being performed (e.g. "destroy-tenant").
        tenant_id: Tenant the operation targets (if applicable).
        role_name: Role the operation targets (if applicable).
        extra: Additional contextual metadata.

    Example:
        context = ObservationContext(operation="create-tenant", tenant_id="alpha")
        probe = DefaultLifecycleProbe().with_context(context)
    """

    operation_id: str | None = None
    operation: str | None = None
    tenant_id: str | None = None
    role_name: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        """Convert context to a dictionary for logging.

        Only includes non-None values to keep logs clean.
        """
        result: dict[str, Any] = {}
        if self.operation_id is not None:
            result["operation_id"] = self.operation_id
        if self.operation is not None:
            result["operation"] = self.operation
        if self.tenant_id is not None:
            result["tenant_id"] = self.tenant_id
        if self.role_name is not None:
            result["role_name"] = self.role_name
        result.update(self.extra)
        return result

    def with_tenant(self, tenant_id: str) -> ObservationContext:
        """Create a new context with the tenant id set."""
        return ObservationContext(
            operation_id=self.operation_id,
            operation=self.operation,
            tenant_id=tenant_id,
            role_name=self.role_name,
            extra=self.extra,
        )

    def with_extra(self, **kwargs: Any) -> ObservationContext:
        """Create a new context with additional metadata."""
        return ObservationContext(
            operation_id=self.operation_id,
            operation=self.operation,
            tenant_id=self.tenant_id,
            role_name=self.role_name,
            extra={**self.extra, **kwargs},
        )
