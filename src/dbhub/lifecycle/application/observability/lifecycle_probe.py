"""Domain probe for Tenant Lifecycle operations.

Following Domain-Oriented Observability patterns, this probe captures
domain-significant events of tenant creation, teardown and role
management.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from dbhub.shared_kernel.observability_context import ObservationContext


class LifecycleProbe(Protocol):
    """Domain probe for tenant lifecycle operations."""

    def tenant_created(self, tenant_id: str, subdomain: str, owner_role: str) -> None:
        """Record that a tenant was created."""
        ...

    def tenant_creation_failed(self, tenant_id: str, error: str) -> None:
        """Record that tenant creation failed and is being compensated."""
        ...

    def compensation_failed(self, tenant_id: str, step: str, error: str) -> None:
        """Record that undoing a creation step failed."""
        ...

    def self_test_completed(self, tenant_id: str, passed: bool, errors: list[str]) -> None:
        """Record the outcome of a tenant self-test."""
        ...

    def teardown_started(self, tenant_id: str, mode: str, next_tier: str) -> None:
        """Record that a teardown started or resumed."""
        ...

    def teardown_tier_completed(self, tenant_id: str, tier: str, remaining: int) -> None:
        """Record that a teardown tier finished."""
        ...

    def dependency_step_failed(self, tenant_id: str, step: str, target: str, error: str) -> None:
        """Record that one dependency-walk step failed."""
        ...

    def teardown_completed(self, tenant_id: str, roles_dropped: list[str]) -> None:
        """Record that a tenant was destroyed cleanly."""
        ...

    def teardown_quarantined(self, tenant_id: str, quarantine_name: str | None, remaining: int) -> None:
        """Record that a tenant was quarantined."""
        ...

    def teardown_interrupted(self, tenant_id: str, tier: str) -> None:
        """Record that a teardown was cancelled."""
        ...

    def member_added(self, tenant_id: str, role_name: str, scope: str) -> None:
        """Record that a member role was added."""
        ...

    def member_add_failed(self, tenant_id: str, role_name: str, error: str) -> None:
        """Record that adding a member failed and is being compensated."""
        ...

    def member_removed(self, tenant_id: str, role_name: str) -> None:
        """Record that a member role was removed."""
        ...

    def password_rotated(self, tenant_id: str, role_name: str) -> None:
        """Record that a role's password changed."""
        ...

    def subdomain_remapped(self, tenant_id: str, old_subdomain: str, new_subdomain: str) -> None:
        """Record that a tenant's hostname mapping changed."""
        ...

    def with_context(self, context: ObservationContext) -> LifecycleProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultLifecycleProbe:
    """Default implementation of LifecycleProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultLifecycleProbe:
        """Create a new probe with observation context bound."""
        return DefaultLifecycleProbe(logger=self._logger, context=context)

    def tenant_created(self, tenant_id: str, subdomain: str, owner_role: str) -> None:
        """Record that a tenant was created."""
        self._logger.info(
            "tenant_created",
            tenant_id=tenant_id,
            subdomain=subdomain,
            owner_role=owner_role,
            **self._get_context_kwargs(),
        )

    def tenant_creation_failed(self, tenant_id: str, error: str) -> None:
        """Record that tenant creation failed and is being compensated."""
        self._logger.error(
            "tenant_creation_failed",
            tenant_id=tenant_id,
            error=error,
            **self._get_context_kwargs(),
        )

    def compensation_failed(self, tenant_id: str, step: str, error: str) -> None:
        """Record that undoing a creation step failed."""
        self._logger.error(
            "tenant_compensation_failed",
            tenant_id=tenant_id,
            step=step,
            error=error,
            **self._get_context_kwargs(),
        )

    def self_test_completed(self, tenant_id: str, passed: bool, errors: list[str]) -> None:
        """Record the outcome of a tenant self-test."""
        log = self._logger.info if passed else self._logger.warning
        log(
            "tenant_self_test_completed",
            tenant_id=tenant_id,
            passed=passed,
            errors=errors,
            **self._get_context_kwargs(),
        )

    def teardown_started(self, tenant_id: str, mode: str, next_tier: str) -> None:
        """Record that a teardown started or resumed."""
        self._logger.info(
            "teardown_started",
            tenant_id=tenant_id,
            mode=mode,
            next_tier=next_tier,
            **self._get_context_kwargs(),
        )

    def teardown_tier_completed(self, tenant_id: str, tier: str, remaining: int) -> None:
        """Record that a teardown tier finished."""
        self._logger.info(
            "teardown_tier_completed",
            tenant_id=tenant_id,
            tier=tier,
            remaining_dependencies=remaining,
            **self._get_context_kwargs(),
        )

    def dependency_step_failed(self, tenant_id: str, step: str, target: str, error: str) -> None:
        """Record that one dependency-walk step failed."""
        self._logger.warning(
            "dependency_step_failed",
            tenant_id=tenant_id,
            step=step,
            target=target,
            error=error,
            **self._get_context_kwargs(),
        )

    def teardown_completed(self, tenant_id: str, roles_dropped: list[str]) -> None:
        """Record that a tenant was destroyed cleanly."""
        self._logger.info(
            "teardown_completed",
            tenant_id=tenant_id,
            roles_dropped=roles_dropped,
            **self._get_context_kwargs(),
        )

    def teardown_quarantined(self, tenant_id: str, quarantine_name: str | None, remaining: int) -> None:
        """Record that a tenant was quarantined."""
        self._logger.error(
            "teardown_quarantined",
            tenant_id=tenant_id,
            quarantine_name=quarantine_name,
            remaining_dependencies=remaining,
            **self._get_context_kwargs(),
        )

    def teardown_interrupted(self, tenant_id: str, tier: str) -> None:
        """Record that a teardown was cancelled."""
        self._logger.warning(
            "teardown_interrupted",
            tenant_id=tenant_id,
            tier=tier,
            **self._get_context_kwargs(),
        )

    def member_added(self, tenant_id: str, role_name: str, scope: str) -> None:
        """Record that a member role was added."""
        self._logger.info(
            "tenant_member_added",
            tenant_id=tenant_id,
            role_name=role_name,
            scope=scope,
            **self._get_context_kwargs(),
        )

    def member_add_failed(self, tenant_id: str, role_name: str, error: str) -> None:
        """Record that adding a member failed and is being compensated."""
        self._logger.error(
            "tenant_member_add_failed",
            tenant_id=tenant_id,
            role_name=role_name,
            error=error,
            **self._get_context_kwargs(),
        )

    def member_removed(self, tenant_id: str, role_name: str) -> None:
        """Record that a member role was removed."""
        self._logger.info(
            "tenant_member_removed",
            tenant_id=tenant_id,
            role_name=role_name,
            **self._get_context_kwargs(),
        )

    def password_rotated(self, tenant_id: str, role_name: str) -> None:
        """Record that a role's password changed."""
        self._logger.info(
            "role_password_rotated",
            tenant_id=tenant_id,
            role_name=role_name,
            **self._get_context_kwargs(),
        )

    def subdomain_remapped(self, tenant_id: str, old_subdomain: str, new_subdomain: str) -> None:
        """Record that a tenant's hostname mapping changed."""
        self._logger.info(
            "tenant_subdomain_remapped",
            tenant_id=tenant_id,
            old_subdomain=old_subdomain,
            new_subdomain=new_subdomain,
            **self._get_context_kwargs(),
        )
