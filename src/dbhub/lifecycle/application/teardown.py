"""Executor for the tiered teardown state machine.

The transitions live in ``lifecycle.domain.teardown``; this module runs the
statements for each tier, observes which dependencies remain and persists
the next tier in the registry before moving on, so an interrupted teardown
resumes where it stopped.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import UTC, datetime

from dbhub.credentials.application.synchronizer import CredentialSynchronizer
from dbhub.credentials.domain.sync import SyncAction
from dbhub.lifecycle.application.cancellation import CancellationToken
from dbhub.lifecycle.application.observability import (
    DefaultLifecycleProbe,
    LifecycleProbe,
)
from dbhub.lifecycle.domain.results import TeardownResult
from dbhub.lifecycle.domain.teardown import (
    Dependency,
    needs_database_rename,
    next_tier,
    plan_dependency_step,
    quarantine_name,
    quarantine_targets,
)
from dbhub.lifecycle.ports.primary_store import PrimaryStore
from dbhub.registry.domain.tenant import Tenant
from dbhub.registry.domain.value_objects import TeardownMode, TeardownTier, TenantStatus
from dbhub.registry.ports.repositories import ITenantRegistry
from dbhub.shared_kernel.exceptions import PrimaryStoreError, TeardownInterruptedError

RESOLVING_TIERS = (
    TeardownTier.REASSIGN_OWNED,
    TeardownTier.DROP_OWNED,
    TeardownTier.DEPENDENCY_WALK,
)


class TeardownExecutor:
    """Runs teardown tiers against the primary store."""

    def __init__(
        self,
        store: PrimaryStore,
        registry: ITenantRegistry,
        synchronizer: CredentialSynchronizer,
        admin_role: str,
        probe: LifecycleProbe | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._store = store
        self._registry = registry
        self._synchronizer = synchronizer
        self._admin_role = admin_role
        self._probe = probe or DefaultLifecycleProbe()
        self._clock = clock or (lambda: datetime.now(UTC))

    def run(self, tenant: Tenant, cancel: CancellationToken) -> TeardownResult:
        """Drive a tearing-down tenant to destroyed-clean or destroyed-quarantined.

        The tenant must already be tearing-down with its progress persisted.

        Raises:
            TeardownInterruptedError: If ``cancel`` fires during the dependency
                walk; the tenant stays tearing-down at that tier
            PrimaryStoreError: If a statement outside the resolving tiers fails
        """
        if tenant.teardown is None:
            raise ValueError(f"Tenant {tenant.id} is not tearing down")

        mode = tenant.teardown.mode
        tier = tenant.teardown.next_tier
        result = TeardownResult(
            tenant_id=tenant.id, status=TenantStatus.TEARING_DOWN, mode=str(mode)
        )

        try:
            while tier not in (TeardownTier.QUARANTINE, TeardownTier.FINALIZE):
                roles = self._existing_roles(tenant.roles)
                if tier == TeardownTier.PREPARE:
                    self._prepare(tenant, roles, mode)
                else:
                    self._run_tier(tier, tenant, roles, cancel)
                result.tiers_run.append(tier.name)

                remaining = self._store.list_dependencies(roles) if roles else []
                self._probe.teardown_tier_completed(tenant.id, tier.name, len(remaining))
                tier = next_tier(tier, remaining)
                self._persist(tenant, tier)
        except TeardownInterruptedError:
            self._probe.teardown_interrupted(tenant.id, tier.name)
            raise

        if tier == TeardownTier.QUARANTINE:
            self._quarantine(tenant, result)
        else:
            self._finalize(tenant, result)
        return result

    def release_roles(
        self, tenant: Tenant, roles: Sequence[str], cancel: CancellationToken
    ) -> list[Dependency]:
        """Run tiers 1-3 for ``roles`` without touching the tenant's status.

        Returns:
            Dependencies still blocking after the last tier (empty when the
            roles can be dropped)
        """
        remaining = self._store.list_dependencies(roles)
        for tier in RESOLVING_TIERS:
            if not remaining:
                break
            self._run_tier(tier, tenant, roles, cancel)
            remaining = self._store.list_dependencies(roles)
            self._probe.teardown_tier_completed(tenant.id, tier.name, len(remaining))
        return remaining

    # Tiers

    def _prepare(self, tenant: Tenant, roles: list[str], mode: TeardownMode) -> None:
        self._store.terminate_sessions(database=tenant.id, roles=roles)
        if not self._store.database_exists(tenant.id):
            return
        if mode == TeardownMode.DROP:
            self._store.drop_database(tenant.id)
        else:
            self._store.transfer_database(tenant.id, self._admin_role)

    def _run_tier(
        self,
        tier: TeardownTier,
        tenant: Tenant,
        roles: Sequence[str],
        cancel: CancellationToken,
    ) -> None:
        if not roles:
            return
        if tier == TeardownTier.REASSIGN_OWNED:
            self._reassign_owned(tenant, roles)
        elif tier == TeardownTier.DROP_OWNED:
            self._drop_owned(tenant, roles)
        elif tier == TeardownTier.DEPENDENCY_WALK:
            self._walk_dependencies(tenant, roles, cancel)
            self._drop_owned(tenant, roles)

    def _reassign_owned(self, tenant: Tenant, roles: Sequence[str]) -> None:
        for database in self._store.dependency_databases(roles):
            self._attempt(
                tenant,
                "reassign-owned",
                database,
                lambda db=database: self._store.reassign_owned(db, roles, self._admin_role),
            )

        self._attempt(
            tenant,
            "revoke-memberships",
            ",".join(roles),
            lambda: self._store.revoke_memberships(roles),
        )
        if not self._store.database_exists(tenant.id):
            return
        for role in roles:
            scope = tenant.scope_of(role)
            self._attempt(
                tenant,
                "revoke-privileges",
                role,
                lambda r=role, s=scope: self._store.revoke_privileges(
                    tenant.id, r, s, tenant.owner_role
                ),
            )

    def _drop_owned(self, tenant: Tenant, roles: Sequence[str]) -> None:
        for database in self._store.dependency_databases(roles):
            self._attempt(
                tenant,
                "drop-owned",
                database,
                lambda db=database: self._store.drop_owned(db, roles),
            )

    def _walk_dependencies(
        self, tenant: Tenant, roles: Sequence[str], cancel: CancellationToken
    ) -> None:
        for dependency in self._store.list_dependencies(roles):
            attempt = 0
            while True:
                cancel.raise_if_cancelled(tenant.id)
                step = plan_dependency_step(dependency, attempt)
                if step is None:
                    break
                if self._attempt(
                    tenant,
                    str(step.action),
                    dependency.object_identity,
                    lambda s=step: self._store.resolve_dependency(s, self._admin_role),
                ):
                    break
                attempt += 1

    def _attempt(
        self, tenant: Tenant, step: str, target: str, action: Callable[[], None]
    ) -> bool:
        """Run one resolving statement; a failure only moves the teardown on."""
        try:
            action()
        except PrimaryStoreError as e:
            self._probe.dependency_step_failed(tenant.id, step, target, e.message)
            return False
        return True

    # Terminal tiers

    def _quarantine(self, tenant: Tenant, result: TeardownResult) -> None:
        roles = self._existing_roles(tenant.roles)
        remaining = self._store.list_dependencies(roles) if roles else []
        now = self._clock()

        already_renamed = tenant.quarantine_name is not None and self._store.database_exists(
            tenant.quarantine_name
        )
        if already_renamed:
            result.quarantined_objects.append(tenant.id)
        elif self._store.database_exists(tenant.id) and needs_database_rename(
            tenant.id, remaining
        ):
            tenant.quarantine_name = quarantine_name(tenant.id, now)
            self._registry.put(tenant)
            self._store.rename_database(tenant.id, tenant.quarantine_name)
            result.quarantined_objects.append(tenant.id)

        tenant_databases = {tenant.id}
        if tenant.quarantine_name is not None:
            tenant_databases.add(tenant.quarantine_name)
        for dependency in quarantine_targets(tenant_databases, remaining):
            new_name = quarantine_name(dependency.object_name, now)
            self._store.rename_object(dependency, new_name)
            result.quarantined_objects.append(dependency.object_identity)

        for role in roles:
            self._store.set_login(role, False)
        for role in tenant.roles:
            self._synchronizer.sync_one(role, SyncAction.DELETE)

        tenant.mark_quarantined(tenant.quarantine_name)
        self._registry.put(tenant)

        result.status = tenant.status
        result.quarantine_name = tenant.quarantine_name
        result.remaining = remaining
        self._probe.teardown_quarantined(tenant.id, tenant.quarantine_name, len(remaining))

    def _finalize(self, tenant: Tenant, result: TeardownResult) -> None:
        for role in tenant.roles:
            self._synchronizer.sync_one(role, SyncAction.DELETE)
            if self._store.role_exists(role):
                self._store.drop_role(role)
                result.roles_dropped.append(role)

        tenant.mark_destroyed_clean()
        self._registry.delete(tenant.id)
        result.status = tenant.status
        self._probe.teardown_completed(tenant.id, result.roles_dropped)

    # Helpers

    def _existing_roles(self, roles: Sequence[str]) -> list[str]:
        return [role for role in roles if self._store.role_exists(role)]

    def _persist(self, tenant: Tenant, tier: TeardownTier) -> None:
        tenant.advance_teardown(tier)
        self._registry.put(tenant)
