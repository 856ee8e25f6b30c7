"""Tenant Lifecycle Manager: the only writer of the Tenant Registry.

Every operation on a tenant holds that tenant's lock for its whole
duration. Creation (and adding a member) records an undo action after each
completed step and runs them in reverse when a later step fails.
"""

from __future__ import annotations

import secrets
from collections.abc import Callable

from dbhub.access.application.gate import AccessGate
from dbhub.access.domain.decision import AccessRequest
from dbhub.credentials.application.synchronizer import CredentialSynchronizer
from dbhub.credentials.domain.sync import SyncAction
from dbhub.infrastructure.locking import TenantLocks
from dbhub.lifecycle.application.cancellation import CancellationToken
from dbhub.lifecycle.application.observability import (
    DefaultLifecycleProbe,
    LifecycleProbe,
)
from dbhub.lifecycle.application.teardown import TeardownExecutor
from dbhub.lifecycle.domain.results import (
    AuditReport,
    CreateTenantResult,
    MemberResult,
    SelfTestResult,
    TeardownResult,
)
from dbhub.lifecycle.ports.primary_store import PrimaryStore
from dbhub.registry.domain.tenant import Tenant
from dbhub.registry.domain.value_objects import TeardownMode, TenantStatus
from dbhub.registry.ports.repositories import ITenantRegistry
from dbhub.shared_kernel.exceptions import (
    DbhubError,
    DependencyUnresolvedError,
    DuplicateIdentityError,
    TenantNotFoundError,
)
from dbhub.shared_kernel.identifiers import validate_role_name
from dbhub.shared_kernel.roles import RoleScope

PASSWORD_BYTES = 24


def generate_password() -> str:
    return secrets.token_urlsafe(PASSWORD_BYTES)


class _Compensation:
    """Undo actions for the completed steps of one operation."""

    def __init__(self, tenant_id: str, probe: LifecycleProbe):
        self._tenant_id = tenant_id
        self._probe = probe
        self._steps: list[tuple[str, Callable[[], None]]] = []

    def add(self, name: str, undo: Callable[[], None]) -> None:
        self._steps.append((name, undo))

    def run(self) -> None:
        for name, undo in reversed(self._steps):
            try:
                undo()
            except DbhubError as e:
                self._probe.compensation_failed(self._tenant_id, name, e.message)


class TenantLifecycleManager:
    """Application service for creating, changing and destroying tenants."""

    def __init__(
        self,
        registry: ITenantRegistry,
        store: PrimaryStore,
        synchronizer: CredentialSynchronizer,
        gate: AccessGate,
        locks: TenantLocks,
        admin_role: str = "postgres",
        owner_role_prefix: str = "admin_",
        password_factory: Callable[[], str] = generate_password,
        teardown: TeardownExecutor | None = None,
        probe: LifecycleProbe | None = None,
    ):
        self._registry = registry
        self._store = store
        self._synchronizer = synchronizer
        self._gate = gate
        self._locks = locks
        self._owner_role_prefix = owner_role_prefix
        self._password_factory = password_factory
        self._probe = probe or DefaultLifecycleProbe()
        self._teardown = teardown or TeardownExecutor(
            store=store,
            registry=registry,
            synchronizer=synchronizer,
            admin_role=admin_role,
            probe=self._probe,
        )

    # Creation

    def create_tenant(
        self,
        tenant_id: str,
        subdomain: str | None = None,
        owner_password: str | None = None,
    ) -> CreateTenantResult:
        """Create the owner role, the database, the mapping and the cache entry.

        A failure in any step undoes the completed steps in reverse order and
        re-raises. The self-test that follows is reported, not enforced.

        Raises:
            InvalidIdentifierError: If the id or subdomain is unacceptable
            DuplicateIdentityError: If the id, subdomain, database or owner
                role is already taken
            TenantBusyError: If another operation holds the tenant
        """
        tenant = Tenant.create(
            tenant_id, f"{self._owner_role_prefix}{tenant_id}", subdomain
        )
        password = owner_password or self._password_factory()

        with self._locks.hold(tenant.id):
            self._check_available(tenant)

            undo = _Compensation(tenant.id, self._probe)
            try:
                self._store.create_role(tenant.owner_role, password)
                undo.add("drop owner role", lambda: self._store.drop_role(tenant.owner_role))

                self._store.create_database(tenant.id, tenant.owner_role)
                undo.add("drop database", lambda: self._store.drop_database(tenant.id))
                self._store.apply_privileges(
                    tenant.id, tenant.owner_role, RoleScope.TENANT_OWNER, tenant.owner_role
                )

                self._registry.put(tenant, create=True)
                undo.add("delete registry entry", lambda: self._registry.delete(tenant.id))

                undo.add(
                    "remove cache entry",
                    lambda: self._synchronizer.sync_one(tenant.owner_role, SyncAction.DELETE),
                )
                self._synchronizer.sync_one(tenant.owner_role, SyncAction.ADD)
            except Exception as e:
                self._probe.tenant_creation_failed(tenant.id, str(e))
                undo.run()
                raise

            self._probe.tenant_created(tenant.id, tenant.subdomain, tenant.owner_role)
            self_test = self.self_test(tenant, password)

        return CreateTenantResult(
            tenant=tenant,
            fqdn=tenant.mapping.fqdn(self._gate.root_identity),
            password=None if owner_password else password,
            self_test=self_test,
        )

    def _check_available(self, tenant: Tenant) -> None:
        existing = self._registry.find(tenant.id)
        if existing is not None and existing.is_live:
            raise DuplicateIdentityError(
                f"Tenant {tenant.id} already exists", tenant_id=tenant.id
            )
        for other in self._registry.list_all():
            if other.is_live and other.subdomain == tenant.subdomain:
                raise DuplicateIdentityError(
                    f"Subdomain {tenant.subdomain} is already used by tenant {other.id}",
                    tenant_id=tenant.id,
                    subdomain=tenant.subdomain,
                    conflicting_tenant_id=other.id,
                )
        if self._store.database_exists(tenant.id):
            raise DuplicateIdentityError(
                f"Database {tenant.id} already exists", tenant_id=tenant.id
            )
        if self._store.role_exists(tenant.owner_role):
            raise DuplicateIdentityError(
                f"Role {tenant.owner_role} already exists",
                tenant_id=tenant.id,
                role_name=tenant.owner_role,
            )

    # Self-test

    def self_test(self, tenant: Tenant, password: str | None = None) -> SelfTestResult:
        """Check the gate against the tenant's own mapping.

        The correct subdomain must be allowed, and the bare root identity and
        a look-alike (``<subdomain>evil``) must be rejected. With the owner
        password a real session is opened through the gate as well.
        """
        root = self._gate.root_identity
        fqdn = tenant.mapping.fqdn(root)
        lookalike = f"{tenant.subdomain}evil.{root}"
        errors: list[str] = []

        def request(identity: str) -> AccessRequest:
            return AccessRequest.from_signals(
                tenant.id,
                {"tls_server_name": identity},
                role_name=tenant.owner_role,
                role_scope=RoleScope.TENANT_OWNER,
            )

        subdomain_allowed = self._gate.evaluate(request(fqdn)).allowed
        if not subdomain_allowed:
            errors.append(f"{fqdn} was rejected for {tenant.id}")
        root_rejected = not self._gate.evaluate(request(root)).allowed
        if not root_rejected:
            errors.append(f"root identity {root} was allowed for {tenant.id}")
        lookalike_rejected = not self._gate.evaluate(request(lookalike)).allowed
        if not lookalike_rejected:
            errors.append(f"{lookalike} was allowed for {tenant.id}")

        connection_ok: bool | None = None
        if password is not None:
            try:
                self._gate.open_session(
                    request(fqdn),
                    lambda: self._store.check_login(tenant.id, tenant.owner_role, password),
                )
                connection_ok = True
            except DbhubError as e:
                connection_ok = False
                errors.append(f"connection as {tenant.owner_role} failed: {e.message}")

        result = SelfTestResult(
            tenant_id=tenant.id,
            subdomain_allowed=subdomain_allowed,
            root_rejected=root_rejected,
            lookalike_rejected=lookalike_rejected,
            connection_ok=connection_ok,
            errors=errors,
        )
        self._probe.self_test_completed(tenant.id, result.passed, errors)
        return result

    def audit_access(self) -> AuditReport:
        """Self-test every live tenant without opening sessions."""
        return AuditReport(
            results=[
                self.self_test(tenant)
                for tenant in self._registry.list_all()
                if tenant.status == TenantStatus.LIVE
            ]
        )

    def list_tenants(self) -> list[Tenant]:
        return self._registry.list_all()

    # Teardown

    def destroy_tenant(
        self,
        tenant_id: str,
        mode: TeardownMode = TeardownMode.REASSIGN,
        cancel: CancellationToken | None = None,
    ) -> TeardownResult:
        """Tear a tenant down, resuming an unfinished teardown.

        Returns a result with status destroyed-quarantined when the
        dependencies could not be resolved; no data is dropped in that case
        beyond what ``drop`` mode removes up front.

        Raises:
            TenantNotFoundError: If the tenant is unknown
            TeardownInterruptedError: If ``cancel`` fires during the
                dependency walk
            TenantBusyError: If another operation holds the tenant
        """
        with self._locks.hold(tenant_id):
            tenant = self._registry.get(tenant_id)

            if tenant.status == TenantStatus.DESTROYED_QUARANTINED:
                return TeardownResult(
                    tenant_id=tenant.id,
                    status=tenant.status,
                    mode=str(mode),
                    quarantine_name=tenant.quarantine_name,
                )
            if tenant.status == TenantStatus.DESTROYED_CLEAN:
                self._registry.delete(tenant.id)
                return TeardownResult(tenant_id=tenant.id, status=tenant.status, mode=str(mode))

            progress = tenant.begin_teardown(mode)
            self._registry.put(tenant)
            self._probe.teardown_started(tenant.id, str(progress.mode), progress.next_tier.name)
            return self._teardown.run(tenant, cancel or CancellationToken())

    # Members

    def add_member(
        self,
        tenant_id: str,
        role_name: str,
        scope: RoleScope,
        password: str | None = None,
    ) -> MemberResult:
        """Create a member role with ``scope``'s privileges inside the tenant.

        Raises:
            InvalidIdentifierError: If the name or scope is unacceptable
            DuplicateIdentityError: If the role already exists
        """
        validate_role_name(role_name)
        secret = password or self._password_factory()

        with self._locks.hold(tenant_id):
            tenant = self._live_tenant(tenant_id)
            tenant.add_member(role_name, scope)
            if self._store.role_exists(role_name):
                raise DuplicateIdentityError(
                    f"Role {role_name} already exists", role_name=role_name
                )

            undo = _Compensation(tenant.id, self._probe)
            try:
                self._store.create_role(role_name, secret)
                undo.add("drop member role", lambda: self._store.drop_role(role_name))
                self._store.apply_privileges(tenant.id, role_name, scope, tenant.owner_role)
                undo.add(
                    "revoke member privileges",
                    lambda: self._store.revoke_privileges(
                        tenant.id, role_name, scope, tenant.owner_role
                    ),
                )

                self._registry.put(tenant)
                undo.add("remove member from registry", lambda: self._forget_member(tenant, role_name))

                undo.add(
                    "remove cache entry",
                    lambda: self._synchronizer.sync_one(role_name, SyncAction.DELETE),
                )
                self._synchronizer.sync_one(role_name, SyncAction.ADD)
            except Exception as e:
                self._probe.member_add_failed(tenant.id, role_name, str(e))
                undo.run()
                raise

        self._probe.member_added(tenant.id, role_name, str(scope))
        return MemberResult(
            tenant_id=tenant.id,
            role_name=role_name,
            scope=str(scope),
            action="added",
            password=None if password else secret,
        )

    def remove_member(
        self,
        tenant_id: str,
        role_name: str,
        cancel: CancellationToken | None = None,
    ) -> MemberResult:
        """Drop a member role after resolving its dependencies.

        When tiers 1-3 cannot free the role its login is disabled, its cache
        entry removed and the role stays recorded on the tenant.

        Raises:
            TenantNotFoundError: If the tenant or the member is unknown
            DependencyUnresolvedError: If the role cannot be dropped
        """
        with self._locks.hold(tenant_id):
            tenant = self._live_tenant(tenant_id)
            if role_name not in tenant.member_roles:
                raise TenantNotFoundError(
                    f"Role {role_name} is not a member of tenant {tenant.id}",
                    tenant_id=tenant.id,
                    role_name=role_name,
                )
            scope = tenant.member_roles[role_name]

            if self._store.role_exists(role_name):
                self._store.terminate_sessions(roles=[role_name])
                remaining = self._teardown.release_roles(
                    tenant, [role_name], cancel or CancellationToken()
                )
                if remaining:
                    self._store.set_login(role_name, False)
                    self._synchronizer.sync_one(role_name, SyncAction.DELETE)
                    raise DependencyUnresolvedError(
                        f"Role {role_name} still has {len(remaining)} dependencies; "
                        "login disabled",
                        tenant_id=tenant.id,
                        role_name=role_name,
                        remaining_dependencies=[d.as_dict() for d in remaining],
                    )
                self._synchronizer.sync_one(role_name, SyncAction.DELETE)
                self._store.drop_role(role_name)
            else:
                self._synchronizer.sync_one(role_name, SyncAction.DELETE)

            tenant.remove_member(role_name)
            self._registry.put(tenant)

        self._probe.member_removed(tenant.id, role_name)
        return MemberResult(
            tenant_id=tenant.id, role_name=role_name, scope=str(scope), action="removed"
        )

    def rotate_password(self, role_name: str, password: str | None = None) -> MemberResult:
        """Change a tenant role's password and push the new verifier.

        Raises:
            TenantNotFoundError: If no live tenant owns the role
        """
        owner = self._tenant_of_role(role_name)
        secret = password or self._password_factory()

        with self._locks.hold(owner.id):
            tenant = self._live_tenant(owner.id)
            scope = tenant.scope_of(role_name)
            self._store.set_password(role_name, secret)
            self._synchronizer.sync_one(role_name, SyncAction.UPDATE)

        self._probe.password_rotated(tenant.id, role_name)
        return MemberResult(
            tenant_id=tenant.id,
            role_name=role_name,
            scope=str(scope),
            action="rotated",
            password=None if password else secret,
        )

    # Mapping

    def remap_subdomain(self, tenant_id: str, subdomain: str) -> Tenant:
        """Point a live tenant at a new subdomain.

        Raises:
            InvalidIdentifierError: If the subdomain is unacceptable
            DuplicateIdentityError: If another live tenant uses it
        """
        with self._locks.hold(tenant_id):
            tenant = self._live_tenant(tenant_id)
            old_subdomain = tenant.subdomain
            tenant.remap(subdomain)
            if tenant.subdomain == old_subdomain:
                return tenant
            self._registry.put(tenant)

        self._probe.subdomain_remapped(tenant.id, old_subdomain, tenant.subdomain)
        return tenant

    # Helpers

    def _live_tenant(self, tenant_id: str) -> Tenant:
        tenant = self._registry.get(tenant_id)
        if tenant.status != TenantStatus.LIVE:
            raise TenantNotFoundError(
                f"Tenant {tenant_id} is {tenant.status}",
                tenant_id=tenant_id,
                status=str(tenant.status),
            )
        return tenant

    def _tenant_of_role(self, role_name: str) -> Tenant:
        for tenant in self._registry.list_all():
            if tenant.status == TenantStatus.LIVE and role_name in tenant.roles:
                return tenant
        raise TenantNotFoundError(
            f"Role {role_name} does not belong to any live tenant", role_name=role_name
        )

    def _forget_member(self, tenant: Tenant, role_name: str) -> None:
        tenant.remove_member(role_name)
        self._registry.put(tenant)
