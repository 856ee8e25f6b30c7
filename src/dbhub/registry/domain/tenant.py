"""Tenant aggregate for the Tenant Registry."""

from __future__ import annotations

from dataclasses import dataclass, field

from dbhub.registry.domain.value_objects import (
    HostnameMapping,
    TeardownMode,
    TeardownProgress,
    TeardownTier,
    TenantStatus,
)
from dbhub.shared_kernel.exceptions import (
    DuplicateIdentityError,
    InvalidIdentifierError,
    TenantNotFoundError,
)
from dbhub.shared_kernel.identifiers import (
    validate_role_name,
    validate_subdomain,
    validate_tenant_id,
)
from dbhub.shared_kernel.roles import RoleScope


@dataclass
class Tenant:
    """A tenant: one database, one hostname, one owner role.

    Business rules:
    - ``id`` is the database name and never changes
    - the owner role is distinct from every member role
    - member roles carry a member scope (full or readonly)
    - a tenant that is tearing down resumes from its persisted tier
    """

    id: str
    subdomain: str
    owner_role: str
    member_roles: dict[str, RoleScope] = field(default_factory=dict)
    status: TenantStatus = TenantStatus.LIVE
    teardown: TeardownProgress | None = None
    quarantine_name: str | None = None

    @classmethod
    def create(
        cls, tenant_id: str, owner_role: str, subdomain: str | None = None
    ) -> Tenant:
        """Factory method for a new live tenant.

        Args:
            tenant_id: Database name of the tenant
            owner_role: Name of the full-privilege owner role
            subdomain: Hostname label (defaults to the tenant id)

        Raises:
            InvalidIdentifierError: If any identifier is unacceptable
        """
        validate_tenant_id(tenant_id)
        validate_role_name(owner_role)
        subdomain = subdomain if subdomain is not None else tenant_id.replace("_", "-")
        validate_subdomain(subdomain)
        return cls(id=tenant_id, subdomain=subdomain, owner_role=owner_role)

    @property
    def is_live(self) -> bool:
        return self.status.is_live

    @property
    def mapping(self) -> HostnameMapping:
        return HostnameMapping(tenant_id=self.id, subdomain=self.subdomain)

    @property
    def roles(self) -> list[str]:
        """Owner role followed by the member roles in name order."""
        return [self.owner_role, *sorted(self.member_roles)]

    def scope_of(self, role_name: str) -> RoleScope:
        """Scope of one of this tenant's roles."""
        if role_name == self.owner_role:
            return RoleScope.TENANT_OWNER
        try:
            return self.member_roles[role_name]
        except KeyError:
            raise TenantNotFoundError(
                f"Role {role_name} does not belong to tenant {self.id}",
                tenant_id=self.id,
                role_name=role_name,
            ) from None

    def add_member(self, role_name: str, scope: RoleScope) -> None:
        validate_role_name(role_name)
        if not scope.is_member_scope:
            raise InvalidIdentifierError(
                f"Scope {scope} cannot be granted to a member role",
                role_name=role_name,
                scope=str(scope),
            )
        if role_name == self.owner_role or role_name in self.member_roles:
            raise DuplicateIdentityError(
                f"Role {role_name} already belongs to tenant {self.id}",
                tenant_id=self.id,
                role_name=role_name,
            )
        self.member_roles[role_name] = scope

    def remove_member(self, role_name: str) -> None:
        if role_name not in self.member_roles:
            raise TenantNotFoundError(
                f"Role {role_name} is not a member of tenant {self.id}",
                tenant_id=self.id,
                role_name=role_name,
            )
        del self.member_roles[role_name]

    def remap(self, subdomain: str) -> None:
        self.subdomain = validate_subdomain(subdomain)

    def begin_teardown(self, mode: TeardownMode) -> TeardownProgress:
        """Enter tearing-down, or resume an unfinished teardown.

        A resumed teardown keeps its persisted mode and tier; ``mode`` only
        applies to a teardown that starts now.
        """
        if self.status == TenantStatus.TEARING_DOWN and self.teardown is not None:
            return self.teardown
        self.status = TenantStatus.TEARING_DOWN
        self.teardown = TeardownProgress(mode=mode)
        return self.teardown

    def advance_teardown(self, tier: TeardownTier) -> None:
        if self.teardown is None:
            raise ValueError(f"Tenant {self.id} is not tearing down")
        self.teardown = self.teardown.advanced_to(tier)

    def mark_destroyed_clean(self) -> None:
        self.status = TenantStatus.DESTROYED_CLEAN
        self.teardown = None

    def mark_quarantined(self, quarantine_name: str | None) -> None:
        self.status = TenantStatus.DESTROYED_QUARANTINED
        self.teardown = None
        self.quarantine_name = quarantine_name
