"""Pydantic models for the tenant metadata document.

The document lives next to the hostname map and carries everything the
map does not: owner role, member roles, status, teardown progress and
quarantine name.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from dbhub.registry.domain.tenant import Tenant
from dbhub.registry.domain.value_objects import (
    TeardownMode,
    TeardownProgress,
    TeardownTier,
    TenantStatus,
)
from dbhub.shared_kernel.roles import RoleScope

DOCUMENT_VERSION = 1


class TeardownProgressModel(BaseModel):
    """Persisted teardown position."""

    mode: TeardownMode
    next_tier: TeardownTier = TeardownTier.PREPARE


class TenantRecordModel(BaseModel):
    """Metadata of one tenant."""

    subdomain: str = Field(..., description="Last known subdomain")
    owner_role: str
    member_roles: dict[str, RoleScope] = Field(default_factory=dict)
    status: TenantStatus = TenantStatus.LIVE
    teardown: TeardownProgressModel | None = None
    quarantine_name: str | None = None

    @classmethod
    def from_domain(cls, tenant: Tenant) -> TenantRecordModel:
        return cls(
            subdomain=tenant.subdomain,
            owner_role=tenant.owner_role,
            member_roles=dict(tenant.member_roles),
            status=tenant.status,
            teardown=(
                TeardownProgressModel(
                    mode=tenant.teardown.mode,
                    next_tier=tenant.teardown.next_tier,
                )
                if tenant.teardown is not None
                else None
            ),
            quarantine_name=tenant.quarantine_name,
        )

    def to_domain(self, tenant_id: str, subdomain: str | None = None) -> Tenant:
        """Rebuild the Tenant; ``subdomain`` from the map wins when given."""
        return Tenant(
            id=tenant_id,
            subdomain=subdomain or self.subdomain,
            owner_role=self.owner_role,
            member_roles=dict(self.member_roles),
            status=self.status,
            teardown=(
                TeardownProgress(
                    mode=self.teardown.mode, next_tier=self.teardown.next_tier
                )
                if self.teardown is not None
                else None
            ),
            quarantine_name=self.quarantine_name,
        )


class RegistryDocument(BaseModel):
    """The whole metadata document."""

    version: int = DOCUMENT_VERSION
    tenants: dict[str, TenantRecordModel] = Field(default_factory=dict)
