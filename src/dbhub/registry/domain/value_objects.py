"""Value objects for the Tenant Registry domain."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum, StrEnum


class TenantStatus(StrEnum):
    """Lifecycle status of a tenant."""

    LIVE = "live"
    TEARING_DOWN = "tearing-down"
    DESTROYED_CLEAN = "destroyed-clean"
    DESTROYED_QUARANTINED = "destroyed-quarantined"

    @property
    def is_live(self) -> bool:
        """A live tenant holds its id and subdomain exclusively."""
        return self in (TenantStatus.LIVE, TenantStatus.TEARING_DOWN)


class TeardownMode(StrEnum):
    """What happens to the tenant database on destroy."""

    REASSIGN = "reassign"
    DROP = "drop"


class TeardownTier(IntEnum):
    """Steps of a teardown, in the order they are attempted.

    PREPARE terminates sessions and drops or reassigns the database;
    tiers 1-4 resolve role dependencies; FINALIZE removes the roles.
    """

    PREPARE = 0
    REASSIGN_OWNED = 1
    DROP_OWNED = 2
    DEPENDENCY_WALK = 3
    QUARANTINE = 4
    FINALIZE = 5


@dataclass(frozen=True)
class TeardownProgress:
    """Persisted position of an unfinished teardown."""

    mode: TeardownMode
    next_tier: TeardownTier = TeardownTier.PREPARE

    def advanced_to(self, tier: TeardownTier) -> TeardownProgress:
        return TeardownProgress(mode=self.mode, next_tier=tier)


@dataclass(frozen=True)
class HostnameMapping:
    """Binding of a tenant database to its network identity."""

    tenant_id: str
    subdomain: str

    def fqdn(self, root_identity: str) -> str:
        """Fully-qualified hostname under the platform root."""
        return f"{self.subdomain}.{root_identity}"
