"""Tenant Registry domain layer."""

from dbhub.registry.domain.tenant import Tenant
from dbhub.registry.domain.value_objects import (
    HostnameMapping,
    TeardownMode,
    TeardownProgress,
    TeardownTier,
    TenantStatus,
)

__all__ = [
    "HostnameMapping",
    "TeardownMode",
    "TeardownProgress",
    "TeardownTier",
    "Tenant",
    "TenantStatus",
]
