"""Shared Kernel module.

This module contains foundational components that are explicitly shared across
the registry, access, credentials and lifecycle contexts: the error kinds,
role scopes, identifier validation and the observation context.
"""

from dbhub.shared_kernel.exceptions import (
    CorruptCacheEntryError,
    DbhubError,
    DependencyUnresolvedError,
    DuplicateIdentityError,
    IdentityMismatchError,
    InvalidIdentifierError,
    PrimaryStoreError,
    RegistryUnavailableError,
    SyncFailureError,
    TeardownInterruptedError,
    TenantBusyError,
    TenantNotFoundError,
)
from dbhub.shared_kernel.observability_context import ObservationContext
from dbhub.shared_kernel.roles import RolePrivileges, RoleScope

__all__ = [
    "CorruptCacheEntryError",
    "DbhubError",
    "DependencyUnresolvedError",
    "DuplicateIdentityError",
    "IdentityMismatchError",
    "InvalidIdentifierError",
    "ObservationContext",
    "PrimaryStoreError",
    "RegistryUnavailableError",
    "RoleScope",
    "RolePrivileges",
    "SyncFailureError",
    "TeardownInterruptedError",
    "TenantBusyError",
    "TenantNotFoundError",
]
