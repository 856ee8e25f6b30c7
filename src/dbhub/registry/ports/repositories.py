"""Repository protocol (port) for the Tenant Registry.

The registry is the authoritative mapping of tenant to database,
subdomain, roles and status. The Tenant Lifecycle Manager is its only
writer; the Access Gate and the Credential Synchronizer only read it.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from dbhub.registry.domain.tenant import Tenant
from dbhub.registry.domain.value_objects import HostnameMapping


@runtime_checkable
class ITenantRegistry(Protocol):
    """Durable store of Tenant records."""

    def put(self, tenant: Tenant, *, create: bool = False) -> None:
        """Insert or update a tenant.

        Args:
            tenant: The tenant to persist
            create: Reject the write if a live tenant with this id exists

        Raises:
            DuplicateIdentityError: If the id or subdomain is held by
                another live tenant
            RegistryUnavailableError: If the registry cannot be written
        """
        ...

    def get(self, tenant_id: str) -> Tenant:
        """Retrieve a tenant by id.

        Raises:
            TenantNotFoundError: If no record exists
            RegistryUnavailableError: If the registry cannot be read
        """
        ...

    def find(self, tenant_id: str) -> Tenant | None:
        """Retrieve a tenant by id, or None if no record exists."""
        ...

    def delete(self, tenant_id: str) -> None:
        """Remove a tenant record and its hostname mapping.

        Callers remove the tenant's roles and cache entries first.

        Raises:
            TenantNotFoundError: If no record exists
        """
        ...

    def resolve_by_subdomain(self, subdomain: str) -> str:
        """Return the id of the live tenant mapped to ``subdomain``.

        Raises:
            TenantNotFoundError: If no live tenant uses the subdomain
        """
        ...

    def get_mapping(self, tenant_id: str) -> HostnameMapping | None:
        """Hostname mapping of a database, read from the map alone."""
        ...

    def list_all(self) -> list[Tenant]:
        """All tenant records ordered by id."""
        ...
