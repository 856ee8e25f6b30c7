"""File-backed implementation of the Tenant Registry.

Two files make up the registry:

- the hostname map (``<tenantId> <subdomain>`` per live tenant), which is
  all the Access Gate reads, and
- the tenant metadata document (JSON) next to it.

Every mutation holds an exclusive lock on ``<map>.lock``, re-reads both
files, applies the change and writes both back with atomic renames (map
first). Readers take no lock.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from pydantic import ValidationError

from dbhub.infrastructure.atomic_file import atomic_write_text
from dbhub.infrastructure.locking import FileLock
from dbhub.infrastructure.retry import RetryPolicy
from dbhub.registry.domain.tenant import Tenant
from dbhub.registry.domain.value_objects import HostnameMapping
from dbhub.registry.infrastructure.hostname_map import (
    parse_hostname_map,
    serialize_hostname_map,
)
from dbhub.registry.infrastructure.models import RegistryDocument, TenantRecordModel
from dbhub.registry.infrastructure.observability import (
    DefaultRegistryProbe,
    RegistryProbe,
)
from dbhub.shared_kernel.exceptions import (
    DuplicateIdentityError,
    RegistryUnavailableError,
    TenantNotFoundError,
)

MAP_FILE_MODE = 0o644
METADATA_FILE_MODE = 0o640


def _registry_error(message: str, error: Exception) -> RegistryUnavailableError:
    return RegistryUnavailableError(message, error=str(error))


class FileTenantRegistry:
    """Tenant Registry stored in the hostname map and a metadata document."""

    def __init__(
        self,
        map_path: Path,
        metadata_path: Path,
        owner_role_prefix: str = "admin_",
        lock_timeout_seconds: float = 30.0,
        retry_policy: RetryPolicy | None = None,
        probe: RegistryProbe | None = None,
    ):
        self._map_path = map_path
        self._metadata_path = metadata_path
        self._owner_role_prefix = owner_role_prefix
        self._lock_timeout = lock_timeout_seconds
        self._retry = retry_policy or RetryPolicy()
        self._probe = probe or DefaultRegistryProbe()

    @property
    def map_path(self) -> Path:
        return self._map_path

    @property
    def metadata_path(self) -> Path:
        return self._metadata_path

    # Reads

    def get(self, tenant_id: str) -> Tenant:
        tenant = self.find(tenant_id)
        if tenant is None:
            self._probe.tenant_not_found(tenant_id)
            raise TenantNotFoundError(
                f"Tenant {tenant_id} not found", tenant_id=tenant_id
            )
        return tenant

    def find(self, tenant_id: str) -> Tenant | None:
        return self._load_tenants().get(tenant_id)

    def list_all(self) -> list[Tenant]:
        tenants = self._load_tenants()
        return [tenants[tenant_id] for tenant_id in sorted(tenants)]

    def resolve_by_subdomain(self, subdomain: str) -> str:
        wanted = subdomain.strip().lower()
        for mapping in self._load_mappings():
            if mapping.subdomain == wanted:
                return mapping.tenant_id
        raise TenantNotFoundError(
            f"No tenant is mapped to subdomain {subdomain}", subdomain=subdomain
        )

    def get_mapping(self, tenant_id: str) -> HostnameMapping | None:
        for mapping in self._load_mappings():
            if mapping.tenant_id == tenant_id:
                return mapping
        return None

    # Writes

    def put(self, tenant: Tenant, *, create: bool = False) -> None:
        with self._writer_lock():
            tenants = self._load_tenants()
            existing = tenants.get(tenant.id)
            if create and existing is not None and existing.is_live:
                self._probe.duplicate_identity(tenant.id, existing.id)
                raise DuplicateIdentityError(
                    f"Tenant {tenant.id} already exists", tenant_id=tenant.id
                )

            if tenant.is_live:
                for other in tenants.values():
                    if (
                        other.id != tenant.id
                        and other.is_live
                        and other.subdomain == tenant.subdomain
                    ):
                        self._probe.duplicate_identity(tenant.id, other.id)
                        raise DuplicateIdentityError(
                            f"Subdomain {tenant.subdomain} is already used by "
                            f"tenant {other.id}",
                            tenant_id=tenant.id,
                            subdomain=tenant.subdomain,
                            conflicting_tenant_id=other.id,
                        )

            tenants[tenant.id] = tenant
            self._write(tenants)

        self._probe.tenant_saved(tenant.id, tenant.subdomain, str(tenant.status))

    def delete(self, tenant_id: str) -> None:
        with self._writer_lock():
            tenants = self._load_tenants()
            if tenant_id not in tenants:
                self._probe.tenant_not_found(tenant_id)
                raise TenantNotFoundError(
                    f"Tenant {tenant_id} not found", tenant_id=tenant_id
                )
            del tenants[tenant_id]
            self._write(tenants)

        self._probe.tenant_deleted(tenant_id)

    # Internals

    @contextmanager
    def _writer_lock(self) -> Iterator[None]:
        lock = FileLock(
            self._map_path.with_name(self._map_path.name + ".lock"),
            timeout_seconds=self._lock_timeout,
            busy_error=RegistryUnavailableError,
        )
        with lock:
            yield

    def _read_optional(self, path: Path) -> str | None:
        def read() -> str | None:
            try:
                return path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return None

        return self._retry.call(
            f"read {path.name}",
            read,
            retry_on=(OSError,),
            error_factory=_registry_error,
        )

    def _load_mappings(self) -> list[HostnameMapping]:
        text = self._read_optional(self._map_path)
        if text is None:
            return []
        try:
            return parse_hostname_map(text, source=str(self._map_path))
        except RegistryUnavailableError as e:
            self._probe.registry_unavailable(str(self._map_path), e.message)
            raise

    def _load_document(self) -> RegistryDocument:
        text = self._read_optional(self._metadata_path)
        if text is None or not text.strip():
            return RegistryDocument()
        try:
            return RegistryDocument.model_validate_json(text)
        except ValidationError as e:
            self._probe.registry_unavailable(str(self._metadata_path), str(e))
            raise RegistryUnavailableError(
                f"Tenant metadata {self._metadata_path} is invalid",
                path=str(self._metadata_path),
            ) from e

    def _load_tenants(self) -> dict[str, Tenant]:
        """Merge the map and the metadata into Tenant records.

        The map is authoritative for the subdomain of a mapped tenant. A
        mapped tenant without metadata gets the defaults a map written by
        hand would imply: owner ``<prefix><id>``, no members, live.
        """
        mappings = self._load_mappings()
        document = self._load_document()

        tenants: dict[str, Tenant] = {}
        for mapping in mappings:
            record = document.tenants.get(mapping.tenant_id)
            if record is None:
                tenants[mapping.tenant_id] = Tenant(
                    id=mapping.tenant_id,
                    subdomain=mapping.subdomain,
                    owner_role=f"{self._owner_role_prefix}{mapping.tenant_id}",
                )
            else:
                tenants[mapping.tenant_id] = record.to_domain(
                    mapping.tenant_id, mapping.subdomain
                )

        for tenant_id, record in document.tenants.items():
            if tenant_id not in tenants:
                tenants[tenant_id] = record.to_domain(tenant_id)

        return tenants

    def _write(self, tenants: dict[str, Tenant]) -> None:
        map_text = serialize_hostname_map(
            t.mapping for t in tenants.values() if t.is_live
        )
        document = RegistryDocument(
            tenants={
                tenant_id: TenantRecordModel.from_domain(tenants[tenant_id])
                for tenant_id in sorted(tenants)
            }
        )
        metadata_text = document.model_dump_json(indent=2) + "\n"

        self._retry.call(
            f"write {self._map_path.name}",
            lambda: atomic_write_text(self._map_path, map_text, MAP_FILE_MODE),
            retry_on=(OSError,),
            error_factory=_registry_error,
        )
        self._retry.call(
            f"write {self._metadata_path.name}",
            lambda: atomic_write_text(
                self._metadata_path, metadata_text, METADATA_FILE_MODE
            ),
            retry_on=(OSError,),
            error_factory=_registry_error,
        )
