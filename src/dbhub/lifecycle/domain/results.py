"""Results returned by lifecycle operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from dbhub.lifecycle.domain.teardown import Dependency
from dbhub.registry.domain.tenant import Tenant
from dbhub.registry.domain.value_objects import TenantStatus


@dataclass
class SelfTestResult:
    """Gate checks run against a tenant's own mapping.

    ``connection_ok`` is None when no live connection was attempted
    (the owner password is only known right after creation).
    """

    tenant_id: str
    subdomain_allowed: bool
    root_rejected: bool
    lookalike_rejected: bool
    connection_ok: bool | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return (
            self.subdomain_allowed
            and self.root_rejected
            and self.lookalike_rejected
            and self.connection_ok is not False
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "passed": self.passed,
            "subdomain_allowed": self.subdomain_allowed,
            "root_rejected": self.root_rejected,
            "lookalike_rejected": self.lookalike_rejected,
            "connection_ok": self.connection_ok,
            "errors": self.errors,
        }


@dataclass
class CreateTenantResult:
    tenant: Tenant
    fqdn: str
    password: str | None
    self_test: SelfTestResult

    def as_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "tenant_id": self.tenant.id,
            "subdomain": self.tenant.subdomain,
            "fqdn": self.fqdn,
            "owner_role": self.tenant.owner_role,
            "status": str(self.tenant.status),
            "self_test": self.self_test.as_dict(),
        }
        if self.password is not None:
            result["generated_password"] = self.password
        return result


@dataclass
class TeardownResult:
    tenant_id: str
    status: TenantStatus
    mode: str
    tiers_run: list[str] = field(default_factory=list)
    roles_dropped: list[str] = field(default_factory=list)
    quarantine_name: str | None = None
    quarantined_objects: list[str] = field(default_factory=list)
    remaining: list[Dependency] = field(default_factory=list)

    @property
    def quarantined(self) -> bool:
        return self.status == TenantStatus.DESTROYED_QUARANTINED

    def as_dict(self) -> dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "status": str(self.status),
            "mode": self.mode,
            "tiers_run": self.tiers_run,
            "roles_dropped": self.roles_dropped,
            "quarantine_name": self.quarantine_name,
            "quarantined_objects": self.quarantined_objects,
            "remaining_dependencies": [d.as_dict() for d in self.remaining],
        }


@dataclass
class MemberResult:
    tenant_id: str
    role_name: str
    scope: str
    action: str
    password: str | None = None

    def as_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "tenant_id": self.tenant_id,
            "role_name": self.role_name,
            "scope": self.scope,
            "action": self.action,
        }
        if self.password is not None:
            result["generated_password"] = self.password
        return result


@dataclass
class AuditReport:
    results: list[SelfTestResult] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(result.passed for result in self.results)

    def as_dict(self) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "tenants": len(self.results),
            "failed": [r.tenant_id for r in self.results if not r.passed],
            "results": [r.as_dict() for r in self.results],
        }
