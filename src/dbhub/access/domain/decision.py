"""Access Gate decision model.

Each connection attempt moves through
``Unauthenticated -> IdentityDeclared -> {Allowed, Rejected}``. The
decision records which rule produced the outcome so rejections can be
logged and reported without re-evaluating.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from dbhub.access.domain.identity import declared_identity_from
from dbhub.shared_kernel.roles import RoleScope


class GateState(StrEnum):
    UNAUTHENTICATED = "unauthenticated"
    IDENTITY_DECLARED = "identity-declared"
    ALLOWED = "allowed"
    REJECTED = "rejected"


class DecisionReason(StrEnum):
    """Rule that produced a decision."""

    SUPERUSER = "superuser"
    ADMIN_DATABASE = "admin-database"
    IDENTITY_MATCH = "identity-match"
    MISSING_IDENTITY = "missing-identity"
    NO_MAPPING = "no-mapping"
    IDENTITY_MISMATCH = "identity-mismatch"
    REGISTRY_UNAVAILABLE = "registry-unavailable"


@dataclass(frozen=True)
class AccessRequest:
    """A connection attempt as seen by the gate.

    Attributes:
        database: Target database name
        declared_identity: Network identity from a trust-boundary signal
        role_name: Role the client authenticates as, if known
        role_scope: Scope of that role, if known
    """

    database: str
    declared_identity: str | None
    role_name: str | None = None
    role_scope: RoleScope | None = None

    @classmethod
    def from_signals(
        cls,
        database: str,
        signals: Mapping[str, str | None],
        role_name: str | None = None,
        role_scope: RoleScope | None = None,
    ) -> AccessRequest:
        """Build a request from the connection signals the proxy reports.

        Only trust-boundary signals are read; see ``declared_identity_from``.
        """
        return cls(
            database=database,
            declared_identity=declared_identity_from(signals),
            role_name=role_name,
            role_scope=role_scope,
        )


@dataclass(frozen=True)
class AccessDecision:
    """Terminal outcome of a gate evaluation."""

    state: GateState
    reason: DecisionReason
    database: str
    declared_identity: str | None
    expected_identities: tuple[str, ...] = field(default_factory=tuple)

    @property
    def allowed(self) -> bool:
        return self.state == GateState.ALLOWED

    def as_dict(self) -> dict[str, Any]:
        return {
            "database": self.database,
            "declared_identity": self.declared_identity,
            "state": str(self.state),
            "reason": str(self.reason),
            "expected_identities": list(self.expected_identities),
        }
