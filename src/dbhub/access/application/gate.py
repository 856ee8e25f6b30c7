"""Access Gate: per-session tenant isolation check.

The gate compares the identity a client declared at the network edge
with the hostname mapping of the database it wants. It reads the
registry without locking and fails closed: if the registry cannot be
read, or is ambiguous, the attempt is rejected.
"""

from __future__ import annotations

from typing import Callable, TypeVar

from dbhub.access.application.observability import (
    AccessGateProbe,
    DefaultAccessGateProbe,
)
from dbhub.access.domain.decision import (
    AccessDecision,
    AccessRequest,
    DecisionReason,
    GateState,
)
from dbhub.access.domain.identity import (
    expected_identities,
    identity_matches,
    normalize_hostname,
)
from dbhub.registry.ports.repositories import ITenantRegistry
from dbhub.shared_kernel.exceptions import (
    IdentityMismatchError,
    RegistryUnavailableError,
)

T = TypeVar("T")


class AccessGate:
    """Decides whether a connection attempt may reach its target database."""

    def __init__(
        self,
        registry: ITenantRegistry,
        root_identity: str,
        admin_databases: frozenset[str] = frozenset({"postgres", "template0", "template1"}),
        probe: AccessGateProbe | None = None,
    ):
        self._registry = registry
        self._root_identity = root_identity.lower().rstrip(".")
        self._admin_databases = admin_databases
        self._probe = probe or DefaultAccessGateProbe()

    @property
    def root_identity(self) -> str:
        return self._root_identity

    def evaluate(self, request: AccessRequest) -> AccessDecision:
        """Evaluate one attempt. Never raises for a rejection."""
        declared = normalize_hostname(request.declared_identity)

        if request.role_scope is not None and request.role_scope.privileges.bypasses_isolation:
            return self._allow(request, declared, DecisionReason.SUPERUSER)

        if request.database in self._admin_databases:
            return self._allow(request, declared, DecisionReason.ADMIN_DATABASE)

        if declared is None:
            return self._reject(request, declared, DecisionReason.MISSING_IDENTITY)

        try:
            mapping = self._registry.get_mapping(request.database)
        except RegistryUnavailableError as e:
            self._probe.registry_unavailable(request.database, e.message)
            return self._reject(request, declared, DecisionReason.REGISTRY_UNAVAILABLE)

        if mapping is None:
            return self._reject(request, declared, DecisionReason.NO_MAPPING)

        expected = expected_identities(mapping.subdomain, self._root_identity)
        if identity_matches(declared, mapping.subdomain, self._root_identity):
            return self._allow(request, declared, DecisionReason.IDENTITY_MATCH, expected)
        return self._reject(request, declared, DecisionReason.IDENTITY_MISMATCH, expected)

    def enforce(self, request: AccessRequest) -> AccessDecision:
        """Evaluate and raise on rejection.

        Raises:
            IdentityMismatchError: If the attempt is rejected
        """
        decision = self.evaluate(request)
        if not decision.allowed:
            raise IdentityMismatchError(
                f"Access to database {request.database} rejected: {decision.reason}",
                **decision.as_dict(),
            )
        return decision

    def open_session(self, request: AccessRequest, connect: Callable[[], T]) -> T:
        """Open a session only after the gate allowed the attempt.

        ``connect`` is not called for a rejected attempt, so no statement
        can ever run on the target database.

        Raises:
            IdentityMismatchError: If the attempt is rejected
        """
        self.enforce(request)
        return connect()

    def _allow(
        self,
        request: AccessRequest,
        declared: str | None,
        reason: DecisionReason,
        expected: tuple[str, ...] = (),
    ) -> AccessDecision:
        self._probe.access_allowed(request.database, declared, str(reason))
        return AccessDecision(
            state=GateState.ALLOWED,
            reason=reason,
            database=request.database,
            declared_identity=declared,
            expected_identities=expected,
        )

    def _reject(
        self,
        request: AccessRequest,
        declared: str | None,
        reason: DecisionReason,
        expected: tuple[str, ...] = (),
    ) -> AccessDecision:
        self._probe.access_rejected(request.database, declared, str(reason))
        return AccessDecision(
            state=GateState.REJECTED,
            reason=reason,
            database=request.database,
            declared_identity=declared,
            expected_identities=expected,
        )
