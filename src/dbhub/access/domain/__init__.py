"""Access Gate domain layer."""

from dbhub.access.domain.decision import (
    AccessDecision,
    AccessRequest,
    DecisionReason,
    GateState,
)
from dbhub.access.domain.identity import (
    declared_identity_from,
    expected_identities,
    identity_matches,
    normalize_hostname,
)

__all__ = [
    "AccessDecision",
    "AccessRequest",
    "DecisionReason",
    "GateState",
    "declared_identity_from",
    "expected_identities",
    "identity_matches",
    "normalize_hostname",
]
