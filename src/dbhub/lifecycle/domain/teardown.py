"""Tiered teardown as pure transitions.

Every decision the teardown makes is a function of the current blocking
condition: which dependencies still tie the tenant roles to objects. The
executor performs the side effects and feeds the observed condition back
into these functions.

Tier order:

1. REASSIGN OWNED to the platform administrator, then revoke grants
2. DROP OWNED ... CASCADE
3. walk the remaining dependencies one at a time, then retry tier 2
4. quarantine: rename, disable login, unmap
"""

from __future__ import annotations

import re
from collections.abc import Collection, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from dbhub.registry.domain.value_objects import TeardownTier

POSTGRES_NAME_LIMIT = 63
QUARANTINE_SUFFIX_RE = re.compile(r"_quarantine_\d{14}$")


class DependencyKind(StrEnum):
    """Why a role cannot be dropped yet (from ``pg_shdepend.deptype``)."""

    DATABASE = "database"
    OWNED_OBJECT = "owned-object"
    DEFAULT_ACL = "default-acl"
    PRIVILEGE = "privilege"
    POLICY = "policy"
    OTHER = "other"


@dataclass(frozen=True)
class Dependency:
    """One object that keeps a role alive.

    Attributes:
        role: Role the object depends on
        database: Database holding the object; None for shared objects
        kind: Kind of dependency
        object_type: Object type as reported by ``pg_identify_object``
        object_identity: Schema-qualified, quoted identity of the object
        object_name: Unqualified name of the object
    """

    role: str
    database: str | None
    kind: DependencyKind
    object_type: str
    object_identity: str
    object_name: str

    def as_dict(self) -> dict[str, str | None]:
        return {
            "role": self.role,
            "database": self.database,
            "kind": str(self.kind),
            "object_type": self.object_type,
            "object_identity": self.object_identity,
        }


class StepAction(StrEnum):
    """Single statement the dependency walk may issue."""

    ALTER_OWNER = "alter-owner"
    REVOKE_ALL = "revoke-all"
    DROP_OBJECT = "drop-object"
    DROP_OWNED_IN_DATABASE = "drop-owned-in-database"


@dataclass(frozen=True)
class ResolutionStep:
    action: StepAction
    dependency: Dependency


# Actions tried, in order, for each kind of dependency.
_STEPS: dict[DependencyKind, tuple[StepAction, ...]] = {
    DependencyKind.DATABASE: (StepAction.ALTER_OWNER,),
    DependencyKind.OWNED_OBJECT: (StepAction.ALTER_OWNER, StepAction.DROP_OBJECT),
    DependencyKind.DEFAULT_ACL: (StepAction.DROP_OWNED_IN_DATABASE,),
    DependencyKind.PRIVILEGE: (StepAction.REVOKE_ALL,),
    DependencyKind.POLICY: (StepAction.DROP_OBJECT,),
    DependencyKind.OTHER: (),
}


def classify_dependency(deptype: str, object_type: str) -> DependencyKind:
    """Map a ``pg_shdepend`` row to a DependencyKind."""
    if deptype == "o":
        if object_type == "database":
            return DependencyKind.DATABASE
        if object_type == "default acl":
            return DependencyKind.DEFAULT_ACL
        return DependencyKind.OWNED_OBJECT
    if deptype == "a":
        return DependencyKind.PRIVILEGE
    if deptype == "r":
        return DependencyKind.POLICY
    return DependencyKind.OTHER


def plan_dependency_step(dependency: Dependency, attempt: int) -> ResolutionStep | None:
    """Next statement for a blocking dependency.

    Args:
        dependency: The blocking dependency
        attempt: How many steps already failed for it (0-based)

    Returns:
        The step to try, or None when nothing is left to try
    """
    steps = _STEPS[dependency.kind]
    if attempt >= len(steps):
        return None
    return ResolutionStep(action=steps[attempt], dependency=dependency)


def next_tier(current: TeardownTier, remaining: Sequence[Dependency]) -> TeardownTier:
    """Tier to run after ``current`` given the dependencies still blocking.

    No remaining dependency means the roles can be dropped. Otherwise the
    next stronger tier runs, ending in quarantine.
    """
    if current in (TeardownTier.QUARANTINE, TeardownTier.FINALIZE):
        raise ValueError(f"{current.name} is terminal")
    if not remaining:
        return TeardownTier.FINALIZE
    return TeardownTier(current + 1)


def quarantine_name(name: str, now: datetime) -> str:
    """``<name>_quarantine_<YYYYmmddHHMMSS>``, kept within PostgreSQL's name limit."""
    suffix = f"_quarantine_{now:%Y%m%d%H%M%S}"
    return name[: POSTGRES_NAME_LIMIT - len(suffix)] + suffix


def _is_quarantined(name: str) -> bool:
    return QUARANTINE_SUFFIX_RE.search(name) is not None


def _inside(dependency: Dependency, tenant_databases: Collection[str]) -> bool:
    if dependency.kind == DependencyKind.DATABASE:
        return dependency.object_name in tenant_databases
    return dependency.database in tenant_databases


def quarantine_targets(
    tenant_databases: Collection[str], remaining: Sequence[Dependency]
) -> list[Dependency]:
    """Blocking objects outside the tenant database, renamed in place.

    Objects inside ``tenant_databases`` (the tenant database under its own
    or its quarantine name) are covered by the database rename; objects
    already carrying a quarantine suffix are skipped.
    """
    seen: set[tuple[str | None, str, str]] = set()
    targets: list[Dependency] = []
    for dependency in remaining:
        if dependency.kind != DependencyKind.OWNED_OBJECT:
            continue
        if _inside(dependency, tenant_databases) or _is_quarantined(dependency.object_name):
            continue
        key = (dependency.database, dependency.object_type, dependency.object_identity)
        if key in seen:
            continue
        seen.add(key)
        targets.append(dependency)
    return targets


def needs_database_rename(tenant_database: str, remaining: Sequence[Dependency]) -> bool:
    """Whether quarantine has to rename the whole tenant database.

    True when a blocking dependency sits inside the tenant database, or
    when nothing outside it can be renamed instead.
    """
    if any(_inside(dependency, (tenant_database,)) for dependency in remaining):
        return True
    return not quarantine_targets((tenant_database,), remaining)
