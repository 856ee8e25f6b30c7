"""Role scopes and the privilege set each scope carries.

The scope enumeration is closed: every role the engine creates has exactly
one of these scopes, and the privileges for a scope are declared here once.
Provisioning renders these declarations into GRANT statements, teardown
renders them into REVOKE statements, and the Access Gate reads
``bypasses_isolation``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class RoleScope(StrEnum):
    """Scope of an authentication principal."""

    SUPERUSER = "superuser"
    TENANT_OWNER = "tenant-owner"
    TENANT_MEMBER_FULL = "tenant-member-full"
    TENANT_MEMBER_READONLY = "tenant-member-readonly"

    @property
    def privileges(self) -> RolePrivileges:
        """Privilege set for this scope."""
        return _PRIVILEGES[self]

    @property
    def is_member_scope(self) -> bool:
        """Whether roles of this scope can be added as tenant members."""
        return self in (RoleScope.TENANT_MEMBER_FULL, RoleScope.TENANT_MEMBER_READONLY)


@dataclass(frozen=True)
class RolePrivileges:
    """Privileges a role receives inside its tenant database.

    Attributes:
        can_login: Whether the role is created with LOGIN
        bypasses_isolation: Whether the Access Gate lets it through any identity
        owns_database: Whether the role becomes the database owner
        database: Privileges on the database object
        schema: Privileges on the public schema
        tables: Privileges on all (current and future) tables
        sequences: Privileges on all (current and future) sequences
        functions: Privileges on all (current and future) functions
    """

    can_login: bool
    bypasses_isolation: bool
    owns_database: bool
    database: tuple[str, ...] = ()
    schema: tuple[str, ...] = ()
    tables: tuple[str, ...] = ()
    sequences: tuple[str, ...] = ()
    functions: tuple[str, ...] = ()


_PRIVILEGES: dict[RoleScope, RolePrivileges] = {
    RoleScope.SUPERUSER: RolePrivileges(
        can_login=True,
        bypasses_isolation=True,
        owns_database=False,
    ),
    RoleScope.TENANT_OWNER: RolePrivileges(
        can_login=True,
        bypasses_isolation=False,
        owns_database=True,
        database=("ALL PRIVILEGES",),
        schema=("ALL PRIVILEGES",),
        tables=("ALL PRIVILEGES",),
        sequences=("ALL PRIVILEGES",),
        functions=("ALL PRIVILEGES",),
    ),
    RoleScope.TENANT_MEMBER_FULL: RolePrivileges(
        can_login=True,
        bypasses_isolation=False,
        owns_database=False,
        database=("CONNECT",),
        schema=("USAGE",),
        tables=("SELECT", "INSERT", "UPDATE", "DELETE"),
        sequences=("USAGE", "SELECT"),
    ),
    RoleScope.TENANT_MEMBER_READONLY: RolePrivileges(
        can_login=True,
        bypasses_isolation=False,
        owns_database=False,
        database=("CONNECT",),
        schema=("USAGE",),
        tables=("SELECT",),
        sequences=("SELECT",),
    ),
}
