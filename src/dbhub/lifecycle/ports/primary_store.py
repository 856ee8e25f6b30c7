"""Primary store port: role and database administration in PostgreSQL."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from dbhub.lifecycle.domain.teardown import Dependency, ResolutionStep
from dbhub.shared_kernel.roles import RoleScope


@runtime_checkable
class PrimaryStore(Protocol):
    """Administrative operations the lifecycle manager needs.

    Every method raises ``PrimaryStoreError`` when the statement fails after
    the retry budget. Methods that remove things are idempotent.
    """

    def database_exists(self, name: str) -> bool:
        ...

    def role_exists(self, name: str) -> bool:
        ...

    def create_role(self, name: str, password: str) -> None:
        """Create a login role with no administrative attributes."""
        ...

    def drop_role(self, name: str) -> None:
        ...

    def set_password(self, name: str, password: str) -> None:
        ...

    def set_login(self, name: str, enabled: bool) -> None:
        ...

    def create_database(self, name: str, owner: str) -> None:
        """Create a database owned by ``owner`` that PUBLIC cannot connect to."""
        ...

    def drop_database(self, name: str) -> None:
        ...

    def rename_database(self, name: str, new_name: str) -> None:
        ...

    def transfer_database(self, name: str, new_owner: str) -> None:
        ...

    def apply_privileges(
        self, database: str, role: str, scope: RoleScope, owner_role: str
    ) -> None:
        """Grant ``scope``'s privilege set to ``role`` inside ``database``."""
        ...

    def revoke_privileges(
        self, database: str, role: str, scope: RoleScope, owner_role: str
    ) -> None:
        """Revoke what ``apply_privileges`` granted."""
        ...

    def revoke_memberships(self, roles: Sequence[str]) -> None:
        """Remove every role membership in either direction."""
        ...

    def terminate_sessions(
        self, database: str | None = None, roles: Sequence[str] = ()
    ) -> int:
        """Terminate backends connected to ``database`` or as any of ``roles``."""
        ...

    def dependency_databases(self, roles: Sequence[str]) -> list[str]:
        """Databases holding objects that depend on any of ``roles``."""
        ...

    def reassign_owned(self, database: str, roles: Sequence[str], new_owner: str) -> None:
        ...

    def drop_owned(self, database: str, roles: Sequence[str]) -> None:
        ...

    def list_dependencies(self, roles: Sequence[str]) -> list[Dependency]:
        """Every ``pg_shdepend`` entry that still blocks dropping ``roles``."""
        ...

    def resolve_dependency(self, step: ResolutionStep, admin_role: str) -> None:
        """Execute one dependency-walk step."""
        ...

    def rename_object(self, dependency: Dependency, new_name: str) -> None:
        ...

    def check_login(self, database: str, role: str, password: str) -> None:
        """Open a session as ``role`` and run a trivial query."""
        ...
