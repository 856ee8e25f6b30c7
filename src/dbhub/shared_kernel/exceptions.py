"""Error kinds shared by every dbhub bounded context.

Each exception carries a stable ``kind`` (printed by the CLI) and the
process exit code the CLI uses for it. Components raise these types and
wrap lower-level errors with ``raise ... from e`` so the original cause
stays attached.
"""

from __future__ import annotations

from typing import Any


class DbhubError(Exception):
    """Base exception for all dbhub errors."""

    kind: str = "Error"
    exit_code: int = 1

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def as_dict(self) -> dict[str, Any]:
        """Structured form used by the CLI result printer."""
        return {"kind": self.kind, "message": self.message, **self.details}


class DuplicateIdentityError(DbhubError):
    """Raised when a tenant id or subdomain collides with another live tenant."""

    kind = "DuplicateIdentity"
    exit_code = 10


class TenantNotFoundError(DbhubError):
    """Raised when a tenant (or a tenant role) does not exist."""

    kind = "NotFound"
    exit_code = 11


class IdentityMismatchError(DbhubError):
    """Raised when the Access Gate rejects a session.

    A rejected session must never proceed; callers that receive this
    exception must not execute statements on the target database.
    """

    kind = "IdentityMismatch"
    exit_code = 12


class RegistryUnavailableError(DbhubError):
    """Raised when the registry cannot be read or written, or is ambiguous."""

    kind = "RegistryUnavailable"
    exit_code = 13


class SyncFailureError(DbhubError):
    """Raised when the credential cache could not be written or reloaded."""

    kind = "SyncFailure"
    exit_code = 14


class DependencyUnresolvedError(DbhubError):
    """Raised when teardown tiers 1-3 could not free the tenant roles."""

    kind = "DependencyUnresolved"
    exit_code = 15


class CorruptCacheEntryError(DbhubError):
    """Raised when a credential cache line violates the userlist grammar."""

    kind = "CorruptCacheEntry"
    exit_code = 16


class TenantBusyError(DbhubError):
    """Raised when a tenant (or file) lock is not acquired in time."""

    kind = "TenantBusy"
    exit_code = 17


class TeardownInterruptedError(DbhubError):
    """Raised when a teardown is cancelled between dependency steps.

    The tenant is left in the tearing-down state and a later
    destroy_tenant call resumes from the persisted tier.
    """

    kind = "TeardownInterrupted"
    exit_code = 18


class PrimaryStoreError(DbhubError):
    """Raised when a primary store (PostgreSQL) operation fails."""

    kind = "PrimaryStoreError"
    exit_code = 19

    def __init__(self, message: str, sql_state: str | None = None, **details: Any):
        super().__init__(message, **details)
        self.sql_state = sql_state


class InvalidIdentifierError(DbhubError, ValueError):
    """Raised when a tenant id, role name or subdomain is not acceptable."""

    kind = "InvalidIdentifier"
    exit_code = 2
