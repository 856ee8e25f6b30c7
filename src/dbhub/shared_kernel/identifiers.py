"""Validation for tenant ids, role names and subdomains."""

from __future__ import annotations

import re

from dbhub.shared_kernel.exceptions import InvalidIdentifierError

# Leaves room in PostgreSQL's 63-byte limit for role prefixes and
# the quarantine suffix appended on teardown.
MAX_TENANT_ID_LENGTH = 32

_TENANT_ID_RE = re.compile(r"^[a-z][a-z0-9_]*$")
_ROLE_NAME_RE = re.compile(r"^[a-z_][a-z0-9_]*$")
_SUBDOMAIN_RE = re.compile(r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$")

RESERVED_DATABASES = frozenset({"postgres", "template0", "template1"})


def validate_tenant_id(value: str) -> str:
    """Return ``value`` if it is a usable tenant id (database name)."""
    if not value or len(value) > MAX_TENANT_ID_LENGTH:
        raise InvalidIdentifierError(
            f"Tenant id must be 1-{MAX_TENANT_ID_LENGTH} characters",
            tenant_id=value,
        )
    if not _TENANT_ID_RE.match(value):
        raise InvalidIdentifierError(
            "Tenant id must start with a lowercase letter and contain only "
            "lowercase letters, digits and underscores",
            tenant_id=value,
        )
    if value in RESERVED_DATABASES or value.startswith("pg_"):
        raise InvalidIdentifierError("Tenant id is reserved", tenant_id=value)
    return value


def validate_role_name(value: str) -> str:
    """Return ``value`` if it is a usable role name."""
    if not value or len(value) > 63 or not _ROLE_NAME_RE.match(value):
        raise InvalidIdentifierError(
            "Role name must be 1-63 lowercase letters, digits or underscores",
            role_name=value,
        )
    if value.startswith("pg_"):
        raise InvalidIdentifierError("Role name is reserved", role_name=value)
    return value


def validate_subdomain(value: str) -> str:
    """Return ``value`` if it is a single valid DNS label."""
    if not value or not _SUBDOMAIN_RE.match(value):
        raise InvalidIdentifierError(
            "Subdomain must be a single DNS label of lowercase letters, "
            "digits and hyphens",
            subdomain=value,
        )
    return value
