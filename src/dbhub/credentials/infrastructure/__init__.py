"""Credential Synchronizer infrastructure."""

from dbhub.credentials.infrastructure.pg_credential_source import (
    PostgresCredentialSource,
)
from dbhub.credentials.infrastructure.userlist_file import UserlistFile

__all__ = ["PostgresCredentialSource", "UserlistFile"]
