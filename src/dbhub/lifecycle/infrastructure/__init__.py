"""Tenant Lifecycle infrastructure."""

from dbhub.lifecycle.infrastructure.postgres_store import PostgresPrimaryStore

__all__ = ["PostgresPrimaryStore"]
