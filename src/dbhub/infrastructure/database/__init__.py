"""Database infrastructure - shared connection primitives."""

from dbhub.infrastructure.database.exceptions import (
    DatabaseConnectionError,
    DatabaseError,
    QueryError,
    primary_store_error,
)

__all__ = [
    "DatabaseConnectionError",
    "DatabaseError",
    "QueryError",
    "primary_store_error",
]
