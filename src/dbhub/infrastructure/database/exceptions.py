"""Database-specific exceptions for the PostgreSQL primary store."""

from dbhub.shared_kernel.exceptions import PrimaryStoreError


class DatabaseError(PrimaryStoreError):
    """Base exception for database operations."""

    pass


class DatabaseConnectionError(DatabaseError):
    """Raised when database connection fails."""

    pass


class QueryError(DatabaseError):
    """Raised when a catalog query or DDL statement fails."""

    def __init__(
        self,
        message: str,
        statement: str | None = None,
        sql_state: str | None = None,
    ):
        super().__init__(message, sql_state=sql_state)
        self.statement = statement


def primary_store_error(message: str, error: Exception) -> PrimaryStoreError:
    """Error factory for retried primary store calls."""
    return PrimaryStoreError(message, sql_state=getattr(error, "pgcode", None))
