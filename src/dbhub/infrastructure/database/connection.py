"""Database connection management for PostgreSQL.

This module provides connection factory capabilities with pool support.
The administrative database is served from the pool; statements that
must run inside a tenant database (REASSIGN OWNED, DROP OWNED, default
privileges) get a short-lived direct connection to that database.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

import psycopg2

from dbhub.infrastructure.database.exceptions import DatabaseConnectionError
from dbhub.infrastructure.observability.probes import (
    ConnectionProbe,
    DefaultConnectionProbe,
)

if TYPE_CHECKING:
    from psycopg2.extensions import connection as PsycopgConnection

    from dbhub.infrastructure.database.connection_pool import ConnectionPool
    from dbhub.infrastructure.settings import DatabaseSettings

# Retried by RetryPolicy; other errors fail immediately.
TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    psycopg2.OperationalError,
    DatabaseConnectionError,
)


class ConnectionFactory:
    """Factory for PostgreSQL connections.

    Uses ConnectionPool for the administrative database when it is
    initialized. Tests should create small pools (e.g., min=1, max=2).
    """

    def __init__(
        self,
        settings: DatabaseSettings,
        pool: ConnectionPool | None = None,
        probe: ConnectionProbe | None = None,
    ):
        """Initialize the connection factory.

        Args:
            settings: Database connection settings
            pool: Connection pool for the administrative database
            probe: Optional observability probe
        """
        self._settings = settings
        self._pool = pool
        self._probe = probe or DefaultConnectionProbe()

    @property
    def settings(self) -> DatabaseSettings:
        return self._settings

    def create_connection(
        self,
        database: str | None = None,
        user: str | None = None,
        password: str | None = None,
        options: dict[str, str] | None = None,
    ) -> PsycopgConnection:
        """Create a new autocommit connection.

        Args:
            database: Target database (defaults to the administrative one)
            user: Role to connect as (defaults to the configured superuser)
            password: Password for ``user``
            options: Extra libpq connection parameters

        Returns:
            A psycopg2 connection in autocommit mode.

        Raises:
            DatabaseConnectionError: If connection cannot be established.
        """
        dbname = database or self._settings.database
        try:
            conn = psycopg2.connect(
                host=self._settings.host,
                port=self._settings.port,
                dbname=dbname,
                user=user or self._settings.username,
                password=(
                    password
                    if user is not None
                    else self._settings.password.get_secret_value()
                ),
                connect_timeout=self._settings.connect_timeout_seconds,
                **(options or {}),
            )
            conn.autocommit = True

            self._probe.connection_established(
                host=self._settings.host,
                database=dbname,
            )

            return conn

        except psycopg2.Error as e:
            self._probe.connection_failed(
                host=self._settings.host,
                database=dbname,
                error=e,
            )
            raise DatabaseConnectionError(
                f"Failed to connect to database {dbname}: {e}"
            ) from e

    def get_connection(self) -> PsycopgConnection:
        """Get a connection to the administrative database.

        Returns:
            A psycopg2 connection from the pool, or a direct connection when
            pooling is disabled.

        Raises:
            DatabaseConnectionError: If connection cannot be obtained.
        """
        if self._pool is not None and self._pool.initialized:
            return self._pool.get_connection()
        return self.create_connection()

    def return_connection(self, conn: PsycopgConnection) -> None:
        """Return a connection obtained from ``get_connection``.

        Args:
            conn: The connection to return
        """
        if self._pool is not None and self._pool.initialized:
            self._pool.return_connection(conn)
        else:
            self._close(conn)

    @contextmanager
    def admin_connection(self) -> Iterator[PsycopgConnection]:
        """Borrow an administrative connection for the duration of a block."""
        conn = self.get_connection()
        try:
            yield conn
        finally:
            self.return_connection(conn)

    @contextmanager
    def database_connection(self, database: str) -> Iterator[PsycopgConnection]:
        """Open a direct connection to ``database`` for the duration of a block."""
        if database == self._settings.database:
            with self.admin_connection() as conn:
                yield conn
            return

        conn = self.create_connection(database=database)
        try:
            yield conn
        finally:
            self._close(conn)

    def _close(self, conn: PsycopgConnection) -> None:
        if not conn.closed:
            conn.close()
        self._probe.connection_closed()
