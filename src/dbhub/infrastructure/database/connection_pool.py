"""Connection pool for the administrative PostgreSQL session.

This module provides connection pooling using psycopg2.pool.ThreadedConnectionPool.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import psycopg2
from psycopg2 import pool as psycopg2_pool

from dbhub.infrastructure.database.exceptions import DatabaseConnectionError
from dbhub.infrastructure.observability.probes import (
    ConnectionProbe,
    DefaultConnectionProbe,
)

if TYPE_CHECKING:
    from psycopg2.extensions import connection as PsycopgConnection

    from dbhub.infrastructure.settings import DatabaseSettings


class ConnectionPool:
    """Thread-safe connection pool for the administrative database.

    Wraps psycopg2.pool.ThreadedConnectionPool. Connections handed out are
    in autocommit mode because role and database DDL (CREATE DATABASE,
    DROP DATABASE) cannot run inside a transaction block.

    Attributes:
        _settings: Database configuration settings
        _pool: The underlying ThreadedConnectionPool instance
        _probe: Observability probe for monitoring
    """

    def __init__(
        self,
        settings: DatabaseSettings,
        probe: ConnectionProbe | None = None,
    ):
        """Initialize the connection pool.

        Args:
            settings: Database connection settings
            probe: Optional observability probe
        """
        self._settings = settings
        self._probe = probe or DefaultConnectionProbe()
        self._pool: psycopg2_pool.ThreadedConnectionPool | None = None

        if settings.pool_enabled:
            self._initialize_pool()

    @property
    def initialized(self) -> bool:
        return self._pool is not None

    def _initialize_pool(self) -> None:
        """Initialize the ThreadedConnectionPool."""
        try:
            self._pool = psycopg2_pool.ThreadedConnectionPool(
                minconn=self._settings.pool_min_connections,
                maxconn=self._settings.pool_max_connections,
                host=self._settings.host,
                port=self._settings.port,
                dbname=self._settings.database,
                user=self._settings.username,
                password=self._settings.password.get_secret_value(),
                connect_timeout=self._settings.connect_timeout_seconds,
            )
            self._probe.pool_initialized(
                min_conn=self._settings.pool_min_connections,
                max_conn=self._settings.pool_max_connections,
            )
        except psycopg2.Error as e:
            self._probe.pool_initialization_failed(error=e)
            raise DatabaseConnectionError(
                f"Failed to initialize connection pool: {e}"
            ) from e

    def get_connection(self) -> PsycopgConnection:
        """Get an autocommit connection from the pool.

        Returns:
            A psycopg2 connection to the administrative database.

        Raises:
            DatabaseConnectionError: If pool is not initialized or connection fails.
        """
        if self._pool is None:
            raise DatabaseConnectionError("Connection pool not initialized")

        try:
            conn = self._pool.getconn()
        except psycopg2_pool.PoolError as e:
            self._probe.pool_exhausted()
            raise DatabaseConnectionError(
                f"Pool exhausted, cannot get connection: {e}"
            ) from e

        if not conn.autocommit:
            conn.autocommit = True
        self._probe.connection_acquired_from_pool()
        return conn

    def return_connection(self, conn: PsycopgConnection) -> None:
        """Return a connection to the pool.

        Broken connections are closed by the pool instead of being reused.

        Args:
            conn: The connection to return.
        """
        if self._pool is None:
            return

        try:
            self._pool.putconn(conn, close=bool(conn.closed))
            self._probe.connection_returned_to_pool()
        except psycopg2_pool.PoolError as e:
            # Connection is discarded
            self._probe.connection_return_failed(error=e)

    def close_all(self) -> None:
        """Close all connections in the pool."""
        if self._pool is not None:
            self._pool.closeall()
            self._probe.pool_closed()
            self._pool = None
