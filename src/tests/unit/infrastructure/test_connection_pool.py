"""Unit tests for ConnectionPool."""

from unittest.mock import MagicMock, patch

import psycopg2
import pytest
from psycopg2 import pool as psycopg2_pool

from dbhub.infrastructure.database.connection_pool import ConnectionPool
from dbhub.infrastructure.database.exceptions import DatabaseConnectionError

POOL_CLASS = "dbhub.infrastructure.database.connection_pool.psycopg2_pool.ThreadedConnectionPool"


class TestConnectionPoolInit:
    """Tests for ConnectionPool initialization."""

    def test_pool_initializes_with_settings(self, mock_db_settings):
        """Should create ThreadedConnectionPool on init."""
        with patch(POOL_CLASS) as mock_pool_class:
            pool = ConnectionPool(mock_db_settings)

            mock_pool_class.assert_called_once_with(
                minconn=1,
                maxconn=2,
                host="testhost",
                port=5432,
                dbname="postgres",
                user="testuser",
                password="testpass",
                connect_timeout=10,
            )
            assert pool.initialized

    def test_pool_not_initialized_when_disabled(self, mock_db_settings):
        """Should not create pool when pool_enabled=False."""
        mock_db_settings.pool_enabled = False
        pool = ConnectionPool(mock_db_settings)

        assert not pool.initialized

    def test_initialization_failure_raises(self, mock_db_settings):
        with patch(POOL_CLASS, side_effect=psycopg2.OperationalError("refused")):
            with pytest.raises(DatabaseConnectionError, match="initialize"):
                ConnectionPool(mock_db_settings)


class TestGetConnection:
    """Tests for get_connection method."""

    def test_raises_when_pool_not_initialized(self, mock_db_settings):
        mock_db_settings.pool_enabled = False
        pool = ConnectionPool(mock_db_settings)

        with pytest.raises(DatabaseConnectionError, match="not initialized"):
            pool.get_connection()

    def test_gets_autocommit_connection(self, mock_db_settings):
        """DDL needs autocommit, so pooled connections are switched to it."""
        with patch(POOL_CLASS) as mock_pool_class:
            mock_conn = MagicMock()
            mock_conn.autocommit = False
            mock_pool_class.return_value.getconn.return_value = mock_conn

            conn = ConnectionPool(mock_db_settings).get_connection()

            assert conn is mock_conn
            assert mock_conn.autocommit is True

    def test_pool_exhausted_raises(self, mock_db_settings):
        with patch(POOL_CLASS) as mock_pool_class:
            mock_pool_class.return_value.getconn.side_effect = psycopg2_pool.PoolError(
                "exhausted"
            )
            pool = ConnectionPool(mock_db_settings)

            with pytest.raises(DatabaseConnectionError, match="exhausted"):
                pool.get_connection()


class TestReturnConnection:
    """Tests for return_connection method."""

    def test_returns_connection_to_pool(self, mock_db_settings):
        with patch(POOL_CLASS) as mock_pool_class:
            mock_conn = MagicMock()
            mock_conn.closed = 0
            pool = ConnectionPool(mock_db_settings)

            pool.return_connection(mock_conn)

            mock_pool_class.return_value.putconn.assert_called_once_with(
                mock_conn, close=False
            )

    def test_broken_connection_is_closed_by_pool(self, mock_db_settings):
        with patch(POOL_CLASS) as mock_pool_class:
            mock_conn = MagicMock()
            mock_conn.closed = 2
            pool = ConnectionPool(mock_db_settings)

            pool.return_connection(mock_conn)

            mock_pool_class.return_value.putconn.assert_called_once_with(
                mock_conn, close=True
            )

    def test_return_failure_is_not_raised(self, mock_db_settings):
        with patch(POOL_CLASS) as mock_pool_class:
            mock_pool_class.return_value.putconn.side_effect = psycopg2_pool.PoolError("x")
            pool = ConnectionPool(mock_db_settings)

            pool.return_connection(MagicMock(closed=0))


class TestCloseAll:
    def test_closes_and_forgets_pool(self, mock_db_settings):
        with patch(POOL_CLASS) as mock_pool_class:
            pool = ConnectionPool(mock_db_settings)
            pool.close_all()

            mock_pool_class.return_value.closeall.assert_called_once()
            assert not pool.initialized
