"""CredentialSource backed by ``pg_authid``."""

from __future__ import annotations

import psycopg2

from dbhub.infrastructure.database.connection import TRANSIENT_ERRORS, ConnectionFactory
from dbhub.infrastructure.database.exceptions import QueryError, primary_store_error
from dbhub.infrastructure.retry import RetryPolicy

_LIST_LOGIN_VERIFIERS = """
    SELECT rolname, rolpassword
    FROM pg_catalog.pg_authid
    WHERE rolcanlogin
      AND rolpassword IS NOT NULL
      AND rolpassword <> ''
    ORDER BY rolname
"""

_GET_LOGIN_VERIFIER = """
    SELECT rolpassword
    FROM pg_catalog.pg_authid
    WHERE rolname = %s
      AND rolcanlogin
      AND rolpassword IS NOT NULL
      AND rolpassword <> ''
"""


class PostgresCredentialSource:
    """Reads password verifiers with a superuser connection."""

    def __init__(
        self,
        connection_factory: ConnectionFactory,
        retry_policy: RetryPolicy | None = None,
    ):
        self._connections = connection_factory
        self._retry = retry_policy or RetryPolicy()

    def list_login_verifiers(self) -> dict[str, str]:
        rows = self._query("list login verifiers", _LIST_LOGIN_VERIFIERS, ())
        return {name: password.strip() for name, password in rows}

    def get_login_verifier(self, username: str) -> str | None:
        rows = self._query("get login verifier", _GET_LOGIN_VERIFIER, (username,))
        if not rows:
            return None
        return rows[0][0].strip()

    def _query(
        self, operation: str, statement: str, params: tuple
    ) -> list[tuple]:
        def run() -> list[tuple]:
            with self._connections.admin_connection() as conn:
                try:
                    with conn.cursor() as cursor:
                        cursor.execute(statement, params)
                        return list(cursor.fetchall())
                except TRANSIENT_ERRORS:
                    raise
                except psycopg2.Error as e:
                    raise QueryError(
                        f"{operation} failed: {e}",
                        statement=statement,
                        sql_state=e.pgcode,
                    ) from e

        return self._retry.call(
            operation,
            run,
            retry_on=TRANSIENT_ERRORS,
            error_factory=primary_store_error,
        )
