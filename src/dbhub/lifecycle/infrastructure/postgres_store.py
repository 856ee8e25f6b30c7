"""PrimaryStore implementation on psycopg2.

All identifiers are composed with ``psycopg2.sql`` so role, database and
object names are quoted by the driver. Object identities that come back
from ``pg_identify_object`` are already quoted by the server and are
embedded as-is.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TypeVar

import psycopg2
from psycopg2 import sql
from psycopg2.extensions import cursor as PsycopgCursor

from dbhub.infrastructure.database.connection import TRANSIENT_ERRORS, ConnectionFactory
from dbhub.infrastructure.database.exceptions import QueryError, primary_store_error
from dbhub.infrastructure.retry import RetryPolicy
from dbhub.lifecycle.domain.teardown import (
    Dependency,
    ResolutionStep,
    StepAction,
    classify_dependency,
)
from dbhub.shared_kernel.roles import RolePrivileges, RoleScope

T = TypeVar("T")

TENANT_SCHEMA = "public"

# pg_identify_object type -> keyword used by ALTER/GRANT/DROP
_ALTERABLE_TYPES = {
    "aggregate": "AGGREGATE",
    "database": "DATABASE",
    "domain": "DOMAIN",
    "foreign table": "FOREIGN TABLE",
    "function": "FUNCTION",
    "materialized view": "MATERIALIZED VIEW",
    "procedure": "PROCEDURE",
    "schema": "SCHEMA",
    "sequence": "SEQUENCE",
    "table": "TABLE",
    "type": "TYPE",
    "view": "VIEW",
}
_GRANTABLE_TYPES = {
    "database": "DATABASE",
    "domain": "DOMAIN",
    "foreign table": "TABLE",
    "function": "FUNCTION",
    "materialized view": "TABLE",
    "procedure": "PROCEDURE",
    "schema": "SCHEMA",
    "sequence": "SEQUENCE",
    "table": "TABLE",
    "type": "TYPE",
    "view": "TABLE",
}
_DROPPABLE_TYPES = {**_ALTERABLE_TYPES, "policy": "POLICY"}
_DROPPABLE_TYPES.pop("database")

_ROLE_EXISTS = "SELECT 1 FROM pg_catalog.pg_roles WHERE rolname = %s"
_DATABASE_EXISTS = "SELECT 1 FROM pg_catalog.pg_database WHERE datname = %s"

_DEPENDENCY_DATABASES = """
    SELECT DISTINCT d.datname
    FROM pg_catalog.pg_shdepend s
    JOIN pg_catalog.pg_roles r
      ON r.oid = s.refobjid AND s.refclassid = 'pg_catalog.pg_authid'::regclass
    JOIN pg_catalog.pg_database d ON d.oid = s.dbid
    WHERE r.rolname = ANY(%s) AND d.datallowconn
    ORDER BY d.datname
"""

# {dbid} is either the current database's oid or 0 for shared objects.
_DEPENDENCIES = """
    SELECT r.rolname,
           s.deptype,
           obj.type,
           obj.identity,
           addr.object_names[array_upper(addr.object_names, 1)]
    FROM pg_catalog.pg_shdepend s
    JOIN pg_catalog.pg_roles r
      ON r.oid = s.refobjid AND s.refclassid = 'pg_catalog.pg_authid'::regclass
    CROSS JOIN LATERAL pg_catalog.pg_identify_object(s.classid, s.objid, s.objsubid) obj
    CROSS JOIN LATERAL pg_catalog.pg_identify_object_as_address(
        s.classid, s.objid, s.objsubid
    ) addr
    WHERE r.rolname = ANY(%s)
      AND s.deptype IN ('o', 'a', 'r')
      AND s.dbid = {dbid}
    ORDER BY r.rolname, obj.type, obj.identity
"""
_LOCAL_DBID = (
    "(SELECT oid FROM pg_catalog.pg_database WHERE datname = current_database())"
)
_SHARED_DBID = "0"

_MEMBERSHIPS = """
    SELECT g.rolname, m.rolname
    FROM pg_catalog.pg_auth_members am
    JOIN pg_catalog.pg_roles g ON g.oid = am.roleid
    JOIN pg_catalog.pg_roles m ON m.oid = am.member
    WHERE g.rolname = ANY(%s) OR m.rolname = ANY(%s)
"""

_TERMINATE = """
    SELECT count(pg_catalog.pg_terminate_backend(pid))
    FROM pg_catalog.pg_stat_activity
    WHERE pid <> pg_catalog.pg_backend_pid()
      AND (datname = %s OR usename = ANY(%s))
"""


def _privileges(names: Sequence[str]) -> sql.Composable:
    return sql.SQL(", ").join(sql.SQL(name) for name in names)


def _roles(names: Sequence[str]) -> sql.Composable:
    return sql.SQL(", ").join(sql.Identifier(name) for name in names)


class PostgresPrimaryStore:
    """PrimaryStore backed by a PostgreSQL superuser session."""

    def __init__(
        self,
        connection_factory: ConnectionFactory,
        retry_policy: RetryPolicy | None = None,
    ):
        self._connections = connection_factory
        self._retry = retry_policy or RetryPolicy()

    # Execution helpers

    def _run(
        self,
        operation: str,
        work: Callable[[PsycopgCursor], T],
        database: str | None = None,
    ) -> T:
        def attempt() -> T:
            if database is None:
                manager = self._connections.admin_connection()
            else:
                manager = self._connections.database_connection(database)
            with manager as conn:
                try:
                    with conn.cursor() as cursor:
                        return work(cursor)
                except TRANSIENT_ERRORS:
                    raise
                except psycopg2.Error as e:
                    raise QueryError(
                        f"{operation} failed: {e}",
                        sql_state=e.pgcode,
                    ) from e

        return self._retry.call(
            operation,
            attempt,
            retry_on=TRANSIENT_ERRORS,
            error_factory=primary_store_error,
        )

    def _execute(
        self,
        operation: str,
        statements: Sequence[sql.Composable | tuple[sql.Composable, tuple]],
        database: str | None = None,
    ) -> None:
        def work(cursor: PsycopgCursor) -> None:
            for statement in statements:
                if isinstance(statement, tuple):
                    cursor.execute(statement[0], statement[1])
                else:
                    cursor.execute(statement)

        self._run(operation, work, database)

    def _exists(self, operation: str, query: str, value: str) -> bool:
        def work(cursor: PsycopgCursor) -> bool:
            cursor.execute(query, (value,))
            return cursor.fetchone() is not None

        return self._run(operation, work)

    # Roles

    def database_exists(self, name: str) -> bool:
        return self._exists("check database", _DATABASE_EXISTS, name)

    def role_exists(self, name: str) -> bool:
        return self._exists("check role", _ROLE_EXISTS, name)

    def create_role(self, name: str, password: str) -> None:
        statement = sql.SQL(
            "CREATE ROLE {} WITH LOGIN NOSUPERUSER NOCREATEDB NOCREATEROLE "
            "NOREPLICATION PASSWORD %s"
        ).format(sql.Identifier(name))
        self._execute("create role", [(statement, (password,))])

    def drop_role(self, name: str) -> None:
        self._execute(
            "drop role", [sql.SQL("DROP ROLE IF EXISTS {}").format(sql.Identifier(name))]
        )

    def set_password(self, name: str, password: str) -> None:
        statement = sql.SQL("ALTER ROLE {} WITH PASSWORD %s").format(sql.Identifier(name))
        self._execute("set password", [(statement, (password,))])

    def set_login(self, name: str, enabled: bool) -> None:
        statement = sql.SQL("ALTER ROLE {} WITH {}").format(
            sql.Identifier(name), sql.SQL("LOGIN" if enabled else "NOLOGIN")
        )
        self._execute("set login", [statement])

    def revoke_memberships(self, roles: Sequence[str]) -> None:
        def work(cursor: PsycopgCursor) -> None:
            cursor.execute(_MEMBERSHIPS, (list(roles), list(roles)))
            for group, member in cursor.fetchall():
                cursor.execute(
                    sql.SQL("REVOKE {} FROM {}").format(
                        sql.Identifier(group), sql.Identifier(member)
                    )
                )

        self._run("revoke memberships", work)

    # Databases

    def create_database(self, name: str, owner: str) -> None:
        self._execute(
            "create database",
            [
                sql.SQL("CREATE DATABASE {} OWNER {}").format(
                    sql.Identifier(name), sql.Identifier(owner)
                ),
                sql.SQL("REVOKE ALL ON DATABASE {} FROM PUBLIC").format(
                    sql.Identifier(name)
                ),
            ],
        )

    def drop_database(self, name: str) -> None:
        self.terminate_sessions(database=name)
        self._execute(
            "drop database",
            [sql.SQL("DROP DATABASE IF EXISTS {}").format(sql.Identifier(name))],
        )

    def rename_database(self, name: str, new_name: str) -> None:
        self.terminate_sessions(database=name)
        self._execute(
            "rename database",
            [
                sql.SQL("ALTER DATABASE {} RENAME TO {}").format(
                    sql.Identifier(name), sql.Identifier(new_name)
                )
            ],
        )

    def transfer_database(self, name: str, new_owner: str) -> None:
        self._execute(
            "transfer database",
            [
                sql.SQL("ALTER DATABASE {} OWNER TO {}").format(
                    sql.Identifier(name), sql.Identifier(new_owner)
                )
            ],
        )

    def terminate_sessions(
        self, database: str | None = None, roles: Sequence[str] = ()
    ) -> int:
        def work(cursor: PsycopgCursor) -> int:
            cursor.execute(_TERMINATE, (database, list(roles)))
            row = cursor.fetchone()
            return int(row[0]) if row else 0

        return self._run("terminate sessions", work)

    # Privileges

    def apply_privileges(
        self, database: str, role: str, scope: RoleScope, owner_role: str
    ) -> None:
        privileges = scope.privileges
        statements: list[sql.Composable] = []
        if privileges.owns_database:
            statements.append(
                sql.SQL("ALTER SCHEMA {} OWNER TO {}").format(
                    sql.Identifier(TENANT_SCHEMA), sql.Identifier(role)
                )
            )
        statements.extend(self._grant_statements("GRANT", "TO", database, role, privileges))
        if not privileges.owns_database:
            statements.extend(
                self._default_privilege_statements(
                    "GRANT", "TO", role, privileges, owner_role
                )
            )

        self._execute("apply privileges", statements, database=database)

    def revoke_privileges(
        self, database: str, role: str, scope: RoleScope, owner_role: str
    ) -> None:
        privileges = scope.privileges
        statements = self._grant_statements("REVOKE", "FROM", database, role, privileges)
        if not privileges.owns_database:
            statements.extend(
                self._default_privilege_statements(
                    "REVOKE", "FROM", role, privileges, owner_role
                )
            )
        self._execute("revoke privileges", statements, database=database)

    def _grant_statements(
        self,
        verb: str,
        preposition: str,
        database: str,
        role: str,
        privileges: RolePrivileges,
    ) -> list[sql.Composable]:
        schema = sql.Identifier(TENANT_SCHEMA)
        targets = [
            (privileges.database, sql.SQL("DATABASE {}").format(sql.Identifier(database))),
            (privileges.schema, sql.SQL("SCHEMA {}").format(schema)),
            (privileges.tables, sql.SQL("ALL TABLES IN SCHEMA {}").format(schema)),
            (privileges.sequences, sql.SQL("ALL SEQUENCES IN SCHEMA {}").format(schema)),
            (privileges.functions, sql.SQL("ALL FUNCTIONS IN SCHEMA {}").format(schema)),
        ]
        return [
            sql.SQL("{} {} ON {} {} {}").format(
                sql.SQL(verb),
                _privileges(names),
                target,
                sql.SQL(preposition),
                sql.Identifier(role),
            )
            for names, target in targets
            if names
        ]

    def _default_privilege_statements(
        self,
        verb: str,
        preposition: str,
        role: str,
        privileges: RolePrivileges,
        owner_role: str,
    ) -> list[sql.Composable]:
        targets = [
            (privileges.tables, "TABLES"),
            (privileges.sequences, "SEQUENCES"),
            (privileges.functions, "FUNCTIONS"),
        ]
        return [
            sql.SQL(
                "ALTER DEFAULT PRIVILEGES FOR ROLE {} IN SCHEMA {} {} {} ON {} {} {}"
            ).format(
                sql.Identifier(owner_role),
                sql.Identifier(TENANT_SCHEMA),
                sql.SQL(verb),
                _privileges(names),
                sql.SQL(kind),
                sql.SQL(preposition),
                sql.Identifier(role),
            )
            for names, kind in targets
            if names
        ]

    # Dependencies

    def dependency_databases(self, roles: Sequence[str]) -> list[str]:
        def work(cursor: PsycopgCursor) -> list[str]:
            cursor.execute(_DEPENDENCY_DATABASES, (list(roles),))
            return [row[0] for row in cursor.fetchall()]

        return self._run("list dependency databases", work)

    def reassign_owned(self, database: str, roles: Sequence[str], new_owner: str) -> None:
        self._execute(
            "reassign owned",
            [
                sql.SQL("REASSIGN OWNED BY {} TO {}").format(
                    _roles(roles), sql.Identifier(new_owner)
                )
            ],
            database=database,
        )

    def drop_owned(self, database: str, roles: Sequence[str]) -> None:
        self._execute(
            "drop owned",
            [sql.SQL("DROP OWNED BY {} CASCADE").format(_roles(roles))],
            database=database,
        )

    def list_dependencies(self, roles: Sequence[str]) -> list[Dependency]:
        dependencies = self._list_dependencies_in(None, roles)
        for database in self.dependency_databases(roles):
            dependencies.extend(self._list_dependencies_in(database, roles))
        return dependencies

    def _list_dependencies_in(
        self, database: str | None, roles: Sequence[str]
    ) -> list[Dependency]:
        query = _DEPENDENCIES.format(
            dbid=_SHARED_DBID if database is None else _LOCAL_DBID
        )

        def work(cursor: PsycopgCursor) -> list[Dependency]:
            cursor.execute(query, (list(roles),))
            return [
                Dependency(
                    role=role,
                    database=database,
                    kind=classify_dependency(deptype, object_type),
                    object_type=object_type,
                    object_identity=identity,
                    object_name=name or identity,
                )
                for role, deptype, object_type, identity, name in cursor.fetchall()
            ]

        return self._run("list dependencies", work, database)

    def resolve_dependency(self, step: ResolutionStep, admin_role: str) -> None:
        dependency = step.dependency
        if step.action == StepAction.DROP_OWNED_IN_DATABASE:
            if dependency.database is None:
                raise QueryError(f"Cannot drop owned objects of {dependency.role} here")
            self.drop_owned(dependency.database, [dependency.role])
            return

        statement = self._step_statement(step, admin_role)
        self._execute(f"resolve {step.action}", [statement], database=dependency.database)

    def _step_statement(self, step: ResolutionStep, admin_role: str) -> sql.Composable:
        dependency = step.dependency
        identity = sql.SQL(dependency.object_identity)

        if step.action == StepAction.ALTER_OWNER:
            keyword = _ALTERABLE_TYPES.get(dependency.object_type)
            if keyword is None:
                raise QueryError(f"Cannot change owner of a {dependency.object_type}")
            return sql.SQL("ALTER {} {} OWNER TO {}").format(
                sql.SQL(keyword), identity, sql.Identifier(admin_role)
            )

        if step.action == StepAction.REVOKE_ALL:
            keyword = _GRANTABLE_TYPES.get(dependency.object_type)
            if keyword is None:
                raise QueryError(f"Cannot revoke privileges on a {dependency.object_type}")
            return sql.SQL("REVOKE ALL ON {} {} FROM {}").format(
                sql.SQL(keyword), identity, sql.Identifier(dependency.role)
            )

        keyword = _DROPPABLE_TYPES.get(dependency.object_type)
        if keyword is None:
            raise QueryError(f"Cannot drop a {dependency.object_type}")
        return sql.SQL("DROP {} {} CASCADE").format(sql.SQL(keyword), identity)

    def rename_object(self, dependency: Dependency, new_name: str) -> None:
        keyword = _ALTERABLE_TYPES.get(dependency.object_type)
        if keyword is None:
            raise QueryError(f"Cannot rename a {dependency.object_type}")
        if dependency.object_type == "database":
            self.rename_database(dependency.object_name, new_name)
            return
        self._execute(
            "rename object",
            [
                sql.SQL("ALTER {} {} RENAME TO {}").format(
                    sql.SQL(keyword),
                    sql.SQL(dependency.object_identity),
                    sql.Identifier(new_name),
                )
            ],
            database=dependency.database,
        )

    # Sessions

    def check_login(self, database: str, role: str, password: str) -> None:
        conn = self._connections.create_connection(
            database=database, user=role, password=password
        )
        try:
            with conn.cursor() as cursor:
                cursor.execute("SELECT 1")
                cursor.fetchone()
        except psycopg2.Error as e:
            raise QueryError(
                f"Query as {role} failed: {e}", sql_state=e.pgcode
            ) from e
        finally:
            conn.close()
