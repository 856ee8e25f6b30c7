"""Unit test fixtures with in-memory and tmp_path-backed dependencies."""

from __future__ import annotations

import base64
import hashlib
from collections.abc import Sequence
from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest
from pydantic import SecretStr

from dbhub.access.application.gate import AccessGate
from dbhub.credentials.application.synchronizer import CredentialSynchronizer
from dbhub.credentials.infrastructure.userlist_file import UserlistFile
from dbhub.infrastructure.locking import TenantLocks
from dbhub.infrastructure.process_control import ProcessControlError, ServiceStatus
from dbhub.infrastructure.retry import RetryPolicy
from dbhub.infrastructure.settings import DatabaseSettings
from dbhub.lifecycle.application.manager import TenantLifecycleManager
from dbhub.lifecycle.application.teardown import TeardownExecutor
from dbhub.lifecycle.domain.teardown import (
    Dependency,
    DependencyKind,
    ResolutionStep,
    StepAction,
)
from dbhub.registry.infrastructure.file_registry import FileTenantRegistry
from dbhub.shared_kernel.exceptions import PrimaryStoreError
from dbhub.shared_kernel.roles import RoleScope

ROOT_IDENTITY = "dbhub.cc"
FIXED_NOW = datetime(2026, 3, 4, 5, 6, 7, tzinfo=UTC)


def scram_verifier(password: str, salt: bytes = b"0123456789abcdef") -> str:
    """A structurally valid SCRAM-SHA-256 verifier derived from ``password``."""
    stored = hashlib.sha256(b"stored:" + password.encode()).digest()
    server = hashlib.sha256(b"server:" + password.encode()).digest()
    return (
        "SCRAM-SHA-256$4096:"
        + base64.b64encode(salt).decode()
        + "$"
        + base64.b64encode(stored).decode()
        + ":"
        + base64.b64encode(server).decode()
    )


def no_sleep_retry(max_attempts: int = 3) -> RetryPolicy:
    return RetryPolicy(max_attempts=max_attempts, backoff_seconds=0, sleep=lambda _: None)


class FakePrimaryStore:
    """In-memory PrimaryStore and CredentialSource.

    Roles, databases and blocking dependencies are plain dictionaries. A
    dependency marked stubborn survives every resolving statement, which is
    how tests drive a teardown into quarantine.
    """

    def __init__(self) -> None:
        self.roles: dict[str, dict] = {}
        self.databases: dict[str, str] = {}
        self.grants: set[tuple[str, str, RoleScope]] = set()
        self.dependencies: list[Dependency] = []
        self.stubborn: set[Dependency] = set()
        self.renamed: dict[str, str] = {}
        self.calls: list[tuple] = []
        self.failures: dict[str, Exception] = {}

    # Test helpers

    def add_dependency(
        self,
        role: str,
        database: str | None,
        kind: DependencyKind = DependencyKind.OWNED_OBJECT,
        name: str = "orders",
        stubborn: bool = False,
    ) -> Dependency:
        dependency = Dependency(
            role=role,
            database=database,
            kind=kind,
            object_type="table",
            object_identity=f"public.{name}",
            object_name=name,
        )
        self.dependencies.append(dependency)
        if stubborn:
            self.stubborn.add(dependency)
        return dependency

    def fail(self, method: str, error: Exception | None = None) -> None:
        self.failures[method] = error or PrimaryStoreError(f"{method} failed")

    def _record(self, method: str, *args) -> None:
        self.calls.append((method, *args))
        if method in self.failures:
            raise self.failures[method]

    def called(self, method: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == method]

    # PrimaryStore

    def database_exists(self, name: str) -> bool:
        return name in self.databases

    def role_exists(self, name: str) -> bool:
        return name in self.roles

    def create_role(self, name: str, password: str) -> None:
        self._record("create_role", name)
        if name in self.roles:
            raise PrimaryStoreError(f"role {name} already exists", sql_state="42710")
        self.roles[name] = {"password": password, "login": True}

    def drop_role(self, name: str) -> None:
        self._record("drop_role", name)
        if name not in self.roles:
            return
        if self.list_dependencies([name]):
            raise PrimaryStoreError(
                f"role {name} cannot be dropped because some objects depend on it",
                sql_state="2BP01",
            )
        del self.roles[name]

    def set_password(self, name: str, password: str) -> None:
        self._record("set_password", name)
        self.roles[name]["password"] = password

    def set_login(self, name: str, enabled: bool) -> None:
        self._record("set_login", name, enabled)
        self.roles[name]["login"] = enabled

    def create_database(self, name: str, owner: str) -> None:
        self._record("create_database", name, owner)
        if name in self.databases:
            raise PrimaryStoreError(f"database {name} already exists", sql_state="42P04")
        self.databases[name] = owner

    def drop_database(self, name: str) -> None:
        self._record("drop_database", name)
        self.databases.pop(name, None)
        self.dependencies = [d for d in self.dependencies if d.database != name]

    def rename_database(self, name: str, new_name: str) -> None:
        self._record("rename_database", name, new_name)
        self.databases[new_name] = self.databases.pop(name)
        self.renamed[name] = new_name
        moved = []
        for dependency in self.dependencies:
            if dependency.database == name:
                replacement = Dependency(
                    dependency.role,
                    new_name,
                    dependency.kind,
                    dependency.object_type,
                    dependency.object_identity,
                    dependency.object_name,
                )
                if dependency in self.stubborn:
                    self.stubborn.add(replacement)
                moved.append(replacement)
            else:
                moved.append(dependency)
        self.dependencies = moved

    def transfer_database(self, name: str, new_owner: str) -> None:
        self._record("transfer_database", name, new_owner)
        self.databases[name] = new_owner

    def apply_privileges(
        self, database: str, role: str, scope: RoleScope, owner_role: str
    ) -> None:
        self._record("apply_privileges", database, role, scope)
        self.grants.add((database, role, scope))

    def revoke_privileges(
        self, database: str, role: str, scope: RoleScope, owner_role: str
    ) -> None:
        self._record("revoke_privileges", database, role, scope)
        self.grants.discard((database, role, scope))

    def revoke_memberships(self, roles: Sequence[str]) -> None:
        self._record("revoke_memberships", tuple(roles))

    def terminate_sessions(
        self, database: str | None = None, roles: Sequence[str] = ()
    ) -> int:
        self._record("terminate_sessions", database, tuple(roles))
        return 0

    def dependency_databases(self, roles: Sequence[str]) -> list[str]:
        return sorted(
            {
                d.database
                for d in self.dependencies
                if d.role in roles and d.database is not None
            }
        )

    def reassign_owned(self, database: str, roles: Sequence[str], new_owner: str) -> None:
        self._record("reassign_owned", database, tuple(roles), new_owner)
        for name, owner in list(self.databases.items()):
            if owner in roles:
                self.databases[name] = new_owner
        self._resolve(
            lambda d: d.database == database
            and d.role in roles
            and d.kind == DependencyKind.OWNED_OBJECT
        )

    def drop_owned(self, database: str, roles: Sequence[str]) -> None:
        self._record("drop_owned", database, tuple(roles))
        self._resolve(lambda d: d.database == database and d.role in roles)

    def list_dependencies(self, roles: Sequence[str]) -> list[Dependency]:
        owned_databases = [
            Dependency(owner, None, DependencyKind.DATABASE, "database", name, name)
            for name, owner in sorted(self.databases.items())
            if owner in roles
        ]
        return owned_databases + [d for d in self.dependencies if d.role in roles]

    def resolve_dependency(self, step: ResolutionStep, admin_role: str) -> None:
        self._record("resolve_dependency", step.action, step.dependency.object_identity)
        dependency = step.dependency
        if dependency in self.stubborn:
            raise PrimaryStoreError(f"cannot {step.action} {dependency.object_identity}")
        if dependency.kind == DependencyKind.DATABASE and step.action == StepAction.ALTER_OWNER:
            self.databases[dependency.object_name] = admin_role
            return
        self.dependencies = [d for d in self.dependencies if d != dependency]

    def rename_object(self, dependency: Dependency, new_name: str) -> None:
        self._record("rename_object", dependency.object_identity, new_name)
        self.renamed[dependency.object_identity] = new_name

    def check_login(self, database: str, role: str, password: str) -> None:
        self._record("check_login", database, role)
        entry = self.roles.get(role)
        if database not in self.databases or entry is None:
            raise PrimaryStoreError(f"connection to {database} as {role} failed")
        if not entry["login"] or entry["password"] != password:
            raise PrimaryStoreError(f"password authentication failed for {role}")

    def _resolve(self, matches) -> None:
        self.dependencies = [
            d for d in self.dependencies if d in self.stubborn or not matches(d)
        ]

    # CredentialSource

    def list_login_verifiers(self) -> dict[str, str]:
        return {
            name: scram_verifier(entry["password"])
            for name, entry in sorted(self.roles.items())
            if entry["login"]
        }

    def get_login_verifier(self, username: str) -> str | None:
        entry = self.roles.get(username)
        if entry is None or not entry["login"]:
            return None
        return scram_verifier(entry["password"])


class FakeProcessController:
    """ProcessController that records calls and fails on demand."""

    def __init__(self, fail_reload: bool = False, fail_restart: bool = False):
        self.fail_reload = fail_reload
        self.fail_restart = fail_restart
        self.calls: list[str] = []

    def reload(self) -> None:
        self.calls.append("reload")
        if self.fail_reload:
            raise ProcessControlError("reload failed", action="reload")

    def restart(self) -> None:
        self.calls.append("restart")
        if self.fail_restart:
            raise ProcessControlError("restart failed", action="restart")

    def status(self) -> ServiceStatus:
        return ServiceStatus.ACTIVE


@pytest.fixture
def mock_db_settings():
    """Provide test database settings."""
    return DatabaseSettings(
        host="testhost",
        port=5432,
        database="postgres",
        username="testuser",
        password=SecretStr("testpass"),
        pool_min_connections=1,
        pool_max_connections=2,
    )


@pytest.fixture
def mock_psycopg2_connection():
    """Provide a mocked psycopg2 connection."""
    conn = MagicMock()
    conn.closed = False

    cursor = MagicMock()
    cursor.fetchall.return_value = []
    cursor.fetchone.return_value = (1,)

    # Set up context manager
    cursor.__enter__ = MagicMock(return_value=cursor)
    cursor.__exit__ = MagicMock(return_value=False)
    conn.cursor.return_value = cursor

    return conn, cursor


@pytest.fixture
def retry_policy():
    return no_sleep_retry()


@pytest.fixture
def registry(tmp_path, retry_policy):
    return FileTenantRegistry(
        map_path=tmp_path / "pg_hostname_map.conf",
        metadata_path=tmp_path / "pg_hostname_map.tenants.json",
        lock_timeout_seconds=2.0,
        retry_policy=retry_policy,
    )


@pytest.fixture
def store():
    return FakePrimaryStore()


@pytest.fixture
def controller():
    return FakeProcessController()


@pytest.fixture
def userlist_file(tmp_path, retry_policy):
    return UserlistFile(
        path=tmp_path / "userlist.txt",
        backup_dir=tmp_path / "backups",
        lock_timeout_seconds=2.0,
        retry_policy=retry_policy,
    )


@pytest.fixture
def synchronizer(store, userlist_file, controller, retry_policy):
    return CredentialSynchronizer(
        source=store,
        cache=userlist_file,
        controller=controller,
        retry_policy=retry_policy,
    )


@pytest.fixture
def gate(registry):
    return AccessGate(registry=registry, root_identity=ROOT_IDENTITY)


@pytest.fixture
def teardown_executor(store, registry, synchronizer):
    return TeardownExecutor(
        store=store,
        registry=registry,
        synchronizer=synchronizer,
        admin_role="postgres",
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def manager(tmp_path, registry, store, synchronizer, gate, teardown_executor):
    return TenantLifecycleManager(
        registry=registry,
        store=store,
        synchronizer=synchronizer,
        gate=gate,
        locks=TenantLocks(tmp_path / "locks", timeout_seconds=5.0),
        admin_role="postgres",
        password_factory=lambda: "generated-secret",
        teardown=teardown_executor,
    )


@pytest.fixture
def make_verifier():
    """Build structurally valid SCRAM-SHA-256 verifiers."""
    return scram_verifier
