"""Composition root for the CLI.

Components are built from the settings on first use, so commands that only
read the registry never open a database connection.
"""

from __future__ import annotations

from functools import cached_property

from dbhub.access.application.gate import AccessGate
from dbhub.credentials.application.synchronizer import CredentialSynchronizer
from dbhub.credentials.infrastructure import PostgresCredentialSource, UserlistFile
from dbhub.infrastructure.database.connection import ConnectionFactory
from dbhub.infrastructure.database.connection_pool import ConnectionPool
from dbhub.infrastructure.locking import TenantLocks
from dbhub.infrastructure.process_control import SystemdProcessController
from dbhub.infrastructure.retry import RetryPolicy
from dbhub.infrastructure.settings import (
    DatabaseSettings,
    TenancySettings,
    get_database_settings,
    get_tenancy_settings,
)
from dbhub.lifecycle.application.manager import TenantLifecycleManager
from dbhub.lifecycle.infrastructure import PostgresPrimaryStore
from dbhub.registry.infrastructure import FileTenantRegistry


class Container:
    """Lazily wired application services."""

    def __init__(
        self,
        tenancy: TenancySettings | None = None,
        database: DatabaseSettings | None = None,
    ):
        self.tenancy = tenancy or get_tenancy_settings()
        self.database = database or get_database_settings()

    @cached_property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.tenancy.retry_limit,
            backoff_seconds=self.tenancy.retry_backoff_seconds,
        )

    @cached_property
    def registry(self) -> FileTenantRegistry:
        return FileTenantRegistry(
            map_path=self.tenancy.registry_path,
            metadata_path=self.tenancy.resolved_metadata_path,
            owner_role_prefix=self.tenancy.owner_role_prefix,
            lock_timeout_seconds=self.tenancy.lock_timeout_seconds,
            retry_policy=self.retry_policy,
        )

    @cached_property
    def gate(self) -> AccessGate:
        return AccessGate(
            registry=self.registry,
            root_identity=self.tenancy.root_identity,
            admin_databases=self.tenancy.admin_databases,
        )

    @cached_property
    def pool(self) -> ConnectionPool:
        return ConnectionPool(self.database)

    @cached_property
    def connection_factory(self) -> ConnectionFactory:
        return ConnectionFactory(self.database, pool=self.pool)

    @cached_property
    def store(self) -> PostgresPrimaryStore:
        return PostgresPrimaryStore(self.connection_factory, self.retry_policy)

    @cached_property
    def synchronizer(self) -> CredentialSynchronizer:
        return CredentialSynchronizer(
            source=PostgresCredentialSource(self.connection_factory, self.retry_policy),
            cache=UserlistFile(
                path=self.tenancy.cache_path,
                backup_dir=self.tenancy.backup_dir,
                file_mode=self.tenancy.cache_file_mode,
                lock_timeout_seconds=self.tenancy.lock_timeout_seconds,
                retry_policy=self.retry_policy,
            ),
            controller=SystemdProcessController(
                service=self.tenancy.pooler_service,
                timeout_seconds=self.tenancy.pooler_command_timeout_seconds,
            ),
            retry_policy=self.retry_policy,
        )

    @cached_property
    def manager(self) -> TenantLifecycleManager:
        return TenantLifecycleManager(
            registry=self.registry,
            store=self.store,
            synchronizer=self.synchronizer,
            gate=self.gate,
            locks=TenantLocks(self.tenancy.lock_dir, self.tenancy.lock_timeout_seconds),
            admin_role=self.tenancy.admin_role,
            owner_role_prefix=self.tenancy.owner_role_prefix,
        )

    def close(self) -> None:
        """Close pooled connections if the pool was ever created."""
        if "pool" in self.__dict__:
            self.pool.close_all()
