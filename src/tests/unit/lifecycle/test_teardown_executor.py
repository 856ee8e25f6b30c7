"""Unit tests for TeardownExecutor."""

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest

from dbhub.lifecycle.application.cancellation import CancellationToken
from dbhub.lifecycle.application.observability import DefaultLifecycleProbe
from dbhub.lifecycle.application.teardown import TeardownExecutor
from dbhub.lifecycle.domain.teardown import DependencyKind
from dbhub.registry.domain import TeardownMode, TeardownTier, Tenant, TenantStatus
from dbhub.shared_kernel.exceptions import TeardownInterruptedError

QUARANTINED_DB = "alpha_quarantine_20260304050607"


@pytest.fixture
def probe():
    return MagicMock(spec=DefaultLifecycleProbe)


@pytest.fixture
def executor(store, registry, synchronizer, probe):
    return TeardownExecutor(
        store=store,
        registry=registry,
        synchronizer=synchronizer,
        admin_role="postgres",
        probe=probe,
        clock=lambda: datetime(2026, 3, 4, 5, 6, 7, tzinfo=UTC),
    )


def provision(store, registry, synchronizer, mode=TeardownMode.REASSIGN):
    """A tenant with its role, database and cache entry, already tearing down."""
    store.create_role("admin_alpha", "pw")
    store.create_database("alpha", "admin_alpha")
    tenant = Tenant.create("alpha", "admin_alpha")
    registry.put(tenant, create=True)
    synchronizer.full_resync()
    tenant.begin_teardown(mode)
    registry.put(tenant)
    return tenant


class TestCleanTeardown:
    """Teardowns that end in destroyed-clean."""

    def test_reassign_keeps_database_under_admin(self, executor, store, registry, synchronizer):
        tenant = provision(store, registry, synchronizer)

        result = executor.run(tenant, CancellationToken())

        assert result.status == TenantStatus.DESTROYED_CLEAN
        assert result.tiers_run == ["PREPARE"]
        assert result.roles_dropped == ["admin_alpha"]
        assert store.databases == {"alpha": "postgres"}
        assert registry.find("alpha") is None
        assert synchronizer.cached_entries() == {}

    def test_drop_mode_drops_database(self, executor, store, registry, synchronizer):
        tenant = provision(store, registry, synchronizer, TeardownMode.DROP)

        executor.run(tenant, CancellationToken())

        assert store.called("drop_database") == [("drop_database", "alpha")]
        assert store.called("transfer_database") == []
        assert store.databases == {}

    def test_owned_objects_resolved_by_reassign(self, executor, store, registry, synchronizer):
        tenant = provision(store, registry, synchronizer)
        store.add_dependency("admin_alpha", "alpha")

        result = executor.run(tenant, CancellationToken())

        assert result.tiers_run == ["PREPARE", "REASSIGN_OWNED"]
        assert store.called("reassign_owned") == [
            ("reassign_owned", "alpha", ("admin_alpha",), "postgres")
        ]
        assert result.status == TenantStatus.DESTROYED_CLEAN

    def test_failed_statement_moves_to_next_tier(self, executor, store, registry, synchronizer, probe):
        tenant = provision(store, registry, synchronizer)
        store.add_dependency("admin_alpha", "alpha")
        store.fail("reassign_owned")

        result = executor.run(tenant, CancellationToken())

        assert result.tiers_run == ["PREPARE", "REASSIGN_OWNED", "DROP_OWNED"]
        assert result.status == TenantStatus.DESTROYED_CLEAN
        probe.dependency_step_failed.assert_any_call(
            "alpha", "reassign-owned", "alpha", "reassign_owned failed"
        )

    def test_dependency_walk_resolves_shared_objects(self, executor, store, registry, synchronizer):
        tenant = provision(store, registry, synchronizer)
        store.add_dependency("admin_alpha", None, kind=DependencyKind.PRIVILEGE, name="ts")

        result = executor.run(tenant, CancellationToken())

        assert result.tiers_run[-1] == "DEPENDENCY_WALK"
        assert store.called("resolve_dependency") == [
            ("resolve_dependency", "revoke-all", "public.ts")
        ]
        assert result.status == TenantStatus.DESTROYED_CLEAN

    def test_progress_is_persisted_per_tier(self, executor, store, registry, synchronizer, probe):
        tenant = provision(store, registry, synchronizer)
        store.add_dependency("admin_alpha", "alpha")

        executor.run(tenant, CancellationToken())

        tiers = [c.args[1] for c in probe.teardown_tier_completed.call_args_list]
        assert tiers == ["PREPARE", "REASSIGN_OWNED"]


class TestQuarantine:
    """Teardowns that cannot free the roles."""

    def test_database_is_renamed_not_dropped(self, executor, store, registry, synchronizer):
        tenant = provision(store, registry, synchronizer)
        store.add_dependency("admin_alpha", "alpha", stubborn=True)

        result = executor.run(tenant, CancellationToken())

        assert result.quarantined
        assert result.quarantine_name == QUARANTINED_DB
        assert result.tiers_run == ["PREPARE", "REASSIGN_OWNED", "DROP_OWNED", "DEPENDENCY_WALK"]
        assert QUARANTINED_DB in store.databases
        assert store.called("drop_database") == []
        assert store.roles["admin_alpha"]["login"] is False
        assert synchronizer.cached_entries() == {}

        stored = registry.get("alpha")
        assert stored.status == TenantStatus.DESTROYED_QUARANTINED
        assert registry.get_mapping("alpha") is None

    def test_blocking_object_is_renamed_when_database_is_gone(self, executor, store, registry, synchronizer):
        tenant = provision(store, registry, synchronizer, TeardownMode.DROP)
        store.add_dependency("admin_alpha", "warehouse", stubborn=True)

        result = executor.run(tenant, CancellationToken())

        assert result.quarantine_name is None
        assert result.quarantined_objects == ["public.orders"]
        assert store.renamed == {"public.orders": "orders_quarantine_20260304050607"}

    def test_blocking_object_elsewhere_is_renamed_and_database_kept(self, executor, store, registry, synchronizer):
        tenant = provision(store, registry, synchronizer)
        store.create_database("shared", "postgres")
        store.add_dependency("admin_alpha", "shared", name="ledger", stubborn=True)

        result = executor.run(tenant, CancellationToken())

        assert result.quarantined
        assert result.quarantine_name is None
        assert result.quarantined_objects == ["public.ledger"]
        assert store.renamed == {"public.ledger": "ledger_quarantine_20260304050607"}
        assert store.databases["alpha"] == "postgres"
        assert store.called("rename_database") == []
        assert store.roles["admin_alpha"]["login"] is False

    def test_blockers_inside_and_outside_rename_both(self, executor, store, registry, synchronizer):
        tenant = provision(store, registry, synchronizer)
        store.add_dependency("admin_alpha", "alpha", stubborn=True)
        store.add_dependency("admin_alpha", "shared", name="ledger", stubborn=True)

        result = executor.run(tenant, CancellationToken())

        assert result.quarantine_name == QUARANTINED_DB
        assert result.quarantined_objects == ["alpha", "public.ledger"]
        assert store.renamed == {
            "alpha": QUARANTINED_DB,
            "public.ledger": "ledger_quarantine_20260304050607",
        }

    def test_resumed_quarantine_does_not_rename_twice(self, executor, store, registry, synchronizer):
        tenant = provision(store, registry, synchronizer)
        store.add_dependency("admin_alpha", "alpha", stubborn=True)
        store.rename_database("alpha", QUARANTINED_DB)
        tenant.quarantine_name = QUARANTINED_DB
        tenant.advance_teardown(TeardownTier.DEPENDENCY_WALK)
        store.calls.clear()

        result = executor.run(tenant, CancellationToken())

        assert result.quarantined
        assert store.called("rename_database") == []
        assert result.quarantine_name == QUARANTINED_DB


class TestInterruption:
    def test_cancel_stops_walk_and_keeps_tier(self, executor, store, registry, synchronizer, probe):
        tenant = provision(store, registry, synchronizer)
        store.add_dependency("admin_alpha", None, kind=DependencyKind.PRIVILEGE, name="ts")
        token = CancellationToken()
        token.cancel("SIGTERM")

        with pytest.raises(TeardownInterruptedError):
            executor.run(tenant, token)

        stored = registry.get("alpha")
        assert stored.status == TenantStatus.TEARING_DOWN
        assert stored.teardown.next_tier == TeardownTier.DEPENDENCY_WALK
        assert store.called("resolve_dependency") == []
        probe.teardown_interrupted.assert_called_once_with("alpha", "DEPENDENCY_WALK")


class TestPreconditions:
    def test_run_requires_tearing_down_tenant(self, executor):
        with pytest.raises(ValueError):
            executor.run(Tenant.create("alpha", "admin_alpha"), CancellationToken())


class TestReleaseRoles:
    def test_nothing_to_release(self, executor, store):
        tenant = Tenant.create("alpha", "admin_alpha")
        store.create_role("bob", "pw")

        assert executor.release_roles(tenant, ["bob"], CancellationToken()) == []
        assert store.called("reassign_owned") == []
