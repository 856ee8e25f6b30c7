"""Unit tests for the dbhub command line.

Commands run through typer's CliRunner with a mocked Container passed as
the context object, so only argument parsing, result printing and exit
codes are exercised here.
"""

import json
from unittest.mock import ANY, MagicMock, patch

import pytest
from typer.testing import CliRunner

from dbhub.cli.main import app
from dbhub.credentials.domain.sync import SyncAction
from dbhub.registry.domain import TeardownMode, Tenant
from dbhub.shared_kernel.exceptions import (
    DuplicateIdentityError,
    RegistryUnavailableError,
    TeardownInterruptedError,
)
from dbhub.shared_kernel.roles import RoleScope

runner = CliRunner()


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("dbhub.cli.main.configure_logging") as configure:
        yield configure


@pytest.fixture
def container():
    container = MagicMock()
    container.tenancy.root_identity = "dbhub.cc"
    return container


def invoke(container, *args):
    result = runner.invoke(app, list(args), obj=container)
    return result, json.loads(result.stdout)


class TestErrorHandling:
    def test_dbhub_error_prints_kind_and_exits_with_its_code(self, container):
        container.manager.create_tenant.side_effect = DuplicateIdentityError(
            "Tenant alpha already exists", tenant_id="alpha"
        )

        result, payload = invoke(container, "create-tenant", "alpha")

        assert result.exit_code == 10
        assert payload == {
            "kind": "DuplicateIdentity",
            "message": "Tenant alpha already exists",
            "tenant_id": "alpha",
        }

    def test_unexpected_error_exits_one(self, container):
        container.manager.list_tenants.side_effect = RuntimeError("boom")

        result, payload = invoke(container, "list-tenants")

        assert result.exit_code == 1
        assert payload == {"kind": "Error", "message": "boom"}

    def test_registry_unavailable(self, container):
        container.gate.evaluate.side_effect = RegistryUnavailableError("map unreadable")

        result, payload = invoke(container, "validate-access", "alpha", "alpha.dbhub.cc")

        assert result.exit_code == 13
        assert payload["kind"] == "RegistryUnavailable"

    def test_container_is_closed(self, container):
        container.manager.list_tenants.return_value = []

        invoke(container, "list-tenants")

        container.close.assert_called_once()

    def test_verbose_flag_configures_logging(self, container, no_logging_setup):
        container.manager.list_tenants.return_value = []

        runner.invoke(app, ["--verbose", "list-tenants"], obj=container)

        no_logging_setup.assert_called_once_with(verbose=True)


class TestCreateAndDestroy:
    def test_create_tenant(self, container):
        container.manager.create_tenant.return_value.as_dict.return_value = {
            "tenant_id": "alpha",
            "fqdn": "shop.dbhub.cc",
        }

        result, payload = invoke(
            container, "create-tenant", "alpha", "--subdomain", "shop", "--password", "pw"
        )

        assert result.exit_code == 0
        assert payload["fqdn"] == "shop.dbhub.cc"
        container.manager.create_tenant.assert_called_once_with("alpha", "shop", "pw")

    def test_destroy_clean_exits_zero(self, container):
        teardown = container.manager.destroy_tenant.return_value
        teardown.quarantined = False
        teardown.as_dict.return_value = {"status": "destroyed-clean"}

        result, payload = invoke(container, "destroy-tenant", "alpha", "--mode", "drop")

        assert result.exit_code == 0
        assert payload == {"status": "destroyed-clean"}
        container.manager.destroy_tenant.assert_called_once_with(
            "alpha", TeardownMode.DROP, ANY
        )

    def test_destroy_quarantined_exits_fifteen(self, container):
        teardown = container.manager.destroy_tenant.return_value
        teardown.quarantined = True
        teardown.as_dict.return_value = {"status": "destroyed-quarantined"}

        result, payload = invoke(container, "destroy-tenant", "alpha")

        assert result.exit_code == 15
        assert payload["status"] == "destroyed-quarantined"

    def test_interrupted_destroy(self, container):
        container.manager.destroy_tenant.side_effect = TeardownInterruptedError(
            "Teardown of alpha interrupted", tenant_id="alpha"
        )

        result, payload = invoke(container, "destroy-tenant", "alpha")

        assert result.exit_code == 18
        assert payload["kind"] == "TeardownInterrupted"


class TestSyncCredentials:
    def test_full_resync_by_default(self, container):
        container.synchronizer.full_resync.return_value.as_dict.return_value = {"written": True}

        result, payload = invoke(container, "sync-credentials")

        assert result.exit_code == 0
        assert payload == {"written": True}
        container.synchronizer.full_resync.assert_called_once_with(skip_reload=False)

    def test_single_user(self, container):
        container.synchronizer.sync_one.return_value.as_dict.return_value = {}

        result, _ = invoke(
            container, "sync-credentials", "--user", "admin_alpha", "--action", "delete", "-s"
        )

        assert result.exit_code == 0
        container.synchronizer.sync_one.assert_called_once_with(
            "admin_alpha", SyncAction.DELETE, skip_reload=True
        )

    def test_single_user_defaults_to_update(self, container):
        container.synchronizer.sync_one.return_value.as_dict.return_value = {}

        invoke(container, "sync-credentials", "--user", "admin_alpha")

        container.synchronizer.sync_one.assert_called_once_with(
            "admin_alpha", SyncAction.UPDATE, skip_reload=False
        )

    def test_verify_only_reports_damage(self, container):
        report = container.synchronizer.verify.return_value
        report.clean = False
        report.as_dict.return_value = {"quarantined": [{"lineno": 3}]}

        result, payload = invoke(container, "sync-credentials", "--verify-only")

        assert result.exit_code == 16
        assert payload["quarantined"] == [{"lineno": 3}]
        container.synchronizer.verify_and_repair.assert_not_called()

    def test_repair(self, container):
        container.synchronizer.verify_and_repair.return_value.as_dict.return_value = {}

        result, _ = invoke(container, "sync-credentials", "--repair", "--skip-reload")

        assert result.exit_code == 0
        container.synchronizer.verify_and_repair.assert_called_once_with(skip_reload=True)


class TestAccessCommands:
    def test_rejected_identity_exits_twelve(self, container):
        decision = container.gate.evaluate.return_value
        decision.allowed = False
        decision.as_dict.return_value = {"allowed": False, "reason": "identity-mismatch"}

        result, payload = invoke(container, "validate-access", "alpha", "dbhub.cc")

        assert result.exit_code == 12
        assert payload["reason"] == "identity-mismatch"
        request = container.gate.evaluate.call_args.args[0]
        assert request.database == "alpha"
        assert request.declared_identity == "dbhub.cc"

    def test_allowed_identity(self, container):
        decision = container.gate.evaluate.return_value
        decision.allowed = True
        decision.as_dict.return_value = {"allowed": True}

        result, _ = invoke(container, "validate-access", "alpha", "alpha.dbhub.cc")

        assert result.exit_code == 0

    def test_forwarded_host_signal(self, container):
        decision = container.gate.evaluate.return_value
        decision.allowed = True
        decision.as_dict.return_value = {"allowed": True}

        result, _ = invoke(container, "validate-access", "alpha", "--forwarded-host", "Alpha.DBHub.cc")

        assert result.exit_code == 0
        request = container.gate.evaluate.call_args.args[0]
        assert request.declared_identity == "alpha.dbhub.cc"

    def test_no_signal_means_no_identity(self, container):
        decision = container.gate.evaluate.return_value
        decision.allowed = False
        decision.as_dict.return_value = {"allowed": False, "reason": "missing-identity"}

        result, _ = invoke(container, "validate-access", "alpha")

        assert result.exit_code == 12
        assert container.gate.evaluate.call_args.args[0].declared_identity is None

    def test_audit_failure_exits_twelve(self, container):
        report = container.manager.audit_access.return_value
        report.passed = False
        report.as_dict.return_value = {"passed": False, "failed": ["alpha"]}

        result, payload = invoke(container, "audit-access")

        assert result.exit_code == 12
        assert payload["failed"] == ["alpha"]

    def test_list_tenants(self, container):
        container.manager.list_tenants.return_value = [
            Tenant.create("my_shop", "admin_my_shop")
        ]

        result, payload = invoke(container, "list-tenants")

        assert result.exit_code == 0
        assert payload["tenants"] == [
            {
                "tenant_id": "my_shop",
                "subdomain": "my-shop",
                "fqdn": "my-shop.dbhub.cc",
                "owner_role": "admin_my_shop",
                "member_roles": {},
                "status": "live",
                "next_tier": None,
                "quarantine_name": None,
            }
        ]


class TestRoleCommands:
    def test_add_member_with_scope(self, container):
        container.manager.add_member.return_value.as_dict.return_value = {"action": "added"}

        result, _ = invoke(
            container, "add-member", "alpha", "alpha_app", "--scope", "tenant-member-full"
        )

        assert result.exit_code == 0
        container.manager.add_member.assert_called_once_with(
            "alpha", "alpha_app", RoleScope.TENANT_MEMBER_FULL, None
        )

    def test_add_member_defaults_to_readonly(self, container):
        container.manager.add_member.return_value.as_dict.return_value = {}

        invoke(container, "add-member", "alpha", "alpha_reader")

        container.manager.add_member.assert_called_once_with(
            "alpha", "alpha_reader", RoleScope.TENANT_MEMBER_READONLY, None
        )

    def test_remove_member(self, container):
        container.manager.remove_member.return_value.as_dict.return_value = {"action": "removed"}

        result, payload = invoke(container, "remove-member", "alpha", "alpha_reader")

        assert result.exit_code == 0
        assert payload == {"action": "removed"}
        container.manager.remove_member.assert_called_once_with("alpha", "alpha_reader", ANY)

    def test_rotate_password(self, container):
        container.manager.rotate_password.return_value.as_dict.return_value = {}

        invoke(container, "rotate-password", "admin_alpha", "--password", "fresh")

        container.manager.rotate_password.assert_called_once_with("admin_alpha", "fresh")

    def test_remap_subdomain(self, container):
        tenant = Tenant.create("alpha", "admin_alpha", subdomain="shop")
        container.manager.remap_subdomain.return_value = tenant

        result, payload = invoke(container, "remap-subdomain", "alpha", "shop")

        assert result.exit_code == 0
        assert payload["fqdn"] == "shop.dbhub.cc"
