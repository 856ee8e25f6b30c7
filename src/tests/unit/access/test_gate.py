"""Unit tests for the Access Gate."""

from unittest.mock import MagicMock

import pytest

from dbhub.access.application.gate import AccessGate
from dbhub.access.domain.decision import AccessRequest, DecisionReason, GateState
from dbhub.registry.domain import TeardownMode, Tenant
from dbhub.registry.ports.repositories import ITenantRegistry
from dbhub.shared_kernel.exceptions import IdentityMismatchError, RegistryUnavailableError
from dbhub.shared_kernel.roles import RoleScope


@pytest.fixture
def mapped_registry(registry):
    registry.put(Tenant.create("alpha", "admin_alpha"), create=True)
    registry.put(Tenant.create("beta", "admin_beta", subdomain="shop"), create=True)
    return registry


def request(database, identity, scope=None):
    return AccessRequest(database=database, declared_identity=identity, role_scope=scope)


class TestEvaluate:
    """Tests for AccessGate.evaluate."""

    def test_exact_fqdn_is_allowed(self, gate, mapped_registry):
        decision = gate.evaluate(request("alpha", "alpha.dbhub.cc"))

        assert decision.allowed
        assert decision.reason == DecisionReason.IDENTITY_MATCH
        assert decision.expected_identities == ("alpha", "alpha.dbhub.cc")

    def test_bare_label_is_allowed(self, gate, mapped_registry):
        assert gate.evaluate(request("beta", "SHOP")).allowed

    def test_root_identity_is_rejected(self, gate, mapped_registry):
        decision = gate.evaluate(request("alpha", "dbhub.cc"))

        assert decision.state == GateState.REJECTED
        assert decision.reason == DecisionReason.IDENTITY_MISMATCH

    def test_suffixed_subdomain_is_rejected(self, gate, mapped_registry):
        assert not gate.evaluate(request("alpha", "alphaevil.dbhub.cc")).allowed

    def test_other_tenants_identity_is_rejected(self, gate, mapped_registry):
        assert not gate.evaluate(request("alpha", "shop.dbhub.cc")).allowed

    def test_missing_identity_is_rejected(self, gate, mapped_registry):
        decision = gate.evaluate(request("alpha", None))

        assert decision.reason == DecisionReason.MISSING_IDENTITY

    def test_unmapped_database_is_rejected(self, gate, mapped_registry):
        decision = gate.evaluate(request("gamma", "gamma.dbhub.cc"))

        assert decision.reason == DecisionReason.NO_MAPPING

    def test_superuser_bypasses_isolation(self, gate, mapped_registry):
        decision = gate.evaluate(request("alpha", None, RoleScope.SUPERUSER))

        assert decision.allowed
        assert decision.reason == DecisionReason.SUPERUSER

    def test_tenant_owner_does_not_bypass(self, gate, mapped_registry):
        assert not gate.evaluate(request("alpha", "dbhub.cc", RoleScope.TENANT_OWNER)).allowed

    def test_admin_database_is_exempt(self, gate, mapped_registry):
        decision = gate.evaluate(request("postgres", None))

        assert decision.reason == DecisionReason.ADMIN_DATABASE

    def test_quarantined_tenant_is_no_longer_reachable(self, gate, mapped_registry):
        tenant = mapped_registry.get("alpha")
        tenant.begin_teardown(TeardownMode.REASSIGN)
        tenant.mark_quarantined("alpha_quarantine_20260304050607")
        mapped_registry.put(tenant)

        assert gate.evaluate(request("alpha", "alpha.dbhub.cc")).reason == (
            DecisionReason.NO_MAPPING
        )


class TestRequestFromSignals:
    """Requests built from the proxy's connection signals."""

    def test_tls_server_name_is_declared_identity(self, gate, mapped_registry):
        req = AccessRequest.from_signals("alpha", {"tls_server_name": "Alpha.DBHub.cc."})

        assert req.declared_identity == "alpha.dbhub.cc"
        assert gate.evaluate(req).allowed

    def test_forwarded_host_is_used_without_server_name(self, gate, mapped_registry):
        req = AccessRequest.from_signals("beta", {"tls_server_name": None, "forwarded_host": "shop"})

        assert gate.evaluate(req).allowed

    def test_application_name_cannot_declare_identity(self, gate, mapped_registry):
        req = AccessRequest.from_signals("alpha", {"application_name": "alpha.dbhub.cc"})

        assert req.declared_identity is None
        assert gate.evaluate(req).reason == DecisionReason.MISSING_IDENTITY

    def test_role_is_carried(self):
        req = AccessRequest.from_signals(
            "alpha", {}, role_name="postgres", role_scope=RoleScope.SUPERUSER
        )

        assert req.role_name == "postgres"
        assert req.role_scope == RoleScope.SUPERUSER


class TestFailClosed:
    def test_unreadable_registry_rejects(self):
        registry = MagicMock(spec=ITenantRegistry)
        registry.get_mapping.side_effect = RegistryUnavailableError("map is ambiguous")
        gate = AccessGate(registry=registry, root_identity="dbhub.cc")

        decision = gate.evaluate(request("alpha", "alpha.dbhub.cc"))

        assert not decision.allowed
        assert decision.reason == DecisionReason.REGISTRY_UNAVAILABLE

    def test_ambiguous_map_file_rejects(self, gate, registry):
        registry.map_path.write_text("alpha alpha\nbeta alpha\n")

        assert not gate.evaluate(request("alpha", "alpha.dbhub.cc")).allowed


class TestOpenSession:
    """A rejected attempt never reaches the database."""

    def test_connect_called_when_allowed(self, gate, mapped_registry):
        connect = MagicMock(return_value="session")

        assert gate.open_session(request("alpha", "alpha.dbhub.cc"), connect) == "session"
        connect.assert_called_once_with()

    def test_connect_not_called_when_rejected(self, gate, mapped_registry):
        connect = MagicMock()

        with pytest.raises(IdentityMismatchError) as exc_info:
            gate.open_session(request("alpha", "dbhub.cc"), connect)

        connect.assert_not_called()
        assert exc_info.value.details["reason"] == "identity-mismatch"

    def test_enforce_returns_allowed_decision(self, gate, mapped_registry):
        assert gate.enforce(request("beta", "shop.dbhub.cc")).allowed
