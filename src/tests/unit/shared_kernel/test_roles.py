"""Unit tests for role scopes and their privilege sets."""

import pytest

from dbhub.shared_kernel.roles import RoleScope


class TestRoleScope:
    """Tests for the closed RoleScope enumeration."""

    def test_only_superuser_bypasses_isolation(self):
        """The Access Gate lets only superusers through without a mapping."""
        bypassing = [scope for scope in RoleScope if scope.privileges.bypasses_isolation]
        assert bypassing == [RoleScope.SUPERUSER]

    def test_only_owner_owns_database(self):
        owners = [scope for scope in RoleScope if scope.privileges.owns_database]
        assert owners == [RoleScope.TENANT_OWNER]

    @pytest.mark.parametrize(
        "scope,expected",
        [
            (RoleScope.SUPERUSER, False),
            (RoleScope.TENANT_OWNER, False),
            (RoleScope.TENANT_MEMBER_FULL, True),
            (RoleScope.TENANT_MEMBER_READONLY, True),
        ],
    )
    def test_member_scopes(self, scope, expected):
        assert scope.is_member_scope is expected

    def test_readonly_member_cannot_write(self):
        """Read-only members only SELECT from tables."""
        privileges = RoleScope.TENANT_MEMBER_READONLY.privileges
        assert privileges.tables == ("SELECT",)
        assert "INSERT" not in privileges.tables

    def test_full_member_can_write_but_not_own(self):
        privileges = RoleScope.TENANT_MEMBER_FULL.privileges
        assert {"SELECT", "INSERT", "UPDATE", "DELETE"} <= set(privileges.tables)
        assert privileges.owns_database is False

    def test_scopes_parse_from_strings(self):
        """Scopes round-trip through their CLI/metadata spelling."""
        assert RoleScope("tenant-member-readonly") is RoleScope.TENANT_MEMBER_READONLY
