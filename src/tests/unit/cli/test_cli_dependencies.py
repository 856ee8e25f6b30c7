"""Unit tests for the CLI composition root."""

from unittest.mock import patch

import pytest
from pydantic import SecretStr

from dbhub.cli.dependencies import Container
from dbhub.infrastructure.settings import DatabaseSettings, TenancySettings


@pytest.fixture
def tenancy(tmp_path):
    return TenancySettings(
        registry_path=tmp_path / "pg_hostname_map.conf",
        cache_path=tmp_path / "userlist.txt",
        backup_dir=tmp_path / "backups",
        lock_dir=tmp_path / "locks",
        root_identity="Example.COM.",
    )


@pytest.fixture
def database():
    return DatabaseSettings(host="testhost", password=SecretStr("testpass"))


class TestContainer:
    def test_registry_uses_configured_paths(self, tenancy, database, tmp_path):
        container = Container(tenancy=tenancy, database=database)

        assert container.registry.map_path == tmp_path / "pg_hostname_map.conf"
        assert container.registry.metadata_path == tmp_path / "pg_hostname_map.tenants.json"

    def test_gate_uses_normalized_root(self, tenancy, database):
        container = Container(tenancy=tenancy, database=database)

        assert container.gate.root_identity == "example.com"

    def test_components_are_built_once(self, tenancy, database):
        container = Container(tenancy=tenancy, database=database)

        assert container.registry is container.registry
        assert container.gate is container.gate

    def test_registry_commands_open_no_pool(self, tenancy, database):
        with patch("dbhub.cli.dependencies.ConnectionPool") as pool_cls:
            container = Container(tenancy=tenancy, database=database)
            container.gate
            container.close()

        pool_cls.assert_not_called()

    def test_close_releases_pool(self, tenancy, database):
        with patch("dbhub.cli.dependencies.ConnectionPool") as pool_cls:
            container = Container(tenancy=tenancy, database=database)
            container.manager
            container.close()

        pool_cls.assert_called_once_with(database)
        pool_cls.return_value.close_all.assert_called_once()
