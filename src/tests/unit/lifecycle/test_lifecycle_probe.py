"""Unit tests for DefaultLifecycleProbe."""

from unittest.mock import MagicMock

import pytest
import structlog

from dbhub.lifecycle.application.observability import DefaultLifecycleProbe
from dbhub.shared_kernel.observability_context import ObservationContext


@pytest.fixture
def logger():
    return MagicMock(spec=structlog.stdlib.BoundLogger)


class TestDefaultLifecycleProbe:
    def test_tenant_created_logs_info(self, logger):
        DefaultLifecycleProbe(logger=logger).tenant_created("alpha", "shop", "admin_alpha")

        logger.info.assert_called_once_with(
            "tenant_created", tenant_id="alpha", subdomain="shop", owner_role="admin_alpha"
        )

    def test_creation_failure_logs_error(self, logger):
        DefaultLifecycleProbe(logger=logger).tenant_creation_failed("alpha", "boom")

        logger.error.assert_called_once_with(
            "tenant_creation_failed", tenant_id="alpha", error="boom"
        )

    def test_self_test_level_follows_outcome(self, logger):
        probe = DefaultLifecycleProbe(logger=logger)

        probe.self_test_completed("alpha", True, [])
        probe.self_test_completed("beta", False, ["root identity allowed"])

        logger.info.assert_called_once_with(
            "tenant_self_test_completed", tenant_id="alpha", passed=True, errors=[]
        )
        logger.warning.assert_called_once_with(
            "tenant_self_test_completed",
            tenant_id="beta",
            passed=False,
            errors=["root identity allowed"],
        )

    def test_tier_completed_reports_remaining(self, logger):
        DefaultLifecycleProbe(logger=logger).teardown_tier_completed("alpha", "DROP_OWNED", 2)

        logger.info.assert_called_once_with(
            "teardown_tier_completed",
            tenant_id="alpha",
            tier="DROP_OWNED",
            remaining_dependencies=2,
        )

    def test_quarantine_logs_error(self, logger):
        DefaultLifecycleProbe(logger=logger).teardown_quarantined(
            "alpha", "alpha_quarantine_20260304050607", 1
        )

        logger.error.assert_called_once_with(
            "teardown_quarantined",
            tenant_id="alpha",
            quarantine_name="alpha_quarantine_20260304050607",
            remaining_dependencies=1,
        )

    def test_interruption_logs_warning(self, logger):
        DefaultLifecycleProbe(logger=logger).teardown_interrupted("alpha", "DEPENDENCY_WALK")

        logger.warning.assert_called_once_with(
            "teardown_interrupted", tenant_id="alpha", tier="DEPENDENCY_WALK"
        )

    def test_context_is_bound(self, logger):
        probe = DefaultLifecycleProbe(logger=logger).with_context(
            ObservationContext(operation_id="op-7")
        )

        probe.member_removed("alpha", "alpha_reader")

        logger.info.assert_called_once_with(
            "tenant_member_removed",
            tenant_id="alpha",
            role_name="alpha_reader",
            operation_id="op-7",
        )
