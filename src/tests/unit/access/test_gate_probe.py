"""Unit tests for DefaultAccessGateProbe."""

from unittest.mock import MagicMock

import structlog

from dbhub.access.application.observability import DefaultAccessGateProbe


class TestDefaultAccessGateProbe:
    def test_allowed_is_debug(self):
        logger = MagicMock(spec=structlog.stdlib.BoundLogger)
        DefaultAccessGateProbe(logger=logger).access_allowed(
            "alpha", "alpha.dbhub.cc", "subdomain-match"
        )

        logger.debug.assert_called_once_with(
            "access_allowed",
            database="alpha",
            declared_identity="alpha.dbhub.cc",
            reason="subdomain-match",
        )

    def test_rejected_is_warning(self):
        logger = MagicMock(spec=structlog.stdlib.BoundLogger)
        DefaultAccessGateProbe(logger=logger).access_rejected("alpha", None, "missing-identity")

        logger.warning.assert_called_once_with(
            "access_rejected",
            database="alpha",
            declared_identity=None,
            reason="missing-identity",
        )

    def test_registry_unavailable_is_error(self):
        logger = MagicMock(spec=structlog.stdlib.BoundLogger)
        DefaultAccessGateProbe(logger=logger).registry_unavailable("alpha", "bad map")

        logger.error.assert_called_once_with(
            "access_gate_registry_unavailable", database="alpha", error="bad map"
        )
