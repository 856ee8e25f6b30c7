"""Observability for the Access Gate."""

from dbhub.access.application.observability.gate_probe import (
    AccessGateProbe,
    DefaultAccessGateProbe,
)

__all__ = ["AccessGateProbe", "DefaultAccessGateProbe"]
