"""Access Gate application layer."""

from dbhub.access.application.gate import AccessGate

__all__ = ["AccessGate"]
