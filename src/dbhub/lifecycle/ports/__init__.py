"""Ports for the Tenant Lifecycle Manager."""

from dbhub.lifecycle.ports.primary_store import PrimaryStore

__all__ = ["PrimaryStore"]
