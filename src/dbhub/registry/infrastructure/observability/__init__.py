"""Observability for Tenant Registry infrastructure."""

from dbhub.registry.infrastructure.observability.registry_probe import (
    DefaultRegistryProbe,
    RegistryProbe,
)

__all__ = ["DefaultRegistryProbe", "RegistryProbe"]
