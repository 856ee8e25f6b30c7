"""Ports for the Tenant Registry."""

from dbhub.registry.ports.repositories import ITenantRegistry

__all__ = ["ITenantRegistry"]
