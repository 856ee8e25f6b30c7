"""Tenant Registry infrastructure: file-backed persistence."""

from dbhub.registry.infrastructure.file_registry import FileTenantRegistry

__all__ = ["FileTenantRegistry"]
