"""Observability for the Tenant Lifecycle Manager."""

from dbhub.lifecycle.application.observability.lifecycle_probe import (
    DefaultLifecycleProbe,
    LifecycleProbe,
)

__all__ = ["DefaultLifecycleProbe", "LifecycleProbe"]
