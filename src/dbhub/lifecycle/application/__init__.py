"""Application services for the Tenant Lifecycle Manager."""

from dbhub.lifecycle.application.cancellation import CancellationToken
from dbhub.lifecycle.application.manager import TenantLifecycleManager, generate_password
from dbhub.lifecycle.application.teardown import TeardownExecutor

__all__ = [
    "CancellationToken",
    "TeardownExecutor",
    "TenantLifecycleManager",
    "generate_password",
]
