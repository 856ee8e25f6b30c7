"""Control surface of the connection pooler process.

The credential synchronizer only needs to ask the pooler to re-read its
userlist. ``ProcessController`` is the seam; ``SystemdProcessController``
drives the service through ``systemctl``.
"""

from __future__ import annotations

import subprocess
from enum import StrEnum
from typing import Protocol

from dbhub.infrastructure.observability.probes import (
    DefaultProcessControlProbe,
    ProcessControlProbe,
)
from dbhub.shared_kernel.exceptions import SyncFailureError


class ServiceStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    FAILED = "failed"
    UNKNOWN = "unknown"


class ProcessControlError(SyncFailureError):
    """Raised when a pooler control command fails."""


class ProcessController(Protocol):
    """Reload/restart/status of the pooler."""

    def reload(self) -> None:
        """Ask the pooler to re-read its configuration and userlist."""
        ...

    def restart(self) -> None:
        """Restart the pooler."""
        ...

    def status(self) -> ServiceStatus:
        """Current state of the pooler service."""
        ...


class SystemdProcessController:
    """ProcessController backed by ``systemctl``."""

    def __init__(
        self,
        service: str,
        timeout_seconds: float,
        probe: ProcessControlProbe | None = None,
        systemctl: str = "systemctl",
    ):
        self._service = service
        self._timeout = timeout_seconds
        self._probe = probe or DefaultProcessControlProbe()
        self._systemctl = systemctl

    def reload(self) -> None:
        self._run("reload")

    def restart(self) -> None:
        self._run("restart")

    def status(self) -> ServiceStatus:
        try:
            result = subprocess.run(
                [self._systemctl, "is-active", self._service],
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except (OSError, subprocess.TimeoutExpired):
            return ServiceStatus.UNKNOWN

        state = result.stdout.strip()
        try:
            return ServiceStatus(state)
        except ValueError:
            return ServiceStatus.UNKNOWN

    def _run(self, action: str) -> None:
        try:
            result = subprocess.run(
                [self._systemctl, action, self._service],
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired as e:
            self._probe.command_failed(self._service, action, error="timeout")
            raise ProcessControlError(
                f"systemctl {action} {self._service} timed out",
                service=self._service,
                action=action,
            ) from e
        except OSError as e:
            self._probe.command_failed(self._service, action, error=str(e))
            raise ProcessControlError(
                f"systemctl {action} {self._service} could not run: {e}",
                service=self._service,
                action=action,
            ) from e

        if result.returncode != 0:
            error = result.stderr.strip() or f"exit status {result.returncode}"
            self._probe.command_failed(self._service, action, error=error)
            raise ProcessControlError(
                f"systemctl {action} {self._service} failed: {error}",
                service=self._service,
                action=action,
            )

        self._probe.command_succeeded(self._service, action)


def reload_or_restart(controller: ProcessController) -> str:
    """Reload the pooler, falling back to a restart.

    Returns:
        The action that succeeded ("reload" or "restart")

    Raises:
        ProcessControlError: If both reload and restart fail
    """
    try:
        controller.reload()
        return "reload"
    except ProcessControlError:
        controller.restart()
        return "restart"
