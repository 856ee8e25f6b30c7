"""Observability for the Credential Synchronizer."""

from dbhub.credentials.application.observability.synchronizer_probe import (
    DefaultSynchronizerProbe,
    SynchronizerProbe,
)

__all__ = ["DefaultSynchronizerProbe", "SynchronizerProbe"]
