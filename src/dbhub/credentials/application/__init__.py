"""Credential Synchronizer application layer."""

from dbhub.credentials.application.synchronizer import CredentialSynchronizer

__all__ = ["CredentialSynchronizer"]
