"""Ports for the Credential Synchronizer."""

from dbhub.credentials.ports.credential_source import CredentialSource

__all__ = ["CredentialSource"]
