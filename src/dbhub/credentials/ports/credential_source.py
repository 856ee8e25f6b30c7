"""Port for reading login credentials from the primary store."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class CredentialSource(Protocol):
    """Read-only view of login-capable roles and their password verifiers."""

    def list_login_verifiers(self) -> dict[str, str]:
        """Verifier of every role that can log in and has a password.

        Raises:
            PrimaryStoreError: If the primary store cannot be queried
        """
        ...

    def get_login_verifier(self, username: str) -> str | None:
        """Verifier of one role.

        Returns:
            The verifier, or None if the role does not exist, cannot log in
            or has no password
        """
        ...
