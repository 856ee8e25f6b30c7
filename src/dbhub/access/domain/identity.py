"""Declared network identity: extraction and comparison.

Only values set at the trust boundary are considered: the TLS server
name the client negotiated with the terminating proxy, or the forwarded
host header the proxy injects. ``application_name`` is chosen freely by
the client and is never read.
"""

from __future__ import annotations

from collections.abc import Mapping

TRUSTED_IDENTITY_KEYS = ("tls_server_name", "forwarded_host")


def declared_identity_from(signals: Mapping[str, str | None]) -> str | None:
    """Pick the declared identity out of connection signals.

    Args:
        signals: Connection attributes reported by the proxy, e.g.
            ``{"tls_server_name": "alpha.dbhub.cc"}``

    Returns:
        The first non-empty trusted value, or None
    """
    for key in TRUSTED_IDENTITY_KEYS:
        value = normalize_hostname(signals.get(key))
        if value is not None:
            return value
    return None


def normalize_hostname(value: str | None) -> str | None:
    """Lowercase a hostname and drop one trailing root dot.

    Returns None for missing or blank values.
    """
    if value is None:
        return None
    value = value.strip().lower()
    if value.endswith("."):
        value = value[:-1]
    return value or None


def expected_identities(subdomain: str, root_identity: str) -> tuple[str, str]:
    """The only two spellings accepted for a tenant."""
    subdomain = subdomain.lower()
    return (subdomain, f"{subdomain}.{root_identity.lower()}")


def identity_matches(declared: str | None, subdomain: str, root_identity: str) -> bool:
    """Exact comparison of a declared identity against a tenant's subdomain."""
    normalized = normalize_hostname(declared)
    if normalized is None:
        return False
    return normalized in expected_identities(subdomain, root_identity)
