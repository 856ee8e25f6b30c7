"""Parse and serialize the hostname map file.

One ``<tenantId> <subdomain>`` record per line. ``#`` lines and blank lines
are ignored. Anything else that is not exactly two valid fields, or that
repeats a tenant id or a subdomain, makes the whole file ambiguous: the
parser raises instead of guessing which record is meant.
"""

from __future__ import annotations

from collections.abc import Iterable

from dbhub.registry.domain.value_objects import HostnameMapping
from dbhub.shared_kernel.exceptions import (
    InvalidIdentifierError,
    RegistryUnavailableError,
)
from dbhub.shared_kernel.identifiers import validate_subdomain, validate_tenant_id

HEADER = (
    "# dbhub hostname map: <tenant id> <subdomain>\n"
    "# Managed by dbhub. Change it with the dbhub CLI, not by hand.\n"
)


def parse_hostname_map(text: str, source: str = "<map>") -> list[HostnameMapping]:
    """Parse map file contents into mappings, in file order.

    Raises:
        RegistryUnavailableError: If any record is malformed or ambiguous
    """
    mappings: list[HostnameMapping] = []
    seen_ids: dict[str, int] = {}
    seen_subdomains: dict[str, int] = {}

    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue

        fields = line.split()
        if len(fields) != 2:
            raise RegistryUnavailableError(
                f"{source}:{lineno}: expected '<tenant id> <subdomain>', "
                f"got {len(fields)} fields",
                path=source,
                line=lineno,
            )

        tenant_id, subdomain = fields[0], fields[1].lower()
        try:
            validate_tenant_id(tenant_id)
            validate_subdomain(subdomain)
        except InvalidIdentifierError as e:
            raise RegistryUnavailableError(
                f"{source}:{lineno}: {e.message}", path=source, line=lineno
            ) from e

        if tenant_id in seen_ids:
            raise RegistryUnavailableError(
                f"{source}:{lineno}: tenant {tenant_id} already mapped on "
                f"line {seen_ids[tenant_id]}",
                path=source,
                line=lineno,
            )
        if subdomain in seen_subdomains:
            raise RegistryUnavailableError(
                f"{source}:{lineno}: subdomain {subdomain} already mapped on "
                f"line {seen_subdomains[subdomain]}",
                path=source,
                line=lineno,
            )

        seen_ids[tenant_id] = lineno
        seen_subdomains[subdomain] = lineno
        mappings.append(HostnameMapping(tenant_id=tenant_id, subdomain=subdomain))

    return mappings


def serialize_hostname_map(mappings: Iterable[HostnameMapping]) -> str:
    """Render mappings as map file contents, sorted by tenant id."""
    lines = [
        f"{m.tenant_id} {m.subdomain}\n"
        for m in sorted(mappings, key=lambda m: m.tenant_id)
    ]
    return HEADER + "".join(lines)
