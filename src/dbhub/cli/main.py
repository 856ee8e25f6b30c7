"""
dbhub command line
==================

Commands:
    dbhub create-tenant <id> [--subdomain NAME] [--password PW]
    dbhub destroy-tenant <id> [--mode reassign|drop]
    dbhub sync-credentials [--user NAME --action add|update|delete]
                           [--verify-only] [--repair] [--skip-reload]
    dbhub validate-access <id> [<tls-server-name>] [--forwarded-host HOST]
    dbhub list-tenants
    dbhub audit-access
    dbhub add-member <id> <role> [--scope ...] [--password PW]
    dbhub remove-member <id> <role>
    dbhub rotate-password <role> [--password PW]
    dbhub remap-subdomain <id> <subdomain>

Every command prints one JSON document on stdout. Failures print the
error ``kind`` and ``message`` and exit with the error's code.
"""

from __future__ import annotations

import signal
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, Optional

import typer
from rich.console import Console

from dbhub.access.domain.decision import AccessRequest
from dbhub.cli.dependencies import Container
from dbhub.credentials.domain.sync import SyncAction
from dbhub.infrastructure.logging import configure_logging
from dbhub.lifecycle.application.cancellation import CancellationToken
from dbhub.registry.domain.tenant import Tenant
from dbhub.registry.domain.value_objects import TeardownMode
from dbhub.shared_kernel.exceptions import (
    CorruptCacheEntryError,
    DbhubError,
    DependencyUnresolvedError,
    IdentityMismatchError,
)
from dbhub.shared_kernel.roles import RoleScope

app = typer.Typer(
    name="dbhub",
    help="Multi-tenant PostgreSQL tenancy engine",
    no_args_is_help=True,
)

console = Console()

Outcome = tuple[dict[str, Any], int]


def _emit(payload: dict[str, Any]) -> None:
    console.print_json(data=payload, default=str)


def _run(ctx: typer.Context, command: Callable[[Container], Outcome]) -> None:
    """Run a command, print its JSON result and exit with its code."""
    container: Container = ctx.obj
    try:
        payload, exit_code = command(container)
    except DbhubError as e:
        _emit(e.as_dict())
        raise typer.Exit(e.exit_code)
    except Exception as e:
        _emit({"kind": "Error", "message": str(e)})
        raise typer.Exit(1)
    finally:
        container.close()

    _emit(payload)
    if exit_code:
        raise typer.Exit(exit_code)


@contextmanager
def _cancel_on_signals(token: CancellationToken) -> Iterator[None]:
    """Route SIGINT/SIGTERM to ``token`` for the duration of the block."""

    def handle(signum: int, frame: Any) -> None:
        token.cancel(signal.Signals(signum).name)

    previous = {
        sig: signal.signal(sig, handle) for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def _tenant_dict(tenant: Tenant, root_identity: str) -> dict[str, Any]:
    return {
        "tenant_id": tenant.id,
        "subdomain": tenant.subdomain,
        "fqdn": tenant.mapping.fqdn(root_identity),
        "owner_role": tenant.owner_role,
        "member_roles": {name: str(scope) for name, scope in sorted(tenant.member_roles.items())},
        "status": str(tenant.status),
        "next_tier": tenant.teardown.next_tier.name if tenant.teardown else None,
        "quarantine_name": tenant.quarantine_name,
    }


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug events"),
):
    """Manage tenants, credentials and access checks."""
    configure_logging(verbose=verbose)
    if ctx.obj is None:
        ctx.obj = Container()


@app.command("create-tenant")
def create_tenant(
    ctx: typer.Context,
    tenant_id: str = typer.Argument(..., help="Tenant id (database name)"),
    subdomain: Optional[str] = typer.Option(
        None,
        "--subdomain",
        help="Hostname label; defaults to the tenant id with '_' replaced by '-'",
    ),
    password: Optional[str] = typer.Option(
        None, "--password", help="Owner password (generated when omitted)"
    ),
):
    """Create a tenant database, owner role, mapping and cache entry."""

    def command(container: Container) -> Outcome:
        result = container.manager.create_tenant(tenant_id, subdomain, password)
        return result.as_dict(), 0

    _run(ctx, command)


@app.command("destroy-tenant")
def destroy_tenant(
    ctx: typer.Context,
    tenant_id: str = typer.Argument(..., help="Tenant id"),
    mode: TeardownMode = typer.Option(
        TeardownMode.REASSIGN, "--mode", help="Keep (reassign) or drop the database"
    ),
):
    """Tear a tenant down; exits 15 when it had to be quarantined."""

    def command(container: Container) -> Outcome:
        token = CancellationToken()
        with _cancel_on_signals(token):
            result = container.manager.destroy_tenant(tenant_id, mode, token)
        exit_code = DependencyUnresolvedError.exit_code if result.quarantined else 0
        return result.as_dict(), exit_code

    _run(ctx, command)


@app.command("sync-credentials")
def sync_credentials(
    ctx: typer.Context,
    user: Optional[str] = typer.Option(None, "--user", help="Sync a single role"),
    action: SyncAction = typer.Option(
        SyncAction.UPDATE, "--action", help="Change to apply for --user"
    ),
    verify_only: bool = typer.Option(
        False, "--verify-only", help="Report damaged lines without changing the cache"
    ),
    repair: bool = typer.Option(False, "--repair", help="Repair or quarantine damaged lines"),
    skip_reload: bool = typer.Option(
        False, "--skip-reload", "-s", help="Do not signal the pooler"
    ),
):
    """Converge the pooler userlist with the primary store."""

    def command(container: Container) -> Outcome:
        synchronizer = container.synchronizer
        if verify_only:
            report = synchronizer.verify()
            exit_code = 0 if report.clean else CorruptCacheEntryError.exit_code
            return report.as_dict(), exit_code
        if repair:
            return synchronizer.verify_and_repair(skip_reload=skip_reload).as_dict(), 0
        if user is not None:
            return synchronizer.sync_one(user, action, skip_reload=skip_reload).as_dict(), 0
        return synchronizer.full_resync(skip_reload=skip_reload).as_dict(), 0

    _run(ctx, command)


@app.command("validate-access")
def validate_access(
    ctx: typer.Context,
    tenant_id: str = typer.Argument(..., help="Target database"),
    tls_server_name: Optional[str] = typer.Argument(
        None, help="TLS server name the client negotiated"
    ),
    forwarded_host: Optional[str] = typer.Option(
        None, "--forwarded-host", help="Host header injected by the proxy"
    ),
):
    """Evaluate the Access Gate for one connection attempt."""

    def command(container: Container) -> Outcome:
        signals = {"tls_server_name": tls_server_name, "forwarded_host": forwarded_host}
        decision = container.gate.evaluate(AccessRequest.from_signals(tenant_id, signals))
        exit_code = 0 if decision.allowed else IdentityMismatchError.exit_code
        return decision.as_dict(), exit_code

    _run(ctx, command)


@app.command("list-tenants")
def list_tenants(ctx: typer.Context):
    """List every tenant in the registry."""

    def command(container: Container) -> Outcome:
        root = container.tenancy.root_identity
        tenants = container.manager.list_tenants()
        return {"tenants": [_tenant_dict(t, root) for t in tenants]}, 0

    _run(ctx, command)


@app.command("audit-access")
def audit_access(ctx: typer.Context):
    """Run the gate self-test for every live tenant."""

    def command(container: Container) -> Outcome:
        report = container.manager.audit_access()
        exit_code = 0 if report.passed else IdentityMismatchError.exit_code
        return report.as_dict(), exit_code

    _run(ctx, command)


@app.command("add-member")
def add_member(
    ctx: typer.Context,
    tenant_id: str = typer.Argument(..., help="Tenant id"),
    role_name: str = typer.Argument(..., help="New role name"),
    scope: RoleScope = typer.Option(
        RoleScope.TENANT_MEMBER_READONLY, "--scope", help="Member privilege set"
    ),
    password: Optional[str] = typer.Option(
        None, "--password", help="Role password (generated when omitted)"
    ),
):
    """Add a restricted role to a tenant."""

    def command(container: Container) -> Outcome:
        result = container.manager.add_member(tenant_id, role_name, scope, password)
        return result.as_dict(), 0

    _run(ctx, command)


@app.command("remove-member")
def remove_member(
    ctx: typer.Context,
    tenant_id: str = typer.Argument(..., help="Tenant id"),
    role_name: str = typer.Argument(..., help="Member role to drop"),
):
    """Drop a member role after resolving its dependencies."""

    def command(container: Container) -> Outcome:
        token = CancellationToken()
        with _cancel_on_signals(token):
            result = container.manager.remove_member(tenant_id, role_name, token)
        return result.as_dict(), 0

    _run(ctx, command)


@app.command("rotate-password")
def rotate_password(
    ctx: typer.Context,
    role_name: str = typer.Argument(..., help="Tenant role"),
    password: Optional[str] = typer.Option(
        None, "--password", help="New password (generated when omitted)"
    ),
):
    """Change a tenant role's password and update the pooler cache."""

    def command(container: Container) -> Outcome:
        return container.manager.rotate_password(role_name, password).as_dict(), 0

    _run(ctx, command)


@app.command("remap-subdomain")
def remap_subdomain(
    ctx: typer.Context,
    tenant_id: str = typer.Argument(..., help="Tenant id"),
    subdomain: str = typer.Argument(..., help="New hostname label"),
):
    """Point a tenant at a different subdomain."""

    def command(container: Container) -> Outcome:
        tenant = container.manager.remap_subdomain(tenant_id, subdomain)
        return _tenant_dict(tenant, container.tenancy.root_identity), 0

    _run(ctx, command)


if __name__ == "__main__":
    app()
