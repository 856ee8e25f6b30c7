"""Credential Synchronizer domain layer."""

from dbhub.credentials.domain.sync import RepairReport, SyncAction, SyncDiff, SyncReport
from dbhub.credentials.domain.userlist import (
    HEADER,
    CacheEntry,
    LineKind,
    Userlist,
    UserlistLine,
    plan_repair,
    render_canonical,
    verifier_problem,
)

__all__ = [
    "HEADER",
    "CacheEntry",
    "LineKind",
    "RepairReport",
    "SyncAction",
    "SyncDiff",
    "SyncReport",
    "Userlist",
    "UserlistLine",
    "plan_repair",
    "render_canonical",
    "verifier_problem",
]
