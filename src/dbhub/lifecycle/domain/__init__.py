"""Tenant Lifecycle domain layer."""

from dbhub.lifecycle.domain.results import (
    AuditReport,
    CreateTenantResult,
    MemberResult,
    SelfTestResult,
    TeardownResult,
)
from dbhub.lifecycle.domain.teardown import (
    Dependency,
    DependencyKind,
    ResolutionStep,
    StepAction,
    classify_dependency,
    needs_database_rename,
    next_tier,
    plan_dependency_step,
    quarantine_name,
    quarantine_targets,
)

__all__ = [
    "AuditReport",
    "CreateTenantResult",
    "Dependency",
    "DependencyKind",
    "MemberResult",
    "ResolutionStep",
    "SelfTestResult",
    "StepAction",
    "TeardownResult",
    "classify_dependency",
    "needs_database_rename",
    "next_tier",
    "plan_dependency_step",
    "quarantine_name",
    "quarantine_targets",
]
