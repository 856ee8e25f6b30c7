"""Diffing and reporting for credential synchronization."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any


class SyncAction(StrEnum):
    """Single-entity update requested for one username."""

    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class SyncDiff:
    """Difference between the cache and the primary store, by username."""

    added: tuple[str, ...] = ()
    updated: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()
    unchanged: tuple[str, ...] = ()

    @classmethod
    def between(cls, cached: Mapping[str, str], desired: Mapping[str, str]) -> SyncDiff:
        return cls(
            added=tuple(sorted(set(desired) - set(cached))),
            updated=tuple(
                sorted(
                    name
                    for name in set(desired) & set(cached)
                    if desired[name] != cached[name]
                )
            ),
            removed=tuple(sorted(set(cached) - set(desired))),
            unchanged=tuple(
                sorted(
                    name
                    for name in set(desired) & set(cached)
                    if desired[name] == cached[name]
                )
            ),
        )

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.updated or self.removed)


@dataclass
class SyncReport:
    """Result of a full resync or a single-entity update.

    Attributes:
        added: Usernames whose entry was created
        updated: Usernames whose hash changed
        removed: Usernames whose entry was removed
        unchanged: Usernames left as they were
        written: Whether the cache file was replaced
        pooler_action: "reload", "restart", "skipped" or None when nothing
            was written
        backup_path: SyncBackup taken before the write
    """

    added: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    written: bool = False
    pooler_action: str | None = None
    backup_path: Path | None = None

    @classmethod
    def from_diff(cls, diff: SyncDiff) -> SyncReport:
        return cls(
            added=list(diff.added),
            updated=list(diff.updated),
            removed=list(diff.removed),
            unchanged=list(diff.unchanged),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "added": len(self.added),
            "updated": len(self.updated),
            "removed": len(self.removed),
            "unchanged": len(self.unchanged),
            "written": self.written,
            "pooler_action": self.pooler_action,
            "backup_path": str(self.backup_path) if self.backup_path else None,
            "usernames": {
                "added": self.added,
                "updated": self.updated,
                "removed": self.removed,
            },
        }


@dataclass
class RepairReport:
    """Result of verify_and_repair."""

    valid: int = 0
    repaired: list[dict[str, Any]] = field(default_factory=list)
    quarantined: list[dict[str, Any]] = field(default_factory=list)
    duplicates_removed: list[int] = field(default_factory=list)
    dry_run: bool = False
    written: bool = False
    pooler_action: str | None = None
    backup_path: Path | None = None
    quarantine_path: Path | None = None

    @property
    def clean(self) -> bool:
        """True when the cache needed no change."""
        return not (self.repaired or self.quarantined or self.duplicates_removed)

    def as_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "repaired": self.repaired,
            "quarantined": self.quarantined,
            "duplicates_removed": self.duplicates_removed,
            "dry_run": self.dry_run,
            "written": self.written,
            "pooler_action": self.pooler_action,
            "backup_path": str(self.backup_path) if self.backup_path else None,
            "quarantine_path": (
                str(self.quarantine_path) if self.quarantine_path else None
            ),
        }
