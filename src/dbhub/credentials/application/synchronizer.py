"""Credential Synchronizer: keeps the pooler userlist equal to pg_authid.

Three operations share one write path (lock, SyncBackup, atomic replace,
pooler reload with restart fallback):

- ``full_resync`` rebuilds the whole cache from the primary store,
- ``sync_one`` converges a single username's line,
- ``verify_and_repair`` fixes or quarantines structurally damaged lines.
"""

from __future__ import annotations

from pathlib import Path

from dbhub.credentials.application.observability import (
    DefaultSynchronizerProbe,
    SynchronizerProbe,
)
from dbhub.credentials.domain.sync import RepairReport, SyncAction, SyncDiff, SyncReport
from dbhub.credentials.domain.userlist import plan_repair, render_canonical
from dbhub.credentials.infrastructure.userlist_file import UserlistFile
from dbhub.credentials.ports.credential_source import CredentialSource
from dbhub.infrastructure.process_control import (
    ProcessControlError,
    ProcessController,
    reload_or_restart,
)
from dbhub.infrastructure.retry import RetryPolicy
from dbhub.shared_kernel.exceptions import SyncFailureError


def _sync_error(message: str, error: Exception) -> SyncFailureError:
    return SyncFailureError(message, error=str(error))


class CredentialSynchronizer:
    """Application service for the pooler credential cache."""

    def __init__(
        self,
        source: CredentialSource,
        cache: UserlistFile,
        controller: ProcessController,
        retry_policy: RetryPolicy | None = None,
        probe: SynchronizerProbe | None = None,
    ):
        self._source = source
        self._cache = cache
        self._controller = controller
        self._retry = retry_policy or RetryPolicy()
        self._probe = probe or DefaultSynchronizerProbe()

    def full_resync(self, skip_reload: bool = False) -> SyncReport:
        """Rewrite the cache from every login-capable role.

        Nothing is written, and the pooler is not signalled, when the cache
        already equals the canonical rendering of the primary store.

        Raises:
            PrimaryStoreError: If the roles cannot be listed
            SyncFailureError: If the cache cannot be written or the pooler
                cannot be signalled
        """
        desired = self._source.list_login_verifiers()

        with self._cache.lock():
            current = self._cache.read()
            report = SyncReport.from_diff(SyncDiff.between(current.entries(), desired))
            content = render_canonical(desired)
            if content != current.render():
                self._write(content, report, skip_reload)

        self._probe.resync_completed(
            added=len(report.added),
            updated=len(report.updated),
            removed=len(report.removed),
            unchanged=len(report.unchanged),
            written=report.written,
        )
        return report

    def sync_one(
        self, username: str, action: SyncAction, skip_reload: bool = False
    ) -> SyncReport:
        """Converge one username's line; idempotent.

        ``add`` and ``update`` fetch the verifier from the primary store. A
        role that no longer exists or cannot log in converges to absent, as
        does ``delete``. No other line is touched.
        """
        verifier: str | None = None
        if action in (SyncAction.ADD, SyncAction.UPDATE):
            verifier = self._source.get_login_verifier(username)

        with self._cache.lock():
            current = self._cache.read()
            cached = current.entries().get(username)
            if verifier is None:
                updated = current.without_entry(username)
            else:
                updated = current.with_entry(username, verifier)

            report = SyncReport()
            held = current.holds(username)
            if verifier is None and held:
                report.removed.append(username)
            elif verifier is not None and not held:
                report.added.append(username)
            elif verifier is not None and cached != verifier:
                report.updated.append(username)
            else:
                report.unchanged.append(username)

            content = updated.render()
            if content != current.render():
                self._write(content, report, skip_reload)

        self._probe.entry_synced(username, str(action), _outcome(report))
        return report

    def verify_and_repair(
        self, dry_run: bool = False, skip_reload: bool = False
    ) -> RepairReport:
        """Repair unambiguous damage and quarantine the rest.

        With ``dry_run`` the report describes what would change and nothing
        is written.
        """
        with self._cache.lock():
            current = self._cache.read()
            plan = plan_repair(current)

            report = RepairReport(
                valid=plan.valid,
                repaired=[
                    {"lineno": r.lineno, "username": r.username}
                    for r in plan.repaired
                ],
                quarantined=[
                    {"lineno": q.lineno, "reason": q.reason} for q in plan.quarantined
                ],
                duplicates_removed=list(plan.duplicates_removed),
                dry_run=dry_run,
            )
            for repaired in plan.repaired:
                self._probe.entry_repaired(repaired.lineno, repaired.username)
            for quarantined in plan.quarantined:
                self._probe.entry_quarantined(quarantined.lineno, quarantined.reason)

            if dry_run or not plan.changed:
                return report

            backup = self._cache.replace(plan.render())
            report.written = True
            report.backup_path = backup
            self._probe.cache_written(
                str(self._cache.path), str(backup) if backup else None
            )
            if plan.quarantined:
                report.quarantine_path = self._cache.write_quarantine(
                    plan.quarantined, backup
                )
            report.pooler_action = self._signal_or_restore(backup, skip_reload)

        return report

    def verify(self) -> RepairReport:
        """Inspect the cache without changing it."""
        return self.verify_and_repair(dry_run=True)

    def cached_entries(self) -> dict[str, str]:
        """Valid entries currently in the cache."""
        return self._cache.read().entries()

    def _write(self, content: str, report: SyncReport, skip_reload: bool) -> None:
        backup = self._cache.replace(content)
        report.written = True
        report.backup_path = backup
        self._probe.cache_written(str(self._cache.path), str(backup) if backup else None)
        report.pooler_action = self._signal_or_restore(backup, skip_reload)

    def _signal_or_restore(self, backup: Path | None, skip_reload: bool) -> str:
        """Signal the pooler; if that fails, put the previous cache back.

        The pooler still serves the credentials it loaded last, so the file
        must match them for a retried sync to see the change again.
        """
        try:
            return self._signal_pooler(skip_reload)
        except SyncFailureError:
            self._cache.restore(backup)
            self._probe.cache_restored(
                str(self._cache.path), str(backup) if backup else None
            )
            raise

    def _signal_pooler(self, skip_reload: bool) -> str:
        if skip_reload:
            self._probe.pooler_signal_skipped()
            return "skipped"

        action = self._retry.call(
            "signal pooler",
            lambda: reload_or_restart(self._controller),
            retry_on=(ProcessControlError,),
            error_factory=_sync_error,
        )
        self._probe.pooler_signalled(action)
        return action


def _outcome(report: SyncReport) -> str:
    if report.added:
        return "added"
    if report.updated:
        return "updated"
    if report.removed:
        return "removed"
    return "unchanged"
