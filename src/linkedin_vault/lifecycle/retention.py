"""Retention sweep for expired raw archives and derived artifacts."""

import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from ..common import LogContext, VaultError
from .dal import BackupDAL, SnapshotDAL
from .database import DatabaseConnection
from .models import BackupRecord, BackupStatus
from .storage import LocalObjectStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SweepSummary:
    raw_deleted: int = 0
    derived_deleted: int = 0
    records_deleted: int = 0
    skipped_processing: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class RetentionSweeper:
    """
    Deletes expired artifacts.

    Raw pass: raw archive past its expiry (unless kept forever) is deleted
    and its reference cleared; the record stays.

    Derived pass: derived artifacts, recovery pack and snapshot are deleted,
    then the record itself. A record whose raw archive is kept forever keeps
    its record and raw archive.

    Records in processing are never touched: every write re-checks the
    status in the same transaction that removes the files. A failure on one
    record rolls that record back, is logged and collected, and the sweep
    moves on to the next record.
    """

    def __init__(
        self,
        db: DatabaseConnection,
        store: LocalObjectStore,
        now_fn: Callable[[], datetime] = _utcnow,
    ):
        self.db = db
        self.store = store
        self.backups = BackupDAL(db)
        self.snapshots = SnapshotDAL(db)
        self._now = now_fn

    def sweep(self, now: Optional[datetime] = None) -> SweepSummary:
        now = now or self._now()
        summary = SweepSummary()

        for record in self.backups.find_raw_expired(now):
            if self._skip(record, summary):
                continue
            self._guarded(record, summary, "raw", self._purge_raw, now)

        for record in self.backups.find_derived_expired(now):
            if self._skip(record, summary):
                continue
            self._guarded(record, summary, "derived", self._purge_derived, now)

        logger.info(
            f"Retention sweep complete {{'raw_deleted': {summary.raw_deleted}, "
            f"'derived_deleted': {summary.derived_deleted}, 'records_deleted': {summary.records_deleted}, "
            f"'skipped_processing': {summary.skipped_processing}, 'errors': {len(summary.errors)}}}"
        )
        return summary

    def _skip(self, record: BackupRecord, summary: SweepSummary) -> bool:
        if record.status is BackupStatus.PROCESSING:
            summary.skipped_processing += 1
            return True
        return False

    def _guarded(self, record: BackupRecord, summary: SweepSummary, step: str, action, now: datetime) -> None:
        with LogContext(logger, backup_id=record.backup_id, step=step):
            try:
                action(record, summary, now)
            except Exception as e:
                message = f"Failed to delete {step} artifacts for {record.backup_id}: {e}"
                logger.error(message, exc_info=not isinstance(e, VaultError))
                summary.errors.append(message)

    def _lost_to_run(self, record: BackupRecord, summary: SweepSummary) -> None:
        summary.skipped_processing += 1
        logger.info(f"Backup {record.backup_id} was claimed by a run; left untouched")

    def _purge_raw(self, record: BackupRecord, summary: SweepSummary, now: datetime) -> None:
        # The write lock is held until the files are gone, so no run can claim in between
        with self.db.transaction() as cursor:
            if not self.backups.clear_raw_path(record.backup_id, now, cursor=cursor):
                self._lost_to_run(record, summary)
                return
            self.store.delete(record.storage_paths.raw)
        summary.raw_deleted += 1
        logger.info(f"Deleted raw archive {record.storage_paths.raw}")

    def _purge_derived(self, record: BackupRecord, summary: SweepSummary, now: datetime) -> None:
        paths = record.storage_paths
        keep_record = bool(record.retention.keep_raw_forever and paths.raw)

        with self.db.transaction() as cursor:
            if keep_record:
                changed = self.backups.clear_derived_paths(record.backup_id, now, cursor=cursor)
            else:
                changed = self.backups.delete(record.backup_id, cursor=cursor)
            if not changed:
                self._lost_to_run(record, summary)
                return
            self.snapshots.delete_for_backup(record.backup_id, cursor=cursor)

            if paths.derived:
                self.store.delete_prefix(paths.derived)
            if paths.recovery_pack:
                self.store.delete(paths.recovery_pack)
            if not keep_record and paths.raw:
                self.store.delete(paths.raw)

        if not keep_record:
            summary.records_deleted += 1
        summary.derived_deleted += 1
        logger.info(f"Deleted derived artifacts for backup {record.backup_id}")
