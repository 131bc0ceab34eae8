"""Backup lifecycle: acceptance, processing state machine and queries.

States::

    pending -> processing -> ready
                         \\-> error -> processing (retry)

Only this module mutates backup records (the retention sweep deletes them).
"""

import io
import json
import logging
import sqlite3
import uuid
import zipfile
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from ..analysis.insights import InsightService, InsightTier
from ..common import (
    LogContext, BackupNotFoundError, BackupAccessError, BackupAlreadyProcessingError,
    BackupProcessingError, BackupError, StorageError, UnsupportedArchiveError, UploadRejectedError,
)
from ..config import VaultConfig
from ..ingest.records import Entity
from ..pipeline import ExportPipeline
from .dal import BackupDAL, SnapshotDAL
from .database import DatabaseConnection
from .models import BackupRecord, BackupStatus, RetentionInfo, SnapshotRecord, StoragePaths
from .storage import LocalObjectStore

logger = logging.getLogger(__name__)

MB = 1024 * 1024


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def backup_prefix(user_id: str, backup_id: str) -> str:
    return f"users/{user_id}/exports/{backup_id}/"


def raw_archive_key(user_id: str, backup_id: str) -> str:
    return f"{backup_prefix(user_id, backup_id)}raw.zip"


def derived_prefix(user_id: str, backup_id: str) -> str:
    return f"{backup_prefix(user_id, backup_id)}processed/"


@dataclass
class ProcessOutcome:
    """Result of a processing trigger."""
    backup: BackupRecord
    already_processed: bool = False
    snapshot: Optional[SnapshotRecord] = None
    warnings: List[str] = field(default_factory=list)


class BackupLifecycleManager:
    """Owns backup records and runs the pipeline for them.

    Collaborators are passed in explicitly; the manager keeps no module-level
    state, so several instances (or processes) can share one document store.
    """

    def __init__(
        self,
        db: DatabaseConnection,
        store: LocalObjectStore,
        config: Optional[VaultConfig] = None,
        insights: Optional[InsightService] = None,
        now_fn: Callable[[], datetime] = _utcnow,
    ):
        self.config = config or VaultConfig()
        self.db = db
        self.store = store
        self.backups = BackupDAL(db)
        self.snapshots = SnapshotDAL(db)
        self.pipeline = ExportPipeline(self.config)
        self.insights = insights or InsightService(self.config.insights, now_fn=now_fn)
        self._now = now_fn

    # -- acceptance -------------------------------------------------------

    def create_backup(
        self,
        user_id: str,
        data: bytes,
        file_name: Optional[str] = None,
        org_id: Optional[str] = None,
        keep_raw_forever: bool = False,
    ) -> BackupRecord:
        """Store a submitted archive and create its pending record.

        Raises:
            UploadRejectedError: Archive exceeds the upload ceiling
            UnsupportedArchiveError: Not a ZIP archive
            StorageError: Raw archive could not be stored
        """
        limit = self.config.limits.max_upload_bytes
        if len(data) > limit:
            raise UploadRejectedError(
                f"File too large. Maximum size is {limit // MB}MB",
                size=len(data),
                limit=limit,
            )
        if (file_name and not file_name.lower().endswith(".zip")) or not zipfile.is_zipfile(io.BytesIO(data)):
            raise UnsupportedArchiveError("Only ZIP archives are supported", file_name=file_name)

        now = self._now()
        retention = self.config.retention
        backup_id = str(uuid.uuid4())
        raw_key = raw_archive_key(user_id, backup_id)

        record = BackupRecord(
            backup_id=backup_id,
            user_id=user_id,
            org_id=org_id,
            status=BackupStatus.PENDING,
            storage_paths=StoragePaths(raw=raw_key),
            retention=RetentionInfo(
                raw_expires_at=now + timedelta(days=retention.raw_days),
                derived_expires_at=now + timedelta(days=retention.derived_days),
                keep_raw_forever=keep_raw_forever,
            ),
            contains={entity.value: False for entity in Entity},
            file_name=file_name,
            file_size=len(data),
            created_at=now,
            updated_at=now,
        )

        self.store.put(raw_key, data)
        try:
            self.backups.insert(record)
        except sqlite3.Error:
            self.store.delete(raw_key)
            raise

        logger.info(f"Accepted backup {{'backup_id': {backup_id!r}, 'user_id': {user_id!r}, 'bytes': {len(data)}}}")
        return record

    # -- queries ----------------------------------------------------------

    def get_backup(self, backup_id: str, user_id: str) -> BackupRecord:
        """Fetch a backup owned by user_id.

        Raises:
            BackupNotFoundError: No such backup
            BackupAccessError: Backup belongs to someone else
        """
        record = self.backups.get(backup_id)
        if record is None:
            raise BackupNotFoundError("Backup not found", backup_id=backup_id)
        if record.user_id != user_id:
            raise BackupAccessError("Unauthorized", backup_id=backup_id)
        return record

    def list_backups(self, user_id: str, limit: int = 50) -> List[BackupRecord]:
        return self.backups.list_for_user(user_id, limit)

    def get_snapshot(self, backup_id: str, user_id: str) -> SnapshotRecord:
        self.get_backup(backup_id, user_id)
        snapshot = self.snapshots.get_for_backup(backup_id)
        if snapshot is None:
            raise BackupNotFoundError("Snapshot not found", backup_id=backup_id)
        return snapshot

    def export_connections(self, backup_id: str, user_id: str) -> bytes:
        """Return the raw connections file from the stored archive.

        The archive goes through the same safety checks as processing.
        """
        record = self.get_backup(backup_id, user_id)
        if not record.storage_paths.raw:
            raise BackupNotFoundError("Raw file not available", backup_id=backup_id)

        content = self.pipeline.read_entity(self.store.get(record.storage_paths.raw), Entity.CONNECTIONS)
        if content is None:
            raise BackupNotFoundError("Connections file not found in backup", backup_id=backup_id)
        return content

    # -- processing -------------------------------------------------------

    def process(
        self,
        backup_id: str,
        user_id: str,
        tier: InsightTier = InsightTier.DETERMINISTIC,
    ) -> ProcessOutcome:
        """Run the pipeline for one backup.

        A ready backup short-circuits; a backup another caller is processing
        is refused. Any failure moves the backup to error, which a later
        trigger may retry.

        Raises:
            BackupNotFoundError, BackupAccessError: Ownership check failed
            BackupAlreadyProcessingError: Another run holds the backup
            BackupProcessingError: The run failed
        """
        record = self.get_backup(backup_id, user_id)

        with LogContext(logger, backup_id=backup_id, user_id=user_id):
            if record.status is BackupStatus.READY:
                logger.info("Backup already processed")
                return ProcessOutcome(backup=record, already_processed=True)

            if not self.backups.claim(backup_id, self._now()):
                current = self.backups.get(backup_id)
                if current is not None and current.status is BackupStatus.READY:
                    return ProcessOutcome(backup=current, already_processed=True)
                raise BackupAlreadyProcessingError("Backup is already being processed", backup_id=backup_id)

            logger.info(f"Processing backup {{'tier': {InsightTier(tier).value!r}}}")
            try:
                outcome = self._run(record, InsightTier(tier))
            except Exception as e:
                message = str(e) or type(e).__name__
                self._record_failure(backup_id, message)
                raise BackupProcessingError(message, backup_id=backup_id) from e

            logger.info(f"Backup ready {{'connections': {outcome.snapshot.total_connections}}}")
            return outcome

    def _run(self, record: BackupRecord, tier: InsightTier) -> ProcessOutcome:
        raw_key = record.storage_paths.raw
        if not raw_key:
            raise StorageError("Raw archive is no longer available")

        data = self.store.get(raw_key)
        result = self.pipeline.run(data)
        report = self.insights.generate(result.stats, tier)

        stats_doc = result.stats.to_dict()
        report_doc = report.model_dump(mode="json")

        prefix = derived_prefix(record.user_id, record.backup_id)
        self.store.put(f"{prefix}snapshot.json", json.dumps({
            "backup_id": record.backup_id,
            "export_version": result.version.value,
            "warnings": result.warnings,
            "stats": stats_doc,
            "report": report_doc,
        }, indent=2).encode("utf-8"))
        recovery_key = f"{prefix}recovery-pack.zip"
        self.store.put(recovery_key, self._build_recovery_pack(data, stats_doc, report_doc))

        now = self._now()
        with self.db.transaction() as cursor:
            snapshot_id = self.snapshots.upsert(
                record.backup_id, record.user_id, stats_doc, report_doc,
                result.stats.total_connections, now, cursor=cursor,
            )
            if not self.backups.mark_ready(
                record.backup_id, now, result.contains, result.version.value,
                prefix, recovery_key, cursor=cursor,
            ):
                raise BackupError("Backup is no longer claimed by this run", backup_id=record.backup_id)

        return ProcessOutcome(
            backup=self.backups.get(record.backup_id),
            snapshot=SnapshotRecord(
                snapshot_id=snapshot_id,
                backup_id=record.backup_id,
                user_id=record.user_id,
                stats=stats_doc,
                report=report_doc,
                total_connections=result.stats.total_connections,
                created_at=now,
            ),
            warnings=result.warnings,
        )

    def _build_recovery_pack(self, data: bytes, stats: dict, report: dict) -> bytes:
        """Downloadable ZIP with the derived results and the connections file."""
        connections = self.pipeline.read_entity(data, Entity.CONNECTIONS)
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            zf.writestr("stats.json", json.dumps(stats, indent=2))
            zf.writestr("insights.json", json.dumps(report, indent=2))
            if connections is not None:
                zf.writestr("Connections.csv", connections)
        return buffer.getvalue()

    def _record_failure(self, backup_id: str, message: str) -> None:
        try:
            self.backups.mark_error(backup_id, message, self._now())
        except sqlite3.Error as e:
            # recover_stale picks the record up later
            logger.error(f"Failed to record processing error: {e}")
        logger.warning(f"Processing failed: {message}")

    def recover_stale(self, now: Optional[datetime] = None) -> int:
        """Move runs stuck in processing past the timeout to error."""
        now = now or self._now()
        cutoff = now - timedelta(minutes=self.config.retention.processing_timeout_minutes)
        recovered = self.backups.fail_stale(cutoff, now, "Processing timed out")
        if recovered:
            logger.warning(f"Recovered stale processing runs {{'count': {recovered}}}")
        return recovered
