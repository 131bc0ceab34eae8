"""Data Access Layer for the backups table."""

import json
import logging
import sqlite3
from datetime import datetime
from typing import Dict, List, Optional

from ..database import DatabaseConnection
from ..models import BackupRecord, BackupStatus, to_iso

logger = logging.getLogger(__name__)

# States a processing run may be claimed from
CLAIMABLE_STATUSES = (BackupStatus.PENDING.value, BackupStatus.ERROR.value)


class BackupDAL:
    """
    Data access layer for backups table.

    Status transitions are compare-and-set updates keyed by backup id, so two
    callers racing for the same backup cannot both win.
    """

    def __init__(self, db: DatabaseConnection):
        self.db = db

    def _run(self, sql: str, params, cursor: Optional[sqlite3.Cursor] = None) -> int:
        if cursor is not None:
            cursor.execute(sql, params)
            return cursor.rowcount
        result = self.db.execute(sql, params)
        try:
            return result.rowcount
        finally:
            result.close()

    def insert(self, record: BackupRecord) -> None:
        self._run(
            """
            INSERT INTO backups (
                backup_id, user_id, org_id, source, status,
                raw_path, derived_path, recovery_pack_path,
                raw_expires_at, derived_expires_at, keep_raw_forever,
                contains_json, file_name, file_size,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.backup_id, record.user_id, record.org_id, record.source, record.status.value,
                record.storage_paths.raw, record.storage_paths.derived, record.storage_paths.recovery_pack,
                to_iso(record.retention.raw_expires_at), to_iso(record.retention.derived_expires_at),
                int(record.retention.keep_raw_forever),
                json.dumps(record.contains), record.file_name, record.file_size,
                to_iso(record.created_at), to_iso(record.updated_at),
            ),
        )
        logger.info(f"Created backup {record.backup_id}")

    def get(self, backup_id: str) -> Optional[BackupRecord]:
        row = self.db.fetch_one("SELECT * FROM backups WHERE backup_id = ?", (backup_id,))
        return BackupRecord.from_row(row) if row else None

    def list_for_user(self, user_id: str, limit: int = 50) -> List[BackupRecord]:
        """Backups owned by a user, newest first."""
        rows = self.db.fetch_all(
            "SELECT * FROM backups WHERE user_id = ? ORDER BY created_at DESC LIMIT ?",
            (user_id, limit),
        )
        return [BackupRecord.from_row(row) for row in rows]

    def claim(self, backup_id: str, now: datetime) -> bool:
        """Move a pending or errored backup to processing.

        Returns:
            True if this caller won the claim
        """
        stamp = to_iso(now)
        claimed = self._run(
            f"""
            UPDATE backups
            SET status = 'processing',
                processing_started_at = ?,
                updated_at = ?,
                error_message = NULL
            WHERE backup_id = ? AND status IN ({", ".join("?" for _ in CLAIMABLE_STATUSES)})
            """,
            (stamp, stamp, backup_id, *CLAIMABLE_STATUSES),
        )
        return claimed == 1

    def mark_ready(
        self,
        backup_id: str,
        now: datetime,
        contains: Dict[str, bool],
        export_version: str,
        derived_path: str,
        recovery_pack_path: Optional[str],
        cursor: Optional[sqlite3.Cursor] = None,
    ) -> bool:
        """Complete a run. Only succeeds while the backup is still processing."""
        stamp = to_iso(now)
        updated = self._run(
            """
            UPDATE backups
            SET status = 'ready',
                contains_json = ?,
                export_version = ?,
                derived_path = ?,
                recovery_pack_path = ?,
                processed_at = ?,
                updated_at = ?,
                error_message = NULL
            WHERE backup_id = ? AND status = 'processing'
            """,
            (json.dumps(contains), export_version, derived_path, recovery_pack_path, stamp, stamp, backup_id),
            cursor,
        )
        return updated == 1

    def mark_error(self, backup_id: str, message: str, now: datetime) -> bool:
        stamp = to_iso(now)
        updated = self._run(
            """
            UPDATE backups
            SET status = 'error', error_message = ?, updated_at = ?
            WHERE backup_id = ? AND status = 'processing'
            """,
            (message, stamp, backup_id),
        )
        logger.info(f"Marked backup {backup_id} as error")
        return updated == 1

    def fail_stale(self, started_before: datetime, now: datetime, message: str) -> int:
        """Move runs stuck in processing since before ``started_before`` to error."""
        return self._run(
            """
            UPDATE backups
            SET status = 'error', error_message = ?, updated_at = ?
            WHERE status = 'processing'
              AND (processing_started_at IS NULL OR processing_started_at < ?)
            """,
            (message, to_iso(now), to_iso(started_before)),
        )

    # The retention writes below never touch a backup a run has claimed.

    def clear_raw_path(self, backup_id: str, now: datetime, cursor: Optional[sqlite3.Cursor] = None) -> bool:
        updated = self._run(
            "UPDATE backups SET raw_path = NULL, updated_at = ? WHERE backup_id = ? AND status != 'processing'",
            (to_iso(now), backup_id),
            cursor,
        )
        return updated == 1

    def clear_derived_paths(self, backup_id: str, now: datetime, cursor: Optional[sqlite3.Cursor] = None) -> bool:
        updated = self._run(
            """
            UPDATE backups
            SET derived_path = NULL, recovery_pack_path = NULL, updated_at = ?
            WHERE backup_id = ? AND status != 'processing'
            """,
            (to_iso(now), backup_id),
            cursor,
        )
        return updated == 1

    def delete(self, backup_id: str, cursor: Optional[sqlite3.Cursor] = None) -> bool:
        return self._run(
            "DELETE FROM backups WHERE backup_id = ? AND status != 'processing'", (backup_id,), cursor
        ) == 1

    def find_raw_expired(self, now: datetime) -> List[BackupRecord]:
        """Backups whose raw archive is past expiry and still stored."""
        rows = self.db.fetch_all(
            """
            SELECT * FROM backups
            WHERE raw_path IS NOT NULL
              AND keep_raw_forever = 0
              AND raw_expires_at <= ?
            ORDER BY raw_expires_at
            """,
            (to_iso(now),),
        )
        return [BackupRecord.from_row(row) for row in rows]

    def find_derived_expired(self, now: datetime) -> List[BackupRecord]:
        """Backups whose derived artifacts are past expiry.

        Records kept alive only by keep_raw_forever drop out once their
        derived artifacts are gone.
        """
        rows = self.db.fetch_all(
            """
            SELECT * FROM backups
            WHERE derived_expires_at <= ?
              AND (keep_raw_forever = 0
                   OR derived_path IS NOT NULL
                   OR recovery_pack_path IS NOT NULL
                   OR EXISTS (SELECT 1 FROM snapshots s WHERE s.backup_id = backups.backup_id))
            ORDER BY derived_expires_at
            """,
            (to_iso(now),),
        )
        return [BackupRecord.from_row(row) for row in rows]
