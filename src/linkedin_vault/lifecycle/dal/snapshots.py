"""Data Access Layer for the snapshots table."""

import json
import logging
import sqlite3
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from ..database import DatabaseConnection
from ..models import SnapshotRecord, to_iso

logger = logging.getLogger(__name__)


class SnapshotDAL:
    """Snapshots are unique per backup; writing again replaces the previous one."""

    def __init__(self, db: DatabaseConnection):
        self.db = db

    def upsert(
        self,
        backup_id: str,
        user_id: str,
        stats: Dict[str, Any],
        report: Dict[str, Any],
        total_connections: int,
        now: datetime,
        cursor: Optional[sqlite3.Cursor] = None,
    ) -> str:
        """
        Store the snapshot for a backup.

        Returns:
            snapshot_id (UUID4 string, kept when replacing)
        """
        snapshot_id = str(uuid.uuid4())
        params = (
            snapshot_id, backup_id, user_id, json.dumps(stats), json.dumps(report),
            total_connections, to_iso(now),
        )
        sql = """
            INSERT INTO snapshots (
                snapshot_id, backup_id, user_id, stats_json, report_json, total_connections, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (backup_id) DO UPDATE SET
                stats_json = excluded.stats_json,
                report_json = excluded.report_json,
                total_connections = excluded.total_connections,
                created_at = excluded.created_at
            RETURNING snapshot_id
        """
        if cursor is not None:
            row = cursor.execute(sql, params).fetchone()
        else:
            row = self.db.fetch_one(sql, params)

        logger.debug(f"Stored snapshot for backup {backup_id}")
        return row["snapshot_id"]

    def get_for_backup(self, backup_id: str) -> Optional[SnapshotRecord]:
        row = self.db.fetch_one("SELECT * FROM snapshots WHERE backup_id = ?", (backup_id,))
        return SnapshotRecord.from_row(row) if row else None

    def count_for_backup(self, backup_id: str) -> int:
        row = self.db.fetch_one("SELECT COUNT(*) AS n FROM snapshots WHERE backup_id = ?", (backup_id,))
        return row["n"]

    def delete_for_backup(self, backup_id: str, cursor: Optional[sqlite3.Cursor] = None) -> int:
        sql = "DELETE FROM snapshots WHERE backup_id = ?"
        if cursor is not None:
            cursor.execute(sql, (backup_id,))
            return cursor.rowcount
        result = self.db.execute(sql, (backup_id,))
        try:
            return result.rowcount
        finally:
            result.close()
