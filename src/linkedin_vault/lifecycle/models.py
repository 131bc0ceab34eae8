"""Backup and snapshot records as stored in the document store."""

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

SOURCE_LINKEDIN_EXPORT = "linkedin_export"


class BackupStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    ERROR = "error"


def to_iso(value: datetime) -> str:
    """UTC ISO 8601 with fixed microsecond precision so text order is time order."""
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


@dataclass
class StoragePaths:
    raw: Optional[str] = None
    derived: Optional[str] = None
    recovery_pack: Optional[str] = None


@dataclass
class RetentionInfo:
    raw_expires_at: datetime
    derived_expires_at: datetime
    keep_raw_forever: bool = False


@dataclass
class BackupRecord:
    """One submitted archive and the state of its processing run."""
    backup_id: str
    user_id: str
    status: BackupStatus
    storage_paths: StoragePaths
    retention: RetentionInfo
    created_at: datetime
    updated_at: datetime
    org_id: Optional[str] = None
    source: str = SOURCE_LINKEDIN_EXPORT
    contains: Dict[str, bool] = field(default_factory=dict)
    file_name: Optional[str] = None
    file_size: int = 0
    export_version: Optional[str] = None
    error_message: Optional[str] = None
    processing_started_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "BackupRecord":
        return cls(
            backup_id=row["backup_id"],
            user_id=row["user_id"],
            org_id=row["org_id"],
            source=row["source"],
            status=BackupStatus(row["status"]),
            storage_paths=StoragePaths(
                raw=row["raw_path"],
                derived=row["derived_path"],
                recovery_pack=row["recovery_pack_path"],
            ),
            retention=RetentionInfo(
                raw_expires_at=from_iso(row["raw_expires_at"]),
                derived_expires_at=from_iso(row["derived_expires_at"]),
                keep_raw_forever=bool(row["keep_raw_forever"]),
            ),
            contains=json.loads(row["contains_json"] or "{}"),
            file_name=row["file_name"],
            file_size=row["file_size"],
            export_version=row["export_version"],
            error_message=row["error_message"],
            created_at=from_iso(row["created_at"]),
            updated_at=from_iso(row["updated_at"]),
            processing_started_at=from_iso(row["processing_started_at"]),
            processed_at=from_iso(row["processed_at"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        def iso(value: Optional[datetime]) -> Optional[str]:
            return to_iso(value) if value else None

        return {
            "backup_id": self.backup_id,
            "user_id": self.user_id,
            "org_id": self.org_id,
            "source": self.source,
            "status": self.status.value,
            "storage_paths": {
                "raw": self.storage_paths.raw,
                "derived": self.storage_paths.derived,
                "recovery_pack": self.storage_paths.recovery_pack,
            },
            "retention": {
                "raw_expires_at": iso(self.retention.raw_expires_at),
                "derived_expires_at": iso(self.retention.derived_expires_at),
                "keep_raw_forever": self.retention.keep_raw_forever,
            },
            "contains": dict(self.contains),
            "file_name": self.file_name,
            "file_size": self.file_size,
            "export_version": self.export_version,
            "error_message": self.error_message,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
            "processed_at": iso(self.processed_at),
        }


@dataclass
class SnapshotRecord:
    """Persisted stats and insight report of one successful run."""
    snapshot_id: str
    backup_id: str
    user_id: str
    stats: Dict[str, Any]
    report: Dict[str, Any]
    total_connections: int
    created_at: datetime

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "SnapshotRecord":
        return cls(
            snapshot_id=row["snapshot_id"],
            backup_id=row["backup_id"],
            user_id=row["user_id"],
            stats=json.loads(row["stats_json"]),
            report=json.loads(row["report_json"]),
            total_connections=row["total_connections"],
            created_at=from_iso(row["created_at"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "snapshot_id": self.snapshot_id,
            "backup_id": self.backup_id,
            "user_id": self.user_id,
            "stats": self.stats,
            "report": self.report,
            "total_connections": self.total_connections,
            "created_at": to_iso(self.created_at),
        }
