"""Backup lifecycle: document store, object store, state machine and retention."""

from .database import DatabaseConnection
from .migrations import MigrationRunner
from .models import BackupRecord, BackupStatus, SnapshotRecord, StoragePaths, RetentionInfo
from .storage import LocalObjectStore
from .manager import BackupLifecycleManager, ProcessOutcome
from .retention import RetentionSweeper, SweepSummary

__all__ = [
    'DatabaseConnection',
    'MigrationRunner',
    'BackupRecord',
    'BackupStatus',
    'SnapshotRecord',
    'StoragePaths',
    'RetentionInfo',
    'LocalObjectStore',
    'BackupLifecycleManager',
    'ProcessOutcome',
    'RetentionSweeper',
    'SweepSummary',
]
