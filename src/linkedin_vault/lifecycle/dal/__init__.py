"""Data Access Layer for the document store."""

from .backups import BackupDAL
from .snapshots import SnapshotDAL

__all__ = ['BackupDAL', 'SnapshotDAL']
