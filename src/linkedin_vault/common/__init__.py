"""Common utilities for linkedin_vault packages."""

from .config import ConfigLoader
from .logging import setup_logging, setup_logging_from_config, get_logger, LogContext
from .logging_config import LoggingConfig
from .errors import (
    VaultError, ArchiveError, ArchiveRejectedError, UnsupportedArchiveError,
    StorageError, DatabaseError, EnrichmentError, BackupError,
    BackupNotFoundError, BackupAccessError, BackupAlreadyProcessingError,
    BackupProcessingError, UploadRejectedError,
)
from .path_utils import normalize_path, member_basename, is_absolute_member, has_parent_traversal

__all__ = [
    'ConfigLoader',
    'LoggingConfig',
    'setup_logging',
    'setup_logging_from_config',
    'get_logger',
    'LogContext',
    'VaultError',
    'ArchiveError',
    'ArchiveRejectedError',
    'UnsupportedArchiveError',
    'StorageError',
    'DatabaseError',
    'EnrichmentError',
    'BackupError',
    'BackupNotFoundError',
    'BackupAccessError',
    'BackupAlreadyProcessingError',
    'BackupProcessingError',
    'UploadRejectedError',
    'normalize_path',
    'member_basename',
    'is_absolute_member',
    'has_parent_traversal',
]
