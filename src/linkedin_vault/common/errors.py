"""Base error definitions for linkedin_vault packages."""

from typing import Any, Dict, List, Optional


class VaultError(Exception):
    """Base exception for all linkedin_vault errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context


class ArchiveError(VaultError):
    """Archive could not be accepted or read."""
    pass


class ArchiveRejectedError(ArchiveError):
    """Archive failed safety validation."""

    def __init__(self, message: str, reasons: Optional[List[str]] = None, **context: Any) -> None:
        super().__init__(message, **context)
        self.reasons: List[str] = list(reasons or [])


class UnsupportedArchiveError(ArchiveError):
    """Archive format is not supported."""
    pass


class StorageError(VaultError):
    """Object storage operation failed."""
    pass


class DatabaseError(VaultError):
    """Document store operation failed."""
    pass


class EnrichmentError(VaultError):
    """External enrichment service call failed or returned unusable output."""
    pass


class BackupError(VaultError):
    """Base exception for backup lifecycle errors."""
    pass


class BackupNotFoundError(BackupError):
    """Backup record does not exist."""
    pass


class BackupAccessError(BackupError):
    """Backup belongs to a different user."""
    pass


class BackupAlreadyProcessingError(BackupError):
    """Another run already holds the backup."""
    pass


class BackupProcessingError(BackupError):
    """Pipeline run failed; the record was moved to error status."""
    pass


class UploadRejectedError(BackupError):
    """Submitted archive was refused before a backup record was created."""
    pass
