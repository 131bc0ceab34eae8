"""Tests for the error hierarchy."""

import pytest
from linkedin_vault.common import (
    VaultError, ArchiveError, ArchiveRejectedError, UnsupportedArchiveError,
    BackupError, BackupNotFoundError, BackupAccessError, BackupAlreadyProcessingError,
    BackupProcessingError, UploadRejectedError, EnrichmentError, StorageError,
)


class TestErrorHierarchy:
    """Test error types and their context."""

    def test_vault_error_base(self):
        """Test base VaultError keeps message and context."""
        error = VaultError("Something failed", backup_id="b-1")

        assert str(error) == "Something failed"
        assert error.message == "Something failed"
        assert error.context == {"backup_id": "b-1"}

    def test_archive_errors(self):
        """Test archive error subclasses."""
        assert isinstance(ArchiveRejectedError("x"), ArchiveError)
        assert isinstance(UnsupportedArchiveError("x"), ArchiveError)
        assert isinstance(ArchiveError("x"), VaultError)

    def test_rejected_error_keeps_reasons(self):
        """Test that every rejection reason is preserved."""
        error = ArchiveRejectedError("rejected", reasons=["a", "b"], size=10)

        assert error.reasons == ["a", "b"]
        assert error.context == {"size": 10}

    def test_rejected_error_without_reasons(self):
        """Test that reasons default to an empty list."""
        assert ArchiveRejectedError("rejected").reasons == []

    @pytest.mark.parametrize("error_type", [
        BackupNotFoundError,
        BackupAccessError,
        BackupAlreadyProcessingError,
        BackupProcessingError,
        UploadRejectedError,
    ])
    def test_backup_errors(self, error_type):
        """Test backup errors share the BackupError base."""
        error = error_type("failed", backup_id="b-1")
        assert isinstance(error, BackupError)
        assert isinstance(error, VaultError)
        assert error.context["backup_id"] == "b-1"

    def test_standalone_errors(self):
        """Test service errors derive from VaultError only."""
        assert not isinstance(EnrichmentError("x"), BackupError)
        assert not isinstance(StorageError("x"), ArchiveError)
