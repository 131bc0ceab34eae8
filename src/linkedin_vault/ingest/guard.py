"""Archive safety validation.

The guard reads only the ZIP central directory. No entry is decompressed
until every size, count and path check has passed, so peak memory stays
bounded by the configured ceilings whatever the archive claims to hold.
"""

import io
import logging
import zipfile
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

from ..common import ArchiveRejectedError, normalize_path, is_absolute_member, has_parent_traversal
from ..config import ArchiveLimitsConfig

logger = logging.getLogger(__name__)

KB = 1024
MB = 1024 * KB

LARGE_ARCHIVE_WARNING = "Large archive size may take longer to process"


def format_size(size: int) -> str:
    """Human readable size: bytes under 1KB, KB under 1MB, MB above."""
    if size < KB:
        return f"{size} bytes"
    if size < MB:
        return f"{size / KB:.1f}KB"
    return f"{size / MB:.2f}MB"


@dataclass(frozen=True)
class ManifestEntry:
    """One entry of the archive as described by its central directory."""
    path: str  # Normalized path (forward slashes, NFC)
    is_directory: bool
    compressed_size: int
    uncompressed_size: int
    member_name: str = ""  # Name exactly as stored in the archive


@dataclass(frozen=True)
class ArchiveManifest:
    """Entries that passed validation, in archive order."""
    entries: Tuple[ManifestEntry, ...]
    total_uncompressed_size: int

    def files(self) -> Iterator[ManifestEntry]:
        """Iterate over non-directory entries."""
        return (entry for entry in self.entries if not entry.is_directory)

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class GuardResult:
    """Outcome of validating one archive."""
    passed: bool
    reasons: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    manifest: Optional[ArchiveManifest] = None
    stopped_early: bool = False

    def raise_if_rejected(self) -> ArchiveManifest:
        """Return the manifest, or raise ArchiveRejectedError with every reason."""
        if not self.passed:
            raise ArchiveRejectedError(
                "Archive failed validation: " + "; ".join(self.reasons),
                reasons=self.reasons,
            )
        return self.manifest


class ArchiveSafetyGuard:
    """Validates raw archive bytes against resource ceilings.

    Checks, in order:
    - declared size of the upload itself
    - entry count (hard stop)
    - running uncompressed total over every entry (hard stop)
    - per-entry uncompressed size (recorded, scanning continues)
    - traversal and absolute paths (recorded, scanning continues)
    """

    def __init__(self, limits: Optional[ArchiveLimitsConfig] = None):
        self.limits = limits or ArchiveLimitsConfig()

    def validate(self, data: bytes, declared_size: Optional[int] = None) -> GuardResult:
        """Validate an archive without inflating any entry.

        Args:
            data: Raw archive bytes
            declared_size: Size reported by the uploader; defaults to len(data)

        Returns:
            GuardResult with the manifest when the archive passed
        """
        size = len(data) if declared_size is None else max(declared_size, len(data))
        if size > self.limits.max_upload_bytes:
            reason = f"Archive is too large ({format_size(size)}, max {format_size(self.limits.max_upload_bytes)})"
            logger.warning(f"Archive rejected: {reason}")
            return GuardResult(passed=False, reasons=[reason])

        try:
            with zipfile.ZipFile(io.BytesIO(data)) as zf:
                infos = zf.infolist()
        except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError, OSError) as e:
            reason = f"Failed to read archive: {e}"
            logger.warning(f"Archive rejected: {reason}")
            return GuardResult(passed=False, reasons=[reason])

        return self._scan(infos)

    def _scan(self, infos: List[zipfile.ZipInfo]) -> GuardResult:
        limits = self.limits
        result = GuardResult(passed=False)

        if len(infos) > limits.max_entries:
            result.reasons.append(f"Too many files in archive (max {limits.max_entries})")
            result.stopped_early = True
            logger.warning(f"Archive rejected {{'entries': {len(infos)}, 'max_entries': {limits.max_entries}}}")
            return result

        entries: List[ManifestEntry] = []
        total = 0

        for info in infos:
            path = normalize_path(info.filename)
            is_directory = info.is_dir()

            total += info.file_size
            if total > limits.max_total_uncompressed_bytes:
                result.reasons.append(
                    f"Total extracted size would exceed {format_size(limits.max_total_uncompressed_bytes)}"
                )
                result.stopped_early = True
                break

            if not is_directory and info.file_size > limits.max_file_bytes:
                result.reasons.append(f"File {path} is too large ({format_size(info.file_size)})")
                continue

            if has_parent_traversal(path) or is_absolute_member(path):
                result.reasons.append(f"Suspicious path detected: {path}")
                continue

            entries.append(ManifestEntry(
                path=path,
                is_directory=is_directory,
                compressed_size=info.compress_size,
                uncompressed_size=info.file_size,
                member_name=info.filename,
            ))

        if total > limits.large_archive_warning_bytes:
            result.warnings.append(LARGE_ARCHIVE_WARNING)

        result.passed = not result.reasons
        if result.passed:
            result.manifest = ArchiveManifest(entries=tuple(entries), total_uncompressed_size=total)
            logger.info(
                f"Archive validated {{'entries': {len(entries)}, 'total_uncompressed': {total}, "
                f"'warnings': {len(result.warnings)}}}"
            )
        else:
            logger.warning(
                f"Archive rejected {{'reasons': {len(result.reasons)}, 'stopped_early': {result.stopped_early}}}"
            )

        return result

    def ensure_valid(self, data: bytes, declared_size: Optional[int] = None) -> ArchiveManifest:
        """Validate and return the manifest, or raise ArchiveRejectedError."""
        return self.validate(data, declared_size).raise_if_rejected()
