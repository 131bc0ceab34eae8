"""Locates entity files inside a validated archive and detects the export layout."""

import io
import logging
import zipfile
import zlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from ..common import ArchiveError, ArchiveRejectedError, member_basename
from .guard import ArchiveManifest
from .records import Entity

logger = logging.getLogger(__name__)

# Lowercased basenames per entity. Matching is exact, never substring.
CANONICAL_FILES: Dict[Entity, Tuple[str, ...]] = {
    Entity.PROFILE: ("profile.csv",),
    Entity.CONNECTIONS: ("connections.csv",),
    Entity.POSITIONS: ("positions.csv",),
    Entity.EDUCATION: ("education.csv",),
    Entity.SKILLS: ("skills.csv",),
    Entity.RECOMMENDATIONS: ("recommendations.csv", "recommendations_received.csv"),
    Entity.MESSAGES: ("messages.csv",),
    Entity.POSTS: ("shares.csv",),
    Entity.COMMENTS: ("comments.csv",),
    Entity.REACTIONS: ("reactions.csv",),
    Entity.COMPANY_FOLLOWS: ("company follows.csv", "following.csv"),
    Entity.INVITATIONS: ("invitations.csv",),
}

ANCHOR_ENTITIES: FrozenSet[Entity] = frozenset({Entity.CONNECTIONS, Entity.PROFILE, Entity.POSITIONS})

_BASENAME_TO_ENTITY: Dict[str, Entity] = {
    name: entity for entity, names in CANONICAL_FILES.items() for name in names
}


class ExportVersion(str, Enum):
    """Detected export layout."""
    KNOWN = "known"
    UNKNOWN = "unknown"


@dataclass
class LocatedExport:
    """Entity files found in one archive.

    Holds the archive bytes so entries can be read one at a time, each read
    capped at ``max_file_bytes`` regardless of what the entry header claims.
    """
    files: Dict[Entity, str]  # entity -> member name as stored in the archive
    version: ExportVersion
    max_file_bytes: int
    data: bytes = field(repr=False, default=b"")

    def has(self, entity: Entity) -> bool:
        return entity in self.files

    @property
    def present(self) -> FrozenSet[Entity]:
        return frozenset(self.files)

    def read_bytes(self, entity: Entity) -> Optional[bytes]:
        """Read one entity file, or None when the archive lacks it.

        Raises:
            ArchiveRejectedError: Entry inflates past max_file_bytes
            ArchiveError: Entry is corrupt or encrypted
        """
        member = self.files.get(entity)
        if member is None:
            return None

        try:
            with zipfile.ZipFile(io.BytesIO(self.data)) as zf:
                with zf.open(member) as fh:
                    content = fh.read(self.max_file_bytes + 1)
        except (zipfile.BadZipFile, zlib.error, RuntimeError, KeyError) as e:
            raise ArchiveError(f"Failed to read {member}: {e}", entity=entity.value) from e

        if len(content) > self.max_file_bytes:
            reason = f"File {member} is larger than its declared size allows"
            raise ArchiveRejectedError(reason, reasons=[reason], entity=entity.value)

        return content

    def read_text(self, entity: Entity) -> Optional[str]:
        """Read one entity file as UTF-8 text (undecodable bytes replaced)."""
        content = self.read_bytes(entity)
        if content is None:
            return None
        return content.decode("utf-8", errors="replace")


class FileLocator:
    """Maps archive entries to entities by canonical file name."""

    def __init__(self, max_file_bytes: int):
        self.max_file_bytes = max_file_bytes

    def locate(self, manifest: ArchiveManifest, data: bytes) -> LocatedExport:
        """Find entity files by case-insensitive basename.

        Directory nesting is ignored and the first matching entry wins.
        """
        files: Dict[Entity, str] = {}
        for entry in manifest.files():
            entity = _BASENAME_TO_ENTITY.get(member_basename(entry.path).lower())
            if entity is not None and entity not in files:
                files[entity] = entry.member_name or entry.path

        version = ExportVersion.KNOWN if ANCHOR_ENTITIES & files.keys() else ExportVersion.UNKNOWN
        if version is ExportVersion.UNKNOWN:
            logger.warning(f"No anchor files found, export layout unknown {{'entities': {len(files)}}}")
        else:
            logger.info(
                f"Located export files {{'version': {version.value!r}, "
                f"'entities': {sorted(e.value for e in files)}}}"
            )

        return LocatedExport(files=files, version=version, max_file_bytes=self.max_file_bytes, data=data)
