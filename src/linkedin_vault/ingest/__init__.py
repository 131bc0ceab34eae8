"""Archive ingestion: safety validation, file location, parsing and normalization."""

from .guard import ArchiveSafetyGuard, ArchiveManifest, ManifestEntry, GuardResult
from .locator import FileLocator, LocatedExport, ExportVersion, CANONICAL_FILES
from .tabular import parse_table
from .records import (
    Entity, CanonicalRecord, Profile, Connection, Position, Education, Skill,
    Recommendation, Message, Post, Comment, Reaction, CompanyFollow, Invitation,
    record_to_dict,
)
from .normalizer import normalize, normalize_export, NormalizedExport, clean_text, parse_date

__all__ = [
    'ArchiveSafetyGuard',
    'ArchiveManifest',
    'ManifestEntry',
    'GuardResult',
    'FileLocator',
    'LocatedExport',
    'ExportVersion',
    'CANONICAL_FILES',
    'parse_table',
    'Entity',
    'CanonicalRecord',
    'Profile',
    'Connection',
    'Position',
    'Education',
    'Skill',
    'Recommendation',
    'Message',
    'Post',
    'Comment',
    'Reaction',
    'CompanyFollow',
    'Invitation',
    'record_to_dict',
    'normalize',
    'normalize_export',
    'NormalizedExport',
    'clean_text',
    'parse_date',
]
