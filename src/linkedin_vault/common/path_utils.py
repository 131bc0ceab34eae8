"""Path utilities for archive member names and storage keys."""

import re
import unicodedata
from pathlib import Path

_DRIVE_LETTER = re.compile(r'^[A-Za-z]:')


def normalize_path(path: Path | str) -> str:
    """
    Normalize a path for consistent storage and comparison across all packages.

    Applies:
    - Unicode NFC normalization (canonical composition) for consistent Unicode handling
    - Forward slash conversion for cross-platform consistency

    Archive members written on Windows use backslashes and exports from
    different tools disagree on Unicode composition, so every member name
    goes through here before it is matched or checked.

    Args:
        path: Path object or string to normalize

    Returns:
        Normalized path string with forward slashes and NFC Unicode normalization

    Examples:
        >>> normalize_path("Basic_LinkedInDataExport\\\\Connections.csv")
        'Basic_LinkedInDataExport/Connections.csv'
    """
    normalized = unicodedata.normalize('NFC', str(path))
    return normalized.replace('\\', '/')


def member_basename(path: str) -> str:
    """Return the final component of an archive member path."""
    normalized = normalize_path(path).rstrip('/')
    return normalized.rsplit('/', 1)[-1]


def is_absolute_member(path: str) -> bool:
    """True for members rooted at ``/`` or at a drive letter."""
    normalized = normalize_path(path)
    return normalized.startswith('/') or bool(_DRIVE_LETTER.match(normalized))


def has_parent_traversal(path: str) -> bool:
    """True when any component of the member path is ``..``."""
    return any(part == '..' for part in normalize_path(path).split('/'))
