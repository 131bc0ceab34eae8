"""Delimited-text parser shared by every export file."""

import csv
import io
import logging
from typing import Dict, List

logger = logging.getLogger(__name__)

BOM = "\ufeff"


def _is_blank(row: List[str]) -> bool:
    return not any(cell.strip() for cell in row)


def parse_table(text: str, delimiter: str = ",") -> List[Dict[str, str]]:
    """Parse delimited text into row dicts keyed by header.

    The first non-blank row is the header (cells trimmed). A data row is kept
    only when its field count equals the header's; other rows are dropped.
    Quoted fields may contain the delimiter, newlines and ``""`` escapes.
    Values are returned as written; cleaning is the normalizer's job.

    Args:
        text: File content
        delimiter: Field separator

    Returns:
        Rows in file order, or [] for empty input
    """
    if not text:
        return []
    if text.startswith(BOM):
        text = text[1:]

    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter)
    header: List[str] = []
    rows: List[Dict[str, str]] = []
    dropped = 0

    try:
        for raw in reader:
            if _is_blank(raw):
                continue
            if not header:
                header = [cell.strip() for cell in raw]
                continue
            if len(raw) != len(header):
                dropped += 1
                continue
            rows.append(dict(zip(header, raw)))
    except csv.Error as e:
        logger.warning(f"Stopped parsing at line {reader.line_num}: {e}")

    if dropped:
        logger.debug(f"Dropped rows with mismatched field count {{'dropped': {dropped}, 'kept': {len(rows)}}}")

    return rows
