"""Schema normalizer: maps variant export columns onto canonical records.

Exports from different years spell the same column differently
("Company" vs "company", "Started On" vs "startDate"). Each canonical field
lists the header spellings it accepts, in priority order; the first alias
with a non-empty value wins. Missing columns default to empty, never drop
the row.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, FrozenSet, List, Mapping, Optional, Tuple

from dateutil import parser as date_parser

from .locator import ExportVersion, LocatedExport
from .records import CanonicalRecord, Entity, RECORD_TYPES
from .tabular import parse_table

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")

# Missing day/month components resolve to the first of the period
_DATE_DEFAULT = datetime(2000, 1, 1)


class FieldKind(Enum):
    TEXT = "text"
    DATE = "date"
    COUNT = "count"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    aliases: Tuple[str, ...]
    kind: FieldKind = FieldKind.TEXT


def _text(name: str, *aliases: str) -> FieldSpec:
    return FieldSpec(name, aliases)


def _date(name: str, *aliases: str) -> FieldSpec:
    return FieldSpec(name, aliases, FieldKind.DATE)


def _count(name: str, *aliases: str) -> FieldSpec:
    return FieldSpec(name, aliases, FieldKind.COUNT)


FIELD_ALIASES: Dict[Entity, Tuple[FieldSpec, ...]] = {
    Entity.PROFILE: (
        _text("first_name", "First Name", "firstName"),
        _text("last_name", "Last Name", "lastName"),
        _text("headline", "Headline", "headline"),
        _text("summary", "Summary", "summary"),
        _text("industry", "Industry", "industry"),
        _text("location", "Geo Location", "Location", "location"),
        _text("email", "Email Address", "email"),
    ),
    Entity.CONNECTIONS: (
        _text("first_name", "First Name", "firstName", "first name"),
        _text("last_name", "Last Name", "lastName", "last name"),
        _text("email", "Email Address", "email"),
        _text("company", "Company", "company"),
        _text("position", "Position", "position"),
        _text("location", "Location", "location"),
        _text("industry", "Industry", "industry"),
        _date("connected_on", "Connected On", "connectedOn", "connected on"),
    ),
    Entity.POSITIONS: (
        _text("company_name", "Company Name", "companyName"),
        _text("title", "Title", "title"),
        _text("description", "Description", "description"),
        _text("location", "Location", "location"),
        _date("started_on", "Started On", "startDate"),
        _date("finished_on", "Finished On", "endDate"),
    ),
    Entity.EDUCATION: (
        _text("school_name", "School Name", "schoolName"),
        _text("degree", "Degree Name", "degree"),
        _text("field_of_study", "Field Of Study", "fieldOfStudy"),
        _date("start_date", "Start Date", "startDate"),
        _date("end_date", "End Date", "endDate"),
    ),
    Entity.SKILLS: (
        _text("name", "Name", "name"),
        _count("endorsement_count", "Endorsement Count", "endorsementCount"),
    ),
    Entity.RECOMMENDATIONS: (
        _text("recommender_name", "Name", "recommenderName"),
        _text("headline", "Headline", "headline", "Job Title"),
        _text("relationship", "Relationship", "relationship"),
        _text("text", "Text", "text"),
        _date("recommended_on", "Date", "date", "Creation Date"),
    ),
    Entity.MESSAGES: (
        _text("conversation_id", "CONVERSATION ID", "Conversation ID"),
        _text("sender", "FROM", "From"),
        _text("recipients", "TO", "To"),
        _text("subject", "SUBJECT", "Subject"),
        _text("content", "CONTENT", "Content"),
        _date("sent_on", "DATE", "Date"),
    ),
    Entity.POSTS: (
        _text("commentary", "ShareCommentary", "Commentary"),
        _text("url", "ShareLink", "Link"),
        _text("visibility", "Visibility", "visibility"),
        _date("posted_on", "Date", "date"),
    ),
    Entity.COMMENTS: (
        _text("message", "Message", "message"),
        _text("link", "Link", "link"),
        _date("commented_on", "Date", "date"),
    ),
    Entity.REACTIONS: (
        _text("reaction_type", "Type", "type"),
        _text("link", "Link", "link"),
        _date("reacted_on", "Date", "date"),
    ),
    Entity.COMPANY_FOLLOWS: (
        _text("organization", "Organization", "organization"),
        _date("followed_on", "Followed On", "followedOn"),
    ),
    Entity.INVITATIONS: (
        _text("sender", "From", "from"),
        _text("recipient", "To", "to"),
        _text("direction", "Direction", "direction"),
        _text("message", "Message", "message"),
        _date("sent_on", "Sent At", "sentAt"),
    ),
}


def clean_text(value: Optional[str]) -> str:
    """Collapse internal whitespace and newlines to single spaces and trim."""
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip()


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse a date permissively; return None instead of raising."""
    text = clean_text(value)
    if not text:
        return None
    try:
        return date_parser.parse(text, default=_DATE_DEFAULT).date()
    except (ValueError, OverflowError) as e:
        logger.debug(f"Unparseable date {text!r}: {e}")
        return None


def parse_count(value: Optional[str]) -> int:
    text = clean_text(value).replace(",", "")
    try:
        return max(int(text), 0)
    except ValueError:
        return 0


_CONVERTERS = {
    FieldKind.TEXT: clean_text,
    FieldKind.DATE: parse_date,
    FieldKind.COUNT: parse_count,
}


def _first_value(row: Mapping[str, str], aliases: Tuple[str, ...]) -> str:
    for alias in aliases:
        value = row.get(alias)
        if value and value.strip():
            return value
    return ""


def normalize(entity: Entity, rows: List[Mapping[str, str]]) -> List[CanonicalRecord]:
    """Map parsed rows of one entity onto canonical records.

    Args:
        entity: Which entity the rows belong to
        rows: Output of parse_table

    Returns:
        One record per row, in row order
    """
    specs = FIELD_ALIASES[entity]
    record_type = RECORD_TYPES[entity]

    records = []
    for row in rows:
        values = {spec.name: _CONVERTERS[spec.kind](_first_value(row, spec.aliases)) for spec in specs}
        records.append(record_type(**values))
    return records


@dataclass
class NormalizedExport:
    """Canonical records for every entity of one archive."""
    records: Dict[Entity, List[CanonicalRecord]] = field(default_factory=dict)
    located: FrozenSet[Entity] = frozenset()
    version: ExportVersion = ExportVersion.UNKNOWN

    def get(self, entity: Entity) -> List[CanonicalRecord]:
        return self.records.get(entity, [])

    def contains(self) -> Dict[str, bool]:
        """Capability flags: an entity is contained when it yielded records."""
        return {entity.value: bool(self.records.get(entity)) for entity in Entity}


def normalize_export(located: LocatedExport) -> NormalizedExport:
    """Parse and normalize every located entity file.

    Absent entities map to an empty list.
    """
    result = NormalizedExport(located=located.present, version=located.version)

    for entity in Entity:
        text = located.read_text(entity)
        if text is None:
            result.records[entity] = []
            continue
        rows = parse_table(text)
        result.records[entity] = normalize(entity, rows)
        logger.debug(f"Normalized {entity.value} {{'rows': {len(rows)}}}")

    return result
