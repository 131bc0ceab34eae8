"""Canonical records for each entity found in a data export.

Every record is immutable once the normalizer builds it. Text fields are
cleaned strings (empty when the export has no value); dates are
``datetime.date`` or ``None`` when missing or unparseable.
"""

from dataclasses import dataclass, asdict
from datetime import date
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Union


class Entity(str, Enum):
    """Categories of exported data."""
    PROFILE = "profile"
    CONNECTIONS = "connections"
    POSITIONS = "positions"
    EDUCATION = "education"
    SKILLS = "skills"
    RECOMMENDATIONS = "recommendations"
    MESSAGES = "messages"
    POSTS = "posts"
    COMMENTS = "comments"
    REACTIONS = "reactions"
    COMPANY_FOLLOWS = "company_follows"
    INVITATIONS = "invitations"


@dataclass(frozen=True)
class Profile:
    entity: ClassVar[Entity] = Entity.PROFILE
    first_name: str = ""
    last_name: str = ""
    headline: str = ""
    summary: str = ""
    industry: str = ""
    location: str = ""
    email: str = ""


@dataclass(frozen=True)
class Connection:
    entity: ClassVar[Entity] = Entity.CONNECTIONS
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    company: str = ""
    position: str = ""
    location: str = ""
    industry: str = ""
    connected_on: Optional[date] = None


@dataclass(frozen=True)
class Position:
    entity: ClassVar[Entity] = Entity.POSITIONS
    company_name: str = ""
    title: str = ""
    description: str = ""
    location: str = ""
    started_on: Optional[date] = None
    finished_on: Optional[date] = None


@dataclass(frozen=True)
class Education:
    entity: ClassVar[Entity] = Entity.EDUCATION
    school_name: str = ""
    degree: str = ""
    field_of_study: str = ""
    start_date: Optional[date] = None
    end_date: Optional[date] = None


@dataclass(frozen=True)
class Skill:
    entity: ClassVar[Entity] = Entity.SKILLS
    name: str = ""
    endorsement_count: int = 0


@dataclass(frozen=True)
class Recommendation:
    entity: ClassVar[Entity] = Entity.RECOMMENDATIONS
    recommender_name: str = ""
    headline: str = ""
    relationship: str = ""
    text: str = ""
    recommended_on: Optional[date] = None


@dataclass(frozen=True)
class Message:
    entity: ClassVar[Entity] = Entity.MESSAGES
    conversation_id: str = ""
    sender: str = ""
    recipients: str = ""
    subject: str = ""
    content: str = ""
    sent_on: Optional[date] = None


@dataclass(frozen=True)
class Post:
    entity: ClassVar[Entity] = Entity.POSTS
    commentary: str = ""
    url: str = ""
    visibility: str = ""
    posted_on: Optional[date] = None


@dataclass(frozen=True)
class Comment:
    entity: ClassVar[Entity] = Entity.COMMENTS
    message: str = ""
    link: str = ""
    commented_on: Optional[date] = None


@dataclass(frozen=True)
class Reaction:
    entity: ClassVar[Entity] = Entity.REACTIONS
    reaction_type: str = ""
    link: str = ""
    reacted_on: Optional[date] = None


@dataclass(frozen=True)
class CompanyFollow:
    entity: ClassVar[Entity] = Entity.COMPANY_FOLLOWS
    organization: str = ""
    followed_on: Optional[date] = None


@dataclass(frozen=True)
class Invitation:
    entity: ClassVar[Entity] = Entity.INVITATIONS
    sender: str = ""
    recipient: str = ""
    direction: str = ""
    message: str = ""
    sent_on: Optional[date] = None


CanonicalRecord = Union[
    Profile, Connection, Position, Education, Skill, Recommendation,
    Message, Post, Comment, Reaction, CompanyFollow, Invitation,
]

RECORD_TYPES: Dict[Entity, type] = {
    Entity.PROFILE: Profile,
    Entity.CONNECTIONS: Connection,
    Entity.POSITIONS: Position,
    Entity.EDUCATION: Education,
    Entity.SKILLS: Skill,
    Entity.RECOMMENDATIONS: Recommendation,
    Entity.MESSAGES: Message,
    Entity.POSTS: Post,
    Entity.COMMENTS: Comment,
    Entity.REACTIONS: Reaction,
    Entity.COMPANY_FOLLOWS: CompanyFollow,
    Entity.INVITATIONS: Invitation,
}


def record_to_dict(record: CanonicalRecord) -> Dict[str, Any]:
    """Convert a record to a JSON-friendly dict (dates as ISO strings)."""
    data = asdict(record)
    for key, value in data.items():
        if isinstance(value, date):
            data[key] = value.isoformat()
    return data
