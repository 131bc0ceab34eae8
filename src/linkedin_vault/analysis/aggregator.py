"""Aggregates canonical records into counts, distributions and a completeness score."""

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from ..config import AggregationConfig
from ..ingest.records import (
    CanonicalRecord, Entity, Profile, Connection, Position, Education, Skill,
    Recommendation, Message, Post, Comment, Reaction, CompanyFollow, Invitation,
)

logger = logging.getLogger(__name__)

Distribution = List[Tuple[str, int]]

COMPLETENESS_DIMENSIONS = ("headline", "summary", "experience", "education", "skills", "recommendations")


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def top_n(counter: Mapping[str, int], n: int) -> Distribution:
    """Largest ``n`` counts, descending; ties keep first-seen order."""
    return sorted(counter.items(), key=lambda item: -item[1])[:n]


@dataclass
class CompletenessScore:
    overall: int = 0
    breakdown: Dict[str, float] = field(default_factory=lambda: {d: 0.0 for d in COMPLETENESS_DIMENSIONS})


@dataclass
class AggregatedStats:
    """Statistics derived from one export."""
    counts: Dict[str, int] = field(default_factory=lambda: {e.value: 0 for e in Entity})
    top_companies: Distribution = field(default_factory=list)
    top_locations: Distribution = field(default_factory=list)
    top_industries: Distribution = field(default_factory=list)
    top_positions: Distribution = field(default_factory=list)
    connections_by_month: Dict[str, int] = field(default_factory=dict)
    undated_connections: int = 0
    completeness: CompletenessScore = field(default_factory=CompletenessScore)

    def count(self, entity: Entity) -> int:
        return self.counts.get(entity.value, 0)

    @property
    def total_connections(self) -> int:
        return self.count(Entity.CONNECTIONS)

    @property
    def top_industry(self) -> Optional[str]:
        return self.top_industries[0][0] if self.top_industries else None

    @property
    def top_location(self) -> Optional[str]:
        return self.top_locations[0][0] if self.top_locations else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "counts": dict(self.counts),
            "top_companies": dict(self.top_companies),
            "top_locations": dict(self.top_locations),
            "top_industries": dict(self.top_industries),
            "top_positions": dict(self.top_positions),
            "connections_by_month": dict(self.connections_by_month),
            "undated_connections": self.undated_connections,
            "completeness": {
                "overall": self.completeness.overall,
                "breakdown": dict(self.completeness.breakdown),
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AggregatedStats":
        completeness = data.get("completeness", {})
        return cls(
            counts=dict(data.get("counts", {})),
            top_companies=list(data.get("top_companies", {}).items()),
            top_locations=list(data.get("top_locations", {}).items()),
            top_industries=list(data.get("top_industries", {}).items()),
            top_positions=list(data.get("top_positions", {}).items()),
            connections_by_month=dict(data.get("connections_by_month", {})),
            undated_connections=data.get("undated_connections", 0),
            completeness=CompletenessScore(
                overall=completeness.get("overall", 0),
                breakdown=dict(completeness.get("breakdown", {})),
            ),
        )


class _Tally:
    """Mutable state for a single aggregation pass."""

    def __init__(self, unknown_values: Iterable[str]):
        self.unknown = frozenset(unknown_values)
        self.counts: Counter = Counter({e.value: 0 for e in Entity})
        self.companies: Counter = Counter()
        self.locations: Counter = Counter()
        self.industries: Counter = Counter()
        self.positions: Counter = Counter()
        self.months: Counter = Counter()
        self.undated = 0
        self.headline = False
        self.summary = False

    def bump(self, counter: Counter, value: str) -> None:
        if value and value not in self.unknown:
            counter[value] += 1


def _on_connection(tally: _Tally, record: Connection) -> None:
    tally.bump(tally.companies, record.company)
    tally.bump(tally.positions, record.position)
    tally.bump(tally.locations, record.location)
    tally.bump(tally.industries, record.industry)
    if record.connected_on is None:
        tally.undated += 1
    else:
        tally.months[record.connected_on.strftime("%Y-%m")] += 1


def _on_profile(tally: _Tally, record: Profile) -> None:
    tally.headline = tally.headline or bool(record.headline)
    tally.summary = tally.summary or bool(record.summary)


def _count_only(tally: _Tally, record: CanonicalRecord) -> None:
    pass


_HANDLERS: Dict[type, Callable[[_Tally, Any], None]] = {
    Profile: _on_profile,
    Connection: _on_connection,
    Position: _count_only,
    Education: _count_only,
    Skill: _count_only,
    Recommendation: _count_only,
    Message: _count_only,
    Post: _count_only,
    Comment: _count_only,
    Reaction: _count_only,
    CompanyFollow: _count_only,
    Invitation: _count_only,
}


class Aggregator:
    """Turns normalized records into AggregatedStats.

    Pure with respect to its input: aggregating the same records twice gives
    equal results, including the order of tied distribution entries.
    """

    def __init__(self, config: Optional[AggregationConfig] = None):
        self.config = config or AggregationConfig()

    def aggregate(self, records: Mapping[Entity, Iterable[CanonicalRecord]]) -> AggregatedStats:
        """Aggregate records grouped by entity.

        Raises:
            ValueError: A record type has no aggregation handler
        """
        tally = _Tally(self.config.unknown_values)

        for entity in Entity:
            for record in records.get(entity, ()):
                handler = _HANDLERS.get(type(record))
                if handler is None:
                    raise ValueError(f"No aggregation handler for {type(record).__name__}")
                tally.counts[record.entity.value] += 1
                handler(tally, record)

        n = self.config.top_n
        stats = AggregatedStats(
            counts=dict(tally.counts),
            top_companies=top_n(tally.companies, n),
            top_locations=top_n(tally.locations, n),
            top_industries=top_n(tally.industries, n),
            top_positions=top_n(tally.positions, n),
            connections_by_month=dict(sorted(tally.months.items())),
            undated_connections=tally.undated,
            completeness=self._completeness(tally),
        )

        logger.info(
            f"Aggregated export {{'connections': {stats.total_connections}, "
            f"'completeness': {stats.completeness.overall}}}"
        )
        return stats

    def _completeness(self, tally: _Tally) -> CompletenessScore:
        targets = self.config.completeness_targets

        def ratio(entity: Entity, target: int) -> float:
            return min(100.0, tally.counts[entity.value] / target * 100)

        breakdown = {
            "headline": 100.0 if tally.headline else 0.0,
            "summary": 100.0 if tally.summary else 0.0,
            "experience": ratio(Entity.POSITIONS, targets.experience),
            "education": ratio(Entity.EDUCATION, targets.education),
            "skills": ratio(Entity.SKILLS, targets.skills),
            "recommendations": ratio(Entity.RECOMMENDATIONS, targets.recommendations),
        }
        overall = round_half_up(sum(breakdown.values()) / len(breakdown))
        return CompletenessScore(overall=overall, breakdown=breakdown)
