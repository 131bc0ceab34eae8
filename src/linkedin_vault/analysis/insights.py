"""Insight reports generated from aggregated statistics.

Two tiers share one report shape. The deterministic generator is a pure
function of ``AggregatedStats``. The enriched generator asks an external
service for the same shape and falls back to the deterministic generator on
any failure, so callers never see an empty report or an enrichment error.
"""

import json
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..common import EnrichmentError
from ..config import HealthScoreConfig, InsightsConfig
from ..ingest.records import Entity
from .aggregator import AggregatedStats
from .enrichment import EnrichmentClient, strip_code_fences

logger = logging.getLogger(__name__)

MAX_KEY_INSIGHTS = 5
MAX_ACTION_ITEMS = 3


class InsightTier(str, Enum):
    DETERMINISTIC = "deterministic"
    ENRICHED = "enriched"


class InsightSource(str, Enum):
    DETERMINISTIC = "deterministic"
    EXTERNAL = "external"


PLAN_TIERS = {
    "free": InsightTier.DETERMINISTIC,
    "pro": InsightTier.ENRICHED,
    "business": InsightTier.ENRICHED,
    "enterprise": InsightTier.ENRICHED,
}


def tier_for_plan(plan: Optional[str]) -> InsightTier:
    """Map a subscription plan to an insight tier; unknown plans get the base tier."""
    tier = PLAN_TIERS.get((plan or "free").strip().lower())
    if tier is None:
        logger.warning(f"Unknown plan {plan!r}, using deterministic insights")
        return InsightTier.DETERMINISTIC
    return tier


class NetworkHealth(BaseModel):
    model_config = ConfigDict(extra='ignore')

    score: int = Field(ge=0, le=100)
    assessment: str = Field(min_length=1)
    recommendations: List[str] = Field(min_length=1)


class ContentStrategy(BaseModel):
    model_config = ConfigDict(extra='ignore')

    rating: str = Field(min_length=1)
    advice: str = Field(min_length=1)
    suggestions: List[str] = Field(min_length=1)


class ActionItem(BaseModel):
    model_config = ConfigDict(extra='ignore')

    priority: Literal["High", "Medium", "Low"]
    action: str = Field(min_length=1)
    timeline: str = Field(min_length=1)
    expected_impact: str = Field(min_length=1)


class InsightContent(BaseModel):
    """Report body; the shape requested from the enrichment service."""

    model_config = ConfigDict(extra='ignore')

    network_health: NetworkHealth
    content_strategy: ContentStrategy
    key_insights: List[str] = Field(min_length=1)
    action_items: List[ActionItem] = Field(min_length=1)


class InsightReport(InsightContent):
    """Tier-tagged insight report."""

    model_config = ConfigDict(extra='forbid')

    tier: InsightTier
    source: InsightSource
    generated_at: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeterministicInsightGenerator:
    """Template-based insights; every field is a function of the stats."""

    def __init__(self, health: Optional[HealthScoreConfig] = None, now_fn: Callable[[], datetime] = _utcnow):
        self.health = health or HealthScoreConfig()
        self._now = now_fn

    def generate(self, stats: AggregatedStats, tier: InsightTier = InsightTier.DETERMINISTIC) -> InsightReport:
        content = self.build_content(stats)
        return InsightReport(
            tier=tier,
            source=InsightSource.DETERMINISTIC,
            generated_at=self._now(),
            **content.model_dump(),
        )

    def build_content(self, stats: AggregatedStats) -> InsightContent:
        return InsightContent(
            network_health=NetworkHealth(
                score=self.network_score(stats),
                assessment=self._assessment(stats),
                recommendations=self._recommendations(stats),
            ),
            content_strategy=ContentStrategy(
                rating=self._content_rating(stats),
                advice=self._content_advice(stats),
                suggestions=self._suggestions(stats),
            ),
            key_insights=self._key_insights(stats),
            action_items=self._action_items(stats),
        )

    def network_score(self, stats: AggregatedStats) -> int:
        h = self.health
        connections = stats.count(Entity.CONNECTIONS)
        posts = stats.count(Entity.POSTS)
        skills = stats.count(Entity.SKILLS)
        engagement = stats.count(Entity.COMMENTS) / posts if posts > 0 else 0.0

        score = h.base
        score += h.connection_increment * sum(connections > t for t in h.connection_thresholds)
        score += h.post_increment * sum(posts > t for t in h.post_thresholds)
        score += h.engagement_increment * sum(engagement > t for t in h.engagement_thresholds)
        score += h.skill_increment * sum(skills > t for t in h.skill_thresholds)
        return min(score, h.cap)

    def _assessment(self, stats: AggregatedStats) -> str:
        n = stats.count(Entity.CONNECTIONS)
        if n > 3000:
            return f"Outstanding network with {n:,} connections. You're in the top 5% of LinkedIn users."
        if n > 1000:
            return f"Strong professional network with {n:,} connections showing excellent reach."
        if n > 500:
            return f"Growing network with {n:,} connections. Good foundation for expansion."
        return f"Developing network with {n:,} connections. Focus on strategic growth."

    def _recommendations(self, stats: AggregatedStats) -> List[str]:
        if stats.count(Entity.CONNECTIONS) > 1000:
            items = [
                "Focus on deepening existing relationships",
                "Leverage your network for strategic introductions",
            ]
        else:
            items = [
                "Expand your network strategically",
                "Connect with industry leaders",
            ]
        if stats.count(Entity.POSTS) < 50:
            items.append("Increase content creation frequency")
        items.append("Engage more with your network's content")
        return items

    def _content_rating(self, stats: AggregatedStats) -> str:
        posts = stats.count(Entity.POSTS)
        if posts > 100:
            return "Excellent"
        if posts > 50:
            return "Very Good"
        if posts > 20:
            return "Good"
        if posts > 10:
            return "Fair"
        return "Needs Improvement"

    def _content_advice(self, stats: AggregatedStats) -> str:
        posts = stats.count(Entity.POSTS)
        if posts > 50 and stats.count(Entity.COMMENTS) > 100:
            return "Your content strategy is performing well with strong engagement. Focus on maintaining consistency."
        if posts > 20:
            return "Good content creation habits. Increase engagement by asking questions and sharing insights."
        return "Increase your content frequency to build thought leadership and visibility."

    def _suggestions(self, stats: AggregatedStats) -> List[str]:
        items = [
            f"Share insights about {stats.top_industry or 'your industry'} trends",
            "Create how-to posts about your expertise",
            "Celebrate team and peer achievements",
        ]
        if stats.count(Entity.POSTS) < 50:
            items.append("Aim for 2-3 posts per week")
        return items

    def _key_insights(self, stats: AggregatedStats) -> List[str]:
        posts = stats.count(Entity.POSTS)
        messages = stats.count(Entity.MESSAGES)

        items = [f"Your {stats.count(Entity.CONNECTIONS):,} connections represent significant professional capital"]
        if posts > 0:
            items.append(f"{posts} posts demonstrate thought leadership")
        items.append(f"Network spans {len(stats.top_locations)} geographic regions")
        items.append(f"Connections across {len(stats.top_industries)} different industries")
        if messages > 100:
            items.append(f"Active networker with {messages:,} messages exchanged")
        return items[:MAX_KEY_INSIGHTS]

    def _action_items(self, stats: AggregatedStats) -> List[ActionItem]:
        items = []
        if stats.count(Entity.POSTS) < 50:
            items.append(ActionItem(
                priority="High",
                action="Increase content creation to 2-3 posts per week",
                timeline="Next 30 days",
                expected_impact="Boost visibility and thought leadership",
            ))
        if stats.count(Entity.CONNECTIONS) < 1000:
            items.append(ActionItem(
                priority="Medium",
                action="Grow network by 50 strategic connections",
                timeline="Next 60 days",
                expected_impact="Expand professional opportunities",
            ))
        items.append(ActionItem(
            priority="Medium",
            action="Engage with 5 posts daily from your network",
            timeline="Ongoing",
            expected_impact="Strengthen relationships and visibility",
        ))
        if stats.count(Entity.SKILLS) < 15:
            items.append(ActionItem(
                priority="Low",
                action="Update profile with additional skills",
                timeline="Next 14 days",
                expected_impact="Improve profile searchability",
            ))
        return items[:MAX_ACTION_ITEMS]


def build_prompt(stats: AggregatedStats) -> str:
    """Describe the stats for the text-generation service."""
    def listing(pairs) -> str:
        return ", ".join(f"{value} ({count})" for value, count in pairs[:5]) or "none"

    lines = [
        "You are a professional networking analyst. Analyze this data export summary.",
        f"Total Connections: {stats.count(Entity.CONNECTIONS)}",
        f"Posts Created: {stats.count(Entity.POSTS)}",
        f"Comments Written: {stats.count(Entity.COMMENTS)}",
        f"Reactions Given: {stats.count(Entity.REACTIONS)}",
        f"Messages Sent: {stats.count(Entity.MESSAGES)}",
        f"Skills Listed: {stats.count(Entity.SKILLS)}",
        f"Top Companies: {listing(stats.top_companies)}",
        f"Top Locations: {listing(stats.top_locations)}",
        f"Top Industries: {listing(stats.top_industries)}",
        f"Top Positions: {listing(stats.top_positions)}",
        f"Profile Completeness: {stats.completeness.overall}%",
        "",
        "Respond with ONLY a JSON object with keys network_health {score, assessment, recommendations}, "
        "content_strategy {rating, advice, suggestions}, key_insights (at most 5 strings) and "
        "action_items (at most 3 of {priority: High|Medium|Low, action, timeline, expected_impact}).",
    ]
    return "\n".join(lines)


def parse_enriched_content(text: str) -> InsightContent:
    """Strip code fences, parse JSON and validate the report shape.

    Raises:
        ValueError: Text is not valid JSON or does not match the shape
    """
    content = InsightContent.model_validate(json.loads(strip_code_fences(text)))
    content.key_insights = content.key_insights[:MAX_KEY_INSIGHTS]
    content.action_items = content.action_items[:MAX_ACTION_ITEMS]
    return content


class EnrichedInsightGenerator:
    """External insights with a single fallback edge to the deterministic generator."""

    def __init__(
        self,
        client: Optional[EnrichmentClient],
        fallback: DeterministicInsightGenerator,
        timeout_seconds: float = 20.0,
        now_fn: Callable[[], datetime] = _utcnow,
    ):
        self.client = client
        self.fallback = fallback
        self.timeout_seconds = timeout_seconds
        self._now = now_fn

    def generate(self, stats: AggregatedStats, tier: InsightTier = InsightTier.ENRICHED) -> InsightReport:
        content = self._fetch(stats)
        if content is None:
            return self.fallback.generate(stats, tier)
        return InsightReport(
            tier=tier,
            source=InsightSource.EXTERNAL,
            generated_at=self._now(),
            **content.model_dump(),
        )

    def _fetch(self, stats: AggregatedStats) -> Optional[InsightContent]:
        if self.client is None:
            logger.debug("Enrichment not configured, using deterministic insights")
            return None

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="enrichment")
        try:
            future = executor.submit(
                self.client.complete, build_prompt(stats), InsightContent.model_json_schema()
            )
            text = future.result(timeout=self.timeout_seconds)
            return parse_enriched_content(text)
        except FuturesTimeout:
            logger.warning(f"Enrichment exceeded deadline {{'timeout_seconds': {self.timeout_seconds}}}")
        except EnrichmentError as e:
            logger.warning(f"Enrichment failed, using deterministic insights: {e} {e.context}")
        except ValueError as e:
            logger.warning(f"Enrichment response unusable, using deterministic insights: {e}")
        except Exception as e:
            logger.error(f"Unexpected enrichment error, using deterministic insights: {e}", exc_info=True)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        return None


class InsightService:
    """Single entry point for report generation."""

    def __init__(
        self,
        config: Optional[InsightsConfig] = None,
        client: Optional[EnrichmentClient] = None,
        now_fn: Callable[[], datetime] = _utcnow,
    ):
        config = config or InsightsConfig()
        self.deterministic = DeterministicInsightGenerator(config.health, now_fn=now_fn)
        self.enriched = EnrichedInsightGenerator(
            client, self.deterministic, timeout_seconds=config.timeout_seconds, now_fn=now_fn
        )
        self._generators = {
            InsightTier.DETERMINISTIC: self.deterministic,
            InsightTier.ENRICHED: self.enriched,
        }

    def generate(self, stats: AggregatedStats, tier: InsightTier) -> InsightReport:
        report = self._generators[InsightTier(tier)].generate(stats, InsightTier(tier))
        logger.info(f"Generated insights {{'tier': {report.tier.value!r}, 'source': {report.source.value!r}}}")
        return report
