"""Statistics aggregation and insight generation."""

from .aggregator import Aggregator, AggregatedStats, CompletenessScore, top_n, round_half_up
from .enrichment import EnrichmentClient, strip_code_fences
from .insights import (
    InsightTier, InsightSource, InsightReport, InsightContent, NetworkHealth, ContentStrategy,
    ActionItem, DeterministicInsightGenerator, EnrichedInsightGenerator, InsightService,
    tier_for_plan, parse_enriched_content,
)

__all__ = [
    'Aggregator',
    'AggregatedStats',
    'CompletenessScore',
    'top_n',
    'round_half_up',
    'EnrichmentClient',
    'strip_code_fences',
    'InsightTier',
    'InsightSource',
    'InsightReport',
    'InsightContent',
    'NetworkHealth',
    'ContentStrategy',
    'ActionItem',
    'DeterministicInsightGenerator',
    'EnrichedInsightGenerator',
    'InsightService',
    'tier_for_plan',
    'parse_enriched_content',
]
