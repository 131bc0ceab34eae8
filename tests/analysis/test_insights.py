"""Tests for insight report generation."""

import json
import time
from datetime import datetime, timezone
from unittest.mock import Mock

import httpx
import pytest

from linkedin_vault.analysis.aggregator import AggregatedStats
from linkedin_vault.analysis.enrichment import EnrichmentClient
from linkedin_vault.analysis.insights import (
    DeterministicInsightGenerator, EnrichedInsightGenerator, InsightService, InsightSource,
    InsightTier, build_prompt, parse_enriched_content, tier_for_plan,
)
from linkedin_vault.common import EnrichmentError
from linkedin_vault.config import InsightsConfig

NOW = datetime(2024, 3, 1, tzinfo=timezone.utc)

ENRICHED = {
    "network_health": {
        "score": 88,
        "assessment": "Broad network across fintech.",
        "recommendations": ["Reconnect with former colleagues"],
    },
    "content_strategy": {
        "rating": "Good",
        "advice": "Post weekly.",
        "suggestions": ["Write about payments"],
    },
    "key_insights": ["a", "b", "c", "d", "e", "f", "g"],
    "action_items": [
        {"priority": "High", "action": "Post", "timeline": "Now", "expected_impact": "Reach"},
        {"priority": "Low", "action": "Tidy", "timeline": "Later", "expected_impact": "Search"},
        {"priority": "Medium", "action": "Comment", "timeline": "Weekly", "expected_impact": "Ties"},
        {"priority": "Low", "action": "Extra", "timeline": "Never", "expected_impact": "None"},
    ],
}


def stats_with(**counts) -> AggregatedStats:
    stats = AggregatedStats()
    stats.counts.update(counts)
    return stats


def enriched_service(handler, timeout_seconds=5.0) -> InsightService:
    client = EnrichmentClient("https://enrichment.example.test", transport=httpx.MockTransport(handler))
    return InsightService(InsightsConfig(timeout_seconds=timeout_seconds), client, now_fn=lambda: NOW)


def none_paths(value, path="report"):
    """Yield the path of every None inside a nested document."""
    if value is None:
        yield path
    elif isinstance(value, dict):
        for key, item in value.items():
            yield from none_paths(item, f"{path}.{key}")
    elif isinstance(value, list):
        for i, item in enumerate(value):
            yield from none_paths(item, f"{path}[{i}]")


class TestTierForPlan:
    """Tests for plan to tier mapping."""

    @pytest.mark.parametrize("plan, tier", [
        ("free", InsightTier.DETERMINISTIC),
        ("Pro", InsightTier.ENRICHED),
        ("business", InsightTier.ENRICHED),
        ("enterprise", InsightTier.ENRICHED),
        (None, InsightTier.DETERMINISTIC),
        ("platinum", InsightTier.DETERMINISTIC),
    ])
    def test_mapping(self, plan, tier):
        """Test known, missing and unknown plans."""
        assert tier_for_plan(plan) is tier


class TestDeterministicGenerator:
    """Tests for DeterministicInsightGenerator."""

    @pytest.mark.parametrize("counts, score", [
        ({}, 50),
        ({"connections": 500}, 50),
        ({"connections": 501}, 60),
        ({"connections": 1200, "posts": 60, "skills": 11}, 85),
        ({"connections": 6000, "posts": 150, "comments": 1000, "skills": 25}, 100),
    ])
    def test_network_score(self, counts, score):
        """Test threshold increments and the cap."""
        assert DeterministicInsightGenerator().network_score(stats_with(**counts)) == score

    @pytest.mark.parametrize("counts", [
        {},
        {"connections": 12, "posts": 0},
        {"connections": 1500, "posts": 75, "comments": 200, "messages": 900, "skills": 30},
        {"connections": 4000, "posts": 500},
    ])
    def test_every_field_present(self, counts):
        """Test that any stats give a complete report with no nulls."""
        report = DeterministicInsightGenerator(now_fn=lambda: NOW).generate(stats_with(**counts))
        document = report.model_dump(mode="json")

        assert list(none_paths(document)) == []
        assert report.source is InsightSource.DETERMINISTIC
        assert 1 <= len(report.key_insights) <= 5
        assert 1 <= len(report.action_items) <= 3
        assert report.generated_at == NOW

    def test_assessment_formats_counts(self):
        """Test thousands separators in the assessment."""
        report = DeterministicInsightGenerator().generate(stats_with(connections=3500))
        assert "3,500 connections" in report.network_health.assessment

    def test_industry_suggestion(self):
        """Test that the top industry is used when known."""
        stats = stats_with(connections=10)
        stats.top_industries = [("Fintech", 5)]

        report = DeterministicInsightGenerator().generate(stats)

        assert report.content_strategy.suggestions[0] == "Share insights about Fintech trends"

    def test_pure_function(self):
        """Test that the same stats give the same report."""
        generator = DeterministicInsightGenerator(now_fn=lambda: NOW)
        stats = stats_with(connections=800, posts=30)
        assert generator.generate(stats) == generator.generate(stats)


class TestParseEnrichedContent:
    """Tests for the forgiving reparse."""

    def test_fenced_json(self):
        """Test that fenced JSON parses and lists are truncated."""
        content = parse_enriched_content("```json\n" + json.dumps(ENRICHED) + "\n```")

        assert content.network_health.score == 88
        assert content.key_insights == ["a", "b", "c", "d", "e"]
        assert len(content.action_items) == 3

    def test_uppercase_fence(self):
        """Test that an uppercase language tag on the fence still parses."""
        content = parse_enriched_content("```JSON\n" + json.dumps(ENRICHED) + "\n```")
        assert content.network_health.score == 88

    def test_truncated_json(self):
        """Test that truncated JSON is a ValueError."""
        with pytest.raises(ValueError):
            parse_enriched_content("```json\n" + json.dumps(ENRICHED)[:80] + "\n```")

    def test_wrong_shape(self):
        """Test that valid JSON of the wrong shape is a ValueError."""
        with pytest.raises(ValueError):
            parse_enriched_content('{"network_health": {"score": 400}}')


class TestEnrichedGenerator:
    """Tests for enriched insights and their fallback."""

    def test_fenced_response(self):
        """Test a fenced response from the service becomes an external report."""
        service = enriched_service(
            lambda request: httpx.Response(200, json={"text": "```json\n" + json.dumps(ENRICHED) + "\n```"})
        )

        report = service.generate(stats_with(connections=10), InsightTier.ENRICHED)

        assert report.source is InsightSource.EXTERNAL
        assert report.tier is InsightTier.ENRICHED
        assert report.network_health.assessment == "Broad network across fintech."

    def test_truncated_response_falls_back(self):
        """Test that unusable output yields the deterministic report."""
        service = enriched_service(
            lambda request: httpx.Response(200, json={"text": "```json\n{\"network_health\": {\"sco"})
        )
        stats = stats_with(connections=10)

        report = service.generate(stats, InsightTier.ENRICHED)

        assert report.source is InsightSource.DETERMINISTIC
        assert report.tier is InsightTier.ENRICHED
        expected = service.deterministic.build_content(stats)
        assert report.key_insights == expected.key_insights

    def test_service_error_falls_back(self):
        """Test that HTTP failures never escape."""
        service = enriched_service(lambda request: httpx.Response(500))
        report = service.generate(stats_with(), InsightTier.ENRICHED)
        assert report.source is InsightSource.DETERMINISTIC

    def test_deadline_falls_back(self):
        """Test that a slow service is abandoned at the deadline."""
        client = Mock()
        client.complete.side_effect = lambda prompt, schema: time.sleep(1.0) or json.dumps(ENRICHED)
        generator = EnrichedInsightGenerator(
            client, DeterministicInsightGenerator(), timeout_seconds=0.05,
        )

        started = time.monotonic()
        report = generator.generate(stats_with())

        assert report.source is InsightSource.DETERMINISTIC
        assert time.monotonic() - started < 0.9

    def test_unexpected_error_falls_back(self):
        """Test that any client exception falls back."""
        client = Mock()
        client.complete.side_effect = RuntimeError("boom")
        generator = EnrichedInsightGenerator(client, DeterministicInsightGenerator())

        assert generator.generate(stats_with()).source is InsightSource.DETERMINISTIC

    def test_enrichment_error_falls_back(self):
        """Test that EnrichmentError falls back."""
        client = Mock()
        client.complete.side_effect = EnrichmentError("down", endpoint="x")
        generator = EnrichedInsightGenerator(client, DeterministicInsightGenerator())

        assert generator.generate(stats_with()).source is InsightSource.DETERMINISTIC

    def test_no_client(self):
        """Test that the enriched tier without a client is deterministic."""
        report = InsightService().generate(stats_with(connections=5), InsightTier.ENRICHED)
        assert report.source is InsightSource.DETERMINISTIC

    def test_deterministic_tier_never_calls_service(self):
        """Test that the base tier does not contact the service."""
        client = Mock()
        service = InsightService(client=client)

        service.generate(stats_with(), InsightTier.DETERMINISTIC)

        client.complete.assert_not_called()

    def test_prompt_mentions_counts(self):
        """Test that the prompt carries the headline numbers."""
        stats = stats_with(connections=1234)
        stats.top_companies = [("Acme Corp", 500)]

        prompt = build_prompt(stats)

        assert "Total Connections: 1234" in prompt
        assert "Acme Corp (500)" in prompt
