"""Tests for the enrichment service client."""

import json

import httpx
import pytest

from linkedin_vault.analysis.enrichment import EnrichmentClient, extract_text, strip_code_fences
from linkedin_vault.common import EnrichmentError
from linkedin_vault.config import InsightsConfig

ENDPOINT = "https://enrichment.example.test/v1/generate"


def client_for(handler, **kwargs) -> EnrichmentClient:
    return EnrichmentClient(ENDPOINT, transport=httpx.MockTransport(handler), **kwargs)


class TestHelpers:
    """Tests for response text helpers."""

    def test_strip_code_fences(self):
        """Test that json fences are removed."""
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'

    @pytest.mark.parametrize("fence", ["```JSON", "```Json", "```javascript", "```", "```json "])
    def test_strip_code_fences_any_tag(self, fence):
        """Test that the opening fence is removed whatever its language tag or case."""
        assert strip_code_fences(fence + '\n{"a": 1}\n```') == '{"a": 1}'

    def test_extract_text_layouts(self):
        """Test both supported body layouts."""
        assert extract_text({"text": "hi"}) == "hi"
        assert extract_text({"candidates": [{"content": {"parts": [{"text": "hi"}]}}]}) == "hi"
        assert extract_text({"candidates": []}) is None
        assert extract_text([1, 2]) is None


class TestFromConfig:
    """Tests for building a client from configuration."""

    def test_disabled(self):
        """Test that disabled enrichment yields no client."""
        assert EnrichmentClient.from_config(InsightsConfig(endpoint=ENDPOINT)) is None

    def test_missing_endpoint(self):
        """Test that enabling without an endpoint yields no client."""
        assert EnrichmentClient.from_config(InsightsConfig(enrichment_enabled=True)) is None

    def test_enabled(self):
        """Test that settings are carried over."""
        client = EnrichmentClient.from_config(InsightsConfig(
            enrichment_enabled=True, endpoint=ENDPOINT, api_key="k", model="m", timeout_seconds=3,
        ))
        assert (client.endpoint, client.api_key, client.model, client.timeout) == (ENDPOINT, "k", "m", 3)


class TestComplete:
    """Tests for EnrichmentClient.complete."""

    def test_request_shape(self):
        """Test payload and auth header."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"text": "result"})

        text = client_for(handler, api_key="secret", model="large").complete("prompt", {"type": "object"})

        assert text == "result"
        assert seen["auth"] == "Bearer secret"
        assert seen["body"] == {"model": "large", "prompt": "prompt", "response_schema": {"type": "object"}}

    def test_plain_text_body(self):
        """Test a non-JSON body is returned as text."""
        client = client_for(lambda request: httpx.Response(200, text="```json\n{}\n```"))
        assert client.complete("p", {}) == "```json\n{}\n```"

    def test_report_object_body(self):
        """Test a JSON body without a text field is returned verbatim."""
        client = client_for(lambda request: httpx.Response(200, json={"key_insights": ["x"]}))
        assert json.loads(client.complete("p", {})) == {"key_insights": ["x"]}

    def test_http_error_status(self):
        """Test that a non-2xx status raises EnrichmentError."""
        client = client_for(lambda request: httpx.Response(503, text="busy"))

        with pytest.raises(EnrichmentError) as exc_info:
            client.complete("p", {})

        assert exc_info.value.context["status_code"] == 503

    def test_timeout(self):
        """Test that transport timeouts raise EnrichmentError."""
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(EnrichmentError, match="timed out"):
            client_for(handler).complete("p", {})

    def test_connection_error(self):
        """Test that unreachable endpoints raise EnrichmentError."""
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(EnrichmentError, match="failed"):
            client_for(handler).complete("p", {})
