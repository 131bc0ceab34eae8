"""Client for the external text-generation service used by enriched insights.

The service is untrusted: every transport failure, non-2xx status or
unusable body surfaces as ``EnrichmentError`` so the caller can fall back.
"""

import logging
import re
from typing import Any, Dict, Optional

import httpx

from ..common import EnrichmentError
from ..config import InsightsConfig

logger = logging.getLogger(__name__)

# Opening fence with any language tag (```json, ```JSON, ```javascript, bare ```)
_FENCE_OPEN = re.compile(r"^```[\w+-]*[ \t]*\n?")
_FENCE_CLOSE = re.compile(r"\n?```$")


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences a provider may wrap around JSON."""
    text = _FENCE_OPEN.sub("", text.strip())
    text = _FENCE_CLOSE.sub("", text)
    return text.strip()


def extract_text(body: Any) -> Optional[str]:
    """Pull generated text out of a response body.

    Accepts ``{"text": ...}`` and the candidates/content/parts layout.
    Returns None when neither is present.
    """
    if isinstance(body, str):
        return body
    if not isinstance(body, dict):
        return None
    if isinstance(body.get("text"), str):
        return body["text"]
    try:
        text = body["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) else None


class EnrichmentClient:
    """Synchronous client for one text-generation endpoint."""

    def __init__(
        self,
        endpoint: str,
        api_key: Optional[str] = None,
        model: str = "default",
        timeout: float = 20.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.endpoint = endpoint
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(
        cls, config: InsightsConfig, transport: Optional[httpx.BaseTransport] = None
    ) -> Optional["EnrichmentClient"]:
        """Build a client, or None when enrichment is disabled or unconfigured."""
        if not config.enrichment_enabled or not config.endpoint:
            return None
        return cls(
            endpoint=config.endpoint,
            api_key=config.api_key,
            model=config.model,
            timeout=config.timeout_seconds,
            transport=transport,
        )

    def complete(self, prompt: str, response_schema: Dict[str, Any]) -> str:
        """Send a prompt and return the generated text.

        Raises:
            EnrichmentError: Unreachable, timed out, non-2xx, or no text in body
        """
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        payload = {"model": self.model, "prompt": prompt, "response_schema": response_schema}

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(self.endpoint, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise EnrichmentError("Enrichment request timed out", endpoint=self.endpoint) from e
        except httpx.HTTPError as e:
            raise EnrichmentError(f"Enrichment request failed: {e}", endpoint=self.endpoint) from e

        if not response.is_success:
            raise EnrichmentError(
                f"Enrichment service returned HTTP {response.status_code}",
                endpoint=self.endpoint,
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError:
            return response.text

        text = extract_text(body)
        if text is None:
            # Some deployments return the report object itself
            return response.text

        logger.debug(f"Enrichment response received {{'chars': {len(text)}}}")
        return text
