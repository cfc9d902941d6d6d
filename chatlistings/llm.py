"""
Model-based field extraction against an OpenAI-compatible chat completions API.

Uses httpx directly. Replies are validated with the ListingPayload schema; a
failed request or an unusable reply degrades to the rule-based extractor.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from .collaborators import FieldExtractor, Geocoder
from .models import ExtractionFallback, ExtractionOk, ExtractionResult
from .rules import RuleBasedExtractor
from .schemas import parse_payload

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-3.5-turbo"

EXTRACTION_PROMPT = """You are a real estate data extraction specialist. Extract structured information from this chat message about a property.
Be as precise as possible and structure the data in a consistent format.

Message: {message}

Extract and return a JSON object with these fields (use null for missing fields):
- propertyType: (apartment, villa, plot, commercial, etc.)
- listingType: (rent, sale or unknown)
- location: {{"area": specific neighborhood/locality, "city": city name, "landmarks": array of nearby landmarks}}
- price: {{"value": numeric value in rupees, "currency": INR/USD/..., "formatted": price as written, "negotiable": boolean}}
- area: {{"value": numeric value, "unit": sq ft/sq m/acres, "formatted": area as written}}
- bhk: (number of bedrooms)
- description: (concise description highlighting key selling points)
- contactInfo: (phone number or other contact details)
- amenities: (array of amenities mentioned)
- missingFields: (array of important fields that are not mentioned in the message)

Return only the JSON object without any markdown formatting or explanation."""


class LLMFieldExtractor(FieldExtractor):
    """
    Chat-completions extractor with a rule-based safety net.

    Without an API key every call goes straight to the rule-based extractor
    and is reported as a normal result.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = DEFAULT_BASE_URL,
        model: str = DEFAULT_MODEL,
        client: Optional[httpx.AsyncClient] = None,
        geocoder: Optional[Geocoder] = None,
        timeout: float = 30,
        temperature: float = 0.1,
        max_tokens: int = 1500,
    ):
        self.api_key = api_key
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.model = model or DEFAULT_MODEL
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.geocoder = geocoder
        self.fallback = RuleBasedExtractor(geocoder=geocoder)
        self._client = client

    @property
    def name(self) -> str:
        return f"llm ({self.model})"

    @property
    def is_available(self) -> bool:
        return bool(self.api_key)

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(self, text: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": EXTRACTION_PROMPT.format(message=text)}],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stream": False,
        }

    async def _post(self, client: httpx.AsyncClient, payload: Dict[str, Any]) -> str:
        resp = await client.post(
            f"{self.base_url}/chat/completions",
            headers=self._get_headers(),
            json=payload,
        )
        resp.raise_for_status()
        return resp.json()["choices"][0]["message"]["content"].strip()

    async def complete(self, text: str) -> str:
        """Raw model reply for text."""
        payload = self._build_payload(text)
        if self._client is not None:
            return await self._post(self._client, payload)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._post(client, payload)

    async def extract(self, text: str) -> ExtractionResult:
        if not self.is_available:
            logger.debug("API key not configured, using rule-based extraction")
            return await self.fallback.extract(text)

        try:
            reply = await self.complete(text)
            payload = parse_payload(reply)
        except httpx.HTTPError as e:
            reason = f"AI request failed: {e}"
        except (KeyError, IndexError, TypeError) as e:
            reason = f"Malformed AI response: {e!r}"
        except ValueError as e:
            reason = f"AI response was not a valid listing: {e}"
        else:
            listing = payload.to_listing()
            if self.geocoder is not None and listing.location is not None:
                listing.location = await self.geocoder.enhance_location(listing.location)
            return ExtractionOk(listing)

        logger.warning(f"{reason}; falling back to rule-based extraction")
        result = await self.fallback.extract(text)
        return ExtractionFallback(result.listing, reason)
