"""
Tests for the reply schema and the chat-completions extractor.

HTTP is served by httpx.MockTransport; nothing leaves the process.
"""
import asyncio
import json

import httpx
import pytest
from pydantic import ValidationError

from chatlistings.llm import LLMFieldExtractor
from chatlistings.models import (
    ExtractionFallback,
    ExtractionOk,
    Scalar,
    StructuredLocation,
    StructuredPrice,
)
from chatlistings.schemas import ListingPayload, SearchFilters, parse_payload, strip_code_fences

REPLY = {
    "propertyType": "apartment",
    "listingType": "Sale",
    "location": {"area": "Koramangala", "city": "Bengaluru", "landmarks": ["Forum Mall"]},
    "price": {"value": 8500000, "currency": "INR", "formatted": "₹85 lakh"},
    "area": None,
    "bhk": "2 BHK",
    "description": "2 BHK apartment in Koramangala",
    "contactInfo": 9876543210,
    "amenities": None,
    "missingFields": ["area"],
}


def completion(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def mock_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def run_extract(extractor, text="2 BHK for sale in Koramangala, ₹85 lakh"):
    async def go():
        async with extractor._client:
            return await extractor.extract(text)
    return asyncio.run(go())


def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences('{"a": 1}') == '{"a": 1}'


def test_payload_normalization():
    listing = parse_payload(json.dumps(REPLY)).to_listing()
    assert listing.property_type == "apartment"
    assert listing.listing_type == "sale"
    assert listing.bhk == 2
    assert listing.contact_info == "9876543210"
    assert listing.amenities == []
    assert listing.location == StructuredLocation(
        area="Koramangala", city="Bengaluru", landmarks=["Forum Mall"])
    assert listing.price == StructuredPrice(value=8500000.0, currency="INR", formatted="₹85 lakh")
    assert listing.area is None


def test_payload_accepts_field_names_and_scalars():
    payload = ListingPayload(listing_type="lease", location="Near Whitefield", price="85 lakh")
    listing = payload.to_listing()
    assert listing.listing_type == "unknown"
    assert listing.location == Scalar("Near Whitefield")
    assert listing.price.value == 8500000
    assert listing.price.currency == "INR"


@pytest.mark.parametrize("text", ["not json", "[1, 2]", '{"bhk": {"rooms": 2}}'])
def test_parse_payload_rejects_bad_replies(text):
    with pytest.raises(ValueError):
        parse_payload(text)


def test_search_filters_reject_unknown_keys():
    with pytest.raises(ValidationError):
        SearchFilters(colour="blue")


def test_llm_extract_ok():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=completion("```json\n" + json.dumps(REPLY) + "\n```"))

    extractor = LLMFieldExtractor("sk-test", base_url="https://llm.example/v1/",
                                  model="test-model", client=mock_client(handler))
    result = run_extract(extractor)

    assert isinstance(result, ExtractionOk)
    assert result.listing.bhk == 2
    assert result.listing.location.city == "Bengaluru"
    assert seen["url"] == "https://llm.example/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["model"] == "test-model"
    assert "Koramangala" in seen["body"]["messages"][0]["content"]


def test_llm_http_error_falls_back_to_rules():
    def handler(request):
        return httpx.Response(500, json={"error": "boom"})

    extractor = LLMFieldExtractor("sk-test", client=mock_client(handler))
    result = run_extract(extractor)

    assert isinstance(result, ExtractionFallback)
    assert result.reason.startswith("AI request failed")
    # rule-based listing, not the empty placeholder
    assert result.listing.bhk == 2
    assert result.listing.price.value == 8500000


def test_llm_non_json_reply_falls_back():
    def handler(request):
        return httpx.Response(200, json=completion("Sorry, I cannot help with that."))

    extractor = LLMFieldExtractor("sk-test", client=mock_client(handler))
    result = run_extract(extractor)
    assert isinstance(result, ExtractionFallback)
    assert result.reason.startswith("AI response was not a valid listing")


def test_llm_malformed_envelope_falls_back():
    def handler(request):
        return httpx.Response(200, json={"choices": []})

    extractor = LLMFieldExtractor("sk-test", client=mock_client(handler))
    result = run_extract(extractor)
    assert isinstance(result, ExtractionFallback)
    assert result.reason.startswith("Malformed AI response")


def test_llm_without_key_uses_rules_directly():
    def handler(request):
        raise AssertionError("no request expected")

    extractor = LLMFieldExtractor(None, client=mock_client(handler))
    result = run_extract(extractor)
    assert isinstance(result, ExtractionOk)
    assert result.listing.listing_type == "sale"
