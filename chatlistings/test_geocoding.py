"""
Tests for address helpers and the Google geocoder (mocked transport).
"""
import asyncio

import httpx
import pytest

from chatlistings.geocoding import (
    GoogleGeocoder,
    calculate_distance,
    location_string_for_geocoding,
    standardize_indian_address,
)
from chatlistings.models import Scalar, StructuredLocation

OK_RESPONSE = {
    "status": "OK",
    "results": [{
        "formatted_address": "Koramangala, Bengaluru, Karnataka, India",
        "place_id": "place-123",
        "geometry": {"location": {"lat": 12.9352, "lng": 77.6245}},
        "address_components": [],
    }],
}


def geocoder_for(handler, api_key="maps-key"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GoogleGeocoder(api_key, client=client)


def run(coro):
    return asyncio.run(coro)


def test_location_string_for_geocoding():
    assert location_string_for_geocoding(None) is None
    assert location_string_for_geocoding("Not specified") is None
    assert location_string_for_geocoding(Scalar(" Whitefield ")) == "Whitefield"
    assert location_string_for_geocoding(StructuredLocation(area="HSR", city="Bengaluru")) == "HSR, Bengaluru"
    assert location_string_for_geocoding({"city": "Pune"}) == "Pune"
    assert location_string_for_geocoding({"address": "12 MG Road"}) == "12 MG Road"


def test_standardize_indian_address():
    assert standardize_indian_address("Koramangala") == "Koramangala, Bengaluru, Karnataka, India"
    assert standardize_indian_address("Koramangala, Bangalore") == "Koramangala, Bangalore, India"
    assert standardize_indian_address("Bandra West") == "Bandra West, India"
    assert standardize_indian_address("Baner, Pune, India") == "Baner, Pune, India"
    assert standardize_indian_address(None) is None


def test_calculate_distance():
    assert calculate_distance(12.97, 77.59, 12.97, 77.59) == 0
    # Bengaluru to Chennai is roughly 290 km as the crow flies
    assert calculate_distance(12.9716, 77.5946, 13.0827, 80.2707) == pytest.approx(290, abs=10)


def test_geocode_ok():
    seen = {}

    def handler(request):
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=OK_RESPONSE)

    result = run(geocoder_for(handler).geocode("Koramangala, Bengaluru"))
    assert result.latitude == 12.9352
    assert result.longitude == 77.6245
    assert result.place_id == "place-123"
    assert seen["params"] == {"address": "Koramangala, Bengaluru", "key": "maps-key"}


def test_geocode_failures_return_none():
    def zero(request):
        return httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []})

    def broken(request):
        return httpx.Response(503)

    assert run(geocoder_for(zero).geocode("Nowhere")) is None
    assert run(geocoder_for(broken).geocode("Nowhere")) is None
    assert run(geocoder_for(zero, api_key=None).geocode("Nowhere")) is None


def test_reverse_geocode():
    seen = {}

    def handler(request):
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=OK_RESPONSE)

    result = run(geocoder_for(handler).reverse_geocode(12.9352, 77.6245))
    assert seen["params"] == {"latlng": "12.9352,77.6245", "key": "maps-key"}
    assert result.latitude == 12.9352
    assert result.longitude == 77.6245
    assert result.formatted_address == "Koramangala, Bengaluru, Karnataka, India"
    assert result.place_id == "place-123"


def test_reverse_geocode_failures_return_none():
    def zero(request):
        return httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []})

    def broken(request):
        return httpx.Response(503)

    assert run(geocoder_for(zero).reverse_geocode(0.0, 0.0)) is None
    assert run(geocoder_for(broken).reverse_geocode(12.9352, 77.6245)) is None
    assert run(geocoder_for(zero, api_key=None).reverse_geocode(12.9352, 77.6245)) is None
    assert run(geocoder_for(zero).reverse_geocode(None, 77.6245)) is None


def test_enhance_structured_location():
    location = StructuredLocation(area="Koramangala", city="Bengaluru")
    enhanced = run(geocoder_for(lambda r: httpx.Response(200, json=OK_RESPONSE)).enhance_location(location))
    assert enhanced.area == "Koramangala"
    assert enhanced.coordinates == {"latitude": 12.9352, "longitude": 77.6245}
    assert enhanced.standardized_address == "Koramangala, Bengaluru, Karnataka, India"
    assert enhanced.place_id == "place-123"


def test_enhance_scalar_location():
    enhanced = run(geocoder_for(lambda r: httpx.Response(200, json=OK_RESPONSE)).enhance_location(
        Scalar("Koramangala")))
    assert isinstance(enhanced, StructuredLocation)
    assert enhanced.area == "Koramangala"
    assert enhanced.coordinates["latitude"] == 12.9352


def test_enhance_failure_returns_input():
    location = StructuredLocation(area="Atlantis")
    failing = geocoder_for(lambda r: httpx.Response(200, json={"status": "ZERO_RESULTS"}))
    assert run(failing.enhance_location(location)) is location
    assert run(failing.enhance_location(None)) is None


def test_batch_geocode():
    results = run(geocoder_for(lambda r: httpx.Response(200, json=OK_RESPONSE)).batch_geocode(
        ["Koramangala", "HSR Layout"], delay_seconds=0))
    assert [address for address, _ in results] == ["Koramangala", "HSR Layout"]
    assert all(result is not None for _, result in results)
