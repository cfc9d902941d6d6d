"""
Google Geocoding API client and address helpers.
"""
import asyncio
import json
import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

import httpx

from .collaborators import Geocoder
from .lexicon import CITY_ALIASES, find_place
from .models import Scalar, StructuredLocation, is_empty_value
from .utils import now_iso

logger = logging.getLogger(__name__)

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
EARTH_RADIUS_KM = 6371.0
BENGALURU_SUFFIX = ", Bengaluru, Karnataka, India"


@dataclass
class GeocodeResult:
    latitude: float
    longitude: float
    formatted_address: str
    place_id: Optional[str] = None
    address_components: List[Dict[str, Any]] = field(default_factory=list)


def location_string_for_geocoding(location: Any) -> Optional[str]:
    """Address text for a location value, or None when there is nothing to look up."""
    if location is None:
        return None
    if isinstance(location, Scalar):
        location = location.text
    if isinstance(location, str):
        return None if is_empty_value(location) else location.strip()

    if isinstance(location, StructuredLocation):
        data = {
            "area": location.area,
            "city": location.city,
            "standardized_address": location.standardized_address,
        }
    elif isinstance(location, dict):
        data = location
    else:
        return str(location)

    area = None if is_empty_value(data.get("area")) else data.get("area")
    city = None if is_empty_value(data.get("city")) else data.get("city")
    if area and city:
        return f"{area}, {city}"
    if area or city:
        return area or city
    for key in ("address", "formatted_address", "standardized_address"):
        if data.get(key):
            return data[key]
    if isinstance(location, dict) and location:
        return json.dumps(location, sort_keys=True, ensure_ascii=False)
    return None


def standardize_indian_address(location: Any) -> Optional[str]:
    """
    Qualify a bare locality so the geocoder resolves it inside India.

    Known Bengaluru localities get ", Bengaluru, Karnataka, India"; anything
    else without "India" gets ", India".
    """
    text = location_string_for_geocoding(location)
    if not text:
        return text

    lowered = text.lower()
    found = find_place(text)
    if (found and found[1] == "Bengaluru" and found[0] not in CITY_ALIASES
            and "bengaluru" not in lowered and "bangalore" not in lowered):
        return f"{text}{BENGALURU_SUFFIX}"
    if "india" not in lowered:
        return f"{text}, India"
    return text


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (math.sin(d_lat / 2) ** 2
         + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


class GoogleGeocoder(Geocoder):
    """
    Google Maps Geocoding API over httpx.

    Lookups never raise: a missing key, an HTTP failure or a non-OK status
    all yield None.
    """

    def __init__(self, api_key: Optional[str], client: Optional[httpx.AsyncClient] = None,
                 timeout: float = 30, url: str = GEOCODE_URL):
        self.api_key = api_key
        self.url = url
        self.timeout = timeout
        self._client = client

    @property
    def is_available(self) -> bool:
        return bool(self.api_key)

    async def _get(self, params: Dict[str, str]) -> Dict[str, Any]:
        params = dict(params, key=self.api_key)
        if self._client is not None:
            resp = await self._client.get(self.url, params=params)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(self.url, params=params)
        resp.raise_for_status()
        return resp.json()

    @staticmethod
    def _first_result(data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if data.get("status") == "OK" and data.get("results"):
            return data["results"][0]
        logger.warning(f"Geocoding failed: {data.get('status')} {data.get('error_message', '')}".rstrip())
        return None

    async def geocode(self, address: str) -> Optional[GeocodeResult]:
        if not address or not self.is_available:
            logger.debug("Geocoding skipped: missing address or API key")
            return None

        try:
            result = self._first_result(await self._get({"address": address}))
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Geocoding error for {address!r}: {e}")
            return None
        if result is None:
            return None

        loc = result.get("geometry", {}).get("location", {})
        if "lat" not in loc or "lng" not in loc:
            return None
        return GeocodeResult(
            latitude=float(loc["lat"]),
            longitude=float(loc["lng"]),
            formatted_address=result.get("formatted_address", address),
            place_id=result.get("place_id"),
            address_components=result.get("address_components") or [],
        )

    async def reverse_geocode(self, latitude: float, longitude: float) -> Optional[GeocodeResult]:
        if latitude is None or longitude is None or not self.is_available:
            return None
        try:
            result = self._first_result(await self._get({"latlng": f"{latitude},{longitude}"}))
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Reverse geocoding error: {e}")
            return None
        if result is None:
            return None
        return GeocodeResult(
            latitude=latitude,
            longitude=longitude,
            formatted_address=result.get("formatted_address", ""),
            place_id=result.get("place_id"),
            address_components=result.get("address_components") or [],
        )

    async def batch_geocode(self, addresses: List[str],
                            delay_seconds: float = 0.2) -> List[Tuple[str, Optional[GeocodeResult]]]:
        results = []
        for i, address in enumerate(addresses):
            logger.info(f"Geocoding {i + 1}/{len(addresses)}: {address}")
            results.append((address, await self.geocode(address)))
            if i < len(addresses) - 1:
                await asyncio.sleep(delay_seconds)
        return results

    async def enhance_location(self, location: Any) -> Any:
        """Attach coordinates, formatted address and place id; unchanged on failure."""
        address = location_string_for_geocoding(location)
        if not address:
            return location

        standardized = standardize_indian_address(address)
        logger.debug(f"Geocoding address: {standardized}")
        result = await self.geocode(standardized)
        if result is None:
            logger.info(f"Failed to geocode: {address}")
            return location

        enriched = {
            "coordinates": {"latitude": result.latitude, "longitude": result.longitude},
            "standardized_address": result.formatted_address,
            "place_id": result.place_id,
        }
        if isinstance(location, StructuredLocation):
            return replace(location, **enriched)
        if isinstance(location, dict):
            return dict(location, geocoded_at=now_iso(), **enriched)
        return StructuredLocation(area=address, **enriched)
