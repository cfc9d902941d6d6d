"""
Deterministic field extraction with regular expressions and the place gazetteer.
"""
import logging
import re
from typing import List, Optional, Union

from .collaborators import FieldExtractor, Geocoder
from .lexicon import (
    AMENITIES,
    CITY_ALIASES,
    PROPERTY_TYPE_TABLE,
    RENT_KEYWORDS_RE,
    SALE_KEYWORDS_RE,
    find_place,
)
from .models import (
    ExtractionOk,
    StructuredArea,
    StructuredListing,
    StructuredLocation,
    StructuredPrice,
)
from .utils import PRICE_MULTIPLIERS

logger = logging.getLogger(__name__)


BHK_PATTERNS = [
    re.compile(r"(\d+(?:\.\d+)?)\s*bhk", re.I),
    re.compile(r"(\d+)\s*bed", re.I),
    re.compile(r"(\d+)\s*bedroom", re.I),
    re.compile(r"(\d+)br\b", re.I),
]

_UNIT = r"(lakhs?|lacs?|crores?|cr)\b"
PRICE_PATTERNS = [
    re.compile(r"₹\s*(\d+(?:\.\d+)?)\s*" + _UNIT, re.I),
    re.compile(r"\brs\.?\s*(\d+(?:\.\d+)?)\s*" + _UNIT, re.I),
    re.compile(r"(\d+(?:\.\d+)?)\s*" + _UNIT, re.I),
    re.compile(r"₹\s*(\d+(?:,\d+)*(?:\.\d+)?)", re.I),
    re.compile(r"\brs\.?\s*(\d+(?:,\d+)*(?:\.\d+)?)", re.I),
]

AREA_PATTERNS = [
    (re.compile(r"(\d[\d,]*(?:\.\d+)?)\s*(?:sq\.?\s*ft|sqft|sft|square\s*feet)", re.I), "sq ft"),
    (re.compile(r"(\d[\d,]*(?:\.\d+)?)\s*(?:sq\.?\s*m(?:eters?|trs?)?\b|square\s*met(?:er|re)s?)", re.I), "sq m"),
    (re.compile(r"(\d[\d,]*(?:\.\d+)?)\s*(?:sq\.?\s*yards?|sq\.?\s*yds?)", re.I), "sq yd"),
    (re.compile(r"(\d[\d,]*(?:\.\d+)?)\s*acres?", re.I), "acres"),
]

CONTACT_PATTERNS = [
    re.compile(r"(?<![\d+])(\d{10})(?!\d)"),
    re.compile(r"(\+91\s*\d{10})(?!\d)"),
    re.compile(r"(\+91[-\s]?\d{5}[-\s]?\d{5})(?!\d)"),
    re.compile(r"(?<!\d)(\d{3}[-\s]?\d{3}[-\s]?\d{4})(?!\d)"),
]

AMENITY_PATTERNS = [(a, re.compile(r"\b" + re.escape(a) + r"\b", re.I)) for a in AMENITIES]

# Listing-type guess from the amount when no keyword decides it
SALE_PRICE_FLOOR = 5_000_000
RENT_PRICE_CEILING = 200_000

DESCRIPTION_LENGTH = 300


def _number(text: str) -> float:
    return float(text.replace(",", ""))


def _whole(value: float) -> Union[int, float]:
    return int(value) if float(value).is_integer() else value


def extract_bhk(text: str) -> Optional[Union[int, float]]:
    for pattern in BHK_PATTERNS:
        m = pattern.search(text)
        if m:
            return _whole(float(m.group(1)))
    return None


def extract_price(text: str) -> Optional[StructuredPrice]:
    """Rupee price; lakh/crore amounts are converted to rupees."""
    for pattern in PRICE_PATTERNS:
        m = pattern.search(text)
        if not m:
            continue
        amount = m.group(1)
        unit = m.group(2).lower() if m.lastindex and m.lastindex >= 2 else None
        value = _number(amount)
        if unit:
            value = value * PRICE_MULTIPLIERS[unit]
        formatted = f"₹{amount} {unit}" if unit else f"₹{amount}"
        return StructuredPrice(value=_whole(value), currency="INR", formatted=formatted)
    return None


def extract_area(text: str) -> Optional[StructuredArea]:
    for pattern, unit in AREA_PATTERNS:
        m = pattern.search(text)
        if m:
            value = _whole(_number(m.group(1)))
            return StructuredArea(value=value, unit=unit, formatted=f"{value} {unit}")
    return None


def extract_property_type(text: str) -> str:
    for pattern, kind in PROPERTY_TYPE_TABLE:
        if pattern.search(text):
            return kind
    return "Unknown"


def extract_listing_type(text: str, price: Optional[StructuredPrice] = None) -> str:
    if RENT_KEYWORDS_RE.search(text):
        return "rent"
    if SALE_KEYWORDS_RE.search(text):
        return "sale"
    if price is not None and price.value:
        if price.value > SALE_PRICE_FLOOR:
            return "sale"
        if price.value < RENT_PRICE_CEILING:
            return "rent"
    return "unknown"


def extract_contact(text: str) -> Optional[str]:
    for pattern in CONTACT_PATTERNS:
        m = pattern.search(text)
        if m:
            return re.sub(r"[-\s+]", "", m.group(1))
    return None


def extract_amenities(text: str) -> List[str]:
    return [name for name, pattern in AMENITY_PATTERNS if pattern.search(text)]


def _place_label(place: str) -> str:
    return place.upper() if len(place) <= 3 else place.title()


def extract_location(text: str) -> Optional[StructuredLocation]:
    found = find_place(text)
    if found is None:
        return None
    place, city = found
    if place in CITY_ALIASES:
        return StructuredLocation(area=None, city=city)
    return StructuredLocation(area=_place_label(place), city=city)


class RuleBasedExtractor(FieldExtractor):
    """Regex/gazetteer extractor; always succeeds."""

    def __init__(self, geocoder: Optional[Geocoder] = None):
        self.geocoder = geocoder

    @property
    def name(self) -> str:
        return "rule-based"

    def parse(self, text: str) -> StructuredListing:
        text = text or ""
        price = extract_price(text)
        listing = StructuredListing(
            property_type=extract_property_type(text),
            listing_type=extract_listing_type(text, price),
            location=extract_location(text),
            price=price,
            area=extract_area(text),
            bhk=extract_bhk(text),
            description=text[:DESCRIPTION_LENGTH],
            contact_info=extract_contact(text),
            amenities=extract_amenities(text),
        )

        missing = []
        if listing.price is None:
            missing.append("price")
        if listing.area is None:
            missing.append("area")
        if listing.location is None:
            missing.append("location")
        if listing.contact_info is None:
            missing.append("contact")
        if listing.bhk is None:
            missing.append("bhk")
        listing.missing_fields = missing

        logger.debug(f"Rule-based extraction: {listing.property_type} / {listing.listing_type}, "
                     f"missing {missing}")
        return listing

    async def extract(self, text: str) -> ExtractionOk:
        listing = self.parse(text)
        if self.geocoder is not None and listing.location is not None:
            listing.location = await self.geocoder.enhance_location(listing.location)
        return ExtractionOk(listing)
