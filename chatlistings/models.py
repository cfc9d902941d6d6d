"""
Data models for parsed chat messages and structured property listings.
"""
from dataclasses import dataclass, field, asdict, is_dataclass
from typing import Any, Dict, List, Optional, Union

from .utils import parse_price, to_float


SOURCE_TAG = "chat-export"
DEFAULT_GROUP = "Unknown Group"
UNKNOWN_SENDER = "unknown"

# Placeholder strings some extractors emit instead of null
PLACEHOLDER_VALUES = {
    "unknown",
    "not specified",
    "price not mentioned",
    "area not specified",
    "n/a",
}


@dataclass
class ParsedMessage:
    """One message recovered from a chat export (or an image pseudo-message)."""

    date: str
    time: str
    timestamp: str
    sender_name: str
    content: str
    source_group: str = DEFAULT_GROUP
    sender_phone: Optional[str] = None
    media_urls: Optional[List[str]] = None
    source: str = SOURCE_TAG

    # "text" for chat lines, "image" for OCR-derived messages
    kind: str = "text"
    filename: Optional[str] = None


# Location / price / area arrive either as free text or as structured objects.

@dataclass(frozen=True)
class Scalar:
    text: str


@dataclass
class StructuredLocation:
    area: Optional[str] = None
    city: Optional[str] = None
    landmarks: List[str] = field(default_factory=list)
    coordinates: Optional[Dict[str, float]] = None
    standardized_address: Optional[str] = None
    place_id: Optional[str] = None


@dataclass
class StructuredPrice:
    value: Optional[float] = None
    currency: Optional[str] = "INR"
    formatted: Optional[str] = None
    negotiable: Optional[bool] = None


@dataclass
class StructuredArea:
    value: Optional[float] = None
    unit: Optional[str] = None
    formatted: Optional[str] = None


Location = Union[Scalar, StructuredLocation]
Price = Union[Scalar, StructuredPrice]
Area = Union[Scalar, StructuredArea]


def _compact(d: Dict[str, Any]) -> Dict[str, Any]:
    out = {}
    for k, v in d.items():
        if isinstance(v, dict):
            v = _compact(v)
        elif isinstance(v, float) and v.is_integer():
            v = int(v)
        if v is None or v == "" or v == [] or v == {}:
            continue
        out[k] = v
    return out


def normalize_field(value: Any) -> Any:
    """
    Convert a location/price/area value of any shape into a plain JSON value.

    Scalars become stripped strings; structured values (dataclasses or dicts)
    become dicts without empty entries. This is the single representation used
    for fingerprinting, storage, and search.
    """
    if value is None:
        return None
    if isinstance(value, Scalar):
        return value.text.strip()
    if isinstance(value, str):
        return value.strip()
    if is_dataclass(value):
        return _compact(asdict(value))
    if isinstance(value, dict):
        return _compact(dict(value))
    return value


def coerce_location(value: Any) -> Optional[Location]:
    if value is None or isinstance(value, (Scalar, StructuredLocation)):
        return value
    if isinstance(value, dict):
        return StructuredLocation(
            area=value.get("area"),
            city=value.get("city"),
            landmarks=list(value.get("landmarks") or []),
            coordinates=value.get("coordinates"),
            standardized_address=value.get("standardized_address"),
            place_id=value.get("place_id"),
        )
    return Scalar(str(value))


def coerce_price(value: Any) -> Optional[Price]:
    if value is None or isinstance(value, (Scalar, StructuredPrice)):
        return value
    if isinstance(value, dict):
        return StructuredPrice(
            value=to_float(value.get("value")),
            currency=value.get("currency"),
            formatted=value.get("formatted"),
            negotiable=value.get("negotiable"),
        )
    if isinstance(value, (int, float)):
        return StructuredPrice(value=float(value))
    text = str(value)
    amount, currency = parse_price(text)
    if amount is None:
        return Scalar(text)
    return StructuredPrice(value=amount, currency=currency, formatted=text.strip())


def coerce_area(value: Any) -> Optional[Area]:
    if value is None or isinstance(value, (Scalar, StructuredArea)):
        return value
    if isinstance(value, dict):
        return StructuredArea(
            value=to_float(value.get("value")),
            unit=value.get("unit"),
            formatted=value.get("formatted"),
        )
    if isinstance(value, (int, float)):
        return StructuredArea(value=float(value))
    return Scalar(str(value))


def _number(v: Optional[float]) -> str:
    if v is None:
        return ""
    return str(int(v)) if float(v).is_integer() else str(v)


def display_field(value: Any, placeholder: str = "Not specified") -> str:
    """Render a location/price/area value for humans."""
    if value is None:
        return placeholder
    if isinstance(value, Scalar):
        return value.text or placeholder
    if isinstance(value, StructuredLocation):
        parts = [p for p in (value.area, value.city) if p]
        return ", ".join(parts) if parts else placeholder
    if isinstance(value, StructuredPrice):
        if value.formatted:
            return value.formatted
        if value.value is not None and value.currency:
            return f"{value.currency} {_number(value.value)}"
        return _number(value.value) or placeholder
    if isinstance(value, StructuredArea):
        if value.formatted:
            return value.formatted
        if value.value is not None and value.unit:
            return f"{_number(value.value)} {value.unit}"
        return _number(value.value) or placeholder
    return str(value) or placeholder


def is_empty_value(value: Any) -> bool:
    """True for null, blank, empty collections, and placeholder strings."""
    if value is None:
        return True
    if isinstance(value, Scalar):
        value = value.text
    if isinstance(value, str):
        return value.strip().lower() in PLACEHOLDER_VALUES or not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    if isinstance(value, StructuredLocation):
        return all(is_empty_value(v) for v in (value.area, value.city, value.standardized_address))
    if isinstance(value, (StructuredPrice, StructuredArea)):
        return value.value is None and is_empty_value(value.formatted)
    return False


@dataclass
class StructuredListing:
    """Fields extracted from a single listing message."""

    property_type: Optional[str] = None
    listing_type: str = "unknown"  # rent / sale / unknown
    location: Optional[Location] = None
    price: Optional[Price] = None
    area: Optional[Area] = None
    bhk: Optional[Union[int, float]] = None
    description: Optional[str] = None
    contact_info: Optional[str] = None
    amenities: List[str] = field(default_factory=list)
    missing_fields: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "property_type": self.property_type,
            "listing_type": self.listing_type,
            "location": normalize_field(self.location),
            "price": normalize_field(self.price),
            "area": normalize_field(self.area),
            "bhk": self.bhk,
            "description": self.description,
            "contact_info": self.contact_info,
            "amenities": list(self.amenities),
            "missing_fields": list(self.missing_fields),
        }


@dataclass
class ExtractionOk:
    listing: StructuredListing

    @property
    def is_fallback(self) -> bool:
        return False


@dataclass
class ExtractionFallback:
    listing: StructuredListing
    reason: str

    @property
    def is_fallback(self) -> bool:
        return True


ExtractionResult = Union[ExtractionOk, ExtractionFallback]


def fallback_listing(content: str, phone: Optional[str] = None,
                     reason: str = "AI processing failed") -> StructuredListing:
    """Deterministic placeholder used when field extraction fails."""
    return StructuredListing(
        property_type="Unknown",
        listing_type="unknown",
        location=None,
        price=None,
        area=None,
        bhk=None,
        description=(content or "")[:200],
        contact_info=phone,
        amenities=[],
        missing_fields=[reason],
    )


@dataclass
class ProcessedListing:
    """A structured listing plus provenance, ready for persistence."""

    listing: StructuredListing
    contact_person: str
    contact_phone: Optional[str]
    confidence_score: float
    status: str
    needs_followup: bool
    processed_at: str
    fingerprint: str = ""
    raw_data_id: Optional[int] = None
    source_group: str = DEFAULT_GROUP
    message_timestamp: Optional[str] = None
    extracted_from_image: bool = False
    image_filename: Optional[str] = None
    extraction_fallback: bool = False

    def to_row(self) -> Dict[str, Any]:
        """Flat dict of the listing and its provenance."""
        row = self.listing.to_dict()
        row.update({
            "raw_data_id": self.raw_data_id,
            "contact_person": self.contact_person,
            "contact_phone": self.contact_phone,
            "confidence_score": self.confidence_score,
            "status": self.status,
            "needs_followup": self.needs_followup,
            "processed_at": self.processed_at,
            "fingerprint": self.fingerprint,
            "source_group": self.source_group,
            "message_timestamp": self.message_timestamp,
            "extracted_from_image": self.extracted_from_image,
            "image_filename": self.image_filename,
        })
        return row


@dataclass
class BatchReport:
    """Counts reported for every processed export, even on partial failure."""

    total_messages: int = 0
    text_messages: int = 0
    image_messages: int = 0
    candidate_messages: int = 0
    structured_listings: int = 0
    fallback_extractions: int = 0
    duplicates_skipped: int = 0
    saved: int = 0
    listings: List[ProcessedListing] = field(default_factory=list)

    def summary(self) -> Dict[str, int]:
        return {
            "total_messages": self.total_messages,
            "text_messages": self.text_messages,
            "image_messages": self.image_messages,
            "candidate_messages": self.candidate_messages,
            "structured_listings": self.structured_listings,
            "fallback_extractions": self.fallback_extractions,
            "duplicates_skipped": self.duplicates_skipped,
            "saved": self.saved,
        }
