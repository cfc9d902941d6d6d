"""
Pydantic models for collaborator JSON and search parameters.
"""
import json
import re
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import StructuredListing, coerce_area, coerce_location, coerce_price

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.I)
_BHK_RE = re.compile(r"(\d+(?:\.\d+)?)")

LISTING_TYPES = ("rent", "sale", "unknown")


class ListingPayload(BaseModel):
    """Listing fields as returned by a model-based extractor."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    property_type: Optional[str] = Field(default=None, alias="propertyType")
    listing_type: str = Field(default="unknown", alias="listingType")
    location: Optional[Union[str, Dict[str, Any]]] = None
    price: Optional[Union[float, str, Dict[str, Any]]] = None
    area: Optional[Union[float, str, Dict[str, Any]]] = None
    bhk: Optional[float] = None
    description: Optional[str] = None
    contact_info: Optional[str] = Field(default=None, alias="contactInfo")
    amenities: List[str] = Field(default_factory=list)
    missing_fields: List[str] = Field(default_factory=list, alias="missingFields")

    @field_validator("bhk", mode="before")
    @classmethod
    def _bhk_from_text(cls, v):
        if isinstance(v, str):
            m = _BHK_RE.search(v)
            return float(m.group(1)) if m else None
        return v

    @field_validator("listing_type", mode="before")
    @classmethod
    def _listing_type(cls, v):
        v = (v or "unknown").strip().lower() if isinstance(v, str) else "unknown"
        return v if v in LISTING_TYPES else "unknown"

    @field_validator("contact_info", mode="before")
    @classmethod
    def _contact_text(cls, v):
        if isinstance(v, (int, float)):
            return str(int(v))
        return v

    @field_validator("amenities", "missing_fields", mode="before")
    @classmethod
    def _null_list(cls, v):
        return [] if v is None else v

    def to_listing(self) -> StructuredListing:
        bhk = self.bhk
        if bhk is not None and float(bhk).is_integer():
            bhk = int(bhk)
        return StructuredListing(
            property_type=self.property_type,
            listing_type=self.listing_type,
            location=coerce_location(self.location),
            price=coerce_price(self.price),
            area=coerce_area(self.area),
            bhk=bhk,
            description=self.description,
            contact_info=self.contact_info,
            amenities=list(self.amenities),
            missing_fields=list(self.missing_fields),
        )


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` block if present."""
    return _FENCE_RE.sub("", (text or "").strip()).strip()


def parse_payload(text: str) -> ListingPayload:
    """
    Parse and validate an extractor reply.

    Raises ValueError (json.JSONDecodeError or pydantic.ValidationError) when
    the reply is not a valid listing object.
    """
    data = json.loads(strip_code_fences(text))
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return ListingPayload.model_validate(data)


class SearchFilters(BaseModel):
    """Structured search filters for stored listings."""

    model_config = ConfigDict(extra="forbid")

    listing_type: Optional[str] = None
    property_type: Optional[str] = None
    bhk: Optional[float] = None
    city: Optional[str] = None
    areas: List[str] = Field(default_factory=list)
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_area: Optional[float] = None
    max_area: Optional[float] = None
    amenities: List[str] = Field(default_factory=list)
    near: Optional[Tuple[float, float, float]] = None
    limit: Optional[int] = None
