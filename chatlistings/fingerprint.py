"""
Exact-match duplicate detection for processed listings.
"""
import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from .models import ProcessedListing, StructuredListing, normalize_field
from .utils import digits_only

logger = logging.getLogger(__name__)


def _serialize(value: Any) -> str:
    normalized = normalize_field(value)
    if normalized is None:
        normalized = ""
    return json.dumps(normalized, sort_keys=True, ensure_ascii=False).lower()


def _bhk_text(bhk: Any) -> str:
    if bhk is None or bhk == "":
        return ""
    if isinstance(bhk, float) and bhk.is_integer():
        bhk = int(bhk)
    return str(bhk)


def _as_row(listing: Any) -> Dict[str, Any]:
    if isinstance(listing, ProcessedListing):
        return listing.to_row()
    if isinstance(listing, StructuredListing):
        row = listing.to_dict()
        row["contact_phone"] = listing.contact_info
        return row
    return dict(listing)


def fingerprint(listing: Any) -> str:
    """
    Deterministic key for a listing (ProcessedListing, StructuredListing or row dict).

    Structured fields are serialized with sorted keys, so two listings that
    differ only in key order share a fingerprint.
    """
    row = _as_row(listing)
    parts = [
        (row.get("description") or "").strip().lower(),
        (row.get("property_type") or "").lower(),
        _serialize(row.get("location")),
        _serialize(row.get("price")),
        _bhk_text(row.get("bhk")),
        _serialize(row.get("area")),
        digits_only(row.get("contact_phone")),
    ]
    return "|".join(parts)


def is_duplicate(listing: Any, seen: Set[str]) -> bool:
    return fingerprint(listing) in seen


class FingerprintSet:
    """Seen-set covering existing records plus everything accepted in this batch."""

    def __init__(self, existing: Optional[Iterable[str]] = None):
        self._seen: Set[str] = set(existing or ())

    def __contains__(self, key: str) -> bool:
        return key in self._seen

    def __len__(self) -> int:
        return len(self._seen)

    def add_if_new(self, listing: Any) -> bool:
        """Record the listing's fingerprint; False if it was already seen."""
        key = fingerprint(listing)
        if key in self._seen:
            return False
        self._seen.add(key)
        return True

    def dedupe(self, listings: Iterable[Any]) -> Tuple[List[Any], int]:
        """Split listings into (unique, number of duplicates skipped)."""
        unique = []
        skipped = 0
        for listing in listings:
            if self.add_if_new(listing):
                unique.append(listing)
            else:
                skipped += 1
                description = (_as_row(listing).get("description") or "")[:50]
                logger.info(f"Skipping duplicate listing: {description}...")
        return unique, skipped
