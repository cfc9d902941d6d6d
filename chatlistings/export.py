"""
Export utilities for processed listings.
"""
import logging
import sqlite3
from typing import Any, Dict, Iterable, List

import pandas as pd

from .models import ProcessedListing, coerce_area, coerce_location, coerce_price, display_field

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "id", "raw_data_id", "property_type", "listing_type", "location_json", "price_json",
    "area_json", "price_value", "area_value", "bhk", "description", "contact_person",
    "contact_phone", "amenities_json", "missing_fields_json", "confidence_score", "status",
    "needs_followup", "extracted_from_image", "image_filename", "city", "area_name",
    "latitude", "longitude", "source_group", "message_timestamp", "first_seen",
]


def _output_row(x: Any) -> Dict[str, Any]:
    if isinstance(x, ProcessedListing):
        row = x.to_row()
        location, price, area = x.listing.location, x.listing.price, x.listing.area
    else:
        row = dict(x)
        location = coerce_location(row.get("location"))
        price = coerce_price(row.get("price"))
        area = coerce_area(row.get("area"))

    return {
        "property_type": row.get("property_type"),
        "listing_type": row.get("listing_type"),
        "location": display_field(location),
        "price": display_field(price, "Price not mentioned"),
        "area": display_field(area, "Area not specified"),
        "bhk": row.get("bhk"),
        "description": row.get("description"),
        "contact_person": row.get("contact_person"),
        "contact_phone": row.get("contact_phone"),
        "amenities": ", ".join(row.get("amenities") or []),
        "missing_fields": ", ".join(row.get("missing_fields") or []),
        "confidence_score": row.get("confidence_score"),
        "status": row.get("status"),
        "needs_followup": row.get("needs_followup"),
        "extracted_from_image": row.get("extracted_from_image"),
        "image_filename": row.get("image_filename"),
        "source_group": row.get("source_group"),
        "message_timestamp": row.get("message_timestamp"),
    }


def listings_to_frame(listings: Iterable[Any]) -> pd.DataFrame:
    """One row per listing with location/price/area rendered as text."""
    rows: List[Dict[str, Any]] = [_output_row(x) for x in listings]
    return pd.DataFrame(rows)


def save_output_rows(listings: Iterable[Any], out_path: str) -> int:
    """Save listings to CSV or Excel file (chosen by extension)."""
    df = listings_to_frame(listings)
    if out_path.lower().endswith(".xlsx"):
        df.to_excel(out_path, index=False)
    else:
        df.to_csv(out_path, index=False)

    logger.info(f">>> Saved {len(df)} rows to {out_path}")
    return len(df)


def export_new_since_run(conn: sqlite3.Connection, run_started_iso: str) -> pd.DataFrame:
    """Export listings that were first stored since the given timestamp."""
    q = f"""
    SELECT {", ".join(EXPORT_COLUMNS)}
    FROM listings
    WHERE first_seen >= ?
    ORDER BY first_seen DESC
    """
    return pd.read_sql_query(q, conn, params=(run_started_iso,))
