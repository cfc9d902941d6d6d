"""
SQLite persistence for raw chat messages and processed listings.
"""
import json
import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Set, Tuple

from .collaborators import ListingStore
from .geocoding import calculate_distance
from .models import (
    ParsedMessage,
    ProcessedListing,
    StructuredArea,
    StructuredLocation,
    StructuredPrice,
    normalize_field,
)
from .schemas import SearchFilters
from .utils import now_iso, parse_price, to_float

logger = logging.getLogger(__name__)


# Schema definitions
DDL_RAW_MESSAGES = """
CREATE TABLE IF NOT EXISTS raw_messages (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  date TEXT,
  time TEXT,
  timestamp TEXT,
  sender_name TEXT,
  sender_phone TEXT,
  content TEXT,
  source TEXT,
  source_group TEXT,
  media_urls TEXT,
  kind TEXT,
  filename TEXT,
  created_at TEXT
);
"""

DDL_LISTINGS = """
CREATE TABLE IF NOT EXISTS listings (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  raw_data_id INTEGER REFERENCES raw_messages(id),
  property_type TEXT,
  listing_type TEXT,
  location_json TEXT,
  price_json TEXT,
  area_json TEXT,
  bhk REAL,
  description TEXT,
  contact_info TEXT,
  contact_person TEXT,
  contact_phone TEXT,
  amenities_json TEXT,
  missing_fields_json TEXT,
  confidence_score REAL,
  status TEXT,
  needs_followup INTEGER,
  extracted_from_image INTEGER,
  image_filename TEXT,
  source_group TEXT,
  message_timestamp TEXT,
  processed_at TEXT,
  fingerprint TEXT,
  search_text TEXT,
  price_value REAL,
  area_value REAL,
  city TEXT,
  area_name TEXT,
  latitude REAL,
  longitude REAL,
  first_seen TEXT
);
"""

DDL_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_listings_fingerprint ON listings(fingerprint);",
    "CREATE INDEX IF NOT EXISTS idx_listings_first_seen ON listings(first_seen);",
    "CREATE INDEX IF NOT EXISTS idx_listings_listing_type ON listings(listing_type);",
]

JSON_COLUMNS = {
    "location_json": "location",
    "price_json": "price",
    "area_json": "area",
    "amenities_json": "amenities",
    "missing_fields_json": "missing_fields",
}


def db_connect(path: str) -> sqlite3.Connection:
    """Create database connection with optimized settings."""
    conn = sqlite3.connect(path)
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    return conn


def db_init(conn: sqlite3.Connection):
    """Initialize database schema with tables and indexes."""
    conn.execute(DDL_RAW_MESSAGES)
    conn.execute(DDL_LISTINGS)
    for ddl in DDL_INDEXES:
        conn.execute(ddl)
    conn.commit()


def row_to_dict(cur, row):
    """Convert sqlite3 row tuple to dictionary."""
    return {desc[0]: row[i] for i, desc in enumerate(cur.description)}


def _dumps(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, sort_keys=True, ensure_ascii=False)


def _loads(text: Optional[str]) -> Any:
    if text is None or text == "":
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


def decode_listing_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Stored listing row with JSON columns decoded and flags as booleans."""
    out = dict(row)
    for column, key in JSON_COLUMNS.items():
        out[key] = _loads(out.pop(column, None))
    for key in ("amenities", "missing_fields"):
        if out.get(key) is None:
            out[key] = []
    for key in ("needs_followup", "extracted_from_image"):
        out[key] = bool(out.get(key))
    bhk = out.get("bhk")
    if isinstance(bhk, float) and bhk.is_integer():
        out["bhk"] = int(bhk)
    out.pop("search_text", None)
    return out


def _price_value(price: Any) -> Optional[float]:
    if isinstance(price, StructuredPrice):
        return to_float(price.value)
    text = normalize_field(price)
    if isinstance(text, str):
        return parse_price(text)[0]
    return None


def _area_value(area: Any) -> Optional[float]:
    if isinstance(area, StructuredArea):
        return to_float(area.value)
    text = normalize_field(area)
    if isinstance(text, str):
        return parse_price(text)[0]
    return None


def _location_columns(location: Any) -> Tuple[Optional[str], Optional[str], Optional[float], Optional[float]]:
    """(city, area name, latitude, longitude) for the filterable columns."""
    if isinstance(location, StructuredLocation):
        coords = location.coordinates or {}
        return (location.city, location.area,
                to_float(coords.get("latitude")), to_float(coords.get("longitude")))
    text = normalize_field(location)
    if isinstance(text, str) and text:
        return None, text, None, None
    return None, None, None, None


def build_search_text(processed: ProcessedListing) -> str:
    """Lower-cased blob the free-text search runs against."""
    lst = processed.listing
    parts = [
        lst.description or "",
        lst.property_type or "",
        _dumps(normalize_field(lst.location)) or "",
        _dumps(normalize_field(lst.price)) or "",
        _dumps(normalize_field(lst.area)) or "",
        processed.contact_phone or "",
        lst.contact_info or "",
        " ".join(lst.amenities),
    ]
    return " ".join(p for p in parts if p).lower()


def db_insert_raw_message(conn: sqlite3.Connection, msg: ParsedMessage) -> int:
    """Insert a parsed message and return its row id."""
    cur = conn.cursor()
    cur.execute("""
    INSERT INTO raw_messages (
      date,time,timestamp,sender_name,sender_phone,content,source,source_group,
      media_urls,kind,filename,created_at
    ) VALUES (?,?,?,?,?,?,?,?,?,?,?,?)
    """, (
        msg.date, msg.time, msg.timestamp, msg.sender_name, msg.sender_phone, msg.content,
        msg.source, msg.source_group, _dumps(msg.media_urls), msg.kind, msg.filename, now_iso()
    ))
    conn.commit()
    return cur.lastrowid


def db_insert_listing(conn: sqlite3.Connection, processed: ProcessedListing) -> int:
    """Insert a processed listing and return its row id."""
    lst = processed.listing
    city, area_name, lat, lon = _location_columns(lst.location)
    cur = conn.cursor()
    cur.execute("""
    INSERT INTO listings (
      raw_data_id,property_type,listing_type,location_json,price_json,area_json,bhk,
      description,contact_info,contact_person,contact_phone,amenities_json,missing_fields_json,
      confidence_score,status,needs_followup,extracted_from_image,image_filename,source_group,
      message_timestamp,processed_at,fingerprint,search_text,price_value,area_value,
      city,area_name,latitude,longitude,first_seen
    ) VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)
    """, (
        processed.raw_data_id, lst.property_type, lst.listing_type,
        _dumps(normalize_field(lst.location)), _dumps(normalize_field(lst.price)),
        _dumps(normalize_field(lst.area)), lst.bhk,
        lst.description, lst.contact_info, processed.contact_person, processed.contact_phone,
        _dumps(list(lst.amenities)), _dumps(list(lst.missing_fields)),
        processed.confidence_score, processed.status, int(processed.needs_followup),
        int(processed.extracted_from_image), processed.image_filename, processed.source_group,
        processed.message_timestamp, processed.processed_at, processed.fingerprint,
        build_search_text(processed), _price_value(lst.price), _area_value(lst.area),
        city, area_name, lat, lon, now_iso()
    ))
    conn.commit()
    return cur.lastrowid


def db_fingerprints(conn: sqlite3.Connection) -> Set[str]:
    cur = conn.execute("SELECT fingerprint FROM listings WHERE fingerprint IS NOT NULL")
    return {row[0] for row in cur.fetchall()}


def build_where_clause(filters: SearchFilters, query: Optional[str] = None) -> Tuple[str, List[Any]]:
    """Build WHERE clause and parameters from search filters."""
    where_conditions = []
    parameters = []

    # Text search
    if query and query.strip():
        where_conditions.append("search_text LIKE ?")
        parameters.append(f"%{query.strip().lower()}%")

    if filters.listing_type:
        where_conditions.append("lower(listing_type) = ?")
        parameters.append(filters.listing_type.lower())

    if filters.property_type:
        where_conditions.append("lower(property_type) LIKE ?")
        parameters.append(f"%{filters.property_type.lower()}%")

    if filters.bhk is not None:
        where_conditions.append("bhk = ?")
        parameters.append(filters.bhk)

    if filters.city:
        where_conditions.append("lower(city) = ?")
        parameters.append(filters.city.lower())

    if filters.areas:
        clauses = []
        for area in filters.areas:
            clauses.append("(lower(area_name) LIKE ? OR search_text LIKE ?)")
            term = f"%{area.lower()}%"
            parameters.extend([term, term])
        where_conditions.append("(" + " OR ".join(clauses) + ")")

    # Price range
    if filters.min_price is not None:
        where_conditions.append("(price_value IS NOT NULL AND price_value >= ?)")
        parameters.append(filters.min_price)
    if filters.max_price is not None:
        where_conditions.append("(price_value IS NOT NULL AND price_value <= ?)")
        parameters.append(filters.max_price)

    # Area range
    if filters.min_area is not None:
        where_conditions.append("(area_value IS NOT NULL AND area_value >= ?)")
        parameters.append(filters.min_area)
    if filters.max_area is not None:
        where_conditions.append("(area_value IS NOT NULL AND area_value <= ?)")
        parameters.append(filters.max_area)

    if filters.amenities:
        clauses = ["lower(amenities_json) LIKE ?" for _ in filters.amenities]
        parameters.extend(f"%{a.lower()}%" for a in filters.amenities)
        where_conditions.append("(" + " OR ".join(clauses) + ")")

    if filters.near is not None:
        where_conditions.append("(latitude IS NOT NULL AND longitude IS NOT NULL)")

    where_clause = " WHERE " + " AND ".join(where_conditions) if where_conditions else ""
    return where_clause, parameters


class SqliteListingStore(ListingStore):
    """ListingStore backed by a single SQLite file."""

    def __init__(self, path: str):
        self.path = path
        with self._errors("open"):
            self.conn = db_connect(path)
            db_init(self.conn)

    @contextmanager
    def _errors(self, action: str):
        try:
            yield
        except sqlite3.Error as e:
            logger.error(f"Database error during {action}: {e}")
            raise

    def close(self):
        self.conn.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def save_raw_message(self, msg: ParsedMessage) -> int:
        with self._errors("save_raw_message"):
            return db_insert_raw_message(self.conn, msg)

    def existing_fingerprints(self) -> Set[str]:
        with self._errors("existing_fingerprints"):
            return db_fingerprints(self.conn)

    def insert_listing(self, processed: ProcessedListing) -> int:
        with self._errors("insert_listing"):
            return db_insert_listing(self.conn, processed)

    def count(self) -> int:
        with self._errors("count"):
            return self.conn.execute("SELECT COUNT(*) FROM listings").fetchone()[0]

    def get_listing(self, listing_id: int) -> Optional[Dict[str, Any]]:
        with self._errors("get_listing"):
            cur = self.conn.execute("SELECT * FROM listings WHERE id = ?", (listing_id,))
            r = cur.fetchone()
            return decode_listing_row(row_to_dict(cur, r)) if r else None

    def search(self, query: Optional[str] = None, **filters) -> List[Dict[str, Any]]:
        """
        Listings matching free text and structured filters, newest first.

        With near=(lat, lon, radius_km) only geocoded listings inside the
        radius are returned, closest first, each with a distance_km key.
        """
        parsed = SearchFilters(**filters)
        where_clause, parameters = build_where_clause(parsed, query)
        sql = f"SELECT * FROM listings {where_clause} ORDER BY first_seen DESC, id DESC"
        if parsed.limit is not None and parsed.near is None:
            sql += " LIMIT ?"
            parameters.append(parsed.limit)

        with self._errors("search"):
            cur = self.conn.execute(sql, parameters)
            rows = [decode_listing_row(row_to_dict(cur, r)) for r in cur.fetchall()]

        if parsed.near is not None:
            lat, lon, radius_km = parsed.near
            nearby = []
            for row in rows:
                distance = calculate_distance(lat, lon, row["latitude"], row["longitude"])
                if distance <= radius_km:
                    row["distance_km"] = round(distance, 2)
                    nearby.append(row)
            rows = sorted(nearby, key=lambda r: r["distance_km"])
            if parsed.limit is not None:
                rows = rows[:parsed.limit]
        return rows

    def statistics(self) -> Dict[str, Any]:
        """Counts and price summary over all stored listings."""
        with self._errors("statistics"):
            total = self.conn.execute("SELECT COUNT(*) FROM listings").fetchone()[0]
            raw = self.conn.execute("SELECT COUNT(*) FROM raw_messages").fetchone()[0]
            min_price, max_price, avg_price = self.conn.execute(
                "SELECT MIN(price_value), MAX(price_value), AVG(price_value) FROM listings "
                "WHERE price_value IS NOT NULL"
            ).fetchone()
            by_status = self.conn.execute(
                "SELECT status, COUNT(*) FROM listings GROUP BY status"
            ).fetchall()
            by_type = self.conn.execute(
                "SELECT property_type, COUNT(*) FROM listings WHERE property_type IS NOT NULL "
                "GROUP BY property_type ORDER BY COUNT(*) DESC LIMIT 20"
            ).fetchall()
            by_city = self.conn.execute(
                "SELECT city, COUNT(*) FROM listings WHERE city IS NOT NULL "
                "GROUP BY city ORDER BY COUNT(*) DESC LIMIT 20"
            ).fetchall()

        return {
            "total_listings": total,
            "raw_messages": raw,
            "min_price": min_price,
            "max_price": max_price,
            "avg_price": avg_price,
            "by_status": {status: count for status, count in by_status},
            "by_property_type": {kind: count for kind, count in by_type},
            "by_city": {city: count for city, count in by_city},
        }
