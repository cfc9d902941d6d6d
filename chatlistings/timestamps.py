"""
Date/time normalization for chat export headers and media file names.
"""
import logging
import re
from datetime import datetime
from typing import Optional

logger = logging.getLogger(__name__)

# Two-digit years up to this value are 20yy, the rest 19yy
TWO_DIGIT_YEAR_PIVOT = 30

_DATE_SPLIT_RE = re.compile(r"[/.\-]")
_TIME_12H_RE = re.compile(r"(\d{1,2}):(\d{2})(?::(\d{2}))?\s*([AaPp][Mm])")
_TIME_24H_RE = re.compile(r"(\d{1,2}):(\d{2})(?::(\d{2}))?")

# Media file names: IMG-20240315-WA0007.jpg, VID-20240315-WA0001.mp4,
# Screenshot_20240315-101530.png, 20240315_photo.jpg
FILENAME_PATTERNS = [
    re.compile(r"IMG-(\d{8})-WA\d+"),
    re.compile(r"VID-(\d{8})-WA\d+"),
    re.compile(r"(\d{8})-(\d{6})"),
    re.compile(r"(\d{8})"),
]


def expand_year(year_token: str) -> int:
    year = int(year_token)
    if len(year_token) <= 2:
        return 2000 + year if year <= TWO_DIGIT_YEAR_PIVOT else 1900 + year
    return year


def normalize_date(date_token: str) -> Optional[str]:
    """
    Convert a D/M/YY or D/M/YYYY token to YYYY-MM-DD.

    Returns None when the token does not have exactly three numeric parts.
    Calendar validity is not checked here.
    """
    if not date_token:
        return None
    parts = [p.strip() for p in _DATE_SPLIT_RE.split(date_token.strip())]
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return None
    day, month, year_token = parts
    year = expand_year(year_token)
    return f"{year:04d}-{month.zfill(2)}-{day.zfill(2)}"


def normalize_time(time_token: str) -> str:
    """
    Convert H:MM[:SS] with optional AM/PM to HH:MM:SS (24-hour).

    Unrecognized tokens are returned stripped so the combination step can fall back.
    """
    token = (time_token or "").strip()
    m = _TIME_12H_RE.search(token)
    if m:
        hours, minutes, seconds, ampm = m.groups()
        hour = int(hours)
        ampm = ampm.upper()
        if ampm == "PM" and hour != 12:
            hour += 12
        elif ampm == "AM" and hour == 12:
            hour = 0
        return f"{hour:02d}:{minutes}:{seconds or '00'}"

    m = _TIME_24H_RE.match(token)
    if m:
        hours, minutes, seconds = m.groups()
        return f"{int(hours):02d}:{minutes}:{seconds or '00'}"
    return token


def now_local_iso() -> str:
    return datetime.now().replace(microsecond=0).isoformat()


def combine_timestamp(date_iso: str, time_iso: str) -> str:
    """Combine normalized date and time; invalid values fall back to now."""
    try:
        return datetime.fromisoformat(f"{date_iso}T{time_iso}").isoformat()
    except (TypeError, ValueError):
        logger.warning(f"Invalid date/time {date_iso!r} {time_iso!r}, using current time")
        return now_local_iso()


def timestamp_from_filename(filename: str) -> Optional[str]:
    """Recover a timestamp hint from a media file name, or None."""
    if not filename:
        return None
    for pattern in FILENAME_PATTERNS:
        m = pattern.search(filename)
        if not m:
            continue
        date_str = m.group(1)
        time_str = m.group(2) if m.lastindex and m.lastindex >= 2 else "000000"
        try:
            ts = datetime(
                int(date_str[0:4]), int(date_str[4:6]), int(date_str[6:8]),
                int(time_str[0:2]), int(time_str[2:4]), int(time_str[4:6]),
            )
        except ValueError:
            continue
        return ts.isoformat()
    return None
