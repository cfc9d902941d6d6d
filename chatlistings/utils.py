"""
Utility functions for text cleanup, price parsing, and logging.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Optional, Tuple


# Directional and isolate marks that chat exports sprinkle around names and system lines
INVISIBLE_MARKS_RE = re.compile(r"[\u200e\u200f\u202a-\u202e\u2066-\u2069]")

CURRENCY_SYMBOLS = {"₹": "INR", "฿": "THB", "$": "USD", "€": "EUR", "£": "GBP"}
CURRENCY_CODES = {"INR": "INR", "RS": "INR", "THB": "THB", "USD": "USD", "EUR": "EUR", "GBP": "GBP"}

# Indian numbering units used in listings ("85 lakh", "1.2 cr")
PRICE_MULTIPLIERS = {
    "lakh": 100_000,
    "lakhs": 100_000,
    "lac": 100_000,
    "lacs": 100_000,
    "crore": 10_000_000,
    "crores": 10_000_000,
    "cr": 10_000_000,
    "k": 1_000,
}

_PRICE_RE = re.compile(
    r"(₹|฿|\$|€|£)?\s?(\d+(?:\.\d+)?)\s*(lakhs?|lacs?|crores?|cr|k)?\b",
    re.I,
)


def init_logger(
    name: str = "chatlistings",
    console_level: str = "INFO",
    file_level: str = "DEBUG",
    log_file: Optional[str] = "chat_listings.log"
) -> logging.Logger:
    """Initialize logger with console and optional file handlers."""
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    if logger.handlers:
        return logger

    console_level_num = getattr(logging, console_level.upper(), logging.INFO)
    ch = logging.StreamHandler()
    ch.setLevel(console_level_num)

    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    if log_file:  # Create file handler only if log_file is provided
        file_level_num = getattr(logging, file_level.upper(), logging.DEBUG)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level_num)
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    return logger


def now_iso() -> str:
    """Return current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


def clean_text(s: Optional[str]) -> str:
    """Clean and normalize text by removing extra whitespace."""
    if not s:
        return ""
    s = re.sub(r"\s+", " ", s)
    return s.strip()


def strip_invisible(s: Optional[str]) -> str:
    """Remove directional/isolate Unicode marks."""
    if not s:
        return ""
    return INVISIBLE_MARKS_RE.sub("", s)


def digits_only(s: Optional[str]) -> str:
    if not s:
        return ""
    return re.sub(r"\D", "", str(s))


def parse_price(price_text: str) -> Tuple[Optional[float], Optional[str]]:
    """
    Parse price text to extract numeric value and currency.

    Understands currency symbols (₹, ฿, $, €, £), codes (INR, Rs, USD, ...)
    and lakh/crore/k multipliers. Lakh and crore amounts default to INR.
    """
    if not price_text:
        return (None, None)

    s = price_text.replace(",", "").replace("\xa0", " ")
    m = _PRICE_RE.search(s)
    cur = None
    val = None

    if m:
        cur = m.group(1)
        try:
            val = float(m.group(2))
        except ValueError:
            val = None
        unit = (m.group(3) or "").lower()
        if val is not None and unit:
            val = val * PRICE_MULTIPLIERS[unit]
        if not cur and unit and unit != "k":
            cur = "INR"

    if not cur:
        m2 = re.search(r"\b(INR|Rs|USD|EUR|GBP|THB)\b", s, re.I)
        if m2:
            cur = m2.group(1).upper()

    if cur in CURRENCY_SYMBOLS:
        cur = CURRENCY_SYMBOLS[cur]
    elif cur:
        cur = CURRENCY_CODES.get(cur, cur)

    return (val, cur)


def to_float(text) -> Optional[float]:
    """Safely convert text to float."""
    if text is None or text == "":
        return None
    try:
        return float(text)
    except (TypeError, ValueError):
        return None
