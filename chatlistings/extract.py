"""
Media URL and contact extraction from message content.
"""
import re
from typing import List, Optional

from .utils import clean_text, strip_invisible


MEDIA_URL_RE = re.compile(
    r"https?://[^\s]+?\.(?:jpe?g|png|gif|webp|mp4|pdf|docx?)(?=$|[\s)\]>,;!?\"'])",
    re.I,
)

# 10-15 digit numbers, Indian +91 XXXXX XXXXX grouping, or 3-3-4 grouping
PHONE_RE = re.compile(
    r"(?<![\d+])(?:"
    r"(?:\+?\d{1,3}[-\s]?)?\d{5}[-\s]?\d{5}(?!\d)"
    r"|\+?\d{10,15}(?!\d)"
    r"|\d{3}[-.\s]?\d{3}[-.\s]?\d{4}(?!\d)"
    r")"
)


def extract_media_urls(content: str) -> Optional[List[str]]:
    """All media/file URLs in content, or None when there are none."""
    if not content:
        return None
    urls = MEDIA_URL_RE.findall(content)
    return urls or None


def extract_phones(content: str) -> List[str]:
    if not content:
        return []
    return [re.sub(r"[-.\s]", "", m) for m in PHONE_RE.findall(content)]


def extract_phone(content: str) -> Optional[str]:
    """First phone number in content with separators removed."""
    phones = extract_phones(content)
    return phones[0] if phones else None


def clean_sender_name(author: str) -> str:
    """Author label without invisible marks or phone-number-shaped substrings."""
    name = strip_invisible(author or "")
    name = PHONE_RE.sub("", name)
    return clean_text(name)
