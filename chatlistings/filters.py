"""
System-message filter for chat exports.

Exports interleave conversation with audit lines (membership churn, encryption
notices, deleted-message placeholders) that share the normal header format.
"""
import re

from .utils import strip_invisible


MIN_CONTENT_LENGTH = 5

SYSTEM_PHRASES = (
    "messages and calls are end-to-end encrypted",
    "created this group",
    "created group",
    "added you",
    "added +",
    "removed",
    "joined using this group's invite link",
    "left the group",
    "changed the group description",
    "changed the group name",
    "changed the group picture",
    "changed the subject",
    "changed this group's icon",
    "changed their phone number",
    "security code changed",
    "this message was deleted",
    "you deleted this message",
    "<media omitted>",
)

# Leading marks WhatsApp puts on generated lines (LRM, first-strong isolate)
SYSTEM_MARKERS = ("\u200e", "\u2068")

PHONE_ONLY_RE = re.compile(r"^\+?\d{10,15}$")


def is_valid_message(author: str, content: str) -> bool:
    """Return False for system/administrative entries and trivial content."""
    if not author or not content:
        return False

    author = author.strip()
    raw = content.strip()
    clean = strip_invisible(raw).strip()

    if not author or "System" in author:
        return False
    if len(clean) < MIN_CONTENT_LENGTH:
        return False
    if raw.startswith(SYSTEM_MARKERS):
        return False

    lowered = clean.lower()
    if any(phrase in lowered for phrase in SYSTEM_PHRASES):
        return False

    if PHONE_ONLY_RE.match(clean):
        return False

    return True
