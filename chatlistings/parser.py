"""
Chat export parser.

Turns a plain-text group chat export into ParsedMessage records in a single
linear pass: each line either opens a new message (it matches one of the
header dialects below) or continues the message that is currently open.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from .extract import clean_sender_name, extract_media_urls, extract_phone
from .filters import is_valid_message
from .models import DEFAULT_GROUP, SOURCE_TAG, ParsedMessage
from .timestamps import combine_timestamp, normalize_date, normalize_time
from .utils import strip_invisible

logger = logging.getLogger(__name__)


_LEAD = r"^[\u200e\u200f]?"
_DATE = r"(\d{1,2}[/.]\d{1,2}[/.]\d{2,4})"
_HMS_AMPM = r"(\d{1,2}:\d{2}:\d{2}\s*[AaPp][Mm])"
_HM_AMPM = r"(\d{1,2}:\d{2}\s*[AaPp][Mm])"
_HMS = r"(\d{1,2}:\d{2}:\d{2})"
_HM = r"(\d{1,2}:\d{2})"
_AUTHOR_MSG = r"([^:]+?):\s*(.*)$"


def _bracket(time_re: str) -> re.Pattern:
    return re.compile(_LEAD + r"\[" + _DATE + r",\s*" + time_re + r"\]\s*" + _AUTHOR_MSG)


def _dash(time_re: str) -> re.Pattern:
    return re.compile(_LEAD + _DATE + r",\s*" + time_re + r"\s*-\s*" + _AUTHOR_MSG)


# Tried top to bottom; the first match wins. Seconds-bearing and AM/PM forms
# come before the shorter forms. The two authorless dialects at the end catch
# generated lines ("Alice added Bob") so they close the previous message
# instead of being glued onto it; they never survive the system filter.
HEADER_DIALECTS: List[Tuple[str, re.Pattern]] = [
    ("bracket_hms_ampm", _bracket(_HMS_AMPM)),
    ("bracket_hm_ampm", _bracket(_HM_AMPM)),
    ("bracket_hms", _bracket(_HMS)),
    ("bracket_hm", _bracket(_HM)),
    ("dash_hms_ampm", _dash(_HMS_AMPM)),
    ("dash_hm_ampm", _dash(_HM_AMPM)),
    ("dash_hms", _dash(_HMS)),
    ("dash_hm", _dash(_HM)),
    ("bracket_system", re.compile(
        _LEAD + r"\[" + _DATE + r",\s*(\d{1,2}:\d{2}(?::\d{2})?(?:\s*[AaPp][Mm])?)\]\s*(.*)$")),
    ("dash_system", re.compile(
        _LEAD + _DATE + r",\s*(\d{1,2}:\d{2}(?::\d{2})?(?:\s*[AaPp][Mm])?)\s*-\s*(.*)$")),
]

SYSTEM_DIALECTS = {"bracket_system", "dash_system"}


@dataclass
class HeaderMatch:
    dialect: str
    date: str
    time: str
    author: str
    text: str


def classify_line(line: str, dialects: Iterable[Tuple[str, re.Pattern]] = HEADER_DIALECTS) -> Optional[HeaderMatch]:
    """Return the header fields if the line opens a new message, else None."""
    for name, pattern in dialects:
        m = pattern.match(line)
        if not m:
            continue
        if name in SYSTEM_DIALECTS:
            date_part, time_part, text = m.groups()
            return HeaderMatch(name, date_part, time_part, "", text)
        date_part, time_part, author, text = m.groups()
        return HeaderMatch(name, date_part, time_part, author.strip(), text)
    return None


def build_message(header: HeaderMatch, content: str,
                  source_group: str = DEFAULT_GROUP) -> Optional[ParsedMessage]:
    """
    Build a ParsedMessage from a header and its joined body.

    Returns None when the header's date fragment cannot be normalized.
    """
    iso_date = normalize_date(header.date)
    if iso_date is None:
        logger.warning(f"Invalid date format: {header.date!r}")
        return None
    iso_time = normalize_time(header.time)

    body = strip_invisible(content).strip()
    return ParsedMessage(
        date=iso_date,
        time=iso_time,
        timestamp=combine_timestamp(iso_date, iso_time),
        sender_name=clean_sender_name(header.author),
        content=body,
        source_group=source_group,
        sender_phone=extract_phone(body),
        media_urls=extract_media_urls(body),
        source=SOURCE_TAG,
    )


@dataclass
class _OpenMessage:
    header: HeaderMatch
    lines: List[str] = field(default_factory=list)


class MessageAssembler:
    """
    Incremental line-by-line message builder.

    Call feed() for every line of the export, then finish() to get the messages.
    Lines seen before the first header are dropped.
    """

    def __init__(self, source_group: str = DEFAULT_GROUP,
                 dialects: Iterable[Tuple[str, re.Pattern]] = HEADER_DIALECTS):
        self.source_group = source_group or DEFAULT_GROUP
        self.dialects = list(dialects)
        self.messages: List[ParsedMessage] = []
        self.rejected = 0
        self.orphan_lines = 0
        self._current: Optional[_OpenMessage] = None

    def feed(self, line: str) -> None:
        header = classify_line(line, self.dialects)
        if header is not None:
            self._flush()
            self._current = _OpenMessage(header, [header.text])
        elif self._current is not None:
            self._current.lines.append(line)
        elif line.strip():
            self.orphan_lines += 1

    def finish(self) -> List[ParsedMessage]:
        self._flush()
        return self.messages

    def _flush(self) -> None:
        current, self._current = self._current, None
        if current is None:
            return

        content = "\n".join(current.lines)
        if not is_valid_message(current.header.author, content):
            self.rejected += 1
            return

        msg = build_message(current.header, content, self.source_group)
        if msg is None:
            self.rejected += 1
            return
        self.messages.append(msg)


def normalize_export_text(text: str) -> str:
    """Strip a leading BOM and normalize line endings to \\n."""
    if text.startswith("\ufeff"):
        text = text[1:]
    return text.replace("\r\n", "\n").replace("\r", "\n")


def parse_chat(text: str, source_group: str = DEFAULT_GROUP) -> List[ParsedMessage]:
    """
    Parse a chat export into messages, oldest first.

    Never raises: unexpected failures are logged and yield an empty list.
    """
    if not text or not isinstance(text, str):
        logger.error("Invalid chat content provided to parser")
        return []

    try:
        assembler = MessageAssembler(source_group)
        for line in normalize_export_text(text).split("\n"):
            assembler.feed(line)
        messages = assembler.finish()
    except Exception:
        logger.exception("Error parsing chat export")
        return []

    logger.info(f"Parsed {len(messages)} valid messages from chat content "
                f"({assembler.rejected} rejected, {assembler.orphan_lines} orphan lines)")
    return messages
