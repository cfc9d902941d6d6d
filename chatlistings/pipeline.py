"""
Batch pipeline: chat export (plus optional images) to stored listings.
"""
import asyncio
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .collaborators import FieldExtractor, ListingStore, OcrEngine
from .fingerprint import FingerprintSet, fingerprint
from .images import image_pseudo_messages, is_supported_image_type
from .models import (
    DEFAULT_GROUP,
    BatchReport,
    ExtractionFallback,
    ExtractionResult,
    ParsedMessage,
    ProcessedListing,
    StructuredListing,
    fallback_listing,
    is_empty_value,
)
from .parser import parse_chat
from .relevance import DEFAULT_RULES, RelevanceRules, is_candidate_listing
from .rules import RuleBasedExtractor
from .utils import now_iso

logger = logging.getLogger(__name__)

# Shorter messages are never worth an extraction call
MIN_CANDIDATE_LENGTH = 20

DEFAULT_CONFIDENCE_THRESHOLD = 70.0

SCORED_FIELDS = (
    "property_type",
    "listing_type",
    "location",
    "price",
    "area",
    "bhk",
    "description",
    "contact_info",
    "amenities",
)
ESSENTIAL_FIELDS = ("property_type", "location", "price", "area", "contact_info")


def confidence_score(listing: StructuredListing) -> float:
    """Percentage of listing fields that carry a real value."""
    filled = sum(1 for name in SCORED_FIELDS if not is_empty_value(getattr(listing, name)))
    return round(100.0 * filled / len(SCORED_FIELDS), 1)


def listing_status(score: float, threshold: float = DEFAULT_CONFIDENCE_THRESHOLD) -> str:
    return "verified" if score > threshold else "needs_review"


def missing_essential_fields(listing: StructuredListing) -> List[str]:
    return [name for name in ESSENTIAL_FIELDS if is_empty_value(getattr(listing, name))]


def has_essential_data(listing: StructuredListing) -> bool:
    return len(missing_essential_fields(listing)) < len(ESSENTIAL_FIELDS)


def merge_messages(text_messages: Sequence[ParsedMessage],
                   image_messages: Sequence[ParsedMessage]) -> List[ParsedMessage]:
    """Chat and image messages in timestamp order; ties keep their input order."""
    return sorted(list(text_messages) + list(image_messages), key=lambda m: m.timestamp)


def build_processed_listing(
    msg: ParsedMessage,
    result: ExtractionResult,
    raw_data_id: Optional[int] = None,
    threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> ProcessedListing:
    listing = result.listing
    score = confidence_score(listing)
    return ProcessedListing(
        listing=listing,
        contact_person=msg.sender_name,
        contact_phone=listing.contact_info or msg.sender_phone,
        confidence_score=score,
        status=listing_status(score, threshold),
        needs_followup=bool(missing_essential_fields(listing)),
        processed_at=now_iso(),
        raw_data_id=raw_data_id,
        source_group=msg.source_group,
        message_timestamp=msg.timestamp,
        extracted_from_image=msg.kind == "image",
        image_filename=msg.filename,
        extraction_fallback=result.is_fallback,
    )


async def _extract(extractor: FieldExtractor, msg: ParsedMessage) -> ExtractionResult:
    try:
        return await extractor.extract(msg.content)
    except Exception as e:
        logger.error(f"{extractor.name} extraction failed, using fallback: {e}")
        reason = "AI processing failed"
        return ExtractionFallback(fallback_listing(msg.content, msg.sender_phone, reason), reason)


async def process_export(
    text: str,
    source_group: str = DEFAULT_GROUP,
    extractor: Optional[FieldExtractor] = None,
    store: Optional[ListingStore] = None,
    images: Iterable[Union[str, Path]] = (),
    ocr: Optional[OcrEngine] = None,
    delay_seconds: float = 0.5,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    rules: RelevanceRules = DEFAULT_RULES,
) -> BatchReport:
    """
    Parse, classify, extract, dedupe and store the listings in one export.

    Per-message failures are logged and never abort the batch; the returned
    report always carries the counts gathered so far.
    """
    extractor = extractor or RuleBasedExtractor()
    report = BatchReport()

    text_messages = parse_chat(text, source_group)
    image_messages: List[ParsedMessage] = []
    images = list(images)
    if images and ocr is not None:
        image_messages = await image_pseudo_messages(images, ocr, source_group)
    elif images:
        logger.warning(f"{len(images)} images supplied without an OCR engine, skipping them")

    messages = merge_messages(text_messages, image_messages)
    report.text_messages = len(text_messages)
    report.image_messages = len(image_messages)
    report.total_messages = len(messages)
    if not messages:
        logger.warning("No valid messages found in export")
        return report

    candidates = [
        m for m in messages
        if len(m.content) >= MIN_CANDIDATE_LENGTH and is_candidate_listing(m.content, rules)
    ]
    report.candidate_messages = len(candidates)
    logger.info(f">>> {len(candidates)} of {len(messages)} messages look like listings")

    processed: List[ProcessedListing] = []
    for i, msg in enumerate(candidates):
        if i > 0 and delay_seconds > 0:
            await asyncio.sleep(delay_seconds)

        raw_data_id = None
        if store is not None:
            try:
                raw_data_id = store.save_raw_message(msg)
            except Exception as e:
                logger.error(f"Could not save raw message from {msg.sender_name}: {e}")

        logger.debug(f"Extracting message {i + 1}/{len(candidates)} with {extractor.name}")
        result = await _extract(extractor, msg)
        if result.is_fallback:
            report.fallback_extractions += 1

        if not result.is_fallback and not has_essential_data(result.listing):
            logger.debug(f"No essential fields in message from {msg.sender_name}, skipping")
            continue
        processed.append(build_processed_listing(msg, result, raw_data_id, confidence_threshold))

    report.structured_listings = len(processed)

    seen = FingerprintSet(store.existing_fingerprints() if store is not None else ())
    unique, report.duplicates_skipped = seen.dedupe(processed)

    for item in unique:
        item.fingerprint = fingerprint(item)
        if store is not None:
            try:
                store.insert_listing(item)
            except Exception as e:
                logger.error(f"Error inserting listing: {e}")
                continue
        report.listings.append(item)
    report.saved = len(report.listings)

    logger.info(f">>> Processed {report.total_messages} messages, saved {report.saved} listings "
                f"({report.duplicates_skipped} duplicates, {report.fallback_extractions} fallbacks)")
    return report


def find_export_files(folder: Union[str, Path]) -> Tuple[Optional[Path], List[Path]]:
    """
    Locate the chat transcript and images in an export folder.

    A .txt file whose name contains "chat" is preferred over other .txt files.
    """
    folder = Path(folder)
    files = sorted(p for p in folder.iterdir() if p.is_file())
    texts = [p for p in files if p.suffix.lower() == ".txt"]
    chat_file = next((p for p in texts if "chat" in p.name.lower()), texts[0] if texts else None)
    images = [p for p in files if is_supported_image_type(p.name)]
    return chat_file, images


async def process_export_folder(
    folder: Union[str, Path],
    extractor: Optional[FieldExtractor] = None,
    store: Optional[ListingStore] = None,
    ocr: Optional[OcrEngine] = None,
    source_group: Optional[str] = None,
    delay_seconds: float = 0.5,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> BatchReport:
    """Run process_export over an unpacked export folder (transcript + media)."""
    chat_file, images = find_export_files(folder)
    if chat_file is None:
        raise FileNotFoundError(f"No chat transcript (.txt) found in {folder}")

    logger.info(f">>> Chat file: {chat_file.name}, {len(images)} images")
    text = chat_file.read_text(encoding="utf-8", errors="replace")
    return await process_export(
        text,
        source_group=source_group or chat_file.stem.strip() or DEFAULT_GROUP,
        extractor=extractor,
        store=store,
        images=images if ocr is not None else (),
        ocr=ocr,
        delay_seconds=delay_seconds,
        confidence_threshold=confidence_threshold,
    )
