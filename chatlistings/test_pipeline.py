"""
End-to-end tests for the batch pipeline with in-process collaborators.
"""
import asyncio

import pytest

from chatlistings.collaborators import FieldExtractor, OcrEngine
from chatlistings.database import SqliteListingStore
from chatlistings.models import (
    ExtractionOk,
    ParsedMessage,
    StructuredListing,
    StructuredLocation,
)
from chatlistings.pipeline import (
    confidence_score,
    find_export_files,
    has_essential_data,
    listing_status,
    merge_messages,
    missing_essential_fields,
    process_export,
    process_export_folder,
)

EXPORT = """\
15/03/24, 10:00 AM - Messages and calls are end-to-end encrypted.
15/03/24, 10:01 AM - Alice: 2 BHK for sale in Koramangala, ₹85 lakh
Call 9876543210
15/03/24, 10:02 AM - Bob: Good morning everyone, have a nice day
15/03/24, 10:03 AM - Carol: 2 BHK for sale in Koramangala, ₹85 lakh
Call 9876543210
15/03/24, 10:04 AM - Dan: 1 BHK flat for rent in HSR Layout, Rs. 25000 per month
"""


class ExplodingExtractor(FieldExtractor):
    @property
    def name(self):
        return "exploding"

    async def extract(self, text):
        raise RuntimeError("service down")


class RecordingExtractor(FieldExtractor):
    def __init__(self):
        self.texts = []

    @property
    def name(self):
        return "recording"

    async def extract(self, text):
        self.texts.append(text)
        return ExtractionOk(StructuredListing(property_type="apartment", description=text))


class FakeOcr(OcrEngine):
    async def extract_text(self, image_bytes):
        return image_bytes.decode("utf-8")


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def store(tmp_path):
    s = SqliteListingStore(str(tmp_path / "listings.db"))
    yield s
    s.close()


def test_confidence_and_status():
    full = StructuredListing(
        property_type="apartment", listing_type="sale",
        location=StructuredLocation(area="HSR", city="Bengaluru"),
        price="85 lakh", area="1200 sq ft", bhk=2, description="x",
        contact_info="9876543210", amenities=["gym"],
    )
    assert confidence_score(full) == 100.0
    assert listing_status(100.0) == "verified"
    assert listing_status(70.0) == "needs_review"
    assert listing_status(70.0, threshold=60) == "verified"
    assert missing_essential_fields(full) == []

    sparse = StructuredListing(property_type="Unknown", listing_type="unknown", description="x")
    # listing_type "unknown" is a placeholder, so only the description counts
    assert confidence_score(sparse) == 11.1
    assert not has_essential_data(sparse)


def test_merge_messages_orders_by_timestamp():
    def msg(ts, kind="text"):
        return ParsedMessage(date=ts[:10], time=ts[11:], timestamp=ts, sender_name="a",
                             content=ts, kind=kind)

    text = [msg("2024-03-15T10:00:00"), msg("2024-03-15T12:00:00")]
    images = [msg("2024-03-15T11:00:00", "image"), msg("2024-03-15T10:00:00", "image")]
    merged = merge_messages(text, images)
    assert [m.timestamp for m in merged] == [
        "2024-03-15T10:00:00", "2024-03-15T10:00:00", "2024-03-15T11:00:00", "2024-03-15T12:00:00"]
    assert [m.kind for m in merged[:2]] == ["text", "image"]


def test_same_listing_twice_is_saved_once(store):
    report = run(process_export(EXPORT, "Flats", store=store, delay_seconds=0))

    assert report.total_messages == 4
    assert report.candidate_messages == 3
    assert report.structured_listings == 3
    assert report.duplicates_skipped == 1
    assert report.saved == 2
    assert store.count() == 2

    first = report.listings[0]
    assert first.contact_person == "Alice"
    assert first.contact_phone == "9876543210"
    assert first.source_group == "Flats"
    assert first.raw_data_id is not None
    assert first.fingerprint


def test_rerun_skips_stored_listings(store):
    run(process_export(EXPORT, "Flats", store=store, delay_seconds=0))
    again = run(process_export(EXPORT, "Flats", store=store, delay_seconds=0))
    assert again.saved == 0
    assert again.duplicates_skipped == 3
    assert store.count() == 2


def test_extractor_failure_uses_fallback():
    report = run(process_export(EXPORT, extractor=ExplodingExtractor(), delay_seconds=0))
    assert report.fallback_extractions == 3
    # Alice and Carol posted the same text, so their placeholders collide
    assert report.structured_listings == 3
    assert report.duplicates_skipped == 1
    assert report.saved == 2
    listing = report.listings[0]
    assert listing.extraction_fallback
    assert listing.listing.missing_fields == ["AI processing failed"]
    assert listing.status == "needs_review"


def test_fallback_without_phone_is_kept():
    text = "15/03/24, 10:04 AM - Dan: 1 BHK flat for rent in HSR Layout, Rs. 25000 per month\n"
    report = run(process_export(text, extractor=ExplodingExtractor(), delay_seconds=0))
    assert report.candidate_messages == 1
    assert report.fallback_extractions == 1
    assert report.structured_listings == 1
    assert report.saved == 1
    listing = report.listings[0]
    assert listing.contact_phone is None
    assert listing.listing.description.startswith("1 BHK flat for rent")


def test_short_and_irrelevant_messages_are_not_extracted():
    extractor = RecordingExtractor()
    text = (
        "15/03/24, 10:00 AM - Alice: 2 BHK\n"
        "15/03/24, 10:01 AM - Bob: Anyone up for cricket this weekend?\n"
        "15/03/24, 10:02 AM - Carol: Villa for rent near Whitefield, call me\n"
    )
    report = run(process_export(text, extractor=extractor, delay_seconds=0))
    assert extractor.texts == ["Villa for rent near Whitefield, call me"]
    assert report.candidate_messages == 1


def test_empty_export_reports_zero_counts():
    report = run(process_export("", delay_seconds=0))
    assert report.summary() == {
        "total_messages": 0, "text_messages": 0, "image_messages": 0, "candidate_messages": 0,
        "structured_listings": 0, "fallback_extractions": 0, "duplicates_skipped": 0, "saved": 0,
    }


def test_images_become_listings(tmp_path):
    image = tmp_path / "IMG-20240314-WA0001.jpg"
    image.write_bytes("3 BHK villa for sale in Whitefield, ₹2 crore, call 9123456780".encode("utf-8"))

    report = run(process_export(EXPORT, "Flats", images=[image], ocr=FakeOcr(), delay_seconds=0))
    assert report.image_messages == 1
    assert report.text_messages == 4
    image_listing = report.listings[0]
    assert image_listing.extracted_from_image
    assert image_listing.image_filename == "IMG-20240314-WA0001.jpg"
    assert image_listing.contact_person == "unknown"


def test_images_without_ocr_are_ignored(tmp_path):
    image = tmp_path / "IMG-20240314-WA0001.jpg"
    image.write_bytes(b"irrelevant")
    report = run(process_export(EXPORT, images=[image], delay_seconds=0))
    assert report.image_messages == 0


def test_export_folder(tmp_path, store):
    (tmp_path / "WhatsApp Chat with Flats.txt").write_text(EXPORT, encoding="utf-8")
    (tmp_path / "notes.txt").write_text("ignore me", encoding="utf-8")
    (tmp_path / "IMG-20240314-WA0001.jpg").write_bytes(b"x")

    chat_file, images = find_export_files(tmp_path)
    assert chat_file.name == "WhatsApp Chat with Flats.txt"
    assert [p.name for p in images] == ["IMG-20240314-WA0001.jpg"]

    report = run(process_export_folder(tmp_path, store=store, delay_seconds=0))
    assert report.saved == 2
    assert report.listings[0].source_group == "WhatsApp Chat with Flats"


def test_export_folder_without_transcript(tmp_path):
    with pytest.raises(FileNotFoundError):
        run(process_export_folder(tmp_path))
