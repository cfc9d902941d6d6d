"""
Tests for listing fingerprints and batch de-duplication.
"""
from chatlistings.fingerprint import FingerprintSet, fingerprint, is_duplicate
from chatlistings.models import (
    ProcessedListing,
    StructuredListing,
    StructuredLocation,
    StructuredPrice,
)


def make_listing(**overrides):
    fields = dict(
        property_type="apartment",
        listing_type="sale",
        location={"area": "Koramangala", "city": "Bengaluru"},
        price={"value": 8500000, "currency": "INR"},
        area={"value": 1200, "unit": "sq ft"},
        bhk=2,
        description="2 BHK for sale in Koramangala",
        contact_info="9876543210",
    )
    fields.update(overrides)
    return StructuredListing(**fields)


def make_processed(listing, phone="9876543210"):
    return ProcessedListing(
        listing=listing,
        contact_person="Alice",
        contact_phone=phone,
        confidence_score=88.9,
        status="verified",
        needs_followup=False,
        processed_at="2024-03-15T10:00:00+00:00",
    )


def test_key_order_does_not_change_fingerprint():
    a = make_listing(location={"area": "Koramangala", "city": "Bengaluru"})
    b = make_listing(location={"city": "Bengaluru", "area": "Koramangala"})
    assert fingerprint(a) == fingerprint(b)


def test_dataclass_and_dict_locations_match():
    a = make_listing(location={"area": "Koramangala", "city": "Bengaluru"})
    b = make_listing(location=StructuredLocation(area="Koramangala", city="Bengaluru"))
    assert fingerprint(a) == fingerprint(b)


def test_case_and_whitespace_are_ignored():
    a = make_listing(description="  2 BHK for sale in Koramangala ")
    b = make_listing(description="2 bhk FOR SALE in koramangala", property_type="Apartment")
    assert fingerprint(a) == fingerprint(b)


def test_phone_formatting_is_ignored():
    a = make_processed(make_listing(), phone="98765 43210")
    b = make_processed(make_listing(), phone="98765-43210")
    assert fingerprint(a) == fingerprint(b)


def test_different_content_differs():
    assert fingerprint(make_listing()) != fingerprint(make_listing(bhk=3))
    assert fingerprint(make_listing()) != fingerprint(make_listing(price="85 lakh"))


def test_whole_float_bhk_matches_int():
    assert fingerprint(make_listing(bhk=2.0)) == fingerprint(make_listing(bhk=2))


def test_whole_float_price_matches_int():
    a = make_listing(price=StructuredPrice(value=8500000, currency="INR"))
    b = make_listing(price=StructuredPrice(value=8500000.0, currency="INR"))
    c = make_listing(price={"value": 8500000.0, "currency": "INR"})
    assert fingerprint(a) == fingerprint(b) == fingerprint(c)
    assert fingerprint(a) != fingerprint(make_listing(price=StructuredPrice(value=8500000.5, currency="INR")))


def test_row_dict_is_accepted():
    processed = make_processed(make_listing())
    assert fingerprint(processed.to_row()) == fingerprint(processed)


def test_dedupe_within_batch():
    first = make_processed(make_listing())
    second = make_processed(make_listing(location={"city": "Bengaluru", "area": "Koramangala"}))
    other = make_processed(make_listing(bhk=3))

    seen = FingerprintSet()
    unique, skipped = seen.dedupe([first, second, other])
    assert unique == [first, other]
    assert skipped == 1
    assert len(seen) == 2


def test_dedupe_against_existing():
    listing = make_processed(make_listing())
    seen = FingerprintSet([fingerprint(listing)])
    assert fingerprint(listing) in seen
    assert is_duplicate(listing, {fingerprint(listing)})

    unique, skipped = seen.dedupe([listing])
    assert unique == []
    assert skipped == 1
