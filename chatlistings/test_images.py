"""
Tests for image type checks, Vision OCR and image pseudo-messages.
"""
import asyncio
import base64
import json

import httpx
import pytest

from chatlistings.collaborators import OcrEngine
from chatlistings.images import (
    GoogleVisionOcr,
    OcrError,
    image_message,
    image_pseudo_messages,
    is_supported_image_type,
)


class FakeOcr(OcrEngine):
    """Returns canned text keyed by image bytes."""

    def __init__(self, texts):
        self.texts = texts

    async def extract_text(self, image_bytes):
        text = self.texts[image_bytes]
        if isinstance(text, Exception):
            raise text
        return text


@pytest.mark.parametrize("filename,mimetype,expected", [
    ("IMG-20240315-WA0007.jpg", None, True),
    ("scan.PNG", None, True),
    ("photo.webp", None, True),
    ("blob", "image/jpeg", True),
    ("notes.pdf", None, False),
    ("clip.mp4", "video/mp4", False),
    (None, None, False),
])
def test_is_supported_image_type(filename, mimetype, expected):
    assert is_supported_image_type(filename, mimetype) is expected


def test_image_message_uses_filename_timestamp():
    msg = image_message("IMG-20240315-WA0007.jpg", "  3 BHK for rent, call 9876543210 ", "Flats")
    assert msg.timestamp == "2024-03-15T00:00:00"
    assert msg.date == "2024-03-15"
    assert msg.time == "00:00:00"
    assert msg.sender_name == "unknown"
    assert msg.sender_phone == "9876543210"
    assert msg.content == "3 BHK for rent, call 9876543210"
    assert msg.kind == "image"
    assert msg.filename == "IMG-20240315-WA0007.jpg"
    assert msg.source_group == "Flats"


def test_image_message_without_date_uses_now():
    msg = image_message("photo.jpg", "2 BHK flat in Whitefield")
    assert msg.date and msg.time
    assert msg.timestamp == f"{msg.date}T{msg.time}"


def test_pseudo_messages_skip_failures_and_short_text(tmp_path):
    good = tmp_path / "IMG-20240315-WA0001.jpg"
    short = tmp_path / "IMG-20240315-WA0002.jpg"
    broken = tmp_path / "IMG-20240315-WA0003.jpg"
    good.write_bytes(b"good")
    short.write_bytes(b"short")
    broken.write_bytes(b"broken")

    ocr = FakeOcr({
        b"good": "2 BHK for rent in HSR Layout",
        b"short": "0123456789",
        b"broken": OcrError("quota exceeded"),
    })
    messages = asyncio.run(image_pseudo_messages([good, short, broken], ocr, "Flats"))

    assert len(messages) == 1
    assert messages[0].filename == "IMG-20240315-WA0001.jpg"
    assert messages[0].content == "2 BHK for rent in HSR Layout"


def test_missing_file_is_skipped(tmp_path):
    messages = asyncio.run(image_pseudo_messages([tmp_path / "gone.jpg"], FakeOcr({})))
    assert messages == []


def test_google_vision_request_and_reply():
    seen = {}

    def handler(request):
        seen["key"] = request.url.params["key"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={
            "responses": [{"textAnnotations": [{"description": "Villa for sale"}, {"description": "Villa"}]}]
        })

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    text = asyncio.run(GoogleVisionOcr("vision-key", client=client).extract_text(b"\x89PNG"))

    assert text == "Villa for sale"
    assert seen["key"] == "vision-key"
    req = seen["body"]["requests"][0]
    assert req["features"] == [{"type": "TEXT_DETECTION"}]
    assert base64.b64decode(req["image"]["content"]) == b"\x89PNG"


def test_google_vision_errors():
    def handler(request):
        return httpx.Response(200, json={"responses": [{"error": {"message": "bad image"}}]})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    with pytest.raises(OcrError, match="bad image"):
        asyncio.run(GoogleVisionOcr("vision-key", client=client).extract_text(b"x"))
    with pytest.raises(OcrError):
        asyncio.run(GoogleVisionOcr(None).extract_text(b"x"))


def test_google_vision_no_text():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"responses": [{}]})))
    assert asyncio.run(GoogleVisionOcr("vision-key", client=client).extract_text(b"x")) == ""
