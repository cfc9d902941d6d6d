"""
Image handling: supported types, Google Vision OCR, and image pseudo-messages.
"""
import base64
import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Union

import httpx

from .collaborators import OcrEngine
from .extract import extract_phone
from .models import DEFAULT_GROUP, SOURCE_TAG, UNKNOWN_SENDER, ParsedMessage
from .timestamps import now_local_iso, timestamp_from_filename

logger = logging.getLogger(__name__)

SUPPORTED_MIME_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "image/tiff",
    "image/bmp",
}
SUPPORTED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".tiff", ".tif", ".bmp")

# OCR output this short is noise (watermarks, single words)
MIN_OCR_TEXT_LENGTH = 10

VISION_URL = "https://vision.googleapis.com/v1/images:annotate"


class OcrError(Exception):
    """Raised when an OCR backend reports a failure."""


def is_supported_image_type(filename: Optional[str], mimetype: Optional[str] = None) -> bool:
    """True when either the MIME type or the file extension is a supported image type."""
    if mimetype and mimetype.lower() in SUPPORTED_MIME_TYPES:
        return True
    return bool(filename) and filename.lower().endswith(SUPPORTED_EXTENSIONS)


class GoogleVisionOcr(OcrEngine):
    """Text detection through the Cloud Vision REST API."""

    def __init__(self, api_key: Optional[str], client: Optional[httpx.AsyncClient] = None,
                 timeout: float = 30, url: str = VISION_URL):
        self.api_key = api_key
        self.url = url
        self.timeout = timeout
        self._client = client

    @property
    def is_available(self) -> bool:
        return bool(self.api_key)

    async def _post(self, client: httpx.AsyncClient, body: dict) -> dict:
        resp = await client.post(self.url, params={"key": self.api_key}, json=body)
        resp.raise_for_status()
        return resp.json()

    async def extract_text(self, image_bytes: bytes) -> str:
        if not self.is_available:
            raise OcrError("Google Vision API key not configured")

        body = {
            "requests": [{
                "image": {"content": base64.b64encode(image_bytes).decode("ascii")},
                "features": [{"type": "TEXT_DETECTION"}],
            }]
        }
        if self._client is not None:
            data = await self._post(self._client, body)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                data = await self._post(client, body)

        responses = data.get("responses") or [{}]
        first = responses[0]
        if "error" in first:
            raise OcrError(first["error"].get("message", "Vision API error"))
        annotations = first.get("textAnnotations") or []
        text = annotations[0].get("description", "") if annotations else ""
        logger.debug(f"Google Vision extracted text length: {len(text)}")
        return text


def image_message(filename: str, text: str, source_group: str = DEFAULT_GROUP) -> ParsedMessage:
    """Wrap OCR text as a message dated from the file name (or now)."""
    timestamp = timestamp_from_filename(filename) or now_local_iso()
    date_part, _, time_part = timestamp.partition("T")
    content = text.strip()
    return ParsedMessage(
        date=date_part,
        time=time_part[:8],
        timestamp=timestamp,
        sender_name=UNKNOWN_SENDER,
        content=content,
        source_group=source_group,
        sender_phone=extract_phone(content),
        media_urls=None,
        source=SOURCE_TAG,
        kind="image",
        filename=filename,
    )


async def image_pseudo_messages(
    paths: Iterable[Union[str, Path]],
    ocr: OcrEngine,
    source_group: str = DEFAULT_GROUP,
) -> List[ParsedMessage]:
    """
    OCR each image in turn and build one message per readable image.

    A failure on one image is logged and that image is skipped.
    """
    messages = []
    for path in paths:
        name = os.path.basename(str(path))
        try:
            text = await ocr.extract_text(Path(path).read_bytes())
        except Exception as e:
            logger.warning(f"OCR failed for {name}: {e}")
            continue

        if not text or len(text.strip()) <= MIN_OCR_TEXT_LENGTH:
            logger.info(f"No usable text in {name}, skipping")
            continue
        messages.append(image_message(name, text, source_group))
        logger.info(f"Extracted text from {name} ({len(text.strip())} chars)")
    return messages
