"""
Interfaces for the services the listing pipeline talks to.

The parser never imports these; the pipeline receives concrete instances
from its caller.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Set

from .models import ExtractionResult, ParsedMessage, ProcessedListing


class FieldExtractor(ABC):
    """Turns listing text into structured fields."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Extractor name for logging."""
        ...

    @abstractmethod
    async def extract(self, text: str) -> ExtractionResult:
        """
        Extract listing fields from free text.

        Returns ExtractionOk, or ExtractionFallback with the reason when the
        extractor had to substitute a degraded result.
        """
        ...


class OcrEngine(ABC):
    """Reads text out of an image."""

    @abstractmethod
    async def extract_text(self, image_bytes: bytes) -> str:
        ...


class Geocoder(ABC):
    """Resolves addresses to coordinates."""

    @abstractmethod
    async def geocode(self, address: str) -> Optional[Any]:
        """Geocode result, or None when the address cannot be resolved."""
        ...

    @abstractmethod
    async def enhance_location(self, location: Any) -> Any:
        """Location with coordinates attached, or the input unchanged."""
        ...


class ListingStore(ABC):
    """Persistence for raw messages and processed listings."""

    @abstractmethod
    def save_raw_message(self, msg: ParsedMessage) -> int:
        ...

    @abstractmethod
    def existing_fingerprints(self) -> Set[str]:
        ...

    @abstractmethod
    def insert_listing(self, processed: ProcessedListing) -> int:
        ...

    @abstractmethod
    def search(self, query: Optional[str] = None, **filters) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def count(self) -> int:
        ...
