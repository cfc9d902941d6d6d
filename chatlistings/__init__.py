"""
Property listing extraction from exported group chats.
"""
from .models import (
    BatchReport,
    ExtractionFallback,
    ExtractionOk,
    ParsedMessage,
    ProcessedListing,
    StructuredListing,
)
from .parser import parse_chat
from .pipeline import process_export, process_export_folder
from .relevance import is_candidate_listing

__version__ = "0.1.0"

__all__ = [
    "BatchReport",
    "ExtractionFallback",
    "ExtractionOk",
    "ParsedMessage",
    "ProcessedListing",
    "StructuredListing",
    "is_candidate_listing",
    "parse_chat",
    "process_export",
    "process_export_folder",
]
