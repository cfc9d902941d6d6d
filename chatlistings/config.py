"""
Configuration and settings management.
"""
import os
from typing import Optional


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


class Config:
    """Application configuration."""

    # Database
    DB_PATH: str = os.getenv("CHAT_LISTINGS_DB", "./data/chat_listings.db")

    # Model-based extraction (OpenAI-compatible endpoint)
    OPENAI_API_KEY: Optional[str] = os.getenv("OPENAI_API_KEY") or None
    OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-3.5-turbo")

    # Geocoding and OCR
    GOOGLE_MAPS_API_KEY: Optional[str] = os.getenv("GOOGLE_MAPS_API_KEY") or None
    GOOGLE_VISION_API_KEY: Optional[str] = (
        os.getenv("GOOGLE_VISION_API_KEY") or os.getenv("GOOGLE_MAPS_API_KEY") or None
    )

    # Pipeline
    EXTRACTION_DELAY_SECONDS: float = _float_env("EXTRACTION_DELAY_SECONDS", 0.5)
    CONFIDENCE_THRESHOLD: float = _float_env("CONFIDENCE_THRESHOLD", 70.0)
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def validate(cls, require_db: bool = False) -> None:
        """Validate configuration on startup."""
        if require_db and not os.path.exists(cls.DB_PATH):
            raise FileNotFoundError(f"Database file not found: {cls.DB_PATH}")
        if cls.EXTRACTION_DELAY_SECONDS < 0:
            raise ValueError("EXTRACTION_DELAY_SECONDS must not be negative")
        if not 0 <= cls.CONFIDENCE_THRESHOLD <= 100:
            raise ValueError("CONFIDENCE_THRESHOLD must be between 0 and 100")


# Global config instance
config = Config()
