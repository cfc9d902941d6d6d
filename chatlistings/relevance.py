"""
Heuristic "is this a property listing?" classifier.

A message is a candidate when any strong indicator matches (a BHK count, a
rupee amount, an area with a unit...) or when enough independent weak
categories fire. It is a cheap pre-filter in front of field extraction, not
a guarantee.
"""
import re
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from .lexicon import (
    AMENITIES,
    CONTACT_WORDS,
    PLACE_NAMES,
    PRICE_WORDS,
    PROPERTY_TYPE_WORDS,
    TRANSACTION_WORDS,
    word_pattern,
)


STRONG_INDICATORS: Dict[str, re.Pattern] = {
    "bhk": re.compile(r"\b\d+(?:\.\d+)?\s*(?:bhk|rk)\b", re.I),
    "currency_amount": re.compile(r"(?:₹\s*|\b(?:rs|inr)\.?\s*)\d", re.I),
    "area_unit": re.compile(
        r"\b\d[\d,.]*\s*(?:sq\.?\s*ft|sqft|sft|sq\.?\s*m(?:eters?|trs?)?|square\s+(?:feet|foot|met(?:er|re)s?)"
        r"|sq\.?\s*yards?|sq\.?\s*yds?|acres?|guntas?)\b",
        re.I,
    ),
    "sale_rent_phrase": re.compile(r"\bfor\s+(?:sale|rent|lease|resale)\b|\bto[\s-]let\b", re.I),
    "real_estate_phrase": re.compile(
        r"\breal[\s-]?estate\b|\bbrokers?\b|\bbrokerage\b|\bdirect\s+owner\b|\bowner\s+property\b",
        re.I,
    ),
    "lakh_crore_amount": re.compile(r"\b\d+(?:\.\d+)?\s*(?:lakhs?|lacs?|crores?|cr)\b", re.I),
}

WEAK_CATEGORIES: Dict[str, re.Pattern] = {
    "property_type": word_pattern(PROPERTY_TYPE_WORDS),
    "transaction": word_pattern(TRANSACTION_WORDS),
    "amenity": word_pattern(AMENITIES),
    "location": word_pattern(PLACE_NAMES),
    "price": word_pattern(PRICE_WORDS),
    "contact": word_pattern(CONTACT_WORDS),
}


@dataclass
class RelevanceRules:
    """Tunable thresholds for the classifier."""

    min_weak_signals: int = 2
    enabled_categories: Tuple[str, ...] = tuple(WEAK_CATEGORIES)
    use_strong_indicators: bool = True


DEFAULT_RULES = RelevanceRules()


@dataclass
class RelevanceScore:
    strong: List[str] = field(default_factory=list)
    weak: List[str] = field(default_factory=list)
    accepted: bool = False


def score_text(text: str, rules: RelevanceRules = DEFAULT_RULES) -> RelevanceScore:
    """Which indicators fired for text, and the resulting decision."""
    score = RelevanceScore()
    if not text or not text.strip():
        return score

    if rules.use_strong_indicators:
        score.strong = [name for name, pattern in STRONG_INDICATORS.items() if pattern.search(text)]
    score.weak = [
        name for name, pattern in WEAK_CATEGORIES.items()
        if name in rules.enabled_categories and pattern.search(text)
    ]
    score.accepted = bool(score.strong) or len(score.weak) >= rules.min_weak_signals
    return score


def is_candidate_listing(text: str, rules: RelevanceRules = DEFAULT_RULES) -> bool:
    return score_text(text, rules).accepted
