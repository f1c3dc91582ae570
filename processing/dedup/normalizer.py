"""
Text canonicalization shared by blocking and scoring.
"""

import re
from typing import Optional

# Legal-entity and generic business suffixes stripped before name comparison
BUSINESS_SUFFIXES = re.compile(
    r"\b(llc|inc|corp|co|ltd|company|incorporated|corporation|limited|"
    r"enterprises?|services?|solutions?|group|holdings?)\b",
    flags=re.IGNORECASE,
)

# Words too common in listing titles to say anything about identity
STOP_WORDS = frozenset({
    "a", "an", "the", "and", "or", "for", "in", "of", "to", "on", "at",
    "is", "it", "by", "with", "from", "as", "this", "that", "are", "was",
    "be", "has", "had", "have", "will", "but", "not", "no", "so", "if",
    "business", "sale", "sold",
})

MIN_TOKEN_LENGTH = 3


def normalize_business_name(name: Optional[str]) -> str:
    """
    Normalize a business name for comparison.

    - Lowercase
    - Remove legal suffixes (LLC, Inc, Corp, Company, Holdings, ...)
    - Remove punctuation
    - Collapse whitespace

    "Denver Electrical Co." and "Denver Electrical Company" both become
    "denver electrical".
    """
    if not name:
        return ""

    normalized = name.lower()
    normalized = BUSINESS_SUFFIXES.sub("", normalized)
    normalized = re.sub(r"[^a-z0-9\s]", "", normalized)
    normalized = re.sub(r"\s+", " ", normalized).strip()

    return normalized


def tokenize(text: Optional[str]) -> frozenset[str]:
    """Split text into significant lowercase words (length > 2, no stop words)."""
    if not text:
        return frozenset()

    words = re.sub(r"[^a-z0-9\s]", " ", text.lower()).split()
    return frozenset(
        w for w in words if len(w) >= MIN_TOKEN_LENGTH and w not in STOP_WORDS
    )


def normalize_key(value: Optional[str]) -> Optional[str]:
    """Case-fold a short field (city, state, zip) for equality checks."""
    if value is None:
        return None
    value = value.strip().lower()
    return value or None
