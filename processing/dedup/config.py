"""
Tunable thresholds and weights for listing deduplication.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from config.settings import settings

FIELD_WEIGHTS: Mapping[str, float] = MappingProxyType({
    "title": 0.25,
    "business_name": 0.15,
    "asking_price": 0.20,
    "revenue": 0.10,
    "cash_flow": 0.05,
    "location": 0.10,
    "industry": 0.05,
    "broker_name": 0.05,
    "description": 0.05,
})


@dataclass(frozen=True)
class DedupConfig:
    """Configuration for a deduplication run."""
    # Minimum overall score for a pair to be recorded as a candidate
    candidate_threshold: float = 0.50

    # Score at or above which auto-merge picks up a candidate
    auto_merge_threshold: float = 0.85

    # Blocking
    price_block_tolerance: float = 0.10
    title_overlap_min: int = 3
    max_block_size: int = 100
    min_name_block_length: int = 3

    # Scoring
    price_score_tolerance: float = 0.05
    revenue_score_tolerance: float = 0.10
    cross_source_bonus: float = 0.10
    fuzzy_match_bar: float = 0.8
    description_match_bar: float = 0.5

    field_weights: Mapping[str, float] = field(default_factory=lambda: FIELD_WEIGHTS)

    @classmethod
    def from_settings(cls) -> "DedupConfig":
        return cls(
            candidate_threshold=settings.DEDUP_CANDIDATE_THRESHOLD,
            auto_merge_threshold=settings.DEDUP_AUTO_MERGE_THRESHOLD,
            max_block_size=settings.DEDUP_MAX_BLOCK_SIZE,
        )
