"""
Pairwise scoring: weighted combination of field similarities.
"""

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

from processing.dedup.config import DedupConfig
from processing.dedup.normalizer import normalize_business_name
from processing.dedup.records import CandidatePair, ListingRecord
from processing.dedup.similarity import (
    exact_match,
    jaro_winkler,
    numeric_match,
    token_overlap_similarity,
)

CROSS_SOURCE = "crossSource"


@dataclass
class PairScore:
    """Overall score for a pair plus the per-field breakdown."""
    score: float = 0.0
    matched_fields: list[str] = field(default_factory=list)
    field_scores: dict[str, float] = field(default_factory=dict)


def _business_name_score(a: ListingRecord, b: ListingRecord) -> float:
    if not a.business_name or not b.business_name:
        return 0.0
    norm_a = normalize_business_name(a.business_name)
    norm_b = normalize_business_name(b.business_name)
    # Names made only of suffix words ("Services Group LLC") fall back to raw text
    if norm_a and norm_b:
        return jaro_winkler(norm_a, norm_b)
    return jaro_winkler(a.business_name, b.business_name)


def _location_score(a: ListingRecord, b: ListingRecord) -> float:
    return exact_match(a.city, b.city) * exact_match(a.state, b.state)


def _optional_jaro_winkler(s1: Optional[str], s2: Optional[str]) -> float:
    if not s1 or not s2:
        return 0.0
    return jaro_winkler(s1, s2)


def score_pair(
    a: ListingRecord,
    b: ListingRecord,
    config: Optional[DedupConfig] = None,
) -> PairScore:
    """
    Compute the weighted similarity score for a pair of listings.

    Records are put in id order first, so score_pair(a, b) and
    score_pair(b, a) are identical.
    """
    config = config or DedupConfig()
    if b.id < a.id:
        a, b = b, a

    field_scores = {
        "title": jaro_winkler(a.title, b.title),
        "business_name": _business_name_score(a, b),
        "asking_price": numeric_match(a.asking_price, b.asking_price, config.price_score_tolerance),
        "revenue": numeric_match(a.revenue, b.revenue, config.revenue_score_tolerance),
        "cash_flow": numeric_match(a.cash_flow, b.cash_flow, config.revenue_score_tolerance),
        "location": _location_score(a, b),
        "industry": exact_match(a.industry, b.industry),
        "broker_name": _optional_jaro_winkler(a.broker_name, b.broker_name),
        "description": token_overlap_similarity(a.description, b.description),
    }

    result = PairScore(field_scores=field_scores)
    for name, value in field_scores.items():
        result.score += value * config.field_weights[name]
        if _field_matched(name, value, config):
            result.matched_fields.append(name)

    # Independent listings of one business on two marketplaces are a stronger
    # signal than a single scraper emitting the same page twice
    if a.platform and b.platform and a.platform != b.platform:
        result.score = min(1.0, result.score + config.cross_source_bonus)
        result.matched_fields.append(CROSS_SOURCE)

    return result


def _field_matched(name: str, value: float, config: DedupConfig) -> bool:
    if name in ("title", "business_name", "broker_name"):
        return value >= config.fuzzy_match_bar
    if name == "description":
        return value > config.description_match_bar
    return value > 0


def score_candidates(
    records: Mapping[str, ListingRecord],
    pairs: Iterable[tuple[str, str]],
    config: Optional[DedupConfig] = None,
    threshold: Optional[float] = None,
) -> list[CandidatePair]:
    """
    Score blocked pairs and keep those at or above the candidate threshold.

    Pairs referring to ids missing from the snapshot are ignored. Output is
    sorted by score descending, then by pair for stable ordering.
    """
    config = config or DedupConfig()
    if threshold is None:
        threshold = config.candidate_threshold

    candidates = []
    for id1, id2 in pairs:
        a = records.get(id1)
        b = records.get(id2)
        if a is None or b is None:
            continue

        pair_score = score_pair(a, b, config)
        if pair_score.score >= threshold:
            low, high = (a, b) if a.id < b.id else (b, a)
            candidates.append(CandidatePair(
                listing_a_id=low.id,
                listing_b_id=high.id,
                score=pair_score.score,
                matched_fields=pair_score.matched_fields,
                field_scores=pair_score.field_scores,
            ))

    candidates.sort(key=lambda c: (-c.score, c.listing_a_id, c.listing_b_id))
    return candidates
