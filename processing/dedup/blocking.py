"""
Blocking: cheap keys that decide which listing pairs get scored at all.

A pair is a candidate if it shares ANY block:
  1. Same city + state
  2. Same zip code
  3. Asking price within 10% (sorted-neighbor scan)
  4. Same normalized business name
  5. Title word overlap (3+ significant words)
"""

from collections import defaultdict
from typing import Hashable, Iterable, Optional, Sequence

from processing.dedup.config import DedupConfig
from processing.dedup.normalizer import normalize_business_name, normalize_key, tokenize
from processing.dedup.records import ListingRecord, pair_key

Pair = tuple[str, str]

BLOCK_CITY_STATE = "city_state"
BLOCK_ZIP = "zip_code"
BLOCK_PRICE = "asking_price"
BLOCK_NAME = "business_name"
BLOCK_TITLE = "title_words"


def add_block_pairs(block: Sequence[str], pairs: set[Pair], max_block_size: int) -> None:
    """
    Add every pair inside one bucket to the pair set.

    Buckets larger than max_block_size are truncated, so a pathological key
    (hundreds of listings in one zip code) yields at most
    max_block_size * (max_block_size - 1) / 2 pairs.
    """
    limited = block[:max_block_size]
    for i, id1 in enumerate(limited):
        for id2 in limited[i + 1:]:
            if id1 != id2:
                pairs.add(pair_key(id1, id2))


def _pairs_by_key(
    records: Iterable[ListingRecord],
    key_fn,
    max_block_size: int,
) -> set[Pair]:
    buckets: dict[Hashable, list[str]] = defaultdict(list)
    for record in records:
        key = key_fn(record)
        if key is not None:
            buckets[key].append(record.id)

    pairs: set[Pair] = set()
    for block in buckets.values():
        if len(block) > 1:
            add_block_pairs(block, pairs, max_block_size)
    return pairs


def _city_state_key(record: ListingRecord) -> Optional[tuple[str, str]]:
    city = normalize_key(record.city)
    state = normalize_key(record.state)
    if city is None or state is None:
        return None
    return (city, state)


def _zip_key(record: ListingRecord) -> Optional[str]:
    return normalize_key(record.zip_code)


def city_state_pairs(records: Sequence[ListingRecord], config: DedupConfig) -> set[Pair]:
    return _pairs_by_key(records, _city_state_key, config.max_block_size)


def zip_code_pairs(records: Sequence[ListingRecord], config: DedupConfig) -> set[Pair]:
    return _pairs_by_key(records, _zip_key, config.max_block_size)


def business_name_pairs(records: Sequence[ListingRecord], config: DedupConfig) -> set[Pair]:
    def name_key(record: ListingRecord) -> Optional[str]:
        normalized = normalize_business_name(record.business_name)
        if len(normalized) < config.min_name_block_length:
            return None
        return normalized

    return _pairs_by_key(records, name_key, config.max_block_size)


def price_gap(price_a: float, price_b: float) -> float:
    """Relative gap between two prices, measured against their mean."""
    return abs(price_a - price_b) / ((price_a + price_b) / 2)


def asking_price_pairs(records: Sequence[ListingRecord], config: DedupConfig) -> set[Pair]:
    """
    Sorted-neighbor scan over asking price.

    With prices sorted ascending, price_gap(p_i, p_j) only grows as j moves
    right, so the inner loop stops at the first neighbor outside tolerance.
    Each record looks at no more than max_block_size neighbors.
    """
    priced = sorted(
        (r for r in records if r.asking_price is not None and r.asking_price > 0),
        key=lambda r: (r.asking_price, r.id),
    )

    pairs: set[Pair] = set()
    for i, left in enumerate(priced):
        window_end = min(len(priced), i + 1 + config.max_block_size)
        for right in priced[i + 1:window_end]:
            if price_gap(left.asking_price, right.asking_price) > config.price_block_tolerance:
                break
            pairs.add(pair_key(left.id, right.id))
    return pairs


def title_overlap_pairs(records: Sequence[ListingRecord], config: DedupConfig) -> set[Pair]:
    """
    Pairs sharing at least title_overlap_min significant title words.

    Uses an inverted index word -> listing ids and counts co-occurrences per
    listing, instead of intersecting every pair of word sets.
    """
    listing_words: dict[str, frozenset[str]] = {}
    word_index: dict[str, list[str]] = defaultdict(list)

    for record in records:
        words = tokenize(record.title)
        listing_words[record.id] = words
        for word in words:
            postings = word_index[word]
            if len(postings) < config.max_block_size:
                postings.append(record.id)

    pairs: set[Pair] = set()
    for listing_id, words in listing_words.items():
        overlap_counts: dict[str, int] = defaultdict(int)
        for word in words:
            postings = word_index.get(word, ())
            if listing_id not in postings:
                continue
            for other_id in postings:
                if other_id != listing_id:
                    overlap_counts[other_id] += 1

        for other_id, count in overlap_counts.items():
            if count >= config.title_overlap_min:
                pairs.add(pair_key(listing_id, other_id))
    return pairs


BLOCKERS = {
    BLOCK_CITY_STATE: city_state_pairs,
    BLOCK_ZIP: zip_code_pairs,
    BLOCK_PRICE: asking_price_pairs,
    BLOCK_NAME: business_name_pairs,
    BLOCK_TITLE: title_overlap_pairs,
}


def build_blocks(
    records: Sequence[ListingRecord],
    config: Optional[DedupConfig] = None,
) -> dict[str, set[Pair]]:
    """Candidate pairs produced by each blocking strategy, keyed by block name."""
    config = config or DedupConfig()
    return {name: blocker(records, config) for name, blocker in BLOCKERS.items()}


def build_candidate_pairs(
    records: Sequence[ListingRecord],
    config: Optional[DedupConfig] = None,
) -> set[Pair]:
    """Union of all blocks: the deduplicated set of unordered pairs to score."""
    pairs: set[Pair] = set()
    for block_pairs in build_blocks(records, config).values():
        pairs |= block_pairs
    return pairs
