"""
Listing Deduplication Module

Entity resolution for scraped business-for-sale listings:
- Blocking on location, zip, price, business name and title words
- Weighted field scoring (Jaro-Winkler, token overlap, numeric tolerance)
- Union-find clustering into dedup groups
- Merge / auto-merge into one canonical listing
"""

from processing.dedup.config import DedupConfig
from processing.dedup.engine import DedupEngine, DedupResult, DedupScanResult
from processing.dedup.merger import ListingMerger, ListingNotFoundError
from processing.dedup.records import CandidatePair, ListingRecord
from processing.dedup.review import CandidateNotFoundError, ReviewQueue

__all__ = [
    "DedupConfig",
    "DedupEngine",
    "DedupResult",
    "DedupScanResult",
    "ListingMerger",
    "ListingNotFoundError",
    "CandidatePair",
    "ListingRecord",
    "ReviewQueue",
    "CandidateNotFoundError",
]
