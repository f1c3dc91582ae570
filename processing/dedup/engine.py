"""
Listing Deduplication Engine

Full run:
1. Load all active, non-hidden listings (one snapshot per run)
2. Build candidate pairs via blocking (never a full cross product)
3. Score each pair; keep those >= candidate threshold
4. Cluster kept pairs with union-find
5. Persist each cluster (group + candidate rows) in its own transaction

Auto-merge is a separate step that sweeps persisted candidates above the
auto-merge threshold.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from config.logging import logger
from processing.dedup.blocking import build_candidate_pairs
from processing.dedup.clustering import cluster_candidates
from processing.dedup.config import DedupConfig
from processing.dedup.merger import ListingMerger
from processing.dedup.records import CandidatePair, ListingRecord
from processing.dedup.repository import DedupRepository, unit_of_work
from processing.dedup.scoring import score_candidates
from processing.models import utcnow


@dataclass
class DedupResult:
    """Outcome of a deduplication run."""
    candidates_found: int = 0
    groups_created: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class DedupScanResult:
    """Outcome of the scheduled scan: recent dedup followed by auto-merge."""
    candidates_found: int = 0
    groups_created: int = 0
    auto_merged: int = 0
    pending_review: int = 0
    errors: list[str] = field(default_factory=list)


class DedupEngine:
    """
    Entity resolution for scraped business-for-sale listings.

    Usage:
        engine = DedupEngine(db)
        result = engine.run_deduplication()
        merged = engine.auto_merge_candidates()
    """

    def __init__(
        self,
        db: Session,
        config: Optional[DedupConfig] = None,
    ):
        self.db = db
        self.config = config or DedupConfig.from_settings()
        self.repo = DedupRepository(db)
        self.merger = ListingMerger(db)

    def run_deduplication(self) -> DedupResult:
        """Score and persist candidate duplicates across all active listings."""
        logger.info("Starting full deduplication run")
        return self._run()

    def run_recent_deduplication(self, days: int = 7) -> DedupResult:
        """
        Deduplicate listings created in the last `days` days.

        Blocking still covers every active listing, so a new listing can match
        an old one; only pairs with at least one recent member are scored.
        """
        since = utcnow() - timedelta(days=days)
        logger.info(f"Starting recent deduplication run (since {since:%Y-%m-%d %H:%M})")

        try:
            recent_ids = self.repo.fetch_recent_listing_ids(since)
        except Exception as e:
            return DedupResult(errors=[f"Fatal deduplication error: {e}"])

        if not recent_ids:
            logger.info("No recent listings to deduplicate")
            return DedupResult()

        return self._run(
            pair_filter=lambda id1, id2: id1 in recent_ids or id2 in recent_ids
        )

    def _run(
        self,
        pair_filter: Optional[Callable[[str, str], bool]] = None,
    ) -> DedupResult:
        result = DedupResult()

        try:
            records = self.repo.fetch_active_listings()
            if len(records) < 2:
                logger.info(f"Only {len(records)} active listings, nothing to compare")
                return result

            candidates = self._score_snapshot(records, pair_filter)
            result.candidates_found = len(candidates)
            if not candidates:
                logger.info("No candidate duplicates found")
                return result

            clusters = cluster_candidates(candidates, self.config.candidate_threshold)
            logger.info(
                f"Found {len(candidates)} candidate pairs in {len(clusters)} clusters"
            )

            for cluster in clusters:
                with unit_of_work(self.db):
                    created = self.repo.persist_cluster(cluster, result.errors)
                if created:
                    result.groups_created += 1

        except Exception as e:
            message = f"Fatal deduplication error: {e}"
            logger.error(message)
            result.errors.append(message)
            return result

        logger.info("=" * 60)
        logger.info("DEDUPLICATION COMPLETE")
        logger.info("=" * 60)
        logger.info(f"Candidates found: {result.candidates_found}")
        logger.info(f"Groups created: {result.groups_created}")
        logger.info(f"Errors: {len(result.errors)}")
        logger.info("=" * 60)

        return result

    def _score_snapshot(
        self,
        records: list[ListingRecord],
        pair_filter: Optional[Callable[[str, str], bool]] = None,
    ) -> list[CandidatePair]:
        # Per-run lookup map, discarded with the run
        by_id = {record.id: record for record in records}

        pairs = build_candidate_pairs(records, self.config)
        if pair_filter is not None:
            pairs = {p for p in pairs if pair_filter(*p)}
        logger.info(f"Blocking produced {len(pairs)} pairs from {len(records)} listings")

        return score_candidates(by_id, pairs, self.config)

    def find_duplicates_for_listing(self, listing_id: str) -> list[CandidatePair]:
        """
        Score one listing against the active set, best match first.

        Nothing is persisted. Returns an empty list if the listing is not
        active or the snapshot cannot be loaded.
        """
        try:
            records = self.repo.fetch_active_listings()
        except Exception as e:
            logger.error(f"Failed to load listings for {listing_id}: {e}")
            return []

        if not any(record.id == listing_id for record in records):
            logger.debug(f"Listing {listing_id} not active, no duplicates to find")
            return []

        return self._score_snapshot(
            records,
            pair_filter=lambda id1, id2: listing_id in (id1, id2),
        )

    def merge_duplicates(
        self,
        primary_id: str,
        secondary_id: str,
        resolved_by: str = "user",
    ) -> None:
        """Manually merge secondary into primary."""
        self.merger.merge(primary_id, secondary_id, resolved_by=resolved_by)

    def auto_merge_candidates(self, threshold: Optional[float] = None) -> int:
        """
        Merge pending candidates at or above threshold; returns merge count.

        A failure to load the pending candidates is logged and counts as
        zero merges.
        """
        if threshold is None:
            threshold = self.config.auto_merge_threshold
        try:
            return self.merger.auto_merge(threshold)
        except Exception as e:
            logger.error(f"Auto-merge failed: {e}")
            self.db.rollback()
            return 0

    def run_dedup_scan(self, days: int = 7) -> DedupScanResult:
        """
        Scheduled scan: dedup recent listings, auto-merge high-confidence
        pairs, then count what is left for manual review.
        """
        recent = self.run_recent_deduplication(days)
        scan = DedupScanResult(
            candidates_found=recent.candidates_found,
            groups_created=recent.groups_created,
            errors=list(recent.errors),
        )

        try:
            scan.auto_merged = self.merger.auto_merge(self.config.auto_merge_threshold)
        except Exception as e:
            scan.errors.append(f"Auto-merge error: {e}")
            self.db.rollback()

        try:
            scan.pending_review = self.repo.count_pending()
        except Exception as e:
            scan.errors.append(f"Pending count error: {e}")

        logger.info(
            f"Dedup scan: {scan.candidates_found} candidates, {scan.auto_merged} auto-merged, "
            f"{scan.groups_created} groups, {scan.pending_review} pending review"
        )
        return scan
