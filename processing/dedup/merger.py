"""
Collapsing duplicate listings into one canonical record.
"""

from typing import Optional

from sqlalchemy.orm import Session

from config.logging import logger
from processing.dedup.repository import DedupRepository, unit_of_work
from processing.models import DedupGroup, DedupStatus, Listing, ListingSource, utcnow

# Descriptive / financial fields copied from secondary when primary has none
MERGE_BACKFILL_FIELDS = (
    "business_name",
    "revenue",
    "ebitda",
    "sde",
    "cash_flow",
    "inventory",
    "ffe",
    "real_estate",
    "industry",
    "category",
    "subcategory",
    "naics_code",
    "county",
    "zip_code",
    "full_address",
    "broker_name",
    "broker_company",
    "broker_phone",
    "broker_email",
    "employees",
    "established",
    "reason_for_sale",
    "facilities",
)


class ListingNotFoundError(ValueError):
    """Raised when a merge references a listing that does not exist."""


class ListingMerger:
    """
    Merges a secondary listing into a primary one.

    Usage:
        merger = ListingMerger(db)
        merger.merge(primary_id, secondary_id)
        merged = merger.auto_merge(threshold=0.85)
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = DedupRepository(db)

    def _load(self, listing_id: str) -> Listing:
        listing = self.repo.get_listing(listing_id)
        if listing is None:
            raise ListingNotFoundError(f"Listing not found: {listing_id}")
        return listing

    def merge(
        self,
        primary_id: str,
        secondary_id: str,
        resolved_by: str = "system",
    ) -> Listing:
        """
        Merge secondary into primary in a single transaction.

        - Moves all ListingSources from secondary to primary
        - Marks secondary inactive (kept for audit)
        - Puts both in one DedupGroup with primary as its primary listing
        - Marks the pair's DedupCandidate MERGED, if there is one
        - Keeps the later last_seen_at on primary
        - Fills primary's null fields from secondary; never overwrites

        Raises:
            ListingNotFoundError: if either listing does not exist
            ValueError: if primary and secondary are the same listing
        """
        if primary_id == secondary_id:
            raise ValueError(f"Cannot merge listing {primary_id} into itself")

        with unit_of_work(self.db):
            primary = self._load(primary_id)
            secondary = self._load(secondary_id)

            logger.info(f"Merging listing '{secondary.title}' into '{primary.title}'")

            moved = self.db.query(ListingSource).filter(
                ListingSource.listing_id == secondary_id
            ).update({ListingSource.listing_id: primary_id}, synchronize_session="fetch")

            secondary.is_active = False

            group_id = primary.dedup_group_id or secondary.dedup_group_id
            group = self.db.get(DedupGroup, group_id) if group_id else self.repo.create_group()
            group.primary_listing_id = primary_id
            primary.dedup_group_id = group.id
            secondary.dedup_group_id = group.id

            candidate = self.repo.get_candidate(primary_id, secondary_id)
            if candidate is not None:
                candidate.status = DedupStatus.MERGED
                candidate.resolved_by = resolved_by
                candidate.resolved_at = utcnow()
            else:
                logger.debug(f"No candidate row for {primary_id} / {secondary_id}")

            if secondary.last_seen_at and (
                primary.last_seen_at is None or secondary.last_seen_at > primary.last_seen_at
            ):
                primary.last_seen_at = secondary.last_seen_at

            filled = self._backfill(primary, secondary)

        logger.info(
            f"Merge complete. Moved {moved} sources, backfilled {len(filled)} fields"
            + (f" ({', '.join(filled)})" if filled else "")
        )
        return primary

    def _backfill(self, primary: Listing, secondary: Listing) -> list[str]:
        filled = []
        for field_name in MERGE_BACKFILL_FIELDS:
            primary_value = getattr(primary, field_name)
            secondary_value = getattr(secondary, field_name)
            if primary_value is None and secondary_value is not None:
                setattr(primary, field_name, secondary_value)
                filled.append(field_name)
        return filled

    def choose_primary(self, listing_a_id: str, listing_b_id: str) -> tuple[str, str]:
        """
        Decide which listing survives a merge.

        Prefers the listing with strictly more sources; on a tie, the one
        first seen earlier (listing A if equal).

        Returns:
            Tuple of (primary_id, secondary_id)
        """
        sources_a = self.repo.count_sources(listing_a_id)
        sources_b = self.repo.count_sources(listing_b_id)

        if sources_a > sources_b:
            return listing_a_id, listing_b_id
        if sources_b > sources_a:
            return listing_b_id, listing_a_id

        listing_a = self.repo.get_listing(listing_a_id)
        listing_b = self.repo.get_listing(listing_b_id)
        if listing_a and listing_b and listing_a.first_seen_at <= listing_b.first_seen_at:
            return listing_a_id, listing_b_id
        return listing_b_id, listing_a_id

    def auto_merge(self, threshold: float = 0.85) -> int:
        """
        Merge every PENDING candidate scoring at or above threshold.

        Candidates are processed highest score first. A listing merged away
        earlier in the sweep is not merged again, so a chain A~B, B~C does not
        fold B twice. A failed merge is logged and the sweep continues.

        Returns:
            Number of merges performed
        """
        pending = self.repo.pending_candidates(threshold)
        # Plain tuples: rows are expired by each merge's commit
        pairs = [(c.listing_a_id, c.listing_b_id, c.overall_score) for c in pending]
        logger.info(f"Auto-merge: {len(pairs)} pending candidates >= {threshold:.2f}")

        merge_count = 0
        merged_ids: set[str] = set()

        for listing_a_id, listing_b_id, score in pairs:
            if listing_a_id in merged_ids or listing_b_id in merged_ids:
                logger.debug(f"Skipping {listing_a_id} / {listing_b_id}: already merged this sweep")
                continue

            try:
                if not self._both_active(listing_a_id, listing_b_id):
                    logger.debug(f"Skipping {listing_a_id} / {listing_b_id}: listing inactive")
                    continue

                primary_id, secondary_id = self.choose_primary(listing_a_id, listing_b_id)
                self.merge(primary_id, secondary_id, resolved_by="system")
                merged_ids.add(secondary_id)
                merge_count += 1
                logger.info(
                    f"[AUTO-MERGE] {secondary_id} -> {primary_id} (score: {score:.2f})"
                )
            except Exception as e:
                logger.error(f"Failed to auto-merge {listing_a_id} / {listing_b_id}: {e}")
                self.db.rollback()

        logger.info(f"Auto-merge complete: {merge_count} merges")
        return merge_count

    def _both_active(self, listing_a_id: str, listing_b_id: str) -> bool:
        listing_a: Optional[Listing] = self.repo.get_listing(listing_a_id)
        listing_b: Optional[Listing] = self.repo.get_listing(listing_b_id)
        if listing_a is None or listing_b is None:
            # Let merge() raise ListingNotFoundError for the log
            return True
        return listing_a.is_active and listing_b.is_active
