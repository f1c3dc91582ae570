"""
Persistence for the dedup engine: snapshot loading, group assignment and
candidate upserts.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config.logging import logger
from processing.dedup.clustering import Cluster
from processing.dedup.records import CandidatePair, ListingRecord, pair_key
from processing.models import (
    DedupCandidate,
    DedupGroup,
    DedupStatus,
    Listing,
    ListingSource,
)

# DedupCandidate column -> field score key
SUB_SCORE_COLUMNS = {
    "name_score": "business_name",
    "location_score": "location",
    "price_score": "asking_price",
    "revenue_score": "revenue",
    "description_score": "description",
}


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """Commit everything done inside the block, or roll all of it back."""
    try:
        yield db
        db.commit()
    except Exception as e:
        logger.error(f"Transaction failed, rolling back: {e}")
        db.rollback()
        raise


class DedupRepository:
    """
    Data access for deduplication.

    Usage:
        repo = DedupRepository(db)
        records = repo.fetch_active_listings()
        with unit_of_work(db):
            repo.persist_cluster(cluster, errors)
    """

    def __init__(self, db: Session):
        self.db = db

    def _active_listings_query(self):
        return self.db.query(Listing).filter(
            Listing.is_active.is_(True),
            Listing.is_hidden.is_(False),
        )

    def fetch_active_listings(self) -> list[ListingRecord]:
        """
        Load all active, non-hidden listings as scoring records.

        Each record carries the platform of its earliest-scraped source.
        """
        listings = self._active_listings_query().order_by(Listing.id).all()

        source_rows = (
            self.db.query(ListingSource.listing_id, ListingSource.platform)
            .join(Listing, Listing.id == ListingSource.listing_id)
            .filter(Listing.is_active.is_(True), Listing.is_hidden.is_(False))
            .order_by(ListingSource.first_scraped_at.asc(), ListingSource.id.asc())
            .all()
        )
        first_platform: dict[str, str] = {}
        for listing_id, platform in source_rows:
            first_platform.setdefault(listing_id, platform.value)

        return [
            ListingRecord.from_listing(listing, first_platform.get(listing.id))
            for listing in listings
        ]

    def fetch_recent_listing_ids(self, since: datetime) -> set[str]:
        """Ids of active listings created at or after `since`."""
        rows = (
            self._active_listings_query()
            .filter(Listing.created_at >= since)
            .with_entities(Listing.id)
            .all()
        )
        return {row[0] for row in rows}

    def get_listing(self, listing_id: str) -> Optional[Listing]:
        return self.db.get(Listing, listing_id)

    def get_candidate(self, id1: str, id2: str) -> Optional[DedupCandidate]:
        a_id, b_id = pair_key(id1, id2)
        return self.db.query(DedupCandidate).filter(
            DedupCandidate.listing_a_id == a_id,
            DedupCandidate.listing_b_id == b_id,
        ).first()

    def count_sources(self, listing_id: str) -> int:
        return self.db.query(ListingSource).filter(
            ListingSource.listing_id == listing_id
        ).count()

    def pending_candidates(self, threshold: float) -> list[DedupCandidate]:
        """PENDING candidates at or above threshold, highest score first."""
        return self.db.query(DedupCandidate).filter(
            DedupCandidate.status == DedupStatus.PENDING,
            DedupCandidate.overall_score >= threshold,
        ).order_by(
            DedupCandidate.overall_score.desc(),
            DedupCandidate.listing_a_id,
            DedupCandidate.listing_b_id,
        ).all()

    def count_pending(self) -> int:
        return self.db.query(DedupCandidate).filter(
            DedupCandidate.status == DedupStatus.PENDING
        ).count()

    def create_group(self, primary_listing_id: Optional[str] = None) -> DedupGroup:
        group = DedupGroup(primary_listing_id=primary_listing_id)
        self.db.add(group)
        self.db.flush()
        return group

    def upsert_candidate(self, candidate: CandidatePair) -> DedupCandidate:
        """
        Insert or update the row for this pair.

        Scores are always refreshed. Status is PENDING on insert and left
        untouched on update, so a resolved pair stays resolved.
        """
        a_id, b_id = candidate.key
        sub_scores = {
            column: candidate.field_scores.get(key)
            for column, key in SUB_SCORE_COLUMNS.items()
        }

        row = self.get_candidate(a_id, b_id)
        if row is None:
            row = DedupCandidate(
                listing_a_id=a_id,
                listing_b_id=b_id,
                overall_score=candidate.score,
                matched_fields=list(candidate.matched_fields),
                status=DedupStatus.PENDING,
                **sub_scores,
            )
            self.db.add(row)
        else:
            row.overall_score = candidate.score
            row.matched_fields = list(candidate.matched_fields)
            for column, value in sub_scores.items():
                setattr(row, column, value)

        self.db.flush()
        return row

    def persist_cluster(self, cluster: Cluster, errors: list[str]) -> bool:
        """
        Write one cluster: group membership plus its candidate rows.

        Must run inside a unit of work. Reuses the group of any already-grouped
        member (lowest group id if several), otherwise creates one. Existing
        group assignments are never overwritten. Each upsert gets its own
        SAVEPOINT so one bad pair is reported in `errors` without undoing the
        rest of the cluster.

        Returns True if a new group was created.
        """
        member_ids = sorted(cluster.member_ids)

        existing = (
            self.db.query(Listing.dedup_group_id)
            .filter(Listing.id.in_(member_ids), Listing.dedup_group_id.isnot(None))
            .order_by(Listing.dedup_group_id)
            .first()
        )

        created = False
        if existing is not None:
            group_id = existing[0]
        else:
            group_id = self.create_group().id
            created = True

        self.db.query(Listing).filter(
            Listing.id.in_(member_ids),
            Listing.dedup_group_id.is_(None),
        ).update({Listing.dedup_group_id: group_id}, synchronize_session="fetch")

        for candidate in cluster.candidates:
            a_id, b_id = candidate.key
            try:
                with self.db.begin_nested():
                    self.upsert_candidate(candidate)
            except SQLAlchemyError as e:
                message = f"Failed to upsert candidate {a_id} / {b_id}: {e}"
                logger.warning(message)
                errors.append(message)

        logger.debug(
            f"Persisted cluster of {len(member_ids)} listings into group {group_id} "
            f"({'new' if created else 'existing'})"
        )
        return created
