"""
Manual review of dedup candidates: listing, rejecting, merging, CSV export.
"""

import csv
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sqlalchemy.orm import Session

from config.logging import logger
from config.settings import settings
from processing.dedup.merger import ListingMerger
from processing.dedup.repository import unit_of_work
from processing.models import DedupCandidate, DedupStatus, Listing, utcnow


@dataclass
class CandidatePage:
    """One page of candidates with both listings attached."""
    candidates: list[DedupCandidate]
    listings: dict[str, Listing]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.limit) if self.limit else 0


class CandidateNotFoundError(LookupError):
    """Raised when a review action references an unknown candidate."""


class ReviewQueue:
    """
    Human-in-the-loop resolution of candidate pairs.

    Usage:
        queue = ReviewQueue(db)
        page = queue.list_candidates(status=DedupStatus.PENDING)
        queue.resolve(candidate_id, "merge", primary_id=...)
        queue.export_csv()
    """

    ACTIONS = ("merge", "reject")
    EXPORT_PAGE_SIZE = 500

    def __init__(self, db: Session):
        self.db = db
        self.merger = ListingMerger(db)

    def list_candidates(
        self,
        status: Optional[DedupStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> CandidatePage:
        """Candidates ordered by score, highest first, optionally filtered by status."""
        page = max(1, page)
        query = self.db.query(DedupCandidate)
        if status is not None:
            query = query.filter(DedupCandidate.status == status)

        total = query.count()
        candidates = (
            query.order_by(DedupCandidate.overall_score.desc(), DedupCandidate.id)
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        listing_ids = set()
        for c in candidates:
            listing_ids.add(c.listing_a_id)
            listing_ids.add(c.listing_b_id)
        listings = {}
        if listing_ids:
            listings = {
                listing.id: listing
                for listing in self.db.query(Listing).filter(Listing.id.in_(listing_ids))
            }

        return CandidatePage(
            candidates=candidates,
            listings=listings,
            total=total,
            page=page,
            limit=limit,
        )

    def _get(self, candidate_id: str) -> DedupCandidate:
        candidate = self.db.get(DedupCandidate, candidate_id)
        if candidate is None:
            raise CandidateNotFoundError(f"Dedup candidate not found: {candidate_id}")
        return candidate

    def reject(self, candidate_id: str, resolved_by: str = "user") -> DedupCandidate:
        """Mark a pending candidate as not a duplicate."""
        with unit_of_work(self.db):
            candidate = self._get(candidate_id)
            if candidate.status != DedupStatus.PENDING:
                raise ValueError(
                    f"Candidate {candidate_id} already resolved as {candidate.status.value}"
                )
            candidate.status = DedupStatus.NOT_DUPLICATE
            candidate.resolved_by = resolved_by
            candidate.resolved_at = utcnow()

        logger.info(f"[REJECT] {candidate.listing_a_id} <-> {candidate.listing_b_id}")
        return candidate

    def resolve(
        self,
        candidate_id: str,
        action: str,
        primary_id: Optional[str] = None,
        resolved_by: str = "user",
    ) -> tuple[str, Optional[str]]:
        """
        Apply a review decision.

        Args:
            candidate_id: DedupCandidate id
            action: "merge" or "reject"
            primary_id: Listing to keep, required for "merge"

        Returns:
            Tuple of (primary_id, secondary_id); both None for a reject
        """
        if action not in self.ACTIONS:
            raise ValueError(f"Invalid action: {action}")

        if action == "reject":
            self.reject(candidate_id, resolved_by=resolved_by)
            return None, None

        candidate = self._get(candidate_id)
        if primary_id not in (candidate.listing_a_id, candidate.listing_b_id):
            raise ValueError("primary_id must be one of the candidate's listings")

        secondary_id = (
            candidate.listing_b_id
            if primary_id == candidate.listing_a_id
            else candidate.listing_a_id
        )
        self.merger.merge(primary_id, secondary_id, resolved_by=resolved_by)
        return primary_id, secondary_id

    def export_csv(self, path: Optional[Path] = None) -> Path:
        """
        Export pending candidates to CSV for offline review.

        The empty "decision" column is for the reviewer ("merge" / "reject").
        """
        if path is None:
            path = settings.project_root / "data" / "dedup_review_queue.csv"

        path.parent.mkdir(parents=True, exist_ok=True)

        candidates: list[DedupCandidate] = []
        listings: dict[str, Listing] = {}
        page_number = 1
        while True:
            page = self.list_candidates(
                status=DedupStatus.PENDING,
                page=page_number,
                limit=self.EXPORT_PAGE_SIZE,
            )
            candidates.extend(page.candidates)
            listings.update(page.listings)
            if page_number >= page.total_pages:
                break
            page_number += 1

        def listing_summary(listing: Optional[Listing]) -> str:
            if listing is None:
                return ""
            parts = [listing.title]
            if listing.city or listing.state:
                parts.append(f"Loc:{listing.city or ''}, {listing.state or ''}")
            if listing.asking_price is not None:
                parts.append(f"Price:{listing.asking_price}")
            return " | ".join(parts)

        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow([
                "candidate_id",
                "listing_a_id", "listing_a_summary",
                "listing_b_id", "listing_b_summary",
                "overall_score", "matched_fields", "decision",
            ])

            for c in candidates:
                writer.writerow([
                    c.id,
                    c.listing_a_id,
                    listing_summary(listings.get(c.listing_a_id)),
                    c.listing_b_id,
                    listing_summary(listings.get(c.listing_b_id)),
                    f"{c.overall_score:.3f}",
                    ";".join(c.matched_fields or []),
                    "",
                ])

        logger.info(f"Exported {len(candidates)} candidates to {path}")
        return path
