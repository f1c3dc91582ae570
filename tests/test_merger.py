"""
Tests for merging duplicate listings.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from processing.dedup import DedupEngine, ListingMerger, ListingNotFoundError
from processing.models import (
    DedupCandidate,
    DedupGroup,
    DedupStatus,
    Listing,
    ListingSource,
)

EARLY = datetime(2024, 1, 1)
LATE = datetime(2024, 6, 1)


def add_candidate(db, a_id, b_id, score):
    candidate = DedupCandidate(listing_a_id=a_id, listing_b_id=b_id, overall_score=score)
    db.add(candidate)
    db.commit()
    return candidate


def sources_of(db, listing_id):
    return db.query(ListingSource).filter(ListingSource.listing_id == listing_id).count()


class TestMerge:
    def test_merge_moves_everything_to_primary(self, db, make_listing):
        make_listing(
            "primary",
            platforms=("BIZBUYSELL",),
            revenue=1_000_000,
            first_seen_at=EARLY,
        )
        make_listing(
            "secondary",
            platforms=("LOOPNET", "BIZQUEST"),
            revenue=900_000,
            cash_flow=200_000,
            broker_name="Pat Jones",
            first_seen_at=EARLY,
            last_seen_at=LATE,
        )
        add_candidate(db, "primary", "secondary", 0.9)

        ListingMerger(db).merge("primary", "secondary", resolved_by="user")

        primary = db.get(Listing, "primary")
        secondary = db.get(Listing, "secondary")

        assert sources_of(db, "primary") == 3
        assert sources_of(db, "secondary") == 0
        assert secondary.is_active is False
        assert primary.is_active is True

        assert primary.dedup_group_id is not None
        assert primary.dedup_group_id == secondary.dedup_group_id
        group = db.get(DedupGroup, primary.dedup_group_id)
        assert group.primary_listing_id == "primary"

        candidate = db.query(DedupCandidate).one()
        assert candidate.status == DedupStatus.MERGED
        assert candidate.resolved_by == "user"
        assert candidate.resolved_at is not None

        assert primary.last_seen_at == LATE

    def test_backfill_never_overwrites(self, db, make_listing):
        make_listing("primary", revenue=1_000_000, broker_name=None)
        make_listing("secondary", revenue=900_000, cash_flow=200_000, broker_name="Pat Jones")

        ListingMerger(db).merge("primary", "secondary")

        primary = db.get(Listing, "primary")
        assert primary.revenue == Decimal("1000000")
        assert primary.cash_flow == Decimal("200000")
        assert primary.broker_name == "Pat Jones"

    def test_keeps_primary_last_seen_when_later(self, db, make_listing):
        make_listing("primary", first_seen_at=EARLY, last_seen_at=LATE)
        make_listing("secondary", first_seen_at=EARLY)

        ListingMerger(db).merge("primary", "secondary")

        assert db.get(Listing, "primary").last_seen_at == LATE

    def test_reuses_secondary_group(self, db, make_listing):
        group = DedupGroup(primary_listing_id="secondary")
        db.add(group)
        db.flush()
        make_listing("primary")
        make_listing("secondary", dedup_group_id=group.id)

        ListingMerger(db).merge("primary", "secondary")

        assert db.query(DedupGroup).count() == 1
        assert db.get(DedupGroup, group.id).primary_listing_id == "primary"
        assert db.get(Listing, "primary").dedup_group_id == group.id

    def test_merge_without_candidate_row(self, db, make_listing):
        make_listing("primary")
        make_listing("secondary")

        ListingMerger(db).merge("primary", "secondary")

        assert db.get(Listing, "secondary").is_active is False
        assert db.query(DedupCandidate).count() == 0

    def test_missing_listing_changes_nothing(self, db, make_listing):
        make_listing("primary")

        with pytest.raises(ListingNotFoundError):
            ListingMerger(db).merge("primary", "ghost")

        assert sources_of(db, "primary") == 1
        assert db.get(Listing, "primary").dedup_group_id is None
        assert db.query(DedupGroup).count() == 0

    def test_self_merge_rejected(self, db, make_listing):
        make_listing("primary")
        with pytest.raises(ValueError):
            ListingMerger(db).merge("primary", "primary")

    def test_engine_merge_duplicates(self, db, make_listing):
        make_listing("primary")
        make_listing("secondary")
        add_candidate(db, "primary", "secondary", 0.6)

        DedupEngine(db).merge_duplicates("primary", "secondary")

        assert db.query(DedupCandidate).one().resolved_by == "user"


class TestChoosePrimary:
    def test_more_sources_wins(self, db, make_listing):
        make_listing("a", platforms=("BIZBUYSELL",))
        make_listing("b", platforms=("BIZBUYSELL", "LOOPNET"))

        assert ListingMerger(db).choose_primary("a", "b") == ("b", "a")

    def test_tie_goes_to_first_seen(self, db, make_listing):
        make_listing("a", first_seen_at=LATE)
        make_listing("b", first_seen_at=EARLY)

        assert ListingMerger(db).choose_primary("a", "b") == ("b", "a")

    def test_full_tie_keeps_a(self, db, make_listing):
        make_listing("a", first_seen_at=EARLY)
        make_listing("b", first_seen_at=EARLY)

        assert ListingMerger(db).choose_primary("a", "b") == ("a", "b")


class TestAutoMerge:
    def test_merges_above_threshold_only(self, db, make_listing):
        for listing_id in ("a", "b", "c", "d"):
            make_listing(listing_id)
        add_candidate(db, "a", "b", 0.95)
        add_candidate(db, "c", "d", 0.70)

        merged = ListingMerger(db).auto_merge(threshold=0.85)

        assert merged == 1
        statuses = {
            (c.listing_a_id, c.listing_b_id): c.status
            for c in db.query(DedupCandidate)
        }
        assert statuses[("a", "b")] == DedupStatus.MERGED
        assert statuses[("c", "d")] == DedupStatus.PENDING
        resolved = db.query(DedupCandidate).filter(DedupCandidate.listing_a_id == "a").one()
        assert resolved.resolved_by == "system"

    def test_chain_does_not_fold_merged_listing_twice(self, db, make_listing):
        make_listing("a", platforms=("BIZBUYSELL", "LOOPNET"))
        make_listing("b")
        make_listing("c")
        add_candidate(db, "a", "b", 0.95)
        add_candidate(db, "b", "c", 0.90)

        merged = ListingMerger(db).auto_merge(threshold=0.85)

        assert merged == 1
        assert db.get(Listing, "b").is_active is False
        assert db.get(Listing, "c").is_active is True
        chain = db.query(DedupCandidate).filter(DedupCandidate.listing_a_id == "b").one()
        assert chain.status == DedupStatus.PENDING

    def test_primary_by_source_count(self, db, make_listing):
        make_listing("a")
        make_listing("b", platforms=("BIZBUYSELL", "DEALSTREAM"))
        add_candidate(db, "a", "b", 0.9)

        ListingMerger(db).auto_merge(threshold=0.85)

        assert db.get(Listing, "a").is_active is False
        assert sources_of(db, "b") == 3

    def test_failure_does_not_stop_sweep(self, db, make_listing, monkeypatch):
        for listing_id in ("a", "b", "c", "d"):
            make_listing(listing_id)
        add_candidate(db, "a", "b", 0.95)
        add_candidate(db, "c", "d", 0.90)

        original = ListingMerger.merge

        def flaky_merge(self, primary_id, secondary_id, resolved_by="system"):
            if "a" in (primary_id, secondary_id):
                raise RuntimeError("lock timeout")
            return original(self, primary_id, secondary_id, resolved_by=resolved_by)

        monkeypatch.setattr(ListingMerger, "merge", flaky_merge)

        merged = ListingMerger(db).auto_merge(threshold=0.85)

        assert merged == 1
        assert db.get(Listing, "b").is_active is True
        assert db.get(Listing, "d").is_active is False

    def test_engine_default_threshold(self, db, make_listing):
        make_listing("a")
        make_listing("b")
        add_candidate(db, "a", "b", 0.86)

        assert DedupEngine(db).auto_merge_candidates() == 1

    def test_merged_listing_leaves_next_run(self, db, make_listing):
        fields = dict(
            title="Lakeside Marina with Boat Storage",
            business_name="Lakeside Marina",
            asking_price=1_400_000,
            city="Lake Ozark",
            state="MO",
        )
        make_listing("a", **fields)
        make_listing("b", **fields)
        engine = DedupEngine(db)

        engine.run_deduplication()
        engine.merge_duplicates("a", "b")

        assert engine.run_deduplication().candidates_found == 0
