#!/usr/bin/env python3
"""
Run listing deduplication on all active listings in the database.

Usage:
    python scripts/run_deduplication.py
    python scripts/run_deduplication.py --recent 7
    python scripts/run_deduplication.py --auto-merge --threshold 0.9
    python scripts/run_deduplication.py --export-review
    python scripts/run_deduplication.py --listing <listing_id>
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from processing.database import SessionLocal, init_db
from processing.dedup import DedupEngine, ReviewQueue
from processing.models import Listing


def main():
    parser = argparse.ArgumentParser(
        description="Find and merge duplicate business-for-sale listings"
    )
    parser.add_argument(
        "--recent",
        type=int,
        metavar="DAYS",
        help="Only score pairs involving listings created in the last DAYS days",
    )
    parser.add_argument(
        "--auto-merge",
        action="store_true",
        help="Auto-merge pending candidates after scoring",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        help="Auto-merge threshold (default from settings)",
    )
    parser.add_argument(
        "--export-review",
        action="store_true",
        help="Export pending candidates to CSV for manual review",
    )
    parser.add_argument(
        "--listing",
        metavar="ID",
        help="Only show likely duplicates of one listing (nothing is written)",
    )

    args = parser.parse_args()

    init_db()
    db = SessionLocal()

    try:
        engine = DedupEngine(db)

        if args.listing:
            matches = engine.find_duplicates_for_listing(args.listing)
            print(f"{len(matches)} likely duplicates of {args.listing}:")
            for match in matches:
                other = match.listing_b_id if match.listing_a_id == args.listing else match.listing_a_id
                print(f"  {other}  score={match.score:.3f}  {', '.join(match.matched_fields)}")
            return

        active_count = db.query(Listing).filter(Listing.is_active.is_(True)).count()

        print("=" * 60)
        print("LISTING DEDUPLICATION")
        print("=" * 60)
        print(f"Active listings: {active_count}")
        print(f"Mode: {f'RECENT ({args.recent} days)' if args.recent else 'FULL'}")
        print("=" * 60)

        if args.recent:
            result = engine.run_recent_deduplication(args.recent)
        else:
            result = engine.run_deduplication()

        print(f"\nCandidates found: {result.candidates_found}")
        print(f"Groups created: {result.groups_created}")
        for error in result.errors:
            print(f"  ERROR: {error}")

        if args.auto_merge:
            merged = engine.auto_merge_candidates(args.threshold)
            print(f"\nAuto-merged: {merged}")

        if args.export_review:
            csv_path = ReviewQueue(db).export_csv()
            print(f"\nReview queue exported to: {csv_path}")

        if not result.ok:
            sys.exit(1)

    finally:
        db.close()


if __name__ == "__main__":
    main()
