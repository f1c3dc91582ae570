#!/usr/bin/env python3
"""
Scheduled dedup scan: deduplicate recently created listings, auto-merge
high-confidence pairs, and report how many candidates await review.

Intended for a weekly cron job.

Usage:
    python scripts/run_dedup_scan.py
    python scripts/run_dedup_scan.py --days 14
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import settings
from processing.database import SessionLocal, init_db
from processing.dedup import DedupEngine


def main():
    parser = argparse.ArgumentParser(description="Weekly listing dedup scan")
    parser.add_argument(
        "--days",
        type=int,
        default=settings.DEDUP_RECENT_DAYS,
        help="Look-back window for recent listings (default: %(default)s)",
    )
    args = parser.parse_args()

    init_db()
    db = SessionLocal()

    try:
        scan = DedupEngine(db).run_dedup_scan(args.days)

        print(f"Candidates found: {scan.candidates_found}")
        print(f"Groups created:   {scan.groups_created}")
        print(f"Auto-merged:      {scan.auto_merged}")
        print(f"Pending review:   {scan.pending_review}")
        if scan.errors:
            print(f"Errors ({len(scan.errors)}):")
            for error in scan.errors[:5]:
                print(f"  {error}")
            sys.exit(1)

    finally:
        db.close()


if __name__ == "__main__":
    main()
