"""
Shared fixtures for the dedup tests: an in-memory SQLite database and a
listing factory.
"""

import sys
from datetime import timedelta
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from processing.database import enable_sqlite_savepoints
from processing.dedup.records import ListingRecord
from processing.models import Base, Listing, ListingSource, Platform, utcnow


@pytest.fixture
def db():
    """Fresh in-memory database per test."""
    engine = enable_sqlite_savepoints(create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    ))
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    session = Session()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def make_listing(db):
    """
    Create and commit a Listing with one ListingSource per platform.

    Money fields accept ints and are stored as Decimal.
    """

    def _make(listing_id: str, platforms=("BIZBUYSELL",), **fields) -> Listing:
        for money in ("asking_price", "revenue", "cash_flow", "ebitda", "sde"):
            if fields.get(money) is not None:
                fields[money] = Decimal(str(fields[money]))
        fields.setdefault("title", f"Listing {listing_id}")

        seen = fields.pop("first_seen_at", None) or utcnow()
        listing = Listing(
            id=listing_id,
            first_seen_at=seen,
            last_seen_at=fields.pop("last_seen_at", seen),
            created_at=fields.pop("created_at", seen),
            **fields,
        )
        db.add(listing)

        for i, platform in enumerate(platforms):
            db.add(ListingSource(
                listing_id=listing_id,
                platform=Platform(platform),
                source_url=f"https://{platform.lower()}.example.com/{listing_id}/{i}",
                first_scraped_at=seen + timedelta(minutes=i),
            ))

        db.commit()
        return listing

    return _make


@pytest.fixture
def denver_pair():
    """Two scrapes of the same electrical contractor."""
    a = ListingRecord(
        id="denver-a",
        title="Denver Electrical Co for Sale",
        business_name="Denver Electrical Co",
        asking_price=500_000.0,
        city="Denver",
        state="CO",
        platform="BIZBUYSELL",
    )
    b = ListingRecord(
        id="denver-b",
        title="Denver Electrical Company - For Sale",
        business_name="Denver Electrical Company",
        asking_price=510_000.0,
        city="Denver",
        state="CO",
        platform="BIZBUYSELL",
    )
    return a, b

