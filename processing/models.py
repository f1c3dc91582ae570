"""
Deal Sourcing Dedup Engine - Database Models

SQLAlchemy ORM models for scraped listings and their deduplication state.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


# Enums
class Platform(PyEnum):
    """Marketplace a listing was scraped from."""
    BIZBUYSELL = "BIZBUYSELL"
    BIZQUEST = "BIZQUEST"
    DEALSTREAM = "DEALSTREAM"
    TRANSWORLD = "TRANSWORLD"
    LOOPNET = "LOOPNET"
    BUSINESSBROKER = "BUSINESSBROKER"
    MANUAL = "MANUAL"


class DedupStatus(PyEnum):
    PENDING = "PENDING"
    MERGED = "MERGED"              # Terminal, set by the merge resolver
    NOT_DUPLICATE = "NOT_DUPLICATE"  # Terminal, set by manual review


def generate_uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how DateTime columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class DedupGroup(Base):
    """
    Cluster of listings believed to describe the same business.
    Created the first time a cluster needs one, reused across runs, never deleted.
    """

    __tablename__ = "dedup_groups"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    primary_listing_id: Mapped[Optional[str]] = mapped_column(String(36))

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    listings: Mapped[list["Listing"]] = relationship(back_populates="dedup_group")

    def __repr__(self) -> str:
        return f"<DedupGroup(id={self.id}, primary={self.primary_listing_id})>"


class Listing(Base):
    """
    Business-for-sale listing. Owned by the CRUD layer; the dedup engine only
    writes is_active, dedup_group_id, last_seen_at and null backfill fields.
    """

    __tablename__ = "listings"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    business_name: Mapped[Optional[str]] = mapped_column(Text)
    description: Mapped[Optional[str]] = mapped_column(Text)

    # Financials
    asking_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2))
    revenue: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2))
    ebitda: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2))
    sde: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2))
    cash_flow: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2))
    inventory: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2))
    ffe: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2))
    real_estate: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2))

    # Location
    city: Mapped[Optional[str]] = mapped_column(Text)
    state: Mapped[Optional[str]] = mapped_column(String(50))
    county: Mapped[Optional[str]] = mapped_column(Text)
    zip_code: Mapped[Optional[str]] = mapped_column(String(10), index=True)
    full_address: Mapped[Optional[str]] = mapped_column(Text)

    # Classification
    industry: Mapped[Optional[str]] = mapped_column(Text)
    category: Mapped[Optional[str]] = mapped_column(Text)
    subcategory: Mapped[Optional[str]] = mapped_column(Text)
    naics_code: Mapped[Optional[str]] = mapped_column(String(10))

    # Broker
    broker_name: Mapped[Optional[str]] = mapped_column(Text)
    broker_company: Mapped[Optional[str]] = mapped_column(Text)
    broker_phone: Mapped[Optional[str]] = mapped_column(String(50))
    broker_email: Mapped[Optional[str]] = mapped_column(Text)

    employees: Mapped[Optional[int]] = mapped_column(Integer)
    established: Mapped[Optional[int]] = mapped_column(Integer)
    reason_for_sale: Mapped[Optional[str]] = mapped_column(Text)
    facilities: Mapped[Optional[str]] = mapped_column(Text)

    is_hidden: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    first_seen_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    last_seen_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    dedup_group_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("dedup_groups.id", ondelete="SET NULL"),
        nullable=True, index=True
    )

    # Relationships
    sources: Mapped[list["ListingSource"]] = relationship(back_populates="listing")
    dedup_group: Mapped[Optional["DedupGroup"]] = relationship(back_populates="listings")

    __table_args__ = (
        Index("ix_listings_hidden_active", "is_hidden", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<Listing(id={self.id}, title={self.title[:40]})>"


class ListingSource(Base):
    """
    Provenance of a listing: one row per marketplace page it was scraped from.
    """

    __tablename__ = "listing_sources"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    listing_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("listings.id"), nullable=False, index=True
    )
    platform: Mapped[Platform] = mapped_column(Enum(Platform), nullable=False)
    source_url: Mapped[str] = mapped_column(Text, nullable=False)
    source_id: Mapped[Optional[str]] = mapped_column(String(100))

    first_scraped_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    last_scraped_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )

    listing: Mapped["Listing"] = relationship(back_populates="sources")

    def __repr__(self) -> str:
        return f"<ListingSource(listing={self.listing_id}, platform={self.platform.value})>"


class DedupCandidate(Base):
    """
    Scored pair of listings that may be duplicates.
    listing_a_id is always the lower id, so each unordered pair has one row.
    """

    __tablename__ = "dedup_candidates"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    listing_a_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("listings.id"), nullable=False, index=True
    )
    listing_b_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("listings.id"), nullable=False, index=True
    )

    overall_score: Mapped[float] = mapped_column(Float, nullable=False, index=True)
    name_score: Mapped[Optional[float]] = mapped_column(Float)
    location_score: Mapped[Optional[float]] = mapped_column(Float)
    price_score: Mapped[Optional[float]] = mapped_column(Float)
    revenue_score: Mapped[Optional[float]] = mapped_column(Float)
    description_score: Mapped[Optional[float]] = mapped_column(Float)
    matched_fields: Mapped[Optional[list]] = mapped_column(JSON, default=list)

    status: Mapped[DedupStatus] = mapped_column(
        Enum(DedupStatus), default=DedupStatus.PENDING, nullable=False, index=True
    )
    resolved_by: Mapped[Optional[str]] = mapped_column(String(100))
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    listing_a: Mapped["Listing"] = relationship("Listing", foreign_keys=[listing_a_id])
    listing_b: Mapped["Listing"] = relationship("Listing", foreign_keys=[listing_b_id])

    __table_args__ = (
        UniqueConstraint("listing_a_id", "listing_b_id", name="uq_dedup_candidates_pair"),
    )

    def __repr__(self) -> str:
        return (
            f"<DedupCandidate({self.listing_a_id} <-> {self.listing_b_id}, "
            f"score={self.overall_score:.2f}, status={self.status.value})>"
        )
