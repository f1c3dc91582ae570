"""
In-memory shapes used while scoring a snapshot of listings.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from processing.models import Listing


def pair_key(id1: str, id2: str) -> tuple[str, str]:
    """Canonical ordering for an unordered pair: lower id first."""
    return (id1, id2) if id1 < id2 else (id2, id1)


def _to_float(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value else None


@dataclass(frozen=True)
class ListingRecord:
    """Lightweight, immutable projection of a Listing used for scoring."""
    id: str
    title: str
    business_name: Optional[str] = None
    asking_price: Optional[float] = None
    revenue: Optional[float] = None
    cash_flow: Optional[float] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    industry: Optional[str] = None
    broker_name: Optional[str] = None
    description: Optional[str] = None
    platform: Optional[str] = None

    @classmethod
    def from_listing(cls, listing: Listing, platform: Optional[str] = None) -> "ListingRecord":
        return cls(
            id=listing.id,
            title=listing.title or "",
            business_name=listing.business_name,
            asking_price=_to_float(listing.asking_price),
            revenue=_to_float(listing.revenue),
            cash_flow=_to_float(listing.cash_flow),
            city=listing.city,
            state=listing.state,
            zip_code=listing.zip_code,
            industry=listing.industry,
            broker_name=listing.broker_name,
            description=listing.description,
            platform=platform,
        )


@dataclass
class CandidatePair:
    """A scored pair of listings that cleared the candidate threshold."""
    listing_a_id: str
    listing_b_id: str
    score: float
    matched_fields: list[str] = field(default_factory=list)
    field_scores: dict[str, float] = field(default_factory=dict)

    @property
    def key(self) -> tuple[str, str]:
        return pair_key(self.listing_a_id, self.listing_b_id)

    def __repr__(self) -> str:
        return (
            f"<CandidatePair({self.listing_a_id} <-> {self.listing_b_id}, "
            f"score={self.score:.2f}, matched={self.matched_fields})>"
        )
