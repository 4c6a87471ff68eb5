"""
Data models for the funda.nl search scraper.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set


@dataclass(frozen=True)
class Price:
    """Asking price of a listing."""

    amount: Optional[float] = None
    currency: Optional[str] = "EUR"
    condition: Optional[str] = None


@dataclass(frozen=True)
class CanonicalListing:
    """Represents one funda listing in the normalized output schema."""

    id: str

    # Location
    address: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    municipality: Optional[str] = None
    province: Optional[str] = None
    neighbourhood: Optional[str] = None

    # Price and size
    price: Price = field(default_factory=Price)
    floor_area: Optional[float] = None
    plot_area: Optional[float] = None
    rooms: Optional[int] = None
    bedrooms: Optional[int] = None

    # Object details
    energy_label: Optional[str] = None
    object_type: Optional[str] = None
    construction_type: Optional[str] = None
    status: Optional[str] = None
    publish_date: Optional[str] = None

    # Media and links
    image_url: Optional[str] = None
    url: Optional[str] = None
    scraped_at: Optional[str] = None

    def to_row(self) -> Dict[str, Any]:
        """Flatten to a single-level dict (one column per field)."""
        return {
            "id": self.id,
            "address": self.address,
            "postal_code": self.postal_code,
            "city": self.city,
            "municipality": self.municipality,
            "province": self.province,
            "neighbourhood": self.neighbourhood,
            "price_amount": self.price.amount,
            "price_currency": self.price.currency,
            "price_condition": self.price.condition,
            "floor_area": self.floor_area,
            "plot_area": self.plot_area,
            "rooms": self.rooms,
            "bedrooms": self.bedrooms,
            "energy_label": self.energy_label,
            "object_type": self.object_type,
            "construction_type": self.construction_type,
            "status": self.status,
            "publish_date": self.publish_date,
            "image_url": self.image_url,
            "url": self.url,
            "scraped_at": self.scraped_at,
        }


class CrawlStatus(str, Enum):
    RUNNING = "running"
    QUOTA_REACHED = "quota_reached"
    PAGE_LIMIT_REACHED = "page_limit_reached"
    EXHAUSTED = "exhausted"
    BLOCKED = "blocked"


@dataclass
class CrawlState:
    """
    Cross-page bookkeeping for one run.

    Invariant: collected <= quota and pages_visited <= max_pages.
    """

    quota: int
    max_pages: int
    seen_ids: Set[str] = field(default_factory=set)
    collected: int = 0
    pages_visited: int = 0
    status: CrawlStatus = CrawlStatus.RUNNING

    @property
    def remaining(self) -> int:
        return self.quota - self.collected


@dataclass
class PageOutcome:
    """What the controller decided for one fetched page."""

    url: str
    page_number: int
    status: CrawlStatus
    extracted: int = 0
    batch: List[CanonicalListing] = field(default_factory=list)
    next_url: Optional[str] = None

    @property
    def no_listings(self) -> bool:
        # Nothing extracted at all, as opposed to everything being deduplicated
        return self.status is not CrawlStatus.BLOCKED and self.extracted == 0
