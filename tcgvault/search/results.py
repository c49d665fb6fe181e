"""
TCG Vault — Search Result Shapes

Normalized result items returned by every search path, whatever the
provider, plus the filter set and the merged hybrid response.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Literal, NamedTuple

from pydantic import BaseModel, Field

from tcgvault.config import QueryClass


class CardResult(BaseModel):
    """A single card from the local catalog."""
    id: str
    name: str
    number: str | None = None
    rarity: str | None = None
    supertype: str | None = None
    artist: str | None = None
    expansion_id: str | None = None
    expansion_name: str | None = None
    image_url: str | None = None
    market_price: Decimal | None = None
    item_type: Literal["single"] = "single"


class SealedResult(BaseModel):
    """A sealed product from the local table or the sealed-pricing API."""
    id: str
    name: str
    expansion_id: str | None = None
    expansion_name: str | None = None
    image_url: str | None = None
    market_price: Decimal | None = None
    low_price: Decimal | None = None
    mid_price: Decimal | None = None
    high_price: Decimal | None = None
    source: Literal["database", "pricecharting"] = "database"
    item_type: Literal["sealed"] = "sealed"


class SearchFilters(BaseModel):
    """Optional single-card filters."""
    supertype: str | None = None
    rarity: str | None = None
    artists: list[str] = Field(default_factory=list)
    sort_by: Literal["name", "number", "rarity"] = "number"
    sort_order: Literal["asc", "desc"] = "asc"

    def cache_params(self) -> dict[str, Any]:
        return self.model_dump(exclude_defaults=True)


class PathResult(NamedTuple):
    """One provider path's page of items plus its full match count."""
    items: list[Any]
    total: int


class SearchResults(BaseModel):
    """
    Merged hybrid search response.

    Pagination is per path: `page` is applied to singles and sealed
    independently, and `total` is singles_total + sealed_total.
    """
    query: str
    game: str = "pokemon"
    query_class: QueryClass
    singles: list[CardResult] = Field(default_factory=list)
    sealed: list[SealedResult] = Field(default_factory=list)
    singles_total: int = 0
    sealed_total: int = 0
    total: int = 0
    page: int = 1
    page_size: int = 30
    source: Literal["live", "cache", "store"] = "live"
    cached: bool = False
