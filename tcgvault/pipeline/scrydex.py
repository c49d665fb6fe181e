"""
TCG Vault — Card Catalog API Client (Scrydex)

Card search, card-by-id, expansion list/by-id and pricing-by-id against the
Scrydex Pokémon API. Requests carry X-Api-Key / X-Team-ID headers; in
deployment the base URL points at a backend proxy that injects them, so the
headers may be empty.

Base URL: https://api.scrydex.com/pokemon/v1/en
Pagination: page + page_size (max 100 per page)
"""

from __future__ import annotations

from datetime import date
from typing import Any

import structlog
from pydantic import BaseModel, Field, field_validator

from tcgvault.config import settings
from tcgvault.pipeline.base import BaseAPIClient
from tcgvault.pipeline.quota import RequestQuota

logger = structlog.get_logger(__name__)

MAX_PAGE_SIZE = 100

# ---------------------------------------------------------------------------
# Pydantic Response Models
# ---------------------------------------------------------------------------


class ScrydexExpansion(BaseModel):
    """Expansion metadata."""
    id: str = Field(..., description="Expansion id (e.g., 'sv1')")
    name: str = Field(..., description="Expansion name (e.g., 'Scarlet & Violet')")
    series: str | None = None
    code: str | None = None
    total: int | None = None
    printed_total: int | None = None
    release_date: str | None = Field(default=None, description="Release date YYYY/MM/DD")
    is_online_only: bool = False
    logo: str | None = None
    symbol: str | None = None

    def get_release_date(self) -> date | None:
        if not self.release_date:
            return None
        try:
            return date.fromisoformat(self.release_date.replace("/", "-"))
        except ValueError:
            logger.warning(
                "scrydex_invalid_release_date",
                expansion_id=self.id,
                raw_date=self.release_date,
            )
            return None


class ScrydexCard(BaseModel):
    """
    Card metadata, optionally with pricing when requested via include=prices.

    `prices` is passed through untouched; pricing/snapshot.py owns its shape.
    """
    id: str = Field(..., description="Card id (e.g., 'sv1-025')")
    name: str
    supertype: str | None = None
    subtypes: list[str] = Field(default_factory=list)
    types: list[str] = Field(default_factory=list)
    number: str | None = None
    rarity: str | None = None
    artist: str | None = None
    images: dict[str, str] = Field(default_factory=dict)
    expansion: ScrydexExpansion | None = None
    prices: dict[str, Any] | list[dict[str, Any]] | None = None

    @field_validator("images", mode="before")
    @classmethod
    def flatten_images(cls, v: Any) -> dict[str, str]:
        """Accept either {small, large} or a list of per-face image dicts."""
        if not v:
            return {}
        if isinstance(v, list):
            front = next((i for i in v if i.get("type") == "front"), v[0])
            return {k: val for k, val in front.items() if k in ("small", "medium", "large") and val}
        return {k: val for k, val in v.items() if isinstance(val, str)}

    @field_validator("subtypes", "types", mode="before")
    @classmethod
    def none_to_list(cls, v: Any) -> list[str]:
        return v or []


class ScrydexCardPage(BaseModel):
    """Paginated card list."""
    data: list[ScrydexCard] = Field(default_factory=list)
    page: int = 1
    page_size: int = MAX_PAGE_SIZE
    total_count: int = 0


class ScrydexExpansionPage(BaseModel):
    data: list[ScrydexExpansion] = Field(default_factory=list)
    page: int = 1
    page_size: int = MAX_PAGE_SIZE
    total_count: int = 0


# ---------------------------------------------------------------------------
# API Client
# ---------------------------------------------------------------------------


class ScrydexClient(BaseAPIClient):
    """
    Async client for the card-catalog API.

    Usage:
        async with ScrydexClient() as client:
            card = await client.fetch_card("sv1-025")
            prices = await client.fetch_card_pricing("sv1-025")
    """

    provider = "scrydex"

    def __init__(
        self,
        api_key: str | None = None,
        team_id: str | None = None,
        base_url: str | None = None,
        max_retries: int = 3,
        base_backoff: float = 1.0,
        quota: RequestQuota | None = None,
    ):
        self._api_key = api_key if api_key is not None else settings.SCRYDEX_API_KEY
        self._team_id = team_id if team_id is not None else settings.SCRYDEX_TEAM_ID
        headers: dict[str, str] = {}
        if self._api_key:
            headers["X-Api-Key"] = self._api_key
        if self._team_id:
            headers["X-Team-ID"] = self._team_id
        super().__init__(
            base_url=base_url or settings.SCRYDEX_BASE_URL,
            headers=headers,
            max_retries=max_retries,
            base_backoff=base_backoff,
            quota=quota or RequestQuota(
                self.provider,
                daily_limit=settings.SCRYDEX_DAILY_LIMIT,
                monthly_limit=settings.SCRYDEX_MONTHLY_LIMIT,
            ),
        )

    # -----------------------------------------------------------------------
    # Cards
    # -----------------------------------------------------------------------

    async def search_cards(
        self,
        query: str,
        page: int = 1,
        page_size: int = MAX_PAGE_SIZE,
        include_prices: bool = False,
    ) -> ScrydexCardPage:
        """
        Search cards with the catalog's query syntax.

        Args:
            query: Free text or field query (e.g., "name:charizard", "expansion.id:sv1").
            page: 1-based page number.
            page_size: Results per page, capped at 100.
            include_prices: Ask the API to embed pricing on each card.

        Returns:
            One page of cards plus the total match count.
        """
        params: dict[str, Any] = {
            "q": query,
            "page": page,
            "page_size": min(page_size, MAX_PAGE_SIZE),
        }
        if include_prices:
            params["include"] = "prices"

        data = await self._request("/cards", params=params)
        result = ScrydexCardPage.model_validate(data)

        logger.debug(
            "scrydex_search_cards",
            query=query,
            page=page,
            returned=len(result.data),
            total=result.total_count,
        )
        return result

    async def fetch_card(self, card_id: str, include_prices: bool = False) -> ScrydexCard:
        """Fetch one card by id."""
        params = {"include": "prices"} if include_prices else None
        data = await self._request(f"/cards/{card_id}", params=params)
        return ScrydexCard.model_validate(data.get("data", data))

    async def fetch_card_pricing(self, card_id: str) -> dict[str, Any] | list[dict[str, Any]] | None:
        """
        Fetch the current pricing payload for one card.

        Returns:
            The upstream `prices` payload, or None when the card has none.
        """
        logger.info("scrydex_fetch_card_pricing", card_id=card_id)
        data = await self._request(f"/cards/{card_id}", params={"include": "prices"})
        payload = data.get("data", data)
        prices = payload.get("prices") if isinstance(payload, dict) else None
        return prices or None

    async def fetch_expansion_cards(
        self,
        expansion_id: str,
        include_prices: bool = True,
    ) -> list[ScrydexCard]:
        """Fetch every card in an expansion, handling pagination."""
        logger.info("scrydex_fetch_expansion_cards", expansion_id=expansion_id)

        cards: list[ScrydexCard] = []
        page = 1
        while True:
            result = await self.search_cards(
                f"expansion.id:{expansion_id}",
                page=page,
                page_size=MAX_PAGE_SIZE,
                include_prices=include_prices,
            )
            cards.extend(result.data)
            if not result.data or len(cards) >= result.total_count:
                break
            page += 1

        logger.info(
            "scrydex_fetch_expansion_cards_complete",
            expansion_id=expansion_id,
            total_cards=len(cards),
        )
        return cards

    # -----------------------------------------------------------------------
    # Expansions
    # -----------------------------------------------------------------------

    async def fetch_expansions(self, page: int = 1, page_size: int = MAX_PAGE_SIZE) -> ScrydexExpansionPage:
        data = await self._request(
            "/expansions",
            params={"page": page, "page_size": min(page_size, MAX_PAGE_SIZE)},
        )
        return ScrydexExpansionPage.model_validate(data)

    async def fetch_all_expansions(self) -> list[ScrydexExpansion]:
        expansions: list[ScrydexExpansion] = []
        page = 1
        while True:
            result = await self.fetch_expansions(page=page)
            expansions.extend(result.data)
            if not result.data or len(expansions) >= result.total_count:
                break
            page += 1
        logger.info("scrydex_fetch_expansions_complete", total=len(expansions))
        return expansions

    async def fetch_expansion(self, expansion_id: str) -> ScrydexExpansion:
        data = await self._request(f"/expansions/{expansion_id}")
        return ScrydexExpansion.model_validate(data.get("data", data))
