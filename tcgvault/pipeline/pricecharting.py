"""
TCG Vault — Sealed-Product Pricing API Client (PriceCharting)

Search, product details and pricing-by-id for sealed products. The API
returns a flat, provider-specific shape with every price in integer cents;
SealedPrice converts those to Decimal dollars with field fallbacks:

    market = new-price → cib-price → loose-price
    low    = retail-new-buy → retail-cib-buy → retail-loose-buy
    high   = retail-new-sell → retail-cib-sell → retail-loose-sell
    mid    = market
    market_value = market → mid → low

A response with status != "success" is an upstream error and raises.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

from tcgvault.config import settings
from tcgvault.pipeline.base import BaseAPIClient
from tcgvault.pipeline.quota import RequestQuota
from tcgvault.utils.money import cents_to_decimal, first_price

logger = structlog.get_logger(__name__)

# Product-name fragments that mark a result as sealed
SEALED_NAME_MARKERS = (
    "booster", "box", "pack", "collection", "bundle", "tin", "elite trainer", "etb",
)

# ---------------------------------------------------------------------------
# Pydantic Response Models
# ---------------------------------------------------------------------------


class SealedPrice(BaseModel):
    """Decimal dollar prices derived from a product's cent fields."""
    market: Decimal | None = None
    low: Decimal | None = None
    mid: Decimal | None = None
    high: Decimal | None = None
    market_value: Decimal | None = None


class PriceChartingProduct(BaseModel):
    """One product as returned by /products or /product."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., description="PriceCharting product id")
    product_name: str = Field(default="Unknown Product", alias="product-name")
    console_name: str = Field(default="", alias="console-name")
    release_date: str | None = Field(default=None, alias="release-date")
    loose_price: int | None = Field(default=None, alias="loose-price")
    cib_price: int | None = Field(default=None, alias="cib-price")
    new_price: int | None = Field(default=None, alias="new-price")
    retail_loose_buy: int | None = Field(default=None, alias="retail-loose-buy")
    retail_loose_sell: int | None = Field(default=None, alias="retail-loose-sell")
    retail_cib_buy: int | None = Field(default=None, alias="retail-cib-buy")
    retail_cib_sell: int | None = Field(default=None, alias="retail-cib-sell")
    retail_new_buy: int | None = Field(default=None, alias="retail-new-buy")
    retail_new_sell: int | None = Field(default=None, alias="retail-new-sell")
    image_url: str | None = Field(default=None, alias="image-url")

    @field_validator("id", mode="before")
    @classmethod
    def id_to_str(cls, v: Any) -> str:
        return str(v)

    @property
    def set_name(self) -> str:
        """Console name without the redundant "Pokemon " prefix."""
        name = self.console_name
        if name.lower().startswith("pokemon "):
            return name[len("pokemon "):]
        return name

    @property
    def is_sealed(self) -> bool:
        """Card singles carry a "#number" marker or are labelled as singles."""
        lowered = self.product_name.lower()
        if "#" in lowered or "single" in lowered:
            return False
        return any(marker in lowered for marker in SEALED_NAME_MARKERS)

    def to_price(self) -> SealedPrice:
        market = first_price(
            cents_to_decimal(self.new_price),
            cents_to_decimal(self.cib_price),
            cents_to_decimal(self.loose_price),
        )
        low = first_price(
            cents_to_decimal(self.retail_new_buy),
            cents_to_decimal(self.retail_cib_buy),
            cents_to_decimal(self.retail_loose_buy),
        )
        high = first_price(
            cents_to_decimal(self.retail_new_sell),
            cents_to_decimal(self.retail_cib_sell),
            cents_to_decimal(self.retail_loose_sell),
        )
        mid = market
        return SealedPrice(
            market=market,
            low=low,
            mid=mid,
            high=high,
            market_value=first_price(market, mid, low),
        )


def _check_status(data: dict[str, Any]) -> None:
    if data.get("status") != "success":
        raise RuntimeError(data.get("error-message") or "PriceCharting request failed")


# ---------------------------------------------------------------------------
# API Client
# ---------------------------------------------------------------------------


class PriceChartingClient(BaseAPIClient):
    """
    Async client for the sealed-product pricing API.

    Usage:
        async with PriceChartingClient() as client:
            products = await client.search_sealed_products("elite trainer box")
    """

    provider = "pricecharting"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        max_retries: int = 3,
        base_backoff: float = 1.0,
        quota: RequestQuota | None = None,
    ):
        self._api_key = api_key if api_key is not None else settings.PRICECHARTING_API_KEY
        super().__init__(
            base_url=base_url or settings.PRICECHARTING_BASE_URL,
            default_params={"t": self._api_key} if self._api_key else None,
            max_retries=max_retries,
            base_backoff=base_backoff,
            quota=quota or RequestQuota(
                self.provider,
                daily_limit=settings.PRICECHARTING_DAILY_LIMIT,
                monthly_limit=settings.PRICECHARTING_MONTHLY_LIMIT,
            ),
        )

    async def search_products(self, query: str) -> list[PriceChartingProduct]:
        """Free-text product search; no sealed filtering."""
        data = await self._request("/products", params={"q": query})
        _check_status(data)
        return [PriceChartingProduct.model_validate(p) for p in data.get("products") or []]

    async def search_sealed_products(self, query: str) -> list[PriceChartingProduct]:
        """
        Search and keep only products whose name marks them as sealed.

        Args:
            query: Free-text query (e.g., "pokemon obsidian flames booster box").

        Returns:
            Sealed products in upstream order.
        """
        products = await self.search_products(query)
        sealed = [p for p in products if p.is_sealed]
        logger.info(
            "pricecharting_search_sealed",
            query=query,
            returned=len(products),
            sealed=len(sealed),
        )
        return sealed

    async def fetch_product(self, product_id: str) -> PriceChartingProduct:
        """Product details by id."""
        data = await self._request("/product", params={"id": product_id})
        _check_status(data)
        return PriceChartingProduct.model_validate(data)

    async def fetch_product_pricing(self, product_id: str) -> SealedPrice:
        """Current prices for one product, converted to dollars."""
        product = await self.fetch_product(product_id)
        return product.to_price()
