"""
TCG Vault — CSV-Mirror Pricing API Client (TCGCSV)

Bulk TCGplayer data mirrored as JSON: groups (expansions), then products and
prices per group. Consumed only by the sealed-product sync.

Endpoints (category 3 = Pokémon):
    /{category}/groups
    /{category}/{groupId}/products
    /{category}/{groupId}/prices

Every response is {"success": bool, "errors": [...], "results": [...]}.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

from tcgvault.config import settings
from tcgvault.pipeline.base import BaseAPIClient
from tcgvault.utils.money import to_decimal

logger = structlog.get_logger(__name__)

# Names that mark a product as a code card rather than a physical product
CODE_CARD_MARKERS = ("code card", "digital", "online code")

# ---------------------------------------------------------------------------
# Pydantic Response Models
# ---------------------------------------------------------------------------


class TCGCSVGroup(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    group_id: int = Field(..., alias="groupId")
    name: str
    abbreviation: str | None = None
    published_on: str | None = Field(default=None, alias="publishedOn")


class ExtendedDataItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    value: Any = None


class TCGCSVProduct(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    product_id: int = Field(..., alias="productId")
    group_id: int = Field(..., alias="groupId")
    name: str
    clean_name: str | None = Field(default=None, alias="cleanName")
    image_url: str | None = Field(default=None, alias="imageUrl")
    url: str | None = None
    extended_data: list[ExtendedDataItem] = Field(default_factory=list, alias="extendedData")

    @field_validator("extended_data", mode="before")
    @classmethod
    def none_to_list(cls, v: Any) -> list[Any]:
        return v or []


class TCGCSVPrice(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    product_id: int = Field(..., alias="productId")
    low_price: Decimal | None = Field(default=None, alias="lowPrice")
    mid_price: Decimal | None = Field(default=None, alias="midPrice")
    high_price: Decimal | None = Field(default=None, alias="highPrice")
    market_price: Decimal | None = Field(default=None, alias="marketPrice")
    direct_low_price: Decimal | None = Field(default=None, alias="directLowPrice")
    sub_type_name: str | None = Field(default=None, alias="subTypeName")

    @field_validator(
        "low_price", "mid_price", "high_price", "market_price", "direct_low_price",
        mode="before",
    )
    @classmethod
    def parse_decimal(cls, v: Any) -> Decimal | None:
        return to_decimal(v)


def is_sealed_product(product: TCGCSVProduct) -> bool:
    """
    Sealed products carry no card Number in extendedData; singles do.
    Code cards have no number either and are excluded by name.
    """
    if any(item.name == "Number" and item.value for item in product.extended_data):
        return False

    name = product.name.lower()
    clean_name = (product.clean_name or "").lower()
    return not any(m in name or m in clean_name for m in CODE_CARD_MARKERS)


# ---------------------------------------------------------------------------
# API Client
# ---------------------------------------------------------------------------


class TCGCSVClient(BaseAPIClient):
    """
    Async client for the CSV-mirror.

    Usage:
        async with TCGCSVClient() as client:
            groups = await client.fetch_groups()
            products = await client.fetch_products(groups[0].group_id)
    """

    provider = "tcgcsv"

    def __init__(
        self,
        base_url: str | None = None,
        category_id: int | None = None,
        max_retries: int = 3,
        base_backoff: float = 1.0,
    ):
        self._category_id = category_id or settings.TCGCSV_CATEGORY_ID
        super().__init__(
            base_url=base_url or settings.TCGCSV_BASE_URL,
            max_retries=max_retries,
            base_backoff=base_backoff,
        )

    async def _results(self, path: str) -> list[dict[str, Any]]:
        data = await self._request(f"/{self._category_id}{path}")
        if not data.get("success", True):
            raise RuntimeError(f"tcgcsv error for {path}: {data.get('errors')}")
        return data.get("results") or []

    async def fetch_groups(self) -> list[TCGCSVGroup]:
        groups = [TCGCSVGroup.model_validate(g) for g in await self._results("/groups")]
        logger.info("tcgcsv_fetch_groups", total=len(groups))
        return groups

    async def fetch_products(self, group_id: int) -> list[TCGCSVProduct]:
        return [TCGCSVProduct.model_validate(p) for p in await self._results(f"/{group_id}/products")]

    async def fetch_prices(self, group_id: int) -> list[TCGCSVPrice]:
        return [TCGCSVPrice.model_validate(p) for p in await self._results(f"/{group_id}/prices")]
