"""
TCG Vault — Sealed Product Sync (CSV mirror)

Imports sealed products with their prices from the CSV mirror into
pokemon_sealed_products so sealed search never needs a runtime API call.

Per group:
1. Fetch products and prices concurrently.
2. Keep sealed products only (no card Number, not a code card).
3. Join prices by product id; resolve our expansion id through the static
   ExpansionMap, falling back to pokemon_expansions.tcgcsv_group_id. The
   expansion id is only stored when that expansion row exists.
4. Upsert keyed on product_id; last writer wins.

A failing group is logged and counted; the run continues. A short pause
between groups keeps the mirror happy.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tcgvault.config import settings
from tcgvault.models.expansion import Expansion
from tcgvault.models.sealed_product import SealedProduct
from tcgvault.pipeline.tcgcsv import (
    TCGCSVClient,
    TCGCSVGroup,
    TCGCSVPrice,
    TCGCSVProduct,
    is_sealed_product,
)
from tcgvault.sync.base import SyncJob
from tcgvault.utils.db import upsert_rows, utcnow
from tcgvault.utils.expansion_map import ExpansionMap

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[dict[str, Any]], None]


def sealed_product_row(
    product: TCGCSVProduct,
    price: TCGCSVPrice | None,
    group: TCGCSVGroup,
    expansion_id: str | None,
    now: datetime,
) -> dict[str, Any]:
    return {
        "product_id": product.product_id,
        "tcgcsv_group_id": group.group_id,
        "name": product.name,
        "clean_name": product.clean_name,
        "image_url": product.image_url,
        "url": product.url,
        "market_price": price.market_price if price else None,
        "low_price": price.low_price if price else None,
        "mid_price": price.mid_price if price else None,
        "high_price": price.high_price if price else None,
        "direct_low_price": price.direct_low_price if price else None,
        "sub_type_name": (price.sub_type_name if price else None) or "Normal",
        "expansion_id": expansion_id,
        "expansion_name": group.name,
        "last_synced_at": now,
    }


class SealedProductSync(SyncJob):
    """
    Usage:
        async with TCGCSVClient() as client:
            job = SealedProductSync(client, session_factory)
            result = await job.trigger_sync(group_limit=5)
    """

    domain = "tcgcsv"

    def __init__(
        self,
        client: TCGCSVClient,
        session_factory: async_sessionmaker[AsyncSession],
        expansion_map: ExpansionMap | None = None,
        interval_hours: float | None = None,
        group_pause: float | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        super().__init__(
            session_factory,
            interval_hours if interval_hours is not None else settings.TCGCSV_SYNC_INTERVAL_HOURS,
            clock,
        )
        self._client = client
        self._expansion_map = expansion_map or ExpansionMap()
        self._group_pause = group_pause if group_pause is not None else settings.TCGCSV_GROUP_PAUSE_SECONDS

    async def _run(
        self,
        group_limit: int | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> tuple[int, dict[str, Any]]:
        """
        Args:
            group_limit: Only sync the first N groups.
            on_progress: Called after each group with running totals.
        """
        groups = await self._client.fetch_groups()
        if group_limit:
            groups = groups[:group_limit]

        totals = {"imported": 0, "skipped": 0, "errors": 0}
        for index, group in enumerate(groups):
            try:
                imported, skipped = await self._sync_group(group)
                totals["imported"] += imported
                totals["skipped"] += skipped
            except Exception as e:
                totals["errors"] += 1
                logger.error(
                    "tcgcsv_sync_group_failed",
                    group_id=group.group_id,
                    group_name=group.name,
                    error=str(e),
                    error_type=type(e).__name__,
                )

            if on_progress is not None:
                on_progress({
                    "current": index + 1,
                    "total": len(groups),
                    "current_group": group.name,
                    "total_imported": totals["imported"],
                    "total_skipped": totals["skipped"],
                    "total_errors": totals["errors"],
                })

            if self._group_pause and index + 1 < len(groups):
                await asyncio.sleep(self._group_pause)

        if groups and totals["errors"] == len(groups):
            raise RuntimeError(f"sealed product sync failed for every group ({len(groups)})")

        return totals["imported"], {"groups": len(groups), **totals}

    async def _sync_group(self, group: TCGCSVGroup) -> tuple[int, int]:
        products, prices = await asyncio.gather(
            self._client.fetch_products(group.group_id),
            self._client.fetch_prices(group.group_id),
        )
        sealed = [p for p in products if is_sealed_product(p)]
        if not sealed:
            return 0, len(products)

        price_map = {p.product_id: p for p in prices}
        now = self._clock()

        async with self._session_factory() as session:
            expansion_id = await self._resolve_expansion_id(session, group.group_id)
            rows = [
                sealed_product_row(p, price_map.get(p.product_id), group, expansion_id, now)
                for p in sealed
            ]
            await upsert_rows(session, SealedProduct, rows, index_elements=["product_id"])
            await session.commit()

        logger.info(
            "tcgcsv_sync_group_complete",
            group_id=group.group_id,
            group_name=group.name,
            imported=len(sealed),
            skipped=len(products) - len(sealed),
            expansion_id=expansion_id,
        )
        return len(sealed), len(products) - len(sealed)

    async def _resolve_expansion_id(self, session: AsyncSession, group_id: int) -> str | None:
        mapped = self._expansion_map.get_expansion_id(group_id)
        if mapped is not None and await session.get(Expansion, mapped) is not None:
            return mapped
        return await session.scalar(
            select(Expansion.id).where(Expansion.tcgcsv_group_id == group_id).limit(1)
        )

    async def get_stats(self) -> dict[str, Any]:
        stats = await super().get_stats()
        async with self._session_factory() as session:
            stats["sealed_products"] = await session.scalar(
                select(func.count()).select_from(SealedProduct)
            ) or 0
            stats["priced_products"] = await session.scalar(
                select(func.count()).select_from(SealedProduct).where(
                    SealedProduct.market_price.is_not(None)
                )
            ) or 0
        stats["mapped_expansions"] = len(self._expansion_map)
        return stats
