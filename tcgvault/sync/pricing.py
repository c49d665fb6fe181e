"""
TCG Vault — Pricing Sync

Pricing-only refresh: pulls current prices per expansion and overwrites the
pricing columns of cards already in the catalog. Card metadata is never
touched and cards unknown to the catalog are skipped (catalog sync creates
them). Runs every PRICING_SYNC_INTERVAL_HOURS.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime, timedelta
from typing import Any

import structlog
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tcgvault.config import settings
from tcgvault.models.card import PokemonCard
from tcgvault.models.expansion import Expansion
from tcgvault.pipeline.scrydex import ScrydexClient
from tcgvault.pricing.snapshot import snapshot_from_upstream, snapshot_to_columns
from tcgvault.sync.base import SyncJob
from tcgvault.utils.db import utcnow

logger = structlog.get_logger(__name__)


class PricingSync(SyncJob):
    """
    Usage:
        async with ScrydexClient() as client:
            job = PricingSync(client, session_factory)
            if await job.is_sync_needed():
                await job.trigger_sync()
    """

    domain = "pricing"

    def __init__(
        self,
        client: ScrydexClient,
        session_factory: async_sessionmaker[AsyncSession],
        interval_hours: float | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        super().__init__(
            session_factory,
            interval_hours if interval_hours is not None else settings.PRICING_SYNC_INTERVAL_HOURS,
            clock,
        )
        self._client = client

    async def _run(self, expansion_ids: Sequence[str] | None = None) -> tuple[int, dict[str, Any]]:
        """
        Args:
            expansion_ids: Limit the run to these expansions. Default: every
                expansion in the catalog.
        """
        if not expansion_ids:
            async with self._session_factory() as session:
                expansion_ids = list(await session.scalars(select(Expansion.id).order_by(Expansion.id)))

        updated = 0
        skipped = 0
        failed: list[str] = []
        for expansion_id in expansion_ids:
            try:
                u, s = await self._sync_expansion(expansion_id)
                updated += u
                skipped += s
            except Exception as e:
                failed.append(expansion_id)
                logger.error(
                    "pricing_sync_expansion_failed",
                    expansion_id=expansion_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        if expansion_ids and len(failed) == len(expansion_ids):
            raise RuntimeError(f"pricing sync failed for every expansion ({len(failed)})")

        return updated, {
            "expansions": len(expansion_ids),
            "cards_updated": updated,
            "cards_skipped": skipped,
            "failed_expansions": failed,
        }

    async def _sync_expansion(self, expansion_id: str) -> tuple[int, int]:
        cards = await self._client.fetch_expansion_cards(expansion_id, include_prices=True)
        now = self._clock()

        async with self._session_factory() as session:
            known = set(await session.scalars(
                select(PokemonCard.id).where(PokemonCard.expansion_id == expansion_id)
            ))
            updated = 0
            for card in cards:
                if card.id not in known or not card.prices:
                    continue
                snapshot = snapshot_from_upstream(card.id, card.prices, now)
                if snapshot is None:
                    continue
                values = snapshot_to_columns(snapshot)
                values["updated_at"] = now
                await session.execute(
                    update(PokemonCard).where(PokemonCard.id == card.id).values(**values)
                )
                updated += 1
            await session.commit()

        logger.info(
            "pricing_sync_expansion_complete",
            expansion_id=expansion_id,
            fetched=len(cards),
            updated=updated,
        )
        return updated, len(cards) - updated

    async def get_stats(self) -> dict[str, Any]:
        """Sync bookkeeping plus pricing coverage across the catalog."""
        stats = await super().get_stats()
        stale_before = self._clock() - timedelta(hours=self._interval_hours)
        has_pricing = or_(PokemonCard.raw_market.is_not(None), PokemonCard.market_price.is_not(None))

        async with self._session_factory() as session:
            total = await session.scalar(select(func.count()).select_from(PokemonCard)) or 0
            with_pricing = await session.scalar(
                select(func.count()).select_from(PokemonCard).where(has_pricing)
            ) or 0
            stale = await session.scalar(
                select(func.count()).select_from(PokemonCard).where(
                    has_pricing,
                    PokemonCard.pricing_last_updated < stale_before,
                )
            ) or 0

        stats.update(
            total_cards=total,
            cards_with_pricing=with_pricing,
            stale_pricing=stale,
            coverage_percent=round(with_pricing / total * 100, 1) if total else 0.0,
            needs_sync=await self.is_sync_needed(),
        )
        return stats
