"""
TCG Vault — Catalog Sync

Full refresh of pokemon_expansions and pokemon_cards from the card catalog
API, pricing columns included. Runs every CATALOG_SYNC_INTERVAL_HOURS.

Expansions are upserted first (with their CSV-mirror group id from the
static ExpansionMap) so card foreign keys always resolve. Cards are then
upserted one expansion at a time and committed per expansion; a failing
expansion is logged and skipped, the rest continue.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tcgvault.config import settings
from tcgvault.models.card import PokemonCard
from tcgvault.models.expansion import Expansion
from tcgvault.pipeline.scrydex import ScrydexCard, ScrydexClient, ScrydexExpansion
from tcgvault.pricing.snapshot import snapshot_from_upstream, snapshot_to_columns
from tcgvault.sync.base import SyncJob
from tcgvault.utils.db import upsert_rows, utcnow
from tcgvault.utils.expansion_map import ExpansionMap

logger = structlog.get_logger(__name__)


def expansion_row(expansion: ScrydexExpansion, expansion_map: ExpansionMap, now: datetime) -> dict[str, Any]:
    return {
        "id": expansion.id,
        "name": expansion.name,
        "series": expansion.series,
        "code": expansion.code,
        "total": expansion.total,
        "printed_total": expansion.printed_total,
        "release_date": expansion.get_release_date(),
        "is_online_only": expansion.is_online_only,
        "logo": expansion.logo,
        "symbol": expansion.symbol,
        "tcgcsv_group_id": expansion_map.get_group_id(expansion.id),
        "updated_at": now,
    }


def card_row(card: ScrydexCard, expansion: ScrydexExpansion, now: datetime) -> dict[str, Any]:
    return {
        "id": card.id,
        "name": card.name,
        "supertype": card.supertype,
        "subtypes": card.subtypes,
        "types": card.types,
        "expansion_id": expansion.id,
        "expansion_name": expansion.name,
        "number": card.number,
        "rarity": card.rarity,
        "artist": card.artist,
        "images": card.images or None,
        "updated_at": now,
    }


class CatalogSync(SyncJob):
    """
    Usage:
        async with ScrydexClient() as client:
            job = CatalogSync(client, session_factory)
            result = await job.trigger_sync()
    """

    domain = "catalog"

    def __init__(
        self,
        client: ScrydexClient,
        session_factory: async_sessionmaker[AsyncSession],
        expansion_map: ExpansionMap | None = None,
        interval_hours: float | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        super().__init__(
            session_factory,
            interval_hours if interval_hours is not None else settings.CATALOG_SYNC_INTERVAL_HOURS,
            clock,
        )
        self._client = client
        self._expansion_map = expansion_map or ExpansionMap()

    async def _run(self, expansion_ids: Sequence[str] | None = None) -> tuple[int, dict[str, Any]]:
        """
        Args:
            expansion_ids: Limit the run to these expansions. Default: all.
        """
        if expansion_ids:
            expansions = [await self._client.fetch_expansion(eid) for eid in expansion_ids]
        else:
            expansions = await self._client.fetch_all_expansions()

        now = self._clock()
        async with self._session_factory() as session:
            await upsert_rows(
                session,
                Expansion,
                [expansion_row(e, self._expansion_map, now) for e in expansions],
                index_elements=["id"],
            )
            await session.commit()
        logger.info("catalog_sync_expansions_stored", count=len(expansions))

        cards_synced = 0
        failed: list[str] = []
        for expansion in expansions:
            try:
                cards_synced += await self._sync_expansion_cards(expansion)
            except Exception as e:
                failed.append(expansion.id)
                logger.error(
                    "catalog_sync_expansion_failed",
                    expansion_id=expansion.id,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        if expansions and len(failed) == len(expansions):
            raise RuntimeError(f"catalog sync failed for every expansion ({len(failed)})")

        return cards_synced, {
            "expansions": len(expansions),
            "cards": cards_synced,
            "failed_expansions": failed,
        }

    async def _sync_expansion_cards(self, expansion: ScrydexExpansion) -> int:
        cards = await self._client.fetch_expansion_cards(expansion.id, include_prices=True)
        now = self._clock()

        # Rows must share keys per upsert: cards without pricing keep their
        # existing pricing columns
        priced: list[dict[str, Any]] = []
        unpriced: list[dict[str, Any]] = []
        for card in cards:
            row = card_row(card, expansion, now)
            snapshot = snapshot_from_upstream(card.id, card.prices, now) if card.prices else None
            if snapshot is not None:
                row.update(snapshot_to_columns(snapshot))
                priced.append(row)
            else:
                unpriced.append(row)

        async with self._session_factory() as session:
            await upsert_rows(session, PokemonCard, priced, index_elements=["id"])
            await upsert_rows(session, PokemonCard, unpriced, index_elements=["id"])
            await session.commit()

        logger.info(
            "catalog_sync_expansion_stored",
            expansion_id=expansion.id,
            cards=len(cards),
            priced=len(priced),
        )
        return len(cards)

    async def get_stats(self) -> dict[str, Any]:
        stats = await super().get_stats()
        async with self._session_factory() as session:
            stats["cards"] = await session.scalar(select(func.count()).select_from(PokemonCard)) or 0
            stats["expansions"] = await session.scalar(select(func.count()).select_from(Expansion)) or 0
        return stats
