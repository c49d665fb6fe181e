"""
TCG Vault — Database Pricing Reader

Reads previously-synced pricing columns from pokemon_cards and reshapes them
into a PricingSnapshot. A missing row (or a row with no pricing yet) is a
normal "no data" result, never an error. Database failures are logged and
read as no data, so callers fall through to the next layer.

The batched variant issues one IN-filtered query instead of N lookups.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tcgvault.config import settings
from tcgvault.models.card import PokemonCard
from tcgvault.pricing.snapshot import PricingSnapshot, snapshot_from_row
from tcgvault.utils.db import utcnow

logger = structlog.get_logger(__name__)


class DatabasePricingReader:
    """
    System-of-record pricing lookups.

    Usage:
        reader = DatabasePricingReader(session_factory)
        snapshot = await reader.get_pricing("sv1-025")
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        fresh_threshold_hours: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._fresh_threshold_hours = (
            fresh_threshold_hours
            if fresh_threshold_hours is not None
            else settings.PRICING_STALE_THRESHOLD_HOURS
        )
        self._clock = clock

    async def get_pricing(self, card_id: str) -> PricingSnapshot | None:
        """
        Pricing for one card by primary key.

        Args:
            card_id: Catalog card id (e.g., "sv1-025").

        Returns:
            PricingSnapshot with source="database", or None if there is none.
        """
        try:
            async with self._session_factory() as session:
                card = await session.get(PokemonCard, card_id)
        except SQLAlchemyError as e:
            logger.error(
                "database_pricing_read_failed",
                card_id=card_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        if card is None:
            logger.debug("database_pricing_not_found", card_id=card_id)
            return None

        snapshot = snapshot_from_row(card)
        if snapshot is None:
            logger.debug("database_pricing_empty", card_id=card_id)
        return snapshot

    async def get_many_pricing(self, card_ids: Iterable[str]) -> dict[str, PricingSnapshot]:
        """
        Pricing for several cards in a single query.

        Returns:
            Map of card id → snapshot. Ids without pricing are absent.
        """
        ids = list(dict.fromkeys(i for i in card_ids if i))
        if not ids:
            return {}

        try:
            async with self._session_factory() as session:
                result = await session.execute(select(PokemonCard).where(PokemonCard.id.in_(ids)))
                cards = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(
                "database_pricing_batch_read_failed",
                requested=len(ids),
                error=str(e),
                error_type=type(e).__name__,
            )
            return {}

        snapshots: dict[str, PricingSnapshot] = {}
        for card in cards:
            snapshot = snapshot_from_row(card)
            if snapshot is not None:
                snapshots[card.id] = snapshot

        logger.info(
            "database_pricing_batch_read",
            requested=len(ids),
            found=len(snapshots),
        )
        return snapshots

    async def check_freshness(self, card_id: str) -> dict[str, Any]:
        """
        How old a card's stored pricing is.

        Returns:
            {"has_pricing", "last_updated", "age_hours", "is_fresh"}; age and
            last_updated are None when there is no pricing.
        """
        snapshot = await self.get_pricing(card_id)
        if snapshot is None or snapshot.last_updated is None:
            return {
                "has_pricing": snapshot is not None,
                "last_updated": None,
                "age_hours": None,
                "is_fresh": False,
            }

        age_hours = (self._clock() - snapshot.last_updated).total_seconds() / 3600
        return {
            "has_pricing": True,
            "last_updated": snapshot.last_updated,
            "age_hours": round(age_hours, 2),
            "is_fresh": age_hours < self._fresh_threshold_hours,
        }
