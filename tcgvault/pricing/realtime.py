"""
TCG Vault — Real-Time Pricing Fetcher

Fetches fresh pricing from the card-catalog API on cache miss or staleness,
reshapes it into the same PricingSnapshot the database reader produces, and
writes it back to the card's row (read-through + write-back).

Rate limiting is a fixed minimum gap between outgoing requests: each call
waits until `last_request + gap` has passed. Calls are serialized through a
lock, so concurrent callers queue rather than burst.

Every upstream failure (HTTP error, timeout, quota, malformed payload) is
logged and returned as None. Callers fall back to what they already have.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tcgvault.config import settings
from tcgvault.models.card import PokemonCard
from tcgvault.pipeline.scrydex import ScrydexClient
from tcgvault.pricing.snapshot import PricingSnapshot, snapshot_from_upstream, snapshot_to_columns
from tcgvault.utils.db import as_utc, utcnow

logger = structlog.get_logger(__name__)


class RealTimePricingFetcher:
    """
    Rate-limited upstream pricing fetch with database write-back.

    Usage:
        async with ScrydexClient() as client:
            fetcher = RealTimePricingFetcher(client, session_factory)
            snapshot = await fetcher.fetch_fresh("sv1-025")
    """

    def __init__(
        self,
        client: ScrydexClient,
        session_factory: async_sessionmaker[AsyncSession],
        min_request_gap: float | None = None,
        timeout: float | None = None,
        batch_size: int | None = None,
        batch_pause: float | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._client = client
        self._session_factory = session_factory
        self._min_request_gap = (
            min_request_gap if min_request_gap is not None else settings.REALTIME_MIN_REQUEST_GAP_SECONDS
        )
        self._timeout = timeout if timeout is not None else settings.REALTIME_TIMEOUT_SECONDS
        self._batch_size = batch_size or settings.REALTIME_BATCH_SIZE
        self._batch_pause = (
            batch_pause if batch_pause is not None else settings.REALTIME_BATCH_PAUSE_SECONDS
        )
        self._clock = clock
        self._gate = asyncio.Lock()
        self._last_request_at: float | None = None
        self.upstream_calls = 0

    async def _wait_for_slot(self) -> None:
        """Block until the minimum inter-request gap has elapsed."""
        async with self._gate:
            loop = asyncio.get_running_loop()
            if self._last_request_at is not None:
                wait = self._last_request_at + self._min_request_gap - loop.time()
                if wait > 0:
                    await asyncio.sleep(wait)
            self._last_request_at = loop.time()

    async def fetch_fresh(self, card_id: str) -> PricingSnapshot | None:
        """
        Fetch current pricing for one card and persist it.

        Args:
            card_id: Catalog card id.

        Returns:
            PricingSnapshot with source="realtime", or None on any failure or
            when the upstream has no pricing for the card.
        """
        await self._wait_for_slot()
        self.upstream_calls += 1

        try:
            payload = await asyncio.wait_for(
                self._client.fetch_card_pricing(card_id),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("realtime_pricing_timeout", card_id=card_id, timeout_seconds=self._timeout)
            return None
        except Exception as e:
            logger.error(
                "realtime_pricing_fetch_failed",
                card_id=card_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        if not payload:
            logger.info("realtime_pricing_empty", card_id=card_id)
            return None

        try:
            snapshot = snapshot_from_upstream(card_id, payload, self._clock())
        except ValueError as e:
            # pydantic.ValidationError is a ValueError
            logger.error("realtime_pricing_malformed", card_id=card_id, error=str(e))
            return None

        if snapshot is None:
            logger.info("realtime_pricing_no_prices", card_id=card_id)
            return None

        await self._write_back(snapshot)
        logger.info("realtime_pricing_fetched", card_id=card_id)
        return snapshot

    async def _write_back(self, snapshot: PricingSnapshot) -> bool:
        """Update the card's pricing columns. Failure is logged, not raised."""
        values = snapshot_to_columns(snapshot)
        values["updated_at"] = self._clock()
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    update(PokemonCard).where(PokemonCard.id == snapshot.card_id).values(**values)
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(
                "realtime_pricing_writeback_failed",
                card_id=snapshot.card_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        if result.rowcount == 0:
            logger.warning("realtime_pricing_writeback_missing_row", card_id=snapshot.card_id)
            return False
        return True

    async def fetch_fresh_many(self, card_ids: Iterable[str]) -> dict[str, PricingSnapshot | None]:
        """
        Fetch several cards, `batch_size` at a time with a pause between batches.

        Returns:
            Map of card id → snapshot (None where the fetch failed).
        """
        ids = list(dict.fromkeys(i for i in card_ids if i))
        results: dict[str, PricingSnapshot | None] = {}

        for start in range(0, len(ids), self._batch_size):
            batch = ids[start:start + self._batch_size]
            snapshots = await asyncio.gather(*(self.fetch_fresh(i) for i in batch))
            results.update(zip(batch, snapshots))
            if start + self._batch_size < len(ids):
                await asyncio.sleep(self._batch_pause)

        logger.info(
            "realtime_pricing_batch_complete",
            requested=len(ids),
            succeeded=sum(1 for s in results.values() if s is not None),
        )
        return results

    async def check_availability(self, card_id: str) -> dict[str, Any]:
        """
        Whether a card needs a real-time fetch: no stored pricing, or pricing
        older than REALTIME_NEEDED_AFTER_HOURS.
        """
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(PokemonCard.pricing_last_updated, PokemonCard.raw_market, PokemonCard.market_price)
                    .where(PokemonCard.id == card_id)
                )
                row = result.first()
        except SQLAlchemyError as e:
            logger.error("realtime_availability_check_failed", card_id=card_id, error=str(e))
            return {"card_exists": False, "has_pricing": False, "age_hours": None, "needs_realtime": True}

        if row is None:
            return {"card_exists": False, "has_pricing": False, "age_hours": None, "needs_realtime": True}

        last_updated = as_utc(row.pricing_last_updated)
        has_pricing = row.raw_market is not None or row.market_price is not None
        age_hours = (
            (self._clock() - last_updated).total_seconds() / 3600 if last_updated else None
        )
        needs_realtime = (
            not has_pricing
            or age_hours is None
            or age_hours > settings.REALTIME_NEEDED_AFTER_HOURS
        )
        return {
            "card_exists": True,
            "has_pricing": has_pricing,
            "age_hours": round(age_hours, 2) if age_hours is not None else None,
            "needs_realtime": needs_realtime,
        }
