"""
TCG Vault — Smart Pricing Orchestrator

Stale-while-revalidate over three layers: in-memory TTL cache → database →
real-time upstream fetch. The state of an item is inferred from the age of
its snapshot, nothing is persisted:

- Fresh  (age < staleness threshold): served from memory or the database.
- Stale  (age ≥ threshold, row exists): served immediately; a background
  refresh is started and the caller does not wait for it.
- Absent (no pricing, or force_refresh): the real-time fetcher is awaited.

Concurrent requests for the same id share one in-flight lookup through the
pending map; every waiter receives the same result. Forced refreshes
coalesce only with each other. Batches run in fixed windows of
`batch_concurrency` ids.

Background refreshes are detached asyncio tasks. Their error channel is a
done-callback that logs failures; close() awaits any still running.

Only database-sourced snapshots are kept in memory. A real-time result is
written back to the database by the fetcher, and the next lookup reads it
from there with source="database".
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from typing import Any

import structlog

from tcgvault.cache.keys import generate_cache_key
from tcgvault.cache.ttl_cache import TTLCache
from tcgvault.config import CacheType, settings
from tcgvault.pricing.database import DatabasePricingReader
from tcgvault.pricing.realtime import RealTimePricingFetcher
from tcgvault.pricing.snapshot import PricingSnapshot
from tcgvault.utils.db import utcnow

logger = structlog.get_logger(__name__)


class SmartPricingService:
    """
    Pricing entry point for UI-level callers.

    Usage:
        service = SmartPricingService(reader, fetcher)
        snapshot = await service.get_pricing("sv1-025")
    """

    def __init__(
        self,
        reader: DatabasePricingReader,
        fetcher: RealTimePricingFetcher,
        cache: TTLCache | None = None,
        stale_threshold_hours: float | None = None,
        memory_ttl_seconds: float | None = None,
        batch_concurrency: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._reader = reader
        self._fetcher = fetcher
        self._cache = cache if cache is not None else TTLCache()
        self._stale_after = timedelta(
            hours=stale_threshold_hours
            if stale_threshold_hours is not None
            else settings.PRICING_STALE_THRESHOLD_HOURS
        )
        self._memory_ttl = (
            memory_ttl_seconds if memory_ttl_seconds is not None else settings.PRICING_MEMORY_TTL_SECONDS
        )
        self._batch_concurrency = batch_concurrency or settings.PRICING_BATCH_CONCURRENCY
        self._clock = clock

        self._pending: dict[tuple[str, bool], asyncio.Task[PricingSnapshot | None]] = {}
        self._refreshing: dict[str, asyncio.Task[None]] = {}

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def get_pricing(
        self,
        card_id: str,
        *,
        force_refresh: bool = False,
        background_refresh: bool = True,
        fallback_to_api: bool = True,
    ) -> PricingSnapshot | None:
        """
        Resolve pricing for one card.

        Args:
            card_id: Catalog card id.
            force_refresh: Skip memory and database; fetch from upstream.
            background_refresh: When serving a stale value, refresh it in the
                background. If False, a stale value triggers a synchronous
                upstream fetch instead (falling back to the stale value).
            fallback_to_api: Allow the upstream fetch when nothing is stored.

        Returns:
            PricingSnapshot, or None when no layer has pricing.
        """
        if not card_id:
            logger.warning("smart_pricing_missing_card_id")
            return None

        if not force_refresh:
            cached = self._cache.get(self._cache_key(card_id))
            if cached is not None:
                logger.debug("smart_pricing_cache_hit", card_id=card_id)
                if not self.is_stale(cached):
                    return cached
                if background_refresh:
                    self._schedule_refresh(card_id)
                    return cached

        # Forced lookups never join a plain one, which may end at the database
        key = (card_id, force_refresh)
        pending = self._pending.get(key)
        if pending is not None:
            logger.debug("smart_pricing_request_coalesced", card_id=card_id, force_refresh=force_refresh)
            return await asyncio.shield(pending)

        task = asyncio.create_task(
            self._resolve(card_id, force_refresh, background_refresh, fallback_to_api)
        )
        self._pending[key] = task
        task.add_done_callback(lambda t, k=key: self._clear_pending(k, t))
        return await asyncio.shield(task)

    async def get_many_pricing(
        self,
        card_ids: Iterable[str],
        **options: Any,
    ) -> dict[str, PricingSnapshot | None]:
        """
        Resolve several cards, `batch_concurrency` at a time.

        Accepts the same keyword options as get_pricing().
        """
        ids = list(dict.fromkeys(i for i in card_ids if i))
        results: dict[str, PricingSnapshot | None] = {}
        for start in range(0, len(ids), self._batch_concurrency):
            window = ids[start:start + self._batch_concurrency]
            snapshots = await asyncio.gather(*(self.get_pricing(i, **options) for i in window))
            results.update(zip(window, snapshots))
        return results

    def is_stale(self, snapshot: PricingSnapshot) -> bool:
        """A snapshot without a timestamp is always stale."""
        if snapshot.last_updated is None:
            return True
        return self._clock() - snapshot.last_updated >= self._stale_after

    def clear_cache(self, card_id: str | None = None) -> None:
        if card_id is not None:
            self._cache.delete(self._cache_key(card_id))
            logger.info("smart_pricing_cache_cleared", card_id=card_id)
        else:
            removed = self._cache.clear_by_type(CacheType.PRICE)
            logger.info("smart_pricing_cache_cleared", entries_removed=removed)

    def get_cache_stats(self) -> dict[str, Any]:
        """Counts of fresh / stale / expired snapshots held in memory."""
        fresh = stale = expired = 0
        for entry in self._cache.entries(CacheType.PRICE):
            meta = self._cache.get_metadata(entry.key)
            if meta is None or meta["is_expired"]:
                expired += 1
            elif self.is_stale(entry.value):
                stale += 1
            else:
                fresh += 1
        return {
            "total_entries": fresh + stale + expired,
            "fresh_entries": fresh,
            "stale_entries": stale,
            "expired_entries": expired,
            "pending_requests": len(self._pending),
            "background_refreshes": len(self._refreshing),
        }

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def close(self) -> None:
        """Wait for outstanding background refreshes to finish."""
        tasks = list(self._refreshing.values())
        if tasks:
            logger.info("smart_pricing_awaiting_refreshes", count=len(tasks))
            await asyncio.gather(*tasks, return_exceptions=True)

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------

    @staticmethod
    def _cache_key(card_id: str) -> str:
        return generate_cache_key("pricing", {"card_id": card_id}, CacheType.PRICE)

    def _clear_pending(self, key: tuple[str, bool], task: asyncio.Task[Any]) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]

    async def _resolve(
        self,
        card_id: str,
        force_refresh: bool,
        background_refresh: bool,
        fallback_to_api: bool,
    ) -> PricingSnapshot | None:
        stored: PricingSnapshot | None = None

        if not force_refresh:
            stored = await self._reader.get_pricing(card_id)
            if stored is not None:
                if not self.is_stale(stored):
                    logger.debug("smart_pricing_database_fresh", card_id=card_id)
                    self._remember(stored)
                    return stored
                if background_refresh:
                    logger.info("smart_pricing_serving_stale", card_id=card_id)
                    self._remember(stored)
                    self._schedule_refresh(card_id)
                    return stored

        if force_refresh or fallback_to_api:
            fresh = await self._fetcher.fetch_fresh(card_id)
            if fresh is not None:
                # Next lookup re-reads the written-back row
                self._cache.delete(self._cache_key(card_id))
                return fresh
            logger.info(
                "smart_pricing_realtime_unavailable",
                card_id=card_id,
                has_stored=stored is not None,
            )

        return stored

    def _remember(self, snapshot: PricingSnapshot) -> None:
        self._cache.set(
            self._cache_key(snapshot.card_id),
            snapshot,
            CacheType.PRICE,
            ttl_seconds=self._memory_ttl,
        )

    def _schedule_refresh(self, card_id: str) -> None:
        """Start a detached refresh unless one is already running for this id."""
        if card_id in self._refreshing:
            return
        task = asyncio.create_task(self._refresh(card_id), name=f"pricing-refresh:{card_id}")
        self._refreshing[card_id] = task
        task.add_done_callback(lambda t, cid=card_id: self._on_refresh_done(cid, t))

    async def _refresh(self, card_id: str) -> None:
        fresh = await self._fetcher.fetch_fresh(card_id)
        if fresh is None:
            logger.warning("smart_pricing_background_refresh_empty", card_id=card_id)
            return
        # Next lookup re-reads the written-back row
        self._cache.delete(self._cache_key(card_id))
        logger.info("smart_pricing_background_refresh_complete", card_id=card_id)

    def _on_refresh_done(self, card_id: str, task: asyncio.Task[None]) -> None:
        self._refreshing.pop(card_id, None)
        if task.cancelled():
            logger.warning("smart_pricing_background_refresh_cancelled", card_id=card_id)
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "smart_pricing_background_refresh_failed",
                card_id=card_id,
                error=str(error),
                error_type=type(error).__name__,
            )
