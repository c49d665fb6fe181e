"""
TCG Vault — Persisted Search Result Store

Second-tier cache for hybrid search results in the search_cache table, so a
result page survives process restarts until it expires. Database failures
are logged and treated as a miss / skipped write.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tcgvault.config import settings
from tcgvault.models.search_cache import SearchCacheEntry
from tcgvault.search.results import SearchResults
from tcgvault.utils.db import as_utc, upsert_rows, utcnow

logger = structlog.get_logger(__name__)


class SearchResultStore:
    """
    get/put of SearchResults by cache key.

    Usage:
        store = SearchResultStore(session_factory)
        await store.put(key, results, search_type="single", expansion_id=None)
        results = await store.get(key)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ttl_seconds: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._ttl = timedelta(seconds=ttl_seconds or settings.CACHE_TTL_SEARCH_SECONDS)
        self._clock = clock

    async def get(self, cache_key: str) -> SearchResults | None:
        try:
            async with self._session_factory() as session:
                entry = await session.scalar(
                    select(SearchCacheEntry).where(SearchCacheEntry.cache_key == cache_key)
                )
        except SQLAlchemyError as e:
            logger.error("search_store_read_failed", cache_key=cache_key, error=str(e))
            return None

        if entry is None:
            return None
        if as_utc(entry.expires_at) <= self._clock():
            logger.debug("search_store_entry_expired", cache_key=cache_key)
            return None
        return SearchResults.model_validate(entry.results)

    async def put(
        self,
        cache_key: str,
        results: SearchResults,
        search_type: str,
        expansion_id: str | None = None,
    ) -> bool:
        now = self._clock()
        row: dict[str, Any] = {
            "cache_key": cache_key,
            "query": results.query,
            "game": results.game,
            "search_type": search_type,
            "expansion_id": expansion_id,
            "page": results.page,
            "page_size": results.page_size,
            "results": results.model_dump(mode="json"),
            "total_results": results.total,
            "created_at": now,
            "expires_at": now + self._ttl,
        }
        try:
            async with self._session_factory() as session:
                await upsert_rows(session, SearchCacheEntry, [row], index_elements=["cache_key"])
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("search_store_write_failed", cache_key=cache_key, error=str(e))
            return False
        return True

    async def purge_expired(self) -> int:
        """Delete expired rows. Returns the number removed."""
        async with self._session_factory() as session:
            result = await session.execute(
                delete(SearchCacheEntry).where(SearchCacheEntry.expires_at <= self._clock())
            )
            await session.commit()
        removed = result.rowcount or 0
        logger.info("search_store_purged", removed=removed)
        return removed
