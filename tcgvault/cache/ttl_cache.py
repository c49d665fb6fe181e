"""
TCG Vault — TTL Key-Value Cache

Process-local map from a derived cache key to a value plus expiry metadata.
Each entry carries a type tag that selects its TTL policy (search results,
card metadata, pricing, images, ...).

Behaviour:
- get() treats an entry past its expiry as absent, deletes it, counts a miss.
- has() is a side-effect-free existence + validity check.
- set() at capacity first sweeps every expired entry; if the cache is still
  full the oldest-inserted entry is evicted (insertion order, not recency).

Nothing is persisted. Counters are for observability only.

The cache is an explicitly constructed object. Services receive an instance
in their constructor rather than importing a module-level global.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import structlog

from tcgvault.cache.keys import generate_cache_key
from tcgvault.config import CacheType, settings

logger = structlog.get_logger(__name__)


def default_policies() -> dict[CacheType, int]:
    """TTL (seconds) per cache type, taken from settings."""
    return {
        CacheType.SEARCH: settings.CACHE_TTL_SEARCH_SECONDS,
        CacheType.CARD: settings.CACHE_TTL_CARD_SECONDS,
        CacheType.EXPANSION: settings.CACHE_TTL_EXPANSION_SECONDS,
        CacheType.PRICE: settings.CACHE_TTL_PRICE_SECONDS,
        CacheType.PRICE_HISTORY: settings.CACHE_TTL_PRICE_HISTORY_SECONDS,
        CacheType.SEALED: settings.CACHE_TTL_SEALED_SECONDS,
        CacheType.IMAGE: settings.CACHE_TTL_IMAGE_SECONDS,
        CacheType.USAGE: settings.CACHE_TTL_USAGE_SECONDS,
        CacheType.DEFAULT: settings.CACHE_TTL_DEFAULT_SECONDS,
    }


@dataclass
class CacheEntry:
    """A cached value with its lifecycle timestamps (clock seconds)."""

    key: str
    value: Any
    cache_type: CacheType
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


@dataclass
class CacheStats:
    """Running counters. Never reset except by reset_stats()."""

    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    evictions: int = 0
    api_calls_saved: int = 0
    credit_savings: Decimal = field(default_factory=lambda: Decimal("0"))


class TTLCache:
    """
    In-memory TTL cache with per-type expiry policies.

    Usage:
        cache = TTLCache()
        cache.set(key, value, CacheType.SEARCH)
        value = cache.get(key)
    """

    def __init__(
        self,
        policies: dict[CacheType, int] | None = None,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
        credit_costs: dict[str, Decimal] | None = None,
    ):
        self._policies = default_policies()
        if policies:
            self._policies.update(policies)
        self._max_entries = max_entries or settings.CACHE_MAX_ENTRIES
        self._clock = clock
        self._credit_costs = credit_costs or settings.CACHE_CREDIT_COSTS
        self._entries: dict[str, CacheEntry] = {}
        self.stats = CacheStats()

    def __len__(self) -> int:
        return len(self._entries)

    # -----------------------------------------------------------------------
    # Core operations
    # -----------------------------------------------------------------------

    def ttl_for(self, cache_type: CacheType) -> int:
        return self._policies.get(cache_type, self._policies[CacheType.DEFAULT])

    def get(self, key: str, default: Any = None) -> Any:
        """
        Return the cached value, or `default` when absent or expired.

        An expired entry is removed as part of the lookup.
        """
        entry = self._entries.get(key)
        if entry is None:
            self.stats.misses += 1
            return default

        if entry.is_expired(self._clock()):
            del self._entries[key]
            self.stats.misses += 1
            logger.debug("cache_entry_expired", key=key, cache_type=entry.cache_type.value)
            return default

        self.stats.hits += 1
        self.stats.api_calls_saved += 1
        self.stats.credit_savings += self._credit_cost(entry.cache_type)
        return entry.value

    def has(self, key: str) -> bool:
        """True if a non-expired entry exists. Does not touch counters or storage."""
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def set(
        self,
        key: str,
        value: Any,
        cache_type: CacheType = CacheType.DEFAULT,
        ttl_seconds: float | None = None,
    ) -> None:
        """
        Store a value with expiry = now + TTL.

        Args:
            key: Cache key (see tcgvault.cache.keys).
            value: Any value; None is a legitimate cached value.
            cache_type: Selects the default TTL policy.
            ttl_seconds: Per-call override of the policy TTL.
        """
        now = self._clock()
        ttl = ttl_seconds if ttl_seconds is not None else self.ttl_for(cache_type)

        if key in self._entries:
            # Re-insert so insertion order reflects the latest write
            del self._entries[key]
        elif len(self._entries) >= self._max_entries:
            self._make_room(now)

        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            cache_type=cache_type,
            created_at=now,
            expires_at=now + ttl,
        )
        self.stats.sets += 1

    def delete(self, key: str) -> bool:
        if self._entries.pop(key, None) is None:
            return False
        self.stats.deletes += 1
        return True

    def clear(self) -> None:
        count = len(self._entries)
        self._entries.clear()
        logger.info("cache_cleared", entries_removed=count)

    def clear_by_type(self, cache_type: CacheType) -> int:
        """Remove every entry of one type. Returns the number removed."""
        doomed = [k for k, e in self._entries.items() if e.cache_type == cache_type]
        for key in doomed:
            del self._entries[key]
        logger.info("cache_cleared_by_type", cache_type=cache_type.value, entries_removed=len(doomed))
        return len(doomed)

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def entries(self, cache_type: CacheType | None = None) -> Iterator[CacheEntry]:
        """Iterate entries (expired ones included), optionally of one type."""
        for entry in list(self._entries.values()):
            if cache_type is None or entry.cache_type == cache_type:
                yield entry

    def get_metadata(self, key: str) -> dict[str, Any] | None:
        """Lifecycle information for a key without reading its value."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        now = self._clock()
        return {
            "cache_type": entry.cache_type.value,
            "created_at": entry.created_at,
            "expires_at": entry.expires_at,
            "ttl_remaining": max(0.0, entry.expires_at - now),
            "is_expired": entry.is_expired(now),
        }

    def update_policy(self, cache_type: CacheType, ttl_seconds: int) -> None:
        """Change the default TTL for a type. Existing entries keep their expiry."""
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self._policies[cache_type] = ttl_seconds
        logger.info("cache_policy_updated", cache_type=cache_type.value, ttl_seconds=ttl_seconds)

    # -----------------------------------------------------------------------
    # API-response helpers
    # -----------------------------------------------------------------------

    def cache_api_response(
        self,
        endpoint: str,
        params: dict[str, Any] | None,
        data: Any,
        cache_type: CacheType = CacheType.DEFAULT,
    ) -> str:
        """Store an upstream response under its derived key. Returns the key."""
        key = generate_cache_key(endpoint, params, cache_type)
        self.set(key, data, cache_type)
        return key

    def get_cached_api_response(
        self,
        endpoint: str,
        params: dict[str, Any] | None,
        cache_type: CacheType = CacheType.DEFAULT,
    ) -> Any:
        return self.get(generate_cache_key(endpoint, params, cache_type))

    def is_api_response_cached(
        self,
        endpoint: str,
        params: dict[str, Any] | None,
        cache_type: CacheType = CacheType.DEFAULT,
    ) -> bool:
        return self.has(generate_cache_key(endpoint, params, cache_type))

    # -----------------------------------------------------------------------
    # Observability
    # -----------------------------------------------------------------------

    def get_stats(self) -> dict[str, Any]:
        """Counters plus a point-in-time breakdown of what is held."""
        now = self._clock()
        active = 0
        expired = 0
        type_counts: dict[str, int] = {}
        for entry in self._entries.values():
            if entry.is_expired(now):
                expired += 1
            else:
                active += 1
            type_counts[entry.cache_type.value] = type_counts.get(entry.cache_type.value, 0) + 1

        lookups = self.stats.hits + self.stats.misses
        hit_rate = round(self.stats.hits / lookups * 100, 2) if lookups else 0.0

        return {
            "hits": self.stats.hits,
            "misses": self.stats.misses,
            "sets": self.stats.sets,
            "deletes": self.stats.deletes,
            "evictions": self.stats.evictions,
            "hit_rate": hit_rate,
            "api_calls_saved": self.stats.api_calls_saved,
            "credit_savings": self.stats.credit_savings,
            "total_entries": len(self._entries),
            "active_entries": active,
            "expired_entries": expired,
            "max_entries": self._max_entries,
            "type_counts": type_counts,
        }

    def reset_stats(self) -> None:
        self.stats = CacheStats()

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------

    def _credit_cost(self, cache_type: CacheType) -> Decimal:
        cost = self._credit_costs.get(cache_type.value, self._credit_costs.get("default", 1))
        return Decimal(str(cost))

    def _make_room(self, now: float) -> None:
        swept = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in swept:
            del self._entries[key]
        self.stats.evictions += len(swept)

        if len(self._entries) >= self._max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            self.stats.evictions += 1
            logger.debug("cache_capacity_eviction", key=oldest)
