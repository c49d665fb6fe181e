"""
Tests for the TTL cache (tcgvault/cache/ttl_cache.py).

Covers:
- set/get round trip within TTL, absence after expiry
- has() is side-effect free
- capacity handling: expired sweep first, then oldest-inserted eviction
- per-type TTL policies and per-call overrides
- counters and get_stats()
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from tcgvault.cache.ttl_cache import TTLCache
from tcgvault.config import CacheType


@pytest.fixture
def cache(monotonic) -> TTLCache:
    return TTLCache(
        policies={CacheType.SEARCH: 60, CacheType.PRICE: 600},
        max_entries=3,
        clock=monotonic,
    )


# ---------------------------------------------------------------------------
# Round trip and expiry
# ---------------------------------------------------------------------------


def test_get_returns_value_within_ttl(cache: TTLCache, monotonic) -> None:
    cache.set("k", {"a": 1}, CacheType.SEARCH)
    monotonic.advance(59)
    assert cache.get("k") == {"a": 1}


def test_get_returns_default_after_expiry_and_removes_entry(cache: TTLCache, monotonic) -> None:
    cache.set("k", "v", CacheType.SEARCH)
    monotonic.advance(61)

    assert cache.get("k") is None
    assert cache.get("k", "fallback") == "fallback"
    assert len(cache) == 0
    assert cache.stats.misses == 2


def test_entry_is_valid_exactly_at_expiry(cache: TTLCache, monotonic) -> None:
    cache.set("k", "v", CacheType.SEARCH)
    monotonic.advance(60)
    assert cache.get("k") == "v"


def test_ttl_override_beats_policy(cache: TTLCache, monotonic) -> None:
    cache.set("k", "v", CacheType.PRICE, ttl_seconds=5)
    monotonic.advance(6)
    assert cache.get("k") is None


def test_unknown_policy_type_falls_back_to_default_ttl(monotonic) -> None:
    cache = TTLCache(policies={CacheType.DEFAULT: 10}, clock=monotonic)
    assert cache.ttl_for(CacheType.DEFAULT) == 10


def test_has_does_not_touch_counters_or_storage(cache: TTLCache, monotonic) -> None:
    cache.set("k", "v", CacheType.SEARCH)
    assert cache.has("k") is True
    monotonic.advance(61)
    assert cache.has("k") is False

    # Expired entry is still stored until get()/sweep
    assert len(cache) == 1
    assert cache.stats.hits == 0
    assert cache.stats.misses == 0


def test_none_is_a_cacheable_value(cache: TTLCache) -> None:
    cache.set("k", None)
    assert cache.has("k") is True
    sentinel = object()
    assert cache.get("k", sentinel) is None


# ---------------------------------------------------------------------------
# Capacity
# ---------------------------------------------------------------------------


def test_capacity_evicts_oldest_inserted(cache: TTLCache) -> None:
    cache.set("a", 1, CacheType.PRICE)
    cache.set("b", 2, CacheType.PRICE)
    cache.set("c", 3, CacheType.PRICE)
    cache.get("a")  # reads do not refresh insertion order

    cache.set("d", 4, CacheType.PRICE)

    assert not cache.has("a")
    assert [cache.get(k) for k in ("b", "c", "d")] == [2, 3, 4]
    assert cache.stats.evictions == 1


def test_capacity_sweeps_expired_before_evicting(cache: TTLCache, monotonic) -> None:
    cache.set("old", 1, CacheType.PRICE)
    cache.set("short", 2, CacheType.SEARCH)
    cache.set("keep", 3, CacheType.PRICE)
    monotonic.advance(120)  # only "short" expired

    cache.set("new", 4, CacheType.PRICE)

    assert cache.has("old")
    assert cache.has("keep")
    assert cache.has("new")
    assert len(cache) == 3


def test_overwrite_does_not_evict(cache: TTLCache) -> None:
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)
    cache.set("a", 10)

    assert len(cache) == 3
    assert cache.get("a") == 10
    assert cache.stats.evictions == 0


# ---------------------------------------------------------------------------
# Deletion and type management
# ---------------------------------------------------------------------------


def test_delete_and_clear_by_type(cache: TTLCache) -> None:
    cache.set("s", 1, CacheType.SEARCH)
    cache.set("p", 2, CacheType.PRICE)

    assert cache.delete("missing") is False
    assert cache.clear_by_type(CacheType.SEARCH) == 1
    assert cache.has("p")
    assert cache.delete("p") is True
    assert len(cache) == 0


def test_update_policy_applies_to_new_entries(cache: TTLCache, monotonic) -> None:
    cache.update_policy(CacheType.SEARCH, 10)
    cache.set("k", "v", CacheType.SEARCH)
    monotonic.advance(11)
    assert cache.get("k") is None


def test_update_policy_rejects_non_positive(cache: TTLCache) -> None:
    with pytest.raises(ValueError):
        cache.update_policy(CacheType.SEARCH, 0)


def test_get_metadata_reports_ttl_remaining(cache: TTLCache, monotonic) -> None:
    cache.set("k", "v", CacheType.SEARCH)
    monotonic.advance(20)

    meta = cache.get_metadata("k")
    assert meta["cache_type"] == "search"
    assert meta["ttl_remaining"] == 40
    assert meta["is_expired"] is False
    assert cache.get_metadata("missing") is None


# ---------------------------------------------------------------------------
# API-response helpers and stats
# ---------------------------------------------------------------------------


def test_api_response_helpers_ignore_param_order(cache: TTLCache) -> None:
    cache.cache_api_response("/cards", {"q": "pikachu", "page": 1}, ["card"], CacheType.CARD)

    assert cache.is_api_response_cached("/cards", {"page": 1, "q": "pikachu"}, CacheType.CARD)
    assert cache.get_cached_api_response("/cards", {"page": 1, "q": "pikachu"}, CacheType.CARD) == ["card"]
    assert cache.get_cached_api_response("/cards", {"q": "pikachu", "page": 2}, CacheType.CARD) is None


def test_stats_track_hits_misses_and_credit_savings(monotonic) -> None:
    cache = TTLCache(clock=monotonic, credit_costs={"search": Decimal("2"), "default": Decimal("1")})
    cache.set("s", 1, CacheType.SEARCH)
    cache.get("s")
    cache.get("s")
    cache.get("missing")

    stats = cache.get_stats()
    assert stats["hits"] == 2
    assert stats["misses"] == 1
    assert stats["hit_rate"] == 66.67
    assert stats["api_calls_saved"] == 2
    assert stats["credit_savings"] == Decimal("4")
    assert stats["type_counts"] == {"search": 1}

    cache.reset_stats()
    assert cache.get_stats()["hits"] == 0
