"""
Tests for the persisted search result store (tcgvault/search/store.py).
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from tcgvault.config import QueryClass
from tcgvault.search.results import CardResult, SearchResults
from tcgvault.search.store import SearchResultStore


def make_results(query: str = "pikachu") -> SearchResults:
    return SearchResults(
        query=query,
        query_class=QueryClass.SINGLE,
        singles=[CardResult(id="sv1-025", name="Pikachu", market_price=Decimal("12.50"))],
        singles_total=1,
        total=1,
        page_size=30,
    )


@pytest.mark.asyncio
async def test_put_then_get(session_factory, utc_clock) -> None:
    store = SearchResultStore(session_factory, ttl_seconds=900, clock=utc_clock)

    assert await store.put("search:abc", make_results(), search_type="single") is True
    results = await store.get("search:abc")

    assert results is not None
    assert results.query == "pikachu"
    assert results.query_class is QueryClass.SINGLE
    assert results.singles[0].market_price == Decimal("12.50")
    assert await store.get("search:missing") is None


@pytest.mark.asyncio
async def test_put_overwrites_same_key(session_factory, utc_clock) -> None:
    store = SearchResultStore(session_factory, ttl_seconds=900, clock=utc_clock)

    await store.put("search:abc", make_results("pikachu"), search_type="single")
    await store.put("search:abc", make_results("raichu"), search_type="single")

    results = await store.get("search:abc")
    assert results.query == "raichu"


@pytest.mark.asyncio
async def test_expired_entries_miss_and_purge(session_factory, utc_clock) -> None:
    store = SearchResultStore(session_factory, ttl_seconds=900, clock=utc_clock)
    await store.put("search:old", make_results(), search_type="single")

    utc_clock.advance(minutes=10)
    await store.put("search:new", make_results(), search_type="single")

    utc_clock.advance(minutes=6)
    assert await store.get("search:old") is None
    assert await store.get("search:new") is not None

    assert await store.purge_expired() == 1
    assert await store.get("search:new") is not None
