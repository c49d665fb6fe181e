"""
Tests for the hybrid search router (tcgvault/search/hybrid.py).

Local catalog searches run against aiosqlite; the sealed-pricing API is an
injected mock.
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import make_card, make_expansion, seed
from tcgvault.cache.ttl_cache import TTLCache
from tcgvault.config import QueryClass
from tcgvault.models.sealed_product import SealedProduct
from tcgvault.pipeline.pricecharting import PriceChartingClient, PriceChartingProduct
from tcgvault.search.hybrid import HybridSearchRouter, split_page_size
from tcgvault.search.local import LocalCatalogRepository
from tcgvault.search.results import SearchFilters
from tcgvault.search.store import SearchResultStore


def product(pid: int, name: str, console: str = "Pokemon Scarlet & Violet", new_price: int | None = None):
    return PriceChartingProduct.model_validate(
        {"id": pid, "product-name": name, "console-name": console, "new-price": new_price}
    )


@pytest.fixture
async def repo(session_factory) -> LocalCatalogRepository:
    await seed(
        session_factory,
        make_expansion("sv1", "Scarlet & Violet", code="SVI"),
        make_expansion("sv3", "Obsidian Flames", code="OBF"),
        make_expansion("sv4", "Paradox Rift", code="PAR"),
    )
    await seed(
        session_factory,
        make_card("sv1-025", "Pikachu", "sv1", raw_market="1.50", number="025", rarity="Common"),
        make_card("sv1-063", "Pikachu ex", "sv1", raw_market="4.00", number="063", rarity="Double Rare"),
        make_card("sv3-125", "Charizard ex", "sv3", raw_market="45.00", number="125", rarity="Double Rare"),
        make_card("sv3-026", "Charmander", "sv3", number="026", rarity="Common"),
        SealedProduct(
            product_id=1001, tcgcsv_group_id=22873, name="Scarlet & Violet Elite Trainer Box",
            expansion_id="sv1", expansion_name="Scarlet & Violet", market_price=Decimal("49.99"),
        ),
        SealedProduct(product_id=1002, tcgcsv_group_id=22873, name="Pikachu Collection Box"),
        SealedProduct(
            product_id=1003, tcgcsv_group_id=23228, name="Obsidian Flames Booster Box",
            expansion_id="sv3", expansion_name="Obsidian Flames",
        ),
    )
    return LocalCatalogRepository(session_factory)


@pytest.fixture
def sealed_api() -> MagicMock:
    api = MagicMock(spec=PriceChartingClient)
    api.search_sealed_products = AsyncMock(return_value=[])
    api.fetch_product = AsyncMock()
    return api


@pytest.fixture
def router(repo, sealed_api) -> HybridSearchRouter:
    return HybridSearchRouter(repo, sealed_api, TTLCache())


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_sealed_query_searches_sealed_only(router, repo) -> None:
    repo.search_cards = AsyncMock(wraps=repo.search_cards)

    results = await router.smart_search("elite trainer box")

    assert results.query_class is QueryClass.SEALED
    assert [p.id for p in results.sealed] == ["1001"]
    assert results.sealed[0].source == "database"
    assert results.singles == []
    assert results.total == 1
    repo.search_cards.assert_not_awaited()


@pytest.mark.asyncio
async def test_single_query_searches_singles_only(router, repo, sealed_api) -> None:
    repo.search_sealed_products = AsyncMock(wraps=repo.search_sealed_products)

    results = await router.smart_search("charizard ex")

    assert results.query_class is QueryClass.SINGLE
    assert [c.id for c in results.singles] == ["sv3-125"]
    assert results.singles[0].market_price == Decimal("45.00")
    assert results.sealed == []
    repo.search_sealed_products.assert_not_awaited()
    sealed_api.search_sealed_products.assert_not_awaited()


@pytest.mark.asyncio
async def test_ambiguous_query_searches_both_and_sums_totals(router) -> None:
    results = await router.smart_search("pikachu")

    assert results.query_class is QueryClass.AMBIGUOUS
    assert {c.id for c in results.singles} == {"sv1-025", "sv1-063"}
    assert [p.id for p in results.sealed] == ["1002"]
    assert results.singles_total == 2
    assert results.sealed_total == 1
    assert results.total == 3


@pytest.mark.asyncio
async def test_ambiguous_page_size_is_split_per_path(router) -> None:
    results = await router.smart_search("pikachu", page_size=2)

    assert len(results.singles) == 1
    assert len(results.sealed) == 1
    assert results.total == 3

    second = await router.smart_search("pikachu", page=2, page_size=2)
    assert len(second.singles) == 1
    assert second.sealed == []
    assert {results.singles[0].id, second.singles[0].id} == {"sv1-025", "sv1-063"}


@pytest.mark.parametrize("page_size,expected", [(30, (15, 15)), (5, (3, 2)), (1, (1, 1))])
def test_split_page_size(page_size: int, expected: tuple[int, int]) -> None:
    assert split_page_size(page_size) == expected


@pytest.mark.asyncio
async def test_failing_path_does_not_sink_the_other(router, repo) -> None:
    repo.search_sealed_products = AsyncMock(side_effect=RuntimeError("db gone"))

    results = await router.smart_search("pikachu")

    assert results.singles_total == 2
    assert results.sealed == []
    assert results.total == 2


@pytest.mark.asyncio
async def test_filters_apply_to_singles(router) -> None:
    results = await router.smart_search("pikachu ex", filters=SearchFilters(rarity="Double Rare"))
    assert [c.id for c in results.singles] == ["sv1-063"]

    by_name = await router.smart_search(
        "ex", filters=SearchFilters(sort_by="name", sort_order="desc")
    )
    assert [c.name for c in by_name.singles] == ["Pikachu ex", "Charizard ex"]


@pytest.mark.asyncio
async def test_invalid_paging_raises(router) -> None:
    with pytest.raises(ValueError):
        await router.smart_search("pikachu", page=0)


# ---------------------------------------------------------------------------
# Caching tiers
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_repeat_search_served_from_memory(router, repo) -> None:
    repo.search_cards = AsyncMock(wraps=repo.search_cards)

    first = await router.smart_search("charizard ex")
    second = await router.smart_search("  Charizard EX ")

    assert first.cached is False
    assert second.cached is True
    assert second.source == "cache"
    assert second.singles == first.singles
    assert repo.search_cards.await_count == 1


@pytest.mark.asyncio
async def test_persisted_results_survive_a_fresh_memory_cache(repo, sealed_api, session_factory) -> None:
    store = SearchResultStore(session_factory)
    await HybridSearchRouter(repo, sealed_api, TTLCache(), store=store).smart_search("pikachu")

    repo.search_cards = AsyncMock(wraps=repo.search_cards)
    results = await HybridSearchRouter(repo, sealed_api, TTLCache(), store=store).smart_search("pikachu")

    assert results.source == "store"
    assert results.cached is True
    assert results.total == 3
    repo.search_cards.assert_not_awaited()


# ---------------------------------------------------------------------------
# Sealed-pricing API fallback
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_sealed_api_fallback_when_database_has_nothing(router, sealed_api) -> None:
    sealed_api.search_sealed_products.return_value = [
        product(555, "Ultra Premium Collection", new_price=12999),
        product(556, "Charizard ex #199 Collection"),
    ]

    results = await router.smart_search("ultra premium collection")

    assert results.query_class is QueryClass.SEALED
    assert [p.id for p in results.sealed] == ["555"]
    assert results.sealed[0].source == "pricecharting"
    assert results.sealed[0].market_price == Decimal("129.99")
    assert results.sealed[0].expansion_name == "Scarlet & Violet"


@pytest.mark.asyncio
async def test_sealed_api_responses_are_cached(router, sealed_api) -> None:
    sealed_api.search_sealed_products.return_value = [product(555, "Ultra Premium Collection")]

    await router.search_sealed("ultra premium collection")
    await router.search_sealed("ultra premium collection", page=2)

    sealed_api.search_sealed_products.assert_awaited_once()


@pytest.mark.asyncio
async def test_sealed_for_expansion_falls_back_and_filters_by_expansion(router, sealed_api) -> None:
    sealed_api.search_sealed_products.return_value = [
        product(700, "Paradox Rift Booster Box", console="Pokemon Paradox Rift"),
        product(701, "Obsidian Flames Elite Trainer Box", console="Pokemon Obsidian Flames"),
    ]

    result = await router.get_sealed_for_expansion("sv4")

    assert [p.id for p in result.items] == ["700"]
    assert result.items[0].expansion_id == "sv4"
    sealed_api.search_sealed_products.assert_awaited_once_with("pokemon Paradox Rift")


@pytest.mark.asyncio
async def test_sealed_for_expansion_prefers_database(router, sealed_api) -> None:
    result = await router.get_sealed_for_expansion("sv3")

    assert [p.id for p in result.items] == ["1003"]
    sealed_api.search_sealed_products.assert_not_awaited()


@pytest.mark.asyncio
async def test_sealed_for_expansion_tries_each_fallback_query(router, sealed_api) -> None:
    result = await router.get_sealed_for_expansion("sv4")

    assert result.total == 0
    assert [c.args[0] for c in sealed_api.search_sealed_products.await_args_list] == [
        "pokemon Paradox Rift",
        "pokemon PAR",
        "pokemon elite trainer box",
    ]


@pytest.mark.asyncio
async def test_product_details_error_returns_none(router, sealed_api) -> None:
    sealed_api.fetch_product.side_effect = RuntimeError("quota")
    assert await router.get_product_details("555") is None

    sealed_api.fetch_product.side_effect = None
    sealed_api.fetch_product.return_value = product(555, "Ultra Premium Collection", new_price=100)
    details = await router.get_product_details("555")
    assert details.market_price == Decimal("1.00")
