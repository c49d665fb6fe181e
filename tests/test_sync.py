"""
Tests for the sync jobs (tcgvault/sync/*).

Upstream clients are MagicMocks with AsyncMock methods; rows land in an
aiosqlite database.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import select

from conftest import NOW, make_card, make_expansion, seed
from tcgvault.config import SyncState
from tcgvault.models.card import PokemonCard
from tcgvault.models.expansion import Expansion
from tcgvault.models.sealed_product import SealedProduct
from tcgvault.models.sync_status import SyncStatus
from tcgvault.pipeline.scrydex import ScrydexCard, ScrydexClient, ScrydexExpansion
from tcgvault.pipeline.tcgcsv import TCGCSVClient, TCGCSVGroup, TCGCSVPrice, TCGCSVProduct
from tcgvault.sync.base import ALREADY_RUNNING_MESSAGE, SyncJob
from tcgvault.sync.catalog import CatalogSync
from tcgvault.sync.pricing import PricingSync
from tcgvault.sync.tcgcsv import SealedProductSync
from tcgvault.utils.expansion_map import ExpansionMap


# ---------------------------------------------------------------------------
# Fixtures & builders
# ---------------------------------------------------------------------------

SV1 = ScrydexExpansion(id="sv1", name="Scarlet & Violet", series="Scarlet & Violet", code="SVI",
                       release_date="2023/03/31")
SV3 = ScrydexExpansion(id="sv3", name="Obsidian Flames", code="OBF")


def scrydex_card(card_id: str, name: str, market: float | None = None) -> ScrydexCard:
    prices = {"raw": {"market": market, "low": market, "condition": "NM"}} if market is not None else None
    return ScrydexCard.model_validate({
        "id": card_id,
        "name": name,
        "number": card_id.split("-")[1],
        "images": [{"type": "front", "small": f"https://img/{card_id}-s.png", "large": f"https://img/{card_id}.png"}],
        "prices": prices,
    })


def scrydex_mock(cards_by_expansion: dict[str, list[ScrydexCard]]) -> MagicMock:
    client = MagicMock(spec=ScrydexClient)
    client.fetch_all_expansions = AsyncMock(return_value=[SV1, SV3])
    client.fetch_expansion = AsyncMock(side_effect=lambda eid: {"sv1": SV1, "sv3": SV3}[eid])

    async def fetch_cards(expansion_id: str, include_prices: bool = True):
        cards = cards_by_expansion[expansion_id]
        if isinstance(cards, Exception):
            raise cards
        return cards

    client.fetch_expansion_cards = AsyncMock(side_effect=fetch_cards)
    return client


class SlowJob(SyncJob):
    domain = "slow"

    def __init__(self, session_factory, release: asyncio.Event, **kwargs):
        super().__init__(session_factory, interval_hours=24, **kwargs)
        self.release = release

    async def _run(self, **options):
        await self.release.wait()
        return 3, {"options": options}


class BrokenJob(SyncJob):
    domain = "broken"

    async def _run(self, **options):
        raise ValueError("upstream exploded")


async def load_status(session_factory, domain: str) -> SyncStatus | None:
    async with session_factory() as session:
        return await session.get(SyncStatus, domain)


# ---------------------------------------------------------------------------
# SyncJob lifecycle
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_overlapping_trigger_is_rejected(session_factory, utc_clock) -> None:
    release = asyncio.Event()
    job = SlowJob(session_factory, release, clock=utc_clock)

    first = asyncio.create_task(job.trigger_sync(limit=1))
    await asyncio.sleep(0.05)
    assert job.is_sync_active()

    second = await job.trigger_sync()
    assert second.success is False
    assert second.message == ALREADY_RUNNING_MESSAGE

    release.set()
    result = await first
    assert result.success is True
    assert result.items_synced == 3
    assert result.details == {"options": {"limit": 1}}
    assert not job.is_sync_active()

    status = await load_status(session_factory, "slow")
    assert status.status == SyncState.COMPLETED.value
    assert status.items_synced == 3
    assert status.run_count == 1


@pytest.mark.asyncio
async def test_failure_is_recorded_and_returned(session_factory, utc_clock) -> None:
    job = BrokenJob(session_factory, interval_hours=24, clock=utc_clock)

    result = await job.trigger_sync()

    assert result.success is False
    assert result.error == "upstream exploded"
    assert not job.is_sync_active()

    status = await load_status(session_factory, "broken")
    assert status.status == SyncState.FAILED.value
    assert status.last_error == "ValueError: upstream exploded"
    assert status.last_success_at is None


@pytest.mark.asyncio
async def test_is_sync_needed_follows_last_success(session_factory, utc_clock) -> None:
    release = asyncio.Event()
    release.set()
    job = SlowJob(session_factory, release, clock=utc_clock)

    assert await job.is_sync_needed() is True

    await job.trigger_sync()
    assert await job.is_sync_needed() is False

    utc_clock.advance(hours=23)
    assert await job.is_sync_needed() is False

    utc_clock.advance(hours=1)
    assert await job.is_sync_needed() is True


@pytest.mark.asyncio
async def test_failed_run_keeps_previous_success(session_factory, utc_clock) -> None:
    await seed(session_factory, SyncStatus(
        domain="broken", status=SyncState.COMPLETED.value,
        last_success_at=NOW - timedelta(hours=1), items_synced=5, run_count=1,
    ))
    job = BrokenJob(session_factory, interval_hours=24, clock=utc_clock)

    await job.trigger_sync()

    assert await job.is_sync_needed() is False
    stats = await job.get_stats()
    assert stats["status"] == SyncState.FAILED.value
    assert stats["run_count"] == 2
    assert stats["last_error"].startswith("ValueError")


@pytest.mark.asyncio
async def test_auto_sync_if_needed(session_factory, utc_clock) -> None:
    release = asyncio.Event()
    release.set()
    job = SlowJob(session_factory, release, clock=utc_clock)

    first = await job.auto_sync_if_needed()
    second = await job.auto_sync_if_needed()

    assert first is not None and first.success
    assert second is None


# ---------------------------------------------------------------------------
# CatalogSync
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_catalog_sync_stores_expansions_and_cards(session_factory, utc_clock) -> None:
    client = scrydex_mock({
        "sv1": [scrydex_card("sv1-025", "Pikachu", 12.5), scrydex_card("sv1-001", "Sprigatito")],
        "sv3": [scrydex_card("sv3-125", "Charizard ex", 30)],
    })
    job = CatalogSync(client, session_factory, expansion_map=ExpansionMap({"sv1": 23001}), clock=utc_clock)

    result = await job.trigger_sync()

    assert result.success is True
    assert result.items_synced == 3
    assert result.details["failed_expansions"] == []

    async with session_factory() as session:
        sv1 = await session.get(Expansion, "sv1")
        pikachu = await session.get(PokemonCard, "sv1-025")
        sprigatito = await session.get(PokemonCard, "sv1-001")
    assert sv1.tcgcsv_group_id == 23001
    assert sv1.code == "SVI"
    assert pikachu.raw_market == Decimal("12.50")
    assert pikachu.expansion_name == "Scarlet & Violet"
    assert pikachu.images["large"] == "https://img/sv1-025.png"
    assert sprigatito.raw_market is None

    stats = await job.get_stats()
    assert stats["cards"] == 3
    assert stats["expansions"] == 2


@pytest.mark.asyncio
async def test_catalog_sync_keeps_pricing_for_unpriced_cards(session_factory, utc_clock) -> None:
    await seed(
        session_factory,
        make_expansion(),
        make_card("sv1-025", raw_market="9.99", pricing_last_updated=NOW - timedelta(days=2)),
    )
    client = scrydex_mock({"sv1": [scrydex_card("sv1-025", "Pikachu")]})
    job = CatalogSync(client, session_factory, clock=utc_clock)

    await job.trigger_sync(expansion_ids=["sv1"])

    async with session_factory() as session:
        card = await session.get(PokemonCard, "sv1-025")
    assert card.raw_market == Decimal("9.99")
    client.fetch_all_expansions.assert_not_awaited()


@pytest.mark.asyncio
async def test_catalog_sync_isolates_failing_expansion(session_factory, utc_clock) -> None:
    client = scrydex_mock({
        "sv1": RuntimeError("timeout"),
        "sv3": [scrydex_card("sv3-125", "Charizard ex", 30)],
    })
    job = CatalogSync(client, session_factory, clock=utc_clock)

    result = await job.trigger_sync()

    assert result.success is True
    assert result.items_synced == 1
    assert result.details["failed_expansions"] == ["sv1"]


@pytest.mark.asyncio
async def test_catalog_sync_fails_when_every_expansion_fails(session_factory, utc_clock) -> None:
    client = scrydex_mock({"sv1": RuntimeError("down"), "sv3": RuntimeError("down")})
    job = CatalogSync(client, session_factory, clock=utc_clock)

    result = await job.trigger_sync()

    assert result.success is False
    status = await load_status(session_factory, "catalog")
    assert status.status == SyncState.FAILED.value


# ---------------------------------------------------------------------------
# PricingSync
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_pricing_sync_updates_known_cards_only(session_factory, utc_clock) -> None:
    await seed(
        session_factory,
        make_expansion(),
        make_card("sv1-025", raw_market="5.00", pricing_last_updated=NOW - timedelta(days=3)),
        make_card("sv1-001", name="Sprigatito"),
    )
    client = scrydex_mock({"sv1": [
        scrydex_card("sv1-025", "Pikachu", 12.5),
        scrydex_card("sv1-001", "Sprigatito"),
        scrydex_card("sv1-999", "Unknown", 1),
    ]})
    job = PricingSync(client, session_factory, clock=utc_clock)

    result = await job.trigger_sync()

    assert result.success is True
    assert result.details["cards_updated"] == 1
    assert result.details["cards_skipped"] == 2

    async with session_factory() as session:
        pikachu = await session.get(PokemonCard, "sv1-025")
        unknown = await session.get(PokemonCard, "sv1-999")
    assert pikachu.raw_market == Decimal("12.50")
    assert pikachu.name == "Pikachu"
    assert unknown is None


@pytest.mark.asyncio
async def test_pricing_sync_stats_report_coverage(session_factory, utc_clock) -> None:
    await seed(
        session_factory,
        make_expansion(),
        make_card("sv1-025", raw_market="5.00", pricing_last_updated=NOW - timedelta(days=3)),
        make_card("sv1-026", name="Raichu", raw_market="1.00", pricing_last_updated=NOW - timedelta(hours=1)),
        make_card("sv1-001", name="Sprigatito"),
        make_card("sv1-002", name="Floragato"),
    )
    job = PricingSync(scrydex_mock({}), session_factory, interval_hours=24, clock=utc_clock)

    stats = await job.get_stats()

    assert stats["total_cards"] == 4
    assert stats["cards_with_pricing"] == 2
    assert stats["stale_pricing"] == 1
    assert stats["coverage_percent"] == 50.0
    assert stats["needs_sync"] is True


# ---------------------------------------------------------------------------
# SealedProductSync
# ---------------------------------------------------------------------------


def tcgcsv_mock(groups: list[TCGCSVGroup], products: dict[int, list], prices: dict[int, list]) -> MagicMock:
    client = MagicMock(spec=TCGCSVClient)
    client.fetch_groups = AsyncMock(return_value=groups)

    async def fetch_products(group_id: int):
        result = products[group_id]
        if isinstance(result, Exception):
            raise result
        return result

    client.fetch_products = AsyncMock(side_effect=fetch_products)
    client.fetch_prices = AsyncMock(side_effect=lambda group_id: prices.get(group_id, []))
    return client


def product(product_id: int, group_id: int, name: str, number: str | None = None) -> TCGCSVProduct:
    extended = [{"name": "Number", "value": number}] if number else []
    return TCGCSVProduct.model_validate({
        "productId": product_id, "groupId": group_id, "name": name, "extendedData": extended,
    })


def price(product_id: int, market: str) -> TCGCSVPrice:
    return TCGCSVPrice.model_validate({"productId": product_id, "marketPrice": market, "subTypeName": None})


@pytest.mark.asyncio
async def test_sealed_sync_imports_sealed_products(session_factory, utc_clock) -> None:
    await seed(session_factory, make_expansion("sv1"))
    group = TCGCSVGroup.model_validate({"groupId": 23001, "name": "SV01: Scarlet & Violet Base Set"})
    client = tcgcsv_mock(
        [group],
        {23001: [
            product(1, 23001, "Scarlet & Violet Booster Box"),
            product(2, 23001, "Pikachu", number="025/198"),
            product(3, 23001, "Code Card - Scarlet & Violet Booster"),
        ]},
        {23001: [price(1, "143.20")]},
    )
    job = SealedProductSync(
        client, session_factory, expansion_map=ExpansionMap({"sv1": 23001}), group_pause=0, clock=utc_clock,
    )

    result = await job.trigger_sync()

    assert result.success is True
    assert result.items_synced == 1
    assert result.details["skipped"] == 2

    async with session_factory() as session:
        rows = list(await session.scalars(select(SealedProduct)))
    assert len(rows) == 1
    assert rows[0].market_price == Decimal("143.20")
    assert rows[0].sub_type_name == "Normal"
    assert rows[0].expansion_id == "sv1"
    assert rows[0].expansion_name == "SV01: Scarlet & Violet Base Set"


@pytest.mark.asyncio
async def test_sealed_sync_leaves_expansion_unset_without_catalog_row(session_factory, utc_clock) -> None:
    group = TCGCSVGroup.model_validate({"groupId": 23001, "name": "SV01"})
    client = tcgcsv_mock([group], {23001: [product(1, 23001, "Booster Bundle")]}, {})
    job = SealedProductSync(
        client, session_factory, expansion_map=ExpansionMap({"sv1": 23001}), group_pause=0, clock=utc_clock,
    )

    await job.trigger_sync()

    async with session_factory() as session:
        row = await session.get(SealedProduct, 1)
    assert row.expansion_id is None
    assert row.market_price is None


@pytest.mark.asyncio
async def test_sealed_sync_falls_back_to_stored_group_id(session_factory, utc_clock) -> None:
    await seed(session_factory, make_expansion("sv3", "Obsidian Flames", tcgcsv_group_id=23228))
    group = TCGCSVGroup.model_validate({"groupId": 23228, "name": "SV03: Obsidian Flames"})
    client = tcgcsv_mock([group], {23228: [product(7, 23228, "Obsidian Flames Elite Trainer Box")]}, {})
    job = SealedProductSync(client, session_factory, expansion_map=ExpansionMap({}), group_pause=0, clock=utc_clock)

    await job.trigger_sync()

    async with session_factory() as session:
        row = await session.get(SealedProduct, 7)
    assert row.expansion_id == "sv3"


@pytest.mark.asyncio
async def test_sealed_sync_group_limit_and_progress(session_factory, utc_clock) -> None:
    groups = [
        TCGCSVGroup.model_validate({"groupId": gid, "name": f"Group {gid}"})
        for gid in (1, 2, 3)
    ]
    client = tcgcsv_mock(
        groups,
        {1: RuntimeError("boom"), 2: [product(20, 2, "Tin")], 3: [product(30, 3, "Box")]},
        {},
    )
    progress: list[dict] = []
    job = SealedProductSync(client, session_factory, expansion_map=ExpansionMap({}), group_pause=0, clock=utc_clock)

    result = await job.trigger_sync(group_limit=2, on_progress=progress.append)

    assert result.success is True
    assert result.details["groups"] == 2
    assert result.details["errors"] == 1
    assert [p["current"] for p in progress] == [1, 2]
    assert progress[-1]["total"] == 2
    assert progress[-1]["total_imported"] == 1
    assert progress[-1]["total_errors"] == 1
    assert client.fetch_products.await_count == 2

    stats = await job.get_stats()
    assert stats["sealed_products"] == 1
    assert stats["priced_products"] == 0
    assert stats["mapped_expansions"] == 0
