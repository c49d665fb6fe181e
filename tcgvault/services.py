"""
TCG Vault — Service Wiring

Explicit construction of every service from its collaborators. Nothing in
the package reaches for a module-level instance; callers (main.py, tests,
an HTTP layer) build one Services bundle and pass pieces down.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tcgvault.cache.ttl_cache import TTLCache
from tcgvault.config import settings
from tcgvault.pipeline.images import ImageSearchClient
from tcgvault.pipeline.pricecharting import PriceChartingClient
from tcgvault.pipeline.scrydex import ScrydexClient
from tcgvault.pipeline.tcgcsv import TCGCSVClient
from tcgvault.pricing.database import DatabasePricingReader
from tcgvault.pricing.realtime import RealTimePricingFetcher
from tcgvault.pricing.smart import SmartPricingService
from tcgvault.search.hybrid import HybridSearchRouter
from tcgvault.search.images import ImageService
from tcgvault.search.local import LocalCatalogRepository
from tcgvault.search.store import SearchResultStore
from tcgvault.sync.base import SyncJob
from tcgvault.sync.catalog import CatalogSync
from tcgvault.sync.pricing import PricingSync
from tcgvault.sync.tcgcsv import SealedProductSync
from tcgvault.utils.expansion_map import ExpansionMap


@dataclass
class Services:
    cache: TTLCache
    expansion_map: ExpansionMap
    pricing_reader: DatabasePricingReader
    pricing_fetcher: RealTimePricingFetcher
    pricing: SmartPricingService
    catalog: LocalCatalogRepository
    search: HybridSearchRouter
    images: ImageService
    catalog_sync: CatalogSync
    pricing_sync: PricingSync
    sealed_sync: SealedProductSync

    @property
    def sync_jobs(self) -> list[SyncJob]:
        # Catalog first: pricing sync only updates cards the catalog already holds
        return [self.catalog_sync, self.pricing_sync, self.sealed_sync]


def build_services(
    session_factory: async_sessionmaker[AsyncSession],
    scrydex: ScrydexClient,
    pricecharting: PriceChartingClient | None,
    tcgcsv: TCGCSVClient,
    image_search: ImageSearchClient | None = None,
    cache: TTLCache | None = None,
) -> Services:
    """
    Wire the pricing, search and sync layers around shared clients.

    Clients must already be entered (async with) by the caller, which owns
    their lifetime.
    """
    cache = cache if cache is not None else TTLCache()
    expansion_map = ExpansionMap()

    reader = DatabasePricingReader(session_factory)
    fetcher = RealTimePricingFetcher(scrydex, session_factory)
    catalog = LocalCatalogRepository(session_factory)
    store = SearchResultStore(session_factory) if settings.SEARCH_PERSIST_RESULTS else None

    return Services(
        cache=cache,
        expansion_map=expansion_map,
        pricing_reader=reader,
        pricing_fetcher=fetcher,
        pricing=SmartPricingService(reader, fetcher, cache),
        catalog=catalog,
        search=HybridSearchRouter(catalog, pricecharting, cache, store=store),
        images=ImageService(image_search, cache),
        catalog_sync=CatalogSync(scrydex, session_factory, expansion_map),
        pricing_sync=PricingSync(scrydex, session_factory),
        sealed_sync=SealedProductSync(tcgcsv, session_factory, expansion_map),
    )
