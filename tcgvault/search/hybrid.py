"""
TCG Vault — Hybrid Search Router

Routes a free-text query to the right catalog path(s):

1. Classify the query (pluggable QueryClassifier).
2. SEALED    → sealed path only: local sealed-product table, else the
               sealed-pricing API filtered to the expansion and stripped of
               anything carrying a card-number marker ("#").
3. SINGLE    → local card catalog only.
4. AMBIGUOUS → both paths concurrently, each isolated from the other's
               failure; the page size is split (sealed gets
               max(1, page_size // 2), singles the rest).
5. Cache the merged result in memory (search TTL) and in search_cache.

Pagination is applied per path before concatenation. Page N of an ambiguous
search is page N of each path, not page N of the merged set, and
total = singles_total + sealed_total.

Provider failures never surface: a failing path logs and contributes an
empty result.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import Any

import structlog

from tcgvault.cache.keys import search_cache_key
from tcgvault.cache.ttl_cache import TTLCache
from tcgvault.config import CacheType, QueryClass, settings
from tcgvault.models.expansion import Expansion
from tcgvault.pipeline.pricecharting import PriceChartingClient, PriceChartingProduct
from tcgvault.search.classifier import KeywordQueryClassifier, QueryClassifier
from tcgvault.search.local import LocalCatalogRepository
from tcgvault.search.results import (
    PathResult,
    SealedResult,
    SearchFilters,
    SearchResults,
)
from tcgvault.search.store import SearchResultStore

logger = structlog.get_logger(__name__)

_EMPTY = PathResult([], 0)

# Tried in order when an expansion has no locally imported sealed products
_EXPANSION_FALLBACK_QUERIES = ("pokemon {name}", "pokemon {code}", "pokemon elite trainer box")


def split_page_size(page_size: int) -> tuple[int, int]:
    """(singles, sealed) page sizes for an ambiguous search."""
    sealed = max(1, page_size // 2)
    singles = max(1, page_size - sealed)
    return singles, sealed


def matches_expansion(product: PriceChartingProduct, expansion_terms: list[str]) -> bool:
    """Substring match of expansion name/code against product and set names."""
    haystacks = (
        product.product_name.lower(),
        product.console_name.lower(),
        product.set_name.lower(),
    )
    return any(term in hay for term in expansion_terms for hay in haystacks)


def looks_like_single(product: PriceChartingProduct) -> bool:
    return "#" in product.product_name


def to_sealed_result(product: PriceChartingProduct, expansion_id: str | None = None) -> SealedResult:
    price = product.to_price()
    return SealedResult(
        id=product.id,
        name=product.product_name,
        expansion_id=expansion_id,
        expansion_name=product.set_name or None,
        image_url=product.image_url,
        market_price=price.market_value,
        low_price=price.low,
        mid_price=price.mid,
        high_price=price.high,
        source="pricecharting",
    )


class HybridSearchRouter:
    """
    Search entry point for UI-level callers.

    Usage:
        router = HybridSearchRouter(local_repo, pricecharting_client, cache)
        results = await router.smart_search("elite trainer box")
    """

    def __init__(
        self,
        local: LocalCatalogRepository,
        sealed_api: PriceChartingClient | None,
        cache: TTLCache | None = None,
        classifier: QueryClassifier | None = None,
        store: SearchResultStore | None = None,
        default_page_size: int | None = None,
    ):
        self._local = local
        self._sealed_api = sealed_api
        self._cache = cache if cache is not None else TTLCache()
        self._classifier = classifier or KeywordQueryClassifier()
        self._store = store
        self._default_page_size = default_page_size or settings.SEARCH_DEFAULT_PAGE_SIZE

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def smart_search(
        self,
        query: str,
        game: str = "pokemon",
        *,
        page: int = 1,
        page_size: int | None = None,
        expansion_id: str | None = None,
        filters: SearchFilters | None = None,
    ) -> SearchResults:
        """
        Classify, dispatch, merge and cache a search.

        Args:
            query: Free-text query.
            game: Game namespace; part of the cache key.
            page: 1-based page, applied per path.
            page_size: Requested page size (split for ambiguous queries).
            expansion_id: Restrict both paths to one expansion.
            filters: Single-card filters.

        Returns:
            SearchResults; `cached` is True when served from a cache tier.
        """
        page_size = page_size or self._default_page_size
        if page < 1 or page_size < 1:
            raise ValueError(f"page and page_size must be >= 1, got {page}, {page_size}")

        query_class = self._classifier.classify(query)
        filters = filters or SearchFilters()
        key = search_cache_key(
            query, game, query_class.value, expansion_id, page, page_size, filters.cache_params()
        )

        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("hybrid_search_cache_hit", query=query, cache_key=key)
            return cached.model_copy(update={"cached": True, "source": "cache"})

        if self._store is not None:
            stored = await self._store.get(key)
            if stored is not None:
                logger.debug("hybrid_search_store_hit", query=query, cache_key=key)
                self._cache.set(key, stored, CacheType.SEARCH)
                return stored.model_copy(update={"cached": True, "source": "store"})

        logger.info(
            "hybrid_search_dispatch",
            query=query,
            query_class=query_class.value,
            page=page,
            page_size=page_size,
            expansion_id=expansion_id,
        )

        if query_class is QueryClass.SEALED:
            singles = _EMPTY
            sealed = await self._isolated(
                "sealed", self.search_sealed(query, page, page_size, expansion_id)
            )
        elif query_class is QueryClass.SINGLE:
            singles = await self._isolated(
                "singles", self._local.search_cards(query, page, page_size, expansion_id, filters)
            )
            sealed = _EMPTY
        else:
            singles_size, sealed_size = split_page_size(page_size)
            singles, sealed = await asyncio.gather(
                self._isolated(
                    "singles",
                    self._local.search_cards(query, page, singles_size, expansion_id, filters),
                ),
                self._isolated(
                    "sealed", self.search_sealed(query, page, sealed_size, expansion_id)
                ),
            )

        results = SearchResults(
            query=query,
            game=game,
            query_class=query_class,
            singles=singles.items,
            sealed=sealed.items,
            singles_total=singles.total,
            sealed_total=sealed.total,
            total=singles.total + sealed.total,
            page=page,
            page_size=page_size,
        )

        self._cache.set(key, results, CacheType.SEARCH)
        if self._store is not None:
            await self._store.put(key, results, query_class.value, expansion_id)

        logger.info(
            "hybrid_search_complete",
            query=query,
            query_class=query_class.value,
            singles=len(results.singles),
            sealed=len(results.sealed),
            total=results.total,
        )
        return results

    async def search_singles(
        self,
        query: str,
        page: int = 1,
        page_size: int | None = None,
        expansion_id: str | None = None,
        filters: SearchFilters | None = None,
    ) -> PathResult:
        """Single-card path only, without classification or caching."""
        return await self._isolated(
            "singles",
            self._local.search_cards(
                query, page, page_size or self._default_page_size, expansion_id, filters
            ),
        )

    async def search_sealed(
        self,
        query: str,
        page: int = 1,
        page_size: int | None = None,
        expansion_id: str | None = None,
    ) -> PathResult:
        """
        Sealed path: local table first, sealed-pricing API when it has nothing.

        Raises whatever the local repository raises; callers that need
        isolation wrap it (smart_search does).
        """
        page_size = page_size or self._default_page_size
        local = await self._local.search_sealed_products(query, page, page_size, expansion_id)
        if local.total > 0 or self._sealed_api is None:
            return local

        expansion = await self._local.get_expansion(expansion_id) if expansion_id else None
        products = await self._external_sealed(query)
        return self._filter_and_page(products, page, page_size, expansion_id, expansion)

    async def get_sealed_for_expansion(
        self,
        expansion_id: str,
        page: int = 1,
        page_size: int | None = None,
    ) -> PathResult:
        """
        Sealed products for one expansion, falling back to API queries built
        from the expansion's name, then its code, then a generic ETB search.
        """
        page_size = page_size or self._default_page_size
        try:
            local = await self._local.search_sealed_products("", page, page_size, expansion_id)
            if local.total > 0 or self._sealed_api is None:
                return local

            expansion = await self._local.get_expansion(expansion_id)
            if expansion is None:
                logger.info("hybrid_search_unknown_expansion", expansion_id=expansion_id)
                return _EMPTY

            for template in _EXPANSION_FALLBACK_QUERIES:
                if "{code}" in template and not expansion.code:
                    continue
                products = await self._external_sealed(
                    template.format(name=expansion.name, code=expansion.code)
                )
                result = self._filter_and_page(products, page, page_size, expansion_id, expansion)
                if result.total > 0:
                    return result
        except Exception as e:
            logger.error(
                "hybrid_search_expansion_sealed_failed",
                expansion_id=expansion_id,
                error=str(e),
                error_type=type(e).__name__,
            )
        return _EMPTY

    async def get_product_details(self, product_id: str) -> SealedResult | None:
        """Sealed product details from the sealed-pricing API, or None."""
        if self._sealed_api is None:
            return None
        try:
            product = await self._sealed_api.fetch_product(product_id)
        except Exception as e:
            logger.error(
                "hybrid_search_product_details_failed",
                product_id=product_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None
        return to_sealed_result(product)

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------

    async def _isolated(self, path: str, call: Awaitable[PathResult]) -> PathResult:
        """Await one provider path; any failure becomes an empty result."""
        try:
            return await call
        except Exception as e:
            logger.error(
                "hybrid_search_path_failed",
                path=path,
                error=str(e),
                error_type=type(e).__name__,
            )
            return _EMPTY

    async def _external_sealed(self, query: str) -> list[PriceChartingProduct]:
        """Sealed-pricing API search, cached under the sealed TTL."""
        assert self._sealed_api is not None
        params: dict[str, Any] = {"q": query}
        cached = self._cache.get_cached_api_response("/products", params, CacheType.SEALED)
        if cached is not None:
            return cached

        products = await self._sealed_api.search_sealed_products(query)
        self._cache.cache_api_response("/products", params, products, CacheType.SEALED)
        return products

    def _filter_and_page(
        self,
        products: list[PriceChartingProduct],
        page: int,
        page_size: int,
        expansion_id: str | None,
        expansion: Expansion | None,
    ) -> PathResult:
        kept = [p for p in products if not looks_like_single(p)]

        if expansion_id:
            terms = [t.lower() for t in (
                expansion.name if expansion else expansion_id,
                expansion.code if expansion else None,
            ) if t]
            kept = [p for p in kept if matches_expansion(p, terms)]

        start = (page - 1) * page_size
        items = [to_sealed_result(p, expansion_id) for p in kept[start:start + page_size]]
        return PathResult(items, len(kept))
