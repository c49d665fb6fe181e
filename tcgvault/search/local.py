"""
TCG Vault — Local Catalog Repository

Database search over pokemon_cards and pokemon_sealed_products. Every
whitespace-separated query term must appear (case-insensitive substring) in
at least one searchable column; an empty query matches everything in scope.

Raises SQLAlchemyError on database failure; the hybrid router isolates it.
"""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import Select, and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tcgvault.models.card import PokemonCard
from tcgvault.models.expansion import Expansion
from tcgvault.models.sealed_product import SealedProduct
from tcgvault.search.results import CardResult, PathResult, SealedResult, SearchFilters

logger = structlog.get_logger(__name__)


def _terms(query: str) -> list[str]:
    return [t for t in query.lower().split() if t]


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _match_all_terms(query: str, *columns: Any) -> Any:
    """AND over terms, OR over columns."""
    clauses = [
        or_(*(col.ilike(_like_pattern(term), escape="\\") for col in columns))
        for term in _terms(query)
    ]
    return and_(*clauses) if clauses else None


async def _page(
    session: AsyncSession,
    stmt: Select[Any],
    page: int,
    page_size: int,
) -> tuple[list[Any], int]:
    total = await session.scalar(select(func.count()).select_from(stmt.order_by(None).subquery()))
    rows = await session.scalars(stmt.offset((page - 1) * page_size).limit(page_size))
    return list(rows), int(total or 0)


def _validate_paging(page: int, page_size: int) -> None:
    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")
    if page_size < 1:
        raise ValueError(f"page_size must be >= 1, got {page_size}")


class LocalCatalogRepository:
    """
    Read-only catalog queries.

    Usage:
        repo = LocalCatalogRepository(session_factory)
        result = await repo.search_cards("charizard", page=1, page_size=30)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def search_cards(
        self,
        query: str,
        page: int = 1,
        page_size: int = 30,
        expansion_id: str | None = None,
        filters: SearchFilters | None = None,
    ) -> PathResult:
        """
        Single-card search on name, number and artist.

        Returns:
            PathResult of CardResult items and the full match count.
        """
        _validate_paging(page, page_size)
        filters = filters or SearchFilters()

        stmt = select(PokemonCard)
        match = _match_all_terms(query, PokemonCard.name, PokemonCard.number, PokemonCard.artist)
        if match is not None:
            stmt = stmt.where(match)
        if expansion_id:
            stmt = stmt.where(PokemonCard.expansion_id == expansion_id)
        if filters.supertype:
            stmt = stmt.where(PokemonCard.supertype == filters.supertype)
        if filters.rarity:
            stmt = stmt.where(PokemonCard.rarity == filters.rarity)
        if filters.artists:
            stmt = stmt.where(PokemonCard.artist.in_(filters.artists))

        sort_column = {
            "name": PokemonCard.name,
            "number": PokemonCard.number,
            "rarity": PokemonCard.rarity,
        }[filters.sort_by]
        ordering = sort_column.desc() if filters.sort_order == "desc" else sort_column.asc()
        stmt = stmt.order_by(ordering, PokemonCard.id)

        async with self._session_factory() as session:
            cards, total = await _page(session, stmt, page, page_size)

        items = [
            CardResult(
                id=card.id,
                name=card.name,
                number=card.number,
                rarity=card.rarity,
                supertype=card.supertype,
                artist=card.artist,
                expansion_id=card.expansion_id,
                expansion_name=card.expansion_name,
                image_url=card.image_url,
                market_price=card.raw_market if card.raw_market is not None else card.market_price,
            )
            for card in cards
        ]
        logger.debug("local_search_cards", query=query, page=page, returned=len(items), total=total)
        return PathResult(items, total)

    async def search_sealed_products(
        self,
        query: str,
        page: int = 1,
        page_size: int = 30,
        expansion_id: str | None = None,
    ) -> PathResult:
        """Sealed-product search on product name and expansion name."""
        _validate_paging(page, page_size)

        stmt = select(SealedProduct)
        match = _match_all_terms(query, SealedProduct.name, SealedProduct.expansion_name)
        if match is not None:
            stmt = stmt.where(match)
        if expansion_id:
            stmt = stmt.where(SealedProduct.expansion_id == expansion_id)
        stmt = stmt.order_by(SealedProduct.name, SealedProduct.product_id)

        async with self._session_factory() as session:
            products, total = await _page(session, stmt, page, page_size)

        items = [
            SealedResult(
                id=str(p.product_id),
                name=p.name,
                expansion_id=p.expansion_id,
                expansion_name=p.expansion_name,
                image_url=p.image_url,
                market_price=p.market_price,
                low_price=p.low_price,
                mid_price=p.mid_price,
                high_price=p.high_price,
                source="database",
            )
            for p in products
        ]
        logger.debug("local_search_sealed", query=query, page=page, returned=len(items), total=total)
        return PathResult(items, total)

    async def get_expansion(self, expansion_id: str) -> Expansion | None:
        async with self._session_factory() as session:
            return await session.get(Expansion, expansion_id)

    async def get_card(self, card_id: str) -> PokemonCard | None:
        async with self._session_factory() as session:
            return await session.get(PokemonCard, card_id)
