"""
TCG Vault — Pokémon Card Model (catalog item + pricing snapshot)

The catalog row for a single card. Pricing is embedded as flattened columns
rather than a separate table: one block per condition class (raw, graded)
plus the basic market/low/mid/high set, trend percentages at 7/30/90/180-day
windows, and the raw upstream `prices` payload.

`pricing_last_updated` is what the staleness policy measures age against.
Rows are written only by the sync jobs and the real-time pricing write-back.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import BOOLEAN, DECIMAL, TIMESTAMP, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from tcgvault.models.base import Base, JSONType

# Trend windows stored for both raw and graded blocks
TREND_WINDOWS = (7, 30, 90, 180)


class PokemonCard(Base):
    """
    A single card. Identifier is provider-scoped (e.g., 'sv1-025').

    expansion_id must resolve to a pokemon_expansions row or be null.
    """

    __tablename__ = "pokemon_cards"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    supertype: Mapped[str | None] = mapped_column(String, nullable=True)
    subtypes: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    types: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    expansion_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("pokemon_expansions.id", ondelete="SET NULL"), nullable=True
    )
    expansion_name: Mapped[str | None] = mapped_column(String, nullable=True)
    number: Mapped[str | None] = mapped_column(String, nullable=True)
    rarity: Mapped[str | None] = mapped_column(String, nullable=True)
    artist: Mapped[str | None] = mapped_column(String, nullable=True)
    images: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    # --- Raw (ungraded) pricing -------------------------------------------
    raw_market: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 2), nullable=True)
    raw_low: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 2), nullable=True)
    raw_mid: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 2), nullable=True)
    raw_high: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 2), nullable=True)
    raw_condition: Mapped[str | None] = mapped_column(String, nullable=True)
    raw_currency: Mapped[str | None] = mapped_column(String, nullable=True)
    raw_is_perfect: Mapped[bool | None] = mapped_column(BOOLEAN, nullable=True)
    raw_is_signed: Mapped[bool | None] = mapped_column(BOOLEAN, nullable=True)
    raw_is_error: Mapped[bool | None] = mapped_column(BOOLEAN, nullable=True)
    raw_trend_7d_percent: Mapped[Decimal | None] = mapped_column(DECIMAL(8, 2), nullable=True)
    raw_trend_30d_percent: Mapped[Decimal | None] = mapped_column(DECIMAL(8, 2), nullable=True)
    raw_trend_90d_percent: Mapped[Decimal | None] = mapped_column(DECIMAL(8, 2), nullable=True)
    raw_trend_180d_percent: Mapped[Decimal | None] = mapped_column(DECIMAL(8, 2), nullable=True)

    # --- Graded pricing ---------------------------------------------------
    graded_market: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 2), nullable=True)
    graded_low: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 2), nullable=True)
    graded_mid: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 2), nullable=True)
    graded_high: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 2), nullable=True)
    graded_grade: Mapped[str | None] = mapped_column(String, nullable=True)
    graded_company: Mapped[str | None] = mapped_column(String, nullable=True)
    graded_currency: Mapped[str | None] = mapped_column(String, nullable=True)
    graded_trend_7d_percent: Mapped[Decimal | None] = mapped_column(DECIMAL(8, 2), nullable=True)
    graded_trend_30d_percent: Mapped[Decimal | None] = mapped_column(DECIMAL(8, 2), nullable=True)
    graded_trend_90d_percent: Mapped[Decimal | None] = mapped_column(DECIMAL(8, 2), nullable=True)
    graded_trend_180d_percent: Mapped[Decimal | None] = mapped_column(DECIMAL(8, 2), nullable=True)

    # --- Basic pricing ----------------------------------------------------
    market_price: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 2), nullable=True)
    low_price: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 2), nullable=True)
    mid_price: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 2), nullable=True)
    high_price: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 2), nullable=True)

    prices: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType, nullable=True, comment="Raw upstream pricing payload"
    )
    pricing_last_updated: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True, comment="Staleness is measured from here"
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        Index("ix_pokemon_cards_expansion", "expansion_id"),
        Index("ix_pokemon_cards_name", "name"),
    )

    @property
    def image_url(self) -> str | None:
        if self.images:
            return self.images.get("large") or self.images.get("small")
        return None

    def __repr__(self) -> str:
        return f"<PokemonCard id={self.id!r} name={self.name!r} raw_market={self.raw_market}>"
