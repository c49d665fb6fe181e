"""
TCG Vault — Sealed Product Model

Unopened retail products (booster boxes, ETBs, tins, ...) imported from the
CSV-mirror by the sealed-product sync. Keyed by the mirror's product id.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DECIMAL, INTEGER, TIMESTAMP, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from tcgvault.models.base import Base


class SealedProduct(Base):
    """Sealed product with its latest CSV-mirror prices."""

    __tablename__ = "pokemon_sealed_products"

    product_id: Mapped[int] = mapped_column(INTEGER, primary_key=True, autoincrement=False)
    tcgcsv_group_id: Mapped[int] = mapped_column(INTEGER, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    clean_name: Mapped[str | None] = mapped_column(String, nullable=True)
    image_url: Mapped[str | None] = mapped_column(String, nullable=True)
    url: Mapped[str | None] = mapped_column(String, nullable=True)
    market_price: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 2), nullable=True)
    low_price: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 2), nullable=True)
    mid_price: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 2), nullable=True)
    high_price: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 2), nullable=True)
    direct_low_price: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 2), nullable=True)
    sub_type_name: Mapped[str | None] = mapped_column(String, nullable=True)
    expansion_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("pokemon_expansions.id", ondelete="SET NULL"), nullable=True
    )
    expansion_name: Mapped[str | None] = mapped_column(String, nullable=True)
    last_synced_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_sealed_products_group", "tcgcsv_group_id"),
        Index("ix_sealed_products_expansion", "expansion_id"),
    )

    def __repr__(self) -> str:
        return f"<SealedProduct product_id={self.product_id} name={self.name!r}>"
