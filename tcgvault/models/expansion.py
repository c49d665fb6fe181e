"""
TCG Vault — Expansion Model

One row per card expansion (set). Created and refreshed by the catalog sync;
catalog items reference it by id. `tcgcsv_group_id` links the row to the
CSV-mirror's numeric group when known.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import BOOLEAN, DATE, INTEGER, TIMESTAMP, String, func
from sqlalchemy.orm import Mapped, mapped_column

from tcgvault.models.base import Base


class Expansion(Base):
    """A named release of cards, e.g. id 'sv1' / 'Scarlet & Violet'."""

    __tablename__ = "pokemon_expansions"

    id: Mapped[str] = mapped_column(String, primary_key=True, comment="Catalog expansion id (e.g., 'sv1')")
    name: Mapped[str] = mapped_column(String, nullable=False)
    series: Mapped[str | None] = mapped_column(String, nullable=True)
    code: Mapped[str | None] = mapped_column(String, nullable=True, comment="Printed set code (e.g., 'SVI')")
    total: Mapped[int | None] = mapped_column(INTEGER, nullable=True)
    printed_total: Mapped[int | None] = mapped_column(INTEGER, nullable=True)
    release_date: Mapped[date | None] = mapped_column(DATE, nullable=True)
    is_online_only: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, default=False)
    logo: Mapped[str | None] = mapped_column(String, nullable=True)
    symbol: Mapped[str | None] = mapped_column(String, nullable=True)
    tcgcsv_group_id: Mapped[int | None] = mapped_column(
        INTEGER, nullable=True, index=True, comment="CSV-mirror group id"
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"<Expansion id={self.id!r} name={self.name!r}>"
