"""
TCG Vault — Sync Status Model

Singleton row per sync domain ('pricing', 'catalog', 'tcgcsv'). Mutated only
by the owning sync job; read by is_sync_needed() checks.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import INTEGER, TEXT, TIMESTAMP, String, func
from sqlalchemy.orm import Mapped, mapped_column

from tcgvault.config import SyncState
from tcgvault.models.base import Base


class SyncStatus(Base):
    """Last-run bookkeeping for one sync domain."""

    __tablename__ = "sync_status"

    domain: Mapped[str] = mapped_column(String, primary_key=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default=SyncState.IDLE.value)
    last_run_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    last_success_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True, comment="Age checks measure from here"
    )
    last_error: Mapped[str | None] = mapped_column(TEXT, nullable=True)
    items_synced: Mapped[int] = mapped_column(INTEGER, nullable=False, default=0)
    run_count: Mapped[int] = mapped_column(INTEGER, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"<SyncStatus domain={self.domain!r} status={self.status!r}>"
