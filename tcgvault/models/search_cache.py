"""
TCG Vault — Persisted Search Cache

Second tier behind the in-memory TTL cache: hybrid search results survive a
restart until `expires_at`. Written and read by search/store.py.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import INTEGER, TIMESTAMP, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from tcgvault.models.base import Base, JSONType


class SearchCacheEntry(Base):
    """One persisted hybrid-search result page."""

    __tablename__ = "search_cache"

    id: Mapped[int] = mapped_column(INTEGER, primary_key=True, autoincrement=True)
    cache_key: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    query: Mapped[str] = mapped_column(String, nullable=False)
    game: Mapped[str] = mapped_column(String, nullable=False, default="pokemon")
    search_type: Mapped[str] = mapped_column(String, nullable=False)
    expansion_id: Mapped[str | None] = mapped_column(String, nullable=True)
    page: Mapped[int] = mapped_column(INTEGER, nullable=False, default=1)
    page_size: Mapped[int] = mapped_column(INTEGER, nullable=False)
    results: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    total_results: Mapped[int] = mapped_column(INTEGER, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), server_default=func.now())
    expires_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    __table_args__ = (Index("ix_search_cache_expires", "expires_at"),)

    def __repr__(self) -> str:
        return f"<SearchCacheEntry key={self.cache_key!r} total={self.total_results}>"
