"""
TCG Vault — Shared pytest Fixtures & Configuration

Provides common fixtures for all test modules:
- File-backed aiosqlite database built from the ORM metadata
- Controllable clocks (monotonic seconds and UTC datetimes)
- Row seeding helpers
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tcgvault.models import Base, Expansion, PokemonCard


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

pytest_plugins = ("pytest_asyncio",)

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Clocks
# ---------------------------------------------------------------------------


class FakeMonotonic:
    """Monotonic-seconds clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUtcClock:
    """UTC wall clock advanced by hand."""

    def __init__(self, start: datetime = NOW):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def monotonic() -> FakeMonotonic:
    return FakeMonotonic()


@pytest.fixture
def utc_clock() -> FakeUtcClock:
    return FakeUtcClock()


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
async def session_factory(tmp_path: Path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """
    Fresh SQLite database per test with every table created from the models.

    File-backed so concurrent sessions get their own connections.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'tcgvault.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    yield factory

    await engine.dispose()


async def seed(factory: async_sessionmaker[AsyncSession], *rows: Any) -> None:
    async with factory() as session:
        session.add_all(rows)
        await session.commit()


def make_expansion(expansion_id: str = "sv1", name: str = "Scarlet & Violet", **kwargs: Any) -> Expansion:
    return Expansion(id=expansion_id, name=name, **kwargs)


def make_card(
    card_id: str = "sv1-025",
    name: str = "Pikachu",
    expansion_id: str | None = "sv1",
    raw_market: str | None = None,
    pricing_last_updated: datetime | None = None,
    **kwargs: Any,
) -> PokemonCard:
    return PokemonCard(
        id=card_id,
        name=name,
        expansion_id=expansion_id,
        raw_market=Decimal(raw_market) if raw_market is not None else None,
        pricing_last_updated=pricing_last_updated,
        **kwargs,
    )
