"""
TCG Vault — Database Helpers

Dialect-aware upsert (INSERT ... ON CONFLICT DO UPDATE) that runs on
PostgreSQL in production and SQLite in tests, plus timezone helpers for
TIMESTAMP columns that SQLite hands back naive.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from tcgvault.models.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite); convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


async def upsert_rows(
    session: AsyncSession,
    model: type[Base],
    rows: Sequence[dict[str, Any]],
    index_elements: Iterable[str],
    update_columns: Iterable[str] | None = None,
) -> int:
    """
    Insert rows, updating on primary/unique key conflict. Last writer wins.

    Args:
        session: Async session; caller commits.
        model: Mapped model class.
        rows: Column dicts. All rows must share the same keys.
        index_elements: Conflict target columns.
        update_columns: Columns to overwrite on conflict. Defaults to every
            column present in the rows except the conflict target.

    Returns:
        Number of rows submitted.
    """
    if not rows:
        return 0

    keys = list(index_elements)
    dialect = session.get_bind().dialect.name
    insert = postgresql.insert if dialect == "postgresql" else sqlite.insert

    stmt = insert(model).values(list(rows))
    columns = list(update_columns) if update_columns is not None else [
        c for c in rows[0] if c not in keys
    ]
    if columns:
        stmt = stmt.on_conflict_do_update(
            index_elements=keys,
            set_={c: getattr(stmt.excluded, c) for c in columns},
        )
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=keys)

    await session.execute(stmt)
    return len(rows)
