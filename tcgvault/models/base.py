"""
SQLAlchemy 2.0 async DeclarativeBase for TCG Vault.

All models inherit from this Base. JSONType stores JSON portably: JSONB on
PostgreSQL, plain JSON (TEXT) elsewhere, so tests can run on SQLite.
"""

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all TCG Vault database models."""
    pass
