"""Initial schema — expansions, cards with pricing, sealed products, search cache, sync status

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TREND_WINDOWS = (7, 30, 90, 180)


def _price(name: str) -> sa.Column:
    return sa.Column(name, sa.DECIMAL(10, 2), nullable=True)


def _trend(name: str) -> sa.Column:
    return sa.Column(name, sa.DECIMAL(8, 2), nullable=True)


def _updated_at() -> sa.Column:
    return sa.Column(
        "updated_at",
        sa.TIMESTAMP(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def upgrade() -> None:
    # --- pokemon_expansions ---
    op.create_table(
        "pokemon_expansions",
        sa.Column("id", sa.String(), primary_key=True, comment="Catalog expansion id (e.g., 'sv1')"),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("series", sa.String(), nullable=True),
        sa.Column("code", sa.String(), nullable=True, comment="Printed set code (e.g., 'SVI')"),
        sa.Column("total", sa.INTEGER(), nullable=True),
        sa.Column("printed_total", sa.INTEGER(), nullable=True),
        sa.Column("release_date", sa.DATE(), nullable=True),
        sa.Column("is_online_only", sa.BOOLEAN(), nullable=False, server_default=sa.false()),
        sa.Column("logo", sa.String(), nullable=True),
        sa.Column("symbol", sa.String(), nullable=True),
        sa.Column("tcgcsv_group_id", sa.INTEGER(), nullable=True, comment="CSV-mirror group id"),
        _updated_at(),
    )
    op.create_index("ix_pokemon_expansions_tcgcsv_group_id", "pokemon_expansions", ["tcgcsv_group_id"])

    # --- pokemon_cards (catalog + flattened pricing) ---
    op.create_table(
        "pokemon_cards",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("supertype", sa.String(), nullable=True),
        sa.Column("subtypes", JSONB(), nullable=True),
        sa.Column("types", JSONB(), nullable=True),
        sa.Column(
            "expansion_id",
            sa.String(),
            sa.ForeignKey("pokemon_expansions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("expansion_name", sa.String(), nullable=True),
        sa.Column("number", sa.String(), nullable=True),
        sa.Column("rarity", sa.String(), nullable=True),
        sa.Column("artist", sa.String(), nullable=True),
        sa.Column("images", JSONB(), nullable=True),
        _price("raw_market"),
        _price("raw_low"),
        _price("raw_mid"),
        _price("raw_high"),
        sa.Column("raw_condition", sa.String(), nullable=True),
        sa.Column("raw_currency", sa.String(), nullable=True),
        sa.Column("raw_is_perfect", sa.BOOLEAN(), nullable=True),
        sa.Column("raw_is_signed", sa.BOOLEAN(), nullable=True),
        sa.Column("raw_is_error", sa.BOOLEAN(), nullable=True),
        *[_trend(f"raw_trend_{d}d_percent") for d in TREND_WINDOWS],
        _price("graded_market"),
        _price("graded_low"),
        _price("graded_mid"),
        _price("graded_high"),
        sa.Column("graded_grade", sa.String(), nullable=True),
        sa.Column("graded_company", sa.String(), nullable=True),
        sa.Column("graded_currency", sa.String(), nullable=True),
        *[_trend(f"graded_trend_{d}d_percent") for d in TREND_WINDOWS],
        _price("market_price"),
        _price("low_price"),
        _price("mid_price"),
        _price("high_price"),
        sa.Column("prices", JSONB(), nullable=True, comment="Raw upstream pricing payload"),
        sa.Column(
            "pricing_last_updated",
            sa.TIMESTAMP(timezone=True),
            nullable=True,
            comment="Staleness is measured from here",
        ),
        _updated_at(),
    )
    op.create_index("ix_pokemon_cards_expansion", "pokemon_cards", ["expansion_id"])
    op.create_index("ix_pokemon_cards_name", "pokemon_cards", ["name"])

    # --- pokemon_sealed_products (CSV-mirror import) ---
    op.create_table(
        "pokemon_sealed_products",
        sa.Column("product_id", sa.INTEGER(), primary_key=True, autoincrement=False),
        sa.Column("tcgcsv_group_id", sa.INTEGER(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("clean_name", sa.String(), nullable=True),
        sa.Column("image_url", sa.String(), nullable=True),
        sa.Column("url", sa.String(), nullable=True),
        _price("market_price"),
        _price("low_price"),
        _price("mid_price"),
        _price("high_price"),
        _price("direct_low_price"),
        sa.Column("sub_type_name", sa.String(), nullable=True),
        sa.Column(
            "expansion_id",
            sa.String(),
            sa.ForeignKey("pokemon_expansions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("expansion_name", sa.String(), nullable=True),
        sa.Column(
            "last_synced_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_sealed_products_group", "pokemon_sealed_products", ["tcgcsv_group_id"])
    op.create_index("ix_sealed_products_expansion", "pokemon_sealed_products", ["expansion_id"])

    # --- search_cache (persisted hybrid search pages) ---
    op.create_table(
        "search_cache",
        sa.Column("id", sa.INTEGER(), primary_key=True, autoincrement=True),
        sa.Column("cache_key", sa.String(), nullable=False, unique=True),
        sa.Column("query", sa.String(), nullable=False),
        sa.Column("game", sa.String(), nullable=False, server_default="pokemon"),
        sa.Column("search_type", sa.String(), nullable=False),
        sa.Column("expansion_id", sa.String(), nullable=True),
        sa.Column("page", sa.INTEGER(), nullable=False, server_default="1"),
        sa.Column("page_size", sa.INTEGER(), nullable=False),
        sa.Column("results", JSONB(), nullable=False),
        sa.Column("total_results", sa.INTEGER(), nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("expires_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index("ix_search_cache_expires", "search_cache", ["expires_at"])

    # --- sync_status (one row per sync domain) ---
    op.create_table(
        "sync_status",
        sa.Column("domain", sa.String(), primary_key=True),
        sa.Column("status", sa.String(), nullable=False, server_default="idle"),
        sa.Column("last_run_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("last_success_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("last_error", sa.TEXT(), nullable=True),
        sa.Column("items_synced", sa.INTEGER(), nullable=False, server_default="0"),
        sa.Column("run_count", sa.INTEGER(), nullable=False, server_default="0"),
        _updated_at(),
    )


def downgrade() -> None:
    op.drop_table("sync_status")
    op.drop_index("ix_search_cache_expires", table_name="search_cache")
    op.drop_table("search_cache")
    op.drop_index("ix_sealed_products_expansion", table_name="pokemon_sealed_products")
    op.drop_index("ix_sealed_products_group", table_name="pokemon_sealed_products")
    op.drop_table("pokemon_sealed_products")
    op.drop_index("ix_pokemon_cards_name", table_name="pokemon_cards")
    op.drop_index("ix_pokemon_cards_expansion", table_name="pokemon_cards")
    op.drop_table("pokemon_cards")
    op.drop_index("ix_pokemon_expansions_tcgcsv_group_id", table_name="pokemon_expansions")
    op.drop_table("pokemon_expansions")
