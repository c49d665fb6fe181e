"""
TCG Vault — Pricing Snapshot

The single pricing shape every caller sees, whichever layer produced it:

    {
      card_id, source ("database" | "realtime"), last_updated,
      raw:    {market, low, mid, high, condition, currency, is_perfect,
               is_signed, is_error, trends: {days_7: {percent_change}, ...}},
      graded: {market, low, mid, high, grade, company, currency, trends},
      basic:  {market, low, mid, high},
      prices: <untouched upstream payload>
    }

Conversions live here so the database reader and the real-time fetcher stay
symmetric:
- snapshot_from_row()       flat pokemon_cards columns → snapshot
- snapshot_from_upstream()  catalog API payload → snapshot
- snapshot_to_columns()     snapshot → flat columns for the write-back
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, field_validator

from tcgvault.config import PricingSource
from tcgvault.models.card import TREND_WINDOWS, PokemonCard
from tcgvault.utils.db import as_utc
from tcgvault.utils.money import to_decimal

_PRICE_FIELDS = ("market", "low", "mid", "high")

# ---------------------------------------------------------------------------
# Snapshot models
# ---------------------------------------------------------------------------


class TrendPoint(BaseModel):
    percent_change: Decimal | None = None

    @field_validator("percent_change", mode="before")
    @classmethod
    def parse_decimal(cls, v: Any) -> Decimal | None:
        return to_decimal(v)


class BasicPrice(BaseModel):
    market: Decimal | None = None
    low: Decimal | None = None
    mid: Decimal | None = None
    high: Decimal | None = None

    @field_validator(*_PRICE_FIELDS, mode="before")
    @classmethod
    def parse_decimal(cls, v: Any) -> Decimal | None:
        return to_decimal(v)

    def is_empty(self) -> bool:
        return all(getattr(self, f) is None for f in _PRICE_FIELDS)


class ConditionPrice(BasicPrice):
    """Prices for one condition class plus trend windows."""
    currency: str | None = None
    trends: dict[str, TrendPoint] = Field(default_factory=dict)

    @field_validator("trends", mode="before")
    @classmethod
    def none_to_dict(cls, v: Any) -> dict[str, Any]:
        return v or {}

    def trend(self, days: int) -> Decimal | None:
        point = self.trends.get(f"days_{days}")
        return point.percent_change if point else None


class RawPrice(ConditionPrice):
    condition: str | None = None
    is_perfect: bool | None = None
    is_signed: bool | None = None
    is_error: bool | None = None


class GradedPrice(ConditionPrice):
    grade: str | None = None
    company: str | None = None

    @field_validator("grade", mode="before")
    @classmethod
    def grade_to_str(cls, v: Any) -> str | None:
        return None if v is None else str(v)


class PricingSnapshot(BaseModel):
    """Pricing for one card at one point in time."""
    card_id: str
    source: PricingSource
    last_updated: datetime | None = None
    raw: RawPrice | None = None
    graded: GradedPrice | None = None
    basic: BasicPrice | None = None
    prices: dict[str, Any] | list[Any] | None = None

    @property
    def has_pricing(self) -> bool:
        return any(
            block is not None and not block.is_empty()
            for block in (self.raw, self.graded, self.basic)
        )


# ---------------------------------------------------------------------------
# Database row → snapshot
# ---------------------------------------------------------------------------


def _trends_from_columns(card: PokemonCard, prefix: str) -> dict[str, TrendPoint]:
    return {
        f"days_{days}": TrendPoint(percent_change=getattr(card, f"{prefix}_trend_{days}d_percent"))
        for days in TREND_WINDOWS
    }


def snapshot_from_row(card: PokemonCard) -> PricingSnapshot | None:
    """
    Reshape flat pricing columns into a snapshot.

    Returns None when the row carries no pricing at all; a card that exists
    but was never priced is the same "no data yet" case as a missing row.
    """
    raw = RawPrice(
        market=card.raw_market,
        low=card.raw_low,
        mid=card.raw_mid,
        high=card.raw_high,
        condition=card.raw_condition,
        currency=card.raw_currency,
        is_perfect=card.raw_is_perfect,
        is_signed=card.raw_is_signed,
        is_error=card.raw_is_error,
        trends=_trends_from_columns(card, "raw"),
    )
    graded = GradedPrice(
        market=card.graded_market,
        low=card.graded_low,
        mid=card.graded_mid,
        high=card.graded_high,
        grade=card.graded_grade,
        company=card.graded_company,
        currency=card.graded_currency,
        trends=_trends_from_columns(card, "graded"),
    )
    basic = BasicPrice(
        market=card.market_price,
        low=card.low_price,
        mid=card.mid_price,
        high=card.high_price,
    )

    snapshot = PricingSnapshot(
        card_id=card.id,
        source=PricingSource.DATABASE,
        last_updated=as_utc(card.pricing_last_updated),
        raw=raw,
        graded=graded,
        basic=basic,
        prices=card.prices,
    )
    if not snapshot.has_pricing and not card.prices:
        return None
    return snapshot


# ---------------------------------------------------------------------------
# Upstream payload → snapshot
# ---------------------------------------------------------------------------


def _pick_variant(entries: list[dict[str, Any]], kind: str) -> dict[str, Any] | None:
    """First entry of a given type from a list-form pricing payload."""
    for entry in entries:
        if isinstance(entry, dict) and entry.get("type") == kind:
            return entry
    return None


def snapshot_from_upstream(
    card_id: str,
    payload: dict[str, Any] | list[Any],
    fetched_at: datetime,
) -> PricingSnapshot | None:
    """
    Build a snapshot from the catalog API's `prices` payload.

    Two payload shapes are accepted:
    - dict: {"raw": {...}, "graded": {...}, "market": ..., ...}
    - list: [{"type": "raw", ...}, {"type": "graded", ...}]

    Returns None if the payload carries no usable price.
    """
    if isinstance(payload, list):
        raw_data = _pick_variant(payload, "raw")
        graded_data = _pick_variant(payload, "graded")
        basic_data: dict[str, Any] = {}
    else:
        raw_data = payload.get("raw")
        graded_data = payload.get("graded")
        basic_data = {f: payload.get(f) for f in _PRICE_FIELDS if payload.get(f) is not None}

    raw = RawPrice.model_validate(raw_data) if raw_data else None
    graded = GradedPrice.model_validate(graded_data) if graded_data else None

    if basic_data:
        basic = BasicPrice.model_validate(basic_data)
    elif raw is not None:
        basic = BasicPrice(market=raw.market, low=raw.low, mid=raw.mid, high=raw.high)
    else:
        basic = None

    snapshot = PricingSnapshot(
        card_id=card_id,
        source=PricingSource.REALTIME,
        last_updated=fetched_at,
        raw=raw,
        graded=graded,
        basic=basic,
        prices=payload,
    )
    return snapshot if snapshot.has_pricing else None


# ---------------------------------------------------------------------------
# Snapshot → database columns
# ---------------------------------------------------------------------------


def snapshot_to_columns(snapshot: PricingSnapshot) -> dict[str, Any]:
    """
    Flatten a snapshot into pokemon_cards pricing columns.

    Blocks missing from the snapshot write NULLs so old values never mix
    with new ones.
    """
    raw = snapshot.raw or RawPrice()
    graded = snapshot.graded or GradedPrice()
    basic = snapshot.basic or BasicPrice()

    columns: dict[str, Any] = {
        "raw_market": raw.market,
        "raw_low": raw.low,
        "raw_mid": raw.mid,
        "raw_high": raw.high,
        "raw_condition": raw.condition,
        "raw_currency": raw.currency,
        "raw_is_perfect": raw.is_perfect,
        "raw_is_signed": raw.is_signed,
        "raw_is_error": raw.is_error,
        "graded_market": graded.market,
        "graded_low": graded.low,
        "graded_mid": graded.mid,
        "graded_high": graded.high,
        "graded_grade": graded.grade,
        "graded_company": graded.company,
        "graded_currency": graded.currency,
        "market_price": basic.market,
        "low_price": basic.low,
        "mid_price": basic.mid,
        "high_price": basic.high,
        "prices": snapshot.prices,
        "pricing_last_updated": snapshot.last_updated,
    }
    for days in TREND_WINDOWS:
        columns[f"raw_trend_{days}d_percent"] = raw.trend(days)
        columns[f"graded_trend_{days}d_percent"] = graded.trend(days)
    return columns
