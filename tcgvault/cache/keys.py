"""
TCG Vault — Cache-Key Generator

Deterministic key derivation from (endpoint, params, type tag).

Parameters are sorted by name before serialization so that equivalent
parameter sets built in a different insertion order produce the same key.
The hash is a non-cryptographic 32-bit rolling hash; the key also embeds the
type tag and endpoint so it stays readable in logs.

Key format:
    "{type}:{hash}:{endpoint with '/' replaced by '_'}"
    e.g. "search:1x9k2f:_cards"
"""

from __future__ import annotations

import json
from typing import Any

from tcgvault.config import CacheType

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    """Render a non-negative integer in lowercase base 36."""
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def simple_hash(text: str) -> str:
    """
    Rolling multiply-and-subtract hash (h * 31 + c), wrapped to signed 32 bits.

    Args:
        text: Input string.

    Returns:
        Base-36 rendering of the absolute hash value.

    Examples:
        >>> simple_hash("")
        '0'
    """
    h = 0
    for char in text:
        h = ((h << 5) - h + ord(char)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return _to_base36(abs(h))


def normalize_params(params: dict[str, Any] | None) -> str:
    """Serialize params with keys sorted; None values are dropped."""
    if not params:
        return "{}"
    cleaned = {k: v for k, v in params.items() if v is not None}
    return json.dumps(cleaned, sort_keys=True, separators=(",", ":"), default=str)


def generate_cache_key(
    endpoint: str,
    params: dict[str, Any] | None = None,
    cache_type: CacheType | str = CacheType.DEFAULT,
) -> str:
    """
    Build a stable cache key for an upstream call.

    Args:
        endpoint: API path or logical operation name (e.g. "/cards").
        params: Request parameters; order does not matter.
        cache_type: Type tag, also used to pick the TTL policy.

    Returns:
        Cache key string. Same inputs always yield the same key within a
        process.
    """
    type_tag = cache_type.value if isinstance(cache_type, CacheType) else str(cache_type)
    digest = simple_hash(endpoint + normalize_params(params))
    return f"{type_tag}:{digest}:{endpoint.replace('/', '_')}"


def search_cache_key(
    query: str,
    game: str,
    search_type: str,
    expansion_id: str | None,
    page: int,
    page_size: int,
    filters: dict[str, Any] | None = None,
) -> str:
    """Cache key for a hybrid search request; covers every input that shapes the result."""
    return generate_cache_key(
        "hybrid_search",
        {
            "query": query.strip().lower(),
            "game": game,
            "searchType": search_type,
            "expansionId": expansion_id,
            "page": page,
            "pageSize": page_size,
            "filters": filters or {},
        },
        CacheType.SEARCH,
    )
