from tcgvault.cache.keys import generate_cache_key, search_cache_key, simple_hash
from tcgvault.cache.ttl_cache import CacheEntry, CacheStats, TTLCache

__all__ = [
    "CacheEntry",
    "CacheStats",
    "TTLCache",
    "generate_cache_key",
    "search_cache_key",
    "simple_hash",
]
