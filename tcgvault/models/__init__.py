"""
Models package — export all SQLAlchemy models.
"""

from tcgvault.models.base import Base
from tcgvault.models.card import PokemonCard
from tcgvault.models.expansion import Expansion
from tcgvault.models.sealed_product import SealedProduct
from tcgvault.models.search_cache import SearchCacheEntry
from tcgvault.models.sync_status import SyncStatus

__all__ = ["Base", "Expansion", "PokemonCard", "SealedProduct", "SearchCacheEntry", "SyncStatus"]
