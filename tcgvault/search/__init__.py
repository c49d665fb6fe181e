from tcgvault.search.classifier import KeywordQueryClassifier, QueryClassifier
from tcgvault.search.hybrid import HybridSearchRouter
from tcgvault.search.images import ImageService
from tcgvault.search.local import LocalCatalogRepository
from tcgvault.search.results import CardResult, SealedResult, SearchFilters, SearchResults
from tcgvault.search.store import SearchResultStore

__all__ = [
    "CardResult",
    "HybridSearchRouter",
    "ImageService",
    "KeywordQueryClassifier",
    "LocalCatalogRepository",
    "QueryClassifier",
    "SealedResult",
    "SearchFilters",
    "SearchResults",
    "SearchResultStore",
]
