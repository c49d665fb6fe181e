from tcgvault.sync.base import SyncJob, SyncResult
from tcgvault.sync.catalog import CatalogSync
from tcgvault.sync.pricing import PricingSync
from tcgvault.sync.tcgcsv import SealedProductSync

__all__ = [
    "CatalogSync",
    "PricingSync",
    "SealedProductSync",
    "SyncJob",
    "SyncResult",
]
