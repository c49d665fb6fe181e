from tcgvault.pricing.database import DatabasePricingReader
from tcgvault.pricing.realtime import RealTimePricingFetcher
from tcgvault.pricing.smart import SmartPricingService
from tcgvault.pricing.snapshot import PricingSnapshot

__all__ = [
    "DatabasePricingReader",
    "PricingSnapshot",
    "RealTimePricingFetcher",
    "SmartPricingService",
]
