"""
Commerce Catalog Models

Canonical product record written to the import files.
"""

from .product import Availability, CanonicalProduct, PriceInfo, SEARCH_ATTRIBUTE_KEYS

__all__ = [
    "Availability",
    "CanonicalProduct",
    "PriceInfo",
    "SEARCH_ATTRIBUTE_KEYS",
]
