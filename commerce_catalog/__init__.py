"""
Commerce Catalog Converter

Normalizes heterogeneous JSON product catalogs into commerce search import
records and enriches them with search-support vectors.
"""

__version__ = "0.1.0"
