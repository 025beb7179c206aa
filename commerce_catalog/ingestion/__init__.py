"""
Catalog Conversion Package

Core Components:
- CatalogParserSelector: Layout/format detection and parser choice
- ProductNormalizer: Per-format mapping to canonical records
- TextProcessor: Cleaning and weighted keyword extraction
- EmbeddingGenerator: Dense, sparse and readiness attributes
- FileProcessor: Batched, sharded per-file conversion
- CatalogConverter: Directory-level orchestration

Scripts:
- convert_catalog.py: Command line runner
"""

from .catalog_converter import CatalogConverter

__all__ = ['CatalogConverter']
