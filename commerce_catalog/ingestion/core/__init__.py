"""
Core conversion modules for product catalog processing.
"""

from .format_detector import CatalogFormat, CatalogParserSelector, JsonLayout, ParsedCatalog
from .product_normalizer import ProductNormalizer, get_normalizer
from .text_processor import Keyword, TextProcessor
from .embedding_generator import (
    DenseEmbeddingProvider,
    DeterministicEmbeddingProvider,
    EmbeddingGenerator,
    has_embeddings,
)
from .shard_writer import ShardWriter
from .checkpoint import CheckpointRecord, CheckpointStore
from .memory_monitor import MemoryMonitor
from .file_processor import FileProcessor, FileResult, FileState
from .conversion_report import ConversionReport

__all__ = [
    'CatalogFormat',
    'CatalogParserSelector',
    'JsonLayout',
    'ParsedCatalog',
    'ProductNormalizer',
    'get_normalizer',
    'Keyword',
    'TextProcessor',
    'DenseEmbeddingProvider',
    'DeterministicEmbeddingProvider',
    'EmbeddingGenerator',
    'has_embeddings',
    'ShardWriter',
    'CheckpointRecord',
    'CheckpointStore',
    'MemoryMonitor',
    'FileProcessor',
    'FileResult',
    'FileState',
    'ConversionReport',
]
