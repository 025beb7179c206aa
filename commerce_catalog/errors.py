"""
Catalog Conversion Error Classes

Error taxonomy for the conversion pipeline. Run-level errors abort the run,
file-level errors mark one input file failed, record-level errors drop or
pass through a single product.
"""


class CatalogConversionError(Exception):
    """Base exception for all catalog conversion errors"""

    def __init__(self, message: str, original_error: Exception = None, source: str = None):
        super().__init__(message)
        self.original_error = original_error
        self.source = source
        self.message = message

    def __str__(self):
        if self.source:
            return f"[{self.source}] {self.message}"
        return self.message


class InputDiscoveryError(CatalogConversionError):
    """Raised when the input directory is missing or holds no eligible files"""
    pass


class CatalogParseError(CatalogConversionError):
    """Raised when an input file cannot be read or is not valid JSON"""
    pass


class NormalizationError(CatalogConversionError):
    """Raised when a raw product cannot be mapped to a canonical record"""

    def __init__(self, message: str = "Normalization failed", product_id: str = None, **kwargs):
        super().__init__(message, **kwargs)
        self.product_id = product_id


class EnrichmentError(CatalogConversionError):
    """Raised by embedding providers that cannot produce a vector"""

    def __init__(self, message: str = "Enrichment failed", product_id: str = None, **kwargs):
        super().__init__(message, **kwargs)
        self.product_id = product_id


class ShardWriteError(CatalogConversionError):
    """Raised when an output shard cannot be opened or written"""

    def __init__(self, message: str = "Shard write failed", path: str = None, **kwargs):
        super().__init__(message, **kwargs)
        self.path = path


class CheckpointError(CatalogConversionError):
    """Raised when the checkpoint store cannot be persisted"""
    pass
