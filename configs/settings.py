"""
Configuration Management System

Settings for the catalog conversion pipeline: input discovery, batching and
sharding, checkpointing, memory governance, retry policy and the text/embedding
knobs used during enrichment. A Settings value is built once per run and handed
to each component constructor.
"""

import re
import logging
from typing import Dict, Optional, Any
from pydantic import Field, validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


DEFAULT_KEYWORD_BOOST = {
    'title': 3.0,
    'brand': 2.5,
    'category': 2.0,
    'description': 1.5,
}


class Settings(BaseSettings):
    """
    Centralized configuration for the commerce catalog converter.

    Features:
    - Input/output/temp directory layout
    - Batch, shard and concurrency limits
    - Checkpoint, retry and memory governance
    - Text processing and embedding parameters
    """

    # ============================================================================
    # Environment Configuration
    # ============================================================================

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level"
    )

    ENABLE_PROGRESS_BAR: bool = Field(
        default=True,
        description="Show tqdm progress bars while converting"
    )

    LOG_PROGRESS_EVERY: int = Field(
        default=1000,
        description="Log per-file progress every N records"
    )

    # ============================================================================
    # Path Configuration
    # ============================================================================

    INPUT_DIRECTORY: str = Field(
        default="./Data",
        description="Directory scanned for input catalogs"
    )

    OUTPUT_DIRECTORY: str = Field(
        default="./output",
        description="Directory receiving JSONL shards and the run report"
    )

    TEMP_DIR: str = Field(
        default="./temp",
        description="Directory holding the checkpoint file"
    )

    INCLUDE_PATTERN: str = Field(
        default=r"\.json$",
        description="Case-insensitive regex a file name must match"
    )

    EXCLUDE_PATTERN: str = Field(
        default=r"\.(log|tmp|backup)$",
        description="Case-insensitive regex excluding temp/log/backup files"
    )

    COMBINED_OUTPUT_NAME: str = Field(
        default="all_data_files_commerce_ready",
        description="Base name of the combined output across all files"
    )

    REPORT_FILE_NAME: str = Field(
        default="conversion_report.json",
        description="Name of the run report written to the output directory"
    )

    CHECKPOINT_FILE_NAME: str = Field(
        default="conversion_checkpoint.json",
        description="Name of the checkpoint file inside TEMP_DIR"
    )

    # ============================================================================
    # Processing Configuration
    # ============================================================================

    BATCH_SIZE: int = Field(
        default=1000,
        description="Records pulled from a parsed catalog per batch"
    )

    CONCURRENCY_LIMIT: int = Field(
        default=5,
        description="Maximum files converted concurrently"
    )

    SHARD_OUTPUT: bool = Field(
        default=True,
        description="Split output into ordinally numbered shard files"
    )

    MAX_LINES_PER_SHARD: int = Field(
        default=1000000,
        description="Maximum records per output shard"
    )

    ENABLE_STREAMING: bool = Field(
        default=True,
        description="Use the incremental parser for large files"
    )

    STREAMING_THRESHOLD_MB: float = Field(
        default=50.0,
        description="File size at or above which the incremental parser is used"
    )

    RETRY_ATTEMPTS: int = Field(
        default=3,
        description="Attempts per record before it is marked failed"
    )

    RETRY_DELAY_MS: int = Field(
        default=1000,
        description="Delay between record attempts in milliseconds"
    )

    CHECKPOINT_ENABLED: bool = Field(
        default=True,
        description="Persist completed files so interrupted runs can resume"
    )

    CHECKPOINT_INTERVAL: int = Field(
        default=10000,
        description="Save checkpoint every N processed records"
    )

    MEMORY_THRESHOLD_MB: int = Field(
        default=512,
        description="Resident memory above which a GC hint is issued"
    )

    MEMORY_CHECK_INTERVAL: float = Field(
        default=5.0,
        description="Seconds between background memory samples"
    )

    # ============================================================================
    # Record Limits
    # ============================================================================

    MAX_TITLE_LENGTH: int = Field(default=500, description="Title length cap")
    MAX_DESCRIPTION_LENGTH: int = Field(default=2000, description="Description length cap")
    MAX_CATEGORIES: int = Field(default=10, description="Category count cap")
    DEFAULT_CATEGORY: str = Field(default="Products", description="Fallback category")
    DEFAULT_CURRENCY_CODE: str = Field(default="USD", description="Currency when the source has none")
    DEFAULT_LANGUAGE_CODE: str = Field(default="en", description="Language when the source has none")

    # ============================================================================
    # Embedding Configuration
    # ============================================================================

    DENSE_DIM: int = Field(
        default=384,
        description="Dense vector dimension"
    )

    MAX_SPARSE_FEATURES: int = Field(
        default=100,
        description="Maximum terms in the sparse vector"
    )

    KEYWORD_BOOST: Dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_KEYWORD_BOOST),
        description="Per-context keyword weight multipliers"
    )

    STEMMING_ENABLED: bool = Field(default=True, description="Porter-stem tokens")
    SYNONYM_EXPANSION: bool = Field(default=True, description="Inject synonyms at half weight")
    ENABLE_DENSE: bool = Field(default=True, description="Generate dense vectors")
    ENABLE_SPARSE: bool = Field(default=True, description="Generate sparse vectors")
    ENABLE_HYBRID: bool = Field(default=True, description="Generate the readiness score")

    # ============================================================================
    # Computed Properties
    # ============================================================================

    @property
    def streaming_threshold_bytes(self) -> int:
        """File size in bytes at which the incremental parser is selected."""
        return int(self.STREAMING_THRESHOLD_MB * 1024 * 1024)

    @property
    def retry_delay_seconds(self) -> float:
        return self.RETRY_DELAY_MS / 1000.0

    def context_boost(self, context: str) -> float:
        """
        Get the keyword boost for a text context.

        Args:
            context: Field the text came from (title, brand, category, ...)

        Returns:
            Multiplier, 1.0 for contexts without a configured boost
        """
        return self.KEYWORD_BOOST.get(context, 1.0)

    def describe(self) -> Dict[str, Any]:
        """Snapshot of the knobs that shape output, embedded in the run report."""
        return {
            "batch_size": self.BATCH_SIZE,
            "concurrency_limit": self.CONCURRENCY_LIMIT,
            "shard_output": self.SHARD_OUTPUT,
            "max_lines_per_shard": self.MAX_LINES_PER_SHARD,
            "dense_dimensions": self.DENSE_DIM,
            "max_sparse_features": self.MAX_SPARSE_FEATURES,
            "stemming_enabled": self.STEMMING_ENABLED,
            "synonym_expansion": self.SYNONYM_EXPANSION,
        }

    # ============================================================================
    # Validators
    # ============================================================================

    @validator('LOG_LEVEL')
    def validate_log_level(cls, v):
        """Validate log level setting."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @validator('BATCH_SIZE', 'CONCURRENCY_LIMIT', 'MAX_LINES_PER_SHARD', 'RETRY_ATTEMPTS',
               'CHECKPOINT_INTERVAL', 'DENSE_DIM', 'MAX_SPARSE_FEATURES', 'MAX_CATEGORIES',
               'MAX_TITLE_LENGTH', 'MAX_DESCRIPTION_LENGTH', 'LOG_PROGRESS_EVERY')
    def validate_positive(cls, v):
        """Counts and sizes must be at least 1."""
        if v < 1:
            raise ValueError("value must be a positive integer")
        return v

    @validator('RETRY_DELAY_MS', 'MEMORY_THRESHOLD_MB')
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError("value must not be negative")
        return v

    @validator('INCLUDE_PATTERN', 'EXCLUDE_PATTERN')
    def validate_pattern(cls, v):
        """File patterns must compile as regular expressions."""
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"Invalid file pattern {v!r}: {e}")
        return v

    @validator('KEYWORD_BOOST')
    def validate_keyword_boost(cls, v):
        for context, boost in v.items():
            if boost <= 0:
                raise ValueError(f"KEYWORD_BOOST[{context}] must be positive")
        return v

    # ============================================================================
    # Pydantic Configuration
    # ============================================================================

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'
        case_sensitive = True
        validate_assignment = True
        extra = "ignore"


# ============================================================================
# Helper Functions
# ============================================================================

def get_settings(**overrides) -> Settings:
    """
    Build the settings value for one run.

    Args:
        **overrides: Settings to override (take precedence over environment)

    Returns:
        Settings instance
    """
    settings = Settings(**overrides)
    logger.debug(f"Configuration loaded: input={settings.INPUT_DIRECTORY}, output={settings.OUTPUT_DIRECTORY}")
    return settings


def create_test_settings(base_dir: Optional[Any] = None, **overrides) -> Settings:
    """
    Create settings instance for testing with overrides.

    Args:
        base_dir: Directory under which Data/output/temp are placed
        **overrides: Settings to override

    Returns:
        Settings instance with test configuration
    """
    test_env: Dict[str, Any] = {
        "ENABLE_PROGRESS_BAR": False,
        "RETRY_DELAY_MS": 0,
        "MEMORY_CHECK_INTERVAL": 60.0,
    }
    if base_dir is not None:
        test_env.update({
            "INPUT_DIRECTORY": str(base_dir / "Data"),
            "OUTPUT_DIRECTORY": str(base_dir / "output"),
            "TEMP_DIR": str(base_dir / "temp"),
        })
    test_env.update(overrides)
    return Settings(**test_env)
