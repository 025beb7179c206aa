"""
Per-file conversion: parse, normalize, enrich and write in batches.

Each input file moves through
DISCOVERED -> PARSING -> BATCH_PROCESSING -> SHARDING -> COMPLETED | FAILED.
Batches within a file run sequentially so shard order equals input order.
"""

import time
import asyncio
import logging
import itertools
from dataclasses import dataclass, field, asdict
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

from configs.settings import Settings
from ...errors import CatalogConversionError
from ...models.product import CanonicalProduct
from .embedding_generator import EmbeddingGenerator, has_embeddings
from .format_detector import CatalogParserSelector
from .memory_monitor import MemoryMonitor
from .product_normalizer import get_normalizer, ProductNormalizer
from .shard_writer import ShardWriter
from .text_processor import TextProcessor

logger = logging.getLogger(__name__)

OUTPUT_SUFFIX = "_commerce_ready"

# Memory is sampled after this many batches
MEMORY_SAMPLE_BATCHES = 10


class FileState(str, Enum):
    DISCOVERED = "discovered"
    PARSING = "parsing"
    BATCH_PROCESSING = "batch_processing"
    SHARDING = "sharding"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class FileResult:
    """Outcome and statistics of one input file"""
    file_name: str
    state: FileState = FileState.DISCOVERED
    total_records: int = 0
    total_products: int = 0
    with_embeddings: int = 0
    failed_records: int = 0
    processing_time_ms: float = 0.0
    output_paths: List[str] = field(default_factory=list)
    detected_format: Optional[str] = None
    parser_strategy: Optional[str] = None
    error: Optional[str] = None
    resumed: bool = False

    @property
    def succeeded(self) -> bool:
        return self.state == FileState.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['state'] = FileState(self.state).value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileResult":
        known = {name: data[name] for name in cls.__dataclass_fields__ if name in data}
        known['state'] = FileState(known.get('state', FileState.COMPLETED.value))
        return cls(**known)


def output_base_name(path: Path) -> str:
    return f"{path.stem}{OUTPUT_SUFFIX}"


RecordsCallback = Callable[[int], Awaitable[None]]


class FileProcessor:
    """
    Drives one input file end to end.

    Record failures are retried RETRY_ATTEMPTS times with RETRY_DELAY_MS
    between attempts, then dropped; parse and write failures fail the file.
    """

    def __init__(self, settings: Settings,
                 parser_selector: CatalogParserSelector,
                 text_processor: TextProcessor,
                 embedding_generator: EmbeddingGenerator,
                 memory_monitor: Optional[MemoryMonitor] = None):
        self.settings = settings
        self.parser_selector = parser_selector
        self.text_processor = text_processor
        self.embedding_generator = embedding_generator
        self.memory_monitor = memory_monitor
        self.output_dir = Path(settings.OUTPUT_DIRECTORY)

    async def process_file(self, path: Path, format_hint: str = 'auto',
                           on_records_processed: Optional[RecordsCallback] = None) -> FileResult:
        """
        Convert one catalog file into sharded JSONL.

        Args:
            path: Input catalog
            format_hint: 'auto', 'vertex' or 'generic'
            on_records_processed: Awaited after every batch with the batch size

        Returns:
            FileResult; failures are reported in it, never raised
        """
        path = Path(path)
        result = FileResult(file_name=path.name)
        start_time = time.time()
        writer: Optional[ShardWriter] = None

        try:
            self._transition(result, FileState.PARSING)
            logger.info(f"📂 Processing file: {path.name}")
            parsed = await asyncio.to_thread(self.parser_selector.parse, path, format_hint)
            result.detected_format = parsed.detected_format.value
            result.parser_strategy = parsed.strategy
            logger.info(f"🔍 Detected format: {result.detected_format} ({parsed.layout.value}) for {path.name}")

            normalizer = get_normalizer(parsed.detected_format, self.settings, self.text_processor)
            writer = ShardWriter(self.settings, self.output_dir, output_base_name(path))

            self._transition(result, FileState.BATCH_PROCESSING)
            batch_index = 0
            ordinal = 0
            while True:
                batch = await asyncio.to_thread(self._next_batch, parsed.records)
                if not batch:
                    break

                lines = []
                for raw in batch:
                    product = await self.convert_record(normalizer, raw, path.name, ordinal)
                    ordinal += 1
                    if product is None:
                        result.failed_records += 1
                        continue
                    if has_embeddings(product):
                        result.with_embeddings += 1
                    lines.append(product.to_json())

                writer.write_lines(lines)
                writer.flush()
                result.total_records = ordinal
                result.total_products += len(lines)

                batch_index += 1
                if self.memory_monitor is not None and batch_index % MEMORY_SAMPLE_BATCHES == 0:
                    self.memory_monitor.sample()
                if ordinal // self.settings.LOG_PROGRESS_EVERY > (ordinal - len(batch)) // self.settings.LOG_PROGRESS_EVERY:
                    logger.info(f"📊 {path.name}: {ordinal} records processed")
                if on_records_processed is not None:
                    await on_records_processed(len(batch))

                # Yield between batches so concurrent files make progress
                await asyncio.sleep(0)

            # Final shard is closed (or the empty output created) in SHARDING
            self._transition(result, FileState.SHARDING)
            result.output_paths = [str(p) for p in writer.close()]
            self._transition(result, FileState.COMPLETED)

            logger.info(
                f"✅ Completed {path.name}: {result.total_products}/{result.total_records} products, "
                f"{result.with_embeddings} with embeddings, {result.failed_records} failed"
            )

        except CatalogConversionError as e:
            self._transition(result, FileState.FAILED)
            result.error = str(e)
            logger.error(f"❌ Failed to process {path.name}: {e}")
        except Exception as e:
            self._transition(result, FileState.FAILED)
            result.error = f"Unexpected error: {e}"
            logger.exception(f"❌ Unexpected error processing {path.name}: {e}")
        finally:
            if writer is not None and result.state == FileState.FAILED:
                try:
                    result.output_paths = [str(p) for p in writer.close(ensure_output=False)]
                except CatalogConversionError as close_error:
                    logger.warning(f"⚠️ Could not close partial output for {path.name}: {close_error}")
            result.processing_time_ms = round((time.time() - start_time) * 1000, 2)

        return result

    def _next_batch(self, records) -> List[Any]:
        """Next BATCH_SIZE raw records, pulled in a worker thread"""
        return list(itertools.islice(records, self.settings.BATCH_SIZE))

    @staticmethod
    def _transition(result: FileResult, state: FileState) -> None:
        logger.debug(f"🔄 {result.file_name}: {FileState(result.state).value} -> {state.value}")
        result.state = state

    async def convert_record(self, normalizer: ProductNormalizer, raw: Any,
                             file_name: str, ordinal: int) -> Optional[CanonicalProduct]:
        """
        Normalize and enrich one record with bounded retries.

        Returns:
            Enriched product, or None once every attempt failed
        """
        attempts = self.settings.RETRY_ATTEMPTS
        last_error = None

        for attempt in range(1, attempts + 1):
            try:
                product = normalizer.normalize(raw, source_name=file_name, ordinal=ordinal)
                return self.embedding_generator.enrich(product)
            except Exception as e:
                last_error = e
                if attempt < attempts:
                    logger.debug(f"Retrying record {ordinal} of {file_name} (attempt {attempt}/{attempts}): {e}")
                    await asyncio.sleep(self.settings.retry_delay_seconds)

        product_id = getattr(last_error, 'product_id', None)
        if product_id is None and isinstance(raw, dict):
            product_id = raw.get('id')
        logger.error(
            f"❌ Dropping record {ordinal} of {file_name} (product {product_id or 'unknown'}) "
            f"after {attempts} attempts: {last_error}"
        )
        return None
