"""
Catalog Converter

Orchestrates a conversion run over an input directory:

- discovers eligible catalog files
- skips files completed by a previous (interrupted) run
- converts the rest concurrently under CONCURRENCY_LIMIT
- streams each finished file into the combined output
- writes the run report and clears the checkpoint after a clean run
"""

import re
import time
import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from tqdm import tqdm

from configs.settings import Settings
from ..errors import CatalogConversionError, CheckpointError, InputDiscoveryError
from .core.checkpoint import CheckpointStore
from .core.conversion_report import ConversionReport
from .core.embedding_generator import EmbeddingGenerator, DenseEmbeddingProvider
from .core.file_processor import FileProcessor, FileResult, FileState
from .core.format_detector import CatalogParserSelector
from .core.memory_monitor import MemoryMonitor
from .core.shard_writer import ShardWriter, iter_output_lines
from .core.text_processor import TextProcessor

logger = logging.getLogger(__name__)


class CatalogConverter:
    """
    Converts every eligible catalog in INPUT_DIRECTORY into commerce-ready JSONL.

    Shared state (results, combined output, checkpoint) is only touched under
    one asyncio.Lock.
    """

    def __init__(self, settings: Settings, embedding_provider: Optional[DenseEmbeddingProvider] = None,
                 incremental_parser: bool = True):
        self.settings = settings
        self.input_dir = Path(settings.INPUT_DIRECTORY)
        self.output_dir = Path(settings.OUTPUT_DIRECTORY)

        self.text_processor = TextProcessor(settings)
        self.embedding_generator = EmbeddingGenerator(settings, self.text_processor, embedding_provider)
        self.parser_selector = CatalogParserSelector(settings, incremental_available=incremental_parser)
        self.memory_monitor = MemoryMonitor(settings)
        self.file_processor = FileProcessor(
            settings,
            self.parser_selector,
            self.text_processor,
            self.embedding_generator,
            self.memory_monitor,
        )
        self.checkpoint = CheckpointStore(settings)
        self.reporter = ConversionReport(settings)

        self._include = re.compile(settings.INCLUDE_PATTERN, re.IGNORECASE)
        self._exclude = re.compile(settings.EXCLUDE_PATTERN, re.IGNORECASE)

        self._lock: Optional[asyncio.Lock] = None
        self._results: Dict[str, FileResult] = {}
        self._combined: Optional[ShardWriter] = None
        self._combined_lines = 0
        self._records_processed = 0
        self._records_since_checkpoint = 0

    def discover_files(self) -> List[Path]:
        """
        Eligible input files, sorted by name.

        Raises:
            InputDiscoveryError: directory missing or nothing eligible in it
        """
        if not self.input_dir.is_dir():
            raise InputDiscoveryError(f"Input directory not found: {self.input_dir}")

        files = sorted(
            (p for p in self.input_dir.iterdir()
             if p.is_file() and self._include.search(p.name) and not self._exclude.search(p.name)),
            key=lambda p: p.name,
        )
        if not files:
            raise InputDiscoveryError(f"No catalog files matching {self.settings.INCLUDE_PATTERN} in {self.input_dir}")

        logger.info(f"🔍 Discovered {len(files)} catalog files in {self.input_dir}")
        return files

    async def convert_all(self, format_hint: str = 'auto') -> Dict[str, Any]:
        """
        Run a full conversion.

        Args:
            format_hint: Format applied to every file ('auto' detects per file)

        Returns:
            The run report (also written to the output directory)

        Raises:
            InputDiscoveryError: nothing to convert
        """
        started_at = time.time()
        files = self.discover_files()

        self._lock = asyncio.Lock()
        self._results = {}
        self._combined_lines = 0
        self._records_processed = 0
        self._records_since_checkpoint = 0

        resuming = self.checkpoint.load()
        if resuming:
            logger.info("📌 Resuming from checkpoint...")

        pending = []
        for path in files:
            if self.checkpoint.is_processed(path.name):
                self._results[path.name] = self._resumed_result(path.name)
                logger.info(f"⏭️ Skipping already processed file: {path.name}")
            else:
                pending.append(path)

        self._combined = ShardWriter(self.settings, self.output_dir, self.settings.COMBINED_OUTPUT_NAME)
        for result in self._results.values():
            await self._append_to_combined(result)

        logger.info(f"🚀 Converting {len(pending)} files (concurrency {self.settings.CONCURRENCY_LIMIT})")
        semaphore = asyncio.Semaphore(self.settings.CONCURRENCY_LIMIT)
        progress = tqdm(total=len(pending), desc="Converting catalogs", unit="file",
                        disable=not self.settings.ENABLE_PROGRESS_BAR)

        async def run_file(path: Path):
            async with semaphore:
                result = await self.file_processor.process_file(
                    path, format_hint, on_records_processed=self._on_records_processed
                )
            await self._record_result(result)
            progress.update(1)

        self.memory_monitor.start()
        try:
            await asyncio.gather(*(run_file(path) for path in pending))
        finally:
            progress.close()
            await self.memory_monitor.stop()
            combined_paths = self._close_combined()

        ordered = [self._results[path.name] for path in files]
        report = self.reporter.build(
            ordered,
            started_at=started_at,
            finished_at=time.time(),
            peak_memory_mb=self.memory_monitor.peak_mb,
            combined_paths=[str(p) for p in combined_paths],
            combined_lines=self._combined_lines,
        )
        self.reporter.write(report)
        logger.info(self.reporter.format_summary(report))

        if self.settings.CHECKPOINT_ENABLED:
            if all(result.succeeded for result in ordered):
                self._clear_checkpoint()
            else:
                logger.info("📌 Checkpoint kept: some files failed and will be retried on the next run")

        return report

    async def convert_file(self, path: Path, format_hint: str = 'auto') -> Dict[str, Any]:
        """
        Convert a single file outside the checkpoint and combined output.

        Returns:
            Run report covering the one file
        """
        started_at = time.time()
        path = Path(path)
        if not path.is_file():
            raise InputDiscoveryError(f"Input file not found: {path}")

        self.memory_monitor.start()
        try:
            result = await self.file_processor.process_file(path, format_hint)
        finally:
            await self.memory_monitor.stop()

        report = self.reporter.build(
            [result],
            started_at=started_at,
            finished_at=time.time(),
            peak_memory_mb=self.memory_monitor.peak_mb,
        )
        self.reporter.write(report)
        logger.info(self.reporter.format_summary(report))
        return report

    def _resumed_result(self, file_name: str) -> FileResult:
        saved = self.checkpoint.record.file_stats.get(file_name)
        if saved:
            result = FileResult.from_dict(saved)
        else:
            result = FileResult(file_name=file_name, state=FileState.COMPLETED)
        result.resumed = True
        return result

    async def _on_records_processed(self, count: int) -> None:
        async with self._lock:
            self._records_processed += count
            self._records_since_checkpoint += count
            if self._records_since_checkpoint >= self.settings.CHECKPOINT_INTERVAL:
                self._records_since_checkpoint = 0
                self._save_checkpoint()

    async def _record_result(self, result: FileResult) -> None:
        async with self._lock:
            self._results[result.file_name] = result
            if not result.succeeded:
                return

            if not await self._append_to_combined(result):
                return
            self.checkpoint.mark_processed(result.file_name, result.to_dict())
            self._save_checkpoint()

    async def _append_to_combined(self, result: FileResult) -> bool:
        """
        Stream a finished file's shards into the combined output.

        A write failure fails the file, so it stays out of the checkpoint.
        """
        if not result.succeeded or not result.output_paths:
            return result.succeeded
        paths = [Path(p) for p in result.output_paths]
        try:
            await asyncio.to_thread(self._combined.write_lines, iter_output_lines(paths))
            self._combined.flush()
        except CatalogConversionError as e:
            logger.error(f"❌ Failed to add {result.file_name} to combined output: {e}")
            result.state = FileState.FAILED
            result.error = f"Combined output failed: {e}"
            return False
        finally:
            self._combined_lines = self._combined.lines_written
        return True

    def _close_combined(self) -> List[Path]:
        if self._combined is None:
            return []
        try:
            return self._combined.close()
        except CatalogConversionError as e:
            logger.error(f"❌ Failed to close combined output: {e}")
            return list(self._combined.output_paths)
        finally:
            self._combined = None

    def _checkpoint_stats(self) -> Dict[str, Any]:
        return {
            "records_processed": self._records_processed,
            "files_completed": len(self.checkpoint.processed_files),
        }

    def _save_checkpoint(self) -> None:
        try:
            self.checkpoint.save(self._checkpoint_stats())
        except CheckpointError as e:
            logger.warning(f"⚠️ {e}")

    def _clear_checkpoint(self) -> None:
        try:
            self.checkpoint.clear()
        except CheckpointError as e:
            logger.warning(f"⚠️ {e}")
