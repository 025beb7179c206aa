"""
Sharded JSONL output.

Records are appended in order to the open shard; when it holds
MAX_LINES_PER_SHARD lines it is closed for good and the next ordinal opens.
"""

import glob
import logging
from pathlib import Path
from typing import Iterable, List, Optional, TextIO

from configs.settings import Settings
from ...errors import ShardWriteError
from ...models.product import CanonicalProduct

logger = logging.getLogger(__name__)


def shard_path(output_dir: Path, base_name: str, index: int) -> Path:
    return output_dir / f"{base_name}_shard_{index:03d}.jsonl"


class ShardWriter:
    """
    Append-only writer for one logical output dataset.

    With sharding off everything goes to ``<base_name>.jsonl``.
    """

    def __init__(self, settings: Settings, output_dir: Path, base_name: str, shard: Optional[bool] = None):
        self.settings = settings
        self.output_dir = Path(output_dir)
        self.base_name = base_name
        self.shard = settings.SHARD_OUTPUT if shard is None else shard
        self.max_lines = settings.MAX_LINES_PER_SHARD

        self.output_paths: List[Path] = []
        self.lines_written = 0
        self._shard_index = 0
        self._shard_lines = 0
        self._handle: Optional[TextIO] = None
        self._closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close(ensure_output=exc_type is None)

    def _remove_stale_outputs(self) -> None:
        """Delete outputs a previous run left under this base name"""
        stale = [self.output_dir / f"{self.base_name}.jsonl"]
        stale.extend(self.output_dir.glob(f"{glob.escape(self.base_name)}_shard_[0-9][0-9][0-9]*.jsonl"))
        for path in stale:
            if not path.is_file():
                continue
            try:
                path.unlink()
            except OSError as e:
                raise ShardWriteError(f"Cannot remove stale output: {e}", original_error=e, path=str(path))
            logger.info(f"🧹 Removed stale output: {path.name}")

    def _open_next(self) -> None:
        if not self.output_paths and self.output_dir.is_dir():
            self._remove_stale_outputs()

        if self.shard:
            path = shard_path(self.output_dir, self.base_name, self._shard_index)
            self._shard_index += 1
        else:
            path = self.output_dir / f"{self.base_name}.jsonl"

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            self._handle = open(path, 'w', encoding='utf-8')
        except OSError as e:
            raise ShardWriteError(f"Cannot open output: {e}", original_error=e, path=str(path))

        self._shard_lines = 0
        self.output_paths.append(path)
        if self.shard:
            logger.info(f"📝 Started shard: {path.name}")

    def write_line(self, line: str) -> None:
        """Append one serialized record (without trailing newline)"""
        if self._closed:
            raise ShardWriteError("Writer already closed", path=self.base_name)

        if self._handle is None or (self.shard and self._shard_lines >= self.max_lines):
            self._close_current()
            self._open_next()

        try:
            self._handle.write(line)
            self._handle.write('\n')
        except OSError as e:
            raise ShardWriteError(f"Write failed: {e}", original_error=e, path=str(self.output_paths[-1]))

        self._shard_lines += 1
        self.lines_written += 1

    def write_products(self, products: Iterable[CanonicalProduct]) -> int:
        count = 0
        for product in products:
            self.write_line(product.to_json())
            count += 1
        return count

    def write_lines(self, lines: Iterable[str]) -> int:
        count = 0
        for line in lines:
            self.write_line(line)
            count += 1
        return count

    def flush(self) -> None:
        if self._handle is not None:
            try:
                self._handle.flush()
            except OSError as e:
                raise ShardWriteError(f"Flush failed: {e}", original_error=e, path=str(self.output_paths[-1]))

    def _close_current(self) -> None:
        if self._handle is None:
            return
        try:
            self._handle.close()
        except OSError as e:
            raise ShardWriteError(f"Close failed: {e}", original_error=e, path=str(self.output_paths[-1]))
        finally:
            self._handle = None

    def close(self, ensure_output: bool = True) -> List[Path]:
        """Close the open shard; returns every path written"""
        if not self._closed:
            # An empty dataset still gets one (empty) output file
            if ensure_output and not self.output_paths:
                self._open_next()
            self._close_current()
            self._closed = True
        return list(self.output_paths)


def iter_output_lines(paths: Iterable[Path]) -> Iterable[str]:
    """Stream the lines of previously written outputs, without newlines"""
    for path in paths:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                for line in f:
                    line = line.rstrip('\n')
                    if line:
                        yield line
        except OSError as e:
            raise ShardWriteError(f"Cannot read output: {e}", original_error=e, path=str(path))
