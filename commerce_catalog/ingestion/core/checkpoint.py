"""
Checkpoint store for resumable runs.

Resumption granularity is the whole input file: a file listed in
processed_files is skipped on the next run, anything else is redone.
"""

import os
import json
import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from configs.settings import Settings
from ...errors import CheckpointError

logger = logging.getLogger(__name__)


@dataclass
class CheckpointRecord:
    """Persisted progress of a run"""
    processed_files: List[str] = field(default_factory=list)
    file_stats: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    stats: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CheckpointRecord":
        processed = data.get('processed_files')
        file_stats = data.get('file_stats')
        stats = data.get('stats')
        if not isinstance(processed, list) or not all(isinstance(name, str) for name in processed):
            raise ValueError("processed_files must be a list of file names")
        return cls(
            processed_files=list(processed),
            file_stats=dict(file_stats) if isinstance(file_stats, dict) else {},
            stats=dict(stats) if isinstance(stats, dict) else {},
            timestamp=data.get('timestamp'),
        )


class CheckpointStore:
    """JSON checkpoint in TEMP_DIR, written through a temp file and atomic rename"""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.enabled = settings.CHECKPOINT_ENABLED
        self.path = Path(settings.TEMP_DIR) / settings.CHECKPOINT_FILE_NAME
        self.record = CheckpointRecord()

    @property
    def processed_files(self) -> List[str]:
        return self.record.processed_files

    def is_processed(self, file_name: str) -> bool:
        return file_name in self.record.processed_files

    def load(self) -> bool:
        """
        Load a previous checkpoint.

        Returns:
            True when a usable checkpoint was found
        """
        if not self.enabled or not self.path.exists():
            return False

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                self.record = CheckpointRecord.from_dict(json.load(f))
        except (OSError, ValueError, AttributeError) as e:
            logger.warning(f"⚠️ Ignoring unreadable checkpoint {self.path}: {e}")
            self.record = CheckpointRecord()
            return False

        logger.info(f"📌 Loaded checkpoint: {len(self.record.processed_files)} files already processed")
        return True

    def mark_processed(self, file_name: str, file_stats: Dict[str, Any]) -> None:
        if file_name not in self.record.processed_files:
            self.record.processed_files.append(file_name)
        self.record.file_stats[file_name] = file_stats

    def save(self, stats: Optional[Dict[str, Any]] = None) -> None:
        """Persist the current record; a no-op when checkpointing is disabled"""
        if not self.enabled:
            return

        if stats is not None:
            self.record.stats = dict(stats)
        self.record.timestamp = datetime.now().isoformat()

        tmp_path = self.path.with_name(self.path.name + '.tmp')
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(self.record.to_dict(), f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise CheckpointError(f"Failed to save checkpoint: {e}", original_error=e, source=str(self.path))

        logger.debug(f"💾 Checkpoint saved ({len(self.record.processed_files)} files)")

    def clear(self) -> None:
        if self.path.exists():
            try:
                self.path.unlink()
            except OSError as e:
                raise CheckpointError(f"Failed to remove checkpoint: {e}", original_error=e, source=str(self.path))
            logger.info("🧹 Checkpoint file cleaned up")
