"""
Tests for the checkpoint store.
"""

import json
import logging

from configs.settings import create_test_settings
from commerce_catalog.ingestion.core.checkpoint import CheckpointStore


class TestCheckpointStore:

    def test_save_and_load(self, settings):
        store = CheckpointStore(settings)
        store.mark_processed("a.json", {"file_name": "a.json", "total_products": 3})
        store.save({"records_processed": 3})

        restored = CheckpointStore(settings)
        assert restored.load() is True
        assert restored.is_processed("a.json")
        assert not restored.is_processed("b.json")
        assert restored.record.file_stats["a.json"]["total_products"] == 3
        assert restored.record.stats == {"records_processed": 3}
        assert restored.record.timestamp is not None

    def test_written_atomically(self, settings):
        store = CheckpointStore(settings)
        store.mark_processed("a.json", {})
        store.save()

        assert store.path.exists()
        assert not store.path.with_name(store.path.name + ".tmp").exists()
        assert json.loads(store.path.read_text())["processed_files"] == ["a.json"]

    def test_mark_processed_is_idempotent(self, settings):
        store = CheckpointStore(settings)
        store.mark_processed("a.json", {})
        store.mark_processed("a.json", {"total_products": 1})

        assert store.processed_files == ["a.json"]
        assert store.record.file_stats["a.json"] == {"total_products": 1}

    def test_missing_checkpoint(self, settings):
        assert CheckpointStore(settings).load() is False

    def test_corrupt_checkpoint_ignored(self, settings, caplog):
        store = CheckpointStore(settings)
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{truncated")

        with caplog.at_level(logging.WARNING):
            assert store.load() is False
        assert "Ignoring unreadable checkpoint" in caplog.text
        assert store.processed_files == []

    def test_wrong_shape_ignored(self, settings):
        store = CheckpointStore(settings)
        store.path.parent.mkdir(parents=True)
        store.path.write_text(json.dumps({"processed_files": "a.json"}))

        assert store.load() is False

    def test_disabled(self, tmp_path):
        settings = create_test_settings(tmp_path, CHECKPOINT_ENABLED=False)
        store = CheckpointStore(settings)
        store.mark_processed("a.json", {})
        store.save()

        assert not store.path.exists()
        assert store.load() is False

    def test_clear(self, settings):
        store = CheckpointStore(settings)
        store.save()
        store.clear()
        assert not store.path.exists()
        # clearing twice is harmless
        store.clear()
