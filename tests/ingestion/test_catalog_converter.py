"""
End-to-end tests for the catalog converter: discovery, concurrency,
combined output, checkpoint resume and the run report.
"""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from configs.settings import create_test_settings
from commerce_catalog.errors import InputDiscoveryError, ShardWriteError
from commerce_catalog.ingestion.catalog_converter import CatalogConverter
from commerce_catalog.ingestion.core.checkpoint import CheckpointStore
from commerce_catalog.ingestion.core.shard_writer import iter_output_lines

from tests.conftest import SCENARIO_A_CATALOG, read_jsonl


def combined_paths(settings):
    return sorted(Path(settings.OUTPUT_DIRECTORY).glob(f"{settings.COMBINED_OUTPUT_NAME}*.jsonl"))


class TestDiscovery:

    def test_filters_and_sorts(self, settings, write_catalog):
        for name in ("b.json", "A.JSON", "notes.txt", "run.log", "c.json"):
            write_catalog(name, [])
        Path(settings.INPUT_DIRECTORY, "nested.json").mkdir()

        files = CatalogConverter(settings).discover_files()

        assert [p.name for p in files] == ["A.JSON", "b.json", "c.json"]

    def test_missing_directory(self, settings):
        with pytest.raises(InputDiscoveryError):
            CatalogConverter(settings).discover_files()

    def test_no_eligible_files(self, settings, write_catalog):
        write_catalog("notes.txt", "hello", raw=True)
        with pytest.raises(InputDiscoveryError):
            CatalogConverter(settings).discover_files()

    @pytest.mark.asyncio
    async def test_convert_all_aborts_without_input(self, settings):
        with pytest.raises(InputDiscoveryError):
            await CatalogConverter(settings).convert_all()


class TestConvertAll:

    @pytest.mark.asyncio
    async def test_vertex_catalog_end_to_end(self, settings, write_catalog):
        write_catalog("catalog.json", SCENARIO_A_CATALOG)

        report = await CatalogConverter(settings).convert_all()

        output = Path(settings.OUTPUT_DIRECTORY)
        [line] = read_jsonl([output / "catalog_commerce_ready_shard_000.jsonl"])
        assert line["id"] == "p1"
        assert line["categories"] == ["Products"]
        assert line["priceInfo"] == {"currencyCode": "USD", "price": 19.99}
        assert any(entry.startswith("shirt:") for entry in line["attributes"]["sparse_embedding"]["text"])

        assert report["validation"]["is_valid"] is True
        assert report["processed_files"]["catalog.json"]["detected_format"] == "vertex"
        assert json.loads((output / settings.REPORT_FILE_NAME).read_text())["validation"]["is_valid"] is True
        assert read_jsonl(combined_paths(settings)) == [line]

        # clean run removes the checkpoint
        assert not CheckpointStore(settings).path.exists()

    @pytest.mark.asyncio
    async def test_generic_bare_array(self, settings, write_catalog):
        write_catalog("widgets.json", [{"name": "Widget", "cost": 5}])

        report = await CatalogConverter(settings).convert_all()

        [line] = read_jsonl(report["processed_files"]["widgets.json"]["output_paths"])
        assert report["processed_files"]["widgets.json"]["detected_format"] == "generic"
        assert line["title"] == "Widget"
        assert line["priceInfo"]["price"] == 5

    @pytest.mark.asyncio
    async def test_many_files_under_concurrency_limit(self, tmp_path, write_catalog):
        settings = create_test_settings(tmp_path, CONCURRENCY_LIMIT=2, MAX_LINES_PER_SHARD=3)
        for index in range(5):
            write_catalog(f"file_{index}.json", [{"name": f"Item {index}-{n}"} for n in range(4)])

        report = await CatalogConverter(settings).convert_all()

        assert report["file_statistics"]["successfully_processed"] == 5
        assert report["product_statistics"]["total_products"] == 20
        assert report["combined_output"]["total_lines"] == 20
        assert len(read_jsonl(combined_paths(settings))) == 20
        assert len(combined_paths(settings)) == 7
        assert report["validation"]["errors"] == []

    @pytest.mark.asyncio
    async def test_sharded_file_line_count(self, tmp_path, write_catalog):
        settings = create_test_settings(tmp_path, MAX_LINES_PER_SHARD=10, BATCH_SIZE=4)
        write_catalog("big.json", [{"name": f"Item {n}"} for n in range(25)] + ["broken"])

        report = await CatalogConverter(settings).convert_all()

        outputs = sorted(Path(settings.OUTPUT_DIRECTORY).glob("big_commerce_ready_shard_*.jsonl"))
        assert [p.name for p in outputs] == [
            "big_commerce_ready_shard_000.jsonl",
            "big_commerce_ready_shard_001.jsonl",
            "big_commerce_ready_shard_002.jsonl",
        ]
        file_stats = report["processed_files"]["big.json"]
        assert file_stats["failed_records"] == 1
        assert len(read_jsonl(outputs)) == 26 - 1

    @pytest.mark.asyncio
    async def test_rerun_with_fewer_records_leaves_no_stale_shards(self, tmp_path, write_catalog):
        settings = create_test_settings(tmp_path, MAX_LINES_PER_SHARD=1, CHECKPOINT_ENABLED=False)
        write_catalog("small.json", [{"name": f"Item {n}"} for n in range(3)])
        await CatalogConverter(settings).convert_all()

        write_catalog("small.json", [{"name": "Only"}])
        report = await CatalogConverter(settings).convert_all()

        outputs = sorted(Path(settings.OUTPUT_DIRECTORY).glob("small_commerce_ready*.jsonl"))
        assert [p.name for p in outputs] == ["small_commerce_ready_shard_000.jsonl"]
        assert [line["title"] for line in read_jsonl(outputs)] == ["Only"]
        assert len(combined_paths(settings)) == 1
        assert report["validation"]["warnings"] == []

    @pytest.mark.asyncio
    async def test_failed_file_does_not_stop_run(self, settings, write_catalog):
        write_catalog("a.json", [{"name": "Good"}])
        write_catalog("b.json", "{broken", raw=True)

        report = await CatalogConverter(settings).convert_all()

        assert report["file_statistics"]["successfully_processed"] == 1
        assert report["processed_files"]["b.json"]["state"] == "failed"
        assert report["validation"]["is_valid"] is True

        store = CheckpointStore(settings)
        assert store.load() is True
        assert store.processed_files == ["a.json"]

    @pytest.mark.asyncio
    async def test_combined_output_failure_fails_file(self, settings, write_catalog):
        write_catalog("a.json", [{"name": "Alpha"}])
        write_catalog("b.json", [{"name": "Beta"}])

        def failing_lines(paths):
            if any(path.name.startswith("a_") for path in paths):
                raise ShardWriteError("disk full")
            return iter_output_lines(paths)

        with patch("commerce_catalog.ingestion.catalog_converter.iter_output_lines", side_effect=failing_lines):
            report = await CatalogConverter(settings).convert_all()

        assert report["processed_files"]["a.json"]["state"] == "failed"
        assert "Combined output failed" in report["processed_files"]["a.json"]["error"]
        assert report["processed_files"]["b.json"]["state"] == "completed"
        assert [line["title"] for line in read_jsonl(combined_paths(settings))] == ["Beta"]

        store = CheckpointStore(settings)
        assert store.load() is True
        assert store.processed_files == ["b.json"]


class TestResume:

    @pytest.mark.asyncio
    async def test_resume_skips_completed_files(self, settings, write_catalog):
        write_catalog("a.json", [{"name": "Alpha"}])
        write_catalog("b.json", "{broken", raw=True)

        first = await CatalogConverter(settings).convert_all()
        assert first["processed_files"]["b.json"]["state"] == "failed"

        write_catalog("b.json", [{"name": "Beta"}])
        converter = CatalogConverter(settings)
        with patch.object(converter.file_processor, "process_file",
                          wraps=converter.file_processor.process_file) as spy:
            second = await converter.convert_all()

        assert [call.args[0].name for call in spy.call_args_list] == ["b.json"]
        assert second["processed_files"]["a.json"]["resumed"] is True
        assert second["file_statistics"]["resumed_from_checkpoint"] == 1
        assert second["product_statistics"]["total_products"] == 2
        assert sorted(line["title"] for line in read_jsonl(combined_paths(settings))) == ["Alpha", "Beta"]
        assert second["validation"]["is_valid"] is True
        assert not CheckpointStore(settings).path.exists()

    @pytest.mark.asyncio
    async def test_checkpoint_without_stats(self, settings, write_catalog):
        write_catalog("a.json", [{"name": "Alpha"}])
        write_catalog("b.json", [{"name": "Beta"}])
        store = CheckpointStore(settings)
        store.path.parent.mkdir(parents=True, exist_ok=True)
        store.path.write_text(json.dumps({"processed_files": ["a.json"], "timestamp": "2024-01-01T00:00:00"}))

        report = await CatalogConverter(settings).convert_all()

        assert not Path(settings.OUTPUT_DIRECTORY, "a_commerce_ready_shard_000.jsonl").exists()
        assert report["processed_files"]["a.json"]["resumed"] is True
        assert report["processed_files"]["b.json"]["total_products"] == 1

    @pytest.mark.asyncio
    async def test_checkpoint_disabled(self, tmp_path, write_catalog):
        settings = create_test_settings(tmp_path, CHECKPOINT_ENABLED=False)
        write_catalog("a.json", [{"name": "Alpha"}])
        write_catalog("b.json", "{broken", raw=True)

        await CatalogConverter(settings).convert_all()

        assert not CheckpointStore(settings).path.exists()


@pytest.mark.asyncio
async def test_convert_single_file(settings, write_catalog):
    path = write_catalog("solo.json", {"id": "s1", "title": "Solo Lamp"})

    report = await CatalogConverter(settings).convert_file(path, format_hint="vertex")

    [line] = read_jsonl(report["processed_files"]["solo.json"]["output_paths"])
    assert line["id"] == "s1"
    assert report["processed_files"]["solo.json"]["detected_format"] == "vertex"
    assert combined_paths(settings) == []
