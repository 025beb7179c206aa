"""
Shared fixtures for the conversion test suite.
"""

import json
from pathlib import Path

import pytest

from configs.settings import create_test_settings
from commerce_catalog.ingestion.core.text_processor import TextProcessor
from commerce_catalog.ingestion.core.embedding_generator import EmbeddingGenerator


SCENARIO_A_CATALOG = {
    "products": [
        {
            "id": "p1",
            "title": "Red Shirt Size M",
            "categories": ["Clearance Shirts"],
            "price": {"amount": 19.99, "currency": "USD"},
        }
    ]
}


@pytest.fixture
def settings(tmp_path):
    """Isolated settings rooted in a temporary directory"""
    return create_test_settings(tmp_path)


@pytest.fixture
def text_processor(settings):
    return TextProcessor(settings)


@pytest.fixture
def embedding_generator(settings, text_processor):
    return EmbeddingGenerator(settings, text_processor)


@pytest.fixture
def write_catalog(settings):
    """Write a JSON catalog into the input directory and return its path"""

    def _write(name, data, raw=False):
        directory = Path(settings.INPUT_DIRECTORY)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_text(data if raw else json.dumps(data), encoding='utf-8')
        return path

    return _write


def read_jsonl(paths):
    """All records of a set of JSONL files, in order"""
    records = []
    for path in paths:
        with open(path, 'r', encoding='utf-8') as f:
            records.extend(json.loads(line) for line in f if line.strip())
    return records
