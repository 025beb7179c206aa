"""
Catalog Format Detection and Parser Selection

Decides the top-level layout of a JSON catalog (bare array, products/data/items
wrapper or single object), picks a parsing strategy (whole-file or
constant-memory incremental) and classifies the catalog as vertex-like or
generic. Detection is heuristic and never raises.
"""

import json
import logging
import itertools
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, List, Optional, Tuple

import ijson

from configs.settings import Settings
from ...errors import CatalogParseError

logger = logging.getLogger(__name__)


class CatalogFormat(str, Enum):
    """Closed set of source variants, resolved once per file"""
    VERTEX = "vertex"
    GENERIC = "generic"


class JsonLayout(str, Enum):
    ARRAY = "array"
    PRODUCTS = "products"
    DATA = "data"
    ITEMS = "items"
    SINGLE = "single"


_EMPTY = object()

# Wrapper keys in precedence order
WRAPPER_LAYOUTS = (
    ('products', JsonLayout.PRODUCTS),
    ('data', JsonLayout.DATA),
    ('items', JsonLayout.ITEMS),
)


@dataclass
class ParsedCatalog:
    """Lazy or materialized sequence of raw products plus detection results"""
    records: Iterator[Any]
    detected_format: CatalogFormat
    layout: JsonLayout
    strategy: str
    record_count: Optional[int] = None


class ParserStrategy(ABC):
    """Produces raw product values from a catalog file"""

    name = "abstract"

    @abstractmethod
    def parse(self, path: Path) -> Tuple[Iterator[Any], JsonLayout, Optional[int]]:
        """
        Parse a catalog file.

        Returns:
            (records iterator, detected layout, record count if known)
        """
        pass


class WholeFileParser(ParserStrategy):
    """Loads the whole document, then unwraps it"""

    name = "whole_file"

    def parse(self, path: Path) -> Tuple[Iterator[Any], JsonLayout, Optional[int]]:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CatalogParseError(f"Cannot parse catalog: {e}", original_error=e, source=path.name)

        products, layout = unwrap_products(data)
        return iter(products), layout, len(products)


class IncrementalParser(ParserStrategy):
    """Streams records with ijson so memory stays flat regardless of file size"""

    name = "incremental"

    def parse(self, path: Path) -> Tuple[Iterator[Any], JsonLayout, Optional[int]]:
        layout = self._scan_layout(path)

        if layout == JsonLayout.ARRAY:
            prefix = 'item'
        elif layout == JsonLayout.SINGLE:
            prefix = ''
        else:
            prefix = f'{layout.value}.item'

        return self._iterate(path, prefix), layout, None

    def _scan_layout(self, path: Path) -> JsonLayout:
        """Walk top-level parse events (constant memory) to find the layout"""
        found = set()
        try:
            with open(path, 'rb') as f:
                events = ijson.parse(f, use_float=True)
                pending_key = None
                for prefix, event, value in events:
                    if prefix == '' and event == 'start_array':
                        return JsonLayout.ARRAY
                    if prefix == '' and event == 'map_key':
                        pending_key = value
                        continue
                    if pending_key is not None and prefix == pending_key:
                        if event == 'start_array' and pending_key in ('products', 'data', 'items'):
                            # products has the highest precedence, nothing can beat it
                            if pending_key == 'products':
                                return JsonLayout.PRODUCTS
                            found.add(pending_key)
                        pending_key = None
        except (OSError, ijson.JSONError) as e:
            raise CatalogParseError(f"Cannot parse catalog: {e}", original_error=e, source=path.name)

        for key, layout in WRAPPER_LAYOUTS:
            if key in found:
                return layout
        return JsonLayout.SINGLE

    def _iterate(self, path: Path, prefix: str) -> Iterator[Any]:
        try:
            with open(path, 'rb') as f:
                for item in ijson.items(f, prefix, use_float=True):
                    yield item
        except (OSError, ijson.JSONError) as e:
            raise CatalogParseError(f"Cannot parse catalog: {e}", original_error=e, source=path.name)


def unwrap_products(data: Any) -> Tuple[List[Any], JsonLayout]:
    """Extract the product list from a parsed top-level JSON value"""
    if isinstance(data, list):
        return data, JsonLayout.ARRAY

    if isinstance(data, dict):
        for key, layout in WRAPPER_LAYOUTS:
            if isinstance(data.get(key), list):
                return data[key], layout

    return [data], JsonLayout.SINGLE


def detect_format(layout: JsonLayout, first_record: Any, format_hint: str = 'auto') -> CatalogFormat:
    """
    Classify a catalog as vertex-like or generic.

    Args:
        layout: Top-level layout of the document
        first_record: First raw product (None for empty catalogs)
        format_hint: 'auto' or an explicit format tag

    Returns:
        Detected format; ambiguous input yields GENERIC
    """
    if format_hint and format_hint != 'auto':
        try:
            return CatalogFormat(format_hint.lower())
        except ValueError:
            logger.warning(f"⚠️ Unknown format hint '{format_hint}', using generic")
            return CatalogFormat.GENERIC

    if layout == JsonLayout.PRODUCTS:
        return CatalogFormat.VERTEX

    if isinstance(first_record, dict) and (first_record.get('title') or first_record.get('categories')):
        return CatalogFormat.VERTEX

    return CatalogFormat.GENERIC


class CatalogParserSelector:
    """
    Chooses a parser per file.

    The incremental capability is resolved once at construction; when it is
    unavailable every file is parsed whole and a single warning is logged.
    """

    def __init__(self, settings: Settings, incremental_available: bool = True):
        self.settings = settings
        self.whole_file_parser = WholeFileParser()
        self.incremental_parser: Optional[ParserStrategy] = None

        if incremental_available:
            self.incremental_parser = IncrementalParser()
        elif settings.ENABLE_STREAMING:
            logger.warning("⚠️ Incremental parser unavailable, large catalogs will be parsed in memory")

    def select_strategy(self, path: Path) -> ParserStrategy:
        if not self.settings.ENABLE_STREAMING or self.incremental_parser is None:
            return self.whole_file_parser

        try:
            size = path.stat().st_size
        except OSError as e:
            raise CatalogParseError(f"Cannot read catalog: {e}", original_error=e, source=path.name)

        if size >= self.settings.streaming_threshold_bytes:
            return self.incremental_parser
        return self.whole_file_parser

    def parse(self, path: Path, format_hint: str = 'auto') -> ParsedCatalog:
        """
        Parse a catalog file and detect its format.

        Args:
            path: Catalog file
            format_hint: 'auto', 'vertex' or 'generic'

        Returns:
            ParsedCatalog whose iterator yields every record, first one included
        """
        strategy = self.select_strategy(path)
        logger.info(f"📖 Using {strategy.name} parser for: {path.name}")

        records, layout, count = strategy.parse(path)

        first = next(records, _EMPTY)
        if first is _EMPTY:
            first = None
        else:
            records = itertools.chain([first], records)

        detected = detect_format(layout, first, format_hint)

        return ParsedCatalog(
            records=records,
            detected_format=detected,
            layout=layout,
            strategy=strategy.name,
            record_count=count,
        )
