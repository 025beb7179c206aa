#!/usr/bin/env python3
"""
Commerce Catalog Converter

Converts JSON product catalogs into newline-delimited commerce import records
enriched with dense/sparse search vectors and a search readiness score.

Usage:
    python run/convert_catalog.py
    python run/convert_catalog.py --input ./Data --output ./output
    python run/convert_catalog.py --file ./Data/catalog.json --format vertex
    python run/convert_catalog.py --concurrency 2 --batch-size 500 --no-shard
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from configs.settings import get_settings
from ...errors import CatalogConversionError
from ..catalog_converter import CatalogConverter

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Convert JSON product catalogs into commerce-ready JSONL",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--input", help="Input directory (overrides INPUT_DIRECTORY)")
    parser.add_argument("--output", help="Output directory (overrides OUTPUT_DIRECTORY)")
    parser.add_argument("--file", help="Convert a single file instead of a directory")
    parser.add_argument("--format", default="auto", help="Catalog format: auto, vertex or generic")
    parser.add_argument("--concurrency", type=int, help="Files converted concurrently")
    parser.add_argument("--batch-size", type=int, help="Records per batch")
    parser.add_argument("--no-shard", action="store_true", help="Write one output file per input")
    parser.add_argument("--no-checkpoint", action="store_true", help="Disable checkpoint/resume")
    parser.add_argument("--log-level", help="Logging level (overrides LOG_LEVEL)")
    return parser


def settings_overrides(args: argparse.Namespace) -> dict:
    overrides = {}
    if args.input:
        overrides["INPUT_DIRECTORY"] = args.input
    if args.output:
        overrides["OUTPUT_DIRECTORY"] = args.output
    if args.concurrency is not None:
        overrides["CONCURRENCY_LIMIT"] = args.concurrency
    if args.batch_size is not None:
        overrides["BATCH_SIZE"] = args.batch_size
    if args.no_shard:
        overrides["SHARD_OUTPUT"] = False
    if args.no_checkpoint:
        overrides["CHECKPOINT_ENABLED"] = False
    if args.log_level:
        overrides["LOG_LEVEL"] = args.log_level
    return overrides


async def main(argv: Optional[List[str]] = None) -> int:
    """
    Run a conversion from the command line.

    Returns:
        Process exit code: 0 on success, 1 on fatal errors or report validation errors
    """
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings(**settings_overrides(args))
    except ValidationError as e:
        print(f"❌ Invalid configuration:\n{e}", file=sys.stderr)
        return 1

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    converter = CatalogConverter(settings)

    try:
        if args.file:
            report = await converter.convert_file(Path(args.file), args.format)
        else:
            report = await converter.convert_all(args.format)
    except CatalogConversionError as e:
        logger.error(f"❌ Conversion aborted: {e}")
        return 1

    if not report["validation"]["is_valid"]:
        logger.error("❌ Report validation failed")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
