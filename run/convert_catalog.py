#!/usr/bin/env python3
"""
Manual runner for Commerce Catalog Conversion

Usage:
    python run/convert_catalog.py
    python run/convert_catalog.py --input ./Data --output ./output
    python run/convert_catalog.py --file ./Data/catalog.json --format generic
"""

import sys
import os

# Add parent directory to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from commerce_catalog.ingestion.scripts.convert_catalog import main

if __name__ == "__main__":
    import asyncio
    sys.exit(asyncio.run(main()))
