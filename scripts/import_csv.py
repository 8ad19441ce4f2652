#!/usr/bin/env python3
"""
Import the product or order CSV export.

Usage:
  python scripts/import_csv.py products [path] [--dry-run] [--no-truncate]
  python scripts/import_csv.py orders [path] [--dry-run]

Paths default to PRODUCTS_CSV_PATH / ORDERS_CSV_PATH.
Exit codes: 0 all rows imported, 1 source file missing or unusable, 2 some rows failed.
"""

import argparse
import asyncio
import json
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import init_db
from services.csv_processor import CSVProcessor
from services.errors import SchemaError, SourceMissingError
from services.seeder import EXIT_SOURCE_MISSING, exit_code_for
from utils import configure_logging


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import a product or order CSV export")
    parser.add_argument("kind", choices=CSVProcessor.valid_kinds)
    parser.add_argument("path", nargs="?", default=None)
    parser.add_argument("--dry-run", action="store_true", help="Parse and resolve rows without writing")
    parser.add_argument("--no-truncate", action="store_true", help="Keep existing products (products only)")
    return parser.parse_args(argv)


async def main(args: argparse.Namespace) -> int:
    await init_db()
    processor = CSVProcessor()
    try:
        if args.kind == "products":
            summary = await processor.import_products(args.path, truncate=not args.no_truncate, dry_run=args.dry_run)
        else:
            summary = await processor.import_orders(args.path, dry_run=args.dry_run)
    except (SourceMissingError, SchemaError) as e:
        print(f"❌ {e}", file=sys.stderr)
        return EXIT_SOURCE_MISSING

    print(summary.message())
    if summary.errors:
        print(json.dumps(summary.errors[:10], indent=2, default=str))
    return exit_code_for([summary])


if __name__ == "__main__":
    configure_logging()
    sys.exit(asyncio.run(main(parse_args())))
