#!/usr/bin/env python3
"""
Seed the database: products, categories, orders, homepage sections.

Usage:
  python scripts/seed_database.py
"""

import asyncio
import json
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import init_db
from services.seeder import exit_code_for, run_seed
from utils import configure_logging


async def main() -> int:
    await init_db()
    report = await run_seed()
    for summary in report.summaries:
        print(summary.message())
    print(json.dumps({
        "categories": report.categories,
        "products_categorized": report.products_categorized,
        "homepage_sections": report.homepage_sections,
        "fatal_errors": report.fatal_errors,
    }, indent=2))
    return exit_code_for(report.summaries, source_missing=bool(report.fatal_errors))


if __name__ == "__main__":
    configure_logging()
    sys.exit(asyncio.run(main()))
