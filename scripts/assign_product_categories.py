#!/usr/bin/env python3
"""
Seed the category tree (if missing) and re-resolve every product's category_id from its label.

Usage:
  python scripts/assign_product_categories.py
"""

import asyncio
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import init_db
from services.category_seeder import assign_product_categories, seed_categories
from utils import configure_logging


async def main() -> int:
    await init_db()
    category_ids = await seed_categories()
    changed = await assign_product_categories()
    print(f"✅ {len(category_ids)} categories available, {changed} products updated")
    return 0


if __name__ == "__main__":
    configure_logging()
    sys.exit(asyncio.run(main()))
