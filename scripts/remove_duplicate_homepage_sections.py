#!/usr/bin/env python3
"""
Removes duplicate homepage sections, keeping the one with the lowest ID for each section_name.

Usage:
  python scripts/remove_duplicate_homepage_sections.py
  python scripts/remove_duplicate_homepage_sections.py --dry-run
"""

import asyncio
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import init_db
from services.deduplication import remove_duplicate_homepage_sections
from utils import configure_logging


async def main(dry_run: bool = False) -> int:
    await init_db()
    print("Checking for duplicate homepage sections...")
    plan = await remove_duplicate_homepage_sections(dry_run=dry_run)

    if plan.is_empty:
        print("No duplicate homepage sections found!")
        return 0

    print(f"Found {len(plan.groups)} section types with duplicates:")
    for group in plan.groups:
        removed = ", ".join(str(i) for i in group.removed)
        if dry_run:
            print(f"- {group.key}: keep {group.kept}, would delete {removed}")
        else:
            print(f"- {group.key}: kept {group.kept}, deleted {removed}")

    if dry_run:
        print(f"\nDRY RUN SUMMARY: Would delete {len(plan.to_delete)} duplicate entries.")
        print("Run the command without --dry-run to actually delete the duplicates.")
    else:
        print(f"\nSUCCESS: Deleted {len(plan.to_delete)} duplicate entries.")
    return 0


if __name__ == "__main__":
    configure_logging()
    sys.exit(asyncio.run(main(dry_run="--dry-run" in sys.argv)))
