"""
Seeding run
products -> categories (+ assignment) -> orders -> homepage sections
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

from services.category_seeder import assign_product_categories, seed_categories
from services.csv_processor import CSVProcessor
from services.errors import SchemaError, SourceMissingError
from services.homepage_sections import seed_homepage_sections
from services.results import ImportSummary

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_SOURCE_MISSING = 1
EXIT_PARTIAL = 2


@dataclass
class SeedReport:
    summaries: List[ImportSummary] = field(default_factory=list)
    fatal_errors: List[str] = field(default_factory=list)
    categories: int = 0
    products_categorized: int = 0
    homepage_sections: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "imports": [s.to_dict() for s in self.summaries],
            "fatal_errors": list(self.fatal_errors),
            "categories": self.categories,
            "products_categorized": self.products_categorized,
            "homepage_sections": self.homepage_sections,
        }


def exit_code_for(summaries: List[Optional[ImportSummary]], source_missing: bool = False) -> int:
    """0 when every row imported, 1 when a source file was missing or unreadable, 2 when some rows failed."""
    if source_missing or any(s is None for s in summaries):
        return EXIT_SOURCE_MISSING
    if any(s.has_failures for s in summaries):
        return EXIT_PARTIAL
    return EXIT_OK


async def run_seed(
    storage=None,
    products_path: Optional[str] = None,
    orders_path: Optional[str] = None,
    processor: Optional[CSVProcessor] = None,
) -> SeedReport:
    """Run every seeding step in order. A missing CSV aborts only its own step."""
    if storage is None:
        from services.storage import storage
    processor = processor or CSVProcessor(storage=storage)
    report = SeedReport()

    try:
        report.summaries.append(await processor.import_products(products_path, truncate=True))
    except (SourceMissingError, SchemaError) as e:
        logger.error(f"Product import skipped: {e}")
        report.fatal_errors.append(str(e))

    category_ids = await seed_categories(storage)
    report.categories = len(category_ids)
    report.products_categorized = await assign_product_categories(storage)

    try:
        report.summaries.append(await processor.import_orders(orders_path))
    except (SourceMissingError, SchemaError) as e:
        logger.error(f"Order import skipped: {e}")
        report.fatal_errors.append(str(e))

    report.homepage_sections = await seed_homepage_sections(storage)

    for summary in report.summaries:
        logger.info(summary.message())
    return report
