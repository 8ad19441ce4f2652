"""
CSV Processor Service
Imports the product and order exports row by row into the store
"""
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple
import logging

from sqlalchemy.exc import SQLAlchemyError

from services.category_seeder import build_category_resolver
from services.csv_reader import CsvReader, RowOutcome
from services.entity_resolver import CategoryResolver, ProductResolver
from services.errors import ImportPipelineError, PersistenceError, RowParseError
from services.obs.metrics import ImportMetricsCollector, metrics_collector
from services.record_builder import (
    ORDER_REQUIRED_COLUMNS, PRODUCT_REQUIRED_COLUMNS,
    build_order_graph, build_product_graph,
    expected_order_columns, expected_product_columns,
)
from services.results import ImportResult, ImportSummary
from services.storage import StorageService, storage as default_storage
from settings import (
    MAX_ORDER_ITEM_SLOTS, ORDERS_CSV_PATH, PLACEHOLDER_IMAGE_PATH, PRODUCTS_CSV_PATH,
)
from utils import is_transient_error

logger = logging.getLogger(__name__)

RowImporter = Callable[[RowOutcome], Awaitable[ImportResult]]
StatsFn = Callable[[], Dict[str, Any]]


class CSVProcessor:
    """Row-at-a-time importer for the products and orders exports."""

    valid_kinds = ("products", "orders")

    def __init__(
        self,
        storage: Optional[StorageService] = None,
        metrics: Optional[ImportMetricsCollector] = None,
        max_item_slots: int = MAX_ORDER_ITEM_SLOTS,
        placeholder_image: str = PLACEHOLDER_IMAGE_PATH,
    ):
        self.storage = storage or default_storage
        self.metrics = metrics or metrics_collector
        self.max_item_slots = max_item_slots
        self.placeholder_image = placeholder_image

    # ---------- Main entries ----------

    async def import_products(
        self, path: Optional[str] = None, truncate: bool = True, dry_run: bool = False
    ) -> ImportSummary:
        """Import the product export. Existing products are cleared first unless truncate is False."""
        with CsvReader.from_path(path or PRODUCTS_CSV_PATH) as reader:
            return await self.import_reader("products", reader, truncate=truncate, dry_run=dry_run)

    async def import_orders(self, path: Optional[str] = None, dry_run: bool = False) -> ImportSummary:
        """Import the order export. Orders are appended; nothing is cleared."""
        with CsvReader.from_path(path or ORDERS_CSV_PATH) as reader:
            return await self.import_reader("orders", reader, dry_run=dry_run)

    async def import_reader(
        self,
        kind: str,
        reader: CsvReader,
        truncate: bool = False,
        dry_run: bool = False,
        run_id: Optional[str] = None,
    ) -> ImportSummary:
        """Run one import over an open reader; fatal errors mark the run failed and propagate."""
        if kind not in self.valid_kinds:
            raise ValueError(f"Unknown import kind '{kind}'. Expected one of: {', '.join(self.valid_kinds)}")

        t0 = time.time()
        summary = ImportSummary(kind=kind, source=reader.source, dry_run=dry_run)
        if run_id is None and not dry_run:
            run = await self.storage.create_import_run({"kind": kind, "source": reader.source})
            run_id = run.id
        summary.run_id = run_id
        metrics_run_id = run_id or f"dry-run-{uuid.uuid4()}"
        self.metrics.start_run(metrics_run_id, kind)

        logger.info(f"[{metrics_run_id}] ========== {kind.upper()} IMPORT STARTED ==========")
        logger.info(f"[{metrics_run_id}] source={reader.source} dry_run={dry_run} truncate={truncate}")

        try:
            async with self.metrics.phase_timer(metrics_run_id, "validate_schema"):
                self._validate_schema(kind, reader)

            if kind == "products" and truncate and not dry_run:
                async with self.metrics.phase_timer(metrics_run_id, "truncate"):
                    await self.storage.clear_products()

            async with self.metrics.phase_timer(metrics_run_id, "load_snapshot"):
                import_row, resolution_stats = await self._row_importer(kind, dry_run)

            async with self.metrics.phase_timer(metrics_run_id, "rows"):
                for outcome in reader.rows():
                    result = await import_row(outcome)
                    summary.record(result)
                    if result.is_err:
                        self._log_row_failure(metrics_run_id, kind, outcome, result, summary)
        except Exception as e:
            summary.duration_ms = int((time.time() - t0) * 1000)
            logger.error(f"[{metrics_run_id}] {kind} import aborted: {e}")
            await self._finish_run(run_id, summary, status="failed", error_message=str(e))
            self.metrics.finish_run(metrics_run_id, summary.imported, summary.failed, summary.skipped, success=False)
            raise

        summary.duration_ms = int((time.time() - t0) * 1000)
        summary.resolution = resolution_stats()
        await self._finish_run(run_id, summary, status="completed")
        self.metrics.finish_run(
            metrics_run_id, summary.imported, summary.failed, summary.skipped,
            success=not summary.has_failures,
        )

        logger.info(f"[{metrics_run_id}] ========== {kind.upper()} IMPORT COMPLETED ==========")
        logger.info(
            f"[{metrics_run_id}] {summary.message()} | total={summary.total} "
            f"skipped={summary.skipped} duration={summary.duration_ms}ms"
        )
        return summary

    # ---------- Schema ----------

    def _validate_schema(self, kind: str, reader: CsvReader) -> None:
        if kind == "orders":
            reader.validate_schema(expected_order_columns(self.max_item_slots), ORDER_REQUIRED_COLUMNS)
        else:
            reader.validate_schema(expected_product_columns(reader.header), PRODUCT_REQUIRED_COLUMNS)
        logger.info(f"Schema validation passed for {kind} with {len(reader.header)} columns")

    # ---------- Per-row import ----------

    async def _row_importer(self, kind: str, dry_run: bool) -> Tuple[RowImporter, StatsFn]:
        """Load the resolver snapshot for this run; returns the per-row import function and a stats getter."""
        if kind == "orders":
            resolver = ProductResolver(await self.storage.get_product_refs())
            logger.info(f"Product snapshot loaded: {len(resolver.products)} products")

            async def import_order_row(outcome: RowOutcome) -> ImportResult:
                return await self._import_row(
                    outcome,
                    lambda row: build_order_graph(row, resolver, self.max_item_slots),
                    self.storage.persist_order_graph,
                    dry_run,
                )

            return import_order_row, lambda: {"products": resolver.stats()}

        category_resolver = await self._category_resolver()

        async def import_product_row(outcome: RowOutcome) -> ImportResult:
            return await self._import_row(
                outcome,
                lambda row: build_product_graph(row, category_resolver, self.placeholder_image),
                self.storage.persist_product_graph,
                dry_run,
            )

        def stats() -> Dict[str, Any]:
            return {"categories": category_resolver.stats()} if category_resolver else {}

        return import_product_row, stats

    async def _category_resolver(self) -> Optional[CategoryResolver]:
        resolver = build_category_resolver(await self.storage.get_category_map())
        if resolver is None:
            # Categories are seeded after products; they get assigned then
            logger.info("No categories yet; product category_id left empty until categories are assigned")
        return resolver

    async def _import_row(self, outcome: RowOutcome, build, persist, dry_run: bool) -> ImportResult:
        """Build and persist one row; every failure becomes an Err result."""
        if not outcome.ok:
            return ImportResult.err(outcome.line_number, outcome.error)

        try:
            graph = build(outcome.row)
        except ImportPipelineError as e:
            return ImportResult.err(outcome.line_number, e)
        except Exception as e:
            logger.debug(f"Unexpected build failure on line {outcome.line_number}", exc_info=True)
            return ImportResult.err(
                outcome.line_number,
                RowParseError(f"{type(e).__name__}: {e}", line_number=outcome.line_number, raw=outcome.row.values),
            )

        if graph is None:
            logger.debug(f"Line {outcome.line_number}: empty first column, skipped")
            return ImportResult.skip(outcome.line_number)

        if dry_run:
            return ImportResult.ok(outcome.line_number, graph)

        try:
            await persist(graph)
        except PersistenceError as e:
            return ImportResult.err(outcome.line_number, e)
        except SQLAlchemyError as e:
            return ImportResult.err(
                outcome.line_number,
                PersistenceError(str(e)[:200], transient=is_transient_error(e), line_number=outcome.line_number),
            )
        return ImportResult.ok(outcome.line_number, graph)

    def _log_row_failure(
        self, run_id: str, kind: str, outcome: RowOutcome, result: ImportResult, summary: ImportSummary
    ) -> None:
        raw = outcome.row.values if outcome.row is not None else getattr(result.error, "raw", None)
        self.metrics.record_failure(kind, result.error)
        logger.error(
            f"[{run_id}] {kind} line {outcome.line_number} failed: {result.error} | raw={raw} | "
            f"imported={summary.imported} failed={summary.failed}"
        )

    async def _finish_run(
        self, run_id: Optional[str], summary: ImportSummary, status: str, error_message: Optional[str] = None
    ) -> None:
        for entity, stats in summary.resolution.items():
            self.metrics.record_resolution_misses(entity, stats.get("misses", stats.get("fallbacks", 0)))
        if run_id is None:
            return
        await self.storage.update_import_run(run_id, {
            "status": status,
            "total_rows": summary.total,
            "imported_rows": summary.imported,
            "failed_rows": summary.failed,
            "skipped_rows": summary.skipped,
            "error_message": error_message,
        })
