"""
Import Router
CSV imports, import run status, homepage section maintenance
"""
from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, Query, Request, UploadFile
from pydantic import BaseModel
from typing import Any, Dict, List, Optional
import logging
import uuid

from schemas import homepage_sections_to_list, import_run_to_dict
from services.csv_processor import CSVProcessor
from services.csv_reader import CsvReader
from services.deduplication import DeduplicationService
from services.errors import SchemaError
from services.obs.metrics import metrics_collector
from services.storage import StorageService, storage
from settings import MAX_UPLOAD_BYTES

logger = logging.getLogger(__name__)
router = APIRouter()


class ImportSummaryResponse(BaseModel):
    kind: str
    source: str
    run_id: Optional[str] = None
    total: int
    imported: int
    failed: int
    skipped: int
    dry_run: bool
    duration_ms: int
    errors: List[Dict[str, Any]] = []
    resolution: Dict[str, Any] = {}
    message: str


class ImportQueuedResponse(BaseModel):
    runId: str
    status: str
    requestId: str


class DedupeResponse(BaseModel):
    dry_run: bool
    duplicate_keys: int
    to_delete: int
    groups: List[Dict[str, Any]]


def get_storage() -> StorageService:
    return storage


def get_processor(store: StorageService = Depends(get_storage)) -> CSVProcessor:
    return CSVProcessor(storage=store)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


@router.post("/import/{kind}")
async def import_csv(
    kind: str,
    request: Request,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    dry_run: bool = Query(False),
    truncate: bool = Query(False),
    background: bool = Query(False),
    processor: CSVProcessor = Depends(get_processor),
):
    request_id = _request_id(request)
    logger.info(f"[{request_id}] Import attempt kind={kind!r} filename={file.filename!r} dry_run={dry_run}")

    if kind not in CSVProcessor.valid_kinds:
        raise HTTPException(status_code=400, detail=f"Invalid import kind. Must be one of: {', '.join(CSVProcessor.valid_kinds)}")

    if not file.filename or not file.filename.lower().endswith(".csv"):
        logger.warning(f"[{request_id}] Reject non-CSV filename={file.filename!r}")
        raise HTTPException(status_code=400, detail="Only CSV files are allowed")

    content = await file.read()
    size = len(content or b"")
    logger.info(f"[{request_id}] Received payload size={size} bytes")
    if size == 0:
        raise HTTPException(status_code=400, detail="Empty file")
    if size > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail=f"File too large. Maximum size is {MAX_UPLOAD_BYTES // (1024 * 1024)}MB")

    csv_content = content.decode("utf-8-sig", errors="replace")
    reader = CsvReader.from_text(csv_content, source=file.filename)
    if not reader.header:
        raise HTTPException(status_code=400, detail="CSV has no header row")

    if background and not dry_run:
        run = await processor.storage.create_import_run({"kind": kind, "source": file.filename})
        background_tasks.add_task(process_import_background, processor, kind, reader, truncate, run.id)
        logger.info(f"[{request_id}] Background import scheduled run_id={run.id}")
        return ImportQueuedResponse(runId=run.id, status="processing", requestId=request_id)

    try:
        summary = await processor.import_reader(kind, reader, truncate=truncate, dry_run=dry_run)
    except SchemaError as e:
        raise HTTPException(status_code=400, detail=str(e))
    finally:
        reader.close()

    return ImportSummaryResponse(**summary.to_dict())


async def process_import_background(
    processor: CSVProcessor, kind: str, reader: CsvReader, truncate: bool, run_id: str
) -> None:
    """Background task; failures are already recorded on the import run."""
    try:
        await processor.import_reader(kind, reader, truncate=truncate, run_id=run_id)
    except Exception as e:
        logger.error(f"Background import error run_id={run_id}: {e}")
    finally:
        reader.close()


@router.get("/import-runs")
async def list_import_runs(limit: int = Query(10, ge=1, le=100), store: StorageService = Depends(get_storage)):
    runs = await store.get_recent_import_runs(limit)
    return [import_run_to_dict(run) for run in runs]


@router.get("/import-runs/{run_id}")
async def get_import_run(run_id: str, store: StorageService = Depends(get_storage)):
    run = await store.get_import_run(run_id)
    if not run:
        raise HTTPException(status_code=404, detail="Import run not found")
    return import_run_to_dict(run)


@router.get("/import-metrics")
async def get_import_metrics():
    return metrics_collector.get_summary()


@router.get("/homepage-sections")
async def get_homepage_sections(store: StorageService = Depends(get_storage)):
    """Active sections in display order."""
    return homepage_sections_to_list(await store.get_active_sections())


@router.post("/homepage-sections/dedupe")
async def dedupe_homepage_sections(
    dry_run: bool = Query(False),
    store: StorageService = Depends(get_storage),
):
    plan = await DeduplicationService(store).remove_duplicate_homepage_sections(dry_run=dry_run)
    return DedupeResponse(dry_run=dry_run, **plan.to_dict())
