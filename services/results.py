"""
Per-row import outcomes and the end-of-run summary.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar

from services.errors import ImportPipelineError, describe_error

T = TypeVar("T")

MAX_REPORTED_ERRORS = 50


@dataclass
class ImportResult(Generic[T]):
    """Ok(value), Err(error) or Skipped for a single source row."""
    line_number: Optional[int]
    value: Optional[T] = None
    error: Optional[ImportPipelineError] = None
    skipped: bool = False

    @classmethod
    def ok(cls, line_number: Optional[int], value: T) -> "ImportResult[T]":
        return cls(line_number=line_number, value=value)

    @classmethod
    def err(cls, line_number: Optional[int], error: ImportPipelineError) -> "ImportResult[T]":
        return cls(line_number=line_number, error=error)

    @classmethod
    def skip(cls, line_number: Optional[int]) -> "ImportResult[T]":
        return cls(line_number=line_number, skipped=True)

    @property
    def is_ok(self) -> bool:
        return self.error is None and not self.skipped

    @property
    def is_err(self) -> bool:
        return self.error is not None


@dataclass
class ImportSummary:
    kind: str
    source: str
    run_id: Optional[str] = None
    total: int = 0
    imported: int = 0
    failed: int = 0
    skipped: int = 0
    dry_run: bool = False
    duration_ms: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    resolution: Dict[str, Any] = field(default_factory=dict)

    def record(self, result: ImportResult) -> None:
        self.total += 1
        if result.skipped:
            self.skipped += 1
        elif result.error is not None:
            self.failed += 1
            if len(self.errors) < MAX_REPORTED_ERRORS:
                self.errors.append(describe_error(result.error))
        else:
            self.imported += 1

    @property
    def has_failures(self) -> bool:
        return self.failed > 0

    def message(self) -> str:
        noun = "orders" if self.kind == "orders" else "products"
        return f"Imported {self.imported} {noun} successfully. Failed: {self.failed}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "source": self.source,
            "run_id": self.run_id,
            "total": self.total,
            "imported": self.imported,
            "failed": self.failed,
            "skipped": self.skipped,
            "dry_run": self.dry_run,
            "duration_ms": self.duration_ms,
            "errors": list(self.errors),
            "resolution": dict(self.resolution),
            "message": self.message(),
        }
