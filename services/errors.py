"""
Import pipeline error taxonomy.

Fatal errors (SourceMissingError, SchemaError) abort a run. RowParseError and
PersistenceError are per-row: the row is skipped, counted and logged, and the
run continues. A product or category lookup that finds nothing is not an
error at all; the resolvers count those misses and fall back.
"""
from typing import Any, Dict, Iterable, Optional


class ImportPipelineError(Exception):
    """Base class for everything the import pipeline raises."""


class SourceMissingError(ImportPipelineError, FileNotFoundError):
    """The CSV file does not exist at the expected path."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"CSV source not found: {path}")


class SchemaError(ImportPipelineError):
    """The header row lacks columns the importer cannot do without."""

    def __init__(self, source: str, missing: Iterable[str]):
        self.source = source
        self.missing = sorted(missing)
        super().__init__(f"{source}: missing required columns: {', '.join(self.missing)}")


class RowParseError(ImportPipelineError):
    """A row's structure or content could not be turned into records."""

    def __init__(self, message: str, line_number: Optional[int] = None, raw: Any = None):
        self.line_number = line_number
        self.raw = raw
        prefix = f"line {line_number}: " if line_number is not None else ""
        super().__init__(f"{prefix}{message}")


class MalformedRowError(RowParseError):
    """A data row has a different number of columns than the header."""

    def __init__(self, line_number: int, expected: int, actual: int, raw: Any = None):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"expected {expected} columns, found {actual}",
            line_number=line_number,
            raw=raw,
        )


class PersistenceError(ImportPipelineError):
    """The store rejected a row's writes."""

    def __init__(self, message: str, transient: bool = False, line_number: Optional[int] = None):
        self.transient = transient
        self.line_number = line_number
        super().__init__(message)


def describe_error(error: BaseException) -> Dict[str, Any]:
    """Flatten an error into a JSON-friendly dict for summaries and logs."""
    info: Dict[str, Any] = {"type": type(error).__name__, "message": str(error)}
    line_number = getattr(error, "line_number", None)
    if line_number is not None:
        info["line"] = line_number
    if isinstance(error, PersistenceError):
        info["transient"] = error.transient
    return info
