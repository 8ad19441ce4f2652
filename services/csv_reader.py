"""
CSV Reader
Streams rows from a delimited export, using the first row as the header
"""
import csv
import io
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, TextIO

from services.errors import MalformedRowError, RowParseError, SchemaError, SourceMissingError
from settings import MAX_UPLOAD_BYTES

logger = logging.getLogger(__name__)

# Long HTML descriptions exceed the csv module's 128 KiB default; allow up to the upload cap
csv.field_size_limit(max(csv.field_size_limit(), MAX_UPLOAD_BYTES))


@dataclass
class CsvRow:
    """One data row, addressable by header name."""
    line_number: int
    values: List[str]
    header_map: Dict[str, int] = field(repr=False)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        idx = self.header_map.get(name)
        if idx is None or idx >= len(self.values):
            return default
        return self.values[idx]

    def __contains__(self, name: str) -> bool:
        return name in self.header_map

    def columns_with_prefix(self, prefix: str) -> List[str]:
        """Header names starting with prefix, in column order."""
        return [name for name, _ in sorted(self.header_map.items(), key=lambda kv: kv[1])
                if name.startswith(prefix)]

    def as_dict(self) -> Dict[str, str]:
        return {name: self.values[idx] for name, idx in self.header_map.items() if idx < len(self.values)}


@dataclass
class RowOutcome:
    """Either a parsed row or the structural error that row produced."""
    line_number: int
    row: Optional[CsvRow] = None
    error: Optional[RowParseError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class CsvReader:
    """Single-pass reader over a CSV stream. Reopen the source to read it again."""

    def __init__(self, stream: TextIO, source: str = "<stream>", delimiter: str = ","):
        self.source = source
        self._stream = stream
        self._reader = csv.reader(stream, delimiter=delimiter)
        self._consumed = False
        self.header: List[str] = self._read_header()
        self.header_map: Dict[str, int] = {}
        for idx, name in enumerate(self.header):
            # Duplicate header names keep their first position
            self.header_map.setdefault(name, idx)

    @classmethod
    def from_path(cls, path: str, encoding: str = "utf-8-sig") -> "CsvReader":
        if not os.path.isfile(path):
            raise SourceMissingError(path)
        stream = open(path, "r", encoding=encoding, errors="replace", newline="")
        try:
            return cls(stream, source=path)
        except Exception:
            stream.close()
            raise

    @classmethod
    def from_text(cls, content: str, source: str = "<upload>") -> "CsvReader":
        return cls(io.StringIO(content.lstrip("\ufeff"), newline=""), source=source)

    def _read_header(self) -> List[str]:
        for raw in self._reader:
            if not raw or all(not (cell or "").strip() for cell in raw):
                continue
            header = [(cell or "").strip() for cell in raw]
            if header:
                header[0] = header[0].lstrip("\ufeff")
            return header
        return []

    def validate_schema(self, expected: Iterable[str], required: Iterable[str] = ()) -> None:
        """Fail fast when required columns are missing; log columns nobody reads."""
        present = set(self.header_map)
        missing = set(required) - present
        if missing:
            raise SchemaError(self.source, missing)

        expected_set = set(expected)
        unknown = [h for h in self.header if h and h not in expected_set]
        if unknown:
            logger.info(
                "CSV %s: %d columns outside the known schema will be ignored: %s",
                self.source, len(unknown), ", ".join(unknown[:10]),
            )

    def rows(self) -> Iterator[RowOutcome]:
        """Yield one outcome per non-blank data row."""
        if self._consumed:
            raise RuntimeError(f"CSV {self.source} was already read; reopen it to read again")
        self._consumed = True

        expected = len(self.header)
        while True:
            try:
                values = next(self._reader)
            except StopIteration:
                return
            except csv.Error as e:
                line_number = self._reader.line_num
                yield RowOutcome(
                    line_number=line_number,
                    error=RowParseError(f"unreadable CSV row: {e}", line_number=line_number),
                )
                continue
            line_number = self._reader.line_num
            if not values or all(not (cell or "").strip() for cell in values):
                continue
            if len(values) != expected:
                yield RowOutcome(
                    line_number=line_number,
                    error=MalformedRowError(line_number, expected, len(values), raw=values),
                )
                continue
            yield RowOutcome(
                line_number=line_number,
                row=CsvRow(line_number=line_number, values=values, header_map=self.header_map),
            )

    def __iter__(self) -> Iterator[RowOutcome]:
        return self.rows()

    def close(self) -> None:
        try:
            self._stream.close()
        except Exception:
            logger.debug("Closing CSV stream %s failed", self.source, exc_info=True)

    def __enter__(self) -> "CsvReader":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
