"""
Data-source collaborators.

The pipeline only needs three things from a source: the queryable table/view
names, the column names of one of them, and the rows for a resolved
projection. ``SqliteSource`` answers those from a SQLite file by running the
resolver's SELECT; ``FrameSource`` answers them from in-memory Polars frames
(CSV/Excel files are loaded into one).
"""

from __future__ import annotations

import logging
import sqlite3
import zipfile
from contextlib import closing
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Dict, List, Mapping, Protocol, Sequence

import openpyxl
import polars as pl
from openpyxl.utils.exceptions import InvalidFileException

from .resolve import Projection, project_frame, quote_identifier

LOGGER = logging.getLogger(__name__)

SQLITE_RESERVED_PREFIX = "sqlite_"
SQLITE_SUFFIXES = {".db", ".sqlite", ".sqlite3"}
WORKBOOK_SUFFIXES = {".xlsx", ".xlsm"}
EXCEL_SUFFIXES = {*WORKBOOK_SUFFIXES, ".xls"}
CSV_SUFFIXES = {".csv"}


class SourceError(ValueError):
    """Raised for unknown tables/views or unsupported source files."""


class RecordSource(Protocol):
    def list_sources(self) -> List[str]:
        ...

    def column_names(self, name: str) -> List[str]:
        ...

    def fetch(self, name: str, projection: Projection, select_sql: str) -> pl.DataFrame:
        ...


def _convert_date(raw: bytes) -> Any:
    text = raw.decode("utf-8")
    if text.isdigit() and len(text) in (3, 4):
        # NUMERIC affinity stores "0905" as the integer 905; give back the MMDD text.
        return text.zfill(4)
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return text


def _convert_datetime(raw: bytes) -> Any:
    text = raw.decode("utf-8")
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return text


# Columns declared DATE/DATETIME come back as real date values, which is what
# the payment-note normalization keys on.
sqlite3.register_converter("DATE", _convert_date)
sqlite3.register_converter("DATETIME", _convert_datetime)
sqlite3.register_converter("TIMESTAMP", _convert_datetime)


def _column_series(name: str, values: List[Any]) -> pl.Series:
    """
    One column from Python cell values.

    Homogeneous (or int/float) columns are typed by Polars. Columns mixing date
    values with other cells, e.g. a DATE column that also holds "0905" text,
    are kept as ``pl.Object`` so each cell keeps its own type. Any other mix is
    carried as text.
    """

    kinds = {type(value) for value in values if value is not None}
    if len(kinds) <= 1 or kinds <= {int, float}:
        return pl.Series(name, values, strict=False)
    if any(issubclass(kind, (date, time)) for kind in kinds):
        return pl.Series(name, values, dtype=pl.Object)
    return pl.Series(name, [None if value is None else str(value) for value in values], dtype=pl.Utf8)


def rows_to_frame(columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> pl.DataFrame:
    """Build a frame from row tuples (DB-API or worksheet rows), column by column."""

    if not rows:
        return pl.DataFrame({name: [] for name in columns})
    series = []
    for idx, name in enumerate(columns):
        values = [row[idx] if idx < len(row) else None for row in rows]
        series.append(_column_series(name, values))
    return pl.DataFrame(series)


class SqliteSource:
    """Tables and views of one SQLite database file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _connect(self) -> sqlite3.Connection:
        if not self.path.is_file():
            raise SourceError(f"Database not found: {self.path}")
        return sqlite3.connect(str(self.path), detect_types=sqlite3.PARSE_DECLTYPES)

    def list_sources(self) -> List[str]:
        with closing(self._connect()) as conn:
            rows = conn.execute("SELECT name FROM sqlite_master WHERE type IN ('table', 'view')").fetchall()
        names = [str(row[0]) for row in rows if row[0] and not str(row[0]).startswith(SQLITE_RESERVED_PREFIX)]
        return sorted(names)

    def _require(self, name: str) -> None:
        if name not in self.list_sources():
            raise SourceError(f"Table or view not found in {self.path.name}: {name}")

    def column_names(self, name: str) -> List[str]:
        self._require(name)
        with closing(self._connect()) as conn:
            cursor = conn.execute(f"SELECT * FROM {quote_identifier(name)} LIMIT 0")
            return [str(desc[0]) for desc in cursor.description]

    def fetch(self, name: str, projection: Projection, select_sql: str) -> pl.DataFrame:
        self._require(name)
        LOGGER.debug("Running: %s", select_sql)
        with closing(self._connect()) as conn:
            cursor = conn.execute(select_sql)
            columns = [str(desc[0]) for desc in cursor.description]
            rows = cursor.fetchall()
        return rows_to_frame(columns, rows)


def _header_names(header: Sequence[Any]) -> List[str]:
    """Worksheet header cells as unique column names; blanks become ``column_N``."""

    names: List[str] = []
    seen: Dict[str, int] = {}
    for idx, cell in enumerate(header):
        text = str(cell).strip() if cell is not None else ""
        name = text or f"column_{idx + 1}"
        count = seen.get(name, 0)
        seen[name] = count + 1
        names.append(name if count == 0 else f"{name}_{count + 1}")
    return names


def read_workbook(path: Path) -> pl.DataFrame:
    """
    Stream the first worksheet of an .xlsx/.xlsm file with openpyxl.

    Cells keep their workbook types, so a payment-note column that mixes real
    date cells with "0905" text reaches the transformer as dates and text
    rather than as one stringified column. Fully blank rows are skipped.
    """

    try:
        wb = openpyxl.load_workbook(path, read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile) as exc:
        raise SourceError(f"Cannot read workbook {path}: {exc}") from exc

    try:
        rows_iter = wb.worksheets[0].iter_rows(values_only=True)
        header = next(rows_iter, None)
        if header is None:
            return pl.DataFrame()
        columns = _header_names(header)
        rows = [row for row in rows_iter if any(cell is not None for cell in row)]
    finally:
        wb.close()
    LOGGER.debug("Read %d rows x %d columns from %s", len(rows), len(columns), path)
    return rows_to_frame(columns, rows)


def load_table_file(path: str | Path) -> pl.DataFrame:
    """
    Load a CSV or Excel sheet into Polars.

    CSV cells are kept as text so identifiers such as "001234" keep their
    leading zeros. .xlsx/.xlsm sheets are streamed with openpyxl so each cell
    keeps its type. Legacy .xls goes through polars.read_excel and falls back
    to pandas when that reader is unavailable or returns nothing.
    """

    path = Path(path)
    suffix = path.suffix.lower()
    if not path.is_file():
        raise SourceError(f"Source file not found: {path}")

    if suffix in CSV_SUFFIXES:
        return pl.read_csv(path, infer_schema_length=0)
    if suffix in WORKBOOK_SUFFIXES:
        return read_workbook(path)
    if suffix not in EXCEL_SUFFIXES:
        raise SourceError(f"Unsupported source file type: {path.suffix or path.name}")

    try:
        df = pl.read_excel(path)
        if not df.is_empty():
            return df
        LOGGER.info("polars.read_excel returned 0 rows for %s; retrying with pandas.", path)
    except Exception as exc:  # optional engine missing or unreadable by calamine
        LOGGER.info("polars.read_excel failed for %s; falling back to pandas. %s", path, exc)

    import pandas as pd

    pandas_df = pd.read_excel(path)
    return pl.from_pandas(pandas_df)


class FrameSource:
    """In-memory frames keyed by source name."""

    def __init__(self, frames: Mapping[str, pl.DataFrame]):
        self._frames: Dict[str, pl.DataFrame] = dict(frames)

    @classmethod
    def from_file(cls, path: str | Path) -> "FrameSource":
        path = Path(path)
        return cls({path.stem: load_table_file(path)})

    def _require(self, name: str) -> pl.DataFrame:
        try:
            return self._frames[name]
        except KeyError:
            raise SourceError(f"Unknown source: {name}") from None

    def list_sources(self) -> List[str]:
        return sorted(self._frames)

    def column_names(self, name: str) -> List[str]:
        return list(self._require(name).columns)

    def fetch(self, name: str, projection: Projection, select_sql: str) -> pl.DataFrame:
        return project_frame(self._require(name), projection)


def open_source(path: str | Path) -> RecordSource:
    """Pick a source implementation from the file suffix."""

    path = Path(path)
    if path.suffix.lower() in SQLITE_SUFFIXES:
        return SqliteSource(path)
    return FrameSource.from_file(path)


__all__ = [
    "FrameSource",
    "RecordSource",
    "SourceError",
    "SqliteSource",
    "load_table_file",
    "open_source",
    "read_workbook",
    "rows_to_frame",
]
