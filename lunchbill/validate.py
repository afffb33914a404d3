"""
Record validation: report every structural and content problem in one pass.

Validation never mutates the frame and never raises for bad data; callers get a
list of ``ValidationError`` triples and decide whether to proceed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Sequence

import polars as pl

from .schema import (
    BARCODE_FIELDS,
    CANONICAL_FIELDS,
    REQUIRED_COLUMNS,
    REQUIRED_VALUE_FIELDS,
    STUDENT_ID_FIELD,
    STUDENT_ID_LENGTH,
    first_illegal_code39_char,
)

LOGGER = logging.getLogger(__name__)

SCHEMA_ROW = 0


@dataclass(frozen=True)
class ValidationError:
    """One diagnostic. ``row`` is 1-based; 0 marks a schema-level problem."""

    row: int
    field: str
    message: str

    def __str__(self) -> str:
        if self.row == SCHEMA_ROW:
            return self.message
        return f"Row {self.row}: {self.message}"


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def missing_required_columns(columns: Iterable[str], required: Sequence[str] = REQUIRED_COLUMNS) -> List[str]:
    """Required fields absent from ``columns``, in canonical order."""

    present = set(columns)
    order = {name: idx for idx, name in enumerate(CANONICAL_FIELDS)}
    missing = [name for name in required if name not in present]
    return sorted(missing, key=lambda name: order.get(name, len(order)))


def check_required_value(row: Mapping[str, Any], field: str, row_num: int) -> ValidationError | None:
    if field not in row:
        return None
    if not _text(row[field]).strip():
        return ValidationError(row_num, field, f"{field} must not be empty")
    return None


def check_student_id(row: Mapping[str, Any], row_num: int) -> ValidationError | None:
    if STUDENT_ID_FIELD not in row:
        return None
    student_id = _text(row[STUDENT_ID_FIELD])
    if student_id and len(student_id) != STUDENT_ID_LENGTH:
        return ValidationError(
            row_num,
            STUDENT_ID_FIELD,
            f"{STUDENT_ID_FIELD} must be {STUDENT_ID_LENGTH} characters (got {len(student_id)})",
        )
    return None


def check_barcode_characters(row: Mapping[str, Any], field: str, row_num: int) -> ValidationError | None:
    """Flag the first character Code 39 cannot encode; later ones are not listed."""

    if field not in row:
        return None
    value = _text(row[field])
    if not value:
        return None
    illegal = first_illegal_code39_char(value)
    if illegal is None:
        return None
    return ValidationError(row_num, field, f"{field} contains a character not allowed in Code 39: '{illegal}'")


def validate_row(row: Mapping[str, Any], row_num: int) -> List[ValidationError]:
    """Row checks in reporting order: required values, id format, barcode charset."""

    errors: List[ValidationError] = []
    for field in REQUIRED_VALUE_FIELDS:
        error = check_required_value(row, field, row_num)
        if error:
            errors.append(error)

    error = check_student_id(row, row_num)
    if error:
        errors.append(error)

    for field in BARCODE_FIELDS:
        error = check_barcode_characters(row, field, row_num)
        if error:
            errors.append(error)
    return errors


def validate_records(df: pl.DataFrame) -> List[ValidationError]:
    """
    Validate a projected record set.

    Phase 1 checks that every required column exists; if any is missing, one
    error per missing column is returned and row checks are skipped. Phase 2
    walks the rows in order and accumulates every problem found.
    """

    missing = missing_required_columns(df.columns)
    if missing:
        return [ValidationError(SCHEMA_ROW, name, f"Missing required field: {name}") for name in missing]

    errors: List[ValidationError] = []
    for idx, row in enumerate(df.iter_rows(named=True), start=1):
        errors.extend(validate_row(row, idx))
    return errors


def format_validation_summary(errors: Sequence[ValidationError], limit: int = 10) -> str:
    """Human-readable digest: the first ``limit`` errors plus a remainder line."""

    if not errors:
        return "No validation problems found."
    lines = [f"Validation found {len(errors)} problem(s):", ""]
    lines.extend(str(error) for error in errors[:limit])
    if len(errors) > limit:
        lines.append(f"...and {len(errors) - limit} more")
    return "\n".join(lines)


def log_validation_errors(errors: Iterable[ValidationError], logger: logging.Logger = LOGGER) -> None:
    for error in errors:
        logger.warning("%s", error)


__all__ = [
    "SCHEMA_ROW",
    "ValidationError",
    "check_barcode_characters",
    "check_required_value",
    "check_student_id",
    "format_validation_summary",
    "log_validation_errors",
    "missing_required_columns",
    "validate_records",
    "validate_row",
]
