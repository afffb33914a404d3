from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

import polars as pl

from .barcode import encode_code39
from .fieldmap import FieldMapping
from .resolve import Projection, resolve_projection
from .sources import RecordSource
from .transform import Encoder, transform_records
from .validate import ValidationError, log_validation_errors, validate_records

LOGGER = logging.getLogger(__name__)


class ValidationFailed(RuntimeError):
    """Raised in strict mode when validation reports any problem."""

    def __init__(self, errors: List[ValidationError]):
        self.errors = list(errors)
        super().__init__(f"Validation found {len(self.errors)} problem(s).")


@dataclass
class PipelineResult:
    records: pl.DataFrame
    errors: List[ValidationError]
    projection: Projection
    select_sql: str
    mapping: FieldMapping = field(repr=False)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


def run_pipeline(
    source: RecordSource,
    source_name: str,
    mapping: FieldMapping,
    report_note: str = "",
    *,
    strict: bool = False,
    today: Optional[date] = None,
    encoder: Encoder = encode_code39,
) -> PipelineResult:
    """
    Resolve, fetch, validate and transform one source.

    Validation problems are advisory unless ``strict`` is set, in which case
    ``ValidationFailed`` is raised before any transform runs. Barcode encoding
    errors always propagate.
    """

    LOGGER.info("Using %s field mapping%s.", mapping.origin.value, f" from {mapping.path}" if mapping.path else "")

    columns = source.column_names(source_name)
    projection, select_sql = resolve_projection(mapping, columns, source_name)
    records = source.fetch(source_name, projection, select_sql)

    errors = validate_records(records)
    if errors:
        log_validation_errors(errors)
        if strict:
            raise ValidationFailed(errors)

    records = transform_records(records, report_note, today=today, encoder=encoder)
    LOGGER.info("Loaded %d records from [%s].", records.height, source_name)
    return PipelineResult(records, errors, projection, select_sql, mapping)


__all__ = ["PipelineResult", "ValidationFailed", "run_pipeline"]
