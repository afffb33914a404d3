from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, List, Optional

import polars as pl

from .barcode import encode_code39
from .schema import BARCODE_FIELDS, BARCODE_IMAGE_FIELDS, PAYMENT_NOTE_FIELD, REPORT_NOTE_FIELD

LOGGER = logging.getLogger(__name__)

ROC_EPOCH_OFFSET = 1911

Encoder = Callable[[str], bytes]


def roc_year(year: int) -> int:
    """Republic of China calendar year for a Gregorian year."""

    return year - ROC_EPOCH_OFFSET


def to_roc_date(value: date) -> str:
    """2025-09-05 -> "1140905" (3-digit ROC year + MMDD)."""

    return f"{roc_year(value.year):03d}{value.month:02d}{value.day:02d}"


def _is_mmdd(value: str) -> bool:
    return len(value) == 4 and value.isascii() and value.isdigit()


def normalize_payment_note(value: Any, today: date) -> Any:
    """
    Best-effort payment-note normalization.

    Date values become ROC "YYYMMDD"; four-digit "MMDD" text gets the current
    ROC year prepended. Anything else, including already-normalized 7-digit
    strings, is returned unchanged.
    """

    if isinstance(value, date):
        return to_roc_date(value)
    if isinstance(value, str) and _is_mmdd(value):
        return f"{roc_year(today.year):03d}{value}"
    return value


def broadcast_report_note(df: pl.DataFrame, report_note: str) -> pl.DataFrame:
    """Set (or overwrite) the report annotation on every record."""

    return df.with_columns(pl.lit(report_note or "", dtype=pl.Utf8).alias(REPORT_NOTE_FIELD))


def normalize_payment_notes(df: pl.DataFrame, today: Optional[date] = None) -> pl.DataFrame:
    if PAYMENT_NOTE_FIELD not in df.columns:
        return df

    today = today or date.today()
    series = df.get_column(PAYMENT_NOTE_FIELD)
    dtype = series.dtype
    if dtype.is_integer():
        # Numeric MMDD cells are judged by their text form.
        series = series.cast(pl.Utf8)
    elif dtype not in (pl.Utf8, pl.Date, pl.Datetime, pl.Object):
        return df

    values = [normalize_payment_note(value, today) for value in series.to_list()]
    # Mixed object columns usually end up all text; only leftovers keep pl.Object.
    if all(value is None or isinstance(value, str) for value in values):
        out_dtype = pl.Utf8
    else:
        out_dtype = pl.Object
    return df.with_columns(pl.Series(PAYMENT_NOTE_FIELD, values, dtype=out_dtype))


def generate_barcode_images(df: pl.DataFrame, encoder: Encoder = encode_code39) -> pl.DataFrame:
    """
    Add ``BarcodeN_Img`` PNG columns for each barcode content field.

    Empty or missing content leaves a null image. Encoding errors propagate.
    """

    columns: List[pl.Series] = []
    for source, target in zip(BARCODE_FIELDS, BARCODE_IMAGE_FIELDS):
        if source not in df.columns:
            columns.append(pl.Series(target, [None] * df.height, dtype=pl.Binary))
            continue
        images: List[Optional[bytes]] = []
        for value in df.get_column(source).to_list():
            text = "" if value is None else str(value)
            images.append(encoder(text) if text else None)
        columns.append(pl.Series(target, images, dtype=pl.Binary))
    return df.with_columns(columns)


def transform_records(
    df: pl.DataFrame,
    report_note: str,
    *,
    today: Optional[date] = None,
    encoder: Encoder = encode_code39,
) -> pl.DataFrame:
    """Annotation broadcast, payment-note normalization, then barcode images."""

    df = broadcast_report_note(df, report_note)
    df = normalize_payment_notes(df, today)
    df = generate_barcode_images(df, encoder)
    LOGGER.debug("Transformed %d records.", df.height)
    return df


__all__ = [
    "ROC_EPOCH_OFFSET",
    "broadcast_report_note",
    "generate_barcode_images",
    "normalize_payment_note",
    "normalize_payment_notes",
    "roc_year",
    "to_roc_date",
    "transform_records",
]
