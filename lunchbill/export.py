from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import polars as pl

from .schema import BARCODE_FIELDS, BARCODE_IMAGE_FIELDS, DATASET_NAME

LOGGER = logging.getLogger(__name__)

EXPORT_PREFIX = "LunchBill"


def export_stem(now: Optional[datetime] = None) -> str:
    """Timestamped file stem, e.g. ``LunchBill_20250905_143000``."""

    return f"{EXPORT_PREFIX}_{(now or datetime.now()):%Y%m%d_%H%M%S}"


def tabular_view(df: pl.DataFrame) -> pl.DataFrame:
    """Drop binary image columns and render object columns as text for CSV/Excel."""

    frame = df.drop([c for c in df.columns if df.schema[c] == pl.Binary])
    as_text = [
        pl.Series(name, [None if value is None else str(value) for value in frame.get_column(name).to_list()], dtype=pl.Utf8)
        for name in frame.columns
        if frame.schema[name] == pl.Object
    ]
    return frame.with_columns(as_text) if as_text else frame


def write_records(df: pl.DataFrame, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frame = tabular_view(df)
    suffix = path.suffix.lower()
    if suffix == ".csv":
        frame.write_csv(path, include_header=True)
    elif suffix == ".xlsx":
        frame.write_excel(path, worksheet=DATASET_NAME)
    else:
        raise ValueError(f"Unsupported export format: {path.suffix}")
    LOGGER.info("Wrote records: %s", path)
    return path


def write_barcode_images(df: pl.DataFrame, out_dir: Path) -> List[Path]:
    """Write each barcode image as ``row{N}_{BarcodeN}.png`` (1-based rows)."""

    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    written: List[Path] = []
    for source, image_col in zip(BARCODE_FIELDS, BARCODE_IMAGE_FIELDS):
        if image_col not in df.columns:
            continue
        for idx, payload in enumerate(df.get_column(image_col).to_list(), start=1):
            if not payload:
                continue
            target = out_dir / f"row{idx}_{source}.png"
            target.write_bytes(payload)
            written.append(target)
    LOGGER.info("Wrote %d barcode images to %s", len(written), out_dir)
    return written


def export_dataset(df: pl.DataFrame, out_dir: Path, stem: Optional[str] = None) -> List[Path]:
    """Write ``<stem>.csv`` plus a ``<stem>_barcodes`` image folder; return every path."""

    out_dir = Path(out_dir)
    stem = stem or export_stem()
    paths = [write_records(df, out_dir / f"{stem}.csv")]
    paths.extend(write_barcode_images(df, out_dir / f"{stem}_barcodes"))
    return paths


__all__ = ["export_dataset", "export_stem", "tabular_view", "write_barcode_images", "write_records"]
