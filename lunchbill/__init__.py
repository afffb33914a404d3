"""
Payment-slip record pipeline: field mapping, schema resolution, validation,
transforms and Code 39 barcode rendering.
"""

from .barcode import BarcodeEncodingError, code39_modules, encode_code39, render_code39  # noqa: F401
from .fieldmap import FieldMapping, MappingOrigin, default_config_path, load_field_mapping  # noqa: F401
from .pipeline import PipelineResult, ValidationFailed, run_pipeline  # noqa: F401
from .resolve import (  # noqa: F401
    Projection,
    ResolvedField,
    build_projection,
    build_select_sql,
    match_canonical_column,
    match_mapped_column,
    project_frame,
    resolve_projection,
)
from .schema import (  # noqa: F401
    BARCODE_FIELDS,
    BARCODE_IMAGE_FIELDS,
    CANONICAL_FIELDS,
    CODE39_ALPHABET,
    DATASET_NAME,
    DEFAULT_FIELD_MAPPING,
    REPORT_NOTE_FIELD,
    REQUIRED_COLUMNS,
    SORT_KEY_FIELDS,
)
from .sources import FrameSource, RecordSource, SourceError, SqliteSource, open_source  # noqa: F401
from .transform import normalize_payment_note, to_roc_date, transform_records  # noqa: F401
from .validate import ValidationError, format_validation_summary, validate_records  # noqa: F401

__all__ = [
    "BARCODE_FIELDS",
    "BARCODE_IMAGE_FIELDS",
    "CANONICAL_FIELDS",
    "CODE39_ALPHABET",
    "DATASET_NAME",
    "DEFAULT_FIELD_MAPPING",
    "REPORT_NOTE_FIELD",
    "REQUIRED_COLUMNS",
    "SORT_KEY_FIELDS",
    "BarcodeEncodingError",
    "FieldMapping",
    "FrameSource",
    "MappingOrigin",
    "PipelineResult",
    "Projection",
    "RecordSource",
    "ResolvedField",
    "SourceError",
    "SqliteSource",
    "ValidationError",
    "ValidationFailed",
    "build_projection",
    "build_select_sql",
    "code39_modules",
    "default_config_path",
    "encode_code39",
    "format_validation_summary",
    "load_field_mapping",
    "match_canonical_column",
    "match_mapped_column",
    "normalize_payment_note",
    "open_source",
    "project_frame",
    "render_code39",
    "resolve_projection",
    "run_pipeline",
    "to_roc_date",
    "transform_records",
    "validate_records",
]
