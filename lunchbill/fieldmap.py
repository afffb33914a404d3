"""
Field mapping store: canonical field name -> source column name.

The mapping is read once from a UTF-8 JSON (or YAML) document that lives next
to the running program, e.g.::

    {
      "ClassName": "班級",
      "ParentName": "家長姓名",
      "StudentId": "學號",
      ...
    }

Loading is all-or-nothing. A readable, non-empty object of string pairs is used
as-is; anything else (missing file, bad JSON, wrong shape, empty object) is
replaced in full by ``DEFAULT_FIELD_MAPPING``. Nothing is merged.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping

import yaml

from .schema import CANONICAL_FIELDS, DEFAULT_FIELD_MAPPING

LOGGER = logging.getLogger(__name__)

FIELDMAP_FILENAME = "fieldmap.json"
FIELDMAP_ENV_KEY = "LUNCHBILL_FIELDMAP"


class MappingOrigin(str, Enum):
    LOADED = "loaded"
    DEFAULT = "default"


@dataclass(frozen=True)
class FieldMapping:
    """Immutable canonical -> source column table plus where it came from."""

    columns: Mapping[str, str]
    origin: MappingOrigin = MappingOrigin.DEFAULT
    path: Path | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        # Freeze a private copy so later edits to the caller's dict cannot leak in.
        object.__setattr__(self, "columns", MappingProxyType(dict(self.columns)))

    @classmethod
    def default(cls) -> "FieldMapping":
        return cls(DEFAULT_FIELD_MAPPING, MappingOrigin.DEFAULT)

    @classmethod
    def loaded(cls, columns: Mapping[str, str], path: Path | None = None) -> "FieldMapping":
        return cls(columns, MappingOrigin.LOADED, path)

    @property
    def is_default(self) -> bool:
        return self.origin is MappingOrigin.DEFAULT

    def source_column_for(self, canonical: str) -> str:
        """Mapped source column, or the canonical name itself when unmapped."""

        return self.columns.get(canonical, canonical)


class MappingFormatError(ValueError):
    """Raised internally when a mapping document has the wrong shape."""


def default_config_path() -> Path:
    """Location of ``fieldmap.json`` beside the running program (env override wins)."""

    override = os.getenv(FIELDMAP_ENV_KEY)
    if override:
        return Path(override).expanduser()
    program = Path(sys.argv[0]) if sys.argv and sys.argv[0] else Path.cwd() / "_"
    return program.resolve().parent / FIELDMAP_FILENAME


def _normalize_mapping_object(data: Any) -> Dict[str, str]:
    """Validate a parsed mapping document and return it as a plain dict."""

    if not isinstance(data, dict):
        raise MappingFormatError("Field mapping must be an object of canonical->source column pairs.")
    if not data:
        raise MappingFormatError("Field mapping is empty.")

    normalized: Dict[str, str] = {}
    for key, value in data.items():
        if not isinstance(value, str):
            raise MappingFormatError(f"Source column for '{key}' must be a string, got {type(value).__name__}.")
        normalized[str(key)] = value
    return normalized


def parse_mapping_text(content: str, *, suffix: str = ".json") -> Dict[str, str]:
    """Parse mapping content; YAML for .yaml/.yml, JSON otherwise."""

    if suffix.lower() in {".yaml", ".yml"}:
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as exc:
            raise MappingFormatError(f"Invalid YAML in field mapping: {exc}") from exc
    else:
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            raise MappingFormatError(f"Invalid JSON in field mapping: {exc}") from exc
    return _normalize_mapping_object(data)


def load_field_mapping(config_path: str | Path | None = None) -> FieldMapping:
    """
    Load the field mapping, falling back to the built-in default on any failure.

    This never raises: an unusable document degrades to ``FieldMapping.default()``
    and the reason is logged.
    """

    path = Path(config_path) if config_path is not None else default_config_path()

    if not path.is_file():
        LOGGER.warning("No field mapping at %s; using built-in default.", path)
        return FieldMapping.default()

    try:
        content = path.read_text(encoding="utf-8-sig")
        columns = parse_mapping_text(content, suffix=path.suffix)
    except (OSError, UnicodeDecodeError, MappingFormatError) as exc:
        LOGGER.warning("Ignoring field mapping %s (%s); using built-in default.", path, exc)
        return FieldMapping.default()

    unknown = [key for key in columns if key not in CANONICAL_FIELDS]
    if unknown:
        LOGGER.warning("Field mapping %s has unknown canonical fields: %s", path, ", ".join(unknown))

    LOGGER.info("Loaded field mapping from %s (%d fields).", path, len(columns))
    return FieldMapping.loaded(columns, path)


__all__ = [
    "FIELDMAP_ENV_KEY",
    "FIELDMAP_FILENAME",
    "FieldMapping",
    "MappingFormatError",
    "MappingOrigin",
    "default_config_path",
    "load_field_mapping",
    "parse_mapping_text",
]
