from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .fieldmap import FIELDMAP_ENV_KEY

load_dotenv()

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


class ConfigError(ValueError):
    """Raised when environment settings are unusable."""


def _env_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise ConfigError(f"{key} must be a boolean (yes/no, true/false, 1/0), got {raw!r}")


def _env_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from None


@dataclass
class Settings:
    fieldmap_path: Path | None
    report_note: str
    strict: bool
    output_dir: Path
    summary_limit: int = 10


def load_settings() -> Settings:
    """Read ``LUNCHBILL_*`` settings from the environment (and a local ``.env``)."""

    fieldmap = os.getenv(FIELDMAP_ENV_KEY)
    settings = Settings(
        fieldmap_path=Path(fieldmap).expanduser() if fieldmap else None,
        report_note=os.getenv("LUNCHBILL_REPORT_NOTE", ""),
        strict=_env_bool("LUNCHBILL_STRICT", False),
        output_dir=Path(os.getenv("LUNCHBILL_OUTPUT_DIR", "./exports")),
        summary_limit=_env_int("LUNCHBILL_SUMMARY_LIMIT", 10),
    )
    if settings.summary_limit <= 0:
        raise ConfigError(f"LUNCHBILL_SUMMARY_LIMIT must be positive, got {settings.summary_limit}")
    return settings


def configure_logging(verbosity: int) -> None:
    """INFO by default, DEBUG with -v; openpyxl and PIL stay at WARNING."""

    level = logging.DEBUG if verbosity > 0 else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(message)s")
    for noisy in ("openpyxl", "PIL"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
