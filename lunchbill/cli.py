from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from .barcode import BarcodeEncodingError
from .config import ConfigError, configure_logging, load_settings
from .export import export_dataset
from .fieldmap import load_field_mapping
from .pipeline import ValidationFailed, run_pipeline
from .sources import RecordSource, SourceError, open_source
from .validate import format_validation_summary

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_VALIDATION = 1
EXIT_ERROR = 2


def _pick_source_name(source: RecordSource, requested: Optional[str]) -> str:
    if requested:
        return requested
    names = source.list_sources()
    if len(names) == 1:
        return names[0]
    available = ", ".join(names) or "(none)"
    raise SourceError(f"--source is required when the input has several tables; available: {available}")


def cmd_sources(args: argparse.Namespace) -> int:
    for name in open_source(args.path).list_sources():
        print(name)
    return EXIT_OK


def cmd_columns(args: argparse.Namespace) -> int:
    source = open_source(args.path)
    for column in source.column_names(_pick_source_name(source, args.source)):
        print(column)
    return EXIT_OK


def cmd_run(args: argparse.Namespace) -> int:
    settings = load_settings()
    mapping = load_field_mapping(args.fieldmap or settings.fieldmap_path)
    source = open_source(args.path)
    source_name = _pick_source_name(source, args.source)
    note = args.note if args.note is not None else settings.report_note

    try:
        result = run_pipeline(source, source_name, mapping, note, strict=args.strict or settings.strict)
    except ValidationFailed as exc:
        print(format_validation_summary(exc.errors, settings.summary_limit))
        return EXIT_VALIDATION

    if result.errors:
        print(format_validation_summary(result.errors, settings.summary_limit))

    out_dir: Path = args.output_dir or settings.output_dir
    paths = export_dataset(result.records, out_dir)
    print(f"Exported {result.records.height} records to {paths[0]}")
    return EXIT_OK


def build_arg_parser() -> argparse.ArgumentParser:
    # Accept -v both before and after the sub-command name.
    verbosity = argparse.ArgumentParser(add_help=False)
    verbosity.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=argparse.SUPPRESS,
        help="Increase logging verbosity (repeatable).",
    )

    parser = argparse.ArgumentParser(
        description="Reconcile payment-slip records, validate them and render Code 39 barcodes.",
        parents=[verbosity],
    )
    subparsers = parser.add_subparsers(dest="command")

    sources = subparsers.add_parser("sources", parents=[verbosity], help="List tables and views in a database.")
    sources.add_argument("path", type=Path, help="SQLite database, CSV or Excel file.")
    sources.set_defaults(func=cmd_sources)

    columns = subparsers.add_parser("columns", parents=[verbosity], help="List the columns of one table or view.")
    columns.add_argument("path", type=Path, help="SQLite database, CSV or Excel file.")
    columns.add_argument("--source", help="Table or view name (optional when there is only one).")
    columns.set_defaults(func=cmd_columns)

    run = subparsers.add_parser("run", parents=[verbosity], help="Resolve, validate, transform and export one source.")
    run.add_argument("path", type=Path, help="SQLite database, CSV or Excel file.")
    run.add_argument("--source", help="Table or view name (optional when there is only one).")
    run.add_argument("--note", help="Report annotation copied onto every record.")
    run.add_argument("--fieldmap", type=Path, help="Field mapping JSON/YAML (default: fieldmap.json beside the program).")
    run.add_argument("--output-dir", type=Path, help="Export folder (default: ./exports).")
    run.add_argument("--strict", action="store_true", help="Abort when validation finds any problem.")
    run.set_defaults(func=cmd_run)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if not getattr(args, "func", None):
        parser.print_help()
        return EXIT_OK

    configure_logging(getattr(args, "verbose", 0))
    try:
        return args.func(args)
    except (SourceError, BarcodeEncodingError, ConfigError) as exc:
        LOGGER.error("%s", exc)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
