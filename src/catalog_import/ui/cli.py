# ruff: noqa: T201

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from catalog_import.app import build_import_service
from catalog_import.config import configure_logging, parse_log_level
from catalog_import.domain.errors import CatalogImportError
from catalog_import.domain.import_pipeline import (
    auto_detect_mappings,
    decode_upload,
    override_mapping,
    parse_csv,
    validate_mappings,
)
from catalog_import.domain.model import DuplicateStrategy

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from catalog_import.app import ImportRun
    from catalog_import.domain.model import ColumnMapping, ImportBatch

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import catalog elements from CSV files")
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        help="Logging level name (default: %(default)s)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    parse = subparsers.add_parser("parse", help="Parse a CSV file and show a preview")
    parse.add_argument("file", type=Path, help="CSV, semicolon or tab separated file")

    mappings = subparsers.add_parser("mappings", help="Show suggested column mappings")
    mappings.add_argument("file", type=Path)
    mappings.add_argument(
        "--map",
        action="append",
        default=[],
        metavar="HEADER=FIELD",
        help="Map a CSV header to a target field (empty FIELD ignores the column)",
    )

    run = subparsers.add_parser("run", help="Validate and import a CSV file")
    run.add_argument("file", type=Path)
    run.add_argument("--user", type=str, required=True, help="User id recorded on the batch")
    run.add_argument("--map", action="append", default=[], metavar="HEADER=FIELD")
    run.add_argument(
        "--strategy",
        action="append",
        default=[],
        metavar="ROW=STRATEGY",
        help="Duplicate strategy for a matched row: UPDATE_EXISTING, CREATE_NEW or SKIP",
    )
    run.add_argument(
        "--backend",
        choices=("sqlite", "http"),
        default="sqlite",
        help="Catalog to reconcile against (default: %(default)s)",
    )
    run.add_argument("--errors-csv", type=Path, help="Write the batch error report here")

    history = subparsers.add_parser("history", help="List import batches, newest first")
    history.add_argument("--page", type=int, default=1)
    history.add_argument("--page-size", type=int, default=None)

    batch = subparsers.add_parser("batch", help="Show one import batch")
    batch.add_argument("batch_id", type=str)
    batch.add_argument("--errors-csv", type=Path, help="Write the batch error report here")

    return parser.parse_args(list(argv))


def _parse_mapping_overrides(values: Sequence[str]) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for value in values:
        header, separator, field = value.rpartition("=")
        if not separator or not header:
            raise ValueError(f"Invalid mapping {value!r}; expected HEADER=FIELD")
        overrides[header] = field.strip()
    return overrides


def _parse_strategies(values: Sequence[str]) -> dict[int, DuplicateStrategy]:
    strategies: dict[int, DuplicateStrategy] = {}
    for value in values:
        row, separator, name = value.partition("=")
        try:
            row_index = int(row)
            strategy = DuplicateStrategy(name.strip().upper())
        except ValueError as exc:
            raise ValueError(f"Invalid strategy {value!r}; expected ROW=STRATEGY") from exc
        if not separator:
            raise ValueError(f"Invalid strategy {value!r}; expected ROW=STRATEGY")
        strategies[row_index] = strategy
    return strategies


def _read_document(path: Path) -> str:
    return decode_upload(path.read_bytes())


def _print_mappings(mappings: Sequence[ColumnMapping]) -> None:
    for mapping in mappings:
        target = mapping.target_field or "(ignored)"
        marker = " *" if mapping.required else ""
        print(f"  {mapping.csv_header} -> {target}{marker}")


def _print_batch(batch: ImportBatch) -> None:
    completed = batch.completed_at.isoformat() if batch.completed_at else "-"
    print(
        f"{batch.id}  {batch.status:<11}  {batch.file_name}  "
        f"ok={batch.success_count} failed={batch.failure_count} skipped={batch.skipped_count} "
        f"total={batch.total_records}  created={batch.created_at.isoformat()}  "
        f"completed={completed}"
    )
    if batch.failure_reason:
        print(f"  reason: {batch.failure_reason}")


def _command_parse(args: argparse.Namespace) -> None:
    result = parse_csv(_read_document(args.file))
    print(f"Delimiter: {result.delimiter!r}")
    print(f"Headers: {', '.join(result.headers)}")
    print(f"Rows: {result.total_rows}")
    for row in result.preview():
        print("  " + " | ".join(row.get(header, "") for header in result.headers))
    for warning in result.warnings:
        print(f"Warning: {warning}")
    for error in result.errors:
        print(f"Error: {error}")
    if not result.ok:
        raise CatalogImportError(f"{args.file} could not be parsed")


def _command_mappings(args: argparse.Namespace) -> None:
    result = parse_csv(_read_document(args.file))
    if not result.ok:
        raise CatalogImportError("; ".join(result.errors))
    mappings = auto_detect_mappings(result.headers)
    for header, field in _parse_mapping_overrides(args.map).items():
        mappings = override_mapping(mappings, header, field)
    _print_mappings(mappings)
    check = validate_mappings(mappings)
    if check.missing_required:
        print(f"Missing required fields: {', '.join(check.missing_required)}")
    if check.duplicate_targets:
        print(f"Fields mapped more than once: {', '.join(check.duplicate_targets)}")


def _command_run(args: argparse.Namespace) -> None:
    overrides = _parse_mapping_overrides(args.map)
    strategies = _parse_strategies(args.strategy)
    content = _read_document(args.file)
    with build_import_service(backend=args.backend) as service:
        run = service.run_import(
            content,
            file_name=args.file.name,
            user_id=args.user,
            mapping_overrides=overrides,
            strategies=strategies,
        )
        if args.errors_csv is not None:
            args.errors_csv.write_text(service.export_errors(run.batch.id), encoding="utf-8")
    _print_run(run)


def _print_run(run: ImportRun) -> None:
    validation = run.validation
    print(
        f"Validated {validation.total_records} rows: "
        f"{validation.valid_count} valid, {validation.invalid_count} invalid"
    )
    for error in validation.errors:
        print(f"  row {error.row} {error.field}: {error.message}")
    for match in run.resolution:
        print(
            f"  row {match.row_index} matches {match.existing_element_name!r} "
            f"by {match.matched_by} -> {match.strategy}"
        )
    for warning in validation.warnings:
        print(f"Warning: {warning.message}")
    _print_batch(run.batch)


def _command_history(args: argparse.Namespace) -> None:
    with build_import_service() as service:
        page = service.get_history(args.page, args.page_size)
    print(f"Page {page.page} of {page.page_count} ({page.total} batches)")
    for batch in page.items:
        _print_batch(batch)


def _command_batch(args: argparse.Namespace) -> None:
    with build_import_service() as service:
        batch = service.history.require_batch(args.batch_id)
        if args.errors_csv is not None:
            args.errors_csv.write_text(service.export_errors(batch.id), encoding="utf-8")
    _print_batch(batch)
    for entry in batch.error_report:
        print(f"  row {entry.row} {entry.field or '-'}: {entry.message}")


_COMMANDS = {
    "parse": _command_parse,
    "mappings": _command_mappings,
    "run": _command_run,
    "history": _command_history,
    "batch": _command_batch,
}


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        configure_logging(level=parse_log_level(parsed_args.log_level))
        if parsed_args.command in {"mappings", "run"}:
            _parse_mapping_overrides(parsed_args.map)
        if parsed_args.command == "run":
            _parse_strategies(parsed_args.strategy)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        _COMMANDS[parsed_args.command](parsed_args)
    except (CatalogImportError, OSError, ValueError) as exc:
        log.error("Import failed: %s", exc)  # noqa: TRY400
        sys.exit(1)
    except Exception:
        log.exception("Fatal error during import")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
