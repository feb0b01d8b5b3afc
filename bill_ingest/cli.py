from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from loguru import logger

from bill_ingest import __version__ as TOOL_VERSION
from bill_ingest.config import DEFAULT_CONFIG_NAME, IngestConfig, load_config, starter_config_text
from bill_ingest.contracts import build_contract, build_run_summary
from bill_ingest.detect import detect_format
from bill_ingest.errors import CommitFailure, IngestError
from bill_ingest.ingest import IngestSummary, ingest_file
from bill_ingest.loader import load_rows
from bill_ingest.reconcile import KINDS
from bill_ingest.store import JsonFileStore
from bill_ingest.templates import export_csv, export_filename, template_csv, template_filename

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_COMMIT_FAILED = 3

LOG_FORMAT = "<level>{level: <8}</level> {message}"


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class BillIngestArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def maybe_emit_json_stdout(payload: Any, enabled: bool) -> None:
    if enabled:
        print(json_dumps(payload))


def write_text(path: Path, payload: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(payload, encoding="utf-8")


def configure_logging(args: argparse.Namespace) -> None:
    logger.remove()
    if getattr(args, "verbose", False):
        level = "DEBUG"
    elif getattr(args, "quiet", False) or getattr(args, "json", False):
        level = "WARNING"
    else:
        level = "INFO"
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)


def classify_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, CommitFailure):
        return EXIT_COMMIT_FAILED
    if isinstance(exc, IngestError):
        return EXIT_PARSE_FAILED
    if isinstance(exc, (ImportError, UnicodeDecodeError)):
        return EXIT_PARSE_FAILED
    if isinstance(exc, FileNotFoundError):
        return EXIT_COMMAND_ERROR
    if isinstance(exc, ValueError):
        return EXIT_PARSE_FAILED
    return EXIT_COMMAND_ERROR


def resolve_config(args: argparse.Namespace) -> IngestConfig:
    try:
        config = load_config(getattr(args, "config", None))
    except ValueError as exc:
        raise CliError(str(exc), EXIT_COMMAND_ERROR) from exc
    if getattr(args, "keep_empty_sections", False):
        config.keep_empty_sections = True
    if getattr(args, "store", None):
        config.store_path = args.store
    return config


def render_ingest_text(summary: IngestSummary, input_path: Path, store_path: str) -> str:
    fmt = summary.format.as_dict() if summary.format else {}
    lines = [
        "bill-ingest ingest" + (" (dry run)" if summary.dry_run else ""),
        f"File: {input_path.name}",
        f"Kind: {summary.kind}",
        f"Layout: {fmt.get('kind', '[unknown]')}",
        f"Records: {summary.total_records}",
        f"Created: {summary.created}",
        f"Updated: {summary.updated}",
        f"Skipped (duplicates): {summary.skipped}",
        f"New companies: {summary.companies_created}",
    ]
    if summary.dropped_rows:
        lines.append(f"Dropped rows: {summary.dropped_rows}")
    if not summary.dry_run:
        lines.append(f"Store: {store_path}")
    for warning in summary.warnings:
        lines.append(f"Warning: {warning}")
    return "\n".join(lines) + "\n"


def build_parser() -> argparse.ArgumentParser:
    parser = BillIngestArgumentParser(
        prog="bill-ingest",
        description="Bulk spreadsheet ingestion for companies and bills.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Ingest a spreadsheet into the document store.")
    ingest.add_argument("input", help="Input file path")
    ingest.add_argument("--kind", choices=KINDS, default="bills", help="What the sheet contains")
    ingest.add_argument("--store", help="JSON document store path (overrides config)")
    ingest.add_argument("--config", help="JSON config path")
    ingest.add_argument("--sheet", dest="sheet_name", help="Workbook sheet name (default: first sheet)")
    ingest.add_argument("--keep-empty-sections", action="store_true", help="Keep block-format companies that have no bill lines")
    ingest.add_argument("--dry-run", action="store_true", help="Reconcile without committing anything")
    ingest.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    ingest.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    ingest.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    detect = subparsers.add_parser("detect", help="Report the detected sheet layout without ingesting.")
    detect.add_argument("input", help="Input file path")
    detect.add_argument("--kind", choices=KINDS, default="bills", help="Header vocabulary to detect against")
    detect.add_argument("--config", help="JSON config path")
    detect.add_argument("--sheet", dest="sheet_name", help="Workbook sheet name (default: first sheet)")
    detect.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    detect.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    detect.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    template = subparsers.add_parser("template", help="Write an upload template CSV.")
    template.add_argument("--kind", choices=KINDS, default="bills", help="Template to write")
    template.add_argument("--output", help="Output path (default: <kind>_template.csv)")

    export = subparsers.add_parser("export", help="Export a stored collection as CSV.")
    export.add_argument("--kind", choices=KINDS, default="bills", help="Collection to export")
    export.add_argument("--store", help="JSON document store path (overrides config)")
    export.add_argument("--config", help="JSON config path")
    export.add_argument("--output", help="Output path (default: <kind>_export_<date>.csv)")

    config = subparsers.add_parser("config", help="Generate configuration.")
    config_subparsers = config.add_subparsers(dest="config_command", required=True)
    config_init = config_subparsers.add_parser("init", help="Write a starter config file.")
    config_init.add_argument("--path", default=DEFAULT_CONFIG_NAME, help="Config output path")

    subparsers.add_parser("version", help="Print version")
    return parser


def refuse_overwrite(path: Path) -> None:
    if path.exists():
        raise CliError(f"Refusing to overwrite existing output: {path}", EXIT_COMMAND_ERROR)


def run_ingest(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    if not input_path.exists():
        eprint(f"File not found: {input_path}")
        return EXIT_COMMAND_ERROR

    try:
        config = resolve_config(args)
        store = JsonFileStore(config.store_path)
        summary = ingest_file(
            input_path,
            kind=args.kind,
            store=store,
            config=config,
            dry_run=args.dry_run,
            sheet_name=args.sheet_name,
        )
        if args.json:
            payload = {
                "contract": build_contract("bill_ingest.summary"),
                "summary": summary.as_dict(),
                "run_summary": build_run_summary(
                    tool="bill-ingest",
                    command="ingest",
                    input_path=input_path,
                    metrics={
                        "created": summary.created,
                        "updated": summary.updated,
                        "skipped": summary.skipped,
                        "total_records": summary.total_records,
                    },
                    warnings=summary.warnings,
                ),
            }
            maybe_emit_json_stdout(payload, True)
        else:
            emit_human(render_ingest_text(summary, input_path, config.store_path).rstrip(), quiet=args.quiet)
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_detect(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    if not input_path.exists():
        eprint(f"File not found: {input_path}")
        return EXIT_COMMAND_ERROR

    try:
        config = resolve_config(args)
        sheet = load_rows(input_path, sheet_name=args.sheet_name)
        detected = detect_format(
            sheet.rows,
            kind=args.kind,
            scan_rows=config.header_scan_rows,
            min_matches=config.min_header_matches,
        )
        payload = {
            "contract": build_contract("bill_ingest.detect"),
            "file": input_path.name,
            "detected_format": sheet.detected_format,
            "detected_encoding": sheet.detected_encoding,
            "sheet_name": sheet.sheet_name,
            "rows": len(sheet.rows),
            "layout": detected.as_dict(),
            "warnings": list(sheet.warnings),
        }
        if args.json:
            maybe_emit_json_stdout(payload, True)
        else:
            position = (
                f"header row {detected.header_row_index}"
                if detected.header_row_index is not None
                else f"ledger starts at row {detected.ledger_start_index}"
            )
            emit_human(f"{input_path.name}: {detected.kind} ({position})", quiet=args.quiet)
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_template(args: argparse.Namespace) -> int:
    output_path = Path(args.output or template_filename(args.kind))
    refuse_overwrite(output_path)
    write_text(output_path, template_csv(args.kind))
    emit_human(f"Template written: {output_path}")
    return EXIT_SUCCESS


def run_export(args: argparse.Namespace) -> int:
    try:
        config = resolve_config(args)
        store_path = Path(config.store_path)
        if not store_path.exists():
            eprint(f"Store not found: {store_path}")
            return EXIT_COMMAND_ERROR
        output_path = Path(args.output or export_filename(args.kind))
        refuse_overwrite(output_path)
        write_text(output_path, export_csv(JsonFileStore(store_path), args.kind))
        emit_human(f"Export written: {output_path}")
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_config_init(args: argparse.Namespace) -> int:
    config_path = Path(args.path)
    if config_path.exists():
        eprint(f"Refusing to overwrite existing config: {config_path}")
        return EXIT_COMMAND_ERROR
    write_text(config_path, starter_config_text())
    emit_human(f"Config written: {config_path}")
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        configure_logging(args)
        if args.command == "ingest":
            return run_ingest(args)
        if args.command == "detect":
            return run_detect(args)
        if args.command == "template":
            return run_template(args)
        if args.command == "export":
            return run_export(args)
        if args.command == "config":
            if args.config_command == "init":
                return run_config_init(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
