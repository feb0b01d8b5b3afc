"""
ingest.py: one ingestion run, end to end.

    load -> detect -> parse -> snapshot -> reconcile -> commit -> audit

Parsing is pure (parse_sheet never touches the store); every failure before
the commit aborts the run with nothing written.

Public API:
    summary = ingest_file("bills.xlsx", kind="bills", store=JsonFileStore("db.json"))
    parsed  = parse_sheet(rows, "bills", IngestConfig())
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Sequence

from loguru import logger

from bill_ingest.blocks import flatten_sections, parse_blocks, sections_to_companies
from bill_ingest.config import IngestConfig
from bill_ingest.detect import BLOCK, DetectedFormat, detect_format
from bill_ingest.loader import check_extension, load_rows
from bill_ingest.reconcile import BILLS, COMPANIES, KINDS, commit, load_snapshot, reconcile
from bill_ingest.records import BillRecord, CompanyRecord
from bill_ingest.store import DocumentStore
from bill_ingest.tabular import parse_tabular


@dataclass
class ParsedSheet:
    format: DetectedFormat
    bills: list[BillRecord] = field(default_factory=list)
    companies: list[CompanyRecord] = field(default_factory=list)
    dropped_rows: int = 0
    warnings: list[str] = field(default_factory=list)

    def records(self, kind: str) -> list:
        return self.bills if kind == BILLS else self.companies


@dataclass
class IngestSummary:
    kind: str
    created: int = 0
    updated: int = 0
    skipped: int = 0
    total_records: int = 0
    companies_created: int = 0
    format: Optional[DetectedFormat] = None
    dropped_rows: int = 0
    warnings: list[str] = field(default_factory=list)
    dry_run: bool = False
    audit: Optional[dict[str, Any]] = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "totalRecords": self.total_records,
            "companiesCreated": self.companies_created,
            "format": self.format.as_dict() if self.format else None,
            "droppedRows": self.dropped_rows,
            "warnings": list(self.warnings),
            "dryRun": self.dry_run,
        }


def _check_kind(kind: str) -> None:
    if kind not in KINDS:
        raise ValueError(f"Unknown ingestion kind {kind!r}; expected one of {', '.join(KINDS)}")


def parse_sheet(rows: Sequence[Sequence[object]], kind: str, config: IngestConfig | None = None) -> ParsedSheet:
    """Detect the layout and turn raw rows into bill or company records."""
    _check_kind(kind)
    config = config or IngestConfig()
    detected = detect_format(
        rows,
        kind=kind,
        scan_rows=config.header_scan_rows,
        min_matches=config.min_header_matches,
    )

    if detected.kind == BLOCK:
        blocks = parse_blocks(
            rows,
            detected.ledger_start_index,
            keep_empty_sections=config.keep_empty_sections,
            require_bills=kind == BILLS,
        )
        parsed = ParsedSheet(format=detected, warnings=list(blocks.warnings))
        if kind == COMPANIES:
            parsed.companies = sections_to_companies(blocks.sections)
        else:
            parsed.bills = flatten_sections(blocks.sections)
            # Kept zero-bill sections still reach reconciliation as companies.
            parsed.companies = sections_to_companies([s for s in blocks.sections if not s.bills])
        parsed.dropped_rows = blocks.orphan_bill_lines
        return parsed

    tabular = parse_tabular(rows, detected.header_row_index, kind=kind)
    parsed = ParsedSheet(format=detected, dropped_rows=tabular.dropped_rows)
    if kind == COMPANIES:
        parsed.companies = list(tabular.records)
    else:
        parsed.bills = list(tabular.records)
    if tabular.dropped_rows:
        parsed.warnings.append(f"{tabular.dropped_rows} row(s) had no company name and were skipped")
    return parsed


def ingest_rows(
    rows: Sequence[Sequence[object]],
    *,
    kind: str,
    store: DocumentStore,
    config: IngestConfig | None = None,
    now: datetime | None = None,
    dry_run: bool = False,
    warnings: Sequence[str] = (),
) -> IngestSummary:
    config = config or IngestConfig()
    now = now or datetime.now(timezone.utc)

    parsed = parse_sheet(rows, kind, config)
    records = parsed.records(kind)
    extra_companies = parsed.companies if kind == BILLS else ()

    snapshot = load_snapshot(store, kind)
    result = reconcile(
        records,
        kind,
        snapshot,
        now=now,
        id_width=config.id_width,
        extra_companies=extra_companies,
    )

    summary = IngestSummary(
        kind=kind,
        created=result.created,
        updated=result.updated,
        skipped=result.skipped,
        total_records=len(records),
        companies_created=result.companies_created,
        format=parsed.format,
        dropped_rows=parsed.dropped_rows,
        warnings=[*warnings, *parsed.warnings, *result.warnings],
        dry_run=dry_run,
    )

    if dry_run:
        logger.info(f"[ingest] dry run: {len(result.batch)} write(s) not committed")
        return summary

    summary.audit = commit(
        store,
        result,
        total_records=summary.total_records,
        now=now,
        audit_collection=config.audit_collection,
    )
    return summary


def ingest_file(
    path: "str | Path | None" = None,
    *,
    content: Optional[bytes] = None,
    filename: Optional[str] = None,
    kind: str,
    store: DocumentStore,
    config: IngestConfig | None = None,
    now: datetime | None = None,
    dry_run: bool = False,
    sheet_name: Optional[str] = None,
) -> IngestSummary:
    """
    Run one upload: raw file in, committed batch and audit record out.

    Raises:
        UnsupportedFileError  rejected extension (checked before reading).
        FormatError           no recognizable header.
        ParseError            header found but no usable rows / sections.
        CommitFailure         the batch could not be applied; nothing written.
    """
    _check_kind(kind)
    check_extension(filename or (Path(path).name if path is not None else ""))

    sheet = load_rows(path, content=content, filename=filename, sheet_name=sheet_name)
    summary = ingest_rows(
        sheet.rows,
        kind=kind,
        store=store,
        config=config,
        now=now,
        dry_run=dry_run,
        warnings=sheet.warnings,
    )
    logger.info(
        f"[ingest] {kind}: created={summary.created} updated={summary.updated} "
        f"skipped={summary.skipped} total={summary.total_records}"
    )
    return summary
