"""
blocks.py: "company block" ledger exports.

Layout, from the ledger start row onward:

    ACME TRADERS                      <- company name (first text line)
    12 Market Road, Pune              <- address fragment(s)
    01/04/2024  INV-1  PO-9  Sale  30  1000  0  1000    <- bill lines
    02/04/2024  INV-2  ...
    BETA STORES                       <- text after bills: next company
    ...

Bill lines are read positionally; LEDGER_COLUMNS is the single place the
column offsets are defined.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import NamedTuple, Sequence

from loguru import logger

from bill_ingest.cells import (
    looks_like_amount,
    looks_like_date,
    normalize_cell,
    parse_amount,
    parse_int,
)
from bill_ingest.errors import ParseError
from bill_ingest.records import BillRecord, CompanyRecord


class LedgerColumns(NamedTuple):
    date: int
    bill_no: int
    po_no: int
    type: int
    due_days: int
    bill_amount: int
    adjustment: int
    pending_amount: int


LEDGER_COLUMNS = LedgerColumns(
    date=0,
    bill_no=1,
    po_no=2,
    type=3,
    due_days=4,
    bill_amount=5,
    adjustment=6,
    pending_amount=7,
)

NOISE_RE = re.compile(r"total|balance|report|date|due", re.IGNORECASE)
DR_CR_MARKER_RE = re.compile(r"^(db|dr|cr)\.?$", re.IGNORECASE)
MIN_TEXT_LINE_LENGTH = 3


@dataclass
class LedgerLine:
    row: int
    date: str
    bill_no: str
    po_no: str
    type: str
    due_days: int
    bill_amount: float
    adjustment: float
    pending_amount: float


@dataclass
class CompanySection:
    name: str
    address_lines: list[str] = field(default_factory=list)
    bills: list[LedgerLine] = field(default_factory=list)

    @property
    def address(self) -> str:
        return " ".join(self.address_lines).strip()


@dataclass
class BlockResult:
    sections: list[CompanySection] = field(default_factory=list)
    dropped_sections: list[str] = field(default_factory=list)
    orphan_bill_lines: int = 0
    warnings: list[str] = field(default_factory=list)


@dataclass
class _BlockState:
    current_company: str = ""
    pending_address_lines: list[str] = field(default_factory=list)
    current_bills: list[LedgerLine] = field(default_factory=list)
    in_bill_section: bool = False


def _cell(row: Sequence[object], idx: int) -> object:
    return row[idx] if idx < len(row) else ""


def decode_ledger_row(row: Sequence[object], row_index: int = 0) -> LedgerLine:
    cols = LEDGER_COLUMNS
    bill_amount = abs(parse_amount(_cell(row, cols.bill_amount)))
    return LedgerLine(
        row=row_index,
        date=normalize_cell(_cell(row, cols.date)),
        bill_no=normalize_cell(_cell(row, cols.bill_no)),
        po_no=normalize_cell(_cell(row, cols.po_no)),
        type=normalize_cell(_cell(row, cols.type)),
        due_days=parse_int(_cell(row, cols.due_days)),
        bill_amount=bill_amount,
        adjustment=parse_amount(_cell(row, cols.adjustment)),
        pending_amount=parse_amount(_cell(row, cols.pending_amount)) or bill_amount,
    )


def is_bill_line(row: Sequence[object]) -> bool:
    if not row or not looks_like_date(row[0]):
        return False
    return any(
        looks_like_amount(cell) or DR_CR_MARKER_RE.match(normalize_cell(cell))
        for cell in row[1:]
    )


def is_text_line(first_cell: str) -> bool:
    return len(first_cell) >= MIN_TEXT_LINE_LENGTH and not NOISE_RE.search(first_cell)


def _flush(state: _BlockState, result: BlockResult, keep_empty_sections: bool) -> None:
    if state.current_company:
        if state.current_bills or keep_empty_sections:
            result.sections.append(
                CompanySection(
                    name=state.current_company.strip(),
                    address_lines=list(state.pending_address_lines),
                    bills=list(state.current_bills),
                )
            )
        else:
            result.dropped_sections.append(state.current_company)
            message = f"Company section '{state.current_company}' has no bill lines and was dropped"
            result.warnings.append(message)
            logger.warning(f"[segment_blocks] {message}")
    state.current_company = ""
    state.pending_address_lines = []
    state.current_bills = []
    state.in_bill_section = False


def segment_blocks(
    rows: Sequence[Sequence[object]],
    ledger_start_index: int,
    *,
    keep_empty_sections: bool = False,
) -> BlockResult:
    result = BlockResult()
    state = _BlockState()

    for idx in range(ledger_start_index, len(rows)):
        row = rows[idx]
        if not row:
            continue
        first = normalize_cell(row[0])
        if not first:
            continue

        if is_bill_line(row):
            if state.current_company:
                state.current_bills.append(decode_ledger_row(row, idx))
                state.in_bill_section = True
            else:
                result.orphan_bill_lines += 1
                logger.debug(f"[segment_blocks] row {idx}: bill line before any company, discarded")
            continue

        if not is_text_line(first):
            continue

        if state.in_bill_section:
            _flush(state, result, keep_empty_sections)
            state.current_company = first
        elif not state.current_company:
            state.current_company = first
        else:
            state.pending_address_lines.append(first)

    _flush(state, result, keep_empty_sections)

    if result.orphan_bill_lines:
        result.warnings.append(
            f"{result.orphan_bill_lines} bill line(s) appeared before any company name and were discarded"
        )
    logger.info(
        f"[segment_blocks] {len(result.sections)} company sections, "
        f"{sum(len(s.bills) for s in result.sections)} bill lines"
    )
    return result


def flatten_sections(sections: Sequence[CompanySection]) -> list[BillRecord]:
    bills: list[BillRecord] = []
    for section in sections:
        for line in section.bills:
            bills.append(
                BillRecord(
                    company_name=section.name,
                    address=section.address,
                    bill_no=line.bill_no,
                    date=line.date,
                    po_no=line.po_no,
                    type=line.type,
                    due_days=line.due_days,
                    bill_amount=line.bill_amount,
                    adjustment_amount=line.adjustment,
                    pending_amount=line.pending_amount,
                    balance_amount=line.pending_amount,
                )
            )
    return bills


def sections_to_companies(sections: Sequence[CompanySection]) -> list[CompanyRecord]:
    return [CompanyRecord(name=section.name, address=section.address) for section in sections]


def parse_blocks(
    rows: Sequence[Sequence[object]],
    ledger_start_index: int,
    *,
    keep_empty_sections: bool = False,
    require_bills: bool = True,
) -> BlockResult:
    """Segment the ledger and reject a sheet that yields nothing to ingest.

    Kept zero-bill sections alone do not satisfy ``require_bills``.
    """
    result = segment_blocks(rows, ledger_start_index, keep_empty_sections=keep_empty_sections)
    if not result.sections:
        raise ParseError("no company or bill sections detected")
    if require_bills and not any(section.bills for section in result.sections):
        raise ParseError("no bill lines detected in any company section")
    return result
