from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from loguru import logger

from bill_ingest.cells import normalize_cell
from bill_ingest.errors import FormatError

TABULAR = "tabular"
BLOCK = "block"

HEADER_SCAN_ROWS = 20

BILL_HEADER_VOCABULARY = frozenset({
    "company name",
    "bill no",
    "bill amount",
    "pending amount",
    "due days",
    "invoice no",
    "bill date",
})

COMPANY_HEADER_VOCABULARY = frozenset({
    "name",
    "company name",
    "company",
    "address",
    "city",
    "contact no.",
    "e-mail & website",
    "email",
    "phone",
    "gst no.",
    "pan no.",
    "bank name",
    "bank branch name",
    "bank address",
    "bank ifsc code",
    "bank account no.",
    "iban no.",
    "swift code",
})

COMPANY_COLUMN_HEADERS = frozenset({"company name", "company", "name", "companyname", "party name"})

RawSheet = Sequence[Sequence[object]]


@dataclass(frozen=True)
class DetectedFormat:
    kind: str
    header_row_index: int | None = None
    ledger_start_index: int | None = None

    def as_dict(self) -> dict[str, object]:
        if self.kind == TABULAR:
            return {"kind": TABULAR, "headerRowIndex": self.header_row_index}
        return {"kind": BLOCK, "ledgerStartIndex": self.ledger_start_index}


def header_vocabulary(kind: str) -> frozenset[str]:
    return COMPANY_HEADER_VOCABULARY if kind == "companies" else BILL_HEADER_VOCABULARY


def _lowered_cells(row: Sequence[object]) -> list[str]:
    return [normalize_cell(cell).lower() for cell in row]


def is_ledger_signature(row: Sequence[object]) -> bool:
    text = " ".join(normalize_cell(cell) for cell in row).lower()
    return "bill no" in text and ("due" in text or "bill amount" in text)


def _is_tabular_header(cells: list[str], row: Sequence[object], vocabulary: frozenset[str], min_matches: int) -> bool:
    matches = sum(1 for cell in cells if cell in vocabulary)
    if matches < max(1, min_matches):
        return False
    # A ledger column header has no owning-company column; the company is the
    # free-text block above each run of bill lines.
    if vocabulary is BILL_HEADER_VOCABULARY and is_ledger_signature(row):
        return any(cell in COMPANY_COLUMN_HEADERS for cell in cells)
    return True


def detect_format(
    rows: RawSheet,
    *,
    kind: str = "bills",
    scan_rows: int = HEADER_SCAN_ROWS,
    min_matches: int = 1,
) -> DetectedFormat:
    if not rows:
        raise FormatError("no recognizable header (sheet is empty)")

    window = list(rows[:scan_rows])
    vocabulary = header_vocabulary(kind)

    for idx, row in enumerate(window):
        if _is_tabular_header(_lowered_cells(row), row, vocabulary, min_matches):
            logger.info(f"[detect_format] tabular header at row {idx}")
            return DetectedFormat(TABULAR, header_row_index=idx)

    for idx, row in enumerate(window):
        if is_ledger_signature(row):
            logger.info(f"[detect_format] block ledger starts at row {idx + 1}")
            return DetectedFormat(BLOCK, ledger_start_index=idx + 1)

    raise FormatError("no recognizable header")
