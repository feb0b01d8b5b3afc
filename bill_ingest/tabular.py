"""
tabular.py: header-row spreadsheets.

The detected header row is the key row; every row below it becomes one
record. Header text is mapped to canonical fields through HEADER_SYNONYMS;
headers with no canonical field are kept in ``extra`` and ignored later.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from loguru import logger

from bill_ingest.cells import normalize_cell, parse_amount, parse_int
from bill_ingest.errors import ParseError
from bill_ingest.records import (
    BANK_FIELDS,
    BillRecord,
    CompanyRecord,
    Field,
    lookup_field,
)


@dataclass
class TabularResult:
    records: list = field(default_factory=list)
    dropped_rows: int = 0
    headers: list[str] = field(default_factory=list)


def _header_keys(header_row: Sequence[object]) -> list[str]:
    return [normalize_cell(cell).lower() for cell in header_row]


def map_row(headers: list[str], row: Sequence[object]) -> tuple[dict[Field, Any], dict[str, Any]]:
    """Split one data row into (canonical fields, passthrough extras)."""
    mapped: dict[Field, Any] = {}
    extra: dict[str, Any] = {}
    for idx, header in enumerate(headers):
        if not header:
            continue
        value = row[idx] if idx < len(row) else ""
        canonical = lookup_field(header)
        if canonical is None:
            extra.setdefault(header, value)
        elif canonical not in mapped:
            mapped[canonical] = value
    return mapped, extra


def _text(mapped: dict[Field, Any], key: Field) -> str:
    return normalize_cell(mapped.get(key, ""))


def build_bill(mapped: dict[Field, Any], extra: dict[str, Any]) -> BillRecord | None:
    company_name = _text(mapped, Field.COMPANY_NAME)
    if not company_name:
        return None

    bill_amount = abs(parse_amount(mapped.get(Field.BILL_AMOUNT, "")))
    pending_amount = parse_amount(mapped.get(Field.PENDING_AMOUNT, "")) or bill_amount
    balance_amount = parse_amount(mapped.get(Field.BALANCE_AMOUNT, "")) or pending_amount

    return BillRecord(
        company_name=company_name,
        bill_no=_text(mapped, Field.BILL_NO),
        date=_text(mapped, Field.DATE),
        po_no=_text(mapped, Field.PO_NO),
        type=_text(mapped, Field.TYPE),
        bill_amount=bill_amount,
        pending_amount=pending_amount,
        balance_amount=balance_amount,
        due_days=parse_int(mapped.get(Field.DUE_DAYS, "")),
        address=_text(mapped, Field.ADDRESS),
        extra=extra,
    )


def build_company(mapped: dict[Field, Any], extra: dict[str, Any]) -> CompanyRecord | None:
    name = _text(mapped, Field.COMPANY_NAME)
    if not name:
        return None

    bank_details = {}
    for bank_field in BANK_FIELDS:
        value = _text(mapped, bank_field)
        if value:
            bank_details[bank_field.value] = value

    terms = _text(mapped, Field.PAYMENT_TERMS_DAYS)
    return CompanyRecord(
        name=name,
        address=_text(mapped, Field.ADDRESS),
        city=_text(mapped, Field.CITY),
        state=_text(mapped, Field.STATE),
        pincode=_text(mapped, Field.PINCODE),
        phone=_text(mapped, Field.PHONE),
        email=_text(mapped, Field.EMAIL),
        contact_person=_text(mapped, Field.CONTACT_PERSON),
        gst_no=_text(mapped, Field.GST_NO),
        pan_no=_text(mapped, Field.PAN_NO),
        payment_terms_days=parse_int(terms) if terms else None,
        bank_details=bank_details,
        extra=extra,
    )


def parse_tabular(
    rows: Sequence[Sequence[object]],
    header_row_index: int,
    *,
    kind: str = "bills",
) -> TabularResult:
    headers = _header_keys(rows[header_row_index])
    build = build_company if kind == "companies" else build_bill
    result = TabularResult(headers=headers)

    for row in rows[header_row_index + 1:]:
        if not any(normalize_cell(cell) for cell in row):
            continue
        mapped, extra = map_row(headers, row)
        record = build(mapped, extra)
        if record is None:
            result.dropped_rows += 1
            continue
        result.records.append(record)

    if not result.records:
        raise ParseError("no usable rows")

    logger.info(
        f"[parse_tabular] {len(result.records)} {kind} rows parsed, "
        f"{result.dropped_rows} dropped without a company name"
    )
    return result
