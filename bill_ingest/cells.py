"""
cells.py: canonical string / number forms for raw spreadsheet cells.

Every parser reads cells through these helpers so that numeric date serials,
padded strings and locale-formatted amounts all look the same downstream.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta, timezone

from bill_ingest.errors import DateParseWarning

EXCEL_EPOCH = datetime(1899, 12, 30)

# Serials outside this open interval are treated as plain numbers.
DATE_SERIAL_MIN = 40_000
DATE_SERIAL_MAX = 50_000

DMY_RE = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")
ISO_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
AMOUNT_STRIP_RE = re.compile(r"[^0-9.\-]")
FLOAT_PREFIX_RE = re.compile(r"^-?(?:\d+(?:\.\d*)?|\.\d+)")
WHITESPACE_RE = re.compile(r"\s+")


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_date_serial(value: object) -> bool:
    return _is_number(value) and DATE_SERIAL_MIN < value < DATE_SERIAL_MAX


def serial_to_date(serial: float) -> date:
    return (EXCEL_EPOCH + timedelta(days=math.floor(serial))).date()


def _fmt_dmy(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def _stringify_number(value: float) -> str:
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value)


def normalize_cell(value: object) -> str:
    if value is None:
        return ""
    if is_date_serial(value):
        return _fmt_dmy(serial_to_date(value))
    if _is_number(value):
        return _stringify_number(value)
    if isinstance(value, datetime):
        return _fmt_dmy(value.date())
    if isinstance(value, date):
        return _fmt_dmy(value)
    text = str(value).replace("\u00a0", " ")
    return WHITESPACE_RE.sub(" ", text).strip()


def parse_amount(value: object) -> float:
    """
    Parse an amount-like cell.

    Numbers pass through untouched. Text keeps only digits, '.' and '-', and
    the longest leading float literal is used, so "₹1,23,456.00 CR" -> 123456.0
    and "12-3" -> 12.0. Anything unparseable is 0.0.
    """
    if _is_number(value):
        return 0.0 if isinstance(value, float) and math.isnan(value) else float(value)
    stripped = AMOUNT_STRIP_RE.sub("", normalize_cell(value))
    match = FLOAT_PREFIX_RE.match(stripped)
    if not match:
        return 0.0
    return float(match.group(0))


def parse_int(value: object) -> int:
    return max(0, int(parse_amount(value)))


def looks_like_date(value: object) -> bool:
    if is_date_serial(value):
        return True
    text = normalize_cell(value)
    return bool(DMY_RE.match(text) or ISO_RE.match(text))


def looks_like_amount(value: object) -> bool:
    text = normalize_cell(value)
    return bool(text) and bool(re.search(r"[0-9.,\-]", text))


def parse_bill_date(
    text: str,
    *,
    now: datetime,
    row: int | None = None,
) -> tuple[datetime, DateParseWarning | None]:
    """
    Parse DD/MM/YYYY or YYYY-MM-DD into a UTC midnight datetime.

    Unparseable input falls back to ``now``; a warning is returned for
    non-empty input so the caller can report it.
    """
    raw = (text or "").strip()
    if not raw:
        return now, None

    m = DMY_RE.match(raw)
    if m:
        day, month, year = int(m.group(1)), int(m.group(2)), int(m.group(3))
    else:
        m = ISO_RE.match(raw)
        if not m:
            return now, DateParseWarning(raw, row)
        year, month, day = int(m.group(1)), int(m.group(2)), int(m.group(3))

    try:
        return datetime(year, month, day, tzinfo=timezone.utc), None
    except ValueError:
        return now, DateParseWarning(raw, row)


def iso_utc(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
