"""
loader.py: uploaded file -> RawSheet (list of rows of raw cell values)

Supports: .csv .tsv .xlsx .xlsm .xls .ods

Public API:
    sheet = load_rows("path/to/bills.xlsx")
    sheet = load_rows(content=raw_bytes, filename="bills.xlsx")
    rows  = sheet.rows

Workbook cells keep their native types (numbers stay numbers, date cells stay
datetimes) so the cell normalizer can recognise date serials. Text formats
yield strings only.
"""

from __future__ import annotations

import csv
import io
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import chardet
import openpyxl
import pandas as pd
from loguru import logger

from bill_ingest.errors import UnsupportedFileError

# ── Format groups ──────────────────────────────────────────────────────────────
TEXT_FORMATS  = {".csv", ".tsv"}
EXCEL_FORMATS = {".xlsx", ".xlsm"}
LEGACY_FORMATS = {".xls"}
ODS_FORMATS   = {".ods"}
ALL_FORMATS   = TEXT_FORMATS | EXCEL_FORMATS | LEGACY_FORMATS | ODS_FORMATS


@dataclass
class LoadedSheet:
    rows: list[list[Any]]
    detected_format: str
    detected_encoding: Optional[str] = None
    delimiter: Optional[str] = None
    sheet_name: Optional[str] = None
    sheet_names: Optional[list[str]] = None
    warnings: list[str] = field(default_factory=list)


# ══════════════════════════════════════════════════════════════════════════════
# TEXT FILES
# ══════════════════════════════════════════════════════════════════════════════

def _detect_encoding(raw: bytes) -> str:
    result = chardet.detect(raw)
    return result.get("encoding") or "utf-8"


def _read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """
    Decode raw bytes line-by-line.

    Strategy per line:
      1. Try UTF-8
      2. Try preferred_encoding (chardet result)
      3. Try latin-1
      4. CP1252 with replace (never crashes)
    """
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: str | None = None
        for enc in ("utf-8", preferred_encoding, "latin-1"):
            if not enc:
                continue
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("cp1252", errors="replace")
        decoded_lines.append(decoded.replace("\x00", "").lstrip("\ufeff"))
    return "\n".join(decoded_lines)


def _detect_delimiter(text: str) -> str:
    """
    Infer the delimiter from sample lines.

    Uses csv.Sniffer first; falls back to the candidate giving the most
    consistent multi-column width.
    """
    sample_lines = [line for line in text.splitlines() if line.strip()][:50]
    sample = "\n".join(sample_lines[:25])

    if sample:
        try:
            return csv.Sniffer().sniff(sample, delimiters=",;\t|").delimiter
        except csv.Error:
            pass

    best_delim = ","
    best_score = float("-inf")
    for delim in [",", ";", "\t", "|"]:
        rows = [row for row in csv.reader(io.StringIO(sample), delimiter=delim) if row]
        if not rows:
            continue
        mode_width, mode_count = Counter(len(row) for row in rows).most_common(1)[0]
        score = mode_width * (mode_count / len(rows))
        if mode_width == 1:
            score -= 10.0
        if score > best_score:
            best_score = score
            best_delim = delim
    return best_delim


def _load_text(raw: bytes, suffix: str) -> LoadedSheet:
    encoding = _detect_encoding(raw)
    text = _read_text_safely(raw, encoding)
    delimiter = "\t" if suffix == ".tsv" else _detect_delimiter(text)
    rows = [list(row) for row in csv.reader(io.StringIO(text), delimiter=delimiter)]
    return LoadedSheet(
        rows=_trim_rows(rows),
        detected_format=suffix.lstrip("."),
        detected_encoding=encoding,
        delimiter=delimiter,
    )


# ══════════════════════════════════════════════════════════════════════════════
# WORKBOOKS
# ══════════════════════════════════════════════════════════════════════════════

def _trim_trailing_empty_cells(row: list[Any]) -> list[Any]:
    trimmed = list(row)
    while trimmed and (trimmed[-1] is None or not str(trimmed[-1]).strip()):
        trimmed.pop()
    return trimmed


def _trim_rows(rows: list[list[Any]]) -> list[list[Any]]:
    trimmed = [_trim_trailing_empty_cells(row) for row in rows]
    while trimmed and not trimmed[-1]:
        trimmed.pop()
    return trimmed


def _choose_sheet(all_sheets: list[str], sheet_name: Optional[str], warnings: list[str]) -> str:
    if not all_sheets:
        raise ValueError("Workbook has no sheets.")
    if sheet_name is not None:
        if sheet_name not in all_sheets:
            raise ValueError(f"Sheet '{sheet_name}' not found. Available: {all_sheets}")
        return sheet_name
    if len(all_sheets) > 1:
        warnings.append(
            f"Multiple sheets found ({len(all_sheets)} total); "
            f"used '{all_sheets[0]}'. Ignored: {all_sheets[1:]}"
        )
    return all_sheets[0]


def _load_openpyxl(raw: bytes, suffix: str, sheet_name: Optional[str]) -> LoadedSheet:
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(raw), data_only=True, read_only=True)
    except Exception as exc:
        raise ValueError(f"Could not open workbook: {exc}") from exc

    warnings: list[str] = []
    try:
        all_sheets = list(workbook.sheetnames)
        chosen = _choose_sheet(all_sheets, sheet_name, warnings)
        rows = [
            ["" if value is None else value for value in values]
            for values in workbook[chosen].iter_rows(values_only=True)
        ]
    finally:
        workbook.close()

    return LoadedSheet(
        rows=_trim_rows(rows),
        detected_format=suffix.lstrip("."),
        sheet_name=chosen,
        sheet_names=all_sheets,
        warnings=warnings,
    )


def _frame_to_rows(df: pd.DataFrame) -> list[list[Any]]:
    frame = df.astype(object).where(df.notna(), "")
    return frame.values.tolist()


def _load_with_pandas(raw: bytes, suffix: str, sheet_name: Optional[str]) -> LoadedSheet:
    engine = None
    if suffix == ".xls":
        try:
            import xlrd  # noqa: F401
        except ImportError:
            raise ImportError(".xls files require xlrd. Run: pip install xlrd")
        engine = "xlrd"
    else:
        try:
            import odf  # noqa: F401
        except ImportError:
            raise ImportError(".ods files require odfpy. Run: pip install odfpy")
        engine = "odf"

    warnings: list[str] = []
    try:
        with pd.ExcelFile(io.BytesIO(raw), engine=engine) as xf:
            all_sheets = [str(name) for name in xf.sheet_names]
            chosen = _choose_sheet(all_sheets, sheet_name, warnings)
            df = pd.read_excel(xf, sheet_name=chosen, header=None)
    except ValueError:
        raise
    except Exception as exc:
        raise ValueError(f"Could not open workbook: {exc}") from exc

    return LoadedSheet(
        rows=_trim_rows(_frame_to_rows(df)),
        detected_format=suffix.lstrip("."),
        sheet_name=chosen,
        sheet_names=all_sheets,
        warnings=warnings,
    )


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def check_extension(filename: str) -> str:
    suffix = Path(filename).suffix.lower()
    if suffix not in ALL_FORMATS:
        supported = ", ".join(sorted(ALL_FORMATS))
        raise UnsupportedFileError(
            f"Unsupported file type '{suffix or '[missing extension]'}'. Supported: {supported}"
        )
    return suffix


def load_rows(
    path: "str | Path | None" = None,
    *,
    content: Optional[bytes] = None,
    filename: Optional[str] = None,
    sheet_name: Optional[str] = None,
) -> LoadedSheet:
    """
    Load an uploaded spreadsheet into raw rows.

    Either ``path`` or ``content`` + ``filename`` must be given; the extension
    is checked before any bytes are read.

    Raises:
        UnsupportedFileError  if the extension is not accepted.
        FileNotFoundError     if ``path`` does not exist.
        ValueError            if the file cannot be parsed.
        ImportError           if a required optional reader is missing.
    """
    if path is not None:
        path = Path(path)
        filename = filename or path.name
    if not filename:
        raise ValueError("A filename is required to determine the file type.")

    suffix = check_extension(filename)

    if content is None:
        if path is None:
            raise ValueError("Either a path or file content is required.")
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        content = path.read_bytes()

    if suffix in TEXT_FORMATS:
        sheet = _load_text(content, suffix)
    elif suffix in EXCEL_FORMATS:
        sheet = _load_openpyxl(content, suffix, sheet_name)
    else:
        sheet = _load_with_pandas(content, suffix, sheet_name)

    logger.info(f"[load_rows] {filename}: {len(sheet.rows)} rows ({sheet.detected_format})")
    return sheet
