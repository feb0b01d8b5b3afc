"""
templates.py: upload templates and CSV exports of stored bills / companies.

Template headers are chosen so that a filled-in template ingests back through
the tabular parser unchanged.
"""

from __future__ import annotations

import csv
from datetime import datetime, timezone
from typing import Any

import pandas as pd

from bill_ingest.reconcile import BILLS, COMPANIES
from bill_ingest.store import DocumentStore

BILL_TEMPLATE_HEADERS = [
    "Company Name",
    "Bill No",
    "Bill Date (DD/MM/YYYY)",
    "PO No",
    "Type",
    "Bill Amount",
    "Pending Amount",
    "Due Days",
]
BILL_TEMPLATE_EXAMPLE = [
    "Example Company Ltd",
    "INV/001/2025",
    "01/01/2025",
    "PO-001",
    "Sale",
    "10000.00",
    "10000.00",
    "30",
]

COMPANY_TEMPLATE_HEADERS = [
    "Company Name",
    "Email",
    "Address",
    "City",
    "State",
    "Pincode",
    "Phone",
    "Contact Person",
    "Payment Terms (Days)",
]
COMPANY_TEMPLATE_EXAMPLE = [
    "Example Company Ltd",
    "contact@example.com",
    "123 Business Street",
    "Mumbai",
    "Maharashtra",
    "400001",
    "+919876543210",
    "Mr. John Doe",
    "30",
]

BILL_EXPORT_COLUMNS = [
    "Bill No",
    "Company Name",
    "Bill Date",
    "PO No",
    "Type",
    "Bill Amount",
    "Pending Amount",
    "Due Days",
    "Reminder Count",
    "Last Reminder Sent",
    "Status",
]

COMPANY_EXPORT_COLUMNS = [
    "Company Name",
    "Email",
    "Address",
    "City",
    "State",
    "Pincode",
    "Phone",
    "Contact Person",
    "Payment Terms (Days)",
    "Total Pending Amount",
    "Auto Reminders",
    "Created At",
]


def _to_csv(frame: pd.DataFrame) -> str:
    return frame.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")


def template_csv(kind: str) -> str:
    if kind == BILLS:
        frame = pd.DataFrame([BILL_TEMPLATE_EXAMPLE], columns=BILL_TEMPLATE_HEADERS)
    elif kind == COMPANIES:
        frame = pd.DataFrame([COMPANY_TEMPLATE_EXAMPLE], columns=COMPANY_TEMPLATE_HEADERS)
    else:
        raise ValueError(f"Unknown template kind {kind!r}")
    return _to_csv(frame)


def template_filename(kind: str) -> str:
    return f"{kind}_template.csv"


def export_filename(kind: str, today: datetime | None = None) -> str:
    today = today or datetime.now(timezone.utc)
    return f"{kind}_export_{today.date().isoformat()}.csv"


def _money(value: Any) -> str:
    try:
        return f"{float(value or 0):.2f}"
    except (TypeError, ValueError):
        return "0.00"


def bill_export_rows(bills: list[dict[str, Any]], companies: list[dict[str, Any]]) -> list[list[Any]]:
    names = {company.get("id"): company.get("name") for company in companies}
    rows = []
    for bill in bills:
        rows.append(
            [
                bill.get("billNo", ""),
                names.get(bill.get("companyId")) or "Unknown",
                bill.get("date", ""),
                bill.get("poNo", ""),
                bill.get("type", ""),
                _money(bill.get("billAmount")),
                _money(bill.get("pendingAmount")),
                bill.get("dueDays", 0),
                bill.get("reminderCount", 0),
                bill.get("lastReminderSent") or "Never",
                "Paused" if bill.get("isReminderPaused") else "Active",
            ]
        )
    return rows


def company_export_rows(companies: list[dict[str, Any]]) -> list[list[Any]]:
    rows = []
    for company in companies:
        rows.append(
            [
                company.get("name", ""),
                company.get("email", ""),
                company.get("address", ""),
                company.get("city", ""),
                company.get("state", ""),
                company.get("pincode", ""),
                company.get("phone", ""),
                company.get("contactPerson", ""),
                company.get("paymentTermsDays", ""),
                _money(company.get("totalPendingAmount")),
                "Yes" if company.get("autoRemindersEnabled") else "No",
                company.get("createdAt", ""),
            ]
        )
    return rows


def export_csv(store: DocumentStore, kind: str) -> str:
    """Render one collection as the console's CSV export."""
    companies = sorted(store.query(COMPANIES), key=lambda doc: str(doc.get("id", "")))
    if kind == BILLS:
        bills = sorted(store.query(BILLS), key=lambda doc: str(doc.get("id", "")))
        frame = pd.DataFrame(bill_export_rows(bills, companies), columns=BILL_EXPORT_COLUMNS)
    elif kind == COMPANIES:
        frame = pd.DataFrame(company_export_rows(companies), columns=COMPANY_EXPORT_COLUMNS)
    else:
        raise ValueError(f"Unknown export kind {kind!r}")
    return _to_csv(frame)
