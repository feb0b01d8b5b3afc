#!/usr/bin/env python3
"""
Generates sample uploads for bill-ingest.

Run from the repo root:
    python sample-data/generate_samples.py

Files written:
  bills_tabular.xlsx
    - Title rows above the header (header sits at row index 2)
    - Date column stored as spreadsheet serials and as text
    - Amounts as numbers and as "₹1,23,456.00 CR"-style text
    - A repeated bill (same company + bill no) that must be skipped
    - A row with no company name (dropped)
  bills_ledger.xlsx
    - Company block layout: name + address lines, then ledger rows
    - A trailing company with no bill lines (dropped unless --keep-empty-sections)
    - Totals rows that must not be read as company names
  companies.xlsx
    - Company master sheet with bank columns
"""

from pathlib import Path
import openpyxl

OUT_DIR = Path(__file__).parent

# ── bills_tabular.xlsx ────────────────────────────────────────────────────────
wb = openpyxl.Workbook()
ws = wb.active
ws.title = "Outstanding"
ws.append(["Outstanding Bills Report"])
ws.append(["As on 31/03/2024"])
ws.append(["Company Name", "Bill No", "Bill Date", "PO No", "Type", "Bill Amount", "Pending Amount", "Due Days"])
rows = [
    ["Acme Ltd",      "INV-1", 45000,        "PO-11", "Sale", 12000,             8000,   30],
    ["Acme Ltd",      "INV-2", "01/04/2024", "PO-12", "Sale", "₹1,23,456.00 CR", "",     45],
    ["Beta Stores",   "INV-1", "2024-04-05", "",      "Sale", 5000,              5000,   15],
    ["acme ltd ",     "inv-1", 45000,        "PO-11", "Sale", 12000,             8000,   30],
    ["",              "INV-9", "02/04/2024", "",      "Sale", 100,               100,    10],
    ["Gamma Traders", "G-77",  "31/02/2024", "",      "Sale", 750.5,             750.5,  0],
]
for row in rows:
    ws.append(row)
wb.save(OUT_DIR / "bills_tabular.xlsx")
print(f"Created: {OUT_DIR / 'bills_tabular.xlsx'}")

# ── bills_ledger.xlsx ─────────────────────────────────────────────────────────
wb = openpyxl.Workbook()
ws = wb.active
ws.title = "Ledger"
ws.append(["Party Wise Outstanding"])
ws.append(["Date", "Bill No", "PO No", "Type", "Due Days", "Bill Amount", "Adjusted", "Pending"])
ws.append(["ACME TRADERS"])
ws.append(["12 Market Road"])
ws.append(["Pune 411001"])
ws.append([45292, "A-101", "PO-1", "Sale", 30, 1000, 0, 1000])
ws.append([45300, "A-102", "PO-2", "Sale", 30, 2500, 500, "2000 Dr"])
ws.append(["Total", "", "", "", "", 3500, 500, 3000])
ws.append(["BETA STORES"])
ws.append(["7 Station Lane"])
ws.append(["15/01/2024", "B-9", "", "Sale", 15, "4,500.00", "", "4,500.00"])
ws.append(["DORMANT CO"])
ws.append(["No bills this period"])
wb.save(OUT_DIR / "bills_ledger.xlsx")
print(f"Created: {OUT_DIR / 'bills_ledger.xlsx'}")

# ── companies.xlsx ────────────────────────────────────────────────────────────
wb = openpyxl.Workbook()
ws = wb.active
ws.title = "Companies"
ws.append([
    "Name", "Address", "City", "Contact No.", "E-mail & Website", "GST No.", "PAN No.",
    "Bank Name", "Bank Branch Name", "Bank IFSC Code", "Bank Account No.",
])
ws.append([
    "Acme Ltd", "12 Market Road", "Pune", "+919800000001", "accounts@acme.example", "27AAAAA0000A1Z5", "AAAAA0000A",
    "State Bank", "Camp", "SBIN0000001", "1234567890",
])
ws.append([
    "Beta Stores", "7 Station Lane", "Mumbai", "", "", "", "",
    "", "", "", "",
])
wb.save(OUT_DIR / "companies.xlsx")
print(f"Created: {OUT_DIR / 'companies.xlsx'}")
