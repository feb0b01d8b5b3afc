import csv
import io
import unittest
from datetime import datetime, timezone

from bill_ingest.ingest import ingest_rows
from bill_ingest.reconcile import BILLS, COMPANIES
from bill_ingest.store import MemoryStore
from bill_ingest.templates import export_csv, export_filename, template_csv

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


def read_csv(text: str) -> list[list[str]]:
    return list(csv.reader(io.StringIO(text)))


class TemplateTests(unittest.TestCase):
    def test_bill_template_ingests_back(self):
        rows = read_csv(template_csv(BILLS))
        self.assertEqual(rows[0][0], "Company Name")
        store = MemoryStore()
        summary = ingest_rows(rows, kind=BILLS, store=store, now=NOW)
        self.assertEqual(summary.created, 1)
        doc = store.query(BILLS)[0]
        self.assertEqual(doc["billNo"], "INV/001/2025")
        self.assertEqual(doc["billAmount"], 10000.0)
        self.assertEqual(doc["dueDays"], 30)
        self.assertEqual(doc["dueDate"], "2025-01-31T00:00:00Z")

    def test_company_template_ingests_back(self):
        store = MemoryStore()
        ingest_rows(read_csv(template_csv(COMPANIES)), kind=COMPANIES, store=store, now=NOW)
        doc = store.query(COMPANIES)[0]
        self.assertEqual(doc["name"], "Example Company Ltd")
        self.assertEqual(doc["state"], "Maharashtra")
        self.assertEqual(doc["contactPerson"], "Mr. John Doe")
        self.assertEqual(doc["paymentTermsDays"], 30)

    def test_unknown_template_kind(self):
        with self.assertRaises(ValueError):
            template_csv("invoices")


class ExportTests(unittest.TestCase):
    def setUp(self):
        self.store = MemoryStore()
        ingest_rows(
            [
                ["Company Name", "Bill No", "Bill Date", "Bill Amount", "Pending Amount", "Due Days"],
                ["Acme Ltd", "INV-1", "01/04/2024", "1000", "750.5", "30"],
            ],
            kind=BILLS,
            store=self.store,
            now=NOW,
        )

    def test_bill_export_columns_and_values(self):
        rows = read_csv(export_csv(self.store, BILLS))
        self.assertEqual(rows[0][:3], ["Bill No", "Company Name", "Bill Date"])
        self.assertEqual(
            rows[1],
            ["INV-1", "Acme Ltd", "01/04/2024", "", "", "1000.00", "750.50", "30", "0", "Never", "Active"],
        )

    def test_company_export(self):
        rows = read_csv(export_csv(self.store, COMPANIES))
        header, acme = rows
        record = dict(zip(header, acme))
        self.assertEqual(record["Company Name"], "Acme Ltd")
        self.assertEqual(record["Total Pending Amount"], "750.50")
        self.assertEqual(record["Auto Reminders"], "Yes")
        self.assertEqual(record["Created At"], "2024-05-01T00:00:00Z")

    def test_export_filename_uses_date(self):
        self.assertEqual(export_filename(BILLS, NOW), "bills_export_2024-05-01.csv")


if __name__ == "__main__":
    unittest.main()
