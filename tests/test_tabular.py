import unittest

from bill_ingest.errors import ParseError
from bill_ingest.records import BillRecord, CompanyRecord, Field
from bill_ingest.tabular import map_row, parse_tabular

BILL_HEADER = ["Company Name", "Bill No", "Bill Date", "Bill Amount", "Pending Amount", "Due Days", "Remarks"]


class TabularBillTests(unittest.TestCase):
    def test_row_maps_to_bill_record(self):
        rows = [
            ["Report"],
            BILL_HEADER,
            ["Acme Ltd", "INV-1", 45000, 12000, "", 30, "call first"],
        ]
        result = parse_tabular(rows, 1)
        self.assertEqual(len(result.records), 1)
        bill = result.records[0]
        self.assertIsInstance(bill, BillRecord)
        self.assertEqual(bill.company_name, "Acme Ltd")
        self.assertEqual(bill.bill_no, "INV-1")
        self.assertEqual(bill.date, "15/03/2023")
        self.assertEqual(bill.bill_amount, 12000.0)
        self.assertEqual(bill.pending_amount, 12000.0)
        self.assertEqual(bill.balance_amount, 12000.0)
        self.assertEqual(bill.due_days, 30)
        self.assertEqual(bill.extra, {"remarks": "call first"})

    def test_text_amounts_and_explicit_pending(self):
        rows = [BILL_HEADER, ["Acme Ltd", "INV-2", "01/04/2024", "₹1,23,456.00 CR", "1,000.50", "45 days", ""]]
        bill = parse_tabular(rows, 0).records[0]
        self.assertEqual(bill.bill_amount, 123456.0)
        self.assertEqual(bill.pending_amount, 1000.5)
        self.assertEqual(bill.due_days, 45)

    def test_bill_amount_is_absolute(self):
        rows = [BILL_HEADER, ["Acme Ltd", "CN-1", "", "-500", "", "", ""]]
        bill = parse_tabular(rows, 0).records[0]
        self.assertEqual(bill.bill_amount, 500.0)

    def test_rows_without_company_are_dropped_and_counted(self):
        rows = [
            BILL_HEADER,
            ["Acme Ltd", "INV-1", "", "100", "", "", ""],
            ["", "INV-2", "", "200", "", "", ""],
            ["", "", "", "", "", "", ""],
            [],
        ]
        result = parse_tabular(rows, 0)
        self.assertEqual(len(result.records), 1)
        self.assertEqual(result.dropped_rows, 1)

    def test_no_usable_rows_raises_parse_error(self):
        with self.assertRaises(ParseError) as ctx:
            parse_tabular([BILL_HEADER, ["", "INV-1", "", "100", "", "", ""]], 0)
        self.assertIn("no usable rows", str(ctx.exception))

    def test_short_rows_fill_missing_cells(self):
        rows = [BILL_HEADER, ["Acme Ltd", "INV-1"]]
        bill = parse_tabular(rows, 0).records[0]
        self.assertEqual(bill.bill_amount, 0.0)
        self.assertEqual(bill.date, "")


class MapRowTests(unittest.TestCase):
    def test_first_duplicate_header_wins(self):
        mapped, extra = map_row(["company name", "amount", "bill amount"], ["Acme", 100, 200])
        self.assertEqual(mapped[Field.BILL_AMOUNT], 100)
        self.assertEqual(extra, {})

    def test_blank_headers_are_skipped(self):
        mapped, extra = map_row(["company name", "", "zone"], ["Acme", "ignored", "West"])
        self.assertEqual(mapped, {Field.COMPANY_NAME: "Acme"})
        self.assertEqual(extra, {"zone": "West"})


class TabularCompanyTests(unittest.TestCase):
    def test_company_master_row(self):
        rows = [
            ["Name", "Address", "City", "Contact No.", "E-mail & Website", "GST No.",
             "Bank Name", "Bank IFSC Code", "Bank Account No.", "Payment Terms (Days)"],
            ["Acme Ltd", "12 Market Road", "Pune", 9800000001, "a@acme.example", "27AAA",
             "State Bank", "SBIN0000001", "", "30"],
            ["Beta Stores", "", "", "", "", "", "", "", "", ""],
        ]
        result = parse_tabular(rows, 0, kind="companies")
        acme, beta = result.records
        self.assertIsInstance(acme, CompanyRecord)
        self.assertEqual(acme.city, "Pune")
        self.assertEqual(acme.phone, "9800000001")
        self.assertEqual(acme.email, "a@acme.example")
        self.assertEqual(acme.gst_no, "27AAA")
        self.assertEqual(acme.payment_terms_days, 30)
        self.assertEqual(acme.bank_details, {"bankName": "State Bank", "ifsc": "SBIN0000001"})
        self.assertEqual(beta.bank_details, {})
        self.assertIsNone(beta.payment_terms_days)


if __name__ == "__main__":
    unittest.main()
