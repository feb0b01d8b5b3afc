from __future__ import annotations

import unittest

from bill_ingest.contracts import CONTRACT_VERSIONS, build_audit_record, build_contract, build_run_summary


class ContractTests(unittest.TestCase):
    def test_contract_carries_name_and_version(self):
        contract = build_contract("bill_ingest.summary")
        self.assertEqual(contract, {"name": "bill_ingest.summary", "version": CONTRACT_VERSIONS["bill_ingest.summary"]})

    def test_unknown_contract_is_rejected(self):
        with self.assertRaises(KeyError):
            build_contract("csv_doctor.diagnose")

    def test_audit_record_omits_company_count_for_company_uploads(self):
        record = build_audit_record(
            collection_name="companies",
            uploaded_at="2024-05-01T00:00:00Z",
            total_records=3,
            created=2,
            updated=1,
            skipped=0,
        )
        self.assertNotIn("totalCompanies", record)
        self.assertEqual(record["totalRecordsSkipped"], 0)

    def test_audit_record_includes_company_count_for_bill_uploads(self):
        record = build_audit_record(
            collection_name="bills",
            uploaded_at="2024-05-01T00:00:00Z",
            total_records=5,
            created=4,
            updated=0,
            skipped=1,
            total_companies=2,
        )
        self.assertEqual(record["totalCompanies"], 2)
        self.assertEqual(record["collectionName"], "bills")

    def test_run_summary_counts_warnings(self):
        summary = build_run_summary(
            tool="bill-ingest",
            command="ingest",
            input_path="bills.csv",
            metrics={"created": 1},
            warnings=["Row 3: could not parse date"],
        )
        self.assertEqual(summary["status"], "ok")
        self.assertEqual(summary["input_file"], "bills.csv")
        self.assertEqual(summary["warnings_count"], 1)
        self.assertTrue(summary["generated_at"].endswith("Z"))


if __name__ == "__main__":
    unittest.main()
