import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path
from unittest import mock

from bill_ingest.errors import CommitFailure, ErrorKind
from bill_ingest.reconcile import BILLS, commit, load_snapshot, reconcile
from bill_ingest.records import BillRecord
from bill_ingest.store import SERVER_TIMESTAMP, JsonFileStore, MemoryStore

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


class MemoryStoreTests(unittest.TestCase):
    def test_commit_applies_sets_and_updates_in_order(self):
        store = MemoryStore()
        batch = store.batch()
        batch.set("companies", "comp-001", {"id": "comp-001", "name": "Acme", "createdAt": SERVER_TIMESTAMP})
        batch.update("companies", "comp-001", {"totalBills": 2})
        store.commit(batch, now=NOW)
        self.assertEqual(
            store.get("companies", "comp-001"),
            {"id": "comp-001", "name": "Acme", "createdAt": "2024-05-01T00:00:00Z", "totalBills": 2},
        )

    def test_update_of_missing_document_fails_whole_batch(self):
        store = MemoryStore({"companies": {"comp-001": {"id": "comp-001", "totalBills": 1}}})
        batch = store.batch()
        batch.update("companies", "comp-001", {"totalBills": 2})
        batch.update("companies", "comp-404", {"totalBills": 1})
        with self.assertRaises(CommitFailure) as ctx:
            store.commit(batch)
        self.assertEqual(ctx.exception.kind, ErrorKind.COMMIT)
        self.assertEqual(store.get("companies", "comp-001")["totalBills"], 1)

    def test_reads_return_copies(self):
        store = MemoryStore({"companies": {"comp-001": {"id": "comp-001", "name": "Acme"}}})
        store.get("companies", "comp-001")["name"] = "changed"
        store.query("companies")[0]["name"] = "changed"
        self.assertEqual(store.get("companies", "comp-001")["name"], "Acme")

    def test_query_filters_by_equality(self):
        store = MemoryStore()
        store.seed("bills", [
            {"id": "bill-001", "companyId": "comp-001"},
            {"id": "bill-002", "companyId": "comp-002"},
        ])
        self.assertEqual([doc["id"] for doc in store.query("bills", companyId="comp-002")], ["bill-002"])
        self.assertEqual(len(store.query("bills")), 2)
        self.assertEqual(store.query("companies"), [])


class JsonFileStoreTests(unittest.TestCase):
    def test_commit_round_trips_through_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "nested" / "store.json"
            store = JsonFileStore(path)
            doc_id = store.add("bulk_uploads", {"created": 1}, now=NOW)
            reopened = JsonFileStore(path)
            self.assertEqual(reopened.get("bulk_uploads", doc_id), {"created": 1})
            self.assertEqual([p.name for p in path.parent.iterdir()], ["store.json"])

    def test_failed_write_leaves_file_unchanged_and_no_audit(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "store.json"
            store = JsonFileStore(path)
            store.add("bulk_uploads", {"created": 0}, now=NOW)
            before = path.read_bytes()

            records = [BillRecord(company_name="Acme Ltd", bill_no="INV-1", bill_amount=10, pending_amount=10)]
            result = reconcile(records, BILLS, load_snapshot(store, BILLS), now=NOW)
            with mock.patch.object(JsonFileStore, "_write", side_effect=OSError("disk full")):
                with self.assertRaises(CommitFailure) as ctx:
                    commit(store, result, total_records=1, now=NOW)

            self.assertIn("disk full", str(ctx.exception))
            self.assertEqual(path.read_bytes(), before)
            self.assertEqual(len(store.query("bulk_uploads")), 1)
            self.assertEqual(store.query("companies"), [])

    def test_invalid_store_file_is_reported(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "store.json"
            path.write_text("[1, 2]", encoding="utf-8")
            with self.assertRaises(ValueError):
                JsonFileStore(path).query("companies")

    def test_missing_file_reads_as_empty(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = JsonFileStore(Path(tmpdir) / "absent.json")
            self.assertEqual(store.query("companies"), [])
            self.assertIsNone(store.get("companies", "comp-001"))


if __name__ == "__main__":
    unittest.main()
