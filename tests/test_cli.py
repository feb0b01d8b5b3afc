from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

from bill_ingest import __version__


ROOT = Path(__file__).resolve().parents[1]
CLI = [sys.executable, "-m", "bill_ingest.cli"]

BILLS_CSV = (
    "Company Name,Bill No,Bill Date,Bill Amount,Pending Amount,Due Days\n"
    "Acme Ltd,INV-1,01/04/2024,1000,1000,10\n"
    "Beta Stores,INV-1,02/04/2024,500,250,30\n"
)


def run_cli(*args: str, cwd: Path | None = None, env: dict[str, str] | None = None) -> subprocess.CompletedProcess[str]:
    merged_env = {key: value for key, value in os.environ.items() if not key.startswith("BILL_INGEST_")}
    merged_env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(ROOT), merged_env.get("PYTHONPATH", "")]))
    if env:
        merged_env.update(env)
    return subprocess.run(
        [*CLI, *args],
        cwd=cwd or ROOT,
        capture_output=True,
        text=True,
        env=merged_env,
    )


class BillIngestCliTests(unittest.TestCase):
    def test_ingest_json_reports_summary_and_writes_store(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            input_path = Path(tmpdir) / "bills.csv"
            input_path.write_text(BILLS_CSV, encoding="utf-8")
            store_path = Path(tmpdir) / "store.json"

            proc = run_cli("ingest", str(input_path), "--store", str(store_path), "--json")

            self.assertEqual(proc.returncode, 0, proc.stderr)
            payload = json.loads(proc.stdout)
            self.assertEqual(payload["contract"]["name"], "bill_ingest.summary")
            self.assertEqual(payload["summary"]["created"], 2)
            self.assertEqual(payload["summary"]["skipped"], 0)
            self.assertEqual(payload["summary"]["format"], {"headerRowIndex": 0, "kind": "tabular"})
            self.assertEqual(payload["run_summary"]["metrics"]["total_records"], 2)
            data = json.loads(store_path.read_text(encoding="utf-8"))
            self.assertEqual(len(data["bills"]), 2)
            self.assertEqual(len(data["companies"]), 2)
            self.assertEqual(len(data["bulk_uploads"]), 1)

    def test_second_ingest_skips_duplicates(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            input_path = Path(tmpdir) / "bills.csv"
            input_path.write_text(BILLS_CSV, encoding="utf-8")
            store_path = Path(tmpdir) / "store.json"
            run_cli("ingest", str(input_path), "--store", str(store_path), "-q")
            proc = run_cli("ingest", str(input_path), "--store", str(store_path))
            self.assertEqual(proc.returncode, 0, proc.stderr)
            self.assertIn("Created: 0", proc.stderr)
            self.assertIn("Skipped (duplicates): 2", proc.stderr)

    def test_dry_run_leaves_no_store(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            input_path = Path(tmpdir) / "bills.csv"
            input_path.write_text(BILLS_CSV, encoding="utf-8")
            store_path = Path(tmpdir) / "store.json"
            proc = run_cli("ingest", str(input_path), "--store", str(store_path), "--dry-run")
            self.assertEqual(proc.returncode, 0, proc.stderr)
            self.assertIn("(dry run)", proc.stderr)
            self.assertFalse(store_path.exists())

    def test_store_path_from_environment(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            input_path = Path(tmpdir) / "bills.csv"
            input_path.write_text(BILLS_CSV, encoding="utf-8")
            store_path = Path(tmpdir) / "env-store.json"
            proc = run_cli("ingest", str(input_path), "-q", env={"BILL_INGEST_STORE_PATH": str(store_path)})
            self.assertEqual(proc.returncode, 0, proc.stderr)
            self.assertTrue(store_path.exists())

    def test_unrecognized_sheet_returns_exit_2(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            input_path = Path(tmpdir) / "notes.csv"
            input_path.write_text("hello,world\n1,2\n", encoding="utf-8")
            proc = run_cli("ingest", str(input_path), "--store", str(Path(tmpdir) / "store.json"))
            self.assertEqual(proc.returncode, 2)
            self.assertIn("no recognizable header", proc.stderr)
            self.assertFalse((Path(tmpdir) / "store.json").exists())

    def test_rejected_extension_returns_exit_2(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            input_path = Path(tmpdir) / "bills.pdf"
            input_path.write_bytes(b"%PDF-1.4")
            proc = run_cli("ingest", str(input_path), "--store", str(Path(tmpdir) / "store.json"))
            self.assertEqual(proc.returncode, 2)
            self.assertIn("Unsupported file type", proc.stderr)

    def test_missing_input_returns_exit_1(self):
        proc = run_cli("ingest", "does-not-exist.csv")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("File not found", proc.stderr)

    def test_bad_arguments_return_exit_1(self):
        proc = run_cli("ingest", "bills.csv", "--kind", "invoices")
        self.assertEqual(proc.returncode, 1)

    def test_detect_json(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            input_path = Path(tmpdir) / "ledger.csv"
            input_path.write_text(
                "Bill No,Due Days,Amount\nACME TRADERS\n01/04/2024,A-1,,Sale,30,1000\n",
                encoding="utf-8",
            )
            proc = run_cli("detect", str(input_path), "--json")
            self.assertEqual(proc.returncode, 0, proc.stderr)
            payload = json.loads(proc.stdout)
            self.assertEqual(payload["layout"], {"kind": "block", "ledgerStartIndex": 1})
            self.assertEqual(payload["detected_format"], "csv")

    def test_template_and_config_init_refuse_overwrite(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            template_path = Path(tmpdir) / "bills_template.csv"
            proc = run_cli("template", "--kind", "bills", "--output", str(template_path))
            self.assertEqual(proc.returncode, 0, proc.stderr)
            self.assertTrue(template_path.read_text(encoding="utf-8").startswith('"Company Name"'))
            proc = run_cli("template", "--kind", "bills", "--output", str(template_path))
            self.assertEqual(proc.returncode, 1)
            self.assertIn("Refusing to overwrite", proc.stderr)

            config_path = Path(tmpdir) / "bill-ingest.json"
            proc = run_cli("config", "init", "--path", str(config_path))
            self.assertEqual(proc.returncode, 0, proc.stderr)
            self.assertEqual(json.loads(config_path.read_text(encoding="utf-8"))["header_scan_rows"], 20)
            proc = run_cli("config", "init", "--path", str(config_path))
            self.assertEqual(proc.returncode, 1)

    def test_export_writes_csv(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            input_path = Path(tmpdir) / "bills.csv"
            input_path.write_text(BILLS_CSV, encoding="utf-8")
            store_path = Path(tmpdir) / "store.json"
            run_cli("ingest", str(input_path), "--store", str(store_path), "-q")
            output_path = Path(tmpdir) / "export.csv"
            proc = run_cli("export", "--kind", "companies", "--store", str(store_path), "--output", str(output_path))
            self.assertEqual(proc.returncode, 0, proc.stderr)
            text = output_path.read_text(encoding="utf-8")
            self.assertIn('"Acme Ltd"', text)
            self.assertIn('"250.00"', text)

    def test_version(self):
        proc = run_cli("version")
        self.assertEqual(proc.returncode, 0)
        self.assertEqual(proc.stdout.strip(), __version__)


if __name__ == "__main__":
    unittest.main()
