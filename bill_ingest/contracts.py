"""Shared versioned contracts for ingestion summaries and audit records."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

CONTRACT_VERSIONS = {
    "bill_ingest.summary": "1.0.0",
    "bill_ingest.detect": "1.0.0",
}

AUDIT_COLLECTION = "bulk_uploads"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_contract(name: str) -> dict[str, str]:
    version = CONTRACT_VERSIONS[name]
    return {"name": name, "version": version}


def build_audit_record(
    *,
    collection_name: str,
    uploaded_at: str,
    total_records: int,
    created: int,
    updated: int,
    skipped: int,
    total_companies: int | None = None,
) -> dict[str, Any]:
    record: dict[str, Any] = {
        "collectionName": collection_name,
        "uploadedAt": uploaded_at,
        "totalRecords": total_records,
        "created": created,
        "updated": updated,
        "totalRecordsSkipped": skipped,
    }
    if total_companies is not None:
        record["totalCompanies"] = total_companies
    return record


def build_run_summary(
    *,
    tool: str,
    command: str,
    input_path: Path | str | None,
    status: str = "ok",
    metrics: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "tool": tool,
        "command": command,
        "status": status,
        "generated_at": utc_now_iso(),
        "input_file": str(input_path) if input_path else None,
        "warnings_count": len(warnings or []),
        "warnings": list(warnings or []),
        "metrics": metrics or {},
    }
