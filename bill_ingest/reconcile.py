"""
reconcile.py: decide create / update / skip for parsed records and stage
every resulting write into one batch.

Invariants kept here:

* empty incoming values never overwrite stored values; bankDetails is merged
  key by key;
* a bill is identified by ``companyId + "_" + billNo.lower()``; a key seen in
  the store or earlier in the same run is skipped, never written twice;
* company totals (totalPendingAmount, totalBills) are read once, adjusted in
  memory by the bills created in this run, and written as one additive
  update per company.
"""

from __future__ import annotations

import re
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Sequence

from loguru import logger

from bill_ingest.cells import iso_utc, parse_bill_date
from bill_ingest.contracts import AUDIT_COLLECTION, build_audit_record
from bill_ingest.errors import ErrorKind
from bill_ingest.records import BillRecord, CompanyRecord, name_key
from bill_ingest.store import SERVER_TIMESTAMP, DocumentStore, WriteBatch

COMPANIES = "companies"
BILLS = "bills"
KINDS = (BILLS, COMPANIES)

COMPANY_ID_PREFIX = "comp"
BILL_ID_PREFIX = "bill"


@dataclass
class Snapshot:
    companies: list[dict[str, Any]] = field(default_factory=list)
    bills: list[dict[str, Any]] = field(default_factory=list)


def load_snapshot(store: DocumentStore, kind: str) -> Snapshot:
    """The upfront full-collection reads a run is allowed to make."""
    companies = store.query(COMPANIES)
    bills = store.query(BILLS) if kind == BILLS else []
    logger.info(f"[load_snapshot] {len(companies)} companies, {len(bills)} bills on file")
    return Snapshot(companies=companies, bills=bills)


class IdAllocator:
    """Sequential ``prefix-NNN`` ids that never collide with existing ones."""

    def __init__(self, prefix: str, existing_ids: Iterable[str], collection_size: int, width: int = 3) -> None:
        self.prefix = prefix
        self.width = width
        self._taken = set(existing_ids)
        pattern = re.compile(rf"^{re.escape(prefix)}-(\d+)$")
        highest = 0
        for existing in self._taken:
            m = pattern.match(str(existing))
            if m:
                highest = max(highest, int(m.group(1)))
        self._next = max(collection_size, highest) + 1

    def next(self) -> str:
        while True:
            candidate = f"{self.prefix}-{self._next:0{self.width}d}"
            self._next += 1
            if candidate not in self._taken:
                self._taken.add(candidate)
                return candidate


@dataclass
class CompanyEntry:
    doc: dict[str, Any]
    created: bool
    total_pending: float = 0.0
    total_bills: int = 0

    @property
    def id(self) -> str:
        return self.doc["id"]


class CompanyIndex:
    def __init__(self, companies: Iterable[dict[str, Any]] = ()) -> None:
        self._entries: dict[str, CompanyEntry] = {}
        for doc in companies:
            key = name_key(doc.get("nameLower") or doc.get("name"))
            if not key or key in self._entries:
                continue
            self._entries[key] = CompanyEntry(
                doc=doc,
                created=False,
                total_pending=float(doc.get("totalPendingAmount") or 0),
                total_bills=int(doc.get("totalBills") or 0),
            )

    def get(self, key: str) -> CompanyEntry | None:
        return self._entries.get(key)

    def register(self, key: str, doc: dict[str, Any]) -> CompanyEntry:
        entry = CompanyEntry(doc=doc, created=True)
        self._entries[key] = entry
        return entry

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class ReconcileResult:
    kind: str
    batch: WriteBatch
    created: int = 0
    updated: int = 0
    skipped: int = 0
    companies_created: int = 0
    total_companies: int = 0
    warnings: list[str] = field(default_factory=list)

    def counts(self) -> dict[str, int]:
        return {
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "companiesCreated": self.companies_created,
        }


def bill_key(company_id: str, bill_no: str) -> str:
    return f"{company_id}_{(bill_no or '').strip().lower()}"


class Reconciliation:
    """State for one run: lookup tables, id allocators and the staged batch."""

    def __init__(self, kind: str, snapshot: Snapshot, *, now: datetime, id_width: int = 3) -> None:
        self.now = now
        self.result = ReconcileResult(kind=kind, batch=WriteBatch())
        self.index = CompanyIndex(snapshot.companies)
        self.company_ids = IdAllocator(
            COMPANY_ID_PREFIX,
            (doc.get("id") for doc in snapshot.companies),
            len(snapshot.companies),
            id_width,
        )
        self.bill_ids = IdAllocator(
            BILL_ID_PREFIX,
            (doc.get("id") for doc in snapshot.bills),
            len(snapshot.bills),
            id_width,
        )
        self.existing_bill_keys = {
            bill_key(doc.get("companyId", ""), doc.get("billNo", "")) for doc in snapshot.bills
        }
        self._touched_company_ids: set[str] = set()

    # ── companies ─────────────────────────────────────────────────────────

    def _new_company_doc(self, record: CompanyRecord, key: str) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "id": self.company_ids.next(),
            "name": record.name.strip(),
            "nameLower": key,
            "address": record.address,
            "city": record.city,
            "email": record.email,
            "phone": record.phone,
        }
        for optional_key in ("state", "pincode", "contactPerson", "gstNo", "panNo"):
            value = record.profile()[optional_key]
            if value:
                doc[optional_key] = value
        if record.payment_terms_days is not None:
            doc["paymentTermsDays"] = record.payment_terms_days
        if record.bank_details:
            doc["bankDetails"] = dict(record.bank_details)
        doc.update(
            {
                "totalPendingAmount": 0,
                "totalBills": 0,
                "autoRemindersEnabled": True,
                "createdAt": SERVER_TIMESTAMP,
            }
        )
        return doc

    def _incoming_changes(self, record: CompanyRecord, current: dict[str, Any]) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        for key, value in record.profile().items():
            if value and current.get(key) != value:
                changes[key] = value
        if record.payment_terms_days is not None and current.get("paymentTermsDays") != record.payment_terms_days:
            changes["paymentTermsDays"] = record.payment_terms_days
        if record.bank_details:
            existing_bank = current.get("bankDetails") or {}
            merged = {**existing_bank, **record.bank_details}
            if merged != existing_bank:
                changes["bankDetails"] = merged
        return changes

    def resolve_company(self, record: CompanyRecord) -> CompanyEntry:
        key = record.name_key
        entry = self.index.get(key)

        if entry is None:
            doc = self._new_company_doc(record, key)
            # The staged doc is the same object the lookup holds, so fills
            # from later rows land in the create itself.
            self.result.batch.set(COMPANIES, doc["id"], doc)
            self.result.companies_created += 1
            logger.debug(f"[reconcile] new company {doc['id']} {doc['name']!r}")
            return self.index.register(key, doc)

        changes = self._incoming_changes(record, entry.doc)
        if not changes:
            return entry

        if entry.created:
            for change_key, value in changes.items():
                if change_key == "bankDetails":
                    entry.doc["bankDetails"] = {**changes["bankDetails"], **(entry.doc.get("bankDetails") or {})}
                elif not entry.doc.get(change_key):
                    entry.doc[change_key] = value
            return entry

        entry.doc.update(changes)
        self.result.batch.update(COMPANIES, entry.id, {**changes, "updatedAt": SERVER_TIMESTAMP})
        self._touched_company_ids.add(entry.id)
        logger.debug(f"[reconcile] update company {entry.id}: {sorted(changes)}")
        return entry

    def add_companies(self, records: Sequence[CompanyRecord]) -> None:
        for record in records:
            if not record.name_key:
                continue
            before_created = self.result.companies_created
            self.resolve_company(record)
            if self.result.kind == COMPANIES and self.result.companies_created > before_created:
                self.result.created += 1
        if self.result.kind == COMPANIES:
            self.result.updated = len(self._touched_company_ids)

    # ── bills ─────────────────────────────────────────────────────────────

    def _new_bill_doc(self, record: BillRecord, entry: CompanyEntry) -> dict[str, Any]:
        bill_no = record.bill_no.strip()
        bill_date, warning = parse_bill_date(record.date, now=self.now)
        if warning is not None:
            message = f"Bill {bill_no or '[no bill no]'} ({entry.doc.get('name')}): {warning}"
            self.result.warnings.append(message)
            logger.warning(f"[reconcile] {message}")
        due_date = bill_date + timedelta(days=record.due_days)
        pending_amount = record.pending_amount or record.bill_amount

        return {
            "id": self.bill_ids.next(),
            "billNo": bill_no,
            "billNoLower": bill_no.lower(),
            "companyId": entry.id,
            "companyName": entry.doc.get("name", record.company_name),
            "billAmount": record.bill_amount,
            "pendingAmount": pending_amount,
            "balanceAmount": record.balance_amount or pending_amount,
            "dueDays": record.due_days,
            "dueDate": iso_utc(due_date),
            "date": record.date or "",
            "poNo": record.po_no or "",
            "type": record.type or "",
            "isReminderPaused": False,
            "reminderCount": 0,
            "lastReminderSent": None,
            "uploadedAt": iso_utc(self.now),
        }

    def add_bill_group(self, company_name: str, records: Sequence[BillRecord]) -> None:
        address = next((r.address for r in records if r.address), "")
        entry = self.resolve_company(CompanyRecord(name=company_name, address=address))

        pending_delta = 0.0
        new_bills = 0
        for record in records:
            key = bill_key(entry.id, record.bill_no)
            if key in self.existing_bill_keys:
                self.result.skipped += 1
                logger.debug(f"[reconcile] {ErrorKind.DUPLICATE_SKIP.value}: {key}")
                continue
            self.existing_bill_keys.add(key)

            doc = self._new_bill_doc(record, entry)
            self.result.batch.set(BILLS, doc["id"], doc)
            pending_delta += doc["pendingAmount"]
            new_bills += 1
            self.result.created += 1

        if new_bills:
            entry.total_pending = round(entry.total_pending + pending_delta, 2)
            entry.total_bills += new_bills
            self.result.batch.update(
                COMPANIES,
                entry.id,
                {"totalPendingAmount": entry.total_pending, "totalBills": entry.total_bills},
            )
            if not entry.created:
                self._touched_company_ids.add(entry.id)

    def add_bills(self, records: Sequence[BillRecord], extra_companies: Sequence[CompanyRecord] = ()) -> None:
        grouped: OrderedDict[str, list[BillRecord]] = OrderedDict()
        display_names: dict[str, str] = {}
        for record in records:
            key = record.company_key
            if not key:
                continue
            display_names.setdefault(key, record.company_name.strip())
            grouped.setdefault(key, []).append(record)

        for key, group in grouped.items():
            self.add_bill_group(display_names[key], group)
        for company in extra_companies:
            self.resolve_company(company)

        self.result.total_companies = len(grouped) + len(extra_companies)
        self.result.updated = len(self._touched_company_ids)


def reconcile_companies(
    records: Sequence[CompanyRecord],
    snapshot: Snapshot,
    *,
    now: datetime | None = None,
    id_width: int = 3,
) -> ReconcileResult:
    run = Reconciliation(COMPANIES, snapshot, now=now or datetime.now(timezone.utc), id_width=id_width)
    run.add_companies(records)
    run.result.total_companies = len(records)
    return run.result


def reconcile_bills(
    records: Sequence[BillRecord],
    snapshot: Snapshot,
    *,
    now: datetime | None = None,
    id_width: int = 3,
    extra_companies: Sequence[CompanyRecord] = (),
) -> ReconcileResult:
    run = Reconciliation(BILLS, snapshot, now=now or datetime.now(timezone.utc), id_width=id_width)
    run.add_bills(records, extra_companies)
    return run.result


def reconcile(
    records: Sequence[BillRecord] | Sequence[CompanyRecord],
    kind: str,
    snapshot: Snapshot,
    *,
    now: datetime | None = None,
    id_width: int = 3,
    extra_companies: Sequence[CompanyRecord] = (),
) -> ReconcileResult:
    if kind not in KINDS:
        raise ValueError(f"Unknown ingestion kind {kind!r}; expected one of {KINDS}")
    if kind == BILLS:
        result = reconcile_bills(records, snapshot, now=now, id_width=id_width, extra_companies=extra_companies)
    else:
        result = reconcile_companies(records, snapshot, now=now, id_width=id_width)

    logger.info(
        f"[reconcile] {kind}: created={result.created} updated={result.updated} "
        f"skipped={result.skipped} new companies={result.companies_created} "
        f"writes staged={len(result.batch)}"
    )
    return result


def commit(
    store: DocumentStore,
    result: ReconcileResult,
    *,
    total_records: int,
    now: datetime | None = None,
    audit_collection: str = AUDIT_COLLECTION,
) -> dict[str, Any]:
    """Commit the staged batch once, then append the audit record."""
    now = now or datetime.now(timezone.utc)
    store.commit(result.batch, now=now)
    audit = build_audit_record(
        collection_name=result.kind,
        uploaded_at=iso_utc(now),
        total_records=total_records,
        created=result.created,
        updated=result.updated,
        skipped=result.skipped,
        total_companies=result.total_companies if result.kind == BILLS else None,
    )
    audit_id = store.add(audit_collection, audit, now=now)
    logger.info(f"[commit] {len(result.batch)} write(s) committed; audit {audit_id} appended to {audit_collection}")
    return store.get(audit_collection, audit_id)
