"""
store.py: transactional document store used by the reconciliation engine.

The engine only needs four things from persistence: read one document, read
a whole collection, append a document, and commit a batch of set/update
writes atomically. MemoryStore backs tests and dry runs; JsonFileStore keeps
everything in one JSON file that is replaced atomically on each commit.
"""

from __future__ import annotations

import copy
import json
import os
import tempfile
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger

from bill_ingest.cells import iso_utc
from bill_ingest.contracts import utc_now_iso
from bill_ingest.errors import CommitFailure

SET = "set"
UPDATE = "update"


class _ServerTimestamp:
    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


# Placeholder resolved to the commit time when the batch is applied.
SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass
class WriteOp:
    action: str
    collection: str
    doc_id: str
    data: dict[str, Any]


class WriteBatch:
    def __init__(self) -> None:
        self.operations: list[WriteOp] = []

    def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        self.operations.append(WriteOp(SET, collection, doc_id, data))

    def update(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        self.operations.append(WriteOp(UPDATE, collection, doc_id, data))

    def __len__(self) -> int:
        return len(self.operations)


def _resolve(value: Any, timestamp: str) -> Any:
    if value is SERVER_TIMESTAMP:
        return timestamp
    if isinstance(value, dict):
        return {key: _resolve(item, timestamp) for key, item in value.items()}
    if isinstance(value, list):
        return [_resolve(item, timestamp) for item in value]
    return value


class DocumentStore:
    """Base store: subclasses provide _read() and _write()."""

    def _read(self) -> dict[str, dict[str, dict[str, Any]]]:
        raise NotImplementedError

    def _write(self, data: dict[str, dict[str, dict[str, Any]]]) -> None:
        raise NotImplementedError

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        doc = self._read().get(collection, {}).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    def query(self, collection: str, **equals: Any) -> list[dict[str, Any]]:
        docs = self._read().get(collection, {})
        return [
            copy.deepcopy(doc)
            for doc in docs.values()
            if all(doc.get(key) == value for key, value in equals.items())
        ]

    def batch(self) -> WriteBatch:
        return WriteBatch()

    def commit(self, batch: WriteBatch, *, now: datetime | None = None) -> None:
        """Apply every operation or none of them."""
        timestamp = iso_utc(now) if now else utc_now_iso()
        data = copy.deepcopy(self._read())
        try:
            for op in batch.operations:
                docs = data.setdefault(op.collection, {})
                resolved = _resolve(op.data, timestamp)
                if op.action == SET:
                    docs[op.doc_id] = resolved
                elif op.action == UPDATE:
                    if op.doc_id not in docs:
                        raise CommitFailure(f"No document to update: {op.collection}/{op.doc_id}")
                    docs[op.doc_id].update(resolved)
                else:
                    raise CommitFailure(f"Unknown write action: {op.action}")
            self._write(data)
        except CommitFailure:
            raise
        except (OSError, TypeError, ValueError) as exc:
            raise CommitFailure(f"Batch commit failed: {exc}") from exc
        logger.debug(f"[commit] applied {len(batch)} write(s)")

    def add(self, collection: str, document: dict[str, Any], *, now: datetime | None = None) -> str:
        doc_id = uuid.uuid4().hex[:20]
        batch = self.batch()
        batch.set(collection, doc_id, document)
        self.commit(batch, now=now)
        return doc_id


class MemoryStore(DocumentStore):
    def __init__(self, initial: dict[str, dict[str, dict[str, Any]]] | None = None) -> None:
        self._data = copy.deepcopy(initial) if initial else {}

    def _read(self) -> dict[str, dict[str, dict[str, Any]]]:
        return self._data

    def _write(self, data: dict[str, dict[str, dict[str, Any]]]) -> None:
        self._data = data

    def seed(self, collection: str, documents: list[dict[str, Any]]) -> None:
        docs = self._data.setdefault(collection, {})
        for document in documents:
            docs[document["id"]] = copy.deepcopy(document)


class JsonFileStore(DocumentStore):
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _read(self) -> dict[str, dict[str, dict[str, Any]]]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Store file is not valid JSON: {self.path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise ValueError(f"Store root must be a JSON object: {self.path}")
        return payload

    def _write(self, data: dict[str, dict[str, dict[str, Any]]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.stem}.",
            suffix=self.path.suffix,
            dir=str(self.path.parent),
        )
        os.close(fd)
        temp_path = Path(tmp_name)
        try:
            temp_path.write_text(
                json.dumps(data, indent=2, ensure_ascii=False, sort_keys=True),
                encoding="utf-8",
            )
            os.replace(temp_path, self.path)
        finally:
            if temp_path.exists():
                temp_path.unlink()
