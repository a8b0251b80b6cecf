"""
The FlexiBase document: the unit of persistence and sync.

Persisted form (JSON):
    {
      "tables": {"<tableId>": {"meta": {...}, "fields": [...], "records": [...]}},
      "activities": [...],
      "meta": {"version": "2.0.0", "lastModified": "<iso>"}
    }

Invariants:
    - Exactly one Document exists per deployment
    - loads(dumps(d)) == d (table, field and activity order preserved)
    - Reconciliation is whole-document last-write-wins; the later
      meta.lastModified wins verbatim, ties keep the local copy

How to change safely:
    - Bump DOCUMENT_VERSION when the persisted shape changes
    - Keep validate_payload() ahead of any destructive replace
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass, field
from typing import Any

from .activity.types import Activity
from .errors import CorruptDataError
from .ids import now_iso, parse_timestamp
from .schema.types import Table

logger = logging.getLogger(__name__)

DOCUMENT_VERSION = "2.0.0"
REQUIRED_KEYS = ("tables", "meta")


@dataclass
class DocumentMeta:
    """Document version and last modification time."""

    version: str = DOCUMENT_VERSION
    last_modified: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {"version": self.version, "lastModified": self.last_modified}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DocumentMeta:
        return cls(
            version=data.get("version", DOCUMENT_VERSION),
            last_modified=data.get("lastModified") or now_iso(),
        )


@dataclass
class Document:
    """Entire persisted state: tables, activity log and metadata."""

    tables: dict[str, Table] = field(default_factory=dict)
    activities: list[Activity] = field(default_factory=list)
    meta: DocumentMeta = field(default_factory=DocumentMeta)

    @classmethod
    def empty(cls) -> Document:
        """First-run document with no tables."""
        return cls()

    def touch(self) -> None:
        """Stamp meta.lastModified with the current time."""
        self.meta.last_modified = now_iso()

    def copy(self) -> Document:
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tables": {table_id: t.to_dict() for table_id, t in self.tables.items()},
            "activities": [a.to_dict() for a in self.activities],
            "meta": self.meta.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Document:
        """Create from the persisted form.

        Raises:
            CorruptDataError: If required keys are missing or malformed
        """
        validate_payload(data)
        try:
            tables = {
                table_id: Table.from_dict(table_id, table_data)
                for table_id, table_data in data["tables"].items()
            }
            activities = [Activity.from_dict(a) for a in data.get("activities") or []]
            meta = DocumentMeta.from_dict(data["meta"])
        except (KeyError, TypeError, ValueError) as e:
            raise CorruptDataError(f"Malformed document: {e}") from e
        return cls(tables=tables, activities=activities, meta=meta)


def validate_payload(data: Any) -> None:
    """Check the top-level shape of a document payload.

    Raises:
        CorruptDataError: If data is not an object with tables and meta
    """
    if not isinstance(data, dict):
        raise CorruptDataError("Document must be a JSON object")
    missing = [key for key in REQUIRED_KEYS if key not in data]
    if missing:
        raise CorruptDataError(f"Document is missing required keys: {missing}")
    if not isinstance(data["tables"], dict) or not isinstance(data["meta"], dict):
        raise CorruptDataError("Document 'tables' and 'meta' must be objects")


def dumps(document: Document, indent: int | None = None) -> str:
    """Serialize a document to JSON text."""
    return json.dumps(document.to_dict(), indent=indent, ensure_ascii=False)


def loads(text: str | bytes) -> Document:
    """Parse JSON text into a document.

    Raises:
        CorruptDataError: If text is not valid JSON or not a document
    """
    try:
        if isinstance(text, bytes):
            text = text.decode("utf-8")
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise CorruptDataError(f"Failed to parse document JSON: {e}") from e
    return Document.from_dict(data)


def reconcile(local: Document, remote: Document) -> Document:
    """Pick the document with the later lastModified, in its entirety.

    No field- or record-level merge happens: the losing side's edits are
    discarded. On equal timestamps the local document is kept.
    """
    local_ts = parse_timestamp(local.meta.last_modified)
    remote_ts = parse_timestamp(remote.meta.last_modified)
    winner = remote if remote_ts > local_ts else local
    logger.debug(
        "Reconciled documents",
        extra={
            "local_modified": local.meta.last_modified,
            "remote_modified": remote.meta.last_modified,
            "winner": "remote" if winner is remote else "local",
        },
    )
    return winner
