"""
Unit tests for the document model.

Tests cover:
- JSON serialization round-trip
- Payload validation
- Last-write-wins reconciliation
"""

import json

import pytest

from flexibase.activity.log import ActivityLog
from flexibase.document import DOCUMENT_VERSION, Document, dumps, loads, reconcile
from flexibase.errors import CorruptDataError
from flexibase.records.store import RecordStore
from flexibase.schema.store import SchemaStore


def _populated() -> Document:
    document = Document.empty()
    schema = SchemaStore(document, ActivityLog(document.activities))
    records = RecordStore(document, schema, schema.activity_log)
    table_id = schema.create_table("Tasks")
    record_id = records.create_record(table_id, {"Name": "Buy milk", "Status": "Todo"})
    records.update_record(table_id, record_id, {"Status": "Done"}, method="inline_edit")
    records.move_record(table_id, record_id, "Status", "Done", "Todo")
    schema.add_field(table_id, {"name": "Owner", "type": "text"})
    other_id = schema.create_table("Contacts", [{"name": "Email", "type": "email"}])
    records.create_record(other_id, {"Email": "a@example.com", "Score": 1.5, "Active": True})
    return document


class TestDocument:
    """Tests for Document serialization."""

    def test_empty_document(self):
        document = Document.empty()
        data = document.to_dict()
        assert data["tables"] == {}
        assert data["activities"] == []
        assert data["meta"]["version"] == DOCUMENT_VERSION
        assert data["meta"]["lastModified"].endswith("Z")

    def test_round_trip(self):
        """loads(dumps(d)) preserves tables, fields, records and activities."""
        document = _populated()

        restored = loads(dumps(document))

        assert restored == document
        assert list(restored.tables) == list(document.tables)
        assert [a.id for a in restored.activities] == [a.id for a in document.activities]

    def test_round_trip_is_textually_stable(self):
        document = _populated()
        text = dumps(document, indent=2)
        assert dumps(loads(text), indent=2) == text

    def test_loads_bytes(self):
        document = _populated()
        assert loads(dumps(document).encode("utf-8")) == document

    @pytest.mark.parametrize(
        "payload",
        [
            "not json",
            "[]",
            json.dumps({"tables": {}}),
            json.dumps({"meta": {}}),
            json.dumps({"tables": [], "meta": {}}),
        ],
    )
    def test_loads_rejects_bad_payloads(self, payload):
        with pytest.raises(CorruptDataError):
            loads(payload)

    def test_loads_rejects_malformed_table(self):
        payload = {"tables": {"tbl_1": {"fields": []}}, "meta": {}}
        with pytest.raises(CorruptDataError, match="Malformed"):
            loads(json.dumps(payload))

    def test_missing_activities_defaults_empty(self):
        payload = {"tables": {}, "meta": {"version": "2.0.0", "lastModified": "2024-01-01T00:00:00.000Z"}}
        document = loads(json.dumps(payload))
        assert document.activities == []
        assert document.meta.last_modified == "2024-01-01T00:00:00.000Z"


class TestReconcile:
    """Tests for last-write-wins reconciliation."""

    def _with_modified(self, timestamp):
        document = Document.empty()
        document.meta.last_modified = timestamp
        return document

    def test_later_remote_wins(self):
        local = self._with_modified("2024-01-01T00:00:00.000Z")
        remote = self._with_modified("2024-01-01T00:00:00.001Z")
        assert reconcile(local, remote) is remote

    def test_later_local_wins(self):
        local = self._with_modified("2024-06-01T00:00:00.000Z")
        remote = self._with_modified("2024-01-01T00:00:00.000Z")
        assert reconcile(local, remote) is local

    def test_tie_keeps_local(self):
        local = self._with_modified("2024-01-01T00:00:00.000Z")
        remote = self._with_modified("2024-01-01T00:00:00.000Z")
        assert reconcile(local, remote) is local

    def test_winner_is_verbatim(self):
        """The losing side's edits are not merged in."""
        local = _populated()
        local.meta.last_modified = "2024-01-01T00:00:00.000Z"
        remote = Document.empty()
        remote.meta.last_modified = "2024-01-02T00:00:00.000Z"

        winner = reconcile(local, remote)

        assert winner.tables == {}
        assert winner.activities == []

    def test_compares_instants_not_strings(self):
        local = self._with_modified("2024-01-01T01:00:00+01:00")
        remote = self._with_modified("2024-01-01T00:30:00.000Z")
        assert reconcile(local, remote) is remote
