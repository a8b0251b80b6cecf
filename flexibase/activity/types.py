"""
Activity types for the audit log.

An Activity is an immutable entry describing one past mutation. The shape of
the optional attributes depends on the activity type:

    record.created   recordId, data
    record.updated   recordId, field, previousValue, newValue, method
    cell.edited      recordId, field, previousValue, newValue, method
    record.deleted   recordId, deletedData
    record.moved     recordId, field, fromColumn, toColumn
    field.added      field
    field.updated    oldField, newField
    field.deleted    fieldName, field
    table.created    data (name and fields)
    table.updated    data (changed meta)
    table.deleted    deletedData (table snapshot)

Invariants:
    - Activities are never mutated after they are appended
    - Serialized keys are camelCase; absent attributes are omitted

How to change safely:
    - Add new ActivityType members; never rename persisted values
    - New optional attributes must default to None
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from enum import Enum
from typing import Any

from ..ids import parse_timestamp


class ActivityType(Enum):
    """Kinds of mutations recorded in the activity log."""

    RECORD_CREATED = "record.created"
    RECORD_UPDATED = "record.updated"
    CELL_EDITED = "cell.edited"
    RECORD_DELETED = "record.deleted"
    RECORD_MOVED = "record.moved"
    FIELD_ADDED = "field.added"
    FIELD_UPDATED = "field.updated"
    FIELD_DELETED = "field.deleted"
    TABLE_CREATED = "table.created"
    TABLE_UPDATED = "table.updated"
    TABLE_DELETED = "table.deleted"


# Python attribute name -> persisted key
_WIRE_NAMES = {
    "table_id": "tableId",
    "table_name": "tableName",
    "record_id": "recordId",
    "previous_value": "previousValue",
    "new_value": "newValue",
    "deleted_data": "deletedData",
    "field_name": "fieldName",
    "old_field": "oldField",
    "new_field": "newField",
    "from_column": "fromColumn",
    "to_column": "toColumn",
}

# Attributes whose absence and None are distinguishable in the log
# (a cell edited from empty records previousValue=None).
_ALWAYS_SERIALIZED = {"previous_value", "new_value"}


@dataclass(frozen=True)
class Activity:
    """One entry in the activity log.

    Attributes:
        id: Unique activity identifier (act_...)
        timestamp: ISO-8601 UTC time of the mutation
        actor: Who performed it (single-user placeholder)
        type: The kind of mutation
        table_id: Table the mutation touched
        table_name: Table name at the time of the mutation
    """

    id: str
    timestamp: str
    actor: str
    type: ActivityType
    table_id: str
    table_name: str
    record_id: str | None = None
    field: Any = None
    previous_value: Any = None
    new_value: Any = None
    data: dict[str, Any] | None = None
    deleted_data: dict[str, Any] | None = None
    field_name: str | None = None
    old_field: dict[str, Any] | None = None
    new_field: dict[str, Any] | None = None
    from_column: Any = None
    to_column: Any = None
    method: str | None = None

    @property
    def moment(self) -> datetime:
        """Timestamp as an aware datetime."""
        return parse_timestamp(self.timestamp)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted camelCase form."""
        result: dict[str, Any] = {}
        changed_cell = self.type in (ActivityType.RECORD_UPDATED, ActivityType.CELL_EDITED)
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None and not (changed_cell and f.name in _ALWAYS_SERIALIZED):
                continue
            if f.name == "type":
                value = value.value
            result[_WIRE_NAMES.get(f.name, f.name)] = value
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Activity:
        """Create from the persisted form. Unknown keys are ignored."""
        reverse = {wire: attr for attr, wire in _WIRE_NAMES.items()}
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            attr = reverse.get(key, key)
            if attr in known:
                kwargs[attr] = value
        kwargs["type"] = ActivityType(data["type"])
        kwargs.setdefault("table_name", "")
        return cls(**kwargs)
