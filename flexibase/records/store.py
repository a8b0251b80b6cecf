"""
Record store for FlexiBase.

The RecordStore owns per-table record collections. It provides:
- Record create/update/delete with required-field validation
- The compound move used by board views
- Search, grouping by select value and grouping by calendar date

Every successful mutation appends activities to the ActivityLog: one for
create and delete, one per changed field for update, and an additional
record.moved entry for move.

Invariants:
    - A record's id is generated, immutable and never taken from the payload
    - A record failing the required check is never inserted
    - Missing tables/records return None on create and False on update,
      delete and move
    - Values of known fields are reduced to the scalar value variant;
      unknown keys pass through unvalidated

How to change safely:
    - Validate before mutating; never leave a partially written record
    - Keep activity payloads as copies, never references to live records
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..activity.log import ActivityLog
from ..activity.types import ActivityType
from ..errors import ValidationError
from ..ids import generate_id, now_iso
from ..schema.store import SchemaStore
from ..schema.types import ID_FIELD_NAME, FieldDef, FieldType, Record, Table
from .validate import ValidationResult, is_empty, normalize_value, parse_date, validate_field

if TYPE_CHECKING:
    from ..document import Document

logger = logging.getLogger(__name__)

UNGROUPED = "Ungrouped"


class UpdateMethod(Enum):
    """How an update was made; selects the activity type."""

    MODAL_EDIT = "modal_edit"
    INLINE_EDIT = "inline_edit"
    DRAG_DROP = "drag_drop"


class RecordStore:
    """Records of every table within a document.

    Example:
        >>> records = RecordStore(document, schema, activity_log)
        >>> record_id = records.create_record(table_id, {"Name": "Buy milk"})
        >>> records.update_record(table_id, record_id, {"Name": "Buy oat milk"})
        True
    """

    def __init__(
        self,
        document: Document,
        schema: SchemaStore,
        activity_log: ActivityLog,
    ) -> None:
        self.document = document
        self.schema = schema
        self.activity_log = activity_log

    def rebind(self, document: Document) -> None:
        self.document = document

    # Reads

    def get_records(self, table_id: str, search: str | None = None) -> list[Record]:
        """Records of a table, optionally filtered by a search term.

        The search is a case-insensitive substring match over all values.
        """
        table = self.document.tables.get(table_id)
        if table is None:
            return []
        if not search:
            return list(table.records)
        term = search.lower()
        return [
            r
            for r in table.records
            if any(v is not None and term in str(v).lower() for v in r.values())
        ]

    def get_record(self, table_id: str, record_id: str) -> Record | None:
        table = self.document.tables.get(table_id)
        return table.get_record(record_id) if table else None

    # Mutations

    def create_record(self, table_id: str, values: Mapping[str, Any]) -> str | None:
        """Insert a record.

        Args:
            table_id: Table identifier
            values: Field name -> value; an "id" key is ignored

        Returns:
            The generated record id, or None if the table does not exist

        Raises:
            ValidationError: If a visible required field is empty
        """
        table = self.schema.get_table(table_id)
        if table is None:
            return None
        supplied = {k: v for k, v in values.items() if k != ID_FIELD_NAME}

        missing = [
            f.name
            for f in table.fields
            if f.required and not f.hidden and is_empty(supplied.get(f.name))
        ]
        if missing:
            raise ValidationError(
                f'Field "{missing[0]}" is required',
                field_name=missing[0],
                errors=[f"{name} is required" for name in missing],
            )

        record_id = generate_id("rec")
        normalized = self._normalize(table, supplied)
        record: Record = {ID_FIELD_NAME: record_id, **normalized}
        table.records.append(record)
        table.meta.modified = now_iso()

        self.activity_log.log_activity(
            ActivityType.RECORD_CREATED,
            table_id=table_id,
            table_name=table.meta.name,
            record_id=record_id,
            # Supplied values after scalar normalization; date objects are stored as ISO strings
            data=dict(normalized),
        )
        logger.debug("Created record", extra={"table_id": table_id, "record_id": record_id})
        return record_id

    def update_record(
        self,
        table_id: str,
        record_id: str,
        updates: Mapping[str, Any],
        method: UpdateMethod | str = UpdateMethod.MODAL_EDIT,
    ) -> bool:
        """Merge updates into a record.

        One activity is appended per changed field: cell.edited for inline
        edits, record.updated otherwise.

        Args:
            table_id: Table identifier
            record_id: Record identifier
            updates: Field name -> new value; an "id" key is ignored
            method: How the update was made

        Returns:
            False if the table or record does not exist
        """
        table = self.document.tables.get(table_id)
        if table is None:
            return False
        record = table.get_record(record_id)
        if record is None:
            return False

        method = UpdateMethod(method)
        normalized = self._normalize(
            table, {k: v for k, v in updates.items() if k != ID_FIELD_NAME}
        )
        changes = [
            (name, record.get(name), value)
            for name, value in normalized.items()
            if record.get(name) != value or name not in record
        ]

        record.update(normalized)
        record[ID_FIELD_NAME] = record_id
        if not changes:
            return True

        table.meta.modified = now_iso()
        activity_type = (
            ActivityType.CELL_EDITED
            if method == UpdateMethod.INLINE_EDIT
            else ActivityType.RECORD_UPDATED
        )
        for name, previous, new in changes:
            self.activity_log.log_activity(
                activity_type,
                table_id=table_id,
                table_name=table.meta.name,
                record_id=record_id,
                field=name,
                previous_value=previous,
                new_value=new,
                method=method.value,
            )
        return True

    def delete_record(self, table_id: str, record_id: str) -> bool:
        """Remove a record, keeping a snapshot in the activity log.

        Returns:
            False if the table or record does not exist
        """
        table = self.document.tables.get(table_id)
        if table is None:
            return False
        record = table.get_record(record_id)
        if record is None:
            return False

        table.records.remove(record)
        table.meta.modified = now_iso()

        self.activity_log.log_activity(
            ActivityType.RECORD_DELETED,
            table_id=table_id,
            table_name=table.meta.name,
            record_id=record_id,
            deleted_data=dict(record),
        )
        return True

    def move_record(
        self,
        table_id: str,
        record_id: str,
        field: str,
        from_value: Any,
        to_value: Any,
    ) -> bool:
        """Move a record between board columns.

        Updates the field through update_record (drag_drop) and appends a
        record.moved entry recording the column transition.

        Returns:
            False if the table or record does not exist
        """
        if not self.update_record(
            table_id, record_id, {field: to_value}, method=UpdateMethod.DRAG_DROP
        ):
            return False

        table = self.document.tables[table_id]
        self.activity_log.log_activity(
            ActivityType.RECORD_MOVED,
            table_id=table_id,
            table_name=table.meta.name,
            record_id=record_id,
            field=field,
            from_column=from_value,
            to_column=to_value,
        )
        return True

    # Validation

    def validate_field(self, field: FieldDef, value: Any) -> ValidationResult:
        return validate_field(field, value)

    def validate_record(self, table_id: str, values: Mapping[str, Any]) -> dict[str, str]:
        """Validate values against every visible field of a table.

        Returns:
            Field name -> error message for each invalid field; empty if the
            table does not exist
        """
        table = self.schema.get_table(table_id)
        if table is None:
            return {}
        errors: dict[str, str] = {}
        for f in table.visible_fields():
            result = validate_field(f, values.get(f.name))
            if not result.valid and result.error:
                errors[f.name] = result.error
        return errors

    # Grouping

    def get_records_by_group(self, table_id: str, field_name: str) -> dict[str, list[Record]]:
        """Partition records by the value of a field.

        Select fields get one group per declared option, even if empty.
        Records with no value land in "Ungrouped"; values outside the
        options get their own group.
        """
        table = self.document.tables.get(table_id)
        if table is None:
            return {}
        field = table.get_field(field_name)
        if field is None:
            return {}

        groups: dict[str, list[Record]] = {}
        if field.type == FieldType.SELECT and field.options:
            for option in field.options:
                groups[option] = []
        for record in table.records:
            value = record.get(field_name)
            key = UNGROUPED if is_empty(value) else str(value)
            groups.setdefault(key, []).append(record)
        return groups

    def get_records_by_date(
        self,
        table_id: str,
        field_name: str,
        year: int,
        month: int,
    ) -> dict[str, list[Record]]:
        """Records whose date field falls in a calendar month, by ISO date.

        Args:
            table_id: Table identifier
            field_name: Date field to read
            year: Calendar year
            month: Calendar month, 1-12
        """
        table = self.document.tables.get(table_id)
        if table is None:
            return {}

        by_date: dict[str, list[Record]] = {}
        for record in table.records:
            day = parse_date(record.get(field_name))
            if day is None or (day.year, day.month) != (year, month):
                continue
            by_date.setdefault(day.isoformat(), []).append(record)
        return by_date

    def _normalize(self, table: Table, values: Mapping[str, Any]) -> dict[str, Any]:
        known = {f.name for f in table.fields}
        return {
            name: normalize_value(name, value) if name in known else value
            for name, value in values.items()
        }

