"""
Schema store for FlexiBase.

The SchemaStore owns table and field definitions. It provides:
- Table creation (with a default field template), rename and deletion
- Field add, update (with rename propagation) and delete
- Lookup of tables and fields

Every successful mutation appends exactly one activity. The store mutates the
in-memory Document; persisting it is the Database facade's job.

Invariants:
    - fields[0] is the hidden id field; it cannot be removed or renamed
    - Field names stay unique case-insensitively within a table
    - A rename moves every record value to the new key in the same pass as
      the definition change, so no record references a missing field
    - Failed operations leave the table untouched and log nothing
    - A missing table or field is a False return, never an exception

How to change safely:
    - Validate everything before the first mutation
    - Pair each new mutating operation with an ActivityType
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any, Union

from ..activity.log import ActivityLog
from ..activity.types import ActivityType
from ..errors import InvalidArgumentError
from ..ids import generate_id, now_iso
from .types import ID_FIELD_NAME, FieldDef, Table, TableMeta, default_fields, id_field

if TYPE_CHECKING:
    from ..document import Document

logger = logging.getLogger(__name__)

FieldSpec = Union[FieldDef, Mapping[str, Any]]


def coerce_field(spec: FieldSpec) -> FieldDef:
    """Turn a FieldDef or its dict form into a FieldDef.

    Raises:
        InvalidArgumentError: If name or type is missing or invalid
    """
    if isinstance(spec, FieldDef):
        return spec
    try:
        return FieldDef.from_dict(dict(spec))
    except ValueError as e:
        raise InvalidArgumentError(str(e), argument="field") from e


class SchemaStore:
    """Table and field definitions within a document.

    Example:
        >>> schema = SchemaStore(document, activity_log)
        >>> table_id = schema.create_table("Tasks")
        >>> schema.add_field(table_id, {"name": "Owner", "type": "text"})
    """

    def __init__(self, document: Document, activity_log: ActivityLog) -> None:
        self.document = document
        self.activity_log = activity_log

    def rebind(self, document: Document) -> None:
        """Operate on a different document (after import or a remote win)."""
        self.document = document

    # Lookups

    def get_table(self, table_id: str) -> Table | None:
        return self.document.tables.get(table_id)

    def list_tables(self) -> list[dict[str, Any]]:
        """Tables as {id, name, created, modified} summaries."""
        return [{"id": table_id, **t.meta.to_dict()} for table_id, t in self.document.tables.items()]

    def get_fields(self, table_id: str) -> list[FieldDef]:
        """Visible fields of a table; empty if the table does not exist."""
        table = self.get_table(table_id)
        return table.visible_fields() if table else []

    def get_field(self, table_id: str, field_name: str) -> FieldDef | None:
        table = self.get_table(table_id)
        return table.get_field(field_name) if table else None

    # Tables

    def create_table(self, name: str, fields: Iterable[FieldSpec] | None = None) -> str:
        """Create a table.

        Args:
            name: Table name (non-empty)
            fields: Field definitions; the default template is used if empty

        Returns:
            The new table id

        Raises:
            InvalidArgumentError: If name is empty or fields are inconsistent
        """
        if not name or not name.strip():
            raise InvalidArgumentError("Table name cannot be empty", argument="name")

        user_fields = [coerce_field(f) for f in fields or []] or default_fields()
        seen: set[str] = set()
        for f in user_fields:
            key = f.name.lower()
            if key == ID_FIELD_NAME or f.is_id:
                raise InvalidArgumentError(
                    "The id field is added automatically", argument=f.name
                )
            if key in seen:
                raise InvalidArgumentError(
                    f"Duplicate field name '{f.name}'", argument=f.name
                )
            seen.add(key)

        table_id = generate_id("tbl")
        now = now_iso()
        table = Table(
            id=table_id,
            meta=TableMeta(name=name, created=now, modified=now),
            fields=[id_field(), *user_fields],
            records=[],
        )
        self.document.tables[table_id] = table

        self.activity_log.log_activity(
            ActivityType.TABLE_CREATED,
            table_id=table_id,
            table_name=name,
            data={"name": name, "fields": [f.to_dict() for f in table.fields]},
        )
        logger.info("Created table", extra={"table_id": table_id, "table_name": name})
        return table_id

    def update_table_meta(self, table_id: str, name: str | None = None) -> bool:
        """Rename a table.

        Returns:
            False if the table does not exist

        Raises:
            InvalidArgumentError: If the new name is empty
        """
        table = self.get_table(table_id)
        if table is None:
            return False
        if name is not None and not name.strip():
            raise InvalidArgumentError("Table name cannot be empty", argument="name")
        previous = table.meta.name
        if name is not None:
            table.meta.name = name
        table.meta.modified = now_iso()

        self.activity_log.log_activity(
            ActivityType.TABLE_UPDATED,
            table_id=table_id,
            table_name=table.meta.name,
            previous_value=previous,
            new_value=table.meta.name,
        )
        return True

    def delete_table(self, table_id: str) -> bool:
        """Delete a table with all its records.

        Returns:
            False if the table does not exist
        """
        table = self.document.tables.pop(table_id, None)
        if table is None:
            return False

        self.activity_log.log_activity(
            ActivityType.TABLE_DELETED,
            table_id=table_id,
            table_name=table.meta.name,
            deleted_data=table.to_dict(),
        )
        logger.info("Deleted table", extra={"table_id": table_id})
        return True

    # Fields

    def add_field(self, table_id: str, field: FieldSpec) -> bool:
        """Append a field to a table.

        Returns:
            False if the table does not exist

        Raises:
            InvalidArgumentError: If name/type is missing or the name collides
        """
        table = self.get_table(table_id)
        if table is None:
            return False
        new_field = coerce_field(field)
        if new_field.is_id:
            raise InvalidArgumentError("Tables have exactly one id field", argument=new_field.name)
        if table.has_field_named(new_field.name):
            raise InvalidArgumentError(
                f"Field '{new_field.name}' already exists", argument=new_field.name
            )

        table.fields.append(new_field)
        table.meta.modified = now_iso()

        self.activity_log.log_activity(
            ActivityType.FIELD_ADDED,
            table_id=table_id,
            table_name=table.meta.name,
            field=new_field.to_dict(),
        )
        return True

    def update_field(self, table_id: str, old_name: str, new_field: FieldSpec) -> bool:
        """Replace a field definition, renaming record keys if needed.

        Args:
            table_id: Table identifier
            old_name: Current exact field name
            new_field: Replacement definition (may carry a new name)

        Returns:
            False if the table or old_name does not exist

        Raises:
            InvalidArgumentError: If old_name is the id field or the new name collides
        """
        table = self.get_table(table_id)
        if table is None:
            return False
        index = table.find_field_index(old_name)
        if index == -1:
            return False
        if table.fields[index].is_id:
            raise InvalidArgumentError("The id field cannot be modified", argument=old_name)

        replacement = coerce_field(new_field)
        if replacement.is_id:
            raise InvalidArgumentError("Fields cannot become id fields", argument=replacement.name)
        if table.has_field_named(replacement.name, exclude=old_name):
            raise InvalidArgumentError(
                f"Field '{replacement.name}' already exists", argument=replacement.name
            )

        old_field = table.fields[index]
        table.fields[index] = replacement
        if replacement.name != old_name:
            for record in table.records:
                if old_name in record:
                    record[replacement.name] = record.pop(old_name)
        table.meta.modified = now_iso()

        self.activity_log.log_activity(
            ActivityType.FIELD_UPDATED,
            table_id=table_id,
            table_name=table.meta.name,
            old_field=old_field.to_dict(),
            new_field=replacement.to_dict(),
        )
        return True

    def delete_field(self, table_id: str, field_name: str) -> bool:
        """Remove a field and strip its key from every record.

        Returns:
            False if the table or field does not exist

        Raises:
            InvalidArgumentError: If field_name is the id field
        """
        if field_name == ID_FIELD_NAME:
            raise InvalidArgumentError("The id field cannot be deleted", argument=field_name)
        table = self.get_table(table_id)
        if table is None:
            return False
        index = table.find_field_index(field_name)
        if index == -1:
            return False
        if table.fields[index].is_id:
            raise InvalidArgumentError("The id field cannot be deleted", argument=field_name)

        removed = table.fields.pop(index)
        for record in table.records:
            record.pop(field_name, None)
        table.meta.modified = now_iso()

        self.activity_log.log_activity(
            ActivityType.FIELD_DELETED,
            table_id=table_id,
            table_name=table.meta.name,
            field_name=field_name,
            field=removed.to_dict(),
        )
        return True
