"""
Core type definitions for the FlexiBase schema layer.

This module defines the foundational types for user-defined tables:
- FieldType: Closed set of field kinds
- FieldDef: One typed column definition
- TableMeta: Name and timestamps of a table
- Table: Field list plus record collection

Invariants:
    - fields[0] of every table is the hidden "id" field of type ID
    - Field names are unique case-insensitively within a table
    - SELECT fields carry at least one option; colors are parallel to options
    - options/colors exist only on SELECT fields

How to change safely:
    - Add new FieldType members at the end; never rename existing values,
      they are persisted verbatim in documents and backups
    - Keep to_dict()/from_dict() symmetric so export/import round-trips

Example:
    >>> from flexibase.schema.types import FieldDef, FieldType
    >>> status = FieldDef(
    ...     name="Status",
    ...     type=FieldType.SELECT,
    ...     required=True,
    ...     options=("Todo", "Done"),
    ... )
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field as dataclass_field
from enum import Enum
from typing import Any, Union

ID_FIELD_NAME = "id"

# Closed value variant for record values at rest. Dates are stored as ISO strings.
Value = Union[str, int, float, bool, None]
Record = dict[str, Any]


class FieldType(Enum):
    """Supported field kinds.

    These drive validation rules and the view layer's editors.
    """

    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    SELECT = "select"
    DATE = "date"
    CHECKBOX = "checkbox"
    EMAIL = "email"
    URL = "url"
    ID = "id"

    @classmethod
    def from_str(cls, value: str) -> FieldType:
        """Convert string representation to FieldType.

        Args:
            value: String name of the field type

        Returns:
            Corresponding FieldType enum value

        Raises:
            ValueError: If value is not a valid field type
        """
        for kind in cls:
            if kind.value == value:
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid field type '{value}'. Valid types: {valid}")


@dataclass(frozen=True)
class FieldDef:
    """Definition of a single field within a table.

    Attributes:
        name: Field name, unique case-insensitively within the table
        type: The kind of value the field holds
        required: Whether a record must carry a non-empty value
        options: Allowed values if type is SELECT
        colors: Display colors parallel to options (SELECT only)
        hidden: Whether the field is hidden from field management

    Invariants:
        - name is never empty
        - SELECT fields have at least one option
        - colors, when present, has the same length as options
    """

    name: str
    type: FieldType
    required: bool = False
    options: tuple[str, ...] | None = None
    colors: tuple[str, ...] | None = None
    hidden: bool = False

    def __post_init__(self) -> None:
        """Validate field definition."""
        if not self.name:
            raise ValueError("Field name cannot be empty")
        if self.type == FieldType.SELECT:
            if not self.options:
                raise ValueError(f"options required for select field '{self.name}'")
            if self.colors is not None and len(self.colors) != len(self.options):
                raise ValueError(
                    f"colors must be parallel to options for select field '{self.name}'"
                )
        elif self.options is not None or self.colors is not None:
            raise ValueError(f"options are only allowed on select fields, not '{self.name}'")

    @property
    def is_id(self) -> bool:
        return self.type == FieldType.ID

    def matches(self, name: str) -> bool:
        """Case-insensitive name comparison."""
        return self.name.lower() == name.lower()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for serialization."""
        result: dict[str, Any] = {
            "name": self.name,
            "type": self.type.value,
            "required": self.required,
        }
        if self.options is not None:
            result["options"] = list(self.options)
        if self.colors is not None:
            result["colors"] = list(self.colors)
        if self.hidden:
            result["hidden"] = True
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FieldDef:
        """Create from dictionary representation.

        Raises:
            ValueError: If name or type is missing or invalid
        """
        if not data.get("name") or not data.get("type"):
            raise ValueError("Field requires both 'name' and 'type'")
        kind = FieldType.from_str(data["type"])
        options = data.get("options")
        colors = data.get("colors")
        return cls(
            name=data["name"],
            type=kind,
            required=bool(data.get("required", False)),
            options=tuple(options) if options is not None and kind == FieldType.SELECT else None,
            colors=tuple(colors) if colors is not None and kind == FieldType.SELECT else None,
            hidden=bool(data.get("hidden", False)),
        )


def id_field() -> FieldDef:
    """The hidden id field every table starts with."""
    return FieldDef(name=ID_FIELD_NAME, type=FieldType.ID, required=True, hidden=True)


def default_fields() -> list[FieldDef]:
    """Field template used when a table is created without fields."""
    return [
        FieldDef(name="Name", type=FieldType.TEXT, required=True),
        FieldDef(name="Description", type=FieldType.TEXTAREA),
        FieldDef(
            name="Status",
            type=FieldType.SELECT,
            required=True,
            options=("Todo", "In Progress", "Done"),
        ),
        FieldDef(name="Date", type=FieldType.DATE),
    ]


@dataclass
class TableMeta:
    """Name and timestamps of a table (ISO-8601 UTC strings)."""

    name: str
    created: str
    modified: str

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "created": self.created, "modified": self.modified}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TableMeta:
        return cls(name=data["name"], created=data["created"], modified=data["modified"])


@dataclass
class Table:
    """A named collection of fields and records.

    Attributes:
        id: Opaque, stable table identifier
        meta: Name and timestamps
        fields: Ordered field definitions, hidden id field first
        records: Records as field-name -> value mappings
    """

    id: str
    meta: TableMeta
    fields: list[FieldDef] = dataclass_field(default_factory=list)
    records: list[Record] = dataclass_field(default_factory=list)

    @property
    def name(self) -> str:
        return self.meta.name

    def get_field(self, name: str) -> FieldDef | None:
        """Get a field by its exact name."""
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def find_field_index(self, name: str) -> int:
        """Index of the field with this exact name, or -1."""
        for index, f in enumerate(self.fields):
            if f.name == name:
                return index
        return -1

    def has_field_named(self, name: str, exclude: str | None = None) -> bool:
        """Whether a field matches name case-insensitively.

        Args:
            name: Candidate name
            exclude: Exact name of a field to ignore (the field being renamed)
        """
        return any(f.matches(name) for f in self.fields if f.name != exclude)

    def visible_fields(self) -> list[FieldDef]:
        return [f for f in self.fields if not f.hidden]

    def get_record(self, record_id: str) -> Record | None:
        for record in self.records:
            if record.get(ID_FIELD_NAME) == record_id:
                return record
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted form (the id is the key in the tables map)."""
        return {
            "meta": self.meta.to_dict(),
            "fields": [f.to_dict() for f in self.fields],
            "records": [dict(r) for r in self.records],
        }

    @classmethod
    def from_dict(cls, table_id: str, data: dict[str, Any]) -> Table:
        return cls(
            id=table_id,
            meta=TableMeta.from_dict(data["meta"]),
            fields=[FieldDef.from_dict(f) for f in data.get("fields", [])],
            records=[dict(r) for r in data.get("records", [])],
        )
