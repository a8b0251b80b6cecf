"""
Schema layer for FlexiBase.

Tables carry an ordered list of typed fields. The hidden "id" field is
always first and can never be renamed or deleted. Field renames and
deletions are propagated into every record in the same pass.
"""

from .store import FieldSpec, SchemaStore, coerce_field
from .types import (
    ID_FIELD_NAME,
    FieldDef,
    FieldType,
    Record,
    Table,
    TableMeta,
    default_fields,
    id_field,
)

__all__ = [
    "FieldType",
    "FieldDef",
    "FieldSpec",
    "TableMeta",
    "Table",
    "Record",
    "ID_FIELD_NAME",
    "id_field",
    "default_fields",
    "coerce_field",
    "SchemaStore",
]
