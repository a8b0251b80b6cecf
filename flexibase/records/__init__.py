"""
Record layer for FlexiBase: CRUD, validation and grouping helpers.
"""

from .store import UNGROUPED, RecordStore, UpdateMethod
from .validate import ValidationResult, normalize_value, validate_field

__all__ = [
    "RecordStore",
    "UpdateMethod",
    "UNGROUPED",
    "ValidationResult",
    "validate_field",
    "normalize_value",
]
