"""
Field value validation for FlexiBase records.

Record values are untyped at rest; the owning table's field list gives the
expected kind. Validation is a write-time concern for callers (forms, inline
editors) and returns a structured result rather than raising.

Invariants:
    - validate_field never raises
    - The required check runs before any type-specific check
    - Empty means None, "" or missing; 0 and False are values

How to change safely:
    - Add a branch to _TYPE_CHECKS for each new FieldType that needs one
    - Keep error messages stable, views display them verbatim
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Optional
from urllib.parse import urlparse

from ..errors import ValidationError
from ..ids import format_timestamp
from ..schema.types import FieldDef, FieldType

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one value.

    Attributes:
        valid: Whether the value is acceptable
        error: Human-readable reason when invalid
    """

    valid: bool
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.valid


VALID = ValidationResult(valid=True)


def is_empty(value: Any) -> bool:
    return value is None or value == ""


def is_valid_email(value: Any) -> bool:
    return isinstance(value, str) and EMAIL_PATTERN.match(value) is not None


def is_valid_url(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return bool(parsed.scheme) and bool(parsed.netloc)


def is_valid_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    if isinstance(value, str):
        try:
            float(value)
        except ValueError:
            return False
        return True
    return False


def parse_date(value: Any) -> Optional[date]:
    """Parse an ISO date or datetime value into a calendar date.

    Returns:
        The date, or None if value is not a valid date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        if len(value) == 10:
            return date.fromisoformat(value)
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


_TYPE_CHECKS: dict[FieldType, tuple[Callable[[Any], bool], str]] = {
    FieldType.EMAIL: (is_valid_email, "Invalid email format"),
    FieldType.URL: (is_valid_url, "Invalid URL format"),
    FieldType.NUMBER: (is_valid_number, "Must be a number"),
    FieldType.DATE: (lambda v: parse_date(v) is not None, "Invalid date format"),
}


def validate_field(field: FieldDef, value: Any) -> ValidationResult:
    """Validate a single value against a field definition.

    Args:
        field: Field definition
        value: Candidate value

    Returns:
        ValidationResult; never raises
    """
    if field.required and is_empty(value):
        return ValidationResult(False, f"{field.name} is required")
    if is_empty(value):
        return VALID

    check = _TYPE_CHECKS.get(field.type)
    if check is not None:
        predicate, message = check
        if not predicate(value):
            return ValidationResult(False, message)

    return VALID


def normalize_value(field_name: str, value: Any) -> Any:
    """Reduce a value to the storable scalar variant.

    Dates and datetimes become ISO strings; str, int, float, bool and None
    pass through.

    Raises:
        ValidationError: If value is not a scalar
    """
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.isoformat()
        return format_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    raise ValidationError(
        f"Field '{field_name}' has unsupported value type {type(value).__name__}",
        field_name=field_name,
    )
