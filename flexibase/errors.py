"""
Error types for FlexiBase.

This module defines the exceptions raised by the core:
- FlexiBaseError: Base exception
- ValidationError: Record values failed validation
- InvalidArgumentError: Bad argument to a schema operation
- StorageError, TransportError, CorruptDataError: persistence failures

Invariants:
    - All errors inherit from FlexiBaseError
    - Errors include context for debugging
    - "Not found" is a False/None return, never an exception
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class FlexiBaseError(Exception):
    """Base exception for all FlexiBase errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "FLEXIBASE_ERROR"
        self.details = details or {}


class ValidationError(FlexiBaseError):
    """Record validation failed.

    Raised when:
    - A visible required field is missing or empty
    - A value is not one of the storable scalar kinds
    """

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        errors: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field_name, "errors": errors or []},
        )
        self.field_name = field_name
        self.errors = errors or []


class InvalidArgumentError(FlexiBaseError):
    """A schema operation received an unusable argument.

    Raised when:
    - A table name is empty
    - A field lacks a name or type
    - A field name collides case-insensitively with an existing one
    - The hidden id field is targeted for removal or rename
    """

    def __init__(self, message: str, argument: Optional[str] = None) -> None:
        super().__init__(message, code="INVALID_ARGUMENT", details={"argument": argument})
        self.argument = argument


class StorageError(FlexiBaseError):
    """Base exception for storage backend operations."""

    def __init__(self, message: str, code: str = "STORAGE_ERROR", backend: Optional[str] = None):
        super().__init__(message, code=code, details={"backend": backend})
        self.backend = backend


class TransportError(StorageError):
    """Remote backend unreachable or rejected the request.

    The local copy is already written when this is raised; the sync is retried
    on the next debounce window or manual trigger.
    """

    def __init__(self, message: str, backend: Optional[str] = None) -> None:
        super().__init__(message, code="TRANSPORT_ERROR", backend=backend)


class CorruptDataError(StorageError):
    """Persisted or imported payload is not a valid document.

    Raised before any destructive replace happens.
    """

    def __init__(self, message: str, backend: Optional[str] = None) -> None:
        super().__init__(message, code="CORRUPT_DATA", backend=backend)
