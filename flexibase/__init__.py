"""
FlexiBase - a local-first, schema-flexible personal database.

This package implements the FlexiBase core:
- Tables with user-defined, typed fields and free-form records
- An append-only activity log describing every mutation
- A single JSON document persisted locally on every write
- Optional replication of that document to S3 with last-write-wins sync

Architecture:
    caller -> Database -> SchemaStore / RecordStore -> Document (+ ActivityLog)
                  |
                  +-> LocalFileBackend.put()      (every mutation)
                  +-> SyncEngine.enqueue()        (debounced remote push)
                  +-> EventChannel.publish()      (change notification)

Invariants:
    - The Document is the unit of persistence and sync
    - Field names are unique case-insensitively within a table
    - Every mutation appends at least one activity
    - Local writes never wait on the remote

How to change safely:
    - Bump DOCUMENT_VERSION when the persisted shape changes
    - Keep the wire names of activities stable; exported backups depend on them
"""

from ._version import __version__
from .database import Database
from .document import Document, reconcile
from .errors import (
    CorruptDataError,
    FlexiBaseError,
    InvalidArgumentError,
    StorageError,
    TransportError,
    ValidationError,
)
from .events import ChangeAction, ChangeEvent, ChangeType, EventChannel

__all__ = [
    "__version__",
    # Facade
    "Database",
    "Document",
    "reconcile",
    # Events
    "ChangeEvent",
    "ChangeType",
    "ChangeAction",
    "EventChannel",
    # Errors
    "FlexiBaseError",
    "ValidationError",
    "InvalidArgumentError",
    "StorageError",
    "TransportError",
    "CorruptDataError",
]
