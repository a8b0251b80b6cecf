"""
Storage backends for FlexiBase.

This module provides whole-document persistence supporting:
- A local JSON file (always used)
- A remote blob service, S3 in production
- In-memory backends (for testing)

Invariants:
    - put() returns only after the write is durable or acknowledged
    - Remote failures surface as TransportError
    - Malformed payloads surface as CorruptDataError
"""

from .base import BlobStore, CorruptDataError, StorageBackend, StorageError, TransportError
from .local import LocalFileBackend
from .memory import InMemoryBackend, InMemoryBlobStore
from .remote import DEFAULT_BLOB_NAME, RemoteBackend
from .s3 import S3BlobStore

__all__ = [
    # Protocols and errors
    "StorageBackend",
    "BlobStore",
    "StorageError",
    "TransportError",
    "CorruptDataError",
    # Implementations
    "LocalFileBackend",
    "RemoteBackend",
    "S3BlobStore",
    "InMemoryBackend",
    "InMemoryBlobStore",
    "DEFAULT_BLOB_NAME",
]
