"""
Base protocols for FlexiBase storage backends.

This module defines the two capabilities the persistence layer is built on:
- StorageBackend: get/put of the whole serialized Document
- BlobStore: upload-by-name / download-by-id of opaque bytes, plus lookup of
  the current blob under a name; the contract any remote blob service must
  satisfy

Invariants:
    - put() returns only after the document is durably written (local) or
      acknowledged by the remote service
    - A failed put() never corrupts previously stored data
    - download(upload(name, data)) returns exactly data

How to change safely:
    - Protocol changes require updating all implementations
    - Add new methods as optional with default implementations
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Optional, Protocol, runtime_checkable

from ..document import Document
from ..errors import CorruptDataError, StorageError, TransportError

__all__ = [
    "StorageBackend",
    "BlobStore",
    "StorageError",
    "TransportError",
    "CorruptDataError",
]


@runtime_checkable
class StorageBackend(Protocol):
    """Protocol for whole-document storage.

    Durability contract:
        - Local backends: put() returns after the bytes are on disk
        - Remote backends: put() returns after the service acknowledged

    Example:
        >>> backend = LocalFileBackend("~/.flexibase/flexibase.json")
        >>> await backend.put(document)
        >>> restored = await backend.get()
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short backend name for logs and status ("local", "s3", ...)."""
        ...

    @abstractmethod
    async def get(self) -> Optional[Document]:
        """Load the stored document.

        Returns:
            The document, or None if nothing has been stored yet

        Raises:
            TransportError: If a remote backend is unreachable
            CorruptDataError: If the stored payload is not a document
        """
        ...

    @abstractmethod
    async def put(self, document: Document) -> bool:
        """Store the document, replacing the previous one.

        Returns:
            True once the write is durable

        Raises:
            TransportError: If a remote backend is unreachable or rejects it
            StorageError: For other write failures
        """
        ...


@runtime_checkable
class BlobStore(Protocol):
    """Protocol for remote blob services.

    No partial or range semantics are required.
    """

    @abstractmethod
    async def upload(self, name: str, data: bytes) -> str:
        """Upload bytes under a name.

        Returns:
            Opaque identifier for later download

        Raises:
            TransportError: If the upload fails
        """
        ...

    @abstractmethod
    async def download(self, blob_id: str) -> bytes:
        """Download the bytes previously uploaded under blob_id.

        Raises:
            TransportError: If the download fails or the blob is unknown
        """
        ...

    @abstractmethod
    async def locate(self, name: str) -> Optional[str]:
        """Find the blob currently stored under a name.

        Returns:
            Identifier of the most recent upload under name, or None

        Raises:
            TransportError: If the service cannot be reached
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release client resources."""
        ...
