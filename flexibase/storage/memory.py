"""
In-memory storage implementations for testing.

This module provides memory-backed backends for:
- Unit tests
- Integration tests of the sync engine without a network
- Local development without a blob service

Invariants:
    - All data is lost on process exit
    - Documents are stored serialized, so callers never share live objects
      with the backend
    - Same contracts as the production backends

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interfaces compatible with StorageBackend and BlobStore
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from typing import Dict, List, Optional

from ..document import Document, dumps, loads
from ..errors import TransportError

logger = logging.getLogger(__name__)


class InMemoryBackend:
    """StorageBackend holding one serialized document in memory.

    Attributes:
        latency: Artificial delay per put(), in seconds

    Example:
        >>> backend = InMemoryBackend()
        >>> await backend.put(document)
        >>> (await backend.get()) == document
        True
    """

    def __init__(self, document: Optional[Document] = None, latency: float = 0.0) -> None:
        self.latency = latency
        self._payload: Optional[str] = dumps(document) if document is not None else None
        self._failure: Optional[Exception] = None
        self.put_count = 0

    @property
    def name(self) -> str:
        return "memory"

    async def get(self) -> Optional[Document]:
        self._raise_injected()
        if self._payload is None:
            return None
        return loads(self._payload)

    async def put(self, document: Document) -> bool:
        if self.latency:
            await asyncio.sleep(self.latency)
        self._raise_injected()
        self._payload = dumps(document)
        self.put_count += 1
        return True

    # Testing helpers

    def inject_failure(self, exception: Exception) -> None:
        """Make the next get() or put() raise exception."""
        self._failure = exception

    def _raise_injected(self) -> None:
        if self._failure is not None:
            failure, self._failure = self._failure, None
            raise failure


class InMemoryBlobStore:
    """BlobStore keeping uploaded blobs in a dict.

    Blob ids are derived from the name, upload time and content hash, so each
    upload yields a new id the way object-versioned services do.

    Attributes:
        latency: Artificial delay per call, in seconds
    """

    def __init__(self, latency: float = 0.0) -> None:
        self.latency = latency
        self._blobs: Dict[str, bytes] = {}
        self._uploads: List[str] = []
        self._latest: Dict[str, str] = {}
        self._failures: List[Exception] = []
        self._lock = asyncio.Lock()

    async def upload(self, name: str, data: bytes) -> str:
        await self._before_call()
        digest = hashlib.sha256(data).hexdigest()[:12]
        async with self._lock:
            blob_id = f"{name}@{int(time.time() * 1000)}-{len(self._uploads)}-{digest}"
            self._blobs[blob_id] = bytes(data)
            self._uploads.append(blob_id)
            self._latest[name] = blob_id
        logger.debug("Blob uploaded", extra={"blob_id": blob_id, "bytes": len(data)})
        return blob_id

    async def download(self, blob_id: str) -> bytes:
        await self._before_call()
        try:
            return self._blobs[blob_id]
        except KeyError:
            raise TransportError(f"Unknown blob: {blob_id}", backend="memory") from None

    async def locate(self, name: str) -> Optional[str]:
        await self._before_call()
        return self._latest.get(name)

    async def close(self) -> None:
        pass

    # Testing helpers

    @property
    def upload_count(self) -> int:
        return len(self._uploads)

    @property
    def latest_blob_id(self) -> Optional[str]:
        return self._uploads[-1] if self._uploads else None

    def put_blob(self, blob_id: str, data: bytes) -> None:
        """Store bytes under a fixed id, as another device would."""
        self._blobs[blob_id] = bytes(data)

    def inject_failure(self, exception: Optional[Exception] = None, count: int = 1) -> None:
        """Make the next count calls raise (TransportError by default)."""
        failure = exception or TransportError("Injected transport failure", backend="memory")
        self._failures.extend([failure] * count)

    async def _before_call(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)
        if self._failures:
            raise self._failures.pop(0)
