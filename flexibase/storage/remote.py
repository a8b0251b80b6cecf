"""
Remote document backend over a blob store.

RemoteBackend adapts a BlobStore (upload-by-name / download-by-id) to the
whole-document StorageBackend protocol. It remembers the identifier of the
last blob it uploaded or was configured with; pulls read that blob. Without
one, get() asks the blob store for the current blob under blob_name.

Invariants:
    - get() returns None only when no blob exists under blob_name
    - blob_id changes after a successful upload or when locate() finds one
    - Transport failures propagate as TransportError; nothing local is touched
"""

from __future__ import annotations

import logging
from typing import Optional

from ..document import Document, dumps, loads
from ..errors import CorruptDataError
from .base import BlobStore

logger = logging.getLogger(__name__)

DEFAULT_BLOB_NAME = "flexibase.json"


class RemoteBackend:
    """Whole-document storage in a remote blob service.

    Attributes:
        blob_store: Underlying blob service
        blob_name: Name documents are uploaded under
        blob_id: Identifier of the last known remote copy
    """

    def __init__(
        self,
        blob_store: BlobStore,
        blob_name: str = DEFAULT_BLOB_NAME,
        blob_id: Optional[str] = None,
        name: str = "remote",
    ) -> None:
        self.blob_store = blob_store
        self.blob_name = blob_name
        self.blob_id = blob_id
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    async def get(self) -> Optional[Document]:
        """Download the last known remote document.

        Returns:
            None if no blob is known or stored under blob_name

        Raises:
            TransportError: If the blob service fails
            CorruptDataError: If the blob is not a document
        """
        if self.blob_id is None:
            self.blob_id = await self.blob_store.locate(self.blob_name)
            if self.blob_id is None:
                return None
            logger.info("Located remote document", extra={"blob_id": self.blob_id})
        data = await self.blob_store.download(self.blob_id)
        try:
            return loads(data)
        except CorruptDataError as e:
            raise CorruptDataError(
                f"Remote blob {self.blob_id} is not a document: {e}", backend=self.name
            ) from e

    async def put(self, document: Document) -> bool:
        """Upload the document and remember the new blob id.

        Raises:
            TransportError: If the blob service fails
        """
        payload = dumps(document).encode("utf-8")
        self.blob_id = await self.blob_store.upload(self.blob_name, payload)
        logger.debug("Remote document stored", extra={"blob_id": self.blob_id})
        return True

    async def close(self) -> None:
        await self.blob_store.close()
