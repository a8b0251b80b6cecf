"""
Local JSON file backend for FlexiBase.

The document is stored as one JSON file. Writes go to a temporary file in the
same directory which is then renamed over the target, so a crash mid-write
leaves the previous document intact.

Invariants:
    - put() always succeeds unless the filesystem fails
    - get() returns None until the first put()
    - The file on disk is either the previous or the new document, never a mix
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from ..document import Document, dumps, loads
from ..errors import CorruptDataError, StorageError

logger = logging.getLogger(__name__)


class LocalFileBackend:
    """Whole-document storage in a local JSON file.

    Attributes:
        path: Location of the JSON file

    Example:
        >>> backend = LocalFileBackend("/tmp/flexibase.json")
        >>> await backend.put(Document.empty())
        True
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path).expanduser()
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return "local"

    async def get(self) -> Optional[Document]:
        """Load the document from disk.

        Raises:
            CorruptDataError: If the file is not a valid document
        """
        async with self._lock:
            if not self.path.exists():
                return None
            text = await asyncio.get_running_loop().run_in_executor(None, self._read)
        try:
            return loads(text)
        except CorruptDataError as e:
            logger.error(
                "Stored document is corrupt",
                extra={"path": str(self.path), "error": str(e)},
            )
            raise CorruptDataError(str(e), backend=self.name) from e

    async def put(self, document: Document) -> bool:
        """Atomically replace the file with the serialized document.

        Raises:
            StorageError: If the file cannot be written
        """
        text = dumps(document)
        async with self._lock:
            try:
                await asyncio.get_running_loop().run_in_executor(None, self._write, text)
            except OSError as e:
                raise StorageError(
                    f"Failed to write {self.path}: {e}", backend=self.name
                ) from e
        logger.debug("Document written", extra={"path": str(self.path), "bytes": len(text)})
        return True

    def _read(self) -> str:
        return self.path.read_text(encoding="utf-8")

    def _write(self, text: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        finally:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
