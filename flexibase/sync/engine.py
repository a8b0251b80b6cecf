"""
Remote sync engine for FlexiBase.

The SyncEngine replicates the single document to a remote backend. Local
writes never wait on it: the Database calls enqueue() after each save and
the engine pushes once the debounce window has been quiet.

Sync protocol (manual_sync):
    1. Pull the remote copy under the last known blob id, or the blob the
       store currently holds under blob_name
    2. No remote copy: push the local document to establish one
    3. Otherwise reconcile() the two; the later lastModified wins whole
    4. Local winner is pushed so the remote converges; a remote winner is
       handed to on_remote_win, which may decline it when local writes
       landed meanwhile, in which case the local document is pushed

Invariants:
    - A debounced push always serializes the document current at push time
    - At most one push or sync talks to the remote at a time
    - Transport failures are recorded in status and never raised from push()
    - A manual_sync() that overlaps a running one is skipped, not queued

How to change safely:
    - Keep reconcile() the only place a winner is chosen
    - Do not hold the Database lock while awaiting the remote
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from ..config import SyncConfig
from ..document import Document, reconcile
from ..errors import StorageError, TransportError
from ..ids import now_iso
from ..storage.base import StorageBackend

logger = logging.getLogger(__name__)

DocumentProvider = Callable[[], Document]
RemoteWinHandler = Callable[[Document], Awaitable[bool]]

LOCAL = "local"
REMOTE = "remote"


@dataclass(frozen=True)
class SyncResult:
    """Outcome of a manual or periodic sync.

    Attributes:
        success: Whether the sync completed
        winner: "local" or "remote" when a winner was chosen
        pushed: Whether the local document was uploaded
        skipped: True when another sync was already running
        error: Failure message when success is False
    """

    success: bool
    winner: Optional[str] = None
    pushed: bool = False
    skipped: bool = False
    error: Optional[str] = None


class SyncEngine:
    """Debounced push, pull and last-write-wins reconciliation.

    Attributes:
        local: Local backend the document is persisted to
        remote: Remote backend, or None for local-only operation
        config: Sync configuration
        on_remote_win: Called with the remote document when it wins; returns
            False to keep the local document instead

    Example:
        >>> engine = SyncEngine(lambda: db.document, local, remote, SyncConfig())
        >>> engine.enqueue()          # after a local save
        >>> await engine.flush()      # on shutdown
    """

    def __init__(
        self,
        document_provider: DocumentProvider,
        local: StorageBackend,
        remote: Optional[StorageBackend] = None,
        config: Optional[SyncConfig] = None,
        on_remote_win: Optional[RemoteWinHandler] = None,
    ) -> None:
        self._provider = document_provider
        self.local = local
        self.remote = remote
        self.config = config or SyncConfig()
        self.on_remote_win = on_remote_win

        self._remote_lock = asyncio.Lock()
        self._timer: Optional[asyncio.Task] = None
        self._periodic: Optional[asyncio.Task] = None
        self._pending = False
        self._syncing = False
        self._last_sync: Optional[str] = None
        self._last_error: Optional[str] = None
        self._push_count = 0

    @property
    def enabled(self) -> bool:
        return self.remote is not None

    @property
    def pending(self) -> bool:
        return self._pending

    @property
    def status(self) -> dict[str, Any]:
        return {
            "backend": self.remote.name if self.remote is not None else self.local.name,
            "syncing": self._syncing,
            "connected": self.remote is not None and self._last_error is None,
            "pending": self._pending,
            "last_sync": self._last_sync,
            "last_error": self._last_error,
            "blob_id": getattr(self.remote, "blob_id", None),
        }

    def stats(self) -> dict[str, Any]:
        return {**self.status, "push_count": self._push_count, "periodic": self._periodic is not None}

    # Debounce

    def enqueue(self) -> None:
        """Schedule a push after the debounce window, restarting the window."""
        if self.remote is None:
            return
        if self._timer is not None:
            self._timer.cancel()
        self._pending = True
        self._timer = asyncio.create_task(self._debounced_push())

    async def _debounced_push(self) -> None:
        await asyncio.sleep(self.config.debounce_seconds)
        # Detach before pushing so a new enqueue() cannot cancel an upload in flight.
        self._timer = None
        await self.push()

    async def flush(self) -> bool:
        """Push immediately if a debounced push is waiting."""
        if self._timer is not None:
            timer, self._timer = self._timer, None
            timer.cancel()
            try:
                await timer
            except asyncio.CancelledError:
                pass
        if not self._pending:
            return True
        return await self.push()

    # Transport

    async def push(self) -> bool:
        """Upload the current document.

        Returns:
            False if the remote could not be reached
        """
        if self.remote is None:
            return False
        async with self._remote_lock:
            return await self._push_locked()

    async def _push_locked(self) -> bool:
        document = self._provider()
        try:
            await self.remote.put(document)
        except TransportError as e:
            self._last_error = str(e)
            logger.warning(
                "Remote push failed",
                extra={"backend": self.remote.name, "error": str(e)},
            )
            return False

        self._push_count += 1
        self._pending = self._timer is not None
        self._last_sync = now_iso()
        self._last_error = None
        logger.info(
            "Pushed document",
            extra={
                "backend": self.remote.name,
                "last_modified": document.meta.last_modified,
                "blob_id": getattr(self.remote, "blob_id", None),
            },
        )
        return True

    async def pull(self) -> Optional[Document]:
        """Download the remote document.

        Returns:
            None when no remote copy is known

        Raises:
            TransportError: If the remote cannot be reached
            CorruptDataError: If the remote copy is not a document
        """
        if self.remote is None:
            return None
        return await self.remote.get()

    # Sync

    async def manual_sync(self) -> SyncResult:
        """Pull, reconcile and push.

        Returns:
            SyncResult naming the winning side
        """
        if self.remote is None:
            return SyncResult(success=True, winner=LOCAL)
        if self._syncing:
            logger.debug("Sync already in progress, skipping")
            return SyncResult(success=False, skipped=True)

        self._syncing = True
        try:
            async with self._remote_lock:
                return await self._sync_locked()
        finally:
            self._syncing = False

    async def _sync_locked(self) -> SyncResult:
        try:
            remote_document = await self.pull()
        except StorageError as e:
            self._last_error = str(e)
            logger.warning("Remote pull failed", extra={"error": str(e)})
            return SyncResult(success=False, error=str(e))

        if remote_document is None:
            pushed = await self._push_locked()
            return SyncResult(
                success=pushed, winner=LOCAL, pushed=pushed, error=None if pushed else self._last_error
            )

        local_document = self._provider()
        winner = reconcile(local_document, remote_document)

        if winner is remote_document:
            if await self._accept_remote(remote_document):
                self._last_sync = now_iso()
                self._last_error = None
                logger.info(
                    "Remote document won",
                    extra={"last_modified": remote_document.meta.last_modified},
                )
                return SyncResult(success=True, winner=REMOTE)
            logger.info("Local document changed during sync, keeping it")

        pushed = await self._push_locked()
        return SyncResult(
            success=pushed, winner=LOCAL, pushed=pushed, error=None if pushed else self._last_error
        )

    async def _accept_remote(self, document: Document) -> bool:
        if self.on_remote_win is not None:
            return await self.on_remote_win(document)
        await self.local.put(document)
        return True

    # Periodic

    def start_periodic(self, interval_seconds: Optional[float] = None) -> bool:
        """Start a background task calling manual_sync() every interval.

        Returns:
            False if disabled (no remote or a non-positive interval)
        """
        interval = (
            interval_seconds if interval_seconds is not None else self.config.auto_sync_interval_seconds
        )
        if self.remote is None or interval <= 0:
            return False
        if self._periodic is not None:
            logger.warning("Periodic sync already running")
            return True
        self._periodic = asyncio.create_task(self._periodic_loop(interval))
        logger.info("Started periodic sync", extra={"interval_seconds": interval})
        return True

    async def _periodic_loop(self, interval: float) -> None:
        try:
            while True:
                await asyncio.sleep(interval)
                result = await self.manual_sync()
                if not result.success and not result.skipped:
                    logger.warning("Periodic sync failed", extra={"error": result.error})
        except asyncio.CancelledError:
            logger.info("Periodic sync cancelled")
            raise

    async def stop(self) -> None:
        """Stop periodic sync and flush any pending push."""
        if self._periodic is not None:
            task, self._periodic = self._periodic, None
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self.flush()
