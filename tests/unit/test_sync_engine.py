"""
Unit tests for the sync engine.

Tests cover:
- Debounce coalescing and current-state pushes
- Transport failure handling and status
- Manual sync: establish, local win, remote win, skip on overlap
- Periodic sync lifecycle
"""

import asyncio

import pytest

from flexibase.config import SyncConfig
from flexibase.document import Document, loads
from flexibase.storage.memory import InMemoryBackend, InMemoryBlobStore
from flexibase.storage.remote import RemoteBackend
from flexibase.sync.engine import SyncEngine

DEBOUNCE = 0.05


def _document(timestamp):
    document = Document.empty()
    document.meta.last_modified = timestamp
    return document


class Holder:
    """Mutable current-document slot standing in for the Database."""

    def __init__(self, document):
        self.document = document
        self.replaced = []

    def __call__(self):
        return self.document

    async def accept(self, document):
        self.replaced.append(document)
        self.document = document
        return True


class TestSyncEngine:
    """Tests for SyncEngine."""

    @pytest.fixture
    def blobs(self):
        return InMemoryBlobStore()

    @pytest.fixture
    def remote(self, blobs):
        return RemoteBackend(blobs)

    @pytest.fixture
    def holder(self):
        return Holder(_document("2024-01-01T00:00:00.000Z"))

    @pytest.fixture
    def engine(self, holder, remote):
        return SyncEngine(
            holder,
            InMemoryBackend(),
            remote,
            SyncConfig(remote_enabled=True, debounce_seconds=DEBOUNCE),
            on_remote_win=holder.accept,
        )

    @pytest.mark.asyncio
    async def test_enqueue_coalesces_into_one_push(self, engine, blobs):
        for _ in range(5):
            engine.enqueue()
            await asyncio.sleep(DEBOUNCE / 5)

        assert blobs.upload_count == 0
        assert engine.pending

        await asyncio.sleep(DEBOUNCE * 3)

        assert blobs.upload_count == 1
        assert not engine.pending

    @pytest.mark.asyncio
    async def test_push_carries_state_at_flush_time(self, engine, holder, blobs):
        engine.enqueue()
        holder.document = _document("2024-05-05T00:00:00.000Z")

        await asyncio.sleep(DEBOUNCE * 3)

        pushed = loads(await blobs.download(blobs.latest_blob_id))
        assert pushed.meta.last_modified == "2024-05-05T00:00:00.000Z"

    @pytest.mark.asyncio
    async def test_flush_pushes_immediately(self, engine, blobs):
        engine.enqueue()

        assert await engine.flush() is True

        assert blobs.upload_count == 1
        await asyncio.sleep(DEBOUNCE * 3)
        assert blobs.upload_count == 1

    @pytest.mark.asyncio
    async def test_flush_without_pending_is_noop(self, engine, blobs):
        assert await engine.flush() is True
        assert blobs.upload_count == 0

    @pytest.mark.asyncio
    async def test_push_failure_is_recorded_not_raised(self, engine, blobs):
        blobs.inject_failure()

        assert await engine.push() is False

        status = engine.status
        assert status["connected"] is False
        assert "Injected" in status["last_error"]

        assert await engine.push() is True
        assert engine.status["last_error"] is None
        assert engine.status["last_sync"] is not None

    @pytest.mark.asyncio
    async def test_failed_debounced_push_stays_pending(self, engine, blobs):
        blobs.inject_failure()
        engine.enqueue()

        await asyncio.sleep(DEBOUNCE * 3)

        assert engine.pending
        assert await engine.flush() is True
        assert not engine.pending

    @pytest.mark.asyncio
    async def test_status_shape(self, engine):
        assert set(engine.status) == {
            "backend",
            "syncing",
            "connected",
            "pending",
            "last_sync",
            "last_error",
            "blob_id",
        }
        assert engine.status["backend"] == "remote"

    @pytest.mark.asyncio
    async def test_manual_sync_establishes_remote(self, engine, remote):
        result = await engine.manual_sync()

        assert result.success
        assert result.winner == "local"
        assert result.pushed
        assert remote.blob_id is not None

    @pytest.mark.asyncio
    async def test_manual_sync_local_wins_and_pushes(self, engine, holder, remote, blobs):
        await remote.put(_document("2023-01-01T00:00:00.000Z"))

        result = await engine.manual_sync()

        assert result.winner == "local"
        assert result.pushed
        assert holder.replaced == []
        assert loads(await blobs.download(remote.blob_id)) == holder.document

    @pytest.mark.asyncio
    async def test_manual_sync_remote_wins(self, engine, holder, remote, blobs):
        newer = _document("2025-01-01T00:00:00.000Z")
        await remote.put(newer)
        uploads = blobs.upload_count

        result = await engine.manual_sync()

        assert result.winner == "remote"
        assert not result.pushed
        assert holder.document == newer
        assert blobs.upload_count == uploads

    @pytest.mark.asyncio
    async def test_declined_remote_win_pushes_local(self, holder, remote, blobs):
        async def decline(document):
            return False

        engine = SyncEngine(holder, InMemoryBackend(), remote, SyncConfig(), on_remote_win=decline)
        await remote.put(_document("2025-01-01T00:00:00.000Z"))

        result = await engine.manual_sync()

        assert result.winner == "local"
        assert result.pushed
        assert loads(await blobs.download(remote.blob_id)) == holder.document

    @pytest.mark.asyncio
    async def test_manual_sync_finds_existing_blob_by_name(self, engine, holder, blobs):
        """A fresh engine pulls what another device stored instead of overwriting it."""
        other = RemoteBackend(blobs)
        newer = _document("2025-01-01T00:00:00.000Z")
        await other.put(newer)
        uploads = blobs.upload_count

        result = await engine.manual_sync()

        assert result.winner == "remote"
        assert holder.document == newer
        assert blobs.upload_count == uploads

    @pytest.mark.asyncio
    async def test_manual_sync_tie_keeps_local(self, engine, holder, remote):
        await remote.put(_document(holder.document.meta.last_modified))

        result = await engine.manual_sync()

        assert result.winner == "local"
        assert holder.replaced == []

    @pytest.mark.asyncio
    async def test_manual_sync_pull_failure(self, engine, remote, blobs):
        await remote.put(_document("2025-01-01T00:00:00.000Z"))
        blobs.inject_failure()

        result = await engine.manual_sync()

        assert not result.success
        assert result.error
        assert engine.status["last_error"]

    @pytest.mark.asyncio
    async def test_overlapping_manual_sync_is_skipped(self, holder):
        blobs = InMemoryBlobStore(latency=DEBOUNCE)
        engine = SyncEngine(holder, InMemoryBackend(), RemoteBackend(blobs), SyncConfig())

        first, second = await asyncio.gather(engine.manual_sync(), engine.manual_sync())

        assert first.success
        assert second.skipped

    @pytest.mark.asyncio
    async def test_remote_win_without_callback_writes_local(self, remote):
        local = InMemoryBackend()
        engine = SyncEngine(lambda: _document("2024-01-01T00:00:00.000Z"), local, remote)
        newer = _document("2025-01-01T00:00:00.000Z")
        await remote.put(newer)

        await engine.manual_sync()

        assert await local.get() == newer

    @pytest.mark.asyncio
    async def test_local_only_engine(self, holder):
        engine = SyncEngine(holder, InMemoryBackend())

        engine.enqueue()
        assert not engine.pending
        assert await engine.push() is False
        assert (await engine.manual_sync()).winner == "local"
        assert engine.start_periodic(1.0) is False
        assert engine.status["backend"] == "memory"

    @pytest.mark.asyncio
    async def test_periodic_sync(self, engine, blobs):
        assert engine.start_periodic(DEBOUNCE) is True

        await asyncio.sleep(DEBOUNCE * 3.5)
        await engine.stop()

        assert blobs.upload_count >= 2
        count = blobs.upload_count
        await asyncio.sleep(DEBOUNCE * 2)
        assert blobs.upload_count == count

    @pytest.mark.asyncio
    async def test_periodic_disabled_by_zero_interval(self, engine):
        assert engine.start_periodic() is False
