"""
Integration tests for remote sync between Database instances.

Two devices share one in-memory blob store, the way two browsers share an
S3 bucket. Tests cover:
- Debounced push after local saves
- Remote win replacing the local document and stores
- Transport failures never failing local writes
- Import enqueuing a push
- Flush on close
"""

import asyncio

import pytest

from flexibase.config import SyncConfig
from flexibase.database import Database
from flexibase.document import Document, loads
from flexibase.ids import now_iso
from flexibase.storage.memory import InMemoryBackend, InMemoryBlobStore
from flexibase.storage.remote import RemoteBackend

DEBOUNCE = 0.05


class TestRemoteSync:
    """Integration tests for Database + SyncEngine + RemoteBackend."""

    @pytest.fixture
    def blobs(self):
        return InMemoryBlobStore()

    def _device(self, blobs, blob_id=None):
        return Database(
            InMemoryBackend(),
            RemoteBackend(blobs, blob_id=blob_id),
            SyncConfig(remote_enabled=True, debounce_seconds=DEBOUNCE),
        )

    @pytest.mark.asyncio
    async def test_saves_are_debounced_into_one_push(self, blobs):
        db = self._device(blobs)
        await db.init()

        tasks = await db.create_table("Tasks")
        for n in range(5):
            await db.create_record(tasks, {"Name": str(n), "Status": "Todo"})

        assert blobs.upload_count == 0
        await asyncio.sleep(DEBOUNCE * 4)

        assert blobs.upload_count == 1
        pushed = loads(await blobs.download(blobs.latest_blob_id))
        assert len(pushed.tables[tasks].records) == 5
        assert pushed == db.document
        await db.close()

    @pytest.mark.asyncio
    async def test_transport_failure_keeps_local_write(self, blobs):
        db = self._device(blobs)
        await db.init()
        blobs.inject_failure()

        tasks = await db.create_table("Tasks")
        await asyncio.sleep(DEBOUNCE * 4)

        assert db.get_table(tasks) is not None
        assert (await db.local.get()).tables.keys() == {tasks}
        assert db.sync_status()["last_error"]
        assert db.sync_status()["pending"]

        result = await db.manual_sync()
        assert result.success
        assert db.sync_status()["last_error"] is None
        await db.close()

    @pytest.mark.asyncio
    async def test_second_device_pulls_newer_document(self, blobs):
        laptop = self._device(blobs)
        await laptop.init()
        tasks = await laptop.create_table("Tasks")
        await laptop.create_record(tasks, {"Name": "from laptop", "Status": "Todo"})
        await laptop.sync.flush()

        phone = self._device(blobs, blob_id=laptop.remote.blob_id)
        await phone.init()
        received = []
        phone.subscribe(received.append)
        # The laptop's copy was saved later than the phone's empty first-run document
        phone.document.meta.last_modified = "2000-01-01T00:00:00.000Z"

        result = await phone.manual_sync()

        assert result.winner == "remote"
        assert phone.document == laptop.document
        assert (await phone.local.get()) == laptop.document
        assert received[-1].data == {"source": "remote"}

        # Stores follow the replaced document
        await phone.create_record(tasks, {"Name": "from phone", "Status": "Done"})
        assert len(phone.get_records(tasks)) == 2

        await laptop.close()
        await phone.close()

    @pytest.mark.asyncio
    async def test_newer_local_overwrites_remote(self, blobs):
        laptop = self._device(blobs)
        await laptop.init()
        await laptop.create_table("Old")
        await laptop.sync.flush()

        phone = self._device(blobs, blob_id=laptop.remote.blob_id)
        await phone.init()
        newer = await phone.create_table("New")

        result = await phone.manual_sync()

        assert result.winner == "local"
        remote_copy = loads(await blobs.download(phone.remote.blob_id))
        assert list(remote_copy.tables) == [newer]

        await laptop.close()
        await phone.close()

    @pytest.mark.asyncio
    async def test_import_enqueues_push(self, blobs):
        source = Database(InMemoryBackend())
        await source.init()
        await source.create_table("Imported")
        backup = source.export_json()

        db = self._device(blobs)
        await db.init()
        await db.import_json(backup)
        await asyncio.sleep(DEBOUNCE * 4)

        assert blobs.upload_count == 1
        assert loads(await blobs.download(blobs.latest_blob_id)) == source.document
        await db.close()
        await source.close()

    @pytest.mark.asyncio
    async def test_close_flushes_pending_push(self, blobs):
        db = Database(
            InMemoryBackend(),
            RemoteBackend(blobs),
            SyncConfig(remote_enabled=True, debounce_seconds=60),
        )
        await db.init()
        await db.create_table("Tasks")

        await db.close()

        assert blobs.upload_count == 1

    @pytest.mark.asyncio
    async def test_periodic_sync_from_config(self, blobs):
        db = Database(
            InMemoryBackend(),
            RemoteBackend(blobs),
            SyncConfig(remote_enabled=True, debounce_seconds=60, auto_sync_interval_seconds=DEBOUNCE),
        )
        await db.init()

        await asyncio.sleep(DEBOUNCE * 2.5)
        assert blobs.upload_count >= 1
        await db.close()

    @pytest.mark.asyncio
    async def test_writes_queued_during_sync_beat_older_remote(self, blobs):
        """A remote copy older than a write queued behind the sync does not replace it."""
        db = Database(
            InMemoryBackend(),
            RemoteBackend(blobs),
            SyncConfig(remote_enabled=True, debounce_seconds=60),
        )
        await db.init()
        db.local.latency = 0.1

        first = asyncio.create_task(db.create_table("A"))
        await asyncio.sleep(0.02)
        second = asyncio.create_task(db.create_table("B"))
        await asyncio.sleep(0)

        # Stamped after A was saved but before B runs
        remote_copy = Document.empty()
        remote_copy.meta.last_modified = now_iso()
        await db.remote.put(remote_copy)

        result = await db.manual_sync()
        a_id, b_id = await first, await second

        assert result.winner == "local"
        assert result.pushed
        assert db.get_table(a_id) is not None
        assert db.get_table(b_id) is not None
        pushed = loads(await blobs.download(db.remote.blob_id))
        assert set(pushed.tables) == {a_id, b_id}

        db.local.latency = 0
        await db.close()

    @pytest.mark.asyncio
    async def test_restarted_devices_pull_before_pushing(self, blobs):
        """Devices that never saw a blob id still reconcile against the shared copy."""
        laptop_disk = InMemoryBackend()
        laptop = Database(laptop_disk, RemoteBackend(blobs), SyncConfig(remote_enabled=True))
        await laptop.init()
        tasks = await laptop.create_table("Tasks")
        assert (await laptop.manual_sync()).winner == "local"
        await laptop.close()

        phone = self._device(blobs)
        await phone.init()
        phone.document.meta.last_modified = "2000-01-01T00:00:00.000Z"
        uploads = blobs.upload_count

        assert (await phone.manual_sync()).winner == "remote"
        assert blobs.upload_count == uploads
        assert phone.get_table(tasks) is not None

        await phone.create_record(tasks, {"Name": "from phone", "Status": "Todo"})
        assert (await phone.manual_sync()).winner == "local"
        await phone.close()

        # The laptop restarts with its older copy and picks up the phone's record
        laptop = Database(laptop_disk, RemoteBackend(blobs), SyncConfig(remote_enabled=True))
        await laptop.init()

        assert (await laptop.manual_sync()).winner == "remote"
        assert [r["Name"] for r in laptop.get_records(tasks)] == ["from phone"]
        await laptop.close()
