"""
Database facade for FlexiBase.

The Database owns the single in-memory Document and composes the schema,
record and activity stores over it. Every mutating operation runs under one
asyncio.Lock, persists the whole document locally, enqueues a debounced
remote push and then publishes a ChangeEvent.

Invariants:
    - Exactly one Document is live; stores are rebound whenever it is replaced
    - The local write completes before a mutation returns
    - Remote failures never fail a mutation
    - Import validates the payload before anything is replaced

How to change safely:
    - Add new mutations through _mutate() so they are locked, saved and published
    - A False or None result from an operation means nothing changed; it is
      neither saved nor published
    - Never await the remote while holding the lock
    - A remote winner is reconciled again under the lock before it replaces
      the document
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from datetime import date
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from .activity.log import ActivityLog, RetentionPolicy, keep_all
from .activity.types import Activity, ActivityType
from .config import AppConfig, SyncConfig
from .document import Document, dumps, reconcile, validate_payload
from .errors import CorruptDataError
from .events import ChangeAction, ChangeEvent, ChangeType, EventChannel, Subscriber
from .records.store import RecordStore, UpdateMethod
from .records.validate import ValidationResult
from .schema.store import FieldSpec, SchemaStore
from .schema.types import FieldDef, Record, Table
from .storage.base import StorageBackend
from .storage.local import LocalFileBackend
from .storage.remote import RemoteBackend
from .storage.s3 import S3BlobStore
from .sync.engine import SyncEngine, SyncResult

logger = logging.getLogger(__name__)

BACKUP_FILENAME = "flexibase_backup_{day}.json"


class Database:
    """FlexiBase document store.

    Attributes:
        local: Backend the document is always written to
        remote: Optional remote backend replicated through the sync engine
        events: Channel ChangeEvents are published on
        sync: Sync engine

    Example:
        >>> db = Database(LocalFileBackend("flexibase.json"))
        >>> await db.init()
        >>> table_id = await db.create_table("Tasks")
        >>> await db.create_record(table_id, {"Name": "Ship it", "Status": "Todo"})
        >>> await db.close()
    """

    def __init__(
        self,
        local: StorageBackend,
        remote: Optional[StorageBackend] = None,
        sync_config: Optional[SyncConfig] = None,
        actor: str = "user",
        retention: RetentionPolicy = keep_all,
        events: Optional[EventChannel] = None,
    ) -> None:
        self.local = local
        self.remote = remote
        self.events = events or EventChannel()

        self._document = Document.empty()
        self._lock = asyncio.Lock()

        self.activity_log = ActivityLog(self._document.activities, actor=actor, retention=retention)
        self.schema = SchemaStore(self._document, self.activity_log)
        self.records = RecordStore(self._document, self.schema, self.activity_log)
        self.sync = SyncEngine(
            lambda: self._document,
            local,
            remote,
            sync_config,
            on_remote_win=self._accept_remote,
        )

    @classmethod
    def from_config(cls, config: AppConfig, **kwargs: Any) -> Database:
        """Build a Database with the backends described by config."""
        local = LocalFileBackend(os.path.expanduser(config.storage.data_path))
        remote = None
        if config.sync.remote_enabled:
            remote = RemoteBackend(
                S3BlobStore(config.s3),
                blob_name=config.sync.blob_name,
                blob_id=config.sync.blob_id,
                name="s3",
            )
        return cls(local, remote, config.sync, **kwargs)

    @property
    def document(self) -> Document:
        return self._document

    # Lifecycle

    async def init(self) -> Document:
        """Load the local document, creating an empty one on first run.

        Starts periodic sync when configured.
        """
        async with self._lock:
            document = await self.local.get()
            if document is None:
                document = Document.empty()
                await self.local.put(document)
                logger.info("Created new document", extra={"backend": self.local.name})
            self._replace(document)

        self.sync.start_periodic()
        logger.info(
            "Database initialized",
            extra={
                "backend": self.local.name,
                "remote": self.remote.name if self.remote is not None else None,
                "tables": len(document.tables),
                "activities": len(document.activities),
            },
        )
        return document

    async def close(self) -> None:
        """Stop background sync, push anything pending and release clients."""
        await self.sync.stop()
        if self.remote is not None and hasattr(self.remote, "close"):
            await self.remote.close()
        logger.info("Database closed")

    async def __aenter__(self) -> Database:
        await self.init()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def save(self) -> None:
        """Stamp lastModified, write locally and enqueue a remote push."""
        async with self._lock:
            await self._save_locked()

    async def _save_locked(self) -> None:
        self._document.touch()
        await self.local.put(self._document)
        self.sync.enqueue()

    def set_retention(self, policy: RetentionPolicy) -> None:
        self.activity_log.retention = policy

    def _replace(self, document: Document) -> None:
        self._document = document
        self.activity_log.rebind(document.activities)
        self.schema.rebind(document)
        self.records.rebind(document)

    async def _mutate(
        self,
        change: tuple[ChangeType, ChangeAction],
        operation: Callable[..., Any],
        *args: Any,
        event_data: Callable[[Any], dict[str, Any]],
        **kwargs: Any,
    ) -> Any:
        async with self._lock:
            result = operation(*args, **kwargs)
            if result is False or result is None:
                return result
            await self._save_locked()
        self.events.publish(ChangeEvent(change[0], change[1], event_data(result)))
        return result

    # Tables

    def list_tables(self) -> list[dict[str, Any]]:
        return self.schema.list_tables()

    def get_table(self, table_id: str) -> Optional[Table]:
        return self.schema.get_table(table_id)

    def get_fields(self, table_id: str) -> list[FieldDef]:
        return self.schema.get_fields(table_id)

    def get_field(self, table_id: str, field_name: str) -> Optional[FieldDef]:
        return self.schema.get_field(table_id, field_name)

    async def create_table(self, name: str, fields: Optional[list[FieldSpec]] = None) -> str:
        """Create a table; returns its id."""
        return await self._mutate(
            (ChangeType.TABLE, ChangeAction.CREATE),
            self.schema.create_table,
            name,
            fields,
            event_data=lambda table_id: {"table_id": table_id, "name": name},
        )

    async def update_table_meta(self, table_id: str, name: Optional[str] = None) -> bool:
        return await self._mutate(
            (ChangeType.TABLE, ChangeAction.UPDATE),
            self.schema.update_table_meta,
            table_id,
            name=name,
            event_data=lambda _: {"table_id": table_id, "name": name},
        )

    async def delete_table(self, table_id: str) -> bool:
        return await self._mutate(
            (ChangeType.TABLE, ChangeAction.DELETE),
            self.schema.delete_table,
            table_id,
            event_data=lambda _: {"table_id": table_id},
        )

    # Fields

    async def add_field(self, table_id: str, field: FieldSpec) -> bool:
        return await self._mutate(
            (ChangeType.TABLE, ChangeAction.UPDATE),
            self.schema.add_field,
            table_id,
            field,
            event_data=lambda _: {"table_id": table_id, "field": _field_name(field)},
        )

    async def update_field(self, table_id: str, old_name: str, new_field: FieldSpec) -> bool:
        return await self._mutate(
            (ChangeType.TABLE, ChangeAction.UPDATE),
            self.schema.update_field,
            table_id,
            old_name,
            new_field,
            event_data=lambda _: {
                "table_id": table_id,
                "old_name": old_name,
                "field": _field_name(new_field),
            },
        )

    async def delete_field(self, table_id: str, field_name: str) -> bool:
        return await self._mutate(
            (ChangeType.TABLE, ChangeAction.UPDATE),
            self.schema.delete_field,
            table_id,
            field_name,
            event_data=lambda _: {"table_id": table_id, "deleted_field": field_name},
        )

    # Records

    def get_records(self, table_id: str, search: Optional[str] = None) -> list[Record]:
        return self.records.get_records(table_id, search)

    def get_record(self, table_id: str, record_id: str) -> Optional[Record]:
        return self.records.get_record(table_id, record_id)

    async def create_record(self, table_id: str, values: Mapping[str, Any]) -> Optional[str]:
        """Insert a record; returns its id, or None if the table does not exist.

        Raises:
            ValidationError: If a required field is empty
        """
        return await self._mutate(
            (ChangeType.RECORD, ChangeAction.CREATE),
            self.records.create_record,
            table_id,
            values,
            event_data=lambda record_id: {"table_id": table_id, "record_id": record_id},
        )

    async def update_record(
        self,
        table_id: str,
        record_id: str,
        updates: Mapping[str, Any],
        method: UpdateMethod | str = UpdateMethod.MODAL_EDIT,
    ) -> bool:
        return await self._mutate(
            (ChangeType.RECORD, ChangeAction.UPDATE),
            self.records.update_record,
            table_id,
            record_id,
            updates,
            method=method,
            event_data=lambda _: {
                "table_id": table_id,
                "record_id": record_id,
                "fields": sorted(updates),
            },
        )

    async def delete_record(self, table_id: str, record_id: str) -> bool:
        return await self._mutate(
            (ChangeType.RECORD, ChangeAction.DELETE),
            self.records.delete_record,
            table_id,
            record_id,
            event_data=lambda _: {"table_id": table_id, "record_id": record_id},
        )

    async def move_record(
        self, table_id: str, record_id: str, field: str, from_value: Any, to_value: Any
    ) -> bool:
        return await self._mutate(
            (ChangeType.RECORD, ChangeAction.UPDATE),
            self.records.move_record,
            table_id,
            record_id,
            field,
            from_value,
            to_value,
            event_data=lambda _: {
                "table_id": table_id,
                "record_id": record_id,
                "field": field,
                "from": from_value,
                "to": to_value,
            },
        )

    def validate_field(self, field: FieldDef, value: Any) -> ValidationResult:
        return self.records.validate_field(field, value)

    def validate_record(self, table_id: str, values: Mapping[str, Any]) -> dict[str, str]:
        return self.records.validate_record(table_id, values)

    def get_records_by_group(self, table_id: str, field_name: str) -> dict[str, list[Record]]:
        return self.records.get_records_by_group(table_id, field_name)

    def get_records_by_date(
        self, table_id: str, field_name: str, year: int, month: int
    ) -> dict[str, list[Record]]:
        return self.records.get_records_by_date(table_id, field_name, year, month)

    # Activities

    def get_activities(
        self,
        table_id: Optional[str] = None,
        type: ActivityType | str | None = None,
        date: date | str | None = None,
        record_id: Optional[str] = None,
    ) -> list[Activity]:
        return self.activity_log.get_activities(
            table_id=table_id, type=type, date=date, record_id=record_id
        )

    def get_record_history(self, table_id: str, record_id: str) -> list[Activity]:
        return self.activity_log.get_record_history(table_id, record_id)

    # Events

    def subscribe(self, callback: Subscriber) -> Callable[[], bool]:
        return self.events.subscribe(callback)

    def unsubscribe(self, callback: Subscriber) -> bool:
        return self.events.unsubscribe(callback)

    # Sync

    async def manual_sync(self) -> SyncResult:
        """Pull, reconcile and push immediately."""
        return await self.sync.manual_sync()

    def sync_status(self) -> dict[str, Any]:
        return self.sync.status

    async def _accept_remote(self, document: Document) -> bool:
        async with self._lock:
            # Mutations queued on the lock during the pull may have saved a newer document
            if reconcile(self._document, document) is not document:
                return False
            self._replace(document)
            await self.local.put(document)
        self.events.publish(
            ChangeEvent(ChangeType.TABLE, ChangeAction.UPDATE, {"source": "remote"})
        )
        return True

    # Backup

    def export_json(self, indent: int = 2) -> str:
        """Serialize the whole document for backup."""
        return dumps(self._document, indent=indent)

    async def import_json(self, text: str | bytes) -> Document:
        """Replace the whole document with a backup.

        The payload is validated before anything is replaced; the imported
        document keeps its own lastModified.

        Raises:
            CorruptDataError: If text is not a document
        """
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CorruptDataError(f"Import is not valid JSON: {e}") from e
        validate_payload(data)
        document = Document.from_dict(data)

        async with self._lock:
            self._replace(document)
            await self.local.put(document)
            self.sync.enqueue()

        logger.info(
            "Imported document",
            extra={"tables": len(document.tables), "activities": len(document.activities)},
        )
        self.events.publish(
            ChangeEvent(ChangeType.TABLE, ChangeAction.UPDATE, {"source": "import"})
        )
        return document

    async def export_to_file(self, path: str | os.PathLike[str] | None = None) -> Path:
        """Write a backup file; defaults to flexibase_backup_<date>.json."""
        target = Path(path) if path is not None else Path(
            BACKUP_FILENAME.format(day=date.today().isoformat())
        )
        text = self.export_json()
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, target.write_text, text, "utf-8")
        logger.info("Exported document", extra={"path": str(target), "bytes": len(text)})
        return target

    async def import_from_file(self, path: str | os.PathLike[str]) -> Document:
        """Replace the whole document with a backup file.

        Raises:
            CorruptDataError: If the file is not a document
        """
        loop = asyncio.get_running_loop()
        text = await loop.run_in_executor(None, Path(path).read_text, "utf-8")
        return await self.import_json(text)


def _field_name(field: FieldSpec) -> Any:
    return field.name if isinstance(field, FieldDef) else field.get("name")
