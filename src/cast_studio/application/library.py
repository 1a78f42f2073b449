"""In-memory entity collections bound to a durable store.

An ``EntityLibrary`` is the single mutation path for one collection. It owns
three rules:

* ``initialize`` loads from the primary store, or migrates the legacy blob
  once when the primary store is empty. Until it finishes, ``loading`` is
  true and an empty collection means "not loaded yet".
* Every add, edit, or import emits ``CollectionChanged`` and then upserts the
  entire collection to the store.
* ``delete`` removes the record from memory *and* from the store; the upsert
  sweep never removes keys, so skipping the store delete would bring the
  record back on the next load.

Storage failures never escape: they are logged and kept in ``storage_error``
for a persistent banner while the in-memory collection keeps working.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Generic, Literal, TypeVar

from cast_studio.core.errors import StorageError
from cast_studio.core.normalization import Decoded, utc_now_iso
from cast_studio.core.reconciliation import (
    Entity,
    decode_batch,
    decode_import_payload,
    import_merge_raw,
    sort_by_updated_desc,
)
from cast_studio.domain.ports import EntityStore, LegacyBlobStore

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", bound=Entity)
ChangeReason = Literal["load", "save", "edit", "import", "delete"]
MigrationSource = Literal["primary", "legacy", "empty", "unavailable"]


@dataclass(frozen=True)
class CollectionChanged(Generic[EntityT]):
    collection: str
    reason: ChangeReason
    entities: tuple[EntityT, ...]


@dataclass(frozen=True)
class MigrationResult:
    source: MigrationSource
    loaded: int = 0


@dataclass(frozen=True)
class ImportReport:
    accepted: int
    rejected: list[tuple[int, str]] = field(default_factory=list)


Listener = Callable[[CollectionChanged[EntityT]], None]


class EntityLibrary(Generic[EntityT]):
    """One entity collection: memory, change events, and store persistence."""

    def __init__(
        self,
        *,
        name: str,
        decode: Callable[[object], Decoded[EntityT]],
        store: EntityStore | None,
        legacy: LegacyBlobStore | None = None,
        legacy_key: str | None = None,
        storage_error: str | None = None,
    ) -> None:
        self._name = name
        self._decode = decode
        self._store = store
        self._legacy = legacy
        self._legacy_key = legacy_key
        self._entities: list[EntityT] = []
        self._listeners: list[Listener[EntityT]] = []
        self._loading = True
        self._initialized = False
        self._storage_error = storage_error
        if store is None and storage_error is None:
            self._storage_error = "Storage is not available. Changes will not be saved."

    @property
    def name(self) -> str:
        return self._name

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def storage_error(self) -> str | None:
        return self._storage_error

    @property
    def entities(self) -> tuple[EntityT, ...]:
        return tuple(self._entities)

    def __len__(self) -> int:
        return len(self._entities)

    def get(self, entity_id: str) -> EntityT | None:
        for entity in self._entities:
            if entity.id == entity_id:
                return entity
        return None

    def subscribe(self, listener: Listener[EntityT]) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, reason: ChangeReason) -> None:
        event = CollectionChanged(collection=self._name, reason=reason, entities=self.entities)
        for listener in list(self._listeners):
            listener(event)

    def _report(self, exc: StorageError) -> None:
        logger.warning("library.storage_error collection=%s error=%s", self._name, exc)
        self._storage_error = str(exc)

    async def initialize(self) -> MigrationResult:
        """Load from the primary store, migrating the legacy blob when it is empty."""
        if self._initialized:
            return MigrationResult(source="primary", loaded=len(self._entities))
        try:
            result = await self._load()
        finally:
            self._initialized = True
            self._loading = False
        self._emit("load")
        logger.info(
            "library.initialized collection=%s source=%s loaded=%s",
            self._name,
            result.source,
            result.loaded,
        )
        return result

    async def _load(self) -> MigrationResult:
        if self._store is None:
            return MigrationResult(source="unavailable")
        try:
            records = await self._store.get_all()
        except StorageError as exc:
            self._report(exc)
            return MigrationResult(source="unavailable")
        if records:
            self._entities = sort_by_updated_desc(decode_batch(records, self._decode).accepted)
            return MigrationResult(source="primary", loaded=len(self._entities))
        return await self._migrate_legacy()

    async def _migrate_legacy(self) -> MigrationResult:
        if self._legacy is None or self._legacy_key is None or self._store is None:
            return MigrationResult(source="empty")
        raw = self._legacy.get_item(self._legacy_key)
        if not raw:
            return MigrationResult(source="empty")
        try:
            parsed = json.loads(raw)
        except (ValueError, RecursionError):
            logger.warning("library.legacy_unparseable collection=%s", self._name)
            return MigrationResult(source="empty")
        if not isinstance(parsed, list):
            logger.warning("library.legacy_not_array collection=%s", self._name)
            return MigrationResult(source="empty")

        migrated = decode_batch(parsed, self._decode).accepted
        self._entities = list(migrated)
        try:
            await self._store.put_many([entity.to_payload() for entity in migrated])
        except StorageError as exc:
            # Keep the blob so the next start can retry the migration.
            self._report(exc)
            return MigrationResult(source="legacy", loaded=len(migrated))
        self._legacy.remove_item(self._legacy_key)
        logger.info("library.migrated collection=%s count=%s", self._name, len(migrated))
        return MigrationResult(source="legacy", loaded=len(migrated))

    async def persist(self) -> bool:
        """Upsert the entire collection; returns False when the write failed."""
        if self._store is None:
            return False
        try:
            await self._store.put_many([entity.to_payload() for entity in self._entities])
        except StorageError as exc:
            self._report(exc)
            return False
        self._storage_error = None
        return True

    async def _changed(self, reason: ChangeReason) -> None:
        self._emit(reason)
        await self.persist()

    async def save(self, entity: EntityT) -> EntityT:
        """Insert a new record at the front, or replace the record with its id."""
        for index, existing in enumerate(self._entities):
            if existing.id == entity.id:
                self._entities[index] = entity
                break
        else:
            self._entities.insert(0, entity)
        await self._changed("save")
        return entity

    async def update(
        self, entity_id: str, change: Callable[[EntityT], EntityT]
    ) -> EntityT | None:
        """Apply ``change`` to one record and stamp its ``updatedAt``."""
        for index, existing in enumerate(self._entities):
            if existing.id != entity_id:
                continue
            updated = replace(change(existing), updated_at=utc_now_iso())  # type: ignore[type-var]
            self._entities[index] = updated
            await self._changed("edit")
            return updated
        return None

    async def delete(self, entity_id: str) -> bool:
        """Remove from memory and from the store."""
        before = len(self._entities)
        self._entities = [entity for entity in self._entities if entity.id != entity_id]
        removed = len(self._entities) != before
        if removed:
            self._emit("delete")
        if self._store is not None:
            try:
                await self._store.delete(entity_id)
            except StorageError as exc:
                self._report(exc)
        return removed

    async def import_payload(self, data: bytes | str) -> ImportReport:
        """Merge an import file by id; raises ImportFormatError before any change."""
        items = decode_import_payload(data)
        self._entities, batch = import_merge_raw(self._entities, items, self._decode)
        await self._changed("import")
        logger.info(
            "library.imported collection=%s accepted=%s rejected=%s",
            self._name,
            len(batch.accepted),
            len(batch.rejected),
        )
        return ImportReport(accepted=len(batch.accepted), rejected=list(batch.rejected))
