"""SQLite-backed primary store for character, story, and session records."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from collections.abc import Iterator, Mapping, Sequence
from contextlib import closing, contextmanager
from pathlib import Path

from cast_studio.core.errors import ReadError, StorageUnavailable, WriteError

logger = logging.getLogger(__name__)


class SQLiteEntityStore:
    """Persist one entity collection as JSON payloads keyed by entity id.

    Every call runs in a worker thread so the event loop stays responsive.
    ``put_many`` writes the whole batch in one transaction and is an upsert:
    keys missing from the batch are never removed.
    """

    def __init__(self, db_path: Path, *, collection: str) -> None:
        self._db_path = db_path
        self._collection = collection
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._initialize_schema()
        except (OSError, sqlite3.Error) as exc:
            raise StorageUnavailable(f"Storage is not available: {exc}") from exc

    @property
    def collection(self) -> str:
        return self._collection

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        with closing(sqlite3.connect(str(self._db_path))) as connection:
            connection.row_factory = sqlite3.Row
            yield connection

    def _initialize_schema(self) -> None:
        with self._connect() as connection, connection:
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS entities (
                    collection TEXT NOT NULL,
                    entity_id TEXT NOT NULL,
                    payload_json TEXT NOT NULL,
                    updated_at_utc TEXT NOT NULL,
                    PRIMARY KEY (collection, entity_id)
                )
                """
            )

    async def get_all(self) -> list[dict[str, object]]:
        """Load every stored payload for this collection."""
        return await asyncio.to_thread(self._get_all_sync)

    def _get_all_sync(self) -> list[dict[str, object]]:
        try:
            with self._connect() as connection:
                rows = connection.execute(
                    """
                    SELECT entity_id, payload_json
                    FROM entities
                    WHERE collection = ?
                    ORDER BY rowid
                    """,
                    (self._collection,),
                ).fetchall()
        except sqlite3.Error as exc:
            raise ReadError(f"Failed to read {self._collection}: {exc}") from exc
        records: list[dict[str, object]] = []
        for row in rows:
            try:
                payload = json.loads(str(row["payload_json"]))
            except json.JSONDecodeError:
                logger.warning(
                    "store.read skipped corrupt payload collection=%s id=%s",
                    self._collection,
                    row["entity_id"],
                )
                continue
            if isinstance(payload, dict):
                records.append(payload)
        return records

    async def put_many(self, records: Sequence[Mapping[str, object]]) -> None:
        """Upsert all records in one transaction; any failure writes nothing."""
        await asyncio.to_thread(self._put_many_sync, list(records))

    def _put_many_sync(self, records: list[Mapping[str, object]]) -> None:
        rows: list[tuple[str, str, str, str]] = []
        for record in records:
            entity_id = record.get("id")
            if not isinstance(entity_id, str) or not entity_id:
                raise WriteError(f"Failed to write {self._collection}: record without id.")
            try:
                payload_json = json.dumps(dict(record), ensure_ascii=False)
            except (TypeError, ValueError) as exc:
                raise WriteError(f"Failed to write {self._collection}: {exc}") from exc
            updated_at = record.get("updatedAt")
            rows.append(
                (
                    self._collection,
                    entity_id,
                    payload_json,
                    updated_at if isinstance(updated_at, str) else "",
                )
            )
        if not rows:
            return
        try:
            with self._connect() as connection, connection:
                connection.executemany(
                    """
                    INSERT INTO entities (collection, entity_id, payload_json, updated_at_utc)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT (collection, entity_id) DO UPDATE SET
                        payload_json = excluded.payload_json,
                        updated_at_utc = excluded.updated_at_utc
                    """,
                    rows,
                )
        except sqlite3.Error as exc:
            raise WriteError(f"Failed to write {self._collection}: {exc}") from exc
        logger.debug("store.put_many collection=%s count=%s", self._collection, len(rows))

    async def delete(self, entity_id: str) -> None:
        await asyncio.to_thread(self._delete_sync, entity_id)

    def _delete_sync(self, entity_id: str) -> None:
        try:
            with self._connect() as connection, connection:
                connection.execute(
                    "DELETE FROM entities WHERE collection = ? AND entity_id = ?",
                    (self._collection, entity_id),
                )
        except sqlite3.Error as exc:
            raise WriteError(f"Failed to delete from {self._collection}: {exc}") from exc

    async def clear(self) -> None:
        await asyncio.to_thread(self._clear_sync)

    def _clear_sync(self) -> None:
        try:
            with self._connect() as connection, connection:
                connection.execute(
                    "DELETE FROM entities WHERE collection = ?", (self._collection,)
                )
        except sqlite3.Error as exc:
            raise WriteError(f"Failed to clear {self._collection}: {exc}") from exc
