"""Factory for the primary entity store and the legacy blob store."""

from __future__ import annotations

import os
from pathlib import Path

from cast_studio.adapters.legacy_blob_store import JsonFileBlobStore
from cast_studio.adapters.sqlite_entity_store import SQLiteEntityStore
from cast_studio.core.errors import StorageUnavailable

DEFAULT_DB_PATH = "work/local/cast_studio.db"
DEFAULT_LEGACY_PATH = "work/local/legacy_storage.json"

CHARACTERS_COLLECTION = "characters"
STORIES_COLLECTION = "stories"
CHAT_SESSIONS_COLLECTION = "chat_sessions"


def _env_flag(name: str) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    return raw in {"1", "true", "yes", "on"}


def _env_path(name: str, default: str) -> Path:
    return Path(os.environ.get(name, "").strip() or default)


def create_entity_store(*, collection: str, db_path: Path | None = None) -> SQLiteEntityStore:
    """Build the primary store; raises StorageUnavailable when storage is off or unusable."""
    if _env_flag("CAST_STUDIO_STORAGE_DISABLED"):
        raise StorageUnavailable(
            "Storage is disabled (CAST_STUDIO_STORAGE_DISABLED). Changes will not be saved."
        )
    path = db_path if db_path is not None else _env_path("CAST_STUDIO_DB_PATH", DEFAULT_DB_PATH)
    return SQLiteEntityStore(db_path=path, collection=collection)


def create_legacy_store(path: Path | None = None) -> JsonFileBlobStore:
    return JsonFileBlobStore(
        path if path is not None else _env_path("CAST_STUDIO_LEGACY_PATH", DEFAULT_LEGACY_PATH)
    )
