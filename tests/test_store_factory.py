from __future__ import annotations

from pathlib import Path

import pytest

from cast_studio.adapters.entity_store_factory import (
    CHARACTERS_COLLECTION,
    create_entity_store,
    create_legacy_store,
)
from cast_studio.adapters.legacy_blob_store import JsonFileBlobStore
from cast_studio.adapters.sqlite_entity_store import SQLiteEntityStore
from cast_studio.core.errors import StorageUnavailable


def test_factory_builds_sqlite_store_from_env_path(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    db_path = tmp_path / "env" / "cast.db"
    monkeypatch.setenv("CAST_STUDIO_DB_PATH", str(db_path))
    monkeypatch.delenv("CAST_STUDIO_STORAGE_DISABLED", raising=False)
    store = create_entity_store(collection=CHARACTERS_COLLECTION)
    assert isinstance(store, SQLiteEntityStore)
    assert store.collection == "characters"
    assert db_path.exists()


def test_explicit_path_wins_over_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CAST_STUDIO_DB_PATH", str(tmp_path / "env.db"))
    monkeypatch.delenv("CAST_STUDIO_STORAGE_DISABLED", raising=False)
    create_entity_store(collection="stories", db_path=tmp_path / "explicit.db")
    assert (tmp_path / "explicit.db").exists()
    assert not (tmp_path / "env.db").exists()


def test_disabled_storage_raises_storage_unavailable(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("CAST_STUDIO_STORAGE_DISABLED", "true")
    with pytest.raises(StorageUnavailable, match="CAST_STUDIO_STORAGE_DISABLED"):
        create_entity_store(collection="characters", db_path=tmp_path / "cast.db")


def test_legacy_store_uses_env_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CAST_STUDIO_LEGACY_PATH", str(tmp_path / "legacy.json"))
    store = create_legacy_store()
    assert isinstance(store, JsonFileBlobStore)
    assert store.path == tmp_path / "legacy.json"
