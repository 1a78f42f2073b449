"""Flat string key-value file that holds pre-migration collection blobs."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Final

logger = logging.getLogger(__name__)

CHARACTERS_LEGACY_KEY: Final[str] = "mastercreator_characters_v5"
STORIES_LEGACY_KEY: Final[str] = "mastercreator_stories_v1"
CHAT_SESSIONS_LEGACY_KEY: Final[str] = "mastercreator_chat_sessions_v1"


class JsonFileBlobStore:
    """Synchronous ``key -> string`` store kept in one JSON object file."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            parsed = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.warning("legacy.read unreadable blob file path=%s", self._path)
            return {}
        if not isinstance(parsed, dict):
            return {}
        return {str(key): value for key, value in parsed.items() if isinstance(value, str)}

    def _save(self, items: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(items, indent=2) + "\n", encoding="utf-8")

    def get_item(self, key: str) -> str | None:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._load()
        items[key] = value
        self._save(items)

    def remove_item(self, key: str) -> None:
        items = self._load()
        if key not in items:
            return
        del items[key]
        self._save(items)
