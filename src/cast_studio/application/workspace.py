"""The three entity libraries of one local workspace and their cross-collection rules."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path

from cast_studio.adapters.entity_store_factory import (
    CHARACTERS_COLLECTION,
    CHAT_SESSIONS_COLLECTION,
    STORIES_COLLECTION,
    create_entity_store,
    create_legacy_store,
)
from cast_studio.adapters.legacy_blob_store import (
    CHARACTERS_LEGACY_KEY,
    CHAT_SESSIONS_LEGACY_KEY,
    STORIES_LEGACY_KEY,
)
from cast_studio.application.character_draft import CharacterDraft
from cast_studio.application.library import EntityLibrary, MigrationResult
from cast_studio.core.errors import StorageUnavailable
from cast_studio.core.normalization import (
    collapse_whitespace,
    decode_character,
    decode_chat_session,
    decode_story,
    new_entity_id,
    utc_now_iso,
)
from cast_studio.core.relationship_graph import delete_character_from_story
from cast_studio.domain.models import UNTITLED_STORY, Character, ChatSession, StoryProject
from cast_studio.domain.ports import EntityStore, LegacyBlobStore

logger = logging.getLogger(__name__)


@dataclass
class Workspace:
    characters: EntityLibrary[Character]
    stories: EntityLibrary[StoryProject]
    chat_sessions: EntityLibrary[ChatSession]

    @property
    def libraries(self) -> tuple[EntityLibrary, ...]:
        return (self.characters, self.stories, self.chat_sessions)

    @property
    def loading(self) -> bool:
        return any(library.loading for library in self.libraries)

    @property
    def storage_error(self) -> str | None:
        for library in self.libraries:
            if library.storage_error:
                return library.storage_error
        return None

    async def initialize(self) -> dict[str, MigrationResult]:
        results: dict[str, MigrationResult] = {}
        for library in self.libraries:
            results[library.name] = await library.initialize()
        return results

    def character_lookup(self) -> dict[str, Character]:
        return {character.id: character for character in self.characters.entities}

    async def save_character_draft(
        self, draft: CharacterDraft, existing_id: str | None = None
    ) -> Character:
        """Validate the draft and save it; ValidationError leaves the library untouched."""
        existing = self.characters.get(existing_id) if existing_id else None
        character = draft.to_character(existing)
        return await self.characters.save(character)

    async def delete_character(self, character_id: str) -> bool:
        """Delete a character and detach it from every story board.

        Board nodes and relationships touching the character are removed from
        each story; ``characterIds`` keeps the dangling reference.
        """
        removed = await self.characters.delete(character_id)
        touched = [
            story.id
            for story in self.stories.entities
            if story.node_for(character_id) is not None
            or any(relationship.touches(character_id) for relationship in story.relationships)
        ]
        for story_id in touched:
            await self.stories.update(
                story_id, lambda story: delete_character_from_story(story, character_id)
            )
        logger.info(
            "workspace.character_deleted id=%s stories_touched=%s", character_id, len(touched)
        )
        return removed

    async def create_story(self, title: str = "", character_ids: tuple[str, ...] = ()) -> StoryProject:
        now = utc_now_iso()
        story = StoryProject(
            id=new_entity_id(),
            title=collapse_whitespace(title) or UNTITLED_STORY,
            character_ids=tuple(dict.fromkeys(character_ids)),
            created_at=now,
            updated_at=now,
        )
        return await self.stories.save(story)

    async def rename_story(self, story_id: str, title: str) -> StoryProject | None:
        clean = collapse_whitespace(title) or UNTITLED_STORY
        return await self.stories.update(story_id, lambda story: replace(story, title=clean))


def _library(
    name: str,
    decode,
    *,
    collection: str,
    legacy: LegacyBlobStore | None,
    legacy_key: str,
    db_path: Path | None,
) -> EntityLibrary:
    store: EntityStore | None
    storage_error: str | None = None
    try:
        store = create_entity_store(collection=collection, db_path=db_path)
    except StorageUnavailable as exc:
        logger.warning("workspace.storage_unavailable collection=%s error=%s", collection, exc)
        store = None
        storage_error = str(exc)
    return EntityLibrary(
        name=name,
        decode=decode,
        store=store,
        legacy=legacy,
        legacy_key=legacy_key,
        storage_error=storage_error,
    )


def open_workspace(
    db_path: Path | None = None,
    legacy_path: Path | None = None,
) -> Workspace:
    """Build the workspace libraries; call ``initialize`` before trusting reads."""
    legacy = create_legacy_store(legacy_path)
    return Workspace(
        characters=_library(
            "characters",
            decode_character,
            collection=CHARACTERS_COLLECTION,
            legacy=legacy,
            legacy_key=CHARACTERS_LEGACY_KEY,
            db_path=db_path,
        ),
        stories=_library(
            "stories",
            decode_story,
            collection=STORIES_COLLECTION,
            legacy=legacy,
            legacy_key=STORIES_LEGACY_KEY,
            db_path=db_path,
        ),
        chat_sessions=_library(
            "chat_sessions",
            decode_chat_session,
            collection=CHAT_SESSIONS_COLLECTION,
            legacy=legacy,
            legacy_key=CHAT_SESSIONS_LEGACY_KEY,
            db_path=db_path,
        ),
    )
