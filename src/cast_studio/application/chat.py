"""Roleplay chat with one character, kept as saved ``ChatSession`` records."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import replace

from cast_studio.application.generation import DraftGenerator
from cast_studio.application.library import EntityLibrary
from cast_studio.contracts import DEFAULT_CONTEXT_SIZE, ProxyConfig
from cast_studio.core.normalization import (
    clamp_index,
    collapse_whitespace,
    new_entity_id,
    utc_now_iso,
)
from cast_studio.core.reconciliation import sort_by_updated_desc
from cast_studio.domain.models import Character, ChatMessage, ChatSession

logger = logging.getLogger(__name__)

# Rough context cost of one chat message, used to bound the sent history.
APPROX_CONTEXT_PER_MESSAGE = 220
MIN_HISTORY_MESSAGES = 2


def history_limit(context_size: int) -> int:
    return max(MIN_HISTORY_MESSAGES, context_size // APPROX_CONTEXT_PER_MESSAGE)


def chat_system_prompt(character: Character, persona: str = "") -> str:
    """Persona sheet for the model; the user persona line is always present."""
    user_persona = collapse_whitespace(persona)
    return "\n".join(
        [
            "Play the character below in a roleplay chat. Stay in character and "
            "speak naturally.",
            f"Name: {character.name}",
            f"Gender: {character.gender}",
            f"Age: {'' if character.age is None else character.age}",
            f"Height: {character.height}",
            f"Origins: {character.origins}",
            f"Race: {character.race}",
            f"Personalities: {', '.join(character.personalities)}",
            f"Unique traits: {', '.join(character.unique_traits)}",
            f"Backstory: {' | '.join(character.backstory)}",
            f"Synopsis: {character.synopsis}",
            f"System rules: {character.system_rules}",
            f"User persona: {user_persona or '(not provided)'}",
            "Reply as the character and keep continuity with earlier messages.",
        ]
    )


def chat_transcript(messages: Sequence[ChatMessage], character_name: str) -> str:
    return "\n".join(
        f"{'User' if message.role == 'user' else character_name}: {message.content}"
        for message in messages
    )


class CharacterChat:
    """Starts, resumes and continues chat sessions.

    Replies go through the shared ``DraftGenerator`` so chat and field
    generation never run at the same time; failures land in ``error``.
    """

    def __init__(
        self,
        sessions: EntityLibrary[ChatSession],
        fields: DraftGenerator,
        *,
        context_size: int = DEFAULT_CONTEXT_SIZE,
        persona: str = "",
    ) -> None:
        self._sessions = sessions
        self._fields = fields
        self._context_size = context_size
        self.persona = persona

    @classmethod
    def from_config(
        cls,
        sessions: EntityLibrary[ChatSession],
        fields: DraftGenerator,
        config: ProxyConfig,
        *,
        persona: str = "",
    ) -> CharacterChat:
        return cls(sessions, fields, context_size=config.context_size, persona=persona)

    @property
    def busy(self) -> bool:
        return self._fields.busy

    @property
    def error(self) -> str | None:
        return self._fields.error

    def latest_session(self, character_id: str) -> ChatSession | None:
        matches = [item for item in self._sessions.entities if item.character_id == character_id]
        return sort_by_updated_desc(matches)[0] if matches else None

    async def start(self, character: Character) -> ChatSession:
        """Resume the character's latest session, or open one greeted by the selected intro."""
        latest = self.latest_session(character.id)
        if latest is not None:
            return replace(
                latest,
                character_name=character.name,
                character_image_data_url=character.image_data_url
                or latest.character_image_data_url,
            )
        index = clamp_index(character.selected_intro_index, len(character.intro_messages))
        greeting = collapse_whitespace(character.intro_messages[index])
        now = utc_now_iso()
        session = ChatSession(
            id=new_entity_id(),
            character_id=character.id,
            character_name=character.name,
            character_image_data_url=character.image_data_url,
            messages=(ChatMessage(role="assistant", content=greeting),) if greeting else (),
            created_at=now,
            updated_at=now,
        )
        logger.info("chat.started character=%s session=%s", character.id, session.id)
        return await self._sessions.save(session)

    async def send(
        self, session: ChatSession, character: Character, text: str
    ) -> ChatSession | None:
        """Send one user message and save the session with the character's reply.

        Returns None for a blank message or a failed request; the saved session
        is left as it was in both cases.
        """
        content = collapse_whitespace(text)
        if not content:
            return None
        history = (*session.messages, ChatMessage(role="user", content=content))
        recent = history[-history_limit(self._context_size) :]
        reply = await self._fields.complete(
            chat_system_prompt(character, self.persona),
            f"Conversation so far:\n{chat_transcript(recent, character.name)}\n\n"
            "Write the character's next reply to the latest user message.",
        )
        if reply is None:
            return None
        stored = self._sessions.get(session.id)
        updated = replace(
            session,
            character_name=character.name,
            character_image_data_url=character.image_data_url,
            messages=(*history, ChatMessage(role="assistant", content=reply)),
            created_at=stored.created_at if stored is not None else session.created_at,
            updated_at=utc_now_iso(),
        )
        logger.info("chat.reply session=%s messages=%s", session.id, len(updated.messages))
        return await self._sessions.save(updated)
