from __future__ import annotations

import asyncio

from cast_studio.application.chat import CharacterChat, chat_system_prompt, history_limit
from cast_studio.application.generation import DraftGenerator
from cast_studio.application.library import EntityLibrary
from cast_studio.contracts import GenerationOptions, ProxyConfig
from cast_studio.core.errors import GenerationError
from cast_studio.core.normalization import decode_chat_session
from cast_studio.domain.models import Character, ChatMessage, ChatSession


class RecordingGenerator:
    def __init__(self, *replies: str) -> None:
        self.replies = list(replies)
        self.calls: list[tuple[str, str]] = []

    def generate(
        self, system_prompt: str, user_prompt: str, options: GenerationOptions | None = None
    ) -> str:
        self.calls.append((system_prompt, user_prompt))
        reply = self.replies.pop(0)
        if reply.startswith("!"):
            raise GenerationError(reply[1:])
        return reply


ARIA = Character(
    id="aria",
    name="Aria",
    race="Elf",
    personalities=("Brave", "Curious"),
    intro_messages=("Hello there.", "  The   tide is turning. "),
    selected_intro_index=1,
)


def _chat(
    generator: RecordingGenerator, persona: str = ""
) -> tuple[EntityLibrary[ChatSession], CharacterChat]:
    sessions: EntityLibrary[ChatSession] = EntityLibrary(
        name="chat_sessions", decode=decode_chat_session, store=None
    )
    asyncio.run(sessions.initialize())
    return sessions, CharacterChat(sessions, DraftGenerator(generator), persona=persona)


def test_start_greets_with_selected_intro_and_saves_session() -> None:
    sessions, chat = _chat(RecordingGenerator())
    session = asyncio.run(chat.start(ARIA))
    assert session.messages == (ChatMessage(role="assistant", content="The tide is turning."),)
    assert session.character_name == "Aria"
    assert sessions.get(session.id) == session


def test_start_resumes_latest_session_for_the_character() -> None:
    sessions, chat = _chat(RecordingGenerator())
    older = ChatSession(
        id="old", character_id="aria", character_name="Aria", updated_at="2024-01-01T00:00:00"
    )
    newer = ChatSession(
        id="new", character_id="aria", character_name="Aria", updated_at="2024-05-01T00:00:00"
    )
    other = ChatSession(
        id="bram", character_id="bram", character_name="Bram", updated_at="2025-01-01T00:00:00"
    )

    async def scenario() -> ChatSession:
        for item in (older, newer, other):
            await sessions.save(item)
        return await chat.start(Character(id="aria", name="Aria Vale"))

    resumed = asyncio.run(scenario())
    assert resumed.id == "new"
    assert resumed.character_name == "Aria Vale"
    assert len(sessions) == 3


def test_send_appends_reply_and_persists() -> None:
    generator = RecordingGenerator("Welcome aboard.")
    sessions, chat = _chat(generator, persona="  A  sailor ")

    async def scenario() -> ChatSession | None:
        session = await chat.start(ARIA)
        return await chat.send(session, ARIA, "  Where   are we going? ")

    updated = asyncio.run(scenario())
    assert updated is not None
    assert [(item.role, item.content) for item in updated.messages] == [
        ("assistant", "The tide is turning."),
        ("user", "Where are we going?"),
        ("assistant", "Welcome aboard."),
    ]
    assert sessions.get(updated.id) == updated
    system_prompt, user_prompt = generator.calls[0]
    assert "Name: Aria" in system_prompt
    assert "User persona: A sailor" in system_prompt
    assert "Aria: The tide is turning.\nUser: Where are we going?" in user_prompt


def test_history_sent_to_the_model_is_bounded_by_context_size() -> None:
    assert history_limit(32000) == 145
    assert history_limit(100) == 2
    generator = RecordingGenerator("Reply.")
    config = ProxyConfig(context_size=660)
    sessions: EntityLibrary[ChatSession] = EntityLibrary(
        name="chat_sessions", decode=decode_chat_session, store=None
    )
    chat = CharacterChat.from_config(sessions, DraftGenerator(generator), config)
    session = ChatSession(
        id="s",
        character_id="aria",
        character_name="Aria",
        messages=tuple(ChatMessage(role="user", content=f"message {n}") for n in range(5)),
    )

    async def scenario() -> ChatSession | None:
        await sessions.initialize()
        await sessions.save(session)
        return await chat.send(session, ARIA, "latest")

    updated = asyncio.run(scenario())
    assert updated is not None
    assert len(updated.messages) == 7
    _, user_prompt = generator.calls[0]
    assert "message 2" not in user_prompt
    assert "User: message 3\nUser: message 4\nUser: latest" in user_prompt


def test_failed_or_blank_send_leaves_session_unchanged() -> None:
    generator = RecordingGenerator("!Request failed (502). upstream")
    sessions, chat = _chat(generator)

    async def scenario() -> tuple[ChatSession, ChatSession | None, ChatSession | None]:
        session = await chat.start(ARIA)
        blank = await chat.send(session, ARIA, "   ")
        failed = await chat.send(session, ARIA, "Hello?")
        return session, blank, failed

    session, blank, failed = asyncio.run(scenario())
    assert blank is None
    assert failed is None
    assert chat.error == "Request failed (502). upstream"
    assert not chat.busy
    assert sessions.get(session.id) == session
    assert len(generator.calls) == 1


def test_system_prompt_without_persona() -> None:
    prompt = chat_system_prompt(ARIA)
    assert "User persona: (not provided)" in prompt
    assert "Personalities: Brave, Curious" in prompt
    assert "Age: \n" in prompt
