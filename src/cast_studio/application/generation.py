"""Field generators that fill one draft or story field from the text generator.

Each operation writes exactly one target field and nothing else. Failures are
caught here and kept in ``DraftGenerator.error`` for inline display; the draft
is left unchanged when generation fails.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from cast_studio.application.character_draft import CharacterDraft
from cast_studio.contracts import GenerationOptions
from cast_studio.core.errors import GenerationBusy, GenerationError
from cast_studio.core.generated_text import parse_generated_entries
from cast_studio.core.normalization import clamp_index, collapse_whitespace
from cast_studio.domain.models import Character, StoryProject
from cast_studio.domain.ports import TextGenerator

logger = logging.getLogger(__name__)

INTRO_SYSTEM_PROMPT = (
    "You write the opening message of a roleplay with the character described below. "
    "Start the scene right away, stay in character, and keep it vivid. "
    "Reply with the message only, without notes or commentary."
)
SYNOPSIS_SYSTEM_PROMPT = (
    "You write a short synopsis for a roleplay character sheet. Use three to six "
    "sentences that hint at what the character wants, a flaw, and what is at stake. "
    "No lists, headings, or quotation marks. Reply with the synopsis only."
)
BACKSTORY_EXPAND_SYSTEM_PROMPT = (
    "You turn rough backstory notes into a coherent chronological timeline. Keep the "
    "established facts and tone, fill gaps between events, and add new entries where "
    'the story needs them. Reply with a JSON array of strings only: ["entry 1", "entry 2"].'
)
BACKSTORY_REVISE_SYSTEM_PROMPT = (
    "You revise a backstory timeline following the user's feedback. Keep the order of "
    "events coherent and keep facts the feedback does not change. Reply with a JSON "
    'array of strings only: ["entry 1", "entry 2"].'
)
INTRO_REVISE_SYSTEM_PROMPT = (
    "You revise one roleplay opening message following the user's feedback. Use only "
    "the character overview and the message provided. Reply with the revised message only."
)
SYNOPSIS_REVISE_SYSTEM_PROMPT = (
    "You revise a roleplay character synopsis following the user's feedback. Keep it "
    "vivid and focused on roleplay. Reply with the revised synopsis only."
)
SCENARIO_SYSTEM_PROMPT = (
    "You write the opening scenario for a story with several roleplay characters. "
    "Describe the setting and the situation that brings the cast together in one or "
    "two paragraphs. Reply with the scenario only."
)
PLOT_POINTS_SYSTEM_PROMPT = (
    "You outline the main plot points of a story with several roleplay characters. "
    'Reply with a JSON array of strings only, one plot point per entry: ["point 1", "point 2"].'
)


def character_summary(draft: CharacterDraft, *, include_story: bool = True) -> str:
    """Plain-text character overview sent as prompt context."""
    age = draft.age if draft.age not in (None, "") else ""
    lines = [
        f"Name: {collapse_whitespace(draft.name) or '(unnamed)'}",
        f"Gender: {draft.gender}",
        f"Age: {age}",
        f"Height: {collapse_whitespace(draft.height)}",
        f"Origins: {collapse_whitespace(draft.origins)}",
        f"Race: {draft.final_race()}",
        f"Personalities: {', '.join(draft.personalities)}",
        f"Unique traits: {', '.join(draft.unique_traits)}",
    ]
    if include_story:
        lines.append(f"Backstory: {' | '.join(draft.backstory)}")
    lines.append(f"System rules: {collapse_whitespace(draft.system_rules)}")
    if include_story:
        lines.append(f"Synopsis: {collapse_whitespace(draft.synopsis)}")
    return "\n".join(lines)


def story_summary(story: StoryProject, cast: Sequence[Character]) -> str:
    lines = [f"Title: {story.title}"]
    if story.scenario:
        lines.append(f"Scenario: {story.scenario}")
    lines.append("Cast:")
    names = {character.id: character.name for character in cast}
    for character in cast:
        details = ", ".join(item for item in (character.race, *character.personalities) if item)
        label = f"{character.name} ({details})" if details else character.name
        lines.append(f"- {label}. {character.synopsis}".rstrip())
    if story.relationships:
        lines.append("Relationships:")
        for relationship in story.relationships:
            source = names.get(relationship.from_character_id)
            target = names.get(relationship.to_character_id)
            if source is None or target is None:
                continue
            lines.append(
                f"- {source} -> {target}: {relationship.alignment}, {relationship.relation_type}"
                + (f". {relationship.details}" if relationship.details else "")
            )
    return "\n".join(lines)


def _numbered(entries: Sequence[str]) -> str:
    return "\n".join(f"{index}. {entry}" for index, entry in enumerate(entries, start=1))


class DraftGenerator:
    """Runs one generation at a time and writes the result into a single field."""

    def __init__(self, generator: TextGenerator, *, max_tokens: int = 350) -> None:
        self._generator = generator
        self._max_tokens = max_tokens
        self._busy = False
        self.error: str | None = None

    @property
    def busy(self) -> bool:
        return self._busy

    def _fail(self, message: str) -> None:
        self.error = message

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        options: GenerationOptions | None = None,
    ) -> str | None:
        """Run one request; None means it failed or was refused and ``error`` says why."""
        try:
            if self._busy:
                raise GenerationBusy("A generation is already running.")
            self._busy = True
            self.error = None
            try:
                return await asyncio.to_thread(
                    self._generator.generate, system_prompt, user_prompt, options
                )
            finally:
                self._busy = False
        except GenerationError as exc:
            logger.warning("generation.failed error=%s", exc)
            self.error = str(exc)
            return None

    def _scaled(self, low: int, high: int, factor: int = 1) -> int:
        return min(high, max(low, self._max_tokens * factor))

    async def generate_intro(self, draft: CharacterDraft, prompt: str) -> str | None:
        """Replace the selected intro with a generated opening message."""
        request = collapse_whitespace(prompt)
        if not request:
            self._fail("Please write a prompt for the intro message.")
            return None
        text = await self.complete(
            INTRO_SYSTEM_PROMPT,
            f"Character info:\n{character_summary(draft)}\n\nUser prompt:\n{request}\n\n"
            "Return only the intro message text.",
            GenerationOptions(temperature=0.95),
        )
        if text is not None:
            draft.set_current_intro(text)
        return text

    async def generate_synopsis(self, draft: CharacterDraft) -> str | None:
        text = await self.complete(
            SYNOPSIS_SYSTEM_PROMPT,
            f"Character info:\n{character_summary(draft)}\n\nWrite the synopsis now.",
            GenerationOptions(max_tokens=self._scaled(64, 220), temperature=0.9),
        )
        if text is not None:
            draft.synopsis = text
        return text

    async def _backstory_entries(
        self, system_prompt: str, user_prompt: str, max_tokens: int
    ) -> list[str] | None:
        text = await self.complete(
            system_prompt,
            user_prompt,
            GenerationOptions(max_tokens=max_tokens, temperature=0.8),
        )
        if text is None:
            return None
        entries = parse_generated_entries(text)
        if not entries:
            self._fail("The model did not return usable backstory entries.")
            return None
        return entries

    async def expand_backstory(self, draft: CharacterDraft) -> list[str] | None:
        """Rewrite the backstory notes into a fuller timeline."""
        if not draft.backstory:
            self._fail("Add at least one backstory entry first.")
            return None
        entries = await self._backstory_entries(
            BACKSTORY_EXPAND_SYSTEM_PROMPT,
            f"Character info:\n{character_summary(draft)}\n\n"
            f"Raw backstory notes:\n{_numbered(draft.backstory)}\n\n"
            "Rewrite these notes as a detailed timeline, adding entries where context is missing.",
            self._scaled(300, 1000, factor=3),
        )
        if entries is not None:
            draft.backstory = entries
        return entries

    async def revise_backstory(self, draft: CharacterDraft, feedback: str) -> list[str] | None:
        request = collapse_whitespace(feedback)
        if not draft.backstory:
            self._fail("Generate or add backstory entries before revising.")
            return None
        if not request:
            self._fail("Write feedback for how to revise the backstory.")
            return None
        entries = await self._backstory_entries(
            BACKSTORY_REVISE_SYSTEM_PROMPT,
            f"Overview and system context:\n{character_summary(draft, include_story=False)}\n\n"
            f"Current backstory entries:\n{_numbered(draft.backstory)}\n\n"
            f"User revision feedback:\n{request}\n\nRevise the backstory entries now.",
            self._scaled(300, 1200, factor=3),
        )
        if entries is not None:
            draft.backstory = entries
        return entries

    async def revise_intro(self, draft: CharacterDraft, feedback: str) -> str | None:
        """Revise only the selected intro; other intros are never sent or touched."""
        request = collapse_whitespace(feedback)
        current = draft.current_intro
        if not collapse_whitespace(current):
            self._fail("Generate or write this intro before revising it.")
            return None
        if not request:
            self._fail("Write feedback for how to revise this intro.")
            return None
        index = clamp_index(draft.intro_index, len(draft.intro_messages))
        text = await self.complete(
            INTRO_REVISE_SYSTEM_PROMPT,
            f"Overview and system context:\n{character_summary(draft, include_story=False)}\n\n"
            f"Current intro message:\n{current}\n\nUser revision feedback:\n{request}\n\n"
            "Return only the revised intro message.",
            GenerationOptions(temperature=0.9),
        )
        if text is not None:
            draft.intro_messages[index] = text
        return text

    async def revise_synopsis(self, draft: CharacterDraft, feedback: str) -> str | None:
        request = collapse_whitespace(feedback)
        if not collapse_whitespace(draft.synopsis):
            self._fail("Generate or write a synopsis before revising it.")
            return None
        if not request:
            self._fail("Write feedback for how to revise the synopsis.")
            return None
        text = await self.complete(
            SYNOPSIS_REVISE_SYSTEM_PROMPT,
            f"Overview and system context:\n{character_summary(draft, include_story=False)}\n\n"
            f"Current synopsis:\n{draft.synopsis}\n\nUser revision feedback:\n{request}\n\n"
            "Return only the revised synopsis.",
            GenerationOptions(max_tokens=self._scaled(80, 280), temperature=0.9),
        )
        if text is not None:
            draft.synopsis = text
        return text

    async def generate_scenario(
        self, story: StoryProject, cast: Sequence[Character], prompt: str = ""
    ) -> str | None:
        """Return a scenario for the story; the caller stores it on the project."""
        if not cast:
            self._fail("Add at least one character to the cast first.")
            return None
        request = collapse_whitespace(prompt)
        user_prompt = f"Story info:\n{story_summary(story, cast)}"
        if request:
            user_prompt += f"\n\nUser prompt:\n{request}"
        return await self.complete(
            SCENARIO_SYSTEM_PROMPT,
            user_prompt + "\n\nReturn only the scenario text.",
            GenerationOptions(max_tokens=self._scaled(120, 600, factor=2), temperature=0.9),
        )

    async def generate_plot_points(
        self, story: StoryProject, cast: Sequence[Character], prompt: str = ""
    ) -> list[str] | None:
        if not cast:
            self._fail("Add at least one character to the cast first.")
            return None
        request = collapse_whitespace(prompt)
        user_prompt = f"Story info:\n{story_summary(story, cast)}"
        if story.plot_points:
            user_prompt += f"\n\nExisting plot points:\n{_numbered(story.plot_points)}"
        if request:
            user_prompt += f"\n\nUser prompt:\n{request}"
        text = await self.complete(
            PLOT_POINTS_SYSTEM_PROMPT,
            user_prompt,
            GenerationOptions(max_tokens=self._scaled(200, 1000, factor=3), temperature=0.85),
        )
        if text is None:
            return None
        points = parse_generated_entries(text)
        if not points:
            self._fail("The model did not return usable plot points.")
            return None
        return points
