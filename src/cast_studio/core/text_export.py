"""Human-readable plain-text exports of characters and stories."""

from __future__ import annotations

from collections.abc import Mapping

from cast_studio.domain.models import Character, StoryProject


def character_to_text(character: Character) -> str:
    """Flatten a character sheet; the selected intro is marked with ``*``."""
    lines = [
        f"# {character.name or 'Character'}",
        "",
        "## Details",
        f"Name: {character.name}",
        f"Gender: {character.gender}",
        f"Age: {'' if character.age is None else character.age}",
        f"Height: {character.height}",
        f"Origins: {character.origins}",
        f"Race: {character.race}",
        f"Personality: {', '.join(character.personalities)}",
        f"Unique traits: {', '.join(character.unique_traits)}",
        "",
        "## Synopsis",
        character.synopsis,
        "",
        "## Backstory",
        *(f"- {entry}" for entry in character.backstory),
        "",
        "## System Rules",
        character.system_rules,
        "",
        "## Intro Messages",
    ]
    for index, message in enumerate(character.intro_messages):
        mark = "*" if index == character.selected_intro_index else "-"
        lines.append(f"{mark} Intro {index + 1}:\n{message}")
    lines.append("")
    return "\n".join(lines)


def story_to_text(story: StoryProject, characters: Mapping[str, Character]) -> str:
    """Flatten a story; cast ids without a character are listed as missing."""

    def display(character_id: str) -> str:
        character = characters.get(character_id)
        return character.name if character is not None else f"(missing character {character_id})"

    lines = [
        f"# {story.title}",
        "",
        "## Scenario",
        story.scenario,
        "",
        "## Cast",
        *(f"- {display(character_id)}" for character_id in story.character_ids),
        "",
        "## Plot Points",
        *(f"{index}. {point}" for index, point in enumerate(story.plot_points, start=1)),
        "",
        "## Relationships",
    ]
    for relationship in story.relationships:
        line = (
            f"- {display(relationship.from_character_id)} -> "
            f"{display(relationship.to_character_id)} "
            f"({relationship.alignment}, {relationship.relation_type})"
        )
        if relationship.details:
            line += f": {relationship.details}"
        lines.append(line)
    lines.append("")
    return "\n".join(lines)
