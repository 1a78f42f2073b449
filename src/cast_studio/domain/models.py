"""Core character and story entity models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final, Literal

Gender = Literal["Male", "Female", ""]
ChatRole = Literal["user", "assistant"]

RACES: Final[tuple[str, ...]] = (
    "Human",
    "Elf",
    "Dwarf",
    "Orc",
    "Goblin",
    "Vampire",
    "Werewolf",
    "Demon",
    "Angel",
    "Fae",
    "Merfolk",
    "Dragonborn",
    "Undead",
    "Other",
)
OTHER_RACE: Final[str] = "Other"

PERSONALITIES: Final[tuple[str, ...]] = (
    "Brave",
    "Cautious",
    "Charming",
    "Stoic",
    "Ambitious",
    "Mischievous",
    "Loyal",
    "Ruthless",
    "Gentle",
    "Protective",
    "Pragmatic",
    "Dreamy",
    "Witty",
    "Blunt",
    "Diplomatic",
    "Rebellious",
    "Rule-abiding",
    "Curious",
    "Analytical",
    "Impulsive",
    "Patient",
    "Confident",
    "Secretive",
    "Open-book",
    "Optimistic",
    "Pessimistic",
)

ALIGNMENTS: Final[tuple[str, ...]] = (
    "Allied",
    "Friendly",
    "Neutral",
    "Tense",
    "Hostile",
    "Rival",
    "Dependent",
    "Manipulative",
)
DEFAULT_ALIGNMENT: Final[str] = "Neutral"

RELATION_TYPES: Final[tuple[str, ...]] = (
    "Romantic",
    "Platonic",
    "Familial",
    "Professional",
    "Mentorship",
    "Rivalry",
    "Other",
)
DEFAULT_RELATION_TYPE: Final[str] = "Other"

UNTITLED_STORY: Final[str] = "Untitled story"


@dataclass(frozen=True)
class Character:
    """A roleplay character sheet."""

    id: str
    name: str
    gender: Gender = ""
    image_data_url: str = ""
    age: int | None = None
    height: str = ""
    origins: str = ""
    race_preset: str = ""
    race: str = ""
    personalities: tuple[str, ...] = ()
    unique_traits: tuple[str, ...] = ()
    backstory: tuple[str, ...] = ()
    system_rules: str = ""
    synopsis: str = ""
    intro_messages: tuple[str, ...] = ("",)
    selected_intro_index: int = 0
    created_at: str = ""
    updated_at: str = ""

    @property
    def selected_intro(self) -> str:
        return self.intro_messages[self.selected_intro_index]

    def to_payload(self) -> dict[str, object]:
        """Return the camelCase JSON shape used by exports and storage."""
        return {
            "id": self.id,
            "name": self.name,
            "gender": self.gender,
            "imageDataUrl": self.image_data_url,
            "age": "" if self.age is None else self.age,
            "height": self.height,
            "origins": self.origins,
            "racePreset": self.race_preset,
            "race": self.race,
            "personalities": list(self.personalities),
            "uniqueTraits": list(self.unique_traits),
            "backstory": list(self.backstory),
            "systemRules": self.system_rules,
            "synopsis": self.synopsis,
            "introMessages": list(self.intro_messages),
            "selectedIntroIndex": self.selected_intro_index,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass(frozen=True)
class BoardNode:
    """Placement of one cast member on the story board."""

    character_id: str
    x: float
    y: float

    def to_payload(self) -> dict[str, object]:
        return {"characterId": self.character_id, "x": self.x, "y": self.y}


@dataclass(frozen=True)
class StoryRelationship:
    """Directed relationship edge between two cast members."""

    id: str
    from_character_id: str
    to_character_id: str
    alignment: str = DEFAULT_ALIGNMENT
    relation_type: str = DEFAULT_RELATION_TYPE
    details: str = ""
    created_at: str = ""

    def touches(self, character_id: str) -> bool:
        return character_id in (self.from_character_id, self.to_character_id)

    def to_payload(self) -> dict[str, object]:
        return {
            "id": self.id,
            "fromCharacterId": self.from_character_id,
            "toCharacterId": self.to_character_id,
            "alignment": self.alignment,
            "relationType": self.relation_type,
            "details": self.details,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class StoryProject:
    """A multi-character story with its cast, plot and relationship board."""

    id: str
    title: str
    character_ids: tuple[str, ...] = ()
    image_data_url: str = ""
    scenario: str = ""
    plot_points: tuple[str, ...] = ()
    relationships: tuple[StoryRelationship, ...] = ()
    board_nodes: tuple[BoardNode, ...] = ()
    created_at: str = ""
    updated_at: str = ""

    def node_for(self, character_id: str) -> BoardNode | None:
        for node in self.board_nodes:
            if node.character_id == character_id:
                return node
        return None

    def to_payload(self) -> dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "characterIds": list(self.character_ids),
            "imageDataUrl": self.image_data_url,
            "scenario": self.scenario,
            "plotPoints": list(self.plot_points),
            "relationships": [item.to_payload() for item in self.relationships],
            "boardNodes": [node.to_payload() for node in self.board_nodes],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass(frozen=True)
class ChatMessage:
    role: ChatRole
    content: str

    def to_payload(self) -> dict[str, object]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ChatSession:
    """Saved conversation with one character."""

    id: str
    character_id: str
    character_name: str
    character_image_data_url: str = ""
    messages: tuple[ChatMessage, ...] = field(default_factory=tuple)
    created_at: str = ""
    updated_at: str = ""

    def to_payload(self) -> dict[str, object]:
        return {
            "id": self.id,
            "characterId": self.character_id,
            "characterName": self.character_name,
            "characterImageDataUrl": self.character_image_data_url,
            "messages": [message.to_payload() for message in self.messages],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
