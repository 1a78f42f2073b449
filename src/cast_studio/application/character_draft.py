"""Editable character form state and its conversion into a saved Character."""

from __future__ import annotations

from dataclasses import dataclass, field

from cast_studio.core.errors import ValidationError
from cast_studio.core.normalization import (
    Accepted,
    clamp_index,
    collapse_whitespace,
    decode_character,
    new_entity_id,
    normalize_age,
    utc_now_iso,
)
from cast_studio.domain.models import OTHER_RACE, Character, Gender


def _add_unique(values: list[str], value: str) -> bool:
    clean = collapse_whitespace(value)
    if not clean:
        return False
    if any(existing.casefold() == clean.casefold() for existing in values):
        return False
    values.append(clean)
    return True


@dataclass
class CharacterDraft:
    """Mutable form state; nothing here is persisted until ``to_character``."""

    name: str = ""
    gender: Gender = ""
    image_data_url: str = ""
    age: int | str | None = None
    height: str = ""
    origins: str = ""
    race_preset: str = ""
    custom_race: str = ""
    personalities: list[str] = field(default_factory=list)
    unique_traits: list[str] = field(default_factory=list)
    backstory: list[str] = field(default_factory=list)
    system_rules: str = ""
    synopsis: str = ""
    intro_messages: list[str] = field(default_factory=lambda: [""])
    intro_index: int = 0

    @classmethod
    def from_character(cls, character: Character) -> CharacterDraft:
        intro_messages = list(character.intro_messages) or [""]
        return cls(
            name=character.name,
            gender=character.gender,
            image_data_url=character.image_data_url,
            age=character.age,
            height=character.height,
            origins=character.origins,
            race_preset=character.race_preset,
            custom_race=character.race if character.race_preset == OTHER_RACE else "",
            personalities=list(character.personalities),
            unique_traits=list(character.unique_traits),
            backstory=list(character.backstory),
            system_rules=character.system_rules,
            synopsis=character.synopsis,
            intro_messages=intro_messages,
            intro_index=clamp_index(character.selected_intro_index, len(intro_messages)),
        )

    def final_race(self) -> str:
        if self.race_preset and self.race_preset != OTHER_RACE:
            return self.race_preset
        return collapse_whitespace(self.custom_race)

    def _parsed_age(self) -> int | None:
        if self.age is None or (isinstance(self.age, str) and not self.age.strip()):
            return None
        age = normalize_age(self.age)
        if age is None:
            raise ValidationError("Age must be a positive number.")
        return age

    def validate(self) -> None:
        """Raise ValidationError describing the first problem blocking a save."""
        if not collapse_whitespace(self.name):
            raise ValidationError("Name is required.")
        self._parsed_age()
        if self.race_preset == OTHER_RACE and not collapse_whitespace(self.custom_race):
            raise ValidationError("Please enter a custom race.")

    def add_personality(self, value: str) -> bool:
        return _add_unique(self.personalities, value)

    def remove_personality(self, value: str) -> None:
        self.personalities = [item for item in self.personalities if item != value]

    def add_trait(self, value: str) -> bool:
        return _add_unique(self.unique_traits, value)

    def remove_trait(self, value: str) -> None:
        self.unique_traits = [item for item in self.unique_traits if item != value]

    def add_backstory_entry(self, value: str) -> bool:
        clean = collapse_whitespace(value)
        if not clean:
            return False
        self.backstory.append(clean)
        return True

    def remove_backstory_entry(self, index: int) -> None:
        if 0 <= index < len(self.backstory):
            del self.backstory[index]

    def move_backstory_entry(self, source: int, target: int) -> None:
        if source == target or not 0 <= source < len(self.backstory):
            return
        if not 0 <= target < len(self.backstory):
            return
        entry = self.backstory.pop(source)
        self.backstory.insert(target, entry)

    @property
    def current_intro(self) -> str:
        return self.intro_messages[clamp_index(self.intro_index, len(self.intro_messages))]

    def set_current_intro(self, text: str) -> None:
        self.intro_index = clamp_index(self.intro_index, len(self.intro_messages))
        self.intro_messages[self.intro_index] = text

    def add_intro(self) -> None:
        """Append an empty intro and select it. Intros are never deleted."""
        self.intro_messages.append("")
        self.intro_index = len(self.intro_messages) - 1

    def next_intro(self) -> int:
        self.intro_index = clamp_index(self.intro_index + 1, len(self.intro_messages))
        return self.intro_index

    def previous_intro(self) -> int:
        self.intro_index = clamp_index(self.intro_index - 1, len(self.intro_messages))
        return self.intro_index

    def to_character(self, existing: Character | None = None, *, now: str | None = None) -> Character:
        """Validate and build the saved record, keeping id and createdAt of ``existing``."""
        self.validate()
        timestamp = now or utc_now_iso()
        final_race = self.final_race()
        age = self._parsed_age()
        selected = clamp_index(self.intro_index, len(self.intro_messages))
        kept = [
            (index, message.strip())
            for index, message in enumerate(self.intro_messages)
            if message.strip()
        ]
        intro_messages = [message for _, message in kept] or [""]
        selected_index = next(
            (position for position, (index, _) in enumerate(kept) if index == selected), 0
        )
        payload: dict[str, object] = {
            "id": existing.id if existing is not None else new_entity_id(),
            "name": self.name,
            "gender": self.gender,
            "imageDataUrl": self.image_data_url,
            "age": "" if age is None else age,
            "height": self.height,
            "origins": self.origins,
            "racePreset": self.race_preset or (OTHER_RACE if final_race else ""),
            "race": final_race,
            "personalities": self.personalities,
            "uniqueTraits": self.unique_traits,
            "backstory": self.backstory,
            "systemRules": self.system_rules,
            "synopsis": self.synopsis,
            "introMessages": intro_messages,
            "selectedIntroIndex": selected_index,
            "createdAt": existing.created_at if existing is not None else timestamp,
            "updatedAt": timestamp,
        }
        decoded = decode_character(payload, now=timestamp)
        if not isinstance(decoded, Accepted):
            raise ValidationError(decoded.reason)
        return decoded.entity
