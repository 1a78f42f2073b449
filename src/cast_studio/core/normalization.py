"""Total normalizers that coerce untrusted payloads into canonical entities.

Inputs come from hand-edited JSON, older exports, legacy storage blobs, and
partially filled form state. Only a missing string ``name`` (characters),
``title`` (stories), or cast reference (chat sessions) rejects a record; every
other field is defaulted. Normalizers never raise, and applying one to its own
output returns an equal value.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Generic, TypeVar
from uuid import uuid4

from cast_studio.domain.models import (
    ALIGNMENTS,
    DEFAULT_ALIGNMENT,
    DEFAULT_RELATION_TYPE,
    OTHER_RACE,
    RACES,
    RELATION_TYPES,
    UNTITLED_STORY,
    BoardNode,
    Character,
    ChatMessage,
    ChatSession,
    Gender,
    StoryProject,
    StoryRelationship,
)

EntityT = TypeVar("EntityT")

_WHITESPACE_RE = re.compile(r"\s+")
_DIGITS_RE = re.compile(r"^[0-9]+$")


@dataclass(frozen=True)
class Accepted(Generic[EntityT]):
    """Decode result carrying a normalized entity."""

    entity: EntityT


@dataclass(frozen=True)
class Rejected:
    """Decode result explaining why a record was dropped."""

    reason: str


Decoded = Accepted[EntityT] | Rejected


def new_entity_id() -> str:
    return uuid4().hex


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


def collapse_whitespace(value: object) -> str:
    """Trim and fold internal whitespace runs to one space."""
    if value is None:
        return ""
    return _WHITESPACE_RE.sub(" ", str(value)).strip()


def clamp_index(index: int, length: int) -> int:
    """Wrap ``index`` into ``range(length)``; 0 for empty sequences."""
    if length <= 0:
        return 0
    return index % length


def dedupe_casefold(values: Iterable[str]) -> list[str]:
    """Drop case-insensitive duplicates, keeping the first spelling and order."""
    seen: set[str] = set()
    deduped: list[str] = []
    for value in values:
        key = value.casefold()
        if key in seen:
            continue
        seen.add(key)
        deduped.append(value)
    return deduped


def _is_number(value: object) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _format_scalar(value: object) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    if _is_number(value):
        try:
            return str(value)
        except ValueError:
            # ints past the interpreter's digit limit
            return ""
    return ""


def normalize_string_list(
    value: object, *, collapse: bool = False, unique: bool = False
) -> list[str]:
    """Coerce a list or single scalar into a list of non-empty trimmed strings."""
    if isinstance(value, list | tuple):
        items = [_format_scalar(item) for item in value]
    elif isinstance(value, str) or _is_number(value):
        items = [_format_scalar(value)]
    else:
        return []
    if collapse:
        items = [collapse_whitespace(item) for item in items]
    items = [item for item in items if item]
    if unique:
        items = dedupe_casefold(items)
    return items


def _text(value: object) -> str:
    return collapse_whitespace(value) if isinstance(value, str) else ""


def _long_text(value: object) -> str:
    return value.strip() if isinstance(value, str) else ""


def _entity_id(value: object) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return new_entity_id()


def _timestamp(value: object, fallback: str) -> str:
    if not isinstance(value, str) or not value.strip():
        return fallback
    try:
        datetime.fromisoformat(value.strip())
    except ValueError:
        return fallback
    return value.strip()


def _is_integral(value: object) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value) and value.is_integer()


def normalize_gender(value: object) -> Gender:
    lowered = collapse_whitespace(value).lower() if isinstance(value, str) else ""
    if lowered == "male":
        return "Male"
    if lowered == "female":
        return "Female"
    return ""


def normalize_age(value: object) -> int | None:
    """Return a non-negative integer age, or None when absent or invalid."""
    if _is_integral(value):
        age = int(value)  # type: ignore[arg-type]
        return age if age >= 0 else None
    if isinstance(value, str) and _DIGITS_RE.match(value.strip()):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def resolve_race(race_preset: object, race: object) -> tuple[str, str]:
    """Return ``(racePreset, race)`` with custom text kept only for "Other"."""
    preset_raw = _text(race_preset)
    race_raw = _text(race)
    if preset_raw in RACES:
        preset = preset_raw
    elif race_raw and race_raw not in RACES:
        preset = OTHER_RACE
    elif race_raw in RACES:
        preset = race_raw
    else:
        preset = ""
    display = preset if preset and preset != OTHER_RACE else race_raw
    return preset, display


def _intro_messages(raw: Mapping[str, object]) -> list[str]:
    messages = normalize_string_list(raw.get("introMessages"))
    if messages:
        return messages
    legacy = _long_text(raw.get("introMessage"))
    return [legacy] if legacy else [""]


def _selected_index(value: object, length: int) -> int:
    if _is_integral(value) and 0 <= int(value) < length:  # type: ignore[arg-type]
        return int(value)  # type: ignore[arg-type]
    return 0


def decode_character(raw: object, *, now: str | None = None) -> Decoded[Character]:
    """Decode one character payload into a tagged result."""
    if not isinstance(raw, Mapping):
        return Rejected("Record is not an object.")
    name = raw.get("name")
    if not isinstance(name, str):
        return Rejected("Record has no string name.")

    timestamp = now or utc_now_iso()
    intro_messages = _intro_messages(raw)
    race_preset, race = resolve_race(raw.get("racePreset"), raw.get("race"))
    personalities_raw = raw.get("personalities")
    if personalities_raw is None:
        personalities_raw = raw.get("personality")
    image = raw.get("imageDataUrl")

    return Accepted(
        Character(
            id=_entity_id(raw.get("id")),
            name=collapse_whitespace(name),
            gender=normalize_gender(raw.get("gender")),
            image_data_url=image if isinstance(image, str) else "",
            age=normalize_age(raw.get("age")),
            height=_text(raw.get("height")),
            origins=_text(raw.get("origins")),
            race_preset=race_preset,
            race=race,
            personalities=tuple(
                normalize_string_list(personalities_raw, collapse=True, unique=True)
            ),
            unique_traits=tuple(
                normalize_string_list(raw.get("uniqueTraits"), collapse=True, unique=True)
            ),
            backstory=tuple(normalize_string_list(raw.get("backstory"))),
            system_rules=_long_text(raw.get("systemRules")),
            synopsis=_long_text(raw.get("synopsis")),
            intro_messages=tuple(intro_messages),
            selected_intro_index=_selected_index(
                raw.get("selectedIntroIndex"), len(intro_messages)
            ),
            created_at=_timestamp(raw.get("createdAt"), timestamp),
            updated_at=_timestamp(raw.get("updatedAt"), timestamp),
        )
    )


def normalize_character(raw: object) -> Character | None:
    decoded = decode_character(raw)
    return decoded.entity if isinstance(decoded, Accepted) else None


def _match_choice(value: object, choices: tuple[str, ...], default: str) -> str:
    lowered = collapse_whitespace(value).casefold() if isinstance(value, str) else ""
    for choice in choices:
        if choice.casefold() == lowered:
            return choice
    return default


def _coordinate(value: object) -> float:
    if not _is_number(value):
        return 0.0
    try:
        number = float(value)  # type: ignore[arg-type]
    except OverflowError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def _reference(value: object) -> str:
    return value.strip() if isinstance(value, str) else ""


def normalize_relationship(raw: object, *, now: str | None = None) -> StoryRelationship | None:
    """Normalize one directed edge; drop edges without two distinct endpoints."""
    if not isinstance(raw, Mapping):
        return None
    from_id = _reference(raw.get("fromCharacterId"))
    to_id = _reference(raw.get("toCharacterId"))
    if not from_id or not to_id or from_id == to_id:
        return None
    return StoryRelationship(
        id=_entity_id(raw.get("id")),
        from_character_id=from_id,
        to_character_id=to_id,
        alignment=_match_choice(raw.get("alignment"), ALIGNMENTS, DEFAULT_ALIGNMENT),
        relation_type=_match_choice(raw.get("relationType"), RELATION_TYPES, DEFAULT_RELATION_TYPE),
        details=_long_text(raw.get("details")),
        created_at=_timestamp(raw.get("createdAt"), now or utc_now_iso()),
    )


def normalize_board_node(raw: object) -> BoardNode | None:
    if not isinstance(raw, Mapping):
        return None
    character_id = _reference(raw.get("characterId"))
    if not character_id:
        return None
    return BoardNode(
        character_id=character_id,
        x=_coordinate(raw.get("x")),
        y=_coordinate(raw.get("y")),
    )


def _unique_by(items: Iterable[EntityT], key: Callable[[EntityT], str]) -> tuple[EntityT, ...]:
    seen: set[str] = set()
    kept: list[EntityT] = []
    for item in items:
        item_key = key(item)
        if item_key in seen:
            continue
        seen.add(item_key)
        kept.append(item)
    return tuple(kept)


def _list_items(value: object) -> list[object]:
    return list(value) if isinstance(value, list | tuple) else []


def decode_story(raw: object, *, now: str | None = None) -> Decoded[StoryProject]:
    """Decode one story project payload into a tagged result."""
    if not isinstance(raw, Mapping):
        return Rejected("Record is not an object.")
    title = raw.get("title")
    if not isinstance(title, str):
        return Rejected("Record has no string title.")

    timestamp = now or utc_now_iso()
    relationships = [
        normalize_relationship(item, now=timestamp) for item in _list_items(raw.get("relationships"))
    ]
    nodes = [normalize_board_node(item) for item in _list_items(raw.get("boardNodes"))]
    image = raw.get("imageDataUrl")

    return Accepted(
        StoryProject(
            id=_entity_id(raw.get("id")),
            title=collapse_whitespace(title) or UNTITLED_STORY,
            character_ids=tuple(dict.fromkeys(normalize_string_list(raw.get("characterIds")))),
            image_data_url=image if isinstance(image, str) else "",
            scenario=_long_text(raw.get("scenario")),
            plot_points=tuple(normalize_string_list(raw.get("plotPoints"))),
            relationships=_unique_by(
                (item for item in relationships if item is not None), lambda item: item.id
            ),
            board_nodes=_unique_by(
                (node for node in nodes if node is not None), lambda node: node.character_id
            ),
            created_at=_timestamp(raw.get("createdAt"), timestamp),
            updated_at=_timestamp(raw.get("updatedAt"), timestamp),
        )
    )


def normalize_story(raw: object) -> StoryProject | None:
    decoded = decode_story(raw)
    return decoded.entity if isinstance(decoded, Accepted) else None


def _chat_message(raw: object) -> ChatMessage | None:
    if not isinstance(raw, Mapping):
        return None
    role = raw.get("role")
    content = collapse_whitespace(raw.get("content")) if isinstance(raw.get("content"), str) else ""
    if role not in ("user", "assistant") or not content:
        return None
    return ChatMessage(role=role, content=content)


def decode_chat_session(raw: object, *, now: str | None = None) -> Decoded[ChatSession]:
    """Decode one saved chat session; sessions must name their character."""
    if not isinstance(raw, Mapping):
        return Rejected("Record is not an object.")
    character_id = _reference(raw.get("characterId"))
    character_name = _text(raw.get("characterName"))
    if not character_id or not character_name:
        return Rejected("Session does not reference a character.")

    timestamp = now or utc_now_iso()
    messages = [_chat_message(item) for item in _list_items(raw.get("messages"))]
    image = raw.get("characterImageDataUrl")
    return Accepted(
        ChatSession(
            id=_entity_id(raw.get("id")),
            character_id=character_id,
            character_name=character_name,
            character_image_data_url=image if isinstance(image, str) else "",
            messages=tuple(message for message in messages if message is not None),
            created_at=_timestamp(raw.get("createdAt"), timestamp),
            updated_at=_timestamp(raw.get("updatedAt"), timestamp),
        )
    )


def normalize_chat_session(raw: object) -> ChatSession | None:
    decoded = decode_chat_session(raw)
    return decoded.entity if isinstance(decoded, Accepted) else None
