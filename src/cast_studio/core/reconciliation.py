"""Import decoding, id-keyed merge, and JSON export helpers."""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Generic, Protocol, TypeVar

from cast_studio.core.errors import ImportFormatError
from cast_studio.core.normalization import Accepted, Decoded, Rejected, collapse_whitespace

INVALID_IMPORT_MESSAGE = "Invalid file. Import a JSON export from this app."
_UNSAFE_FILENAME_RE = re.compile(r"[^a-zA-Z0-9_\-]")


class Entity(Protocol):
    @property
    def id(self) -> str: ...

    @property
    def updated_at(self) -> str: ...

    def to_payload(self) -> dict[str, object]: ...


EntityT = TypeVar("EntityT", bound=Entity)


@dataclass(frozen=True)
class DecodedBatch(Generic[EntityT]):
    """Accepted entities plus per-index rejection reasons."""

    accepted: list[EntityT] = field(default_factory=list)
    rejected: list[tuple[int, str]] = field(default_factory=list)


def decode_import_payload(data: bytes | str) -> list[object]:
    """Parse an import file; anything other than a top-level JSON array is rejected."""
    try:
        text = data.decode("utf-8-sig") if isinstance(data, bytes) else data
        parsed = json.loads(text)
    except (ValueError, RecursionError) as exc:
        # ValueError also covers the int digit limit and bad UTF-8
        raise ImportFormatError(INVALID_IMPORT_MESSAGE) from exc
    if not isinstance(parsed, list):
        raise ImportFormatError(INVALID_IMPORT_MESSAGE)
    return parsed


def decode_batch(
    items: Iterable[object], decode: Callable[[object], Decoded[EntityT]]
) -> DecodedBatch[EntityT]:
    batch: DecodedBatch[EntityT] = DecodedBatch()
    for index, item in enumerate(items):
        result = decode(item)
        if isinstance(result, Accepted):
            batch.accepted.append(result.entity)
        elif isinstance(result, Rejected):
            batch.rejected.append((index, result.reason))
    return batch


def _updated_sort_key(entity: Entity) -> datetime:
    try:
        parsed = datetime.fromisoformat(entity.updated_at)
    except ValueError:
        return datetime.min.replace(tzinfo=UTC)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def sort_by_updated_desc(entities: Iterable[EntityT]) -> list[EntityT]:
    """Most recently updated first; equal timestamps keep their relative order."""
    return sorted(entities, key=_updated_sort_key, reverse=True)


def import_merge(existing: Sequence[EntityT], incoming: Sequence[EntityT]) -> list[EntityT]:
    """Merge by id; incoming records always replace existing ones."""
    merged: dict[str, EntityT] = {entity.id: entity for entity in existing}
    for entity in incoming:
        merged[entity.id] = entity
    return sort_by_updated_desc(merged.values())


def import_merge_raw(
    existing: Sequence[EntityT],
    incoming_raw: Iterable[object],
    decode: Callable[[object], Decoded[EntityT]],
) -> tuple[list[EntityT], DecodedBatch[EntityT]]:
    """Normalize raw incoming payloads, then merge them into ``existing``."""
    batch = decode_batch(incoming_raw, decode)
    return import_merge(existing, batch.accepted), batch


def export_json(entities: Iterable[Entity]) -> str:
    return json.dumps([entity.to_payload() for entity in entities], indent=2, ensure_ascii=False)


def export_entity_json(entity: Entity) -> str:
    return json.dumps(entity.to_payload(), indent=2, ensure_ascii=False)


def filename_safe(name: str) -> str:
    """Turn a display name into a short ASCII filename stem."""
    joined = "_".join(part for part in collapse_whitespace(name).split(" ") if part)
    return _UNSAFE_FILENAME_RE.sub("", joined)[:80]


def export_filename(prefix: str, *, today: date | None = None, extension: str = "json") -> str:
    stamp = (today or datetime.now(UTC).date()).isoformat()
    stem = filename_safe(prefix) or "export"
    return f"{stem}_{stamp}.{extension}"
