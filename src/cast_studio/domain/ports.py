"""Ports for persistence backends and text generation."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Protocol

from cast_studio.contracts import GenerationOptions


class EntityStore(Protocol):
    """Async key-value store for one entity collection, keyed by record id."""

    async def get_all(self) -> list[dict[str, object]]: ...

    async def put_many(self, records: Sequence[Mapping[str, object]]) -> None: ...

    async def delete(self, entity_id: str) -> None: ...

    async def clear(self) -> None: ...


class LegacyBlobStore(Protocol):
    """Synchronous flat string store holding pre-migration blobs."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class TextGenerator(Protocol):
    """Opaque text source used to fill free-text fields."""

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        options: GenerationOptions | None = None,
    ) -> str: ...
