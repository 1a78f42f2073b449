"""Defensive parsing of free-form generator output into list entries."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping

from cast_studio.core.normalization import collapse_whitespace

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
_LIST_MARKER_RE = re.compile(r"^[-*\d.)\s]+")
_ENTRY_KEYS = ("entry", "text", "content")


def _entries_from_array(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    entries: list[str] = []
    for item in value:
        if isinstance(item, str):
            entries.append(collapse_whitespace(item))
        elif isinstance(item, Mapping):
            text = next((item[key] for key in _ENTRY_KEYS if item.get(key)), "")
            entries.append(collapse_whitespace(text) if isinstance(text, str) else "")
    return [entry for entry in entries if entry]


def _try_json_array(raw: str) -> list[str]:
    try:
        return _entries_from_array(json.loads(raw))
    except json.JSONDecodeError:
        return []


def parse_generated_entries(text: str) -> list[str]:
    """Strict JSON array, then a fenced block, then one entry per line."""
    clean = (text or "").strip()
    if not clean:
        return []

    direct = _try_json_array(clean)
    if direct:
        return direct

    fenced = _FENCE_RE.search(clean)
    if fenced:
        from_fence = _try_json_array(fenced.group(1).strip())
        if from_fence:
            return from_fence

    lines = (
        _LIST_MARKER_RE.sub("", line)
        for line in re.split(r"\n+", clean)
        if not line.lstrip().startswith("```")
    )
    return [entry for entry in (collapse_whitespace(line) for line in lines) if entry]
