"""CLI for listing, importing, and exporting the local character and story library."""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path

from cast_studio.adapters.observability import LogSettings, configure_runtime_logging
from cast_studio.application.library import EntityLibrary
from cast_studio.application.workspace import Workspace, open_workspace
from cast_studio.core.errors import ImportFormatError
from cast_studio.core.reconciliation import (
    export_entity_json,
    export_filename,
    export_json,
    filename_safe,
)
from cast_studio.core.text_export import character_to_text, story_to_text
from cast_studio.domain.models import Character, ChatSession, StoryProject

COLLECTIONS = ("characters", "stories", "chat_sessions")
EXPORT_PREFIXES = {
    "characters": "characters",
    "stories": "stories",
    "chat_sessions": "chat_sessions",
}


def _label(entity: object) -> str:
    if isinstance(entity, Character):
        return entity.name
    if isinstance(entity, StoryProject):
        return entity.title
    if isinstance(entity, ChatSession):
        return f"{entity.character_name} ({len(entity.messages)} messages)"
    return ""


def _library(workspace: Workspace, collection: str) -> EntityLibrary:
    return getattr(workspace, collection)


def build_arg_parser() -> argparse.ArgumentParser:
    """Define subcommands for the local library."""
    parser = argparse.ArgumentParser(description="Manage the local cast_studio library.")
    parser.add_argument(
        "--db-path",
        default="",
        help="SQLite path for the primary store (default: work/local/cast_studio.db).",
    )
    parser.add_argument(
        "--legacy-path",
        default="",
        help="Legacy JSON storage file to migrate from (default: work/local/legacy_storage.json).",
    )
    parser.add_argument(
        "--log-level",
        default="",
        help="Override CAST_STUDIO_LOG_LEVEL for this run (for example DEBUG).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List stored records, newest first.")
    list_parser.add_argument("--collection", choices=COLLECTIONS, default="characters")

    import_parser = subparsers.add_parser("import", help="Merge a JSON export into the library.")
    import_parser.add_argument("--input", required=True, help="Path to a JSON array export.")
    import_parser.add_argument("--collection", choices=COLLECTIONS, default="characters")

    export_parser = subparsers.add_parser("export", help="Write records as a JSON export.")
    export_parser.add_argument("--collection", choices=COLLECTIONS, default="characters")
    export_parser.add_argument("--id", default="", help="Export one record as a single object.")
    export_parser.add_argument(
        "--output",
        default="",
        help="Output path. Defaults to a dated file name in the current directory.",
    )

    text_parser = subparsers.add_parser(
        "export-text", help="Write a character or story as readable text."
    )
    text_parser.add_argument("--id", required=True, help="Character or story id.")
    text_parser.add_argument("--output", default="", help="Output path. Defaults to stdout.")

    subparsers.add_parser("migrate", help="Load the library, migrating legacy storage once.")
    return parser


def _write(output: str, default_name: str, content: str) -> Path:
    path = Path(output.strip() or default_name)
    if path.parent != Path("."):
        path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content + "\n", encoding="utf-8")
    return path


async def _run(parsed: argparse.Namespace) -> int:
    db_path = Path(str(parsed.db_path)) if str(parsed.db_path).strip() else None
    legacy_path = Path(str(parsed.legacy_path)) if str(parsed.legacy_path).strip() else None
    workspace = open_workspace(db_path=db_path, legacy_path=legacy_path)
    results = await workspace.initialize()
    if workspace.storage_error:
        print(f"Warning: {workspace.storage_error}")

    if parsed.command == "migrate":
        for name, result in results.items():
            print(f"{name}: {result.source} ({result.loaded} records)")
        return 0

    if parsed.command == "list":
        library = _library(workspace, parsed.collection)
        for entity in library.entities:
            print(f"{entity.id}\t{_label(entity)}\t{entity.updated_at}")
        print(f"{len(library)} {parsed.collection}")
        return 0

    if parsed.command == "import":
        library = _library(workspace, parsed.collection)
        data = Path(str(parsed.input)).read_bytes()
        try:
            report = await library.import_payload(data)
        except ImportFormatError as exc:
            print(str(exc))
            return 1
        print(f"Imported {report.accepted} {parsed.collection}.")
        for index, reason in report.rejected:
            print(f"Skipped item {index}: {reason}")
        return 0

    if parsed.command == "export":
        library = _library(workspace, parsed.collection)
        entity_id = str(parsed.id).strip()
        if entity_id:
            entity = library.get(entity_id)
            if entity is None:
                print(f"Not found: {entity_id}")
                return 1
            stem = filename_safe(_label(entity)) or EXPORT_PREFIXES[parsed.collection]
            path = _write(parsed.output, export_filename(stem), export_entity_json(entity))
        else:
            path = _write(
                parsed.output,
                export_filename(EXPORT_PREFIXES[parsed.collection]),
                export_json(library.entities),
            )
        print(f"Wrote export: {path}")
        return 0

    if parsed.command == "export-text":
        entity_id = str(parsed.id).strip()
        characters = workspace.character_lookup()
        character = characters.get(entity_id)
        story = workspace.stories.get(entity_id)
        if character is not None:
            text, stem = character_to_text(character), character.name
        elif story is not None:
            text, stem = story_to_text(story, characters), story.title
        else:
            print(f"Not found: {entity_id}")
            return 1
        if str(parsed.output).strip():
            path = _write(
                parsed.output, export_filename(filename_safe(stem), extension="txt"), text
            )
            print(f"Wrote text export: {path}")
        else:
            print(text)
        return 0

    return 2


def main(argv: list[str] | None = None) -> None:
    """Parse CLI flags and run one library command."""
    parser = build_arg_parser()
    parsed = parser.parse_args(argv)
    configure_runtime_logging(LogSettings.from_env(level=str(parsed.log_level) or None))
    status = asyncio.run(_run(parsed))
    if status:
        raise SystemExit(status)


if __name__ == "__main__":
    main()
