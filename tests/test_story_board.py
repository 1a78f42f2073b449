from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest

from cast_studio.application.library import EntityLibrary
from cast_studio.application.story_board import StoryBoard
from cast_studio.core.connector import Connecting
from cast_studio.core.errors import ValidationError
from cast_studio.core.normalization import decode_story
from cast_studio.core.relationship_graph import CARD_HEIGHT, Point
from cast_studio.domain.models import BoardNode, StoryProject, StoryRelationship


def _board() -> tuple[EntityLibrary[StoryProject], StoryBoard]:
    stories: EntityLibrary[StoryProject] = EntityLibrary(
        name="stories", decode=decode_story, store=None
    )
    story = StoryProject(
        id="s1",
        title="Harbor Lights",
        character_ids=("a", "b", "c"),
        board_nodes=(
            BoardNode(character_id="a", x=0, y=0),
            BoardNode(character_id="b", x=300, y=0),
        ),
        created_at="2024-01-01T00:00:00+00:00",
        updated_at="2024-01-01T00:00:00+00:00",
    )

    async def setup() -> None:
        await stories.initialize()
        await stories.save(story)

    asyncio.run(setup())
    return stories, StoryBoard(stories, "s1")


def test_drag_from_source_to_snapped_target_opens_editor_and_saves_edge() -> None:
    stories, board = _board()
    board.press_source("a")
    assert board.connecting
    board.pointer_move(Point(310, CARD_HEIGHT / 2 + 5))
    assert board.indicator() == Point(300, CARD_HEIGHT / 2)
    assert board.preview() is not None
    board.release()
    assert not board.connecting
    assert board.editor is not None
    assert (board.editor.from_character_id, board.editor.to_character_id) == ("a", "b")

    board.editor.alignment = "Allied"
    board.editor.details = "Shipmates."
    relationship = asyncio.run(board.save_editor())
    assert relationship is not None
    assert board.editor is None
    assert board.selected_relationship_id == relationship.id
    story = stories.get("s1")
    assert story is not None
    assert story.relationships == (relationship,)
    assert story.updated_at != "2024-01-01T00:00:00+00:00"
    edges = board.edges()
    assert [edge.relationship_id for edge in edges] == [relationship.id]
    assert edges[0].highlighted


def test_release_away_from_targets_cancels() -> None:
    _, board = _board()
    board.press_source("a")
    board.pointer_move(Point(900, 900))
    board.release()
    assert board.editor is None
    assert board.indicator() is None


def test_editing_existing_relationship_updates_in_place() -> None:
    stories, board = _board()
    board.press_source("a")
    board.release(on_target="b")
    asyncio.run(board.save_editor())
    story = stories.get("s1")
    assert story is not None
    relationship_id = story.relationships[0].id

    draft = board.edit_relationship(relationship_id)
    assert draft is not None and draft.relationship_id == relationship_id
    draft.relation_type = "Familial"
    updated = asyncio.run(board.save_editor())
    assert updated is not None
    assert updated.id == relationship_id
    assert updated.relation_type == "Familial"
    assert board.edit_relationship("missing") is None


def test_invalid_editor_values_keep_editor_open() -> None:
    stories, board = _board()
    board.press_source("a")
    board.release(on_target="b")
    assert board.editor is not None
    board.editor.alignment = "Sneaky"
    with pytest.raises(ValidationError):
        asyncio.run(board.save_editor())
    assert board.editor is not None
    story = stories.get("s1")
    assert story is not None and story.relationships == ()


def test_pan_drag_shifts_edges_and_snapping_uses_board_space() -> None:
    _, board = _board()
    board.press_board(Point(0, 0))
    board.pointer_move(Point(50, 20))
    board.release()
    assert board.pan.offset == Point(50, 20)
    assert not board.pan.dragging

    board.press_source("a")
    board.pointer_move(Point(350, CARD_HEIGHT / 2 + 20))
    board.release()
    assert board.editor is not None
    assert board.editor.to_character_id == "b"


def test_press_board_is_ignored_while_connecting_and_abort_clears_everything() -> None:
    _, board = _board()
    board.press_source("a")
    board.press_board(Point(5, 5))
    assert not board.pan.dragging
    board.abort()
    assert not board.connecting
    assert board.editor is None


def test_tray_drop_and_delete_clear_selection() -> None:
    stories, board = _board()
    board.press_source("a")
    board.release(on_target="b")
    relationship = asyncio.run(board.save_editor())
    assert relationship is not None

    asyncio.run(board.drop_on_tray("b"))
    story = stories.get("s1")
    assert story is not None
    assert story.node_for("b") is None
    assert story.relationships == ()
    assert board.selected_relationship_id is None
    assert "b" in story.character_ids

    asyncio.run(board.move_node("b", 120, 40))
    asyncio.run(board.move_node("c", 10, 200))
    story = stories.get("s1")
    assert story is not None
    assert [node.character_id for node in story.board_nodes] == ["a", "b", "c"]


def test_cast_changes_and_relationship_delete() -> None:
    stories, board = _board()
    asyncio.run(board.add_to_cast("d"))
    asyncio.run(board.remove_from_cast("c"))
    story = stories.get("s1")
    assert story is not None
    assert story.character_ids == ("a", "b", "d")

    edge = StoryRelationship(id="r1", from_character_id="a", to_character_id="b")

    async def add_edge() -> None:
        await stories.update("s1", lambda current: _with_edge(current, edge))

    asyncio.run(add_edge())
    board.selected_relationship_id = "r1"
    asyncio.run(board.delete_relationship("r1"))
    story = stories.get("s1")
    assert story is not None
    assert story.relationships == ()
    assert board.selected_relationship_id is None


def _with_edge(story: StoryProject, edge: StoryRelationship) -> StoryProject:
    return replace(story, relationships=(*story.relationships, edge))


def test_nodes_outside_the_cast_are_not_snap_or_drop_targets() -> None:
    _, board = _board()
    asyncio.run(board.remove_from_cast("b"))
    board.press_source("a")
    cursor = Point(300, CARD_HEIGHT / 2)
    board.pointer_move(cursor)
    assert board.gesture == Connecting(from_id="a", cursor=cursor, snap_target=None)
    assert board.indicator() == cursor
    board.release(on_target="b")
    assert board.editor is None
    assert not board.connecting


def test_abort_ends_both_connector_and_pan_drags() -> None:
    _, board = _board()
    board.press_board(Point(0, 0))
    board.pointer_move(Point(40, 0))
    assert board.pan.dragging
    board.abort()
    assert not board.pan.dragging
    assert board.pan.offset == Point(40, 0)

    board.press_source("a")
    board.pointer_move(Point(310, CARD_HEIGHT / 2))
    board.abort()
    assert not board.connecting
    assert board.indicator() is None
    assert board.editor is None


def test_saving_a_new_edge_appends_it_once() -> None:
    stories, board = _board()
    board.press_source("b")
    board.release(on_target="a")
    relationship = asyncio.run(board.save_editor())
    assert relationship is not None
    story = stories.get("s1")
    assert story is not None
    assert [item.id for item in story.relationships] == [relationship.id]
    assert (relationship.from_character_id, relationship.to_character_id) == ("b", "a")
