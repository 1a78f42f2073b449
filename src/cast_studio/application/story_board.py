"""Story board controller: gestures, panning, node placement, and the edge editor."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from cast_studio.application.library import EntityLibrary
from cast_studio.core import relationship_graph as graph
from cast_studio.core.connector import (
    IDLE,
    SNAP_RADIUS,
    Abort,
    Connecting,
    GestureEvent,
    GestureState,
    PanState,
    PointerMove,
    PressSource,
    Release,
    indicator_point,
    preview_path,
    reduce_gesture,
)
from cast_studio.core.relationship_graph import EdgeView, Point
from cast_studio.domain.models import (
    DEFAULT_ALIGNMENT,
    DEFAULT_RELATION_TYPE,
    BoardNode,
    StoryProject,
    StoryRelationship,
)

logger = logging.getLogger(__name__)


@dataclass
class RelationshipDraft:
    """Relationship editor state; ``relationship_id`` is set when editing."""

    from_character_id: str
    to_character_id: str
    alignment: str = DEFAULT_ALIGNMENT
    relation_type: str = DEFAULT_RELATION_TYPE
    details: str = ""
    relationship_id: str | None = None


class StoryBoard:
    """Binds the gesture reducer and graph operations to one story in a library.

    Every story change goes through ``EntityLibrary.update`` so board edits are
    persisted exactly like any other field edit.
    """

    def __init__(
        self,
        stories: EntityLibrary[StoryProject],
        story_id: str,
        *,
        snap_radius: float = SNAP_RADIUS,
    ) -> None:
        self._stories = stories
        self._story_id = story_id
        self._snap_radius = snap_radius
        self.gesture: GestureState = IDLE
        self.pan = PanState()
        self.editor: RelationshipDraft | None = None
        self.selected_relationship_id: str | None = None

    @property
    def story(self) -> StoryProject | None:
        return self._stories.get(self._story_id)

    def _require_story(self) -> StoryProject:
        story = self.story
        if story is None:
            raise LookupError(f"Story not found: {self._story_id}")
        return story

    async def _apply(self, change: Callable[[StoryProject], StoryProject]) -> StoryProject | None:
        return await self._stories.update(self._story_id, change)

    def _nodes(self) -> tuple[BoardNode, ...]:
        story = self.story
        return graph.placed_cast_nodes(story) if story is not None else ()

    def _dispatch(self, event: GestureEvent) -> None:
        nodes = self._nodes()
        transition = reduce_gesture(
            self.gesture, event, nodes=nodes, pan=self.pan.offset, snap_radius=self._snap_radius
        )
        self.gesture = transition.state
        if transition.effect is not None:
            self.editor = RelationshipDraft(
                from_character_id=transition.effect.from_character_id,
                to_character_id=transition.effect.to_character_id,
            )

    @property
    def connecting(self) -> bool:
        return isinstance(self.gesture, Connecting)

    def press_source(self, node_id: str) -> None:
        if self.pan.dragging:
            return
        self._dispatch(PressSource(node_id))

    def press_board(self, pointer: Point) -> None:
        """Pointer down on empty canvas starts a pan drag."""
        if self.connecting:
            return
        self.pan = self.pan.start(pointer)

    def pointer_move(self, pointer: Point) -> None:
        if self.pan.dragging:
            self.pan = self.pan.drag(pointer)
        if self.connecting:
            self._dispatch(PointerMove(pointer))

    def release(self, on_target: str | None = None) -> None:
        if self.pan.dragging:
            self.pan = self.pan.end()
        if self.connecting:
            self._dispatch(Release(on_target=on_target))

    def abort(self) -> None:
        """Window blur or external drag end: drop every transient gesture."""
        self._dispatch(Abort())
        self.pan = self.pan.end()

    def indicator(self) -> Point | None:
        return indicator_point(self.gesture, self._nodes())

    def preview(self) -> str | None:
        return preview_path(self.gesture, self._nodes(), self.pan.offset)

    def edges(self, known_character_ids: frozenset[str] | None = None) -> list[EdgeView]:
        story = self.story
        if story is None:
            return []
        return graph.render_edges(
            story,
            pan=self.pan.offset,
            highlighted_id=self.selected_relationship_id,
            known_character_ids=known_character_ids,
        )

    async def add_to_cast(self, character_id: str) -> StoryProject | None:
        return await self._apply(lambda story: graph.add_to_cast(story, character_id))

    async def remove_from_cast(self, character_id: str) -> StoryProject | None:
        return await self._apply(lambda story: graph.remove_from_cast(story, character_id))

    async def move_node(self, character_id: str, x: float, y: float) -> StoryProject | None:
        """Drop a card at board coordinates, placing it if it was on the tray."""
        return await self._apply(lambda story: graph.upsert_board_node(story, character_id, x, y))

    async def drop_on_tray(self, character_id: str) -> StoryProject | None:
        if self.selected_relationship_id is not None:
            story = self._require_story()
            for relationship in story.relationships:
                if relationship.id == self.selected_relationship_id and relationship.touches(
                    character_id
                ):
                    self.selected_relationship_id = None
        return await self._apply(lambda story: graph.remove_board_node(story, character_id))

    def edit_relationship(self, relationship_id: str) -> RelationshipDraft | None:
        story = self._require_story()
        for relationship in story.relationships:
            if relationship.id == relationship_id:
                self.selected_relationship_id = relationship_id
                self.editor = RelationshipDraft(
                    from_character_id=relationship.from_character_id,
                    to_character_id=relationship.to_character_id,
                    alignment=relationship.alignment,
                    relation_type=relationship.relation_type,
                    details=relationship.details,
                    relationship_id=relationship.id,
                )
                return self.editor
        return None

    def cancel_editor(self) -> None:
        self.editor = None

    async def save_editor(self) -> StoryRelationship | None:
        """Create or update the edge in the editor; ValidationError keeps the editor open."""
        draft = self.editor
        if draft is None:
            return None
        self._require_story()
        relationship: StoryRelationship | None
        if draft.relationship_id is None:
            created: list[StoryRelationship] = []

            def attach(current: StoryProject) -> StoryProject:
                with_edge, new_relationship = graph.add_relationship(
                    current,
                    from_character_id=draft.from_character_id,
                    to_character_id=draft.to_character_id,
                    alignment=draft.alignment,
                    relation_type=draft.relation_type,
                    details=draft.details,
                )
                created.append(new_relationship)
                return with_edge

            await self._apply(attach)
            relationship = created[0] if created else None
            logger.info(
                "board.relationship_created story=%s from=%s to=%s",
                self._story_id,
                draft.from_character_id,
                draft.to_character_id,
            )
        else:
            updated = await self._apply(
                lambda current: graph.update_relationship(
                    current,
                    draft.relationship_id or "",
                    alignment=draft.alignment,
                    relation_type=draft.relation_type,
                    details=draft.details,
                )
            )
            relationship = next(
                (
                    item
                    for item in (updated.relationships if updated is not None else ())
                    if item.id == draft.relationship_id
                ),
                None,
            )
        self.editor = None
        if relationship is not None:
            self.selected_relationship_id = relationship.id
        return relationship

    async def delete_relationship(self, relationship_id: str) -> StoryProject | None:
        if self.selected_relationship_id == relationship_id:
            self.selected_relationship_id = None
        return await self._apply(lambda story: graph.delete_relationship(story, relationship_id))
