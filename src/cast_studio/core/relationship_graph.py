"""Relationship graph operations and board geometry for story projects.

All operations are pure: they take a ``StoryProject`` and return a new one.
Timestamps are stamped by the library update path, not here.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Final

from cast_studio.core.errors import ValidationError
from cast_studio.core.normalization import new_entity_id, utc_now_iso
from cast_studio.domain.models import (
    ALIGNMENTS,
    DEFAULT_ALIGNMENT,
    DEFAULT_RELATION_TYPE,
    RELATION_TYPES,
    BoardNode,
    StoryProject,
    StoryRelationship,
)

CARD_WIDTH: Final[float] = 176.0
CARD_HEIGHT: Final[float] = 64.0
MIN_CURVE_OFFSET: Final[float] = 40.0


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def __add__(self, other: Point) -> Point:
        return Point(self.x + other.x, self.y + other.y)

    def __sub__(self, other: Point) -> Point:
        return Point(self.x - other.x, self.y - other.y)

    def distance_squared(self, other: Point) -> float:
        dx = self.x - other.x
        dy = self.y - other.y
        return dx * dx + dy * dy


ORIGIN: Final[Point] = Point(0.0, 0.0)


def add_to_cast(story: StoryProject, character_id: str) -> StoryProject:
    if character_id in story.character_ids:
        return story
    return replace(story, character_ids=(*story.character_ids, character_id))


def remove_from_cast(story: StoryProject, character_id: str) -> StoryProject:
    """Drop a cast member; board nodes and edges referencing it are left as-is."""
    return replace(
        story,
        character_ids=tuple(item for item in story.character_ids if item != character_id),
    )


def unplaced_cast(story: StoryProject) -> list[str]:
    """Cast members without a board node, in cast order."""
    placed = {node.character_id for node in story.board_nodes}
    return [item for item in story.character_ids if item not in placed]


def placed_cast_nodes(story: StoryProject) -> tuple[BoardNode, ...]:
    """Board nodes that are drawn: placed and still in the cast."""
    cast = set(story.character_ids)
    return tuple(node for node in story.board_nodes if node.character_id in cast)


def upsert_board_node(story: StoryProject, character_id: str, x: float, y: float) -> StoryProject:
    """Move a node, or place it when it had no position yet."""
    node = BoardNode(character_id=character_id, x=float(x), y=float(y))
    if story.node_for(character_id) is None:
        return replace(story, board_nodes=(*story.board_nodes, node))
    return replace(
        story,
        board_nodes=tuple(
            node if existing.character_id == character_id else existing
            for existing in story.board_nodes
        ),
    )


def _without_edges_touching(story: StoryProject, character_id: str) -> tuple[StoryRelationship, ...]:
    return tuple(item for item in story.relationships if not item.touches(character_id))


def remove_board_node(story: StoryProject, character_id: str) -> StoryProject:
    """Return a node to the unplaced tray; its edges go with it, cast membership stays."""
    return replace(
        story,
        board_nodes=tuple(node for node in story.board_nodes if node.character_id != character_id),
        relationships=_without_edges_touching(story, character_id),
    )


def delete_character_from_story(story: StoryProject, character_id: str) -> StoryProject:
    """Cascade for a deleted character: node and edges go, the cast id dangles."""
    return remove_board_node(story, character_id)


def _check_choice(value: str, choices: tuple[str, ...], label: str) -> str:
    if value not in choices:
        raise ValidationError(f"Unknown {label}: {value!r}.")
    return value


def add_relationship(
    story: StoryProject,
    *,
    from_character_id: str,
    to_character_id: str,
    alignment: str = DEFAULT_ALIGNMENT,
    relation_type: str = DEFAULT_RELATION_TYPE,
    details: str = "",
    now: str | None = None,
) -> tuple[StoryProject, StoryRelationship]:
    if not from_character_id or not to_character_id:
        raise ValidationError("A relationship needs two characters.")
    if from_character_id == to_character_id:
        raise ValidationError("A character cannot have a relationship with itself.")
    relationship = StoryRelationship(
        id=new_entity_id(),
        from_character_id=from_character_id,
        to_character_id=to_character_id,
        alignment=_check_choice(alignment, ALIGNMENTS, "alignment"),
        relation_type=_check_choice(relation_type, RELATION_TYPES, "relation type"),
        details=details.strip(),
        created_at=now or utc_now_iso(),
    )
    return replace(story, relationships=(*story.relationships, relationship)), relationship


def update_relationship(
    story: StoryProject,
    relationship_id: str,
    *,
    alignment: str | None = None,
    relation_type: str | None = None,
    details: str | None = None,
) -> StoryProject:
    updated: list[StoryRelationship] = []
    found = False
    for item in story.relationships:
        if item.id != relationship_id:
            updated.append(item)
            continue
        found = True
        updated.append(
            replace(
                item,
                alignment=item.alignment
                if alignment is None
                else _check_choice(alignment, ALIGNMENTS, "alignment"),
                relation_type=item.relation_type
                if relation_type is None
                else _check_choice(relation_type, RELATION_TYPES, "relation type"),
                details=item.details if details is None else details.strip(),
            )
        )
    if not found:
        return story
    return replace(story, relationships=tuple(updated))


def delete_relationship(story: StoryProject, relationship_id: str) -> StoryProject:
    return replace(
        story,
        relationships=tuple(item for item in story.relationships if item.id != relationship_id),
    )


def node_position(node: BoardNode) -> Point:
    return Point(node.x, node.y)


def source_anchor(node: BoardNode) -> Point:
    """Center of the outgoing-edge handle on the card's right edge."""
    return Point(node.x + CARD_WIDTH, node.y + CARD_HEIGHT / 2)


def target_anchor(node: BoardNode) -> Point:
    """Center of the incoming-edge handle on the card's left edge."""
    return Point(node.x, node.y + CARD_HEIGHT / 2)


def edge_endpoints(from_node: BoardNode, to_node: BoardNode) -> tuple[Point, Point]:
    """Pick the facing card sides so curves never cross their own cards."""
    if to_node.x + CARD_WIDTH / 2 >= from_node.x + CARD_WIDTH / 2:
        return source_anchor(from_node), target_anchor(to_node)
    middle = CARD_HEIGHT / 2
    return Point(from_node.x, from_node.y + middle), Point(to_node.x + CARD_WIDTH, to_node.y + middle)


def edge_path(start: Point, end: Point) -> str:
    """SVG cubic Bezier from ``start`` to ``end`` with horizontal tangents."""
    offset = max(MIN_CURVE_OFFSET, abs(end.x - start.x) / 2)
    direction = 1.0 if end.x >= start.x else -1.0
    c1 = Point(start.x + offset * direction, start.y)
    c2 = Point(end.x - offset * direction, end.y)
    return (
        f"M {start.x:g} {start.y:g} "
        f"C {c1.x:g} {c1.y:g}, {c2.x:g} {c2.y:g}, {end.x:g} {end.y:g}"
    )


@dataclass(frozen=True)
class EdgeView:
    relationship_id: str
    from_character_id: str
    to_character_id: str
    path: str
    highlighted: bool = False


def render_edges(
    story: StoryProject,
    *,
    pan: Point = ORIGIN,
    highlighted_id: str | None = None,
    known_character_ids: frozenset[str] | None = None,
) -> list[EdgeView]:
    """Edge paths in view space; edges with a missing endpoint are skipped."""
    cast = set(story.character_ids)
    views: list[EdgeView] = []
    for relationship in story.relationships:
        endpoints = (relationship.from_character_id, relationship.to_character_id)
        if any(item not in cast for item in endpoints):
            continue
        if known_character_ids is not None and any(
            item not in known_character_ids for item in endpoints
        ):
            continue
        from_node = story.node_for(relationship.from_character_id)
        to_node = story.node_for(relationship.to_character_id)
        if from_node is None or to_node is None:
            continue
        start, end = edge_endpoints(from_node, to_node)
        views.append(
            EdgeView(
                relationship_id=relationship.id,
                from_character_id=relationship.from_character_id,
                to_character_id=relationship.to_character_id,
                path=edge_path(start + pan, end + pan),
                highlighted=relationship.id == highlighted_id,
            )
        )
    return views
