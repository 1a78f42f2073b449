"""Pointer gesture reducer for drawing relationship edges on the story board.

The reducer is driven by discrete events and knows nothing about rendering:

* ``PressSource`` on a placed node's source handle starts ``Connecting``.
* ``PointerMove`` tracks the cursor in board space and snaps to the nearest
  other node whose target handle lies within ``SNAP_RADIUS``.
* ``Release`` commits to the node under the pointer or the snap target,
  otherwise cancels. ``Abort`` always cancels.

Release and Abort always land in ``Idle`` with every transient field cleared.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from typing import Final

from cast_studio.core.relationship_graph import (
    ORIGIN,
    Point,
    edge_path,
    source_anchor,
    target_anchor,
)
from cast_studio.domain.models import BoardNode

SNAP_RADIUS: Final[float] = 36.0


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Connecting:
    from_id: str
    cursor: Point | None = None
    snap_target: str | None = None


GestureState = Idle | Connecting
IDLE: Final[Idle] = Idle()


@dataclass(frozen=True)
class PressSource:
    node_id: str


@dataclass(frozen=True)
class PointerMove:
    """Pointer position relative to the board viewport, before pan removal."""

    point: Point


@dataclass(frozen=True)
class Release:
    on_target: str | None = None


@dataclass(frozen=True)
class Abort:
    """Window blur, external drag end, or any other abnormal gesture end."""


GestureEvent = PressSource | PointerMove | Release | Abort


@dataclass(frozen=True)
class OpenRelationshipEditor:
    from_character_id: str
    to_character_id: str


@dataclass(frozen=True)
class Transition:
    state: GestureState
    effect: OpenRelationshipEditor | None = None


def to_board_point(pointer: Point, pan_offset: Point) -> Point:
    return pointer - pan_offset


def target_anchors(nodes: Iterable[BoardNode]) -> list[tuple[str, Point]]:
    return [(node.character_id, target_anchor(node)) for node in nodes]


def nearest_snap_target(
    anchors: Iterable[tuple[str, Point]],
    cursor: Point,
    *,
    exclude: str | None = None,
    radius: float = SNAP_RADIUS,
) -> str | None:
    """Closest anchor within ``radius``; the first one wins on exact ties."""
    limit = radius * radius
    best_id: str | None = None
    best_distance = limit
    for node_id, anchor in anchors:
        if node_id == exclude:
            continue
        distance = anchor.distance_squared(cursor)
        if distance > limit:
            continue
        if best_id is None or distance < best_distance:
            best_id = node_id
            best_distance = distance
    return best_id


def _placed(nodes: Sequence[BoardNode], node_id: str) -> BoardNode | None:
    for node in nodes:
        if node.character_id == node_id:
            return node
    return None


def reduce_gesture(
    state: GestureState,
    event: GestureEvent,
    *,
    nodes: Sequence[BoardNode],
    pan: Point = ORIGIN,
    snap_radius: float = SNAP_RADIUS,
) -> Transition:
    if isinstance(event, Abort):
        return Transition(IDLE)

    if isinstance(event, PressSource):
        if isinstance(state, Connecting):
            return Transition(state)
        if _placed(nodes, event.node_id) is None:
            return Transition(IDLE)
        return Transition(Connecting(from_id=event.node_id))

    if not isinstance(state, Connecting):
        return Transition(IDLE)

    if isinstance(event, PointerMove):
        cursor = to_board_point(event.point, pan)
        snap = nearest_snap_target(
            target_anchors(nodes), cursor, exclude=state.from_id, radius=snap_radius
        )
        return Transition(replace(state, cursor=cursor, snap_target=snap))

    # Release
    target: str | None = None
    if (
        event.on_target
        and event.on_target != state.from_id
        and _placed(nodes, event.on_target) is not None
    ):
        target = event.on_target
    elif state.snap_target and state.snap_target != state.from_id:
        target = state.snap_target
    if target is None:
        return Transition(IDLE)
    return Transition(
        IDLE,
        OpenRelationshipEditor(from_character_id=state.from_id, to_character_id=target),
    )


def indicator_point(state: GestureState, nodes: Sequence[BoardNode]) -> Point | None:
    """Where the live connector ends: locked on the snap anchor, else the cursor."""
    if not isinstance(state, Connecting):
        return None
    if state.snap_target is not None:
        node = _placed(nodes, state.snap_target)
        if node is not None:
            return target_anchor(node)
    return state.cursor


def preview_path(state: GestureState, nodes: Sequence[BoardNode], pan: Point = ORIGIN) -> str | None:
    if not isinstance(state, Connecting):
        return None
    origin = _placed(nodes, state.from_id)
    end = indicator_point(state, nodes)
    if origin is None or end is None:
        return None
    return edge_path(source_anchor(origin) + pan, end + pan)


@dataclass(frozen=True)
class PanState:
    """View-space board offset plus the in-progress pan drag, if any."""

    offset: Point = ORIGIN
    drag_origin: Point | None = None
    offset_at_start: Point = ORIGIN

    @property
    def dragging(self) -> bool:
        return self.drag_origin is not None

    def start(self, pointer: Point) -> PanState:
        return PanState(offset=self.offset, drag_origin=pointer, offset_at_start=self.offset)

    def drag(self, pointer: Point) -> PanState:
        if self.drag_origin is None:
            return self
        return replace(self, offset=self.offset_at_start + (pointer - self.drag_origin))

    def end(self) -> PanState:
        return PanState(offset=self.offset)
