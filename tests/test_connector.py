from __future__ import annotations

from cast_studio.core.connector import (
    IDLE,
    SNAP_RADIUS,
    Abort,
    Connecting,
    OpenRelationshipEditor,
    PanState,
    PointerMove,
    PressSource,
    Release,
    indicator_point,
    nearest_snap_target,
    preview_path,
    reduce_gesture,
)
from cast_studio.core.relationship_graph import CARD_HEIGHT, Point, target_anchor
from cast_studio.domain.models import BoardNode

NODES = (
    BoardNode(character_id="source", x=-400, y=0),
    BoardNode(character_id="first", x=0, y=0),
    BoardNode(character_id="second", x=30, y=0),
)


def test_snap_radius_constant() -> None:
    assert SNAP_RADIUS == 36


def test_snap_picks_nearest_anchor_within_radius() -> None:
    anchors = [("first", Point(0, 0)), ("second", Point(30, 0))]
    assert nearest_snap_target(anchors, Point(30, 0), radius=36) == "second"
    assert nearest_snap_target(anchors, Point(100, 0), radius=36) is None


def test_snap_ties_keep_first_anchor_and_skip_excluded() -> None:
    anchors = [("first", Point(0, 0)), ("second", Point(20, 0))]
    assert nearest_snap_target(anchors, Point(10, 0)) == "first"
    assert nearest_snap_target(anchors, Point(10, 0), exclude="first") == "second"
    assert nearest_snap_target(anchors, Point(36, 0), exclude="second") == "first"


def test_pointer_move_snaps_against_target_anchors() -> None:
    state = reduce_gesture(IDLE, PressSource("source"), nodes=NODES).state
    assert state == Connecting(from_id="source")

    near = reduce_gesture(state, PointerMove(Point(30, CARD_HEIGHT / 2)), nodes=NODES).state
    assert isinstance(near, Connecting)
    assert near.snap_target == "second"
    assert indicator_point(near, NODES) == target_anchor(NODES[2])

    far = reduce_gesture(near, PointerMove(Point(100, CARD_HEIGHT / 2)), nodes=NODES).state
    assert isinstance(far, Connecting)
    assert far.snap_target is None
    assert indicator_point(far, NODES) == Point(100, CARD_HEIGHT / 2)


def test_pointer_move_subtracts_pan_offset() -> None:
    state = Connecting(from_id="source")
    moved = reduce_gesture(
        state, PointerMove(Point(130, 132)), nodes=NODES, pan=Point(100, 100)
    ).state
    assert isinstance(moved, Connecting)
    assert moved.cursor == Point(30, 32)
    assert moved.snap_target == "second"


def test_source_node_never_snaps_to_itself() -> None:
    state = Connecting(from_id="second")
    moved = reduce_gesture(state, PointerMove(Point(30, 32)), nodes=NODES).state
    assert isinstance(moved, Connecting)
    assert moved.snap_target == "first"


def test_release_commits_to_target_under_pointer_or_snap() -> None:
    snapped = Connecting(from_id="source", cursor=Point(30, 32), snap_target="second")
    committed = reduce_gesture(snapped, Release(), nodes=NODES)
    assert committed.state == IDLE
    assert committed.effect == OpenRelationshipEditor("source", "second")

    direct = reduce_gesture(snapped, Release(on_target="first"), nodes=NODES)
    assert direct.effect == OpenRelationshipEditor("source", "first")

    onto_self = reduce_gesture(snapped, Release(on_target="source"), nodes=NODES)
    assert onto_self.effect == OpenRelationshipEditor("source", "second")

    off_board = Connecting(from_id="source", cursor=Point(500, 500))
    assert reduce_gesture(off_board, Release(on_target="tray-only"), nodes=NODES).effect is None


def test_release_without_target_cancels() -> None:
    state = Connecting(from_id="source", cursor=Point(500, 500))
    transition = reduce_gesture(state, Release(), nodes=NODES)
    assert transition.state == IDLE
    assert transition.effect is None


def test_abort_always_returns_idle() -> None:
    snapped = Connecting(from_id="source", cursor=Point(30, 32), snap_target="second")
    transition = reduce_gesture(snapped, Abort(), nodes=NODES)
    assert transition.state == IDLE
    assert transition.effect is None
    assert reduce_gesture(IDLE, Abort(), nodes=NODES).state == IDLE


def test_single_active_gesture_and_unplaced_press() -> None:
    state = Connecting(from_id="source")
    assert reduce_gesture(state, PressSource("first"), nodes=NODES).state == state
    assert reduce_gesture(IDLE, PressSource("tray-only"), nodes=NODES).state == IDLE
    assert reduce_gesture(IDLE, PointerMove(Point(0, 0)), nodes=NODES).state == IDLE
    assert reduce_gesture(IDLE, Release(on_target="first"), nodes=NODES).effect is None


def test_preview_path_runs_from_source_anchor() -> None:
    assert preview_path(IDLE, NODES) is None
    assert preview_path(Connecting(from_id="source"), NODES) is None
    state = Connecting(from_id="source", cursor=Point(0, 32))
    assert preview_path(state, NODES) == "M -224 32 C -112 32, -112 32, 0 32"


def test_pan_state_translates_offset_only_while_dragging() -> None:
    pan = PanState()
    assert not pan.dragging
    assert pan.drag(Point(50, 50)) == pan

    dragging = pan.start(Point(10, 10))
    assert dragging.dragging
    moved = dragging.drag(Point(40, 25))
    assert moved.offset == Point(30, 15)
    moved = moved.drag(Point(20, 20))
    assert moved.offset == Point(10, 10)

    ended = moved.end()
    assert not ended.dragging
    assert ended.offset == Point(10, 10)
    again = ended.start(Point(0, 0)).drag(Point(5, 5)).end()
    assert again.offset == Point(15, 15)
