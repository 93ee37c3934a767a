"""Tests for the pointer interaction state machine."""

import pytest

from mindcanvas.controller import InteractionMode
from mindcanvas.scheduler import HoverThrottle


def screen_pos(session, node):
    return session.viewport.world_to_screen(node.x, node.y)


class TestSelectionAndDrag:
    """Press, move and release on nodes."""

    def test_press_selects_and_starts_drag(self, session):
        child = session.add_child()
        session.controller.pointer_down(*screen_pos(session, child))
        assert session.controller.selected_id == child.id
        assert session.controller.mode is InteractionMode.DRAGGING
        assert session.particles.alive

    def test_press_on_empty_canvas_keeps_selection(self, session):
        child = session.add_child()
        session.controller.select(child.id)
        session.controller.pointer_down(5, 5)
        assert session.controller.selected_id == child.id
        assert session.controller.mode is InteractionMode.IDLE

    def test_drag_moves_node_keeping_grab_offset(self, session):
        child = session.add_child()
        sx, sy = screen_pos(session, child)
        session.controller.pointer_down(sx + 10, sy + 5)
        session.controller.pointer_move(sx + 60, sy + 105)
        assert (child.x, child.y) == (sx + 50, sy + 100)

    def test_drag_requests_fast_frames(self, session):
        child = session.add_child()
        sx, sy = screen_pos(session, child)
        session.controller.pointer_down(sx, sy)
        session.flush_frames()

        session.controller.pointer_move(sx + 20, sy)
        session.controller.pointer_move(sx + 40, sy)
        assert session.flush_frames() == 1
        assert session.last_frame_fast

    def test_release_commits_one_checkpoint(self, session):
        child = session.add_child()
        before = len(session.history)
        sx, sy = screen_pos(session, child)
        session.controller.pointer_down(sx, sy)
        session.controller.pointer_move(sx + 30, sy)
        assert session.controller.pointer_up()
        assert len(session.history) == before + 1
        assert session.controller.mode is InteractionMode.IDLE

        # Selection survives the release
        assert session.controller.selected_id == child.id

    def test_cancel_puts_dragged_node_back(self, session):
        child = session.add_child()
        start = (child.x, child.y)
        before = len(session.history)
        sx, sy = screen_pos(session, child)
        session.controller.pointer_down(sx, sy)
        session.controller.pointer_move(sx + 80, sy + 40)

        session.controller.cancel()

        assert (child.x, child.y) == start
        assert session.controller.mode is InteractionMode.IDLE
        assert not session.controller.pointer_up()
        assert len(session.history) == before
        top = {n.id: (n.x, n.y) for n in session.history.current}
        assert top[child.id] == start

    def test_release_without_drag_is_noop(self, session):
        before = len(session.history)
        assert not session.controller.pointer_up()
        assert len(session.history) == before

    def test_deleting_dragged_node_returns_to_idle(self, session):
        child = session.add_child()
        session.controller.pointer_down(*screen_pos(session, child))
        session.delete_selected()

        assert session.controller.mode is InteractionMode.IDLE
        assert session.controller.drag_id is None
        session.controller.pointer_move(100, 100)
        assert not session.controller.pointer_up()

    def test_undo_during_drag_drops_vanished_node(self, session):
        child = session.add_child()
        session.controller.pointer_down(*screen_pos(session, child))
        session.undo()
        assert session.controller.drag_id is None
        assert session.controller.selected_id is None
        assert session.controller.mode is InteractionMode.IDLE


class TestConnectMode:
    """Two-click reparenting."""

    def test_two_clicks_reparent(self, session):
        root = session.store.root()
        a = session.add_child(text="a")
        b = session.add_child(text="b")
        session.controller.toggle_connect_mode(True)

        session.controller.pointer_down(*screen_pos(session, a))
        assert session.controller.connecting_id == a.id
        assert session.controller.mode is InteractionMode.CONNECTING

        session.controller.pointer_down(*screen_pos(session, b))
        assert b.parent == a.id
        assert b.level == 2
        assert root.children == [a.id]
        assert session.controller.connecting_id is None
        session.store.validate()

    def test_connect_into_descendant_is_rejected(self, session):
        a = session.add_child(text="a")
        session.controller.select(a.id)
        a1 = session.add_child(text="a1")
        before = len(session.history)

        session.controller.toggle_connect_mode(True)
        session.controller.pointer_down(*screen_pos(session, a1))
        session.controller.pointer_down(*screen_pos(session, a))

        assert a1.parent == a.id
        assert len(session.history) == before

    def test_clicking_source_again_keeps_waiting(self, session):
        a = session.add_child()
        session.controller.toggle_connect_mode(True)
        session.controller.pointer_down(*screen_pos(session, a))
        session.controller.pointer_down(*screen_pos(session, a))
        assert session.controller.connecting_id == a.id

    def test_connect_mode_never_drags(self, session):
        a = session.add_child()
        session.controller.toggle_connect_mode(True)
        session.controller.pointer_down(*screen_pos(session, a))
        assert session.controller.drag_id is None

    def test_escape_cancels_pending_connection(self, session):
        a = session.add_child()
        session.controller.toggle_connect_mode(True)
        session.controller.pointer_down(*screen_pos(session, a))
        session.controller.cancel()
        assert session.controller.connecting_id is None
        assert session.controller.mode is InteractionMode.IDLE
        assert session.controller.connect_mode

    def test_leaving_connect_mode_clears_source(self, session):
        a = session.add_child()
        session.controller.toggle_connect_mode(True)
        session.controller.pointer_down(*screen_pos(session, a))
        assert not session.controller.toggle_connect_mode()
        assert session.controller.connecting_id is None

    def test_deleted_source_is_dropped(self, session):
        a = session.add_child()
        session.controller.toggle_connect_mode(True)
        session.controller.pointer_down(*screen_pos(session, a))
        session.undo()
        assert session.controller.connecting_id is None
        assert session.controller.mode is InteractionMode.IDLE


class TestHoverAndCursor:
    def test_hover_is_throttled(self, session, clock):
        session.controller.hover_throttle = HoverThrottle(0.1, clock)
        root = session.store.root()
        rx, ry = screen_pos(session, root)

        session.controller.pointer_move(5, 5)
        clock.advance(0.01)
        session.controller.pointer_move(rx, ry)
        assert session.controller.hovered_id is None

        clock.advance(0.1)
        session.controller.pointer_move(rx, ry)
        assert session.controller.hovered_id == root.id

    def test_cursor_follows_state(self, session, clock):
        session.controller.hover_throttle = HoverThrottle(0.1, clock)
        cursors = []
        session.controller.on_cursor_changed = cursors.append
        root = session.store.root()

        session.controller.pointer_move(*screen_pos(session, root))
        session.controller.pointer_leave()
        session.controller.toggle_connect_mode(True)
        assert cursors == ["pointer", "grab", "crosshair"]

    def test_pointer_is_tracked_in_world_space(self, session):
        session.viewport.pan(100, 0)
        session.controller.pointer_move(150, 20)
        assert session.controller.pointer == (50, 20)


class TestWheelAndDoubleClick:
    def test_wheel_zooms_at_pointer(self, session):
        anchor = (300, 250)
        before = session.viewport.screen_to_world(*anchor)
        session.controller.wheel(1, *anchor)
        assert session.viewport.scale == 0.9
        session.controller.wheel(-1, *anchor)
        assert session.viewport.scale == 0.9 * 1.1
        assert session.viewport.screen_to_world(*anchor) == pytest.approx(before)

    def test_double_click_returns_node(self, session):
        root = session.store.root()
        assert session.controller.double_click(*screen_pos(session, root)) is root
        assert session.controller.double_click(1, 1) is None
