"""Pointer interaction state machine for the canvas.

The controller turns raw pointer events (screen coordinates) into selection,
drag and connect actions. It never lays out or checkpoints on its own except
where noted; structural work is delegated to the owning session.
"""

import logging
from enum import Enum
from typing import Callable, Optional, Tuple

from mindcanvas.model import Node
from mindcanvas.scheduler import HoverThrottle

logger = logging.getLogger(__name__)

WHEEL_ZOOM_IN = 1.1
WHEEL_ZOOM_OUT = 0.9


class InteractionMode(Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    CONNECTING = "connecting"


class InteractionController:
    """Selection, drag and connect-mode handling.

    ``session`` must expose ``store``, ``viewport``, ``particles``,
    ``request_render(fast=False)``, ``checkpoint()`` and
    ``connect(source_id, target_id)``.
    """

    def __init__(self, session, hover_throttle: Optional[HoverThrottle] = None):
        self.session = session
        self.hover_throttle = hover_throttle or HoverThrottle()

        self.mode = InteractionMode.IDLE
        self.connect_mode = False
        self.selected_id: Optional[int] = None
        self.hovered_id: Optional[int] = None
        self.drag_id: Optional[int] = None
        self.connecting_id: Optional[int] = None
        self.grab_offset: Tuple[float, float] = (0.0, 0.0)
        self.drag_origin: Optional[Tuple[float, float]] = None
        self.pointer: Optional[Tuple[float, float]] = None

        # Callbacks
        self.on_cursor_changed: Optional[Callable[[str], None]] = None

    # ==================== Selection ====================

    @property
    def selected(self) -> Optional[Node]:
        return self.session.store.get(self.selected_id)

    def select(self, node_id: Optional[int]) -> bool:
        if node_id is None or node_id not in self.session.store:
            return False
        self.selected_id = node_id
        self.session.request_render()
        return True

    def clear_selection(self):
        self.selected_id = None
        self.session.request_render()

    # ==================== Pointer events ====================

    def _node_at(self, sx: float, sy: float) -> Optional[Node]:
        return self.session.viewport.node_at(self.session.store, sx, sy)

    def pointer_down(self, sx: float, sy: float):
        node = self._node_at(sx, sy)

        if self.connect_mode:
            if node is None:
                return
            if self.connecting_id is None:
                self.connecting_id = node.id
                self.mode = InteractionMode.CONNECTING
                self.session.request_render()
            elif node.id != self.connecting_id:
                source_id = self.connecting_id
                self.connecting_id = None
                self.mode = InteractionMode.IDLE
                self.session.connect(source_id, node.id)
            return

        # Empty canvas keeps the current selection
        if node is None:
            return

        wx, wy = self.session.viewport.screen_to_world(sx, sy)
        self.selected_id = node.id
        self.drag_id = node.id
        self.grab_offset = (wx - node.x, wy - node.y)
        self.drag_origin = (node.x, node.y)
        self.mode = InteractionMode.DRAGGING
        self.session.particles.burst(node.x, node.y)
        self.session.request_render()

    def pointer_move(self, sx: float, sy: float):
        wx, wy = self.session.viewport.screen_to_world(sx, sy)
        self.pointer = (wx, wy)

        if self.mode is not InteractionMode.DRAGGING and self.hover_throttle.ready():
            node = self._node_at(sx, sy)
            hovered = node.id if node else None
            if hovered != self.hovered_id:
                self.hovered_id = hovered
                self._cursor_changed()

        if self.mode is InteractionMode.DRAGGING:
            if not self.session.store.move_to(self.drag_id,
                                              wx - self.grab_offset[0],
                                              wy - self.grab_offset[1]):
                self._end_drag()
                return
            self.session.request_render(fast=True)

        if self.connect_mode:
            self.session.request_render()

    def pointer_up(self) -> bool:
        """Finish a drag. Returns True if a checkpoint was committed."""
        if self.mode is not InteractionMode.DRAGGING:
            return False
        self._end_drag()
        self.session.checkpoint()
        self.session.request_render()
        return True

    def pointer_leave(self):
        self.pointer = None
        if self.hovered_id is not None:
            self.hovered_id = None
            self._cursor_changed()

    def double_click(self, sx: float, sy: float) -> Optional[Node]:
        """Node under the pointer that should be opened for editing."""
        return self._node_at(sx, sy)

    def wheel(self, delta_y: float, sx: float, sy: float):
        factor = WHEEL_ZOOM_OUT if delta_y > 0 else WHEEL_ZOOM_IN
        self.session.viewport.zoom(factor, anchor=(sx, sy))
        self.session.request_render()

    # ==================== Modes ====================

    def toggle_connect_mode(self, enabled: Optional[bool] = None) -> bool:
        self.connect_mode = (not self.connect_mode) if enabled is None else enabled
        if not self.connect_mode:
            self.connecting_id = None
            if self.mode is InteractionMode.CONNECTING:
                self.mode = InteractionMode.IDLE
        self._cursor_changed()
        self.session.request_render()
        return self.connect_mode

    def cancel(self):
        """Abort a pending connection or drag (Escape).

        A cancelled drag puts the node back where it was picked up.
        """
        if self.connecting_id is not None:
            self.connecting_id = None
            self.mode = InteractionMode.IDLE
        elif self.mode is InteractionMode.DRAGGING:
            if self.drag_origin is not None:
                self.session.store.move_to(self.drag_id, *self.drag_origin)
            self._end_drag()
        self.session.request_render()

    @property
    def cursor(self) -> str:
        if self.hovered_id is not None:
            return "pointer"
        if self.connect_mode:
            return "crosshair"
        return "grab"

    def revalidate(self, clear_selection: bool = False):
        """Drop references to nodes that no longer exist in the store."""
        store = self.session.store
        if self.drag_id is not None and self.drag_id not in store:
            logger.debug("dragged node %s vanished, back to idle", self.drag_id)
            self._end_drag()
        if self.connecting_id is not None and self.connecting_id not in store:
            logger.debug("connect source %s vanished, back to idle", self.connecting_id)
            self.connecting_id = None
            self.mode = InteractionMode.IDLE
        if clear_selection or self.selected_id not in store:
            self.selected_id = None
        if self.hovered_id is not None and self.hovered_id not in store:
            self.hovered_id = None
            self._cursor_changed()

    def _end_drag(self):
        self.drag_id = None
        self.grab_offset = (0.0, 0.0)
        self.drag_origin = None
        if self.mode is InteractionMode.DRAGGING:
            self.mode = InteractionMode.IDLE

    def _cursor_changed(self):
        if self.on_cursor_changed:
            self.on_cursor_changed(self.cursor)
