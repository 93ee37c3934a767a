"""Canvas widget hosting an editor session."""

from typing import Callable, Optional

import gi

gi.require_version("Gtk", "4.0")
gi.require_version("Gdk", "4.0")
from gi.repository import Gtk, Gdk, GLib, Gio

from mindcanvas.model import Node
from mindcanvas.session import BUTTON_ZOOM_IN, BUTTON_ZOOM_OUT, EditorSession
from mindcanvas.themes import SUGGESTION_COLORS, get_theme


class MindCanvas(Gtk.DrawingArea):
    """Drawing area that forwards input to the session and paints its frames."""

    def __init__(self, session: EditorSession):
        super().__init__()

        self.session = session

        # Render requests are coalesced onto the widget's frame clock.
        session.scheduler.attach(self._schedule_frame)
        session.on_redraw = self._on_redraw
        session.controller.on_cursor_changed = self._on_cursor_changed

        # Panning state (middle mouse button)
        self._pan_last = (0.0, 0.0)

        # Context popover tracking
        self._context_popover: Optional[Gtk.PopoverMenu] = None

        # Callbacks
        self.on_edit_requested: Optional[Callable[[Node], None]] = None
        self.on_note_requested: Optional[Callable[[Node], None]] = None
        self.on_save_requested: Optional[Callable[[], None]] = None

        # Setup widget
        self.set_draw_func(self._on_draw)
        self.set_focusable(True)
        self.set_can_focus(True)
        self.set_cursor_from_name(session.controller.cursor)

        # Setup event controllers
        self._setup_event_controllers()

        self.set_hexpand(True)
        self.set_vexpand(True)

    def _setup_event_controllers(self):
        """Setup mouse and keyboard event controllers."""
        # Double click opens the editor
        click_ctrl = Gtk.GestureClick()
        click_ctrl.set_button(1)
        click_ctrl.connect("pressed", self._on_click)
        self.add_controller(click_ctrl)

        # Press/drag/release drives selection and node dragging
        drag_ctrl = Gtk.GestureDrag()
        drag_ctrl.set_button(1)
        drag_ctrl.connect("drag-begin", self._on_drag_begin)
        drag_ctrl.connect("drag-update", self._on_drag_update)
        drag_ctrl.connect("drag-end", self._on_drag_end)
        self.add_controller(drag_ctrl)

        # Middle-button drag pans the view
        pan_ctrl = Gtk.GestureDrag()
        pan_ctrl.set_button(2)
        pan_ctrl.connect("drag-begin", self._on_pan_begin)
        pan_ctrl.connect("drag-update", self._on_pan_update)
        self.add_controller(pan_ctrl)

        motion_ctrl = Gtk.EventControllerMotion()
        motion_ctrl.connect("motion", self._on_motion)
        motion_ctrl.connect("leave", self._on_leave)
        self.add_controller(motion_ctrl)

        scroll_ctrl = Gtk.EventControllerScroll()
        scroll_ctrl.set_flags(Gtk.EventControllerScrollFlags.VERTICAL)
        scroll_ctrl.connect("scroll", self._on_scroll)
        self.add_controller(scroll_ctrl)

        key_ctrl = Gtk.EventControllerKey()
        key_ctrl.connect("key-pressed", self._on_key_pressed)
        self.add_controller(key_ctrl)

        right_click = Gtk.GestureClick()
        right_click.set_button(3)
        right_click.connect("pressed", self._on_right_click)
        self.add_controller(right_click)

    # ==================== Frames ====================

    def _schedule_frame(self, callback: Callable[[], None]):
        self.add_tick_callback(self._on_tick, callback)

    def _on_tick(self, widget, frame_clock, callback):
        callback()
        return GLib.SOURCE_REMOVE

    def _on_redraw(self, fast: bool):
        self.queue_draw()

    def _on_draw(self, area, cr, width, height):
        """Main drawing function."""
        viewport = self.session.viewport
        if (viewport.width, viewport.height) != (width, height):
            viewport.resize(width, height)
        self.session.draw(cr)

    def _on_cursor_changed(self, name: str):
        self.set_cursor_from_name(name)

    # ==================== Pointer ====================

    def _on_click(self, gesture, n_press, x, y):
        self.grab_focus()
        if n_press != 2:
            return
        node = self.session.controller.double_click(x, y)
        if node is not None and self.on_edit_requested:
            self.on_edit_requested(node)

    def _on_drag_begin(self, gesture, start_x, start_y):
        self.grab_focus()
        self.session.controller.pointer_down(start_x, start_y)

    def _on_drag_update(self, gesture, offset_x, offset_y):
        ok, start_x, start_y = gesture.get_start_point()
        if ok:
            self.session.controller.pointer_move(start_x + offset_x, start_y + offset_y)

    def _on_drag_end(self, gesture, offset_x, offset_y):
        self.session.controller.pointer_up()

    def _on_pan_begin(self, gesture, start_x, start_y):
        self._pan_last = (0.0, 0.0)

    def _on_pan_update(self, gesture, offset_x, offset_y):
        last_x, last_y = self._pan_last
        self.session.pan(offset_x - last_x, offset_y - last_y)
        self._pan_last = (offset_x, offset_y)

    def _on_motion(self, controller, x, y):
        self.session.controller.pointer_move(x, y)

    def _on_leave(self, controller):
        self.session.controller.pointer_leave()

    def _on_scroll(self, controller, dx, dy):
        interaction = self.session.controller
        pointer = interaction.pointer
        if pointer is not None:
            sx, sy = self.session.viewport.world_to_screen(*pointer)
        else:
            sx, sy = self.session.viewport.width / 2, self.session.viewport.height / 2
        interaction.wheel(dy, sx, sy)
        return True

    # ==================== Keyboard ====================

    def _on_key_pressed(self, controller, keyval, keycode, state):
        """Handle keyboard input."""
        ctrl = state & Gdk.ModifierType.CONTROL_MASK
        shift = state & Gdk.ModifierType.SHIFT_MASK
        session = self.session
        selected = session.selected

        if ctrl:
            if keyval == Gdk.KEY_s:
                if self.on_save_requested:
                    self.on_save_requested()
                return True
            if keyval == Gdk.KEY_z and not shift:
                session.undo()
                return True
            if keyval in (Gdk.KEY_y, Gdk.KEY_Z) or (keyval == Gdk.KEY_z and shift):
                session.redo()
                return True
            if keyval == Gdk.KEY_c:
                session.copy_selected()
                return True
            if keyval == Gdk.KEY_v:
                session.paste()
                return True
            if keyval in (Gdk.KEY_plus, Gdk.KEY_equal):
                session.zoom(BUTTON_ZOOM_IN)
                return True
            if keyval == Gdk.KEY_minus:
                session.zoom(BUTTON_ZOOM_OUT)
                return True
            if keyval == Gdk.KEY_0:
                session.fit_to_screen()
                return True
            return False

        if keyval == Gdk.KEY_Delete:
            session.delete_selected()
            return True
        if keyval in (Gdk.KEY_n, Gdk.KEY_N):
            if selected is not None:
                session.add_child()
            return True
        if keyval == Gdk.KEY_Tab:
            session.cycle_selection(1)
            return True
        if keyval == Gdk.KEY_ISO_Left_Tab:
            session.cycle_selection(-1)
            return True
        if keyval in (Gdk.KEY_Return, Gdk.KEY_KP_Enter):
            if selected is not None and self.on_edit_requested:
                self.on_edit_requested(selected)
            return True
        if keyval == Gdk.KEY_Escape:
            session.controller.cancel()
            return True

        directions = {
            Gdk.KEY_Up: "up",
            Gdk.KEY_Down: "down",
            Gdk.KEY_Left: "left",
            Gdk.KEY_Right: "right",
        }
        if keyval in directions:
            session.navigate(directions[keyval])
            return True

        return False

    # ==================== Context menu ====================

    def _on_right_click(self, gesture, n_press, x, y):
        """Show the node menu for the node under the pointer."""
        node = self.session.viewport.node_at(self.session.store, x, y)
        if node is None:
            return
        self.session.controller.select(node.id)

        menu = Gio.Menu()
        menu.append("Add Child", "canvas.add-child")
        if not node.is_root:
            menu.append("Add Sibling", "canvas.add-sibling")
        menu.append("Edit", "canvas.edit-node")
        if not node.is_root:
            menu.append("Delete", "canvas.delete-node")
        menu.append("Copy", "canvas.copy-node")
        if self.session.clipboard is not None:
            menu.append("Paste", "canvas.paste-node")

        colors = Gio.Menu()
        theme = get_theme(self.session.theme_name)
        for color in list(dict.fromkeys(list(theme) + SUGGESTION_COLORS)):
            item = Gio.MenuItem.new(color, None)
            item.set_action_and_target_value("canvas.set-color", GLib.Variant.new_string(color))
            colors.append_item(item)
        menu.append_submenu("Change Color", colors)

        menu.append("Add Note", "canvas.add-note")
        menu.append("Clear Selection", "canvas.clear-selection")

        session = self.session
        action_group = Gio.SimpleActionGroup()
        simple_actions = {
            "add-child": lambda: session.add_child(),
            "add-sibling": lambda: session.add_sibling(),
            "edit-node": lambda: self._request(self.on_edit_requested, node),
            "delete-node": lambda: session.delete_selected(),
            "copy-node": lambda: session.copy_selected(),
            "paste-node": lambda: session.paste(),
            "add-note": lambda: self._request(self.on_note_requested, node),
            "clear-selection": lambda: session.controller.clear_selection(),
        }
        for name, callback in simple_actions.items():
            action = Gio.SimpleAction.new(name, None)
            action.connect("activate", lambda a, p, cb=callback: cb())
            action_group.add_action(action)

        color_action = Gio.SimpleAction.new("set-color", GLib.VariantType.new("s"))
        color_action.connect("activate",
                             lambda a, p: session.set_node_color(node.id, p.get_string()))
        action_group.add_action(color_action)

        self.insert_action_group("canvas", action_group)

        # Unparent previous popover if still attached
        if self._context_popover is not None:
            self._context_popover.unparent()
            self._context_popover = None

        popover = Gtk.PopoverMenu.new_from_model(menu)
        popover.set_parent(self)
        popover.set_has_arrow(True)

        # Defer unparent to idle so the action callback fires first
        def _on_popover_closed(p):
            def _do_unparent():
                if self._context_popover is p:
                    p.unparent()
                    self._context_popover = None
                return False
            GLib.idle_add(_do_unparent)
        popover.connect("closed", _on_popover_closed)

        self._context_popover = popover

        rect = Gdk.Rectangle()
        rect.x = int(x)
        rect.y = int(y)
        rect.width = 1
        rect.height = 1
        popover.set_pointing_to(rect)
        popover.popup()

    @staticmethod
    def _request(callback: Optional[Callable[[Node], None]], node: Node):
        if callback:
            callback(node)
