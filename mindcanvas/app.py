"""Main MindCanvas application."""

import logging
import sys
from pathlib import Path
from typing import Optional

import gi
gi.require_version("Gtk", "4.0")
gi.require_version("Adw", "1")
gi.require_version("Gdk", "4.0")
from gi.repository import Gtk, Gio, GLib, Adw

from mindcanvas import __version__, __app_id__
from mindcanvas.canvas import MindCanvas
from mindcanvas.database import AUTOSAVE_KEY, MANUAL_KEY, Database
from mindcanvas.export import default_filename, get_export_dir
from mindcanvas.layout import LAYOUT_NAMES
from mindcanvas.model import NODE_STYLES, Node
from mindcanvas.session import BUTTON_ZOOM_IN, BUTTON_ZOOM_OUT, EditorSession
from mindcanvas.suggestions import MODES
from mindcanvas.themes import theme_names
from mindcanvas.widgets import SettingsDialog, ShortcutsDialog, TextPromptDialog

logger = logging.getLogger(__name__)

EXPORT_CHOICES = [
    ("png", "PNG Image", "image/png"),
    ("svg", "SVG Drawing", "image/svg+xml"),
    ("pdf", "PDF Document", "application/pdf"),
    ("json", "Map JSON", "application/json"),
    ("txt", "Text Outline", "text/plain"),
]


class MindCanvasWindow(Adw.ApplicationWindow):
    """Main application window."""

    def __init__(self, app: Adw.Application, db: Database):
        super().__init__(application=app)
        self.db = db
        settings = db.get_settings()

        self.session = EditorSession(storage=db, settings=settings)
        self.session.on_notify = self._show_toast
        self.session.on_changed = self._on_session_changed

        # Window setup
        self.set_title("MindCanvas")
        self.set_default_size(settings.canvas_width, settings.canvas_height)

        self._build_ui()
        self._setup_shortcuts()

        self._autosave_timeout_id: Optional[int] = None
        self._setup_autosave()

        # Pick up where the last session stopped
        self.session.restore_saved(AUTOSAVE_KEY)
        self._sync_controls()
        self._update_history_buttons()

        self.connect("close-request", self._on_close_request)

    def _build_ui(self):
        """Build the main UI layout."""
        main_box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL)
        main_box.append(self._build_header())

        self.canvas = MindCanvas(self.session)
        self.canvas.on_edit_requested = self._edit_node_text
        self.canvas.on_note_requested = self._edit_node_note
        self.canvas.on_save_requested = self._on_save

        canvas_frame = Gtk.Frame()
        canvas_frame.set_child(self.canvas)
        canvas_frame.set_vexpand(True)

        # Wrap in toast overlay for in-app notifications
        self.toast_overlay = Adw.ToastOverlay()
        self.toast_overlay.set_child(canvas_frame)
        self.toast_overlay.set_vexpand(True)
        main_box.append(self.toast_overlay)

        self.set_content(main_box)
        self.canvas.grab_focus()

    def _build_header(self) -> Adw.HeaderBar:
        """Build the header bar."""
        header = Adw.HeaderBar()

        menu_btn = Gtk.MenuButton()
        menu_btn.set_icon_name("open-menu-symbolic")
        menu_btn.set_tooltip_text("Menu")

        menu = Gio.Menu()

        file_section = Gio.Menu()
        file_section.append("Open Map File...", "win.open")
        file_section.append("Save", "win.save")
        file_section.append("Revert to Last Save", "win.revert")
        file_section.append("Clear Map", "win.clear-map")
        menu.append_section(None, file_section)

        export_section = Gio.Menu()
        export_menu = Gio.Menu()
        for fmt, label, _mime in EXPORT_CHOICES:
            export_menu.append(f"Export as {label}...", f"win.export-{fmt}")
        export_section.append_submenu("Export", export_menu)
        menu.append_section(None, export_section)

        view_section = Gio.Menu()
        view_section.append("Toggle Grid", "win.toggle-grid")
        view_section.append("Toggle Minimap", "win.toggle-minimap")
        view_section.append("Toggle Performance Mode", "win.toggle-performance")
        view_section.append("Fit to Screen", "win.zoom-fit")
        menu.append_section(None, view_section)

        help_section = Gio.Menu()
        help_section.append("Keyboard Shortcuts", "win.show-shortcuts")
        help_section.append("Preferences", "win.show-preferences")
        help_section.append("About MindCanvas", "win.show-about")
        menu.append_section(None, help_section)

        popover = Gtk.PopoverMenu()
        popover.set_menu_model(menu)
        menu_btn.set_popover(popover)
        header.pack_start(menu_btn)

        # Editing buttons
        for icon, tooltip, callback in (
            ("list-add-symbolic", "Add Child (N)", lambda b: self.session.add_child()),
            ("insert-object-symbolic", "Add Sibling", lambda b: self.session.add_sibling()),
            ("edit-delete-symbolic", "Delete Node (Delete)", lambda b: self.session.delete_selected()),
        ):
            button = Gtk.Button()
            button.set_icon_name(icon)
            button.set_tooltip_text(tooltip)
            button.connect("clicked", callback)
            header.pack_start(button)

        self.undo_btn = Gtk.Button()
        self.undo_btn.set_icon_name("edit-undo-symbolic")
        self.undo_btn.set_tooltip_text("Undo (Ctrl+Z)")
        self.undo_btn.connect("clicked", lambda b: self.session.undo())
        header.pack_start(self.undo_btn)

        self.redo_btn = Gtk.Button()
        self.redo_btn.set_icon_name("edit-redo-symbolic")
        self.redo_btn.set_tooltip_text("Redo (Ctrl+Y)")
        self.redo_btn.connect("clicked", lambda b: self.session.redo())
        header.pack_start(self.redo_btn)

        # Connect mode: click a parent, then the node to move under it
        self.connect_btn = Gtk.ToggleButton()
        self.connect_btn.set_icon_name("insert-link-symbolic")
        self.connect_btn.set_tooltip_text("Connect Mode")
        self.connect_btn.connect("toggled", self._on_connect_toggled)
        header.pack_start(self.connect_btn)

        # Search
        self.search_entry = Gtk.SearchEntry()
        self.search_entry.set_placeholder_text("Search nodes")
        self.search_entry.set_max_width_chars(18)
        self.search_entry.connect("activate", self._on_search_activate)
        header.set_title_widget(self.search_entry)

        # Suggestions
        suggest_btn = Gtk.MenuButton()
        suggest_btn.set_icon_name("starred-symbolic")
        suggest_btn.set_tooltip_text("Suggest Topics")
        suggest_menu = Gio.Menu()
        for mode in MODES:
            suggest_menu.append(mode.capitalize(), f"win.suggest-{mode}")
        suggest_btn.set_menu_model(suggest_menu)
        header.pack_end(suggest_btn)

        # Smart layout (one-shot, undoable)
        smart_btn = Gtk.Button()
        smart_btn.set_icon_name("view-refresh-symbolic")
        smart_btn.set_tooltip_text("Smart Layout (undo with Ctrl+Z)")
        smart_btn.connect("clicked", self._on_smart_layout)
        header.pack_end(smart_btn)

        self.theme_dropdown = Gtk.DropDown(model=Gtk.StringList.new(
            [name.capitalize() for name in theme_names()]))
        self.theme_dropdown.set_tooltip_text("Theme")
        self.theme_dropdown.connect("notify::selected", self._on_theme_changed)
        header.pack_end(self.theme_dropdown)

        self.style_dropdown = Gtk.DropDown(model=Gtk.StringList.new(
            [style.capitalize() for style in NODE_STYLES]))
        self.style_dropdown.set_tooltip_text("Node style")
        self.style_dropdown.connect("notify::selected", self._on_style_changed)
        header.pack_end(self.style_dropdown)

        self.layout_dropdown = Gtk.DropDown(model=Gtk.StringList.new(
            [name.capitalize() for name in LAYOUT_NAMES]))
        self.layout_dropdown.set_tooltip_text("Layout")
        self.layout_dropdown.connect("notify::selected", self._on_layout_changed)
        header.pack_end(self.layout_dropdown)

        return header

    def _setup_shortcuts(self):
        """Setup window actions and their accelerators."""
        actions = [
            ("open", self._on_open, "<Control>o"),
            ("save", self._on_save, None),
            ("revert", self._on_revert, None),
            ("clear-map", self._on_clear_map, None),
            ("toggle-grid", self.session.toggle_grid, None),
            ("toggle-minimap", self.session.toggle_minimap, "<Control>m"),
            ("toggle-performance", self.session.toggle_performance_mode, None),
            ("zoom-fit", self.session.fit_to_screen, None),
            ("zoom-in", lambda: self.session.zoom(BUTTON_ZOOM_IN), None),
            ("zoom-out", lambda: self.session.zoom(BUTTON_ZOOM_OUT), None),
            ("search", self.search_entry.grab_focus, "<Control>f"),
            ("show-shortcuts", self._show_shortcuts, "<Control>slash"),
            ("show-preferences", self._show_preferences, "<Control>comma"),
            ("show-about", self._show_about, None),
            ("quit", lambda: self.close(), "<Control>q"),
        ]
        for fmt, _label, _mime in EXPORT_CHOICES:
            actions.append((f"export-{fmt}", lambda f=fmt: self._export(f), None))
        for mode in MODES:
            actions.append((f"suggest-{mode}",
                            lambda m=mode: self.session.generate_suggestions(m), None))

        for name, callback, accel in actions:
            action = Gio.SimpleAction.new(name, None)
            action.connect("activate", lambda a, p, cb=callback: cb())
            self.add_action(action)

            if accel:
                self.get_application().set_accels_for_action(f"win.{name}", [accel])

        self.get_application().set_accels_for_action("win.show-shortcuts", ["<Control>slash", "F1"])

    # ==================== Auto-save ====================

    def _setup_autosave(self):
        """Setup auto-save timer."""
        if self._autosave_timeout_id:
            GLib.source_remove(self._autosave_timeout_id)
            self._autosave_timeout_id = None

        interval = self.session.settings.autosave_interval
        if interval > 0:
            self._autosave_timeout_id = GLib.timeout_add_seconds(interval, self._do_autosave)

    def _do_autosave(self) -> bool:
        self.session.autosave()
        return True  # Continue timer

    def _on_close_request(self, window) -> bool:
        self.session.autosave()
        self.db.save_settings(self.session.current_settings())
        if self._autosave_timeout_id:
            GLib.source_remove(self._autosave_timeout_id)
            self._autosave_timeout_id = None
        return False

    # ==================== Controls ====================

    def _sync_controls(self):
        """Point the dropdowns at the session's current layout, style and theme."""
        self.layout_dropdown.set_selected(LAYOUT_NAMES.index(self.session.layout))
        self.style_dropdown.set_selected(NODE_STYLES.index(self.session.node_style))
        self.theme_dropdown.set_selected(theme_names().index(self.session.theme_name))

    def _on_session_changed(self):
        self._sync_controls()
        self._update_history_buttons()

    def _update_history_buttons(self):
        self.undo_btn.set_sensitive(self.session.can_undo)
        self.redo_btn.set_sensitive(self.session.can_redo)

    def _on_layout_changed(self, dropdown, _param):
        name = LAYOUT_NAMES[dropdown.get_selected()]
        if name != self.session.layout:
            self.session.set_layout(name)

    def _on_style_changed(self, dropdown, _param):
        style = NODE_STYLES[dropdown.get_selected()]
        if style != self.session.node_style:
            self.session.set_node_style(style)

    def _on_theme_changed(self, dropdown, _param):
        name = theme_names()[dropdown.get_selected()]
        if name != self.session.theme_name:
            self.session.set_theme(name)

    def _on_connect_toggled(self, button):
        self.session.controller.toggle_connect_mode(button.get_active())
        self.canvas.grab_focus()

    def _on_search_activate(self, entry):
        query = entry.get_text().strip()
        if not query:
            return
        results = self.session.search(query)
        if not results:
            self._show_toast(f"No nodes match \"{query}\"")
        self.canvas.grab_focus()

    def _on_smart_layout(self, button):
        if self.session.apply_smart_layout():
            self._sync_controls()

    # ==================== Node dialogs ====================

    def _edit_node_text(self, node: Node):
        dialog = TextPromptDialog(self, "Edit Node", text=node.text, action_label="Rename")
        dialog.on_submit = lambda text: self._apply_node_text(node.id, text)
        dialog.present()

    def _apply_node_text(self, node_id: int, text: str):
        text = text.strip()
        if text:
            self.session.edit_text(node_id, text)

    def _edit_node_note(self, node: Node):
        dialog = TextPromptDialog(self, "Node Note", text=node.note or "",
                                  placeholder="Add a note", action_label="Save Note")
        dialog.on_submit = lambda text: self.session.set_note(node.id, text.strip() or None)
        dialog.present()

    # ==================== File handling ====================

    def _on_save(self):
        if self.session.save():
            self.db.create_backup(MANUAL_KEY)

    def _on_revert(self):
        if not self.session.restore_saved(MANUAL_KEY):
            self._show_toast("No saved map to restore")
        self._sync_controls()

    def _on_clear_map(self):
        """Clear the map after confirmation."""
        dialog = Adw.MessageDialog(
            transient_for=self,
            heading="Clear Map?",
            body="All nodes except a fresh central topic will be removed. You can undo this."
        )
        dialog.add_response("cancel", "Cancel")
        dialog.add_response("clear", "Clear")
        dialog.set_response_appearance("clear", Adw.ResponseAppearance.DESTRUCTIVE)
        dialog.set_default_response("cancel")
        dialog.connect("response", self._on_clear_confirmed)
        dialog.present()

    def _on_clear_confirmed(self, dialog, response):
        if response == "clear":
            self.session.clear_all()

    def _on_open(self):
        dialog = Gtk.FileDialog()
        dialog.set_title("Open Map File")

        filter_json = Gtk.FileFilter()
        filter_json.set_name("Map JSON")
        filter_json.add_pattern("*.json")

        filters = Gio.ListStore.new(Gtk.FileFilter)
        filters.append(filter_json)
        dialog.set_filters(filters)

        dialog.open(self, None, self._on_open_response)

    def _on_open_response(self, dialog, result):
        try:
            file = dialog.open_finish(result)
        except GLib.Error:
            return  # User cancelled
        filepath = file.get_path() if file else None
        if not filepath:
            self._show_toast("Open failed: selected location is not a local file")
            return
        if self.session.load_file(Path(filepath)):
            self._sync_controls()

    def _export(self, fmt: str):
        label, mime = next((l, m) for f, l, m in EXPORT_CHOICES if f == fmt)

        dialog = Gtk.FileDialog()
        dialog.set_title(f"Export as {label}")
        dialog.set_initial_name(default_filename(fmt))
        dialog.set_initial_folder(Gio.File.new_for_path(str(get_export_dir())))

        file_filter = Gtk.FileFilter()
        file_filter.set_name(label)
        file_filter.add_mime_type(mime)

        filters = Gio.ListStore.new(Gtk.FileFilter)
        filters.append(file_filter)
        dialog.set_filters(filters)

        dialog.save(self, None, self._on_export_response, fmt)

    def _on_export_response(self, dialog, result, fmt: str):
        try:
            file = dialog.save_finish(result)
        except GLib.Error:
            return  # User cancelled
        filepath = file.get_path() if file else None
        if not filepath:
            self._show_toast("Export failed: selected location is not a local file")
            return
        try:
            self.session.export_to(fmt, Path(filepath))
        except OSError as exc:
            logger.error("export to %s failed: %s", filepath, exc)
            self._show_toast(f"Export failed: {exc}")

    # ==================== Dialogs ====================

    def _show_shortcuts(self):
        dialog = ShortcutsDialog(self)
        dialog.present()

    def _show_preferences(self):
        dialog = SettingsDialog(self, self.session.current_settings())
        dialog.on_settings_changed = self._on_settings_changed
        dialog.present()

    def _on_settings_changed(self, key: str, value):
        """Apply a preference change to the live session and persist it."""
        session = self.session
        if key == "show_grid" and session.show_grid != value:
            session.toggle_grid()
        elif key == "show_minimap" and session.show_minimap != value:
            session.toggle_minimap()
        elif key == "performance_mode" and session.performance_mode != value:
            session.toggle_performance_mode()
        elif key == "autosave_interval":
            session.settings.autosave_interval = value
            self._setup_autosave()
        self.db.save_settings(session.current_settings())

    def _show_about(self):
        about = Adw.AboutWindow(
            transient_for=self,
            application_name="MindCanvas",
            application_icon="applications-graphics",
            version=__version__,
            license_type=Gtk.License.MIT_X11,
            comments="An interactive mind-map editor",
        )
        about.present()

    def _show_toast(self, message: str):
        """Show a toast notification."""
        toast = Adw.Toast(title=message)
        toast.set_timeout(3)
        self.toast_overlay.add_toast(toast)


class MindCanvasApp(Adw.Application):
    """Main application class."""

    def __init__(self):
        super().__init__(
            application_id=__app_id__,
            flags=Gio.ApplicationFlags.DEFAULT_FLAGS
        )
        self.db: Optional[Database] = None
        self.window: Optional[MindCanvasWindow] = None

    def do_startup(self):
        Adw.Application.do_startup(self)
        self.db = Database()

    def do_activate(self):
        if not self.window:
            self.window = MindCanvasWindow(self, self.db)

        self.window.present()

    def do_shutdown(self):
        if self.db:
            self.db.close()

        Adw.Application.do_shutdown(self)


def main() -> int:
    """Application entry point."""
    app = MindCanvasApp()
    return app.run(sys.argv)


if __name__ == "__main__":
    sys.exit(main())
