"""Dialogs used by the MindCanvas window."""

from typing import Callable, Optional

import gi
gi.require_version("Gtk", "4.0")
gi.require_version("Adw", "1")
from gi.repository import Gtk, Gdk, Adw

from mindcanvas.database import EditorSettings


class TextPromptDialog(Gtk.Window):
    """Small modal prompt with a single entry, used for node text and notes."""

    def __init__(self, parent: Gtk.Window, title: str, text: str = "",
                 placeholder: str = "", action_label: str = "Apply"):
        super().__init__()

        # Called with the entered text when the user confirms
        self.on_submit: Optional[Callable[[str], None]] = None

        self.set_transient_for(parent)
        self.set_modal(True)
        self.set_default_size(420, -1)
        self.set_title(title)
        self.set_resizable(False)

        box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=12)
        box.set_margin_start(18)
        box.set_margin_end(18)
        box.set_margin_top(18)
        box.set_margin_bottom(18)

        self.entry = Gtk.Entry()
        self.entry.set_text(text)
        self.entry.set_placeholder_text(placeholder)
        self.entry.connect("activate", self._on_activate)
        box.append(self.entry)

        buttons = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=8)
        buttons.set_halign(Gtk.Align.END)

        cancel_btn = Gtk.Button(label="Cancel")
        cancel_btn.connect("clicked", lambda b: self.close())
        buttons.append(cancel_btn)

        apply_btn = Gtk.Button(label=action_label)
        apply_btn.add_css_class("suggested-action")
        apply_btn.connect("clicked", self._on_activate)
        buttons.append(apply_btn)

        box.append(buttons)
        self.set_child(box)

        key_ctrl = Gtk.EventControllerKey()
        key_ctrl.connect("key-pressed", self._on_key_pressed)
        self.add_controller(key_ctrl)

        self.entry.grab_focus()
        self.entry.select_region(0, -1)

    def _on_activate(self, widget):
        if self.on_submit:
            self.on_submit(self.entry.get_text())
        self.close()

    def _on_key_pressed(self, controller, keyval, keycode, state):
        if keyval == Gdk.KEY_Escape:
            self.close()
            return True
        return False


class ShortcutsDialog(Gtk.Window):
    """Keyboard shortcuts help dialog."""

    SHORTCUTS = {
        "General": [
            ("Save", "Ctrl+S"),
            ("Open Map File", "Ctrl+O"),
            ("Search", "Ctrl+F"),
            ("Preferences", "Ctrl+,"),
            ("Keyboard Shortcuts", "Ctrl+/ or F1"),
            ("Quit", "Ctrl+Q"),
        ],
        "Navigation": [
            ("Pan Canvas", "Middle-click drag"),
            ("Zoom at Pointer", "Scroll"),
            ("Zoom In / Out", "Ctrl++ / Ctrl+-"),
            ("Fit to Screen", "Ctrl+0"),
            ("Parent / First Child", "↑ / ↓"),
            ("Previous / Next Sibling", "← / →"),
            ("Cycle Selection", "Tab / Shift+Tab"),
        ],
        "Node Editing": [
            ("Add Child", "N"),
            ("Edit Node Text", "Enter or double-click"),
            ("Delete Node and Subtree", "Delete"),
            ("Copy / Paste", "Ctrl+C / Ctrl+V"),
            ("Cancel Drag or Connect", "Escape"),
            ("Undo", "Ctrl+Z"),
            ("Redo", "Ctrl+Y or Ctrl+Shift+Z"),
        ],
    }

    def __init__(self, parent: Gtk.Window):
        super().__init__()

        self.set_transient_for(parent)
        self.set_modal(True)
        self.set_default_size(460, 560)
        self.set_title("Keyboard Shortcuts")

        scrolled = Gtk.ScrolledWindow()
        scrolled.set_policy(Gtk.PolicyType.NEVER, Gtk.PolicyType.AUTOMATIC)

        box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=24)
        box.set_margin_start(24)
        box.set_margin_end(24)
        box.set_margin_top(24)
        box.set_margin_bottom(24)

        for section, shortcuts in self.SHORTCUTS.items():
            section_box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=8)

            title = Gtk.Label(label=section.upper())
            title.set_halign(Gtk.Align.START)
            title.add_css_class("heading")
            section_box.append(title)

            for action, keys in shortcuts:
                row = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=12)

                action_label = Gtk.Label(label=action)
                action_label.set_halign(Gtk.Align.START)
                action_label.set_hexpand(True)
                row.append(action_label)

                keys_label = Gtk.Label(label=keys)
                keys_label.set_halign(Gtk.Align.END)
                keys_label.add_css_class("dim-label")
                row.append(keys_label)

                section_box.append(row)

            box.append(section_box)

        scrolled.set_child(box)
        self.set_child(scrolled)

        # Close on Escape
        key_ctrl = Gtk.EventControllerKey()
        key_ctrl.connect("key-pressed", self._on_key_pressed)
        self.add_controller(key_ctrl)

    def _on_key_pressed(self, controller, keyval, keycode, state):
        if keyval == Gdk.KEY_Escape:
            self.close()
            return True
        return False


class SettingsDialog(Adw.PreferencesWindow):
    """Preferences dialog editing a copy of the editor settings."""

    INTERVALS = [0, 5, 10, 30, 60]
    INTERVAL_LABELS = ["Disabled", "5 seconds", "10 seconds", "30 seconds", "1 minute"]

    def __init__(self, parent: Gtk.Window, settings: EditorSettings):
        super().__init__()
        self.settings = settings

        # Live-apply callback: (key: str, value: Any) -> None
        self.on_settings_changed: Optional[Callable] = None

        self.set_transient_for(parent)
        self.set_modal(True)
        self.set_default_size(560, 440)
        self.set_title("Preferences")

        # Canvas page
        canvas_page = Adw.PreferencesPage()
        canvas_page.set_title("Canvas")
        canvas_page.set_icon_name("applications-graphics-symbolic")

        canvas_group = Adw.PreferencesGroup()
        canvas_group.set_title("Display")

        grid_row = Adw.SwitchRow()
        grid_row.set_title("Show Grid")
        grid_row.set_subtitle("Draw the background grid")
        grid_row.set_active(settings.show_grid)
        grid_row.connect("notify::active", self._on_switch_changed, "show_grid")
        canvas_group.add(grid_row)

        minimap_row = Adw.SwitchRow()
        minimap_row.set_title("Show Minimap")
        minimap_row.set_subtitle("Overview of the whole map in the corner")
        minimap_row.set_active(settings.show_minimap)
        minimap_row.connect("notify::active", self._on_switch_changed, "show_minimap")
        canvas_group.add(minimap_row)

        perf_row = Adw.SwitchRow()
        perf_row.set_title("Performance Mode")
        perf_row.set_subtitle("Skip particles for large maps")
        perf_row.set_active(settings.performance_mode)
        perf_row.connect("notify::active", self._on_switch_changed, "performance_mode")
        canvas_group.add(perf_row)

        canvas_page.add(canvas_group)
        self.add(canvas_page)

        # Saving page
        saving_page = Adw.PreferencesPage()
        saving_page.set_title("Saving")
        saving_page.set_icon_name("document-save-symbolic")

        autosave_group = Adw.PreferencesGroup()
        autosave_group.set_title("Auto-Save")

        interval_row = Adw.ComboRow()
        interval_row.set_title("Auto-save Interval")
        interval_row.set_subtitle("How often the map is written to the autosave slot")
        interval_row.set_model(Gtk.StringList.new(self.INTERVAL_LABELS))
        if settings.autosave_interval in self.INTERVALS:
            interval_row.set_selected(self.INTERVALS.index(settings.autosave_interval))
        else:
            interval_row.set_selected(self.INTERVALS.index(10))
        interval_row.connect("notify::selected", self._on_interval_changed)
        autosave_group.add(interval_row)

        saving_page.add(autosave_group)
        self.add(saving_page)

    def _notify(self, key: str, value):
        if self.on_settings_changed:
            self.on_settings_changed(key, value)

    def _on_switch_changed(self, row, param, key: str):
        setattr(self.settings, key, row.get_active())
        self._notify(key, row.get_active())

    def _on_interval_changed(self, row, param):
        value = self.INTERVALS[row.get_selected()]
        self.settings.autosave_interval = value
        self._notify("autosave_interval", value)
