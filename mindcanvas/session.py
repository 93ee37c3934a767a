"""Editor session: composes the editing components behind user-level commands.

The GTK shell and the CLI both drive a session. It owns the node store,
viewport, history, renderer, frame scheduler and interaction controller,
and applies the editor's policy of re-running the layout, committing a
history checkpoint and requesting a render after each structural change.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from mindcanvas import layout as layouts
from mindcanvas.controller import InteractionController
from mindcanvas.database import AUTOSAVE_KEY, MANUAL_KEY, EditorSettings
from mindcanvas.export import MindMapExporter
from mindcanvas.history import HistoryManager
from mindcanvas.model import (
    DEFAULT_NODE_STYLE, DEFAULT_NODE_TEXT, NODE_STYLES, Node, Snapshot, SnapshotError,
)
from mindcanvas.render import FrameStats, ParticleSystem, Scene, SceneRenderer
from mindcanvas.scheduler import FrameScheduler, ScheduleFunc
from mindcanvas.store import NodeStore
from mindcanvas.suggestions import SuggestionProvider
from mindcanvas.themes import DEFAULT_THEME, SUGGESTION_COLORS, THEMES, get_theme
from mindcanvas.viewport import Viewport

logger = logging.getLogger(__name__)

BUTTON_ZOOM_IN = 1.2
BUTTON_ZOOM_OUT = 0.8
FIT_PADDING = 100

DIRECTIONS = ("up", "down", "left", "right")


class EditorSession:
    """One open mind map and everything needed to edit it."""

    def __init__(self, storage=None, settings: Optional[EditorSettings] = None,
                 suggestions: Optional[SuggestionProvider] = None,
                 renderer: Optional[SceneRenderer] = None,
                 schedule: Optional[ScheduleFunc] = None,
                 particles: Optional[ParticleSystem] = None):
        self.settings = settings or EditorSettings()
        self.storage = storage
        self.suggestions = suggestions or SuggestionProvider()

        self.theme_name = self.settings.theme if self.settings.theme in THEMES else DEFAULT_THEME
        self.layout = self.settings.layout if self.settings.layout in layouts.LAYOUTS \
            else layouts.DEFAULT_LAYOUT
        self.node_style = self.settings.node_style if self.settings.node_style in NODE_STYLES \
            else DEFAULT_NODE_STYLE
        self.performance_mode = self.settings.performance_mode
        self.show_grid = self.settings.show_grid
        self.show_minimap = self.settings.show_minimap

        self.store = NodeStore(get_theme(self.theme_name), self.node_style)
        self.viewport = Viewport(width=self.settings.canvas_width, height=self.settings.canvas_height)
        self.history = HistoryManager()
        self.renderer = renderer or SceneRenderer()
        self.exporter = MindMapExporter(self.renderer)
        self.particles = particles or ParticleSystem()

        # Without a host event loop, frames wait in a queue until flushed.
        self._frame_queue: List[Callable[[], None]] = []
        self.scheduler = FrameScheduler(schedule or self._frame_queue.append, self._on_frame)
        self.controller = InteractionController(self)

        self.clipboard: Optional[Node] = None
        self.last_frame_fast = False
        self.last_stats: Optional[FrameStats] = None

        # Callbacks
        self.on_notify: Optional[Callable[[str], None]] = None
        self.on_redraw: Optional[Callable[[bool], None]] = None
        self.on_changed: Optional[Callable[[], None]] = None

        self.store.add_root(self.viewport.width / 2, self.viewport.height / 2)
        self.history.checkpoint(self.store, self._map_settings())

    # ==================== Rendering ====================

    def scene(self) -> Scene:
        c = self.controller
        return Scene(
            nodes=self.store.nodes,
            viewport=self.viewport,
            selected_id=c.selected_id,
            connecting_id=c.connecting_id,
            pointer=c.pointer,
            performance_mode=self.performance_mode,
            show_grid=self.show_grid,
            show_minimap=self.show_minimap,
            particles=self.particles,
        )

    def request_render(self, fast: bool = False):
        self.scheduler.request(fast)

    def _on_frame(self, fast: bool):
        self.last_frame_fast = fast
        if self.on_redraw:
            self.on_redraw(fast)

    def flush_frames(self) -> int:
        """Run queued frames when no host event loop drives the scheduler."""
        frames = list(self._frame_queue)
        self._frame_queue.clear()
        for frame in frames:
            frame()
        return len(frames)

    def draw(self, cr, fast: Optional[bool] = None) -> FrameStats:
        """Draw the current state onto a cairo context."""
        fast = self.last_frame_fast if fast is None else fast
        self.last_frame_fast = False
        self.last_stats = self.renderer.draw(cr, self.scene(), fast)
        if not fast and self.particles.alive and not self.performance_mode:
            self.request_render()
        return self.last_stats

    # ==================== Internal policy ====================

    def _map_settings(self) -> Dict[str, str]:
        return {"theme": self.theme_name, "layout": self.layout, "style": self.node_style}

    def _apply_map_settings(self, settings: Dict[str, str]):
        self.theme_name = settings.get("theme", self.theme_name)
        self.store.theme = get_theme(self.theme_name)
        self.layout = settings.get("layout", self.layout)
        self.node_style = settings.get("style", self.node_style)
        self.store.node_style = self.node_style

    def checkpoint(self):
        self.history.checkpoint(self.store, self._map_settings())
        self._changed()

    def _structural_change(self):
        layouts.apply_layout(self.store, self.layout)
        self.checkpoint()
        self.request_render()

    def _notify(self, message: str, level: int = logging.INFO):
        logger.log(level, message)
        if self.on_notify:
            self.on_notify(message)

    def _changed(self):
        if self.on_changed:
            self.on_changed()

    def _restore_nodes(self, nodes: Iterable[Node]):
        self.store.restore(nodes)
        self._apply_map_settings(self.history.current_settings)
        self.controller.revalidate(clear_selection=True)
        self.request_render()
        self._changed()

    @property
    def selected(self) -> Optional[Node]:
        return self.controller.selected

    # ==================== Structure ====================

    def add_child(self, text: str = DEFAULT_NODE_TEXT) -> Optional[Node]:
        """Add a child under the selection, or under the root when nothing is selected."""
        parent = self.selected or self.store.root()
        if parent is None:
            return None
        node = self.store.add_child(parent.id, text)
        self._structural_change()
        return node

    def add_sibling(self) -> Optional[Node]:
        selected = self.selected
        if selected is None:
            logger.debug("add_sibling ignored: nothing selected")
            return None
        node = self.store.add_sibling(selected.id)
        if node is None:
            return None
        self._structural_change()
        return node

    def delete_selected(self) -> List[int]:
        selected = self.selected
        if selected is None or selected.is_root:
            logger.debug("delete ignored: no selection or root selected")
            return []
        removed = self.store.delete_subtree(selected.id)
        self.controller.revalidate(clear_selection=True)
        self._structural_change()
        return removed

    def connect(self, source_id: int, target_id: int) -> bool:
        """Make target a child of source (connect mode)."""
        if not self.store.reparent(target_id, source_id):
            return False
        self.store.recolor_subtree(target_id)
        self._structural_change()
        return True

    def copy_selected(self) -> bool:
        selected = self.selected
        if selected is None:
            logger.debug("copy ignored: nothing selected")
            return False
        self.clipboard = self.store.copy(selected.id)
        return True

    def paste(self) -> Optional[Node]:
        target = self.selected
        node = self.store.paste(self.clipboard, target.id if target else None)
        if node is None:
            return None
        self._structural_change()
        return node

    def generate_suggestions(self, mode: str) -> List[Node]:
        """Add suggested child topics under the selected node."""
        selected = self.selected
        if selected is None:
            self._notify("Select a node first")
            return []
        labels = self.suggestions.suggest(mode, selected.text)
        created = self.store.add_children(selected.id, labels, SUGGESTION_COLORS)
        self._structural_change()
        self._notify(f"Generated {len(created)} suggestions")
        return created

    def clear_all(self) -> Node:
        root = self.store.clear(self.viewport.width / 2, self.viewport.height / 2)
        self.controller.revalidate(clear_selection=True)
        self._structural_change()
        return root

    # ==================== Content ====================

    def edit_text(self, node_id: int, text: str) -> bool:
        if not self.store.set_text(node_id, text):
            return False
        self.checkpoint()
        self.request_render()
        return True

    def set_note(self, node_id: int, note: Optional[str]) -> bool:
        if not self.store.set_note(node_id, note):
            return False
        self.checkpoint()
        self.request_render()
        return True

    def set_node_color(self, node_id: int, color: str) -> bool:
        if not self.store.set_color(node_id, color):
            return False
        self.checkpoint()
        self.request_render()
        return True

    # ==================== Style ====================

    def set_layout(self, name: str) -> bool:
        if name not in layouts.LAYOUTS:
            logger.debug("unknown layout %r", name)
            return False
        self.layout = name
        layouts.apply_layout(self.store, name)
        self.checkpoint()
        self.request_render()
        return True

    def apply_smart_layout(self) -> Optional[str]:
        name = layouts.apply_smart_layout(self.store)
        if name is None:
            return None
        self.layout = name
        self.viewport.fit_to_bounds(self.store.bounds(), FIT_PADDING)
        self.checkpoint()
        self.request_render()
        self._notify(f"Applied smart layout: {name}")
        return name

    def set_node_style(self, style: str) -> bool:
        if not self.store.set_style_all(style):
            return False
        self.node_style = style
        self.checkpoint()
        self.request_render()
        return True

    def set_theme(self, name: str) -> bool:
        if name not in THEMES:
            logger.debug("unknown theme %r", name)
            return False
        self.theme_name = name
        self.store.recolor(get_theme(name))
        self.checkpoint()
        self.request_render()
        return True

    def toggle_performance_mode(self) -> bool:
        self.performance_mode = not self.performance_mode
        if self.performance_mode:
            self.particles.clear()
        self._notify("Performance mode on" if self.performance_mode else "Performance mode off")
        self.request_render()
        return self.performance_mode

    def toggle_grid(self) -> bool:
        self.show_grid = not self.show_grid
        self.request_render()
        return self.show_grid

    def toggle_minimap(self) -> bool:
        self.show_minimap = not self.show_minimap
        self.request_render()
        return self.show_minimap

    # ==================== Navigation ====================

    def focus(self, node: Node):
        """Select a node and centre the view on it."""
        self.controller.select(node.id)
        self.viewport.center_on(node.x, node.y)
        self.request_render()

    def search(self, query: str) -> List[Node]:
        results = self.store.search(query)
        if results:
            self.focus(results[0])
        return results

    def navigate(self, direction: str) -> Optional[Node]:
        """Move the selection to the parent, first child or a sibling."""
        current = self.selected
        if current is None:
            root = self.store.root()
            if root is not None:
                self.controller.select(root.id)
            return root

        target = None
        if direction == "up":
            target = self.store.get(current.parent)
        elif direction == "down":
            if current.children:
                target = self.store.get(current.children[0])
        elif direction in ("left", "right") and current.parent is not None:
            siblings = self.store.get(current.parent).children
            position = siblings.index(current.id) + (-1 if direction == "left" else 1)
            if 0 <= position < len(siblings):
                target = self.store.get(siblings[position])

        if target is not None:
            self.focus(target)
        return target

    def cycle_selection(self, step: int = 1) -> Optional[Node]:
        """Step through nodes in store order, wrapping at either end (Tab)."""
        nodes = self.store.nodes
        if not nodes:
            return None
        ids = [n.id for n in nodes]
        if self.controller.selected_id in ids:
            position = ids.index(self.controller.selected_id) + step
        else:
            position = 0 if step > 0 else -1
        target = nodes[position % len(nodes)]
        self.focus(target)
        return target

    def zoom(self, factor: float):
        self.viewport.zoom(factor, anchor=(self.viewport.width / 2, self.viewport.height / 2))
        self.request_render()

    def pan(self, dx: float, dy: float):
        self.viewport.pan(dx, dy)
        self.request_render()

    def resize(self, width: float, height: float):
        self.viewport.resize(width, height)
        self.request_render()

    def fit_to_screen(self):
        self.viewport.fit_to_bounds(self.store.bounds(), FIT_PADDING)
        self.request_render()

    # ==================== History ====================

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    def undo(self) -> bool:
        entry = self.history.undo()
        if entry is None:
            return False
        self._restore_nodes(entry)
        return True

    def redo(self) -> bool:
        entry = self.history.redo()
        if entry is None:
            return False
        self._restore_nodes(entry)
        return True

    # ==================== Persistence ====================

    def snapshot(self) -> Snapshot:
        return Snapshot(
            nodes=list(self.store.snapshot()),
            theme=self.theme_name,
            layout=self.layout,
            style=self.node_style,
            timestamp=Snapshot.now(),
        )

    def current_settings(self) -> EditorSettings:
        """Editor settings reflecting the live session."""
        return EditorSettings(
            theme=self.theme_name,
            layout=self.layout,
            node_style=self.node_style,
            performance_mode=self.performance_mode,
            show_grid=self.show_grid,
            show_minimap=self.show_minimap,
            autosave_interval=self.settings.autosave_interval,
            canvas_width=self.settings.canvas_width,
            canvas_height=self.settings.canvas_height,
        )

    def _store_snapshot(self, key: str) -> bool:
        if self.storage is None:
            logger.debug("no storage configured, %s skipped", key)
            return False
        try:
            self.storage.set_snapshot(self.snapshot().to_json(), key)
        except sqlite3.Error as exc:
            logger.error("could not write %s: %s", key, exc)
            if self.on_notify:
                self.on_notify(f"Save failed: {exc}")
            return False
        return True

    def save(self) -> bool:
        """Save under the manual storage key."""
        if not self._store_snapshot(MANUAL_KEY):
            return False
        self._notify("Saved")
        return True

    def autosave(self) -> bool:
        """Save under the autosave key; failures are logged, never raised."""
        saved = self._store_snapshot(AUTOSAVE_KEY)
        if saved:
            logger.debug("autosaved %d nodes", len(self.store))
        return saved

    def load_json(self, text: str) -> bool:
        """Replace the map with a serialized snapshot.

        Malformed input is reported through ``on_notify`` and leaves the
        current map untouched.
        """
        try:
            snapshot = Snapshot.from_json(text)
            self.store.restore(snapshot.nodes)
        except SnapshotError as exc:
            self._notify(f"Invalid file format: {exc}", logging.WARNING)
            return False

        self.theme_name = snapshot.theme if snapshot.theme in THEMES else DEFAULT_THEME
        self.store.theme = get_theme(self.theme_name)
        self.layout = snapshot.layout if snapshot.layout in layouts.LAYOUTS else layouts.DEFAULT_LAYOUT
        self.node_style = snapshot.style if snapshot.style in NODE_STYLES else DEFAULT_NODE_STYLE
        self.store.node_style = self.node_style

        self.controller.revalidate(clear_selection=True)
        self.checkpoint()
        self.request_render()
        self._notify(f"Loaded {len(self.store)} nodes")
        return True

    def load_file(self, path: Path) -> bool:
        try:
            text = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            self._notify(f"Could not read {path}: {exc}", logging.ERROR)
            return False
        return self.load_json(text)

    def restore_saved(self, key: str = MANUAL_KEY) -> bool:
        """Reload the map stored under key."""
        if self.storage is None:
            return False
        try:
            data = self.storage.get_snapshot(key)
        except sqlite3.Error as exc:
            self._notify(f"Storage unavailable: {exc}", logging.ERROR)
            return False
        if data is None:
            logger.debug("nothing stored under %s", key)
            return False
        return self.load_json(data)

    # ==================== Export ====================

    def export(self, fmt: str, title: Optional[str] = None) -> bytes:
        return self.exporter.export(fmt, self.snapshot(), self.scene(), title)

    def export_to(self, fmt: str, path: Path, title: Optional[str] = None) -> Path:
        path = self.exporter.write(fmt, path, self.snapshot(), self.scene(), title)
        self._notify(f"Exported {path.name}")
        return path
