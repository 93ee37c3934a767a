"""Viewport: world/screen mapping, visibility culling and hit-testing."""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from mindcanvas.model import Bounds, Node

MIN_SCALE = 0.1
MAX_SCALE = 3.0
CULL_MARGIN = 50.0


def clamp_scale(scale: float) -> float:
    return max(MIN_SCALE, min(MAX_SCALE, scale))


@dataclass
class Viewport:
    """Pan/zoom state of the canvas.

    ``screen = world * scale + offset``. ``width``/``height`` are the canvas
    size in pixels.
    """
    scale: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0
    width: float = 1200.0
    height: float = 800.0

    def __post_init__(self):
        self.scale = clamp_scale(self.scale)

    # ==================== Transforms ====================

    def world_to_screen(self, x: float, y: float) -> Tuple[float, float]:
        return (x * self.scale + self.offset_x, y * self.scale + self.offset_y)

    def screen_to_world(self, x: float, y: float) -> Tuple[float, float]:
        return ((x - self.offset_x) / self.scale, (y - self.offset_y) / self.scale)

    def bounds(self) -> Bounds:
        """World-space rectangle currently visible on the canvas."""
        min_x, min_y = self.screen_to_world(0, 0)
        max_x, max_y = self.screen_to_world(self.width, self.height)
        return Bounds(min_x, min_y, max_x, max_y)

    # ==================== Culling ====================

    def is_visible(self, node: Node, margin: float = CULL_MARGIN,
                   bounds: Optional[Bounds] = None) -> bool:
        """Check if the node's box, grown by ``margin``, overlaps the view."""
        view = bounds or self.bounds()
        left, top, right, bottom = node.bounds()
        return (right + margin >= view.min_x and
                left - margin <= view.max_x and
                bottom + margin >= view.min_y and
                top - margin <= view.max_y)

    def visible_nodes(self, nodes: Iterable[Node], margin: float = CULL_MARGIN) -> List[Node]:
        view = self.bounds()
        return [n for n in nodes if self.is_visible(n, margin, view)]

    def node_at(self, nodes: Iterable[Node], sx: float, sy: float) -> Optional[Node]:
        """First node in store order containing the screen point."""
        wx, wy = self.screen_to_world(sx, sy)
        for node in nodes:
            if node.contains_point(wx, wy):
                return node
        return None

    # ==================== Navigation ====================

    def zoom(self, factor: float, anchor: Optional[Tuple[float, float]] = None):
        """Scale by ``factor``; a screen-space ``anchor`` stays fixed."""
        old_scale = self.scale
        self.scale = clamp_scale(self.scale * factor)
        if anchor is not None and self.scale != old_scale:
            ax, ay = anchor
            ratio = self.scale / old_scale
            self.offset_x = ax - (ax - self.offset_x) * ratio
            self.offset_y = ay - (ay - self.offset_y) * ratio

    def pan(self, dx: float, dy: float):
        self.offset_x += dx
        self.offset_y += dy

    def resize(self, width: float, height: float):
        self.width = width
        self.height = height

    def center_on(self, x: float, y: float):
        """Pan so the world point sits in the middle of the canvas."""
        self.offset_x = self.width / 2 - x * self.scale
        self.offset_y = self.height / 2 - y * self.scale

    def fit_to_bounds(self, bounds: Optional[Bounds], padding: float = 100.0):
        """Zoom (never beyond 100%) and centre so ``bounds`` fills the canvas."""
        if bounds is None:
            return
        scales = [1.0]
        if bounds.width > 0:
            scales.append((self.width - padding) / bounds.width)
        if bounds.height > 0:
            scales.append((self.height - padding) / bounds.height)
        self.scale = clamp_scale(min(scales))
        self.center_on(*bounds.center)
