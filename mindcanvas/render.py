"""Cairo render pipeline for the mind-map canvas.

Two paths share the same culling: ``render`` draws the full-fidelity frame
(shadows, gradients, wrapped labels, overlays) and ``render_fast`` draws flat
boxes and straight edges for high-frequency interaction such as dragging.
"""

import io
import math
import random
from dataclasses import dataclass
from typing import Callable, List, NamedTuple, Optional, Sequence, Tuple

import cairo

from mindcanvas.model import Node
from mindcanvas.themes import parse_color
from mindcanvas.viewport import Viewport


class FrameStats(NamedTuple):
    """What a single render call actually drew."""
    nodes_drawn: int
    connections_drawn: int
    fast: bool


@dataclass
class Particle:
    x: float
    y: float
    vx: float
    vy: float
    life: float = 1.0
    decay: float = 0.05


class ParticleSystem:
    """Short-lived sparkles spawned when a node is grabbed."""

    BURST_SIZE = 4

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()
        self.particles: List[Particle] = []

    @property
    def alive(self) -> bool:
        return bool(self.particles)

    def burst(self, x: float, y: float):
        for _ in range(self.BURST_SIZE):
            self.particles.append(Particle(
                x=x,
                y=y,
                vx=(self.rng.random() - 0.5) * 2,
                vy=(self.rng.random() - 0.5) * 2,
            ))

    def step(self):
        """Advance one frame and drop dead particles."""
        for particle in self.particles:
            particle.x += particle.vx
            particle.y += particle.vy
            particle.life -= particle.decay
        self.particles = [p for p in self.particles if p.life > 0]

    def clear(self):
        self.particles = []


@dataclass
class Scene:
    """Everything one frame needs to know."""
    nodes: Sequence[Node]
    viewport: Viewport
    selected_id: Optional[int] = None
    connecting_id: Optional[int] = None
    pointer: Optional[Tuple[float, float]] = None  # world coordinates
    performance_mode: bool = False
    show_grid: bool = True
    show_minimap: bool = False
    particles: Optional[ParticleSystem] = None


def wrap_text(text: str, max_width: float, measure: Callable[[str], float]) -> List[str]:
    """Break text character by character so each line fits ``max_width``.

    A single character wider than the limit still gets its own line.
    """
    lines: List[str] = []
    current = ""
    for char in text:
        candidate = current + char
        if measure(candidate) > max_width and current:
            lines.append(current)
            current = char
        else:
            current = candidate
    lines.append(current)
    return lines


class SceneRenderer:
    """Draws a Scene onto a cairo context."""

    COLORS = {
        'background': (0.961, 0.969, 0.980),      # #f5f7fa
        'grid': (0.784, 0.784, 0.784, 0.3),       # rgba(200,200,200,0.3)
        'shadow': (0.0, 0.0, 0.0, 0.2),
        'border': (1.0, 1.0, 1.0, 0.9),
        'selected': (1.0, 0.843, 0.0),            # #FFD700
        'particle': (1.0, 0.843, 0.0),
        'note': (1.0, 0.655, 0.149),              # #FFA726
        'connecting': (1.0, 0.341, 0.133),        # #FF5722
        'fast_edge': (0.6, 0.6, 0.6),             # #999
        'minimap_bg': (0.980, 0.984, 0.988, 0.95),
        'minimap_border': (0.867, 0.867, 0.867),
        'minimap_edge': (0.533, 0.533, 0.533),
        'minimap_view': (0.4, 0.494, 0.918),      # #667eea
    }

    FONT_FACE = "Sans"
    GRID_SIZE = 50
    SHADOW_OFFSET = 2
    CORNER_RADIUS = 8
    FAST_CORNER_RADIUS = 6
    MINIMAP_WIDTH = 200
    MINIMAP_HEIGHT = 150
    MINIMAP_PADDING = 16

    def __init__(self, font_face: Optional[str] = None):
        if font_face:
            self.FONT_FACE = font_face

    # ==================== Full render ====================

    def render(self, cr, scene: Scene) -> FrameStats:
        """Draw a full-fidelity frame."""
        vp = scene.viewport
        view = vp.bounds()
        visible = [n for n in scene.nodes if vp.is_visible(n, bounds=view)]
        visible_ids = {n.id for n in visible}
        index = {n.id: n for n in scene.nodes}

        cr.save()
        self._draw_background(cr, vp)
        if scene.show_grid:
            self._draw_grid(cr, vp)

        # World space
        cr.save()
        cr.translate(vp.offset_x, vp.offset_y)
        cr.scale(vp.scale, vp.scale)

        if scene.particles is not None and not scene.performance_mode:
            scene.particles.step()
            self._draw_particles(cr, scene.particles)

        connections = 0
        for node in visible:
            if node.parent is not None and node.parent in visible_ids:
                self._draw_connection(cr, index[node.parent], node)
                connections += 1

        for node in visible:
            self._draw_node(cr, node, node.id == scene.selected_id)

        for node in visible:
            if node.note:
                self._draw_note_marker(cr, node)

        cr.restore()

        # Screen space overlays
        source = index.get(scene.connecting_id) if scene.connecting_id is not None else None
        if source is not None and scene.pointer is not None:
            self._draw_connecting_line(cr, vp, source, scene.pointer)

        if scene.show_minimap and scene.nodes:
            self._draw_minimap(cr, scene)

        cr.restore()
        return FrameStats(len(visible), connections, False)

    def _draw_background(self, cr, vp: Viewport):
        cr.set_source_rgb(*self.COLORS['background'])
        cr.rectangle(0, 0, vp.width, vp.height)
        cr.fill()

    def _draw_grid(self, cr, vp: Viewport):
        """Draw a line grid that follows pan and zoom."""
        grid = self.GRID_SIZE * vp.scale
        if grid <= 0:
            return
        cr.save()
        cr.set_source_rgba(*self.COLORS['grid'])
        cr.set_line_width(1)

        x = vp.offset_x % grid
        while x < vp.width:
            cr.move_to(x, 0)
            cr.line_to(x, vp.height)
            x += grid
        y = vp.offset_y % grid
        while y < vp.height:
            cr.move_to(0, y)
            cr.line_to(vp.width, y)
            y += grid
        cr.stroke()
        cr.restore()

    def _draw_particles(self, cr, particles: ParticleSystem):
        cr.save()
        for particle in particles.particles:
            cr.set_source_rgba(*self.COLORS['particle'], max(0.0, particle.life))
            cr.arc(particle.x, particle.y, 2, 0, 2 * math.pi)
            cr.fill()
        cr.restore()

    def _draw_connection(self, cr, parent: Node, child: Node):
        """Cubic curve from parent centre to child centre."""
        dx = child.x - parent.x
        dy = child.y - parent.y
        curvature = min(math.hypot(dx, dy) * 0.3, 100)

        gradient = cairo.LinearGradient(parent.x, parent.y, child.x, child.y)
        gradient.add_color_stop_rgba(0, *parse_color(parent.color))
        gradient.add_color_stop_rgba(1, *parse_color(child.color))

        cr.save()
        cr.set_source(gradient)
        cr.set_line_width(max(2, 6 - child.level))
        cr.set_line_cap(cairo.LINE_CAP_ROUND)
        cr.move_to(parent.x, parent.y)
        cr.curve_to(parent.x + curvature, parent.y,
                    child.x - curvature, child.y,
                    child.x, child.y)
        cr.stroke()
        cr.restore()

    def _draw_node(self, cr, node: Node, selected: bool):
        """Draw a node body with shadow, border and wrapped label."""
        cr.save()

        # Drop shadow
        cr.save()
        cr.translate(self.SHADOW_OFFSET, self.SHADOW_OFFSET)
        self._body_path(cr, node)
        cr.set_source_rgba(*self.COLORS['shadow'])
        cr.fill()
        cr.restore()

        self._body_path(cr, node)
        cr.set_source_rgba(*parse_color(node.color))
        cr.fill_preserve()

        if selected:
            cr.set_source_rgb(*self.COLORS['selected'])
            cr.set_line_width(4)
        else:
            cr.set_source_rgba(*self.COLORS['border'])
            cr.set_line_width(2)
        cr.stroke()

        self._draw_label(cr, node)
        cr.restore()

    def _body_path(self, cr, node: Node):
        x = node.x - node.width / 2
        y = node.y - node.height / 2
        w, h = node.width, node.height
        cr.new_path()
        if node.style == "circle":
            cr.arc(node.x, node.y, min(w, h) / 2, 0, 2 * math.pi)
            cr.close_path()
        elif node.style == "diamond":
            cr.move_to(node.x, y)
            cr.line_to(x + w, node.y)
            cr.line_to(node.x, y + h)
            cr.line_to(x, node.y)
            cr.close_path()
        elif node.style == "cloud":
            self._cloud_path(cr, node.x, node.y, w, h)
        else:
            self._rounded_rect(cr, x, y, w, h, self.CORNER_RADIUS)

    def _cloud_path(self, cr, cx: float, cy: float, w: float, h: float):
        """Overlapping circles that read as a cloud."""
        for ox, oy, r in ((-w / 4, -h / 4, w / 4),
                          (w / 4, -h / 4, w / 3),
                          (w / 3, h / 4, w / 4),
                          (-w / 3, h / 4, w / 3),
                          (0, 0, w / 3)):
            cr.new_sub_path()
            cr.arc(cx + ox, cy + oy, r, 0, 2 * math.pi)
            cr.close_path()

    def _rounded_rect(self, cr, x: float, y: float, w: float, h: float, radius: float):
        """Draw a rounded rectangle path."""
        radius = max(0.0, min(radius, w / 2, h / 2))
        cr.new_path()
        cr.arc(x + w - radius, y + radius, radius, -math.pi / 2, 0)
        cr.arc(x + w - radius, y + h - radius, radius, 0, math.pi / 2)
        cr.arc(x + radius, y + h - radius, radius, math.pi / 2, math.pi)
        cr.arc(x + radius, y + radius, radius, math.pi, 3 * math.pi / 2)
        cr.close_path()

    def _select_font(self, cr, size: float):
        cr.select_font_face(self.FONT_FACE, cairo.FONT_SLANT_NORMAL, cairo.FONT_WEIGHT_NORMAL)
        cr.set_font_size(size)

    def _draw_label(self, cr, node: Node):
        self._select_font(cr, node.font_size)
        cr.set_source_rgba(*parse_color(node.text_color))

        lines = wrap_text(node.text, node.width - 10,
                          lambda s: cr.text_extents(s).x_advance)
        line_height = node.font_size + 2
        start_y = node.y - (len(lines) - 1) * line_height / 2
        ascent, descent = cr.font_extents()[:2]

        for i, line in enumerate(lines):
            if not line:
                continue
            extents = cr.text_extents(line)
            baseline = start_y + i * line_height + (ascent - descent) / 2
            cr.move_to(node.x - (extents.x_bearing + extents.width / 2), baseline)
            cr.show_text(line)

    def _draw_note_marker(self, cr, node: Node):
        icon_x = node.x + node.width / 2 - 8
        icon_y = node.y - node.height / 2 + 8

        cr.save()
        cr.set_source_rgb(*self.COLORS['note'])
        cr.arc(icon_x, icon_y, 6, 0, 2 * math.pi)
        cr.fill()

        self._select_font(cr, 10)
        cr.set_source_rgb(1, 1, 1)
        extents = cr.text_extents("!")
        cr.move_to(icon_x - (extents.x_bearing + extents.width / 2), icon_y + 3)
        cr.show_text("!")
        cr.restore()

    def _draw_connecting_line(self, cr, vp: Viewport, source: Node,
                              pointer: Tuple[float, float]):
        """Rubber-band line from the connect source to the pointer."""
        sx, sy = vp.world_to_screen(source.x, source.y)
        px, py = vp.world_to_screen(*pointer)
        cr.save()
        cr.set_source_rgb(*self.COLORS['connecting'])
        cr.set_line_width(2)
        cr.set_dash([5, 5])
        cr.move_to(sx, sy)
        cr.line_to(px, py)
        cr.stroke()
        cr.restore()

    def _draw_minimap(self, cr, scene: Scene):
        """Draw an overview of the whole map in the bottom-right corner."""
        vp = scene.viewport
        mm_w, mm_h = self.MINIMAP_WIDTH, self.MINIMAP_HEIGHT
        mm_x = vp.width - mm_w - self.MINIMAP_PADDING
        mm_y = vp.height - mm_h - self.MINIMAP_PADDING

        cr.save()
        self._rounded_rect(cr, mm_x, mm_y, mm_w, mm_h, 4)
        cr.set_source_rgba(*self.COLORS['minimap_bg'])
        cr.fill_preserve()
        cr.set_source_rgb(*self.COLORS['minimap_border'])
        cr.set_line_width(1)
        cr.stroke()

        cr.rectangle(mm_x + 2, mm_y + 2, mm_w - 4, mm_h - 4)
        cr.clip()

        boxes = [n.bounds() for n in scene.nodes]
        min_x = min(b[0] for b in boxes)
        max_x = max(b[2] for b in boxes)
        min_y = min(b[1] for b in boxes)
        max_y = max(b[3] for b in boxes)
        scale = min((mm_w - 30) / (max_x - min_x + 100),
                    (mm_h - 35) / (max_y - min_y + 100),
                    0.3)

        cr.translate(mm_x + mm_w / 2, mm_y + mm_h / 2)
        cr.scale(scale, scale)
        cr.translate(-(min_x + max_x) / 2, -(min_y + max_y) / 2)

        index = {n.id: n for n in scene.nodes}
        cr.set_source_rgb(*self.COLORS['minimap_edge'])
        cr.set_line_width(1.2 / scale)
        for node in scene.nodes:
            parent = index.get(node.parent) if node.parent is not None else None
            if parent is not None:
                cr.move_to(parent.x, parent.y)
                cr.line_to(node.x, node.y)
        cr.stroke()

        for node in scene.nodes:
            if node.id == scene.selected_id:
                cr.set_source_rgb(*self.COLORS['selected'])
                cr.arc(node.x, node.y, 3.5 / scale, 0, 2 * math.pi)
            else:
                cr.set_source_rgba(*parse_color(node.color))
                cr.arc(node.x, node.y, 2 / scale, 0, 2 * math.pi)
            cr.fill()

        view = vp.bounds()
        cr.set_source_rgba(*self.COLORS['minimap_view'], 0.8)
        cr.set_line_width(1.5 / scale)
        cr.set_dash([3 / scale, 3 / scale])
        cr.rectangle(view.min_x, view.min_y, view.width, view.height)
        cr.stroke()
        cr.restore()

    # ==================== Fast render ====================

    def render_fast(self, cr, scene: Scene) -> FrameStats:
        """Flat boxes and straight edges; no shadows, gradients or overlays."""
        vp = scene.viewport
        view = vp.bounds()
        visible = [n for n in scene.nodes if vp.is_visible(n, bounds=view)]
        visible_ids = {n.id for n in visible}
        index = {n.id: n for n in scene.nodes}

        cr.save()
        self._draw_background(cr, vp)
        cr.translate(vp.offset_x, vp.offset_y)
        cr.scale(vp.scale, vp.scale)

        connections = 0
        cr.new_path()
        for node in visible:
            if node.parent is not None and node.parent in visible_ids:
                parent = index[node.parent]
                cr.move_to(parent.x, parent.y)
                cr.line_to(node.x, node.y)
                connections += 1
        cr.set_source_rgb(*self.COLORS['fast_edge'])
        cr.set_line_width(2)
        cr.stroke()

        for node in visible:
            self._draw_simple_node(cr, node, node.id == scene.selected_id)

        cr.restore()
        return FrameStats(len(visible), connections, True)

    def _draw_simple_node(self, cr, node: Node, selected: bool):
        self._rounded_rect(cr, node.x - node.width / 2, node.y - node.height / 2,
                           node.width, node.height, self.FAST_CORNER_RADIUS)
        cr.set_source_rgba(*parse_color(node.color))
        if selected:
            cr.fill_preserve()
            cr.set_source_rgb(*self.COLORS['selected'])
            cr.set_line_width(3)
            cr.stroke()
        else:
            cr.fill()

        if node.text:
            self._select_font(cr, node.font_size or 14)
            cr.set_source_rgba(*parse_color(node.text_color or "#ffffff"))
            extents = cr.text_extents(node.text)
            ascent, descent = cr.font_extents()[:2]
            cr.move_to(node.x - (extents.x_bearing + extents.width / 2),
                       node.y + (ascent - descent) / 2)
            cr.show_text(node.text)

    # ==================== Offscreen output ====================

    def draw(self, cr, scene: Scene, fast: bool = False) -> FrameStats:
        return self.render_fast(cr, scene) if fast else self.render(cr, scene)

    def render_png(self, scene: Scene, fast: bool = False) -> bytes:
        """Rasterise the scene at its on-screen transform."""
        vp = scene.viewport
        surface = cairo.ImageSurface(cairo.FORMAT_ARGB32,
                                     max(1, int(vp.width)), max(1, int(vp.height)))
        cr = cairo.Context(surface)
        self.draw(cr, scene, fast)
        surface.flush()

        buffer = io.BytesIO()
        surface.write_to_png(buffer)
        return buffer.getvalue()

    def render_pdf(self, scene: Scene, title: Optional[str] = None) -> bytes:
        """Render the scene as a single-page vector PDF the size of the canvas."""
        vp = scene.viewport
        buffer = io.BytesIO()
        surface = cairo.PDFSurface(buffer, max(1.0, vp.width), max(1.0, vp.height))
        if title:
            surface.set_metadata(cairo.PDF_METADATA_TITLE, title)
        cr = cairo.Context(surface)
        self.render(cr, scene)
        surface.finish()
        return buffer.getvalue()

