"""Export functionality for MindCanvas mind maps."""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional
from xml.sax.saxutils import escape, quoteattr

from mindcanvas.database import get_data_dir
from mindcanvas.model import Node, Snapshot
from mindcanvas.render import Scene, SceneRenderer

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("png", "svg", "pdf", "json", "txt")

OUTLINE_TITLE = "Mind Map Outline"
SVG_FONT_FAMILY = "Sans"
SVG_EDGE_COLOR = "#666"


class ExportError(ValueError):
    """Raised for an unsupported export format."""


def _num(value: float) -> str:
    """Compact number formatting for SVG attributes."""
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


class MindMapExporter:
    """Handles exporting mind maps to various formats.

    Outline, SVG and JSON output are built from the node data alone. PNG and
    PDF go through the render pipeline so they match what is on screen.
    """

    def __init__(self, renderer: Optional[SceneRenderer] = None):
        self.renderer = renderer or SceneRenderer()

    def export_outline(self, nodes: Iterable[Node], title: Optional[str] = None) -> str:
        """Indented text outline, pre-order from the root in child order."""
        nodes = list(nodes)
        index: Dict[int, Node] = {n.id: n for n in nodes}
        root = next((n for n in nodes if n.parent is None), None)

        lines: List[str] = []
        if title:
            lines.append(title)
            lines.append("")
        if root is None:
            return "\n".join(lines)

        stack = [(root, 0)]
        while stack:
            node, depth = stack.pop()
            indent = "  " * depth
            lines.append(f"{indent}{'' if depth == 0 else '- '}{node.text}")
            stack.extend((index[c], depth + 1) for c in reversed(node.children) if c in index)

        return "\n".join(lines)

    def export_svg(self, nodes: Iterable[Node], width: float, height: float) -> str:
        """Vector export in world coordinates, no viewport transform."""
        nodes = list(nodes)
        index = {n.id: n for n in nodes}
        parts = [f'<svg width="{_num(width)}" height="{_num(height)}" '
                 f'xmlns="http://www.w3.org/2000/svg">']

        for node in nodes:
            parent = index.get(node.parent) if node.parent is not None else None
            if parent is not None:
                parts.append(
                    f'<line x1="{_num(parent.x)}" y1="{_num(parent.y)}" '
                    f'x2="{_num(node.x)}" y2="{_num(node.y)}" '
                    f'stroke="{SVG_EDGE_COLOR}" stroke-width="2"/>')

            parts.append(
                f'<rect x="{_num(node.x - node.width / 2)}" y="{_num(node.y - node.height / 2)}" '
                f'width="{_num(node.width)}" height="{_num(node.height)}" '
                f'fill={quoteattr(node.color)} rx="8"/>')
            parts.append(
                f'<text x="{_num(node.x)}" y="{_num(node.y)}" text-anchor="middle" '
                f'dominant-baseline="middle" fill={quoteattr(node.text_color)} '
                f'font-family="{SVG_FONT_FAMILY}" font-size="{node.font_size}">'
                f'{escape(node.text)}</text>')

        parts.append('</svg>')
        return "".join(parts)

    def export_json(self, snapshot: Snapshot) -> str:
        return snapshot.to_json(indent=2)

    def export_png(self, scene: Scene) -> bytes:
        return self.renderer.render_png(scene)

    def export_pdf(self, scene: Scene, title: Optional[str] = None) -> bytes:
        return self.renderer.render_pdf(scene, title)

    def export(self, fmt: str, snapshot: Snapshot, scene: Scene,
               title: Optional[str] = None) -> bytes:
        """Export in ``fmt`` and return the encoded file contents."""
        fmt = fmt.lower()
        if fmt == "txt":
            data = self.export_outline(snapshot.nodes, title).encode("utf-8")
        elif fmt == "svg":
            vp = scene.viewport
            data = self.export_svg(snapshot.nodes, vp.width, vp.height).encode("utf-8")
        elif fmt == "json":
            data = self.export_json(snapshot).encode("utf-8")
        elif fmt == "png":
            data = self.export_png(scene)
        elif fmt == "pdf":
            data = self.export_pdf(scene, title)
        else:
            raise ExportError(f"unsupported export format: {fmt!r}")
        logger.info("exported %d nodes as %s (%d bytes)", len(snapshot.nodes), fmt, len(data))
        return data

    def write(self, fmt: str, filepath: Path, snapshot: Snapshot, scene: Scene,
              title: Optional[str] = None) -> Path:
        filepath = Path(filepath)
        filepath.write_bytes(self.export(fmt, snapshot, scene, title))
        return filepath


def get_export_dir() -> Path:
    """Get the default export directory."""
    export_dir = get_data_dir() / "exports"
    export_dir.mkdir(exist_ok=True)
    return export_dir


def default_filename(fmt: str, stem: str = "mindmap") -> str:
    return f"{stem}.{fmt.lower()}"
