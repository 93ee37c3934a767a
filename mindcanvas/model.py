"""Node record and snapshot schema for MindCanvas."""

import json
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

NODE_STYLES = ("rounded", "circle", "diamond", "cloud")
DEFAULT_NODE_STYLE = "rounded"
DEFAULT_NODE_TEXT = "New Topic"


class SnapshotError(ValueError):
    """Raised when serialized map data does not match the snapshot schema."""


class Bounds(NamedTuple):
    """Axis-aligned world-space rectangle."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.min_x + self.max_x) / 2, (self.min_y + self.max_y) / 2)


@dataclass
class Node:
    """A single labelled box in the diagram.

    ``x``/``y`` are the world-space centre of the node; ``width``/``height``
    span its bounding box around that centre.
    """
    id: int
    text: str = DEFAULT_NODE_TEXT
    x: float = 0.0
    y: float = 0.0
    width: float = 120.0
    height: float = 40.0
    children: List[int] = field(default_factory=list)
    parent: Optional[int] = None
    level: int = 0
    color: str = "#667eea"
    text_color: str = "#333333"
    font_size: int = 14
    style: str = DEFAULT_NODE_STYLE
    note: Optional[str] = None

    @property
    def is_root(self) -> bool:
        return self.parent is None

    def bounds(self) -> Tuple[float, float, float, float]:
        """Return (left, top, right, bottom) in world space."""
        half_w = self.width / 2
        half_h = self.height / 2
        return (self.x - half_w, self.y - half_h, self.x + half_w, self.y + half_h)

    def contains_point(self, px: float, py: float) -> bool:
        """Check if a world-space point is inside this node's box."""
        left, top, right, bottom = self.bounds()
        return left <= px <= right and top <= py <= bottom

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "text": self.text,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "children": list(self.children),
            "parent": self.parent,
            "level": self.level,
            "color": self.color,
            "textColor": self.text_color,
            "fontSize": self.font_size,
            "style": self.style,
        }
        if self.note is not None:
            data["note"] = self.note
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Node":
        """Build a node from its JSON form, raising SnapshotError on bad fields."""
        if not isinstance(data, dict):
            raise SnapshotError(f"node entry must be an object, got {type(data).__name__}")
        try:
            node_id = data["id"]
        except KeyError:
            raise SnapshotError("node entry is missing 'id'") from None
        if isinstance(node_id, bool) or not isinstance(node_id, int):
            raise SnapshotError(f"node id must be an integer, got {node_id!r}")

        children = data.get("children", [])
        if not isinstance(children, list) or not all(
                isinstance(c, int) and not isinstance(c, bool) for c in children):
            raise SnapshotError(f"node {node_id}: 'children' must be a list of ids")

        parent = data.get("parent")
        if parent is not None and (isinstance(parent, bool) or not isinstance(parent, int)):
            raise SnapshotError(f"node {node_id}: 'parent' must be an id or null")

        style = data.get("style", DEFAULT_NODE_STYLE)
        if style not in NODE_STYLES:
            style = DEFAULT_NODE_STYLE

        note = data.get("note")
        try:
            node = cls(
                id=node_id,
                text=str(data.get("text", DEFAULT_NODE_TEXT)),
                x=float(data.get("x", 0.0)),
                y=float(data.get("y", 0.0)),
                width=float(data.get("width", 120.0)),
                height=float(data.get("height", 40.0)),
                children=list(children),
                parent=parent,
                level=int(data.get("level", 0)),
                color=str(data.get("color", "#667eea")),
                text_color=str(data.get("textColor", "#333333")),
                font_size=int(data.get("fontSize", 14)),
                style=style,
                note=str(note) if note is not None else None,
            )
        except (TypeError, ValueError, OverflowError) as exc:
            raise SnapshotError(f"node {node_id}: {exc}") from exc

        for name in ("x", "y", "width", "height"):
            if not math.isfinite(getattr(node, name)):
                raise SnapshotError(f"node {node_id}: '{name}' must be a finite number")
        return node


@dataclass
class Snapshot:
    """Persisted/exported map state."""
    nodes: List[Node] = field(default_factory=list)
    theme: str = "default"
    layout: str = "radial"
    style: str = DEFAULT_NODE_STYLE
    timestamp: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "nodes": [n.to_dict() for n in self.nodes],
            "theme": self.theme,
            "layout": self.layout,
            "style": self.style,
        }
        if self.timestamp:
            data["timestamp"] = self.timestamp
        return data

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str) -> "Snapshot":
        """Parse a snapshot, raising SnapshotError when it is malformed."""
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, TypeError) as exc:
            raise SnapshotError(f"not valid JSON: {exc}") from exc
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Any) -> "Snapshot":
        if not isinstance(data, dict):
            raise SnapshotError("snapshot must be a JSON object")
        raw_nodes = data.get("nodes")
        if not isinstance(raw_nodes, list):
            raise SnapshotError("snapshot is missing a 'nodes' list")

        nodes = [Node.from_dict(entry) for entry in raw_nodes]

        for key in ("theme", "layout", "style"):
            if key in data and not isinstance(data[key], str):
                raise SnapshotError(f"'{key}' must be a string")
        timestamp = data.get("timestamp")
        return cls(
            nodes=nodes,
            theme=data.get("theme") or "default",
            layout=data.get("layout") or "radial",
            style=data.get("style") or DEFAULT_NODE_STYLE,
            timestamp=str(timestamp) if timestamp else None,
        )

    @staticmethod
    def now() -> str:
        return datetime.now().isoformat()
