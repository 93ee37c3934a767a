"""Layout algorithms that reposition nodes from the shape of the tree.

Every algorithm only writes ``x``/``y`` (``optimize_node_spacing`` is the one
helper that resizes nodes) and keeps the root where it is.
"""

import logging
import math
from typing import Callable, Dict, Iterable, List, Optional

from mindcanvas.model import Node

logger = logging.getLogger(__name__)

DEFAULT_LAYOUT = "radial"

RADIAL_RADIUS_INCREMENT = 150
TREE_LEVEL_HEIGHT = 100
TREE_NODE_SPACING = 120
FISHBONE_BASE_DISTANCE = 150
FISHBONE_DISTANCE_STEP = 50
FISHBONE_BASE_OFFSET = 80
FISHBONE_OFFSET_STEP = 40
TIMELINE_SPACING = 200
ORG_SPACING = 150
ORG_ROW_OFFSET = 100


def _root_of(nodes: List[Node]) -> Optional[Node]:
    for node in nodes:
        if node.parent is None:
            return node
    return None


def _root_children(nodes: List[Node], root: Node) -> List[Node]:
    index = {n.id: n for n in nodes}
    return [index[c] for c in root.children if c in index]


def radial_layout(nodes: List[Node], root: Node):
    """Place each level on a ring of radius 150 * level around the root."""
    levels: Dict[int, List[Node]] = {}
    for node in nodes:
        levels.setdefault(node.level, []).append(node)

    for level, members in levels.items():
        if level == 0:
            continue
        angle_step = (2 * math.pi) / len(members)
        radius = RADIAL_RADIUS_INCREMENT * level
        for i, node in enumerate(members):
            angle = angle_step * i
            node.x = root.x + math.cos(angle) * radius
            node.y = root.y + math.sin(angle) * radius


def tree_layout(nodes: List[Node], root: Node):
    """Top-down tree: each child row is centred under its parent.

    Subtrees are not pushed apart, so wide neighbouring subtrees can overlap.
    """
    index = {n.id: n for n in nodes}

    def position_row(row: List[Node], depth: int, start_x: float):
        current_x = start_x
        for node in row:
            node.x = current_x
            node.y = root.y + depth * TREE_LEVEL_HEIGHT
            children = [index[c] for c in node.children if c in index]
            if children:
                position_row(children, depth + 1,
                             current_x - (len(children) - 1) * TREE_NODE_SPACING / 2)
            current_x += TREE_NODE_SPACING

    children = _root_children(nodes, root)
    position_row(children, 1, root.x - (len(children) - 1) * TREE_NODE_SPACING / 2)


def fishbone_layout(nodes: List[Node], root: Node):
    """Alternate the root's children above and below a horizontal spine."""
    for i, child in enumerate(_root_children(nodes, root)):
        side = 1 if i % 2 == 0 else -1
        pair = i // 2
        child.x = root.x + FISHBONE_BASE_DISTANCE + pair * FISHBONE_DISTANCE_STEP
        child.y = root.y + side * (FISHBONE_BASE_OFFSET + pair * FISHBONE_OFFSET_STEP)


def timeline_layout(nodes: List[Node], root: Node):
    """Line the root's children up to the right of the root."""
    for i, child in enumerate(_root_children(nodes, root)):
        child.x = root.x + (i + 1) * TIMELINE_SPACING
        child.y = root.y


def org_layout(nodes: List[Node], root: Node):
    """One evenly spaced row of the root's children below the root."""
    children = _root_children(nodes, root)
    start_x = root.x - (len(children) - 1) * ORG_SPACING / 2
    for i, child in enumerate(children):
        child.x = start_x + i * ORG_SPACING
        child.y = root.y + ORG_ROW_OFFSET


LAYOUTS: Dict[str, Callable[[List[Node], Node], None]] = {
    "radial": radial_layout,
    "tree": tree_layout,
    "fishbone": fishbone_layout,
    "timeline": timeline_layout,
    "org": org_layout,
}

LAYOUT_NAMES = list(LAYOUTS)


def apply_layout(nodes: Iterable[Node], algorithm: str = DEFAULT_LAYOUT):
    """Reposition nodes in place with the named algorithm.

    Unknown names fall back to the radial layout.
    """
    nodes = list(nodes)
    root = _root_of(nodes)
    if root is None:
        return
    layout = LAYOUTS.get(algorithm)
    if layout is None:
        logger.debug("unknown layout %r, using %s", algorithm, DEFAULT_LAYOUT)
        layout = LAYOUTS[DEFAULT_LAYOUT]
    layout(nodes, root)
    logger.debug("applied %s layout to %d nodes", algorithm, len(nodes))


# ==================== Smart layout ====================

def choose_smart_layout(nodes: Iterable[Node]) -> str:
    """Pick a layout from the size and depth of the map."""
    nodes = list(nodes)
    count = len(nodes)
    max_level = max((n.level for n in nodes), default=0)
    if count > 20:
        return "tree"
    if max_level > 3:
        return "org"
    if count < 8:
        return "fishbone"
    return "radial"


def level_base_width(level: int) -> float:
    if level == 0:
        return 120
    return max(80, 120 - level * 15)


def optimize_node_spacing(nodes: Iterable[Node]):
    """Resize nodes per level so labels fit and deeper levels stay compact."""
    for node in nodes:
        node.width = max(level_base_width(node.level), len(node.text) * 8 + 20)
        node.height = max(30, 40 - node.level * 3)


def apply_smart_layout(nodes: Iterable[Node]) -> Optional[str]:
    """Choose, resize and apply a layout. Returns the chosen layout name."""
    nodes = list(nodes)
    if not nodes:
        return None
    algorithm = choose_smart_layout(nodes)
    optimize_node_spacing(nodes)
    apply_layout(nodes, algorithm)
    return algorithm
