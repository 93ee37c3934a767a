"""Node store: the tree of nodes and its parent/child/level invariants."""

import logging
from copy import deepcopy
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from mindcanvas.model import (
    DEFAULT_NODE_STYLE, DEFAULT_NODE_TEXT, NODE_STYLES, Bounds, Node, SnapshotError,
)
from mindcanvas.themes import (
    CHILD_TEXT_COLOR, DEFAULT_THEME, ROOT_TEXT_COLOR, Theme, get_theme,
)

logger = logging.getLogger(__name__)

ROOT_TEXT = "Central Topic"
SIBLING_TEXT = "New Sibling"
CHILD_OFFSET_X = 150
SIBLING_OFFSET_Y = 80

# Fields callers may set when creating a node; structure is owned by the store.
_OVERRIDABLE = {"text", "x", "y", "width", "height", "color", "text_color",
                "font_size", "style", "note"}


class TreeIntegrityError(SnapshotError):
    """Raised when a node collection is not a single-rooted tree."""


def check_tree(nodes: Sequence[Node], check_levels: bool = True):
    """Verify that ``nodes`` form one tree rooted at a single node.

    Raises TreeIntegrityError describing the first violation found.
    """
    index: Dict[int, Node] = {}
    for node in nodes:
        if node.id in index:
            raise TreeIntegrityError(f"duplicate node id {node.id}")
        index[node.id] = node

    roots = [n for n in nodes if n.parent is None]
    if len(roots) != 1:
        raise TreeIntegrityError(f"expected exactly one root, found {len(roots)}")
    root = roots[0]
    if check_levels and root.level != 0:
        raise TreeIntegrityError(f"root {root.id} has level {root.level}")

    for node in nodes:
        for child_id in node.children:
            child = index.get(child_id)
            if child is None:
                raise TreeIntegrityError(f"node {node.id} lists unknown child {child_id}")
            if child.parent != node.id:
                raise TreeIntegrityError(
                    f"node {child_id} is listed under {node.id} but its parent is {child.parent}")
        if node.parent is None:
            continue
        parent = index.get(node.parent)
        if parent is None:
            raise TreeIntegrityError(f"node {node.id} has unknown parent {node.parent}")
        if parent.children.count(node.id) != 1:
            raise TreeIntegrityError(
                f"parent {parent.id} must list node {node.id} exactly once")
        if check_levels and node.level != parent.level + 1:
            raise TreeIntegrityError(
                f"node {node.id} has level {node.level}, expected {parent.level + 1}")

    seen = set()
    stack = [root.id]
    while stack:
        node_id = stack.pop()
        if node_id in seen:
            raise TreeIntegrityError(f"node {node_id} is reachable twice")
        seen.add(node_id)
        stack.extend(index[node_id].children)
    if len(seen) != len(nodes):
        raise TreeIntegrityError(
            f"{len(nodes) - len(seen)} node(s) are not reachable from the root")


class NodeStore:
    """Owns the node collection.

    Every mutator keeps the collection a single-rooted tree. Invalid
    operations (deleting the root, reparenting into a descendant, ...) are
    ignored and reported through the return value.
    """

    def __init__(self, theme: Optional[Theme] = None, node_style: str = DEFAULT_NODE_STYLE):
        self.theme = theme or get_theme(DEFAULT_THEME)
        self.node_style = node_style
        self._nodes: List[Node] = []
        self._index: Dict[int, Node] = {}
        self._next_id = 1

    # ==================== Queries ====================

    def __iter__(self) -> Iterator[Node]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._index

    @property
    def nodes(self) -> List[Node]:
        """Live node list in store order."""
        return self._nodes

    def get(self, node_id: Optional[int]) -> Optional[Node]:
        if node_id is None:
            return None
        return self._index.get(node_id)

    def root(self) -> Optional[Node]:
        for node in self._nodes:
            if node.parent is None:
                return node
        return None

    def children_of(self, node_id: int) -> List[Node]:
        node = self._index.get(node_id)
        if node is None:
            return []
        return [self._index[c] for c in node.children]

    def descendants(self, node_id: int) -> List[int]:
        """Ids of every node below ``node_id``, in pre-order."""
        node = self._index.get(node_id)
        if node is None:
            return []
        result: List[int] = []
        stack = list(reversed(node.children))
        while stack:
            current = self._index[stack.pop()]
            result.append(current.id)
            stack.extend(reversed(current.children))
        return result

    def is_descendant(self, node_id: int, ancestor_id: int) -> bool:
        """Check if node_id lies strictly below ancestor_id."""
        node = self._index.get(node_id)
        while node is not None and node.parent is not None:
            if node.parent == ancestor_id:
                return True
            node = self._index.get(node.parent)
        return False

    def max_depth(self) -> int:
        return max((n.level for n in self._nodes), default=0)

    def search(self, query: str) -> List[Node]:
        """Case-insensitive substring search over node labels."""
        query = query.strip().lower()
        if not query:
            return []
        return [n for n in self._nodes if query in n.text.lower()]

    def bounds(self) -> Optional[Bounds]:
        """World-space box enclosing every node."""
        if not self._nodes:
            return None
        boxes = [n.bounds() for n in self._nodes]
        return Bounds(
            min(b[0] for b in boxes),
            min(b[1] for b in boxes),
            max(b[2] for b in boxes),
            max(b[3] for b in boxes),
        )

    def validate(self):
        check_tree(self._nodes)

    # ==================== Creation ====================

    def _allocate_id(self) -> int:
        node_id = self._next_id
        self._next_id += 1
        return node_id

    def _insert(self, node: Node, parent: Optional[Node]):
        self._nodes.append(node)
        self._index[node.id] = node
        if parent is not None:
            parent.children.append(node.id)

    def add_root(self, x: float = 0.0, y: float = 0.0, text: str = ROOT_TEXT) -> Node:
        """Create the single root node."""
        if self.root() is not None:
            raise TreeIntegrityError("the map already has a root node")
        node = Node(
            id=self._allocate_id(),
            text=text,
            x=x,
            y=y,
            width=120,
            height=50,
            level=0,
            color=self.theme.color_for_level(0),
            text_color=ROOT_TEXT_COLOR,
            font_size=16,
            style=self.node_style,
        )
        self._insert(node, None)
        return node

    def add_child(self, parent_id: int, text: str = DEFAULT_NODE_TEXT, **overrides) -> Optional[Node]:
        """Append a new child under parent_id."""
        parent = self._index.get(parent_id)
        if parent is None:
            logger.debug("add_child ignored: unknown parent %s", parent_id)
            return None
        unknown = set(overrides) - _OVERRIDABLE
        if unknown:
            raise TypeError(f"cannot override node fields: {sorted(unknown)}")

        level = parent.level + 1
        node = Node(
            id=self._allocate_id(),
            text=text,
            x=parent.x + CHILD_OFFSET_X,
            y=parent.y,
            width=max(80, 120 - level * 10),
            height=max(30, 40 - level * 5),
            parent=parent.id,
            level=level,
            color=self.theme.color_for_level(level),
            text_color=ROOT_TEXT_COLOR if level == 0 else CHILD_TEXT_COLOR,
            font_size=max(12, 16 - level * 2),
            style=self.node_style,
        )
        for key, value in overrides.items():
            setattr(node, key, value)
        self._insert(node, parent)
        return node

    def add_sibling(self, node_id: int, text: str = SIBLING_TEXT) -> Optional[Node]:
        """Append a new node next to node_id under the same parent."""
        node = self._index.get(node_id)
        if node is None or node.parent is None:
            logger.debug("add_sibling ignored for %s", node_id)
            return None
        parent = self._index[node.parent]
        sibling = Node(
            id=self._allocate_id(),
            text=text,
            x=node.x,
            y=node.y + SIBLING_OFFSET_Y,
            width=node.width,
            height=node.height,
            parent=parent.id,
            level=node.level,
            color=self.theme.color_for_level(node.level),
            text_color=node.text_color,
            font_size=node.font_size,
            style=self.node_style,
        )
        self._insert(sibling, parent)
        return sibling

    def add_children(self, parent_id: int, labels: Iterable[str],
                     palette: Sequence[str]) -> List[Node]:
        """Bulk-create children (used for generated suggestions)."""
        parent = self._index.get(parent_id)
        if parent is None or not palette:
            return []
        created = []
        for i, label in enumerate(labels):
            created.append(self.add_child(
                parent_id,
                text=label,
                x=parent.x + CHILD_OFFSET_X,
                y=parent.y + (i - 1.5) * 60,
                width=max(80, len(label) * 8 + 20),
                height=35,
                color=palette[i % len(palette)],
                text_color=ROOT_TEXT_COLOR,
                font_size=13,
            ))
        return created

    # ==================== Structural changes ====================

    def delete_subtree(self, node_id: int) -> List[int]:
        """Remove a node and all its descendants. The root is never removed."""
        node = self._index.get(node_id)
        if node is None or node.parent is None:
            logger.debug("delete_subtree ignored for %s", node_id)
            return []

        removed = [node_id] + self.descendants(node_id)
        parent = self._index[node.parent]
        parent.children.remove(node_id)

        doomed = set(removed)
        self._nodes = [n for n in self._nodes if n.id not in doomed]
        for removed_id in removed:
            del self._index[removed_id]
        return removed

    def reparent(self, node_id: int, new_parent_id: int) -> bool:
        """Move node_id (with its subtree) under new_parent_id.

        Rejects moves onto itself, into its own subtree, of the root, and
        moves to the current parent. Levels of the whole moved subtree are
        recomputed.
        """
        node = self._index.get(node_id)
        new_parent = self._index.get(new_parent_id)
        if node is None or new_parent is None or node_id == new_parent_id:
            logger.debug("reparent ignored: %s -> %s", node_id, new_parent_id)
            return False
        if node.parent is None or node.parent == new_parent_id:
            logger.debug("reparent ignored: %s is root or already under %s", node_id, new_parent_id)
            return False
        if self.is_descendant(new_parent_id, node_id):
            logger.debug("reparent rejected: %s is inside the subtree of %s", new_parent_id, node_id)
            return False

        old_parent = self._index[node.parent]
        old_parent.children.remove(node_id)
        node.parent = new_parent_id
        new_parent.children.append(node_id)
        self._relevel(node, new_parent.level + 1)
        return True

    def _relevel(self, node: Node, level: int):
        node.level = level
        stack = [(self._index[c], level + 1) for c in node.children]
        while stack:
            current, current_level = stack.pop()
            current.level = current_level
            stack.extend((self._index[c], current_level + 1) for c in current.children)

    def copy(self, node_id: int) -> Optional[Node]:
        """Detached copy of a single node (no parent, no children)."""
        node = self._index.get(node_id)
        if node is None:
            return None
        copied = deepcopy(node)
        copied.parent = None
        copied.children = []
        return copied

    def paste(self, copied: Optional[Node], target_parent_id: Optional[int]) -> Optional[Node]:
        """Insert a fresh node built from ``copied`` under target_parent_id."""
        if copied is None or target_parent_id is None:
            logger.debug("paste ignored: nothing copied or no target")
            return None
        target = self._index.get(target_parent_id)
        if target is None:
            return None
        return self.add_child(
            target.id,
            text=f"{copied.text} (copy)",
            x=target.x + CHILD_OFFSET_X,
            y=target.y,
            width=copied.width,
            height=copied.height,
            color=copied.color,
            text_color=copied.text_color,
            font_size=copied.font_size,
            style=copied.style,
            note=copied.note,
        )

    def clear(self, x: float = 0.0, y: float = 0.0) -> Node:
        """Drop every node and start over with a fresh root."""
        self._nodes = []
        self._index = {}
        return self.add_root(x, y)

    # ==================== Attribute changes ====================

    def set_text(self, node_id: int, text: str) -> bool:
        node = self._index.get(node_id)
        if node is None:
            return False
        text = text.strip() or DEFAULT_NODE_TEXT
        node.text = text
        node.width = max(60, len(text) * 12 + 20)
        return True

    def set_note(self, node_id: int, note: Optional[str]) -> bool:
        node = self._index.get(node_id)
        if node is None:
            return False
        node.note = note if note else None
        return True

    def set_color(self, node_id: int, color: str) -> bool:
        node = self._index.get(node_id)
        if node is None:
            return False
        node.color = color
        return True

    def move_to(self, node_id: int, x: float, y: float) -> bool:
        node = self._index.get(node_id)
        if node is None:
            return False
        node.x = x
        node.y = y
        return True

    def set_style_all(self, style: str) -> bool:
        """Apply one body style to every node."""
        if style not in NODE_STYLES:
            logger.debug("unknown node style %r", style)
            return False
        self.node_style = style
        for node in self._nodes:
            node.style = style
        return True

    def recolor(self, theme: Optional[Theme] = None):
        """Colour every node by level from ``theme`` (or the current theme)."""
        if theme is not None:
            self.theme = theme
        for node in self._nodes:
            node.color = self.theme.color_for_level(node.level)

    def recolor_subtree(self, node_id: int):
        node = self._index.get(node_id)
        if node is None:
            return
        for current_id in [node_id] + self.descendants(node_id):
            current = self._index[current_id]
            current.color = self.theme.color_for_level(current.level)

    # ==================== Snapshots ====================

    def snapshot(self) -> Tuple[Node, ...]:
        """Deep copy of the collection, detached from the live store."""
        return tuple(deepcopy(n) for n in self._nodes)

    def restore(self, nodes: Iterable[Node]):
        """Replace the whole collection.

        The structure is verified first; levels are then recomputed from the
        parent chain so older files with stale levels load consistently.
        """
        fresh = [deepcopy(n) for n in nodes]
        check_tree(fresh, check_levels=False)

        self._nodes = fresh
        self._index = {n.id: n for n in fresh}
        root = self.root()
        self._relevel(root, 0)
        self._next_id = max(self._next_id, max(n.id for n in fresh) + 1)
