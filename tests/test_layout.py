"""Tests for the layout algorithms."""

import math

import pytest

from mindcanvas.layout import (
    LAYOUT_NAMES, apply_layout, apply_smart_layout, choose_smart_layout,
    level_base_width, optimize_node_spacing,
)
from mindcanvas.model import Node
from mindcanvas.store import NodeStore


def star(count, root_at=(600, 400)):
    """Store with ``count`` children directly under the root."""
    store = NodeStore()
    root = store.add_root(*root_at)
    children = [store.add_child(root.id, f"c{i}") for i in range(count)]
    return store, root, children


class TestRadial:
    def test_two_children_sit_opposite_each_other(self):
        store, root, (a, b) = star(2)
        apply_layout(store, "radial")
        assert (a.x, a.y) == pytest.approx((root.x + 150, root.y))
        assert (b.x, b.y) == pytest.approx((root.x - 150, root.y))

    def test_each_level_gets_its_own_ring(self):
        store, root, (a,) = star(1)
        grandchild = store.add_child(a.id)
        apply_layout(store, "radial")
        assert math.hypot(a.x - root.x, a.y - root.y) == pytest.approx(150)
        assert math.hypot(grandchild.x - root.x, grandchild.y - root.y) == pytest.approx(300)

    def test_angles_are_evenly_spaced(self):
        store, root, children = star(4)
        apply_layout(store, "radial")
        angles = [math.atan2(c.y - root.y, c.x - root.x) % (2 * math.pi) for c in children]
        assert angles == pytest.approx([0, math.pi / 2, math.pi, 3 * math.pi / 2], abs=1e-9)


class TestOtherLayouts:
    def test_tree_centres_children_under_root(self):
        store, root, children = star(3)
        apply_layout(store, "tree")
        assert [c.x for c in children] == [root.x - 120, root.x, root.x + 120]
        assert {c.y for c in children} == {root.y + 100}

    def test_tree_places_grandchildren_one_row_lower(self):
        store, root, (a,) = star(1)
        g1 = store.add_child(a.id)
        g2 = store.add_child(a.id)
        apply_layout(store, "tree")
        assert g1.y == g2.y == root.y + 200
        assert (g1.x + g2.x) / 2 == pytest.approx(a.x)

    def test_fishbone_alternates_sides(self):
        store, root, (a, b, c) = star(3)
        apply_layout(store, "fishbone")
        assert (a.x, a.y) == (root.x + 150, root.y + 80)
        assert (b.x, b.y) == (root.x + 150, root.y - 80)
        assert (c.x, c.y) == (root.x + 200, root.y + 120)

    def test_timeline_runs_right(self):
        store, root, children = star(3)
        apply_layout(store, "timeline")
        assert [(c.x, c.y) for c in children] == [
            (root.x + 200, root.y), (root.x + 400, root.y), (root.x + 600, root.y)]

    def test_org_uses_one_row(self):
        store, root, children = star(3)
        apply_layout(store, "org")
        assert [c.x for c in children] == [root.x - 150, root.x, root.x + 150]
        assert {c.y for c in children} == {root.y + 100}

    def test_unknown_name_falls_back_to_radial(self):
        store, root, (a, b) = star(2)
        apply_layout(store, "spiral")
        assert (a.x, a.y) == pytest.approx((root.x + 150, root.y))

    @pytest.mark.parametrize("name", LAYOUT_NAMES)
    def test_layouts_only_move_nodes(self, name):
        store, root, children = star(3)
        store.add_child(children[0].id)
        before = [(n.id, n.width, n.height, n.level, list(n.children)) for n in store]
        apply_layout(store, name)
        assert [(n.id, n.width, n.height, n.level, list(n.children)) for n in store] == before
        assert (root.x, root.y) == (600, 400)
        store.validate()

    def test_empty_collection_is_ignored(self):
        apply_layout([], "radial")


class TestSmartLayout:
    def _nodes(self, count, depth=1):
        nodes = [Node(id=i, level=min(i, depth)) for i in range(count)]
        return nodes

    def test_many_nodes_use_tree(self):
        assert choose_smart_layout(self._nodes(21)) == "tree"

    def test_deep_maps_use_org(self):
        assert choose_smart_layout(self._nodes(10, depth=4)) == "org"

    def test_small_maps_use_fishbone(self):
        assert choose_smart_layout(self._nodes(7)) == "fishbone"

    def test_medium_maps_use_radial(self):
        assert choose_smart_layout(self._nodes(12, depth=3)) == "radial"

    def test_spacing_fits_labels(self):
        node = Node(id=1, text="A rather long label", level=2)
        optimize_node_spacing([node])
        assert node.width == max(level_base_width(2), len(node.text) * 8 + 20)
        assert node.height == 34

    def test_apply_returns_choice(self):
        store, root, children = star(3)
        assert apply_smart_layout(store) == "fishbone"
        assert children[0].y == root.y + 80

    def test_apply_on_empty_map(self):
        assert apply_smart_layout([]) is None
