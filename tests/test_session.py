"""Tests for the editor session commands and policies."""

import json
import math
import sqlite3

import cairo
import pytest

from mindcanvas.database import AUTOSAVE_KEY, MANUAL_KEY
from mindcanvas.model import Node, Snapshot
from mindcanvas.render import FrameStats
from mindcanvas.session import EditorSession
from mindcanvas.store import ROOT_TEXT
from mindcanvas.suggestions import KEYWORD_TEMPLATES
from mindcanvas.themes import SUGGESTION_COLORS, get_theme


def three_node_json(**extra):
    data = {
        "nodes": [
            {"id": 1, "text": "Root", "x": 600, "y": 400, "children": [2, 3], "parent": None, "level": 0},
            {"id": 2, "text": "Alpha", "x": 750, "y": 400, "children": [], "parent": 1, "level": 1},
            {"id": 3, "text": "Beta", "x": 450, "y": 400, "children": [], "parent": 1, "level": 1},
        ],
    }
    data.update(extra)
    return json.dumps(data)


class BrokenStorage:
    """Persistence provider whose database is gone."""

    def get_snapshot(self, key):
        raise sqlite3.OperationalError("unable to open database file")

    def set_snapshot(self, data, key):
        raise sqlite3.OperationalError("disk I/O error")


class TestStructure:
    """Structural commands re-layout, checkpoint and render."""

    def test_new_session_has_root_at_canvas_centre(self, session):
        root = session.store.root()
        assert root.text == ROOT_TEXT
        assert (root.x, root.y) == (600, 400)
        assert len(session.history) == 1

    def test_add_child_goes_under_root_without_selection(self, session):
        child = session.add_child()
        assert child.parent == session.store.root().id
        assert len(session.history) == 2
        # radial layout ran
        assert (child.x, child.y) == pytest.approx((750, 400))
        assert session.scheduler.pending

    def test_add_child_goes_under_selection(self, session):
        a = session.add_child(text="a")
        session.controller.select(a.id)
        b = session.add_child(text="b")
        assert b.parent == a.id
        assert b.level == 2

    def test_add_sibling_needs_selection(self, session):
        assert session.add_sibling() is None
        a = session.add_child()
        session.controller.select(a.id)
        sibling = session.add_sibling()
        assert sibling.parent == a.parent

    def test_sibling_of_root_is_ignored(self, session):
        session.controller.select(session.store.root().id)
        before = len(session.history)
        assert session.add_sibling() is None
        assert len(session.history) == before

    def test_delete_selected_subtree(self, session):
        a = session.add_child()
        session.controller.select(a.id)
        a1 = session.add_child()
        session.controller.select(a.id)

        assert session.delete_selected() == [a.id, a1.id]
        assert len(session.store) == 1
        assert session.selected is None
        session.store.validate()

    def test_root_is_never_deleted(self, session):
        session.controller.select(session.store.root().id)
        assert session.delete_selected() == []
        assert len(session.store) == 1

    def test_connect_recolours_moved_subtree(self, session):
        a = session.add_child(text="a")
        b = session.add_child(text="b")
        assert session.connect(a.id, b.id)
        assert b.color == get_theme("default").color_for_level(2)

    def test_copy_paste(self, session):
        a = session.add_child(text="a")
        session.controller.select(a.id)
        assert session.copy_selected()
        pasted = session.paste()
        assert pasted.text == "a (copy)"
        assert pasted.parent == a.id

    def test_paste_without_clipboard(self, session):
        session.controller.select(session.store.root().id)
        assert session.paste() is None
        assert len(session.store) == 1

    def test_suggestions_need_selection(self, session):
        assert session.generate_suggestions("expand") == []
        assert session.messages == ["Select a node first"]

    def test_suggestions_follow_keywords(self, session):
        root = session.store.root()
        session.edit_text(root.id, "Project launch")
        session.controller.select(root.id)

        created = session.generate_suggestions("organize")

        project_templates = KEYWORD_TEMPLATES[0][1]
        assert [n.text for n in created] == project_templates["organize"]
        assert [n.color for n in created] == SUGGESTION_COLORS[:4]
        assert session.messages[-1] == "Generated 4 suggestions"
        # Suggestions are laid out like any other structural change
        for node in created:
            assert math.hypot(node.x - root.x, node.y - root.y) == pytest.approx(150)

    def test_clear_all_resets_to_single_root(self, session):
        for _ in range(3):
            session.add_child()
        root = session.clear_all()
        assert list(session.store) == [root]
        assert session.can_undo


class TestContentAndStyle:
    def test_edit_text_is_undoable(self, session):
        a = session.add_child(text="before")
        assert session.edit_text(a.id, "after")
        session.undo()
        assert session.store.get(a.id).text == "before"

    def test_note_and_colour(self, session):
        a = session.add_child()
        assert session.set_note(a.id, "details")
        assert session.set_node_color(a.id, "#abcdef")
        assert session.store.get(a.id).note == "details"
        assert session.store.get(a.id).color == "#abcdef"
        assert not session.set_note(999, "x")

    def test_set_layout(self, session):
        a = session.add_child()
        before = len(session.history)
        assert session.set_layout("timeline")
        assert session.layout == "timeline"
        assert (a.x, a.y) == (800, 400)
        assert len(session.history) == before + 1
        assert not session.set_layout("spiral")

    def test_structural_changes_use_current_layout(self, session):
        session.set_layout("org")
        a = session.add_child()
        assert a.y == session.store.root().y + 100

    def test_smart_layout_notifies(self, session):
        session.add_child()
        assert session.apply_smart_layout() == "fishbone"
        assert session.layout == "fishbone"
        assert session.messages[-1] == "Applied smart layout: fishbone"

    def test_theme_recolours_by_level(self, session):
        a = session.add_child()
        assert session.set_theme("sunset")
        sunset = get_theme("sunset")
        assert session.store.root().color == sunset.primary
        assert a.color == sunset.secondary
        assert not session.set_theme("neon")

    def test_node_style(self, session):
        session.add_child()
        assert session.set_node_style("cloud")
        assert {n.style for n in session.store} == {"cloud"}
        assert not session.set_node_style("blob")

    def test_performance_mode_clears_particles(self, session):
        session.particles.burst(0, 0)
        assert session.toggle_performance_mode()
        assert not session.particles.alive
        assert session.messages[-1] == "Performance mode on"
        assert not session.toggle_performance_mode()
        assert session.messages[-1] == "Performance mode off"

    def test_grid_and_minimap_toggles(self, session):
        assert session.toggle_grid() is False
        assert session.toggle_minimap() is False
        scene = session.scene()
        assert not scene.show_grid
        assert not scene.show_minimap


class TestNavigation:
    def test_search_selects_and_centres(self, session):
        a = session.add_child(text="Budget")
        results = session.search("budget")
        assert results == [a]
        assert session.selected is a
        assert session.viewport.world_to_screen(a.x, a.y) == (600, 400)

    def test_search_without_hits(self, session):
        assert session.search("nothing") == []
        assert session.selected is None

    def test_navigate_between_relatives(self, session):
        root = session.store.root()
        a = session.add_child(text="a")
        b = session.add_child(text="b")

        assert session.navigate("down") is root
        assert session.navigate("down") is a
        assert session.navigate("right") is b
        assert session.navigate("right") is None
        assert session.navigate("left") is a
        assert session.navigate("up") is root
        assert session.navigate("up") is None

    def test_cycle_selection_wraps(self, session):
        root = session.store.root()
        a = session.add_child()
        assert session.cycle_selection() is root
        assert session.cycle_selection() is a
        assert session.cycle_selection() is root
        assert session.cycle_selection(-1) is a

    def test_button_zoom_keeps_centre(self, session):
        centre = session.viewport.screen_to_world(600, 400)
        session.zoom(1.2)
        assert session.viewport.scale == pytest.approx(1.2)
        assert session.viewport.screen_to_world(600, 400) == pytest.approx(centre)

    def test_fit_to_screen(self, session):
        for _ in range(12):
            session.add_child()
        session.set_layout("timeline")
        session.fit_to_screen()
        bounds = session.store.bounds()
        view = session.viewport.bounds()
        assert view.min_x <= bounds.min_x and bounds.max_x <= view.max_x
        assert session.viewport.scale < 1


class TestHistory:
    def test_undo_redo_restore_exact_snapshots(self, session):
        states = [session.snapshot().to_dict()["nodes"]]
        for i in range(4):
            session.add_child(text=f"n{i}")
            states.append(session.snapshot().to_dict()["nodes"])

        for _ in range(4):
            assert session.undo()
        assert session.snapshot().to_dict()["nodes"] == states[0]
        assert not session.undo()

        for _ in range(4):
            assert session.redo()
        assert session.snapshot().to_dict()["nodes"] == states[-1]
        assert not session.redo()

    def test_undo_clears_selection(self, session):
        a = session.add_child()
        session.controller.select(a.id)
        session.edit_text(a.id, "x")
        session.undo()
        assert session.selected is None

    def test_undo_restores_theme_and_style(self, session):
        session.add_child()
        session.set_theme("sunset")
        session.set_node_style("cloud")

        assert session.undo()
        assert session.node_style == "rounded"
        assert session.theme_name == "sunset"
        assert session.undo()
        assert session.theme_name == "default"
        assert session.store.theme == get_theme("default")

        # New nodes take the restored theme and style
        child = session.add_child()
        assert child.color == get_theme("default").color_for_level(1)
        assert child.style == "rounded"

    def test_redo_reapplies_layout(self, session):
        session.add_child()
        session.set_layout("tree")
        session.undo()
        assert session.layout == "radial"
        session.redo()
        assert session.layout == "tree"

    def test_changed_callback_fires_on_checkpoint(self, session):
        calls = []
        session.on_changed = lambda: calls.append(session.can_undo)
        session.add_child()
        session.undo()
        assert calls == [True, False]


class TestRendering:
    def test_mutations_between_frames_coalesce(self, session):
        redraws = []
        session.on_redraw = redraws.append
        session.flush_frames()
        redraws.clear()

        for _ in range(5):
            session.add_child()
        session.zoom(1.1)
        assert session.flush_frames() == 1
        assert redraws == [False]

    def test_draw_returns_stats(self, session):
        session.add_child()
        surface = cairo.ImageSurface(cairo.FORMAT_ARGB32, 1200, 800)
        stats = session.draw(cairo.Context(surface))
        assert stats == FrameStats(2, 1, False)
        assert session.last_stats == stats

    def test_live_particles_keep_animating(self, session):
        session.particles.burst(600, 400)
        session.flush_frames()
        surface = cairo.ImageSurface(cairo.FORMAT_ARGB32, 1200, 800)
        session.draw(cairo.Context(surface))
        assert session.scheduler.pending


class TestPersistence:
    def test_save_and_restore(self, session):
        session.add_child(text="kept")
        assert session.save()
        assert session.messages[-1] == "Saved"

        session.clear_all()
        assert session.restore_saved(MANUAL_KEY)
        assert [n.text for n in session.store] == [ROOT_TEXT, "kept"]

    def test_autosave_uses_its_own_key(self, session, db):
        session.add_child(text="draft")
        assert session.autosave()
        assert db.get_snapshot(MANUAL_KEY) is None
        stored = Snapshot.from_json(db.get_snapshot(AUTOSAVE_KEY))
        assert [n.text for n in stored.nodes] == [ROOT_TEXT, "draft"]

    def test_snapshot_carries_settings(self, session):
        session.set_theme("ocean")
        session.set_layout("tree")
        session.set_node_style("diamond")
        snapshot = session.snapshot()
        assert (snapshot.theme, snapshot.layout, snapshot.style) == ("ocean", "tree", "diamond")
        assert snapshot.timestamp

    def test_storage_failure_is_reported(self):
        session = EditorSession(storage=BrokenStorage())
        messages = []
        session.on_notify = messages.append
        assert not session.save()
        assert not session.autosave()
        assert messages[0].startswith("Save failed:")
        assert not session.restore_saved()
        assert messages[-1].startswith("Storage unavailable:")

    def test_no_storage(self, bare_session):
        assert not bare_session.save()
        assert not bare_session.restore_saved()

    def test_load_json(self, session):
        a = session.add_child()
        session.controller.select(a.id)

        assert session.load_json(three_node_json(theme="forest", layout="org", style="circle"))

        assert [n.text for n in session.store] == ["Root", "Alpha", "Beta"]
        assert (session.theme_name, session.layout, session.node_style) == ("forest", "org", "circle")
        assert session.selected is None
        assert session.messages[-1] == "Loaded 3 nodes"
        assert session.can_undo

    def test_load_rejects_malformed_json(self, session):
        session.add_child(text="kept")
        assert not session.load_json("{broken")
        assert session.messages[-1].startswith("Invalid file format")
        assert [n.text for n in session.store] == [ROOT_TEXT, "kept"]

    def test_load_rejects_broken_tree(self, session):
        bad = {"nodes": [Node(id=1).to_dict(), Node(id=2).to_dict()]}
        assert not session.load_json(json.dumps(bad))
        assert session.messages[-1].startswith("Invalid file format")
        assert len(session.store) == 1

    @pytest.mark.parametrize("field", ["fontSize", "level", "x", "width"])
    def test_load_rejects_infinite_numbers(self, session, field):
        data = json.loads(three_node_json())
        data["nodes"][1][field] = "INF"
        text = json.dumps(data).replace('"INF"', "1e400")

        assert not session.load_json(text)
        assert session.messages[-1].startswith("Invalid file format")
        assert len(session.store) == 1

    def test_load_unknown_settings_fall_back(self, session):
        assert session.load_json(three_node_json(theme="neon", layout="spiral"))
        assert session.theme_name == "default"
        assert session.layout == "radial"

    def test_load_missing_file(self, session, tmp_path):
        assert not session.load_file(tmp_path / "missing.json")
        assert session.messages[-1].startswith("Could not read")

    def test_load_file(self, session, tmp_path):
        path = tmp_path / "map.json"
        path.write_text(three_node_json(), encoding="utf-8")
        assert session.load_file(path)
        assert len(session.store) == 3


class TestExport:
    @pytest.mark.parametrize("fmt,prefix", [
        ("png", b"\x89PNG"),
        ("pdf", b"%PDF"),
        ("svg", b"<svg"),
        ("json", b"{"),
        ("txt", ROOT_TEXT.encode()),
    ])
    def test_formats(self, session, fmt, prefix):
        session.add_child()
        assert session.export(fmt).startswith(prefix)

    def test_export_to_writes_file(self, session, tmp_path):
        path = session.export_to("txt", tmp_path / "outline.txt", title="Plan")
        assert path.read_text(encoding="utf-8").startswith("Plan\n\n" + ROOT_TEXT)
        assert session.messages[-1] == "Exported outline.txt"
