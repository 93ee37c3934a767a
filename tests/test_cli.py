"""Tests for the headless export CLI."""

import json

import pytest

from mindcanvas.cli import EXIT_ERROR, EXIT_MALFORMED, EXIT_OK, main
from mindcanvas.database import AUTOSAVE_KEY, MANUAL_KEY, Database

MAP = {
    "nodes": [
        {"id": 1, "text": "Root", "x": 600, "y": 400, "children": [2, 3], "parent": None, "level": 0},
        {"id": 2, "text": "Alpha", "x": 750, "y": 400, "children": [], "parent": 1, "level": 1},
        {"id": 3, "text": "Beta", "x": 450, "y": 400, "children": [], "parent": 1, "level": 1},
    ],
    "theme": "forest",
}


@pytest.fixture
def map_file(tmp_path):
    path = tmp_path / "map.json"
    path.write_text(json.dumps(MAP), encoding="utf-8")
    return path


class TestConvert:
    def test_svg(self, map_file, tmp_path, capsys):
        out = tmp_path / "out" / "map.svg"
        assert main(["convert", str(map_file), "--format", "svg", "--out", str(out)]) == EXIT_OK
        assert out.read_text(encoding="utf-8").startswith("<svg")
        assert "Wrote svg" in capsys.readouterr().out

    def test_png_with_size(self, map_file, tmp_path):
        out = tmp_path / "map.png"
        code = main(["convert", str(map_file), "-f", "png", "-o", str(out),
                     "--width", "300", "--height", "200"])
        assert code == EXIT_OK
        assert out.read_bytes().startswith(b"\x89PNG")

    def test_text_title(self, map_file, tmp_path):
        out = tmp_path / "map.txt"
        main(["convert", str(map_file), "-f", "txt", "-o", str(out), "--title", "Outline"])
        assert out.read_text(encoding="utf-8").split("\n")[:3] == ["Outline", "", "Root"]

    def test_malformed_input(self, tmp_path, capsys):
        bad = tmp_path / "bad.json"
        bad.write_text('{"nodes": "nope"}', encoding="utf-8")
        assert main(["convert", str(bad), "-o", str(tmp_path / "x.png")]) == EXIT_MALFORMED
        assert "Invalid file format" in capsys.readouterr().err

    def test_broken_tree(self, tmp_path):
        data = json.loads(json.dumps(MAP))
        data["nodes"][1]["parent"] = 3
        bad = tmp_path / "tree.json"
        bad.write_text(json.dumps(data), encoding="utf-8")
        assert main(["convert", str(bad), "-o", str(tmp_path / "x.png")]) == EXIT_MALFORMED

    def test_infinite_number_is_malformed(self, tmp_path, capsys):
        bad = tmp_path / "inf.json"
        bad.write_text(json.dumps(MAP).replace('"x": 750', '"x": 1e400'), encoding="utf-8")
        assert main(["convert", str(bad), "-o", str(tmp_path / "x.png")]) == EXIT_MALFORMED
        assert main(["validate", str(bad)]) == EXIT_MALFORMED
        assert "Invalid file format" in capsys.readouterr().err

    def test_missing_file(self, tmp_path):
        assert main(["convert", str(tmp_path / "missing.json")]) == EXIT_ERROR


class TestValidate:
    def test_ok(self, map_file, capsys):
        assert main(["validate", str(map_file)]) == EXIT_OK
        out = capsys.readouterr().out
        assert out.startswith("OK: 3 nodes, depth 1")
        assert "theme=forest" in out

    def test_depth_ignores_stale_levels(self, tmp_path, capsys):
        data = json.loads(json.dumps(MAP))
        for node in data["nodes"]:
            node["level"] = 7
        path = tmp_path / "stale.json"
        path.write_text(json.dumps(data), encoding="utf-8")

        assert main(["validate", str(path)]) == EXIT_OK
        assert capsys.readouterr().out.startswith("OK: 3 nodes, depth 1,")

    def test_not_json(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("not json", encoding="utf-8")
        assert main(["validate", str(bad)]) == EXIT_MALFORMED


class TestSaved:
    def test_exports_stored_map(self, tmp_path):
        db_path = tmp_path / "editor.db"
        db = Database(db_path)
        db.set_snapshot(json.dumps(MAP), MANUAL_KEY)
        db.close()

        out = tmp_path / "saved.svg"
        assert main(["saved", "--db", str(db_path), "-f", "svg", "-o", str(out)]) == EXIT_OK
        assert "Alpha" in out.read_text(encoding="utf-8")

    def test_autosave_flag_reads_other_key(self, tmp_path):
        db_path = tmp_path / "editor.db"
        db = Database(db_path)
        db.set_snapshot(json.dumps(MAP), AUTOSAVE_KEY)
        db.close()

        out = tmp_path / "auto.json"
        assert main(["saved", "--db", str(db_path), "-o", str(out)]) == EXIT_ERROR
        assert main(["saved", "--db", str(db_path), "--autosave", "-f", "json", "-o", str(out)]) == EXIT_OK
        assert json.loads(out.read_text(encoding="utf-8"))["theme"] == "forest"

    def test_nothing_saved(self, tmp_path, capsys):
        assert main(["saved", "--db", str(tmp_path / "empty.db")]) == EXIT_ERROR
        assert "Nothing saved" in capsys.readouterr().err


class TestList:
    def test_lists_stored_keys(self, tmp_path, capsys):
        db_path = tmp_path / "editor.db"
        db = Database(db_path)
        db.set_snapshot(json.dumps(MAP), MANUAL_KEY)
        db.set_snapshot("{}", AUTOSAVE_KEY)
        db.close()

        assert main(["list", "--db", str(db_path)]) == EXIT_OK
        lines = capsys.readouterr().out.splitlines()
        assert sorted(line.split("\t")[0] for line in lines) == [MANUAL_KEY, AUTOSAVE_KEY]
        assert any(line.endswith("2 bytes") for line in lines)

    def test_empty_database(self, tmp_path, capsys):
        assert main(["list", "--db", str(tmp_path / "empty.db")]) == EXIT_OK
        assert capsys.readouterr().out.strip() == "No saved maps"
