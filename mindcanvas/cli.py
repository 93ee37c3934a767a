"""Headless export helper CLI for MindCanvas.

Goal: turn saved maps into shareable files without opening the editor.

Usage:
  mindcanvas-export convert map.json --format svg --out map.svg
  mindcanvas-export saved --format png --out map.png
  mindcanvas-export validate map.json
  mindcanvas-export list

Only pycairo is needed; GTK is never imported.
"""

from __future__ import annotations

import argparse
import logging
import os
import sqlite3
import sys
from pathlib import Path

from mindcanvas.database import AUTOSAVE_KEY, MANUAL_KEY, Database, EditorSettings
from mindcanvas.export import EXPORT_FORMATS, OUTLINE_TITLE, default_filename
from mindcanvas.launcher import configure_logging
from mindcanvas.model import Snapshot, SnapshotError
from mindcanvas.session import EditorSession
from mindcanvas.store import NodeStore, check_tree

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_MALFORMED = 2


class _Quiet:
    """Collect session notifications instead of showing them."""

    def __init__(self):
        self.messages: list[str] = []

    def __call__(self, message: str) -> None:
        self.messages.append(message)


def _session_for(text: str, width: int, height: int) -> EditorSession:
    """Build a headless session holding the snapshot in ``text``.

    Raises SnapshotError if the text is not a valid map.
    """
    snapshot = Snapshot.from_json(text)
    check_tree(snapshot.nodes, check_levels=False)

    session = EditorSession(settings=EditorSettings(canvas_width=width, canvas_height=height))
    session.on_notify = _Quiet()
    if not session.load_json(text):
        raise SnapshotError(session.on_notify.messages[-1])
    session.show_minimap = False
    session.fit_to_screen()
    return session


def _write(session: EditorSession, fmt: str, out: Path | None, title: str | None) -> Path:
    out = out or Path(default_filename(fmt))
    out = out.expanduser()
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(session.export(fmt, title))
    return out


def _cmd_convert(args: argparse.Namespace) -> int:
    source = Path(args.input).expanduser()
    try:
        text = source.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        sys.stderr.write(f"Cannot read {source}: {exc}\n")
        return EXIT_ERROR

    try:
        session = _session_for(text, args.width, args.height)
    except SnapshotError as exc:
        sys.stderr.write(f"Invalid file format: {exc}\n")
        return EXIT_MALFORMED

    out = _write(session, args.format, Path(args.out) if args.out else None, args.title)
    print(f"Wrote {args.format}: {out.resolve()}")
    return EXIT_OK


def _cmd_saved(args: argparse.Namespace) -> int:
    key = AUTOSAVE_KEY if args.autosave else MANUAL_KEY
    try:
        db = Database(Path(args.db).expanduser() if args.db else None)
        try:
            text = db.get_snapshot(key)
        finally:
            db.close()
    except sqlite3.Error as exc:
        logger.error("storage unavailable: %s", exc)
        sys.stderr.write(f"Storage unavailable: {exc}\n")
        return EXIT_ERROR

    if text is None:
        sys.stderr.write(f"Nothing saved under '{key}'\n")
        return EXIT_ERROR

    try:
        session = _session_for(text, args.width, args.height)
    except SnapshotError as exc:
        sys.stderr.write(f"Stored map is invalid: {exc}\n")
        return EXIT_MALFORMED

    out = _write(session, args.format, Path(args.out) if args.out else None, args.title)
    print(f"Wrote {args.format}: {out.resolve()}")
    return EXIT_OK


def _cmd_validate(args: argparse.Namespace) -> int:
    source = Path(args.input).expanduser()
    # Stored levels may be stale; the store re-levels from the parent chain
    store = NodeStore()
    try:
        snapshot = Snapshot.from_json(source.read_text(encoding="utf-8"))
        store.restore(snapshot.nodes)
    except (OSError, UnicodeDecodeError) as exc:
        sys.stderr.write(f"Cannot read {source}: {exc}\n")
        return EXIT_ERROR
    except SnapshotError as exc:
        sys.stderr.write(f"Invalid file format: {exc}\n")
        return EXIT_MALFORMED

    print(f"OK: {len(store)} nodes, depth {store.max_depth()}, "
          f"theme={snapshot.theme}, layout={snapshot.layout}, style={snapshot.style}")
    return EXIT_OK


def _cmd_list(args: argparse.Namespace) -> int:
    try:
        db = Database(Path(args.db).expanduser() if args.db else None)
        try:
            stored = db.list_snapshots()
        finally:
            db.close()
    except sqlite3.Error as exc:
        logger.error("storage unavailable: %s", exc)
        sys.stderr.write(f"Storage unavailable: {exc}\n")
        return EXIT_ERROR

    if not stored:
        print("No saved maps")
        return EXIT_OK
    for row in stored:
        print(f"{row.key}\t{row.modified_at}\t{len(row.data)} bytes")
    return EXIT_OK


def _add_render_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--format", "-f", choices=EXPORT_FORMATS, default="png",
                        help="Output format (default: png)")
    parser.add_argument("--out", "-o", help="Output path (default: mindmap.<format>)")
    parser.add_argument("--width", type=int, default=1200, help="Canvas width in pixels")
    parser.add_argument("--height", type=int, default=800, help="Canvas height in pixels")
    parser.add_argument("--title", default=None,
                        help=f"Title for text and PDF output (e.g. '{OUTLINE_TITLE}')")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="mindcanvas-export")
    parser.add_argument("--log-level", default=os.environ.get("MINDCANVAS_LOG_LEVEL", "WARNING"),
                        help="Logging level (default: $MINDCANVAS_LOG_LEVEL or WARNING)")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_conv = sub.add_parser("convert", help="Export a map JSON file")
    p_conv.add_argument("input", help="Map JSON file")
    _add_render_options(p_conv)
    p_conv.set_defaults(func=_cmd_convert)

    p_saved = sub.add_parser("saved", help="Export the map saved in the editor")
    p_saved.add_argument("--db", help="Database path (default: the editor's data directory)")
    p_saved.add_argument("--autosave", action="store_true",
                         help="Use the autosaved map instead of the last manual save")
    _add_render_options(p_saved)
    p_saved.set_defaults(func=_cmd_saved)

    p_val = sub.add_parser("validate", help="Check that a map JSON file is well-formed")
    p_val.add_argument("input", help="Map JSON file")
    p_val.set_defaults(func=_cmd_validate)

    p_list = sub.add_parser("list", help="List the maps stored in the editor database")
    p_list.add_argument("--db", help="Database path (default: the editor's data directory)")
    p_list.set_defaults(func=_cmd_list)

    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
