"""SQLite persistence layer for MindCanvas."""

import sqlite3
import json
import logging
import os
from pathlib import Path
from datetime import datetime
from typing import Optional, List, Any
from dataclasses import dataclass, asdict

logger = logging.getLogger(__name__)

MANUAL_KEY = "mindmap"
AUTOSAVE_KEY = "mindmap_autosave"
SETTINGS_KEY = "editor"
DATA_DIR_ENV = "MINDCANVAS_DATA_DIR"


def get_data_dir() -> Path:
    """Get the application data directory."""
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        data_dir = Path(override).expanduser()
    else:
        data_dir = Path.home() / ".local" / "share" / "mindcanvas"
    data_dir.mkdir(parents=True, exist_ok=True)
    (data_dir / "exports").mkdir(exist_ok=True)
    (data_dir / "backups").mkdir(exist_ok=True)
    return data_dir


def get_db_path() -> Path:
    """Get the database file path."""
    return get_data_dir() / "mindcanvas.db"


@dataclass
class EditorSettings:
    """Editor preferences persisted between sessions."""
    theme: str = "default"
    layout: str = "radial"
    node_style: str = "rounded"
    performance_mode: bool = False
    show_grid: bool = True
    show_minimap: bool = True
    autosave_interval: int = 10
    canvas_width: int = 1200
    canvas_height: int = 800

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, data: Optional[str]) -> "EditorSettings":
        if not data:
            return cls()
        try:
            d = json.loads(data)
            # Filter to only known fields to handle schema evolution
            known = {f.name for f in cls.__dataclass_fields__.values()}
            return cls(**{k: v for k, v in d.items() if k in known})
        except (json.JSONDecodeError, TypeError, AttributeError):
            return cls()


@dataclass
class StoredSnapshot:
    """A saved snapshot row."""
    key: str
    data: str
    modified_at: str = ""


class Database:
    """Key/value store for map snapshots and editor settings.

    Implements the persistence provider interface used by the editor
    session: ``get_snapshot(key)`` and ``set_snapshot(json, key)``.
    """

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path or get_db_path()
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode = WAL")
        return self._conn

    def _init_db(self):
        """Initialize the database schema."""
        cursor = self.conn.cursor()

        cursor.executescript("""
            -- Saved snapshots, one row per storage key
            CREATE TABLE IF NOT EXISTS snapshots (
                key TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                modified_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );

            -- App settings table
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value JSON
            );
        """)

        self.conn.commit()

    def close(self):
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    # ==================== Snapshot Operations ====================

    def get_snapshot(self, key: str = MANUAL_KEY) -> Optional[str]:
        """Get the serialized snapshot stored under key."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT data FROM snapshots WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row["data"] if row else None

    def set_snapshot(self, data: str, key: str = MANUAL_KEY):
        """Store a serialized snapshot under key, replacing any previous one."""
        now = datetime.now().isoformat()
        cursor = self.conn.cursor()
        cursor.execute(
            "INSERT OR REPLACE INTO snapshots (key, data, modified_at) VALUES (?, ?, ?)",
            (key, data, now)
        )
        self.conn.commit()
        logger.debug("stored snapshot %r (%d bytes)", key, len(data))

    def list_snapshots(self) -> List[StoredSnapshot]:
        """All stored snapshots, most recently modified first."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM snapshots ORDER BY modified_at DESC")
        return [
            StoredSnapshot(key=row["key"], data=row["data"], modified_at=row["modified_at"])
            for row in cursor.fetchall()
        ]

    # ==================== Settings Operations ====================

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get an application setting."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT value FROM settings WHERE key = ?", (key,))
        row = cursor.fetchone()

        if not row:
            return default

        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            return default

    def set_setting(self, key: str, value: Any):
        """Set an application setting."""
        cursor = self.conn.cursor()
        cursor.execute(
            "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
            (key, json.dumps(value))
        )
        self.conn.commit()

    def get_settings(self) -> EditorSettings:
        """Get the editor preferences."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT value FROM settings WHERE key = ?", (SETTINGS_KEY,))
        row = cursor.fetchone()
        return EditorSettings.from_json(row["value"] if row else None)

    def save_settings(self, settings: EditorSettings):
        cursor = self.conn.cursor()
        cursor.execute(
            "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
            (SETTINGS_KEY, settings.to_json())
        )
        self.conn.commit()

    # ==================== Backup Operations ====================

    def create_backup(self, key: str = MANUAL_KEY, backup_dir: Optional[Path] = None) -> Optional[Path]:
        """Write the snapshot stored under key to a timestamped JSON file."""
        data = self.get_snapshot(key)
        if data is None:
            return None

        backup_dir = backup_dir or get_data_dir() / "backups"
        backup_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        backup_file = backup_dir / f"{key}_{timestamp}.json"
        backup_file.write_text(data, encoding="utf-8")

        # Clean old backups (keep last N)
        backup_count = self.get_setting("backup_count", 10)
        backups = sorted(backup_dir.glob(f"{key}_*.json"), reverse=True)
        for old_backup in backups[backup_count:]:
            old_backup.unlink()
        return backup_file
