import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path

from clipkeep.config import DB_PATH, IMAGE_DIR
from clipkeep.models import (
    ClipboardEntry,
    ContentKind,
    FileListPayload,
    ImagePayload,
    SourceApp,
    TextPayload,
)

logger = logging.getLogger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS clipboard_entries (
    id               TEXT PRIMARY KEY,
    kind             TEXT NOT NULL,
    text_content     TEXT,
    image_path       TEXT,
    image_width      INTEGER NOT NULL DEFAULT 0,
    image_height     INTEGER NOT NULL DEFAULT 0,
    file_paths       TEXT,
    preview          TEXT NOT NULL,
    content_hash     TEXT NOT NULL UNIQUE,
    byte_size        INTEGER NOT NULL DEFAULT 0,
    created_at       TEXT NOT NULL,
    use_count        INTEGER NOT NULL DEFAULT 0,
    source_bundle_id TEXT,
    source_app_name  TEXT,
    url_title        TEXT,
    seq              INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_created_at ON clipboard_entries(created_at DESC);
CREATE INDEX IF NOT EXISTS idx_kind ON clipboard_entries(kind);

CREATE TABLE IF NOT EXISTS settings (
    key   TEXT PRIMARY KEY,
    value TEXT
);
"""


class StorageManager:
    """SQLite persistence for history entries and small settings."""

    def __init__(self, db_path: str | Path | None = None, image_dir: str | Path | None = None):
        self._db_path = str(db_path) if db_path else str(DB_PATH)
        self._image_dir = Path(image_dir) if image_dir else IMAGE_DIR
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self.init_db()

    def init_db(self) -> None:
        self._conn.executescript(SCHEMA)
        self._conn.commit()

    @staticmethod
    def _delete_image(image_path: str | None) -> None:
        if not image_path:
            return
        path = Path(image_path)
        for p in (path, path.with_name(path.stem + "_thumb.png")):
            if p.exists():
                p.unlink()

    def image_path_for(self, content_hash: str) -> Path:
        return self._image_dir / (content_hash[:12] + ".png")

    def _save_image(self, payload: ImagePayload, content_hash: str) -> Path:
        path = self.image_path_for(content_hash)
        if not path.exists():
            self._image_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(payload.data)
        return path

    def save_entry(self, entry: ClipboardEntry) -> None:
        """Insert the entry, or update every mutable column if its id exists."""
        text_content = None
        image_path = None
        file_paths = None
        width = height = 0
        if isinstance(entry.payload, ImagePayload):
            image_path = str(self._save_image(entry.payload, entry.content_hash))
            width, height = entry.payload.width, entry.payload.height
        elif isinstance(entry.payload, FileListPayload):
            file_paths = json.dumps(list(entry.payload.paths))
            text_content = entry.display_text
        else:
            text_content = entry.payload.text

        source = entry.source_app
        self._conn.execute(
            """INSERT INTO clipboard_entries
               (id, kind, text_content, image_path, image_width, image_height, file_paths, preview,
                content_hash, byte_size, created_at, use_count, source_bundle_id, source_app_name, url_title, seq)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   kind = excluded.kind,
                   created_at = excluded.created_at,
                   use_count = excluded.use_count,
                   source_bundle_id = excluded.source_bundle_id,
                   source_app_name = excluded.source_app_name,
                   url_title = excluded.url_title,
                   seq = excluded.seq""",
            (
                entry.id,
                entry.kind.value,
                text_content,
                image_path,
                width,
                height,
                file_paths,
                entry.preview,
                entry.content_hash,
                entry.byte_size,
                entry.created_at.isoformat(),
                entry.use_count,
                source.bundle_id if source else None,
                source.name if source else None,
                entry.url_title,
                entry.seq,
            ),
        )
        self._conn.commit()

    def delete_entry(self, entry_id: str) -> None:
        row = self._conn.execute(
            "SELECT image_path FROM clipboard_entries WHERE id = ?", (entry_id,)
        ).fetchone()
        if row:
            self._delete_image(row["image_path"])
        self._conn.execute("DELETE FROM clipboard_entries WHERE id = ?", (entry_id,))
        self._conn.commit()

    def clear_all(self) -> None:
        rows = self._conn.execute(
            "SELECT image_path FROM clipboard_entries WHERE image_path IS NOT NULL"
        ).fetchall()
        for row in rows:
            self._delete_image(row["image_path"])
        self._conn.execute("DELETE FROM clipboard_entries")
        self._conn.commit()

    def load_entries(self) -> list[ClipboardEntry]:
        rows = self._conn.execute(
            "SELECT * FROM clipboard_entries ORDER BY created_at DESC, seq DESC"
        ).fetchall()
        entries = []
        for row in rows:
            entry = self._row_to_entry(row)
            if entry is not None:
                entries.append(entry)
        return entries

    def count(self) -> int:
        row = self._conn.execute("SELECT COUNT(*) as cnt FROM clipboard_entries").fetchone()
        return row["cnt"]

    def get_setting(self, key: str, default: str | None = None) -> str | None:
        row = self._conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else default

    def set_setting(self, key: str, value: str | None) -> None:
        if value is None:
            self._conn.execute("DELETE FROM settings WHERE key = ?", (key,))
        else:
            self._conn.execute(
                "INSERT INTO settings (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def _row_to_entry(self, row: sqlite3.Row) -> ClipboardEntry | None:
        kind = ContentKind(row["kind"])
        if row["image_path"]:
            path = Path(row["image_path"])
            if not path.exists():
                logger.warning("Image file missing for entry %s, skipping", row["id"])
                return None
            payload = ImagePayload(path.read_bytes(), row["image_width"], row["image_height"])
        elif row["file_paths"]:
            payload = FileListPayload(json.loads(row["file_paths"]))
        else:
            payload = TextPayload(row["text_content"] or "")

        source_app = None
        if row["source_bundle_id"] or row["source_app_name"]:
            source_app = SourceApp(row["source_bundle_id"], row["source_app_name"])

        return ClipboardEntry(
            id=row["id"],
            payload=payload,
            kind=kind,
            content_hash=row["content_hash"],
            preview=row["preview"],
            created_at=datetime.fromisoformat(row["created_at"]),
            use_count=row["use_count"],
            source_app=source_app,
            url_title=row["url_title"],
            seq=row["seq"],
        )
