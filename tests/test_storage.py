from datetime import datetime

from clipkeep.models import (
    ClipboardEntry,
    ContentKind,
    FileListPayload,
    ImagePayload,
    SourceApp,
    TextPayload,
)
from clipkeep.storage import StorageManager
from conftest import make_png


def _entry(entry_id="e1", text="hello", created_at=None, seq=1, **kwargs):
    return ClipboardEntry(
        id=entry_id,
        payload=kwargs.pop("payload", TextPayload(text)),
        kind=kwargs.pop("kind", ContentKind.TEXT),
        content_hash=kwargs.pop("content_hash", f"hash-{entry_id}"),
        preview=kwargs.pop("preview", text),
        created_at=created_at or datetime(2026, 1, 1, 12, 0, 0),
        seq=seq,
        **kwargs,
    )


class TestInit:
    def test_tables_created(self, storage):
        tables = {
            row[0]
            for row in storage._conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
        assert {"clipboard_entries", "settings"} <= tables

    def test_context_manager(self, tmp_path):
        with StorageManager(db_path=tmp_path / "test.db", image_dir=tmp_path / "images") as mgr:
            mgr.save_entry(_entry())
            assert mgr.count() == 1

    def test_file_database_survives_reopen(self, tmp_path):
        db = tmp_path / "test.db"
        with StorageManager(db_path=db, image_dir=tmp_path / "images") as mgr:
            mgr.save_entry(_entry())
        with StorageManager(db_path=db, image_dir=tmp_path / "images") as mgr:
            assert [e.id for e in mgr.load_entries()] == ["e1"]


class TestSaveAndLoad:
    def test_text_roundtrip(self, storage):
        storage.save_entry(
            _entry(
                text="https://example.com",
                kind=ContentKind.URL,
                use_count=2,
                source_app=SourceApp("com.apple.Safari", "Safari"),
                url_title="Example",
            )
        )
        (loaded,) = storage.load_entries()
        assert loaded.payload == TextPayload("https://example.com")
        assert loaded.kind == ContentKind.URL
        assert loaded.use_count == 2
        assert loaded.source_app == SourceApp("com.apple.Safari", "Safari")
        assert loaded.url_title == "Example"
        assert loaded.created_at == datetime(2026, 1, 1, 12, 0, 0)
        assert loaded.seq == 1

    def test_upsert_updates_mutable_fields(self, storage):
        storage.save_entry(_entry())
        storage.save_entry(_entry(created_at=datetime(2026, 2, 1), use_count=4, seq=9))
        assert storage.count() == 1
        (loaded,) = storage.load_entries()
        assert loaded.use_count == 4
        assert loaded.created_at == datetime(2026, 2, 1)
        assert loaded.seq == 9

    def test_load_orders_newest_first(self, storage):
        storage.save_entry(_entry("old", created_at=datetime(2026, 1, 1), seq=1))
        storage.save_entry(_entry("new", created_at=datetime(2026, 1, 2), seq=2))
        assert [e.id for e in storage.load_entries()] == ["new", "old"]

    def test_load_ties_broken_by_seq(self, storage):
        same = datetime(2026, 1, 1)
        storage.save_entry(_entry("first", created_at=same, seq=1))
        storage.save_entry(_entry("second", created_at=same, seq=2))
        assert [e.id for e in storage.load_entries()] == ["second", "first"]

    def test_file_list_roundtrip(self, storage):
        payload = FileListPayload(["/tmp/a.txt", "/tmp/b.txt"])
        storage.save_entry(_entry(payload=payload, kind=ContentKind.FILE, preview="2 files: a.txt, b.txt"))
        (loaded,) = storage.load_entries()
        assert loaded.payload == payload

    def test_image_written_to_disk(self, storage, tmp_path):
        data = make_png(40, 30)
        storage.save_entry(
            _entry(payload=ImagePayload(data, 40, 30), kind=ContentKind.IMAGE, content_hash="abcdef1234567890")
        )
        path = tmp_path / "images" / "abcdef123456.png"
        assert path.read_bytes() == data
        (loaded,) = storage.load_entries()
        assert loaded.payload == ImagePayload(data, 40, 30)

    def test_missing_image_skipped_on_load(self, storage):
        storage.save_entry(
            _entry(payload=ImagePayload(make_png(), 100, 50), kind=ContentKind.IMAGE, content_hash="deadbeef00001111")
        )
        storage.image_path_for("deadbeef00001111").unlink()
        assert storage.load_entries() == []


class TestDelete:
    def test_delete_entry(self, storage):
        storage.save_entry(_entry())
        storage.delete_entry("e1")
        assert storage.count() == 0

    def test_delete_removes_image_and_thumbnail(self, storage):
        storage.save_entry(
            _entry(payload=ImagePayload(make_png(), 100, 50), kind=ContentKind.IMAGE, content_hash="0123456789abcdef")
        )
        path = storage.image_path_for("0123456789abcdef")
        thumb = path.with_name(path.stem + "_thumb.png")
        thumb.write_bytes(b"thumb")

        storage.delete_entry("e1")
        assert not path.exists()
        assert not thumb.exists()

    def test_delete_missing_is_noop(self, storage):
        storage.delete_entry("missing")
        assert storage.count() == 0

    def test_clear_all(self, storage):
        storage.save_entry(_entry("a"))
        storage.save_entry(
            _entry("b", payload=ImagePayload(make_png(), 100, 50), kind=ContentKind.IMAGE, content_hash="ffffeeeeddddcccc")
        )
        storage.clear_all()
        assert storage.count() == 0
        assert not storage.image_path_for("ffffeeeeddddcccc").exists()


class TestSettings:
    def test_default_when_missing(self, storage):
        assert storage.get_setting("missing") is None
        assert storage.get_setting("missing", "fallback") == "fallback"

    def test_set_and_overwrite(self, storage):
        storage.set_setting("key", "one")
        storage.set_setting("key", "two")
        assert storage.get_setting("key") == "two"

    def test_none_deletes(self, storage):
        storage.set_setting("key", "value")
        storage.set_setting("key", None)
        assert storage.get_setting("key") is None
