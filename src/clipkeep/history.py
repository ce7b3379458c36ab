"""Bounded, hash-deduplicated clipboard history.

``HistoryStore`` keeps the live entries in memory (an insertion-ordered arena
keyed by id plus a content-hash index) and mirrors every mutation to an
optional persistence backend. The store is not thread-safe; callers serialize
access through a single owner (see ``clipkeep.service``).
"""

import logging
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from clipkeep.config import FREE_HISTORY_LIMIT, MAX_IMAGE_SIZE, MAX_TEXT_SIZE, PRO_HISTORY_LIMIT
from clipkeep.models import (
    ClipboardEntry,
    ContentKind,
    FileListPayload,
    ImagePayload,
    Payload,
    SourceApp,
    payload_kind_is_consistent,
)
from clipkeep.utils import hash_payload, payload_bytes, preview_for_payload

logger = logging.getLogger(__name__)

ENTRY_OVERHEAD_BYTES = 200


class Persistence(Protocol):
    def save_entry(self, entry: ClipboardEntry) -> None: ...

    def delete_entry(self, entry_id: str) -> None: ...

    def clear_all(self) -> None: ...

    def load_entries(self) -> list[ClipboardEntry]: ...


class HistoryStore:
    def __init__(
        self,
        persistence: Persistence | None = None,
        is_pro: Callable[[], bool] = lambda: False,
        free_limit: int = FREE_HISTORY_LIMIT,
        pro_limit: int = PRO_HISTORY_LIMIT,
        max_text_size: int = MAX_TEXT_SIZE,
        max_image_size: int = MAX_IMAGE_SIZE,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._persistence = persistence
        self._is_pro = is_pro
        self._free_limit = free_limit
        self._pro_limit = pro_limit
        self._max_text_size = max_text_size
        self._max_image_size = max_image_size
        self._clock = clock
        self._entries: dict[str, ClipboardEntry] = {}
        self._by_hash: dict[str, str] = {}
        self._seq = 0
        self._load()

    @property
    def effective_limit(self) -> int:
        return self._pro_limit if self._is_pro() else self._free_limit

    def _load(self) -> None:
        if self._persistence is None:
            return
        try:
            loaded = self._persistence.load_entries()
        except Exception:
            logger.exception("Failed to load history, starting empty")
            return

        # Oldest first so the arena keeps insertion order
        for entry in sorted(loaded, key=self._recency_key):
            if entry.content_hash in self._by_hash:
                continue
            self._entries[entry.id] = entry
            self._by_hash[entry.content_hash] = entry.id
            self._seq = max(self._seq, entry.seq)
        logger.info("Loaded %d history entries", len(self._entries))

    def _next_seq(self) -> int:
        self._seq += 1
        return self._seq

    @staticmethod
    def _recency_key(entry: ClipboardEntry) -> tuple[datetime, int]:
        return (entry.created_at, entry.seq)

    def _size_ceiling(self, payload: Payload) -> int:
        if isinstance(payload, ImagePayload):
            return self._max_image_size
        return self._max_text_size

    def _persist_save(self, entry: ClipboardEntry) -> None:
        if self._persistence is None:
            return
        try:
            self._persistence.save_entry(entry)
        except Exception:
            logger.exception("Failed to save entry %s", entry.id)

    def _persist_delete(self, entry_id: str) -> None:
        if self._persistence is None:
            return
        try:
            self._persistence.delete_entry(entry_id)
        except Exception:
            logger.exception("Failed to delete entry %s", entry_id)

    @staticmethod
    def _resolve_kind(payload: Payload, kind: ContentKind) -> ContentKind:
        if payload_kind_is_consistent(payload, kind):
            return kind
        if isinstance(payload, ImagePayload):
            return ContentKind.IMAGE
        if isinstance(payload, FileListPayload):
            return ContentKind.FILE
        return ContentKind.TEXT

    def add(
        self,
        payload: Payload,
        kind: ContentKind,
        source_app: SourceApp | None = None,
        limit: int | None = None,
    ) -> ClipboardEntry | None:
        """Insert new content or refresh the entry holding the same content.

        Returns a snapshot of the stored entry, or None when the payload is
        larger than the configured ceiling.
        """
        size = len(payload_bytes(payload))
        ceiling = self._size_ceiling(payload)
        if size > ceiling:
            logger.warning("Content too large (%d bytes, limit %d), skipping", size, ceiling)
            return None

        content_hash = hash_payload(payload)
        existing_id = self._by_hash.get(content_hash)
        if existing_id is not None:
            entry = self._entries[existing_id]
            entry.created_at = self._clock()
            entry.source_app = source_app
            entry.seq = self._next_seq()
        else:
            entry = ClipboardEntry(
                id=uuid.uuid4().hex,
                payload=payload,
                kind=self._resolve_kind(payload, kind),
                content_hash=content_hash,
                preview=preview_for_payload(payload),
                created_at=self._clock(),
                source_app=source_app,
                seq=self._next_seq(),
            )
            self._entries[entry.id] = entry
            self._by_hash[content_hash] = entry.id

        self._persist_save(entry)
        self.enforce_limit(limit)
        return entry.snapshot()

    def delete(self, entry_id: str) -> None:
        entry = self._entries.pop(entry_id, None)
        if entry is None:
            return
        self._by_hash.pop(entry.content_hash, None)
        self._persist_delete(entry_id)

    def clear(self) -> None:
        self._entries.clear()
        self._by_hash.clear()
        if self._persistence is None:
            return
        try:
            self._persistence.clear_all()
        except Exception:
            logger.exception("Failed to clear persisted history")

    def fetch_all(self, limit: int | None = None) -> list[ClipboardEntry]:
        """Entries newest first, truncated to ``limit`` or the effective limit."""
        limit = self._check_limit(limit)
        ordered = sorted(self._entries.values(), key=self._recency_key, reverse=True)
        return [e.snapshot() for e in ordered[:limit]]

    def enforce_limit(self, limit: int | None = None) -> int:
        """Evict the oldest entries until at most ``limit`` remain.

        Recency alone decides survival; equal timestamps fall back to the
        order in which entries were last touched.
        """
        limit = self._check_limit(limit)
        excess = len(self._entries) - limit
        if excess <= 0:
            return 0
        oldest = sorted(self._entries.values(), key=self._recency_key)[:excess]
        for entry in oldest:
            self.delete(entry.id)
        logger.debug("Evicted %d entries (limit %d)", len(oldest), limit)
        return len(oldest)

    def _check_limit(self, limit: int | None) -> int:
        if limit is None:
            return self.effective_limit
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")
        return limit

    def get(self, entry_id: str) -> ClipboardEntry | None:
        entry = self._entries.get(entry_id)
        return entry.snapshot() if entry else None

    def find_by_hash(self, content_hash: str) -> ClipboardEntry | None:
        entry_id = self._by_hash.get(content_hash)
        return self.get(entry_id) if entry_id else None

    def mark_used(self, entry_id: str) -> ClipboardEntry | None:
        """Record an explicit activation: bump the use count and move to the top."""
        entry = self._entries.get(entry_id)
        if entry is None:
            return None
        entry.use_count += 1
        entry.created_at = self._clock()
        entry.seq = self._next_seq()
        self._persist_save(entry)
        return entry.snapshot()

    def set_url_title(self, entry_id: str, title: str) -> bool:
        entry = self._entries.get(entry_id)
        if entry is None or entry.kind != ContentKind.URL:
            return False
        entry.url_title = title
        self._persist_save(entry)
        return True

    def count(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def estimated_size(self) -> int:
        return sum(
            e.byte_size + len(e.preview.encode("utf-8")) + ENTRY_OVERHEAD_BYTES
            for e in self._entries.values()
        )
