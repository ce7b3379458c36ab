"""The single owner of clipboard history state.

Every store, search and friction operation runs under one lock, so the
pieces underneath need no locking of their own. Captures arrive from the
watcher's timer; URL titles are fetched on a worker pool and written back
under the same lock.
"""

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Executor, ThreadPoolExecutor

from clipkeep.enrich import URLTitleFetcher
from clipkeep.friction import FrictionDetector
from clipkeep.history import HistoryStore
from clipkeep.models import CapturedContent, ClipboardEntry, ContentKind, SourceApp
from clipkeep.monitor import ClipboardWatcher
from clipkeep.search import SearchEngine

logger = logging.getLogger(__name__)


class ClipboardService:
    def __init__(
        self,
        store: HistoryStore,
        watcher: ClipboardWatcher | None = None,
        friction: FrictionDetector | None = None,
        title_fetcher: URLTitleFetcher | None = None,
        source_app_provider: Callable[[], SourceApp | None] | None = None,
        executor: Executor | None = None,
        on_change: Callable[[], None] | None = None,
    ):
        self._lock = threading.RLock()
        self._store = store
        self._watcher = watcher
        self._friction = friction or FrictionDetector()
        self._title_fetcher = title_fetcher
        self._source_app_provider = source_app_provider
        self._executor = executor
        self._owns_executor = False
        self._on_change = on_change
        self._listeners: list[Callable[[CapturedContent], None]] = []
        self._pending_urls: set[str] = set()
        self._failed_urls: set[str] = set()
        if watcher is not None:
            watcher.on_capture = self._on_captured

    @property
    def store(self) -> HistoryStore:
        return self._store

    @property
    def friction(self) -> FrictionDetector:
        return self._friction

    @property
    def is_watching(self) -> bool:
        return self._watcher is not None and self._watcher.is_monitoring

    def start_watching(self) -> None:
        if self._watcher is None:
            raise RuntimeError("No clipboard watcher configured")
        self._watcher.start()

    def stop_watching(self) -> None:
        if self._watcher is not None:
            self._watcher.stop()

    def sync_change_count(self) -> None:
        """Ignore the current clipboard contents, e.g. after writing to it ourselves."""
        if self._watcher is not None:
            self._watcher.sync_change_count()

    def subscribe(self, callback: Callable[[CapturedContent], None]) -> Callable[[], None]:
        """Register a capture listener; returns a function that unregisters it."""
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def _on_captured(self, content: CapturedContent) -> None:
        source_app = None
        if self._source_app_provider is not None:
            try:
                source_app = self._source_app_provider()
            except Exception:
                logger.exception("Could not determine source application")
        self.handle_capture(content, source_app)

    def handle_capture(self, content: CapturedContent, source_app: SourceApp | None = None) -> ClipboardEntry | None:
        with self._lock:
            entry = self._store.add(content.payload, content.kind, source_app)
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(content)
            except Exception:
                logger.exception("Capture listener failed")

        if entry is None:
            return None
        if entry.kind == ContentKind.URL and entry.url_title is None:
            self._schedule_title_fetch(entry)
        self._changed()
        return entry

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    def _schedule_title_fetch(self, entry: ClipboardEntry) -> None:
        if self._title_fetcher is None:
            return
        url = entry.display_text
        with self._lock:
            if url in self._failed_urls or url in self._pending_urls:
                return
            self._pending_urls.add(url)
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="clipkeep-title")
                self._owns_executor = True
            executor = self._executor
        executor.submit(self._fetch_title, entry.id, url)

    def _fetch_title(self, entry_id: str, url: str) -> None:
        try:
            title = self._title_fetcher.fetch_title(url)
        except Exception:
            logger.exception("Title fetch failed for %s", url)
            title = None

        with self._lock:
            self._pending_urls.discard(url)
            if title is None:
                self._failed_urls.add(url)
                return
            self._store.set_url_title(entry_id, title)
        logger.debug("Fetched title for %s: %s", url, title)

    def items(self, limit: int | None = None) -> list[ClipboardEntry]:
        with self._lock:
            return self._store.fetch_all(limit)

    def search(self, query: str, kind: ContentKind | None = None, frequent_only: bool = False) -> list[ClipboardEntry]:
        with self._lock:
            entries = self._store.fetch_all()
            return SearchEngine.filter_view(entries, query, kind=kind, frequent_only=frequent_only)

    def get(self, entry_id: str) -> ClipboardEntry | None:
        with self._lock:
            return self._store.get(entry_id)

    def track_activation(self, entry_id: str) -> ClipboardEntry | None:
        with self._lock:
            entry = self._store.mark_used(entry_id)
            self._friction.track_click(entry_id)
        if entry is not None:
            self._changed()
        return entry

    @property
    def should_show_friction_guide(self) -> bool:
        with self._lock:
            return self._friction.should_show_guide

    def accept_friction_guide(self) -> None:
        with self._lock:
            self._friction.user_accepted_guide()

    def dismiss_friction_guide(self) -> None:
        with self._lock:
            self._friction.user_dismissed_guide()

    def delete(self, entry_id: str) -> None:
        with self._lock:
            self._store.delete(entry_id)
        self._changed()

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
        self._changed()

    def shutdown(self) -> None:
        self.stop_watching()
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
