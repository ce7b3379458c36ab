from unittest.mock import MagicMock

import pytest

from clipkeep.friction import FrictionDetector, FrictionState
from clipkeep.history import HistoryStore
from clipkeep.models import CapturedContent, ContentKind, SourceApp, TextPayload
from clipkeep.service import ClipboardService


class ImmediateExecutor:
    """Runs submitted work inline."""

    def __init__(self):
        self.submitted = 0

    def submit(self, fn, *args, **kwargs):
        self.submitted += 1
        fn(*args, **kwargs)


def _text(text, kind=ContentKind.TEXT):
    return CapturedContent(TextPayload(text), kind)


def _url(url="https://example.com"):
    return _text(url, ContentKind.URL)


@pytest.fixture
def title_fetcher():
    fetcher = MagicMock()
    fetcher.fetch_title.return_value = "Example Domain"
    return fetcher


@pytest.fixture
def executor():
    return ImmediateExecutor()


@pytest.fixture
def on_change():
    return MagicMock()


@pytest.fixture
def service(store, title_fetcher, executor, manual_clock, on_change):
    return ClipboardService(
        store,
        friction=FrictionDetector(clock=manual_clock),
        title_fetcher=title_fetcher,
        executor=executor,
        on_change=on_change,
    )


class TestCapture:
    def test_capture_adds_entry(self, service, on_change):
        entry = service.handle_capture(_text("hello"))
        assert [e.id for e in service.items()] == [entry.id]
        on_change.assert_called_once()

    def test_capture_records_source_app(self, service):
        app = SourceApp("com.apple.Notes", "Notes")
        entry = service.handle_capture(_text("note"), app)
        assert entry.source_app == app

    def test_rejected_capture(self, clock, on_change):
        service = ClipboardService(HistoryStore(clock=clock, max_text_size=3), on_change=on_change)
        assert service.handle_capture(_text("too long")) is None
        on_change.assert_not_called()

    def test_watcher_wired_to_service(self, store):
        watcher = MagicMock()
        provider = MagicMock(return_value=SourceApp("com.apple.Safari", "Safari"))
        service = ClipboardService(store, watcher=watcher, source_app_provider=provider)

        watcher.on_capture(_text("from watcher"))
        (entry,) = service.items()
        assert entry.display_text == "from watcher"
        assert entry.source_app.name == "Safari"

    def test_source_app_failure_still_captures(self, store, caplog):
        watcher = MagicMock()
        provider = MagicMock(side_effect=RuntimeError("no workspace"))
        service = ClipboardService(store, watcher=watcher, source_app_provider=provider)

        watcher.on_capture(_text("still saved"))
        assert len(service.items()) == 1
        assert "Could not determine source application" in caplog.text


class TestListeners:
    def test_listener_receives_capture(self, service):
        received = []
        service.subscribe(received.append)
        content = _text("hello")
        service.handle_capture(content)
        assert received == [content]

    def test_unsubscribe(self, service):
        received = []
        unsubscribe = service.subscribe(received.append)
        unsubscribe()
        unsubscribe()
        service.handle_capture(_text("hello"))
        assert received == []

    def test_failing_listener_does_not_block(self, service):
        received = []
        service.subscribe(MagicMock(side_effect=ValueError("bad listener")))
        service.subscribe(received.append)
        service.handle_capture(_text("hello"))
        assert len(received) == 1
        assert len(service.items()) == 1


class TestTitleEnrichment:
    def test_url_title_fetched(self, service, title_fetcher):
        entry = service.handle_capture(_url())
        title_fetcher.fetch_title.assert_called_once_with("https://example.com")
        assert service.get(entry.id).url_title == "Example Domain"

    def test_title_not_searchable(self, service):
        service.handle_capture(_url())
        assert service.search("domain") == []

    def test_non_url_not_fetched(self, service, title_fetcher):
        service.handle_capture(_text("plain"))
        title_fetcher.fetch_title.assert_not_called()

    def test_existing_title_not_refetched(self, service, title_fetcher):
        service.handle_capture(_url())
        service.handle_capture(_url())
        assert title_fetcher.fetch_title.call_count == 1

    def test_failed_url_never_retried(self, service, title_fetcher, executor):
        title_fetcher.fetch_title.return_value = None
        entry = service.handle_capture(_url())
        service.handle_capture(_url())
        assert executor.submitted == 1
        assert service.get(entry.id).url_title is None

    def test_fetch_exception_treated_as_failure(self, service, title_fetcher, caplog):
        title_fetcher.fetch_title.side_effect = RuntimeError("boom")
        entry = service.handle_capture(_url())
        assert service.get(entry.id).url_title is None
        assert "Title fetch failed" in caplog.text

    def test_pending_fetch_not_duplicated(self, store, title_fetcher):
        executor = MagicMock()
        service = ClipboardService(store, title_fetcher=title_fetcher, executor=executor)
        service.handle_capture(_url())
        service.handle_capture(_url())
        assert executor.submit.call_count == 1

    def test_entry_evicted_before_title_arrives(self, store, title_fetcher):
        executor = MagicMock()
        service = ClipboardService(store, title_fetcher=title_fetcher, executor=executor)
        entry = service.handle_capture(_url())
        service.delete(entry.id)

        fn, entry_id, url = executor.submit.call_args.args
        fn(entry_id, url)
        assert service.get(entry.id) is None

    def test_no_fetcher_configured(self, store):
        service = ClipboardService(store)
        entry = service.handle_capture(_url())
        assert entry.url_title is None


class TestActivation:
    def test_track_activation_marks_used(self, service):
        entry = service.handle_capture(_text("reuse"))
        updated = service.track_activation(entry.id)
        assert updated.use_count == 1

    def test_repeated_activation_triggers_friction(self, service, manual_clock):
        entry = service.handle_capture(_text("reuse"))
        for _ in range(3):
            service.track_activation(entry.id)
            manual_clock.advance(1)
        assert service.friction.current_state == FrictionState.FRICTION_DETECTED
        assert service.should_show_friction_guide is True

    def test_dismiss_guide(self, service, manual_clock):
        entry = service.handle_capture(_text("reuse"))
        for _ in range(3):
            service.track_activation(entry.id)
        service.dismiss_friction_guide()
        for _ in range(3):
            service.track_activation(entry.id)
        assert service.should_show_friction_guide is False

    def test_accept_guide(self, service):
        entry = service.handle_capture(_text("reuse"))
        for _ in range(3):
            service.track_activation(entry.id)
        service.accept_friction_guide()
        assert service.friction.current_state == FrictionState.GUIDING

    def test_unknown_entry_still_reaches_friction(self, service, on_change):
        assert service.track_activation("missing") is None
        assert service.friction.click_count == 1
        on_change.assert_not_called()

    def test_unknown_entry_clicks_trigger_friction(self, service):
        for _ in range(3):
            service.track_activation("missing")
        assert service.friction.current_state == FrictionState.FRICTION_DETECTED

    def test_frequent_search(self, service):
        entry = service.handle_capture(_text("favourite"))
        service.handle_capture(_text("other"))
        for _ in range(3):
            service.track_activation(entry.id)
        assert [e.id for e in service.search("", frequent_only=True)] == [entry.id]


class TestMutations:
    def test_delete(self, service, on_change):
        entry = service.handle_capture(_text("gone"))
        service.delete(entry.id)
        assert service.items() == []
        assert on_change.call_count == 2

    def test_clear(self, service):
        service.handle_capture(_text("a"))
        service.handle_capture(_text("b"))
        service.clear()
        assert service.items() == []

    def test_search_by_kind(self, service):
        service.handle_capture(_text("plain"))
        service.handle_capture(_url())
        assert [e.kind for e in service.search("", kind=ContentKind.URL)] == [ContentKind.URL]


class TestWatching:
    def test_start_without_watcher(self, service):
        with pytest.raises(RuntimeError):
            service.start_watching()

    def test_start_stop_delegates(self, store):
        watcher = MagicMock()
        watcher.is_monitoring = True
        service = ClipboardService(store, watcher=watcher)
        service.start_watching()
        watcher.start.assert_called_once()
        assert service.is_watching is True
        service.stop_watching()
        watcher.stop.assert_called_once()

    def test_sync_change_count(self, store):
        watcher = MagicMock()
        service = ClipboardService(store, watcher=watcher)
        service.sync_change_count()
        watcher.sync_change_count.assert_called_once()

    def test_shutdown_stops_watcher(self, store):
        watcher = MagicMock()
        service = ClipboardService(store, watcher=watcher)
        service.shutdown()
        watcher.stop.assert_called_once()

    def test_shutdown_leaves_injected_executor(self, store, title_fetcher):
        executor = MagicMock()
        service = ClipboardService(store, title_fetcher=title_fetcher, executor=executor)
        service.shutdown()
        executor.shutdown.assert_not_called()
