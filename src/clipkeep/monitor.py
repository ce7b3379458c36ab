import logging
from collections.abc import Callable

from clipkeep.classifier import classify
from clipkeep.config import MAX_IMAGE_SIZE, MIN_IMAGE_DIMENSION, POLL_INTERVAL
from clipkeep.models import CapturedContent, ContentKind, FileListPayload, ImagePayload, TextPayload
from clipkeep.pasteboard import TYPE_FILENAMES, TYPE_PNG, TYPE_STRING, TYPE_TIFF, TYPE_URL
from clipkeep.utils import convert_to_png, get_image_dimensions

logger = logging.getLogger(__name__)


def rumps_timer(callback: Callable, interval: float):
    """Default timer factory backed by rumps.Timer."""
    import rumps

    return rumps.Timer(callback, interval)


class ClipboardWatcher:
    """Polls the pasteboard change count and emits one capture per change.

    Only the highest-priority representation present (files > image > url >
    string) is read; if it is rejected the change is skipped.
    """

    def __init__(
        self,
        pasteboard,
        on_capture: Callable[[CapturedContent], None] | None = None,
        timer_factory: Callable = rumps_timer,
        interval: float = POLL_INTERVAL,
        max_image_size: int = MAX_IMAGE_SIZE,
        min_image_dimension: int = MIN_IMAGE_DIMENSION,
    ):
        self._pasteboard = pasteboard
        self.on_capture = on_capture
        self._timer_factory = timer_factory
        self._interval = interval
        self._max_image_size = max_image_size
        self._min_image_dimension = min_image_dimension
        self._timer = None
        self._monitoring = False
        self._last_change_count = self._pasteboard.change_count()

    @property
    def is_monitoring(self) -> bool:
        return self._monitoring

    def start(self) -> None:
        """Begin polling from the current change count."""
        if self._monitoring:
            return
        self._last_change_count = self._pasteboard.change_count()
        self._timer = self._timer_factory(self._tick, self._interval)
        self._monitoring = True
        self._timer.start()
        logger.info("Clipboard monitoring started (interval %.2fs)", self._interval)

    def stop(self) -> None:
        """Stop polling. Safe to call when already idle."""
        if not self._monitoring:
            return
        # Cleared before stopping the timer so a tick already dispatched is a no-op
        self._monitoring = False
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.stop()
        logger.info("Clipboard monitoring stopped")

    def sync_change_count(self) -> None:
        """Adopt the current change count so the app's own writes are not captured."""
        self._last_change_count = self._pasteboard.change_count()

    def _tick(self, _sender=None) -> None:
        if not self._monitoring:
            return
        self.check_clipboard()

    def check_clipboard(self) -> CapturedContent | None:
        """Run one poll and return the captured content, if any."""
        try:
            current_count = self._pasteboard.change_count()
        except Exception:
            logger.exception("Error reading pasteboard change count")
            return None
        if current_count == self._last_change_count:
            return None
        self._last_change_count = current_count

        try:
            content = self._read_clipboard()
        except Exception:
            logger.exception("Error reading clipboard")
            return None
        if content is None:
            return None

        if self.on_capture:
            try:
                self.on_capture(content)
            except Exception:
                logger.exception("Error handling captured %s content", content.kind.value)
        return content

    def _read_clipboard(self) -> CapturedContent | None:
        """Read the highest-priority representation present, or None if it is rejected."""
        types = self._pasteboard.types()
        if not types:
            return None

        if TYPE_FILENAMES in types:
            return self._read_files()
        for img_type in (TYPE_PNG, TYPE_TIFF):
            if img_type in types:
                return self._read_image(img_type)
        for text_type in (TYPE_URL, TYPE_STRING):
            if text_type in types:
                return self._read_text(text_type)
        return None

    def _read_files(self) -> CapturedContent | None:
        """Capture the copied file paths."""
        paths = self._pasteboard.read_file_paths()
        if not paths:
            return None
        return CapturedContent(FileListPayload(paths), ContentKind.FILE)

    def _read_image(self, img_type: str) -> CapturedContent | None:
        """Capture an image as PNG, rejecting oversized, unreadable or tiny ones."""
        data = self._pasteboard.read_data(img_type)
        if data is None:
            return None
        if len(data) > self._max_image_size:
            logger.warning("Image too large (%d bytes), skipping", len(data))
            return None

        png_bytes = convert_to_png(data)
        if png_bytes is None:
            logger.warning("Could not convert %s image to PNG, skipping", img_type)
            return None

        width, height = get_image_dimensions(png_bytes)
        if width < self._min_image_dimension or height < self._min_image_dimension:
            logger.info("Ignoring %dx%d image below %dpx", width, height, self._min_image_dimension)
            return None
        return CapturedContent(ImagePayload(png_bytes, width, height), ContentKind.IMAGE)

    def _read_text(self, text_type: str) -> CapturedContent | None:
        """Capture trimmed, classified text."""
        text = self._pasteboard.read_string(text_type)
        if not text:
            return None
        trimmed = text.strip()
        if not trimmed:
            return None
        return CapturedContent(TextPayload(trimmed), classify(trimmed))
