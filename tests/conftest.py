from datetime import datetime, timedelta

import pytest

from clipkeep.history import HistoryStore
from clipkeep.storage import StorageManager


class TickingClock:
    """Clock that moves forward by ``step`` every time it is read."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)):
        self.current = start or datetime(2026, 1, 1, 12, 0, 0)
        self.step = step

    def __call__(self) -> datetime:
        self.current += self.step
        return self.current


class ManualClock:
    """Epoch-seconds clock advanced explicitly by tests."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_png(width: int = 100, height: int = 50, extra: bytes = b"") -> bytes:
    """Minimal PNG header carrying the given dimensions."""
    png_header = b"\x89PNG\r\n\x1a\n"
    ihdr_chunk = b"\x00\x00\x00\rIHDR"
    return png_header + ihdr_chunk + width.to_bytes(4, "big") + height.to_bytes(4, "big") + b"\x00" * 100 + extra


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def manual_clock():
    return ManualClock()


@pytest.fixture
def storage(tmp_path):
    mgr = StorageManager(db_path=":memory:", image_dir=tmp_path / "images")
    yield mgr
    mgr.close()


@pytest.fixture
def store(clock):
    return HistoryStore(clock=clock, free_limit=9, pro_limit=100)


@pytest.fixture
def persistent_store(storage, clock):
    return HistoryStore(storage, clock=clock, free_limit=9, pro_limit=100)
