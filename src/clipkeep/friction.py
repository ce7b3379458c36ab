"""Detects repeated-reuse patterns that suggest enabling direct paste.

The detector watches item activations. Clicking the same item three times,
or any five items, within thirty seconds counts as friction. A guide may then
be offered, subject to a cooldown after dismissal and a lifetime cap on how
often it is shown.
"""

import logging
import time
from collections import Counter
from collections.abc import Callable
from enum import Enum
from typing import Protocol

from clipkeep.config import (
    FRICTION_COOLDOWN,
    FRICTION_MAX_GUIDE_SHOWS,
    FRICTION_MULTI_ITEM_THRESHOLD,
    FRICTION_SAME_ITEM_THRESHOLD,
    FRICTION_WINDOW,
)

logger = logging.getLogger(__name__)

DISMISSED_AT_KEY = "friction_guide_dismissed_at"
SHOWN_COUNT_KEY = "friction_guide_shown_count"


class FrictionState(str, Enum):
    NORMAL = "normal"
    FRICTION_DETECTED = "friction_detected"
    GUIDING = "guiding"
    COOLDOWN = "cooldown"


class SettingsStore(Protocol):
    def get_setting(self, key: str, default: str | None = None) -> str | None: ...

    def set_setting(self, key: str, value: str | None) -> None: ...


class FrictionDetector:
    def __init__(
        self,
        direct_paste_enabled: Callable[[], bool] = lambda: False,
        state_store: SettingsStore | None = None,
        clock: Callable[[], float] = time.time,
        window: float = FRICTION_WINDOW,
        same_item_threshold: int = FRICTION_SAME_ITEM_THRESHOLD,
        multi_item_threshold: int = FRICTION_MULTI_ITEM_THRESHOLD,
        cooldown: float = FRICTION_COOLDOWN,
        max_guide_shows: int = FRICTION_MAX_GUIDE_SHOWS,
    ):
        self._direct_paste_enabled = direct_paste_enabled
        self._state_store = state_store
        self._clock = clock
        self._window = window
        self._same_item_threshold = same_item_threshold
        self._multi_item_threshold = multi_item_threshold
        self._cooldown = cooldown
        self._max_guide_shows = max_guide_shows
        self._clicks: list[tuple[str, float]] = []
        self._state = FrictionState.NORMAL
        self._dismissed_at = self._load_float(DISMISSED_AT_KEY)
        self._shown_count = int(self._load_float(SHOWN_COUNT_KEY) or 0)

    def _load_float(self, key: str) -> float | None:
        if self._state_store is None:
            return None
        try:
            raw = self._state_store.get_setting(key)
            return float(raw) if raw is not None else None
        except Exception:
            logger.exception("Failed to read friction setting %s", key)
            return None

    def _store(self, key: str, value: float | int | None) -> None:
        if self._state_store is None:
            return
        try:
            self._state_store.set_setting(key, None if value is None else str(value))
        except Exception:
            logger.exception("Failed to persist friction setting %s", key)

    @property
    def current_state(self) -> FrictionState:
        return self._state

    @property
    def shown_count(self) -> int:
        return self._shown_count

    @property
    def click_count(self) -> int:
        return len(self._clicks)

    def track_click(self, item_id: str) -> None:
        now = self._clock()
        horizon = self._window * 2
        self._clicks = [(i, t) for i, t in self._clicks if now - t < horizon]
        self._clicks.append((item_id, now))
        self._update_state(now)
        logger.debug("Tracked click, history count: %d", len(self._clicks))

    def _in_cooldown(self, now: float) -> bool:
        return self._dismissed_at is not None and now - self._dismissed_at <= self._cooldown

    def _update_state(self, now: float) -> None:
        if self._state == FrictionState.COOLDOWN and not self._in_cooldown(now):
            self._state = FrictionState.NORMAL
        if self._state not in (FrictionState.NORMAL, FrictionState.FRICTION_DETECTED):
            return
        if self._detect_friction(now):
            self._state = FrictionState.FRICTION_DETECTED
        else:
            self._state = FrictionState.NORMAL

    def _detect_friction(self, now: float) -> bool:
        recent = [item_id for item_id, t in self._clicks if now - t < self._window]
        per_item = Counter(recent)
        if per_item and max(per_item.values()) >= self._same_item_threshold:
            logger.debug("Same item clicked %d times - friction detected", max(per_item.values()))
            return True
        if len(recent) >= self._multi_item_threshold:
            logger.debug("%d clicks in time window - friction detected", len(recent))
            return True
        return False

    @property
    def should_show_guide(self) -> bool:
        if self._direct_paste_enabled():
            return False
        if self._in_cooldown(self._clock()):
            return False
        if self._shown_count >= self._max_guide_shows:
            return False
        return self._state == FrictionState.FRICTION_DETECTED

    def user_dismissed_guide(self) -> None:
        self._dismissed_at = self._clock()
        self._store(DISMISSED_AT_KEY, self._dismissed_at)
        self._state = FrictionState.COOLDOWN
        self._clicks.clear()
        logger.debug("Guide dismissed, entering cooldown")

    def user_accepted_guide(self) -> None:
        self._record_shown()
        logger.debug("Guide accepted")

    def mark_guide_shown(self) -> None:
        self._record_shown()

    def _record_shown(self) -> None:
        self._shown_count += 1
        self._store(SHOWN_COUNT_KEY, self._shown_count)
        self._state = FrictionState.GUIDING

    def reset_detection(self) -> None:
        self._clicks.clear()
        if self._state == FrictionState.FRICTION_DETECTED:
            self._state = FrictionState.NORMAL

    def reset_all_state(self) -> None:
        self._clicks.clear()
        self._state = FrictionState.NORMAL
        self._dismissed_at = None
        self._shown_count = 0
        self._store(DISMISSED_AT_KEY, None)
        self._store(SHOWN_COUNT_KEY, None)
