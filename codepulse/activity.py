"""Process-wide input and focus state.

The host feeds this from its input-event hooks; recorders read it once per
tick to decide whether the second counts.
"""

import threading
import time
from typing import Callable


class ActivityMonitor:
    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._last_active_at = clock()
        self._focused_project: str | None = None

    def record_input(self, now: float | None = None) -> None:
        with self._lock:
            self._last_active_at = now if now is not None else self._clock()

    def set_focus(self, project: str) -> None:
        with self._lock:
            self._focused_project = project

    def clear_focus(self) -> None:
        with self._lock:
            self._focused_project = None

    @property
    def focused_project(self) -> str | None:
        with self._lock:
            return self._focused_project

    @property
    def last_active_at(self) -> float:
        with self._lock:
            return self._last_active_at

    def idle_seconds(self, now: float | None = None) -> float:
        now = now if now is not None else self._clock()
        with self._lock:
            return max(0.0, now - self._last_active_at)

    def is_idle(self, project: str, threshold: float, now: float | None = None) -> bool:
        """True when input stopped more than ``threshold`` seconds ago or
        ``project`` does not have focus."""
        now = now if now is not None else self._clock()
        with self._lock:
            idle_too_long = now - self._last_active_at > threshold
            return idle_too_long or self._focused_project != project


monitor = ActivityMonitor()
