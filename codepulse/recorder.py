"""Per-project tick recorders that turn active seconds into coding sessions.

Each open project gets one ``SessionRecorder`` running on its own thread.
Once a second it asks the activity monitor whether the user is working on
that project; active seconds accumulate and are written out as one session
every ``FLUSH_GRANULARITY_S`` active seconds.
"""

import logging
import threading
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable

from . import store
from .activity import ActivityMonitor, monitor as default_monitor
from .config import FLUSH_GRANULARITY_S, IDLE_THRESHOLD_S, SAVE_SESSION_S, SAVE_THROTTLE_S
from .sessions import Session, SessionType, StorageError, now_local

logger = logging.getLogger(__name__)

AppendFn = Callable[[Session], Session]


class RecorderState(str, Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"


def relative_resource(path: str | None, base_path: str | None = None) -> str | None:
    """Strip ``base_path`` from ``path`` when the file lives under it."""
    if not path:
        return None
    if base_path:
        base = base_path.rstrip("/\\")
        if base and path[:len(base) + 1] in (base + "/", base + "\\"):
            return path[len(base) + 1:]
    return path


class SessionRecorder:
    """Idle-aware accumulator for one project.

    ``tick()`` holds all the logic and can be driven directly; ``start()``
    only adds a background thread calling it every ``tick_interval`` seconds.
    The accumulator is only touched from that thread. ``current_resource``
    may be replaced from anywhere; whatever is current at flush time is
    recorded for the whole interval.
    """

    def __init__(
        self,
        project: str,
        monitor: ActivityMonitor | None = None,
        append: AppendFn = store.append_session,
        idle_threshold: int = IDLE_THRESHOLD_S,
        granularity: int = FLUSH_GRANULARITY_S,
        tick_interval: float = 1.0,
        clock: Callable[[], datetime] = now_local,
        resource: str | None = None,
    ) -> None:
        self.project = project
        self.monitor = monitor or default_monitor
        self.idle_threshold = idle_threshold
        self.granularity = granularity
        self.tick_interval = tick_interval
        self.current_resource = resource

        self.state = RecorderState.IDLE
        self.seconds_accumulated = 0
        self._flush_at = granularity
        self._append = append
        self._clock = clock

        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()

    # ── State machine ──

    def tick(self, now: datetime | None = None) -> Session | None:
        """Account one second. Returns the session written by this tick, if any."""
        if self._stop_event.is_set():
            return None
        now = now or self._clock()
        if self.monitor.is_idle(self.project, self.idle_threshold, now=now.timestamp()):
            if self.state is RecorderState.ACCUMULATING:
                logger.info("%s went idle with %ss pending", self.project, self.seconds_accumulated)
            self.state = RecorderState.IDLE
            logger.debug("Idle or unfocused - skipping increment for %s", self.project)
            return None

        self.state = RecorderState.ACCUMULATING
        self.seconds_accumulated += 1
        if self.seconds_accumulated >= self._flush_at:
            return self._flush(now)
        return None

    def _flush(self, now: datetime) -> Session | None:
        session = Session(
            project=self.project,
            start=now - timedelta(seconds=self.seconds_accumulated),
            end=now,
            type=SessionType.CODING,
            file=self.current_resource,
        )
        try:
            stored = self._append(session)
        except StorageError as e:
            # Keep the seconds; the next flush point carries them.
            self._flush_at += self.granularity
            logger.error("Could not save %ss for %s, retrying at %ss: %s",
                         self.seconds_accumulated, self.project, self._flush_at, e)
            return None
        logger.info("Added %ss coding time to project %r, file: %s",
                    self.seconds_accumulated, self.project, self.current_resource)
        self.seconds_accumulated = 0
        self._flush_at = self.granularity
        return stored

    # ── Ticker ──

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name=f"codepulse-recorder-{self.project}", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        """Stop ticking. Seconds below the flush point are dropped.

        A running ticker drops them itself on its way out, so the accumulator
        is only ever changed from one thread.
        """
        self._stop_event.set()
        thread = self._thread
        if thread is None or not thread.is_alive():
            self._thread = None
            self._discard()
            return
        if thread is threading.current_thread():
            return
        thread.join(timeout=2.0)
        if thread.is_alive():
            logger.warning("Recorder for %s is still writing; it stops once the write returns",
                           self.project)
            return
        self._thread = None

    def _discard(self) -> None:
        if self.seconds_accumulated:
            logger.info("Discarding %ss of unflushed time for %s",
                        self.seconds_accumulated, self.project)
        self.seconds_accumulated = 0
        self._flush_at = self.granularity
        self.state = RecorderState.IDLE

    def _run(self) -> None:
        while not self._stop_event.wait(timeout=self.tick_interval):
            try:
                self.tick()
            except Exception:
                logger.exception("Recorder tick failed for %s", self.project)
        self._discard()

    def to_dict(self) -> dict:
        return {
            "project": self.project,
            "state": self.state.value,
            "seconds_accumulated": self.seconds_accumulated,
            "resource": self.current_resource,
            "running": self.running,
        }


class RecorderRegistry:
    """Open projects by name, each owning one recorder."""

    def __init__(
        self,
        monitor: ActivityMonitor | None = None,
        append: AppendFn = store.append_session,
        clock: Callable[[], datetime] = now_local,
        autostart: bool = True,
    ) -> None:
        self.monitor = monitor or default_monitor
        self._append = append
        self._clock = clock
        self._autostart = autostart
        self._lock = threading.Lock()
        self._recorders: dict[str, SessionRecorder] = {}
        self._last_save: dict[tuple[str, str], float] = {}

    def register(self, project: str, resource: str | None = None) -> SessionRecorder:
        project = (project or "").strip()
        if not project:
            raise ValueError("project name is required")
        with self._lock:
            rec = self._recorders.get(project)
            if rec is None:
                rec = SessionRecorder(
                    project, monitor=self.monitor, append=self._append,
                    clock=self._clock, resource=resource,
                )
                self._recorders[project] = rec
                logger.info("Tracking project %r", project)
                if self._autostart:
                    rec.start()
            elif resource is not None:
                rec.current_resource = resource
        return rec

    def deregister(self, project: str) -> bool:
        with self._lock:
            rec = self._recorders.pop(project, None)
            for key in [k for k in self._last_save if k[0] == project]:
                del self._last_save[key]
        if rec is None:
            return False
        rec.stop()
        if self.monitor.focused_project == project:
            self.monitor.clear_focus()
        logger.info("Stopped tracking project %r", project)
        return True

    def get(self, project: str) -> SessionRecorder:
        with self._lock:
            return self._recorders[project]

    def projects(self) -> list[str]:
        with self._lock:
            return sorted(self._recorders)

    def report_focus(self, project: str | None, resource: str | None = None) -> None:
        """The editor of ``project`` gained focus with ``resource`` selected.

        ``project=None`` means no tracked window has focus.
        """
        if project is None:
            self.monitor.clear_focus()
            return
        rec = self.get(project)
        rec.current_resource = resource
        self.monitor.set_focus(project)

    def report_save(self, project: str, resource: str,
                    now: datetime | None = None) -> Session | None:
        """Record a short coding session for a file save, at most once per
        ``SAVE_THROTTLE_S`` per file and only while the project is active."""
        self.get(project)
        now = now or self._clock()
        key = (project, resource)
        with self._lock:
            last = self._last_save.get(key)
            if last is not None and now.timestamp() - last < SAVE_THROTTLE_S:
                return None
            self._last_save[key] = now.timestamp()
        if self.monitor.is_idle(project, IDLE_THRESHOLD_S, now=now.timestamp()):
            return None
        session = self._append(Session(
            project=project,
            start=now - timedelta(seconds=SAVE_SESSION_S),
            end=now,
            type=SessionType.CODING,
            file=resource,
        ))
        logger.info("Recorded file save: %s (%s)", resource, project)
        return session

    def stop_all(self) -> None:
        for project in self.projects():
            self.deregister(project)


registry = RecorderRegistry()
