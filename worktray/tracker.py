from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Callable

from .database import StorageError, WorkTrayDatabase
from .models import ScreenEvent, StatusColor, TrackingState, WorkDay
from .screen import ScreenEventSource, ScreenLockError, lock_screen
from .settings import Settings
from .status import StatusSnapshot, status_color, status_text
from .summary import DailySummary

logger = logging.getLogger(__name__)

TICK_INTERVAL_SECONDS = 60.0
DUPLICATE_EVENT_WINDOW_SECONDS = 2.0

StatusListener = Callable[[StatusSnapshot], None]


class Clock:
    """Wall-clock time plus a sleep that a stop event can cut short."""

    def now(self) -> datetime:
        return datetime.now().astimezone()

    def sleep(self, seconds: float, stop_event: threading.Event) -> bool:
        """Wait up to ``seconds``; returns True if ``stop_event`` was set."""
        return stop_event.wait(max(0.0, float(seconds)))


class WorkDayTracker:
    """Tracks today's work and break sessions.

    Inputs are screen lock/unlock events, a periodic tick and explicit user
    commands. Every mutation of tracking state runs under one re-entrant
    lock, so the tick loop, the screen-event loop and callers on other
    threads are serialized. Storage failures are logged and leave the
    in-memory state as it was.
    """

    def __init__(
        self,
        db: WorkTrayDatabase,
        settings: Settings,
        screen_events: ScreenEventSource | None = None,
        lock_screen_action: Callable[[], None] | None = None,
        clock: Clock | None = None,
        tick_interval_seconds: float = TICK_INTERVAL_SECONDS,
    ):
        self._db = db
        self._settings = settings
        self._screen_events = screen_events
        self._lock_screen = lock_screen_action or lock_screen
        self._clock = clock or Clock()
        self._tick_interval_seconds = max(1.0, float(tick_interval_seconds))

        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._timer_thread: threading.Thread | None = None
        self._screen_thread: threading.Thread | None = None
        self._listeners: list[StatusListener] = []
        self._started = False

        self._state = TrackingState.IDLE
        self._color = StatusColor.GRAY
        self._text = status_text(TrackingState.IDLE, 0)
        self._worked_seconds = 0.0
        self._remaining_seconds = 0.0
        self._break_count = 0
        self._total_break_seconds = 0.0
        self._progress = 0.0
        self._work_day: WorkDay | None = None
        self._summary: DailySummary | None = None
        self._last_event: ScreenEvent | None = None
        self._last_event_at: datetime | None = None

    # Observable state

    @property
    def state(self) -> TrackingState:
        with self._lock:
            return self._state

    @property
    def work_day(self) -> WorkDay | None:
        with self._lock:
            return self._work_day

    @property
    def worked_seconds(self) -> float:
        with self._lock:
            return self._worked_seconds

    def snapshot(self) -> StatusSnapshot:
        with self._lock:
            return StatusSnapshot(
                state=self._state,
                color=self._color,
                text=self._text,
                worked_seconds=self._worked_seconds,
                remaining_seconds=self._remaining_seconds,
                break_count=self._break_count,
                total_break_seconds=self._total_break_seconds,
                progress=self._progress,
                work_day=self._work_day,
                summary=self._summary,
            )

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    # Lifecycle

    @property
    def is_running(self) -> bool:
        return self._started

    def start(self) -> None:
        with self._lock:
            if self._started:
                return
            self._started = True
            self._stop_event.clear()
            self._ensure_today_locked()
            self._refresh_stats_locked()
            # Launching the app implies the user is present and working.
            if self._state is TrackingState.IDLE:
                self._start_work_locked()
        self._publish()

        self._timer_thread = threading.Thread(
            target=self._run_timer_loop,
            name="worktray-tick",
            daemon=True,
        )
        self._timer_thread.start()

        if self._screen_events is not None:
            self._screen_events.reopen()
            self._screen_thread = threading.Thread(
                target=self._run_screen_event_loop,
                name="worktray-screen-events",
                daemon=True,
            )
            self._screen_thread.start()

    def stop(self, timeout_seconds: float = 5.0) -> None:
        with self._lock:
            if not self._started:
                return
            self._started = False
            self._stop_event.set()
        if self._screen_events is not None:
            self._screen_events.close()

        current = threading.current_thread()
        for thread in (self._timer_thread, self._screen_thread):
            if thread is not None and thread is not current:
                thread.join(timeout=timeout_seconds)
        self._timer_thread = None
        self._screen_thread = None

    # Commands

    def start_work(self) -> None:
        with self._lock:
            self._start_work_locked()
        self._publish()

    def stop_work(self) -> None:
        with self._lock:
            self._stop_work_locked()
        self._publish()

    def toggle_work(self) -> None:
        with self._lock:
            if self._state in (TrackingState.IDLE, TrackingState.COMPLETED):
                self._start_work_locked()
            else:
                self._stop_work_locked()
        self._publish()

    def take_break(self) -> None:
        with self._lock:
            if self._state is not TrackingState.WORKING:
                return
        try:
            # The resulting lock event starts the break.
            self._lock_screen()
            return
        except ScreenLockError:
            logger.warning("Screen lock failed, starting break directly", exc_info=True)
        with self._lock:
            self._start_break_locked()
        self._publish()

    def update_target_hours(self, hours: float) -> None:
        with self._lock:
            work_day = self._work_day
            if work_day is None:
                return
            try:
                self._db.update_target_hours(work_day.id, hours)
                self._work_day = self._db.fetch_work_day_by_id(work_day.id) or work_day
            except StorageError:
                logger.exception("Failed to update target hours")
                return
            self._refresh_stats_locked()
        self._publish()

    def handle_screen_event(self, event: ScreenEvent) -> None:
        with self._lock:
            changed = self._handle_screen_event_locked(event)
        if changed:
            self._publish()

    def tick(self) -> None:
        with self._lock:
            self._tick_locked()
        self._publish()

    def refresh_stats(self) -> None:
        with self._lock:
            self._refresh_stats_locked()
        self._publish()

    # Transitions

    def _start_work_locked(self) -> None:
        work_day = self._work_day
        if work_day is None:
            return
        now = self._clock.now()
        try:
            self._db.end_active_break_session(work_day.id, now)
            self._db.start_work_session(work_day.id, now)
        except StorageError:
            logger.exception("Failed to start work")
            return
        self._set_state(TrackingState.WORKING)
        self._refresh_stats_locked()

    def _stop_work_locked(self) -> None:
        work_day = self._work_day
        if work_day is None:
            return
        now = self._clock.now()
        try:
            self._db.end_active_work_session(work_day.id, now)
            self._db.end_active_break_session(work_day.id, now)
        except StorageError:
            logger.exception("Failed to stop work")
            return
        self._set_state(TrackingState.IDLE)
        self._refresh_stats_locked()

    def _start_break_locked(self) -> None:
        work_day = self._work_day
        if work_day is None:
            return
        now = self._clock.now()
        try:
            self._db.end_active_work_session(work_day.id, now)
            self._db.start_break_session(work_day.id, now)
        except StorageError:
            logger.exception("Failed to start break")
            return
        self._set_state(TrackingState.ON_BREAK)
        self._refresh_stats_locked()

    def _handle_screen_event_locked(self, event: ScreenEvent) -> bool:
        now = self._clock.now()
        logger.debug("Screen event %s received in state %s", event.value, self._state.value)

        if (
            self._last_event is event
            and self._last_event_at is not None
            and (now - self._last_event_at).total_seconds() < DUPLICATE_EVENT_WINDOW_SECONDS
        ):
            logger.debug("Ignoring duplicate %s event", event.value)
            return False
        self._last_event = event
        self._last_event_at = now

        work_day = self._work_day
        if work_day is None:
            logger.debug("No current work day, ignoring %s event", event.value)
            return False
        if self._state is TrackingState.COMPLETED:
            logger.debug("Work day complete, ignoring %s event", event.value)
            return False

        try:
            if event is ScreenEvent.LOCKED:
                if not self._state.is_active:
                    logger.debug("Not tracking, ignoring lock event")
                    return False
                self._db.end_active_work_session(work_day.id, now)
                self._db.start_break_session(work_day.id, now)
                self._set_state(TrackingState.ON_BREAK)
            else:
                self._db.end_active_break_session(work_day.id, now)
                self._db.start_work_session(work_day.id, now)
                self._set_state(TrackingState.WORKING)
        except StorageError:
            logger.exception("Failed to handle %s event", event.value)
            return False

        self._refresh_stats_locked()
        return True

    def _tick_locked(self) -> None:
        now = self._clock.now()
        work_day = self._work_day
        if work_day is None:
            self._ensure_today_locked()
        elif now.date() != work_day.day:
            logger.info("Day changed from %s to %s", work_day.day, now.date())
            self._stop_work_locked()
            self._ensure_today_locked()

        try:
            auto_stop = self._settings.auto_stop_enabled
            stop_hour = self._settings.auto_stop_hour
        except StorageError:
            logger.exception("Failed to read auto-stop settings")
            auto_stop = False
            stop_hour = 0
        if auto_stop and self._state.is_active and now.hour >= stop_hour:
            logger.info("Auto-stop hour %d reached", stop_hour)
            self._stop_work_locked()
            self._set_state(TrackingState.COMPLETED)

        self._refresh_stats_locked()

    # Data

    def _ensure_today_locked(self) -> None:
        try:
            target_hours = self._settings.target_hours
            self._work_day = self._db.ensure_work_day(self._clock.now(), target_hours)
        except StorageError:
            logger.exception("Failed to ensure today's work day")

    def _refresh_stats_locked(self) -> None:
        work_day = self._work_day
        if work_day is None:
            self._reset_stats_locked()
            return

        try:
            summary = self._db.daily_summary(work_day.day)
        except StorageError:
            logger.exception("Failed to refresh stats")
            return
        if summary is None:
            self._reset_stats_locked()
            return

        now = self._clock.now()
        self._summary = summary
        self._work_day = summary.work_day
        self._worked_seconds = summary.worked_seconds(now)
        self._remaining_seconds = summary.remaining_seconds(now)
        self._break_count = summary.break_count
        self._total_break_seconds = summary.break_seconds(now)
        self._progress = summary.progress(now)

        previous = self._state
        if self._state is TrackingState.IDLE:
            # Recover an interrupted day from what the store shows as open.
            if summary.is_on_break:
                self._state = TrackingState.ON_BREAK
            elif summary.is_working:
                self._state = TrackingState.WORKING
        elif (
            self._worked_seconds > 0
            and self._remaining_seconds <= 0
            and self._state is not TrackingState.COMPLETED
        ):
            self._state = TrackingState.COMPLETED
        if previous is not self._state:
            logger.info(
                "Refresh moved state from %s to %s (working=%s, on_break=%s)",
                previous.value,
                self._state.value,
                summary.is_working,
                summary.is_on_break,
            )

        self._update_status_locked()

    def _reset_stats_locked(self) -> None:
        try:
            target_hours = self._settings.target_hours
        except StorageError:
            logger.exception("Failed to read target hours")
            target_hours = self._work_day.target_hours if self._work_day else 0.0
        self._worked_seconds = 0.0
        self._remaining_seconds = target_hours * 3600
        self._break_count = 0
        self._total_break_seconds = 0.0
        self._progress = 0.0
        self._state = TrackingState.IDLE
        self._summary = None
        self._update_status_locked()

    def _update_status_locked(self) -> None:
        self._color = status_color(self._progress, self._state)
        self._text = status_text(self._state, self._remaining_seconds)

    def _set_state(self, state: TrackingState) -> None:
        if state is not self._state:
            logger.info("Tracking state %s -> %s", self._state.value, state.value)
        self._state = state

    def _publish(self) -> None:
        snapshot = self.snapshot()
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:  # noqa: BLE001
                logger.exception("Status listener failed")

    # Loops

    def _run_timer_loop(self) -> None:
        while not self._clock.sleep(self._tick_interval_seconds, self._stop_event):
            try:
                self.tick()
            except Exception:  # noqa: BLE001
                logger.exception("Tick failed")

    def _run_screen_event_loop(self) -> None:
        source = self._screen_events
        if source is None:
            return
        logger.info("Started observing screen events")
        for event in source.events():
            if self._stop_event.is_set():
                break
            try:
                self.handle_screen_event(event)
            except Exception:  # noqa: BLE001
                logger.exception("Screen event handling failed")
        logger.info("Screen event observation ended")
