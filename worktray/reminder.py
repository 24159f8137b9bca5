from __future__ import annotations

import logging
import threading
from typing import Callable

from .models import TrackingState
from .settings import Settings
from .summary import format_hours_minutes
from .tracker import Clock, WorkDayTracker

logger = logging.getLogger(__name__)

REMINDER_DISMISS_SECONDS = 30.0

Presenter = Callable[[str], None]
TimerFactory = Callable[..., threading.Timer]


class ReminderPrompt:
    """A single outstanding break reminder.

    Showing a new reminder replaces the pending one and restarts its
    auto-dismiss timer.
    """

    def __init__(
        self,
        present: Presenter | None = None,
        withdraw: Callable[[], None] | None = None,
        dismiss_after_seconds: float = REMINDER_DISMISS_SECONDS,
        timer_factory: TimerFactory = threading.Timer,
    ):
        self._present = present
        self._withdraw = withdraw
        self._dismiss_after_seconds = dismiss_after_seconds
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._on_take_break: Callable[[], None] | None = None
        self._worked_time: str | None = None
        self._generation = 0

    @property
    def is_showing(self) -> bool:
        with self._lock:
            return self._worked_time is not None

    @property
    def worked_time(self) -> str | None:
        with self._lock:
            return self._worked_time

    def show(self, worked_time: str, on_take_break: Callable[[], None]) -> None:
        self.dismiss()
        with self._lock:
            self._generation += 1
            self._worked_time = worked_time
            self._on_take_break = on_take_break
            timer = self._timer_factory(
                self._dismiss_after_seconds,
                self._auto_dismiss,
                args=(self._generation,),
            )
            timer.daemon = True
            self._timer = timer
        timer.start()
        logger.info("Showing break reminder after %s of work", worked_time)
        if self._present is not None:
            self._present(worked_time)

    def dismiss(self) -> None:
        with self._lock:
            timer, was_showing = self._clear_locked()
        self._finish_dismiss(timer, was_showing)

    def take_break(self) -> None:
        with self._lock:
            callback = self._on_take_break
        self.dismiss()
        if callback is not None:
            callback()

    def _auto_dismiss(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            timer, was_showing = self._clear_locked()
        logger.debug("Break reminder timed out")
        self._finish_dismiss(timer, was_showing)

    def _clear_locked(self) -> tuple[threading.Timer | None, bool]:
        timer = self._timer
        was_showing = self._worked_time is not None
        self._timer = None
        self._worked_time = None
        self._on_take_break = None
        return timer, was_showing

    def _finish_dismiss(self, timer: threading.Timer | None, was_showing: bool) -> None:
        if timer is not None and timer is not threading.current_thread():
            timer.cancel()
        if was_showing and self._withdraw is not None:
            self._withdraw()


class ReminderService:
    """Prompts for a break every configured interval while working."""

    def __init__(
        self,
        tracker: WorkDayTracker,
        settings: Settings,
        prompt: ReminderPrompt,
        clock: Clock | None = None,
    ):
        self._tracker = tracker
        self._settings = settings
        self._prompt = prompt
        self._clock = clock or Clock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def prompt(self) -> ReminderPrompt:
        return self._prompt

    def start_monitoring(self) -> bool:
        if self.is_running:
            return False
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_monitor_loop,
            name="worktray-reminder",
            daemon=True,
        )
        self._thread.start()
        return True

    def stop_monitoring(self, timeout_seconds: float = 5.0) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout_seconds)
        self._thread = None
        self._prompt.dismiss()

    def interval_seconds(self) -> float:
        return max(self._settings.reminder_interval_minutes, 1) * 60.0

    def check_and_show_reminder(self) -> bool:
        if not self._settings.reminders_enabled:
            return False
        snapshot = self._tracker.snapshot()
        if snapshot.state is not TrackingState.WORKING:
            return False
        self._prompt.show(format_hours_minutes(snapshot.worked_seconds), self._take_break)
        return True

    def _take_break(self) -> None:
        self._tracker.stop_work()

    def _run_monitor_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                interval = self.interval_seconds()
            except Exception:  # noqa: BLE001
                logger.exception("Failed to read reminder interval")
                interval = 60.0
            if self._clock.sleep(interval, self._stop_event):
                break
            try:
                self.check_and_show_reminder()
            except Exception:  # noqa: BLE001
                logger.exception("Reminder check failed")
