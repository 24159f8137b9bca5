from __future__ import annotations

import argparse
import logging
import sys
import threading
from datetime import date, datetime
from pathlib import Path

from . import APP_NAME, __version__
from .database import StorageError, WorkTrayDatabase
from .history import HistoryBrowser, MonthlyChart
from .login_item import set_launch_at_login, sync_launch_at_login
from .messages import MessageGenerator
from .models import MessageKind
from .reminder import ReminderPrompt, ReminderService
from .screen import LockStatePoller, ScreenEventSource
from .settings import Settings
from .status import StatusSnapshot, message_kind_for
from .summary import format_hours_minutes
from .tracker import Clock, WorkDayTracker
from .paths import database_path, ensure_directories

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class WorkTrayApp:
    """Builds the tracker, reminder service and tray icon and owns their lifecycle."""

    def __init__(
        self,
        data_dir: Path | None = None,
        clock: Clock | None = None,
        messages: MessageGenerator | None = None,
    ):
        directory = ensure_directories(data_dir)
        self.clock = clock or Clock()
        # Failing to open or migrate the store aborts start-up.
        self.db = WorkTrayDatabase(database_path(directory))
        logger.info("Opened %s (schema version %d)", self.db.path, self.db.schema_version())
        self.settings = Settings(self.db, on_launch_at_login=set_launch_at_login)
        self.screen_events = ScreenEventSource()
        self.lock_poller = LockStatePoller(self.screen_events)
        self.tracker = WorkDayTracker(
            self.db,
            self.settings,
            screen_events=self.screen_events,
            clock=self.clock,
        )
        self.reminder_prompt = ReminderPrompt(
            present=self._present_reminder,
            withdraw=self._withdraw_reminder,
        )
        self.reminder_service = ReminderService(
            self.tracker,
            self.settings,
            self.reminder_prompt,
            clock=self.clock,
        )
        self.messages = messages or MessageGenerator(self.settings)
        self.message = ""
        self._message_kind: MessageKind | None = None
        self._unsubscribe_status = None
        self.tray = None
        self._services_running = False

    def start_services(self) -> None:
        if self._services_running:
            return
        self._services_running = True
        self._sync_login_item()
        self.tracker.start()
        self.lock_poller.start()
        self.reminder_service.start_monitoring()
        self._unsubscribe_status = self.tracker.subscribe(self._on_status)
        self.refresh_message()

    def stop_services(self) -> None:
        if not self._services_running:
            return
        self._services_running = False
        if self._unsubscribe_status is not None:
            self._unsubscribe_status()
            self._unsubscribe_status = None
        # The reminder observes the tracker, so it goes first.
        self.reminder_service.stop_monitoring()
        self.lock_poller.stop()
        self.tracker.stop()

    def refresh_message(self, kind: MessageKind | None = None) -> threading.Thread:
        """Generate a new dashboard message in the background."""
        if kind is None:
            kind = self._message_kind_for(self.tracker.snapshot())
        self._message_kind = kind
        return self.messages.generate_async(kind, self._set_message)

    def _message_kind_for(self, snapshot: StatusSnapshot) -> MessageKind:
        try:
            register = self.settings.register_externally
        except StorageError:
            logger.exception("Failed to read registration setting")
            register = False
        return message_kind_for(snapshot.progress, register)

    def _on_status(self, snapshot: StatusSnapshot) -> None:
        # Reaching the goal swaps the motivational line for a registration reminder.
        kind = self._message_kind_for(snapshot)
        if kind is not self._message_kind:
            self.refresh_message(kind)

    def _set_message(self, text: str) -> None:
        self.message = text
        if self.tray is not None:
            self.tray.show_message(text)

    def _sync_login_item(self) -> None:
        if sys.platform != "darwin":
            return
        try:
            sync_launch_at_login(self.settings.launch_at_login)
        except (OSError, StorageError):
            logger.exception("Failed to sync login item")

    def run(self) -> None:
        from .tray import TrayIcon

        # Built before the services start so it receives the first published status.
        self.tray = TrayIcon(self)
        self.start_services()
        try:
            self.tray.run()
        finally:
            self.stop_services()

    def _present_reminder(self, worked_time: str) -> None:
        if self.tray is not None:
            self.tray.present_reminder(worked_time)

    def _withdraw_reminder(self) -> None:
        if self.tray is not None:
            self.tray.withdraw_reminder()


def _print_status(db: WorkTrayDatabase, now: datetime) -> int:
    summary = db.daily_summary(now)
    if summary is None:
        print(f"{now.date().isoformat()}: no tracked work")
        return 0
    print(f"Date:       {summary.work_day.day.isoformat()}")
    print(f"Worked:     {format_hours_minutes(summary.worked_seconds(now))}")
    print(f"Remaining:  {format_hours_minutes(summary.remaining_seconds(now))}")
    print(f"Breaks:     {summary.break_count} ({format_hours_minutes(summary.break_seconds(now))})")
    print(f"Progress:   {summary.progress(now):.0%}")
    print(f"Registered: {'yes' if summary.work_day.is_registered else 'no'}")
    return 0


def _print_history(db: WorkTrayDatabase, unregistered_only: bool, now: datetime) -> int:
    browser = HistoryBrowser(db)
    browser.show_unregistered_only = unregistered_only
    for work_day in browser.load():
        summary = browser.summary(work_day)
        worked = summary.worked_seconds(now) if summary else 0.0
        mark = "x" if work_day.is_registered else " "
        print(
            f"[{mark}] {work_day.day.isoformat()}  {format_hours_minutes(worked)}"
            f" / {work_day.target_hours:g}h"
        )
    return 0


def _print_month(db: WorkTrayDatabase, offset: int, now: datetime) -> int:
    chart = MonthlyChart(db, now=now)
    chart.load_current_month()
    for _ in range(abs(offset)):
        if offset < 0:
            chart.previous_month()
        else:
            chart.next_month()
    print(chart.month_label)
    for entry in chart.data:
        print(f"  {entry.day.isoformat()} {entry.day_label}  {entry.hours_worked:5.2f}h  {entry.color.value}")
    print(f"Total: {chart.total_hours:.2f}h  Average: {chart.average_hours:.2f}h")
    return 0


def _toggle_registered(db: WorkTrayDatabase, value: str) -> int:
    try:
        day = date.fromisoformat(value)
    except ValueError:
        print(f"Invalid date: {value}", file=sys.stderr)
        return 2
    work_day = db.fetch_work_day(day)
    if work_day is None:
        print(f"No work day recorded for {day.isoformat()}", file=sys.stderr)
        return 1
    updated = db.toggle_registered(work_day.id)
    print(f"{day.isoformat()} registered={'yes' if updated.is_registered else 'no'}")
    return 0


def _delete_day(db: WorkTrayDatabase, value: str) -> int:
    try:
        day = date.fromisoformat(value)
    except ValueError:
        print(f"Invalid date: {value}", file=sys.stderr)
        return 2
    work_day = db.fetch_work_day(day)
    if work_day is None or not db.delete_work_day(work_day.id):
        print(f"No work day recorded for {day.isoformat()}", file=sys.stderr)
        return 1
    print(f"Deleted {day.isoformat()} and its sessions")
    return 0


def _print_message(db: WorkTrayDatabase, now: datetime) -> int:
    settings = Settings(db)
    summary = db.daily_summary(now)
    progress = summary.progress(now) if summary is not None else 0.0
    print(MessageGenerator(settings).generate(message_kind_for(progress, settings.register_externally)))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog=APP_NAME)
    parser.add_argument("--version", action="store_true", help="Print app version and exit")
    parser.add_argument("--status", action="store_true", help="Print today's summary and exit")
    parser.add_argument("--history", action="store_true", help="List tracked days and exit")
    parser.add_argument("--unregistered", action="store_true", help="With --history, only unregistered days")
    parser.add_argument("--month", type=int, metavar="OFFSET", help="Print the monthly chart for a month offset")
    parser.add_argument("--toggle-registered", metavar="YYYY-MM-DD", help="Flip the registered flag of a day")
    parser.add_argument("--data-dir", type=Path, help="Directory holding the database")
    parser.add_argument("--message", action="store_true", help="Print a dashboard message for today and exit")
    parser.add_argument("--delete-day", metavar="YYYY-MM-DD", help="Delete a day and its sessions")
    parser.add_argument(
        "--log-level",
        default="INFO",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Logging level (default: INFO)",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level, format=LOG_FORMAT)

    if args.version:
        print(__version__)
        return 0

    try:
        one_shot = (
            args.status
            or args.history
            or args.month is not None
            or args.toggle_registered
            or args.delete_day
            or args.message
        )
        if one_shot:
            db = WorkTrayDatabase(database_path(ensure_directories(args.data_dir)))
            now = Clock().now()
            if args.delete_day:
                return _delete_day(db, args.delete_day)
            if args.toggle_registered:
                return _toggle_registered(db, args.toggle_registered)
            if args.history:
                return _print_history(db, args.unregistered, now)
            if args.month is not None:
                return _print_month(db, args.month, now)
            if args.message:
                return _print_message(db, now)
            return _print_status(db, now)

        app = WorkTrayApp(data_dir=args.data_dir)
    except StorageError as exc:
        logger.error("Cannot open the work database: %s", exc)
        return 1

    app.run()
    return 0
