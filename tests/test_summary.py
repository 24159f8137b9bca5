from __future__ import annotations

import unittest
from datetime import date, datetime, timedelta, timezone

from worktray.models import BreakSession, WorkDay, WorkSession
from worktray.summary import DailySummary, format_accessible, format_hours_minutes

START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def _work_day(target_hours: float = 8.0) -> WorkDay:
    return WorkDay(id="day", day=date(2026, 3, 2), target_hours=target_hours)


def _session(start_minutes: int, end_minutes: int | None) -> WorkSession:
    return WorkSession(
        id=f"w{start_minutes}",
        work_day_id="day",
        started_at=START + timedelta(minutes=start_minutes),
        ended_at=START + timedelta(minutes=end_minutes) if end_minutes is not None else None,
    )


def _break(start_minutes: int, end_minutes: int | None) -> BreakSession:
    return BreakSession(
        id=f"b{start_minutes}",
        work_day_id="day",
        started_at=START + timedelta(minutes=start_minutes),
        ended_at=START + timedelta(minutes=end_minutes) if end_minutes is not None else None,
    )


class DailySummaryTests(unittest.TestCase):
    def test_worked_seconds_sums_closed_and_open_sessions(self) -> None:
        summary = DailySummary(_work_day(), sessions=(_session(0, 60), _session(90, None)))

        self.assertEqual(summary.worked_seconds(START + timedelta(minutes=120)), 90 * 60)
        # Moving now only grows the open session.
        self.assertEqual(summary.worked_seconds(START + timedelta(minutes=150)), 120 * 60)
        self.assertTrue(summary.is_working)
        self.assertFalse(summary.is_on_break)

    def test_break_count_only_counts_completed_breaks(self) -> None:
        summary = DailySummary(_work_day(), breaks=(_break(60, 75), _break(120, None)))
        now = START + timedelta(minutes=130)

        self.assertEqual(summary.break_count, 1)
        self.assertEqual(summary.break_seconds(now), 25 * 60)
        self.assertTrue(summary.is_on_break)

    def test_remaining_and_progress(self) -> None:
        summary = DailySummary(_work_day(2.0), sessions=(_session(0, 180),))
        now = START + timedelta(hours=4)

        self.assertEqual(summary.remaining_seconds(now), 0.0)
        self.assertAlmostEqual(summary.progress(now), 1.5)

        half = DailySummary(_work_day(2.0), sessions=(_session(0, 60),))
        self.assertEqual(half.remaining_seconds(now), 3600)
        self.assertAlmostEqual(half.progress(now), 0.5)

    def test_progress_is_one_without_target(self) -> None:
        now = START + timedelta(hours=1)
        self.assertEqual(DailySummary(_work_day(0.0)).progress(now), 1.0)
        self.assertEqual(DailySummary(_work_day(0.0), sessions=(_session(0, 30),)).progress(now), 1.0)

    def test_day_start_and_end(self) -> None:
        now = START + timedelta(hours=6)
        empty = DailySummary(_work_day())
        self.assertIsNone(empty.day_start_time)
        self.assertIsNone(empty.day_end_time(now))

        closed = DailySummary(_work_day(), sessions=(_session(30, 90), _session(120, 240)))
        self.assertEqual(closed.day_start_time, START + timedelta(minutes=30))
        self.assertEqual(closed.day_end_time(now), START + timedelta(minutes=240))

        running = DailySummary(_work_day(), sessions=(_session(30, 90), _session(120, None)))
        self.assertEqual(running.day_end_time(now), now)


class FormattingTests(unittest.TestCase):
    def test_format_hours_minutes(self) -> None:
        self.assertEqual(format_hours_minutes(0), "0:00")
        self.assertEqual(format_hours_minutes(3 * 3600 + 7 * 60 + 59), "3:07")
        self.assertEqual(format_hours_minutes(-20), "0:00")

    def test_format_accessible(self) -> None:
        self.assertEqual(format_accessible(0), "0 minutes")
        self.assertEqual(format_accessible(60), "1 minute")
        self.assertEqual(format_accessible(3600), "1 hour")
        self.assertEqual(format_accessible(2 * 3600 + 5 * 60), "2 hours 5 minutes")


if __name__ == "__main__":
    unittest.main()
