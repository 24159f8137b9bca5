from __future__ import annotations

import sqlite3
import tempfile
import unittest
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

from worktray.database import MIGRATIONS, StorageError, WorkTrayDatabase

MORNING = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class DatabaseTests(unittest.TestCase):
    def test_ensure_work_day_is_idempotent(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            db = WorkTrayDatabase(Path(tmp_dir) / "worktray.sqlite3")
            first = db.ensure_work_day(date(2026, 3, 2), 7.5)
            second = db.ensure_work_day(datetime(2026, 3, 2, 18, 30), 6.0)

            self.assertEqual(first.id, second.id)
            self.assertEqual(second.target_hours, 7.5)
            self.assertFalse(second.is_registered)
            self.assertEqual(len(db.fetch_all_work_days()), 1)

    def test_work_day_ordering_and_ranges(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            db = WorkTrayDatabase(Path(tmp_dir) / "worktray.sqlite3")
            for day in (date(2026, 3, 5), date(2026, 2, 27), date(2026, 3, 1)):
                db.ensure_work_day(day)

            ranged = db.fetch_work_days(date(2026, 3, 1), date(2026, 3, 31))
            self.assertEqual([entry.day for entry in ranged], [date(2026, 3, 1), date(2026, 3, 5)])

            everything = db.fetch_all_work_days()
            self.assertEqual(
                [entry.day for entry in everything],
                [date(2026, 3, 5), date(2026, 3, 1), date(2026, 2, 27)],
            )
            self.assertEqual(db.fetch_months_with_data(), [date(2026, 2, 1), date(2026, 3, 1)])
            self.assertIsNone(db.fetch_work_day(date(2026, 1, 1)))

    def test_toggle_registered(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            db = WorkTrayDatabase(Path(tmp_dir) / "worktray.sqlite3")
            work_day = db.ensure_work_day(date(2026, 3, 2))

            self.assertTrue(db.toggle_registered(work_day.id).is_registered)
            self.assertFalse(db.toggle_registered(work_day.id).is_registered)
            with self.assertRaises(StorageError):
                db.toggle_registered("missing")

    def test_update_target_hours(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            db = WorkTrayDatabase(Path(tmp_dir) / "worktray.sqlite3")
            work_day = db.ensure_work_day(date(2026, 3, 2))

            db.update_target_hours(work_day.id, 6.5)
            self.assertEqual(db.fetch_work_day_by_id(work_day.id).target_hours, 6.5)
            with self.assertRaises(StorageError):
                db.update_target_hours(work_day.id, 0)
            with self.assertRaises(StorageError):
                db.update_target_hours("missing", 4)

    def test_sessions_round_trip_and_summary(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            db = WorkTrayDatabase(Path(tmp_dir) / "worktray.sqlite3")
            work_day = db.ensure_work_day(MORNING)

            db.start_work_session(work_day.id, MORNING)
            self.assertTrue(db.has_active_work_session(work_day.id))
            ended = db.end_active_work_session(work_day.id, MORNING + timedelta(hours=2))
            self.assertEqual(ended.ended_at, MORNING + timedelta(hours=2))
            db.start_break_session(work_day.id, MORNING + timedelta(hours=2))
            db.end_active_break_session(work_day.id, MORNING + timedelta(hours=2, minutes=15))

            summary = db.daily_summary(MORNING.date())
            self.assertEqual(summary.work_day.id, work_day.id)
            self.assertEqual(summary.worked_seconds(MORNING + timedelta(hours=5)), 7200)
            self.assertEqual(summary.break_seconds(MORNING + timedelta(hours=5)), 900)
            self.assertEqual(summary.break_count, 1)
            self.assertFalse(db.has_active_work_session(work_day.id))
            self.assertFalse(db.has_active_break_session(work_day.id))
            self.assertIsNone(db.daily_summary(date(2026, 1, 1)))

    def test_end_without_active_session_is_noop(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            db = WorkTrayDatabase(Path(tmp_dir) / "worktray.sqlite3")
            work_day = db.ensure_work_day(MORNING)

            self.assertIsNone(db.end_active_work_session(work_day.id, MORNING))
            self.assertIsNone(db.end_active_break_session(work_day.id, MORNING))
            self.assertEqual(db.fetch_sessions(work_day.id), [])

    def test_end_before_start_is_clamped(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            db = WorkTrayDatabase(Path(tmp_dir) / "worktray.sqlite3")
            work_day = db.ensure_work_day(MORNING)

            db.start_work_session(work_day.id, MORNING)
            ended = db.end_active_work_session(work_day.id, MORNING - timedelta(minutes=5))
            self.assertEqual(ended.ended_at, MORNING)

    def test_at_most_one_active_session(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            db = WorkTrayDatabase(Path(tmp_dir) / "worktray.sqlite3")
            work_day = db.ensure_work_day(MORNING)

            for minutes in (0, 10, 20):
                db.start_work_session(work_day.id, MORNING + timedelta(minutes=minutes))
                db.start_break_session(work_day.id, MORNING + timedelta(minutes=minutes + 5))

            sessions = db.fetch_sessions(work_day.id)
            breaks = db.fetch_breaks(work_day.id)
            self.assertEqual(len(sessions), 3)
            self.assertEqual(sum(1 for entry in sessions if entry.is_active), 1)
            self.assertEqual(sum(1 for entry in breaks if entry.is_active), 1)
            self.assertEqual(sessions[0].ended_at, MORNING + timedelta(minutes=10))
            self.assertEqual([entry.started_at for entry in sessions], sorted(entry.started_at for entry in sessions))

    def test_delete_work_day_cascades(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            db = WorkTrayDatabase(Path(tmp_dir) / "worktray.sqlite3")
            work_day = db.ensure_work_day(MORNING)
            db.start_work_session(work_day.id, MORNING)
            db.start_break_session(work_day.id, MORNING + timedelta(hours=1))

            self.assertTrue(db.delete_work_day(work_day.id))
            self.assertFalse(db.delete_work_day(work_day.id))
            self.assertEqual(db.fetch_sessions(work_day.id), [])
            self.assertEqual(db.fetch_breaks(work_day.id), [])

    def test_settings_round_trip(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            db = WorkTrayDatabase(Path(tmp_dir) / "worktray.sqlite3")
            self.assertEqual(db.get_setting("target_hours", "8.0"), "8.0")
            db.set_setting("target_hours", "7")
            db.set_setting("target_hours", "6")
            self.assertEqual(db.get_setting("target_hours"), "6")

    def test_migrations_applied_once(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = Path(tmp_dir) / "worktray.sqlite3"
            db = WorkTrayDatabase(path)
            work_day = db.ensure_work_day(MORNING)
            reopened = WorkTrayDatabase(path)

            self.assertEqual(reopened.schema_version(), len(MIGRATIONS))
            self.assertEqual(reopened.fetch_work_day(MORNING).id, work_day.id)

    def test_open_failure_raises_storage_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = Path(tmp_dir) / "worktray.sqlite3"
            path.mkdir()
            with self.assertRaises(StorageError):
                WorkTrayDatabase(path)

    def test_sessions_are_written_in_utc(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = Path(tmp_dir) / "worktray.sqlite3"
            db = WorkTrayDatabase(path, id_factory=iter(["day", "session"]).__next__)
            work_day = db.ensure_work_day(MORNING)
            plus_two = timezone(timedelta(hours=2))
            db.start_work_session(work_day.id, MORNING.astimezone(plus_two))

            conn = sqlite3.connect(path)
            try:
                stored = conn.execute("SELECT started_at FROM work_sessions WHERE id = 'session'").fetchone()[0]
            finally:
                conn.close()
            self.assertEqual(stored, "2026-03-02T09:00:00.000000+00:00")


if __name__ == "__main__":
    unittest.main()
