from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from worktray.database import WorkTrayDatabase
from worktray.settings import AUTO_STOP_HOUR_SETTING_KEY, TARGET_HOURS_SETTING_KEY, Settings


class SettingsTests(unittest.TestCase):
    def setUp(self) -> None:
        tmp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(tmp_dir.cleanup)
        self.db = WorkTrayDatabase(Path(tmp_dir.name) / "worktray.sqlite3")

    def test_defaults(self) -> None:
        settings = Settings(self.db)
        self.assertEqual(settings.target_hours, 8.0)
        self.assertTrue(settings.reminders_enabled)
        self.assertEqual(settings.reminder_interval_minutes, 60)
        self.assertFalse(settings.auto_stop_enabled)
        self.assertEqual(settings.auto_stop_hour, 20)
        self.assertTrue(settings.register_externally)
        self.assertFalse(settings.launch_at_login)
        self.assertEqual(settings.ai_provider, "")

    def test_values_persist(self) -> None:
        settings = Settings(self.db)
        settings.target_hours = 7.5
        settings.reminders_enabled = False
        settings.auto_stop_enabled = True
        settings.auto_stop_hour = 18

        reloaded = Settings(self.db)
        self.assertEqual(reloaded.target_hours, 7.5)
        self.assertFalse(reloaded.reminders_enabled)
        self.assertTrue(reloaded.auto_stop_enabled)
        self.assertEqual(reloaded.auto_stop_hour, 18)

    def test_invalid_values_are_rejected(self) -> None:
        settings = Settings(self.db)
        with self.assertRaises(ValueError):
            settings.target_hours = 0
        with self.assertRaises(ValueError):
            settings.auto_stop_hour = 24

    def test_bad_stored_values_fall_back(self) -> None:
        self.db.set_setting(TARGET_HOURS_SETTING_KEY, "-3")
        self.db.set_setting(AUTO_STOP_HOUR_SETTING_KEY, "31")
        settings = Settings(self.db)

        self.assertEqual(settings.target_hours, 8.0)
        self.assertEqual(settings.auto_stop_hour, 23)

    def test_launch_at_login_runs_side_effect(self) -> None:
        calls = []
        settings = Settings(self.db, on_launch_at_login=calls.append)
        settings.launch_at_login = True
        settings.launch_at_login = False

        self.assertEqual(calls, [True, False])
        self.assertFalse(settings.launch_at_login)

    def test_launch_at_login_failure_is_logged(self) -> None:
        def _fail(enabled: bool) -> None:
            raise PermissionError("read-only")

        settings = Settings(self.db, on_launch_at_login=_fail)
        with self.assertLogs("worktray.settings", level="ERROR"):
            settings.launch_at_login = True
        self.assertTrue(settings.launch_at_login)

    def test_configure_ai(self) -> None:
        settings = Settings(self.db)
        settings.configure_ai(" OpenAI ", "gpt-4o-mini", api_key=" sk-test ")

        self.assertEqual(settings.ai_provider, "openai")
        self.assertEqual(settings.ai_model, "gpt-4o-mini")
        self.assertEqual(settings.ai_api_key, "sk-test")
        self.assertEqual(settings.ai_endpoint, "")


if __name__ == "__main__":
    unittest.main()
