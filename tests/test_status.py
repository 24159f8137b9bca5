from __future__ import annotations

import unittest

from worktray.models import MessageKind, StatusColor, TrackingState
from worktray.status import StatusSnapshot, message_kind_for, status_color, status_text, status_tooltip


class StatusTests(unittest.TestCase):
    def test_color_bands_while_active(self) -> None:
        for state in (TrackingState.WORKING, TrackingState.ON_BREAK):
            self.assertIs(status_color(0.0, state), StatusColor.RED)
            self.assertIs(status_color(0.49, state), StatusColor.RED)
            self.assertIs(status_color(0.5, state), StatusColor.YELLOW)
            self.assertIs(status_color(0.89, state), StatusColor.YELLOW)
            self.assertIs(status_color(0.9, state), StatusColor.GREEN)
            self.assertIs(status_color(1.7, state), StatusColor.GREEN)

    def test_color_is_gray_when_not_tracking(self) -> None:
        self.assertIs(status_color(0.95, TrackingState.IDLE), StatusColor.GRAY)
        self.assertIs(status_color(1.0, TrackingState.COMPLETED), StatusColor.GRAY)

    def test_status_text(self) -> None:
        self.assertEqual(status_text(TrackingState.WORKING, 2 * 3600 + 30 * 60), "2:30 left")
        self.assertEqual(status_text(TrackingState.WORKING, 0), "Goal reached!")
        self.assertEqual(status_text(TrackingState.ON_BREAK, 600), "0:10 left (break)")
        self.assertEqual(status_text(TrackingState.ON_BREAK, 0), "Goal reached! (break)")
        self.assertEqual(status_text(TrackingState.COMPLETED, 0), "Day complete")
        self.assertEqual(status_text(TrackingState.IDLE, 3600), "worktray")

    def test_state_labels(self) -> None:
        self.assertEqual(TrackingState.IDLE.label, "Not Working")
        self.assertEqual(TrackingState.ON_BREAK.label, "On Break")
        self.assertTrue(TrackingState.WORKING.is_active)
        self.assertFalse(TrackingState.COMPLETED.is_active)

    def test_status_tooltip(self) -> None:
        working = StatusSnapshot(
            state=TrackingState.WORKING,
            color=StatusColor.YELLOW,
            text="2:55 left",
            worked_seconds=5 * 3600 + 5 * 60,
            remaining_seconds=2 * 3600 + 55 * 60,
            break_count=1,
            total_break_seconds=600,
            progress=0.63,
        )
        self.assertEqual(status_tooltip(working), "Working, 5 hours 5 minutes worked, 2 hours 55 minutes left")

        idle = StatusSnapshot(TrackingState.IDLE, StatusColor.GRAY, "worktray", 0, 8 * 3600, 0, 0, 0.0)
        self.assertEqual(status_tooltip(idle), "Not Working, 0 minutes worked")

    def test_message_kind_for(self) -> None:
        self.assertIs(message_kind_for(1.0, True), MessageKind.REGISTRATION_REMINDER)
        self.assertIs(message_kind_for(0.99, True), MessageKind.MOTIVATIONAL)
        self.assertIs(message_kind_for(1.2, False), MessageKind.MOTIVATIONAL)


if __name__ == "__main__":
    unittest.main()
