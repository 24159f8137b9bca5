"""
Status-bar icon for worktray
"""

from __future__ import annotations

import logging
from threading import Thread
from typing import TYPE_CHECKING

import pystray
from PIL import Image, ImageDraw

from . import APP_NAME
from .models import StatusColor, TrackingState
from .status import StatusSnapshot, status_tooltip

if TYPE_CHECKING:
    from .app import WorkTrayApp

logger = logging.getLogger(__name__)

ICON_SIZE = 64

STATUS_RGB = {
    StatusColor.GREEN: (52, 199, 89),
    StatusColor.YELLOW: (255, 204, 0),
    StatusColor.RED: (255, 59, 48),
    StatusColor.GRAY: (142, 142, 147),
}


def status_icon_image(color: StatusColor, size: int = ICON_SIZE) -> Image.Image:
    """Draw a filled status dot on a transparent square."""
    image = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    draw = ImageDraw.Draw(image)
    inset = max(2, size // 16)
    draw.ellipse([inset, inset, size - inset, size - inset], fill=STATUS_RGB[color])
    return image


class TrayIcon:
    """System tray icon showing tracking status."""

    def __init__(self, app: WorkTrayApp):
        self.app = app
        self._snapshot: StatusSnapshot = app.tracker.snapshot()
        self._message = app.message
        self.icon = pystray.Icon(
            APP_NAME,
            status_icon_image(self._snapshot.color),
            status_tooltip(self._snapshot),
            self._build_menu(),
        )
        self._unsubscribe = app.tracker.subscribe(self.update_status)

    def _build_menu(self) -> pystray.Menu:
        return pystray.Menu(
            pystray.MenuItem(
                lambda item: self._snapshot.text,
                None,
                enabled=False,
            ),
            pystray.MenuItem(
                lambda item: self._message,
                None,
                enabled=False,
                visible=lambda item: bool(self._message),
            ),
            pystray.MenuItem("New Message", self._new_message),
            pystray.Menu.SEPARATOR,
            pystray.MenuItem(
                lambda item: "Stop Work" if self._snapshot.state.is_active else "Start Work",
                self._toggle_work,
                default=True,
            ),
            pystray.MenuItem(
                "Take a Break",
                self._take_break,
                enabled=lambda item: self._snapshot.state is TrackingState.WORKING,
            ),
            pystray.MenuItem(
                "Break Reminder: Take a Break",
                self._accept_reminder,
                visible=lambda item: self.app.reminder_prompt.is_showing,
            ),
            pystray.MenuItem(
                "Break Reminder: Dismiss",
                self._dismiss_reminder,
                visible=lambda item: self.app.reminder_prompt.is_showing,
            ),
            pystray.Menu.SEPARATOR,
            pystray.MenuItem("Quit", self._quit),
        )

    def update_status(self, snapshot: StatusSnapshot) -> None:
        color_changed = snapshot.color is not self._snapshot.color
        self._snapshot = snapshot
        if color_changed:
            self.icon.icon = status_icon_image(snapshot.color)
        self.icon.title = status_tooltip(snapshot)
        self.icon.update_menu()

    def show_message(self, text: str) -> None:
        self._message = text
        self.icon.update_menu()

    def present_reminder(self, worked_time: str) -> None:
        """Show the break reminder as a notification balloon."""
        self.icon.notify(
            f"You've been working for {worked_time}. Time for a short break?",
            "Break reminder",
        )
        self.icon.update_menu()

    def withdraw_reminder(self) -> None:
        try:
            self.icon.remove_notification()
        except NotImplementedError:
            logger.debug("Tray backend cannot remove notifications")
        self.icon.update_menu()

    def _toggle_work(self, icon, item) -> None:
        self.app.tracker.toggle_work()

    def _take_break(self, icon, item) -> None:
        Thread(target=self.app.tracker.take_break, daemon=True).start()

    def _new_message(self, icon, item) -> None:
        self.app.refresh_message()

    def _accept_reminder(self, icon, item) -> None:
        self.app.reminder_prompt.take_break()

    def _dismiss_reminder(self, icon, item) -> None:
        self.app.reminder_prompt.dismiss()

    def _quit(self, icon, item) -> None:
        self.app.stop_services()
        self.stop()

    def run(self) -> None:
        """Run the icon loop on the calling thread until stopped."""
        self.icon.run()

    def stop(self) -> None:
        self._unsubscribe()
        self.icon.stop()
