from __future__ import annotations

import ctypes
import logging
import os
import queue
import re
import shutil
import subprocess
import sys
import threading
from typing import Callable, Iterator

from .models import ScreenEvent

logger = logging.getLogger(__name__)

DESKTOP_SWITCHDESKTOP = 0x0100
LOCK_COMMAND_TIMEOUT_SECONDS = 10.0
LOCK_CHECK_TIMEOUT_SECONDS = 5.0

_MACOS_LOCKED_PATTERN = re.compile(r"\"CGSSessionScreenIsLocked\"\s*=\s*Yes")

LockCheck = Callable[[], "bool | None"]


class ScreenLockError(RuntimeError):
    """The platform lock command was unavailable or exited with an error."""


if sys.platform == "win32":
    from ctypes import wintypes

    _user32 = ctypes.WinDLL("user32", use_last_error=True)

    _user32.OpenInputDesktop.argtypes = [wintypes.DWORD, wintypes.BOOL, wintypes.DWORD]
    _user32.OpenInputDesktop.restype = wintypes.HANDLE
    _user32.SwitchDesktop.argtypes = [wintypes.HANDLE]
    _user32.SwitchDesktop.restype = wintypes.BOOL
    _user32.CloseDesktop.argtypes = [wintypes.HANDLE]
    _user32.CloseDesktop.restype = wintypes.BOOL


_STOP = object()


class ScreenEventSource:
    """Unbounded stream of lock/unlock events.

    Producers call :meth:`emit` from any thread. A single consumer iterates
    :meth:`events` until :meth:`close` is called; :meth:`reopen` starts a
    fresh stream after that.
    """

    def __init__(self) -> None:
        self._queue: queue.Queue[object] = queue.Queue()
        self._lock = threading.Lock()
        self._closed = False

    def emit(self, event: ScreenEvent) -> None:
        with self._lock:
            if self._closed:
                return
            self._queue.put(event)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(_STOP)

    @property
    def is_closed(self) -> bool:
        with self._lock:
            return self._closed

    def reopen(self) -> None:
        with self._lock:
            if not self._closed:
                return
            self._queue = queue.Queue()
            self._closed = False

    def events(self) -> Iterator[ScreenEvent]:
        with self._lock:
            stream = self._queue
        while True:
            item = stream.get()
            if item is _STOP:
                return
            yield item  # type: ignore[misc]


class LockStatePoller:
    """Turns a lock-state check into screen events on a source."""

    def __init__(
        self,
        source: ScreenEventSource,
        lock_check: LockCheck | None = None,
        interval_seconds: float = 2.0,
    ):
        self._source = source
        self._lock_check = lock_check or is_screen_locked
        self._interval_seconds = max(0.1, float(interval_seconds))
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._last_locked: bool | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        if self.is_running:
            return False
        self._stop_event.clear()
        self._last_locked = None
        self._thread = threading.Thread(
            target=self._run_poll_loop,
            name="worktray-lock-poller",
            daemon=True,
        )
        self._thread.start()
        return True

    def stop(self, timeout_seconds: float = 5.0) -> None:
        thread = self._thread
        if thread is None:
            return
        self._stop_event.set()
        thread.join(timeout=timeout_seconds)
        self._thread = None

    def poll_once(self) -> ScreenEvent | None:
        locked = self._lock_check()
        if locked is None:
            return None
        previous = self._last_locked
        self._last_locked = locked
        if previous is None or previous == locked:
            return None
        event = ScreenEvent.LOCKED if locked else ScreenEvent.UNLOCKED
        logger.debug("Lock state changed: %s", event.value)
        self._source.emit(event)
        return event

    def _run_poll_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.poll_once()
            except Exception:  # noqa: BLE001
                logger.exception("Lock state check failed")
            if self._stop_event.wait(self._interval_seconds):
                break


def is_screen_locked() -> bool | None:
    """Best-effort lock check; ``None`` when the state cannot be determined."""
    if sys.platform == "darwin":
        return _macos_screen_locked()
    if sys.platform == "win32":
        return _windows_screen_locked()
    return _logind_screen_locked()


def lock_screen() -> None:
    if sys.platform == "darwin":
        command = [
            "osascript",
            "-e",
            'tell application "System Events" to keystroke "q" using {control down, command down}',
        ]
    elif sys.platform == "win32":
        command = ["rundll32.exe", "user32.dll,LockWorkStation"]
    else:
        command = ["loginctl", "lock-session"]

    if shutil.which(command[0]) is None:
        raise ScreenLockError(f"{command[0]} is not available on this system.")
    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=LOCK_COMMAND_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        raise ScreenLockError(f"Screen lock command failed: {exc}") from exc
    if result.returncode != 0:
        raise ScreenLockError(
            f"Screen lock command exited with {result.returncode}: {result.stderr.strip()}"
        )


def _macos_screen_locked() -> bool | None:
    output = _command_output(["ioreg", "-n", "Root", "-d1"])
    if output is None:
        return None
    return _MACOS_LOCKED_PATTERN.search(output) is not None


def _windows_screen_locked() -> bool | None:
    handle = _user32.OpenInputDesktop(0, False, DESKTOP_SWITCHDESKTOP)
    if not handle:
        return True
    try:
        return not _user32.SwitchDesktop(handle)
    finally:
        _user32.CloseDesktop(handle)


def _logind_screen_locked() -> bool | None:
    session = os.environ.get("XDG_SESSION_ID", "auto")
    output = _command_output(["loginctl", "show-session", session, "-p", "LockedHint", "--value"])
    if output is None:
        return None
    return output.strip().lower() == "yes"


def _command_output(command: list[str]) -> str | None:
    if shutil.which(command[0]) is None:
        return None
    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=LOCK_CHECK_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    return result.stdout
