from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

DEFAULT_TARGET_HOURS = 8.0


class TrackingState(str, Enum):
    IDLE = "idle"
    WORKING = "working"
    ON_BREAK = "on_break"
    COMPLETED = "completed"

    @property
    def label(self) -> str:
        return _STATE_LABELS[self]

    @property
    def is_active(self) -> bool:
        return self in (TrackingState.WORKING, TrackingState.ON_BREAK)


_STATE_LABELS = {
    TrackingState.IDLE: "Not Working",
    TrackingState.WORKING: "Working",
    TrackingState.ON_BREAK: "On Break",
    TrackingState.COMPLETED: "Day Complete",
}


class StatusColor(str, Enum):
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"
    GRAY = "gray"


class ScreenEvent(str, Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"


class MessageKind(str, Enum):
    MOTIVATIONAL = "motivational"
    REGISTRATION_REMINDER = "registration_reminder"


@dataclass(frozen=True)
class WorkDay:
    id: str
    day: date
    is_registered: bool = False
    target_hours: float = DEFAULT_TARGET_HOURS


@dataclass(frozen=True)
class WorkSession:
    id: str
    work_day_id: str
    started_at: datetime
    ended_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.ended_at is None


@dataclass(frozen=True)
class BreakSession:
    id: str
    work_day_id: str
    started_at: datetime
    ended_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.ended_at is None
