from __future__ import annotations

from dataclasses import dataclass

from . import APP_NAME
from .models import MessageKind, StatusColor, TrackingState, WorkDay
from .summary import DailySummary, format_accessible, format_hours_minutes


@dataclass(frozen=True)
class StatusSnapshot:
    state: TrackingState
    color: StatusColor
    text: str
    worked_seconds: float
    remaining_seconds: float
    break_count: int
    total_break_seconds: float
    progress: float
    work_day: WorkDay | None = None
    summary: DailySummary | None = None


def status_color(progress: float, state: TrackingState) -> StatusColor:
    if not state.is_active:
        return StatusColor.GRAY
    if progress < 0.5:
        return StatusColor.RED
    if progress < 0.9:
        return StatusColor.YELLOW
    return StatusColor.GREEN


def status_text(state: TrackingState, remaining_seconds: float) -> str:
    if state is TrackingState.WORKING:
        if remaining_seconds > 0:
            return f"{format_hours_minutes(remaining_seconds)} left"
        return "Goal reached!"
    if state is TrackingState.ON_BREAK:
        if remaining_seconds > 0:
            return f"{format_hours_minutes(remaining_seconds)} left (break)"
        return "Goal reached! (break)"
    if state is TrackingState.COMPLETED:
        return "Day complete"
    return APP_NAME


def status_tooltip(snapshot: StatusSnapshot) -> str:
    """Spoken-friendly tray tooltip, e.g. "Working, 2 hours 5 minutes worked"."""
    description = f"{snapshot.state.label}, {format_accessible(snapshot.worked_seconds)} worked"
    if snapshot.state.is_active and snapshot.remaining_seconds > 0:
        description += f", {format_accessible(snapshot.remaining_seconds)} left"
    return description


def message_kind_for(progress: float, register_externally: bool) -> MessageKind:
    if register_externally and progress >= 1.0:
        return MessageKind.REGISTRATION_REMINDER
    return MessageKind.MOTIVATIONAL
