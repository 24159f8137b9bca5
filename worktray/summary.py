from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from .models import BreakSession, WorkDay, WorkSession


@dataclass(frozen=True)
class DailySummary:
    """A work day plus its sessions, ordered by start time.

    Built fresh for every query. Open-ended intervals are measured up to the
    ``now`` passed to each calculation.
    """

    work_day: WorkDay
    sessions: tuple[WorkSession, ...] = ()
    breaks: tuple[BreakSession, ...] = ()

    @property
    def target_seconds(self) -> float:
        return self.work_day.target_hours * 3600

    def worked_seconds(self, now: datetime) -> float:
        return _interval_total(self.sessions, now)

    def break_seconds(self, now: datetime) -> float:
        return _interval_total(self.breaks, now)

    @property
    def break_count(self) -> int:
        return sum(1 for entry in self.breaks if entry.ended_at is not None)

    @property
    def is_working(self) -> bool:
        return any(session.ended_at is None for session in self.sessions)

    @property
    def is_on_break(self) -> bool:
        return any(entry.ended_at is None for entry in self.breaks)

    def remaining_seconds(self, now: datetime) -> float:
        return max(self.target_seconds - self.worked_seconds(now), 0.0)

    def progress(self, now: datetime) -> float:
        target = self.target_seconds
        if target <= 0:
            return 1.0
        return self.worked_seconds(now) / target

    @property
    def day_start_time(self) -> datetime | None:
        if not self.sessions:
            return None
        return min(session.started_at for session in self.sessions)

    def day_end_time(self, now: datetime) -> datetime | None:
        if not self.sessions:
            return None
        if self.is_working:
            return now
        ended = [session.ended_at for session in self.sessions if session.ended_at is not None]
        return max(ended) if ended else None


def _interval_total(entries: Sequence[WorkSession] | Sequence[BreakSession], now: datetime) -> float:
    total = 0.0
    for entry in entries:
        end = entry.ended_at if entry.ended_at is not None else now
        total += (end - entry.started_at).total_seconds()
    return total


def format_hours_minutes(total_seconds: float) -> str:
    """Format seconds as ``H:MM``; negative values read as zero."""
    seconds = max(0, int(total_seconds))
    hours, remainder = divmod(seconds, 3600)
    return f"{hours}:{remainder // 60:02d}"


def format_accessible(total_seconds: float) -> str:
    seconds = max(0, int(total_seconds))
    hours, remainder = divmod(seconds, 3600)
    minutes = remainder // 60

    parts: list[str] = []
    if hours:
        parts.append(f"{hours} hour" if hours == 1 else f"{hours} hours")
    if minutes or not parts:
        parts.append(f"{minutes} minute" if minutes == 1 else f"{minutes} minutes")
    return " ".join(parts)
