from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum

from .database import StorageError, WorkTrayDatabase
from .models import WorkDay
from .summary import DailySummary

logger = logging.getLogger(__name__)

MAX_MONTH_OFFSET = 12


class ChartBarColor(str, Enum):
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


@dataclass(frozen=True)
class DayChartData:
    work_day_id: str
    day: date
    hours_worked: float
    target_hours: float

    @property
    def color(self) -> ChartBarColor:
        if self.target_hours <= 0:
            return ChartBarColor.GREEN
        ratio = self.hours_worked / self.target_hours
        if ratio < 0.5:
            return ChartBarColor.RED
        if ratio < 0.9:
            return ChartBarColor.YELLOW
        return ChartBarColor.GREEN

    @property
    def day_label(self) -> str:
        return self.day.strftime("%a")


class HistoryBrowser:
    def __init__(self, db: WorkTrayDatabase):
        self._db = db
        self.work_days: list[WorkDay] = []
        self.show_unregistered_only = False

    @property
    def filtered_work_days(self) -> list[WorkDay]:
        if self.show_unregistered_only:
            return [work_day for work_day in self.work_days if not work_day.is_registered]
        return list(self.work_days)

    def load(self) -> list[WorkDay]:
        try:
            self.work_days = self._db.fetch_all_work_days()
        except StorageError:
            logger.exception("Failed to load history")
            self.work_days = []
        return self.filtered_work_days

    def toggle_registered(self, work_day_id: str) -> None:
        try:
            self._db.toggle_registered(work_day_id)
        except StorageError:
            logger.exception("Failed to toggle registered flag")
            return
        self.load()

    def summary(self, work_day: WorkDay) -> DailySummary | None:
        try:
            return self._db.daily_summary(work_day.day)
        except StorageError:
            logger.exception("Failed to load summary for %s", work_day.day)
            return None


class MonthlyChart:
    """Per-day worked hours for one month, navigable by month offset."""

    def __init__(self, db: WorkTrayDatabase, now: datetime | None = None):
        self._db = db
        self._now = now
        self.offset = 0
        self.data: list[DayChartData] = []
        self.month_label = ""
        self.total_hours = 0.0
        self.average_hours = 0.0
        self.can_navigate_previous = False
        self.can_navigate_next = False
        self._months_with_data: list[date] = []

    def load_current_month(self) -> list[DayChartData]:
        self.offset = 0
        try:
            self._months_with_data = self._db.fetch_months_with_data()
        except StorageError:
            logger.exception("Failed to load months with data")
            self._months_with_data = []
        return self._load_month()

    def previous_month(self) -> list[DayChartData]:
        self.offset -= 1
        return self._load_month()

    def next_month(self) -> list[DayChartData]:
        self.offset += 1
        return self._load_month()

    def _reference_now(self) -> datetime:
        return self._now or datetime.now().astimezone()

    def _load_month(self) -> list[DayChartData]:
        first = shift_month(self._reference_now().date(), self.offset)
        last = shift_month(first, 1) - timedelta(days=1)
        self.month_label = first.strftime("%B %Y")

        try:
            work_days = self._db.fetch_work_days(first, last)
            data: list[DayChartData] = []
            for work_day in work_days:
                summary = self._db.daily_summary(work_day.day)
                worked = summary.worked_seconds(self._reference_now()) if summary else 0.0
                data.append(
                    DayChartData(
                        work_day_id=work_day.id,
                        day=work_day.day,
                        hours_worked=worked / 3600.0,
                        target_hours=work_day.target_hours,
                    )
                )
        except StorageError:
            logger.exception("Failed to load chart data")
            self.data = []
            return self.data

        self.data = sorted(data, key=lambda entry: entry.day)
        self.total_hours = sum(entry.hours_worked for entry in self.data)
        self.average_hours = self.total_hours / len(self.data) if self.data else 0.0
        self._update_navigation(first)
        return self.data

    def _update_navigation(self, month: date) -> None:
        if not self._months_with_data:
            self.can_navigate_previous = False
            self.can_navigate_next = False
            return
        from_earliest = months_between(self._months_with_data[0], month)
        to_latest = months_between(month, self._months_with_data[-1])
        self.can_navigate_previous = self.offset > -MAX_MONTH_OFFSET and from_earliest > 0
        self.can_navigate_next = self.offset < MAX_MONTH_OFFSET and to_latest > 0


def shift_month(day: date, offset: int) -> date:
    """First day of the month ``offset`` months away from ``day``'s month."""
    index = day.year * 12 + (day.month - 1) + offset
    return date(index // 12, index % 12 + 1, 1)


def months_between(start: date, end: date) -> int:
    return (end.year - start.year) * 12 + (end.month - start.month)
