"""Working-day calendar used by the schedule calculator."""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta

ONE_DAY = timedelta(days=1)


class SchedulingMode(str, enum.Enum):
    BUSINESS_DAYS = "BUSINESS_DAYS"
    CALENDAR_DAYS = "CALENDAR_DAYS"


def parse_holidays(values: Iterable[date | str] | None) -> frozenset[date]:
    if not values:
        return frozenset()
    return frozenset(value if isinstance(value, date) else date.fromisoformat(value) for value in values)


@dataclass(frozen=True, slots=True)
class WorkCalendar:
    """Day arithmetic in business-day or calendar-day mode."""

    mode: SchedulingMode = SchedulingMode.CALENDAR_DAYS
    holidays: frozenset[date] = field(default_factory=frozenset)

    @classmethod
    def build(cls, mode: SchedulingMode, holidays: Iterable[date | str] | None = None) -> WorkCalendar:
        return cls(mode=SchedulingMode(mode), holidays=parse_holidays(holidays))

    @property
    def business_days(self) -> bool:
        return self.mode is SchedulingMode.BUSINESS_DAYS

    def is_working_day(self, value: date) -> bool:
        # Saturday == 5, Sunday == 6
        return value.weekday() < 5 and value not in self.holidays

    def next_working_day(self, value: date) -> date:
        """Return ``value`` or the first working day after it (business mode only)."""

        if not self.business_days:
            return value
        current = value
        while not self.is_working_day(current):
            current += ONE_DAY
        return current

    def advance(self, start: date, days: int) -> date:
        """Move ``days`` working (or calendar) days forward from ``start``."""

        if not self.business_days:
            return start + timedelta(days=days)
        if days <= 0:
            return start
        current = start
        remaining = days
        while remaining > 0:
            current += ONE_DAY
            if self.is_working_day(current):
                remaining -= 1
        return current

    def count_days(self, start: date, end: date) -> int:
        """Inclusive day count of ``[start, end]`` in the active mode."""

        if not self.business_days:
            return (end - start).days + 1
        count = 0
        current = start
        while current <= end:
            if self.is_working_day(current):
                count += 1
            current += ONE_DAY
        return count
