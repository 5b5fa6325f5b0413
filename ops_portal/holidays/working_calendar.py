"""Working-day classification.

A working day is any calendar day that is neither a Sunday nor a holiday.
Every rule that talks about "working days" (accrual, leave totals, swap
and replace-day validation) goes through ``WorkingCalendar``.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable

from ops_portal.common.dates import iter_dates

SUNDAY = 6


class WorkingCalendar:
    """Immutable holiday set with working-day queries."""

    __slots__ = ("_holidays",)

    def __init__(self, holidays: Iterable[date] = ()) -> None:
        self._holidays = frozenset(holidays)

    @property
    def holidays(self) -> frozenset[date]:
        return self._holidays

    @staticmethod
    def is_sunday(d: date) -> bool:
        return d.weekday() == SUNDAY

    def is_holiday(self, d: date) -> bool:
        return d in self._holidays

    def is_working_day(self, d: date) -> bool:
        return not self.is_sunday(d) and d not in self._holidays

    def dates(self, start: date, end: date) -> list[date]:
        return list(iter_dates(start, end))

    def working_dates(self, start: date, end: date) -> list[date]:
        return [d for d in self.dates(start, end) if self.is_working_day(d)]

    def non_working_dates(self, start: date, end: date) -> list[date]:
        return [d for d in self.dates(start, end) if not self.is_working_day(d)]

    def calendar_days(self, start: date, end: date) -> int:
        if end < start:
            return 0
        return (end - start).days + 1

    def working_days(self, start: date, end: date) -> int:
        return len(self.working_dates(start, end))

    def __repr__(self) -> str:
        return f"<WorkingCalendar holidays={len(self._holidays)}>"
