"""Calendar arithmetic shared by the entitlement and contract code.

All functions work on ``datetime.date`` values; no time-of-day is involved
anywhere in leave law.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from typing import Iterator, Optional
from zoneinfo import ZoneInfo

from ops_portal.config import settings


def today(tz: Optional[str] = None) -> date:
    """Current date in the portal's configured time zone."""
    return datetime.now(ZoneInfo(tz or settings.TIMEZONE)).date()


def add_years(d: date, years: int) -> date:
    """Shift *d* by whole years; Feb 29 falls back to Feb 28."""
    year = d.year + years
    day = min(d.day, calendar.monthrange(year, d.month)[1])
    return d.replace(year=year, day=day)


def contract_year_end(start: date) -> date:
    """Last day of the one-year window opened at *start*."""
    return add_years(start, 1) - timedelta(days=1)


def full_months_between(anchor: date, as_of: date) -> int:
    """Full months from *anchor* to *as_of*, counted on anchor's day-of-month.

    join 2025-01-15 → 2025-02-14 is 0, → 2025-02-15 is 1. Never negative.
    """
    months = (as_of.year - anchor.year) * 12 + (as_of.month - anchor.month)
    if as_of.day < anchor.day:
        months -= 1
    return max(0, months)


def service_years(join: date, as_of: date) -> int:
    """Full anniversary years from *join* to *as_of*."""
    years = as_of.year - join.year
    if (as_of.month, as_of.day) < (join.month, join.day):
        years -= 1
    return max(0, years)


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day in ``[start, end]``."""
    cur = start
    while cur <= end:
        yield cur
        cur += timedelta(days=1)


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """True when the inclusive ranges share at least one day."""
    return a_start <= b_end and b_start <= a_end
