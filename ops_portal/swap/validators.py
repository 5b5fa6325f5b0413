"""Swap-working-day date rules.

The employee works every day of the request range (all non-working days)
and takes the off range (all working days) in exchange. The number of
calendar days worked must equal the number of working days taken off.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable

from ops_portal.common.dates import ranges_overlap
from ops_portal.common.exceptions import ValidationException
from ops_portal.holidays.working_calendar import WorkingCalendar

_MAX_LISTED = 5


@dataclass(frozen=True)
class SwapTotals:
    request_total_days: int
    off_total_days: int


def _listing(days: list[date]) -> str:
    shown = ", ".join(d.isoformat() for d in days[:_MAX_LISTED])
    if len(days) > _MAX_LISTED:
        shown += f" (+{len(days) - _MAX_LISTED} more)"
    return shown


def validate_swap(
    cal: WorkingCalendar,
    request_start: date,
    request_end: date,
    off_start: date,
    off_end: date,
) -> SwapTotals:
    """Check one swap on its own; raises ValidationException listing every problem."""
    errors: dict[str, list[str]] = {}

    if request_end < request_start:
        errors.setdefault("request_end_date", []).append(
            "request_end_date must be on or after request_start_date."
        )
    if off_end < off_start:
        errors.setdefault("off_end_date", []).append(
            "off_end_date must be on or after off_start_date."
        )
    if errors:
        raise ValidationException(errors)

    working_in_request = cal.working_dates(request_start, request_end)
    if working_in_request:
        errors.setdefault("request_start_date", []).append(
            "Request dates must all be non-working days (Sunday or holiday); "
            f"working: {_listing(working_in_request)}."
        )

    non_working_in_off = cal.non_working_dates(off_start, off_end)
    if non_working_in_off:
        errors.setdefault("off_start_date", []).append(
            f"Off dates must all be working days; non-working: {_listing(non_working_in_off)}."
        )

    if ranges_overlap(request_start, request_end, off_start, off_end):
        errors.setdefault("off_start_date", []).append(
            "Request dates and off dates cannot overlap."
        )

    request_total = cal.calendar_days(request_start, request_end)
    off_total = cal.working_days(off_start, off_end)
    if request_total != off_total:
        errors.setdefault("off_end_date", []).append(
            f"Off dates must cover exactly {request_total} working day(s); got {off_total}."
        )

    if errors:
        raise ValidationException(errors)
    return SwapTotals(request_total_days=request_total, off_total_days=off_total)


def find_swap_clash(
    request_start: date,
    request_end: date,
    off_start: date,
    off_end: date,
    others: Iterable[Any],
) -> Any:
    """First other swap whose request or off range touches either of ours."""
    mine = ((request_start, request_end), (off_start, off_end))
    for other in others:
        theirs = (
            (other.request_start_date, other.request_end_date),
            (other.off_start_date, other.off_end_date),
        )
        for a in mine:
            for b in theirs:
                if ranges_overlap(a[0], a[1], b[0], b[1]):
                    return other
    return None
