"""Leave request normalization.

Day counts are always derived here from the dates and half-day flags; a
client-supplied total is never trusted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from ops_portal.common.constants import MA_FIXED_CALENDAR_DAYS, HalfDay, LeaveTypeCode
from ops_portal.common.exceptions import ValidationException
from ops_portal.holidays.working_calendar import WorkingCalendar

HALF = Decimal("0.5")


@dataclass(frozen=True)
class NormalizedLeave:
    leave_type: LeaveTypeCode
    start_date: date
    end_date: date
    total_days: Decimal
    start_half: Optional[HalfDay] = None
    end_half: Optional[HalfDay] = None

    @property
    def is_half_day(self) -> bool:
        return self.total_days == HALF and self.start_date == self.end_date


def normalize_leave(
    cal: WorkingCalendar,
    leave_type: LeaveTypeCode,
    start_date: date,
    end_date: date,
    start_half: Optional[HalfDay] = None,
    end_half: Optional[HalfDay] = None,
) -> NormalizedLeave:
    """Validate dates and compute the chargeable total.

    - start and end must be working days (MA: only the start)
    - MA is a fixed 90-calendar-day block and cannot be half-day
    - half-day edges take 0.5 off the working-day count each
    """
    leave_type = LeaveTypeCode(leave_type)
    if end_date < start_date:
        raise ValidationException({"end_date": ["end_date must be on or after start_date."]})

    if not cal.is_working_day(start_date):
        raise ValidationException({
            "start_date": [f"{start_date.isoformat()} is not a working day (Sunday or holiday)."],
        })

    if leave_type == LeaveTypeCode.MA:
        if start_half or end_half:
            raise ValidationException({"start_half": ["MA does not support half-day."]})
        return NormalizedLeave(
            leave_type=leave_type,
            start_date=start_date,
            end_date=start_date + timedelta(days=MA_FIXED_CALENDAR_DAYS - 1),
            total_days=Decimal(MA_FIXED_CALENDAR_DAYS),
        )

    if not cal.is_working_day(end_date):
        raise ValidationException({
            "end_date": [f"{end_date.isoformat()} is not a working day (Sunday or holiday)."],
        })

    if start_date == end_date:
        # a single day carries at most one half, whichever field it came in on
        half = start_half or end_half
        return NormalizedLeave(
            leave_type=leave_type,
            start_date=start_date,
            end_date=end_date,
            total_days=HALF if half else Decimal("1"),
            start_half=half,
        )

    working = cal.working_days(start_date, end_date)
    total = Decimal(working)
    if start_half:
        total -= HALF
    if end_half:
        total -= HALF
    return NormalizedLeave(
        leave_type=leave_type,
        start_date=start_date,
        end_date=end_date,
        total_days=max(HALF, total),
        start_half=start_half,
        end_half=end_half,
    )
