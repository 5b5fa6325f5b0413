"""Replace-day date rules.

``request_date`` is the day actually worked and may be any calendar day.
``compensatory_date`` is the day taken off in exchange and must be a
working day.
"""

from __future__ import annotations

from datetime import date

from ops_portal.common.exceptions import ValidationException
from ops_portal.holidays.working_calendar import WorkingCalendar


def validate_replace_day(
    cal: WorkingCalendar,
    request_date: date,
    compensatory_date: date,
) -> None:
    if request_date == compensatory_date:
        raise ValidationException({
            "compensatory_date": ["compensatory_date must differ from request_date."],
        })
    if not cal.is_working_day(compensatory_date):
        what = "a Sunday" if cal.is_sunday(compensatory_date) else "a holiday"
        raise ValidationException({
            "compensatory_date": [
                f"Compensatory day off must be a working day; "
                f"{compensatory_date.isoformat()} is {what}.",
            ],
        })
