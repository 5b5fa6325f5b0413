"""Working calendar, date helpers and the holiday API."""

from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from ops_portal.common.dates import (
    add_years,
    contract_year_end,
    full_months_between,
    iter_dates,
    ranges_overlap,
    service_years,
)
from ops_portal.common.exceptions import DuplicateException, NotFoundException
from ops_portal.holidays.schemas import HolidayCreate
from ops_portal.holidays.service import HolidayService
from ops_portal.holidays.working_calendar import WorkingCalendar
from tests.conftest import ADMIN, EMPLOYEE, auth_headers, seed_holiday

# 2026-03-01 and 2026-03-08 are Sundays
KHMER_NEW_YEAR = {date(2026, 4, 14), date(2026, 4, 15), date(2026, 4, 16)}


# ═════════════════════════════════════════════════════════════════════
# 1. WorkingCalendar
# ═════════════════════════════════════════════════════════════════════


class TestWorkingCalendar:

    def test_sunday_is_not_working(self):
        cal = WorkingCalendar()
        assert cal.is_sunday(date(2026, 3, 1))
        assert not cal.is_working_day(date(2026, 3, 1))

    def test_saturday_is_working(self):
        """Only Sunday is a weekly rest day."""
        cal = WorkingCalendar()
        assert cal.is_working_day(date(2026, 3, 7))

    def test_holiday_is_not_working(self):
        cal = WorkingCalendar(KHMER_NEW_YEAR)
        assert cal.is_holiday(date(2026, 4, 14))
        assert not cal.is_working_day(date(2026, 4, 14))
        assert cal.is_working_day(date(2026, 4, 13))

    def test_working_days_skip_sunday_and_holidays(self):
        cal = WorkingCalendar(KHMER_NEW_YEAR)
        # Mon 13 .. Sun 19 April: 13, 17, 18 are working
        assert cal.working_days(date(2026, 4, 13), date(2026, 4, 19)) == 3
        assert cal.working_dates(date(2026, 4, 13), date(2026, 4, 19)) == [
            date(2026, 4, 13), date(2026, 4, 17), date(2026, 4, 18),
        ]

    def test_non_working_dates(self):
        cal = WorkingCalendar(KHMER_NEW_YEAR)
        assert cal.non_working_dates(date(2026, 4, 13), date(2026, 4, 19)) == [
            date(2026, 4, 14), date(2026, 4, 15), date(2026, 4, 16), date(2026, 4, 19),
        ]

    def test_dates_lists_every_day_and_splits_cleanly(self):
        cal = WorkingCalendar(KHMER_NEW_YEAR)
        every = cal.dates(date(2026, 4, 13), date(2026, 4, 19))
        assert len(every) == 7
        assert every[0] == date(2026, 4, 13) and every[-1] == date(2026, 4, 19)
        split = cal.working_dates(date(2026, 4, 13), date(2026, 4, 19)) + cal.non_working_dates(
            date(2026, 4, 13), date(2026, 4, 19)
        )
        assert sorted(split) == every
        assert cal.dates(date(2026, 4, 19), date(2026, 4, 13)) == []

    def test_calendar_days_inclusive(self):
        cal = WorkingCalendar()
        assert cal.calendar_days(date(2026, 3, 1), date(2026, 3, 1)) == 1
        assert cal.calendar_days(date(2026, 3, 1), date(2026, 3, 8)) == 8
        assert cal.calendar_days(date(2026, 3, 8), date(2026, 3, 1)) == 0


# ═════════════════════════════════════════════════════════════════════
# 2. Date arithmetic
# ═════════════════════════════════════════════════════════════════════


class TestDateHelpers:

    def test_full_months_counts_on_anchor_day(self):
        assert full_months_between(date(2022, 1, 15), date(2022, 2, 14)) == 0
        assert full_months_between(date(2022, 1, 15), date(2022, 2, 15)) == 1
        assert full_months_between(date(2022, 1, 15), date(2023, 1, 15)) == 12

    def test_full_months_never_negative(self):
        assert full_months_between(date(2022, 5, 1), date(2022, 1, 1)) == 0

    def test_service_years_anniversary(self):
        assert service_years(date(2020, 3, 10), date(2023, 3, 9)) == 2
        assert service_years(date(2020, 3, 10), date(2023, 3, 10)) == 3

    def test_add_years_leap_day(self):
        assert add_years(date(2024, 2, 29), 1) == date(2025, 2, 28)
        assert add_years(date(2024, 2, 29), 4) == date(2028, 2, 29)

    def test_contract_year_end(self):
        assert contract_year_end(date(2025, 6, 2)) == date(2026, 6, 1)
        assert contract_year_end(date(2025, 1, 1)) == date(2025, 12, 31)

    def test_iter_dates(self):
        assert list(iter_dates(date(2026, 3, 1), date(2026, 3, 3))) == [
            date(2026, 3, 1), date(2026, 3, 2), date(2026, 3, 3),
        ]
        assert list(iter_dates(date(2026, 3, 3), date(2026, 3, 1))) == []

    def test_ranges_overlap(self):
        assert ranges_overlap(date(2026, 3, 1), date(2026, 3, 5), date(2026, 3, 5), date(2026, 3, 9))
        assert not ranges_overlap(date(2026, 3, 1), date(2026, 3, 4), date(2026, 3, 5), date(2026, 3, 9))


# ═════════════════════════════════════════════════════════════════════
# 3. HolidayService
# ═════════════════════════════════════════════════════════════════════


class TestHolidayService:

    async def test_load_calendar_merges_config_and_table(self, db: AsyncSession, monkeypatch):
        from ops_portal.config import settings

        monkeypatch.setattr(settings, "HOLIDAYS", "2026-01-01, not-a-date")
        await seed_holiday(db, date(2026, 4, 14), "Khmer New Year")

        cal = await HolidayService.load_calendar(db)
        assert cal.holidays == frozenset({date(2026, 1, 1), date(2026, 4, 14)})

    async def test_add_duplicate_holiday_conflicts(self, db: AsyncSession):
        body = HolidayCreate(holiday_date=date(2026, 4, 14), name="Khmer New Year")
        await HolidayService.add_holiday(db, body, ADMIN.login_id)
        with pytest.raises(DuplicateException):
            await HolidayService.add_holiday(db, body, ADMIN.login_id)

    async def test_delete_missing_holiday(self, db: AsyncSession):
        with pytest.raises(NotFoundException):
            await HolidayService.delete_holiday(db, date(2026, 4, 14), ADMIN.login_id)

    async def test_list_by_year_includes_configured(self, db: AsyncSession, monkeypatch):
        from ops_portal.config import settings

        monkeypatch.setattr(settings, "HOLIDAYS", "2026-01-01,2025-01-01")
        await seed_holiday(db, date(2026, 4, 14), "Khmer New Year")

        items = await HolidayService.list_holidays(db, 2026)
        assert [(h.holiday_date, h.source) for h in items] == [
            (date(2026, 1, 1), "config"),
            (date(2026, 4, 14), "database"),
        ]


# ═════════════════════════════════════════════════════════════════════
# 4. API ENDPOINTS
# ═════════════════════════════════════════════════════════════════════


async def test_api_check_day(client, db):
    """GET /api/v1/holidays/check/{day} classifies a date."""
    await seed_holiday(db, date(2026, 4, 14), "Khmer New Year")
    await db.commit()

    resp = await client.get("/api/v1/holidays/check/2026-04-14", headers=auth_headers(EMPLOYEE))
    assert resp.status_code == 200
    assert resp.json() == {
        "day": "2026-04-14",
        "is_working_day": False,
        "is_sunday": False,
        "is_holiday": True,
    }


async def test_api_add_holiday_requires_admin(client):
    resp = await client.post(
        "/api/v1/holidays/",
        json={"holiday_date": "2026-04-14", "name": "Khmer New Year"},
        headers=auth_headers(EMPLOYEE),
    )
    assert resp.status_code == 403


async def test_api_admin_adds_and_deletes_holiday(client):
    headers = auth_headers(ADMIN)
    resp = await client.post(
        "/api/v1/holidays/",
        json={"holiday_date": "2026-04-14", "name": "Khmer New Year"},
        headers=headers,
    )
    assert resp.status_code == 201

    resp = await client.get("/api/v1/holidays/?year=2026", headers=headers)
    assert [h["holiday_date"] for h in resp.json()] == ["2026-04-14"]

    resp = await client.delete("/api/v1/holidays/2026-04-14", headers=headers)
    assert resp.status_code == 204


async def test_api_holidays_requires_auth(client):
    resp = await client.get("/api/v1/holidays/")
    assert resp.status_code == 401
