"""Holiday router: list, classify, and (admin) maintain the holiday set."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ops_portal.auth.dependencies import Actor, get_current_actor, require_admin
from ops_portal.database import get_db
from ops_portal.holidays.schemas import HolidayCreate, HolidayOut, WorkingDayOut
from ops_portal.holidays.service import HolidayService

router = APIRouter(prefix="", tags=["holidays"])


@router.get("/", response_model=list[HolidayOut])
async def list_holidays(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await HolidayService.list_holidays(db, year)


@router.get("/check/{day}", response_model=WorkingDayOut)
async def check_day(
    day: date,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Classify a single date as working / non-working."""
    cal = await HolidayService.load_calendar(db)
    return WorkingDayOut(
        day=day,
        is_working_day=cal.is_working_day(day),
        is_sunday=cal.is_sunday(day),
        is_holiday=cal.is_holiday(day),
    )


@router.post("/", response_model=HolidayOut, status_code=201)
async def add_holiday(
    body: HolidayCreate,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await HolidayService.add_holiday(db, body, actor.login_id)


@router.delete("/{holiday_date}", status_code=204)
async def delete_holiday(
    holiday_date: date,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await HolidayService.delete_holiday(db, holiday_date, actor.login_id)
