"""Holiday service: builds the WorkingCalendar from config + database."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from sqlalchemy import extract, select
from sqlalchemy.ext.asyncio import AsyncSession

from ops_portal.common.audit import create_audit_entry
from ops_portal.common.exceptions import DuplicateException, NotFoundException
from ops_portal.config import settings
from ops_portal.holidays.models import Holiday
from ops_portal.holidays.schemas import HolidayCreate, HolidayOut
from ops_portal.holidays.working_calendar import WorkingCalendar

logger = logging.getLogger(__name__)


class HolidayService:

    @staticmethod
    async def load_calendar(db: AsyncSession) -> WorkingCalendar:
        """Configured HOLIDAYS merged with the holidays table."""
        result = await db.execute(select(Holiday.holiday_date))
        stored = set(result.scalars().all())
        return WorkingCalendar(settings.holiday_dates | stored)

    @staticmethod
    async def list_holidays(
        db: AsyncSession,
        year: Optional[int] = None,
    ) -> list[HolidayOut]:
        query = select(Holiday).order_by(Holiday.holiday_date)
        if year is not None:
            query = query.where(extract("year", Holiday.holiday_date) == year)
        rows = (await db.execute(query)).scalars().all()
        out = [HolidayOut.model_validate(r) for r in rows]

        stored = {r.holiday_date for r in rows}
        for d in sorted(settings.holiday_dates - stored):
            if year is None or d.year == year:
                out.append(HolidayOut(holiday_date=d, name="Configured holiday", source="config"))
        out.sort(key=lambda h: h.holiday_date)
        return out

    @staticmethod
    async def add_holiday(
        db: AsyncSession,
        data: HolidayCreate,
        actor_id: str,
    ) -> HolidayOut:
        existing = await db.get(Holiday, data.holiday_date)
        if existing is not None:
            raise DuplicateException("holiday_date", data.holiday_date.isoformat())

        holiday = Holiday(
            holiday_date=data.holiday_date,
            name=data.name.strip(),
            created_by=actor_id,
        )
        db.add(holiday)
        await db.flush()
        await create_audit_entry(
            db,
            action="create",
            entity_type="holiday",
            entity_id=data.holiday_date.isoformat(),
            actor_id=actor_id,
            new_values={"name": holiday.name},
        )
        logger.info("Holiday %s added by %s", data.holiday_date, actor_id)
        return HolidayOut.model_validate(holiday)

    @staticmethod
    async def delete_holiday(
        db: AsyncSession,
        holiday_date: date,
        actor_id: str,
    ) -> None:
        holiday = await db.get(Holiday, holiday_date)
        if holiday is None:
            raise NotFoundException("Holiday", holiday_date.isoformat())
        await db.delete(holiday)
        await db.flush()
        await create_audit_entry(
            db,
            action="delete",
            entity_type="holiday",
            entity_id=holiday_date.isoformat(),
            actor_id=actor_id,
            old_values={"name": holiday.name},
        )
