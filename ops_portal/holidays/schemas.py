"""Holiday Pydantic v2 schemas."""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class HolidayCreate(BaseModel):
    holiday_date: date
    name: str = Field(..., min_length=1, max_length=200)


class HolidayOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    holiday_date: date
    name: str
    source: str = "database"
    created_by: Optional[str] = None


class WorkingDayOut(BaseModel):
    """Classification of one calendar day."""

    day: date
    is_working_day: bool
    is_sunday: bool
    is_holiday: bool
