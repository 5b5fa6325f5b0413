"""Leave Pydantic v2 schemas: request / response validation.

Naming conventions:
  - *Create / *Update  → request bodies (write)
  - *Out               → response bodies (read)

``total_days`` never appears on a write schema; the server derives it.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ops_portal.common.constants import HalfDay, LeaveTypeCode
from ops_portal.workflow.schemas import ApprovalStateOut


def _half(value):
    # accepts AM / PM plus the MORNING / AFTERNOON spellings older clients send
    if value is None or value == "":
        return None
    text = str(value).strip().upper()
    return {"MORNING": "AM", "AFTERNOON": "PM"}.get(text, text)


# ═════════════════════════════════════════════════════════════════════
# Write
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    leave_type: LeaveTypeCode
    start_date: date
    end_date: date
    start_half: Optional[HalfDay] = None
    end_half: Optional[HalfDay] = None
    reason: Optional[str] = Field(None, max_length=1000)

    @field_validator("leave_type", mode="before")
    @classmethod
    def _upper_code(cls, v):
        return str(v).strip().upper() if v is not None else v

    @field_validator("start_half", "end_half", mode="before")
    @classmethod
    def _normalize_half(cls, v):
        return _half(v)

    @model_validator(mode="after")
    def _date_order(self) -> "LeaveRequestCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class LeaveRequestUpdate(LeaveRequestCreate):
    """Full replacement of the editable fields."""


# ═════════════════════════════════════════════════════════════════════
# Read
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestOut(ApprovalStateOut):
    leave_type: LeaveTypeCode
    start_date: date
    end_date: date
    start_half: Optional[HalfDay] = None
    end_half: Optional[HalfDay] = None
    total_days: Decimal
    reason: Optional[str] = None
