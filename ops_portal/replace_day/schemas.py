"""Replace day Pydantic v2 schemas."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from ops_portal.workflow.schemas import ApprovalStateOut


class ReplaceDayCreate(BaseModel):
    request_date: date
    compensatory_date: date
    reason: Optional[str] = Field(None, max_length=1000)


class ReplaceDayOut(ApprovalStateOut):
    request_date: date
    compensatory_date: date
    total_days: Decimal
    reason: Optional[str] = None
