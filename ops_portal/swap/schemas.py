"""Swap working day Pydantic v2 schemas."""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from ops_portal.workflow.schemas import ApprovalStateOut


class SwapRequestCreate(BaseModel):
    request_start_date: date
    request_end_date: date
    off_start_date: date
    off_end_date: date
    reason: Optional[str] = Field(None, max_length=1000)


class SwapRequestUpdate(SwapRequestCreate):
    pass


class SwapRequestOut(ApprovalStateOut):
    request_start_date: date
    request_end_date: date
    request_total_days: int
    off_start_date: date
    off_end_date: date
    off_total_days: int
    reason: Optional[str] = None
