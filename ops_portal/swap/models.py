"""Swap working day ORM model."""

from __future__ import annotations

from datetime import date
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from ops_portal.database import Base
from ops_portal.workflow.models import ApprovalMixin


class SwapWorkingDayRequest(ApprovalMixin, Base):
    __tablename__ = "swap_working_day_requests"

    request_start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    request_end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    request_total_days: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    off_start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    off_end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    off_total_days: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
