"""Leave ORM models: LeaveRequest."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from ops_portal.common.constants import HalfDay, LeaveTypeCode
from ops_portal.database import Base
from ops_portal.workflow.models import ApprovalMixin


class LeaveRequest(ApprovalMixin, Base):
    __tablename__ = "leave_requests"

    leave_type: Mapped[LeaveTypeCode] = mapped_column(
        sa.Enum(LeaveTypeCode, native_enum=False, length=8), nullable=False
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    start_half: Mapped[Optional[HalfDay]] = mapped_column(
        sa.Enum(HalfDay, native_enum=False, length=4)
    )
    end_half: Mapped[Optional[HalfDay]] = mapped_column(
        sa.Enum(HalfDay, native_enum=False, length=4)
    )
    total_days: Mapped[Decimal] = mapped_column(sa.Numeric(5, 1), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)

    __table_args__ = (
        sa.Index("ix_leave_requests_requester_dates", "requester_employee_id", "start_date"),
    )
