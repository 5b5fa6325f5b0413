"""Replace day ORM model."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from ops_portal.database import Base
from ops_portal.workflow.models import ApprovalMixin


class ReplaceDayRequest(ApprovalMixin, Base):
    __tablename__ = "replace_day_requests"

    request_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    compensatory_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    total_days: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), nullable=False, default=Decimal("1")
    )
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)

    # one live request per (employee, worked day, day off); cancelling frees it
    __table_args__ = (
        sa.Index(
            "uq_replace_day_requests_live_pair",
            "requester_employee_id", "request_date", "compensatory_date",
            unique=True,
            postgresql_where=sa.text("status <> 'CANCELLED'"),
            sqlite_where=sa.text("status <> 'CANCELLED'"),
        ),
    )
