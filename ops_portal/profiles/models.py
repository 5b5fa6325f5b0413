"""Leave profile ORM models: LeaveProfile, LeaveContract."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ops_portal.common.constants import ApprovalMode
from ops_portal.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LeaveProfile(Base):
    """Per-employee leave configuration, contract ledger owner."""

    __tablename__ = "leave_profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[str] = mapped_column(sa.String(64), unique=True, nullable=False)
    employee_login_id: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    join_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    current_contract_start: Mapped[Optional[date]] = mapped_column(sa.Date)

    # Approver login ids per level; unused levels may be null
    manager_login_id: Mapped[Optional[str]] = mapped_column(sa.String(100), index=True)
    gm_login_id: Mapped[Optional[str]] = mapped_column(sa.String(100), index=True)
    coo_login_id: Mapped[Optional[str]] = mapped_column(sa.String(100), index=True)
    approval_mode: Mapped[ApprovalMode] = mapped_column(
        sa.Enum(ApprovalMode, name="approval_mode", native_enum=False),
        nullable=False,
        default=ApprovalMode.MANAGER_AND_GM,
    )

    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
    balances_cache: Mapped[Optional[dict]] = mapped_column(JSONB)
    balances_as_of: Mapped[Optional[date]] = mapped_column(sa.Date)

    version: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), default=_utcnow, onupdate=_utcnow
    )

    # Relationships
    contracts: Mapped[list[LeaveContract]] = relationship(
        back_populates="profile",
        order_by="LeaveContract.contract_no",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}


class LeaveContract(Base):
    """One employment contract; contracts of a profile never overlap."""

    __tablename__ = "leave_contracts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    profile_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_profiles.id", ondelete="CASCADE"), nullable=False
    )
    contract_no: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    al_carry_in: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), nullable=False, default=Decimal("0")
    )
    accrual_baseline_months: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)

    opened_by: Mapped[Optional[str]] = mapped_column(sa.String(100))
    closed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    closed_by: Mapped[Optional[str]] = mapped_column(sa.String(100))
    close_snapshot: Mapped[Optional[dict]] = mapped_column(JSONB)
    note: Mapped[Optional[str]] = mapped_column(sa.Text)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), default=_utcnow
    )

    profile: Mapped[LeaveProfile] = relationship(back_populates="contracts")

    __table_args__ = (
        sa.UniqueConstraint("profile_id", "contract_no", name="uq_leave_contracts_profile_no"),
        sa.CheckConstraint("al_carry_in <= 0", name="carry_debt_only"),
    )

    @property
    def is_open(self) -> bool:
        return self.closed_at is None
