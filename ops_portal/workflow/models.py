"""Columns shared by every approvable request table."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from ops_portal.common.constants import ApprovalLevel, ApprovalMode, RequestStatus
from ops_portal.workflow import engine


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApprovalMixin:
    """Requester, approvers, status and the approvals[] audit list.

    Per-level comment / decided-at / rejection accessors read from
    ``approvals``; nothing else stores decisions.
    """

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    requester_employee_id: Mapped[str] = mapped_column(sa.String(64), nullable=False, index=True)
    requester_login_id: Mapped[str] = mapped_column(sa.String(100), nullable=False)

    approval_mode: Mapped[ApprovalMode] = mapped_column(
        sa.Enum(ApprovalMode, native_enum=False, length=32), nullable=False
    )
    status: Mapped[RequestStatus] = mapped_column(
        sa.Enum(RequestStatus, native_enum=False, length=32), nullable=False, index=True
    )
    manager_login_id: Mapped[Optional[str]] = mapped_column(sa.String(100), index=True)
    gm_login_id: Mapped[Optional[str]] = mapped_column(sa.String(100), index=True)
    coo_login_id: Mapped[Optional[str]] = mapped_column(sa.String(100), index=True)
    approvals: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    # bumped by every edit and decision; decisions match the revision they loaded
    revision: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=1, server_default="1")

    cancelled_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    cancelled_by: Mapped[Optional[str]] = mapped_column(sa.String(100))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), default=_utcnow, onupdate=_utcnow
    )

    # ── derived from approvals ──────────────────────────────────────

    def _step_value(self, level: ApprovalLevel, key: str) -> Any:
        step = engine.step_for(self.approvals, level)
        return step.get(key) if step else None

    @property
    def is_locked(self) -> bool:
        return engine.has_any_action(self.approvals)

    @property
    def current_level(self) -> Optional[ApprovalLevel]:
        return engine.active_level(self.status)

    @property
    def rejected_level(self) -> Optional[ApprovalLevel]:
        step = engine.rejected_step(self.approvals)
        return ApprovalLevel(step["level"]) if step else None

    @property
    def rejected_reason(self) -> Optional[str]:
        step = engine.rejected_step(self.approvals)
        return step.get("note") if step else None

    @property
    def manager_comment(self) -> Optional[str]:
        return self._step_value(ApprovalLevel.MANAGER, "note")

    @property
    def manager_decided_at(self) -> Optional[str]:
        return self._step_value(ApprovalLevel.MANAGER, "acted_at")

    @property
    def gm_comment(self) -> Optional[str]:
        return self._step_value(ApprovalLevel.GM, "note")

    @property
    def gm_decided_at(self) -> Optional[str]:
        return self._step_value(ApprovalLevel.GM, "acted_at")

    @property
    def coo_comment(self) -> Optional[str]:
        return self._step_value(ApprovalLevel.COO, "note")

    @property
    def coo_decided_at(self) -> Optional[str]:
        return self._step_value(ApprovalLevel.COO, "acted_at")
