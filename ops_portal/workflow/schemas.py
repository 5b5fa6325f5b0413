"""Approval Pydantic v2 schemas shared by every request kind.

Naming conventions:
  - *Request  → request bodies (write)
  - *Out      → response bodies (read)
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ops_portal.common.constants import (
    ApprovalLevel,
    ApprovalMode,
    DecisionAction,
    RequestStatus,
    StepStatus,
)


# ═════════════════════════════════════════════════════════════════════
# Decisions
# ═════════════════════════════════════════════════════════════════════


class DecisionBase(BaseModel):
    action: DecisionAction
    note: Optional[str] = Field(None, max_length=1000)
    # status the client saw; the decision only lands if it is still current
    expected_status: Optional[RequestStatus] = None

    @model_validator(mode="after")
    def _reject_needs_reason(self) -> "DecisionBase":
        if self.action == DecisionAction.REJECT and not (self.note or "").strip():
            raise ValueError("A rejection reason is required")
        return self


class DecisionRequest(DecisionBase):
    # revision the approver reviewed; a requester edit since then is a conflict
    expected_revision: Optional[int] = Field(None, ge=1)


class BulkDecisionRequest(DecisionBase):
    ids: list[uuid.UUID] = Field(..., min_length=1, max_length=200)


class BulkSkip(BaseModel):
    id: uuid.UUID
    reason: str
    current_status: Optional[RequestStatus] = None


class BulkDecisionResult(BaseModel):
    processed: list[uuid.UUID] = Field(default_factory=list)
    skipped: list[BulkSkip] = Field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════
# Embedded workflow state
# ═════════════════════════════════════════════════════════════════════


class ApprovalStepOut(BaseModel):
    level: ApprovalLevel
    approver_id: Optional[str] = None
    status: StepStatus
    acted_at: Optional[datetime] = None
    note: Optional[str] = None


class ApprovalStateOut(BaseModel):
    """Fields every approvable request exposes to inbox UIs."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    requester_employee_id: str
    requester_login_id: str
    requester_name: Optional[str] = None
    department: Optional[str] = None
    approval_mode: ApprovalMode
    status: RequestStatus
    current_level: Optional[ApprovalLevel] = None
    approvals: list[ApprovalStepOut] = Field(default_factory=list)
    revision: int = 1
    manager_login_id: Optional[str] = None
    gm_login_id: Optional[str] = None
    coo_login_id: Optional[str] = None
    rejected_level: Optional[ApprovalLevel] = None
    rejected_reason: Optional[str] = None
    is_locked: bool = False
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class InboxCountOut(BaseModel):
    kind: str
    level: ApprovalLevel
    pending: int
