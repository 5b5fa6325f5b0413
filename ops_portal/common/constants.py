"""Enums and constants for the ops portal leave engine."""

from __future__ import annotations

import enum
from decimal import Decimal


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    LEAVE_USER = "LEAVE_USER"
    LEAVE_MANAGER = "LEAVE_MANAGER"
    LEAVE_GM = "LEAVE_GM"
    LEAVE_COO = "LEAVE_COO"
    LEAVE_ADMIN = "LEAVE_ADMIN"
    ADMIN = "ADMIN"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveTypeCode(str, enum.Enum):
    AL = "AL"  # annual
    SP = "SP"  # special, borrows from AL
    MC = "MC"  # medical
    MA = "MA"  # maternity, fixed calendar block
    UL = "UL"  # unpaid
    BL = "BL"  # business


class HalfDay(str, enum.Enum):
    AM = "AM"
    PM = "PM"


# ── Approval workflow ───────────────────────────────────────────────

class ApprovalMode(str, enum.Enum):
    MANAGER_AND_GM = "MANAGER_AND_GM"
    MANAGER_AND_COO = "MANAGER_AND_COO"
    GM_AND_COO = "GM_AND_COO"
    MANAGER_ONLY = "MANAGER_ONLY"
    GM_ONLY = "GM_ONLY"


class ApprovalLevel(str, enum.Enum):
    MANAGER = "MANAGER"
    GM = "GM"
    COO = "COO"


class RequestStatus(str, enum.Enum):
    PENDING_MANAGER = "PENDING_MANAGER"
    PENDING_GM = "PENDING_GM"
    PENDING_COO = "PENDING_COO"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class StepStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class DecisionAction(str, enum.Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


class RequestKind(str, enum.Enum):
    LEAVE = "LEAVE"
    SWAP = "SWAP"
    REPLACE_DAY = "REPLACE_DAY"


class InboxScope(str, enum.Enum):
    PENDING = "PENDING"    # waiting for the caller at that level
    HISTORY = "HISTORY"    # already decided at that level


PENDING_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.PENDING_MANAGER,
    RequestStatus.PENDING_GM,
    RequestStatus.PENDING_COO,
})

# Statuses that still occupy the calendar (used by overlap checks)
ACTIVE_STATUSES: frozenset[RequestStatus] = PENDING_STATUSES | {RequestStatus.APPROVED}


# ── Entitlement law ─────────────────────────────────────────────────

AL_ACCRUAL_PER_MONTH = Decimal("1.5")
AL_BASE_CAP = 18
AL_CAP_STEP_YEARS = 3
SP_YEARLY_CAP = 7
MC_YEARLY_CAP = 90
MA_YEARLY_CAP = 90
MA_FIXED_CALENDAR_DAYS = 90

# ── Misc ────────────────────────────────────────────────────────────

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100
