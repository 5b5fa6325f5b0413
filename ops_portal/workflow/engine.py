"""Approval state machine.

Each ``ApprovalMode`` maps to the ordered levels that must approve. The
status of a request is the pending status of the first level that has
not approved yet, ``APPROVED`` once every level has approved, or
``REJECTED`` as soon as any level rejects.

The ``approvals`` list stored on each request is the only record of
per-level decisions: ``{level, approver_id, status, acted_at, note}`` in
mode order. Per-level comment / timestamp accessors are derived from it.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from ops_portal.common.constants import (
    PENDING_STATUSES,
    ApprovalLevel,
    ApprovalMode,
    DecisionAction,
    RequestStatus,
    StepStatus,
)
from ops_portal.common.exceptions import (
    InvalidStateException,
    LockedException,
    ValidationException,
)

# ── Mode table ──────────────────────────────────────────────────────

MODE_LEVELS: dict[ApprovalMode, tuple[ApprovalLevel, ...]] = {
    ApprovalMode.MANAGER_AND_GM: (ApprovalLevel.MANAGER, ApprovalLevel.GM),
    ApprovalMode.MANAGER_AND_COO: (ApprovalLevel.MANAGER, ApprovalLevel.COO),
    ApprovalMode.GM_AND_COO: (ApprovalLevel.GM, ApprovalLevel.COO),
    ApprovalMode.MANAGER_ONLY: (ApprovalLevel.MANAGER,),
    ApprovalMode.GM_ONLY: (ApprovalLevel.GM,),
}

PENDING_FOR_LEVEL: dict[ApprovalLevel, RequestStatus] = {
    ApprovalLevel.MANAGER: RequestStatus.PENDING_MANAGER,
    ApprovalLevel.GM: RequestStatus.PENDING_GM,
    ApprovalLevel.COO: RequestStatus.PENDING_COO,
}

LEVEL_FOR_PENDING: dict[RequestStatus, ApprovalLevel] = {
    status: level for level, status in PENDING_FOR_LEVEL.items()
}

# Column on the request holding the assigned approver for each level
APPROVER_COLUMN: dict[ApprovalLevel, str] = {
    ApprovalLevel.MANAGER: "manager_login_id",
    ApprovalLevel.GM: "gm_login_id",
    ApprovalLevel.COO: "coo_login_id",
}

_unmapped = set(ApprovalMode) - set(MODE_LEVELS)
if _unmapped:
    raise RuntimeError(f"Approval modes without a level table: {sorted(m.value for m in _unmapped)}")
_unmapped = set(ApprovalLevel) - set(PENDING_FOR_LEVEL)
if _unmapped:
    raise RuntimeError(f"Approval levels without a pending status: {sorted(lv.value for lv in _unmapped)}")
del _unmapped


# ── Transitions ─────────────────────────────────────────────────────

def levels_for(mode: ApprovalMode) -> tuple[ApprovalLevel, ...]:
    return MODE_LEVELS[ApprovalMode(mode)]


def initial_status(mode: ApprovalMode) -> RequestStatus:
    return PENDING_FOR_LEVEL[levels_for(mode)[0]]


def active_level(status: RequestStatus) -> Optional[ApprovalLevel]:
    """Level whose decision the request is waiting for, if any."""
    return LEVEL_FOR_PENDING.get(RequestStatus(status))


def next_status(
    mode: ApprovalMode,
    level: ApprovalLevel,
    action: DecisionAction,
) -> RequestStatus:
    levels = levels_for(mode)
    if level not in levels:
        raise InvalidStateException(
            f"Level {level.value} does not take part in mode {ApprovalMode(mode).value}."
        )
    if action == DecisionAction.REJECT:
        return RequestStatus.REJECTED
    idx = levels.index(level)
    if idx == len(levels) - 1:
        return RequestStatus.APPROVED
    return PENDING_FOR_LEVEL[levels[idx + 1]]


# ── approvals[] construction and updates ────────────────────────────

def build_approvals(
    mode: ApprovalMode,
    approvers: Mapping[ApprovalLevel, Optional[str]],
) -> list[dict[str, Any]]:
    """Fresh pending steps for every level in *mode*.

    Raises ValidationException when a participating level has no
    approver assigned.
    """
    steps: list[dict[str, Any]] = []
    missing: list[str] = []
    for level in levels_for(mode):
        approver = (approvers.get(level) or "").strip()
        if not approver:
            missing.append(f"No {level.value} approver is configured for mode {ApprovalMode(mode).value}.")
            continue
        steps.append({
            "level": level.value,
            "approver_id": approver,
            "status": StepStatus.PENDING.value,
            "acted_at": None,
            "note": None,
        })
    if missing:
        raise ValidationException({"approvers": missing})
    return steps


def record_decision(
    approvals: list[dict[str, Any]],
    level: ApprovalLevel,
    action: DecisionAction,
    approver_id: str,
    note: Optional[str],
    acted_at: Optional[datetime] = None,
) -> list[dict[str, Any]]:
    """Return a new approvals list with *level*'s step decided."""
    when = (acted_at or datetime.now(timezone.utc)).isoformat()
    status = StepStatus.APPROVED if action == DecisionAction.APPROVE else StepStatus.REJECTED
    out: list[dict[str, Any]] = []
    found = False
    for step in approvals:
        step = dict(step)
        if step.get("level") == level.value:
            step.update(
                status=status.value,
                approver_id=approver_id,
                acted_at=when,
                note=(note or "").strip() or None,
            )
            found = True
        out.append(step)
    if not found:
        raise InvalidStateException(f"No approval step for level {level.value}.")
    return out


# ── Derived accessors ───────────────────────────────────────────────

def step_for(approvals: list[dict[str, Any]] | None, level: ApprovalLevel) -> Optional[dict[str, Any]]:
    for step in approvals or []:
        if step.get("level") == ApprovalLevel(level).value:
            return step
    return None


def has_any_action(approvals: list[dict[str, Any]] | None) -> bool:
    return any(s.get("status") != StepStatus.PENDING.value for s in approvals or [])


def rejected_step(approvals: list[dict[str, Any]] | None) -> Optional[dict[str, Any]]:
    for step in approvals or []:
        if step.get("status") == StepStatus.REJECTED.value:
            return step
    return None


# ── Guards ──────────────────────────────────────────────────────────

def ensure_requester_can_modify(
    status: RequestStatus,
    approvals: list[dict[str, Any]] | None,
) -> None:
    """Requester edits and cancels stop once any level has acted."""
    status = RequestStatus(status)
    if status not in PENDING_STATUSES:
        raise LockedException(
            f"Request is already {status.value} and can no longer be changed.",
            current_status=status.value,
        )
    if has_any_action(approvals):
        raise LockedException(
            "An approver has already acted on this request; it can no longer be edited or cancelled.",
            current_status=status.value,
        )


def assert_consistent(
    mode: ApprovalMode,
    status: RequestStatus,
    approvals: list[dict[str, Any]] | None,
) -> None:
    """Reject stored states that the transition table cannot produce."""
    status = RequestStatus(status)
    levels = levels_for(mode)
    recorded = [s.get("level") for s in approvals or []]
    if recorded != [lv.value for lv in levels]:
        raise InvalidStateException(
            f"approvals list {recorded} does not match mode {ApprovalMode(mode).value}.",
            current_status=status.value,
        )
    if status not in PENDING_STATUSES:
        return

    level = LEVEL_FOR_PENDING[status]
    if level not in levels:
        raise InvalidStateException(
            f"Status {status.value} is not reachable in mode {ApprovalMode(mode).value}.",
            current_status=status.value,
        )
    idx = levels.index(level)
    for i, step in enumerate(approvals or []):
        expected = StepStatus.APPROVED.value if i < idx else StepStatus.PENDING.value
        if step.get("status") != expected:
            raise InvalidStateException(
                f"Request is {status.value} but level {step.get('level')} is {step.get('status')}.",
                current_status=status.value,
            )
