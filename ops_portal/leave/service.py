"""Leave service layer: request lifecycle and balance enforcement.

Business logic:
  - Dates normalized against the working calendar (half-day edges, MA block)
  - Balance checked at creation against strict remaining (pending included)
  - Balance re-checked at final approval against approved history only
  - Requester edit / cancel blocked once any approver has acted
  - Approver decisions and bulk decisions through the shared guard
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ops_portal.auth.dependencies import Actor
from ops_portal.common.audit import create_audit_entry
from ops_portal.common.constants import (
    ACTIVE_STATUSES,
    ApprovalLevel,
    InboxScope,
    LeaveTypeCode,
    RequestKind,
    RequestStatus,
)
from ops_portal.common.exceptions import ValidationException
from ops_portal.common.filters import apply_filters
from ops_portal.common.pagination import PaginationMeta, PaginationParams, paginate
from ops_portal.events.publisher import ChangeEvent, queue_event
from ops_portal.holidays.service import HolidayService
from ops_portal.leave.entitlement import BalanceSnapshot
from ops_portal.leave.models import LeaveRequest
from ops_portal.leave.rules import NormalizedLeave, normalize_leave
from ops_portal.leave.schemas import LeaveRequestCreate, LeaveRequestOut, LeaveRequestUpdate
from ops_portal.profiles.models import LeaveProfile
from ops_portal.profiles.service import ProfileService
from ops_portal.workflow import engine
from ops_portal.workflow.presenters import present_many
from ops_portal.workflow.schemas import BulkDecisionRequest, BulkDecisionResult, DecisionRequest
from ops_portal.workflow.service import ApprovalService, DecisionHooks

logger = logging.getLogger(__name__)

KIND = RequestKind.LEAVE


# ── balance rules ───────────────────────────────────────────────────

def ensure_balance(snap: BalanceSnapshot, leave: NormalizedLeave, *, strict: bool) -> None:
    """Raise ValidationException when *leave* does not fit the balance.

    AL may not be requested beyond what remains; SP needs a positive SP
    balance covering the request (its AL borrowing is what lets AL go
    negative); MC and MA are capped per contract year. UL and BL are
    unmetered.
    """
    code = leave.leave_type
    if code in (LeaveTypeCode.UL, LeaveTypeCode.BL):
        return

    row = snap.get(code)
    available = row.strict_remaining if strict else row.remaining
    requested = leave.total_days

    if code == LeaveTypeCode.SP and available <= 0:
        raise ValidationException({
            "leave_type": ["No SP balance left for this contract year."],
        })
    if requested > available:
        raise ValidationException({
            "total_days": [
                f"Insufficient {code.value} balance: requested {requested}, remaining {available}.",
            ],
        })


# ── decision hooks ──────────────────────────────────────────────────

async def _before_final_approve(db: AsyncSession, obj: LeaveRequest) -> None:
    """Approved history may have changed since creation; re-check without pending."""
    profile = await ProfileService.get_profile(db, obj.requester_employee_id)
    snap = await ProfileService.compute(db, profile, as_of=obj.start_date, exclude_id=obj.id)
    leave = NormalizedLeave(
        leave_type=LeaveTypeCode(obj.leave_type),
        start_date=obj.start_date,
        end_date=obj.end_date,
        total_days=Decimal(obj.total_days),
    )
    ensure_balance(snap, leave, strict=False)


async def _after_transition(db: AsyncSession, obj: LeaveRequest) -> None:
    if RequestStatus(obj.status) == RequestStatus.APPROVED:
        await ProfileService.refresh_cache(db, obj.requester_employee_id)


HOOKS = DecisionHooks(
    before_final_approve=_before_final_approve,
    after_transition=_after_transition,
)


class LeaveService:
    """Async leave request operations."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _normalize(db: AsyncSession, data: LeaveRequestCreate) -> NormalizedLeave:
        cal = await HolidayService.load_calendar(db)
        return normalize_leave(
            cal, data.leave_type, data.start_date, data.end_date,
            data.start_half, data.end_half,
        )

    @staticmethod
    async def _check_overlap(
        db: AsyncSession,
        employee_id: str,
        start: date,
        end: date,
        *,
        exclude_id: Any = None,
    ) -> None:
        query = select(LeaveRequest.id, LeaveRequest.start_date, LeaveRequest.end_date).where(
            LeaveRequest.requester_employee_id == employee_id,
            LeaveRequest.status.in_(list(ACTIVE_STATUSES)),
            LeaveRequest.start_date <= end,
            LeaveRequest.end_date >= start,
        )
        if exclude_id is not None:
            query = query.where(LeaveRequest.id != exclude_id)
        clash = (await db.execute(query)).first()
        if clash is not None:
            raise ValidationException({
                "start_date": [
                    f"Overlaps leave request {clash.id} "
                    f"({clash.start_date.isoformat()} to {clash.end_date.isoformat()}).",
                ],
            })

    @staticmethod
    async def _check_balance(
        db: AsyncSession,
        profile: LeaveProfile,
        leave: NormalizedLeave,
        *,
        exclude_id: Any = None,
    ) -> None:
        snap = await ProfileService.compute(
            db, profile, as_of=leave.start_date, strict=True, exclude_id=exclude_id,
        )
        ensure_balance(snap, leave, strict=True)

    # ─────────────────────────────────────────────────────────────────
    # Requester operations
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def create_request(
        db: AsyncSession,
        actor: Actor,
        data: LeaveRequestCreate,
    ) -> LeaveRequest:
        profile = await ProfileService.get_active_profile(db, actor.employee_id)
        leave = await LeaveService._normalize(db, data)
        await LeaveService._check_overlap(db, actor.employee_id, leave.start_date, leave.end_date)
        await LeaveService._check_balance(db, profile, leave)

        request = LeaveRequest(
            id=uuid.uuid4(),
            requester_employee_id=actor.employee_id,
            requester_login_id=actor.login_id,
            leave_type=leave.leave_type,
            start_date=leave.start_date,
            end_date=leave.end_date,
            start_half=leave.start_half,
            end_half=leave.end_half,
            total_days=leave.total_days,
            reason=data.reason,
            **ApprovalService.initial_fields(profile),
        )
        db.add(request)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type=LeaveRequest.__tablename__,
            entity_id=request.id,
            actor_id=actor.login_id,
            new_values={
                "leave_type": leave.leave_type.value,
                "start_date": leave.start_date.isoformat(),
                "end_date": leave.end_date.isoformat(),
                "total_days": str(leave.total_days),
                "status": request.status.value,
            },
        )
        logger.info(
            "Leave %s created by %s: %s %s..%s (%s days)",
            request.id, actor.login_id, leave.leave_type.value,
            leave.start_date, leave.end_date, leave.total_days,
        )
        queue_event(db, ChangeEvent(
            name="request.created",
            kind=KIND.value,
            entity_id=str(request.id),
            actor_id=actor.login_id,
            status=request.status.value,
            data={"leave_type": leave.leave_type.value, "total_days": str(leave.total_days)},
        ))
        return request

    @staticmethod
    async def update_request(
        db: AsyncSession,
        actor: Actor,
        request_id: uuid.UUID,
        data: LeaveRequestUpdate,
    ) -> LeaveRequest:
        obj = await ApprovalService.load(db, LeaveRequest, request_id)
        ApprovalService.ensure_requester(obj, actor)
        # lock check first so a locked request reports the lock, not a balance error
        engine.ensure_requester_can_modify(obj.status, obj.approvals)

        profile = await ProfileService.get_active_profile(db, actor.employee_id)
        leave = await LeaveService._normalize(db, data)
        await LeaveService._check_overlap(
            db, actor.employee_id, leave.start_date, leave.end_date, exclude_id=obj.id,
        )
        await LeaveService._check_balance(db, profile, leave, exclude_id=obj.id)

        updated = await ApprovalService.guarded_update(
            db,
            obj,
            actor,
            {
                "leave_type": leave.leave_type,
                "start_date": leave.start_date,
                "end_date": leave.end_date,
                "start_half": leave.start_half,
                "end_half": leave.end_half,
                "total_days": leave.total_days,
                "reason": data.reason,
            },
            action="update",
        )
        queue_event(db, ChangeEvent(
            name="request.updated",
            kind=KIND.value,
            entity_id=str(updated.id),
            actor_id=actor.login_id,
            status=RequestStatus(updated.status).value,
        ))
        return updated

    @staticmethod
    async def cancel_request(
        db: AsyncSession,
        actor: Actor,
        request_id: uuid.UUID,
    ) -> LeaveRequest:
        return await ApprovalService.cancel(db, LeaveRequest, request_id, actor, kind=KIND)

    @staticmethod
    async def get_request(
        db: AsyncSession,
        actor: Actor,
        request_id: uuid.UUID,
    ) -> LeaveRequest:
        obj = await ApprovalService.load(db, LeaveRequest, request_id)
        ApprovalService.ensure_can_view(obj, actor)
        return obj

    @staticmethod
    async def list_my_requests(
        db: AsyncSession,
        actor: Actor,
        params: PaginationParams,
        *,
        status: Optional[RequestStatus] = None,
        leave_type: Optional[LeaveTypeCode] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> tuple[list[LeaveRequestOut], PaginationMeta]:
        query = apply_filters(
            select(LeaveRequest),
            LeaveRequest,
            {
                "requester_employee_id": actor.employee_id,
                "status": status,
                "leave_type": leave_type,
                "start_date__from": from_date,
                "start_date__to": to_date,
            },
        )
        rows, meta = await paginate(
            db, query, params, model=LeaveRequest, default_order=[LeaveRequest.start_date.desc()],
        )
        return await present_many(db, LeaveRequestOut, rows), meta

    # ─────────────────────────────────────────────────────────────────
    # Approver operations
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def decide(
        db: AsyncSession,
        actor: Actor,
        request_id: uuid.UUID,
        body: DecisionRequest,
    ) -> LeaveRequest:
        return await ApprovalService.decide(
            db, LeaveRequest, request_id, actor, body.action, body.note,
            kind=KIND, expected_status=body.expected_status,
            expected_revision=body.expected_revision, hooks=HOOKS,
        )

    @staticmethod
    async def bulk_decide(
        db: AsyncSession,
        actor: Actor,
        body: BulkDecisionRequest,
    ) -> BulkDecisionResult:
        return await ApprovalService.bulk_decide(
            db, LeaveRequest, body.ids, actor, body.action, body.note,
            kind=KIND, expected_status=body.expected_status, hooks=HOOKS,
        )

    @staticmethod
    async def inbox(
        db: AsyncSession,
        actor: Actor,
        level: ApprovalLevel,
        params: PaginationParams,
        scope: InboxScope = InboxScope.PENDING,
    ) -> tuple[list[LeaveRequestOut], PaginationMeta]:
        query = ApprovalService.inbox_query(LeaveRequest, actor, level, scope)
        rows, meta = await paginate(
            db, query, params, model=LeaveRequest,
            default_order=ApprovalService.inbox_order(LeaveRequest, scope),
        )
        return await present_many(db, LeaveRequestOut, rows), meta

    @staticmethod
    async def list_all(
        db: AsyncSession,
        params: PaginationParams,
        *,
        status: Optional[RequestStatus] = None,
        employee_id: Optional[str] = None,
        leave_type: Optional[LeaveTypeCode] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> tuple[list[LeaveRequestOut], PaginationMeta]:
        """Every employee's requests (admin view)."""
        query = apply_filters(
            select(LeaveRequest),
            LeaveRequest,
            {
                "requester_employee_id": employee_id,
                "status": status,
                "leave_type": leave_type,
                "start_date__from": from_date,
                "start_date__to": to_date,
            },
        )
        rows, meta = await paginate(
            db, query, params, model=LeaveRequest, default_order=[LeaveRequest.start_date.desc()],
        )
        return await present_many(db, LeaveRequestOut, rows), meta
