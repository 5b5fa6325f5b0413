"""Swap working day service: create, edit, cancel, list, decisions."""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ops_portal.auth.dependencies import Actor
from ops_portal.common.audit import create_audit_entry
from ops_portal.common.constants import (
    ACTIVE_STATUSES,
    ApprovalLevel,
    InboxScope,
    RequestKind,
    RequestStatus,
)
from ops_portal.common.exceptions import ValidationException
from ops_portal.common.filters import apply_filters
from ops_portal.common.pagination import PaginationMeta, PaginationParams, paginate
from ops_portal.events.publisher import ChangeEvent, queue_event
from ops_portal.holidays.service import HolidayService
from ops_portal.profiles.service import ProfileService
from ops_portal.swap.models import SwapWorkingDayRequest
from ops_portal.swap.schemas import SwapRequestCreate, SwapRequestOut
from ops_portal.swap.validators import SwapTotals, find_swap_clash, validate_swap
from ops_portal.workflow import engine
from ops_portal.workflow.presenters import present_many
from ops_portal.workflow.schemas import BulkDecisionRequest, BulkDecisionResult, DecisionRequest
from ops_portal.workflow.service import ApprovalService

logger = logging.getLogger(__name__)

KIND = RequestKind.SWAP


class SwapService:

    @staticmethod
    async def _validate(
        db: AsyncSession,
        employee_id: str,
        data: SwapRequestCreate,
        *,
        exclude_id: Any = None,
    ) -> SwapTotals:
        cal = await HolidayService.load_calendar(db)
        totals = validate_swap(
            cal,
            data.request_start_date, data.request_end_date,
            data.off_start_date, data.off_end_date,
        )

        query = select(SwapWorkingDayRequest).where(
            SwapWorkingDayRequest.requester_employee_id == employee_id,
            SwapWorkingDayRequest.status.in_(list(ACTIVE_STATUSES)),
        )
        if exclude_id is not None:
            query = query.where(SwapWorkingDayRequest.id != exclude_id)
        others = (await db.execute(query)).scalars().all()
        clash = find_swap_clash(
            data.request_start_date, data.request_end_date,
            data.off_start_date, data.off_end_date,
            others,
        )
        if clash is not None:
            raise ValidationException({
                "request_start_date": [
                    f"Overlaps your swap request {clash.id}; pick other dates.",
                ],
            })
        return totals

    # ── requester ───────────────────────────────────────────────────

    @staticmethod
    async def create_request(
        db: AsyncSession,
        actor: Actor,
        data: SwapRequestCreate,
    ) -> SwapWorkingDayRequest:
        profile = await ProfileService.get_active_profile(db, actor.employee_id)
        totals = await SwapService._validate(db, actor.employee_id, data)

        request = SwapWorkingDayRequest(
            id=uuid.uuid4(),
            requester_employee_id=actor.employee_id,
            requester_login_id=actor.login_id,
            request_start_date=data.request_start_date,
            request_end_date=data.request_end_date,
            request_total_days=totals.request_total_days,
            off_start_date=data.off_start_date,
            off_end_date=data.off_end_date,
            off_total_days=totals.off_total_days,
            reason=data.reason,
            **ApprovalService.initial_fields(profile),
        )
        db.add(request)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type=SwapWorkingDayRequest.__tablename__,
            entity_id=request.id,
            actor_id=actor.login_id,
            new_values={
                "request": [data.request_start_date.isoformat(), data.request_end_date.isoformat()],
                "off": [data.off_start_date.isoformat(), data.off_end_date.isoformat()],
                "days": totals.request_total_days,
            },
        )
        logger.info("Swap %s created by %s (%d days)", request.id, actor.login_id, totals.request_total_days)
        queue_event(db, ChangeEvent(
            name="request.created",
            kind=KIND.value,
            entity_id=str(request.id),
            actor_id=actor.login_id,
            status=request.status.value,
        ))
        return request

    @staticmethod
    async def update_request(
        db: AsyncSession,
        actor: Actor,
        request_id: uuid.UUID,
        data: SwapRequestCreate,
    ) -> SwapWorkingDayRequest:
        obj = await ApprovalService.load(db, SwapWorkingDayRequest, request_id)
        ApprovalService.ensure_requester(obj, actor)
        engine.ensure_requester_can_modify(obj.status, obj.approvals)

        totals = await SwapService._validate(db, actor.employee_id, data, exclude_id=obj.id)
        updated = await ApprovalService.guarded_update(
            db,
            obj,
            actor,
            {
                "request_start_date": data.request_start_date,
                "request_end_date": data.request_end_date,
                "request_total_days": totals.request_total_days,
                "off_start_date": data.off_start_date,
                "off_end_date": data.off_end_date,
                "off_total_days": totals.off_total_days,
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
    ) -> SwapWorkingDayRequest:
        return await ApprovalService.cancel(db, SwapWorkingDayRequest, request_id, actor, kind=KIND)

    @staticmethod
    async def get_request(
        db: AsyncSession,
        actor: Actor,
        request_id: uuid.UUID,
    ) -> SwapWorkingDayRequest:
        obj = await ApprovalService.load(db, SwapWorkingDayRequest, request_id)
        ApprovalService.ensure_can_view(obj, actor)
        return obj

    @staticmethod
    async def list_my_requests(
        db: AsyncSession,
        actor: Actor,
        params: PaginationParams,
        *,
        status: Optional[RequestStatus] = None,
    ) -> tuple[list[SwapRequestOut], PaginationMeta]:
        query = apply_filters(
            select(SwapWorkingDayRequest),
            SwapWorkingDayRequest,
            {"requester_employee_id": actor.employee_id, "status": status},
        )
        rows, meta = await paginate(
            db, query, params, model=SwapWorkingDayRequest,
            default_order=[SwapWorkingDayRequest.request_start_date.desc()],
        )
        return await present_many(db, SwapRequestOut, rows), meta

    # ── approvers ───────────────────────────────────────────────────

    @staticmethod
    async def decide(
        db: AsyncSession,
        actor: Actor,
        request_id: uuid.UUID,
        body: DecisionRequest,
    ) -> SwapWorkingDayRequest:
        return await ApprovalService.decide(
            db, SwapWorkingDayRequest, request_id, actor, body.action, body.note,
            kind=KIND, expected_status=body.expected_status,
            expected_revision=body.expected_revision,
        )

    @staticmethod
    async def bulk_decide(
        db: AsyncSession,
        actor: Actor,
        body: BulkDecisionRequest,
    ) -> BulkDecisionResult:
        return await ApprovalService.bulk_decide(
            db, SwapWorkingDayRequest, body.ids, actor, body.action, body.note,
            kind=KIND, expected_status=body.expected_status,
        )

    @staticmethod
    async def inbox(
        db: AsyncSession,
        actor: Actor,
        level: ApprovalLevel,
        params: PaginationParams,
        scope: InboxScope = InboxScope.PENDING,
    ) -> tuple[list[SwapRequestOut], PaginationMeta]:
        query = ApprovalService.inbox_query(SwapWorkingDayRequest, actor, level, scope)
        rows, meta = await paginate(
            db, query, params, model=SwapWorkingDayRequest,
            default_order=ApprovalService.inbox_order(SwapWorkingDayRequest, scope),
        )
        return await present_many(db, SwapRequestOut, rows), meta

    @staticmethod
    async def list_all(
        db: AsyncSession,
        params: PaginationParams,
        *,
        status: Optional[RequestStatus] = None,
        employee_id: Optional[str] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> tuple[list[SwapRequestOut], PaginationMeta]:
        """Every employee's swaps, filtered on the worked range start (admin view)."""
        query = apply_filters(
            select(SwapWorkingDayRequest),
            SwapWorkingDayRequest,
            {
                "requester_employee_id": employee_id,
                "status": status,
                "request_start_date__from": from_date,
                "request_start_date__to": to_date,
            },
        )
        rows, meta = await paginate(
            db, query, params, model=SwapWorkingDayRequest,
            default_order=[SwapWorkingDayRequest.request_start_date.desc()],
        )
        return await present_many(db, SwapRequestOut, rows), meta
