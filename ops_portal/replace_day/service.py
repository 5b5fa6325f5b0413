"""Replace day service: single-day work/compensation exchange."""

from __future__ import annotations

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ops_portal.auth.dependencies import Actor
from ops_portal.common.audit import create_audit_entry
from ops_portal.common.constants import ApprovalLevel, InboxScope, RequestKind, RequestStatus
from ops_portal.common.exceptions import DuplicateException
from ops_portal.common.filters import apply_filters
from ops_portal.common.pagination import PaginationMeta, PaginationParams, paginate
from ops_portal.events.publisher import ChangeEvent, queue_event
from ops_portal.holidays.service import HolidayService
from ops_portal.profiles.service import ProfileService
from ops_portal.replace_day.models import ReplaceDayRequest
from ops_portal.replace_day.schemas import ReplaceDayCreate, ReplaceDayOut
from ops_portal.replace_day.validators import validate_replace_day
from ops_portal.workflow.presenters import present_many
from ops_portal.workflow.schemas import BulkDecisionRequest, BulkDecisionResult, DecisionRequest
from ops_portal.workflow.service import ApprovalService

logger = logging.getLogger(__name__)

KIND = RequestKind.REPLACE_DAY


class ReplaceDayService:

    @staticmethod
    async def create_request(
        db: AsyncSession,
        actor: Actor,
        data: ReplaceDayCreate,
    ) -> ReplaceDayRequest:
        profile = await ProfileService.get_active_profile(db, actor.employee_id)
        cal = await HolidayService.load_calendar(db)
        validate_replace_day(cal, data.request_date, data.compensatory_date)

        # a cancelled request frees the pair; anything else still holds it
        duplicate = await db.execute(
            apply_filters(
                select(ReplaceDayRequest.id),
                ReplaceDayRequest,
                {
                    "requester_employee_id": actor.employee_id,
                    "request_date": data.request_date,
                    "compensatory_date": data.compensatory_date,
                    "status__ne": RequestStatus.CANCELLED,
                },
            )
        )
        pair = f"{data.request_date.isoformat()}/{data.compensatory_date.isoformat()}"
        if duplicate.first() is not None:
            raise DuplicateException("request_date/compensatory_date", pair)

        request = ReplaceDayRequest(
            id=uuid.uuid4(),
            requester_employee_id=actor.employee_id,
            requester_login_id=actor.login_id,
            request_date=data.request_date,
            compensatory_date=data.compensatory_date,
            total_days=Decimal("1"),
            reason=data.reason,
            **ApprovalService.initial_fields(profile),
        )
        db.add(request)
        try:
            await db.flush()
        except IntegrityError:
            # a concurrent create won the unique pair index
            raise DuplicateException("request_date/compensatory_date", pair)

        await create_audit_entry(
            db,
            action="create",
            entity_type=ReplaceDayRequest.__tablename__,
            entity_id=request.id,
            actor_id=actor.login_id,
            new_values={
                "request_date": data.request_date.isoformat(),
                "compensatory_date": data.compensatory_date.isoformat(),
            },
        )
        logger.info("Replace day %s created by %s", request.id, actor.login_id)
        queue_event(db, ChangeEvent(
            name="request.created",
            kind=KIND.value,
            entity_id=str(request.id),
            actor_id=actor.login_id,
            status=request.status.value,
        ))
        return request

    @staticmethod
    async def cancel_request(
        db: AsyncSession,
        actor: Actor,
        request_id: uuid.UUID,
    ) -> ReplaceDayRequest:
        return await ApprovalService.cancel(db, ReplaceDayRequest, request_id, actor, kind=KIND)

    @staticmethod
    async def get_request(
        db: AsyncSession,
        actor: Actor,
        request_id: uuid.UUID,
    ) -> ReplaceDayRequest:
        obj = await ApprovalService.load(db, ReplaceDayRequest, request_id)
        ApprovalService.ensure_can_view(obj, actor)
        return obj

    @staticmethod
    async def list_my_requests(
        db: AsyncSession,
        actor: Actor,
        params: PaginationParams,
        *,
        status: Optional[RequestStatus] = None,
    ) -> tuple[list[ReplaceDayOut], PaginationMeta]:
        query = apply_filters(
            select(ReplaceDayRequest),
            ReplaceDayRequest,
            {"requester_employee_id": actor.employee_id, "status": status},
        )
        rows, meta = await paginate(
            db, query, params, model=ReplaceDayRequest,
            default_order=[ReplaceDayRequest.request_date.desc()],
        )
        return await present_many(db, ReplaceDayOut, rows), meta

    @staticmethod
    async def decide(
        db: AsyncSession,
        actor: Actor,
        request_id: uuid.UUID,
        body: DecisionRequest,
    ) -> ReplaceDayRequest:
        return await ApprovalService.decide(
            db, ReplaceDayRequest, request_id, actor, body.action, body.note,
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
            db, ReplaceDayRequest, body.ids, actor, body.action, body.note,
            kind=KIND, expected_status=body.expected_status,
        )

    @staticmethod
    async def inbox(
        db: AsyncSession,
        actor: Actor,
        level: ApprovalLevel,
        params: PaginationParams,
        scope: InboxScope = InboxScope.PENDING,
    ) -> tuple[list[ReplaceDayOut], PaginationMeta]:
        query = ApprovalService.inbox_query(ReplaceDayRequest, actor, level, scope)
        rows, meta = await paginate(
            db, query, params, model=ReplaceDayRequest,
            default_order=ApprovalService.inbox_order(ReplaceDayRequest, scope),
        )
        return await present_many(db, ReplaceDayOut, rows), meta

    @staticmethod
    async def list_all(
        db: AsyncSession,
        params: PaginationParams,
        *,
        status: Optional[RequestStatus] = None,
        employee_id: Optional[str] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> tuple[list[ReplaceDayOut], PaginationMeta]:
        query = apply_filters(
            select(ReplaceDayRequest),
            ReplaceDayRequest,
            {
                "requester_employee_id": employee_id,
                "status": status,
                "request_date__from": from_date,
                "request_date__to": to_date,
            },
        )
        rows, meta = await paginate(
            db, query, params, model=ReplaceDayRequest,
            default_order=[ReplaceDayRequest.request_date.desc()],
        )
        return await present_many(db, ReplaceDayOut, rows), meta
