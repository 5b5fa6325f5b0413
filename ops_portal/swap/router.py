"""Swap working day router: work non-working days, take working days off."""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ops_portal.auth.dependencies import Actor, get_current_actor, require_admin
from ops_portal.common.constants import ApprovalLevel, InboxScope, RequestStatus
from ops_portal.common.pagination import PaginatedResponse, PaginationParams
from ops_portal.common.rate_limit import limiter
from ops_portal.database import get_db
from ops_portal.swap.schemas import SwapRequestCreate, SwapRequestOut, SwapRequestUpdate
from ops_portal.swap.service import SwapService
from ops_portal.workflow.presenters import present_one
from ops_portal.workflow.schemas import BulkDecisionRequest, BulkDecisionResult, DecisionRequest

router = APIRouter(prefix="", tags=["swaps"])


@router.post("/", response_model=SwapRequestOut, status_code=201)
async def create_swap(
    body: SwapRequestCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    request = await SwapService.create_request(db, actor, body)
    return await present_one(db, SwapRequestOut, request)


@router.get("/mine", response_model=PaginatedResponse[SwapRequestOut])
async def my_swaps(
    status: Optional[RequestStatus] = Query(None),
    params: PaginationParams = Depends(),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    data, meta = await SwapService.list_my_requests(db, actor, params, status=status)
    return PaginatedResponse(data=data, meta=meta)


@router.get("/", response_model=PaginatedResponse[SwapRequestOut])
async def list_swaps(
    status: Optional[RequestStatus] = Query(None),
    employee_id: Optional[str] = Query(None),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    params: PaginationParams = Depends(),
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Every employee's swaps (admin)."""
    data, meta = await SwapService.list_all(
        db, params, status=status, employee_id=employee_id, from_date=from_date, to_date=to_date,
    )
    return PaginatedResponse(data=data, meta=meta)


@router.get("/inbox", response_model=PaginatedResponse[SwapRequestOut])
async def swap_inbox(
    level: ApprovalLevel = Query(...),
    scope: InboxScope = Query(InboxScope.PENDING, description="PENDING: waiting for you; HISTORY: already decided"),
    params: PaginationParams = Depends(),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    data, meta = await SwapService.inbox(db, actor, level, params, scope)
    return PaginatedResponse(data=data, meta=meta)


@router.post("/bulk-decision", response_model=BulkDecisionResult)
@limiter.limit("20/minute")
async def bulk_decide_swaps(
    request: Request,
    body: BulkDecisionRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await SwapService.bulk_decide(db, actor, body)


@router.get("/{request_id}", response_model=SwapRequestOut)
async def get_swap(
    request_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    request = await SwapService.get_request(db, actor, request_id)
    return await present_one(db, SwapRequestOut, request)


@router.put("/{request_id}", response_model=SwapRequestOut)
async def update_swap(
    request_id: uuid.UUID,
    body: SwapRequestUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    request = await SwapService.update_request(db, actor, request_id, body)
    return await present_one(db, SwapRequestOut, request)


@router.post("/{request_id}/cancel", response_model=SwapRequestOut)
async def cancel_swap(
    request_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    request = await SwapService.cancel_request(db, actor, request_id)
    return await present_one(db, SwapRequestOut, request)


@router.post("/{request_id}/decision", response_model=SwapRequestOut)
async def decide_swap(
    request_id: uuid.UUID,
    body: DecisionRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    request = await SwapService.decide(db, actor, request_id, body)
    return await present_one(db, SwapRequestOut, request)
