"""Leave router: apply, edit, cancel, my requests, approvals.

All endpoints require authentication. Decisions are checked against the
approver assigned on the request, not against roles.
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ops_portal.auth.dependencies import Actor, get_current_actor, require_admin
from ops_portal.common.constants import ApprovalLevel, InboxScope, LeaveTypeCode, RequestStatus
from ops_portal.common.pagination import PaginatedResponse, PaginationParams
from ops_portal.common.rate_limit import limiter
from ops_portal.database import get_db
from ops_portal.leave.schemas import LeaveRequestCreate, LeaveRequestOut, LeaveRequestUpdate
from ops_portal.leave.service import LeaveService
from ops_portal.workflow.presenters import present_one
from ops_portal.workflow.schemas import BulkDecisionRequest, BulkDecisionResult, DecisionRequest

router = APIRouter(prefix="", tags=["leave"])


# ── POST / ──────────────────────────────────────────────────────────

@router.post("/", response_model=LeaveRequestOut, status_code=201)
async def create_leave(
    body: LeaveRequestCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Apply for leave. Totals are computed server-side; balance and overlap checked."""
    request = await LeaveService.create_request(db, actor, body)
    return await present_one(db, LeaveRequestOut, request)


# ── GET /mine ───────────────────────────────────────────────────────

@router.get("/mine", response_model=PaginatedResponse[LeaveRequestOut])
async def my_leaves(
    status: Optional[RequestStatus] = Query(None),
    leave_type: Optional[LeaveTypeCode] = Query(None),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    params: PaginationParams = Depends(),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    data, meta = await LeaveService.list_my_requests(
        db, actor, params,
        status=status, leave_type=leave_type, from_date=from_date, to_date=to_date,
    )
    return PaginatedResponse(data=data, meta=meta)


# ── GET / (admin) ──────────────────────────────────────────────────

@router.get("/", response_model=PaginatedResponse[LeaveRequestOut])
async def list_leaves(
    status: Optional[RequestStatus] = Query(None),
    employee_id: Optional[str] = Query(None),
    leave_type: Optional[LeaveTypeCode] = Query(None),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    params: PaginationParams = Depends(),
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Every employee's leave requests (admin)."""
    data, meta = await LeaveService.list_all(
        db, params,
        status=status, employee_id=employee_id, leave_type=leave_type,
        from_date=from_date, to_date=to_date,
    )
    return PaginatedResponse(data=data, meta=meta)


# ── GET /inbox ──────────────────────────────────────────────────────

@router.get("/inbox", response_model=PaginatedResponse[LeaveRequestOut])
async def leave_inbox(
    level: ApprovalLevel = Query(...),
    scope: InboxScope = Query(InboxScope.PENDING, description="PENDING: waiting for you; HISTORY: already decided"),
    params: PaginationParams = Depends(),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Requests waiting at *level* for the caller (admins see all)."""
    data, meta = await LeaveService.inbox(db, actor, level, params, scope)
    return PaginatedResponse(data=data, meta=meta)


# ── POST /bulk-decision ─────────────────────────────────────────────

@router.post("/bulk-decision", response_model=BulkDecisionResult)
@limiter.limit("20/minute")
async def bulk_decide_leave(
    request: Request,
    body: BulkDecisionRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.bulk_decide(db, actor, body)


# ── GET /{id} ───────────────────────────────────────────────────────

@router.get("/{request_id}", response_model=LeaveRequestOut)
async def get_leave(
    request_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    request = await LeaveService.get_request(db, actor, request_id)
    return await present_one(db, LeaveRequestOut, request)


# ── PUT /{id} ───────────────────────────────────────────────────────

@router.put("/{request_id}", response_model=LeaveRequestOut)
async def update_leave(
    request_id: uuid.UUID,
    body: LeaveRequestUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Edit a request nobody has acted on yet."""
    request = await LeaveService.update_request(db, actor, request_id, body)
    return await present_one(db, LeaveRequestOut, request)


# ── POST /{id}/cancel ───────────────────────────────────────────────

@router.post("/{request_id}/cancel", response_model=LeaveRequestOut)
async def cancel_leave(
    request_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    request = await LeaveService.cancel_request(db, actor, request_id)
    return await present_one(db, LeaveRequestOut, request)


# ── POST /{id}/decision ─────────────────────────────────────────────

@router.post("/{request_id}/decision", response_model=LeaveRequestOut)
async def decide_leave(
    request_id: uuid.UUID,
    body: DecisionRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Approve or reject at the request's current level (409 if it moved on)."""
    request = await LeaveService.decide(db, actor, request_id, body)
    return await present_one(db, LeaveRequestOut, request)
