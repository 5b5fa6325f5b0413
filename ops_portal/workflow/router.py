"""Approvals router: pending counts across every request kind."""


from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ops_portal.auth.dependencies import Actor, get_current_actor
from ops_portal.common.constants import ApprovalLevel, RequestKind
from ops_portal.database import get_db
from ops_portal.leave.models import LeaveRequest
from ops_portal.replace_day.models import ReplaceDayRequest
from ops_portal.swap.models import SwapWorkingDayRequest
from ops_portal.workflow.schemas import InboxCountOut
from ops_portal.workflow.service import ApprovalService

router = APIRouter(prefix="", tags=["approvals"])

REQUEST_MODELS = {
    RequestKind.LEAVE: LeaveRequest,
    RequestKind.SWAP: SwapWorkingDayRequest,
    RequestKind.REPLACE_DAY: ReplaceDayRequest,
}


@router.get("/inbox-counts", response_model=list[InboxCountOut])
async def inbox_counts(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Pending item counts per kind and level for the current approver."""
    out: list[InboxCountOut] = []
    for kind, model in REQUEST_MODELS.items():
        for level in ApprovalLevel:
            pending = await ApprovalService.inbox_count(db, model, actor, level)
            out.append(InboxCountOut(kind=kind.value, level=level, pending=pending))
    return out
