"""Leave profile router: self-service balances and admin profile management."""


from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ops_portal.auth.dependencies import Actor, get_current_actor, require_admin
from ops_portal.common.constants import ApprovalMode
from ops_portal.common.pagination import PaginatedResponse, PaginationParams
from ops_portal.database import get_db
from ops_portal.profiles.schemas import (
    BalancesOut,
    ProfileCreate,
    ProfileOut,
    ProfileUpdate,
    RenewContractRequest,
)
from ops_portal.profiles.service import ProfileService

router = APIRouter(prefix="", tags=["profiles"])


# ── Self-service ────────────────────────────────────────────────────

@router.get("/me", response_model=ProfileOut)
async def my_profile(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    profile = await ProfileService.get_profile(db, actor.employee_id)
    return (await ProfileService.to_out(db, [profile]))[0]


@router.get("/me/balances", response_model=BalancesOut)
async def my_balances(
    as_of: Optional[date] = Query(None),
    contract_no: Optional[int] = Query(None, ge=1),
    strict: bool = Query(False, description="Also subtract pending requests"),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    profile = await ProfileService.get_profile(db, actor.employee_id)
    snap = await ProfileService.compute(
        db, profile, as_of=as_of, contract_no=contract_no, strict=strict,
    )
    return ProfileService.snapshot_out(profile.employee_id, snap, strict=strict)


# ── Admin ───────────────────────────────────────────────────────────

@router.post("/", response_model=ProfileOut, status_code=201)
async def create_profile(
    body: ProfileCreate,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    profile = await ProfileService.create_profile(db, body, actor)
    return (await ProfileService.to_out(db, [profile]))[0]


@router.get("/", response_model=PaginatedResponse[ProfileOut])
async def list_profiles(
    is_active: Optional[bool] = Query(None),
    approval_mode: Optional[ApprovalMode] = Query(None),
    approver: Optional[str] = Query(None, description="Approver login id at any level"),
    params: PaginationParams = Depends(),
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    data, meta = await ProfileService.list_profiles(
        db, params, is_active=is_active, approval_mode=approval_mode, approver_login_id=approver,
    )
    return PaginatedResponse(data=data, meta=meta)


@router.get("/{employee_id}", response_model=ProfileOut)
async def get_profile(
    employee_id: str,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    profile = await ProfileService.get_profile(db, employee_id)
    return (await ProfileService.to_out(db, [profile]))[0]


@router.patch("/{employee_id}", response_model=ProfileOut)
async def update_profile(
    employee_id: str,
    body: ProfileUpdate,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Change approvers, approval mode or active flag."""
    profile = await ProfileService.update_profile(db, employee_id, body, actor)
    return (await ProfileService.to_out(db, [profile]))[0]


@router.post("/{employee_id}/renew", response_model=ProfileOut)
async def renew_contract(
    employee_id: str,
    body: RenewContractRequest,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Close the open contract and open the next one, carrying AL debt."""
    profile = await ProfileService.renew_contract(db, employee_id, body, actor)
    return (await ProfileService.to_out(db, [profile]))[0]


@router.get("/{employee_id}/balances", response_model=BalancesOut)
async def employee_balances(
    employee_id: str,
    as_of: Optional[date] = Query(None),
    contract_no: Optional[int] = Query(None, ge=1),
    strict: bool = Query(False),
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    profile = await ProfileService.get_profile(db, employee_id)
    snap = await ProfileService.compute(
        db, profile, as_of=as_of, contract_no=contract_no, strict=strict,
    )
    return ProfileService.snapshot_out(employee_id, snap, strict=strict)


@router.post("/{employee_id}/balances/refresh", response_model=BalancesOut)
async def refresh_balances(
    employee_id: str,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    snap = await ProfileService.refresh_cache(db, employee_id)
    return ProfileService.snapshot_out(employee_id, snap, strict=False)
