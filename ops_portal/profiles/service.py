"""Leave profile service: onboarding, approver setup, balances, renewal.

Business logic:
  - Profile creation opens contract #1 at the contract date (or join date)
  - Balances are computed on demand from approved (and optionally pending)
    leave; the profile only keeps a cache of the latest snapshot
  - Contract renewal closes the open contract, carries AL debt forward and
    opens the next contract in one versioned write on the profile row
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from ops_portal.auth.dependencies import Actor
from ops_portal.common.audit import create_audit_entry
from ops_portal.common.constants import (
    PENDING_STATUSES,
    ApprovalMode,
    LeaveTypeCode,
    RequestStatus,
)
from ops_portal.common.dates import full_months_between, today
from ops_portal.common.exceptions import (
    ConflictError,
    DuplicateException,
    NotFoundException,
)
from ops_portal.common.filters import apply_filters
from ops_portal.common.pagination import PaginationMeta, PaginationParams, paginate
from ops_portal.config import settings
from ops_portal.directory.service import DirectoryService
from ops_portal.events.publisher import ChangeEvent, queue_event
from ops_portal.leave.entitlement import (
    BalanceSnapshot,
    ContractTerms,
    LeaveUsage,
    compute_balances,
)
from ops_portal.leave.models import LeaveRequest
from ops_portal.profiles.contracts import open_contract, plan_renewal, select_contract
from ops_portal.profiles.models import LeaveContract, LeaveProfile
from ops_portal.profiles.schemas import (
    BalanceOut,
    BalancesOut,
    ProfileCreate,
    ProfileOut,
    ProfileUpdate,
    RenewContractRequest,
)
from ops_portal.workflow import engine

logger = logging.getLogger(__name__)


class ProfileService:

    # ─────────────────────────────────────────────────────────────────
    # Lookup
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_profile(db: AsyncSession, employee_id: str) -> LeaveProfile:
        result = await db.execute(
            select(LeaveProfile).where(LeaveProfile.employee_id == employee_id)
        )
        profile = result.scalars().first()
        if profile is None:
            raise NotFoundException("LeaveProfile", employee_id)
        return profile

    @staticmethod
    async def get_active_profile(db: AsyncSession, employee_id: str) -> LeaveProfile:
        profile = await ProfileService.get_profile(db, employee_id)
        if not profile.is_active:
            raise NotFoundException("LeaveProfile", employee_id)
        return profile

    @staticmethod
    async def to_out(db: AsyncSession, profiles: Sequence[LeaveProfile]) -> list[ProfileOut]:
        directory = await DirectoryService.lookup_many(db, (p.employee_id for p in profiles))
        out: list[ProfileOut] = []
        for p in profiles:
            item = ProfileOut.model_validate(p)
            entry = directory.get(p.employee_id)
            if entry is not None:
                item.name = entry.name
                item.department = entry.department
            out.append(item)
        return out

    @staticmethod
    async def list_profiles(
        db: AsyncSession,
        params: PaginationParams,
        *,
        is_active: Optional[bool] = None,
        approval_mode: Optional[ApprovalMode] = None,
        approver_login_id: Optional[str] = None,
    ) -> tuple[list[ProfileOut], PaginationMeta]:
        query = apply_filters(
            select(LeaveProfile),
            LeaveProfile,
            {"is_active": is_active, "approval_mode": approval_mode},
        )
        if approver_login_id:
            query = query.where(
                (LeaveProfile.manager_login_id == approver_login_id)
                | (LeaveProfile.gm_login_id == approver_login_id)
                | (LeaveProfile.coo_login_id == approver_login_id)
            )
        rows, meta = await paginate(
            db, query, params, model=LeaveProfile, default_order=[LeaveProfile.employee_id],
        )
        return await ProfileService.to_out(db, rows), meta

    # ─────────────────────────────────────────────────────────────────
    # Onboarding / setup
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def create_profile(
        db: AsyncSession,
        data: ProfileCreate,
        actor: Actor,
    ) -> LeaveProfile:
        existing = await db.execute(
            select(LeaveProfile.id).where(LeaveProfile.employee_id == data.employee_id)
        )
        if existing.scalar_one_or_none() is not None:
            raise DuplicateException("employee_id", data.employee_id)

        mode = ApprovalMode(data.approval_mode or settings.DEFAULT_APPROVAL_MODE)
        start = data.contract_date or data.join_date

        profile = LeaveProfile(
            id=uuid.uuid4(),
            employee_id=data.employee_id,
            employee_login_id=data.employee_login_id,
            join_date=data.join_date,
            current_contract_start=start,
            manager_login_id=data.manager_login_id,
            gm_login_id=data.gm_login_id,
            coo_login_id=data.coo_login_id,
            approval_mode=mode,
            is_active=True,
        )
        # fails fast when the chosen mode has no approver for one of its levels
        engine.build_approvals(mode, _approver_map(profile))

        profile.contracts = [
            LeaveContract(
                id=uuid.uuid4(),
                contract_no=1,
                start_date=start,
                end_date=data.contract_end_date,
                al_carry_in=0,
                accrual_baseline_months=full_months_between(data.join_date, start),
                opened_by=actor.login_id,
            )
        ]
        db.add(profile)
        try:
            await db.flush()
        except IntegrityError:
            raise DuplicateException("employee_id", data.employee_id)

        await create_audit_entry(
            db,
            action="create",
            entity_type="leave_profile",
            entity_id=profile.id,
            actor_id=actor.login_id,
            new_values={
                "employee_id": profile.employee_id,
                "join_date": profile.join_date.isoformat(),
                "contract_start": start.isoformat(),
                "approval_mode": mode.value,
            },
        )
        logger.info("Leave profile created for %s by %s", profile.employee_id, actor.login_id)
        return profile

    @staticmethod
    async def update_profile(
        db: AsyncSession,
        employee_id: str,
        data: ProfileUpdate,
        actor: Actor,
    ) -> LeaveProfile:
        profile = await ProfileService.get_profile(db, employee_id)
        changes = data.model_dump(exclude_unset=True)
        old = {k: getattr(profile, k) for k in changes}

        for key, value in changes.items():
            if isinstance(value, str):
                value = value.strip() or None
            setattr(profile, key, value)

        engine.build_approvals(ApprovalMode(profile.approval_mode), _approver_map(profile))
        try:
            await db.flush()
        except StaleDataError:
            raise ConflictError("Profile was changed by someone else; reload and retry.")

        await create_audit_entry(
            db,
            action="update",
            entity_type="leave_profile",
            entity_id=profile.id,
            actor_id=actor.login_id,
            old_values=old,
            new_values=changes,
        )
        return profile

    # ─────────────────────────────────────────────────────────────────
    # Balances
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def leave_usage(
        db: AsyncSession,
        employee_id: str,
        statuses: Sequence[RequestStatus],
        *,
        exclude_id: Any = None,
    ) -> list[LeaveUsage]:
        query = select(
            LeaveRequest.leave_type, LeaveRequest.start_date, LeaveRequest.total_days,
        ).where(
            LeaveRequest.requester_employee_id == employee_id,
            LeaveRequest.status.in_(list(statuses)),
        )
        if exclude_id is not None:
            query = query.where(LeaveRequest.id != exclude_id)
        rows = (await db.execute(query)).all()
        return [
            LeaveUsage(leave_type=LeaveTypeCode(r.leave_type), start_date=r.start_date, total_days=r.total_days)
            for r in rows
        ]

    @staticmethod
    def pick_contract(
        profile: LeaveProfile,
        *,
        as_of: date,
        contract_no: Optional[int] = None,
    ) -> Optional[LeaveContract]:
        contract = select_contract(
            profile.contracts,
            contract_no=contract_no,
            as_of=as_of,
            current_start=profile.current_contract_start,
        )
        if contract is None and contract_no is not None:
            raise NotFoundException("LeaveContract", contract_no)
        return contract

    @staticmethod
    async def compute(
        db: AsyncSession,
        profile: LeaveProfile,
        *,
        as_of: Optional[date] = None,
        contract_no: Optional[int] = None,
        strict: bool = False,
        exclude_id: Any = None,
    ) -> BalanceSnapshot:
        """Balances snapshot; *exclude_id* leaves one request out of the history."""
        as_of = as_of or today()
        contract = ProfileService.pick_contract(profile, as_of=as_of, contract_no=contract_no)
        terms = ContractTerms.from_contract(contract) if contract is not None else None

        approved = await ProfileService.leave_usage(
            db, profile.employee_id, [RequestStatus.APPROVED], exclude_id=exclude_id,
        )
        pending: list[LeaveUsage] = []
        if strict:
            pending = await ProfileService.leave_usage(
                db, profile.employee_id, sorted(PENDING_STATUSES), exclude_id=exclude_id,
            )
        return compute_balances(profile.join_date, terms, approved, as_of, pending)

    @staticmethod
    def snapshot_out(employee_id: str, snap: BalanceSnapshot, *, strict: bool) -> BalancesOut:
        return BalancesOut(
            employee_id=employee_id,
            as_of=snap.as_of,
            contract_no=snap.contract_no,
            window_start=snap.window_start,
            window_end=snap.window_end,
            service_years=snap.service_years,
            balances=[
                BalanceOut(
                    leave_type_code=row.leave_type_code,
                    yearly_entitlement=row.yearly_entitlement,
                    used=row.used,
                    remaining=row.remaining,
                    strict_remaining=row.strict_remaining if strict else None,
                    accrued=row.accrued,
                    carry_in=row.carry_in,
                )
                for row in snap.balances
            ],
        )

    @staticmethod
    async def refresh_cache(
        db: AsyncSession,
        employee_id: str,
        as_of: Optional[date] = None,
    ) -> BalanceSnapshot:
        """Recompute and store the cached balances.

        Written with a plain UPDATE so a cache refresh never competes with
        the profile's version counter.
        """
        profile = await ProfileService.get_profile(db, employee_id)
        snap = await ProfileService.compute(db, profile, as_of=as_of)
        await db.execute(
            update(LeaveProfile)
            .where(LeaveProfile.id == profile.id)
            .values(balances_cache=snap.to_dict(), balances_as_of=snap.as_of)
            .execution_options(synchronize_session=False)
        )
        logger.debug("Balances cache refreshed for %s as of %s", employee_id, snap.as_of)
        return snap

    # ─────────────────────────────────────────────────────────────────
    # Contract renewal
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def renew_contract(
        db: AsyncSession,
        employee_id: str,
        data: RenewContractRequest,
        actor: Actor,
    ) -> LeaveProfile:
        """Close the open contract and open the next one.

        The carry into the new contract is ``min(0, AL remaining)`` of the
        closing contract on its last day. All changes flush together under
        the profile's version check; a concurrent renewal that read the same
        version gets a ConflictError instead of a second new contract.
        """
        profile = await ProfileService.get_profile(db, employee_id)
        current = open_contract(profile.contracts)

        close_snapshot: Optional[dict] = None
        remaining_al = 0
        if current is not None:
            last_day = data.start_date - timedelta(days=1)
            snap = await ProfileService.compute(
                db, profile, as_of=max(last_day, current.start_date),
                contract_no=current.contract_no,
            )
            remaining_al = snap.get(LeaveTypeCode.AL).remaining
            close_snapshot = snap.to_dict()

        plan = plan_renewal(
            join_date=profile.join_date,
            contracts=profile.contracts,
            new_start=data.start_date,
            new_end=data.end_date,
            remaining_al=remaining_al,
        )

        now = datetime.now(timezone.utc)
        if current is not None:
            current.end_date = plan.close_on
            current.closed_at = now
            current.closed_by = actor.login_id
            current.close_snapshot = close_snapshot

        profile.contracts.append(
            LeaveContract(
                id=uuid.uuid4(),
                contract_no=plan.contract_no,
                start_date=plan.start_date,
                end_date=plan.end_date,
                al_carry_in=plan.al_carry_in,
                accrual_baseline_months=plan.accrual_baseline_months,
                opened_by=actor.login_id,
                note=data.note,
            )
        )
        profile.current_contract_start = plan.start_date

        try:
            await db.flush()
        except (StaleDataError, IntegrityError):
            raise ConflictError(
                "Contract was renewed concurrently; reload the profile and retry.",
            )

        await create_audit_entry(
            db,
            action="renew",
            entity_type="leave_profile",
            entity_id=profile.id,
            actor_id=actor.login_id,
            old_values={
                "contract_no": current.contract_no if current else None,
                "start_date": current.start_date.isoformat() if current else None,
            },
            new_values={
                "contract_no": plan.contract_no,
                "start_date": plan.start_date.isoformat(),
                "end_date": plan.end_date.isoformat() if plan.end_date else None,
                "al_carry_in": str(plan.al_carry_in),
                "accrual_baseline_months": plan.accrual_baseline_months,
            },
        )
        await ProfileService.refresh_cache(db, employee_id)
        await db.refresh(profile)

        logger.info(
            "Contract #%d opened for %s (carry %s) by %s",
            plan.contract_no, employee_id, plan.al_carry_in, actor.login_id,
        )
        queue_event(db, ChangeEvent(
            name="contract.renewed",
            kind="PROFILE",
            entity_id=str(profile.id),
            actor_id=actor.login_id,
            data={
                "employee_id": employee_id,
                "contract_no": plan.contract_no,
                "al_carry_in": str(plan.al_carry_in),
            },
        ))
        return profile


# ── helpers ─────────────────────────────────────────────────────────

def _approver_map(profile: LeaveProfile) -> dict:
    return {
        level: getattr(profile, column)
        for level, column in engine.APPROVER_COLUMN.items()
    }
