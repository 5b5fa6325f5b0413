"""Approval service: decisions, bulk decisions, cancellation, inboxes.

Generic over the request tables (leave, swap, replace-day): every table
uses ``ApprovalMixin`` and every status write goes through
``guard.try_transition``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence

from sqlalchemy import ColumnElement, Select, and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ops_portal.auth.dependencies import Actor
from ops_portal.common.audit import create_audit_entry
from ops_portal.common.constants import (
    PENDING_STATUSES,
    ApprovalLevel,
    ApprovalMode,
    DecisionAction,
    InboxScope,
    RequestKind,
    RequestStatus,
    StepStatus,
)
from ops_portal.common.exceptions import (
    AppException,
    ConflictError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from ops_portal.common.pagination import count_rows
from ops_portal.events.publisher import ChangeEvent, queue_event
from ops_portal.workflow import engine
from ops_portal.workflow.guard import try_transition
from ops_portal.workflow.schemas import BulkDecisionResult, BulkSkip

logger = logging.getLogger(__name__)

Hook = Callable[[AsyncSession, Any], Awaitable[None]]

_DECIDED_STEPS = (StepStatus.APPROVED.value, StepStatus.REJECTED.value)


@dataclass(frozen=True)
class DecisionHooks:
    """Kind-specific callbacks around a decision.

    ``before_final_approve`` may raise to veto the last approval (e.g. the
    balance no longer covers the request). ``after_transition`` runs once
    the new status is written and must not raise.
    """

    before_final_approve: Optional[Hook] = None
    after_transition: Optional[Hook] = None


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ApprovalService:

    # ── creation helpers ────────────────────────────────────────────

    @staticmethod
    def approvers_of(profile: Any) -> dict[ApprovalLevel, Optional[str]]:
        return {
            level: getattr(profile, column)
            for level, column in engine.APPROVER_COLUMN.items()
        }

    @staticmethod
    def initial_fields(profile: Any, mode: Optional[ApprovalMode] = None) -> dict[str, Any]:
        """Workflow columns for a new request from *profile*'s approver setup."""
        mode = ApprovalMode(mode or profile.approval_mode)
        approvers = ApprovalService.approvers_of(profile)
        approvals = engine.build_approvals(mode, approvers)
        participating = engine.levels_for(mode)
        fields: dict[str, Any] = {
            "approval_mode": mode,
            "status": engine.initial_status(mode),
            "approvals": approvals,
        }
        for level, column in engine.APPROVER_COLUMN.items():
            fields[column] = approvers[level] if level in participating else None
        return fields

    # ── loading ─────────────────────────────────────────────────────

    @staticmethod
    async def load(db: AsyncSession, model: type, request_id: Any) -> Any:
        obj = await db.get(model, request_id)
        if obj is None:
            raise NotFoundException(model.__name__, request_id)
        return obj

    @staticmethod
    def ensure_requester(obj: Any, actor: Actor) -> None:
        if obj.requester_employee_id != actor.employee_id:
            raise ForbiddenException("Only the requester can change this request.")

    @staticmethod
    def ensure_can_view(obj: Any, actor: Actor) -> None:
        if actor.is_admin or obj.requester_employee_id == actor.employee_id:
            return
        if actor.login_id in {obj.manager_login_id, obj.gm_login_id, obj.coo_login_id}:
            return
        raise ForbiddenException("You are not the requester or an approver of this request.")

    # ── decisions ───────────────────────────────────────────────────

    @staticmethod
    async def decide(
        db: AsyncSession,
        model: type,
        request_id: Any,
        actor: Actor,
        action: DecisionAction,
        note: Optional[str] = None,
        *,
        kind: RequestKind,
        expected_status: Optional[RequestStatus] = None,
        expected_revision: Optional[int] = None,
        hooks: Optional[DecisionHooks] = None,
    ) -> Any:
        """Record *actor*'s decision at the request's current level."""
        hooks = hooks or DecisionHooks()
        action = DecisionAction(action)
        if action == DecisionAction.REJECT and not (note or "").strip():
            raise ValidationException({"note": ["A rejection reason is required."]})

        obj = await ApprovalService.load(db, model, request_id)
        mode = ApprovalMode(obj.approval_mode)
        expected = RequestStatus(expected_status or obj.status)

        if expected not in PENDING_STATUSES:
            raise ConflictError(
                f"Request is already {expected.value}.",
                current_status=RequestStatus(obj.status).value,
            )
        if expected_revision is not None and expected_revision != obj.revision:
            raise ConflictError(
                "The request was edited after you loaded it; review it again.",
                current_status=RequestStatus(obj.status).value,
            )

        level = engine.active_level(expected)
        levels = engine.levels_for(mode)
        if level not in levels:
            raise ConflictError(
                f"Request in mode {mode.value} is never {expected.value}.",
                current_status=RequestStatus(obj.status).value,
            )

        column = engine.APPROVER_COLUMN[level]
        if getattr(obj, column) != actor.login_id:
            mine = [lv for lv in levels if getattr(obj, engine.APPROVER_COLUMN[lv]) == actor.login_id]
            if not mine:
                raise ForbiddenException("You are not an assigned approver for this request.")
            raise ConflictError(
                f"Request is waiting for the {level.value} decision.",
                current_status=RequestStatus(obj.status).value,
            )

        if RequestStatus(obj.status) == expected:
            engine.assert_consistent(mode, obj.status, obj.approvals)

        new_status = engine.next_status(mode, level, action)
        if new_status == RequestStatus.APPROVED and hooks.before_final_approve:
            await hooks.before_final_approve(db, obj)

        old_status = RequestStatus(obj.status).value
        approvals = engine.record_decision(
            obj.approvals, level, action, actor.login_id, note, acted_at=_now(),
        )
        updated = await try_transition(
            db,
            model,
            obj.id,
            expected_status=expected,
            match={column: actor.login_id, "revision": obj.revision},
            values={"status": new_status, "approvals": approvals, "revision": obj.revision + 1},
        )

        await create_audit_entry(
            db,
            action="approve" if action == DecisionAction.APPROVE else "reject",
            entity_type=model.__tablename__,
            entity_id=updated.id,
            actor_id=actor.login_id,
            old_values={"status": old_status},
            new_values={"status": new_status.value, "level": level.value, "note": note},
        )
        if hooks.after_transition:
            await hooks.after_transition(db, updated)

        logger.info(
            "%s %s: %s %s at %s -> %s",
            kind.value, updated.id, actor.login_id, action.value, level.value, new_status.value,
        )
        queue_event(db, ChangeEvent(
            name="request.decided",
            kind=kind.value,
            entity_id=str(updated.id),
            actor_id=actor.login_id,
            status=new_status.value,
            data={
                "level": level.value,
                "action": action.value,
                "requester_employee_id": updated.requester_employee_id,
            },
        ))
        return updated

    @staticmethod
    async def bulk_decide(
        db: AsyncSession,
        model: type,
        request_ids: Sequence[Any],
        actor: Actor,
        action: DecisionAction,
        note: Optional[str] = None,
        *,
        kind: RequestKind,
        expected_status: Optional[RequestStatus] = None,
        hooks: Optional[DecisionHooks] = None,
    ) -> BulkDecisionResult:
        """Apply one decision to many requests, item by item.

        Each item goes through the same guarded transition as a single
        decision. Failed checks happen before any write for that item, so a
        skipped item leaves nothing behind.
        """
        result = BulkDecisionResult()
        for request_id in dict.fromkeys(request_ids):
            try:
                await ApprovalService.decide(
                    db, model, request_id, actor, action, note,
                    kind=kind, expected_status=expected_status, hooks=hooks,
                )
            except AppException as exc:
                current = exc.extensions.get("current_status")
                reason = exc.detail
                if exc.errors:
                    reason = "; ".join(m for msgs in exc.errors.values() for m in msgs)
                result.skipped.append(BulkSkip(id=request_id, reason=reason, current_status=current))
                continue
            result.processed.append(request_id)

        logger.info(
            "Bulk %s by %s on %s: %d processed, %d skipped",
            action.value, actor.login_id, kind.value, len(result.processed), len(result.skipped),
        )
        return result

    # ── requester actions ───────────────────────────────────────────

    @staticmethod
    async def guarded_update(
        db: AsyncSession,
        obj: Any,
        actor: Actor,
        values: Mapping[str, Any],
        *,
        action: str,
    ) -> Any:
        """Requester-side write: requester only, unlocked, status unchanged since load."""
        model = type(obj)
        ApprovalService.ensure_requester(obj, actor)
        engine.ensure_requester_can_modify(obj.status, obj.approvals)

        old_status = RequestStatus(obj.status)
        updated = await try_transition(
            db,
            model,
            obj.id,
            expected_status=old_status,
            match={"requester_employee_id": actor.employee_id, "revision": obj.revision},
            values={**values, "revision": obj.revision + 1},
        )
        await create_audit_entry(
            db,
            action=action,
            entity_type=model.__tablename__,
            entity_id=updated.id,
            actor_id=actor.login_id,
            old_values={"status": old_status.value},
            new_values=values,
        )
        return updated

    @staticmethod
    async def cancel(
        db: AsyncSession,
        model: type,
        request_id: Any,
        actor: Actor,
        *,
        kind: RequestKind,
    ) -> Any:
        obj = await ApprovalService.load(db, model, request_id)
        updated = await ApprovalService.guarded_update(
            db,
            obj,
            actor,
            {
                "status": RequestStatus.CANCELLED,
                "cancelled_at": _now(),
                "cancelled_by": actor.login_id,
            },
            action="cancel",
        )
        logger.info("%s %s cancelled by %s", kind.value, updated.id, actor.login_id)
        queue_event(db, ChangeEvent(
            name="request.cancelled",
            kind=kind.value,
            entity_id=str(updated.id),
            actor_id=actor.login_id,
            status=RequestStatus.CANCELLED.value,
        ))
        return updated

    # ── inbox ───────────────────────────────────────────────────────

    @staticmethod
    def decided_at_level(model: type, level: ApprovalLevel) -> ColumnElement[bool]:
        """SQL test: the step for *level* in ``approvals`` carries a decision.

        A step's position in ``approvals`` is fixed by the approval mode, so
        the test is one JSON path lookup per mode that includes *level*.
        """
        clauses = []
        for mode, levels in engine.MODE_LEVELS.items():
            if level not in levels:
                continue
            step_status = model.approvals[(levels.index(level), "status")].as_string()
            clauses.append(and_(model.approval_mode == mode, step_status.in_(_DECIDED_STEPS)))
        return or_(*clauses)

    @staticmethod
    def inbox_query(
        model: type,
        actor: Actor,
        level: ApprovalLevel,
        scope: InboxScope = InboxScope.PENDING,
    ) -> Select:
        """Items waiting at *level*, or already decided there for ``HISTORY``.

        Non-admins only see items where they are the assigned approver for
        *level*; admins see every such item.
        """
        level = ApprovalLevel(level)
        if InboxScope(scope) == InboxScope.HISTORY:
            query = select(model).where(ApprovalService.decided_at_level(model, level))
        else:
            query = select(model).where(model.status == engine.PENDING_FOR_LEVEL[level])
        if not actor.is_admin:
            query = query.where(getattr(model, engine.APPROVER_COLUMN[level]) == actor.login_id)
        return query

    @staticmethod
    def inbox_order(model: type, scope: InboxScope) -> list[Any]:
        """Oldest first while waiting; most recently decided first in history."""
        if InboxScope(scope) == InboxScope.HISTORY:
            return [model.updated_at.desc()]
        return [model.created_at.asc()]

    @staticmethod
    async def inbox_count(
        db: AsyncSession,
        model: type,
        actor: Actor,
        level: ApprovalLevel,
    ) -> int:
        return await count_rows(db, ApprovalService.inbox_query(model, actor, level))
