"""Swap working day tests: range rules, clash detection, service and API."""

from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from ops_portal.common.constants import ApprovalMode, RequestStatus
from ops_portal.common.exceptions import LockedException, ValidationException
from ops_portal.holidays.working_calendar import WorkingCalendar
from ops_portal.swap.schemas import SwapRequestCreate
from ops_portal.swap.service import SwapService
from ops_portal.swap.validators import find_swap_clash, validate_swap
from ops_portal.workflow.schemas import DecisionRequest
from tests.conftest import (
    ADMIN,
    EMPLOYEE,
    MANAGER,
    auth_headers,
    seed_holiday,
    seed_profile,
)

# Monday 9 March is a holiday, so Sun 8 + Mon 9 is a two-day non-working block
CAL = WorkingCalendar({date(2026, 3, 9)})


def _swap(rs, re, os, oe, reason=None) -> SwapRequestCreate:
    return SwapRequestCreate(
        request_start_date=rs, request_end_date=re,
        off_start_date=os, off_end_date=oe, reason=reason,
    )


# ═════════════════════════════════════════════════════════════════════
# 1. Validator
# ═════════════════════════════════════════════════════════════════════


class TestValidateSwap:

    def test_two_day_block_needs_two_working_days(self):
        totals = validate_swap(
            CAL, date(2026, 3, 8), date(2026, 3, 9), date(2026, 3, 10), date(2026, 3, 11),
        )
        assert totals.request_total_days == 2
        assert totals.off_total_days == 2

    def test_off_range_too_short(self):
        with pytest.raises(ValidationException) as exc_info:
            validate_swap(CAL, date(2026, 3, 8), date(2026, 3, 9), date(2026, 3, 10), date(2026, 3, 10))
        assert "exactly 2" in exc_info.value.errors["off_end_date"][0]

    def test_off_range_may_not_contain_sunday(self):
        # Sat 14 .. Mon 16 holds a Sunday, so it is rejected as an off range
        with pytest.raises(ValidationException) as exc_info:
            validate_swap(CAL, date(2026, 3, 8), date(2026, 3, 9), date(2026, 3, 14), date(2026, 3, 16))
        assert "2026-03-15" in exc_info.value.errors["off_start_date"][0]

    def test_request_range_must_be_non_working(self):
        with pytest.raises(ValidationException) as exc_info:
            validate_swap(CAL, date(2026, 3, 7), date(2026, 3, 8), date(2026, 3, 10), date(2026, 3, 11))
        assert "2026-03-07" in exc_info.value.errors["request_start_date"][0]

    def test_ranges_must_not_overlap(self):
        with pytest.raises(ValidationException) as exc_info:
            validate_swap(CAL, date(2026, 3, 8), date(2026, 3, 8), date(2026, 3, 8), date(2026, 3, 8))
        assert any("overlap" in m for m in exc_info.value.errors["off_start_date"])

    def test_reversed_ranges(self):
        with pytest.raises(ValidationException) as exc_info:
            validate_swap(CAL, date(2026, 3, 9), date(2026, 3, 8), date(2026, 3, 11), date(2026, 3, 10))
        assert set(exc_info.value.errors) == {"request_end_date", "off_end_date"}


class TestFindSwapClash:

    def test_off_range_touching_other_request_range(self):
        other = _swap(date(2026, 3, 15), date(2026, 3, 15), date(2026, 3, 20), date(2026, 3, 20))
        assert find_swap_clash(
            date(2026, 3, 8), date(2026, 3, 8), date(2026, 3, 20), date(2026, 3, 20), [other],
        ) is other

    def test_disjoint(self):
        other = _swap(date(2026, 3, 15), date(2026, 3, 15), date(2026, 3, 20), date(2026, 3, 20))
        assert find_swap_clash(
            date(2026, 3, 8), date(2026, 3, 8), date(2026, 3, 10), date(2026, 3, 10), [other],
        ) is None


# ═════════════════════════════════════════════════════════════════════
# 2. Service
# ═════════════════════════════════════════════════════════════════════


class TestSwapService:

    async def test_create_with_holiday_block(self, db: AsyncSession):
        await seed_profile(db)
        await seed_holiday(db, date(2026, 3, 9), "Company day")
        swap = await SwapService.create_request(
            db, EMPLOYEE, _swap(date(2026, 3, 8), date(2026, 3, 9), date(2026, 3, 10), date(2026, 3, 11)),
        )
        assert swap.request_total_days == 2
        assert swap.off_total_days == 2
        assert swap.status == RequestStatus.PENDING_MANAGER

    async def test_clash_with_pending_swap(self, db: AsyncSession):
        await seed_profile(db)
        await SwapService.create_request(
            db, EMPLOYEE, _swap(date(2026, 3, 8), date(2026, 3, 8), date(2026, 3, 10), date(2026, 3, 10)),
        )
        with pytest.raises(ValidationException) as exc_info:
            await SwapService.create_request(
                db, EMPLOYEE, _swap(date(2026, 3, 15), date(2026, 3, 15), date(2026, 3, 10), date(2026, 3, 10)),
            )
        assert "request_start_date" in exc_info.value.errors

    async def test_rejected_swap_frees_dates(self, db: AsyncSession):
        await seed_profile(db, approval_mode=ApprovalMode.MANAGER_ONLY)
        first = await SwapService.create_request(
            db, EMPLOYEE, _swap(date(2026, 3, 8), date(2026, 3, 8), date(2026, 3, 10), date(2026, 3, 10)),
        )
        await SwapService.decide(db, MANAGER, first.id, DecisionRequest(action="REJECT", note="Short-staffed"))
        second = await SwapService.create_request(
            db, EMPLOYEE, _swap(date(2026, 3, 8), date(2026, 3, 8), date(2026, 3, 10), date(2026, 3, 10)),
        )
        assert second.id != first.id

    async def test_edit_excludes_itself(self, db: AsyncSession):
        await seed_profile(db)
        swap = await SwapService.create_request(
            db, EMPLOYEE, _swap(date(2026, 3, 8), date(2026, 3, 8), date(2026, 3, 10), date(2026, 3, 10)),
        )
        swap = await SwapService.update_request(
            db, EMPLOYEE, swap.id,
            _swap(date(2026, 3, 8), date(2026, 3, 8), date(2026, 3, 11), date(2026, 3, 11)),
        )
        assert swap.off_start_date == date(2026, 3, 11)

    async def test_edit_locked_after_manager_acts(self, db: AsyncSession):
        await seed_profile(db)
        swap = await SwapService.create_request(
            db, EMPLOYEE, _swap(date(2026, 3, 8), date(2026, 3, 8), date(2026, 3, 10), date(2026, 3, 10)),
        )
        await SwapService.decide(db, MANAGER, swap.id, DecisionRequest(action="APPROVE"))
        with pytest.raises(LockedException):
            await SwapService.update_request(
                db, EMPLOYEE, swap.id,
                _swap(date(2026, 3, 8), date(2026, 3, 8), date(2026, 3, 11), date(2026, 3, 11)),
            )


# ═════════════════════════════════════════════════════════════════════
# 3. API ENDPOINTS
# ═════════════════════════════════════════════════════════════════════


async def test_api_swap_create_and_approve(client, db):
    await seed_profile(db, approval_mode=ApprovalMode.MANAGER_ONLY)
    await db.commit()

    resp = await client.post(
        "/api/v1/swaps/",
        json={
            "request_start_date": "2026-03-08",
            "request_end_date": "2026-03-08",
            "off_start_date": "2026-03-10",
            "off_end_date": "2026-03-10",
            "reason": "Stock take",
        },
        headers=auth_headers(EMPLOYEE),
    )
    assert resp.status_code == 201
    swap_id = resp.json()["id"]
    assert resp.json()["request_total_days"] == 1

    resp = await client.post(
        f"/api/v1/swaps/{swap_id}/decision", json={"action": "APPROVE"}, headers=auth_headers(MANAGER),
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "APPROVED"
    assert resp.json()["is_locked"] is True


async def test_api_swap_invalid_range_422(client, db):
    await seed_profile(db)
    await db.commit()

    resp = await client.post(
        "/api/v1/swaps/",
        json={
            "request_start_date": "2026-03-08",
            "request_end_date": "2026-03-08",
            "off_start_date": "2026-03-10",
            "off_end_date": "2026-03-11",
        },
        headers=auth_headers(EMPLOYEE),
    )
    assert resp.status_code == 422
    body = resp.json()
    assert body["type"].endswith("/validation-error")
    assert "off_end_date" in body["errors"]


async def test_api_admin_lists_swaps_by_worked_date(client, db):
    await seed_profile(db)
    await db.commit()
    headers = auth_headers(EMPLOYEE)
    for worked, off in (("2026-03-08", "2026-03-10"), ("2026-03-15", "2026-03-17")):
        resp = await client.post(
            "/api/v1/swaps/",
            json={
                "request_start_date": worked, "request_end_date": worked,
                "off_start_date": off, "off_end_date": off,
            },
            headers=headers,
        )
        assert resp.status_code == 201

    resp = await client.get("/api/v1/swaps/", headers=headers)
    assert resp.status_code == 403

    resp = await client.get("/api/v1/swaps/?from_date=2026-03-09", headers=auth_headers(ADMIN))
    assert resp.status_code == 200
    assert [i["request_start_date"] for i in resp.json()["data"]] == ["2026-03-15"]

    resp = await client.get(f"/api/v1/swaps/?employee_id={EMPLOYEE.employee_id}", headers=auth_headers(ADMIN))
    assert [i["request_start_date"] for i in resp.json()["data"]] == ["2026-03-15", "2026-03-08"]
