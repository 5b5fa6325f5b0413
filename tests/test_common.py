"""Tests for common utilities: filters, sorting, pagination, problem details."""

from __future__ import annotations

from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ops_portal.common.exceptions import (
    ConflictError,
    DuplicateException,
    NotFoundException,
    ValidationException,
)
from ops_portal.common.filters import _get_column, apply_filters, apply_sorting
from ops_portal.common.pagination import PaginationParams, paginate
from ops_portal.holidays.models import Holiday
from tests.conftest import seed_holiday


async def _seed_april(db: AsyncSession) -> None:
    for day in (1, 10, 14, 20, 30):
        await seed_holiday(db, date(2026, 4, day), f"Day {day}")


def _params(page: int = 1, page_size: int = 50, sort=None) -> PaginationParams:
    return PaginationParams(page=page, page_size=page_size, sort=sort)


# ═════════════════════════════════════════════════════════════════════
# FILTER TESTS
# ═════════════════════════════════════════════════════════════════════


class TestApplyFilters:
    """Tests for apply_filters utility."""

    async def test_filter_by_equality(self, db: AsyncSession):
        await _seed_april(db)
        query = apply_filters(select(Holiday), Holiday, {"name": "Day 14"})
        rows = (await db.execute(query)).scalars().all()
        assert [r.holiday_date for r in rows] == [date(2026, 4, 14)]

    async def test_filter_none_values_skipped(self, db: AsyncSession):
        await _seed_april(db)
        query = apply_filters(select(Holiday), Holiday, {"name": None})
        assert len((await db.execute(query)).scalars().all()) == 5

    async def test_filter_by_from_to_range(self, db: AsyncSession):
        await _seed_april(db)
        query = apply_filters(
            select(Holiday),
            Holiday,
            {"holiday_date__from": date(2026, 4, 10), "holiday_date__to": date(2026, 4, 20)},
        )
        days = sorted(r.holiday_date.day for r in (await db.execute(query)).scalars().all())
        assert days == [10, 14, 20]

    async def test_filter_by_in(self, db: AsyncSession):
        await _seed_april(db)
        query = apply_filters(select(Holiday), Holiday, {"name__in": ["Day 1", "Day 30"]})
        assert len((await db.execute(query)).scalars().all()) == 2

    async def test_filter_not_equal(self, db: AsyncSession):
        await _seed_april(db)
        query = apply_filters(select(Holiday), Holiday, {"name__ne": "Day 1"})
        assert len((await db.execute(query)).scalars().all()) == 4

    async def test_filter_nonexistent_column_ignored(self, db: AsyncSession):
        await _seed_april(db)
        query = apply_filters(select(Holiday), Holiday, {"no_such_column": "x"})
        assert len((await db.execute(query)).scalars().all()) == 5


class TestApplySorting:

    async def test_sort_descending(self, db: AsyncSession):
        await _seed_april(db)
        query = apply_sorting(select(Holiday), Holiday, "-holiday_date")
        rows = (await db.execute(query)).scalars().all()
        assert rows[0].holiday_date == date(2026, 4, 30)

    async def test_sort_multiple_keys(self, db: AsyncSession):
        await seed_holiday(db, date(2026, 5, 1), "Same")
        await seed_holiday(db, date(2026, 5, 2), "Same")
        await seed_holiday(db, date(2026, 5, 3), "Other")
        query = apply_sorting(select(Holiday), Holiday, "-name, -holiday_date, bogus")
        rows = (await db.execute(query)).scalars().all()
        assert [r.holiday_date.day for r in rows] == [2, 1, 3]

    async def test_sort_nonexistent_column_is_noop(self):
        query = select(Holiday)
        assert apply_sorting(query, Holiday, "-bogus") is query

    def test_get_column(self):
        assert _get_column(Holiday, "name") is not None
        assert _get_column(Holiday, "__tablename__") is None


# ═════════════════════════════════════════════════════════════════════
# PAGINATION TESTS
# ═════════════════════════════════════════════════════════════════════


class TestPagination:

    async def test_paginate_counts_unfiltered_query(self, db: AsyncSession):
        await _seed_april(db)
        rows, meta = await paginate(db, select(Holiday), _params(page_size=2, sort="holiday_date"), model=Holiday)
        assert [r.holiday_date.day for r in rows] == [1, 10]
        assert meta.total == 5
        assert meta.total_pages == 3
        assert meta.has_next and not meta.has_prev

    async def test_paginate_last_page(self, db: AsyncSession):
        await _seed_april(db)
        rows, meta = await paginate(db, select(Holiday), _params(page=3, page_size=2, sort="holiday_date"), model=Holiday)
        assert [r.holiday_date.day for r in rows] == [30]
        assert not meta.has_next and meta.has_prev

    async def test_paginate_empty_result(self, db: AsyncSession):
        rows, meta = await paginate(db, select(Holiday), _params(), model=Holiday)
        assert list(rows) == []
        assert meta.total == 0
        assert meta.total_pages == 0

    def test_offset(self):
        assert _params(page=3, page_size=20).offset == 40


# ═════════════════════════════════════════════════════════════════════
# EXCEPTIONS
# ═════════════════════════════════════════════════════════════════════


class TestExceptions:

    def test_conflict_carries_current_status(self):
        exc = ConflictError("moved on", current_status="PENDING_GM")
        assert exc.status_code == 409
        assert exc.extensions["current_status"] == "PENDING_GM"

    def test_duplicate_lists_field(self):
        exc = DuplicateException("employee_id", "E100")
        assert exc.status_code == 409
        assert exc.errors == {"employee_id": ["'E100' is already in use."]}

    def test_not_found_detail(self):
        exc = NotFoundException("LeaveProfile", "E404")
        assert exc.status_code == 404
        assert "E404" in exc.detail

    def test_validation_errors(self):
        exc = ValidationException({"start_date": ["bad"]})
        assert exc.status_code == 422
        assert exc.errors["start_date"] == ["bad"]


async def test_api_problem_detail_shape(client):
    """Unknown holiday date → RFC 7807 body with instance path."""
    from tests.conftest import ADMIN, auth_headers

    resp = await client.delete("/api/v1/holidays/2031-01-01", headers=auth_headers(ADMIN))
    assert resp.status_code == 404
    assert resp.headers["content-type"].startswith("application/problem+json")
    body = resp.json()
    assert body["status"] == 404
    assert body["instance"] == "/api/v1/holidays/2031-01-01"
    assert body["type"].endswith("/not-found")


# ═════════════════════════════════════════════════════════════════════
# AUDIT & RATE-LIMIT HELPERS
# ═════════════════════════════════════════════════════════════════════


class TestHelpers:

    def test_jsonable_nested(self):
        import uuid
        from decimal import Decimal

        from ops_portal.common.audit import jsonable
        from ops_portal.common.constants import RequestStatus

        rid = uuid.uuid4()
        out = jsonable({
            "status": RequestStatus.APPROVED,
            "days": Decimal("1.5"),
            "dates": (date(2026, 3, 2),),
            "id": rid,
            "note": None,
        })
        assert out == {
            "status": "APPROVED",
            "days": "1.5",
            "dates": ["2026-03-02"],
            "id": str(rid),
            "note": None,
        }

    def test_rate_limit_key_prefers_actor(self):
        from starlette.requests import Request

        from ops_portal.common.rate_limit import actor_or_address
        from tests.conftest import MANAGER

        request = Request({"type": "http", "headers": [], "client": ("10.0.0.7", 5000)})
        assert actor_or_address(request) == "10.0.0.7"
        request.state.actor = MANAGER
        assert actor_or_address(request) == "actor:mgr.user"
