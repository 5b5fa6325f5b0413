"""Page/sort query parameters and the paginated response envelope."""


import math
from typing import Any, Generic, Optional, Sequence, TypeVar

from fastapi import Query
from pydantic import BaseModel
from sqlalchemy import Select, func
from sqlalchemy.ext.asyncio import AsyncSession

from ops_portal.common.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ops_portal.common.filters import apply_sorting

T = TypeVar("T")


# ── FastAPI dependency ──────────────────────────────────────────────

class PaginationParams:
    """Inject via ``Depends(PaginationParams)`` on list and inbox endpoints."""

    def __init__(
        self,
        page: int = Query(default=1, ge=1, description="Page number (1-indexed)"),
        page_size: int = Query(
            default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE,
            description="Items per page",
        ),
        sort: Optional[str] = Query(
            default=None,
            description='Comma-separated sort keys; "-" prefix for DESC (e.g. "-start_date")',
        ),
    ) -> None:
        self.page = page
        self.page_size = page_size
        self.sort = sort

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


# ── Pydantic response models ───────────────────────────────────────

class PaginationMeta(BaseModel):
    page: int
    page_size: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, params: PaginationParams, total: int) -> "PaginationMeta":
        total_pages = math.ceil(total / params.page_size) if total else 0
        return cls(
            page=params.page,
            page_size=params.page_size,
            total=total,
            total_pages=total_pages,
            has_next=params.page < total_pages,
            has_prev=params.page > 1,
        )


class PaginatedResponse(BaseModel, Generic[T]):
    """Standard envelope: ``{"data": [...], "meta": {...}}``."""

    data: Sequence[T]
    meta: PaginationMeta


# ── SQLAlchemy helpers ──────────────────────────────────────────────

async def count_rows(session: AsyncSession, query: Select) -> int:
    """COUNT(*) over *query* with its ORDER BY stripped."""
    count_q = query.with_only_columns(func.count(), maintain_column_froms=True).order_by(None)
    return (await session.execute(count_q)).scalar_one()


async def paginate(
    session: AsyncSession,
    query: Select,
    params: PaginationParams,
    *,
    model: Any,
    default_order: Sequence[Any] = (),
) -> tuple[Sequence[Any], PaginationMeta]:
    """
    Run *query* for the requested page.

    The caller's ``sort`` wins; *default_order* applies only when it names
    no known column. Returns ORM rows (callers present them, usually with
    directory enrichment) and the page metadata.
    """
    total = await count_rows(session, query)

    sorted_query = apply_sorting(query, model, params.sort)
    if sorted_query is query and default_order:
        sorted_query = query.order_by(*default_order)

    rows = (
        await session.execute(
            sorted_query.offset(params.offset).limit(params.page_size)
        )
    ).scalars().all()

    return rows, PaginationMeta.build(params, total)
