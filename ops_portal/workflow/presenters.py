"""ORM → response conversion with directory enrichment."""

from __future__ import annotations

from typing import Any, Sequence, TypeVar

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ops_portal.directory.service import DirectoryService

S = TypeVar("S", bound=BaseModel)


async def present_many(db: AsyncSession, schema: type[S], rows: Sequence[Any]) -> list[S]:
    directory = await DirectoryService.lookup_many(db, (r.requester_employee_id for r in rows))
    out: list[S] = []
    for row in rows:
        item = schema.model_validate(row)
        entry = directory.get(row.requester_employee_id)
        if entry is not None:
            item.requester_name = entry.name
            item.department = entry.department
        out.append(item)
    return out


async def present_one(db: AsyncSession, schema: type[S], row: Any) -> S:
    return (await present_many(db, schema, [row]))[0]
