"""Directory lookups used to decorate request responses with names."""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ops_portal.directory.models import EmployeeDirectory


class DirectoryService:

    @staticmethod
    async def lookup_many(
        db: AsyncSession,
        employee_ids: Iterable[str],
    ) -> dict[str, EmployeeDirectory]:
        """Return ``{employee_id: entry}`` for the ids that exist."""
        ids = {i for i in employee_ids if i}
        if not ids:
            return {}
        result = await db.execute(
            select(EmployeeDirectory).where(EmployeeDirectory.employee_id.in_(ids))
        )
        return {row.employee_id: row for row in result.scalars().all()}
