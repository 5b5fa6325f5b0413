"""Conditional single-row updates for request state changes.

``try_transition`` is the only way a request's status is written after
creation: one UPDATE that matches on id, the expected status, the acting
identity and the revision the caller loaded. Zero matched rows means
somebody else got there first (or the identity is wrong), and the
caller gets a ConflictError carrying the status that is actually stored.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, TypeVar

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ops_portal.common.constants import RequestStatus
from ops_portal.common.exceptions import ConflictError, NotFoundException

logger = logging.getLogger(__name__)

M = TypeVar("M")


async def try_transition(
    db: AsyncSession,
    model: type[M],
    request_id: Any,
    *,
    expected_status: RequestStatus,
    match: Mapping[str, Any],
    values: Mapping[str, Any],
) -> M:
    """Apply *values* iff status is still *expected_status* and *match* holds.

    Returns the refreshed row on success.
    """
    stmt = (
        update(model)
        .where(
            model.id == request_id,
            model.status == expected_status,
            *(getattr(model, col) == val for col, val in match.items()),
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)

    if result.rowcount != 1:
        current = (
            await db.execute(select(model.status).where(model.id == request_id))
        ).scalar_one_or_none()
        if current is None:
            raise NotFoundException(model.__name__, request_id)
        current_value = RequestStatus(current).value
        logger.warning(
            "Guard miss on %s %s: expected %s, found %s",
            model.__name__, request_id, RequestStatus(expected_status).value, current_value,
        )
        raise ConflictError(
            f"The request changed since it was loaded ({current_value}).",
            current_status=current_value,
        )

    row = (
        await db.execute(
            select(model)
            .where(model.id == request_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one()
    return row
