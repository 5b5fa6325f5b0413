"""Auth dependencies: decode caller identity, RBAC enforcement.

Tokens are issued by the portal's external auth layer; this service only
verifies the signature and reads the identity claims.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from fastapi import Depends, Request
from fastapi.exceptions import HTTPException
from jose import ExpiredSignatureError, JWTError, jwt

from ops_portal.common.constants import UserRole
from ops_portal.common.exceptions import ForbiddenException
from ops_portal.config import settings

# Role implications: ADMIN can do everything LEAVE_ADMIN can
_ROLE_HIERARCHY: dict[UserRole, set[UserRole]] = {
    UserRole.ADMIN: {UserRole.ADMIN, UserRole.LEAVE_ADMIN},
}

ADMIN_ROLES = frozenset({UserRole.ADMIN, UserRole.LEAVE_ADMIN})


@dataclass(frozen=True)
class Actor:
    """The authenticated caller as seen by the leave engine."""

    employee_id: str
    login_id: str
    roles: frozenset[UserRole] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return bool(self.roles & ADMIN_ROLES)

    def effective_roles(self) -> set[UserRole]:
        out: set[UserRole] = set()
        for role in self.roles:
            out |= _ROLE_HIERARCHY.get(role, {role})
        return out


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header.")
    return auth_header[7:]


def _parse_roles(raw) -> frozenset[UserRole]:
    if isinstance(raw, str):
        raw = [raw]
    roles: set[UserRole] = set()
    for value in raw or []:
        try:
            roles.add(UserRole(str(value).upper()))
        except ValueError:
            # roles for other portal areas (food, transport) are not ours
            continue
    return frozenset(roles)


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_actor(request: Request) -> Actor:
    """Validate the JWT and return the caller identity."""
    token = _extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired.")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token.")

    employee_id = payload.get("sub")
    if not employee_id:
        raise HTTPException(status_code=401, detail="Token has no subject.")

    actor = Actor(
        employee_id=str(employee_id),
        login_id=str(payload.get("login_id") or employee_id),
        roles=_parse_roles(payload.get("roles")),
    )
    request.state.actor = actor
    return actor


# ── Role-based dependency ───────────────────────────────────────────

def require_role(*allowed_roles: UserRole) -> Callable:
    """Return a FastAPI dependency that enforces role membership."""

    async def _check(actor: Actor = Depends(get_current_actor)) -> Actor:
        if not actor.effective_roles().intersection(allowed_roles):
            raise ForbiddenException(
                detail=f"Required role: {[r.value for r in allowed_roles]}.",
            )
        return actor

    return _check


require_admin = require_role(UserRole.LEAVE_ADMIN)
