"""Auth tests: bearer token decoding, role parsing and RBAC.

Tokens are minted with the shared test secret (see conftest.py).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from ops_portal.auth.dependencies import _parse_roles, require_role
from ops_portal.common.constants import UserRole
from ops_portal.common.exceptions import ForbiddenException
from ops_portal.config import settings
from tests.conftest import ADMIN, EMPLOYEE, create_access_token


# ═════════════════════════════════════════════════════════════════════
# 1. Role parsing
# ═════════════════════════════════════════════════════════════════════


class TestRoles:

    def test_unknown_roles_ignored(self):
        assert _parse_roles(["leave_manager", "FOOD_ORDERER"]) == frozenset({UserRole.LEAVE_MANAGER})

    def test_single_string_role(self):
        assert _parse_roles("LEAVE_GM") == frozenset({UserRole.LEAVE_GM})

    def test_missing_roles(self):
        assert _parse_roles(None) == frozenset()

    def test_admin_implies_leave_admin(self):
        assert UserRole.LEAVE_ADMIN in ADMIN.effective_roles()
        assert ADMIN.is_admin
        assert not EMPLOYEE.is_admin

    async def test_require_role_blocks(self):
        check = require_role(UserRole.LEAVE_ADMIN)
        with pytest.raises(ForbiddenException):
            await check(actor=EMPLOYEE)

    async def test_require_role_allows_implied(self):
        check = require_role(UserRole.LEAVE_ADMIN)
        assert await check(actor=ADMIN) is ADMIN


# ═════════════════════════════════════════════════════════════════════
# 2. API ENDPOINTS
# ═════════════════════════════════════════════════════════════════════


async def test_api_missing_token(client):
    resp = await client.get("/api/v1/holidays/")
    assert resp.status_code == 401


async def test_api_expired_token(client):
    token = create_access_token(EMPLOYEE, expired=True)
    resp = await client.get("/api/v1/holidays/", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert "expired" in resp.json()["detail"].lower()


async def test_api_wrong_secret(client):
    token = jwt.encode(
        {"sub": "E100", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        "not-the-secret",
        algorithm=settings.JWT_ALGORITHM,
    )
    resp = await client.get("/api/v1/holidays/", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


async def test_api_token_without_subject(client):
    token = jwt.encode(
        {"login_id": "emp.user", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    resp = await client.get("/api/v1/holidays/", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


async def test_api_login_id_defaults_to_subject(client):
    """A token without login_id still authenticates; the subject stands in."""
    token = jwt.encode(
        {"sub": "E777", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    resp = await client.get("/api/v1/holidays/", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200


async def test_api_admin_route_needs_admin(client):
    body = {"holiday_date": "2026-04-14", "name": "Khmer New Year"}
    resp = await client.post(
        "/api/v1/holidays/", json=body,
        headers={"Authorization": f"Bearer {create_access_token(EMPLOYEE)}"},
    )
    assert resp.status_code == 403
    assert resp.json()["type"].endswith("/forbidden")
