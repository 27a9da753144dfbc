"""Auth dependencies — JWT validation, tenant context, RBAC enforcement.

Tokens are issued by the platform's identity service; this module only
verifies them and resolves the ``(tenant_id, user_id, roles)`` context the
leave engine works with.
"""

from __future__ import annotations

import uuid
from typing import Callable

from fastapi import Depends, Request
from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel

from hr_leave.common.constants import UserRole
from hr_leave.common.exceptions import ForbiddenException, UnauthorizedException
from hr_leave.config import settings

# Role hierarchy — each role implicitly includes lower roles
_ROLE_HIERARCHY: dict[UserRole, set[UserRole]] = {
    UserRole.system_admin: {UserRole.system_admin, UserRole.hr_admin, UserRole.manager, UserRole.employee},
    UserRole.hr_admin: {UserRole.hr_admin, UserRole.manager, UserRole.employee},
    UserRole.manager: {UserRole.manager, UserRole.employee},
    UserRole.employee: {UserRole.employee},
}


class CurrentUser(BaseModel):
    """Authenticated caller context."""

    tenant_id: uuid.UUID
    user_id: uuid.UUID
    roles: frozenset[UserRole] = frozenset({UserRole.employee})

    @property
    def effective_roles(self) -> set[UserRole]:
        expanded: set[UserRole] = set()
        for role in self.roles:
            expanded |= _ROLE_HIERARCHY.get(role, {role})
        return expanded


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise UnauthorizedException("Missing or invalid Authorization header.")
    return auth_header[7:]


def _parse_roles(raw) -> frozenset[UserRole]:
    if isinstance(raw, str):
        raw = [raw]
    elif not isinstance(raw, (list, tuple)):
        raw = []
    roles = set()
    for value in raw:
        try:
            roles.add(UserRole(value))
        except ValueError:
            # Roles of other modules (e.g. "agent") carry no leave permissions
            continue
    return frozenset(roles or {UserRole.employee})


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_user(request: Request) -> CurrentUser:
    """Validate the JWT and return the caller's tenant/user/roles context."""
    token = _extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise UnauthorizedException("Token has expired.")
    except JWTError:
        raise UnauthorizedException("Invalid token.")

    if payload.get("type", "access") != "access":
        raise UnauthorizedException("Invalid token type.")

    try:
        user_id = uuid.UUID(payload["sub"])
        tenant_id = uuid.UUID(payload["tenant_id"])
    except (KeyError, TypeError, ValueError):
        raise UnauthorizedException("Token is missing tenant or subject claims.")

    return CurrentUser(
        tenant_id=tenant_id,
        user_id=user_id,
        roles=_parse_roles(payload.get("roles", payload.get("role"))),
    )


# ── Role-based dependency ───────────────────────────────────────────

def require_role(*allowed_roles: UserRole) -> Callable:
    """Return a FastAPI dependency that enforces role membership.

    Respects hierarchy — e.g. system_admin can access manager endpoints.
    """

    async def _check(
        user: CurrentUser = Depends(get_current_user),
    ) -> CurrentUser:
        if not user.effective_roles.intersection(allowed_roles):
            granted = sorted(r.value for r in user.roles)
            raise ForbiddenException(
                detail=f"Roles {granted} are not permitted. Required: {[r.value for r in allowed_roles]}.",
            )
        return user

    return _check
