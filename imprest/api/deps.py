# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Header

from imprest.exceptions import UnauthorizedError, ValidationFailedError
from imprest.models.enums import Role
from imprest.schemas.auth import AuthContext

_KNOWN_ROLES = frozenset(role.value for role in Role)


def parse_roles(raw: str) -> frozenset[str]:
    """Split a comma separated ``X-Roles`` header into known role names."""
    roles = frozenset(part.strip().lower() for part in raw.split(",") if part.strip())
    unknown = roles - _KNOWN_ROLES
    if unknown:
        msg = f"Unknown role(s): {', '.join(sorted(unknown))}"
        raise ValidationFailedError(msg)
    return roles or frozenset({Role.EMPLOYEE.value})


async def get_auth_context(
    x_user_id: uuid.UUID = Header(),
    x_roles: str = Header(default=Role.EMPLOYEE.value),
) -> AuthContext:
    """Extract dev auth context from request headers.

    Header-supplied callers are never the system actor.
    """
    return AuthContext(user_id=x_user_id, roles=parse_roles(x_roles))


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]


async def require_admin(
    auth: AuthDep,
) -> AuthContext:
    """Require admin role for the request."""
    if not auth.has_role(Role.ADMIN):
        raise UnauthorizedError("Admin access required")
    return auth


AdminDep = Annotated[AuthContext, Depends(require_admin)]
