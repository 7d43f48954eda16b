# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel, ConfigDict

from imprest.models.enums import Role

SYSTEM_ACTOR_ID = uuid.UUID(int=0)


class AuthContext(BaseModel):
    """The acting user as supplied by the identity provider."""

    model_config = ConfigDict(frozen=True)

    user_id: uuid.UUID
    roles: frozenset[str] = frozenset({Role.EMPLOYEE.value})
    is_system: bool = False

    def has_role(self, role: Role) -> bool:
        return role.value in self.roles

    def has_any_role(self, *roles: Role) -> bool:
        return any(self.has_role(role) for role in roles)

    @classmethod
    def system(cls) -> AuthContext:
        """Actor used by the scheduled overdue sweep."""
        return cls(user_id=SYSTEM_ACTOR_ID, roles=frozenset(), is_system=True)
