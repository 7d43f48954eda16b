# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field

from imprest.models.enums import Role


class UserInfo(BaseModel):
    """User metadata from the identity provider."""

    id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    phone_number: str | None = None
    department: str | None = None
    roles: list[str] = Field(default_factory=lambda: [Role.EMPLOYEE.value])
    is_active: bool = True

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@runtime_checkable
class UserDirectory(Protocol):
    """Interface for the identity/role provider."""

    async def get_user(self, user_id: uuid.UUID) -> UserInfo | None:
        """Fetch user metadata. Returns None if not found."""
        ...

    async def find_users_by_role(self, role: Role, department: str | None = None) -> list[UserInfo]:
        """List active users holding ``role``, optionally within one department."""
        ...


class InMemoryUserDirectory:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._users: dict[uuid.UUID, UserInfo] = {}

    def seed(self, user: UserInfo) -> None:
        """Seed a user for testing."""
        self._users[user.id] = user

    async def get_user(self, user_id: uuid.UUID) -> UserInfo | None:
        """Fetch user metadata. Returns None if not found."""
        return self._users.get(user_id)

    async def find_users_by_role(self, role: Role, department: str | None = None) -> list[UserInfo]:
        """List active users holding ``role``, optionally within one department."""
        return [
            u
            for u in self._users.values()
            if u.is_active and role.value in u.roles and (department is None or u.department == department)
        ]


_user_directory: UserDirectory = InMemoryUserDirectory()


def get_user_directory() -> UserDirectory:
    """FastAPI dependency for the user directory."""
    return _user_directory


def set_user_directory(directory: UserDirectory) -> None:
    """Override the directory (for testing or production wiring)."""
    global _user_directory
    _user_directory = directory
