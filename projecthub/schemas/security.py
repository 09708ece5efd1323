from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from projecthub.security.roles import ALL_PERMISSIONS, RoleName


class PermissionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    action: str
    description: str | None


class PermissionIn(BaseModel):
    action: str
    description: str | None = None

    @field_validator("action")
    @classmethod
    def _known_action(cls, value: str) -> str:
        value = value.strip().upper()
        if value not in ALL_PERMISSIONS:
            raise ValueError(f"unknown permission action {value!r}")
        return value


class PermissionUpdate(BaseModel):
    description: str | None = None


class RoleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None
    permissions: list[PermissionOut] = Field(default_factory=list)


class RoleIn(BaseModel):
    name: RoleName
    description: str | None = None
    permission_ids: list[int] = Field(default_factory=list)


class RoleUpdate(BaseModel):
    description: str | None = None
    permission_ids: list[int] | None = None


class RoleBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    display_name: str | None
    azure_id: str | None
    role: RoleBrief
    permissions: list[PermissionOut]
    created_at: datetime


class UserIn(BaseModel):
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    display_name: str | None = None
    role_id: int
    permission_ids: list[int] = Field(default_factory=list)


class UserUpdate(BaseModel):
    display_name: str | None = None
    role_id: int | None = None
    permission_ids: list[int] | None = None


class LoginUrlOut(BaseModel):
    message: str
    url: str
