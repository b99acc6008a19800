"""Role, user and authentication schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from weberis.schemas.common import EmailValue, FormModel


class RoleForm(FormModel):
    name: str | None = Field(default=None, max_length=50)
    description: str | None = Field(default=None, max_length=2000)
    permissions: list[str] = Field(default_factory=list)


class UserForm(FormModel):
    name: str | None = Field(default=None, max_length=100)
    email: EmailValue = None
    password: str | None = Field(default=None, max_length=255)
    confirm_password: str | None = Field(default=None, max_length=255)
    role_id: int | None = None


class ProfileForm(FormModel):
    name: str | None = Field(default=None, max_length=100)
    email: EmailValue = None
    current_password: str | None = Field(default=None, max_length=255)
    password: str | None = Field(default=None, max_length=255)
    confirm_password: str | None = Field(default=None, max_length=255)


class LoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=100)
    password: str = Field(min_length=1, max_length=255)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    csrf_token: str | None = None


class PermissionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    module: str
    action: str
    description: str | None = None


class RoleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None
    permissions: list[str] = Field(default_factory=list)
    user_count: int = 0


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    role_id: int
    created_at: datetime | None = None
