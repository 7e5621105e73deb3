"""Request and response schemas for accounts and admin export."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class RegisterRequest(BaseModel):
    """Registration body. Presence of name/mobile/password is checked by the route."""

    name: str | None = None
    mobile: str | None = None
    password: str | None = None
    email: str | None = None
    age: int | None = Field(default=None, gt=0)
    height: float | None = Field(default=None, gt=0)
    weight: float | None = Field(default=None, gt=0)
    gender: str | None = None


class LoginRequest(BaseModel):
    """Login body. Either mobile or email identifies the account."""

    mobile: str | None = None
    email: str | None = None
    password: str | None = None


class ProfileUpdate(BaseModel):
    """Fields a signed-in user may change."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    email: str | None = None
    age: int | None = Field(default=None, gt=0)
    height: float | None = Field(default=None, gt=0)
    weight: float | None = Field(default=None, gt=0)
    gender: str | None = None


class UserSummary(BaseModel):
    """Minimal user identity returned on registration."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    mobile: str


class UserProfile(UserSummary):
    """Full user profile (never includes the password hash)."""

    email: str | None = None
    age: int | None = None
    height: float | None = None
    weight: float | None = None
    gender: str | None = None
    created_at: datetime | None = None


class RegisterResponse(BaseModel):
    message: str
    user: UserSummary
    token: str


class LoginResponse(BaseModel):
    message: str
    token: str
    user: UserProfile


class AdminUserList(BaseModel):
    users: list[UserProfile]
