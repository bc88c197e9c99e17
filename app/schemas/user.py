"""Pydantic schemas for User CRUD, login and password reset.

``UserRead`` deliberately has no password attribute, so responses built
from it can never carry the hash.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import field_validator

from app.core.uploads import validate_image_data_uri
from app.models.enums import Role
from app.schemas.common import CamelModel, PatchModel, normalise_email, require_non_empty
from app.schemas.employee import EmployeeSummary


class UserRead(CamelModel):
    id: int
    email: str
    first_name: str
    last_name: str
    role: Role
    image: str | None
    employee: EmployeeSummary | None
    created_at: datetime | None


class UserUpdate(PatchModel):
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    password: str | None = None
    role: Role | None = None
    image: str | None = None

    @field_validator("email")
    @classmethod
    def _email(cls, v: str | None) -> str:
        if v is None:
            raise ValueError("Email must not be null")
        return normalise_email(v)

    @field_validator("first_name", "last_name")
    @classmethod
    def _name(cls, v: str | None) -> str:
        if v is None:
            raise ValueError("Name must not be null")
        return require_non_empty(v, "Name")

    @field_validator("password")
    @classmethod
    def _password(cls, v: str | None) -> str:
        if not v:
            raise ValueError("Password must not be empty")
        return v

    @field_validator("role")
    @classmethod
    def _role(cls, v: Role | None) -> Role:
        if v is None:
            raise ValueError("Role must not be null")
        return v

    @field_validator("image")
    @classmethod
    def _image(cls, v: str | None) -> str | None:
        # null clears the image
        return None if v is None else validate_image_data_uri(v)


class UserDelete(CamelModel):
    user_id: int | None = None


# ── Session ─────────────────────────────────────────────────────────
class LoginRequest(CamelModel):
    email: str | None = None
    password: str | None = None
    remember_me: bool = False


class AuthResponse(CamelModel):
    user: UserRead
    token: str
    expires_in: int  # seconds


# ── Password reset ──────────────────────────────────────────────────
class ResetPasswordRequest(CamelModel):
    email: str | None = None


class ResetPassword(CamelModel):
    password: str | None = None
