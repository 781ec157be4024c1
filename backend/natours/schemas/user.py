"""Pydantic v2 request/response schemas for user endpoints."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from natours.schemas.common import reject_explicit_nulls

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class UpdateMeRequest(BaseModel):
    """Self-service profile update. Password changes go through /update-password."""

    name: str | None = Field(None, min_length=1, max_length=255)
    email: EmailStr | None = None
    photo: str | None = Field(None, max_length=255)

    model_config = ConfigDict(extra="allow")

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str | None) -> str | None:
        return v.lower() if v is not None else v

    @model_validator(mode="after")
    def check_fields(self) -> "UpdateMeRequest":
        reject_explicit_nulls(self, ("name", "email", "photo"))
        extra = set(self.model_extra or ())
        if extra & {"password", "password_confirm", "hashed_password"}:
            raise ValueError("This route is not for password updates. Please use /update-password.")
        return self

    def changes(self) -> dict:
        """Only the whitelisted, explicitly set fields."""
        return self.model_dump(exclude_unset=True, include={"name", "email", "photo"})


class UserAdminUpdate(BaseModel):
    """Admin update of any user. Passwords cannot be set here."""

    name: str | None = Field(None, min_length=1, max_length=255)
    email: EmailStr | None = None
    photo: str | None = Field(None, max_length=255)
    role: str | None = Field(None, pattern="^(user|guide|lead-guide|admin)$")
    active: bool | None = None

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str | None) -> str | None:
        return v.lower() if v is not None else v

    @model_validator(mode="after")
    def reject_nulls(self) -> "UserAdminUpdate":
        reject_explicit_nulls(self, ("name", "email", "photo", "role", "active"))
        return self


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public user profile. Never includes password material."""

    id: uuid.UUID
    name: str
    email: str
    photo: str
    role: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserSummary(BaseModel):
    """Minimal user info embedded in reviews and tour guides."""

    id: uuid.UUID
    name: str
    photo: str
    role: str | None = None

    model_config = ConfigDict(from_attributes=True)
