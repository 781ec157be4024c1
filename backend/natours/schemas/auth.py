"""Pydantic v2 request/response schemas for authentication endpoints."""

from pydantic import BaseModel, EmailStr, Field, field_validator

from natours.schemas.user import UserResponse

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Schema for user signup."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    password_confirm: str

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class LoginRequest(BaseModel):
    """Schema for email/password login. Presence is checked by the auth service."""

    email: str | None = None
    password: str | None = None


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    password: str = Field(..., min_length=8, max_length=72)
    password_confirm: str


class UpdatePasswordRequest(BaseModel):
    password_current: str
    password: str = Field(..., min_length=8, max_length=72)
    password_confirm: str


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class UserData(BaseModel):
    user: UserResponse


class AuthResponse(BaseModel):
    """Session token + user returned on signup, login and password changes."""

    status: str = "success"
    token: str
    data: UserData
