"""Users API router — signup/login/logout, password flows, self-service and admin CRUD."""

import logging
import uuid

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from natours.api import factory
from natours.api.deps import get_current_user, get_db, restrict_to
from natours.api.query import QueryOptions
from natours.auth.dependencies import LOGGED_OUT_SENTINEL, TOKEN_COOKIE
from natours.config import settings
from natours.errors import Conflict, ValidationFailed
from natours.models.user import User
from natours.schemas.auth import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    UpdatePasswordRequest,
    UserData,
)
from natours.schemas.common import DataResponse, MessageResponse
from natours.schemas.user import UpdateMeRequest, UserAdminUpdate, UserResponse
from natours.services import auth_service
from natours.services import reviews as review_service
from natours.services.users import get_user_by_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["users"])

# Columns admins may filter and sort on
USER_QUERY_FIELDS = ("name", "email", "role", "photo", "created_at")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _send_token(response: Response, user: User, token: str) -> AuthResponse:
    """Set the HTTP-only session cookie and build the JSON body."""
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=settings.jwt_cookie_expires_in_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return AuthResponse(token=token, data=UserData(user=UserResponse.model_validate(user)))


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    body: SignupRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """Register a new user and log them in."""
    user, token = await auth_service.signup(
        db,
        name=body.name,
        email=body.email,
        password=body.password,
        password_confirm=body.password_confirm,
        account_url=f"{request.base_url}account",
    )
    return _send_token(response, user, token)


@router.post("/login", response_model=AuthResponse)
async def login(body: LoginRequest, response: Response, db: AsyncSession = Depends(get_db)) -> AuthResponse:
    """Authenticate with email and password."""
    user, token = await auth_service.login(db, body.email, body.password)
    return _send_token(response, user, token)


@router.get("/logout")
async def logout(response: Response) -> dict[str, str]:
    """Replace the session cookie with a sentinel that expires in 10 seconds."""
    response.set_cookie(TOKEN_COOKIE, LOGGED_OUT_SENTINEL, max_age=10, httponly=True)
    return {"status": "success"}


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    body: ForgotPasswordRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Email a one-time password reset link."""
    await auth_service.issue_password_reset(
        db,
        body.email,
        reset_url_base=f"{request.base_url}api/v1/users/reset-password",
    )
    return MessageResponse(message="Token sent to email!")


@router.patch("/reset-password/{token}", response_model=AuthResponse)
async def reset_password(
    token: str,
    body: ResetPasswordRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """Set a new password using a reset token, then log the user in."""
    user, session_token = await auth_service.consume_password_reset(db, token, body.password, body.password_confirm)
    return _send_token(response, user, session_token)


@router.patch("/update-password", response_model=AuthResponse)
async def update_password(
    body: UpdatePasswordRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> AuthResponse:
    """Change the logged-in user's password. Older tokens stop working."""
    user, token = await auth_service.update_password(
        db, current_user, body.password_current, body.password, body.password_confirm
    )
    return _send_token(response, user, token)


# ---------------------------------------------------------------------------
# Current user
# ---------------------------------------------------------------------------


@router.get("/me", response_model=DataResponse[UserResponse])
async def me(current_user: User = Depends(get_current_user)) -> DataResponse[UserResponse]:
    """Return the currently authenticated user's profile."""
    return DataResponse[UserResponse](data=UserResponse.model_validate(current_user))


@router.patch("/update-me", response_model=DataResponse[UserResponse])
async def update_me(
    body: UpdateMeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> DataResponse[UserResponse]:
    """Update name, email or photo of the logged-in user."""
    changes = body.changes()
    if "email" in changes and changes["email"] != current_user.email:
        if await get_user_by_email(db, changes["email"], include_inactive=True) is not None:
            raise Conflict("Email already registered")

    for field, value in changes.items():
        setattr(current_user, field, value)
    await db.flush()
    await db.refresh(current_user)
    return DataResponse[UserResponse](data=UserResponse.model_validate(current_user))


@router.delete("/delete-me", status_code=status.HTTP_204_NO_CONTENT)
async def delete_me(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Response:
    """Deactivate the logged-in user's account (soft delete)."""
    current_user.active = False
    await db.flush()
    logger.info("User %s deactivated their account", current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


def _active_predicate(include_inactive: bool) -> tuple:
    return () if include_inactive else (User.active.is_(True),)


@router.get("")
async def list_users(
    request: Request,
    include_inactive: bool = Query(False, description="Also list deactivated users"),
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(restrict_to("admin")),
) -> dict:
    """List users (admin only)."""
    options = QueryOptions.from_request(request, ignore=("include_inactive",))
    users = await factory.get_all(db, User, options, *_active_predicate(include_inactive), allowed=USER_QUERY_FIELDS)
    return factory.list_response(users, UserResponse, options)


@router.post("")
async def create_user(_admin: User = Depends(restrict_to("admin"))) -> None:
    """Users are only created through /signup."""
    raise ValidationFailed("This route is not defined! Please use /signup instead.")


@router.get("/{user_id}", response_model=DataResponse[UserResponse])
async def get_user(
    user_id: uuid.UUID,
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(restrict_to("admin")),
) -> DataResponse[UserResponse]:
    user = await factory.get_one(db, User, user_id, *_active_predicate(include_inactive))
    return DataResponse[UserResponse](data=UserResponse.model_validate(user))


@router.patch("/{user_id}", response_model=DataResponse[UserResponse])
async def update_user(
    user_id: uuid.UUID,
    body: UserAdminUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(restrict_to("admin")),
) -> DataResponse[UserResponse]:
    """Partially update any user, including inactive ones. Passwords cannot be set here."""
    user = await factory.update_one(db, User, user_id, body)
    return DataResponse[UserResponse](data=UserResponse.model_validate(user))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(restrict_to("admin")),
) -> Response:
    """Permanently delete a user and their reviews."""
    user = await factory.get_one(db, User, user_id)
    await review_service.delete_author(db, user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
