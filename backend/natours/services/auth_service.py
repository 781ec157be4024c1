"""Auth service — signup, login, token verification, roles and password resets.

Session tokens are stateless JWTs. The only revocation mechanism is
``User.password_changed_at``: a token whose ``iat`` is at or before that
instant is rejected.
"""

import hashlib
import logging
import secrets
import uuid
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from natours.auth.jwt import create_access_token, decode_token
from natours.auth.passwords import hash_password, verify_password
from natours.config import settings
from natours.errors import Conflict, Forbidden, Internal, InvalidInput, NotFound, Unauthorized, ValidationFailed
from natours.models.user import User
from natours.services import email as mailer
from natours.services.users import get_user_by_email, get_user_by_id, user_query

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def _as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything is stored in UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def hash_reset_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Password writes
# ---------------------------------------------------------------------------


def set_password(user: User, password: str, password_confirm: str, *, is_new: bool = False) -> None:
    """Validate and hash a new password onto ``user``.

    Existing users get ``password_changed_at`` one second in the past so a
    token issued right after this write is still newer than the change.
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(f"Password must have at least {MIN_PASSWORD_LENGTH} characters")
    if password != password_confirm:
        raise ValidationFailed("Passwords are not the same!")

    user.hashed_password = hash_password(password)
    if not is_new:
        user.password_changed_at = datetime.now(timezone.utc) - timedelta(seconds=1)


def changed_password_after(user: User, issued_at: int) -> bool:
    """True if the password was changed at or after a token's ``iat``."""
    if user.password_changed_at is None:
        return False
    changed_ts = int(_as_utc(user.password_changed_at).timestamp())
    return issued_at <= changed_ts


# ---------------------------------------------------------------------------
# Signup / login
# ---------------------------------------------------------------------------


async def signup(
    db: AsyncSession,
    name: str,
    email: str,
    password: str,
    password_confirm: str,
    account_url: str | None = None,
) -> tuple[User, str]:
    """Create a ``user``-role account and return it with a fresh session token."""
    if await get_user_by_email(db, email, include_inactive=True) is not None:
        raise Conflict("Email already registered")

    user = User(name=name, email=email.strip().lower(), role="user")
    set_password(user, password, password_confirm, is_new=True)
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        raise Conflict("Email already registered") from None
    await db.refresh(user)
    logger.info("New user signed up: %s", user.id)

    if account_url is not None:
        try:
            await mailer.send_welcome(user, account_url)
        except mailer.EmailDeliveryError:
            logger.warning("Welcome email to user %s was not delivered", user.id)

    return user, create_access_token(str(user.id))


async def login(db: AsyncSession, email: str | None, password: str | None) -> tuple[User, str]:
    """Check credentials. Unknown email and wrong password look the same to the caller."""
    if not email or not password:
        raise ValidationFailed("Please provide email and password!")

    user = await get_user_by_email(db, email)
    if user is None or not verify_password(password, user.hashed_password):
        raise Unauthorized("Incorrect email or password")

    return user, create_access_token(str(user.id))


# ---------------------------------------------------------------------------
# Token verification and roles
# ---------------------------------------------------------------------------


async def verify(db: AsyncSession, token: str | None) -> User:
    """Resolve a session token to its (active) user.

    Raises:
        Unauthorized: If the token is missing, malformed, expired, signed with
            another secret, its user is gone, or the password changed since.
    """
    if not token:
        raise Unauthorized("You are not logged in! Please log in to get access.")

    try:
        payload = decode_token(token)
    except ExpiredSignatureError:
        raise Unauthorized("Your token has expired! Please log in again.") from None
    except JWTError:
        raise Unauthorized("Invalid token. Please log in again!") from None

    try:
        user_id = uuid.UUID(str(payload.get("sub")))
        issued_at = int(payload["iat"])
    except (KeyError, TypeError, ValueError):
        raise Unauthorized("Invalid token. Please log in again!") from None

    user = await get_user_by_id(db, user_id)
    if user is None:
        raise Unauthorized("The user belonging to this token no longer exists.")

    if changed_password_after(user, issued_at):
        raise Unauthorized("User recently changed password! Please log in again.")

    return user


def require_role(user: User, allowed_roles: Iterable[str]) -> None:
    """Raise ``Forbidden`` unless the user's role is one of ``allowed_roles``."""
    if user.role not in set(allowed_roles):
        raise Forbidden("You do not have permission to perform this action")


# ---------------------------------------------------------------------------
# Password reset / update
# ---------------------------------------------------------------------------


async def issue_password_reset(db: AsyncSession, email: str, reset_url_base: str) -> str:
    """Store a hashed one-time reset token for ``email`` and mail the raw token.

    ``reset_url_base`` is joined with the raw token to build the link sent to
    the user. If delivery fails the stored hash and expiry are cleared again.
    """
    user = await get_user_by_email(db, email)
    if user is None:
        raise NotFound("There is no user with that email address.")

    raw_token = secrets.token_hex(32)
    user.password_reset_token = hash_reset_token(raw_token)
    user.password_reset_expires = datetime.now(timezone.utc) + timedelta(
        minutes=settings.password_reset_expires_minutes
    )
    await db.flush()

    try:
        await mailer.send_password_reset(user, f"{reset_url_base.rstrip('/')}/{raw_token}")
    except mailer.EmailDeliveryError:
        user.password_reset_token = None
        user.password_reset_expires = None
        await db.flush()
        raise Internal("There was an error sending the email. Try again later!") from None

    logger.info("Password reset token issued for user %s", user.id)
    return raw_token


async def consume_password_reset(
    db: AsyncSession,
    raw_token: str,
    password: str,
    password_confirm: str,
) -> tuple[User, str]:
    """Exchange a valid reset token for a new password and session token."""
    result = await db.execute(user_query().where(User.password_reset_token == hash_reset_token(raw_token)))
    user = result.scalar_one_or_none()

    now = datetime.now(timezone.utc)
    if user is None or user.password_reset_expires is None or _as_utc(user.password_reset_expires) <= now:
        raise InvalidInput("Token is invalid or has expired")

    set_password(user, password, password_confirm)
    user.password_reset_token = None
    user.password_reset_expires = None
    await db.flush()
    logger.info("Password reset completed for user %s", user.id)

    return user, create_access_token(str(user.id))


async def update_password(
    db: AsyncSession,
    user: User,
    password_current: str,
    password: str,
    password_confirm: str,
) -> tuple[User, str]:
    """Change a logged-in user's password after re-checking the current one."""
    if not verify_password(password_current, user.hashed_password):
        raise Unauthorized("Your current password is wrong.")

    set_password(user, password, password_confirm)
    await db.flush()

    return user, create_access_token(str(user.id))
