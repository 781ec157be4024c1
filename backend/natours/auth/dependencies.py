"""FastAPI authentication dependencies for route protection.

Tokens are read from the ``Authorization: Bearer`` header first and the
``jwt`` cookie second, so both API clients and rendered pages work.
"""

from collections.abc import Awaitable, Callable

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from natours.database import get_db
from natours.errors import AppError
from natours.models.user import User
from natours.services.auth_service import require_role, verify

TOKEN_COOKIE = "jwt"
LOGGED_OUT_SENTINEL = "loggedout"

# Optional bearer; the cookie is the fallback
_bearer_scheme = HTTPBearer(auto_error=False)


def extract_token(request: Request, credentials: HTTPAuthorizationCredentials | None) -> str | None:
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    cookie = request.cookies.get(TOKEN_COOKIE)
    if cookie and cookie != LOGGED_OUT_SENTINEL:
        return cookie
    return None


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Return the authenticated user or raise ``Unauthorized``.

    The user is also stored on ``request.state.user`` for templates.
    """
    user = await verify(db, extract_token(request, credentials))
    request.state.user = user
    return user


async def get_optional_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """Resolve the user from the ``jwt`` cookie for rendered pages.

    Returns ``None`` instead of raising for a missing, invalid or stale token.
    """
    token = extract_token(request, None)
    if token is None:
        return None
    try:
        user = await verify(db, token)
    except AppError:
        return None
    request.state.user = user
    return user


def restrict_to(*roles: str) -> Callable[..., Awaitable[User]]:
    """Dependency factory: authenticated user whose role is one of ``roles``.

    Usage::

        @router.delete("/{id}")
        async def delete(user: User = Depends(restrict_to("admin", "lead-guide"))):
            ...
    """

    async def _dependency(user: User = Depends(get_current_user)) -> User:
        require_role(user, roles)
        return user

    return _dependency
