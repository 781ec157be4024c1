"""JWT session token creation and verification."""

from datetime import datetime, timedelta, timezone

from jose import jwt

from natours.config import settings


def create_access_token(
    user_id: str,
    expires_delta: timedelta | None = None,
    issued_at: datetime | None = None,
) -> str:
    """Create a signed session token for a user.

    Args:
        user_id: The user's UUID as a string, stored in the ``sub`` claim.
        expires_delta: Custom expiration duration. Defaults to
            ``settings.jwt_expires_in_days`` days.
        issued_at: Override for the ``iat`` claim. Defaults to now.

    Returns:
        Encoded JWT string.
    """
    now = issued_at or datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(days=settings.jwt_expires_in_days))
    to_encode = {"sub": user_id, "iat": now, "exp": expire}
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    """Decode and verify a JWT token.

    Args:
        token: Encoded JWT string.

    Returns:
        Decoded payload dictionary.

    Raises:
        jose.ExpiredSignatureError: If the token has expired.
        jose.JWTError: If the token is invalid or malformed.
    """
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
