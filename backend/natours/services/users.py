"""User store — every user read goes through here so the active-only
predicate is applied consistently."""

import uuid

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from natours.models.user import User


def user_query(include_inactive: bool = False) -> Select[tuple[User]]:
    """Base ``SELECT`` for users; soft-deleted users are hidden unless asked for."""
    query = select(User)
    if not include_inactive:
        query = query.where(User.active.is_(True))
    return query


async def get_user_by_id(
    db: AsyncSession,
    user_id: uuid.UUID,
    include_inactive: bool = False,
) -> User | None:
    result = await db.execute(user_query(include_inactive).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(
    db: AsyncSession,
    email: str,
    include_inactive: bool = False,
) -> User | None:
    result = await db.execute(user_query(include_inactive).where(User.email == email.strip().lower()))
    return result.scalar_one_or_none()
