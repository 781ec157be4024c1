"""Review store — every review mutation re-aggregates its tour's ratings."""

import uuid

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from natours.errors import Conflict, Forbidden, NotFound
from natours.models.review import Review
from natours.models.user import User
from natours.services.ratings import lock_tour, recalculate_tour_ratings

DUPLICATE_REVIEW_MESSAGE = "You have already reviewed this tour"


async def get_review(db: AsyncSession, review_id: uuid.UUID) -> Review:
    result = await db.execute(select(Review).where(Review.id == review_id))
    review = result.scalar_one_or_none()
    if review is None:
        raise NotFound("No review found with that ID")
    return review


def _check_author(review: Review, user: User) -> None:
    if user.role != "admin" and review.user_id != user.id:
        raise Forbidden("You can only change your own reviews")


async def create_review(
    db: AsyncSession,
    user_id: uuid.UUID,
    tour_id: uuid.UUID,
    review: str,
    rating: int,
) -> Review:
    """Create a review and refresh the tour's rating summary.

    Raises:
        NotFound: If the tour does not exist.
        Conflict: If the user already reviewed this tour.
    """
    await lock_tour(db, tour_id)

    existing = await db.execute(
        select(Review.id).where(Review.tour_id == tour_id, Review.user_id == user_id)
    )
    if existing.scalar_one_or_none() is not None:
        raise Conflict(DUPLICATE_REVIEW_MESSAGE)

    obj = Review(review=review, rating=rating, tour_id=tour_id, user_id=user_id)
    db.add(obj)
    try:
        await db.flush()
    except IntegrityError:
        raise Conflict(DUPLICATE_REVIEW_MESSAGE) from None

    await recalculate_tour_ratings(db, tour_id)
    await db.refresh(obj)
    return obj


async def update_review(db: AsyncSession, review_id: uuid.UUID, user: User, changes: dict) -> Review:
    """Apply a partial update (text and/or rating) and re-aggregate the tour."""
    obj = await get_review(db, review_id)
    _check_author(obj, user)

    await lock_tour(db, obj.tour_id)
    for field in ("review", "rating"):
        if field in changes:
            setattr(obj, field, changes[field])
    await db.flush()

    await recalculate_tour_ratings(db, obj.tour_id)
    await db.refresh(obj)
    return obj


async def delete_review(db: AsyncSession, review_id: uuid.UUID, user: User) -> None:
    obj = await get_review(db, review_id)
    _check_author(obj, user)

    tour_id = obj.tour_id
    await lock_tour(db, tour_id)
    await db.delete(obj)
    await db.flush()

    await recalculate_tour_ratings(db, tour_id)


async def delete_author(db: AsyncSession, user: User) -> None:
    """Hard-delete ``user``; their reviews go with them and every tour they
    reviewed is re-aggregated."""
    result = await db.execute(select(Review.tour_id).where(Review.user_id == user.id))
    tour_ids = sorted(set(result.scalars().all()))
    for tour_id in tour_ids:
        await lock_tour(db, tour_id)

    await db.execute(delete(Review).where(Review.user_id == user.id))
    await db.delete(user)
    await db.flush()

    for tour_id in tour_ids:
        await recalculate_tour_ratings(db, tour_id)
