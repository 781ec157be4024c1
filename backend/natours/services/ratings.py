"""Tour rating aggregation.

A tour's ``ratings_quantity`` / ``ratings_average`` is a cache over its
reviews. It is always recomputed from scratch, never adjusted
incrementally, and always under a row lock on the tour so concurrent
review writes for the same tour are serialized.
"""

import logging
import uuid

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from natours.errors import NotFound
from natours.models.review import Review
from natours.models.tour import DEFAULT_RATINGS_AVERAGE, DEFAULT_RATINGS_QUANTITY, Tour

logger = logging.getLogger(__name__)


async def lock_tour(db: AsyncSession, tour_id: uuid.UUID) -> None:
    """Take the per-tour lock (``SELECT ... FOR UPDATE``) for the current transaction.

    Raises:
        NotFound: If the tour does not exist.
    """
    result = await db.execute(select(Tour.id).where(Tour.id == tour_id).with_for_update())
    if result.scalar_one_or_none() is None:
        raise NotFound("No tour found with that ID")


async def recalculate_tour_ratings(db: AsyncSession, tour_id: uuid.UUID) -> tuple[int, float]:
    """Recompute and store the rating summary of ``tour_id``.

    Callers must hold the tour lock (see :func:`lock_tour`). Returns the
    stored ``(quantity, average)``; a tour without reviews gets ``(0, 4.5)``.
    """
    stats = await db.execute(
        select(func.count(Review.id), func.avg(Review.rating)).where(Review.tour_id == tour_id)
    )
    count, average = stats.one()

    if count:
        quantity, ratings_average = int(count), float(average)
    else:
        quantity, ratings_average = DEFAULT_RATINGS_QUANTITY, DEFAULT_RATINGS_AVERAGE

    await db.execute(
        update(Tour)
        .where(Tour.id == tour_id)
        .values(ratings_quantity=quantity, ratings_average=ratings_average)
    )
    logger.debug("Tour %s ratings recalculated: quantity=%s average=%s", tour_id, quantity, ratings_average)
    return quantity, ratings_average
