"""Stripe webhook event handlers — turn completed checkouts into bookings."""

import logging
import uuid
from decimal import Decimal

import stripe
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from natours.models.booking import Booking
from natours.models.tour import Tour
from natours.services.users import get_user_by_email

logger = logging.getLogger(__name__)


def _customer_email(session) -> str | None:
    email = getattr(session, "customer_email", None)
    if email:
        return email
    details = getattr(session, "customer_details", None)
    return getattr(details, "email", None) if details else None


async def handle_checkout_session_completed(db: AsyncSession, event: stripe.Event) -> Booking | None:
    """Record a paid booking for a completed checkout session.

    Stripe retries deliveries, so a session that already produced a booking
    is skipped. Returns the booking created, or ``None`` when nothing was
    recorded.
    """
    session = event.data.object

    existing = await db.execute(select(Booking).where(Booking.stripe_session_id == session.id))
    if existing.scalar_one_or_none() is not None:
        logger.info("Checkout session %s already recorded, skipping", session.id)
        return None

    try:
        tour_id = uuid.UUID(str(session.client_reference_id))
    except ValueError:
        logger.warning("Checkout session %s has no valid tour reference, skipping", session.id)
        return None

    tour = await db.get(Tour, tour_id)
    if tour is None:
        logger.warning("Checkout session %s references unknown tour %s", session.id, tour_id)
        return None

    email = _customer_email(session)
    user = await get_user_by_email(db, email) if email else None
    if user is None:
        logger.warning("Checkout session %s: no active user with email %s", session.id, email)
        return None

    amount_total = getattr(session, "amount_total", None)
    price = Decimal(amount_total) / 100 if amount_total is not None else tour.price

    booking = Booking(tour_id=tour.id, user_id=user.id, price=price, paid=True, stripe_session_id=session.id)
    try:
        async with db.begin_nested():
            db.add(booking)
    except IntegrityError:
        # A concurrent delivery of the same session won the race
        logger.info("Checkout session %s already recorded, skipping", session.id)
        return None
    logger.info("Booking %s created from checkout session %s", booking.id, session.id)
    return booking
