"""Bookings API router — Stripe checkout for customers, CRUD for staff.

Bookings are normally created by the ``checkout.session.completed``
webhook; the CRUD endpoints exist for admins and lead guides to fix
records by hand.
"""

from __future__ import annotations

import logging
import uuid

import stripe
from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from natours.api import factory
from natours.api.deps import get_current_user, get_db, restrict_to
from natours.api.query import QueryOptions
from natours.billing.stripe_client import create_tour_checkout_session
from natours.config import settings
from natours.errors import AppError, ValidationFailed
from natours.models.booking import Booking
from natours.models.tour import Tour
from natours.models.user import User
from natours.schemas.booking import (
    BookingCreate,
    BookingResponse,
    BookingUpdate,
    CheckoutSessionResponse,
)
from natours.schemas.common import DataResponse
from natours.services.users import get_user_by_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/bookings", tags=["bookings"])

BOOKING_QUERY_FIELDS = ("tour_id", "user_id", "price", "paid", "created_at")

_staff = restrict_to("admin", "lead-guide")


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


@router.get("/checkout-session/{tour_id}", response_model=CheckoutSessionResponse)
async def get_checkout_session(
    tour_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> CheckoutSessionResponse:
    """Create a Stripe Checkout session for booking ``tour_id``."""
    tour = await factory.get_one(db, Tour, tour_id, Tour.secret_tour.is_(False))

    try:
        session = await create_tour_checkout_session(
            tour_id=str(tour.id),
            tour_name=tour.name,
            tour_summary=tour.summary,
            tour_image=tour.image_cover,
            price=tour.price,
            customer_email=current_user.email,
            success_url=f"{settings.public_url}/my-tours",
            cancel_url=f"{settings.public_url}/tour/{tour.slug}",
        )
    except stripe.StripeError as e:
        logger.error("Stripe checkout error: %s", e)
        raise AppError(str(e), status.HTTP_502_BAD_GATEWAY) from e

    return CheckoutSessionResponse(session_id=session.id, checkout_url=session.url)


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


@router.get("")
async def list_bookings(
    request: Request,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(_staff),
) -> dict:
    options = QueryOptions.from_request(request)
    bookings = await factory.get_all(db, Booking, options, allowed=BOOKING_QUERY_FIELDS)
    return factory.list_response(bookings, BookingResponse, options)


@router.post("", response_model=DataResponse[BookingResponse], status_code=status.HTTP_201_CREATED)
async def create_booking(
    body: BookingCreate,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(_staff),
) -> DataResponse[BookingResponse]:
    """Record a booking by hand (e.g. a payment taken outside Stripe)."""
    if await db.get(Tour, body.tour_id) is None:
        raise ValidationFailed("No tour found with that ID")
    if await get_user_by_id(db, body.user_id) is None:
        raise ValidationFailed("No user found with that ID")

    booking = await factory.create_one(db, Booking, body.model_dump())
    return DataResponse[BookingResponse](data=BookingResponse.model_validate(booking))


@router.get("/{booking_id}", response_model=DataResponse[BookingResponse])
async def get_booking(
    booking_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(_staff),
) -> DataResponse[BookingResponse]:
    booking = await factory.get_one(db, Booking, booking_id)
    return DataResponse[BookingResponse](data=BookingResponse.model_validate(booking))


@router.patch("/{booking_id}", response_model=DataResponse[BookingResponse])
async def update_booking(
    booking_id: uuid.UUID,
    body: BookingUpdate,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(_staff),
) -> DataResponse[BookingResponse]:
    booking = await factory.update_one(db, Booking, booking_id, body)
    return DataResponse[BookingResponse](data=BookingResponse.model_validate(booking))


@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_booking(
    booking_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(_staff),
) -> Response:
    await factory.delete_one(db, Booking, booking_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
