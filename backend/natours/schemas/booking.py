"""Pydantic v2 request/response schemas for booking endpoints."""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from natours.schemas.user import UserSummary

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class BookingCreate(BaseModel):
    """Schema for an administrative booking (payments normally create them)."""

    tour_id: uuid.UUID
    user_id: uuid.UUID
    price: Decimal = Field(..., ge=0)
    paid: bool = True


class BookingUpdate(BaseModel):
    """Schema for partially updating a booking. All fields optional."""

    price: Decimal | None = Field(None, ge=0)
    paid: bool | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BookingTour(BaseModel):
    id: uuid.UUID
    name: str
    slug: str

    model_config = ConfigDict(from_attributes=True)


class BookingResponse(BaseModel):
    """Booking with the booked tour's name and the customer."""

    id: uuid.UUID
    tour_id: uuid.UUID
    user_id: uuid.UUID
    price: Decimal
    paid: bool
    created_at: datetime
    tour: BookingTour | None = None
    user: UserSummary | None = None

    model_config = ConfigDict(from_attributes=True)


class CheckoutSessionResponse(BaseModel):
    status: str = "success"
    session_id: str
    checkout_url: str | None = None
