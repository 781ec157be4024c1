"""Pydantic v2 request/response schemas for review endpoints."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from natours.schemas.user import UserSummary

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class ReviewCreate(BaseModel):
    """Schema for creating a review.

    ``tour`` may be omitted on the nested ``/tours/{tour_id}/reviews`` route.
    The author is always the logged-in user.
    """

    review: str = Field(..., min_length=1)
    rating: int = Field(..., ge=1, le=5)
    tour: uuid.UUID | None = None


class ReviewUpdate(BaseModel):
    """Schema for partially updating a review. All fields optional."""

    review: str | None = Field(None, min_length=1)
    rating: int | None = Field(None, ge=1, le=5)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ReviewResponse(BaseModel):
    """Review with its author's name and photo."""

    id: uuid.UUID
    review: str
    rating: int
    tour_id: uuid.UUID
    user_id: uuid.UUID
    created_at: datetime
    user: UserSummary | None = None

    model_config = ConfigDict(from_attributes=True)
