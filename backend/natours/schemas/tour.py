"""Pydantic v2 request/response schemas for tour endpoints."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from natours.schemas.common import reject_explicit_nulls
from natours.schemas.review import ReviewResponse
from natours.schemas.user import UserSummary

DIFFICULTY_PATTERN = "^(easy|medium|difficult)$"

# Columns a partial update may omit but never clear
REQUIRED_TOUR_FIELDS = (
    "name",
    "duration",
    "max_group_size",
    "difficulty",
    "price",
    "summary",
    "image_cover",
    "images",
    "start_dates",
    "secret_tour",
    "locations",
    "guides",
)


class GeoPoint(BaseModel):
    """GeoJSON point; ``coordinates`` are ``[longitude, latitude]``."""

    type: str = Field("Point", pattern="^Point$")
    coordinates: list[float] = Field(..., min_length=2, max_length=2)
    address: str | None = None
    description: str | None = None


class TourLocation(GeoPoint):
    day: int | None = Field(None, ge=0)


def _validate_discount(price: Decimal | None, discount: Decimal | None) -> None:
    if price is not None and discount is not None and discount >= price:
        raise ValueError(f"Discount price ({discount}) should be below regular price")


class _TourWrite(BaseModel):
    def to_model_data(self) -> dict[str, Any]:
        """Dump explicitly set fields in the shape stored on :class:`Tour`.

        ``guides`` is left out; it is resolved to users by the router.
        """
        data = self.model_dump(exclude_unset=True, exclude={"guides"})
        if "start_dates" in data and data["start_dates"] is not None:
            data["start_dates"] = [d.isoformat() for d in data["start_dates"]]
        return data


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class TourCreate(_TourWrite):
    """Schema for creating a new tour."""

    name: str = Field(..., min_length=10, max_length=40)
    duration: int = Field(..., ge=1)
    max_group_size: int = Field(..., ge=1)
    difficulty: str = Field(..., pattern=DIFFICULTY_PATTERN)
    price: Decimal = Field(..., gt=0)
    price_discount: Decimal | None = Field(None, ge=0)
    summary: str = Field(..., min_length=1, max_length=500)
    description: str | None = None
    image_cover: str = Field(..., min_length=1)
    images: list[str] = Field(default_factory=list)
    start_dates: list[datetime] = Field(default_factory=list)
    secret_tour: bool = False
    start_location: GeoPoint | None = None
    locations: list[TourLocation] = Field(default_factory=list)
    guides: list[uuid.UUID] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_discount(self) -> "TourCreate":
        _validate_discount(self.price, self.price_discount)
        return self

    def to_model_data(self) -> dict[str, Any]:
        data = self.model_dump(exclude={"guides"})
        data["start_dates"] = [d.isoformat() for d in self.start_dates]
        return data


class TourUpdate(_TourWrite):
    """Schema for partially updating a tour. All fields optional."""

    name: str | None = Field(None, min_length=10, max_length=40)
    duration: int | None = Field(None, ge=1)
    max_group_size: int | None = Field(None, ge=1)
    difficulty: str | None = Field(None, pattern=DIFFICULTY_PATTERN)
    price: Decimal | None = Field(None, gt=0)
    price_discount: Decimal | None = Field(None, ge=0)
    summary: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = None
    image_cover: str | None = Field(None, min_length=1)
    images: list[str] | None = None
    start_dates: list[datetime] | None = None
    secret_tour: bool | None = None
    start_location: GeoPoint | None = None
    locations: list[TourLocation] | None = None
    guides: list[uuid.UUID] | None = None

    @model_validator(mode="after")
    def check_values(self) -> "TourUpdate":
        """Required columns cannot be cleared, and a discount must stay below the price."""
        reject_explicit_nulls(self, REQUIRED_TOUR_FIELDS)
        _validate_discount(self.price, self.price_discount)
        return self


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class TourResponse(BaseModel):
    """Public tour information returned from the API."""

    id: uuid.UUID
    name: str
    slug: str
    duration: int
    duration_weeks: float
    max_group_size: int
    difficulty: str
    ratings_average: float
    ratings_quantity: int
    price: Decimal
    price_discount: Decimal | None = None
    summary: str
    description: str | None = None
    image_cover: str
    images: list[str] = []
    start_dates: list[str] = []
    start_location: dict[str, Any] | None = None
    locations: list[dict[str, Any]] = []
    guides: list[UserSummary] = []
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TourDetailResponse(TourResponse):
    """Tour with its reviews, used by the single-tour endpoint."""

    reviews: list[ReviewResponse] = []


class TourStats(BaseModel):
    """Aggregate statistics for one difficulty level."""

    difficulty: str
    num_tours: int
    num_ratings: int
    avg_rating: float
    avg_price: float
    min_price: float
    max_price: float


class MonthlyPlanEntry(BaseModel):
    """Tours starting in one calendar month."""

    month: int
    num_tour_starts: int
    tours: list[str]


class TourDistance(BaseModel):
    id: uuid.UUID
    name: str
    distance: float
