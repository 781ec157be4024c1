"""Tours API router — CRUD, aliases, aggregates, geo lookups and nested reviews.

Secret tours are hidden from every read endpoint below.
"""

from __future__ import annotations

import math
import uuid
from collections import defaultdict
from datetime import datetime

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from natours.api import factory
from natours.api.deps import get_current_user, get_db, restrict_to
from natours.api.query import QueryOptions
from natours.errors import ValidationFailed
from natours.models.review import Review
from natours.models.tour import Tour, slugify
from natours.models.user import User
from natours.schemas.common import DataResponse
from natours.schemas.review import ReviewCreate, ReviewResponse
from natours.schemas.tour import (
    MonthlyPlanEntry,
    TourCreate,
    TourDetailResponse,
    TourDistance,
    TourResponse,
    TourStats,
    TourUpdate,
)
from natours.services import reviews as review_service
from natours.services.users import user_query

router = APIRouter(prefix="/api/v1/tours", tags=["tours"])

# Columns the public may filter and sort on
TOUR_QUERY_FIELDS = (
    "name",
    "slug",
    "duration",
    "max_group_size",
    "difficulty",
    "ratings_average",
    "ratings_quantity",
    "price",
    "price_discount",
    "created_at",
)
REVIEW_QUERY_FIELDS = ("rating", "user_id", "created_at")

TOP_CHEAP_DEFAULTS = {
    "limit": "5",
    "sort": "-ratings_average,price",
    "fields": "name,price,ratings_average,summary,difficulty",
}

EARTH_RADIUS = {"mi": 3963.2, "km": 6378.1}

_NOT_SECRET = Tour.secret_tour.is_(False)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _resolve_guides(db: AsyncSession, guide_ids: list[uuid.UUID]) -> list[User]:
    """Load guide users, raising ``ValidationFailed`` for unknown ids."""
    if not guide_ids:
        return []
    result = await db.execute(user_query().where(User.id.in_(guide_ids)))
    users = {u.id: u for u in result.scalars().all()}
    missing = [str(gid) for gid in guide_ids if gid not in users]
    if missing:
        raise ValidationFailed(f"No user found with ID: {', '.join(missing)}")
    return [users[gid] for gid in dict.fromkeys(guide_ids)]


def _parse_latlng(latlng: str) -> tuple[float, float]:
    try:
        lat_raw, lng_raw = latlng.split(",")
        lat, lng = float(lat_raw), float(lng_raw)
    except ValueError:
        raise ValidationFailed("Please provide latitude and longitude in the format lat,lng.") from None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        raise ValidationFailed("Please provide latitude and longitude in the format lat,lng.")
    return lat, lng


def _earth_radius(unit: str) -> float:
    if unit not in EARTH_RADIUS:
        raise ValidationFailed("Unit must be either 'mi' or 'km'.")
    return EARTH_RADIUS[unit]


def haversine(lat1: float, lng1: float, lat2: float, lng2: float, radius: float) -> float:
    """Great-circle distance between two points, in the unit of ``radius``."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * radius * math.asin(math.sqrt(a))


async def _located_tours(db: AsyncSession) -> list[tuple[Tour, float, float]]:
    """Public tours with a start location, as ``(tour, lat, lng)``."""
    result = await db.execute(select(Tour).where(_NOT_SECRET, Tour.start_location.is_not(None)))
    located = []
    for tour in result.scalars().all():
        coordinates = (tour.start_location or {}).get("coordinates") or []
        if len(coordinates) == 2:
            lng, lat = coordinates
            located.append((tour, float(lat), float(lng)))
    return located


# ---------------------------------------------------------------------------
# Aliases and aggregates
# ---------------------------------------------------------------------------


@router.get("/top-5-cheap")
async def top_five_cheap(request: Request, db: AsyncSession = Depends(get_db)) -> dict:
    """The five best-rated tours, cheapest first among equals."""
    params = {**TOP_CHEAP_DEFAULTS, **request.query_params}
    options = QueryOptions(params)
    tours = await factory.get_all(db, Tour, options, _NOT_SECRET, allowed=TOUR_QUERY_FIELDS)
    return factory.list_response(tours, TourResponse, options)


@router.get("/tour-stats", response_model=DataResponse[list[TourStats]])
async def tour_stats(db: AsyncSession = Depends(get_db)) -> DataResponse[list[TourStats]]:
    """Per-difficulty aggregates over tours rated 4.5 or better."""
    query = (
        select(
            Tour.difficulty,
            func.count(Tour.id),
            func.sum(Tour.ratings_quantity),
            func.avg(Tour.ratings_average),
            func.avg(Tour.price),
            func.min(Tour.price),
            func.max(Tour.price),
        )
        .where(_NOT_SECRET, Tour.ratings_average >= 4.5)
        .group_by(Tour.difficulty)
        .order_by(func.avg(Tour.price))
    )
    result = await db.execute(query)
    stats = [
        TourStats(
            difficulty=difficulty,
            num_tours=num_tours,
            num_ratings=num_ratings or 0,
            avg_rating=round(float(avg_rating), 2),
            avg_price=round(float(avg_price), 2),
            min_price=float(min_price),
            max_price=float(max_price),
        )
        for difficulty, num_tours, num_ratings, avg_rating, avg_price, min_price, max_price in result.all()
    ]
    return DataResponse[list[TourStats]](data=stats)


@router.get("/monthly-plan/{year}", response_model=DataResponse[list[MonthlyPlanEntry]])
async def monthly_plan(
    year: int,
    db: AsyncSession = Depends(get_db),
    _staff: User = Depends(restrict_to("admin", "lead-guide", "guide")),
) -> DataResponse[list[MonthlyPlanEntry]]:
    """Tour starts per month of ``year``, busiest month first."""
    result = await db.execute(select(Tour.name, Tour.start_dates).where(_NOT_SECRET))

    by_month: dict[int, list[str]] = defaultdict(list)
    for name, start_dates in result.all():
        for raw in start_dates or []:
            started = datetime.fromisoformat(raw)
            if started.year == year:
                by_month[started.month].append(name)

    plan = [
        MonthlyPlanEntry(month=month, num_tour_starts=len(names), tours=names)
        for month, names in by_month.items()
    ]
    plan.sort(key=lambda entry: (-entry.num_tour_starts, entry.month))
    return DataResponse[list[MonthlyPlanEntry]](data=plan[:12])


@router.get("/tours-within/{distance}/center/{latlng}/unit/{unit}")
async def tours_within(
    distance: float,
    latlng: str,
    unit: str,
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Tours whose start location lies within ``distance`` of ``latlng``."""
    lat, lng = _parse_latlng(latlng)
    radius = _earth_radius(unit)
    if distance < 0:
        raise ValidationFailed("Distance must not be negative.")

    tours = [
        tour
        for tour, t_lat, t_lng in await _located_tours(db)
        if haversine(lat, lng, t_lat, t_lng, radius) <= distance
    ]
    data = [TourResponse.model_validate(t).model_dump(mode="json") for t in tours]
    return {"status": "success", "results": len(data), "data": data}


@router.get("/distances/{latlng}/unit/{unit}", response_model=DataResponse[list[TourDistance]])
async def distances(
    latlng: str,
    unit: str,
    db: AsyncSession = Depends(get_db),
) -> DataResponse[list[TourDistance]]:
    """Distance from ``latlng`` to every located tour, nearest first."""
    lat, lng = _parse_latlng(latlng)
    radius = _earth_radius(unit)

    rows = [
        TourDistance(id=tour.id, name=tour.name, distance=round(haversine(lat, lng, t_lat, t_lng, radius), 3))
        for tour, t_lat, t_lng in await _located_tours(db)
    ]
    rows.sort(key=lambda row: row.distance)
    return DataResponse[list[TourDistance]](data=rows)


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


@router.get("")
async def list_tours(request: Request, db: AsyncSession = Depends(get_db)) -> dict:
    """List public tours. Supports filtering, sorting, field selection and paging."""
    options = QueryOptions.from_request(request)
    tours = await factory.get_all(db, Tour, options, _NOT_SECRET, allowed=TOUR_QUERY_FIELDS)
    return factory.list_response(tours, TourResponse, options)


@router.get("/{tour_id}", response_model=DataResponse[TourDetailResponse])
async def get_tour(tour_id: uuid.UUID, db: AsyncSession = Depends(get_db)) -> DataResponse[TourDetailResponse]:
    """Get a tour with its guides and reviews."""
    tour = await factory.get_one(db, Tour, tour_id, _NOT_SECRET, options=(selectinload(Tour.reviews),))
    return DataResponse[TourDetailResponse](data=TourDetailResponse.model_validate(tour))


@router.post("", response_model=DataResponse[TourResponse], status_code=status.HTTP_201_CREATED)
async def create_tour(
    body: TourCreate,
    db: AsyncSession = Depends(get_db),
    _staff: User = Depends(restrict_to("admin", "lead-guide")),
) -> DataResponse[TourResponse]:
    data = body.to_model_data()
    data["slug"] = slugify(body.name)
    data["guides"] = await _resolve_guides(db, body.guides)
    tour = await factory.create_one(db, Tour, data)
    return DataResponse[TourResponse](data=TourResponse.model_validate(tour))


@router.patch("/{tour_id}", response_model=DataResponse[TourResponse])
async def update_tour(
    tour_id: uuid.UUID,
    body: TourUpdate,
    db: AsyncSession = Depends(get_db),
    _staff: User = Depends(restrict_to("admin", "lead-guide")),
) -> DataResponse[TourResponse]:
    """Partially update a tour. Rating fields are not writable."""
    tour = await factory.get_one(db, Tour, tour_id)
    changes = body.to_model_data()

    price = changes.get("price", tour.price)
    discount = changes.get("price_discount", tour.price_discount)
    if discount is not None and discount >= price:
        raise ValidationFailed(f"Discount price ({discount}) should be below regular price")

    for field, value in changes.items():
        setattr(tour, field, value)
    if "name" in changes:
        tour.slug = slugify(changes["name"])
    if body.guides is not None:
        tour.guides = await _resolve_guides(db, body.guides)

    await db.flush()
    await db.refresh(tour)
    return DataResponse[TourResponse](data=TourResponse.model_validate(tour))


@router.delete("/{tour_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tour(
    tour_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _staff: User = Depends(restrict_to("admin", "lead-guide")),
) -> Response:
    """Delete a tour together with its reviews and bookings."""
    await factory.delete_one(db, Tour, tour_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Nested reviews
# ---------------------------------------------------------------------------


@router.get("/{tour_id}/reviews")
async def list_tour_reviews(
    tour_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
) -> dict:
    await factory.get_one(db, Tour, tour_id, _NOT_SECRET)
    options = QueryOptions.from_request(request)
    reviews = await factory.get_all(db, Review, options, Review.tour_id == tour_id, allowed=REVIEW_QUERY_FIELDS)
    return factory.list_response(reviews, ReviewResponse, options)


@router.post("/{tour_id}/reviews", response_model=DataResponse[ReviewResponse], status_code=status.HTTP_201_CREATED)
async def create_tour_review(
    tour_id: uuid.UUID,
    body: ReviewCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(restrict_to("user")),
) -> DataResponse[ReviewResponse]:
    """Review a tour as the logged-in user. The URL's tour wins over the body."""
    review = await review_service.create_review(
        db, user_id=current_user.id, tour_id=tour_id, review=body.review, rating=body.rating
    )
    return DataResponse[ReviewResponse](data=ReviewResponse.model_validate(review))
