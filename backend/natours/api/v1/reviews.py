"""Reviews API router.

Every write goes through :mod:`natours.services.reviews` so the owning
tour's rating summary is re-aggregated in the same transaction.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from natours.api import factory
from natours.api.deps import get_current_user, get_db, restrict_to
from natours.api.query import QueryOptions
from natours.errors import ValidationFailed
from natours.models.review import Review
from natours.models.user import User
from natours.schemas.common import DataResponse
from natours.schemas.review import ReviewCreate, ReviewResponse, ReviewUpdate
from natours.services import reviews as review_service

router = APIRouter(prefix="/api/v1/reviews", tags=["reviews"])

REVIEW_QUERY_FIELDS = ("rating", "tour_id", "user_id", "created_at")


@router.get("")
async def list_reviews(
    request: Request,
    tour: uuid.UUID | None = Query(None, description="Only reviews of this tour"),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
) -> dict:
    options = QueryOptions.from_request(request, ignore=("tour",))
    where = (Review.tour_id == tour,) if tour is not None else ()
    reviews = await factory.get_all(db, Review, options, *where, allowed=REVIEW_QUERY_FIELDS)
    return factory.list_response(reviews, ReviewResponse, options)


@router.get("/{review_id}", response_model=DataResponse[ReviewResponse])
async def get_review(
    review_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
) -> DataResponse[ReviewResponse]:
    review = await review_service.get_review(db, review_id)
    return DataResponse[ReviewResponse](data=ReviewResponse.model_validate(review))


@router.post("", response_model=DataResponse[ReviewResponse], status_code=status.HTTP_201_CREATED)
async def create_review(
    body: ReviewCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(restrict_to("user")),
) -> DataResponse[ReviewResponse]:
    """Review a tour as the logged-in user."""
    if body.tour is None:
        raise ValidationFailed("Review must belong to a tour.")
    review = await review_service.create_review(
        db, user_id=current_user.id, tour_id=body.tour, review=body.review, rating=body.rating
    )
    return DataResponse[ReviewResponse](data=ReviewResponse.model_validate(review))


@router.patch("/{review_id}", response_model=DataResponse[ReviewResponse])
async def update_review(
    review_id: uuid.UUID,
    body: ReviewUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(restrict_to("user", "admin")),
) -> DataResponse[ReviewResponse]:
    """Change the text and/or rating. Non-admins may only edit their own reviews."""
    review = await review_service.update_review(
        db, review_id, current_user, body.model_dump(exclude_unset=True, exclude_none=True)
    )
    return DataResponse[ReviewResponse](data=ReviewResponse.model_validate(review))


@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_review(
    review_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(restrict_to("user", "admin")),
) -> Response:
    await review_service.delete_review(db, review_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
