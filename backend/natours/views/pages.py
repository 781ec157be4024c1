"""Server-rendered pages.

Pages resolve the user from the ``jwt`` cookie without raising, so an
invalid or stale cookie simply renders the anonymous version.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from natours.api.deps import get_db, get_optional_user
from natours.errors import NotFound, Unauthorized
from natours.models.booking import Booking
from natours.models.tour import Tour
from natours.models.user import User
from natours.templating import templates

router = APIRouter(tags=["pages"], default_response_class=HTMLResponse)


def _require_login(user: User | None) -> User:
    if user is None:
        raise Unauthorized("You are not logged in! Please log in to get access.")
    return user


@router.get("/")
async def overview(
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    result = await db.execute(select(Tour).where(Tour.secret_tour.is_(False)).order_by(Tour.created_at))
    return templates.TemplateResponse(
        request=request,
        name="overview.html",
        context={"title": "All Tours", "tours": list(result.scalars().all()), "user": user},
    )


@router.get("/tour/{slug}")
async def tour_detail(
    slug: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    result = await db.execute(
        select(Tour)
        .where(Tour.slug == slug, Tour.secret_tour.is_(False))
        .options(selectinload(Tour.reviews))
    )
    tour = result.scalar_one_or_none()
    if tour is None:
        raise NotFound("There is no tour with that name.")
    return templates.TemplateResponse(
        request=request,
        name="tour.html",
        context={"title": f"{tour.name} Tour", "tour": tour, "user": user},
    )


@router.get("/login")
async def login_form(request: Request, user: User | None = Depends(get_optional_user)):
    return templates.TemplateResponse(
        request=request,
        name="login.html",
        context={"title": "Log into your account", "user": user},
    )


@router.get("/account")
async def account(request: Request, user: User | None = Depends(get_optional_user)):
    user = _require_login(user)
    return templates.TemplateResponse(
        request=request,
        name="account.html",
        context={"title": "Your account", "user": user},
    )


@router.get("/my-tours")
async def my_tours(
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    """Tours the logged-in user has booked."""
    user = _require_login(user)
    result = await db.execute(select(Booking.tour_id).where(Booking.user_id == user.id))
    tour_ids = set(result.scalars().all())
    tours = []
    if tour_ids:
        tours_result = await db.execute(select(Tour).where(Tour.id.in_(tour_ids)).order_by(Tour.name))
        tours = list(tours_result.scalars().all())
    return templates.TemplateResponse(
        request=request,
        name="overview.html",
        context={"title": "My Tours", "tours": tours, "user": user},
    )
