"""Tour model — the product being booked and reviewed."""

import re
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Boolean, Column, Float, ForeignKey, Integer, Numeric, String, Table, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from natours.database import Base, TimestampMixin, UUIDPrimaryKeyMixin

DIFFICULTIES = ("easy", "medium", "difficult")

# Rating summary used when a tour has no reviews
DEFAULT_RATINGS_AVERAGE = 4.5
DEFAULT_RATINGS_QUANTITY = 0

tour_guides = Table(
    "tour_guides",
    Base.metadata,
    Column("tour_id", ForeignKey("tours.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


def slugify(value: str) -> str:
    """Lower-case ``value`` and collapse runs of non-alphanumerics into dashes."""
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


class Tour(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A guided tour with pricing, schedule and a cached rating summary."""

    __tablename__ = "tours"

    name: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)
    slug: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    max_group_size: Mapped[int] = mapped_column(Integer, nullable=False)
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False)  # see DIFFICULTIES

    # Derived from reviews; written only by natours.services.ratings
    ratings_average: Mapped[float] = mapped_column(Float, default=DEFAULT_RATINGS_AVERAGE, nullable=False)
    ratings_quantity: Mapped[int] = mapped_column(Integer, default=DEFAULT_RATINGS_QUANTITY, nullable=False)

    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    price_discount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    summary: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_cover: Mapped[str] = mapped_column(String(255), nullable=False)
    images: Mapped[list[str]] = mapped_column(JSON, default=list)
    start_dates: Mapped[list[str]] = mapped_column(JSON, default=list)  # ISO-8601 datetimes
    secret_tour: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # GeoJSON points: {"type": "Point", "coordinates": [lng, lat], "address": ..., "description": ...}
    start_location: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    locations: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)

    # Relationships
    guides: Mapped[list["User"]] = relationship(secondary=tour_guides, lazy="selectin")  # type: ignore[name-defined]  # noqa: F821
    reviews: Mapped[list["Review"]] = relationship(  # type: ignore[name-defined]  # noqa: F821
        back_populates="tour", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def duration_weeks(self) -> float:
        return self.duration / 7

    def __repr__(self) -> str:
        return f"<Tour(id={self.id}, name={self.name!r}, price={self.price})>"


