"""Seed the database with sample tours, users and reviews.

Creates the schema if needed, then loads a small catalogue. Rating
summaries are computed through the aggregation service, never written
by hand.

Run from ``backend/``:
    python -m scripts.seed_data            # create schema and load data
    python -m scripts.seed_data --delete   # wipe all data first
"""

import argparse
import asyncio
import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

# Add backend to path so imports work when run as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import delete, select

from natours.auth.passwords import hash_password
from natours.database import Base, async_session_factory, engine
from natours.models import Booking, Review, Tour, User
from natours.models.tour import slugify, tour_guides
from natours.services.reviews import create_review

# ---------------------------------------------------------------------------
# Seed data definitions
# ---------------------------------------------------------------------------

DEFAULT_PASSWORD = "test1234"

USERS = [
    {"name": "Jonas Admin", "email": "admin@natours.io", "role": "admin", "photo": "user-1.jpg"},
    {"name": "Lourdes Browning", "email": "loulou@example.com", "role": "lead-guide", "photo": "user-2.jpg"},
    {"name": "Leo Gillespie", "email": "leo@example.com", "role": "guide", "photo": "user-3.jpg"},
    {"name": "Kate Morrison", "email": "kate@example.com", "role": "guide", "photo": "user-4.jpg"},
    {"name": "Sophie Louise Hart", "email": "sophie@example.com", "role": "user", "photo": "user-5.jpg"},
    {"name": "Ayla Cornell", "email": "ayls@example.com", "role": "user", "photo": "user-6.jpg"},
    {"name": "Max Smith", "email": "max@example.com", "role": "user", "photo": "user-7.jpg"},
]

TOURS = [
    {
        "name": "The Forest Hiker",
        "duration": 5,
        "max_group_size": 25,
        "difficulty": "easy",
        "price": Decimal("397"),
        "summary": "Breathtaking hike through the Canadian Banff National Park",
        "description": (
            "Ut enim ad minim veniam, quis nostrud exercitation ullamco laboris.\n"
            "Irure dolor in reprehenderit in voluptate velit esse cillum dolore."
        ),
        "image_cover": "tour-1-cover.jpg",
        "images": ["tour-1-1.jpg", "tour-1-2.jpg", "tour-1-3.jpg"],
        "start_dates": ["2027-04-25T09:00:00+00:00", "2027-07-20T09:00:00+00:00", "2027-10-05T09:00:00+00:00"],
        "start_location": {
            "type": "Point",
            "coordinates": [-116.214531, 51.417611],
            "address": "224 Banff Ave, Banff, AB, Canada",
            "description": "Banff, CAN",
        },
        "locations": [
            {"type": "Point", "coordinates": [-116.214531, 51.417611], "description": "Banff National Park", "day": 1},
            {"type": "Point", "coordinates": [-118.076152, 52.875223], "description": "Jasper National Park", "day": 3},
        ],
        "guides": ["loulou@example.com", "leo@example.com"],
    },
    {
        "name": "The Sea Explorer",
        "duration": 7,
        "max_group_size": 15,
        "difficulty": "medium",
        "price": Decimal("497"),
        "price_discount": Decimal("397"),
        "summary": "Exploring the jaw-dropping US east coast by foot and by boat",
        "description": "Consectetur adipisicing elit, sed do eiusmod tempor incididunt ut labore.",
        "image_cover": "tour-2-cover.jpg",
        "images": ["tour-2-1.jpg", "tour-2-2.jpg", "tour-2-3.jpg"],
        "start_dates": ["2027-06-19T09:00:00+00:00", "2027-07-20T09:00:00+00:00", "2027-08-18T09:00:00+00:00"],
        "start_location": {
            "type": "Point",
            "coordinates": [-80.185942, 25.774772],
            "address": "301 Biscayne Blvd, Miami, FL 33132, USA",
            "description": "Miami, USA",
        },
        "locations": [
            {"type": "Point", "coordinates": [-80.128473, 25.781842], "description": "Lummus Park Beach", "day": 1},
            {"type": "Point", "coordinates": [-80.647885, 24.909047], "description": "Islamorada", "day": 2},
        ],
        "guides": ["loulou@example.com", "kate@example.com"],
    },
    {
        "name": "The Snow Adventurer",
        "duration": 4,
        "max_group_size": 10,
        "difficulty": "difficult",
        "price": Decimal("997"),
        "summary": "Exciting adventure in the snow with snowboarding and skiing",
        "description": "Sed do eiusmod tempor incididunt ut labore et dolore magna aliqua.",
        "image_cover": "tour-3-cover.jpg",
        "images": ["tour-3-1.jpg", "tour-3-2.jpg", "tour-3-3.jpg"],
        "start_dates": ["2027-01-05T10:00:00+00:00", "2027-02-12T10:00:00+00:00", "2028-01-06T10:00:00+00:00"],
        "start_location": {
            "type": "Point",
            "coordinates": [-106.822318, 39.190872],
            "address": "419 S Mill St, Aspen, CO 81611, USA",
            "description": "Aspen, USA",
        },
        "locations": [
            {"type": "Point", "coordinates": [-106.855385, 39.182677], "description": "Aspen Highlands", "day": 1},
        ],
        "guides": ["kate@example.com"],
    },
]

REVIEWS = [
    ("sophie@example.com", "The Forest Hiker", 5, "Cras mollis nisi parturient mi nec aliquet suspendisse sagittis."),
    ("ayls@example.com", "The Forest Hiker", 4, "Tempus curabitur faucibus auctor bibendum duis gravida tincidunt."),
    ("max@example.com", "The Forest Hiker", 5, "Convallis turpis porttitor sapien ad urna efficitur dui vivamus."),
    ("sophie@example.com", "The Sea Explorer", 4, "Porttitor ullamcorper rutrum semper proin mus felis varius."),
    ("max@example.com", "The Sea Explorer", 3, "Quisque egestas faucibus primis ridiculus mi felis tristique."),
    ("ayls@example.com", "The Snow Adventurer", 5, "Magna magnis tellus dui vivamus donec placerat vehicula erat."),
]


# ---------------------------------------------------------------------------
# Main seed functions
# ---------------------------------------------------------------------------


async def create_schema() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def delete_all() -> None:
    """Remove every row, children first."""
    async with async_session_factory() as session:
        for statement in (delete(Booking), delete(Review), tour_guides.delete(), delete(Tour), delete(User)):
            await session.execute(statement)
        await session.commit()
    print("🗑️  Deleted all bookings, reviews, tours and users")


async def seed() -> None:
    """Populate the database with the sample catalogue."""
    async with async_session_factory() as session:
        existing = await session.execute(select(User.id).where(User.email == USERS[0]["email"]))
        if existing.scalar_one_or_none() is not None:
            print(f"⚠️  '{USERS[0]['email']}' already exists. Run with --delete to re-seed.")
            return

        # ------------------------------------------------------------------
        # 1. Users
        # ------------------------------------------------------------------
        hashed = hash_password(DEFAULT_PASSWORD)
        users: dict[str, User] = {}
        for data in USERS:
            user = User(hashed_password=hashed, **data)
            session.add(user)
            users[data["email"]] = user
        await session.flush()
        print(f"✅ Created {len(users)} users (password: {DEFAULT_PASSWORD})")

        # ------------------------------------------------------------------
        # 2. Tours
        # ------------------------------------------------------------------
        tours: dict[str, Tour] = {}
        for data in TOURS:
            fields = {k: v for k, v in data.items() if k != "guides"}
            tour = Tour(slug=slugify(data["name"]), guides=[users[e] for e in data["guides"]], **fields)
            session.add(tour)
            tours[data["name"]] = tour
            print(f"   🏔️  {tour.name}: {tour.difficulty} (${tour.price})")
        await session.flush()

        # ------------------------------------------------------------------
        # 3. Reviews (re-aggregates each tour's rating summary)
        # ------------------------------------------------------------------
        for email, tour_name, rating, text in REVIEWS:
            await create_review(
                session,
                user_id=users[email].id,
                tour_id=tours[tour_name].id,
                review=text,
                rating=rating,
            )
        print(f"✅ Created {len(REVIEWS)} reviews")

        # ------------------------------------------------------------------
        # 4. One paid booking so /my-tours has something to show
        # ------------------------------------------------------------------
        forest = tours["The Forest Hiker"]
        session.add(Booking(tour_id=forest.id, user_id=users["sophie@example.com"].id, price=forest.price, paid=True))

        await session.commit()

        print()
        print("=" * 60)
        print(f"🎉 Done at {datetime.now(timezone.utc):%Y-%m-%d %H:%M} UTC. Log in at /login")
        print("=" * 60)


async def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Load Natours sample data")
    parser.add_argument("--delete", action="store_true", help="delete all data before seeding")
    args = parser.parse_args(argv)

    await create_schema()
    if args.delete:
        await delete_all()
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
