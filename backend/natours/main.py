"""Natours — FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from natours.api.v1.bookings import router as bookings_router
from natours.api.v1.reviews import router as reviews_router
from natours.api.v1.tours import router as tours_router
from natours.api.v1.users import router as users_router
from natours.api.v1.webhooks import router as webhooks_router
from natours.config import settings
from natours.errors import register_exception_handlers
from natours.middleware import RequestTimingMiddleware
from natours.views.pages import router as pages_router

# Configure root logger so all natours.* loggers output to stderr.
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup and shutdown events."""
    # Startup
    yield
    # Shutdown: dispose engine connections
    from natours.database import engine

    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Book guided nature tours, review them and pay with Stripe.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Middleware is added in reverse execution order (last added runs first on request).
app.add_middleware(
    RequestTimingMiddleware,
    log_requests=not settings.is_production,
    exclude_paths={"/health"},
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Routers
app.include_router(tours_router)
app.include_router(users_router)
app.include_router(reviews_router)
app.include_router(bookings_router)
app.include_router(webhooks_router)
app.include_router(pages_router)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.app_name}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
