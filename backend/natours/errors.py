"""Error taxonomy and the normalizer that turns failures into client responses.

Operational errors (everything except :class:`Internal`) carry a message that
is safe to show verbatim. Anything else is logged and replaced with a generic
message in production.
"""

from __future__ import annotations

import logging
import traceback

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from jose import ExpiredSignatureError, JWTError
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from natours.config import settings
from natours.templating import templates

logger = logging.getLogger(__name__)

GENERIC_API_MESSAGE = "Something went very wrong!"
GENERIC_PAGE_MESSAGE = "Please try again later."


class AppError(Exception):
    """Base class for errors with a client-facing message and status code."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    is_operational: bool = True

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    @property
    def status(self) -> str:
        return "fail" if 400 <= self.status_code < 500 else "error"


class ValidationFailed(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidInput(ValidationFailed):
    """Input was well-formed but refers to something unusable (e.g. a stale reset token)."""


class Unauthorized(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT


class Internal(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    is_operational = False


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())[1:])
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "Invalid input data. " + ". ".join(parts)


def normalize_error(request: Request, exc: Exception) -> AppError:
    """Translate library and framework exceptions into the app taxonomy."""
    if isinstance(exc, AppError):
        return exc
    if isinstance(exc, RequestValidationError):
        return ValidationFailed(_validation_message(exc))
    if isinstance(exc, IntegrityError):
        return Conflict("Duplicate field value. Please use another value")
    if isinstance(exc, ExpiredSignatureError):
        return Unauthorized("Your token has expired! Please log in again.")
    if isinstance(exc, JWTError):
        return Unauthorized("Invalid token. Please log in again!")
    if isinstance(exc, StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return NotFound(f"Can't find {request.url.path} on this server!")
        return AppError(str(exc.detail), exc.status_code)
    error = Internal(str(exc) or exc.__class__.__name__)
    error.__cause__ = exc
    return error


# Paths answered with JSON errors; everything else gets the error page
JSON_PATH_PREFIXES = ("/api", "/webhook-checkout")


def _is_api_request(request: Request) -> bool:
    return request.url.path.startswith(JSON_PATH_PREFIXES)


def _stack(exc: Exception) -> str:
    origin = exc.__cause__ or exc
    return "".join(traceback.format_exception(type(origin), origin, origin.__traceback__))


def build_error_response(request: Request, exc: Exception) -> Response:
    """Render ``exc`` as JSON (API paths) or as the error page (everything else)."""
    error = normalize_error(request, exc)

    if not error.is_operational:
        logger.exception(
            "Unhandled error on %s %s",
            request.method,
            request.url.path,
            exc_info=error.__cause__ or error,
        )

    show_details = error.is_operational or not settings.is_production

    if _is_api_request(request):
        content: dict = {
            "status": error.status,
            "message": error.message if show_details else GENERIC_API_MESSAGE,
        }
        if not settings.is_production:
            content["error"] = repr(error.__cause__ or error)
            content["stack"] = _stack(error)
        return JSONResponse(status_code=error.status_code, content=content)

    return templates.TemplateResponse(
        request=request,
        name="error.html",
        context={
            "title": "Something went wrong!",
            "msg": error.message if show_details else GENERIC_PAGE_MESSAGE,
            "user": getattr(request.state, "user", None),
        },
        status_code=error.status_code,
    )


async def _handle(request: Request, exc: Exception) -> Response:
    return build_error_response(request, exc)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the normalizer for every failure class the app can produce."""
    for exc_class in (
        AppError,
        RequestValidationError,
        IntegrityError,
        JWTError,
        StarletteHTTPException,
        Exception,
    ):
        app.add_exception_handler(exc_class, _handle)
