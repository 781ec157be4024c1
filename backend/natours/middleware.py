"""Request timing / access logging middleware."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("natours.access")


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Stamp each request with its arrival time and log it when it completes.

    ``request.state.request_time`` is always set; the access log line is only
    written when ``log_requests`` is true (development).
    """

    def __init__(self, app, *, log_requests: bool = True, exclude_paths: set[str] | None = None):
        super().__init__(app)
        self._log_requests = log_requests
        self._exclude = exclude_paths or set()

    async def dispatch(self, request: Request, call_next):
        request.state.request_time = datetime.now(timezone.utc)
        start = time.perf_counter()
        response = await call_next(request)

        if self._log_requests and request.url.path not in self._exclude:
            logger.info(
                "%s %s %s %.2fms",
                request.method,
                request.url.path,
                response.status_code,
                (time.perf_counter() - start) * 1000.0,
            )
        return response
