"""
Venue Gallery Backend — Access Logging Middleware
==================================================

What:  One access-log line per HTTP request on the `gallery.access` logger.
How:   Times the request, then logs method, path, status, duration, request
       id and client IP; the level follows the status class.
Who:   Applied to every request via Starlette middleware.
When:  After RequestIDMiddleware has set the request id.

Example line:
    2026-10-18T12:00:00 [INFO] gallery.access: POST /api/images 201 812.4ms [a1b2c3d4] from 10.0.0.7

What we log vs what we DON'T log:
    ✅ method, path, status, duration, IP, request ID
    ❌ request bodies, uploaded bytes, form fields
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.middleware.request_id import request_id_var

logger = logging.getLogger("gallery.access")


def level_for_status(status: int) -> int:
    """5xx → ERROR, 4xx → WARNING, everything else → INFO."""
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs each request with its status and duration.

    Health checks are not logged; probes hit /health every few seconds.
    Upload durations include the round trip to the asset host.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path == "/health":
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        rid = request_id_var.get("")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code

        logger.log(
            level_for_status(status),
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
