"""
Venue Gallery Backend — Rate Limiting Middleware
=================================================

What:  Per-IP sliding window rate limiter with two budgets: one for every
       /api request and a stricter one for image uploads.
How:   Tracks request timestamps per IP in memory; requests over budget get
       a 429 error envelope with a Retry-After header.
Who:   Applied to every request via Starlette middleware.
When:  First in the middleware chain (rejects abuse before any processing).

Budgets (defaults, per IP and RATE_LIMIT_WINDOW = 15 minutes):
    /api/*                    RATE_LIMIT_REQUESTS         = 100
    POST /api/images[/...]    UPLOAD_RATE_LIMIT_REQUESTS  = 10

    An upload is counted against both budgets.

Algorithm: Sliding Window Log
    1. Each IP gets a list of request timestamps
    2. On each request, drop timestamps older than the window
    3. If the remaining count >= limit, reject with 429
    4. Otherwise record the current timestamp and let the request through

    State lives in process memory: each worker process keeps its own
    counters.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.config import settings

logger = logging.getLogger(__name__)


class SlidingWindow:
    """Request timestamps per client key over a fixed-length window."""

    def __init__(self, limit: int, window_seconds: int):
        self.limit = limit
        self.window_seconds = window_seconds
        self._hits: Dict[str, List[float]] = defaultdict(list)

    def check(self, key: str, now: float) -> Optional[int]:
        """
        Drop expired hits for ``key`` and test the budget.

        Returns None when the request fits, otherwise the number of seconds
        until the oldest hit leaves the window. Does not record the hit.
        """
        window_start = now - self.window_seconds
        hits = [ts for ts in self._hits[key] if ts > window_start]
        self._hits[key] = hits
        if len(hits) >= self.limit:
            return int(hits[0] + self.window_seconds - now) + 1
        return None

    def record(self, key: str, now: float) -> None:
        self._hits[key].append(now)

    def cleanup(self, now: float) -> int:
        """Forget keys without hits in the current window; returns how many."""
        window_start = now - self.window_seconds
        inactive = [
            key for key, hits in self._hits.items()
            if not hits or hits[-1] <= window_start
        ]
        for key in inactive:
            del self._hits[key]
        return len(inactive)

    def __len__(self) -> int:
        return sum(len(hits) for hits in self._hits.values())


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    In-memory sliding window rate limiter.

    Excluded paths:
        - /health and / : liveness probes and the API index
        - /docs, /redoc, /openapi.json: API documentation

    Response on rate limit:
        HTTP 429 Too Many Requests
        Retry-After header: seconds until the oldest request leaves the window
        Body: {"success": false, "message": "..."}
    """

    EXCLUDED_PATHS = {"/", "/health", "/docs", "/openapi.json", "/redoc"}

    API_MESSAGE = "Too many API requests from this IP, please try again later."
    UPLOAD_MESSAGE = "Too many file uploads from this IP, please try again later."

    def __init__(self, app, **kwargs):
        super().__init__(app, **kwargs)
        self._api = SlidingWindow(settings.rate_limit_requests, settings.rate_limit_window)
        self._uploads = SlidingWindow(settings.upload_rate_limit_requests, settings.rate_limit_window)

    @staticmethod
    def _is_upload(request: Request) -> bool:
        return request.method == "POST" and request.url.path.startswith("/api/images")

    @staticmethod
    def _too_many(message: str, retry_after: int) -> JSONResponse:
        return JSONResponse(
            status_code=429,
            content={"success": False, "message": message},
            headers={"Retry-After": str(retry_after)},
        )

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in self.EXCLUDED_PATHS or not path.startswith("/api"):
            return await call_next(request)

        # Behind a proxy this is the proxy's address unless uvicorn runs
        # with --proxy-headers.
        client_ip = request.client.host if request.client else "unknown"
        now = time.time()

        buckets = [(self._api, self.API_MESSAGE)]
        if self._is_upload(request):
            buckets.append((self._uploads, self.UPLOAD_MESSAGE))

        for bucket, message in buckets:
            retry_after = bucket.check(client_ip, now)
            if retry_after is not None:
                logger.warning(
                    "Rate limit exceeded for IP %s on %s %s (limit %d per %ds)",
                    client_ip, request.method, path, bucket.limit, bucket.window_seconds,
                )
                return self._too_many(message, retry_after)

        for bucket, _ in buckets:
            bucket.record(client_ip, now)

        # Every 1000th recorded request, drop IPs that went quiet
        if len(self._api) % 1000 == 0:
            removed = self._api.cleanup(now) + self._uploads.cleanup(now)
            if removed:
                logger.debug("Cleaned up %d inactive IP entries", removed)

        return await call_next(request)
