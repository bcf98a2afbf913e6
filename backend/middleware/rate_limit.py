"""
Simple in-memory rate limiter.

Limits auth attempts (brute-force protection) and message sends, streamed
or blocking (provider cost protection), per client IP, using a sliding
window counter stored in memory. Limits come from settings and are read
per request.
"""

import logging
import time
from collections import defaultdict
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from config import Settings, get_settings

logger = logging.getLogger(__name__)

# How often stale counters are evicted
CLEANUP_INTERVAL = 60.0


def _rate_limits(settings: Settings) -> Dict[str, Tuple[Optional[str], int, int]]:
    """Path prefix -> (method or None for any, max_requests, window_seconds)."""
    return {
        "/api/auth/": ("POST", settings.auth_rate_limit, settings.auth_rate_window),
        "/api/messages/stream": (None, settings.message_rate_limit, settings.message_rate_window),
        "/api/messages": ("POST", settings.message_rate_limit, settings.message_rate_window),
    }


class RateLimitMiddleware(BaseHTTPMiddleware):
    """In-memory sliding window rate limiter for sensitive endpoints.

    Tracks request timestamps per (client_ip, path_prefix). Stale
    entries are evicted every CLEANUP_INTERVAL seconds.

    Attributes:
        _counters: Dict mapping (ip, path) to list of request timestamps.
    """

    def __init__(self, app, clock: Callable[[], float] = time.time):
        super().__init__(app)
        # (ip, path_prefix) -> list of timestamps
        self._counters: Dict[Tuple[str, str], List[float]] = defaultdict(list)
        self._clock = clock
        self._last_cleanup = clock()
        logger.info("RateLimitMiddleware active for auth and streaming endpoints")

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP from request, respecting X-Forwarded-For."""
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        if request.client:
            return request.client.host
        return "unknown"

    def _cleanup_stale(self, now: float, max_window: int) -> None:
        """Remove timestamps older than the largest window."""
        if now - self._last_cleanup < CLEANUP_INTERVAL:
            return
        self._last_cleanup = now

        cutoff = now - max_window
        stale_keys = []
        for key, timestamps in self._counters.items():
            self._counters[key] = [t for t in timestamps if t > cutoff]
            if not self._counters[key]:
                stale_keys.append(key)
        for key in stale_keys:
            del self._counters[key]

    async def dispatch(self, request: Request, call_next):
        """Check rate limits before processing.

        Returns:
            Response from next handler, or 429 if rate limited.
        """
        limits = _rate_limits(get_settings())
        now = self._clock()
        self._cleanup_stale(now, max(w for _, _, w in limits.values()))

        path = request.url.path
        matched_prefix = None
        for prefix, (method, _, _) in limits.items():
            if path.startswith(prefix) and method in (None, request.method):
                matched_prefix = prefix
                break

        if matched_prefix is None:
            return await call_next(request)

        _, max_requests, window_seconds = limits[matched_prefix]
        client_ip = self._get_client_ip(request)
        key = (client_ip, matched_prefix)

        # Remove timestamps outside the window
        self._counters[key] = [
            t for t in self._counters[key] if t > now - window_seconds
        ]

        if len(self._counters[key]) >= max_requests:
            retry_after = max(1, int(window_seconds - (now - self._counters[key][0])))
            logger.warning(
                f"Rate limit hit: {client_ip} on {matched_prefix} "
                f"({len(self._counters[key])}/{max_requests} in {window_seconds}s)"
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": f"Too many requests. Try again in {retry_after} seconds.",
                    "type": "rate_limit",
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
                headers={"Retry-After": str(retry_after)},
            )

        # Record this request
        self._counters[key].append(now)
        return await call_next(request)
