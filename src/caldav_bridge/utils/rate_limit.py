"""
Rate Limiting

Fixed-window request limiting per client address, applied to every route
except the health check. Responses carry RateLimit-Limit, RateLimit-Remaining
and RateLimit-Reset headers; requests over the limit get a 429.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

# Set up logging
logger = logging.getLogger(__name__)

DEFAULT_CLIENT = "127.0.0.1"
LIMIT_EXCEEDED_MESSAGE = "Too many requests, please try again later."


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_after: int  # Seconds until the window resets

    def headers(self) -> Dict[str, str]:
        return {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_after),
        }


class FixedWindowRateLimiter:
    """Counts hits per key in fixed windows of window_seconds"""

    def __init__(self, max_requests: int = 100, window_seconds: int = 900, clock: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, Tuple[float, int]] = {}  # key -> (window start, hits)

    def hit(self, key: str) -> RateLimitResult:
        """Record a request for the key and report whether it is allowed"""
        now = self._clock()
        self._purge_expired(now)

        started, hits = self._windows.get(key, (now, 0))
        hits += 1
        self._windows[key] = (started, hits)

        reset_after = max(0, math.ceil(started + self.window_seconds - now))
        return RateLimitResult(
            allowed=hits <= self.max_requests,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - hits),
            reset_after=reset_after,
        )

    def _purge_expired(self, now: float):
        expired = [key for key, (started, _) in self._windows.items() if now - started >= self.window_seconds]
        for key in expired:
            del self._windows[key]


def client_key(request: Request) -> str:
    """Client address, preferring proxy headers"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return DEFAULT_CLIENT


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Applies a FixedWindowRateLimiter to incoming requests"""

    def __init__(self, app, limiter: FixedWindowRateLimiter, exempt_paths: Iterable[str] = ("/health",)):
        super().__init__(app)
        self.limiter = limiter
        self.exempt_paths = set(exempt_paths)

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.exempt_paths:
            return await call_next(request)

        key = client_key(request)
        result = self.limiter.hit(key)
        if not result.allowed:
            logger.warning(f"Rate limit exceeded for {key} on {request.method} {request.url.path}")
            headers = result.headers()
            headers["Retry-After"] = str(result.reset_after)
            return JSONResponse(status_code=429, content={"error": LIMIT_EXCEEDED_MESSAGE}, headers=headers)

        response = await call_next(request)
        response.headers.update(result.headers())
        return response
