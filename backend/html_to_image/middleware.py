"""
Transport-level guards: a per-client fixed-window rate limiter and the
security headers added to every response.
"""

import logging
import math
import time
from typing import Callable, Dict, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse, Response

log = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "X-XSS-Protection": "0",
    "Cross-Origin-Opener-Policy": "same-origin",
}

HSTS_HEADER = "max-age=15552000; includeSubDomains"


class RateLimiter:
    """Fixed-window request counter keyed by client address."""

    def __init__(self, window_ms: int, max_requests: int, clock: Callable[[], float] = time.monotonic):
        self.window = window_ms / 1000
        self.max_requests = max_requests
        self._clock = clock
        self._windows: Dict[str, Tuple[float, int]] = {}

    def hit(self, key: str) -> Tuple[bool, int, float]:
        """Count a request. Returns (allowed, remaining, seconds until reset)."""
        now = self._clock()
        self._prune(now)
        started, count = self._windows.get(key, (now, 0))
        if now - started >= self.window:
            started, count = now, 0
        count += 1
        self._windows[key] = (started, count)
        reset_in = max(0.0, self.window - (now - started))
        return count <= self.max_requests, max(0, self.max_requests - count), reset_in

    def _prune(self, now: float) -> None:
        expired = [key for key, (started, _) in self._windows.items() if now - started >= self.window]
        for key in expired:
            del self._windows[key]


def client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def apply_rate_limit(request: Request, call_next, limiter: RateLimiter) -> Response:
    allowed, remaining, reset_in = limiter.hit(client_key(request))
    headers = {
        "RateLimit-Limit": str(limiter.max_requests),
        "RateLimit-Remaining": str(remaining),
        "RateLimit-Reset": str(math.ceil(reset_in)),
    }
    if not allowed:
        log.warning("Rate limit exceeded for %s on %s", client_key(request), request.url.path)
        headers["Retry-After"] = str(math.ceil(reset_in))
        return JSONResponse(
            status_code=429,
            content={
                "error": "Too many requests, please try again later.",
                "code": "RATE_LIMITED",
            },
            headers=headers,
        )
    response = await call_next(request)
    response.headers.update(headers)
    return response


def add_security_headers(response: Response, hsts: bool = False) -> Response:
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    if hsts:
        response.headers["Strict-Transport-Security"] = HSTS_HEADER
    return response
