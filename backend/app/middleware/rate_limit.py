"""
Per-IP rate limiting for the /api surface.

The limiters are read from ``app.state`` so tests can swap or reset them.
"""
import logging
import re

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from backend.app.core.errors import RateLimitExceededError, error_response
from backend.app.services.rate_limiter import SlidingWindowRateLimiter

logger = logging.getLogger(__name__)

SENSITIVE_ROUTES = [
    ("POST", re.compile(r"^/api/login/?$")),
    ("POST", re.compile(r"^/api/register/?$")),
    ("POST", re.compile(r"^/api/verify-2fa/?$")),
    ("GET", re.compile(r"^/api/certificates/[^/]+/password/?$")),
    ("POST", re.compile(r"^/api/certificates/[^/]+/password/?$")),
]


def is_sensitive(method: str, path: str) -> bool:
    return any(method == m and pattern.match(path) for m, pattern in SENSITIVE_ROUTES)


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "anonymous"


class RateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if not path.startswith("/api/"):
            return await call_next(request)

        key = client_ip(request)
        limiters = [getattr(request.app.state, "rate_limiter", None)]
        if is_sensitive(request.method, path):
            limiters.append(getattr(request.app.state, "sensitive_rate_limiter", None))

        for limiter in limiters:
            if not isinstance(limiter, SlidingWindowRateLimiter):
                continue
            result = limiter.check(key)
            if not result.allowed:
                logger.warning(
                    f"Rate limit exceeded for {key} on {request.method} {path}",
                    extra={"extra_data": {"client_ip": key, "limit": result.limit}},
                )
                return error_response(RateLimitExceededError(retry_after=result.retry_after))

        return await call_next(request)
