"""
Rate limiting using slowapi.

Terminals retry aggressively when they come back online, so push and pull
are limited per client IP.

Usage in a router:
    from shared.security.rate_limit import limiter, SYNC_RATE_LIMIT

    @router.post("/push")
    @limiter.limit(SYNC_RATE_LIMIT)
    def push(request: Request, ...):
        ...
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from shared.config.settings import settings
from shared.config.logging import get_logger

logger = get_logger(__name__)

SYNC_RATE_LIMIT = settings.sync_rate_limit

# Create limiter instance using client IP as key
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """
    Handler for rate limit exceeded errors.
    Returns a JSON response with retry information.
    """
    logger.warning(
        "Rate limit exceeded",
        path=request.url.path,
        client=get_remote_address(request),
        limit=str(exc.detail),
    )
    return JSONResponse(
        status_code=429,
        content={
            "detail": "Rate limit exceeded. Please try again later.",
            "limit": str(exc.detail),
        },
        headers={"Retry-After": "60"},
    )
