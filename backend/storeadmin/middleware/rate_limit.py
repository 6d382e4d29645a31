"""
Rate Limiting Middleware

Limits how often a client can trigger account e-mails.
Uses slowapi for rate limiting implementation.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from fastapi import Request, Response
from fastapi.responses import JSONResponse
import logging

from storeadmin.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["100/minute"],
    storage_uri="memory://",  # Per-process counters; use Redis when running several workers
    enabled=settings.rate_limit_enabled,
)

__all__ = ["limiter", "rate_limit_handler", "SlowAPIMiddleware"]


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Return 429 with a Retry-After header"""
    logger.warning(
        f"Rate limit exceeded for {get_remote_address(request)} on {request.url.path}"
    )

    return JSONResponse(
        status_code=429,
        content={
            "error": "RATE_LIMIT_EXCEEDED",
            "message": f"Too many requests. Limit: {exc.detail}",
        },
        headers={"Retry-After": str(getattr(exc, "retry_after", None) or 60)},
    )
