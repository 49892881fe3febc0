"""Rate limiting for public payment endpoints.

Uses slowapi. Set RATE_LIMIT_STORAGE_URI to a Redis URL so limits are shared
across service instances; without it state is kept in process memory.
"""

from functools import lru_cache
from typing import Callable

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from libs.common.config import get_settings


def _get_client_ip(request: Request) -> str:
    """
    Client IP as seen by the outermost trusted proxy.

    Each of the TRUSTED_PROXY_COUNT proxies appends the address it received
    the request from to X-Forwarded-For, so only the last that many entries
    can be trusted; anything to their left is whatever the caller sent.
    """
    trusted = get_settings().TRUSTED_PROXY_COUNT
    forwarded = request.headers.get("X-Forwarded-For")
    if trusted > 0 and forwarded:
        hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
        if hops:
            return hops[-min(trusted, len(hops))]
    return get_remote_address(request)


@lru_cache
def get_limiter() -> Limiter:
    settings = get_settings()
    return Limiter(
        key_func=_get_client_ip,
        storage_uri=settings.RATE_LIMIT_STORAGE_URI or "memory://",
        strategy="fixed-window",
    )


limiter = get_limiter()


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """JSON 429 with a Retry-After hint."""
    return JSONResponse(
        status_code=429,
        content={
            "detail": f"Rate limit exceeded: {exc.detail}",
            "code": "RATE_LIMIT_EXCEEDED",
        },
        headers={"Retry-After": "60"},
    )


def webhook_limit(func: Callable) -> Callable:
    """Apply the configured webhook rate limit (WEBHOOK_RATE_LIMIT)."""
    return limiter.limit(get_settings().WEBHOOK_RATE_LIMIT)(func)
