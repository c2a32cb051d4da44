"""Request rate limiters held on ``app.state`` and their shared 429 response."""

from __future__ import annotations

from fastapi import Request, status
from fastapi.responses import JSONResponse

from reverie.libs.security import FixedWindowRateLimiter, RateLimitResult


def get_entries_limiter(request: Request) -> FixedWindowRateLimiter:
    return request.app.state.entries_limiter


def get_stats_limiter(request: Request) -> FixedWindowRateLimiter:
    return request.app.state.stats_limiter


def get_webhook_limiter(request: Request) -> FixedWindowRateLimiter:
    return request.app.state.webhook_limiter


def rate_limited_response(limiter: FixedWindowRateLimiter, verdict: RateLimitResult) -> JSONResponse:
    return JSONResponse(
        {
            "error": "Too many requests. Please try again later.",
            "resetTime": verdict.reset_time_ms,
        },
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        headers={
            "X-RateLimit-Limit": str(limiter.max_requests),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(verdict.reset_time_ms),
        },
    )


__all__ = [
    "get_entries_limiter",
    "get_stats_limiter",
    "get_webhook_limiter",
    "rate_limited_response",
]
