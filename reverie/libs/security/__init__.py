"""Security helpers used across the Reverie codebase."""

from .rate_limit import FixedWindowRateLimiter, RateLimitResult, rate_limit_key

__all__ = [
    "FixedWindowRateLimiter",
    "RateLimitResult",
    "rate_limit_key",
]
