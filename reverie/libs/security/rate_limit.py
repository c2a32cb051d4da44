"""Per-key fixed-window request limiting held in process memory."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping


@dataclass(slots=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_time: float  # epoch seconds when the current window closes

    @property
    def reset_time_ms(self) -> int:
        return int(self.reset_time * 1000)


@dataclass(slots=True)
class _Window:
    count: int
    reset_time: float


class FixedWindowRateLimiter:
    """Allow ``max_requests`` per ``window_seconds`` for each key.

    One instance is created at application start and shared by the request
    handlers for the process lifetime. Expired windows are dropped lazily on
    the next lookup of the same key.
    """

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_requests = max(int(max_requests), 1)
        self.window_seconds = float(window_seconds)
        self._clock = clock
        self._windows: Dict[str, _Window] = {}

    def check(self, key: str) -> RateLimitResult:
        now = self._clock()
        window = self._windows.get(key)
        if window is not None and window.reset_time < now:
            del self._windows[key]
            window = None
        if window is None:
            window = _Window(count=0, reset_time=now + self.window_seconds)
            self._windows[key] = window

        if window.count >= self.max_requests:
            return RateLimitResult(allowed=False, remaining=0, reset_time=window.reset_time)

        window.count += 1
        return RateLimitResult(
            allowed=True,
            remaining=self.max_requests - window.count,
            reset_time=window.reset_time,
        )

    def reset(self, key: str | None = None) -> None:
        if key is None:
            self._windows.clear()
        else:
            self._windows.pop(key, None)


def rate_limit_key(headers: Mapping[str, str], client_host: str | None = None) -> str:
    """Best-effort client identifier for unauthenticated requests."""

    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return client_host or "unknown"


__all__ = ["FixedWindowRateLimiter", "RateLimitResult", "rate_limit_key"]
