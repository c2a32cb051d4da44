from __future__ import annotations

from reverie.libs.security import FixedWindowRateLimiter, rate_limit_key


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_allows_up_to_limit_then_blocks() -> None:
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(3, 60, clock=clock)

    remaining = [limiter.check("entries:user-1").remaining for _ in range(3)]
    assert remaining == [2, 1, 0]

    blocked = limiter.check("entries:user-1")
    assert blocked.allowed is False
    assert blocked.remaining == 0
    assert blocked.reset_time == 1060.0
    assert blocked.reset_time_ms == 1060000


def test_keys_are_independent() -> None:
    limiter = FixedWindowRateLimiter(1, 60, clock=FakeClock())
    assert limiter.check("a").allowed is True
    assert limiter.check("a").allowed is False
    assert limiter.check("b").allowed is True


def test_window_expiry_starts_fresh_window() -> None:
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(1, 60, clock=clock)
    assert limiter.check("a").allowed is True

    clock.now = 1059.0
    assert limiter.check("a").allowed is False

    clock.now = 1061.0
    fresh = limiter.check("a")
    assert fresh.allowed is True
    assert fresh.reset_time == 1121.0


def test_reset_clears_one_or_all_keys() -> None:
    limiter = FixedWindowRateLimiter(1, 60, clock=FakeClock())
    limiter.check("a")
    limiter.check("b")

    limiter.reset("a")
    assert limiter.check("a").allowed is True
    assert limiter.check("b").allowed is False

    limiter.reset()
    assert limiter.check("b").allowed is True


def test_rate_limit_key_prefers_forwarded_headers() -> None:
    assert rate_limit_key({"x-forwarded-for": "10.0.0.1, 10.0.0.2"}, "127.0.0.1") == "10.0.0.1"
    assert rate_limit_key({"x-real-ip": " 10.0.0.9 "}, "127.0.0.1") == "10.0.0.9"
    assert rate_limit_key({}, "127.0.0.1") == "127.0.0.1"
    assert rate_limit_key({}) == "unknown"
