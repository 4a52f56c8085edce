import pytest
from unittest.mock import MagicMock

from app.core.exceptions import RateLimitExceededError
from app.core.rate_limit import (
    FixedWindowRateLimiter,
    RateLimitConfig,
    ROUTE_LIMITS,
    client_identifier,
    enforce_rate_limit,
)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return FixedWindowRateLimiter(clock=clock)


def make_request(headers=None, host="10.0.0.1"):
    request = MagicMock()
    request.headers = headers or {}
    request.client = MagicMock(host=host) if host else None
    return request


def test_allows_up_to_the_limit(limiter):
    config = RateLimitConfig(max_requests=3, window_seconds=60)

    results = [limiter.check("ip", config) for _ in range(3)]

    assert all(r.allowed for r in results)
    assert [r.remaining for r in results] == [2, 1, 0]


def test_blocks_after_limit_with_retry_after(limiter, clock):
    config = RateLimitConfig(max_requests=2, window_seconds=60)
    limiter.check("ip", config)
    limiter.check("ip", config)
    clock.value += 20

    result = limiter.check("ip", config)

    assert not result.allowed
    assert result.retry_after == 40


def test_window_resets(limiter, clock):
    config = RateLimitConfig(max_requests=1, window_seconds=60)
    limiter.check("ip", config)
    assert not limiter.check("ip", config).allowed

    clock.value += 60

    assert limiter.check("ip", config).allowed


def test_keys_are_independent(limiter):
    config = RateLimitConfig(max_requests=1, window_seconds=60)
    limiter.check("a", config)

    assert limiter.check("b", config).allowed


def test_prune_removes_expired_windows(limiter, clock):
    limiter.check("a", RateLimitConfig(1, 10))
    limiter.check("b", RateLimitConfig(1, 100))
    clock.value += 50

    assert limiter.prune() == 1


def test_client_identifier_prefers_forwarded_for():
    request = make_request({"x-forwarded-for": "203.0.113.9, 10.0.0.2"})

    assert client_identifier(request) == "203.0.113.9"


def test_client_identifier_falls_back():
    assert client_identifier(make_request()) == "10.0.0.1"
    assert client_identifier(make_request(host=None)) == "unknown"


def test_enforce_raises_with_scope_message(limiter):
    request = make_request()
    limit = ROUTE_LIMITS["contacts"]
    for _ in range(limit.max_requests):
        enforce_rate_limit(request, "contacts", limiter=limiter)

    with pytest.raises(RateLimitExceededError) as exc_info:
        enforce_rate_limit(request, "contacts", limiter=limiter)

    assert exc_info.value.message == limit.message
    assert exc_info.value.retry_after > 0


def test_check_sweeps_expired_windows(limiter, clock):
    config = RateLimitConfig(max_requests=1, window_seconds=10)
    for n in range(1000):
        limiter.check(f"client-{n}", config)
    clock.value += 61

    limiter.check("late", config)

    assert list(limiter._windows) == ["late"]


def test_sweep_waits_for_interval(limiter, clock):
    config = RateLimitConfig(max_requests=1, window_seconds=10)
    limiter.check("a", config)
    clock.value += 30

    limiter.check("b", config)

    assert set(limiter._windows) == {"a", "b"}
