"""Unit tests for the fixed-window rate limiter"""

from concurrent.futures import ThreadPoolExecutor

from audit_gateway.domain.rate_limit import FixedWindowRateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_denies_request_after_ceiling():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(max_requests=3, window_seconds=3600, clock=clock)

    assert all(limiter.check("user-1").allowed for _ in range(3))

    clock.now += 10.5
    decision = limiter.check("user-1")

    assert decision.allowed is False
    assert decision.retry_after == 3590  # ceil(3589.5)


def test_window_elapsed_restarts_count():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(max_requests=2, window_seconds=60, clock=clock)
    limiter.check("user-1")
    limiter.check("user-1")
    assert limiter.check("user-1").allowed is False

    clock.now += 60
    assert limiter.check("user-1").allowed is True
    assert limiter.check("user-1").allowed is True
    assert limiter.check("user-1").allowed is False


def test_retry_after_is_positive_near_window_end():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60, clock=clock)
    limiter.check("user-1")

    clock.now += 59.9

    assert limiter.check("user-1").retry_after == 1


def test_callers_have_independent_windows():
    limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())

    assert limiter.check("user-1").allowed is True
    assert limiter.check("user-2").allowed is True
    assert limiter.check("user-1").allowed is False


def test_reset_clears_all_callers():
    limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
    limiter.check("user-1")

    limiter.reset()

    assert limiter.check("user-1").allowed is True


def test_concurrent_checks_never_exceed_ceiling():
    limiter = FixedWindowRateLimiter(max_requests=10, window_seconds=3600)

    with ThreadPoolExecutor(max_workers=8) as pool:
        decisions = list(pool.map(lambda _: limiter.check("user-1"), range(200)))

    assert sum(1 for d in decisions if d.allowed) == 10
