"""
Unit tests for fullintel.core.rate_limit.

Tests token bucket capacity, denial wait times, refill over time and the
capacity ceiling.
"""

import pytest

from fullintel.core.rate_limit import RateLimitConfig, RateLimiter


def make_limiter(capacity: float, clock) -> RateLimiter:
    return RateLimiter(
        name="test", config=RateLimitConfig(requests_per_minute=capacity), clock=clock
    )


class TestRateLimitConfig:
    """Tests for RateLimitConfig."""

    def test_refill_rate_is_capacity_per_second(self):
        """Refill rate is capacity / 60 tokens per second."""
        assert RateLimitConfig(requests_per_minute=60).refill_rate == 1.0
        assert RateLimitConfig(requests_per_minute=30).refill_rate == 0.5


class TestRateLimiterAcquire:
    """Tests for RateLimiter.acquire."""

    def test_starts_full(self, fake_clock):
        """A new limiter holds capacity tokens."""
        limiter = make_limiter(50, fake_clock)
        assert limiter.tokens == 50.0

    def test_capacity_requests_then_denial(self, fake_clock):
        """Capacity 5 admits five immediate requests and denies the sixth."""
        limiter = make_limiter(5, fake_clock)

        for _ in range(5):
            assert limiter.acquire().allowed

        denied = limiter.acquire()
        assert not denied.allowed
        assert denied.wait_seconds > 0

    def test_wait_time_matches_missing_fraction(self, fake_clock):
        """Denial wait is (1 - tokens) / refill_rate."""
        limiter = make_limiter(60, fake_clock)  # 1 token per second
        for _ in range(60):
            limiter.acquire()

        fake_clock.advance(0.25)
        denied = limiter.acquire()

        assert not denied.allowed
        assert denied.wait_seconds == pytest.approx(0.75)

    def test_fractional_capacity(self, fake_clock):
        """Capacity 2.5 admits exactly two immediate requests."""
        limiter = make_limiter(2.5, fake_clock)

        assert limiter.acquire().allowed
        assert limiter.acquire().allowed
        assert not limiter.acquire().allowed

    def test_refill_after_one_second(self, fake_clock):
        """Capacity 60 drained to zero admits one request after one second."""
        limiter = make_limiter(60, fake_clock)
        for _ in range(60):
            assert limiter.acquire().allowed
        assert not limiter.acquire().allowed

        fake_clock.advance(1.0)

        assert limiter.acquire().allowed
        assert not limiter.acquire().allowed

    def test_tokens_never_exceed_capacity(self, fake_clock):
        """A long idle period refills only up to capacity."""
        limiter = make_limiter(10, fake_clock)
        limiter.acquire()

        fake_clock.advance(3600)
        result = limiter.check()

        assert result.remaining == 10.0
        assert limiter.tokens <= limiter.capacity

    def test_denial_does_not_consume(self, fake_clock):
        """Denied requests leave the bucket unchanged."""
        limiter = make_limiter(1, fake_clock)
        limiter.acquire()
        before = limiter.tokens

        limiter.acquire()

        assert limiter.tokens == before

    def test_disabled_limiter_always_allows(self, fake_clock):
        """A disabled limiter never denies."""
        limiter = RateLimiter(
            config=RateLimitConfig(requests_per_minute=1, enabled=False), clock=fake_clock
        )
        assert all(limiter.acquire().allowed for _ in range(10))


class TestRateLimiterHelpers:
    """Tests for check, reset and get_stats."""

    def test_check_does_not_consume(self, fake_clock):
        limiter = make_limiter(3, fake_clock)
        assert limiter.check().allowed
        assert limiter.tokens == 3.0

    def test_reset_refills(self, fake_clock):
        limiter = make_limiter(2, fake_clock)
        limiter.acquire()
        limiter.acquire()

        limiter.reset()

        assert limiter.tokens == 2.0

    def test_stats_count_throttles(self, fake_clock):
        limiter = make_limiter(1, fake_clock)
        limiter.acquire()
        limiter.acquire()

        stats = limiter.get_stats()

        assert stats["requests"] == 2
        assert stats["throttled"] == 1
        assert stats["capacity"] == 1.0
