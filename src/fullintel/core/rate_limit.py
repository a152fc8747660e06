"""
Token bucket rate limiting for upstream LLM providers.

One limiter exists per provider. Each limiter starts full, refills
continuously at ``capacity / 60`` tokens per second and never holds more
than ``capacity`` tokens. Callers decide whether to sleep and retry when
a request is denied.
"""

import logging
import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable, Dict

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """
    Configuration for a rate limit.

    ``requests_per_minute`` doubles as the bucket capacity and may be
    fractional (a capacity of 2.5 permits two immediate requests).
    """
    requests_per_minute: float = 60.0
    enabled: bool = True

    @property
    def refill_rate(self) -> float:
        """Tokens added per second."""
        return self.requests_per_minute / 60.0


@dataclass
class RateLimitState:
    """
    Current state of a rate limiter.
    """
    tokens: float = 0.0
    last_update: float = 0.0
    request_count: int = 0
    throttle_count: int = 0


@dataclass
class RateLimitResult:
    """
    Result of a rate limit check.

    When ``allowed`` is False, ``wait_seconds`` is the delay after which one
    full token will exist.
    """
    allowed: bool
    remaining: float = 0.0
    wait_seconds: float = 0.0
    limit: float = 0.0


@dataclass
class RateLimiter:
    """
    Token bucket rate limiter.

    Example:
        >>> limiter = RateLimiter(name="anthropic", config=RateLimitConfig(50))
        >>> result = limiter.acquire()
        >>> if not result.allowed:
        ...     await asyncio.sleep(result.wait_seconds)
    """

    name: str = "default"
    config: RateLimitConfig = field(default_factory=RateLimitConfig)
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    state: RateLimitState = field(init=False)
    _lock: Lock = field(default_factory=Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        self.state = RateLimitState(
            tokens=float(self.config.requests_per_minute),
            last_update=self.clock(),
        )

    @property
    def capacity(self) -> float:
        return float(self.config.requests_per_minute)

    @property
    def tokens(self) -> float:
        return self.state.tokens

    def check(self) -> RateLimitResult:
        """
        Check if a request is allowed without consuming tokens.

        Returns:
            RateLimitResult indicating if request would be allowed
        """
        if not self.config.enabled:
            return RateLimitResult(allowed=True, remaining=-1)

        with self._lock:
            self._refill()
            return RateLimitResult(
                allowed=self.state.tokens >= 1.0,
                remaining=self.state.tokens,
                wait_seconds=self._time_to_next_token(),
                limit=self.capacity,
            )

    def acquire(self) -> RateLimitResult:
        """
        Attempt to take one token.

        Returns:
            RateLimitResult; on denial ``wait_seconds`` is
            ``(1 - tokens) / refill_rate``.
        """
        if not self.config.enabled:
            return RateLimitResult(allowed=True, remaining=-1)

        with self._lock:
            self._refill()
            self.state.request_count += 1

            if self.state.tokens >= 1.0:
                self.state.tokens -= 1.0
                return RateLimitResult(
                    allowed=True,
                    remaining=self.state.tokens,
                    limit=self.capacity,
                )

            self.state.throttle_count += 1
            wait = self._time_to_next_token()
            logger.debug(
                "Rate limiter %s denied request, next token in %.3fs", self.name, wait
            )
            return RateLimitResult(
                allowed=False,
                remaining=self.state.tokens,
                wait_seconds=wait,
                limit=self.capacity,
            )

    def reset(self) -> None:
        """Refill the bucket to capacity."""
        with self._lock:
            self.state.tokens = self.capacity
            self.state.last_update = self.clock()

    def _refill(self) -> None:
        """Refill tokens based on elapsed time. Caller holds the lock."""
        now = self.clock()
        elapsed = max(0.0, now - self.state.last_update)
        self.state.last_update = now

        self.state.tokens = min(
            self.capacity,
            self.state.tokens + elapsed * self.config.refill_rate,
        )

    def _time_to_next_token(self) -> float:
        if self.state.tokens >= 1.0:
            return 0.0
        rate = self.config.refill_rate
        if rate <= 0:
            return float("inf")
        return (1.0 - self.state.tokens) / rate

    def get_stats(self) -> Dict[str, Any]:
        """Get limiter statistics."""
        with self._lock:
            return {
                "name": self.name,
                "requests": self.state.request_count,
                "throttled": self.state.throttle_count,
                "current_tokens": round(self.state.tokens, 3),
                "capacity": self.capacity,
                "refill_rate": self.config.refill_rate,
                "enabled": self.config.enabled,
            }
