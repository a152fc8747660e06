"""
Circuit breaker for upstream LLM providers.

Each provider gets one breaker. Consecutive failures open the circuit for a
cooldown period; once it elapses, the next call is let through in HALF_OPEN
state and a run of successes closes the circuit again.

Two styles of use are supported:

    # synchronous operation
    result = breaker.execute(lambda: fetch())

    # awaited operation
    if not breaker.can_execute():
        raise CircuitBreakerError(...)
    try:
        result = await fetch()
    except Exception:
        breaker.record_failure()
        raise
    breaker.record_success()
"""

from dataclasses import dataclass, field
from enum import Enum
from functools import wraps
from threading import Lock
from typing import Any, Callable, Dict, Optional, TypeVar
import logging
import time

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Circuit Breaker
# ---------------------------------------------------------------------------


class CircuitState(Enum):
    """Circuit breaker states.

    CLOSED: Normal operation, requests flow through.
    OPEN: Failures reached threshold, requests rejected.
    HALF_OPEN: Cooldown elapsed, trial requests allowed.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerError(Exception):
    """Circuit breaker is open and rejecting requests.

    Attributes:
        breaker_name: Name of the circuit breaker.
        state: Current state of the breaker.
        retry_after: Seconds until the breaker admits a trial call.
    """

    def __init__(
        self,
        message: str,
        breaker_name: Optional[str] = None,
        state: Optional[CircuitState] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message)
        self.breaker_name = breaker_name
        self.state = state
        self.retry_after = retry_after


@dataclass
class CircuitBreakerPolicy:
    """Thresholds for one breaker."""

    failure_threshold: int = 5
    success_threshold: int = 2
    timeout_seconds: float = 60.0


@dataclass
class CircuitBreaker:
    """Three-state circuit breaker.

    Attributes:
        name: Identifier for this circuit breaker (the provider tag).
        failure_threshold: Consecutive failures before opening (default 5).
        success_threshold: HALF_OPEN successes before closing (default 2).
        timeout_seconds: How long the circuit stays OPEN (default 60).

    Example:
        >>> breaker = CircuitBreaker(name="openai", failure_threshold=3)
        >>> breaker.execute(lambda: 42)
        42
    """

    name: str = "default"
    failure_threshold: int = 5
    success_threshold: int = 2
    timeout_seconds: float = 60.0
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    failure_count: int = field(default=0, init=False)
    success_count: int = field(default=0, init=False)
    open_until: Optional[float] = field(default=None, init=False)
    _lock: Lock = field(default_factory=Lock, init=False, repr=False)

    @classmethod
    def from_policy(
        cls,
        name: str,
        policy: CircuitBreakerPolicy,
        clock: Callable[[], float] = time.monotonic,
    ) -> "CircuitBreaker":
        return cls(
            name=name,
            failure_threshold=policy.failure_threshold,
            success_threshold=policy.success_threshold,
            timeout_seconds=policy.timeout_seconds,
            clock=clock,
        )

    def can_execute(self) -> bool:
        """Check if a call may proceed.

        An OPEN circuit whose cooldown has elapsed moves to HALF_OPEN here
        and admits the call.

        Returns:
            True if the call can proceed, False if the circuit is open.
        """
        with self._lock:
            if self.state != CircuitState.OPEN:
                return True

            if self.open_until is not None and self.clock() >= self.open_until:
                self.state = CircuitState.HALF_OPEN
                self.success_count = 0
                logger.info("Circuit breaker %s half-open, admitting trial call", self.name)
                return True
            return False

    def record_success(self) -> None:
        """Record a successful call."""
        with self._lock:
            self.failure_count = 0
            if self.state == CircuitState.HALF_OPEN:
                self.success_count += 1
                if self.success_count >= self.success_threshold:
                    self.state = CircuitState.CLOSED
                    self.success_count = 0
                    self.open_until = None
                    logger.info("Circuit breaker %s closed", self.name)

    def record_failure(self) -> None:
        """Record a failed call.

        Any failure in HALF_OPEN state reopens the circuit.
        """
        with self._lock:
            self.success_count = 0
            self.failure_count += 1
            trial_failed = self.state == CircuitState.HALF_OPEN
            if trial_failed or self.failure_count >= self.failure_threshold:
                if self.state != CircuitState.OPEN:
                    logger.warning(
                        "Circuit breaker %s opened after %d failures",
                        self.name,
                        self.failure_count,
                    )
                self.state = CircuitState.OPEN
                self.open_until = self.clock() + self.timeout_seconds

    def execute(self, operation: Callable[[], T]) -> T:
        """Run ``operation`` under breaker protection.

        Raises:
            CircuitBreakerError: If the circuit is open. The operation is
                not invoked.
        """
        if not self.can_execute():
            raise self._open_error()

        try:
            result = operation()
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result

    def retry_after(self) -> Optional[float]:
        """Seconds until an OPEN circuit admits a trial call."""
        with self._lock:
            return self._retry_after_locked()

    def _retry_after_locked(self) -> Optional[float]:
        if self.state != CircuitState.OPEN or self.open_until is None:
            return None
        return max(0.0, self.open_until - self.clock())

    def _open_error(self) -> CircuitBreakerError:
        return CircuitBreakerError(
            f"Circuit breaker '{self.name}' is open",
            breaker_name=self.name,
            state=self.state,
            retry_after=self.retry_after(),
        )

    def reset(self) -> None:
        """Reset circuit breaker to closed state."""
        with self._lock:
            self.state = CircuitState.CLOSED
            self.failure_count = 0
            self.success_count = 0
            self.open_until = None

    def get_status(self) -> Dict[str, Any]:
        """Get current circuit breaker status.

        Returns:
            Dict with state, counters and thresholds.
        """
        with self._lock:
            return {
                "name": self.name,
                "state": self.state.value,
                "failure_count": self.failure_count,
                "success_count": self.success_count,
                "failure_threshold": self.failure_threshold,
                "success_threshold": self.success_threshold,
                "timeout_seconds": self.timeout_seconds,
                "retry_after_seconds": self._retry_after_locked(),
            }


def with_circuit_breaker(
    breaker: CircuitBreaker,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator to wrap a function with circuit breaker protection.

    Example:
        >>> breaker = CircuitBreaker(name="search", failure_threshold=3)
        >>>
        >>> @with_circuit_breaker(breaker)
        ... def lookup(term: str):
        ...     return index.find(term)

    Raises:
        CircuitBreakerError: If circuit is open and rejecting requests.
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            return breaker.execute(lambda: func(*args, **kwargs))

        return wrapper

    return decorator
