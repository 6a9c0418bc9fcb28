"""
AI Router - Circuit Breaker

Per-provider circuit breaker that stops routing to a provider after
repeated consecutive failures.

States:
- CLOSED: Normal operation, requests pass through
- OPEN: Provider is failing, requests fail fast
- HALF_OPEN: Reset window elapsed, exactly one probe is allowed through

Transitions:
- CLOSED -> OPEN: failure_threshold consecutive failures
- OPEN -> HALF_OPEN: checked lazily by is_open() once the reset window elapses
- HALF_OPEN -> CLOSED: probe succeeds
- HALF_OPEN -> OPEN: probe fails (fresh fixed window)
- HALF_OPEN -> OPEN: probe abandoned (cancelled), window unchanged so the next
  caller becomes the probe

There is no background timer; the breaker is only consulted at call time.
"""

import time
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Any, Callable, Dict, Optional


class CircuitState(str, Enum):
    """Circuit breaker states."""
    CLOSED = "closed"      # Normal operation
    OPEN = "open"          # Failing fast
    HALF_OPEN = "half_open"  # One probe in flight


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker behavior."""
    # Consecutive failures that open the breaker
    failure_threshold: int = 5

    # How long the breaker stays open before allowing a probe (seconds)
    reset_timeout_seconds: float = 60.0


StateListener = Callable[[str, CircuitState], None]


class CircuitBreaker:
    """
    Circuit breaker for a single provider.

    Thread-safe: increments and resets happen under a lock so that two
    failures recorded at the same time are both counted.
    """

    def __init__(
        self,
        provider_name: str,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.time,
        on_state_change: Optional[StateListener] = None,
    ):
        self.provider_name = provider_name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._on_state_change = on_state_change
        self._lock = Lock()

        self.state = CircuitState.CLOSED
        self.consecutive_failures = 0
        self.last_failure_time: Optional[float] = None
        self.next_retry_time: Optional[float] = None

    def is_open(self) -> bool:
        """
        Check whether calls must be rejected.

        Once the reset window has elapsed the first caller gets False and
        becomes the half-open probe; later callers get True until the probe
        records a success or failure.
        """
        with self._lock:
            if self.state == CircuitState.CLOSED:
                return False

            if self.state == CircuitState.HALF_OPEN:
                return True

            if self._clock() < self.next_retry_time:
                return True

            self._transition_to(CircuitState.HALF_OPEN)
            return False

    def record_failure(self):
        """Record a failed call."""
        with self._lock:
            now = self._clock()
            self.consecutive_failures += 1
            self.last_failure_time = now

            if self.state == CircuitState.HALF_OPEN:
                self._open(now)
                return

            if (
                self.state == CircuitState.CLOSED
                and self.consecutive_failures >= self.config.failure_threshold
            ):
                self._open(now)

    def record_success(self):
        """Record a successful call. Always closes the breaker."""
        with self._lock:
            self.consecutive_failures = 0
            self.next_retry_time = None
            if self.state != CircuitState.CLOSED:
                self._transition_to(CircuitState.CLOSED)

    def release_probe(self):
        """Give back an unfinished half-open probe without recording an outcome."""
        with self._lock:
            if self.state == CircuitState.HALF_OPEN:
                self._transition_to(CircuitState.OPEN)

    def _open(self, now: float):
        """Open with a fresh reset window (must hold lock)."""
        self.next_retry_time = now + self.config.reset_timeout_seconds
        self._transition_to(CircuitState.OPEN)

    def _transition_to(self, new_state: CircuitState):
        self.state = new_state
        if self._on_state_change:
            self._on_state_change(self.provider_name, new_state)

    @property
    def is_tripped(self) -> bool:
        """Open or probing, without consuming the half-open probe."""
        return self.state != CircuitState.CLOSED

    def get_status(self) -> Dict[str, Any]:
        """Current state snapshot. Does not trigger the half-open transition."""
        with self._lock:
            return {
                "provider": self.provider_name,
                "state": self.state.value,
                "is_open": self.state != CircuitState.CLOSED,
                "consecutive_failures": self.consecutive_failures,
                "last_failure_time": self.last_failure_time,
                "next_retry_time": self.next_retry_time,
            }


class CircuitBreakerRegistry:
    """
    One circuit breaker per provider, created on first use.
    """

    def __init__(
        self,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.time,
        on_state_change: Optional[StateListener] = None,
    ):
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._on_state_change = on_state_change
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._lock = Lock()

    def get_breaker(self, provider: Any) -> CircuitBreaker:
        """Get or create the circuit breaker for a provider."""
        name = getattr(provider, "value", provider)
        with self._lock:
            if name not in self._breakers:
                self._breakers[name] = CircuitBreaker(
                    name,
                    self.config,
                    clock=self._clock,
                    on_state_change=self._on_state_change,
                )
            return self._breakers[name]

    def get_all_status(self) -> Dict[str, Dict[str, Any]]:
        """Get status of all circuit breakers."""
        with self._lock:
            breakers = list(self._breakers.items())
        return {name: breaker.get_status() for name, breaker in breakers}
