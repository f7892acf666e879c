"""Circuit breaker for the language-model and market-data collaborators.

States: CLOSED → OPEN → HALF_OPEN → CLOSED (or back to OPEN)
"""

import time
import logging
from enum import Enum
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


_STATE_GAUGE_VALUE = {
    CircuitState.CLOSED: 0,
    CircuitState.OPEN: 1,
    CircuitState.HALF_OPEN: 2,
}


@dataclass
class CircuitBreaker:
    """Short-circuits calls to a collaborator that keeps failing.

    Args:
        name: Identifier for this breaker (e.g., "llm", "market_data")
        failure_threshold: Consecutive failures before opening the circuit
        recovery_timeout: Seconds to wait before letting a trial call through
        half_open_max_calls: Successful trial calls needed to close again
    """
    name: str
    failure_threshold: int = 3
    recovery_timeout: float = 30.0
    half_open_max_calls: int = 1

    state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    failure_count: int = field(default=0, init=False)
    success_count: int = field(default=0, init=False)
    last_failure_time: float = field(default=0.0, init=False)
    half_open_calls: int = field(default=0, init=False)

    def can_execute(self) -> bool:
        if self.state == CircuitState.CLOSED:
            return True

        if self.state == CircuitState.OPEN:
            if time.monotonic() - self.last_failure_time >= self.recovery_timeout:
                self._transition(CircuitState.HALF_OPEN)
                self.half_open_calls += 1
                return True
            return False

        if self.half_open_calls < self.half_open_max_calls:
            self.half_open_calls += 1
            return True
        return False

    def check(self) -> None:
        """Raise CircuitBreakerOpen when the call must not go through."""
        if not self.can_execute():
            raise CircuitBreakerOpen(self.name)

    def record_success(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            self.success_count += 1
            if self.success_count >= self.half_open_max_calls:
                self._transition(CircuitState.CLOSED)
        elif self.state == CircuitState.CLOSED:
            self.failure_count = 0

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.monotonic()

        if self.state == CircuitState.HALF_OPEN:
            self._transition(CircuitState.OPEN)
        elif self.state == CircuitState.CLOSED:
            if self.failure_count >= self.failure_threshold:
                self._transition(CircuitState.OPEN)

    def reset(self) -> None:
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.half_open_calls = 0
        self.last_failure_time = 0.0
        _publish_state(self)

    def _transition(self, new_state: CircuitState) -> None:
        old = self.state
        self.state = new_state
        logger.warning("Circuit breaker '%s': %s → %s", self.name, old.value, new_state.value)

        if new_state == CircuitState.CLOSED:
            self.failure_count = 0
        self.success_count = 0
        self.half_open_calls = 0
        _publish_state(self)

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    def get_status(self) -> dict:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "last_failure_time": self.last_failure_time,
        }


class CircuitBreakerOpen(Exception):
    """Raised when a call is blocked by an open circuit breaker."""
    def __init__(self, breaker_name: str):
        self.breaker_name = breaker_name
        super().__init__(f"Circuit breaker '{breaker_name}' is OPEN")


def _publish_state(breaker: CircuitBreaker) -> None:
    from market_intel.core.metrics import CIRCUIT_BREAKER_STATE
    CIRCUIT_BREAKER_STATE.labels(name=breaker.name).set(_STATE_GAUGE_VALUE[breaker.state])


# ── Global breakers ──────────────────────────────────────────

llm_breaker = CircuitBreaker(
    name="llm",
    failure_threshold=5,
    recovery_timeout=60.0,
)

market_data_breaker = CircuitBreaker(
    name="market_data",
    failure_threshold=3,
    recovery_timeout=120.0,
)


def get_all_breakers() -> list[CircuitBreaker]:
    return [llm_breaker, market_data_breaker]
