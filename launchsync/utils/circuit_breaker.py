"""
Circuit breaker protecting a sync run against a release host that keeps failing.
"""

import logging
import time
from collections.abc import Callable
from enum import Enum

from launchsync.exceptions import CircuitBreakerError

log = logging.getLogger(__name__)


class CircuitState(Enum):
    """States of the circuit breaker."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing fast
    HALF_OPEN = "half_open"  # Letting one probe through


class CircuitBreaker:
    """
    Fails downloads fast once the host has produced too many consecutive errors.

    Without it every queued file would exhaust its own retries against a host
    that is already known to be down.

    States:
    - CLOSED: requests pass through, consecutive failures are counted
    - OPEN: requests are rejected with CircuitBreakerError
    - HALF_OPEN: after `recovery_timeout`, one probe decides open or closed
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        is_failure: Callable[[BaseException], bool] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            failure_threshold: Consecutive failures before the circuit opens.
            recovery_timeout: Seconds the circuit stays open before a probe.
            is_failure: Decides which exceptions count against the host.
                Defaults to counting every exception.
            clock: Monotonic time source.
        """
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._is_failure = is_failure or (lambda _exc: True)
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at: float | None = None
        self._probe_in_flight = False

    @property
    def state(self) -> CircuitState:
        """Current circuit state."""
        if (
            self._state == CircuitState.OPEN
            and self._opened_at is not None
            and self._clock() - self._opened_at >= self.recovery_timeout
        ):
            self._state = CircuitState.HALF_OPEN
            self._probe_in_flight = False
        return self._state

    def _open(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()
        log.error(
            f"[red]✗ Release host failed {self._consecutive_failures} times in a "
            f"row. Failing fast for {self.recovery_timeout:.0f}s.[/red]"
        )

    def record_success(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            log.info("[green]✓ Release host recovered.[/green]")
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._probe_in_flight = False

    def record_failure(self) -> None:
        self._consecutive_failures += 1
        if self._state == CircuitState.HALF_OPEN:
            self._probe_in_flight = False
            self._open()
        elif (
            self._state == CircuitState.CLOSED
            and self._consecutive_failures >= self.failure_threshold
        ):
            self._open()

    async def __aenter__(self) -> "CircuitBreaker":
        state = self.state
        if state == CircuitState.OPEN or (
            state == CircuitState.HALF_OPEN and self._probe_in_flight
        ):
            raise CircuitBreakerError(
                "Release host is unavailable after repeated failures; "
                f"retrying after {self.recovery_timeout:.0f} seconds."
            )
        if state == CircuitState.HALF_OPEN:
            self._probe_in_flight = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_val is None:
            self.record_success()
        elif self._is_failure(exc_val):
            self.record_failure()
        elif self._state == CircuitState.HALF_OPEN:
            self._probe_in_flight = False
        return False
