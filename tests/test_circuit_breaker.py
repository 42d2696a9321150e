from __future__ import annotations

import asyncio

import pytest

from launchsync.exceptions import CircuitBreakerError
from launchsync.utils.circuit_breaker import CircuitBreaker, CircuitState


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


async def _call(breaker: CircuitBreaker, error: BaseException | None = None) -> None:
    async with breaker:
        if error is not None:
            raise error


def _attempt(breaker: CircuitBreaker, error: BaseException | None = None) -> None:
    try:
        asyncio.run(_call(breaker, error))
    except (ConnectionError, ValueError):
        pass


def test_opens_after_consecutive_failures() -> None:
    breaker = CircuitBreaker(failure_threshold=3, clock=FakeClock())

    for _ in range(2):
        _attempt(breaker, ConnectionError("down"))
    assert breaker.state is CircuitState.CLOSED

    _attempt(breaker, ConnectionError("down"))
    assert breaker.state is CircuitState.OPEN
    with pytest.raises(CircuitBreakerError):
        asyncio.run(_call(breaker))


def test_half_open_probe_decides_state() -> None:
    clock = FakeClock()
    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=30, clock=clock)
    _attempt(breaker, ConnectionError("down"))

    clock.now = 29.0
    assert breaker.state is CircuitState.OPEN
    clock.now = 30.0
    assert breaker.state is CircuitState.HALF_OPEN

    _attempt(breaker, ConnectionError("still down"))
    assert breaker.state is CircuitState.OPEN

    clock.now = 60.0
    _attempt(breaker)
    assert breaker.state is CircuitState.CLOSED


def test_only_counted_exceptions_trip_the_circuit() -> None:
    breaker = CircuitBreaker(
        failure_threshold=1,
        is_failure=lambda exc: isinstance(exc, ConnectionError),
        clock=FakeClock(),
    )

    _attempt(breaker, ValueError("bad checksum"))
    assert breaker.state is CircuitState.CLOSED

    _attempt(breaker, ConnectionError("down"))
    assert breaker.state is CircuitState.OPEN


def test_success_resets_failure_count() -> None:
    breaker = CircuitBreaker(failure_threshold=2, clock=FakeClock())

    _attempt(breaker, ConnectionError("down"))
    _attempt(breaker)
    _attempt(breaker, ConnectionError("down"))

    assert breaker.state is CircuitState.CLOSED
