from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from ils_broker.connection.breaker import CircuitBreaker, CircuitState


def _breaker(clock, threshold: int = 2, reset_timeout: float = 10.0) -> CircuitBreaker:
    return CircuitBreaker(failure_threshold=threshold, reset_timeout=reset_timeout, clock=clock)


def test_threshold_must_be_positive() -> None:
    with pytest.raises(ValueError):
        CircuitBreaker(failure_threshold=0)


def test_starts_closed(clock) -> None:
    breaker = _breaker(clock)
    assert breaker.state is CircuitState.closed
    assert breaker.failing is False
    assert breaker.allow_request() is True


def test_opens_at_threshold(clock) -> None:
    breaker = _breaker(clock, threshold=2)

    breaker.record_failure()
    assert breaker.state is CircuitState.closed
    assert breaker.failures == 1

    breaker.record_failure()
    assert breaker.state is CircuitState.open
    assert breaker.failing is True
    assert breaker.allow_request() is False


def test_becomes_half_open_after_timeout(clock) -> None:
    breaker = _breaker(clock, threshold=1, reset_timeout=10)
    breaker.record_failure()

    clock.advance(9)
    assert breaker.state is CircuitState.open
    clock.advance(1)
    assert breaker.state is CircuitState.half_open
    assert breaker.allow_request() is True


def test_half_open_success_closes(clock) -> None:
    breaker = _breaker(clock, threshold=1)
    breaker.record_failure()
    clock.advance(10)

    breaker.record_success()

    assert breaker.state is CircuitState.closed
    assert breaker.failures == 0


def test_half_open_failure_reopens_immediately(clock) -> None:
    breaker = _breaker(clock, threshold=3)
    for _ in range(3):
        breaker.record_failure()
    clock.advance(10)
    assert breaker.state is CircuitState.half_open

    breaker.record_failure()

    assert breaker.state is CircuitState.open
    # The timeout restarts from the new failure.
    clock.advance(5)
    assert breaker.state is CircuitState.open


def test_failure_while_open_extends_timeout(clock) -> None:
    breaker = _breaker(clock, threshold=1, reset_timeout=10)
    breaker.record_failure()
    clock.advance(6)
    breaker.record_failure()

    clock.advance(6)
    assert breaker.state is CircuitState.open
    clock.advance(4)
    assert breaker.state is CircuitState.half_open


def test_success_resets_count_while_closed(clock) -> None:
    breaker = _breaker(clock, threshold=2)
    breaker.record_failure()
    breaker.record_success()
    breaker.record_failure()
    assert breaker.state is CircuitState.closed


def test_reset(clock) -> None:
    breaker = _breaker(clock, threshold=1)
    breaker.record_failure()
    breaker.reset()
    assert breaker.state is CircuitState.closed
    assert breaker.failures == 0


def test_transitions_are_logged(clock, caplog) -> None:
    breaker = _breaker(clock, threshold=1)
    with caplog.at_level("INFO", logger="ils_broker.connection.breaker"):
        breaker.record_failure()
    assert "closed -> open" in caplog.text


def test_concurrent_failures_are_all_counted(clock) -> None:
    breaker = _breaker(clock, threshold=10_000)

    def fail_many() -> None:
        for _ in range(100):
            breaker.record_failure()

    with ThreadPoolExecutor(max_workers=8) as pool:
        for future in [pool.submit(fail_many) for _ in range(16)]:
            future.result()

    assert breaker.failures == 1600
    assert breaker.state is CircuitState.closed


def test_concurrent_failures_open_once(clock, caplog) -> None:
    breaker = _breaker(clock, threshold=5)

    with caplog.at_level("INFO", logger="ils_broker.connection.breaker"):
        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda _: breaker.record_failure(), range(40)))

    assert breaker.state is CircuitState.open
    assert caplog.text.count("closed -> open") == 1
