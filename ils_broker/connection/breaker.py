"""Circuit breaker guarding the primary ILS driver.

States:

- ``closed``: calls go to the driver; failures are counted.
- ``open``: the failure threshold was reached; calls are not sent to the
  driver until ``reset_timeout`` seconds have passed.
- ``half_open``: the timeout has passed; the next call probes the driver.
  Success closes the breaker, failure opens it again immediately.
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional

_LOGGER = logging.getLogger(__name__)


class CircuitState(str, Enum):
    closed = "closed"
    open = "open"
    half_open = "half_open"


class CircuitBreaker:
    """Thread-safe failure counter with timed recovery."""

    def __init__(
        self,
        failure_threshold: int = 1,
        reset_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._state = CircuitState.closed
        self._failures = 0
        self._opened_at: Optional[float] = None

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._current_state()

    def _current_state(self) -> CircuitState:
        if (
            self._state is CircuitState.open
            and self._opened_at is not None
            and self._clock() - self._opened_at >= self.reset_timeout
        ):
            self._transition(CircuitState.half_open)
        return self._state

    @property
    def failures(self) -> int:
        return self._failures

    @property
    def failing(self) -> bool:
        """True unless the breaker is closed."""
        return self.state is not CircuitState.closed

    def allow_request(self) -> bool:
        return self.state is not CircuitState.open

    def record_success(self) -> None:
        with self._lock:
            self._failures = 0
            self._opened_at = None
            if self._state is not CircuitState.closed:
                self._transition(CircuitState.closed)

    def record_failure(self) -> None:
        with self._lock:
            state = self._current_state()
            self._failures += 1
            if state is CircuitState.half_open or (
                state is CircuitState.closed and self._failures >= self.failure_threshold
            ):
                self._opened_at = self._clock()
                self._transition(CircuitState.open)
            elif state is CircuitState.open:
                self._opened_at = self._clock()

    def reset(self) -> None:
        with self._lock:
            self._failures = 0
            self._opened_at = None
            self._transition(CircuitState.closed)

    def _transition(self, new_state: CircuitState) -> None:
        if new_state is self._state:
            return
        _LOGGER.info(
            "CircuitBreaker: %s -> %s (failures=%d)", self._state.value, new_state.value, self._failures
        )
        self._state = new_state
