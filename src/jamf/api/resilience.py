#!/usr/bin/env python3
"""Circuit breaker for the Jamf Pro API client.

When the Jamf server is down or overloaded, hammering it with retries only
makes things worse. The breaker counts consecutive final failures and, once
a threshold is crossed, rejects requests immediately until a cool-down has
passed. A single trial request is then let through (HALF_OPEN); enough
successes close the circuit again.

Example:
    circuit = CircuitBreaker(failure_threshold=5, timeout=60)
    result = await circuit.call(client.get, "/v2/computer-prestages")
"""
import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .exceptions import CircuitOpenError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Circuit breaker to prevent cascading failures.

    State Transitions:
        CLOSED -> OPEN: When failure_count >= failure_threshold
        OPEN -> HALF_OPEN: When timeout expires
        HALF_OPEN -> CLOSED: When success_threshold trial requests succeed
        HALF_OPEN -> OPEN: When a trial request fails

    Attributes:
        failure_threshold: Number of failures before opening circuit
        timeout: Seconds to wait before attempting recovery
        success_threshold: Successes needed in HALF_OPEN to close circuit
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        timeout: float = 60.0,
        success_threshold: int = 2,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.success_threshold = success_threshold
        self.name = name
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at: Optional[float] = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == CircuitState.OPEN

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def should_attempt(self) -> bool:
        """Check if a request may go through in the current state."""
        if self._state != CircuitState.OPEN:
            return True
        if self._opened_at is None:
            return False
        return self._clock() - self._opened_at >= self.timeout

    def _reset_at(self) -> Optional[datetime]:
        if self._opened_at is None:
            return None
        remaining = max(0.0, self.timeout - (self._clock() - self._opened_at))
        return datetime.now(timezone.utc) + timedelta(seconds=remaining)

    def rejection(self) -> CircuitOpenError:
        """Build the error raised while the circuit is open."""
        return CircuitOpenError(
            f"Circuit breaker '{self.name}' is open",
            reset_at=self._reset_at(),
            failure_count=self._failure_count,
        )

    async def acquire(self) -> None:
        """Admit one request, moving OPEN to HALF_OPEN once the timeout has passed.

        Raises:
            CircuitOpenError: If circuit is open and timeout hasn't passed
        """
        async with self._lock:
            if not self.should_attempt():
                raise self.rejection()

            if self._state == CircuitState.OPEN:
                logger.info(f"Circuit '{self.name}' transitioning to HALF_OPEN")
                self._state = CircuitState.HALF_OPEN
                self._success_count = 0

    async def call(
        self,
        func: Callable[..., Awaitable[T]],
        *args,
        **kwargs,
    ) -> T:
        """Execute ``func`` through the circuit breaker.

        Raises:
            CircuitOpenError: If circuit is open and timeout hasn't passed
            Any exception from func (after updating circuit state)
        """
        await self.acquire()

        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            await self.record_failure(e)
            raise

        await self.record_success()
        return result

    async def record_success(self) -> None:
        async with self._lock:
            self._failure_count = 0

            if self._state == CircuitState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self.success_threshold:
                    logger.info(
                        f"Circuit '{self.name}' closing after "
                        f"{self._success_count} successes"
                    )
                    self._state = CircuitState.CLOSED
                    self._success_count = 0

    async def record_failure(self, exception: Exception) -> None:
        async with self._lock:
            self._failure_count += 1

            if self._state == CircuitState.HALF_OPEN:
                logger.warning(
                    f"Circuit '{self.name}' reopening after test failure: {exception}"
                )
                self._state = CircuitState.OPEN
                self._opened_at = self._clock()

            elif self._state == CircuitState.CLOSED and self._failure_count >= self.failure_threshold:
                logger.warning(
                    f"Circuit '{self.name}' opening after "
                    f"{self._failure_count} failures"
                )
                self._state = CircuitState.OPEN
                self._opened_at = self._clock()

    def reset(self) -> None:
        """Manually reset the circuit breaker to closed state."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at = None
        logger.info(f"Circuit '{self.name}' manually reset")

    def get_status(self) -> dict[str, Any]:
        """Circuit breaker status for monitoring."""
        reset_at = self._reset_at() if self.is_open else None
        return {
            "name": self.name,
            "state": self._state.value,
            "failure_count": self._failure_count,
            "success_count": self._success_count,
            "failure_threshold": self.failure_threshold,
            "timeout_seconds": self.timeout,
            "reset_at": reset_at.isoformat() if reset_at else None,
        }
