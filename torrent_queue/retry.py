"""
Retry Logic and Circuit Breaker for the queue monitor
Backoff belongs to the caller: the reconciliation engine never retries on its
own, the monitor wraps each poll with these.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional, TypeVar

from .exceptions import (
    CircuitOpenError,
    ClientAuthenticationError,
    ClientUnavailableError,
    IncompatibleClientVersionError,
    ValidationError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures that will not go away by asking the daemon again
PERMANENT_ERRORS = (ClientAuthenticationError, IncompatibleClientVersionError, ValidationError)
TRANSIENT_ERRORS = (ClientUnavailableError, ConnectionError, TimeoutError, OSError)


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"        # Polling normally
    OPEN = "open"            # Daemon considered down, polls rejected
    HALF_OPEN = "half_open"  # One trial poll allowed


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True
    jitter_factor: float = 0.5  # Random factor 0.5-1.5x

    # Message fragments that mark an otherwise unknown error as transient
    retryable_errors: List[str] = field(default_factory=lambda: [
        "timeout",
        "connection",
        "temporary",
        "502",
        "503",
        "504",
        "reset",
        "refused",
    ])


@dataclass
class RetryStats:
    """Counters across every call made through one handler."""
    total_attempts: int = 0
    successful_attempts: int = 0
    failed_attempts: int = 0
    retried_operations: int = 0
    last_error: Optional[str] = None
    last_error_time: Optional[float] = None

    def record_failure(self, error: Exception) -> None:
        self.failed_attempts += 1
        self.last_error = str(error)
        self.last_error_time = time.time()


class RetryHandler:
    """
    Runs an async operation with exponential backoff between attempts.
    """

    def __init__(self, config: RetryConfig = None):
        self.config = config or RetryConfig()
        self._stats = RetryStats()

    async def with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_id: str = None,
        max_attempts: int = None,
        should_retry: Callable[[Exception], bool] = None,
    ) -> T:
        """
        Await ``operation`` until it succeeds or attempts run out.

        Args:
            operation: Async callable to execute
            operation_id: Identifier used in log messages
            max_attempts: Override max attempts (optional)
            should_retry: Custom function to determine if error is retryable

        Raises:
            The last error, once it is not retryable or attempts are exhausted
        """
        attempts = max_attempts or self.config.max_attempts
        operation_id = operation_id or getattr(operation, "__name__", "operation")
        is_retryable = should_retry or self.is_retryable

        attempt = 0
        while True:
            attempt += 1
            self._stats.total_attempts += 1
            try:
                result = await operation()
            except Exception as e:
                self._stats.record_failure(e)

                if not is_retryable(e):
                    logger.warning(f"{operation_id} failed with non-retryable error: {e}")
                    raise
                if attempt >= attempts:
                    logger.error(f"{operation_id} failed after {attempt} attempts: {e}")
                    raise

                delay = self._calculate_delay(attempt)
                self._stats.retried_operations += 1
                logger.warning(
                    f"{operation_id} failed (attempt {attempt}/{attempts}), "
                    f"retrying in {delay:.1f}s: {e}"
                )
                await asyncio.sleep(delay)
                continue

            self._stats.successful_attempts += 1
            if attempt > 1:
                logger.info(f"{operation_id} succeeded on attempt {attempt}")
            return result

    def is_retryable(self, error: Exception) -> bool:
        """Permanent daemon errors stop at once; outages and network errors are retried."""
        if isinstance(error, PERMANENT_ERRORS):
            return False
        if isinstance(error, TRANSIENT_ERRORS):
            return True

        message = str(error).lower()
        return any(pattern in message for pattern in self.config.retryable_errors)

    def _calculate_delay(self, attempt: int) -> float:
        """Exponential backoff capped at max_delay, then jittered."""
        delay = min(
            self.config.initial_delay * self.config.exponential_base ** (attempt - 1),
            self.config.max_delay,
        )
        if self.config.jitter:
            delay *= 1.0 + random.uniform(-1.0, 1.0) * self.config.jitter_factor
        return max(0.0, delay)

    def get_stats(self) -> dict:
        return vars(self._stats).copy()


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker."""
    failure_threshold: int = 5      # Consecutive failed polls before opening
    success_threshold: int = 1      # Successful trial polls needed to close
    reset_timeout: float = 60.0     # Seconds before a trial poll is allowed


class CircuitBreaker:
    """
    Stops polling a daemon that keeps failing, then lets a trial poll through
    once reset_timeout has passed.
    """

    def __init__(self, config: CircuitBreakerConfig = None, name: str = "default"):
        self.config = config or CircuitBreakerConfig()
        self.name = name
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at = 0.0
        self._last_failure_time = 0.0
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == CircuitState.OPEN

    async def record_success(self) -> None:
        async with self._lock:
            if self._state != CircuitState.HALF_OPEN:
                self._failure_count = 0
                return
            self._success_count += 1
            if self._success_count >= self.config.success_threshold:
                self._transition_to(CircuitState.CLOSED)

    async def record_failure(self) -> None:
        async with self._lock:
            self._failure_count += 1
            self._last_failure_time = time.time()

            tripped = (
                self._state == CircuitState.HALF_OPEN
                or self._failure_count >= self.config.failure_threshold
            )
            if tripped and self._state != CircuitState.OPEN:
                self._transition_to(CircuitState.OPEN)

    async def can_execute(self) -> bool:
        async with self._lock:
            if self._state != CircuitState.OPEN:
                return True
            if time.monotonic() - self._opened_at < self.config.reset_timeout:
                return False
            self._transition_to(CircuitState.HALF_OPEN)
            return True

    def _transition_to(self, new_state: CircuitState) -> None:
        self._state = new_state
        self._success_count = 0

        if new_state == CircuitState.CLOSED:
            self._failure_count = 0
            logger.info(f"Circuit breaker '{self.name}' closed, polling resumed")
        elif new_state == CircuitState.OPEN:
            self._opened_at = time.monotonic()
            logger.warning(
                f"Circuit breaker '{self.name}' opened after {self._failure_count} failures, "
                f"next trial in {self.config.reset_timeout}s"
            )
        else:
            logger.info(f"Circuit breaker '{self.name}' half-open, trying one poll")

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``operation`` unless the circuit is open.

        Raises:
            CircuitOpenError: the circuit is open
        """
        if not await self.can_execute():
            raise CircuitOpenError(
                f"Circuit breaker '{self.name}' is open, retry in {self.config.reset_timeout}s",
                name=self.name,
                reset_timeout=self.config.reset_timeout,
            )

        try:
            result = await operation()
        except Exception:
            await self.record_failure()
            raise
        await self.record_success()
        return result

    def get_stats(self) -> dict:
        return {
            "name": self.name,
            "state": self._state.value,
            "failure_count": self._failure_count,
            "last_failure_time": self._last_failure_time,
        }
